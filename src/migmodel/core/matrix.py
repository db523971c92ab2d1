"""
Matrix operations for uniformized migration processes.

This module provides the matrix operations needed to turn a matrix of
migration rates into a generator and a uniformized transition matrix, and
to evaluate transition probabilities from powers of that matrix.
"""

import warnings
from typing import Callable

import numpy as np
from scipy.linalg import expm
from scipy.stats import poisson


def build_generator(rates: np.ndarray) -> np.ndarray:
    """
    Build the infinitesimal generator Q from a matrix of migration rates.

    Parameters
    ----------
    rates : ndarray, shape (n, n)
        Migration rates; rates[i, j] is the rate of moving from deme i to
        deme j. Diagonal entries are ignored.

    Returns
    -------
    Q : ndarray, shape (n, n)
        Generator with Q[i, j] = rates[i, j] for i != j and
        Q[i, i] = -sum(Q[i, j] for j != i)

    Notes
    -----
    Every row of Q sums to zero.

    Examples
    --------
    >>> Q = build_generator(np.array([[0.0, 0.2], [0.05, 0.0]]))
    >>> Q.sum(axis=1)
    array([0., 0.])
    """
    Q = np.array(rates, dtype=float)

    # Zero out diagonal first (square layouts carry unused diagonal slots)
    np.fill_diagonal(Q, 0.0)
    np.fill_diagonal(Q, -Q.sum(axis=1))

    return Q


def symmetrize_rates(rates: np.ndarray) -> np.ndarray:
    """Average rates[i, j] and rates[j, i] into a symmetric rate matrix."""
    rates = np.asarray(rates, dtype=float)
    return 0.5 * (rates + rates.T)


def uniformization_rate(Q: np.ndarray) -> float:
    """
    Largest total outgoing rate of generator Q.

    Parameters
    ----------
    Q : ndarray, shape (n, n)
        Generator matrix

    Returns
    -------
    float
        max_i |Q[i, i]|. Zero when no deme has an outgoing rate.
    """
    if Q.size == 0:
        return 0.0
    return float(np.max(np.abs(Q.diagonal())))


def uniformize(Q: np.ndarray, mu: float) -> np.ndarray:
    """
    Compute the uniformized transition matrix R = I + Q/mu.

    Parameters
    ----------
    Q : ndarray, shape (n, n)
        Generator matrix
    mu : float
        Uniformization rate, at least max_i |Q[i, i]|

    Returns
    -------
    R : ndarray, shape (n, n)
        Row-stochastic matrix with non-negative entries

    Notes
    -----
    Uniformization is undefined for mu == 0. Callers must check the rate
    before using R; here the result silently contains NaN.
    """
    n = Q.shape[0]
    with np.errstate(divide="ignore", invalid="ignore"):
        return Q / mu + np.eye(n)


def forward_rates(backward: np.ndarray, pop_sizes: np.ndarray) -> np.ndarray:
    """
    Derive forward-time migration rates from backward-time rates.

    Parameters
    ----------
    backward : ndarray, shape (n, n)
        Backward-time rates
    pop_sizes : ndarray, shape (n,)
        Deme population sizes

    Returns
    -------
    F : ndarray, shape (n, n)
        Forward rates F[i, j] = backward[j, i] * N_j / N_i, zero diagonal

    Notes
    -----
    Detailed balance between lineage flux and individual flux:
    N_i * F[i, j] = N_j * backward[j, i].
    """
    backward = np.asarray(backward, dtype=float)
    pop_sizes = np.asarray(pop_sizes, dtype=float)

    F = backward.T * pop_sizes[np.newaxis, :] / pop_sizes[:, np.newaxis]
    np.fill_diagonal(F, 0.0)
    return F


def matrix_exponential(Q: np.ndarray, t: float) -> np.ndarray:
    """
    Compute transition probability matrix P(t) = exp(Q*t).

    Uses scipy's Padé approximation with scaling and squaring. Serves as a
    reference for the uniformization series.

    Parameters
    ----------
    Q : ndarray, shape (n, n)
        Generator matrix
    t : float
        Elapsed time

    Returns
    -------
    P : ndarray, shape (n, n)
        Transition probability matrix
    """
    return expm(Q * t)


def uniformized_transition_probabilities(
    power: Callable[[int], np.ndarray],
    mu: float,
    t: float,
    tol: float = 1e-12,
    max_terms: int = 100000,
) -> np.ndarray:
    """
    Evaluate P(t) = exp(Q*t) as a Poisson mixture of powers of R.

    P(t) = sum_k Pois(k; mu*t) R^k, with R = I + Q/mu.

    Parameters
    ----------
    power : callable
        power(k) returns R^k. Normally MigrationModel.get_R_power, whose
        cache makes repeated evaluations cheap.
    mu : float
        Uniformization rate used to build R
    t : float
        Elapsed time (non-negative)
    tol : float
        Truncation tolerance on the neglected Poisson mass
    max_terms : int
        Hard limit on the number of series terms; a RuntimeWarning is
        emitted when the tolerance would need more

    Returns
    -------
    P : ndarray, shape (n, n)
        Transition probability matrix

    Notes
    -----
    The series is cut at the (1 - tol) quantile of Poisson(mu*t), so about
    mu*t + c*sqrt(mu*t) powers are requested. When power(k) returns the
    very same matrix object as power(k-1) the supplier has reached steady
    state and the series stops earlier. In both cases the remaining Poisson
    mass is assigned to the last power used.
    """
    if t < 0:
        raise ValueError(f"t must be >= 0, got {t}")

    lam = mu * t
    last = int(poisson.ppf(1.0 - tol, lam)) if lam > 0 else 0
    if last >= max_terms:
        warnings.warn(
            f"Uniformization series truncated at {max_terms} terms "
            f"(max_terms), {last + 1} needed for mu*t={lam:g}",
            RuntimeWarning,
            stacklevel=2,
        )
        last = max_terms - 1

    P = np.zeros_like(power(0), dtype=float)
    mass = 0.0
    previous = None

    for k in range(last + 1):
        Rk = power(k)
        if Rk is previous:
            break

        weight = poisson.pmf(k, lam)
        P += weight * Rk
        mass += weight
        previous = Rk

    P += (1.0 - mass) * previous
    return P


def eigen_decompose_symmetric(Q: np.ndarray) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Eigendecompose a symmetric generator Q = U @ diag(eigenvalues) @ V.

    Parameters
    ----------
    Q : ndarray, shape (n, n)
        Symmetric generator (e.g. the symmetrized migration generator)

    Returns
    -------
    eigenvalues : ndarray, shape (n,)
        Eigenvalues in ascending order; the largest is 0
    U : ndarray, shape (n, n)
        Right eigenvector matrix
    V : ndarray, shape (n, n)
        Left eigenvector matrix (U transposed, U being orthogonal)
    """
    eigenvalues, eigenvectors = np.linalg.eigh(Q)
    return eigenvalues, eigenvectors, eigenvectors.T
