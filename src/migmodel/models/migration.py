"""
Markovian migration model between demes.
"""

import logging
import warnings
from typing import Optional, Sequence

import numpy as np

from ..core.matrix import (
    build_generator,
    symmetrize_rates,
    uniformization_rate,
    uniformize,
    uniformized_transition_probabilities,
)
from ..core.powers import PowerCache
from .layout import RateLayout

logger = logging.getLogger(__name__)


class MigrationModel:
    """
    Continuous-time Markov migration model among a fixed set of demes.

    The model is parameterized by a packed vector of backward-time migration
    rates, one population size per deme and, optionally, one BSSVS indicator
    flag per stored rate. From these it derives the generator Q, the
    uniformization rate mu, the uniformized transition matrix R = I + Q/mu
    and cached powers of R, in a plain and a symmetrized variant.

    Derived matrices are rebuilt lazily: every mutation marks the model
    dirty and the next read of a derived quantity rebuilds all of them.

    Parameters
    ----------
    rate_matrix : sequence of float
        Packed migration rates. The length selects the layout: n*n (square),
        n*(n-1) (asymmetric, diagonal omitted) or n*(n-1)/2 (symmetric).
    pop_sizes : sequence of float
        Population size of each deme; its length fixes the number of demes.
    rate_flags : sequence of bool, optional
        Indicator per stored rate. A rate whose flag is False is treated as
        zero by the model but keeps its stored value. Default is to use all
        rates.
    name : str, optional
        Identifier used as the column prefix when logging.

    Notes
    -----
    Q is assembled backward in time: Q[i, j] is the rate at which a lineage
    currently in deme i migrates to deme j, and rows of Q sum to zero.
    The symmetrized generator uses 0.5*(rate(i, j) + rate(j, i)) and ignores
    the indicator flags.

    Examples
    --------
    >>> model = MigrationModel([0.1, 0.1], [7.0, 7.0])
    >>> model.get_mu()
    0.1
    >>> model.get_R_matrix()
    array([[0., 1.],
           [1., 0.]])
    """

    def __init__(
        self,
        rate_matrix: Sequence[float],
        pop_sizes: Sequence[float],
        rate_flags: Optional[Sequence[bool]] = None,
        name: Optional[str] = None,
    ):
        self._pop_sizes = np.array(pop_sizes, dtype=float).ravel()
        self._n_demes = len(self._pop_sizes)
        if self._n_demes < 1:
            raise ValueError("pop_sizes must contain at least one deme")
        if np.any(self._pop_sizes <= 0):
            raise ValueError(f"pop_sizes must be > 0, got {self._pop_sizes.tolist()}")

        self._rates = np.array(rate_matrix, dtype=float).ravel()
        self._layout = RateLayout.infer(self._n_demes, len(self._rates))
        if np.any(self._rates < 0):
            raise ValueError(f"Migration rates must be >= 0, got {self._rates.tolist()}")

        if rate_flags is not None:
            self._rate_flags = np.array(rate_flags, dtype=bool).ravel()
            if len(self._rate_flags) != len(self._rates):
                raise ValueError(
                    "Migration rate flags array does not have same number of "
                    f"elements as migration rate matrix: got {len(self._rate_flags)}, "
                    f"expected {len(self._rates)}"
                )
        else:
            self._rate_flags = None

        self.name = name
        self._offsets = self._layout.offset_matrix(self._n_demes)
        self._stored = None

        # Derived state, built on first read
        self._dirty = True
        self._total_pop_size = 0.0
        self._mu = {False: 0.0, True: 0.0}
        self._Q = {}
        self._R = {}
        self._power_caches = {}

    @classmethod
    def uniform(
        cls,
        pop_sizes: Sequence[float],
        rate: float,
        rate_flags: Optional[Sequence[bool]] = None,
        name: Optional[str] = None,
    ) -> "MigrationModel":
        """
        Create a model with the same rate between every ordered pair of demes.

        The rates are stored in the asymmetric layout, so each can be
        changed independently afterwards.
        """
        n = len(pop_sizes)
        rates = np.full(RateLayout.ASYMMETRIC.size(n), rate, dtype=float)
        return cls(rates, pop_sizes, rate_flags=rate_flags, name=name)

    def __repr__(self) -> str:
        return (
            f"MigrationModel(name={self.name!r}, n_demes={self._n_demes}, "
            f"layout={self._layout.value}, flags={self.has_rate_flags})"
        )

    @property
    def n_demes(self) -> int:
        """Number of demes."""
        return self._n_demes

    @property
    def layout(self) -> RateLayout:
        """Layout of the packed rate vector."""
        return self._layout

    @property
    def has_rate_flags(self) -> bool:
        """Whether BSSVS indicator flags are configured."""
        return self._rate_flags is not None

    @property
    def is_dirty(self) -> bool:
        """Whether derived matrices are stale."""
        return self._dirty

    @property
    def rate_parameters(self) -> np.ndarray:
        """Copy of the packed rate vector."""
        return self._rates.copy()

    @property
    def pop_size_parameters(self) -> np.ndarray:
        """Copy of the population size vector."""
        return self._pop_sizes.copy()

    @property
    def rate_flag_parameters(self) -> Optional[np.ndarray]:
        """Copy of the indicator flags, or None."""
        if self._rate_flags is None:
            return None
        return self._rate_flags.copy()

    def _offset(self, i: int, j: int) -> int:
        return self._layout.offset(i, j, self._n_demes)

    def _check_deme(self, i: int):
        if not 0 <= i < self._n_demes:
            raise IndexError(f"Deme index {i} out of range for {self._n_demes} demes")

    def _gather(self, values: np.ndarray) -> np.ndarray:
        """Unpack a per-rate vector into an (n, n) matrix with zero diagonal."""
        out = np.zeros((self._n_demes, self._n_demes), dtype=values.dtype)
        off_diagonal = self._offsets >= 0
        out[off_diagonal] = values[self._offsets[off_diagonal]]
        return out

    # Rates

    def get_rate(self, i: int, j: int) -> float:
        """
        Migration rate from deme i to deme j as used by the model.

        Returns 0 on the diagonal and for rates switched off by their
        indicator flag.
        """
        if i == j:
            return 0.0

        offset = self._offset(i, j)
        if self._rate_flags is not None and not self._rate_flags[offset]:
            return 0.0
        return float(self._rates[offset])

    def get_raw_rate(self, i: int, j: int) -> float:
        """
        Stored migration rate from deme i to deme j.

        Unlike get_rate(), this does not return 0 when the indicator flag is
        switched off, so disabled rates remain visible in logs.
        """
        if i == j:
            return 0.0
        return float(self._rates[self._offset(i, j)])

    def get_rate_flag(self, i: int, j: int) -> bool:
        """Indicator flag for rate (i, j); True for every rate if no flags are used."""
        if i == j:
            return False
        if self._rate_flags is None:
            return True
        return bool(self._rate_flags[self._offset(i, j)])

    def set_rate(self, i: int, j: int, rate: float):
        """
        Set the stored migration rate from deme i to deme j.

        Diagonal elements are ignored. In the symmetric layout this sets
        both directions.
        """
        if i == j:
            return

        self._rates[self._offset(i, j)] = rate
        self._dirty = True

    def set_rate_flag(self, i: int, j: int, flag: bool):
        """Switch rate (i, j) on or off."""
        if self._rate_flags is None:
            raise ValueError("Migration model has no rate flags to set")
        if i == j:
            return

        self._rate_flags[self._offset(i, j)] = flag
        self._dirty = True

    def get_rate_matrix(self) -> np.ndarray:
        """Rates as used by the model, shape (n, n), zero diagonal."""
        rates = self._gather(self._rates)
        if self._rate_flags is not None:
            rates = rates * self._gather(self._rate_flags)
        return rates

    def get_raw_rate_matrix(self) -> np.ndarray:
        """Stored rates ignoring indicator flags, shape (n, n), zero diagonal."""
        return self._gather(self._rates)

    def get_forward_rate(self, i: int, j: int) -> float:
        """
        Forward-time migration rate from deme i to deme j.

        Derived from the stored backward rate by detailed balance:
        rate(j, i) * N_j / N_i.
        """
        if i == j:
            return 0.0
        return self.get_raw_rate(j, i) * self._pop_sizes[j] / self._pop_sizes[i]

    # Population sizes

    def get_pop_size(self, i: int) -> float:
        """Population size of deme i."""
        self._check_deme(i)
        return float(self._pop_sizes[i])

    def set_pop_size(self, i: int, size: float):
        """Set the population size of deme i."""
        self._check_deme(i)
        self._pop_sizes[i] = size
        self._dirty = True

    def get_total_pop_size(self) -> float:
        """Total population size across all demes."""
        self._update_matrices()
        return self._total_pop_size

    # Derived matrices

    def mark_dirty(self):
        """Flag derived matrices as stale."""
        self._dirty = True

    def store(self):
        """Snapshot the current parameter values for a later restore()."""
        self._stored = (
            self._rates.copy(),
            self._pop_sizes.copy(),
            None if self._rate_flags is None else self._rate_flags.copy(),
        )

    def restore(self):
        """
        Roll parameters back to the last store() and mark the model dirty.

        Called when a proposed change is rejected. Without a snapshot only
        the dirty flag is set.
        """
        if self._stored is not None:
            rates, pop_sizes, rate_flags = self._stored
            self._rates[:] = rates
            self._pop_sizes[:] = pop_sizes
            if rate_flags is not None:
                self._rate_flags[:] = rate_flags
        self._dirty = True

    def _update_matrices(self):
        """
        Make all derived matrices consistent with the current parameters.

        Does nothing unless the model is dirty.
        """
        if not self._dirty:
            return

        self._total_pop_size = float(self._pop_sizes.sum())

        # Backward rate matrix Q and symmetrized Qsym (flags ignored)
        self._Q[False] = build_generator(self.get_rate_matrix())
        self._Q[True] = build_generator(symmetrize_rates(self.get_raw_rate_matrix()))

        for symmetric in (False, True):
            Q = self._Q[symmetric]
            mu = uniformization_rate(Q)
            R = uniformize(Q, mu)

            Q.flags.writeable = False
            R.flags.writeable = False
            self._mu[symmetric] = mu
            self._R[symmetric] = R

            # Clear cached powers of R and steady state flag
            self._power_caches[symmetric] = PowerCache(R)

        self._dirty = False
        logger.debug(
            "Rebuilt migration matrices for %d demes (mu=%g, mu_sym=%g)",
            self._n_demes,
            self._mu[False],
            self._mu[True],
        )

    def _warn_if_undefined(self, symmetric: bool):
        if self._mu[symmetric] == 0:
            warnings.warn(
                "Uniformization rate is zero: no active migration, "
                "transition matrix is undefined",
                RuntimeWarning,
                stacklevel=3,
            )

    def get_mu(self, symmetric: bool = False) -> float:
        """Uniformization rate: the largest total outgoing migration rate."""
        self._update_matrices()
        return self._mu[symmetric]

    def get_Q_matrix(self, symmetric: bool = False) -> np.ndarray:
        """
        Backward-time generator matrix.

        Parameters
        ----------
        symmetric : bool
            Return the symmetrized generator instead

        Returns
        -------
        np.ndarray, shape (n, n)
            Generator with rows summing to zero (read-only)
        """
        self._update_matrices()
        return self._Q[symmetric]

    def get_R_matrix(self, symmetric: bool = False) -> np.ndarray:
        """
        Uniformized transition matrix R = I + Q/mu.

        The caller must make sure get_mu() is non-zero first; with no active
        migration R is undefined, holds NaN and reading it emits a
        RuntimeWarning.
        """
        self._update_matrices()
        self._warn_if_undefined(symmetric)
        return self._R[symmetric]

    def get_R_power(self, n: int, symmetric: bool = False) -> np.ndarray:
        """
        n-th power of the uniformized transition matrix.

        Powers are cached until the next mutation. Once steady state has
        been detected, every power beyond it is returned as the steady-state
        matrix.
        """
        self._update_matrices()
        self._warn_if_undefined(symmetric)
        return self._power_caches[symmetric].power(n)

    def get_R_power_max(self, symmetric: bool = False) -> np.ndarray:
        """
        Element-wise upper bounds on the powers of R.

        Returns a matrix of ones until steady state has been reached.
        """
        self._update_matrices()
        return self._power_caches[symmetric].ceiling()

    def steady_state_power(self, symmetric: bool = False) -> Optional[int]:
        """Power index from which powers of R are known to be steady, or None."""
        self._update_matrices()
        return self._power_caches[symmetric].steady_state_power()

    def transition_probabilities(
        self, t: float, symmetric: bool = False, tol: float = 1e-12
    ) -> np.ndarray:
        """
        Transition probability matrix exp(Q*t) by uniformization.

        Parameters
        ----------
        t : float
            Elapsed (backward) time
        symmetric : bool
            Use the symmetrized generator
        tol : float
            Neglected Poisson mass

        Returns
        -------
        np.ndarray, shape (n, n)
        """
        mu = self.get_mu(symmetric)
        return uniformized_transition_probabilities(
            lambda k: self.get_R_power(k, symmetric), mu, t, tol=tol
        )
