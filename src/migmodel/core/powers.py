"""
Cached powers of a uniformized transition matrix.
"""

import logging
from typing import Optional

import numpy as np

logger = logging.getLogger(__name__)

# Powers are compared with their predecessor whenever the power index is a
# multiple of this interval.
STEADY_STATE_CHECK_INTERVAL = 10


def _frozen(matrix: np.ndarray) -> np.ndarray:
    matrix.flags.writeable = False
    return matrix


class PowerCache:
    """
    Lazily extended sequence of matrix powers [R^0, R^1, R^2, ...].

    Powers are computed on demand, one matrix product at a time, and are
    never recomputed. Every STEADY_STATE_CHECK_INTERVAL-th power is compared
    element-wise with the power before it; when the two are identical the
    sequence is considered to have reached steady state and all higher
    powers are served by the last cached matrix.

    Parameters
    ----------
    R : ndarray, shape (n, n)
        Matrix whose powers are cached

    Attributes
    ----------
    R : ndarray
        The base matrix (read-only)
    steady : bool
        Whether steady state has been detected

    Notes
    -----
    The steady-state test is exact (maximum absolute difference not strictly
    positive) and only runs at indices that are multiples of the check
    interval. Periodic chains therefore never reach steady state, and chains
    that converge only to within rounding noise may never trigger it either.
    """

    def __init__(self, R: np.ndarray):
        self.R = _frozen(np.array(R, dtype=float))
        n = self.R.shape[0]

        # Power sequence initially contains R^0 = I
        self._powers = [_frozen(np.eye(n))]
        self._max = np.eye(n)
        self.steady = False

    def __len__(self) -> int:
        """Number of powers computed so far."""
        return len(self._powers)

    def power(self, k: int) -> np.ndarray:
        """
        Return R^k, extending the cache as needed.

        Parameters
        ----------
        k : int
            Power index (>= 0)

        Returns
        -------
        ndarray, shape (n, n)
            R^k, or the steady-state matrix if steady state was reached at
            an index below k.
        """
        if k < 0:
            raise ValueError(f"Power index must be >= 0, got {k}")

        if k < len(self._powers):
            return self._powers[k]

        # Steady state of matrix iteration already reached
        if self.steady:
            return self._powers[-1]

        for i in range(len(self._powers), k + 1):
            current = _frozen(self._powers[i - 1] @ self.R)
            self._powers.append(current)
            np.maximum(self._max, current, out=self._max)

            if i % STEADY_STATE_CHECK_INTERVAL == 0:
                max_diff = np.max(np.abs(current - self._powers[i - 1]))
                if not max_diff > 0:
                    self.steady = True
                    logger.debug("Matrix powers reached steady state at power %d", i)
                    return current

        return self._powers[k]

    def ceiling(self) -> np.ndarray:
        """
        Element-wise upper bound on all powers of R.

        Returns
        -------
        ndarray, shape (n, n)
            Running maximum over the cached powers once steady state is
            known, otherwise a matrix of ones.
        """
        n = self.R.shape[0]
        if self.steady:
            return self._max.copy()
        return np.ones((n, n))

    def steady_state_power(self) -> Optional[int]:
        """
        Power index from which all powers are identical.

        Returns
        -------
        int or None
            Index of the last cached power if steady state has been
            detected, None while unknown.
        """
        if self.steady:
            return len(self._powers) - 1
        return None
