"""
Storage layouts of packed migration rate vectors.
"""

from enum import Enum

import numpy as np


class RateLayout(str, Enum):
    """
    Layout of a packed vector of migration rates between n demes.

    - SQUARE: n*n values, rate (i, j) at i*n + j. Diagonal slots are unused.
    - ASYMMETRIC: n*(n-1) values, one per ordered pair, row-major with the
      diagonal omitted.
    - SYMMETRIC: n*(n-1)/2 values, one per unordered pair, shared by both
      directions and stored by lower-triangular index.
    """

    SQUARE = "square"
    ASYMMETRIC = "asymmetric"
    SYMMETRIC = "symmetric"

    @classmethod
    def infer(cls, n_demes: int, length: int) -> "RateLayout":
        """
        Determine the layout of a rate vector from its length.

        Parameters
        ----------
        n_demes : int
            Number of demes
        length : int
            Number of elements in the packed rate vector

        Returns
        -------
        RateLayout

        Raises
        ------
        ValueError
            If the length matches none of the layouts for n_demes.
        """
        for layout in (cls.SQUARE, cls.ASYMMETRIC, cls.SYMMETRIC):
            if layout.size(n_demes) == length:
                return layout

        raise ValueError(
            f"Migration rate vector has incorrect number of elements for "
            f"{n_demes} demes: got {length}, expected "
            f"{cls.SQUARE.size(n_demes)} (square), "
            f"{cls.ASYMMETRIC.size(n_demes)} (asymmetric) or "
            f"{cls.SYMMETRIC.size(n_demes)} (symmetric)"
        )

    def size(self, n_demes: int) -> int:
        """Length of the packed rate vector for n_demes demes."""
        if self is RateLayout.SQUARE:
            return n_demes * n_demes
        if self is RateLayout.ASYMMETRIC:
            return n_demes * (n_demes - 1)
        return n_demes * (n_demes - 1) // 2

    def offset(self, i: int, j: int, n_demes: int) -> int:
        """
        Offset of rate (i, j) in the packed rate vector.

        Parameters
        ----------
        i : int
            Source deme
        j : int
            Destination deme
        n_demes : int
            Number of demes

        Returns
        -------
        int
            Index into the packed vector (and into the indicator flags)

        Raises
        ------
        IndexError
            If i or j is not in range(n_demes)
        RuntimeError
            If i == j. Diagonal elements have no stored representation and
            asking for one is a programming error.
        """
        if not (0 <= i < n_demes and 0 <= j < n_demes):
            raise IndexError(
                f"Deme index ({i}, {j}) out of range for {n_demes} demes"
            )

        if i == j:
            raise RuntimeError(
                "Programmer error: requested migration rate array offset "
                f"for diagonal element ({i}, {j}) of migration rate matrix."
            )

        if self is RateLayout.SQUARE:
            return i * n_demes + j

        if self is RateLayout.SYMMETRIC:
            hi, lo = max(i, j), min(i, j)
            return hi * (hi - 1) // 2 + lo

        if j > i:
            j -= 1
        return i * (n_demes - 1) + j

    def offset_matrix(self, n_demes: int) -> np.ndarray:
        """
        Offsets of every off-diagonal pair as an (n, n) integer array.

        Diagonal entries are -1.
        """
        offsets = np.full((n_demes, n_demes), -1, dtype=int)
        for i in range(n_demes):
            for j in range(n_demes):
                if i != j:
                    offsets[i, j] = self.offset(i, j, n_demes)
        return offsets
