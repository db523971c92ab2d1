"""
Core matrix routines for uniformized migration processes.

- **Generators**: assembling Q from migration rates
- **Uniformization**: R = I + Q/mu and transition probabilities from its powers
- **Power caching**: lazily extended powers of R with steady-state detection

These are expert-level functions; most users only need
:class:`migmodel.MigrationModel`.
"""

from migmodel.core.matrix import (
    build_generator,
    uniformize,
    uniformization_rate,
    matrix_exponential,
)
from migmodel.core.powers import PowerCache

__all__ = [
    "build_generator",
    "uniformize",
    "uniformization_rate",
    "matrix_exponential",
    "PowerCache",
]
