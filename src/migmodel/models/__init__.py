"""
Migration models between demes.

- **RateLayout**: packed storage layouts of migration rate vectors
- **MigrationModel**: rates, population sizes and indicator flags, with
  lazily rebuilt generator and uniformized transition matrices
"""

from migmodel.models.layout import RateLayout
from migmodel.models.migration import MigrationModel

__all__ = [
    "RateLayout",
    "MigrationModel",
]
