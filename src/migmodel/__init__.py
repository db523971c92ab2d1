"""
migmodel: uniformized Markov migration models for structured coalescent analyses.

A migration model describes backward-time migration of lineages among a
fixed set of demes. It exposes the generator matrix, the uniformized
transition matrix and cached powers of that matrix, which is what
structured-coalescent likelihoods and proposal operators need.

Quick Start
-----------
>>> from migmodel import MigrationModel
>>> model = MigrationModel([0.2, 0.05], pop_sizes=[1.0, 4.0])
>>> model.get_mu()
0.2
>>> R5 = model.get_R_power(5)

Examples
--------
>>> # Symmetric layout with BSSVS indicators
>>> model = MigrationModel([0.1, 0.2, 0.3], [1.0, 1.0, 1.0],
...                        rate_flags=[True, False, True])
>>> model.get_rate(2, 0), model.get_raw_rate(2, 0)
(0.0, 0.2)
"""

__version__ = "0.1.0"

from .models.layout import RateLayout
from .models.migration import MigrationModel
from .core.powers import PowerCache
from .io.config import ModelConfig, load_config
from .io.trace import TraceLogger

__all__ = [
    "MigrationModel",
    "RateLayout",
    "PowerCache",
    "ModelConfig",
    "load_config",
    "TraceLogger",
    "__version__",
]
