"""
Pytest configuration and shared fixtures.
"""

import json

import numpy as np
import pytest
from typer.testing import CliRunner

from migmodel import MigrationModel


@pytest.fixture
def cli_runner():
    """CLI test runner for Typer apps."""
    return CliRunner()


@pytest.fixture
def periodic_model():
    """Two demes with equal rates: R is the 2x2 permutation matrix."""
    return MigrationModel([0.1, 0.1], [7.0, 7.0])


@pytest.fixture
def asymmetric_model():
    """Two demes with unequal rates and population sizes."""
    return MigrationModel([0.2, 0.05], [1.0, 4.0])


@pytest.fixture
def steady_model():
    """
    Three demes whose R has identical rows [0.5, 0.5, 0], so R^k == R exactly.

    Rates in asymmetric order (0,1), (0,2), (1,0), (1,2), (2,0), (2,1).
    """
    return MigrationModel([0.5, 0.0, 0.5, 0.0, 0.5, 0.5], [1.0, 2.0, 3.0])


@pytest.fixture
def random_model_factory():
    """Build random models of a given size and layout."""
    def factory(n_demes, layout="asymmetric", flags=False, seed=42):
        rng = np.random.default_rng(seed)
        size = {
            "square": n_demes * n_demes,
            "asymmetric": n_demes * (n_demes - 1),
            "symmetric": n_demes * (n_demes - 1) // 2,
        }[layout]
        rates = rng.uniform(0.01, 2.0, size)
        pop_sizes = rng.uniform(0.5, 10.0, n_demes)
        rate_flags = rng.random(size) < 0.7 if flags else None
        return MigrationModel(rates, pop_sizes, rate_flags=rate_flags)
    return factory


@pytest.fixture
def write_config(tmp_path):
    """Write a model configuration dict to a temporary JSON file."""
    def writer(data, name="model.json"):
        path = tmp_path / name
        path.write_text(json.dumps(data))
        return path
    return writer
