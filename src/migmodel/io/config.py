"""
JSON configuration files for migration models.

A configuration file holds one JSON object, e.g.::

    {
        "name": "migModel",
        "pop_sizes": [1.0, 4.0],
        "rate_matrix": [0.2, 0.05],
        "rate_flags": [true, false]
    }

Either "rate_matrix" or "uniform_initial_rate" must be given. A uniform
initial rate overrides the dimension and values of any rate matrix.
"""

import json
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..models.migration import MigrationModel


@dataclass
class ModelConfig:
    """
    Parameters needed to construct a MigrationModel.

    Attributes
    ----------
    pop_sizes : list of float
        Deme population sizes
    rate_matrix : list of float, optional
        Packed migration rates
    rate_flags : list of bool, optional
        BSSVS indicator per stored rate
    uniform_initial_rate : float, optional
        Rate used for every ordered pair of demes
    name : str, optional
        Column prefix for trace output
    """

    pop_sizes: List[float]
    rate_matrix: Optional[List[float]] = None
    rate_flags: Optional[List[bool]] = None
    uniform_initial_rate: Optional[float] = None
    name: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ModelConfig":
        """Create a config from a parsed JSON object."""
        if not isinstance(data, dict):
            raise ValueError(f"Model configuration must be a JSON object, got {type(data).__name__}")

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown model configuration keys: {', '.join(unknown)}")
        if "pop_sizes" not in data:
            raise ValueError("Model configuration requires 'pop_sizes'")

        config = cls(**data)
        if config.rate_matrix is None and config.uniform_initial_rate is None:
            raise ValueError(
                "Model configuration requires 'rate_matrix' or 'uniform_initial_rate'"
            )
        return config

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-serializable dict, omitting unset fields."""
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not None}

    def build(self) -> MigrationModel:
        """Construct the migration model described by this config."""
        if self.uniform_initial_rate is not None:
            return MigrationModel.uniform(
                self.pop_sizes,
                self.uniform_initial_rate,
                rate_flags=self.rate_flags,
                name=self.name,
            )

        return MigrationModel(
            self.rate_matrix,
            self.pop_sizes,
            rate_flags=self.rate_flags,
            name=self.name,
        )


def load_config(path: Path) -> ModelConfig:
    """
    Read a model configuration from a JSON file.

    Parameters
    ----------
    path : Path
        JSON file

    Returns
    -------
    ModelConfig
    """
    with open(Path(path)) as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {path}: {e}") from e

    return ModelConfig.from_dict(data)
