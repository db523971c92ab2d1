"""Input/output for migration models: JSON configuration and trace logs."""

from migmodel.io.config import ModelConfig, load_config
from migmodel.io.trace import TraceLogger, column_names, column_values

__all__ = ["ModelConfig", "load_config", "TraceLogger", "column_names", "column_values"]
