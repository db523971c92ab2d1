"""Main CLI application for migmodel."""

import json
import logging
from enum import Enum
from pathlib import Path
from typing import Optional

import numpy as np
import typer

from ..io.config import load_config
from ..io.trace import TraceLogger
from ..models.migration import MigrationModel

app = typer.Typer(
    name="migmodel",
    help="Inspect uniformized migration models between demes",
    no_args_is_help=True,
)


class OutputFormat(str, Enum):
    """Output format."""
    TEXT = "text"
    JSON = "json"


CONFIG_ARGUMENT = typer.Argument(
    ...,
    help="Model configuration file (JSON)",
    exists=True,
    file_okay=True,
    dir_okay=False,
)


@app.callback()
def main(
    verbose: bool = typer.Option(
        False,
        "--verbose", "-v",
        help="Enable debug logging",
    ),
):
    """Uniformized migration models for structured coalescent analyses."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG)


def _load_model(config: Path) -> MigrationModel:
    try:
        return load_config(config).build()
    except (ValueError, OSError) as e:
        typer.echo(f"Error loading model: {e}", err=True)
        raise typer.Exit(code=1)


def _format_matrix(matrix: np.ndarray) -> str:
    return np.array2string(np.asarray(matrix), precision=6, suppress_small=True)


@app.command()
def summary(
    config: Path = CONFIG_ARGUMENT,
    symmetric: bool = typer.Option(
        False,
        "--symmetric",
        help="Use the symmetrized generator",
    ),
    format: OutputFormat = typer.Option(
        OutputFormat.TEXT,
        "--format",
        help="Output format",
    ),
):
    """
    Show the generator, uniformization rate and transition matrix.

    Examples:

        \b
        migmodel summary model.json
        migmodel summary model.json --symmetric --format json
    """
    model = _load_model(config)
    mu = model.get_mu(symmetric)
    Q = model.get_Q_matrix(symmetric)

    # R is undefined without active migration
    R = model.get_R_matrix(symmetric) if mu > 0 else None

    if format == OutputFormat.JSON:
        result = {
            "n_demes": model.n_demes,
            "layout": model.layout.value,
            "symmetric": symmetric,
            "total_pop_size": model.get_total_pop_size(),
            "mu": mu,
            "Q": Q.tolist(),
            "R": None if R is None else R.tolist(),
        }
        typer.echo(json.dumps(result, indent=2))
        return

    typer.echo(f"Demes: {model.n_demes}")
    typer.echo(f"Layout: {model.layout.value}")
    typer.echo(f"Rate flags: {'yes' if model.has_rate_flags else 'no'}")
    typer.echo(f"Total population size: {model.get_total_pop_size():g}")
    typer.echo(f"mu: {mu:g}")
    typer.echo("\nQ:")
    typer.echo(_format_matrix(Q))
    typer.echo("\nR:")
    if R is None:
        typer.echo("undefined (no active migration)")
    else:
        typer.echo(_format_matrix(R))


@app.command()
def powers(
    config: Path = CONFIG_ARGUMENT,
    power: int = typer.Option(
        ...,
        "--power", "-n",
        help="Power of the uniformized transition matrix",
        min=0,
    ),
    symmetric: bool = typer.Option(
        False,
        "--symmetric",
        help="Use the symmetrized generator",
    ),
    format: OutputFormat = typer.Option(
        OutputFormat.TEXT,
        "--format",
        help="Output format",
    ),
):
    """
    Show a power of the uniformized transition matrix.

    Also reports the power at which steady state was detected, if any,
    and the resulting element-wise bound on all powers.
    """
    model = _load_model(config)
    if model.get_mu(symmetric) == 0:
        typer.echo("Error: no active migration, transition matrix is undefined", err=True)
        raise typer.Exit(code=1)

    Rn = model.get_R_power(power, symmetric)
    steady = model.steady_state_power(symmetric)
    ceiling = model.get_R_power_max(symmetric)

    if format == OutputFormat.JSON:
        result = {
            "power": power,
            "symmetric": symmetric,
            "matrix": Rn.tolist(),
            "steady_state_power": steady,
            "ceiling": ceiling.tolist(),
        }
        typer.echo(json.dumps(result, indent=2))
        return

    typer.echo(f"R^{power}:")
    typer.echo(_format_matrix(Rn))
    if steady is None:
        typer.echo("\nSteady state: not reached")
    else:
        typer.echo(f"\nSteady state: from power {steady}")
        typer.echo("Ceiling:")
        typer.echo(_format_matrix(ceiling))


@app.command()
def trace(
    config: Path = CONFIG_ARGUMENT,
    output: Optional[Path] = typer.Option(
        None,
        "--output", "-o",
        help="Output file (default: stdout)",
    ),
):
    """Write the trace header and current values of the model parameters."""
    model = _load_model(config)

    if output is None:
        logger = TraceLogger(model)
        logger.init()
        logger.log(0)
        logger.close()
        return

    with TraceLogger(model, output) as logger:
        logger.log(0)
    typer.echo(f"Trace written to {output}")


if __name__ == "__main__":
    app()
