"""
Tab-separated trace output for migration models.
"""

import sys
from pathlib import Path
from typing import List, Optional, TextIO

from ..models.migration import MigrationModel

DEFAULT_NAME = "migModel"


def _off_diagonal_pairs(n_demes: int):
    for i in range(n_demes):
        for j in range(n_demes):
            if i != j:
                yield i, j


def model_label(model: MigrationModel) -> str:
    """Column prefix for a model; blank names fall back to 'migModel'."""
    if model.name is None or not model.name.strip():
        return DEFAULT_NAME
    return model.name


def column_names(model: MigrationModel) -> List[str]:
    """
    Trace column headers for a migration model.

    Order: population sizes, backward rates, forward rates and, when the
    model has indicator flags, the flags.

    Parameters
    ----------
    model : MigrationModel
        Model to describe

    Returns
    -------
    list of str
        e.g. ['migModel.popSize_0', ..., 'migModel.rateMatrixBackward_0_1', ...]
    """
    label = model_label(model)
    n = model.n_demes

    names = [f"{label}.popSize_{i}" for i in range(n)]
    names += [f"{label}.rateMatrixBackward_{i}_{j}" for i, j in _off_diagonal_pairs(n)]
    names += [f"{label}.rateMatrixForward_{i}_{j}" for i, j in _off_diagonal_pairs(n)]
    if model.has_rate_flags:
        names += [f"{label}.rateMatrixFlag_{i}_{j}" for i, j in _off_diagonal_pairs(n)]

    return names


def column_values(model: MigrationModel) -> List[str]:
    """
    Trace values for a migration model, matching column_names().

    Backward rates are the stored rates, so rates switched off by an
    indicator flag still show their value. Forward rates follow from
    detailed balance: rate(j, i) * N_j / N_i.
    """
    n = model.n_demes

    values = [str(model.get_pop_size(i)) for i in range(n)]
    values += ["%g" % model.get_raw_rate(i, j) for i, j in _off_diagonal_pairs(n)]
    values += ["%g" % model.get_forward_rate(i, j) for i, j in _off_diagonal_pairs(n)]
    if model.has_rate_flags:
        values += ["1" if model.get_rate_flag(i, j) else "0" for i, j in _off_diagonal_pairs(n)]

    return values


class TraceLogger:
    """
    Write migration model parameters as a tab-separated trace.

    Parameters
    ----------
    model : MigrationModel
        Model to log
    output : str, Path or file object, optional
        Destination. A path is opened for writing and closed by close();
        a file object is written to but left open. Default is stdout.
    log_every : int
        Only samples that are multiples of log_every are written.

    Examples
    --------
    >>> with TraceLogger(model, "trace.log", log_every=1000) as trace:
    ...     for sample in range(chain_length):
    ...         ...
    ...         trace.log(sample)
    """

    def __init__(self, model: MigrationModel, output=None, log_every: int = 1):
        if log_every < 1:
            raise ValueError(f"log_every must be >= 1, got {log_every}")

        self.model = model
        self.log_every = log_every
        self._output = output
        self._file: Optional[TextIO] = None
        self._owns_file = False

    def init(self):
        """Open the destination and write the header line."""
        if self._output is None:
            self._file = sys.stdout
        elif isinstance(self._output, (str, Path)):
            self._file = open(Path(self._output), "w")
            self._owns_file = True
        else:
            self._file = self._output

        self._file.write("\t".join(["Sample"] + column_names(self.model)) + "\n")

    def log(self, sample: int):
        """Write one row for the given sample number."""
        if self._file is None:
            raise RuntimeError("TraceLogger.init() must be called before log()")
        if sample % self.log_every != 0:
            return

        self._file.write("\t".join([str(sample)] + column_values(self.model)) + "\n")

    def close(self):
        """Close the destination if it was opened here."""
        if self._file is None:
            return
        if self._owns_file:
            self._file.close()
        else:
            self._file.flush()
        self._file = None
        self._owns_file = False

    def __enter__(self) -> "TraceLogger":
        self.init()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
