"""
gapsurv: recurrent-event gap-time survival analysis for Python.

Builds inter-event gap tables from per-subject event histories and
estimates their survival curves with Kaplan-Meier, optional weighting for
within-subject correlation, and log-log confidence bands.

Submodules:
    survival: Gap tables, Kaplan-Meier, weighting schemes, log-rank test
    core: Result envelope, exceptions, validation, timing
"""

__version__ = "0.1.0"

from gapsurv import core
from gapsurv import survival
from gapsurv.core.exceptions import ConvergenceError, InvalidInputError

__all__ = [
    "__version__",
    "core",
    "survival",
    "ConvergenceError",
    "InvalidInputError",
]
