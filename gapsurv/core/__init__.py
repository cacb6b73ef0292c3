"""
Core infrastructure for gapsurv.

Key components:
    result: Generic Result[P] envelope
    exceptions: Exception hierarchy
    validation: Input validators
    compute: Timing and iteration controls
"""

from gapsurv.core.result import Result
from gapsurv.core.exceptions import (
    GapSurvError,
    InvalidInputError,
    DimensionError,
    ConvergenceError,
)

__all__ = [
    # Result
    "Result",
    # Exceptions
    "GapSurvError",
    "InvalidInputError",
    "DimensionError",
    "ConvergenceError",
]
