"""
Compute utilities: timing and iteration controls.
"""

from gapsurv.core.compute.timing import Timer, timed
from gapsurv.core.compute.convergence import (
    IterationControl,
    DEFAULT_ITERATION,
)

__all__ = [
    "Timer",
    "timed",
    "IterationControl",
    "DEFAULT_ITERATION",
]
