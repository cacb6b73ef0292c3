"""
Iteration controls for re-estimated weighting parameters.

The recurrent-event weighting schemes iterate a scalar parameter to a fixed
point. These controls define when that iteration stops.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class IterationControl:
    """Stopping rule for a scalar fixed-point iteration.

    The iteration converges once the absolute change of the parameter
    between two iterations is strictly below ``tol``. Reaching ``max_iter``
    first is a convergence failure.
    """
    tol: float
    max_iter: int

    def __post_init__(self) -> None:
        if not self.tol > 0:
            raise ValueError(f"tol must be positive, got {self.tol}")
        if self.max_iter < 1:
            raise ValueError(f"max_iter must be at least 1, got {self.max_iter}")

    def converged(self, change: float) -> bool:
        return change < self.tol


DEFAULT_ITERATION = IterationControl(tol=1e-6, max_iter=100)
