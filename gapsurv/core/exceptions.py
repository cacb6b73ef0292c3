"""
Exception hierarchy for gapsurv.

All exceptions inherit from GapSurvError to allow catching any
library-specific error.

Design principles:
    - Exceptions carry diagnostic information as attributes
    - Error messages are actionable with actual vs expected values
    - Degenerate statistics (zero at risk, S(t) = 0 or 1) are values, not errors
"""


class GapSurvError(Exception):
    """Base exception for all gapsurv errors."""
    pass


class InvalidInputError(GapSurvError):
    """
    Input validation failed.

    Raised when input records are malformed: missing subject ids,
    non-numeric or negative times, event flags outside {0, 1}.
    """
    pass


class DimensionError(InvalidInputError):
    """
    Array lengths are inconsistent.

    Raised when parallel inputs (subject, time, event, covariates, weights)
    do not have the same number of records.
    """
    pass


class ConvergenceError(GapSurvError):
    """
    Weighting iteration failed to converge.

    Raised when the correlation-adjustment parameter of a recurrent-event
    weighting scheme does not settle within the configured tolerance before
    the iteration cap. Callers may fall back to unweighted estimation.

    Attributes:
        iterations: Number of iterations completed
        final_change: Last absolute change of the weighting parameter
        reason: Why convergence failed ('max_iterations' or 'non_finite')
        threshold: The tolerance that was not met
    """

    def __init__(
        self,
        message: str,
        iterations: int,
        final_change: float | None = None,
        reason: str | None = None,
        threshold: float | None = None
    ):
        super().__init__(message)
        self.iterations = iterations
        self.final_change = final_change
        self.reason = reason
        self.threshold = threshold
