"""
Tests for the gapsurv exception hierarchy.

Validates:
    - Inheritance chain (all exceptions catchable via GapSurvError)
    - Diagnostic attributes on ConvergenceError
    - Default attribute values (None for optional attributes)
"""

import pytest

from gapsurv.core.exceptions import (
    ConvergenceError,
    DimensionError,
    GapSurvError,
    InvalidInputError,
)


class TestInheritance:
    """Every exception is catchable via GapSurvError."""

    def test_invalid_input_is_gapsurv_error(self):
        with pytest.raises(GapSurvError):
            raise InvalidInputError("bad input")

    def test_dimension_error_is_invalid_input(self):
        with pytest.raises(InvalidInputError):
            raise DimensionError("wrong length")

    def test_convergence_error_is_not_input_error(self):
        assert issubclass(ConvergenceError, GapSurvError)
        assert not issubclass(ConvergenceError, InvalidInputError)

    def test_exported_at_top_level(self):
        import gapsurv
        assert gapsurv.InvalidInputError is InvalidInputError
        assert gapsurv.ConvergenceError is ConvergenceError


class TestConvergenceError:

    def test_attributes(self):
        err = ConvergenceError(
            "did not converge", iterations=100, final_change=0.5,
            reason="max_iterations", threshold=1e-6,
        )
        assert str(err) == "did not converge"
        assert err.iterations == 100
        assert err.final_change == 0.5
        assert err.reason == "max_iterations"
        assert err.threshold == 1e-6

    def test_defaults(self):
        err = ConvergenceError("nope", iterations=3)
        assert err.final_change is None
        assert err.reason is None
        assert err.threshold is None
