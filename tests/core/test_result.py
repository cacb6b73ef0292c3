"""
Tests for the Result[P] envelope.
"""

from dataclasses import FrozenInstanceError, dataclass

import pytest

from gapsurv.core.result import Result


@dataclass(frozen=True)
class FakeParams:
    """Minimal payload for testing."""
    value: float


def make_result(**kwargs):
    defaults = dict(
        params=FakeParams(1.0),
        info={"method": "test"},
        timing=None,
        backend_name="cpu_test",
    )
    defaults.update(kwargs)
    return Result(**defaults)


class TestResult:

    def test_fields(self):
        result = make_result()
        assert result.params.value == 1.0
        assert result.info["method"] == "test"
        assert result.backend_name == "cpu_test"
        assert result.warnings == ()

    def test_frozen(self):
        result = make_result()
        with pytest.raises(FrozenInstanceError):
            result.backend_name = "other"

    def test_has_warning(self):
        result = make_result(warnings=("alpha reached its upper bound", "other"))
        assert result.has_warning("upper bound")
        assert not result.has_warning("lower bound")
