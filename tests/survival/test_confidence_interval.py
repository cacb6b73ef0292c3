"""
Tests for confidence_interval() on single survival points and arrays.
"""

import numpy as np
import pytest
from scipy import stats

from gapsurv.core.exceptions import InvalidInputError
from gapsurv.survival import confidence_interval


class TestLogLog:
    """Default log(-log S) transformation."""

    def test_formula(self):
        s, se = 0.6, 0.1
        z = stats.norm.ppf(0.975)
        theta = np.log(-np.log(s))
        sigma = se / (s * abs(np.log(s)))

        lower, upper = confidence_interval(s, se)

        assert lower == pytest.approx(np.exp(-np.exp(theta + z * sigma)), rel=1e-12)
        assert upper == pytest.approx(np.exp(-np.exp(theta - z * sigma)), rel=1e-12)
        assert isinstance(lower, float)

    def test_bounds_contain_estimate(self):
        s = np.linspace(0.01, 0.99, 50)
        se = np.full_like(s, 0.2)
        lower, upper = confidence_interval(s, se)
        assert np.all(lower <= s)
        assert np.all(s <= upper)
        assert np.all(lower >= 0)
        assert np.all(upper <= 1)

    def test_stays_inside_unit_interval_for_large_se(self):
        lower, upper = confidence_interval(0.95, 5.0)
        assert 0.0 <= lower <= 0.95 <= upper <= 1.0

    def test_zero_se_collapses(self):
        lower, upper = confidence_interval(0.4, 0.0)
        assert lower == pytest.approx(0.4)
        assert upper == pytest.approx(0.4)


class TestDegeneratePoints:
    """S = 1 and S = 0 are defined values, never errors."""

    @pytest.mark.parametrize("conf_type", ["log-log", "log", "plain"])
    def test_survival_one(self, conf_type):
        assert confidence_interval(1.0, 0.0, conf_type=conf_type) == (1.0, 1.0)

    @pytest.mark.parametrize("conf_type", ["log-log", "log", "plain"])
    def test_survival_zero(self, conf_type):
        assert confidence_interval(0.0, 0.0, conf_type=conf_type) == (0.0, 0.0)

    def test_survival_zero_with_undefined_se(self):
        assert confidence_interval(0.0, np.nan) == (0.0, 0.0)

    def test_no_runtime_warnings(self, recwarn):
        confidence_interval([0.0, 1.0, 0.5], [np.nan, 0.0, 0.1])
        assert len(recwarn) == 0


class TestOtherTransforms:
    """log and plain transformations."""

    def test_plain(self):
        z = stats.norm.ppf(0.95)
        lower, upper = confidence_interval(0.5, 0.1, conf_level=0.90, conf_type="plain")
        assert lower == pytest.approx(0.5 - z * 0.1)
        assert upper == pytest.approx(0.5 + z * 0.1)

    def test_plain_clipped(self):
        lower, upper = confidence_interval(0.95, 0.2, conf_type="plain")
        assert upper == 1.0
        assert lower < 0.95

    def test_log(self):
        z = stats.norm.ppf(0.975)
        lower, upper = confidence_interval(0.5, 0.05, conf_type="log")
        assert lower == pytest.approx(0.5 * np.exp(-z * 0.1))
        assert upper == pytest.approx(0.5 * np.exp(z * 0.1))

    def test_array_broadcast(self):
        lower, upper = confidence_interval([0.2, 0.5, 0.8], 0.05)
        assert lower.shape == (3,)
        assert np.all(lower < upper)


class TestValidation:

    def test_conf_level(self):
        with pytest.raises(ValueError, match="conf_level"):
            confidence_interval(0.5, 0.1, conf_level=0.0)

    def test_conf_type(self):
        with pytest.raises(ValueError, match="conf_type"):
            confidence_interval(0.5, 0.1, conf_type="logit")

    def test_survival_out_of_range(self):
        with pytest.raises(InvalidInputError):
            confidence_interval(1.2, 0.1)

    def test_negative_se(self):
        with pytest.raises(InvalidInputError):
            confidence_interval(0.5, -0.1)
