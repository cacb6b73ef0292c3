"""
Tests for recurrent-event weighting schemes and their iteration.
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose

from gapsurv.core.exceptions import ConvergenceError
from gapsurv.survival import (
    BoundedWeightingScheme,
    GammaFrailtyWeighting,
    GapDesign,
    SubjectWeighting,
    WeightingScheme,
    gap_time_km,
    gap_times,
    kaplan_meier,
)


# a: three gaps, b: one gap
GAP = np.array([1, 2, 3, 2], dtype=np.float64)
EVENT = np.array([1, 1, 0, 1], dtype=np.float64)
SUBJECT = np.array(["a", "a", "a", "b"])


class OscillatingScheme:
    """Flips the sign of alpha forever."""

    name = "oscillating"

    def initial(self, design):
        return 1.0

    def update(self, alpha, design):
        return -alpha

    def weights(self, alpha, design):
        return np.ones(design.n)


class HalvingScheme:
    """alpha_k = 2 ** -k; unit weights."""

    name = "halving"

    def initial(self, design):
        return 1.0

    def update(self, alpha, design):
        return alpha / 2.0

    def weights(self, alpha, design):
        return np.ones(design.n)


class NaNScheme(HalvingScheme):
    name = "nan"

    def update(self, alpha, design):
        return float("nan")


class ShortWeightsScheme(HalvingScheme):
    name = "short"

    def weights(self, alpha, design):
        return np.ones(design.n - 1)


class BoundedScheme(HalvingScheme):
    name = "bounded"
    alpha_max = 5.0

    def initial(self, design):
        return 5.0

    def update(self, alpha, design):
        return 5.0


def heterogeneous_history():
    """Six frequent recurrers (gaps ~1) and six rare ones (gaps ~6)."""
    subject, time = [], []
    for i in range(6):
        gaps = [1.0 + 0.1 * i, 0.8, 1.2, 0.9, 1.1, 1.0]
        subject.extend([f"f{i}"] * len(gaps))
        time.extend(np.cumsum(gaps).tolist())
    for i in range(6):
        gaps = [5.0 + 0.5 * i, 7.0]
        subject.extend([f"r{i}"] * len(gaps))
        time.extend(np.cumsum(gaps).tolist())
    return gap_times(subject, time)


class TestProtocol:

    def test_builtins_satisfy_protocol(self):
        assert isinstance(SubjectWeighting(), WeightingScheme)
        assert isinstance(GammaFrailtyWeighting(), WeightingScheme)
        assert isinstance(OscillatingScheme(), WeightingScheme)

    def test_bounded_protocol(self):
        assert isinstance(GammaFrailtyWeighting(), BoundedWeightingScheme)
        assert isinstance(BoundedScheme(), BoundedWeightingScheme)
        assert not isinstance(SubjectWeighting(), BoundedWeightingScheme)
        assert not isinstance(HalvingScheme(), BoundedWeightingScheme)

    def test_unbounded_scheme_never_at_bound(self):
        result = kaplan_meier(GAP, EVENT, subject=SUBJECT, weighting=HalvingScheme())
        assert result.warnings == ()


class TestSubjectWeighting:
    """Each subject's gaps share one unit of weight."""

    def test_weights(self):
        result = kaplan_meier(GAP, EVENT, subject=SUBJECT, weighting="subject")
        assert_allclose(result.weights, [1/3, 1/3, 1/3, 1.0])
        assert result.alpha == 1.0
        assert result.n_iter == 1
        assert result.weighting == "subject"
        assert result.backend_name == "cpu_km_subject"

    def test_weighted_curve(self):
        """
        t=1: n = 1/3*3 + 1 = 2,  d = 1/3       -> S = 5/6
        t=2: n = 1/3*2 + 1 = 5/3, d = 1/3 + 1  -> S = 5/6 * 1/5 = 1/6
        """
        result = kaplan_meier(GAP, EVENT, subject=SUBJECT, weighting=SubjectWeighting())
        assert_allclose(result.n_risk, [2.0, 5/3])
        assert_allclose(result.n_events, [1/3, 4/3])
        assert_allclose(result.survival, [5/6, 1/6], rtol=1e-12)

    def test_power_zero_is_unweighted(self):
        weighted = kaplan_meier(GAP, EVENT, subject=SUBJECT, weighting=SubjectWeighting(power=0.0))
        plain = kaplan_meier(GAP, EVENT)
        assert_allclose(weighted.survival, plain.survival)
        assert_allclose(weighted.se, plain.se)

    def test_negative_power(self):
        with pytest.raises(ValueError, match="power"):
            SubjectWeighting(power=-1.0)


class TestIteration:
    """Fixed-point iteration of the weighting parameter."""

    def test_oscillation_raises(self):
        with pytest.raises(ConvergenceError) as excinfo:
            kaplan_meier(GAP, EVENT, subject=SUBJECT, weighting=OscillatingScheme(),
                         tol=1e-6, max_iter=100)
        err = excinfo.value
        assert err.iterations == 100
        assert err.reason == "max_iterations"
        assert err.threshold == 1e-6
        assert err.final_change == pytest.approx(2.0)

    def test_iteration_cap_respected(self):
        with pytest.raises(ConvergenceError) as excinfo:
            kaplan_meier(GAP, EVENT, subject=SUBJECT, weighting=OscillatingScheme(), max_iter=5)
        assert excinfo.value.iterations == 5

    def test_converges_below_tolerance(self):
        """|alpha_k - alpha_{k-1}| = 2 ** -k drops below 1e-6 at k = 20."""
        result = kaplan_meier(GAP, EVENT, subject=SUBJECT, weighting=HalvingScheme())
        assert result.n_iter == 20
        assert result.alpha == pytest.approx(2.0 ** -20)
        assert result.info["final_change"] < 1e-6
        assert_allclose(result.survival, kaplan_meier(GAP, EVENT).survival)

    def test_looser_tolerance(self):
        result = kaplan_meier(GAP, EVENT, subject=SUBJECT, weighting=HalvingScheme(), tol=1e-2)
        assert result.n_iter == 7

    def test_non_finite_alpha(self):
        with pytest.raises(ConvergenceError) as excinfo:
            kaplan_meier(GAP, EVENT, subject=SUBJECT, weighting=NaNScheme())
        assert excinfo.value.reason == "non_finite"
        assert excinfo.value.iterations == 1

    def test_bad_weights_shape(self):
        with pytest.raises(ValueError, match="weights"):
            kaplan_meier(GAP, EVENT, subject=SUBJECT, weighting=ShortWeightsScheme())

    def test_bad_iteration_controls(self):
        with pytest.raises(ValueError, match="tol"):
            kaplan_meier(GAP, EVENT, subject=SUBJECT, weighting="subject", tol=0.0)
        with pytest.raises(ValueError, match="max_iter"):
            kaplan_meier(GAP, EVENT, subject=SUBJECT, weighting="subject", max_iter=0)

    def test_upper_bound_reported(self):
        result = kaplan_meier(GAP, EVENT, subject=SUBJECT, weighting=BoundedScheme())
        assert result.warnings
        assert "upper bound" in result.warnings[0]


class TestGammaFrailty:
    """Inverse posterior-frailty weights."""

    def test_update_stays_in_bounds(self):
        design = GapDesign.from_table(heterogeneous_history())
        scheme = GammaFrailtyWeighting(alpha_min=1e-3, alpha_max=1e3)
        for alpha in (1e-3, 0.1, 1.0, 10.0, 1e3):
            new = scheme.update(alpha, design)
            assert 1e-3 <= new <= 1e3

    def test_weights_normalized(self):
        design = GapDesign.from_table(heterogeneous_history())
        w = GammaFrailtyWeighting().weights(1.0, design)
        assert w.shape == (design.n,)
        assert np.all(w > 0)
        assert_allclose(np.mean(w), 1.0)

    def test_frequent_recurrers_downweighted(self):
        table = heterogeneous_history()
        result = gap_time_km(table, weighting="frailty")

        assert result.weighting == "frailty"
        assert 1e-6 < result.alpha < 1e6
        frequent = np.char.startswith(table.subject.astype(str), "f")
        assert result.weights[frequent].max() < result.weights[~frequent].min()
        assert np.all(np.diff(result.survival) <= 0)
        assert np.all((result.survival >= 0) & (result.survival <= 1))

    def test_invalid_bounds(self):
        with pytest.raises(ValueError):
            GammaFrailtyWeighting(alpha_min=1.0, alpha_max=0.5)
        with pytest.raises(ValueError):
            GammaFrailtyWeighting(alpha0=0.0)

    def test_kidney_default_controls(self, kidney_like):
        """Six patients, two gaps each; converges well inside 100 iterations."""
        subject, gap, event, _ = kidney_like
        result = kaplan_meier(gap, event, subject=subject, weighting="frailty")

        assert result.n_iter <= 2
        assert result.info["final_change"] < 1e-6
        assert 1e-6 < result.alpha < 1e6
        assert_allclose(np.mean(result.weights), 1.0)
        assert np.all(np.diff(result.survival) <= 0)

    def test_alpha_maximizes_marginal_likelihood(self):
        design = GapDesign.from_table(heterogeneous_history())
        scheme = GammaFrailtyWeighting()
        alpha = scheme.update(scheme.initial(design), design)

        assert scheme.update(alpha, design) == alpha
        best = scheme.loglik(alpha, design)
        for factor in (0.9, 0.99, 1.01, 1.1):
            assert best >= scheme.loglik(alpha * factor, design)
