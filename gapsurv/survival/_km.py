"""
Kaplan-Meier product-limit estimator for pooled gap times.

Matches R's survival::survfit(Surv(gap, status) ~ 1, weights=w):
- Product-limit survival estimate: S(t) = ∏(1 - d_j / n_j)
- Greenwood variance: Var(S(t)) = S(t)^2 * Σ(d_j / (n_j * (n_j - d_j)))
- Confidence intervals via log-log, log, or plain transformation

n_j and d_j are weighted sums when per-record weights are given, which is
how recurrent-event weighting schemes enter the estimate. Greenwood's
variance is undefined from the first time the whole risk set fails
(n_j == d_j); it is reported as NaN from there on.

References:
    Kaplan, E. L., & Meier, P. (1958). Nonparametric estimation from
        incomplete observations. JASA, 53(282), 457-481.
    Greenwood, M. (1926). The natural duration of cancer. Reports on Public
        Health and Medical Subjects, 33, 1-26.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from gapsurv.survival._ci import compute_ci, normal_quantile
from gapsurv.survival._common import KMParams, WeightingFit


def kaplan_meier_fit(
    gap: NDArray,
    event: NDArray,
    conf_level: float,
    conf_type: str,
    weights: NDArray | None = None,
    weighting: WeightingFit | None = None,
) -> KMParams:
    """Compute the Kaplan-Meier curve of pooled gap times.

    Parameters
    ----------
    gap : NDArray
        (n,) gap durations.
    event : NDArray
        (n,) event indicator (1=event, 0=censored).
    conf_level : float
        Confidence level for CI (e.g. 0.95).
    conf_type : str
        CI type: "log-log", "log", "plain".
    weights : NDArray or None
        (n,) non-negative record weights. None means unit weights.
    weighting : WeightingFit or None
        Weighting diagnostics to carry in the result.

    Returns
    -------
    KMParams
    """
    n_total = len(gap)
    n_events_total = int(np.sum(event))
    w = np.ones(n_total, dtype=np.float64) if weights is None else weights

    is_event = (event == 1) & (w > 0)
    event_times = np.unique(gap[is_event])
    m = len(event_times)

    if m == 0:
        # No events: survival is 1 everywhere
        empty = np.array([], dtype=np.float64)
        return KMParams(
            time=empty, survival=empty, n_risk=empty, n_events=empty,
            n_censored=empty, se=empty, ci_lower=empty, ci_upper=empty,
            conf_level=conf_level, conf_type=conf_type,
            n_observations=n_total, n_events_total=n_events_total,
            weighting=weighting,
        )

    # Risk set at t: weight of records with gap >= t
    order = np.argsort(gap, kind="stable")
    g_sorted = gap[order]
    tail_weight = np.cumsum(w[order][::-1])[::-1]
    first_at_or_after = np.searchsorted(g_sorted, event_times, side="left")
    n_risk = tail_weight[first_at_or_after]

    slot = np.searchsorted(event_times, gap[is_event])
    n_events = np.bincount(slot, weights=w[is_event], minlength=m)

    # Censored records belong to the interval [t_j, t_{j+1}) they fall in;
    # those before the first event time only shrink n_risk[0]
    censored = event == 0
    interval = np.searchsorted(event_times, gap[censored], side="right") - 1
    inside = interval >= 0
    n_censored = np.bincount(
        interval[inside], weights=w[censored][inside], minlength=m,
    )

    exhausted = np.isclose(n_risk, n_events, rtol=1e-12, atol=0.0)
    with np.errstate(divide="ignore", invalid="ignore"):
        factor = np.where(exhausted, 0.0, 1.0 - n_events / n_risk)
        survival = np.cumprod(factor)

        greenwood_term = np.where(
            exhausted, np.nan, n_events / (n_risk * (n_risk - n_events)),
        )
        variance = survival ** 2 * np.cumsum(greenwood_term)
    se = np.sqrt(variance)

    ci_lower, ci_upper = compute_ci(
        survival, se, normal_quantile(conf_level), conf_type,
    )

    return KMParams(
        time=event_times,
        survival=survival,
        n_risk=n_risk,
        n_events=n_events,
        n_censored=n_censored,
        se=se,
        ci_lower=ci_lower,
        ci_upper=ci_upper,
        conf_level=conf_level,
        conf_type=conf_type,
        n_observations=n_total,
        n_events_total=n_events_total,
        weighting=weighting,
    )


def nelson_aalen(
    gap: NDArray,
    event: NDArray,
    weights: NDArray | None = None,
) -> tuple[NDArray, NDArray]:
    """Nelson-Aalen cumulative hazard of pooled gaps.

    Returns
    -------
    (event_times, cumulative_hazard)
        Λ(t) = Σ_{t_j <= t} d_j / n_j at each distinct event time.
    """
    w = np.ones(len(gap), dtype=np.float64) if weights is None else weights
    is_event = event == 1
    event_times = np.unique(gap[is_event])
    if len(event_times) == 0:
        empty = np.array([], dtype=np.float64)
        return empty, empty

    order = np.argsort(gap, kind="stable")
    tail_weight = np.cumsum(w[order][::-1])[::-1]
    n_risk = tail_weight[np.searchsorted(gap[order], event_times, side="left")]
    slot = np.searchsorted(event_times, gap[is_event])
    n_events = np.bincount(slot, weights=w[is_event], minlength=len(event_times))
    return event_times, np.cumsum(n_events / n_risk)
