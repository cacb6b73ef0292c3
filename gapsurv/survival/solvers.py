"""
Public API for gap-time survival analysis.

    gap_times(subject, time) → GapTable
    gap_times_from_frame(frame, subject=..., time=...) → GapTable
    kaplan_meier(gap, event) → KMSolution | StratifiedKMSolution
    gap_time_km(table) → KMSolution | StratifiedKMSolution
    survdiff(gap, event, group) → LogRankSolution

Each estimator validates inputs, creates a GapDesign, runs the optional
weighting iteration and the product-limit step, and wraps the Result in a
Solution.
"""

from __future__ import annotations

import warnings
from collections.abc import Mapping, Sequence
from typing import Literal

import numpy as np
import pandas as pd

from gapsurv.core.compute.convergence import DEFAULT_ITERATION, IterationControl
from gapsurv.core.compute.timing import Timer
from gapsurv.core.exceptions import InvalidInputError
from gapsurv.core.result import Result
from gapsurv.survival._ci import check_conf_options
from gapsurv.survival._common import GapTable
from gapsurv.survival._gaps import build_gap_table
from gapsurv.survival._km import kaplan_meier_fit
from gapsurv.survival._logrank import logrank_test
from gapsurv.survival._weighting import fit_weighting, resolve_weighting
from gapsurv.survival.design import GapDesign
from gapsurv.survival.solution import (
    KMSolution, LogRankSolution, StratifiedKMSolution,
)


def gap_times(
    subject,
    time,
    *,
    event=None,
    start=0.0,
    covariates: Mapping | None = None,
    cumulative: bool = False,
    time_unit: str = "D",
) -> GapTable:
    """Derive gap records from per-subject event times.

    Parameters
    ----------
    subject : array-like
        Subject label of each observation.
    time : array-like
        Observation times: numbers or calendar timestamps. Need not be
        sorted.
    event : array-like or None
        Event indicator (1=event, 0=censored); None means all events.
        The last record of each subject is censored regardless.
    start : float, timestamp or None
        Origin of each subject's first gap (default 0). None uses each
        subject's first observation.
    covariates : mapping or None
        Per-observation numeric covariates, e.g. {"amount": amounts}.
    cumulative : bool
        Add running per-subject sums ``cum_<name>`` of each covariate.
    time_unit : str
        Elapsed-time unit for timestamps (default "D", days).

    Returns
    -------
    GapTable

    Examples
    --------
    >>> table = gap_times(["A", "A", "A", "B"], [0, 2, 5, 4])
    >>> table.gap, table.event
    (array([2., 3., 4.]), array([1., 0., 0.]))
    """
    return build_gap_table(
        subject, time, event,
        start=start,
        covariates=covariates,
        cumulative=cumulative,
        time_unit=time_unit,
    )


def gap_times_from_frame(
    frame: pd.DataFrame,
    *,
    subject: str,
    time: str,
    event: str | None = None,
    covariates: Sequence[str] = (),
    start=0.0,
    cumulative: bool = False,
    time_unit: str = "D",
) -> GapTable:
    """Derive gap records from columns of a DataFrame.

    Column arguments name the subject, time, optional event and optional
    covariate columns of ``frame``; the remaining options are those of
    gap_times().
    """
    needed = [subject, time, *([event] if event is not None else []), *covariates]
    missing = [c for c in needed if c not in frame.columns]
    if missing:
        raise InvalidInputError(
            f"frame: missing columns {missing}; available: {list(frame.columns)}"
        )

    return build_gap_table(
        frame[subject].to_numpy(),
        frame[time],
        None if event is None else frame[event].to_numpy(),
        start=start,
        covariates={c: frame[c].to_numpy() for c in covariates},
        cumulative=cumulative,
        time_unit=time_unit,
    )


def kaplan_meier(
    gap,
    event=None,
    *,
    subject=None,
    strata=None,
    weighting=None,
    conf_level: float = 0.95,
    conf_type: Literal["log-log", "log", "plain"] = "log-log",
    tol: float = DEFAULT_ITERATION.tol,
    max_iter: int = DEFAULT_ITERATION.max_iter,
) -> KMSolution | StratifiedKMSolution:
    """Kaplan-Meier estimate of the gap-time survival function.

    Matches R's survival::survfit(Surv(gap, status) ~ 1) when unweighted.

    Parameters
    ----------
    gap : array-like
        Gap durations (time to event or censoring).
    event : array-like or None
        Event indicator (1=event, 0=censored). None means all events.
    subject : array-like or None
        Subject labels; required when ``weighting`` is not 'none'.
    strata : array-like or None
        Strata labels. One curve is fitted per stratum.
    weighting : str, WeightingScheme or None
        Recurrent-event weighting: None/'none' (unweighted pooling),
        'subject', 'frailty', or a custom WeightingScheme.
    conf_level : float
        Confidence level for CI (default 0.95).
    conf_type : str
        CI transformation: "log-log" (default), "log", "plain".
    tol : float
        Convergence tolerance for the weighting parameter.
    max_iter : int
        Maximum weighting iterations.

    Returns
    -------
    KMSolution, or StratifiedKMSolution when ``strata`` is given

    Raises
    ------
    InvalidInputError
        If inputs are malformed.
    ConvergenceError
        If the weighting parameter does not converge.
    """
    design = GapDesign.for_gaps(gap, event, subject=subject, strata=strata)
    check_conf_options(conf_level, conf_type)
    scheme = resolve_weighting(weighting)
    control = IterationControl(tol=tol, max_iter=max_iter)

    if design.strata is None:
        return _fit_km(design, scheme, control, conf_level, conf_type)

    labels = pd.unique(design.strata)
    curves = {}
    for label in labels:
        stratum = design.subset(design.strata == label)
        if stratum.n_events == 0:
            warnings.warn(
                f"stratum {label!r} has no events; its curve is empty",
                RuntimeWarning,
                stacklevel=2,
            )
        curves[label] = _fit_km(stratum, scheme, control, conf_level, conf_type)
    return StratifiedKMSolution(curves)


def gap_time_km(
    table: GapTable,
    *,
    strata=None,
    weighting=None,
    conf_level: float = 0.95,
    conf_type: Literal["log-log", "log", "plain"] = "log-log",
    tol: float = DEFAULT_ITERATION.tol,
    max_iter: int = DEFAULT_ITERATION.max_iter,
) -> KMSolution | StratifiedKMSolution:
    """Kaplan-Meier curve of a GapTable, with subjects taken from the table.

    ``strata`` may be an array of labels or the name of a table covariate.
    """
    if isinstance(strata, str):
        if strata not in table.covariates:
            raise InvalidInputError(
                f"strata: no covariate {strata!r}; available: {list(table.covariates)}"
            )
        strata = table.covariates[strata]

    return kaplan_meier(
        table.gap, table.event,
        subject=table.subject,
        strata=strata,
        weighting=weighting,
        conf_level=conf_level,
        conf_type=conf_type,
        tol=tol,
        max_iter=max_iter,
    )


def survdiff(
    gap,
    event,
    group,
    *,
    rho: float = 0.0,
) -> LogRankSolution:
    """Log-rank test (and G-rho family) for gap-time curves.

    Matches R's survival::survdiff().

    Parameters
    ----------
    gap : array-like
        Gap durations.
    event : array-like
        Event indicator (1=event, 0=censored).
    group : array-like
        Group labels.
    rho : float
        G-rho weight parameter. rho=0 (default) gives the standard
        log-rank test; rho=1 gives Peto & Peto / Gehan-Wilcoxon.

    Returns
    -------
    LogRankSolution
    """
    design = GapDesign.for_gaps(gap, event, strata=group)
    if rho < 0:
        raise ValueError(f"rho must be non-negative, got {rho}")

    timer = Timer()
    timer.start()

    params = logrank_test(design.gap, design.event, design.strata, rho=rho)

    timer.stop()

    result = Result(
        params=params,
        info={"method": "Log-rank test", "rho": rho},
        timing=timer.result(),
        backend_name="cpu_logrank",
        warnings=(),
    )

    return LogRankSolution(_result=result)


def _fit_km(
    design: GapDesign,
    scheme,
    control: IterationControl,
    conf_level: float,
    conf_type: str,
) -> KMSolution:
    timer = Timer()
    timer.start()
    warnings_list = []

    fit = None
    if scheme is not None:
        with timer.section("weighting"):
            fit = fit_weighting(design, scheme, control)
        if fit.at_bound:
            warnings_list.append(
                f"weighting '{fit.scheme}': alpha reached its upper bound "
                f"({fit.alpha:.3g}); no between-subject heterogeneity detected"
            )

    with timer.section("product_limit"):
        params = kaplan_meier_fit(
            design.gap, design.event,
            conf_level=conf_level,
            conf_type=conf_type,
            weights=None if fit is None else fit.weights,
            weighting=fit,
        )

    timer.stop()

    info = {
        "method": "Kaplan-Meier",
        "weighting": "none" if fit is None else fit.scheme,
    }
    if fit is not None:
        info.update(alpha=fit.alpha, n_iter=fit.n_iter, final_change=fit.final_change)
    if design.n_subjects is not None:
        info["n_subjects"] = design.n_subjects

    result = Result(
        params=params,
        info=info,
        timing=timer.result(),
        backend_name="cpu_km" if fit is None else f"cpu_km_{fit.scheme}",
        warnings=tuple(warnings_list),
    )

    return KMSolution(_result=result)
