"""
Event table builder: per-subject event times to gap records.

Turns a (subject, time) event history into inter-event gap durations:
- observations are grouped by subject and sorted by time (stable for ties)
- gap = time - previous time, the first gap measured from the origin
- an observation lying on the origin opens follow-up and is not a gap,
  unless it is the subject's only observation
- the last gap of every subject is censored: the subject's next event
  falls beyond the observation window

This is the usual preparation for gap-time analyses of recurrent events,
e.g. survival::Surv(gap, status) on data built with dplyr's
group_by(id) %>% mutate(gap = time - lag(time)).

References:
    Pena, E. A., Strawderman, R. L., & Hollander, M. (2001). Nonparametric
        estimation with recurrent event data. JASA, 96(456), 1299-1315.
"""

from __future__ import annotations

from collections.abc import Mapping
from numbers import Real

import numpy as np
import pandas as pd
from numpy.typing import NDArray

from gapsurv.core.exceptions import InvalidInputError
from gapsurv.core.validation import (
    check_array,
    check_binary,
    check_consistent_length,
    check_finite,
    check_labels,
    check_min_samples,
    check_1d,
)
from gapsurv.survival._common import GapTable

# Columns of GapTable.to_frame() that covariates may not shadow
RECORD_COLUMNS = ("subject", "episode", "time", "gap", "event")


def build_gap_table(
    subject,
    time,
    event=None,
    *,
    start=0.0,
    covariates: Mapping | None = None,
    cumulative: bool = False,
    time_unit: str = "D",
) -> GapTable:
    """Build gap records from per-subject event times.

    Parameters
    ----------
    subject : array-like
        (n,) subject label of each observation. No missing values.
    time : array-like
        (n,) numeric times or calendar timestamps.
    event : array-like or None
        (n,) event indicator (1=event, 0=censored). None means every
        observation is an event.
    start : float, timestamp or None
        Origin of the first gap. None uses each subject's first
        observation as its own origin.
    covariates : mapping of name -> array-like, or None
        Numeric per-observation covariates (e.g. count, amount).
    cumulative : bool
        Append running per-subject sums of each covariate as
        ``cum_<name>``.
    time_unit : str
        Unit of elapsed time for calendar timestamps (pandas Timedelta
        unit, default days).

    Returns
    -------
    GapTable
    """
    subject = check_labels(subject, "subject")
    check_min_samples(subject, 1, "subject")
    elapsed, origin = _elapsed_time(time, start, time_unit)
    n = len(subject)

    if event is None:
        event_arr = np.ones(n, dtype=np.float64)
    else:
        event_arr = check_array(event, "event")
        check_1d(event_arr, "event")
        check_finite(event_arr, "event")
        check_binary(event_arr, "event")

    cov_arrays: dict[str, NDArray] = {}
    for name, values in (covariates or {}).items():
        arr = check_array(values, f"covariates[{name!r}]")
        check_1d(arr, f"covariates[{name!r}]")
        check_finite(arr, f"covariates[{name!r}]")
        cov_arrays[str(name)] = arr
    _check_covariate_names(cov_arrays, cumulative)

    check_consistent_length(
        subject, elapsed, event_arr, *cov_arrays.values(),
        names=("subject", "time", "event", *cov_arrays),
    )

    if origin is not None and np.any(elapsed < origin):
        n_before = int(np.sum(elapsed < origin))
        raise InvalidInputError(
            f"time: {n_before} observations fall before the start reference "
            f"(earliest {float(np.min(elapsed))}, start {origin})"
        )

    codes, uniques = pd.factorize(subject)

    # Subject first (in order of first appearance), then time; ties keep
    # input order since lexsort is stable.
    order = np.lexsort((elapsed, codes))

    frame = pd.DataFrame({
        "code": codes[order],
        "time": elapsed[order],
        "event": event_arr[order],
    })
    # Covariates live in their own frame so their names never shadow the
    # working columns.
    cov_frame = pd.DataFrame(
        {name: arr[order] for name, arr in cov_arrays.items()},
        index=frame.index,
    )

    grouped = frame.groupby("code", sort=False)

    if cumulative and cov_arrays:
        running = cov_frame.groupby(frame["code"], sort=False).cumsum()
        cov_frame = cov_frame.join(running.add_prefix("cum_"))

    if origin is None:
        subject_origin = grouped["time"].transform("first")
    else:
        subject_origin = pd.Series(origin, index=frame.index)

    previous = grouped["time"].shift(1).fillna(subject_origin)
    frame["gap"] = frame["time"] - previous

    size = grouped["time"].transform("size")
    first = grouped.cumcount() == 0
    opens_followup = first & (frame["time"] == subject_origin) & (size > 1)
    frame = frame.loc[~opens_followup].reset_index(drop=True)
    cov_frame = cov_frame.loc[~opens_followup].reset_index(drop=True)

    grouped = frame.groupby("code", sort=False)
    frame["episode"] = grouped.cumcount() + 1
    last = grouped.cumcount(ascending=False) == 0
    frame.loc[last, "event"] = 0.0

    codes_out = frame["code"].to_numpy(dtype=np.intp)

    return GapTable(
        subject=np.asarray(uniques)[codes_out],
        subject_index=codes_out,
        episode=frame["episode"].to_numpy(dtype=np.int64),
        time=frame["time"].to_numpy(dtype=np.float64),
        gap=frame["gap"].to_numpy(dtype=np.float64),
        event=frame["event"].to_numpy(dtype=np.float64),
        covariates={c: cov_frame[c].to_numpy(dtype=np.float64) for c in cov_frame.columns},
    )


def _check_covariate_names(cov_arrays: Mapping, cumulative: bool) -> None:
    """Covariate names must not clash with GapTable columns or each other."""
    reserved = [name for name in cov_arrays if name in RECORD_COLUMNS]
    if reserved:
        raise InvalidInputError(
            f"covariates: names {reserved} are reserved for gap record "
            f"columns {list(RECORD_COLUMNS)}"
        )
    if cumulative and cov_arrays:
        clashing = [f"cum_{name}" for name in cov_arrays if f"cum_{name}" in cov_arrays]
        if clashing:
            raise InvalidInputError(
                f"covariates: running sums {clashing} would overwrite "
                f"covariates of the same name"
            )


def _elapsed_time(time, start, time_unit: str) -> tuple[NDArray, float | None]:
    """Convert observation times to floats.

    Returns the elapsed times and the origin on the same scale (None when
    each subject is its own origin).
    """
    series = pd.Series(np.asarray(time).ravel() if not isinstance(time, pd.Series) else time)

    if pd.api.types.is_datetime64_any_dtype(series):
        if series.isna().any():
            raise InvalidInputError(
                f"time: {int(series.isna().sum())} missing timestamps"
            )
        reference = series.min() if start is None else pd.Timestamp(start)
        unit = pd.Timedelta(1, unit=time_unit)
        elapsed = ((series - reference) / unit).to_numpy(dtype=np.float64)
        return elapsed, None if start is None else 0.0

    elapsed = check_array(time, "time")
    check_1d(elapsed, "time")
    check_finite(elapsed, "time")

    if start is None:
        return elapsed, None
    if isinstance(start, bool) or not isinstance(start, Real):
        raise InvalidInputError(
            f"start: expected a number for numeric times, got {start!r}"
        )
    if not np.isfinite(start):
        raise InvalidInputError(f"start: must be finite, got {start}")
    return elapsed, float(start)
