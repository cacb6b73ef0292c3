"""
Parameter payloads for gap-time survival analysis.

Each dataclass is a frozen payload carried inside a Result[P] envelope,
except GapTable, which is returned directly by the event table builder.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import NamedTuple

import numpy as np
import pandas as pd
from numpy.typing import NDArray


@dataclass(frozen=True)
class GapTable:
    """Inter-event gap records, one row per observed gap.

    Rows are grouped by subject (in order of first appearance) and ordered
    by time within each subject. The last row of every subject is censored.
    """

    subject: NDArray             # (n,) subject label of each record
    subject_index: NDArray       # (n,) 0-based subject code
    episode: NDArray             # (n,) 1-based position within the subject
    time: NDArray                # (n,) observation time, elapsed units
    gap: NDArray                 # (n,) time since previous observation
    event: NDArray               # (n,) 1=event, 0=censored
    covariates: dict[str, NDArray] = field(default_factory=dict)

    @property
    def n(self) -> int:
        """Number of gap records."""
        return len(self.gap)

    @property
    def n_subjects(self) -> int:
        return int(self.subject_index.max()) + 1 if self.n else 0

    @property
    def n_events(self) -> int:
        return int(np.sum(self.event))

    def to_frame(self) -> pd.DataFrame:
        """Gap records as a DataFrame (subject, episode, time, gap, event, ...)."""
        columns = {
            "subject": self.subject,
            "episode": self.episode,
            "time": self.time,
            "gap": self.gap,
            "event": self.event.astype(np.int64),
        }
        columns.update(self.covariates)
        return pd.DataFrame(columns)


@dataclass(frozen=True)
class WeightingFit:
    """Outcome of a recurrent-event weighting iteration."""

    scheme: str                  # scheme name, e.g. "frailty"
    alpha: float                 # converged weighting parameter
    n_iter: int                  # iterations performed
    final_change: float          # |alpha_k - alpha_{k-1}| at exit
    tol: float                   # tolerance that was met
    weights: NDArray             # (n,) per-record weights
    at_bound: bool = False       # alpha pinned at the scheme's upper bound


@dataclass(frozen=True)
class KMParams:
    """Kaplan-Meier survival curve parameters.

    Matches the layout of R's survival::survfit() summary table.
    """

    time: NDArray                # (m,) unique event times
    survival: NDArray            # (m,) S(t) at each event time
    n_risk: NDArray              # (m,) (weighted) number at risk at t
    n_events: NDArray            # (m,) (weighted) events at t
    n_censored: NDArray          # (m,) (weighted) censored in [t, next t)
    se: NDArray                  # (m,) Greenwood standard error, NaN if undefined
    ci_lower: NDArray            # (m,) lower CI for S(t)
    ci_upper: NDArray            # (m,) upper CI for S(t)
    conf_level: float            # confidence level (e.g. 0.95)
    conf_type: str               # CI type: "log-log" (default), "log", "plain"
    n_observations: int          # total gap records
    n_events_total: int          # total (unweighted) events
    weighting: WeightingFit | None = None


class SurvivalPoint(NamedTuple):
    """One row of a survival curve."""

    time: float
    n_risk: float
    n_event: float
    n_censor: float
    survival: float
    std_err: float
    lower: float
    upper: float


@dataclass(frozen=True)
class LogRankParams:
    """Log-rank test parameters.

    Matches the output of R's survival::survdiff().
    """

    statistic: float             # chi-squared statistic
    df: int                      # degrees of freedom (n_groups - 1)
    p_value: float
    n_groups: int
    observed: NDArray            # (n_groups,) observed events per group
    expected: NDArray            # (n_groups,) expected events per group
    n_per_group: NDArray         # (n_groups,) records per group
    rho: float                   # weight parameter (0=log-rank, 1=Peto-Peto)
    group_labels: NDArray        # unique group labels
