"""
Solution wrappers for gap-time survival results.

Each Solution wraps a Result[Params] and exposes user-friendly properties
with R-style summary() methods and tabular to_frame() output.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping

import numpy as np
import pandas as pd

from gapsurv.core.result import Result
from gapsurv.survival._common import KMParams, LogRankParams, SurvivalPoint


class KMSolution:
    """Kaplan-Meier gap-time survival curve.

    Properties mirror R's survfit() output.
    """

    __slots__ = ('_result',)

    def __init__(self, _result: Result[KMParams]) -> None:
        self._result = _result

    # -- Properties delegating to KMParams --

    @property
    def time(self):
        """Unique event times."""
        return self._result.params.time

    @property
    def survival(self):
        """S(t) at each event time."""
        return self._result.params.survival

    @property
    def n_risk(self):
        """Number at risk at each event time."""
        return self._result.params.n_risk

    @property
    def n_events(self):
        """Number of events at each event time."""
        return self._result.params.n_events

    @property
    def n_censored(self):
        """Number censored from each event time up to the next."""
        return self._result.params.n_censored

    @property
    def se(self):
        """Greenwood standard error of S(t); NaN where undefined."""
        return self._result.params.se

    @property
    def variance(self):
        return self._result.params.se ** 2

    @property
    def ci_lower(self):
        """Lower confidence bound for S(t)."""
        return self._result.params.ci_lower

    @property
    def ci_upper(self):
        """Upper confidence bound for S(t)."""
        return self._result.params.ci_upper

    @property
    def conf_level(self) -> float:
        return self._result.params.conf_level

    @property
    def conf_type(self) -> str:
        return self._result.params.conf_type

    @property
    def n_observations(self) -> int:
        return self._result.params.n_observations

    @property
    def n_events_total(self) -> int:
        return self._result.params.n_events_total

    @property
    def weighting(self) -> str:
        """Name of the weighting scheme ('none' for unweighted pooling)."""
        fit = self._result.params.weighting
        return "none" if fit is None else fit.scheme

    @property
    def alpha(self) -> float | None:
        """Converged weighting parameter, None when unweighted."""
        fit = self._result.params.weighting
        return None if fit is None else fit.alpha

    @property
    def n_iter(self) -> int:
        """Weighting iterations performed (0 when unweighted)."""
        fit = self._result.params.weighting
        return 0 if fit is None else fit.n_iter

    @property
    def weights(self):
        """Per-record weights, None when unweighted."""
        fit = self._result.params.weighting
        return None if fit is None else fit.weights

    @property
    def median_survival(self) -> float | None:
        """Median survival time (smallest t where S(t) <= 0.5)."""
        if len(self.survival) == 0:
            return None
        idx = self.survival <= 0.5
        if not idx.any():
            return None
        return float(self.time[idx][0])

    @property
    def backend_name(self) -> str:
        return self._result.backend_name

    @property
    def timing(self):
        return self._result.timing

    @property
    def info(self) -> dict:
        return self._result.info

    @property
    def warnings(self) -> tuple[str, ...]:
        return self._result.warnings

    def survival_at(self, times):
        """Evaluate the right-continuous step function S(t).

        S(t) = 1 before the first event time.
        """
        t = np.asarray(times, dtype=np.float64)
        idx = np.searchsorted(self.time, t, side="right") - 1
        padded = np.concatenate(([1.0], self.survival))
        out = padded[idx + 1]
        return float(out) if out.ndim == 0 else out

    def points(self) -> list[SurvivalPoint]:
        """Survival curve as a list of SurvivalPoint rows."""
        return [
            SurvivalPoint(*map(float, row))
            for row in zip(
                self.time, self.n_risk, self.n_events, self.n_censored, self.survival,
                self.se, self.ci_lower, self.ci_upper,
            )
        ]

    def to_frame(self) -> pd.DataFrame:
        """Survival table with R survfit column names."""
        return pd.DataFrame({
            "time": self.time,
            "n.risk": self.n_risk,
            "n.event": self.n_events,
            "n.censor": self.n_censored,
            "survival": self.survival,
            "std.err": self.se,
            "lower": self.ci_lower,
            "upper": self.ci_upper,
        })

    def summary(self) -> str:
        """R-style summary of the Kaplan-Meier fit."""
        lines = []
        lines.append("Call: kaplan_meier()")
        lines.append("")
        lines.append(
            f"  n={self.n_observations}, "
            f"events={self.n_events_total}"
        )
        if self.weighting != "none":
            lines.append(
                f"  weighting={self.weighting}, alpha={self.alpha:.6g}, "
                f"iterations={self.n_iter}"
            )
        lines.append("")

        median = self.median_survival
        median_str = f"{median:.4g}" if median is not None else "NA"
        lines.append(f"  median survival = {median_str}")
        lines.append("")

        ci_pct = int(round(self.conf_level * 100))
        lines.append(
            f"  {'time':>8s}  {'n.risk':>8s}  {'n.event':>8s}  "
            f"{'survival':>10s}  {'std.err':>10s}  "
            f"{f'lower {ci_pct}%':>10s}  {f'upper {ci_pct}%':>10s}"
        )

        m = len(self.time)
        show = min(m, 20)
        for i in range(show):
            lines.append(
                f"  {self.time[i]:8.4g}  {self.n_risk[i]:8.4g}  "
                f"{self.n_events[i]:8.4g}  "
                f"{self.survival[i]:10.6f}  {self.se[i]:10.6f}  "
                f"{self.ci_lower[i]:10.6f}  {self.ci_upper[i]:10.6f}"
            )
        if m > 20:
            lines.append(f"  ... ({m - 20} more rows)")

        return "\n".join(lines)

    def __repr__(self) -> str:
        return (
            f"KMSolution(n={self.n_observations}, "
            f"events={self.n_events_total}, "
            f"median={self.median_survival}, "
            f"weighting={self.weighting!r})"
        )


class StratifiedKMSolution(Mapping):
    """One Kaplan-Meier curve per stratum, keyed by stratum label."""

    __slots__ = ('_curves',)

    def __init__(self, curves: dict) -> None:
        self._curves = curves

    def __getitem__(self, label) -> KMSolution:
        return self._curves[label]

    def __iter__(self) -> Iterator:
        return iter(self._curves)

    def __len__(self) -> int:
        return len(self._curves)

    @property
    def strata(self) -> list:
        return list(self._curves)

    def to_frame(self) -> pd.DataFrame:
        """Stacked survival tables with a leading 'strata' column."""
        frames = []
        for label, curve in self._curves.items():
            frame = curve.to_frame()
            frame.insert(0, "strata", label)
            frames.append(frame)
        return pd.concat(frames, ignore_index=True)

    def summary(self) -> str:
        blocks = []
        for label, curve in self._curves.items():
            blocks.append(f"strata={label}")
            blocks.append(curve.summary())
            blocks.append("")
        return "\n".join(blocks).rstrip()

    def __repr__(self) -> str:
        return f"StratifiedKMSolution(strata={self.strata})"


class LogRankSolution:
    """Result of survdiff(), comparing gap-time curves across groups."""

    __slots__ = ('_result',)

    def __init__(self, _result: Result[LogRankParams]) -> None:
        self._result = _result

    @property
    def statistic(self) -> float:
        return self._result.params.statistic

    @property
    def df(self) -> int:
        return self._result.params.df

    @property
    def p_value(self) -> float:
        return self._result.params.p_value

    @property
    def n_groups(self) -> int:
        return self._result.params.n_groups

    @property
    def observed(self):
        """Observed (rho-weighted) events per group."""
        return self._result.params.observed

    @property
    def expected(self):
        """Expected (rho-weighted) events per group under equal curves."""
        return self._result.params.expected

    @property
    def n_per_group(self):
        return self._result.params.n_per_group

    @property
    def rho(self) -> float:
        return self._result.params.rho

    @property
    def group_labels(self):
        return self._result.params.group_labels

    @property
    def info(self) -> dict:
        return self._result.info

    @property
    def backend_name(self) -> str:
        return self._result.backend_name

    @property
    def timing(self):
        return self._result.timing

    def to_frame(self) -> pd.DataFrame:
        """Per-group table as printed by R's survdiff()."""
        observed, expected = self.observed, self.expected
        with np.errstate(divide="ignore", invalid="ignore"):
            chisq = np.where(expected > 0, (observed - expected) ** 2 / expected, 0.0)
        return pd.DataFrame(
            {
                "N": self.n_per_group,
                "Observed": observed,
                "Expected": expected,
                "(O-E)^2/E": chisq,
            },
            index=pd.Index([str(g) for g in self.group_labels], name="group"),
        )

    def summary(self) -> str:
        """R-style summary of the log-rank test."""
        title = "survdiff()" if self.rho == 0 else f"survdiff(rho={self.rho:g})"
        table = self.to_frame().to_string(
            formatters={
                "N": "{:.0f}".format,
                "Observed": "{:.1f}".format,
                "Expected": "{:.1f}".format,
                "(O-E)^2/E": "{:.3f}".format,
            }
        )
        return (
            f"Call: {title}\n\n{table}\n\n"
            f" Chisq= {self.statistic:.4f} on {self.df} degrees of freedom, "
            f"p= {self.p_value:.4g}"
        )

    def __repr__(self) -> str:
        return (
            f"LogRankSolution(chisq={self.statistic:.4f}, "
            f"df={self.df}, p={self.p_value:.4g})"
        )
