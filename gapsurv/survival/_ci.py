"""
Pointwise confidence intervals for a survival curve.

Transformations (R's survfit conf.type):
- "log-log" (default here): bounds on log(-log S(t)), back-transformed
  with exp(-exp(.)). Always inside [0, 1] and stable near the extremes.
- "log": exp(log S(t) ± z * se / S(t)), clipped to [0, 1]
- "plain": S(t) ± z * se, clipped to [0, 1]

Degenerate points are defined values: S(t) = 1 gives (1, 1) and
S(t) = 0 gives (0, 0), whatever the standard error.

References:
    Kalbfleisch, J. D. & Prentice, R. L. (2002). The Statistical Analysis
        of Failure Time Data, 2nd ed., Section 1.4.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray
from scipy import stats

from gapsurv.core.exceptions import InvalidInputError

CONF_TYPES = ("log-log", "log", "plain")


def check_conf_options(conf_level: float, conf_type: str) -> None:
    """Validate confidence options; raises ValueError."""
    if not 0 < conf_level < 1:
        raise ValueError(
            f"conf_level must be in (0, 1), got {conf_level}"
        )
    if conf_type not in CONF_TYPES:
        raise ValueError(
            f"conf_type must be 'log-log', 'log', or 'plain', "
            f"got '{conf_type}'"
        )


def normal_quantile(conf_level: float) -> float:
    """Two-sided standard normal quantile (1.959964 for 0.95)."""
    return float(stats.norm.ppf((1.0 + conf_level) / 2.0))


def confidence_interval(
    survival,
    se,
    conf_level: float = 0.95,
    conf_type: str = "log-log",
):
    """Confidence bounds for survival estimates.

    Parameters
    ----------
    survival : float or array-like
        S(t) values in [0, 1].
    se : float or array-like
        Standard errors of S(t). NaN is allowed at S(t) = 0.
    conf_level : float
        Confidence level (default 0.95).
    conf_type : str
        "log-log" (default), "log", or "plain".

    Returns
    -------
    (lower, upper)
        Floats for scalar input, arrays otherwise.
    """
    check_conf_options(conf_level, conf_type)

    s = np.asarray(survival, dtype=np.float64)
    e = np.asarray(se, dtype=np.float64)
    if np.any((s < 0) | (s > 1)):
        raise InvalidInputError("survival: values must lie in [0, 1]")
    if np.any(e < 0):
        raise InvalidInputError("se: values must be non-negative")

    s_b, e_b = np.broadcast_arrays(s, e)
    lower, upper = compute_ci(
        s_b.astype(np.float64), e_b.astype(np.float64),
        normal_quantile(conf_level), conf_type,
    )
    if lower.ndim == 0:
        return float(lower), float(upper)
    return lower, upper


def compute_ci(
    survival: NDArray,
    se: NDArray,
    z: float,
    conf_type: str,
) -> tuple[NDArray, NDArray]:
    """Vectorized CI for survival values.

    Returns
    -------
    (ci_lower, ci_upper) within [0, 1]. Interior points with undefined
    standard error get NaN bounds.
    """
    survival = np.asarray(survival, dtype=np.float64)
    se = np.asarray(se, dtype=np.float64)

    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        if conf_type == "plain":
            ci_lower = survival - z * se
            ci_upper = survival + z * se

        elif conf_type == "log":
            # se of log(S) = se(S) / S
            log_s = np.log(survival)
            se_log = se / survival
            ci_lower = np.exp(log_s - z * se_log)
            ci_upper = np.exp(log_s + z * se_log)

        elif conf_type == "log-log":
            # se of log(-log(S)) = se(S) / (S * |log(S)|); exp(-exp(.))
            # is decreasing, so the + side gives the lower bound
            log_s = np.log(survival)
            theta = np.log(-log_s)
            se_theta = se / (survival * np.abs(log_s))
            ci_lower = np.exp(-np.exp(theta + z * se_theta))
            ci_upper = np.exp(-np.exp(theta - z * se_theta))

        else:
            raise ValueError(
                f"Unknown conf_type '{conf_type}'. "
                f"Choose from 'log-log', 'log', 'plain'."
            )

    ci_lower = np.clip(ci_lower, 0.0, 1.0)
    ci_upper = np.clip(ci_upper, 0.0, 1.0)

    at_one = survival >= 1.0
    at_zero = survival <= 0.0
    ci_lower = np.where(at_one, 1.0, np.where(at_zero, 0.0, ci_lower))
    ci_upper = np.where(at_one, 1.0, np.where(at_zero, 0.0, ci_upper))

    return ci_lower, ci_upper
