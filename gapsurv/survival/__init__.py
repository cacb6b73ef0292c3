"""
Gap-time survival analysis for recurrent events.

Public API:
    gap_times(...) -> GapTable
    gap_times_from_frame(...) -> GapTable
    kaplan_meier(...) -> KMSolution | StratifiedKMSolution
    gap_time_km(...) -> KMSolution | StratifiedKMSolution
    confidence_interval(...) -> (lower, upper)
    survdiff(...) -> LogRankSolution
"""

from gapsurv.survival._ci import confidence_interval
from gapsurv.survival._common import GapTable, SurvivalPoint
from gapsurv.survival._weighting import (
    BoundedWeightingScheme,
    GammaFrailtyWeighting,
    SubjectWeighting,
    WeightingScheme,
)
from gapsurv.survival.design import GapDesign
from gapsurv.survival.solution import (
    KMSolution,
    LogRankSolution,
    StratifiedKMSolution,
)
from gapsurv.survival.solvers import (
    gap_time_km,
    gap_times,
    gap_times_from_frame,
    kaplan_meier,
    survdiff,
)

__all__ = [
    "gap_times",
    "gap_times_from_frame",
    "kaplan_meier",
    "gap_time_km",
    "confidence_interval",
    "survdiff",
    "GapTable",
    "GapDesign",
    "SurvivalPoint",
    "KMSolution",
    "StratifiedKMSolution",
    "LogRankSolution",
    "WeightingScheme",
    "BoundedWeightingScheme",
    "SubjectWeighting",
    "GammaFrailtyWeighting",
]
