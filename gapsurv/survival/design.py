"""
GapDesign: immutable container for pooled gap-time data.

Wraps gap durations, event indicators, and optional subject and strata
labels. Validates inputs at construction time; all downstream code trusts
clean data.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import pandas as pd
from numpy.typing import NDArray

from gapsurv.core.validation import (
    check_array,
    check_binary,
    check_consistent_length,
    check_finite,
    check_labels,
    check_min_samples,
    check_non_negative,
    check_1d,
)
from gapsurv.survival._common import GapTable


@dataclass(frozen=True)
class GapDesign:
    """Immutable gap-time data container.

    Parameters
    ----------
    gap : NDArray
        Gap durations. Non-negative and finite.
    event : NDArray
        Event indicator: 1 = event observed, 0 = censored.
    subject : NDArray or None
        Subject label of each gap. Required by weighting schemes.
    subject_index : NDArray or None
        0-based subject codes matching ``subject``.
    strata : NDArray or None
        Strata labels for stratified analyses.
    """

    gap: NDArray
    event: NDArray
    subject: NDArray | None
    subject_index: NDArray | None
    strata: NDArray | None

    @classmethod
    def for_gaps(
        cls,
        gap,
        event=None,
        *,
        subject=None,
        strata=None,
    ) -> GapDesign:
        """Create and validate gap-time data.

        Parameters
        ----------
        gap : array-like
            Gap durations.
        event : array-like or None
            Event indicator (0/1). None treats every gap as an event.
        subject : array-like or None
            Optional subject labels.
        strata : array-like or None
            Optional strata labels.

        Returns
        -------
        GapDesign

        Raises
        ------
        InvalidInputError
            If inputs are invalid.
        """
        gap = check_array(gap, "gap")
        if gap.ndim == 0:
            gap = gap.reshape(1)
        check_1d(gap, "gap")
        check_min_samples(gap, 1, "gap")
        check_finite(gap, "gap")
        check_non_negative(gap, "gap")

        if event is None:
            event = np.ones(len(gap), dtype=np.float64)
        else:
            event = check_array(event, "event")
            if event.ndim == 0:
                event = event.reshape(1)
            check_1d(event, "event")
            check_finite(event, "event")
            check_binary(event, "event")
        check_consistent_length(gap, event, names=("gap", "event"))

        subject_arr = None
        subject_index = None
        if subject is not None:
            subject_arr = check_labels(subject, "subject")
            check_consistent_length(gap, subject_arr, names=("gap", "subject"))
            subject_index, _ = pd.factorize(subject_arr)

        strata_arr = None
        if strata is not None:
            strata_arr = check_labels(strata, "strata")
            check_consistent_length(gap, strata_arr, names=("gap", "strata"))

        return cls(
            gap=gap.astype(np.float64),
            event=event.astype(np.float64),
            subject=subject_arr,
            subject_index=subject_index,
            strata=strata_arr,
        )

    @classmethod
    def from_table(cls, table: GapTable, *, strata=None) -> GapDesign:
        """Wrap the output of the event table builder."""
        return cls.for_gaps(
            table.gap, table.event, subject=table.subject, strata=strata,
        )

    def subset(self, mask: NDArray) -> GapDesign:
        """Design restricted to the rows selected by a boolean mask."""
        subject = None if self.subject is None else self.subject[mask]
        subject_index = None
        if subject is not None:
            subject_index, _ = pd.factorize(subject)
        return GapDesign(
            gap=self.gap[mask],
            event=self.event[mask],
            subject=subject,
            subject_index=subject_index,
            strata=None if self.strata is None else self.strata[mask],
        )

    @property
    def n(self) -> int:
        """Number of gap records."""
        return len(self.gap)

    @property
    def n_subjects(self) -> int | None:
        """Number of distinct subjects (None without subject labels)."""
        if self.subject_index is None:
            return None
        return int(self.subject_index.max()) + 1

    @property
    def n_events(self) -> int:
        """Number of observed events."""
        return int(np.sum(self.event))
