"""
pytest configuration and shared fixtures.
"""

import numpy as np
import pytest


@pytest.fixture
def rng():
    """Seeded random number generator for reproducible tests."""
    return np.random.default_rng(42)


@pytest.fixture
def recurrent_history(rng):
    """Event history of 40 subjects with gamma-distributed frailties.

    Returns (subject, time) with 2-8 events per subject, times unsorted.
    """
    subjects, times = [], []
    for i in range(40):
        frailty = rng.gamma(shape=2.0, scale=0.5)
        n_events = int(rng.integers(2, 9))
        gaps = rng.exponential(scale=1.0 / frailty, size=n_events)
        subjects.extend([f"s{i:02d}"] * n_events)
        times.extend(np.cumsum(gaps).tolist())
    order = rng.permutation(len(times))
    return np.asarray(subjects)[order], np.asarray(times)[order]
