"""
Shared data for survival tests.
"""

import numpy as np
import pytest


@pytest.fixture
def kidney_like():
    """Kidney-infection style data: two recurrence gaps per patient.

    Patient p1..p6, gaps in days, sex 1/2. Second gap often censored.
    """
    subject = np.array(["p1", "p1", "p2", "p2", "p3", "p3",
                        "p4", "p4", "p5", "p5", "p6", "p6"])
    gap = np.array([8, 16, 23, 13, 22, 28, 447, 318, 30, 12, 24, 245],
                   dtype=np.float64)
    event = np.array([1, 1, 1, 0, 1, 1, 1, 1, 1, 1, 1, 1], dtype=np.float64)
    sex = np.array([1, 1, 2, 2, 1, 1, 2, 2, 1, 1, 2, 2])
    return subject, gap, event, sex
