"""Activity Score - weighted composite of a patron's monthly counters. Pure, no IO.

Invariants:
    - score = books_checked_out*w1 + books_returned*w2 + classes_attended*w3
              + summaries_approved*w4 + total_points*w5
    - Missing counters count as 0
    - Weights are non-negative integers, so the score is a non-negative integer
"""

from dataclasses import dataclass, fields
from typing import Any, Mapping


@dataclass(frozen=True)
class ScoreWeights:
    """Per-category weights (summary > class > return > checkout by default)."""
    books_checked_out: int = 10
    books_returned: int = 15
    classes_attended: int = 20
    summaries_approved: int = 25
    total_points: int = 1

    def __post_init__(self):
        for f in fields(self):
            if getattr(self, f.name) < 0:
                raise ValueError(f"weight {f.name} cannot be negative")


DEFAULT_WEIGHTS = ScoreWeights()


def compute_activity_score(
    counters: Mapping[str, Any], weights: ScoreWeights = DEFAULT_WEIGHTS,
) -> int:
    return sum(
        (counters.get(f.name) or 0) * getattr(weights, f.name)
        for f in fields(weights)
    )
