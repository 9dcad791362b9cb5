# drillcore/memory_model.py

"""
FSRS memory model: the stateless numeric core of the scheduler.

Every method is a pure function of its arguments and the weight vector the
model was built with, so identical inputs always yield identical floats.
"""

import math
from typing import Optional, Sequence, Tuple

from .constants import (
    DEFAULT_DESIRED_RETENTION,
    DEFAULT_PARAMETERS,
    PARAMETER_COUNT,
)
from .models import Rating


def _clamp_difficulty(value: float) -> float:
    return max(1.0, min(10.0, value))


class FSRSMemoryModel:
    """
    Stability/difficulty/retrievability formulas for a fixed weight vector.
    """

    def __init__(
        self,
        parameters: Sequence[float] = DEFAULT_PARAMETERS,
        desired_retention: float = DEFAULT_DESIRED_RETENTION,
    ):
        if len(parameters) != PARAMETER_COUNT:
            raise ValueError(
                f"Expected {PARAMETER_COUNT} FSRS weights, got {len(parameters)}."
            )
        self.w: Tuple[float, ...] = tuple(float(p) for p in parameters)
        self.desired_retention = desired_retention

    def retrievability(self, elapsed_days: float, stability: float) -> float:
        """Forgetting curve R(t, S) = (1 + t / (9 S))^-1; 0 for unset stability."""
        if stability <= 0:
            return 0.0
        return math.pow(1 + elapsed_days / (9 * stability), -1)

    def next_interval(
        self, stability: float, retention: Optional[float] = None
    ) -> int:
        """
        Interval in days at which retrievability decays to ``retention``.

        Rounds half-up. Unset stability yields a one-day floor.
        """
        if retention is None:
            retention = self.desired_retention
        if stability <= 0:
            return 1
        return math.floor(9 * stability * (1 / retention - 1) + 0.5)

    def init_stability(self, rating: int) -> float:
        return self.w[int(rating) - 1]

    def init_difficulty(self, rating: int) -> float:
        w = self.w
        return _clamp_difficulty(w[4] - (int(rating) - 3) * w[5])

    def next_review_stability(
        self, d: float, s: float, r: float, rating: int
    ) -> float:
        """Stability after a successful (Hard/Good/Easy) review."""
        w = self.w
        hard_penalty = w[15] if rating == Rating.Hard else 1.0
        easy_bonus = w[16] if rating == Rating.Easy else 1.0

        increase = (
            math.exp(w[8])
            * (11 - d)
            * math.pow(s, -w[9])
            * (math.exp(w[10] * (1 - r)) - 1)
            * hard_penalty
            * easy_bonus
        )
        return s * (increase + 1)

    def next_forget_stability(self, d: float, s: float, r: float) -> float:
        """Stability after a lapse."""
        w = self.w
        return (
            w[11]
            * math.pow(d, -w[12])
            * (math.pow(s + 1, w[13]) - 1)
            * math.exp(w[14] * (1 - r))
        )

    def next_difficulty(self, d: float, rating: int) -> float:
        """Mean-reverting difficulty update, clamped to [1, 10]."""
        w = self.w
        d0 = self.init_difficulty(Rating.Good)
        new_d = w[7] * d0 + (1 - w[7]) * (d - w[6] * (int(rating) - 3))
        return _clamp_difficulty(new_d)
