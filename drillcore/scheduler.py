# drillcore/scheduler.py

"""
Defines the BaseScheduler abstract class and FSRS_Scheduler, the review state
machine that moves cards through New -> Learning -> Review -> Relearning.
"""

import datetime
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .constants import (
    DEFAULT_DESIRED_RETENTION,
    DEFAULT_EASY_INTERVAL,
    DEFAULT_GRADUATING_INTERVAL,
    DEFAULT_GRADUATION_CONSECUTIVE,
    DEFAULT_GRADUATION_MIN_INTERVAL,
    DEFAULT_LEARNING_STEPS,
    DEFAULT_MAXIMUM_INTERVAL,
    DEFAULT_PARAMETERS,
    DEFAULT_REACTIVATION_LAPSE_THRESHOLD,
    DEFAULT_REACTIVATION_MAX_SIBLINGS,
    DEFAULT_REACTIVATION_WINDOW_DAYS,
    DEFAULT_RELEARNING_STEPS,
    DEFAULT_SESSION_SIZE,
    PARAMETER_COUNT,
)
from .memory_model import FSRSMemoryModel
from .models import Card, CardState, Rating

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 60 * 24


def ensure_utc(ts: datetime.datetime) -> datetime.datetime:
    """Ensures the given datetime is UTC. Assumes UTC if naive."""
    if ts.tzinfo is None or ts.tzinfo.utcoffset(ts) is None:
        return ts.replace(tzinfo=datetime.timezone.utc)
    if ts.tzinfo != datetime.timezone.utc:
        return ts.astimezone(datetime.timezone.utc)
    return ts


@dataclass
class SchedulerOutput:
    stab: float
    diff: float
    state: CardState
    learning_step: int
    lapses: int
    next_due: datetime.datetime
    interval_minutes: int
    interval_days: int
    scheduled_days: float
    elapsed_days: float
    review_type: str

    @property
    def interval(self) -> float:
        """Chosen interval in days; fractional for minute steps."""
        if self.interval_minutes > 0:
            return self.interval_minutes / MINUTES_PER_DAY
        return float(self.interval_days)

    @property
    def interval_display(self) -> str:
        if self.interval_minutes > 0:
            return f"{self.interval_minutes}m"
        return f"{self.interval_days}d"


class BaseScheduler(ABC):
    """
    Abstract base class for all schedulers in drillcore.
    """

    @abstractmethod
    def compute_next_state(
        self, card: Card, new_rating: int, review_ts: datetime.datetime
    ) -> SchedulerOutput:
        """
        Computes the next state of a card from its current fields and a new rating.

        Args:
            card: The Card whose current state, step and memory fields are read.
            new_rating: The rating given for the current review (1=Again, 2=Hard, 3=Good, 4=Easy).
            review_ts: The timestamp of the current review.

        Returns:
            A SchedulerOutput object containing the new state.

        Raises:
            ValueError: If the new_rating is invalid.
        """
        pass


class SchedulerConfig(BaseModel):
    """Configuration for the drill scheduler, graduation and session queue."""

    model_config = ConfigDict(frozen=True)

    parameters: Tuple[float, ...] = Field(
        default_factory=lambda: tuple(DEFAULT_PARAMETERS)
    )
    desired_retention: float = Field(
        default=DEFAULT_DESIRED_RETENTION, gt=0, lt=1
    )
    maximum_interval: int = Field(default=DEFAULT_MAXIMUM_INTERVAL, ge=1)
    learning_steps: Tuple[int, ...] = Field(
        default_factory=lambda: tuple(DEFAULT_LEARNING_STEPS)
    )
    relearning_steps: Tuple[int, ...] = Field(
        default_factory=lambda: tuple(DEFAULT_RELEARNING_STEPS)
    )
    graduating_interval: int = Field(default=DEFAULT_GRADUATING_INTERVAL, ge=0)
    easy_interval: int = Field(default=DEFAULT_EASY_INTERVAL, ge=0)

    graduation_consecutive: int = Field(
        default=DEFAULT_GRADUATION_CONSECUTIVE, ge=1
    )
    graduation_min_interval: float = Field(
        default=DEFAULT_GRADUATION_MIN_INTERVAL, ge=0
    )
    reactivation_lapse_threshold: int = Field(
        default=DEFAULT_REACTIVATION_LAPSE_THRESHOLD, ge=1
    )
    reactivation_window_days: int = Field(
        default=DEFAULT_REACTIVATION_WINDOW_DAYS, ge=1
    )
    reactivation_max_siblings: int = Field(
        default=DEFAULT_REACTIVATION_MAX_SIBLINGS, ge=0
    )

    session_size: int = Field(default=DEFAULT_SESSION_SIZE, ge=1)

    @field_validator("parameters")
    @classmethod
    def check_parameter_count(cls, v: Tuple[float, ...]) -> Tuple[float, ...]:
        if len(v) != PARAMETER_COUNT:
            raise ValueError(
                f"parameters must contain exactly {PARAMETER_COUNT} weights, got {len(v)}."
            )
        return v

    @field_validator("learning_steps", "relearning_steps")
    @classmethod
    def check_steps(cls, v: Tuple[int, ...]) -> Tuple[int, ...]:
        if not v:
            raise ValueError("Step schedules must contain at least one step.")
        if any(step <= 0 for step in v):
            raise ValueError("Step durations must be positive minutes.")
        return v


class FSRS_Scheduler(BaseScheduler):
    """
    FSRS scheduler with Anki-style learning steps.

    New, Learning and Relearning cards walk a short minute-based step schedule;
    Review cards are scheduled by the FSRS memory model.
    """

    REVIEW_TYPE_MAP = {
        CardState.New: "learn",
        CardState.Learning: "learn",
        CardState.Review: "review",
        CardState.Relearning: "relearn",
    }

    def __init__(self, config: Optional[SchedulerConfig] = None):
        if config is None:
            config = SchedulerConfig()
        self.config = config
        self.model = FSRSMemoryModel(
            parameters=self.config.parameters,
            desired_retention=self.config.desired_retention,
        )

    def _validate_rating(self, rating: int) -> Rating:
        """Validates a 1-4 rating and returns it as a Rating."""
        if not (1 <= rating <= 4):
            raise ValueError(
                f"Invalid rating: {rating}. Must be 1-4 (1=Again, 2=Hard, 3=Good, 4=Easy)."
            )
        return Rating(rating)

    def compute_next_state(
        self, card: Card, new_rating: int, review_ts: datetime.datetime
    ) -> SchedulerOutput:
        """
        Computes the next state of a card. Pure: the card is not modified.
        """
        rating = self._validate_rating(new_rating)
        now = ensure_utc(review_ts)

        last_review = (
            ensure_utc(card.last_review) if card.last_review else now
        )
        elapsed_days = max(
            0.0, (now - last_review).total_seconds() / (MINUTES_PER_DAY * 60)
        )

        if card.state == CardState.Review:
            result = self._review_step(card, rating, elapsed_days)
        else:
            result = self._learning_step(card, rating)
        stab, diff, state, step, lapses, minutes, days = result

        if minutes > 0:
            next_due = now + datetime.timedelta(minutes=minutes)
            scheduled_days = minutes / MINUTES_PER_DAY
        else:
            next_due = now + datetime.timedelta(days=days)
            scheduled_days = float(days)

        return SchedulerOutput(
            stab=stab,
            diff=diff,
            state=state,
            learning_step=step,
            lapses=lapses,
            next_due=next_due,
            interval_minutes=minutes,
            interval_days=days,
            scheduled_days=scheduled_days,
            elapsed_days=elapsed_days,
            review_type=self.REVIEW_TYPE_MAP[card.state],
        )

    def _learning_step(self, card: Card, rating: Rating):
        """Short-interval step logic for New, Learning and Relearning cards."""
        cfg = self.config
        steps = (
            cfg.relearning_steps
            if card.state == CardState.Relearning
            else cfg.learning_steps
        )
        stab, diff, lapses = card.stability, card.difficulty, card.lapses
        minutes, days = 0, 0

        if rating == Rating.Again:
            step = 0
            # Failing a step after the first answer counts as relearning.
            state = (
                CardState.Learning
                if card.state == CardState.New
                else CardState.Relearning
            )
            steps = cfg.relearning_steps
            minutes = steps[0]
        elif rating == Rating.Easy:
            state = CardState.Review
            step = 0
            stab = self.model.init_stability(rating)
            diff = self.model.init_difficulty(rating)
            days = cfg.easy_interval
        else:
            step = card.learning_step + 1
            if step >= len(steps):
                state = CardState.Review
                step = 0
                stab = self.model.init_stability(rating)
                diff = self.model.init_difficulty(rating)
                days = 1 if rating == Rating.Hard else cfg.graduating_interval
            else:
                state = (
                    CardState.Learning
                    if card.state == CardState.New
                    else card.state
                )
                minutes = steps[step]

        return stab, diff, state, step, lapses, minutes, days

    def _review_step(self, card: Card, rating: Rating, elapsed_days: float):
        """FSRS scheduling for cards in the Review state."""
        cfg = self.config
        model = self.model
        initialised = card.stability > 0 and card.difficulty >= 1
        if not initialised:
            logger.warning(
                f"Card {card.id} is in Review without memory state; "
                "initialising from this rating."
            )
        r = model.retrievability(elapsed_days, card.stability)

        if rating == Rating.Again:
            if initialised:
                stab = model.next_forget_stability(
                    card.difficulty, card.stability, r
                )
                diff = card.difficulty
            else:
                stab = model.init_stability(rating)
                diff = model.init_difficulty(rating)
            return (
                stab,
                diff,
                CardState.Relearning,
                0,
                card.lapses + 1,
                cfg.relearning_steps[0],
                0,
            )

        if initialised:
            stab = model.next_review_stability(
                card.difficulty, card.stability, r, rating
            )
            diff = model.next_difficulty(card.difficulty, rating)
        else:
            stab = model.init_stability(rating)
            diff = model.init_difficulty(rating)
        days = min(model.next_interval(stab), cfg.maximum_interval)
        return stab, diff, CardState.Review, 0, card.lapses, 0, days
