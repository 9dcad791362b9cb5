"""
Pydantic models for drill cards, drill metadata and review outcomes.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import IntEnum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .constants import DEFAULT_COMMONALITY, DEFAULT_UNIT, ERROR_HISTORY_LIMIT


class CardState(IntEnum):
    """
    Represents the FSRS-defined state of a card's memory trace.
    """

    New = 0
    Learning = 1
    Review = 2
    Relearning = 3


class Rating(IntEnum):
    """
    Represents the learner's rating of their recall performance.

    The ordinal values are significant: several checks compare against Good.
    """

    Again = 1
    Hard = 2
    Good = 3
    Easy = 4


def _coerce_id(value):
    if value is None:
        return value
    return str(value)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # Naive timestamps from older records are taken as UTC.
    if value is None:
        return value
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class ErrorRecord(BaseModel):
    """A single classified error kept in a card's bounded history."""

    model_config = ConfigDict(extra="forbid")

    type: str
    timestamp: datetime

    @field_validator("timestamp")
    @classmethod
    def timestamp_utc(cls, v):
        return _as_utc(v)


class ErrorInfo(BaseModel):
    """Classified error reported alongside a grade by the answer checker."""

    model_config = ConfigDict(extra="ignore")

    type: str = Field(..., min_length=1)
    subtype: Optional[str] = None
    detail: Optional[str] = None


class Card(BaseModel):
    """
    Per-drill memory record driving scheduling.

    One card exists per drill id. Cards are created lazily the first time a
    drill is scheduled and are never deleted, only reset or graduated.
    """

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    id: str = Field(..., min_length=1, description="Stable drill identifier.")
    due: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Next time the card becomes eligible for review.",
    )
    stability: float = Field(
        default=0.0,
        ge=0,
        description="Memory stability in days; 0 until first graduation.",
    )
    difficulty: float = Field(
        default=0.0,
        ge=0,
        le=10,
        description="Memory difficulty in [1, 10]; 0 until initialised.",
    )
    elapsed_days: float = Field(
        default=0.0,
        ge=0,
        description="Days between the last two reviews (display only).",
    )
    scheduled_days: float = Field(
        default=0.0,
        ge=0,
        description="Length of the current interval in days (display only).",
    )
    reps: int = Field(default=0, ge=0)
    lapses: int = Field(default=0, ge=0)
    state: CardState = Field(default=CardState.New)
    last_review: Optional[datetime] = None
    learning_step: int = Field(
        default=0,
        ge=0,
        description="Index into the active learning/relearning step schedule.",
    )

    pos_pattern: str = Field(
        default="",
        description="Opaque grammatical pattern tag used for spacing.",
    )
    commonality: float = Field(
        default=DEFAULT_COMMONALITY,
        ge=0,
        le=1,
        description="Frequency rank; orders New cards only.",
    )
    unit: int = Field(default=DEFAULT_UNIT)

    error_history: List[ErrorRecord] = Field(default_factory=list)

    graduated: bool = False
    graduation_date: Optional[datetime] = None
    consecutive_correct: int = Field(default=0, ge=0)

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        return _coerce_id(v)

    @field_validator("due", "last_review", "graduation_date")
    @classmethod
    def timestamps_utc(cls, v):
        return _as_utc(v)

    def record_error(self, error_type: str, ts: datetime) -> None:
        """Append an error record, keeping only the most recent entries."""
        history = list(self.error_history)
        history.append(ErrorRecord(type=error_type, timestamp=ts))
        self.error_history = history[-ERROR_HISTORY_LIMIT:]

    def is_due(self, now: datetime) -> bool:
        """New cards are always eligible; others once their due time passes."""
        return self.state == CardState.New or self.due <= now


class DrillItem(BaseModel):
    """
    A drill as supplied by the curriculum. Only the scheduling-relevant fields
    are retained on the card; prompt/answer text is carried for front ends.
    """

    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., min_length=1)
    pos_pattern: str = ""
    commonality: float = Field(default=DEFAULT_COMMONALITY, ge=0, le=1)
    unit: int = DEFAULT_UNIT
    prompt: Optional[str] = None
    answer: Optional[str] = None
    pattern_group: Optional[str] = None
    is_canonical: bool = True

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        return _coerce_id(v)

    @field_validator("pos_pattern", mode="before")
    @classmethod
    def default_pattern(cls, v):
        return "" if v is None else v

    @field_validator("commonality", mode="before")
    @classmethod
    def default_commonality(cls, v):
        return DEFAULT_COMMONALITY if v is None else v

    @field_validator("unit", mode="before")
    @classmethod
    def default_unit(cls, v):
        return DEFAULT_UNIT if v is None else v


class DrillMeta(BaseModel):
    """Side-table record grouping drills that drill the same pattern."""

    model_config = ConfigDict(validate_assignment=True, extra="ignore")

    pattern_group: Optional[str] = None
    is_canonical: bool = True

    @field_validator("pattern_group", mode="before")
    @classmethod
    def empty_group_is_none(cls, v):
        if v is None or v == "":
            return None
        return str(v)

    @field_validator("is_canonical", mode="before")
    @classmethod
    def default_canonical(cls, v):
        return True if v is None else v


class SessionStats(BaseModel):
    """Counters for the current learner session."""

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    reviewed: int = Field(default=0, ge=0)
    correct: int = Field(default=0, ge=0)
    incorrect: int = Field(default=0, ge=0)


@dataclass
class ReviewResult:
    card: Card
    interval: float  # days; fractional for minute steps
    interval_display: str
    next_due: datetime
