"""Drillcore - FSRS spaced-repetition scheduling for sentence drills."""

from .models import (
    Card,
    CardState,
    DrillItem,
    DrillMeta,
    ErrorInfo,
    Rating,
    ReviewResult,
)
from .constants import DEFAULT_PARAMETERS, DEFAULT_DESIRED_RETENTION
from .memory_model import FSRSMemoryModel
from .scheduler import FSRS_Scheduler, SchedulerConfig
from .card_store import CardStore
from .graduation import GraduationManager
from .queue_builder import SessionQueue
from .review_manager import DrillSessionManager
from .grading import error_to_rating
from .analytics import ResponseLog
from .parser import load_drill_file
from .storage import DuckDBKeyValueStore, InMemoryKeyValueStore, KeyValueStore

__all__ = [
    "Card",
    "CardState",
    "DrillItem",
    "DrillMeta",
    "ErrorInfo",
    "Rating",
    "ReviewResult",
    "DEFAULT_PARAMETERS",
    "DEFAULT_DESIRED_RETENTION",
    "FSRSMemoryModel",
    "FSRS_Scheduler",
    "SchedulerConfig",
    "CardStore",
    "GraduationManager",
    "SessionQueue",
    "DrillSessionManager",
    "error_to_rating",
    "ResponseLog",
    "load_drill_file",
    "KeyValueStore",
    "InMemoryKeyValueStore",
    "DuckDBKeyValueStore",
]
