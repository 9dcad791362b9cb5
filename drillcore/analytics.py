"""
Response analytics for drillcore.

Every answered prompt can be logged with its timing, the learner's answer, the
grade and any classified errors. The log is bounded, persisted under its own
key, and summarised for pattern analysis.
"""

import json
import logging
import time
from datetime import datetime, timezone
from statistics import mean
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .constants import ANALYTICS_MAX_RESPONSES, ANALYTICS_STORAGE_KEY
from .storage.base import KeyValueStore

logger = logging.getLogger(__name__)


class ResponseRecord(BaseModel):
    """One logged response to a drill prompt."""

    model_config = ConfigDict(extra="ignore")

    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    response_time_ms: Optional[int] = Field(default=None, ge=0)

    card_id: Optional[str] = None
    unit: Optional[int] = None
    drill_type: Optional[str] = None

    prompt: Optional[str] = None
    expected: Optional[str] = None
    user_answer: Optional[str] = None

    correct: bool = False
    grade: Optional[int] = Field(default=None, ge=1, le=4)
    errors: List[Dict[str, Any]] = Field(default_factory=list)

    mode: str = "srs"
    formality: str = "formal"

    user_id: Optional[str] = None
    card_state: Optional[int] = None
    card_reps: Optional[int] = None
    card_lapses: Optional[int] = None


class ResponseLog:
    """
    Bounded, persisted log of learner responses.

    Persistence failures are logged and never raised.
    """

    def __init__(
        self,
        kv_store: KeyValueStore,
        storage_key: str = ANALYTICS_STORAGE_KEY,
        max_responses: int = ANALYTICS_MAX_RESPONSES,
        timer: Callable[[], float] = time.monotonic,
    ):
        self._kv = kv_store
        self.storage_key = storage_key
        self.max_responses = max_responses
        self._timer = timer
        self.user_id: Optional[str] = None
        self.responses: List[ResponseRecord] = []
        self._prompt_started: Optional[float] = None

    def load(self) -> None:
        try:
            blob = self._kv.load(self.storage_key)
        except Exception as e:
            logger.error(f"Failed to load analytics: {e}")
            return
        if not blob:
            return
        try:
            data = json.loads(blob)
            self.user_id = data.get("user_id")
            self.responses = [
                ResponseRecord.model_validate(r)
                for r in data.get("responses", [])
            ]
        except (json.JSONDecodeError, AttributeError, ValidationError) as e:
            logger.warning(f"Persisted analytics unreadable, starting empty: {e}")
            self.user_id = None
            self.responses = []

    def save(self) -> bool:
        blob = json.dumps(
            {
                "user_id": self.user_id,
                "responses": [r.model_dump(mode="json") for r in self.responses],
                "last_updated": datetime.now(timezone.utc).isoformat(),
            }
        )
        try:
            self._kv.save(self.storage_key, blob)
        except Exception as e:
            logger.error(f"Failed to save analytics: {e}")
            return False
        return True

    def start_prompt_timer(self) -> None:
        """Call when a prompt is shown; the next logged response is timed from here."""
        self._prompt_started = self._timer()

    def log_response(self, **data: Any) -> ResponseRecord:
        """
        Record a response. Keyword arguments are ResponseRecord fields.

        Response time is measured from the last start_prompt_timer call.
        """
        if self._prompt_started is not None:
            elapsed = self._timer() - self._prompt_started
            data.setdefault("response_time_ms", max(0, int(elapsed * 1000)))
        data.setdefault("user_id", self.user_id)

        record = ResponseRecord.model_validate(data)
        self.responses.append(record)
        if len(self.responses) > self.max_responses:
            self.responses = self.responses[-self.max_responses:]

        self.save()
        return record

    def set_user_id(self, user_id: Optional[str]) -> None:
        self.user_id = user_id
        self.save()

    def clear(self) -> None:
        self.responses = []
        self.save()

    def get_summary(self) -> Optional[Dict[str, Any]]:
        """
        Summarise logged responses.

        Returns:
            dict with total_responses, correct_count, incorrect_count,
            accuracy (percent), avg_correct_time_ms, avg_incorrect_time_ms,
            error_types, errors_by_unit and top_mistakes (20 cards with the most
            incorrect responses); None if nothing has been logged.
        """
        responses = self.responses
        if not responses:
            return None

        error_types: Dict[str, int] = {}
        errors_by_unit: Dict[int, int] = {}
        mistakes_by_card: Dict[str, Dict[str, Any]] = {}
        correct_times: List[int] = []
        incorrect_times: List[int] = []

        for r in responses:
            if r.response_time_ms:
                (correct_times if r.correct else incorrect_times).append(
                    r.response_time_ms
                )

            for err in r.errors:
                err_type = err.get("type")
                if err_type:
                    error_types[err_type] = error_types.get(err_type, 0) + 1

            if r.correct:
                continue
            if r.unit is not None:
                errors_by_unit[r.unit] = errors_by_unit.get(r.unit, 0) + 1
            if r.card_id:
                entry = mistakes_by_card.setdefault(
                    r.card_id, {"count": 0, "errors": [], "last_answer": ""}
                )
                entry["count"] += 1
                entry["errors"].extend(r.errors)
                entry["last_answer"] = r.user_answer or ""

        correct_count = sum(1 for r in responses if r.correct)
        top_mistakes = sorted(
            mistakes_by_card.items(), key=lambda kv: kv[1]["count"], reverse=True
        )[:20]

        return {
            "total_responses": len(responses),
            "correct_count": correct_count,
            "incorrect_count": len(responses) - correct_count,
            "accuracy": round(correct_count / len(responses) * 100, 1),
            "avg_correct_time_ms": round(mean(correct_times)) if correct_times else 0,
            "avg_incorrect_time_ms": (
                round(mean(incorrect_times)) if incorrect_times else 0
            ),
            "error_types": error_types,
            "errors_by_unit": errors_by_unit,
            "top_mistakes": [
                {"card_id": card_id, **entry} for card_id, entry in top_mistakes
            ],
        }

    def export(self) -> Dict[str, Any]:
        """Everything logged plus its summary, JSON-serialisable."""
        return {
            "user_id": self.user_id,
            "exported_at": datetime.now(timezone.utc).isoformat(),
            "summary": self.get_summary(),
            "responses": [r.model_dump(mode="json") for r in self.responses],
        }
