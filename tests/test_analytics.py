import json

import pytest

from drillcore.analytics import ResponseLog
from drillcore.constants import ANALYTICS_STORAGE_KEY
from drillcore.exceptions import StorageOperationError
from drillcore.storage import InMemoryKeyValueStore


class FakeTimer:
    def __init__(self):
        self.value = 100.0

    def __call__(self) -> float:
        return self.value


@pytest.fixture
def timer() -> FakeTimer:
    return FakeTimer()


@pytest.fixture
def log(kv_store, timer) -> ResponseLog:
    return ResponseLog(kv_store, timer=timer)


def test_response_time_measured_from_prompt(log, timer):
    log.start_prompt_timer()
    timer.value += 2.5
    record = log.log_response(card_id="a", correct=True, grade=3)
    assert record.response_time_ms == 2500


def test_response_without_timer_has_no_time(log):
    record = log.log_response(card_id="a", correct=True)
    assert record.response_time_ms is None


def test_responses_are_persisted_and_reloaded(log, kv_store):
    log.set_user_id("learner-1")
    log.log_response(card_id="a", correct=False, user_answer="ich habe")

    payload = json.loads(kv_store.load(ANALYTICS_STORAGE_KEY))
    assert payload["user_id"] == "learner-1"
    assert len(payload["responses"]) == 1

    reloaded = ResponseLog(kv_store)
    reloaded.load()
    assert reloaded.user_id == "learner-1"
    assert reloaded.responses[0].user_answer == "ich habe"
    assert reloaded.responses[0].user_id == "learner-1"


def test_log_is_bounded(kv_store):
    log = ResponseLog(kv_store, max_responses=3)
    for i in range(5):
        log.log_response(card_id=f"c{i}")
    assert [r.card_id for r in log.responses] == ["c2", "c3", "c4"]


def test_unreadable_blob_starts_empty():
    log = ResponseLog(InMemoryKeyValueStore({ANALYTICS_STORAGE_KEY: "]["}))
    log.load()
    assert log.responses == []


def test_save_failure_is_not_raised(caplog):
    class BrokenStore(InMemoryKeyValueStore):
        def save(self, key, blob):
            raise StorageOperationError("full")

    log = ResponseLog(BrokenStore())
    record = log.log_response(card_id="a", correct=True)
    assert record.card_id == "a"
    assert log.save() is False
    assert "Failed to save analytics" in caplog.text


def test_summary_empty(log):
    assert log.get_summary() is None


def test_summary(log, timer):
    entries = [
        dict(card_id="a", unit=1, correct=True, elapsed=1.0),
        dict(card_id="b", unit=2, correct=False, elapsed=3.0,
             errors=[{"type": "grammar"}], user_answer="first"),
        dict(card_id="b", unit=2, correct=False, elapsed=5.0,
             errors=[{"type": "spelling"}], user_answer="second"),
        dict(card_id="c", unit=1, correct=False, elapsed=4.0,
             errors=[{"type": "grammar"}]),
    ]
    for entry in entries:
        elapsed = entry.pop("elapsed")
        log.start_prompt_timer()
        timer.value += elapsed
        log.log_response(**entry)

    summary = log.get_summary()

    assert summary["total_responses"] == 4
    assert summary["correct_count"] == 1
    assert summary["incorrect_count"] == 3
    assert summary["accuracy"] == 25.0
    assert summary["avg_correct_time_ms"] == 1000
    assert summary["avg_incorrect_time_ms"] == 4000
    assert summary["error_types"] == {"grammar": 2, "spelling": 1}
    assert summary["errors_by_unit"] == {2: 2, 1: 1}
    top = summary["top_mistakes"][0]
    assert top["card_id"] == "b"
    assert top["count"] == 2
    assert top["last_answer"] == "second"
    assert [e["type"] for e in top["errors"]] == ["grammar", "spelling"]


def test_clear_and_export(log):
    log.log_response(card_id="a", correct=True)
    exported = log.export()
    assert exported["summary"]["total_responses"] == 1
    assert len(exported["responses"]) == 1

    log.clear()
    assert log.get_summary() is None
