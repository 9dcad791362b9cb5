import datetime
from pathlib import Path
from typing import List

import pytest

from drillcore.models import Card, CardState
from drillcore.review_manager import DrillSessionManager
from drillcore.scheduler import FSRS_Scheduler, SchedulerConfig
from drillcore.storage import InMemoryKeyValueStore

UTC = datetime.timezone.utc


# each test runs on cwd to its temp dir
@pytest.fixture(autouse=True)
def go_to_tmpdir(tmp_path: Path, monkeypatch):
    """Run each test with its temporary directory as the working directory."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("DRILLCORE_DB", raising=False)


@pytest.fixture
def now() -> datetime.datetime:
    """A fixed review time so every schedule is reproducible."""
    return datetime.datetime(2024, 1, 1, 10, 0, 0, tzinfo=UTC)


def identity_selector(cards: List[Card]) -> List[Card]:
    """Deterministic stand-in for the random sibling shuffle."""
    return list(cards)


@pytest.fixture
def selector():
    return identity_selector


@pytest.fixture
def scheduler() -> FSRS_Scheduler:
    return FSRS_Scheduler(config=SchedulerConfig())


@pytest.fixture
def kv_store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def manager(kv_store, scheduler, selector, now) -> DrillSessionManager:
    """A session manager over an in-memory store whose clock is fixed at ``now``."""
    return DrillSessionManager(
        kv_store, scheduler=scheduler, selector=selector, clock=lambda: now
    )


@pytest.fixture
def review_card(now) -> Card:
    """A card in the Review state, last seen ten days ago."""
    return Card(
        id="rev-1",
        state=CardState.Review,
        stability=10.0,
        difficulty=5.0,
        reps=4,
        last_review=now - datetime.timedelta(days=10),
        due=now,
        scheduled_days=10.0,
    )


@pytest.fixture
def sample_drills() -> List[dict]:
    return [
        {
            "id": "d1",
            "pos_pattern": "PRON VERB NOUN",
            "commonality": 0.3,
            "pattern_group": "svo",
            "is_canonical": True,
        },
        {
            "id": "d2",
            "pos_pattern": "PRON VERB NOUN",
            "commonality": 0.8,
            "pattern_group": "svo",
            "is_canonical": False,
        },
        {
            "id": "d3",
            "pos_pattern": "ADV VERB PRON",
            "commonality": 0.5,
            "pattern_group": "inversion",
            "is_canonical": True,
        },
    ]
