"""
Tests for ReviewProcessor, which writes scheduler output back onto a card.
"""

import datetime
from unittest.mock import MagicMock

import pytest

from drillcore.constants import ERROR_HISTORY_LIMIT
from drillcore.models import Card, CardState, ErrorInfo, Rating
from drillcore.review_processor import ReviewProcessor
from drillcore.scheduler import FSRS_Scheduler


@pytest.fixture
def processor(scheduler) -> ReviewProcessor:
    return ReviewProcessor(scheduler)


class TestProcessReview:
    def test_updates_card_from_scheduler_output(self, processor, now):
        card = Card(id="c1", due=now)
        updated, output = processor.process_review(card, Rating.Good, reviewed_at=now)

        assert updated is card
        assert card.state == CardState.Learning
        assert card.learning_step == 1
        assert card.reps == 1
        assert card.last_review == now
        assert card.due == output.next_due
        assert card.scheduled_days == pytest.approx(output.scheduled_days)

    def test_streak_counts_good_and_easy(self, processor, now):
        card = Card(id="c1", due=now)
        processor.process_review(card, Rating.Good, reviewed_at=now)
        processor.process_review(card, Rating.Easy, reviewed_at=now)
        assert card.consecutive_correct == 2

        processor.process_review(card, Rating.Hard, reviewed_at=now)
        assert card.consecutive_correct == 0

    def test_lapse_increments_lapses(self, processor, review_card, now):
        processor.process_review(review_card, Rating.Again, reviewed_at=now)
        assert review_card.lapses == 1
        assert review_card.state == CardState.Relearning
        assert review_card.consecutive_correct == 0

    def test_error_info_is_recorded(self, processor, now):
        card = Card(id="c1", due=now)
        processor.process_review(
            card,
            Rating.Again,
            error_info=ErrorInfo(type="grammar", subtype="case"),
            reviewed_at=now,
        )
        assert len(card.error_history) == 1
        assert card.error_history[0].type == "grammar"
        assert card.error_history[0].timestamp == now

    def test_error_history_is_bounded(self, processor, now):
        card = Card(id="c1", due=now)
        for i in range(ERROR_HISTORY_LIMIT + 3):
            processor.process_review(
                card,
                Rating.Again,
                error_info=ErrorInfo(type=f"e{i}"),
                reviewed_at=now + datetime.timedelta(minutes=i),
            )
        assert len(card.error_history) == ERROR_HISTORY_LIMIT
        assert card.error_history[0].type == "e3"
        assert card.error_history[-1].type == f"e{ERROR_HISTORY_LIMIT + 2}"

    def test_invalid_rating_leaves_card_untouched(self, processor, now):
        card = Card(id="c1", due=now)
        before = card.model_dump()
        with pytest.raises(ValueError):
            processor.process_review(card, 7, reviewed_at=now)
        assert card.model_dump() == before

    def test_uses_injected_scheduler(self, now):
        scheduler = MagicMock(spec=FSRS_Scheduler)
        scheduler.compute_next_state.side_effect = ValueError("boom")
        processor = ReviewProcessor(scheduler)
        with pytest.raises(ValueError, match="boom"):
            processor.process_review(Card(id="c1"), Rating.Good, reviewed_at=now)
        scheduler.compute_next_state.assert_called_once()
