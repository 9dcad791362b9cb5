"""
Shared review processing logic for drillcore.

The ReviewProcessor applies one graded review to a card:
1. Timestamp handling
2. Error history bookkeeping
3. Scheduler computation
4. Writing the new scheduling state back onto the card
5. Streak tracking
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Tuple

from .models import Card, ErrorInfo, Rating
from .scheduler import FSRS_Scheduler, SchedulerOutput, ensure_utc

logger = logging.getLogger(__name__)


class ReviewProcessor:
    """
    Processes review submissions with consistent logic.

    The processor mutates the card it is given and nothing else; sibling cards,
    session counters and persistence are the caller's concern.
    """

    def __init__(self, scheduler: FSRS_Scheduler):
        """
        Initialize the ReviewProcessor.

        Args:
            scheduler: FSRS scheduler instance for computing next states
        """
        self.scheduler = scheduler

    def process_review(
        self,
        card: Card,
        rating: int,
        error_info: Optional[ErrorInfo] = None,
        reviewed_at: Optional[datetime] = None,
    ) -> Tuple[Card, SchedulerOutput]:
        """
        Apply a review to ``card`` in place.

        Args:
            card: The card being reviewed
            rating: Learner's rating (1-4: Again, Hard, Good, Easy)
            error_info: Optional classified error to append to the card's history
            reviewed_at: Review timestamp (defaults to current time)

        Returns:
            The updated card and the scheduler output that produced it.

        Raises:
            ValueError: If rating is invalid
        """
        ts = reviewed_at or datetime.now(timezone.utc)

        logger.debug(f"Processing review for card {card.id} with rating {rating}")

        output = self.scheduler.compute_next_state(
            card=card, new_rating=rating, review_ts=ts
        )
        ts = ensure_utc(ts)

        if error_info is not None:
            card.record_error(error_info.type, ts)

        card.stability = output.stab
        card.difficulty = output.diff
        card.state = output.state
        card.learning_step = output.learning_step
        card.lapses = output.lapses
        card.scheduled_days = output.scheduled_days
        card.elapsed_days = output.elapsed_days
        card.reps += 1
        card.last_review = ts
        card.due = output.next_due

        if rating >= Rating.Good:
            card.consecutive_correct += 1
        else:
            card.consecutive_correct = 0

        logger.debug(
            f"Review ({output.review_type}) processed for card {card.id}. "
            f"Next due: {card.due.isoformat()} ({output.interval_display}), "
            f"State: {card.state.name}"
        )
        return card, output
