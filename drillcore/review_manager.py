"""
This module defines the DrillSessionManager class, the single owned scheduler
instance for one learner. It holds the card store, the session queue and the
last drawn pattern, and exposes every scheduling operation front ends use.
"""

import logging
from collections import Counter, defaultdict
from concurrent.futures import Executor
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from pydantic import ValidationError

from .card_store import CardStore
from .constants import MASTERED_STABILITY_DAYS
from .graduation import GraduationManager, Selector
from .models import (
    Card,
    CardState,
    DrillItem,
    ErrorInfo,
    Rating,
    ReviewResult,
    SessionStats,
)
from .queue_builder import SessionQueue, get_due_cards
from .review_processor import ReviewProcessor
from .scheduler import FSRS_Scheduler, ensure_utc
from .storage.base import KeyValueStore

logger = logging.getLogger(__name__)


class DrillSessionManager:
    """
    Manages drill scheduling for a single learner.

    This class is responsible for:
    - Creating cards for drills and resetting them.
    - Applying graded reviews, then graduation and reactivation rules.
    - Building the session queue and serving cards one by one.
    - Persisting the card set after every change.

    Operations are synchronous and must not be interleaved; the manager does
    no locking of its own.
    """

    def __init__(
        self,
        kv_store: KeyValueStore,
        scheduler: Optional[FSRS_Scheduler] = None,
        selector: Optional[Selector] = None,
        executor: Optional[Executor] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Parameters:
            kv_store (KeyValueStore): Persistence collaborator for the card set.
            scheduler (FSRS_Scheduler): Scheduling engine; its config also drives
                graduation thresholds and the session size.
            selector (Selector): Random ordering used for sibling selection;
                defaults to a uniform shuffle.
            executor (Executor): Optional executor that saves are dispatched to.
            clock (Callable): Source of "now" when an operation is not given one.
        """
        self.scheduler = scheduler or FSRS_Scheduler()
        self.config = self.scheduler.config
        self.store = CardStore(kv_store, executor=executor)
        self.graduation = GraduationManager(self.config, selector=selector)
        self.queue = SessionQueue(max_cards=self.config.session_size)
        self.review_processor = ReviewProcessor(self.scheduler)
        self.session_stats = SessionStats()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def _now(self, now: Optional[datetime]) -> datetime:
        return ensure_utc(now) if now is not None else ensure_utc(self._clock())

    @property
    def persistence_ok(self) -> bool:
        """False when the most recent save failed; progress may not be stored."""
        return self.store.last_save_ok

    # --- Setup ---

    def initialize_session(self, now: Optional[datetime] = None) -> List[Card]:
        """Load persisted cards and build the first session queue."""
        self.store.load()
        return self.build_session_queue(now=now)

    def initialize_cards(
        self,
        items: Iterable[Union[DrillItem, Mapping[str, Any]]],
        now: Optional[datetime] = None,
    ) -> int:
        """
        Create a New card for every drill that does not have one yet.

        Existing cards are left untouched. Items are taken most common first.

        Returns:
            int: Number of cards created.
        """
        now = self._now(now)
        drills: List[DrillItem] = []
        for item in items:
            if isinstance(item, DrillItem):
                drills.append(item)
                continue
            try:
                drills.append(DrillItem.model_validate(item))
            except ValidationError as e:
                logger.warning(f"Skipping malformed drill item {item!r}: {e}")

        drills.sort(key=lambda d: d.commonality, reverse=True)

        created = 0
        for drill in drills:
            card = Card(
                id=drill.id,
                due=now,
                pos_pattern=drill.pos_pattern,
                commonality=drill.commonality,
                unit=drill.unit,
            )
            if self.store.add(card):
                created += 1

        logger.info(
            f"Initialized {created} new cards ({len(self.store)} total)."
        )
        self.store.save()
        return created

    def load_drill_meta(self, metadata: Any) -> int:
        """Load pattern-group metadata; see GraduationManager.load_drill_meta."""
        return self.graduation.load_drill_meta(metadata)

    # --- Reviewing ---

    def process_review(
        self,
        card_id: str,
        grade: int,
        error_info: Optional[Union[ErrorInfo, Mapping[str, Any]]] = None,
        now: Optional[datetime] = None,
    ) -> Optional[ReviewResult]:
        """
        Apply a graded review to a card and persist the result.

        Parameters:
            card_id (str): Id of the reviewed drill.
            grade (int): 1=Again, 2=Hard, 3=Good, 4=Easy.
            error_info: Optional classified error recorded in the card's history.
                A malformed record is logged and dropped; the grade still applies.
            now (datetime): Review time; defaults to the manager's clock.

        Returns:
            ReviewResult, or None if no card has this id.

        Raises:
            ValueError: If grade is outside 1-4.
        """
        card = self.store.get(card_id)
        if card is None:
            logger.debug(f"Review for unknown card {card_id} ignored.")
            return None

        if error_info is not None and not isinstance(error_info, ErrorInfo):
            try:
                error_info = ErrorInfo.model_validate(error_info)
            except ValidationError as e:
                logger.warning(
                    f"Ignoring malformed error info for card {card_id}: {e}"
                )
                error_info = None

        now = self._now(now)
        card, output = self.review_processor.process_review(
            card=card, rating=grade, error_info=error_info, reviewed_at=now
        )

        self.queue.record_pattern(card.pos_pattern)
        self._update_session_stats(grade)

        self.graduation.check_graduation(card, grade, self.store.cards, now)
        if grade == Rating.Again:
            self.graduation.check_reactivation(card, self.store.cards, now)

        self.store.save()

        return ReviewResult(
            card=card,
            interval=output.interval,
            interval_display=output.interval_display,
            next_due=card.due,
        )

    def _update_session_stats(self, grade: int) -> None:
        stats = self.session_stats
        stats.reviewed += 1
        if grade >= Rating.Good:
            stats.correct += 1
        else:
            stats.incorrect += 1

    def reset_session_stats(self) -> None:
        self.session_stats = SessionStats()

    # --- Queue ---

    def get_due_cards(self, now: Optional[datetime] = None) -> List[Card]:
        return get_due_cards(self.store.values(), self._now(now))

    def build_session_queue(
        self, max_cards: Optional[int] = None, now: Optional[datetime] = None
    ) -> List[Card]:
        return self.queue.rebuild(
            self.store.values(), self._now(now), max_cards=max_cards
        )

    def get_next_card(self, now: Optional[datetime] = None) -> Optional[Card]:
        """
        Retrieves the next card to be reviewed.

        Returns:
            The next Card, or None if no cards are due.
        """
        return self.queue.next_card(self.store.values(), self._now(now))

    # --- Lookup and statistics ---

    def get_card(self, card_id: str) -> Optional[Card]:
        return self.store.get(card_id)

    def get_stats(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Aggregate statistics over every card plus the session counters.

        Returns:
            dict: total, new, learning, review, relearning, due_today,
            mastered (stability above 21 days), avg_stability and
            avg_difficulty over reviewed cards, total_reviews, total_lapses
            and session.
        """
        now = self._now(now)
        cards = self.store.values()
        state_counts = Counter(card.state for card in cards)
        reviewed = [card for card in cards if card.reps > 0]

        return {
            "total": len(cards),
            "new": state_counts[CardState.New],
            "learning": state_counts[CardState.Learning],
            "review": state_counts[CardState.Review],
            "relearning": state_counts[CardState.Relearning],
            "due_today": sum(1 for card in cards if card.due <= now),
            "mastered": sum(
                1 for card in cards if card.stability > MASTERED_STABILITY_DAYS
            ),
            "avg_stability": (
                sum(c.stability for c in reviewed) / len(reviewed)
                if reviewed
                else 0.0
            ),
            "avg_difficulty": (
                sum(c.difficulty for c in reviewed) / len(reviewed)
                if reviewed
                else 0.0
            ),
            "total_reviews": sum(card.reps for card in cards),
            "total_lapses": sum(card.lapses for card in cards),
            "session": self.session_stats.model_dump(),
        }

    def get_graduation_stats(self) -> Dict[str, Any]:
        return self.graduation.get_graduation_stats(self.store.cards)

    def get_pattern_groups(self) -> Dict[str, List[Card]]:
        """Cards grouped by their grammatical pattern tag."""
        groups: Dict[str, List[Card]] = defaultdict(list)
        for card in self.store.values():
            groups[card.pos_pattern or "unknown"].append(card)
        return dict(groups)

    def get_problematic_cards(self, limit: int = 10) -> List[Card]:
        """Cards with recorded errors, most errors first."""
        with_errors = [c for c in self.store.values() if c.error_history]
        with_errors.sort(key=lambda c: len(c.error_history), reverse=True)
        return with_errors[:limit]

    def get_error_distribution(self) -> Dict[str, int]:
        dist: Counter = Counter()
        for card in self.store.values():
            dist.update(err.type for err in card.error_history)
        return dict(dist)

    # --- Reset ---

    def reset_card(
        self, card_id: str, now: Optional[datetime] = None
    ) -> Optional[Card]:
        """
        Return a card to the New state, keeping its pattern, commonality and unit.

        Returns:
            The fresh Card, or None if no card has this id.
        """
        fresh = self._reset(card_id, self._now(now))
        if fresh is None:
            return None
        self.queue.clear()
        self.store.save()
        return fresh

    def reset_all_cards(self, now: Optional[datetime] = None) -> int:
        now = self._now(now)
        count = 0
        for card_id in list(self.store.cards):
            if self._reset(card_id, now) is not None:
                count += 1
        self.queue.clear()
        self.store.save()
        logger.info(f"Reset {count} cards.")
        return count

    def _reset(self, card_id: str, now: datetime) -> Optional[Card]:
        old = self.store.get(card_id)
        if old is None:
            logger.debug(f"Reset for unknown card {card_id} ignored.")
            return None
        fresh = Card(
            id=card_id,
            due=now,
            pos_pattern=old.pos_pattern,
            commonality=old.commonality,
            unit=old.unit,
        )
        self.store.replace(fresh)
        return fresh

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Wait for any dispatched save to finish."""
        return self.store.flush(timeout=timeout)
