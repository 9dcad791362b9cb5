"""
Session queue builder.

Builds the ordered list of cards for a study session:
1. Select active (non-graduated) cards that are due, plus every New card
2. New cards first, most common first; then the rest by due time
3. Truncate to the session size

Drawing from the queue avoids serving the same grammatical pattern twice in a
row by pulling the first card with a different pattern to the front.
"""

import logging
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from .constants import DEFAULT_SESSION_SIZE
from .models import Card, CardState
from .scheduler import ensure_utc

logger = logging.getLogger(__name__)


def get_due_cards(cards: Iterable[Card], now: datetime) -> List[Card]:
    """Active cards that are due at ``now``; New cards are always eligible."""
    now = ensure_utc(now)
    return [
        card
        for card in cards
        if not card.graduated and card.is_due(now)
    ]


def _queue_sort_key(card: Card) -> Tuple[int, float, float]:
    if card.state == CardState.New:
        return (0, -card.commonality, 0.0)
    return (1, 0.0, ensure_utc(card.due).timestamp())


def build_session_queue(
    cards: Iterable[Card],
    now: datetime,
    max_cards: int = DEFAULT_SESSION_SIZE,
) -> List[Card]:
    """Due cards in session order, truncated to ``max_cards``."""
    due = get_due_cards(cards, now)
    due.sort(key=_queue_sort_key)
    return due[:max_cards]


class SessionQueue:
    """
    Transient, mutable session queue plus the pattern of the last graded card.

    Holds references to the cards owned by the card store; it is never
    persisted.
    """

    def __init__(self, max_cards: int = DEFAULT_SESSION_SIZE):
        self.max_cards = max_cards
        self.cards: List[Card] = []
        self.last_pattern: Optional[str] = None

    def __len__(self) -> int:
        return len(self.cards)

    def rebuild(
        self,
        cards: Iterable[Card],
        now: datetime,
        max_cards: Optional[int] = None,
    ) -> List[Card]:
        self.cards = build_session_queue(
            cards, now, max_cards if max_cards is not None else self.max_cards
        )
        logger.debug(f"Session queue rebuilt with {len(self.cards)} cards.")
        return self.cards

    def next_card(self, cards: Iterable[Card], now: datetime) -> Optional[Card]:
        """
        Pop the next card to study, rebuilding the queue when it runs dry.

        Returns:
            The next Card, or None if no cards are due.
        """
        if not self.cards:
            self.rebuild(cards, now)
        if not self.cards:
            logger.info("No cards due.")
            return None

        if self.last_pattern:
            idx = next(
                (
                    i
                    for i, c in enumerate(self.cards)
                    if c.pos_pattern != self.last_pattern
                ),
                -1,
            )
            if idx > 0:
                self.cards.insert(0, self.cards.pop(idx))

        return self.cards.pop(0)

    def record_pattern(self, pattern: Optional[str]) -> None:
        """Remember the pattern of the card the learner just graded."""
        self.last_pattern = pattern

    def clear(self) -> None:
        self.cards = []
