"""
Drill graduation and reactivation.

Drills are grouped by grammatical pattern. Once a variant is mastered it is
retired ("graduated") from active rotation, while every pattern group keeps one
actively reviewed canonical representative. When the canonical starts failing,
retired siblings are brought back.
"""

import logging
import random
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from pydantic import ValidationError

from .models import Card, CardState, DrillMeta, Rating
from .scheduler import SchedulerConfig, ensure_utc

logger = logging.getLogger(__name__)

# Returns its input re-ordered; the caller takes a prefix.
Selector = Callable[[List[Card]], List[Card]]


def random_shuffle(cards: List[Card]) -> List[Card]:
    """Uniformly random permutation of ``cards`` (the input is not modified)."""
    return random.sample(cards, len(cards))


def _iter_metadata_records(metadata: Any) -> Iterable[Any]:
    if metadata is None:
        return []
    if isinstance(metadata, Mapping):
        if "drills" in metadata:
            return metadata.get("drills") or []
        # {id: {pattern_group, is_canonical}}
        return [
            dict(value, id=key) if isinstance(value, Mapping) else value
            for key, value in metadata.items()
        ]
    return metadata


class GraduationManager:
    """
    Owns the drill metadata side table and applies graduation and
    reactivation rules to cards held elsewhere.
    """

    def __init__(
        self,
        config: Optional[SchedulerConfig] = None,
        selector: Optional[Selector] = None,
    ):
        self.config = config or SchedulerConfig()
        self.selector: Selector = selector or random_shuffle
        self.drill_meta: Dict[str, DrillMeta] = {}

    def load_drill_meta(self, metadata: Any) -> int:
        """
        Load pattern-group metadata.

        Accepts ``{"drills": [...]}``, a list of records, or an
        ``{id: record}`` mapping. Records are dicts or objects with ``id``,
        optional ``pattern_group`` and optional ``is_canonical`` (default
        True). Records without an id are skipped.

        Returns:
            int: Number of records loaded.
        """
        loaded = 0
        for idx, record in enumerate(_iter_metadata_records(metadata)):
            if not isinstance(record, Mapping):
                record = {
                    "id": getattr(record, "id", None),
                    "pattern_group": getattr(record, "pattern_group", None),
                    "is_canonical": getattr(record, "is_canonical", None),
                }
            drill_id = record.get("id")
            if drill_id is None or drill_id == "":
                logger.warning(f"Skipping drill metadata entry {idx}: no id.")
                continue
            try:
                meta = DrillMeta.model_validate(record)
            except ValidationError as e:
                logger.warning(
                    f"Skipping malformed drill metadata for {drill_id}: {e}"
                )
                continue
            self.drill_meta[str(drill_id)] = meta
            loaded += 1

        logger.info(f"Loaded drill metadata for {loaded} drills.")
        return loaded

    def get_meta(self, card_id: str) -> Optional[DrillMeta]:
        return self.drill_meta.get(card_id)

    def get_sibling_cards(
        self, cards: Mapping[str, Card], pattern_group: Optional[str]
    ) -> List[Card]:
        """All cards whose metadata places them in ``pattern_group``."""
        if not pattern_group:
            return []
        siblings = []
        for card_id, card in cards.items():
            meta = self.drill_meta.get(card_id)
            if meta is not None and meta.pattern_group == pattern_group:
                siblings.append(card)
        return siblings

    def get_graduated_siblings(
        self, cards: Mapping[str, Card], pattern_group: Optional[str]
    ) -> List[Card]:
        return [
            c for c in self.get_sibling_cards(cards, pattern_group) if c.graduated
        ]

    def check_graduation(
        self,
        card: Card,
        rating: int,
        cards: Mapping[str, Card],
        now: datetime,
    ) -> bool:
        """
        Retire ``card`` from rotation if it has been mastered.

        A canonical card is swapped with a random graduated sibling so the
        group keeps exactly one active canonical; with no graduated sibling it
        stays. A non-canonical card graduates only while another active
        sibling remains.

        Returns:
            bool: True if any card was graduated or promoted.
        """
        if rating < Rating.Good or card.graduated:
            return False

        meta = self.drill_meta.get(card.id)
        if meta is None:
            return False

        cfg = self.config
        if not (
            card.consecutive_correct >= cfg.graduation_consecutive
            and card.scheduled_days >= cfg.graduation_min_interval
        ):
            return False

        now = ensure_utc(now)
        siblings = [
            s
            for s in self.get_sibling_cards(cards, meta.pattern_group)
            if s.id != card.id
        ]

        if meta.is_canonical:
            graduated_siblings = [s for s in siblings if s.graduated]
            if not graduated_siblings:
                # The pattern needs an active representative.
                return False
            new_canonical = self.selector(graduated_siblings)[0]

            card.graduated = True
            card.graduation_date = now
            meta.is_canonical = False

            new_canonical.graduated = False
            new_canonical.graduation_date = None
            new_canonical.consecutive_correct = 0
            new_canonical.state = CardState.Review
            new_canonical.due = now
            self.drill_meta[new_canonical.id].is_canonical = True

            logger.info(
                f"Canonical swap: {card.id} -> {new_canonical.id} "
                f"in {meta.pattern_group}"
            )
            return True

        active_siblings = [s for s in siblings if not s.graduated]
        if not active_siblings:
            return False
        card.graduated = True
        card.graduation_date = now
        logger.info(f"Graduated: {card.id} from pattern {meta.pattern_group}")
        return True

    def check_reactivation(
        self, card: Card, cards: Mapping[str, Card], now: datetime
    ) -> List[Card]:
        """
        Bring graduated siblings back when a canonical card keeps failing.

        Counts the canonical's error records inside the trailing window; at
        the threshold up to ``reactivation_max_siblings`` randomly chosen
        graduated siblings return to Relearning, due immediately.

        Returns:
            List[Card]: The reactivated siblings.
        """
        meta = self.drill_meta.get(card.id)
        if meta is None or not meta.is_canonical or not meta.pattern_group:
            return []

        cfg = self.config
        now = ensure_utc(now)
        window_start = now - timedelta(days=cfg.reactivation_window_days)
        recent_lapses = sum(
            1
            for err in card.error_history
            if ensure_utc(err.timestamp) > window_start
        )
        if recent_lapses < cfg.reactivation_lapse_threshold:
            return []

        graduated = [
            s
            for s in self.get_graduated_siblings(cards, meta.pattern_group)
            if s.id != card.id
        ]
        to_reactivate = self.selector(graduated)[: cfg.reactivation_max_siblings]

        for sibling in to_reactivate:
            sibling.graduated = False
            sibling.state = CardState.Relearning
            sibling.consecutive_correct = 0
            sibling.learning_step = 0
            sibling.due = now
            logger.info(
                f"Reactivated: {sibling.id} due to canonical lapse on {card.id}"
            )
        return to_reactivate

    def get_graduation_stats(self, cards: Mapping[str, Card]) -> Dict[str, Any]:
        total = len(cards)
        graduated = sum(1 for c in cards.values() if c.graduated)
        patterns = {
            m.pattern_group for m in self.drill_meta.values() if m.pattern_group
        }
        return {
            "total": total,
            "graduated": graduated,
            "active": total - graduated,
            "patterns": len(patterns),
            "percent_graduated": round(graduated / total * 100, 1)
            if total
            else 0.0,
        }
