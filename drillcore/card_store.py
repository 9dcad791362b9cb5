"""
The card store: the authoritative in-memory set of drill cards, with a
load/save contract against an injected key-value store.

Persistence never blocks scheduling correctness. In-memory state is updated
before a save is issued, and save or load failures are logged and reported
through ``last_save_ok`` rather than raised.
"""

import logging
from concurrent.futures import Executor, Future
from typing import Dict, Iterator, List, Optional

from .constants import CARDS_STORAGE_KEY
from .exceptions import MarshallingError
from .models import Card
from .storage.base import KeyValueStore
from .storage.marshalling import blob_to_cards, cards_to_blob

logger = logging.getLogger(__name__)


class CardStore:
    """
    Holds every card keyed by drill id.

    If an executor is supplied, writes are dispatched to it and failures are
    logged from the completion callback. Use a single-worker executor so
    snapshots land in order.
    """

    def __init__(
        self,
        kv_store: KeyValueStore,
        storage_key: str = CARDS_STORAGE_KEY,
        executor: Optional[Executor] = None,
    ):
        self._kv = kv_store
        self.storage_key = storage_key
        self._executor = executor
        self._cards: Dict[str, Card] = {}
        self._pending: Optional[Future] = None
        self.last_save_ok: bool = True

    # --- Mapping-style access ---

    @property
    def cards(self) -> Dict[str, Card]:
        return self._cards

    def __contains__(self, card_id: object) -> bool:
        return card_id in self._cards

    def __len__(self) -> int:
        return len(self._cards)

    def __iter__(self) -> Iterator[Card]:
        return iter(list(self._cards.values()))

    def get(self, card_id: str) -> Optional[Card]:
        return self._cards.get(card_id)

    def values(self) -> List[Card]:
        return list(self._cards.values())

    def add(self, card: Card) -> bool:
        """Add ``card`` unless one with the same id exists. Returns True if added."""
        if card.id in self._cards:
            return False
        self._cards[card.id] = card
        return True

    def replace(self, card: Card) -> None:
        self._cards[card.id] = card

    # --- Persistence ---

    def load(self) -> int:
        """
        Replace in-memory cards with the persisted set.

        An unreachable store or an unreadable blob leaves the store empty;
        individual unreadable records are skipped.

        Returns:
            int: Number of cards loaded.
        """
        try:
            blob = self._kv.load(self.storage_key)
        except Exception as e:
            logger.error(f"Failed to load cards from storage: {e}")
            self._cards = {}
            return 0

        if not blob:
            self._cards = {}
            return 0

        try:
            self._cards = blob_to_cards(blob, strict=False)
        except MarshallingError as e:
            logger.warning(f"Persisted cards unreadable, starting empty: {e}")
            self._cards = {}
            return 0

        logger.info(f"Loaded {len(self._cards)} cards from storage.")
        return len(self._cards)

    def save(self) -> bool:
        """
        Persist a snapshot of every card. Never raises.

        Returns:
            bool: False if the save failed synchronously; True if it succeeded
            or was dispatched to the executor.
        """
        try:
            blob = cards_to_blob(self._cards)
        except (TypeError, ValueError) as e:
            logger.error(f"Failed to serialize cards: {e}")
            self.last_save_ok = False
            return False

        if self._executor is None:
            return self._write(blob)

        self._pending = self._executor.submit(self._write, blob)
        return True

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Wait for the most recently dispatched save. Returns its outcome."""
        if self._pending is not None:
            self._pending.result(timeout=timeout)
            self._pending = None
        return self.last_save_ok

    def _write(self, blob: str) -> bool:
        try:
            saved = self._kv.save(self.storage_key, blob)
        except Exception as e:
            logger.error(f"Storage save failed, continuing: {e}")
            self.last_save_ok = False
            return False
        if saved is False:
            logger.error("Storage reported a failed save, continuing.")
            self.last_save_ok = False
            return False
        self.last_save_ok = True
        return True
