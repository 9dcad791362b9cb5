"""
Utility functions for converting the card map to and from its persisted JSON
blob. Keeps the store and the card store free of format details.
"""

import json
import logging
from typing import Any, Dict, Mapping

from pydantic import ValidationError

from ..exceptions import MarshallingError
from ..models import Card

logger = logging.getLogger(__name__)


def cards_to_blob(cards: Mapping[str, Card]) -> str:
    """
    Serialize the card map into a JSON object keyed by card id.

    Every persisted field is written; datetimes as ISO-8601 strings and
    states as their integer value.
    """
    payload = {
        card_id: card.model_dump(mode="json") for card_id, card in cards.items()
    }
    return json.dumps(payload)


def blob_to_cards(blob: str, strict: bool = True) -> Dict[str, Card]:
    """
    Parse a persisted blob back into a card map.

    With ``strict=False`` individual records that fail validation are logged
    and skipped instead of failing the whole blob.

    Raises:
        MarshallingError: If the blob is not valid JSON, is not an object, or
            (strict mode) contains a record that fails Card validation.
    """
    try:
        payload = json.loads(blob)
    except json.JSONDecodeError as e:
        raise MarshallingError(
            f"Persisted cards are not valid JSON: {e}", original_exception=e
        ) from e

    if not isinstance(payload, dict):
        raise MarshallingError("Persisted cards must be a JSON object.")

    cards: Dict[str, Card] = {}
    for card_id, record in payload.items():
        try:
            cards[str(card_id)] = record_to_card(card_id, record)
        except MarshallingError as e:
            if strict:
                raise
            logger.warning(f"Skipping unreadable card record: {e}")
    return cards


def record_to_card(card_id: str, record: Any) -> Card:
    """Build a Card from one persisted record; the map key wins over ``id``."""
    if not isinstance(record, dict):
        raise MarshallingError(f"Persisted card {card_id} is not an object.")
    data = dict(record)
    data["id"] = str(card_id)
    try:
        return Card(**data)
    except ValidationError as e:
        raise MarshallingError(
            f"Failed to parse card {card_id} from stored record. Error: {e}",
            original_exception=e,
        ) from e
