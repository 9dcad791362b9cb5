"""
Conversion from classified answer errors to a review rating.

Error classification itself happens upstream; this only maps its output to a
grade the scheduler understands.
"""

from typing import Any, Mapping, Optional, Sequence, Union

from .models import ErrorInfo, Rating

ErrorLike = Union[ErrorInfo, Mapping[str, Any]]

_AGAIN_TYPES = {"grammar", "word_order"}
_HARD_TYPES = {"spelling", "confusable"}


def _error_type(error: ErrorLike) -> Optional[str]:
    if isinstance(error, Mapping):
        return error.get("type")
    return error.type


def error_to_rating(errors: Optional[Sequence[ErrorLike]]) -> Rating:
    """
    Map a list of classified errors to a rating.

    No errors is Good; three or more is Again. Otherwise the first error
    decides: grammar and word-order mistakes are Again, spelling and
    confusables are Hard, and anything else is Hard for a single error or
    Again for several.
    """
    if not errors:
        return Rating.Good
    if len(errors) >= 3:
        return Rating.Again

    primary = _error_type(errors[0])
    if primary in _AGAIN_TYPES:
        return Rating.Again
    if primary in _HARD_TYPES:
        return Rating.Hard
    return Rating.Again if len(errors) > 1 else Rating.Hard
