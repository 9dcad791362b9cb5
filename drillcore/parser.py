import logging
from pathlib import Path
from typing import Any, Dict, List, Tuple, Union

import yaml
from pydantic import ValidationError

from .exceptions import DrillFileError
from .models import DrillItem

logger = logging.getLogger(__name__)


def _read_yaml(file_path: Path) -> Any:
    try:
        content = file_path.read_text(encoding="utf-8")
        return yaml.safe_load(content)
    except FileNotFoundError:
        raise DrillFileError(file_path, "File not found.") from None
    except IOError as e:
        raise DrillFileError(file_path, f"Could not read file: {e}") from e
    except yaml.YAMLError as e:
        raise DrillFileError(file_path, f"Invalid YAML syntax: {e}") from e


def _process_entry(
    file_path: Path, idx: int, entry: Any
) -> Union[DrillItem, DrillFileError]:
    if not isinstance(entry, dict):
        return DrillFileError(
            file_path, "Drill entry must be a mapping.", drill_index=idx
        )
    try:
        return DrillItem.model_validate(entry)
    except ValidationError as e:
        error_details = e.errors()[0]
        field = ".".join(map(str, error_details["loc"]))
        raw_id = entry.get("id")
        return DrillFileError(
            file_path,
            error_details["msg"],
            drill_index=idx,
            drill_id=str(raw_id) if raw_id is not None else None,
            field_name=field,
        )


def load_drill_file(
    file_path: Path,
) -> Tuple[List[DrillItem], List[DrillFileError]]:
    """
    Parse a YAML drill file into DrillItems.

    The file holds a top-level mapping with a ``drills`` list. Each entry has
    an ``id`` plus optional ``prompt``, ``answer``, ``pos_pattern``,
    ``commonality``, ``unit``, ``pattern_group`` and ``is_canonical``.

    Returns:
        Tuple[List[DrillItem], List[DrillFileError]]: Valid drills, and one
        error per entry that failed validation or repeated an earlier id.

    Raises:
        DrillFileError: If the file is missing or unreadable, is not valid
            YAML, or has no ``drills`` list.
    """
    raw = _read_yaml(file_path)
    if not isinstance(raw, dict):
        raise DrillFileError(
            file_path, "Top level of YAML must be a mapping with a 'drills' list."
        )
    entries = raw.get("drills")
    if not isinstance(entries, list):
        raise DrillFileError(file_path, "Missing or invalid 'drills' list.")

    drills: List[DrillItem] = []
    errors: List[DrillFileError] = []
    seen: Dict[str, int] = {}

    for idx, entry in enumerate(entries):
        result = _process_entry(file_path, idx, entry)
        if isinstance(result, DrillFileError):
            errors.append(result)
            continue
        if result.id in seen:
            errors.append(
                DrillFileError(
                    file_path,
                    f"Duplicate id; first defined at index {seen[result.id]}.",
                    drill_index=idx,
                    drill_id=result.id,
                )
            )
            continue
        seen[result.id] = idx
        drills.append(result)

    logger.info(
        f"Loaded {len(drills)} drills from {file_path} with {len(errors)} errors."
    )
    return drills, errors


def drill_metadata(drills: List[DrillItem]) -> List[Dict[str, Any]]:
    """Pattern-group metadata records for the given drills."""
    return [
        {
            "id": d.id,
            "pattern_group": d.pattern_group,
            "is_canonical": d.is_canonical,
        }
        for d in drills
    ]
