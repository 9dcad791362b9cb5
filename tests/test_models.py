import datetime
from pathlib import Path

import pytest
from pydantic import ValidationError

from drillcore.constants import ERROR_HISTORY_LIMIT
from drillcore.exceptions import DrillFileError
from drillcore.models import Card, CardState, DrillItem, DrillMeta, ErrorInfo


class TestCard:
    def test_defaults(self):
        card = Card(id="a")
        assert card.state == CardState.New
        assert card.stability == 0.0
        assert card.difficulty == 0.0
        assert card.commonality == 0.5
        assert card.unit == 1
        assert card.last_review is None
        assert card.error_history == []
        assert card.graduated is False
        assert card.due.tzinfo is not None

    def test_id_is_coerced_to_str(self):
        assert Card(id=42).id == "42"

    @pytest.mark.parametrize(
        "field, value",
        [
            ("difficulty", 10.5),
            ("stability", -1.0),
            ("commonality", 1.2),
            ("reps", -1),
            ("id", ""),
        ],
    )
    def test_invalid_values_rejected(self, field, value):
        data = {"id": "a", field: value}
        with pytest.raises(ValidationError):
            Card(**data)

    def test_unknown_fields_rejected(self):
        with pytest.raises(ValidationError):
            Card(id="a", front="?")

    def test_assignment_is_validated(self):
        card = Card(id="a")
        with pytest.raises(ValidationError):
            card.difficulty = 11

    def test_record_error_keeps_most_recent(self, now):
        card = Card(id="a")
        for i in range(ERROR_HISTORY_LIMIT + 2):
            card.record_error(f"e{i}", now)
        assert len(card.error_history) == ERROR_HISTORY_LIMIT
        assert card.error_history[0].type == "e2"

    def test_is_due(self, now):
        later = now + datetime.timedelta(hours=1)
        assert Card(id="a", due=later).is_due(now)
        review = Card(id="b", state=CardState.Review, due=later)
        assert not review.is_due(now)
        assert review.is_due(later)


class TestDrillItem:
    def test_none_values_fall_back_to_defaults(self):
        item = DrillItem.model_validate(
            {"id": 1, "pos_pattern": None, "commonality": None, "unit": None}
        )
        assert item.id == "1"
        assert item.pos_pattern == ""
        assert item.commonality == 0.5
        assert item.unit == 1
        assert item.is_canonical is True

    def test_extra_fields_ignored(self):
        item = DrillItem.model_validate({"id": "a", "notes": "x"})
        assert not hasattr(item, "notes")


class TestDrillMeta:
    def test_defaults(self):
        meta = DrillMeta.model_validate({"pattern_group": "", "is_canonical": None})
        assert meta.pattern_group is None
        assert meta.is_canonical is True

    def test_group_coerced_to_str(self):
        assert DrillMeta(pattern_group=3).pattern_group == "3"


def test_error_info_requires_type():
    with pytest.raises(ValidationError):
        ErrorInfo(type="")
    assert ErrorInfo.model_validate({"type": "grammar", "extra": 1}).type == "grammar"


def test_drill_file_error_str():
    err = DrillFileError(
        Path("/tmp/drills.yaml"),
        "bad value",
        drill_index=2,
        drill_id="d3",
        field_name="commonality",
    )
    assert str(err) == (
        "File: drills.yaml | Drill Index: 2 | ID: 'd3' | "
        "Field: 'commonality' | Error: bad value"
    )
    assert str(DrillFileError(Path("x.yaml"), "oops")) == "File: x.yaml | Error: oops"
