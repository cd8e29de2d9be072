# tests/test_models.py

from __future__ import annotations

import pytest

from offline_todo.errors import ValidationFailure
from offline_todo.storage.models import Category, CategoryColor, Priority, Task, normalize_task


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("High", Priority.HIGH),
        ("very low", Priority.VERY_LOW),
        ("very_low", Priority.VERY_LOW),
        ("VeryLow", Priority.VERY_LOW),
        ("HIGHEST", Priority.HIGHEST),
    ],
)
def test_priority_parse_accepts_loose_spellings(raw, expected) -> None:
    assert Priority.parse(raw) is expected


def test_priority_parse_rejects_unknown() -> None:
    with pytest.raises(ValueError):
        Priority.parse("urgent")
    with pytest.raises(ValueError):
        Priority.parse(None)


def test_task_from_record_validates() -> None:
    with pytest.raises(ValidationFailure):
        Task.from_record({"title": "   "})
    with pytest.raises(ValidationFailure):
        Task.from_record({"title": "x", "completed": "yes"})
    with pytest.raises(ValidationFailure):
        Task.from_record({"title": "x", "priority": "urgent"})

    t = Task.from_record({"title": "x", "category": "3", "timestamp": 10})
    assert t.category == 3
    assert t.priority is Priority.MEDIUM
    assert t.to_record(with_id=False) == {
        "title": "x",
        "description": "",
        "priority": "Medium",
        "category": 3,
        "completed": False,
        "timestamp": 10,
    }


def test_category_color_is_closed_set() -> None:
    assert Category.from_record({"name": "Work"}).color is CategoryColor.PRIMARY
    with pytest.raises(ValidationFailure):
        Category.from_record({"name": "Work", "color": "purple"})


def test_normalize_task_fills_missing_fields_without_mutating_input() -> None:
    raw = {"id": 1, "title": "old", "completed": False, "timestamp": 5}

    norm = normalize_task(raw)

    assert norm.changed
    assert set(norm.fixed) == {"priority", "category"}
    assert norm.record["priority"] == "Medium"
    assert norm.record["category"] is None
    assert "priority" not in raw


def test_normalize_task_is_stable_on_current_records() -> None:
    raw = {"title": "x", "priority": "Low", "category": None, "completed": True, "timestamp": 1}
    norm = normalize_task(raw)
    assert not norm.changed
    assert norm.record == raw


def test_normalize_task_canonicalizes_priority_spelling() -> None:
    norm = normalize_task({"title": "x", "priority": "very_low", "category": 2})
    assert norm.record["priority"] == "Very Low"
    assert norm.fixed == ["priority"]
