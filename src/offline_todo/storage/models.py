# src/offline_todo/storage/models.py

"""
Record types for the four local collections.

Records are stored as JSON documents; these dataclasses are the typed view the rest
of the app works with. `from_record` is the validation gate at the storage boundary.
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from ..errors import ValidationFailure


def now_ms() -> int:
    return int(time.time() * 1000)


class Priority(StrEnum):
    HIGHEST = "Highest"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"
    VERY_LOW = "Very Low"

    @classmethod
    def parse(cls, raw: Any) -> Priority:
        """Accept stored values plus loose spellings ("very_low", "VeryLow")."""
        if isinstance(raw, Priority):
            return raw
        if not isinstance(raw, str) or not raw.strip():
            raise ValueError(f"invalid priority: {raw!r}")
        key = raw.strip().replace(" ", "").replace("_", "").lower()
        for member in cls:
            if member.value.replace(" ", "").lower() == key:
                return member
        raise ValueError(f"invalid priority: {raw!r}")


class CategoryColor(StrEnum):
    PRIMARY = "primary"
    SECONDARY = "secondary"
    SUCCESS = "success"
    DANGER = "danger"
    WARNING = "warning"
    INFO = "info"
    LIGHT = "light"
    DARK = "dark"


def _req_str(raw: Mapping[str, Any], name: str, *, allow_empty: bool = True) -> str:
    val = raw.get(name, "")
    if val is None:
        val = ""
    if not isinstance(val, str):
        raise ValidationFailure(f"{name} must be a string")
    if not allow_empty and not val.strip():
        raise ValidationFailure(f"{name} is required")
    return val


def _opt_int(raw: Mapping[str, Any], name: str) -> int | None:
    val = raw.get(name)
    if val is None or val == "":
        return None
    if isinstance(val, bool):
        raise ValidationFailure(f"{name} must be an integer")
    try:
        return int(val)
    except (TypeError, ValueError):
        raise ValidationFailure(f"{name} must be an integer") from None


def _timestamp(raw: Mapping[str, Any]) -> int:
    ts = _opt_int(raw, "timestamp")
    return 0 if ts is None else ts


@dataclass(slots=True)
class Task:
    title: str
    description: str = ""
    priority: Priority = Priority.MEDIUM
    category: int | None = None  # soft reference to Category.id, may dangle
    completed: bool = False
    timestamp: int = 0
    id: int | None = None

    @classmethod
    def from_record(cls, raw: Mapping[str, Any]) -> Task:
        if not isinstance(raw, Mapping):
            raise ValidationFailure("task record must be an object")
        title = _req_str(raw, "title", allow_empty=False)
        try:
            priority = Priority.parse(raw.get("priority", Priority.MEDIUM))
        except ValueError as e:
            raise ValidationFailure(str(e)) from None
        completed = raw.get("completed", False)
        if not isinstance(completed, bool):
            raise ValidationFailure("completed must be a boolean")
        return cls(
            id=_opt_int(raw, "id"),
            title=title,
            description=_req_str(raw, "description"),
            priority=priority,
            category=_opt_int(raw, "category"),
            completed=completed,
            timestamp=_timestamp(raw),
        )

    def to_record(self, *, with_id: bool = True) -> dict[str, Any]:
        rec: dict[str, Any] = {
            "title": self.title,
            "description": self.description,
            "priority": self.priority.value,
            "category": self.category,
            "completed": self.completed,
            "timestamp": self.timestamp,
        }
        if with_id and self.id is not None:
            rec["id"] = self.id
        return rec


@dataclass(slots=True)
class Category:
    name: str
    description: str = ""
    color: CategoryColor = CategoryColor.PRIMARY
    count: int = 0  # advisory only, recomputed from tasks for display
    timestamp: int = 0
    id: int | None = None

    @classmethod
    def from_record(cls, raw: Mapping[str, Any]) -> Category:
        if not isinstance(raw, Mapping):
            raise ValidationFailure("category record must be an object")
        try:
            color = CategoryColor(raw.get("color") or CategoryColor.PRIMARY)
        except ValueError:
            raise ValidationFailure(f"invalid category color: {raw.get('color')!r}") from None
        return cls(
            id=_opt_int(raw, "id"),
            name=_req_str(raw, "name", allow_empty=False),
            description=_req_str(raw, "description"),
            color=color,
            count=_opt_int(raw, "count") or 0,
            timestamp=_timestamp(raw),
        )

    def to_record(self, *, with_id: bool = True) -> dict[str, Any]:
        rec: dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "color": self.color.value,
            "count": self.count,
            "timestamp": self.timestamp,
        }
        if with_id and self.id is not None:
            rec["id"] = self.id
        return rec


@dataclass(slots=True)
class KeyedRecord:
    """Integration or Setting: an opaque value under a unique key."""

    key: str
    value: Any = None
    timestamp: int = 0

    @classmethod
    def from_record(cls, raw: Mapping[str, Any]) -> KeyedRecord:
        if not isinstance(raw, Mapping):
            raise ValidationFailure("keyed record must be an object")
        return cls(
            key=_req_str(raw, "key", allow_empty=False),
            value=raw.get("value"),
            timestamp=_timestamp(raw),
        )

    def to_record(self) -> dict[str, Any]:
        return {"key": self.key, "value": self.value, "timestamp": self.timestamp}


Integration = KeyedRecord
Setting = KeyedRecord


DEFAULT_CATEGORIES: tuple[Category, ...] = (
    Category(name="Work", description="Tasks related to your professional work", color=CategoryColor.PRIMARY),
    Category(name="Personal", description="Personal tasks and errands", color=CategoryColor.SUCCESS),
    Category(name="Shopping", description="Shopping lists and purchases", color=CategoryColor.WARNING),
    Category(name="Health", description="Health and fitness related tasks", color=CategoryColor.INFO),
)


@dataclass(slots=True)
class Normalized:
    record: dict[str, Any]
    changed: bool = False
    fixed: list[str] = field(default_factory=list)


def normalize_task(raw: Mapping[str, Any]) -> Normalized:
    """
    Bring a stored task document up to the current shape.

    Pure: returns a new dict and never touches storage.
    - missing/unknown priority -> Medium
    - missing category -> None
    """
    rec = dict(raw)
    fixed: list[str] = []

    prio = rec.get("priority")
    try:
        canonical = Priority.parse(prio).value
    except ValueError:
        canonical = Priority.MEDIUM.value
    if prio != canonical:
        rec["priority"] = canonical
        fixed.append("priority")

    if "category" not in rec:
        rec["category"] = None
        fixed.append("category")

    return Normalized(record=rec, changed=bool(fixed), fixed=fixed)
