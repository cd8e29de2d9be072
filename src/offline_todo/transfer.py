# src/offline_todo/transfer.py

"""
Full-dataset export/import.

JSON snapshot: {todos, categories, integrations, exportDate, version}
CSV (tasks only): id,title,description,priority,category,completed,timestamp

Import is a destructive full replace, so the whole payload is validated before
anything local is deleted.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from .errors import StorageFailure, ValidationFailure
from .storage.entity_store import EntityStore
from .storage.models import Category, KeyedRecord, Task

logger = logging.getLogger(__name__)

EXPORT_VERSION = "1.0"
CSV_COLUMNS = ("id", "title", "description", "priority", "category", "completed", "timestamp")


def _iso(ms: int) -> str:
    dt = datetime.fromtimestamp(ms / 1000.0, tz=UTC)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def export_snapshot(store: EntityStore) -> dict[str, Any]:
    return {
        "todos": [t.to_record() for t in store.tasks.get_all()],
        "categories": [c.to_record() for c in store.categories.get_all()],
        "integrations": [i.to_record() for i in store.integrations.get_all()],
        "exportDate": datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        "version": EXPORT_VERSION,
    }


def default_export_name(suffix: str = "json") -> str:
    return f"todo-app-export-{datetime.now().strftime('%Y-%m-%d')}.{suffix}"


def _write_atomic(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(text, "utf-8")
    os.replace(tmp, path)
    with contextlib.suppress(Exception):
        # Integrations may hold credentials: keep the file private on disk.
        os.chmod(path, 0o600)
    return path


def write_export(store: EntityStore, path: str | Path) -> Path:
    snapshot = export_snapshot(store)
    out = _write_atomic(Path(path), json.dumps(snapshot, ensure_ascii=False, indent=2))
    logger.info(
        "Exported %d todos, %d categories, %d integrations to %s",
        len(snapshot["todos"]),
        len(snapshot["categories"]),
        len(snapshot["integrations"]),
        out,
    )
    return out


def _csv_text(value: str) -> str:
    return '"' + value.replace('"', '""') + '"'


def export_tasks_csv(store: EntityStore) -> str:
    lines = [",".join(CSV_COLUMNS)]
    for t in store.tasks.get_all():
        lines.append(
            ",".join(
                [
                    str(t.id),
                    _csv_text(t.title),
                    _csv_text(t.description or ""),
                    _csv_text(t.priority.value),
                    "" if t.category is None else str(t.category),
                    "true" if t.completed else "false",
                    _iso(t.timestamp),
                ]
            )
        )
    return "\n".join(lines)


def write_tasks_csv(store: EntityStore, path: str | Path) -> Path:
    return _write_atomic(Path(path), export_tasks_csv(store))


@dataclass(slots=True)
class Snapshot:
    todos: list[Task] = field(default_factory=list)
    categories: list[Category] = field(default_factory=list)
    integrations: list[KeyedRecord] = field(default_factory=list)
    settings: list[KeyedRecord] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class ImportCounts:
    todos: int
    categories: int
    integrations: int
    settings: int


def _records(data: dict[str, Any], key: str, parse: Any) -> list[Any]:
    raw = data.get(key)
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValidationFailure(f"'{key}' must be a list")
    out = []
    for i, item in enumerate(raw):
        try:
            out.append(parse(item))
        except ValidationFailure as e:
            raise ValidationFailure(f"{key}[{i}]: {e}") from None
    return out


def validate_snapshot(data: Any) -> Snapshot:
    """Parse an import payload without touching the store."""
    if not isinstance(data, dict):
        raise ValidationFailure("Invalid import file format")
    if not any(isinstance(data.get(k), list) for k in ("todos", "categories", "integrations")):
        raise ValidationFailure("Invalid import file format")
    return Snapshot(
        todos=_records(data, "todos", Task.from_record),
        categories=_records(data, "categories", Category.from_record),
        integrations=_records(data, "integrations", KeyedRecord.from_record),
        settings=_records(data, "settings", KeyedRecord.from_record),
    )


def read_import_file(path: str | Path) -> Any:
    try:
        return json.loads(Path(path).read_text("utf-8"))
    except OSError as e:
        raise ValidationFailure(f"Failed to read file: {e}") from e
    except ValueError as e:
        raise ValidationFailure(f"Import file is not valid JSON: {e}") from e


def import_snapshot(store: EntityStore, data: Any) -> ImportCounts:
    """
    Replace all four local collections with the payload.

    Ids are reassigned by the store. Task.category references to imported
    categories are remapped to the new ids; references to categories missing
    from the payload are cleared.
    """
    snap = validate_snapshot(data)

    for coll in (store.tasks, store.categories, store.integrations, store.settings):
        coll.clear()

    id_map: dict[int, int] = {}
    for cat in snap.categories:
        old_id = cat.id
        new_id = store.categories.add(cat, keep_timestamp=True)
        if old_id is not None:
            id_map[old_id] = new_id

    for task in snap.todos:
        if task.category is not None:
            # Unmatched references would alias a reassigned id: drop them.
            task.category = id_map.get(task.category)
        store.tasks.add(task, keep_timestamp=True)

    for rec in snap.integrations:
        store.integrations.put(rec.key, rec.value, timestamp=rec.timestamp)
    for rec in snap.settings:
        store.settings.put(rec.key, rec.value, timestamp=rec.timestamp)

    counts = ImportCounts(
        todos=len(snap.todos),
        categories=len(snap.categories),
        integrations=len(snap.integrations),
        settings=len(snap.settings),
    )
    logger.info("Imported %s", counts)
    return counts


def import_file(store: EntityStore, path: str | Path) -> ImportCounts:
    data = read_import_file(path)
    try:
        return import_snapshot(store, data)
    except StorageFailure:
        logger.exception("Import from %s failed after validation", path)
        raise
