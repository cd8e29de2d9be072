# tests/test_transfer.py

from __future__ import annotations

import json
import re
from pathlib import Path

import pytest

from offline_todo.errors import ValidationFailure
from offline_todo.storage.entity_store import EntityStore
from offline_todo.storage.models import Category, CategoryColor, Priority, Task
from offline_todo.storage.schema import SchemaManager
from offline_todo.transfer import (
    EXPORT_VERSION,
    export_snapshot,
    export_tasks_csv,
    import_file,
    import_snapshot,
    write_export,
)

ISO_Z = re.compile(r"^\d{4}-\d\d-\d\dT\d\d:\d\d:\d\d\.\d{3}Z$")


def _fill(store: EntityStore) -> int:
    store.categories.get_all()
    errands = store.categories.add(Category(name="Errands", color=CategoryColor.DARK))
    store.tasks.add(Task(title="Post letter", category=errands, priority=Priority.LOW))
    store.tasks.add(Task(title="Read", completed=True))
    store.integrations.put("calendar", {"enabled": True})
    return errands


def test_export_snapshot_shape(store) -> None:
    _fill(store)

    snap = export_snapshot(store)

    assert set(snap) == {"todos", "categories", "integrations", "exportDate", "version"}
    assert snap["version"] == EXPORT_VERSION
    assert ISO_Z.match(snap["exportDate"])
    assert [t["title"] for t in snap["todos"]] == ["Post letter", "Read"]
    assert len(snap["categories"]) == 5
    assert snap["integrations"][0]["key"] == "calendar"


def test_export_import_roundtrip_remaps_categories(store, tmp_path: Path) -> None:
    _fill(store)
    original = {t.title: t for t in store.tasks.get_all()}
    path = write_export(store, tmp_path / "export.json")

    other = EntityStore(SchemaManager(tmp_path / "other.sqlite3"))
    other.categories.get_all()  # occupy ids 1..4 so remapping matters
    other.tasks.add(Task(title="will be replaced"))
    other.settings.put("apiUrl", "http://old.test")

    counts = import_file(other, path)

    assert (counts.todos, counts.categories, counts.integrations) == (2, 5, 1)
    cats = {c.name: c.id for c in other.categories.get_all()}
    tasks = {t.title: t for t in other.tasks.get_all()}
    assert set(tasks) == {"Post letter", "Read"}
    assert tasks["Post letter"].category == cats["Errands"]
    assert tasks["Post letter"].timestamp == original["Post letter"].timestamp
    assert other.integrations.get_value("calendar") == {"enabled": True}
    # destructive replace: settings not in the payload are gone
    assert other.settings.get_all() == []


def test_import_clears_references_to_missing_categories(store, tmp_path: Path) -> None:
    cats = {c.name: c.id for c in store.categories.get_all()}
    store.tasks.add(Task(title="was personal", category=cats["Personal"]))
    store.tasks.add(Task(title="never matched", category=999))
    store.tasks.add(Task(title="still work", category=cats["Work"]))
    store.categories.delete(cats["Personal"])
    path = write_export(store, tmp_path / "export.json")

    other = EntityStore(SchemaManager(tmp_path / "fresh.sqlite3"))
    import_file(other, path)

    names = {c.id: c.name for c in other.categories.get_all()}
    tasks = {t.title: t for t in other.tasks.get_all()}
    assert sorted(names.values()) == ["Health", "Shopping", "Work"]
    assert tasks["was personal"].category is None
    assert tasks["never matched"].category is None
    assert names[tasks["still work"].category] == "Work"


def test_import_keeps_keyed_record_timestamps(store) -> None:
    import_snapshot(
        store,
        {
            "integrations": [{"key": "calendar", "value": {"on": True}, "timestamp": 1234}],
            "settings": [{"key": "apiUrl", "value": "http://x.test", "timestamp": 55}],
        },
    )

    cal = store.integrations.get("calendar")
    api = store.settings.get("apiUrl")
    assert cal is not None and cal.timestamp == 1234
    assert api is not None and api.timestamp == 55


def test_import_restores_optional_settings(store) -> None:
    import_snapshot(store, {"todos": [], "settings": [{"key": "apiUrl", "value": "http://x.test"}]})

    assert store.settings.get_value("apiUrl") == "http://x.test"


@pytest.mark.parametrize(
    "payload",
    [
        [],
        {"exportDate": "2024-01-01"},
        {"todos": "nope"},
        {"todos": [{"title": ""}]},
        {"categories": [{"name": "x", "color": "purple"}]},
        {"integrations": [{"value": 1}]},
    ],
)
def test_invalid_import_leaves_store_untouched(store, payload) -> None:
    store.tasks.add(Task(title="keep me"))

    with pytest.raises(ValidationFailure):
        import_snapshot(store, payload)

    assert [t.title for t in store.tasks.get_all()] == ["keep me"]


def test_import_file_reports_bad_json(store, tmp_path: Path) -> None:
    bad = tmp_path / "bad.json"
    bad.write_text("{not json", "utf-8")

    with pytest.raises(ValidationFailure):
        import_file(store, bad)
    with pytest.raises(ValidationFailure):
        import_file(store, tmp_path / "missing.json")


def test_tasks_csv(store) -> None:
    task_id = store.tasks.add(Task(title='Say "hi"', description="a, b", category=3))

    lines = export_tasks_csv(store).split("\n")

    assert lines[0] == "id,title,description,priority,category,completed,timestamp"
    fields = lines[1].split(",")
    assert fields[0] == str(task_id)
    assert lines[1].startswith(f'{task_id},"Say ""hi""","a, b","Medium",3,false,')
    assert ISO_Z.match(fields[-1])


def test_write_export_is_valid_json(store, tmp_path: Path) -> None:
    path = write_export(store, tmp_path / "nested" / "out.json")

    data = json.loads(path.read_text("utf-8"))
    assert data["version"] == "1.0"
    assert not (tmp_path / "nested" / "out.json.tmp").exists()
