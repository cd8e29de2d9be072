# src/offline_todo/storage/entity_store.py

from __future__ import annotations

import contextlib
import json
import logging
import sqlite3
import threading
from collections.abc import Callable, Iterable, Iterator
from typing import Any

from ..errors import StorageFailure, ValidationFailure
from .models import (
    DEFAULT_CATEGORIES,
    Category,
    KeyedRecord,
    Task,
    normalize_task,
    now_ms,
)
from .schema import COLLECTION_NAMES, SchemaManager, StoreHandle

logger = logging.getLogger(__name__)

MutationHook = Callable[[str], None]


def _dumps(doc: dict[str, Any]) -> str:
    try:
        return json.dumps(doc, ensure_ascii=False)
    except (TypeError, ValueError) as e:
        raise ValidationFailure(f"record is not JSON-serializable: {e}") from e


def _loads(raw: str | None) -> dict[str, Any] | None:
    if not raw:
        return None
    try:
        val = json.loads(raw)
    except ValueError:
        return None
    return val if isinstance(val, dict) else None


class _IdCollection:
    """Shared plumbing for collections whose ids are assigned by the store."""

    name: str = ""

    def __init__(self, store: EntityStore) -> None:
        self._store = store

    def _tx(self) -> contextlib.AbstractContextManager[sqlite3.Connection]:
        return self._store.handle().transaction()

    def _rows(self, where: str = "", params: Iterable[Any] = ()) -> list[dict[str, Any]]:
        with self._tx() as conn:
            rows = conn.execute(
                f"SELECT id, data FROM {self.name} {where} ORDER BY id ASC", tuple(params)
            ).fetchall()
        out: list[dict[str, Any]] = []
        for row in rows:
            doc = _loads(row["data"])
            if doc is None:
                logger.warning("Skipping unreadable %s row id=%s", self.name, row["id"])
                continue
            doc["id"] = int(row["id"])
            out.append(doc)
        return out

    def _insert(self, doc: dict[str, Any]) -> int:
        doc = {k: v for k, v in doc.items() if k != "id"}
        data = _dumps(doc)
        with self._store.locked(self.name):
            with self._tx() as conn:
                cur = conn.execute(f"INSERT INTO {self.name}(data) VALUES (?)", (data,))
                rowid = cur.lastrowid
            if rowid is None:
                raise StorageFailure(f"SQLite did not return lastrowid for {self.name} insert")
            self._store._mutated(self.name)
        logger.debug("%s add id=%s", self.name, rowid)
        return int(rowid)

    def _replace(self, record_id: int, doc: dict[str, Any]) -> None:
        with self._store.locked(self.name):
            with self._tx() as conn:
                row = conn.execute(
                    f"SELECT data FROM {self.name} WHERE id = ?", (int(record_id),)
                ).fetchone()
                if row is None:
                    raise StorageFailure(f"{self.name} id={record_id} does not exist")
                old = _loads(row["data"]) or {}
                doc = {k: v for k, v in doc.items() if k != "id"}
                # timestamp is set once at creation
                if "timestamp" in old:
                    doc["timestamp"] = old["timestamp"]
                conn.execute(
                    f"UPDATE {self.name} SET data = ? WHERE id = ?", (_dumps(doc), int(record_id))
                )
            self._store._mutated(self.name)

    def delete(self, record_id: int) -> None:
        """Deleting a missing id is a no-op."""
        with self._store.locked(self.name):
            with self._tx() as conn:
                cur = conn.execute(f"DELETE FROM {self.name} WHERE id = ?", (int(record_id),))
            if cur.rowcount:
                self._store._mutated(self.name)

    def clear(self) -> None:
        with self._store.locked(self.name):
            with self._tx() as conn:
                conn.execute(f"DELETE FROM {self.name}")
            self._store._mutated(self.name)
        logger.info("%s cleared", self.name)

    def count(self) -> int:
        with self._tx() as conn:
            (n,) = conn.execute(f"SELECT COUNT(*) FROM {self.name}").fetchone()
        return int(n)

    def get_raw_all(self) -> list[dict[str, Any]]:
        return self._rows()


class TaskCollection(_IdCollection):
    name = "todos"

    def add(self, task: Task, *, keep_timestamp: bool = False) -> int:
        """Insert a new task; the store assigns the id and stamps the creation time.

        keep_timestamp is for whole-record rewrites (sync, import) that carry an
        existing creation time.
        """
        if not task.title or not task.title.strip():
            raise ValidationFailure("title is required")
        rec = task.to_record(with_id=False)
        if not (keep_timestamp and task.timestamp):
            rec["timestamp"] = now_ms()
        return self._insert(rec)

    def get_all(self) -> list[Task]:
        """
        Read every task, applying lazy migration.

        Records missing newer fields are normalized in memory, then written back in a
        separate transaction. If the write-back fails the caller still gets normalized
        tasks; the rows stay unmigrated until the next read.
        """
        raw = self._rows()
        fixed: list[dict[str, Any]] = []
        docs: list[dict[str, Any]] = []
        for doc in raw:
            norm = normalize_task(doc)
            docs.append(norm.record)
            if norm.changed:
                fixed.append(norm.record)

        if fixed:
            self.persist_if_changed(fixed)

        out: list[Task] = []
        for doc in docs:
            try:
                out.append(Task.from_record(doc))
            except ValidationFailure as e:
                logger.warning("Skipping invalid task id=%s: %s", doc.get("id"), e)
        return out

    def persist_if_changed(self, records: list[dict[str, Any]]) -> int:
        """
        Write normalized documents back. Not a user mutation: no pending flag.

        Each row is re-read and re-normalized inside the write transaction, so a
        concurrent update is never overwritten by the stale copy we read earlier.
        """
        if not records:
            return 0
        written = 0
        try:
            with self._store.locked(self.name):
                with self._tx() as conn:
                    for rec in records:
                        row = conn.execute(
                            f"SELECT data FROM {self.name} WHERE id = ?", (int(rec["id"]),)
                        ).fetchone()
                        current = _loads(row["data"]) if row else None
                        if current is None:
                            continue
                        norm = normalize_task(current)
                        if not norm.changed:
                            continue
                        conn.execute(
                            f"UPDATE {self.name} SET data = ? WHERE id = ?",
                            (_dumps(norm.record), int(rec["id"])),
                        )
                        written += 1
        except (StorageFailure, ValidationFailure):
            logger.exception("Lazy migration write-back failed for %d tasks", len(records))
            return 0
        logger.info("Lazy migration: normalized %d task(s)", written)
        return written

    def get_by_id(self, task_id: int) -> Task | None:
        rows = self._rows("WHERE id = ?", (int(task_id),))
        if not rows:
            return None
        return Task.from_record(normalize_task(rows[0]).record)

    def get_by_status(self, completed: bool) -> list[Task]:
        rows = self._rows("WHERE json_extract(data, '$.completed') = ?", (1 if completed else 0,))
        return [Task.from_record(normalize_task(r).record) for r in rows]

    def update(self, task: Task) -> None:
        """Full-record replace. Callers read-modify-write the whole task."""
        if task.id is None:
            raise ValidationFailure("update needs a task id")
        if not task.title or not task.title.strip():
            raise ValidationFailure("title is required")
        self._replace(task.id, task.to_record(with_id=False))


class CategoryCollection(_IdCollection):
    name = "categories"

    def add(self, category: Category, *, keep_timestamp: bool = False) -> int:
        if not category.name or not category.name.strip():
            raise ValidationFailure("name is required")
        rec = category.to_record(with_id=False)
        if not (keep_timestamp and category.timestamp):
            rec["timestamp"] = now_ms()
        return self._insert(rec)

    def get_all(self) -> list[Category]:
        """Never observed empty: an empty collection is seeded with the defaults first."""
        self._seed_defaults_if_empty()
        out: list[Category] = []
        for doc in self._rows():
            try:
                out.append(Category.from_record(doc))
            except ValidationFailure as e:
                logger.warning("Skipping invalid category id=%s: %s", doc.get("id"), e)
        return out

    def _seed_defaults_if_empty(self) -> None:
        ts = now_ms()
        with self._store.locked(self.name):
            with self._tx() as conn:
                # Count and insert under one write lock so concurrent readers cannot double-seed.
                conn.execute("BEGIN IMMEDIATE")
                (n,) = conn.execute(f"SELECT COUNT(*) FROM {self.name}").fetchone()
                if int(n) > 0:
                    return
                for cat in DEFAULT_CATEGORIES:
                    rec = cat.to_record(with_id=False)
                    rec["timestamp"] = ts
                    conn.execute(f"INSERT INTO {self.name}(data) VALUES (?)", (_dumps(rec),))
        logger.info("Seeded %d default categories", len(DEFAULT_CATEGORIES))

    def get_all_with_counts(self) -> list[Category]:
        """Categories for display; `count` is recomputed by scanning all tasks."""
        categories = self.get_all()
        counts: dict[int, int] = {}
        for task in self._store.tasks.get_all():
            if task.category is not None:
                counts[task.category] = counts.get(task.category, 0) + 1
        for cat in categories:
            cat.count = counts.get(cat.id or -1, 0)
        return categories

    def get_by_id(self, category_id: int) -> Category | None:
        rows = self._rows("WHERE id = ?", (int(category_id),))
        return Category.from_record(rows[0]) if rows else None

    def update(self, category: Category) -> None:
        if category.id is None:
            raise ValidationFailure("update needs a category id")
        if not category.name or not category.name.strip():
            raise ValidationFailure("name is required")
        self._replace(category.id, category.to_record(with_id=False))


class KeyedCollection:
    """Upsert-only collection keyed by a caller-supplied string (integrations, settings)."""

    def __init__(self, store: EntityStore, name: str) -> None:
        self._store = store
        self.name = name

    def put(self, key: str, value: Any, *, timestamp: int | None = None) -> None:
        """Upsert. timestamp is for import, which carries the exported write time."""
        if not key or not str(key).strip():
            raise ValidationFailure("key is required")
        rec = KeyedRecord(key=str(key), value=value, timestamp=timestamp or now_ms()).to_record()
        data = _dumps(rec)
        with self._store.locked(self.name):
            with self._store.handle().transaction() as conn:
                conn.execute(
                    f"INSERT INTO {self.name}(key, data) VALUES (?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET data = excluded.data",
                    (rec["key"], data),
                )
            self._store._mutated(self.name)

    def get(self, key: str) -> KeyedRecord | None:
        with self._store.handle().transaction() as conn:
            row = conn.execute(f"SELECT data FROM {self.name} WHERE key = ?", (key,)).fetchone()
        doc = _loads(row["data"]) if row else None
        return KeyedRecord.from_record(doc) if doc else None

    def get_value(self, key: str, default: Any = None) -> Any:
        rec = self.get(key)
        return default if rec is None else rec.value

    def get_all(self) -> list[KeyedRecord]:
        with self._store.handle().transaction() as conn:
            rows = conn.execute(f"SELECT key, data FROM {self.name} ORDER BY key").fetchall()
        out: list[KeyedRecord] = []
        for row in rows:
            doc = _loads(row["data"])
            if doc is None:
                logger.warning("Skipping unreadable %s row key=%s", self.name, row["key"])
                continue
            out.append(KeyedRecord.from_record(doc))
        return out

    def delete(self, key: str) -> None:
        with self._store.locked(self.name):
            with self._store.handle().transaction() as conn:
                cur = conn.execute(f"DELETE FROM {self.name} WHERE key = ?", (key,))
            if cur.rowcount:
                self._store._mutated(self.name)

    def clear(self) -> None:
        with self._store.locked(self.name):
            with self._store.handle().transaction() as conn:
                conn.execute(f"DELETE FROM {self.name}")
            self._store._mutated(self.name)


class EntityStore:
    """
    Typed access to the four local collections.

    - every logical step runs in its own transaction (its own SQLite connection)
    - each mutation bumps a per-collection generation and notifies the mutation hook
      (the pending-change tracker in the app)
    - `locked(name)` serializes writers of one collection; sync holds it while it
      replaces the collection
    """

    def __init__(self, schema: SchemaManager, *, on_mutation: MutationHook | None = None) -> None:
        self._schema = schema
        self._on_mutation = on_mutation
        self._locks = {name: threading.RLock() for name in COLLECTION_NAMES}
        self._generations = dict.fromkeys(COLLECTION_NAMES, 0)

        self.tasks = TaskCollection(self)
        self.categories = CategoryCollection(self)
        self.integrations = KeyedCollection(self, "integrations")
        self.settings = KeyedCollection(self, "settings")

        self.handle()
        logger.info("EntityStore ready db=%s", schema.db_path)

    def handle(self) -> StoreHandle:
        return self._schema.open()

    def collection(self, name: str) -> TaskCollection | CategoryCollection:
        if name == "todos":
            return self.tasks
        if name == "categories":
            return self.categories
        raise KeyError(f"not an id-keyed collection: {name}")

    @contextlib.contextmanager
    def locked(self, name: str) -> Iterator[None]:
        with self._locks[name]:
            yield

    def generation(self, name: str) -> int:
        return self._generations[name]

    def _mutated(self, name: str) -> None:
        self._generations[name] += 1
        if self._on_mutation is not None:
            try:
                self._on_mutation(name)
            except Exception:
                logger.exception("Mutation hook failed for %s", name)
