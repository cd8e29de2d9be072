# src/offline_todo/storage/schema.py

"""
Local store schema.

Each collection is one SQLite table holding JSON documents; secondary indexes are
expression indexes over json_extract(). The schema version lives in PRAGMA user_version.

Upgrades are additive only:
- create missing tables
- create missing indexes
- never drop or rewrite rows

Because every statement is IF NOT EXISTS, an upgrade from any older version is a
single pass over the full declaration.
"""

from __future__ import annotations

import contextlib
import logging
import sqlite3
import threading
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

from ..errors import StorageFailure

logger = logging.getLogger(__name__)

# v1: todos(completed, timestamp)
# v2: categories, todos(priority, category)
# v3: integrations, settings
SCHEMA_VERSION = 3


@dataclass(frozen=True, slots=True)
class Collection:
    name: str
    keyed: bool = False  # True -> primary key is a caller-supplied string "key"
    indexes: tuple[str, ...] = ()


COLLECTIONS: tuple[Collection, ...] = (
    Collection("todos", indexes=("completed", "timestamp", "priority", "category")),
    Collection("categories", indexes=("name", "color")),
    Collection("integrations", keyed=True),
    Collection("settings", keyed=True),
)

COLLECTION_NAMES = tuple(c.name for c in COLLECTIONS)


def index_name(collection: str, field: str) -> str:
    return f"idx_{collection}_{field}"


class StoreHandle:
    """
    Connection factory for one database file.

    Thread-safety:
    - every transaction opens its own connection (no shared cursors)
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path

    def connect(self) -> sqlite3.Connection:
        try:
            conn = sqlite3.connect(str(self.db_path), timeout=30.0)
        except sqlite3.Error as e:
            raise StorageFailure(f"cannot open local store {self.db_path}: {e}") from e
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    @contextlib.contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """One logical step = one transaction. Commits on success, rolls back on error."""
        conn = self.connect()
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            with contextlib.suppress(sqlite3.Error):
                conn.rollback()
            raise StorageFailure(f"local write rejected: {e}") from e
        except BaseException:
            with contextlib.suppress(sqlite3.Error):
                conn.rollback()
            raise
        finally:
            conn.close()

    def user_version(self) -> int:
        conn = self.connect()
        try:
            (v,) = conn.execute("PRAGMA user_version").fetchone()
            return int(v)
        except sqlite3.Error as e:
            raise StorageFailure(f"cannot read schema version: {e}") from e
        finally:
            conn.close()


class SchemaManager:
    """Opens the local store and brings its schema up to SCHEMA_VERSION."""

    _lock = threading.Lock()

    def __init__(self, db_path: str | Path, *, version: int = SCHEMA_VERSION) -> None:
        self._db_path = Path(db_path)
        self._version = int(version)

    @property
    def db_path(self) -> Path:
        return self._db_path

    def open(self) -> StoreHandle:
        """Idempotent: safe to call from any number of call sites."""
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageFailure(f"cannot create data dir for {self._db_path}: {e}") from e

        handle = StoreHandle(self._db_path)
        with self._lock:
            stored = handle.user_version()
            if stored < self._version:
                self._upgrade(handle, stored)
            elif stored > self._version:
                logger.warning(
                    "Local store %s has schema v%s, newer than v%s; opening as-is",
                    self._db_path,
                    stored,
                    self._version,
                )
        return handle

    def _upgrade(self, handle: StoreHandle, from_version: int) -> None:
        with handle.transaction() as conn:
            for coll in COLLECTIONS:
                if coll.keyed:
                    conn.execute(
                        f"CREATE TABLE IF NOT EXISTS {coll.name} ("
                        "key TEXT PRIMARY KEY, data TEXT NOT NULL)"
                    )
                else:
                    # AUTOINCREMENT: ids are never reused, even after clear().
                    conn.execute(
                        f"CREATE TABLE IF NOT EXISTS {coll.name} ("
                        "id INTEGER PRIMARY KEY AUTOINCREMENT, data TEXT NOT NULL)"
                    )
                for field in coll.indexes:
                    conn.execute(
                        f"CREATE INDEX IF NOT EXISTS {index_name(coll.name, field)} "
                        f"ON {coll.name}(json_extract(data, '$.{field}'))"
                    )
            # PRAGMA does not accept bound parameters.
            conn.execute(f"PRAGMA user_version = {self._version:d}")
        logger.info(
            "Local store schema upgraded v%s -> v%s db=%s",
            from_version,
            self._version,
            self._db_path,
        )

    def describe(self) -> dict[str, set[str]]:
        """Collections and their index names as currently present on disk."""
        handle = StoreHandle(self._db_path)
        conn = handle.connect()
        try:
            rows = conn.execute(
                "SELECT type, name, tbl_name FROM sqlite_master "
                "WHERE type IN ('table', 'index') AND name NOT LIKE 'sqlite_%'"
            ).fetchall()
        except sqlite3.Error as e:
            raise StorageFailure(f"cannot inspect local store: {e}") from e
        finally:
            conn.close()

        out: dict[str, set[str]] = {}
        for row in rows:
            if row["type"] == "table":
                out.setdefault(row["name"], set())
        for row in rows:
            if row["type"] == "index":
                out.setdefault(row["tbl_name"], set()).add(row["name"])
        return out
