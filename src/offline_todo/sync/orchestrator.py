# src/offline_todo/sync/orchestrator.py

"""
Replace-all sync.

One run for one collection:
  read local snapshot -> POST to the merge authority -> receive merged set
  -> (under the collection write lock) verify no local writes happened meanwhile
  -> clear -> re-add every merged item with ids stripped

Ordering bounds the damage of a failure: nothing local is touched until a valid
merged set is in hand, and a clear is always followed by an insert attempt for
every item. Local writes that land during the network round trip make the run
abort instead of being discarded; the caller retries.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from ..connectivity.state import ConnectivityState
from ..core.ports import MergeAuthority
from ..errors import (
    NetworkFailure,
    NotConfigured,
    ProtocolMismatch,
    RemoteRejected,
    StorageFailure,
    SyncFailure,
    ValidationFailure,
)
from ..storage.entity_store import EntityStore
from ..storage.models import Category, Task
from .remote import RemoteAuthorityClient, resolve_api_url

logger = logging.getLogger(__name__)

SYNC_COLLECTIONS = ("todos", "categories")

ClientFactory = Callable[[str], MergeAuthority]

_RECORD_TYPES: dict[str, type[Task] | type[Category]] = {
    "todos": Task,
    "categories": Category,
}


@dataclass(frozen=True, slots=True)
class SyncResult:
    collection: str
    count: int


def _strip_id(item: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in item.items() if k != "id"}


class SyncOrchestrator:
    def __init__(
        self,
        store: EntityStore,
        settings: Any,
        *,
        connectivity: ConnectivityState | None = None,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self._store = store
        self._settings = settings
        self._connectivity = connectivity
        self._client_factory = client_factory or self._default_client

    def _default_client(self, base_url: str) -> RemoteAuthorityClient:
        return RemoteAuthorityClient(
            base_url,
            timeout=float(getattr(self._settings, "sync_timeout_seconds", 30.0)),
            health_message=str(getattr(self._settings, "health_message", "")),
        )

    def client(self) -> MergeAuthority:
        """Client bound to the currently configured API URL. Raises NotConfigured."""
        return self._client_factory(resolve_api_url(self._store, self._settings))

    async def sync(self, collection: str) -> SyncResult:
        if collection not in SYNC_COLLECTIONS:
            raise SyncFailure(f"collection {collection!r} is not synchronizable", collection=collection)

        try:
            client = self.client()
        except NotConfigured as e:
            raise SyncFailure("no remote endpoint configured", collection=collection) from e

        coll = self._store.collection(collection)

        # 1) Read local snapshot. get_all() applies lazy migration first.
        generation = self._store.generation(collection)
        try:
            local = [r.to_record() for r in coll.get_all()]
        except StorageFailure as e:
            raise SyncFailure(f"could not read local {collection}: {e}", collection=collection) from e
        logger.info("Sync %s: pushing %d local items", collection, len(local))

        # 2) Round trip. Nothing local is touched before we hold a valid merged set.
        try:
            async with client:
                merged_raw = await client.merge(collection, local)
        except NetworkFailure as e:
            if self._connectivity is not None:
                self._connectivity.set_online(False)
            raise SyncFailure(str(e), collection=collection) from e
        except (RemoteRejected, ProtocolMismatch) as e:
            raise SyncFailure(str(e), collection=collection) from e

        record_type = _RECORD_TYPES[collection]
        try:
            merged = [record_type.from_record(_strip_id(item)) for item in merged_raw]
        except ValidationFailure as e:
            raise SyncFailure(f"merged {collection} failed validation: {e}", collection=collection) from e

        # 3) Replace-all, serialized against local writers of this collection.
        with self._store.locked(collection):
            if self._store.generation(collection) != generation:
                raise SyncFailure(
                    f"local {collection} changed during sync; nothing was replaced, retry",
                    collection=collection,
                )
            try:
                coll.clear()
            except StorageFailure as e:
                raise SyncFailure(f"could not clear local {collection}: {e}", collection=collection) from e

            inserted = 0
            failures: list[str] = []
            for record in merged:
                try:
                    coll.add(record, keep_timestamp=True)  # type: ignore[arg-type]
                    inserted += 1
                except (StorageFailure, ValidationFailure) as e:
                    failures.append(str(e))
                    logger.error("Sync %s: insert failed: %s", collection, e)

        if failures:
            raise SyncFailure(
                f"{len(failures)} of {len(merged)} merged {collection} could not be stored",
                collection=collection,
                inserted=inserted,
                expected=len(merged),
            )

        if self._connectivity is not None:
            # The authority now holds everything we had; the rewrite itself is not an offline change.
            self._connectivity.clear_pending()
        logger.info("Sync %s: done, %d items", collection, inserted)
        return SyncResult(collection=collection, count=inserted)

    async def sync_all(self) -> list[SyncResult]:
        """Sync every synchronizable collection in order; stops at the first failure."""
        results: list[SyncResult] = []
        for name in SYNC_COLLECTIONS:
            results.append(await self.sync(name))
        return results
