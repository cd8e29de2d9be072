# src/offline_todo/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires store, connectivity state, pending-change tracker, sync and monitor into AppState.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from ..config import get_settings
from ..connectivity.monitor import ConnectivityMonitor
from ..connectivity.pending import PendingChangeTracker
from ..connectivity.state import ConnectivityState
from ..core.state import AppState
from ..errors import SyncFailure, friendly_error_message
from ..storage.entity_store import EntityStore
from ..storage.schema import SchemaManager
from ..sync.orchestrator import SyncOrchestrator

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)


def _auto_sync_hook(orchestrator: SyncOrchestrator) -> Callable[[], Awaitable[None]]:
    async def _run() -> None:
        try:
            results = await orchestrator.sync_all()
        except SyncFailure as e:
            logger.warning("Automatic sync after reconnect failed: %s", friendly_error_message(e))
            return
        logger.info("Automatic sync after reconnect: %s", ", ".join(f"{r.collection}={r.count}" for r in results))

    return _run


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    connectivity = ConnectivityState()
    tracker = PendingChangeTracker(connectivity)
    store = EntityStore(SchemaManager(settings.db_path), on_mutation=tracker.note_mutation)
    orchestrator = SyncOrchestrator(store, settings, connectivity=connectivity)

    on_reconnect = _auto_sync_hook(orchestrator) if getattr(settings, "auto_sync_on_reconnect", False) else None
    monitor = ConnectivityMonitor(
        connectivity,
        probe_url=settings.probe_url,
        timeout_seconds=settings.probe_timeout_seconds,
        interval_seconds=settings.probe_interval_seconds,
        on_reconnect=on_reconnect,
    )

    return AppState(
        settings=settings,
        store=store,
        connectivity=connectivity,
        tracker=tracker,
        orchestrator=orchestrator,
        monitor=monitor,
    )
