# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from offline_todo.connectivity.pending import PendingChangeTracker
from offline_todo.connectivity.state import ConnectivityState
from offline_todo.core.state import AppState
from offline_todo.storage.entity_store import EntityStore
from offline_todo.storage.schema import SchemaManager
from offline_todo.sync.orchestrator import SyncOrchestrator

from .fakes import FakeMergeAuthority


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and core modules.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="offline-todo-test",
        log_level="DEBUG",
        console_enabled=False,
        # Paths (tmp per test run)
        data_dir=tmp_path,
        db_path=tmp_path / "todo.sqlite3",
        export_dir=tmp_path / "exports",
        # Remote
        api_url="",
        sync_timeout_seconds=5.0,
        health_message="Todo sync backend is running",
        auto_sync_on_reconnect=False,
        # Probe
        probe_url="https://probe.test/favicon.ico",
        probe_timeout_seconds=0.5,
        probe_interval_seconds=30.0,
    )


@pytest.fixture()
def connectivity() -> ConnectivityState:
    return ConnectivityState(online=True)


@pytest.fixture()
def tracker(connectivity: ConnectivityState) -> PendingChangeTracker:
    return PendingChangeTracker(connectivity)


@pytest.fixture()
def store(settings: SimpleNamespace, tracker: PendingChangeTracker) -> EntityStore:
    """Real SQLite store: its behavior is what most tests are about."""
    return EntityStore(SchemaManager(settings.db_path), on_mutation=tracker.note_mutation)


@pytest.fixture()
def authority() -> FakeMergeAuthority:
    return FakeMergeAuthority()


@pytest.fixture()
def orchestrator(
    store: EntityStore,
    settings: SimpleNamespace,
    connectivity: ConnectivityState,
    authority: FakeMergeAuthority,
) -> SyncOrchestrator:
    return SyncOrchestrator(
        store,
        settings,
        connectivity=connectivity,
        client_factory=authority.bind,
    )


@pytest.fixture()
def state(
    settings: SimpleNamespace,
    store: EntityStore,
    connectivity: ConnectivityState,
    tracker: PendingChangeTracker,
    orchestrator: SyncOrchestrator,
) -> AppState:
    """AppState without a monitor thread; network work runs via asyncio.run()."""
    return AppState(
        settings=settings,
        store=store,
        connectivity=connectivity,
        tracker=tracker,
        orchestrator=orchestrator,
    )
