# src/offline_todo/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from ..connectivity.pending import PendingChangeTracker
from ..connectivity.state import ConnectivityState
from ..storage.entity_store import EntityStore
from ..sync.orchestrator import SyncOrchestrator

if TYPE_CHECKING:
    from ..connectivity.monitor import ConnectivityMonitor
    from ..connectivity.runner import MonitorBackgroundRunner


@dataclass
class AppState:
    # Store Settings on the state for easy access in other modules.
    settings: Any

    store: EntityStore
    connectivity: ConnectivityState
    tracker: PendingChangeTracker
    orchestrator: SyncOrchestrator
    monitor: ConnectivityMonitor | None = None
    runner: MonitorBackgroundRunner | None = None
