# src/offline_todo/connectivity/pending.py

from __future__ import annotations

import logging

from .state import ConnectivityState

logger = logging.getLogger(__name__)


class PendingChangeTracker:
    """
    Coarse "something changed while offline" signal.

    Carries no record-level detail; it only drives the user-facing prompt to sync.
    Cleared by the connectivity monitor on the first successful probe after offline.
    """

    def __init__(self, state: ConnectivityState) -> None:
        self._state = state

    @property
    def pending(self) -> bool:
        return self._state.pending_sync

    def note_mutation(self, collection: str) -> None:
        if self._state.online:
            return
        if not self._state.pending_sync:
            logger.info("Offline change in %s; will need a sync", collection)
        self._state.mark_pending()

    def clear(self) -> None:
        self._state.clear_pending()
