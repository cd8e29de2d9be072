# src/offline_todo/connectivity/state.py

"""
Process-wide connectivity/session state.

One ConnectivityState is created by the composition root and injected wherever it is
needed (monitor, pending-change tracker, sync, console) instead of living in globals.
Writes happen from one place at a time; reads are safe from anywhere.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

StateListener = Callable[["ConnectivityState"], None]


@dataclass(slots=True)
class ConnectivityState:
    online: bool = False  # unknown until the first probe completes
    pending_sync: bool = False
    last_checked: float | None = None
    _listeners: list[StateListener] = field(default_factory=list, repr=False)

    def subscribe(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    def set_online(self, value: bool) -> bool:
        """Record a probe/platform verdict. Returns True if the value changed."""
        self.last_checked = time.time()
        changed = self.online != value
        self.online = value
        if changed:
            logger.info("Connectivity: %s", "online" if value else "offline")
            self._notify()
        return changed

    def mark_pending(self) -> None:
        if not self.pending_sync:
            self.pending_sync = True
            logger.debug("Pending-sync flag set")
            self._notify()

    def clear_pending(self) -> None:
        if self.pending_sync:
            self.pending_sync = False
            logger.debug("Pending-sync flag cleared")
            self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception("Connectivity listener failed")
