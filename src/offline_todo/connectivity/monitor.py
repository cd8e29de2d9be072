# src/offline_todo/connectivity/monitor.py

"""
Connectivity monitor.

Decides online/offline by actually reaching the network, not by trusting the host:
- active probe: cache-busting GET to a well-known URL, bounded by a short timeout;
  any completed response (any status) counts as online
- platform "online" notification: only a reason to probe again
- platform "offline" notification: trusted immediately
- periodic probe every `interval_seconds`

When a probe brings us back online while the pending-sync flag is set, the flag is
cleared. The monitor never syncs by itself; an optional `on_reconnect` callback lets
the composition root decide.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

import httpx

from ..storage.models import now_ms
from .state import ConnectivityState

logger = logging.getLogger(__name__)

ReconnectHook = Callable[[], Awaitable[None]]


class ConnectivityMonitor:
    def __init__(
        self,
        state: ConnectivityState,
        *,
        probe_url: str,
        timeout_seconds: float = 3.0,
        interval_seconds: float = 30.0,
        on_reconnect: ReconnectHook | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.state = state
        self.probe_url = probe_url
        self.timeout_seconds = max(0.1, float(timeout_seconds))
        self.interval_seconds = max(0.5, float(interval_seconds))
        self._on_reconnect = on_reconnect
        self._transport = transport
        self._background: set[asyncio.Task[None]] = set()

    async def _request(self) -> None:
        async with httpx.AsyncClient(
            timeout=self.timeout_seconds,
            transport=self._transport,
            follow_redirects=False,
        ) as client:
            response = await client.get(self.probe_url, params={"_": str(now_ms())})
            logger.debug("Connectivity probe: HTTP %s", response.status_code)

    async def probe(self) -> bool:
        """One active probe. Returns the resulting online value."""
        try:
            await asyncio.wait_for(self._request(), timeout=self.timeout_seconds)
            online = True
        except asyncio.TimeoutError:
            logger.debug("Connectivity probe timed out after %.1fs", self.timeout_seconds)
            online = False
        except (httpx.HTTPError, OSError) as e:
            logger.debug("Connectivity probe failed: %s", e.__class__.__name__)
            online = False

        self._apply(online)
        return online

    def _apply(self, online: bool) -> None:
        was_online = self.state.online
        self.state.set_online(online)

        if online and not was_online and self.state.pending_sync:
            logger.info("Back online with offline changes pending")
            self.state.clear_pending()
            if self._on_reconnect is not None:
                task = asyncio.get_running_loop().create_task(self._run_reconnect_hook())
                self._background.add(task)
                task.add_done_callback(self._background.discard)

    async def _run_reconnect_hook(self) -> None:
        assert self._on_reconnect is not None
        try:
            await self._on_reconnect()
        except Exception:
            logger.exception("Reconnect hook failed")

    async def on_platform_change(self, claims_online: bool) -> bool:
        """Host connectivity notification: 'online' is verified, 'offline' is trusted."""
        if claims_online:
            return await self.probe()
        self.state.set_online(False)
        return False

    async def run(self, stop_event: asyncio.Event) -> None:
        """
        Probe now, then every interval_seconds until stop_event is set.

        To stop, set stop_event (or cancel the coroutine).
        """
        logger.info(
            "Connectivity monitor started (url=%s, every %.0fs, timeout %.1fs)",
            self.probe_url,
            self.interval_seconds,
            self.timeout_seconds,
        )
        while not stop_event.is_set():
            try:
                await self.probe()
            except Exception:
                logger.exception("Connectivity probe crashed")
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                pass
        logger.info("Connectivity monitor stopped")
