# src/offline_todo/connectivity/runner.py

from __future__ import annotations

import asyncio
import concurrent.futures
import contextlib
import logging
import threading
from collections.abc import Coroutine
from dataclasses import dataclass
from typing import Any, TypeVar

from .monitor import ConnectivityMonitor

logger = logging.getLogger(__name__)

T = TypeVar("T")

_STARTUP_TIMEOUT = 5.0


@dataclass
class MonitorBackgroundRunner:
    """
    Owns the background event loop.

    All network work (probes, sync, health checks) runs on this one loop, so it is
    cooperatively scheduled; the console thread hands coroutines over via submit().
    """

    thread: threading.Thread
    loop: asyncio.AbstractEventLoop
    stop_event: asyncio.Event

    def submit(self, coro: Coroutine[Any, Any, T]) -> concurrent.futures.Future[T]:
        return asyncio.run_coroutine_threadsafe(coro, self.loop)

    def run(self, coro: Coroutine[Any, Any, T], timeout: float | None = None) -> T:
        """Run a coroutine on the background loop and block until it finishes."""
        return self.submit(coro).result(timeout=timeout)

    def stop(self) -> None:
        if self.loop.is_closed():
            return
        try:
            self.loop.call_soon_threadsafe(self.stop_event.set)
        except RuntimeError:
            logger.debug("Monitor loop already stopped.", exc_info=True)

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


def _drain(loop: asyncio.AbstractEventLoop) -> None:
    """Cancel whatever is still scheduled (reconnect hooks, submitted syncs)."""
    leftover = [t for t in asyncio.all_tasks(loop) if not t.done()]
    for t in leftover:
        t.cancel()
    if leftover:
        loop.run_until_complete(asyncio.gather(*leftover, return_exceptions=True))


def start_monitor_in_background(monitor: ConnectivityMonitor) -> MonitorBackgroundRunner | None:
    """
    Run the connectivity monitor on its own event loop in a daemon thread.

    The console REPL blocks on input(), so the async side cannot share its thread.
    Returns None if the loop did not come up.
    """
    handoff: concurrent.futures.Future[tuple[asyncio.AbstractEventLoop, asyncio.Event]] = (
        concurrent.futures.Future()
    )

    def _thread_main() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        stop_event = asyncio.Event()
        handoff.set_result((loop, stop_event))
        try:
            loop.run_until_complete(monitor.run(stop_event))
        except Exception:
            logger.exception("Connectivity monitor crashed")
        finally:
            with contextlib.suppress(Exception):
                _drain(loop)
            loop.close()

    thread = threading.Thread(target=_thread_main, name="connectivity-monitor", daemon=True)
    thread.start()

    try:
        loop, stop_event = handoff.result(timeout=_STARTUP_TIMEOUT)
    except concurrent.futures.TimeoutError:
        logger.error("Monitor thread did not initialize within %.0fs.", _STARTUP_TIMEOUT)
        return None

    logger.info("Connectivity monitor thread started.")
    return MonitorBackgroundRunner(thread=thread, loop=loop, stop_event=stop_event)
