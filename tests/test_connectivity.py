# tests/test_connectivity.py

from __future__ import annotations

import asyncio

import httpx
import pytest

from offline_todo.connectivity.monitor import ConnectivityMonitor
from offline_todo.connectivity.pending import PendingChangeTracker
from offline_todo.connectivity.runner import start_monitor_in_background
from offline_todo.connectivity.state import ConnectivityState

PROBE_URL = "https://probe.test/favicon.ico"


def _monitor(state: ConnectivityState, handler, **kwargs) -> ConnectivityMonitor:
    return ConnectivityMonitor(
        state,
        probe_url=PROBE_URL,
        timeout_seconds=kwargs.pop("timeout_seconds", 0.5),
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


@pytest.mark.asyncio
async def test_any_completed_response_means_online() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(503)

    state = ConnectivityState()
    monitor = _monitor(state, handler)

    assert await monitor.probe() is True
    assert state.online is True
    assert state.last_checked is not None
    # cache-busting query parameter
    assert seen[0].url.host == "probe.test"
    assert seen[0].url.params.get("_", "").isdigit()


@pytest.mark.asyncio
async def test_network_error_means_offline() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    state = ConnectivityState(online=True)
    monitor = _monitor(state, handler)

    assert await monitor.probe() is False
    assert state.online is False


@pytest.mark.asyncio
async def test_slow_probe_is_abandoned() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(5)
        return httpx.Response(200)

    state = ConnectivityState(online=True)
    monitor = _monitor(state, handler, timeout_seconds=0.1)

    assert await monitor.probe() is False
    assert state.online is False


@pytest.mark.asyncio
async def test_platform_offline_is_trusted_and_online_is_verified() -> None:
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        raise httpx.ConnectError("still down", request=request)

    state = ConnectivityState(online=True)
    monitor = _monitor(state, handler)

    assert await monitor.on_platform_change(False) is False
    assert state.online is False
    assert calls["n"] == 0

    # Host claims online, but the probe disagrees.
    assert await monitor.on_platform_change(True) is False
    assert state.online is False
    assert calls["n"] == 1


@pytest.mark.asyncio
async def test_reconnect_clears_pending_and_runs_hook() -> None:
    hook_ran = asyncio.Event()

    async def on_reconnect() -> None:
        hook_ran.set()

    state = ConnectivityState(online=False)
    tracker = PendingChangeTracker(state)
    tracker.note_mutation("todos")
    assert tracker.pending is True

    monitor = _monitor(state, lambda request: httpx.Response(204), on_reconnect=on_reconnect)
    assert await monitor.probe() is True

    assert tracker.pending is False
    await asyncio.wait_for(hook_ran.wait(), timeout=1.0)


@pytest.mark.asyncio
async def test_no_hook_when_nothing_pending() -> None:
    ran = []

    async def on_reconnect() -> None:
        ran.append(1)

    state = ConnectivityState(online=False)
    monitor = _monitor(state, lambda request: httpx.Response(200), on_reconnect=on_reconnect)

    await monitor.probe()
    await asyncio.sleep(0)

    assert state.online is True
    assert ran == []


@pytest.mark.asyncio
async def test_run_probes_until_stopped() -> None:
    stop = asyncio.Event()
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        stop.set()
        return httpx.Response(200)

    state = ConnectivityState()
    monitor = _monitor(state, handler, interval_seconds=30.0)

    await asyncio.wait_for(monitor.run(stop), timeout=2.0)

    assert calls["n"] == 1
    assert state.online is True


def test_tracker_only_flags_offline_mutations() -> None:
    state = ConnectivityState(online=True)
    tracker = PendingChangeTracker(state)

    tracker.note_mutation("todos")
    assert tracker.pending is False

    state.set_online(False)
    tracker.note_mutation("categories")
    assert tracker.pending is True

    tracker.clear()
    assert tracker.pending is False


def test_state_listeners_fire_on_change_only() -> None:
    state = ConnectivityState()
    seen: list[tuple[bool, bool]] = []
    state.subscribe(lambda s: seen.append((s.online, s.pending_sync)))

    assert state.set_online(False) is False
    assert state.set_online(True) is True
    state.mark_pending()
    state.mark_pending()

    assert seen == [(True, False), (True, True)]


def test_background_runner_runs_coroutines_and_stops() -> None:
    state = ConnectivityState()
    monitor = _monitor(state, lambda request: httpx.Response(200), interval_seconds=30.0)

    runner = start_monitor_in_background(monitor)
    assert runner is not None
    try:
        assert runner.run(monitor.probe(), timeout=5.0) is True
        assert state.online is True
    finally:
        runner.stop()
        runner.join(timeout=5.0)

    assert not runner.thread.is_alive()
