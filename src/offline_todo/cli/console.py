# src/offline_todo/cli/console.py

from __future__ import annotations

import logging
from datetime import datetime

from ..connectivity.state import ConnectivityState
from ..core.state import AppState
from .commands import registry as command_registry

logger = logging.getLogger(__name__)

EXIT_COMMANDS = ("/exit", "/quit")


def _say(text: str) -> None:
    stamp = datetime.now().astimezone().strftime("%H:%M:%S")
    print(f"[{stamp}] {text}", flush=True)


def _prompt(conn: ConnectivityState) -> str:
    if conn.online:
        return "todo> "
    # "*" = edits made offline that the backend has not seen yet
    return "todo (offline*)> " if conn.pending_sync else "todo (offline)> "


def _watch_connectivity(conn: ConnectivityState) -> None:
    """Print a line when the monitor flips online/offline (listeners also fire on pending changes)."""
    last = {"online": conn.online}

    def _listener(s: ConnectivityState) -> None:
        if s.online == last["online"]:
            return
        last["online"] = s.online
        _say("[NET] back online" if s.online else "[NET] offline, changes are kept locally")

    conn.subscribe(_listener)


def run_console_loop(state: AppState) -> None:
    """
    Blocking REPL for the main thread.

    Lines starting with "/" are commands; any other line is a quick /add.
    """
    logger.info("Console started (online=%s).", state.connectivity.online)
    _say("Type a task title to add it. /help lists commands, /exit quits.")
    _watch_connectivity(state.connectivity)

    while True:
        try:
            line = input(_prompt(state.connectivity)).strip()
        except (EOFError, KeyboardInterrupt):
            print()
            logger.info("Console input closed, exiting.")
            break

        if not line:
            continue
        if line.lower() in EXIT_COMMANDS:
            break

        if not line.startswith("/"):
            line = f"/add {line}"

        try:
            reply = command_registry.handle(state, line, emit=_say)
        except Exception:
            logger.exception("Command handler crashed: %s", line.split()[0])
            reply = "Internal error while handling a command."

        if reply is not None:
            _say(reply)

    logger.info("Console finished.")
