# src/offline_todo/cli/commands.py

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
from collections.abc import Callable, Coroutine
from pathlib import Path
from typing import Any, TypeVar, cast

from ..core.state import AppState
from ..errors import TodoError, friendly_error_message
from ..storage.models import Priority, Task
from ..sync.orchestrator import SYNC_COLLECTIONS
from ..sync.remote import API_URL_SETTING, resolve_api_url
from ..transfer import default_export_name, import_file, write_export, write_tasks_csv

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

T = TypeVar("T")

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /add, /sync, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(self, state: AppState, line: str, emit: CommandEmitter | None = None) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except Exception:
            nparams = 3

        try:
            if nparams >= 3:
                return cast(CommandHandler3, handler)(state, args, emit)
            return cast(CommandHandler2, handler)(state, args)
        except TodoError as e:
            logger.info("/%s failed: %s", name, e)
            return friendly_error_message(e)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _run_async(state: AppState, coro: Coroutine[Any, Any, T]) -> T:
    """Run network work on the monitor loop when it is up, else on a throwaway loop."""
    if state.runner is not None:
        return state.runner.run(coro)
    return asyncio.run(coro)


def _parse_id(args: list[str], usage: str) -> int:
    if not args:
        raise ValueError(usage)
    try:
        return int(args[0])
    except ValueError:
        raise ValueError(usage) from None


def _fmt_task(t: Task, category_names: dict[int, str]) -> str:
    mark = "x" if t.completed else " "
    cat = ""
    if t.category is not None:
        # Dangling references are allowed: show the raw id.
        cat = f" #{category_names.get(t.category, t.category)}"
    return f"[{mark}] {t.id}. {t.title} ({t.priority.value}){cat}"


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    conn = state.connectivity
    try:
        api = resolve_api_url(state.store, state.settings)
    except TodoError:
        api = "(not configured)"
    return (
        "Status:\n"
        f"  Network: {'online' if conn.online else 'offline'}\n"
        f"  Offline changes pending: {'yes' if conn.pending_sync else 'no'}\n"
        f"  Sync API: {api}\n"
        f"  Tasks: {state.store.tasks.count()}"
    )


def cmd_add(state: AppState, args: list[str]) -> str:
    """
    /add [p=<priority>] [c=<category id>] <title...>
    """
    priority = Priority.MEDIUM
    category: int | None = None
    words: list[str] = []
    for a in args:
        if a.startswith("p=") and not words:
            try:
                priority = Priority.parse(a[2:])
            except ValueError:
                return f"Unknown priority: {a[2:]}. Use one of: {', '.join(p.value for p in Priority)}"
        elif a.startswith("c=") and not words:
            try:
                category = int(a[2:])
            except ValueError:
                return "Category must be a numeric id (see /cats)."
        else:
            words.append(a)
    title = " ".join(words).strip()
    if not title:
        return "Usage: /add [p=<priority>] [c=<category id>] <title>"
    task_id = state.store.tasks.add(Task(title=title, priority=priority, category=category))
    suffix = " (offline: sync when back online)" if not state.connectivity.online else ""
    return f"Added task {task_id}.{suffix}"


def cmd_list(state: AppState, args: list[str]) -> str:
    """
    /list        -> all tasks
    /list open   -> not completed
    /list done   -> completed
    """
    sub = args[0].lower() if args else "all"
    if sub == "open":
        tasks = state.store.tasks.get_by_status(False)
    elif sub == "done":
        tasks = state.store.tasks.get_by_status(True)
    else:
        tasks = state.store.tasks.get_all()
    if not tasks:
        return "No tasks."
    names = {c.id: c.name for c in state.store.categories.get_all() if c.id is not None}
    return "\n".join(_fmt_task(t, names) for t in tasks)


def cmd_done(state: AppState, args: list[str]) -> str:
    try:
        task_id = _parse_id(args, "Usage: /done <task id>")
    except ValueError as e:
        return str(e)
    task = state.store.tasks.get_by_id(task_id)
    if task is None:
        return f"No task with id {task_id}."
    task.completed = not task.completed
    state.store.tasks.update(task)
    return f"Task {task_id} marked {'done' if task.completed else 'open'}."


def cmd_edit(state: AppState, args: list[str]) -> str:
    try:
        task_id = _parse_id(args, "Usage: /edit <task id> <new title>")
    except ValueError as e:
        return str(e)
    title = " ".join(args[1:]).strip()
    if not title:
        return "Usage: /edit <task id> <new title>"
    task = state.store.tasks.get_by_id(task_id)
    if task is None:
        return f"No task with id {task_id}."
    task.title = title
    state.store.tasks.update(task)
    return f"Task {task_id} updated."


def cmd_del(state: AppState, args: list[str]) -> str:
    try:
        task_id = _parse_id(args, "Usage: /del <task id>")
    except ValueError as e:
        return str(e)
    state.store.tasks.delete(task_id)
    return f"Task {task_id} deleted."


def cmd_cats(state: AppState, args: list[str]) -> str:
    lines = ["Categories:"]
    for c in state.store.categories.get_all_with_counts():
        lines.append(f"  {c.id}. {c.name} [{c.color.value}] - {c.count} tasks")
    return "\n".join(lines)


def cmd_check(state: AppState, args: list[str]) -> str:
    if state.monitor is None:
        return "Connectivity monitor is not running."
    online = _run_async(state, state.monitor.probe())
    return "Online." if online else "Offline."


def cmd_net(state: AppState, args: list[str]) -> str:
    """
    /net online   -> host says we are online (verified by a probe)
    /net offline  -> host says we are offline (trusted)
    """
    if state.monitor is None:
        return "Connectivity monitor is not running."
    if not args or args[0].lower() not in ("online", "offline"):
        return "Usage: /net online | /net offline"
    online = _run_async(state, state.monitor.on_platform_change(args[0].lower() == "online"))
    return "Online." if online else "Offline."


def cmd_sync(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /sync              -> todos and categories
    /sync todos        -> one collection
    /sync categories
    """
    names = list(SYNC_COLLECTIONS) if not args or args[0].lower() == "all" else [args[0].lower()]
    lines: list[str] = []
    for name in names:
        if emit:
            with contextlib.suppress(Exception):
                emit(f"[SYNC] {name}...")
        result = _run_async(state, state.orchestrator.sync(name))
        lines.append(f"Synced {result.collection}: {result.count} items.")
    return "\n".join(lines)


def cmd_health(state: AppState, args: list[str]) -> str:
    client = state.orchestrator.client()

    async def _check():
        async with client:
            return await client.check_health()

    status = _run_async(state, _check())
    return f"Backend {'connected' if status.connected else 'unreachable'}: {status.message}"


def cmd_api(state: AppState, args: list[str]) -> str:
    """
    /api          -> show the sync API URL
    /api <url>    -> save it locally
    /api reset    -> forget the saved URL (falls back to TODO_API_URL)
    """
    if not args:
        try:
            return f"Sync API: {resolve_api_url(state.store, state.settings)}"
        except TodoError:
            return "Sync API is not configured. Use /api <url>."
    if args[0].lower() == "reset":
        state.store.settings.delete(API_URL_SETTING)
        return "Sync API reset to default."
    url = args[0].strip().rstrip("/")
    if not url.startswith(("http://", "https://")):
        return "API URL must start with http:// or https://"
    state.store.settings.put(API_URL_SETTING, url)
    return f"Sync API set to {url}."


def _target(state: AppState, args: list[str], suffix: str) -> Path:
    if args:
        return Path(args[0]).expanduser()
    return Path(state.settings.export_dir) / default_export_name(suffix)


def cmd_export(state: AppState, args: list[str]) -> str:
    path = write_export(state.store, _target(state, args, "json"))
    return f"Exported all data to {path}."


def cmd_csv(state: AppState, args: list[str]) -> str:
    path = write_tasks_csv(state.store, _target(state, args, "csv"))
    return f"Exported tasks to {path}."


def cmd_import(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /import <file.json>  (replaces ALL local data)"
    counts = import_file(state.store, Path(args[0]).expanduser())
    return (
        f"Imported {counts.todos} todos, {counts.categories} categories, "
        f"{counts.integrations} integrations."
    )


def cmd_integration(state: AppState, args: list[str]) -> str:
    """
    /integration get <key>
    /integration set <key> <value...>
    /integration del <key>
    """
    if len(args) < 2 or args[0].lower() not in ("get", "set", "del"):
        return "Usage: /integration get|set|del <key> [value]"
    sub, key = args[0].lower(), args[1]
    if sub == "get":
        rec = state.store.integrations.get(key)
        return f"{key}: {rec.value!r}" if rec else f"No integration {key}."
    if sub == "set":
        state.store.integrations.put(key, " ".join(args[2:]))
        return f"Integration {key} saved."
    state.store.integrations.delete(key)
    return f"Integration {key} removed."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show network / pending-sync / API status.")
registry.register("add", cmd_add, help_text="Add a task: /add [p=High] [c=1] <title>.")
registry.register("list", cmd_list, help_text="List tasks: /list | /list open | /list done.", aliases=["ls"])
registry.register("done", cmd_done, help_text="Toggle completion: /done <id>.")
registry.register("edit", cmd_edit, help_text="Rename a task: /edit <id> <title>.")
registry.register("del", cmd_del, help_text="Delete a task: /del <id>.", aliases=["rm"])
registry.register("cats", cmd_cats, help_text="Show categories with task counts.")
registry.register("check", cmd_check, help_text="Probe network connectivity now.")
registry.register("net", cmd_net, help_text="Report a host connectivity change: /net online | offline.")
registry.register("sync", cmd_sync, help_text="Sync with the backend: /sync [todos|categories|all].")
registry.register("health", cmd_health, help_text="Check the sync backend.")
registry.register("api", cmd_api, help_text="Show/set the sync API URL: /api [url|reset].")
registry.register("export", cmd_export, help_text="Export all data as JSON: /export [path].")
registry.register("csv", cmd_csv, help_text="Export tasks as CSV: /csv [path].")
registry.register("import", cmd_import, help_text="Import a JSON export (replaces all data).")
registry.register("integration", cmd_integration, help_text="Integration blobs: get|set|del <key>.")
