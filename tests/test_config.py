# tests/test_config.py

from __future__ import annotations

import logging
from pathlib import Path

from offline_todo.cli.bootstrap import create_initial_state
from offline_todo.config import DEFAULT_PROBE_URL, Settings
from offline_todo.errors import (
    NetworkFailure,
    StorageFailure,
    SyncFailure,
    ValidationFailure,
    friendly_error_message,
)
from offline_todo.logging_setup import _InteractiveConsoleFilter, setup_logging
from offline_todo.storage.models import Task


def test_settings_from_env(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("TODO_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("TODO_API_URL", " http://api.test/ ")
    monkeypatch.setenv("TODO_AUTO_SYNC_ON_RECONNECT", "yes")
    monkeypatch.setenv("TODO_PROBE_TIMEOUT_SECONDS", "not-a-number")
    monkeypatch.delenv("TODO_DB_PATH", raising=False)
    monkeypatch.delenv("TODO_PROBE_URL", raising=False)

    s = Settings.from_env()

    assert s.db_path == tmp_path / "data" / "todo.sqlite3"
    assert s.api_url == "http://api.test"
    assert s.auto_sync_on_reconnect is True
    assert s.probe_timeout_seconds == 3.0
    assert s.probe_interval_seconds == 30.0
    assert s.sync_timeout_seconds == 30.0
    assert s.probe_url == DEFAULT_PROBE_URL


def test_create_initial_state_wires_tracker(settings) -> None:
    state = create_initial_state(settings=settings)

    assert state.monitor is not None
    assert state.runner is None
    assert state.connectivity.online is False

    # Unknown connectivity counts as offline until the first probe.
    state.store.tasks.add(Task(title="first"))
    assert state.tracker.pending is True


def test_friendly_error_messages() -> None:
    assert friendly_error_message(StorageFailure("locked")).startswith("Local storage error")
    assert friendly_error_message(ValidationFailure("title is required")) == "Invalid data: title is required"
    assert "Network is unreachable" in friendly_error_message(NetworkFailure("x"))
    assert friendly_error_message(SyncFailure("boom")) == "Sync failed: boom. Try again."


def test_out_of_range_numbers_fall_back(monkeypatch) -> None:
    monkeypatch.setenv("TODO_PROBE_INTERVAL_SECONDS", "0")
    monkeypatch.setenv("TODO_SYNC_TIMEOUT_SECONDS", "-5")

    s = Settings.from_env()

    assert s.probe_interval_seconds == 30.0
    assert s.sync_timeout_seconds == 30.0


def test_setup_logging_writes_file_and_filters_console(tmp_path: Path) -> None:
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    try:
        log_file = setup_logging(log_dir=tmp_path, console_level=logging.INFO)
        logging.getLogger("offline_todo.connectivity.monitor").debug("probe detail")
        for h in root.handlers:
            h.flush()

        assert log_file == tmp_path / "offline-todo.log"
        assert "probe detail" in log_file.read_text("utf-8")

        console_filter = _InteractiveConsoleFilter()

        def rec(name: str, level: int) -> logging.LogRecord:
            return logging.LogRecord(name, level, __file__, 1, "m", None, None)

        assert console_filter.filter(rec("offline_todo.sync.orchestrator", logging.INFO))
        assert not console_filter.filter(rec("offline_todo.connectivity.monitor", logging.INFO))
        assert console_filter.filter(rec("offline_todo.connectivity.monitor", logging.WARNING))
        assert not console_filter.filter(rec("httpx", logging.WARNING))
    finally:
        for h in list(root.handlers):
            root.removeHandler(h)
            h.close()
        for h in saved_handlers:
            root.addHandler(h)
        root.setLevel(saved_level)
        logging.captureWarnings(False)
