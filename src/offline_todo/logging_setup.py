# src/offline_todo/logging_setup.py

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FILE_NAME = "offline-todo.log"

# Background loggers that would otherwise interleave with the REPL prompt.
_QUIET_PREFIXES = ("offline_todo.connectivity.",)


class _InteractiveConsoleFilter(logging.Filter):
    """
    Console gets our own logs, minus the chatty background ones.

    The monitor probes every 30s, so offline_todo.connectivity.* only reaches the
    console at WARNING+. Everything not ours (httpx, py.warnings, ...) needs ERROR+.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if not record.name.startswith("offline_todo."):
            return record.levelno >= logging.ERROR
        if record.name.startswith(_QUIET_PREFIXES):
            return record.levelno >= logging.WARNING
        return True


def _formatter() -> logging.Formatter:
    return logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def setup_logging(
    *,
    log_dir: str | Path = ".local/offline-todo",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    max_bytes: int = 2_000_000,
    backup_count: int = 3,
) -> Path:
    """
    Install a filtered stderr handler and a rotating file handler on the root logger.

    Call once, before the first log line. Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = _formatter()

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(fmt)
    console.addFilter(_InteractiveConsoleFilter())
    root.addHandler(console)

    # Periodic probes log at DEBUG: rotate so the file stays bounded.
    file_handler = RotatingFileHandler(
        str(log_file), maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    file_handler.setLevel(file_level)
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    logging.captureWarnings(True)
    for noisy in ("httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return log_file
