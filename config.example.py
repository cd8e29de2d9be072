# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real endpoints with credentials in them. Use .env (local, gitignored).

This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "TODO_APP_NAME": "App display name (default: offline-todo).",
    "TODO_LOG_LEVEL": "Console logging level (default: INFO). The log file always gets DEBUG.",
    "TODO_CONSOLE_ENABLED": "Run the interactive console (true/false, default: true).",
    # Paths (gitignored)
    "TODO_DATA_DIR": "Local data directory (default: .local/offline-todo).",
    "TODO_DB_PATH": "Local store SQLite path (default: <data_dir>/todo.sqlite3).",
    "TODO_EXPORT_DIR": "Default target of /export and /csv (default: <data_dir>/exports).",
    # Remote merge authority
    "TODO_API_URL": (
        "Sync backend base URL. Empty => fully offline. "
        "A URL saved with /api <url> takes precedence."
    ),
    "TODO_SYNC_TIMEOUT_SECONDS": "Timeout of one sync request (default: 30).",
    "TODO_HEALTH_MESSAGE": (
        "Liveness message the backend must return from /health "
        "(default: Todo sync backend is running)."
    ),
    "TODO_AUTO_SYNC_ON_RECONNECT": "Sync todos and categories after coming back online (default: false).",
    # Connectivity probe
    "TODO_PROBE_URL": "URL fetched to decide online/offline (default: https://www.google.com/favicon.ico).",
    "TODO_PROBE_TIMEOUT_SECONDS": "Probe timeout; slower answers count as offline (default: 3).",
    "TODO_PROBE_INTERVAL_SECONDS": "Seconds between periodic probes (default: 30).",
}
