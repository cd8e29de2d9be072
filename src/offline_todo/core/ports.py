# src/offline_todo/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The sync orchestrator depends on a Protocol instead of the concrete HTTP client.
This keeps the remote authority swappable and makes testing easier.
"""

from typing import Any, Protocol


class HealthReport(Protocol):
    connected: bool
    message: str


class MergeAuthority(Protocol):
    """Remote service that merges a client snapshot and returns the canonical set."""

    async def merge(self, collection: str, records: list[dict[str, Any]]) -> list[dict[str, Any]]: ...

    async def check_health(self) -> HealthReport: ...

    async def __aenter__(self) -> MergeAuthority: ...

    async def __aexit__(self, *exc: object) -> None: ...
