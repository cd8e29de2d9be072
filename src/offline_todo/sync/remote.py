# src/offline_todo/sync/remote.py

"""
HTTP client for the remote merge authority.

Endpoints:
- POST {api}/api/sync/<collection>  body {<collection>: [...]} -> {data: [...]}
- GET  {api}/health                 -> {status: "ok", message: <fixed string>}

The authority does all conflict resolution; this client only ships snapshots and
checks the shape of what comes back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from ..errors import NetworkFailure, NotConfigured, ProtocolMismatch, RemoteRejected

logger = logging.getLogger(__name__)

API_URL_SETTING = "apiUrl"


@dataclass(frozen=True, slots=True)
class HealthStatus:
    connected: bool
    message: str


def resolve_api_url(store: Any, settings: Any) -> str:
    """
    API URL saved in the local settings collection wins over TODO_API_URL.

    Raises NotConfigured if neither is set.
    """
    saved = None
    try:
        saved = store.settings.get_value(API_URL_SETTING)
    except Exception:
        logger.debug("Could not read %s setting", API_URL_SETTING, exc_info=True)
    url = str(saved or getattr(settings, "api_url", "") or "").strip().rstrip("/")
    if not url:
        raise NotConfigured("no remote API URL configured")
    return url


def _error_message(response: httpx.Response, fallback: str) -> str:
    try:
        payload = response.json()
    except ValueError:
        text = response.text.strip()
        return text or fallback
    if isinstance(payload, dict) and isinstance(payload.get("message"), str) and payload["message"]:
        return payload["message"]
    return fallback


class RemoteAuthorityClient:
    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        health_message: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = float(timeout)
        self.health_message = health_message
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers={"Content-Type": "application/json"},
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> RemoteAuthorityClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()

    async def merge(self, collection: str, records: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Send the local snapshot, return the authority's merged collection."""
        client = await self._get_client()
        try:
            response = await client.post(f"/api/sync/{collection}", json={collection: records})
        except httpx.TimeoutException as e:
            raise NetworkFailure(f"sync request timed out after {self.timeout:.0f}s") from e
        except httpx.HTTPError as e:
            raise NetworkFailure(f"sync request failed: {e.__class__.__name__}") from e

        if not response.is_success:
            raise RemoteRejected(
                _error_message(response, f"Failed to sync {collection}"),
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise ProtocolMismatch("merge response is not JSON") from e

        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, list):
            raise ProtocolMismatch("merge response has no 'data' array")
        if not all(isinstance(item, dict) for item in data):
            raise ProtocolMismatch("merge response 'data' must contain objects")

        logger.info("Remote merged %s: sent=%d received=%d", collection, len(records), len(data))
        return data

    async def check_health(self) -> HealthStatus:
        """
        Liveness + compatibility check. Never raises: failures become connected=False.

        A 304 means the backend already answered us before and is treated as connected.
        """
        try:
            client = await self._get_client()
            response = await client.get("/health")
        except httpx.HTTPError as e:
            logger.info("Backend health check failed: %s", e.__class__.__name__)
            return HealthStatus(connected=False, message=str(e) or e.__class__.__name__)

        if response.status_code == 304:
            return HealthStatus(connected=True, message="not modified")
        if not response.is_success:
            return HealthStatus(connected=False, message="Backend health check failed")

        try:
            payload = response.json()
        except ValueError:
            return HealthStatus(connected=False, message="Backend returned non-JSON health payload")

        if not isinstance(payload, dict):
            return HealthStatus(connected=False, message="Backend returned an unexpected health payload")
        if payload.get("status") != "ok" or payload.get("message") != self.health_message:
            return HealthStatus(connected=False, message="Backend is not a compatible sync server")
        return HealthStatus(connected=True, message=str(payload["message"]))
