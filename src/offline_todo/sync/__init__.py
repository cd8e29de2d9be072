from .orchestrator import SYNC_COLLECTIONS, SyncOrchestrator, SyncResult
from .remote import HealthStatus, RemoteAuthorityClient, resolve_api_url

__all__ = [
    "SYNC_COLLECTIONS",
    "HealthStatus",
    "RemoteAuthorityClient",
    "SyncOrchestrator",
    "SyncResult",
    "resolve_api_url",
]
