from __future__ import annotations

from .coordinator import SyncCoordinator, SyncState, SyncStatus
from .http_client import PAGE_SIZE, GitHubClient
from .scheduler import RefreshScheduler

__all__ = [
    "PAGE_SIZE",
    "GitHubClient",
    "RefreshScheduler",
    "SyncCoordinator",
    "SyncState",
    "SyncStatus",
]
