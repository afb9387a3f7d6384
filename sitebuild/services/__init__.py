from .audit_service import AuditHarness
from .build_service import WebsiteBuilder
from .watch_service import RebuildScheduler, WatchService, WatchState

__all__ = [
    "AuditHarness",
    "WebsiteBuilder",
    "RebuildScheduler",
    "WatchService",
    "WatchState",
]
