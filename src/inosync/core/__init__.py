"""核心业务逻辑."""

from inosync.core.fetcher import ExternalFetcher, ExternalItem, RetryPolicy
from inosync.core.inoreader import InoreaderClient, InoreaderConfig, RateLimitInfo
from inosync.core.reporter import StatusReporter
from inosync.core.store import SyncStatusStore
from inosync.core.sync import SyncOptions, SyncOrchestrator, create_orchestrator
from inosync.core.usage import ApiUsageTracker

__all__ = [
    "ApiUsageTracker",
    "ExternalFetcher",
    "ExternalItem",
    "InoreaderClient",
    "InoreaderConfig",
    "RateLimitInfo",
    "RetryPolicy",
    "StatusReporter",
    "SyncOptions",
    "SyncOrchestrator",
    "SyncStatusStore",
    "create_orchestrator",
]
