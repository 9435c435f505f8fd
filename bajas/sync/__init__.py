"""Route planning sync: feed acquisition and reconciliation."""

from bajas.sync.feed import PlanningFeed, sheet_export_url
from bajas.sync.reconciler import SyncReconciler, recent_sync_logs, sync_stats
from bajas.sync.types import FeedRecord, SyncResult, SyncStats, SyncStatus, SyncType

__all__ = [
    "FeedRecord",
    "PlanningFeed",
    "SyncReconciler",
    "SyncResult",
    "SyncStats",
    "SyncStatus",
    "SyncType",
    "recent_sync_logs",
    "sheet_export_url",
    "sync_stats",
]
