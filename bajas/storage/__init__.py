"""Storage adapters behind the eligibility read interface."""

from bajas.storage.base import SalesStore
from bajas.storage.snapshot import Snapshot, SnapshotHolder, SnapshotSalesStore
from bajas.storage.sql import SqlSalesStore

__all__ = [
    "SalesStore",
    "Snapshot",
    "SnapshotHolder",
    "SnapshotSalesStore",
    "SqlSalesStore",
]
