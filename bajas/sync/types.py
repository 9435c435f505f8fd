"""Type definitions for route planning sync."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from bajas.models import normalize_code


class SyncType(str, Enum):
    INITIAL = "INITIAL"
    UPDATE = "UPDATE"


class SyncStatus(str, Enum):
    """Status of a sync run. SKIPPED is returned, never persisted."""

    SUCCESS = "SUCCESS"
    ERROR = "ERROR"
    SKIPPED = "SKIPPED"


def _field(record: Mapping[str, Any], name: str) -> Any:
    """Read ``name`` in upper or lower case (RUTA / ruta)."""
    return record.get(name.upper()) or record.get(name.lower())


def _text(value: Any) -> str:
    if value is None or value != value:
        return ""
    return str(value).strip()


@dataclass(frozen=True)
class FeedRecord:
    """One planning row: route → zone, visit day, salesperson.

    All four fields are trimmed text; empty string means unknown.
    """

    route: str
    zone: str = ""
    day: str = ""
    salesperson: str = ""

    @classmethod
    def from_raw(cls, record: Mapping[str, Any]) -> FeedRecord:
        """Normalize a raw feed row with RUTA/ZONA/DIA/VENDEDOR keys in either case."""
        return cls(
            route=normalize_code(_field(record, "RUTA")),
            zone=_text(_field(record, "ZONA")),
            day=_text(_field(record, "DIA")),
            salesperson=_text(_field(record, "VENDEDOR")),
        )

    def differs_from(self, zone: str, day: str, salesperson: str) -> bool:
        return (self.zone, self.day, self.salesperson) != (zone, day, salesperson)


@dataclass
class SyncResult:
    """Result of a sync run."""

    sync_type: SyncType
    status: SyncStatus
    inserted: int = 0
    updated: int = 0
    unchanged: int = 0
    skipped: int = 0
    message: str = ""
    duration_seconds: float = 0.0

    @property
    def success(self) -> bool:
        return self.status == SyncStatus.SUCCESS

    @property
    def already_populated(self) -> bool:
        return self.sync_type == SyncType.INITIAL and self.status == SyncStatus.SKIPPED

    @property
    def total(self) -> int:
        return self.inserted + self.updated + self.unchanged


@dataclass
class SyncStats:
    """Snapshot of route planning contents and sync history."""

    total_routes: int = 0
    total_zones: int = 0
    total_salespeople: int = 0
    zones: list[str] = field(default_factory=list)
    total_syncs: int = 0
    successful_syncs: int = 0
    failed_syncs: int = 0
    last_successful_sync: datetime | None = None
