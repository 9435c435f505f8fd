"""Cache-backed storage adapter.

A ``Snapshot`` is an immutable copy of the client registry, the sales ledger
and the route planning table, built from spreadsheet rows. ``SnapshotHolder``
owns the current snapshot and swaps it wholesale, so a reader sees either
the old dataset or the new one, never a mix.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any

from bajas.models import Client, RouteAssignment, SaleRecord, normalize_code
from bajas.storage.base import SalesStore

logger = logging.getLogger(__name__)

Row = Mapping[str, Any]

# Spreadsheet column headers (matched case-insensitively)
SALES_CODE = "CLIENTE"
SALES_DATE = "FECHA"
SALES_NAME = "NOMBRE CLIENTE"
CLIENT_CODE = "CODIGO"
CLIENT_NAME = "NOMBRE"
ROUTE = "RUTA"
ZONE = "ZONA"
DAY = "DIA"
SALESPERSON = "VENDEDOR"


def canonical_row(row: Row) -> dict[str, Any]:
    """Upper-case, trimmed header keys so 'Fecha', 'FECHA ' and 'fecha' agree."""
    return {str(key).strip().upper(): value for key, value in row.items()}


def _freeze(data: dict) -> Mapping:
    return MappingProxyType(data)


@dataclass(frozen=True)
class Snapshot:
    """Read-only dataset served by ``SnapshotSalesStore``."""

    clients: Mapping[str, Client] = field(default_factory=lambda: _freeze({}))
    sales: Mapping[str, tuple[SaleRecord, ...]] = field(default_factory=lambda: _freeze({}))
    routes: Mapping[str, RouteAssignment] = field(default_factory=lambda: _freeze({}))
    loaded_at: datetime = field(default_factory=datetime.utcnow)

    @classmethod
    def from_rows(
        cls,
        sales_rows: Iterable[Row] = (),
        client_rows: Iterable[Row] = (),
        route_rows: Iterable[Row] = (),
        loaded_at: datetime | None = None,
    ) -> Snapshot:
        """Build a snapshot from raw spreadsheet rows.

        Sale dates are kept raw; rows without a client code, registry rows
        without a code and planning rows without a route are dropped. On
        duplicate keys the last row wins.
        """
        sales: dict[str, list[SaleRecord]] = {}
        for raw in sales_rows:
            row = canonical_row(raw)
            code = normalize_code(row.get(SALES_CODE))
            if not code:
                continue
            sales.setdefault(code, []).append(
                SaleRecord(
                    client_code=code,
                    sale_date=row.get(SALES_DATE),
                    client_name=row.get(SALES_NAME),
                )
            )

        clients: dict[str, Client] = {}
        for raw in client_rows:
            row = canonical_row(raw)
            code = normalize_code(row.get(CLIENT_CODE))
            if not code:
                continue
            clients[code] = Client(
                code=code,
                name=row.get(CLIENT_NAME),
                route=row.get(ROUTE),
                zone=row.get(ZONE),
            )

        routes: dict[str, RouteAssignment] = {}
        for raw in route_rows:
            row = canonical_row(raw)
            route = normalize_code(row.get(ROUTE))
            if not route:
                continue
            routes[route] = RouteAssignment(
                route=route,
                zone=row.get(ZONE),
                day=row.get(DAY),
                salesperson=row.get(SALESPERSON),
            )

        snapshot = cls(
            clients=_freeze(clients),
            sales=_freeze({code: tuple(records) for code, records in sales.items()}),
            routes=_freeze(routes),
            loaded_at=loaded_at or datetime.utcnow(),
        )
        logger.info(
            f"Snapshot built: {len(clients)} clients, {snapshot.sale_count} sales, "
            f"{len(routes)} routes"
        )
        return snapshot

    @property
    def sale_count(self) -> int:
        return sum(len(records) for records in self.sales.values())


class SnapshotHolder:
    """Owns the current snapshot; ``replace`` is a single reference swap."""

    def __init__(self, snapshot: Snapshot | None = None):
        self._snapshot = snapshot if snapshot is not None else Snapshot()

    @property
    def current(self) -> Snapshot:
        return self._snapshot

    def replace(self, snapshot: Snapshot) -> Snapshot:
        """Install ``snapshot`` and return the one it replaced."""
        previous = self._snapshot
        self._snapshot = snapshot
        logger.info(f"Snapshot replaced (loaded at {snapshot.loaded_at.isoformat()})")
        return previous


class SnapshotSalesStore(SalesStore):
    """SalesStore over whichever snapshot the holder has at call time."""

    def __init__(self, holder: SnapshotHolder):
        self.holder = holder

    async def get_client_by_code(self, code: str) -> Client | None:
        return self.holder.current.clients.get(code)

    async def get_sales_by_client(self, code: str) -> list[SaleRecord]:
        return list(self.holder.current.sales.get(code, ()))

    async def get_route_assignment(self, route: str) -> RouteAssignment | None:
        return self.holder.current.routes.get(route)
