"""Read interface the eligibility engine is written against.

Two adapters implement it: ``SnapshotSalesStore`` (cached spreadsheet
snapshot) and ``SqlSalesStore`` (relational store).
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from bajas.models import Client, RouteAssignment, SaleRecord


class SalesStore(ABC):
    """Narrow read-only view over clients, sales and route planning.

    Implementations may raise on I/O failure; the engine turns any such
    failure into an ERROR decision.
    """

    @abstractmethod
    async def get_client_by_code(self, code: str) -> Client | None:
        """Return the registry entry for ``code`` (already trimmed), or None."""

    @abstractmethod
    async def get_sales_by_client(self, code: str) -> list[SaleRecord]:
        """Return every raw sale row for ``code``, dates not yet normalized."""

    @abstractmethod
    async def get_route_assignment(self, route: str) -> RouteAssignment | None:
        """Return the planning row for ``route``, or None."""
