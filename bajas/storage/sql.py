"""Store-backed adapter: reads clients, sales and routes per call."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bajas.db.models import ClientModel, RouteAssignmentModel, SaleModel
from bajas.models import Client, RouteAssignment, SaleRecord
from bajas.storage.base import SalesStore


class SqlSalesStore(SalesStore):
    """SalesStore over the relational tables.

    The session is owned by the caller (usually ``get_session()``); this
    adapter never commits.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_client_by_code(self, code: str) -> Client | None:
        row = await self.session.get(ClientModel, code)
        if row is None:
            return None
        return Client(
            code=row.code,
            name=row.name,
            route=row.route,
            zone=row.zone,
            active=row.active,
        )

    async def get_sales_by_client(self, code: str) -> list[SaleRecord]:
        stmt = (
            select(SaleModel)
            .where(SaleModel.client_code == code)
            .order_by(SaleModel.sale_date.desc(), SaleModel.id.desc())
        )
        result = await self.session.execute(stmt)
        return [
            SaleRecord(
                client_code=row.client_code,
                sale_date=row.sale_date,
                client_name=row.client_name,
            )
            for row in result.scalars()
        ]

    async def get_route_assignment(self, route: str) -> RouteAssignment | None:
        row = await self.session.get(RouteAssignmentModel, route)
        if row is None:
            return None
        return RouteAssignment(
            route=row.route,
            zone=row.zone,
            day=row.day,
            salesperson=row.salesperson,
            synced_at=row.updated_at,
        )
