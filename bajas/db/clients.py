"""Client registry and sales ledger maintenance."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date

from sqlalchemy import delete, distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from bajas.db.models import ClientModel, SaleModel
from bajas.models import Client, SaleRecord

logger = logging.getLogger(__name__)

BATCH_SIZE = 1000


@dataclass
class ClientStats:
    total: int = 0
    active: int = 0
    inactive: int = 0
    zones: int = 0
    routes: int = 0


@dataclass
class SalesRange:
    """Span of the sales ledger."""

    count: int = 0
    first_sale: date | None = None
    last_sale: date | None = None
    distinct_days: int = 0


async def upsert_client(session: AsyncSession, client: Client) -> bool:
    """Insert or update a client by code.

    Returns:
        True if inserted, False if an existing row was updated
    """
    row = await session.get(ClientModel, client.code)
    if row is None:
        session.add(
            ClientModel(
                code=client.code,
                name=client.name,
                route=client.route or None,
                zone=client.zone or None,
                active=client.active,
            )
        )
        return True

    row.name = client.name
    row.route = client.route or None
    row.zone = client.zone or None
    return False


async def upsert_clients(session: AsyncSession, clients: Iterable[Client]) -> dict[str, int]:
    stats = {"inserted": 0, "updated": 0}
    for client in clients:
        if await upsert_client(session, client):
            stats["inserted"] += 1
        else:
            stats["updated"] += 1
    await session.flush()
    return stats


async def set_client_active(session: AsyncSession, code: str, active: bool) -> bool:
    """Toggle the active flag. Returns False if the client does not exist."""
    row = await session.get(ClientModel, code.strip())
    if row is None:
        return False
    row.active = active
    await session.flush()
    logger.info(f"Client {row.code} {'activated' if active else 'deactivated'}")
    return True


async def client_stats(session: AsyncSession) -> ClientStats:
    total = await session.scalar(select(func.count()).select_from(ClientModel)) or 0
    active = (
        await session.scalar(
            select(func.count()).select_from(ClientModel).where(ClientModel.active.is_(True))
        )
        or 0
    )
    zones = await session.scalar(select(func.count(distinct(ClientModel.zone)))) or 0
    routes = await session.scalar(select(func.count(distinct(ClientModel.route)))) or 0
    return ClientStats(total=total, active=active, inactive=total - active, zones=zones, routes=routes)


async def add_sales(session: AsyncSession, records: Iterable[SaleRecord]) -> int:
    """Append sales; ``sale_date`` must already be a date. Flushes in batches."""
    count = 0
    for record in records:
        session.add(
            SaleModel(
                client_code=record.client_code,
                sale_date=record.sale_date,
                client_name=record.client_name or None,
            )
        )
        count += 1
        if count % BATCH_SIZE == 0:
            await session.flush()
    await session.flush()
    return count


async def clear_sales(session: AsyncSession) -> int:
    result = await session.execute(delete(SaleModel))
    logger.warning(f"Sales ledger cleared ({result.rowcount} rows)")
    return result.rowcount


async def replace_sales(session: AsyncSession, records: Iterable[SaleRecord]) -> int:
    """Swap the whole ledger inside the caller's transaction."""
    await clear_sales(session)
    return await add_sales(session, records)


async def prune_sales_before(session: AsyncSession, cutoff: date) -> int:
    """Delete sales dated before ``cutoff``. Returns rows deleted."""
    result = await session.execute(delete(SaleModel).where(SaleModel.sale_date < cutoff))
    logger.info(f"Pruned {result.rowcount} sales before {cutoff.isoformat()}")
    return result.rowcount


async def sales_count(session: AsyncSession) -> int:
    return await session.scalar(select(func.count()).select_from(SaleModel)) or 0


async def sales_range(session: AsyncSession) -> SalesRange:
    row = (
        await session.execute(
            select(
                func.count(SaleModel.id),
                func.min(SaleModel.sale_date),
                func.max(SaleModel.sale_date),
                func.count(distinct(SaleModel.sale_date)),
            )
        )
    ).one()
    return SalesRange(
        count=row[0] or 0,
        first_sale=row[1],
        last_sale=row[2],
        distinct_days=row[3] or 0,
    )
