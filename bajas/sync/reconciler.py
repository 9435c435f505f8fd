"""Route planning reconciliation.

Diffs the planning feed (route → zone / day / salesperson) against the
``route_assignments`` table and applies inserts and updates. Every run,
successful or not, leaves one row in ``sync_log``.

Runs must not overlap. The scheduler (``bajas.worker``) or the operator
invoking the CLI is responsible for that; nothing here locks.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable, Iterable, Mapping
from datetime import datetime
from typing import Any

from sqlalchemy import distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from bajas.db.connection import SessionFactory, get_session
from bajas.db.models import RouteAssignmentModel, SyncLogModel
from bajas.models import RouteAssignment
from bajas.sync.types import FeedRecord, SyncResult, SyncStats, SyncStatus, SyncType

logger = logging.getLogger(__name__)

FeedInput = Iterable[FeedRecord | Mapping[str, Any]]

ALREADY_POPULATED = "La tabla de rutas ya tiene datos; migración inicial omitida"


def normalize_feed(records: FeedInput) -> tuple[list[FeedRecord], int]:
    """Normalize raw feed rows; rows without a route are dropped.

    Returns:
        (records, skipped count)
    """
    normalized: list[FeedRecord] = []
    skipped = 0
    for record in records:
        if not isinstance(record, FeedRecord):
            record = FeedRecord.from_raw(record)
        if not record.route:
            skipped += 1
            continue
        normalized.append(record)
    return normalized, skipped


class SyncReconciler:
    """Applies the planning feed to ``route_assignments``.

    Each run uses its own session (commit on success). Failures are recorded
    in ``sync_log`` through a second, independent session and then re-raised.
    """

    def __init__(self, session_factory: SessionFactory = get_session):
        self.session_factory = session_factory

    async def reconcile(self, feed: FeedInput) -> SyncResult:
        """Insert new routes, update changed ones, count unchanged ones.

        Raises:
            Exception: Whatever failed; an ERROR sync_log row is written first
        """
        start_time = time.time()
        result = SyncResult(sync_type=SyncType.UPDATE, status=SyncStatus.SUCCESS)

        try:
            records, result.skipped = normalize_feed(feed)
            now = datetime.utcnow()

            async with self.session_factory() as session:
                existing = await self._existing_routes(session)

                for record in records:
                    current = existing.get(record.route)

                    if current is None:
                        row = RouteAssignmentModel(
                            route=record.route,
                            zone=record.zone,
                            day=record.day,
                            salesperson=record.salesperson,
                            updated_at=now,
                        )
                        session.add(row)
                        existing[record.route] = row
                        result.inserted += 1
                        logger.info(
                            f"Route {record.route} added: {record.zone} / {record.day} / {record.salesperson}"
                        )
                    elif record.differs_from(current.zone, current.day, current.salesperson):
                        logger.info(
                            f"Route {record.route} changed: "
                            f"{current.zone}/{current.day}/{current.salesperson} -> "
                            f"{record.zone}/{record.day}/{record.salesperson}"
                        )
                        current.zone = record.zone
                        current.day = record.day
                        current.salesperson = record.salesperson
                        current.updated_at = now
                        result.updated += 1
                    else:
                        result.unchanged += 1

                result.message = (
                    f"{result.inserted} nuevas, {result.updated} actualizadas, "
                    f"{result.unchanged} sin cambios"
                )
                session.add(self._log_row(result, now))

        except Exception as e:
            logger.error(f"Route planning sync failed: {e}", exc_info=True)
            await self._record_failure(SyncType.UPDATE, e)
            raise

        result.duration_seconds = time.time() - start_time
        logger.info(f"Route planning sync completed: {result.message}")
        return result

    async def sync_from(self, fetch: Callable[[], Awaitable[FeedInput]]) -> SyncResult:
        """Fetch the feed and reconcile it; a failed fetch is logged like a failed run."""
        try:
            feed = await fetch()
        except Exception as e:
            logger.error(f"Planning feed unavailable: {e}")
            await self._record_failure(SyncType.UPDATE, e)
            raise
        return await self.reconcile(feed)

    async def initial_migration_from(
        self, fetch: Callable[[], Awaitable[FeedInput]]
    ) -> SyncResult:
        """Initial migration that only reads the feed when the table is empty.

        A failed fetch is logged as an INITIAL run with status ERROR, then
        re-raised.
        """
        try:
            async with self.session_factory() as session:
                count = await self._route_count(session)
            if count:
                return self._skipped(count)
            feed = await fetch()
        except Exception as e:
            logger.error(f"Initial route migration failed: {e}", exc_info=True)
            await self._record_failure(SyncType.INITIAL, e)
            raise
        return await self.initial_migration(feed)

    async def initial_migration(self, feed: FeedInput) -> SyncResult:
        """Seed an empty ``route_assignments`` table from the feed.

        Returns a SKIPPED result (``already_populated``) without touching
        anything when the table has rows.
        """
        start_time = time.time()

        try:
            records, skipped = normalize_feed(feed)
            now = datetime.utcnow()

            async with self.session_factory() as session:
                count = await self._route_count(session)
                if count:
                    return self._skipped(count)

                # Last row wins when the feed repeats a route
                by_route = {record.route: record for record in records}
                for record in by_route.values():
                    session.add(
                        RouteAssignmentModel(
                            route=record.route,
                            zone=record.zone,
                            day=record.day,
                            salesperson=record.salesperson,
                            updated_at=now,
                        )
                    )

                result = SyncResult(
                    sync_type=SyncType.INITIAL,
                    status=SyncStatus.SUCCESS,
                    inserted=len(by_route),
                    skipped=skipped,
                    message=f"Migración inicial: {len(by_route)} rutas",
                )
                session.add(self._log_row(result, now))

        except Exception as e:
            logger.error(f"Initial route migration failed: {e}", exc_info=True)
            await self._record_failure(SyncType.INITIAL, e)
            raise

        result.duration_seconds = time.time() - start_time
        logger.info(result.message)
        return result

    async def _route_count(self, session: AsyncSession) -> int:
        return await session.scalar(select(func.count()).select_from(RouteAssignmentModel)) or 0

    @staticmethod
    def _skipped(count: int) -> SyncResult:
        logger.warning(f"Initial migration skipped: {count} routes already present")
        return SyncResult(
            sync_type=SyncType.INITIAL,
            status=SyncStatus.SKIPPED,
            message=ALREADY_POPULATED,
        )

    async def _existing_routes(self, session: AsyncSession) -> dict[str, RouteAssignmentModel]:
        rows = await session.execute(select(RouteAssignmentModel))
        return {row.route: row for row in rows.scalars()}

    @staticmethod
    def _log_row(result: SyncResult, timestamp: datetime) -> SyncLogModel:
        return SyncLogModel(
            sync_type=result.sync_type.value,
            records_inserted=result.inserted,
            records_updated=result.updated,
            records_unchanged=result.unchanged,
            status=result.status.value,
            message=result.message,
            run_timestamp=timestamp,
        )

    async def _record_failure(self, sync_type: SyncType, error: Exception) -> None:
        try:
            async with self.session_factory() as session:
                session.add(
                    SyncLogModel(
                        sync_type=sync_type.value,
                        records_inserted=0,
                        records_updated=0,
                        records_unchanged=0,
                        status=SyncStatus.ERROR.value,
                        message=str(error),
                        run_timestamp=datetime.utcnow(),
                    )
                )
        except Exception as log_error:
            # The original failure is re-raised by the caller
            logger.error(f"Could not record sync failure in sync_log: {log_error}")


async def sync_stats(session: AsyncSession) -> SyncStats:
    """Route planning totals plus sync run history."""
    total_routes = await session.scalar(select(func.count()).select_from(RouteAssignmentModel))

    zones_result = await session.execute(
        select(distinct(RouteAssignmentModel.zone))
        .where(RouteAssignmentModel.zone != "")
        .order_by(RouteAssignmentModel.zone)
    )
    zones = [zone for zone in zones_result.scalars()]

    total_salespeople = await session.scalar(
        select(func.count(distinct(RouteAssignmentModel.salesperson))).where(
            RouteAssignmentModel.salesperson != ""
        )
    )

    status_counts = await session.execute(
        select(SyncLogModel.status, func.count()).group_by(SyncLogModel.status)
    )
    by_status = {status: count for status, count in status_counts.all()}

    last_success = await session.scalar(
        select(func.max(SyncLogModel.run_timestamp)).where(
            SyncLogModel.status == SyncStatus.SUCCESS.value
        )
    )

    return SyncStats(
        total_routes=total_routes or 0,
        total_zones=len(zones),
        total_salespeople=total_salespeople or 0,
        zones=zones,
        total_syncs=sum(by_status.values()),
        successful_syncs=by_status.get(SyncStatus.SUCCESS.value, 0),
        failed_syncs=by_status.get(SyncStatus.ERROR.value, 0),
        last_successful_sync=last_success,
    )


async def recent_sync_logs(session: AsyncSession, limit: int = 20) -> list[SyncLogModel]:
    """Most recent sync runs first."""
    result = await session.execute(
        select(SyncLogModel)
        .order_by(SyncLogModel.run_timestamp.desc(), SyncLogModel.id.desc())
        .limit(limit)
    )
    return list(result.scalars())


def _to_assignment(row: RouteAssignmentModel) -> RouteAssignment:
    return RouteAssignment(
        route=row.route,
        zone=row.zone,
        day=row.day,
        salesperson=row.salesperson,
        synced_at=row.updated_at,
    )


async def routes_by_salesperson(session: AsyncSession, name: str) -> list[RouteAssignment]:
    """Routes whose salesperson contains ``name`` (case-insensitive)."""
    pattern = f"%{name.strip().lower()}%"
    result = await session.execute(
        select(RouteAssignmentModel)
        .where(func.lower(RouteAssignmentModel.salesperson).like(pattern))
        .order_by(RouteAssignmentModel.route)
    )
    return [_to_assignment(row) for row in result.scalars()]


async def routes_by_zone(session: AsyncSession, zone: str) -> list[RouteAssignment]:
    result = await session.execute(
        select(RouteAssignmentModel)
        .where(RouteAssignmentModel.zone == zone.strip())
        .order_by(RouteAssignmentModel.route)
    )
    return [_to_assignment(row) for row in result.scalars()]


async def list_routes(session: AsyncSession) -> list[RouteAssignment]:
    """All routes, ordered by route code."""
    result = await session.execute(
        select(RouteAssignmentModel).order_by(RouteAssignmentModel.route)
    )
    return [_to_assignment(row) for row in result.scalars()]
