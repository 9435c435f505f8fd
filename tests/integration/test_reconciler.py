"""Integration tests for route planning reconciliation.

Each run opens its own sessions, so these tests use the file-backed engine.
"""

from __future__ import annotations

import pytest
from sqlalchemy import select

from bajas.db.models import RouteAssignmentModel, SyncLogModel
from bajas.errors import FeedUnavailableError
from bajas.sync.reconciler import (
    ALREADY_POPULATED,
    SyncReconciler,
    list_routes,
    recent_sync_logs,
    routes_by_salesperson,
    routes_by_zone,
    sync_stats,
)
from bajas.sync.types import FeedRecord, SyncStatus, SyncType

FEED = [
    {"RUTA": "R101", "ZONA": "NORTE", "DIA": "LUNES", "VENDEDOR": "Juan Pérez"},
    {"RUTA": "R102", "ZONA": "SUR", "DIA": "MARTES", "VENDEDOR": "Ana Flores"},
    {"RUTA": "R103", "ZONA": "NORTE", "DIA": "MIERCOLES", "VENDEDOR": "Juan Pérez"},
]


async def routes(session_factory) -> dict[str, RouteAssignmentModel]:
    async with session_factory() as session:
        rows = (await session.execute(select(RouteAssignmentModel))).scalars()
        return {row.route: row for row in rows}


async def logs(session_factory) -> list[SyncLogModel]:
    async with session_factory() as session:
        rows = await session.execute(select(SyncLogModel).order_by(SyncLogModel.id))
        return list(rows.scalars())


class TestReconcile:
    """Test insert / update / unchanged accounting."""

    @pytest.mark.asyncio
    async def test_first_run_inserts_everything(self, session_factory):
        reconciler = SyncReconciler(session_factory)

        result = await reconciler.reconcile(FEED)

        assert result.success
        assert (result.inserted, result.updated, result.unchanged) == (3, 0, 0)
        assert result.message == "3 nuevas, 0 actualizadas, 0 sin cambios"
        stored = await routes(session_factory)
        assert stored["R102"].salesperson == "Ana Flores"

    @pytest.mark.asyncio
    async def test_same_feed_twice_is_idempotent(self, session_factory):
        reconciler = SyncReconciler(session_factory)
        await reconciler.reconcile(FEED)

        result = await reconciler.reconcile(FEED)

        assert (result.inserted, result.updated, result.unchanged) == (0, 0, 3)
        assert len(await routes(session_factory)) == 3

    @pytest.mark.asyncio
    async def test_changed_route_updated(self, session_factory):
        reconciler = SyncReconciler(session_factory)
        await reconciler.reconcile(FEED)
        changed = [dict(row) for row in FEED]
        changed[1]["VENDEDOR"] = "Rosa Condori"
        changed[2]["DIA"] = "JUEVES"

        result = await reconciler.reconcile(changed)

        assert (result.inserted, result.updated, result.unchanged) == (0, 2, 1)
        stored = await routes(session_factory)
        assert stored["R102"].salesperson == "Rosa Condori"
        assert stored["R103"].day == "JUEVES"

    @pytest.mark.asyncio
    async def test_routes_missing_from_feed_are_kept(self, session_factory):
        reconciler = SyncReconciler(session_factory)
        await reconciler.reconcile(FEED)

        await reconciler.reconcile(FEED[:1])

        assert set(await routes(session_factory)) == {"R101", "R102", "R103"}

    @pytest.mark.asyncio
    async def test_rows_without_route_skipped(self, session_factory):
        feed = FEED + [{"RUTA": "  ", "ZONA": "ESTE"}, {"ZONA": "OESTE"}]

        result = await SyncReconciler(session_factory).reconcile(feed)

        assert result.skipped == 2
        assert result.inserted == 3

    @pytest.mark.asyncio
    async def test_accepts_feed_records(self, session_factory):
        feed = [FeedRecord(route="R9", zone="CENTRO", day="LUNES", salesperson="Eva")]

        result = await SyncReconciler(session_factory).reconcile(feed)

        assert result.inserted == 1

    @pytest.mark.asyncio
    async def test_each_run_logged(self, session_factory):
        reconciler = SyncReconciler(session_factory)
        await reconciler.reconcile(FEED)
        await reconciler.reconcile(FEED)

        entries = await logs(session_factory)

        assert [entry.status for entry in entries] == ["SUCCESS", "SUCCESS"]
        assert [entry.sync_type for entry in entries] == ["UPDATE", "UPDATE"]
        assert entries[0].records_inserted == 3
        assert entries[1].records_unchanged == 3


class TestSyncFailures:
    @pytest.mark.asyncio
    async def test_failed_fetch_logged_and_reraised(self, session_factory):
        async def broken_fetch():
            raise ConnectionError("sin conexión")

        with pytest.raises(ConnectionError):
            await SyncReconciler(session_factory).sync_from(broken_fetch)

        entries = await logs(session_factory)
        assert len(entries) == 1
        assert entries[0].status == SyncStatus.ERROR.value
        assert "sin conexión" in entries[0].message

    @pytest.mark.asyncio
    async def test_failed_initial_fetch_logged_and_reraised(self, session_factory):
        async def broken_fetch():
            raise FeedUnavailableError("planilla no disponible")

        with pytest.raises(FeedUnavailableError):
            await SyncReconciler(session_factory).initial_migration_from(broken_fetch)

        entries = await logs(session_factory)
        assert [(entry.sync_type, entry.status) for entry in entries] == [("INITIAL", "ERROR")]
        assert "planilla no disponible" in entries[0].message
        assert await routes(session_factory) == {}

    @pytest.mark.asyncio
    async def test_failure_while_reading_feed_logged_and_reraised(self, session_factory):
        class ExplodingFeed:
            def __iter__(self):
                yield FEED[0]
                raise RuntimeError("fila corrupta")

        with pytest.raises(RuntimeError):
            await SyncReconciler(session_factory).reconcile(ExplodingFeed())

        assert await routes(session_factory) == {}
        entries = await logs(session_factory)
        assert [entry.status for entry in entries] == ["ERROR"]

    @pytest.mark.asyncio
    async def test_sync_from_successful_fetch(self, session_factory):
        async def fetch():
            return FEED

        result = await SyncReconciler(session_factory).sync_from(fetch)

        assert result.inserted == 3


class TestInitialMigration:
    @pytest.mark.asyncio
    async def test_seeds_empty_table(self, session_factory):
        feed = FEED + [{"RUTA": "R101", "ZONA": "NORTE", "DIA": "VIERNES", "VENDEDOR": "Juan Pérez"}]

        result = await SyncReconciler(session_factory).initial_migration(feed)

        assert result.success
        assert result.sync_type == SyncType.INITIAL
        assert result.inserted == 3
        stored = await routes(session_factory)
        assert stored["R101"].day == "VIERNES"
        assert (await logs(session_factory))[0].sync_type == "INITIAL"

    @pytest.mark.asyncio
    async def test_skipped_when_table_populated(self, session_factory):
        reconciler = SyncReconciler(session_factory)
        await reconciler.reconcile(FEED[:1])

        result = await reconciler.initial_migration(FEED)

        assert result.already_populated
        assert result.message == ALREADY_POPULATED
        assert set(await routes(session_factory)) == {"R101"}

    @pytest.mark.asyncio
    async def test_from_fetch_seeds_empty_table(self, session_factory):
        async def fetch():
            return FEED

        result = await SyncReconciler(session_factory).initial_migration_from(fetch)

        assert result.inserted == 3
        assert set(await routes(session_factory)) == {"R101", "R102", "R103"}

    @pytest.mark.asyncio
    async def test_from_fetch_skips_reading_feed_when_populated(self, session_factory):
        reconciler = SyncReconciler(session_factory)
        await reconciler.reconcile(FEED[:1])
        fetched = []

        async def fetch():
            fetched.append(True)
            return FEED

        result = await reconciler.initial_migration_from(fetch)

        assert result.already_populated
        assert fetched == []


class TestRouteQueries:
    @pytest.mark.asyncio
    async def test_queries_and_stats(self, session_factory):
        await SyncReconciler(session_factory).reconcile(FEED)

        async with session_factory() as session:
            by_person = await routes_by_salesperson(session, "juan")
            by_zone = await routes_by_zone(session, "SUR")
            all_routes = await list_routes(session)
            stats = await sync_stats(session)
            recent = await recent_sync_logs(session, limit=5)

        assert [route.route for route in by_person] == ["R101", "R103"]
        assert [route.route for route in by_zone] == ["R102"]
        assert [route.route for route in all_routes] == ["R101", "R102", "R103"]
        assert stats.total_routes == 3
        assert stats.zones == ["NORTE", "SUR"]
        assert stats.total_salespeople == 2
        assert stats.successful_syncs == 1
        assert stats.failed_syncs == 0
        assert stats.last_successful_sync is not None
        assert len(recent) == 1
