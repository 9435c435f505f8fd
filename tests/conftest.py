"""Pytest configuration and fixtures for bajas tests.

Provides common fixtures for testing.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import date, timedelta
from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from bajas.config import reset_config
from bajas.db.models import Base
from bajas.eligibility.dates import serial_for
from bajas.storage.snapshot import Snapshot, SnapshotHolder, SnapshotSalesStore


@pytest.fixture(autouse=True)
def setup_test_env(monkeypatch):
    """Set up test environment variables."""
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.delenv("GOOGLE_SHEET_URL", raising=False)
    monkeypatch.delenv("PLANNING_FALLBACK_CSV", raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def today() -> date:
    """Fixed reference date for decisions."""
    return date(2025, 6, 15)


@pytest_asyncio.fixture()
async def db_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """File-backed SQLite so several sessions see the same data."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'bajas.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest_asyncio.fixture()
async def db_session(db_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    SessionLocal = sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        await session.close()


@pytest.fixture
def session_factory(db_engine: AsyncEngine):
    """Same contract as bajas.db.connection.get_session, bound to the test engine."""
    SessionLocal = sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)

    @asynccontextmanager
    async def _session() -> AsyncGenerator[AsyncSession, None]:
        session = SessionLocal()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    return _session


@pytest.fixture
def client_rows() -> list[dict]:
    """Client registry rows as read from the clients workbook."""
    return [
        {"CODIGO": "100200", "NOMBRE": "TIENDA DOÑA ROSA", "RUTA": "R101", "ZONA": "NORTE"},
        {"CODIGO": "420568", "NOMBRE": "ABARROTES EL SOL", "RUTA": "R102", "ZONA": "SUR"},
        {"CODIGO": "300300", "NOMBRE": "KIOSCO SAN MIGUEL", "RUTA": "R999", "ZONA": "ESTE"},
        {"CODIGO": "500500", "NOMBRE": "MINIMARKET LUZ", "RUTA": "", "ZONA": "OESTE"},
    ]


@pytest.fixture
def route_rows() -> list[dict]:
    """Route planning rows as exported from the planning sheet."""
    return [
        {"RUTA": "R101", "ZONA": "NORTE", "DIA": "LUNES", "VENDEDOR": "Juan Pérez"},
        {"RUTA": "R102", "ZONA": "", "DIA": "MARTES", "VENDEDOR": "Ana Flores"},
    ]


@pytest.fixture
def sales_rows(today: date) -> list[dict]:
    """Sales rows with spreadsheet serial dates, as in the VentasPOD export."""
    return [
        {"Fecha": serial_for(today - timedelta(days=10)), "Cliente": 100200, "Nombre Cliente": "TIENDA DOÑA ROSA"},
        {"Fecha": serial_for(today - timedelta(days=40)), "Cliente": 100200, "Nombre Cliente": "TIENDA DOÑA ROSA"},
        {"Fecha": serial_for(today - timedelta(days=200)), "Cliente": 300300, "Nombre Cliente": "KIOSCO SAN MIGUEL"},
        {"Fecha": serial_for(today - timedelta(days=5)), "Cliente": 777777, "Nombre Cliente": "BODEGA SIN REGISTRO"},
    ]


@pytest.fixture
def make_store():
    """Factory: SnapshotSalesStore over the given rows."""

    def _make(
        sales_rows: list[dict] | None = None,
        client_rows: list[dict] | None = None,
        route_rows: list[dict] | None = None,
    ) -> SnapshotSalesStore:
        snapshot = Snapshot.from_rows(
            sales_rows=sales_rows or [],
            client_rows=client_rows or [],
            route_rows=route_rows or [],
        )
        return SnapshotSalesStore(SnapshotHolder(snapshot))

    return _make


@pytest.fixture
def store(make_store, sales_rows, client_rows, route_rows) -> SnapshotSalesStore:
    return make_store(sales_rows, client_rows, route_rows)
