"""Reason catalogue administration.

Reasons are never deleted: past requests store the reason by name, so a
retired reason is deactivated instead.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bajas.db.models import ReasonModel
from bajas.errors import DuplicateReasonError, ReasonNotFoundError
from bajas.models import ReasonCode

logger = logging.getLogger(__name__)

DEFAULT_REASONS = (
    "Cierre Definitivo",
    "Cambio de rubro",
    "Cambio de Dueño",
    "Duplicado",
    "Mal punteado",
    "Mudanza",
    "No hay negocio",
    "No hay negocio con ese nombre",
    "Tienda en Alquiler",
    "Otro",
)


def _to_reason(row: ReasonModel) -> ReasonCode:
    return ReasonCode(id=row.id, name=row.name, active=row.active)


def _clean_name(name: str) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValueError("El nombre del motivo es requerido")
    return cleaned


async def list_reasons(session: AsyncSession) -> list[ReasonCode]:
    """All reasons, active first, then by name."""
    result = await session.execute(
        select(ReasonModel).order_by(ReasonModel.active.desc(), ReasonModel.name)
    )
    return [_to_reason(row) for row in result.scalars()]


async def list_active_reasons(session: AsyncSession) -> list[ReasonCode]:
    """Reasons offered on the request form."""
    result = await session.execute(
        select(ReasonModel).where(ReasonModel.active.is_(True)).order_by(ReasonModel.name)
    )
    return [_to_reason(row) for row in result.scalars()]


async def exists_by_name(session: AsyncSession, name: str, exclude_id: int | None = None) -> bool:
    """Exact (case-sensitive) name match."""
    stmt = select(ReasonModel.id).where(ReasonModel.name == name.strip())
    if exclude_id is not None:
        stmt = stmt.where(ReasonModel.id != exclude_id)
    return (await session.scalar(stmt)) is not None


async def create_reason(session: AsyncSession, name: str) -> ReasonCode:
    """Add an active reason.

    Raises:
        ValueError: If the name is blank
        DuplicateReasonError: If the name is taken
    """
    name = _clean_name(name)
    if await exists_by_name(session, name):
        raise DuplicateReasonError(name)

    row = ReasonModel(name=name, active=True)
    session.add(row)
    await session.flush()
    logger.info(f"Reason created: {name} (id={row.id})")
    return _to_reason(row)


async def _get(session: AsyncSession, reason_id: int) -> ReasonModel:
    row = await session.get(ReasonModel, reason_id)
    if row is None:
        raise ReasonNotFoundError(reason_id)
    return row


async def rename_reason(session: AsyncSession, reason_id: int, name: str) -> ReasonCode:
    """Rename a reason. Past requests keep the old name."""
    name = _clean_name(name)
    row = await _get(session, reason_id)
    if await exists_by_name(session, name, exclude_id=reason_id):
        raise DuplicateReasonError(name)

    logger.info(f"Reason {reason_id} renamed: {row.name} -> {name}")
    row.name = name
    await session.flush()
    return _to_reason(row)


async def set_reason_active(session: AsyncSession, reason_id: int, active: bool) -> ReasonCode:
    row = await _get(session, reason_id)
    row.active = active
    await session.flush()
    logger.info(f"Reason {row.name} {'activated' if active else 'deactivated'}")
    return _to_reason(row)


async def deactivate_reason(session: AsyncSession, reason_id: int) -> ReasonCode:
    return await set_reason_active(session, reason_id, False)


async def activate_reason(session: AsyncSession, reason_id: int) -> ReasonCode:
    return await set_reason_active(session, reason_id, True)


async def seed_default_reasons(session: AsyncSession) -> int:
    """Insert the initial catalogue; existing names are left alone.

    Returns:
        Number of reasons inserted
    """
    existing = set((await session.execute(select(ReasonModel.name))).scalars())
    inserted = 0
    for name in DEFAULT_REASONS:
        if name not in existing:
            session.add(ReasonModel(name=name, active=True))
            inserted += 1
    await session.flush()
    return inserted
