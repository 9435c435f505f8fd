"""Integration tests for the reason catalogue."""

from __future__ import annotations

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from bajas.db.reasons import (
    DEFAULT_REASONS,
    activate_reason,
    create_reason,
    deactivate_reason,
    exists_by_name,
    list_active_reasons,
    list_reasons,
    rename_reason,
    seed_default_reasons,
)
from bajas.errors import DuplicateReasonError, ReasonNotFoundError


class TestReasonCatalogue:
    @pytest.mark.asyncio
    async def test_seed_is_idempotent(self, db_session: AsyncSession):
        assert await seed_default_reasons(db_session) == len(DEFAULT_REASONS)
        assert await seed_default_reasons(db_session) == 0

        reasons = await list_reasons(db_session)
        assert {reason.name for reason in reasons} == set(DEFAULT_REASONS)

    @pytest.mark.asyncio
    async def test_create_and_duplicate(self, db_session: AsyncSession):
        reason = await create_reason(db_session, "  Local demolido ")

        assert reason.id is not None
        assert reason.name == "Local demolido"
        assert reason.active
        assert await exists_by_name(db_session, "Local demolido")

        with pytest.raises(DuplicateReasonError):
            await create_reason(db_session, "Local demolido")

    @pytest.mark.asyncio
    async def test_blank_name_rejected(self, db_session: AsyncSession):
        with pytest.raises(ValueError):
            await create_reason(db_session, "   ")

    @pytest.mark.asyncio
    async def test_rename(self, db_session: AsyncSession):
        first = await create_reason(db_session, "Mudanza")
        await create_reason(db_session, "Otro")

        renamed = await rename_reason(db_session, first.id, "Mudanza de local")
        assert renamed.name == "Mudanza de local"

        # Renaming to its own name is not a conflict
        assert (await rename_reason(db_session, first.id, "Mudanza de local")).name == "Mudanza de local"

        with pytest.raises(DuplicateReasonError):
            await rename_reason(db_session, first.id, "Otro")

    @pytest.mark.asyncio
    async def test_deactivated_reasons_hidden_from_form(self, db_session: AsyncSession):
        await seed_default_reasons(db_session)
        otro = next(r for r in await list_reasons(db_session) if r.name == "Otro")

        await deactivate_reason(db_session, otro.id)

        active = [reason.name for reason in await list_active_reasons(db_session)]
        assert "Otro" not in active
        everything = await list_reasons(db_session)
        assert everything[-1].name == "Otro"
        assert not everything[-1].active

        await activate_reason(db_session, otro.id)
        assert "Otro" in [reason.name for reason in await list_active_reasons(db_session)]

    @pytest.mark.asyncio
    async def test_unknown_id(self, db_session: AsyncSession):
        with pytest.raises(ReasonNotFoundError):
            await deactivate_reason(db_session, 9999)
