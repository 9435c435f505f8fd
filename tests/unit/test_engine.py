"""Unit tests for the eligibility decision engine.

Tests rule order, the 90-day boundary, the duplicate-reason route to manual
review and that decide() never raises.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from unittest.mock import AsyncMock

import pandas as pd
import pytest

from bajas.eligibility.engine import (
    MANUAL_REVIEW_NOTE,
    STALE_AFTER_DAYS,
    EligibilityEngine,
    decide,
    is_duplicate_reason,
)
from bajas.models import CLIENT_NOT_FOUND, DecisionOutcome
from bajas.storage.base import SalesStore

CLIENT = {"CODIGO": "100", "NOMBRE": "TIENDA PRUEBA", "RUTA": "R1", "ZONA": "CENTRO"}
ROUTE = {"RUTA": "R1", "ZONA": "CENTRO", "DIA": "JUEVES", "VENDEDOR": "Carla Rojas"}


@pytest.fixture
def store_with_sale(make_store):
    """Store with client 100 whose only sale is on ``sale_date``."""

    def _make(sale_date):
        return make_store(
            sales_rows=[{"Cliente": "100", "Fecha": sale_date, "Nombre Cliente": "TIENDA PRUEBA"}],
            client_rows=[CLIENT],
            route_rows=[ROUTE],
        )

    return _make


class TestDuplicateReason:
    @pytest.mark.parametrize("reason", ["Duplicado", "DUPLICADO CLIENTE", "es un duplicado"])
    def test_matches_anywhere_ignoring_case(self, reason):
        assert is_duplicate_reason(reason)

    @pytest.mark.parametrize("reason", ["Cierre Definitivo", "Mudanza", "Otro", ""])
    def test_other_reasons(self, reason):
        assert not is_duplicate_reason(reason)


class TestEligibilityRules:
    """Test each rule with a realistic dataset."""

    @pytest.mark.asyncio
    async def test_recent_sale_rejected(self, store, today):
        decision = await EligibilityEngine(store).decide("100200", "Cierre Definitivo", today=today)

        assert decision.outcome == DecisionOutcome.REJECT
        assert decision.rule == "RECENT"
        assert decision.display_name == "TIENDA DOÑA ROSA"
        assert decision.days_since_last_sale == 10
        assert decision.last_sale_date == today - timedelta(days=10)
        assert decision.explanation == (
            f"Última venta hace 10 días ({(today - timedelta(days=10)):%d/%m/%Y})"
        )
        assert decision.zone == "NORTE"
        assert decision.route == "R101"
        assert decision.salesperson == "Juan Pérez"

    @pytest.mark.asyncio
    async def test_stale_sale_approved(self, store, today):
        decision = await EligibilityEngine(store).decide("300300", "Mudanza", today=today)

        assert decision.outcome == DecisionOutcome.APPROVE
        assert decision.rule == "STALE"
        assert decision.days_since_last_sale == 200
        assert decision.can_disqualify

    @pytest.mark.asyncio
    async def test_registered_client_without_sales_approved(self, store, today):
        decision = await EligibilityEngine(store).decide("420568", "Cierre Definitivo", today=today)

        assert decision.outcome == DecisionOutcome.APPROVE
        assert decision.rule == "NO_SALES_HISTORY"
        assert "No tiene ventas" in decision.explanation
        assert decision.display_name == "ABARROTES EL SOL"
        assert decision.last_sale_date is None
        assert decision.days_since_last_sale is None

    @pytest.mark.asyncio
    async def test_unknown_client_rejected(self, store, today):
        decision = await EligibilityEngine(store).decide("999999999", "Duplicado", today=today)

        assert decision.outcome == DecisionOutcome.REJECT
        assert decision.rule == "UNKNOWN_CLIENT"
        assert decision.display_name == CLIENT_NOT_FOUND
        assert "999999999" in decision.explanation
        assert decision.zone == ""
        assert decision.salesperson == ""

    @pytest.mark.asyncio
    async def test_registered_client_without_any_name_rejected(self, make_store, today):
        store = make_store(client_rows=[{"CODIGO": "600600", "NOMBRE": "", "RUTA": ""}])

        decision = await EligibilityEngine(store).decide("600600", "Otro", today=today)

        assert decision.outcome == DecisionOutcome.REJECT
        assert decision.rule == "UNKNOWN_CLIENT"
        assert decision.display_name == CLIENT_NOT_FOUND

    @pytest.mark.asyncio
    async def test_client_known_only_from_sales(self, store, today):
        decision = await EligibilityEngine(store).decide("777777", "Otro", today=today)

        assert decision.outcome == DecisionOutcome.REJECT
        assert decision.display_name == "BODEGA SIN REGISTRO"

    @pytest.mark.asyncio
    async def test_sales_without_valid_dates_approved(self, make_store, today):
        store = make_store(
            sales_rows=[
                {"Cliente": "100", "Fecha": "sin fecha", "Nombre Cliente": "TIENDA PRUEBA"},
                {"Cliente": "100", "Fecha": None, "Nombre Cliente": "TIENDA PRUEBA"},
            ]
        )

        decision = await EligibilityEngine(store).decide("100", "Cierre Definitivo", today=today)

        assert decision.outcome == DecisionOutcome.APPROVE
        assert decision.rule == "SALES_EXIST_BUT_UNDATEABLE"
        assert decision.explanation == "No tiene ventas con fechas válidas"

    @pytest.mark.asyncio
    async def test_future_dated_sale_is_error(self, store_with_sale, today):
        store = store_with_sale(today + timedelta(days=3))

        decision = await EligibilityEngine(store).decide("100", "Cierre Definitivo", today=today)

        assert decision.outcome == DecisionOutcome.ERROR
        assert decision.rule == "FUTURE_DATED_SALE"
        assert decision.days_since_last_sale == -3

    @pytest.mark.asyncio
    async def test_sale_today_rejected_with_zero_days(self, store_with_sale, today):
        store = store_with_sale(today)

        decision = await EligibilityEngine(store).decide("100", "Cambio de Dueño", today=today)

        assert decision.outcome == DecisionOutcome.REJECT
        assert "0 días" in decision.explanation


class TestStaleBoundary:
    """Test the 90-day threshold is exclusive."""

    @pytest.mark.asyncio
    async def test_day_90_is_still_recent(self, store_with_sale, today):
        store = store_with_sale(today - timedelta(days=STALE_AFTER_DAYS))

        decision = await EligibilityEngine(store).decide("100", "Cierre Definitivo", today=today)

        assert decision.outcome == DecisionOutcome.REJECT
        assert decision.days_since_last_sale == 90

    @pytest.mark.asyncio
    async def test_day_90_duplicate_goes_to_manual_review(self, store_with_sale, today):
        store = store_with_sale(today - timedelta(days=90))

        decision = await EligibilityEngine(store).decide("100", "Duplicado", today=today)

        assert decision.outcome == DecisionOutcome.MANUAL_REVIEW
        assert decision.requires_manual_review

    @pytest.mark.asyncio
    async def test_day_91_approved(self, store_with_sale, today):
        store = store_with_sale(today - timedelta(days=91))

        decision = await EligibilityEngine(store).decide("100", "Cierre Definitivo", today=today)

        assert decision.outcome == DecisionOutcome.APPROVE
        assert decision.explanation.startswith("Última venta hace 91 días")


class TestDuplicateRouting:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("reason", ["Duplicado", "DUPLICADO CLIENTE", "es un duplicado"])
    async def test_recent_duplicate_goes_to_manual_review(self, store_with_sale, today, reason):
        store = store_with_sale(today - timedelta(days=20))

        decision = await EligibilityEngine(store).decide("100", reason, today=today)

        assert decision.outcome == DecisionOutcome.MANUAL_REVIEW
        assert decision.rule == "RECENT_DUPLICATE"
        assert decision.explanation.startswith(MANUAL_REVIEW_NOTE)
        assert "Última venta hace 20 días" in decision.explanation

    @pytest.mark.asyncio
    async def test_stale_duplicate_approved(self, store_with_sale, today):
        store = store_with_sale(today - timedelta(days=120))

        decision = await EligibilityEngine(store).decide("100", "Duplicado", today=today)

        assert decision.outcome == DecisionOutcome.APPROVE


class TestDecideIsTotal:
    """decide() returns a Decision for any input and any store failure."""

    @pytest.mark.asyncio
    async def test_store_failure_becomes_error_decision(self, today):
        store = AsyncMock(spec=SalesStore)
        store.get_sales_by_client.side_effect = RuntimeError("conexión perdida")

        decision = await EligibilityEngine(store).decide("100", "Mudanza", today=today)

        assert decision.outcome == DecisionOutcome.ERROR
        assert decision.rule == "FAILURE"
        assert decision.display_name == "ERROR"
        assert "conexión perdida" in decision.explanation

    @pytest.mark.asyncio
    async def test_route_lookup_failure_becomes_error_decision(self, make_store, today):
        store = make_store(client_rows=[CLIENT])
        store.get_route_assignment = AsyncMock(side_effect=TimeoutError("timeout"))

        decision = await EligibilityEngine(store).decide("100", "Mudanza", today=today)

        assert decision.outcome == DecisionOutcome.ERROR

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "code,reason",
        [
            ("", ""),
            (None, None),
            ("   ", "Duplicado"),
            (12345, 678),
            (420568.0, "Otro"),
            (float("nan"), "Otro"),
            (["lista"], {"motivo": 1}),
            ("'; DROP TABLE clients; --", "x" * 5000),
            (pd.NA, "Otro"),
            ("100200", pd.NA),
        ],
    )
    async def test_garbage_input_never_raises(self, store, today, code, reason):
        decision = await EligibilityEngine(store).decide(code, reason, today=today)

        assert decision.outcome in set(DecisionOutcome)

    @pytest.mark.asyncio
    async def test_float_code_matches_registered_client(self, store, today):
        decision = await EligibilityEngine(store).decide(420568.0, "Otro", today=today)

        assert decision.client_code == "420568"
        assert decision.display_name == "ABARROTES EL SOL"

    @pytest.mark.asyncio
    async def test_missing_code_from_spreadsheet_is_an_error_decision(self, store, today):
        decision = await EligibilityEngine(store).decide(pd.NA, "Otro", today=today)

        assert decision.outcome == DecisionOutcome.ERROR
        assert decision.client_code == "<NA>"
        assert decision.reason == ""

    @pytest.mark.asyncio
    async def test_datetime_reference_is_reduced_to_date(self, store, today):
        decision = await EligibilityEngine(store).decide(
            "100200", "Otro", today=datetime.combine(today, datetime.min.time())
        )

        assert decision.days_since_last_sale == 10

    @pytest.mark.asyncio
    async def test_default_today_uses_business_timezone(self, make_store):
        store = make_store(client_rows=[CLIENT])
        engine = EligibilityEngine(store, timezone="America/La_Paz")

        decision = await engine.decide("100", "Otro")

        assert decision.outcome == DecisionOutcome.APPROVE
        assert isinstance(engine.today(), date)


class TestModuleLevelDecide:
    @pytest.mark.asyncio
    async def test_decide_helper(self, store, today):
        decision = await decide(store, " 300300 ", "Mudanza", today=today)

        assert decision.client_code == "300300"
        assert decision.outcome.legacy_label == "SI"
