"""Eligibility decision engine for disqualification ("baja") requests.

Decides whether a client may be deactivated from its sales activity and the
stated reason. The rules are evaluated in order and the first one that
applies wins:

1. UNKNOWN_CLIENT              no display name anywhere        -> REJECT
2. NO_SALES_HISTORY            no sale rows at all             -> APPROVE
3. SALES_EXIST_BUT_UNDATEABLE  rows exist, no valid date       -> APPROVE
4. FUTURE_DATED_SALE           last sale after today           -> ERROR
5. STALE                       last sale more than 90 days ago -> APPROVE
6. RECENT_DUPLICATE            reason contains "duplicado"     -> MANUAL_REVIEW
7. RECENT                      anything else                   -> REJECT

Any failure while gathering data becomes an ERROR decision; ``decide`` never
raises.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime
from zoneinfo import ZoneInfo

from bajas.eligibility.attribution import AttributionResolver
from bajas.eligibility.sales_history import SalesHistory, SalesHistoryIndex
from bajas.models import (
    CLIENT_NOT_FOUND,
    ERROR_DISPLAY_NAME,
    Attribution,
    Decision,
    DecisionOutcome,
    normalize_code,
)
from bajas.storage.base import SalesStore

logger = logging.getLogger(__name__)

# Business policy, not configuration
STALE_AFTER_DAYS = 90
DUPLICATE_MARKER = "duplicado"

DEFAULT_TIMEZONE = "America/La_Paz"

MANUAL_REVIEW_NOTE = "Derivado a revisión manual con Inteligencia Comercial."
GENERIC_ERROR_MESSAGE = (
    "No se pudo procesar la solicitud. Intente nuevamente en unos minutos."
)


def is_duplicate_reason(reason: str) -> bool:
    """Case-insensitive substring match on the free-text reason."""
    return DUPLICATE_MARKER in reason.casefold()


def _best_effort_text(value: object) -> str:
    """Raw input as text for an ERROR decision, when it could not be normalized."""
    if value is None:
        return ""
    try:
        return str(value).strip()
    except Exception:
        return ""


@dataclass(frozen=True)
class DecisionContext:
    """Everything the rules look at for one request."""

    client_code: str
    reason: str
    today: date
    attribution: Attribution
    history: SalesHistory

    @property
    def last_sale(self) -> date | None:
        return self.history.most_recent

    @property
    def days_since_last_sale(self) -> int | None:
        if self.last_sale is None:
            return None
        return (self.today - self.last_sale).days

    def last_sale_text(self) -> str:
        return f"Última venta hace {self.days_since_last_sale} días ({self.last_sale:%d/%m/%Y})"


@dataclass(frozen=True)
class Rule:
    name: str
    outcome: DecisionOutcome
    applies: Callable[[DecisionContext], bool]
    explain: Callable[[DecisionContext], str]


RULES: tuple[Rule, ...] = (
    Rule(
        "UNKNOWN_CLIENT",
        DecisionOutcome.REJECT,
        lambda ctx: not ctx.attribution.is_known,
        lambda ctx: f"Cliente con código {ctx.client_code} no encontrado en la base de datos",
    ),
    Rule(
        "NO_SALES_HISTORY",
        DecisionOutcome.APPROVE,
        lambda ctx: not ctx.history.has_sales,
        lambda ctx: "No tiene ventas registradas",
    ),
    Rule(
        "SALES_EXIST_BUT_UNDATEABLE",
        DecisionOutcome.APPROVE,
        lambda ctx: ctx.history.all_undateable,
        lambda ctx: "No tiene ventas con fechas válidas",
    ),
    Rule(
        "FUTURE_DATED_SALE",
        DecisionOutcome.ERROR,
        lambda ctx: ctx.days_since_last_sale < 0,
        lambda ctx: "Error al procesar fechas de ventas. Contacte al administrador.",
    ),
    Rule(
        "STALE",
        DecisionOutcome.APPROVE,
        lambda ctx: ctx.days_since_last_sale > STALE_AFTER_DAYS,
        lambda ctx: ctx.last_sale_text(),
    ),
    Rule(
        "RECENT_DUPLICATE",
        DecisionOutcome.MANUAL_REVIEW,
        lambda ctx: is_duplicate_reason(ctx.reason),
        lambda ctx: f"{MANUAL_REVIEW_NOTE} {ctx.last_sale_text()}",
    ),
    Rule(
        "RECENT",
        DecisionOutcome.REJECT,
        lambda ctx: True,
        lambda ctx: ctx.last_sale_text(),
    ),
)


class EligibilityEngine:
    """Eligibility decision engine (client code + reason + today → decision).

    Written once against ``SalesStore``; pass a ``SnapshotSalesStore`` or a
    ``SqlSalesStore``. Holds no per-request state, so one instance can serve
    concurrent decisions.
    """

    def __init__(
        self,
        store: SalesStore,
        timezone: str = DEFAULT_TIMEZONE,
        rules: tuple[Rule, ...] = RULES,
    ):
        self.store = store
        self.sales_index = SalesHistoryIndex(store)
        self.resolver = AttributionResolver(store, self.sales_index)
        self.timezone = ZoneInfo(timezone)
        self.rules = rules

    def today(self) -> date:
        """Current civil date in the business timezone."""
        return datetime.now(self.timezone).date()

    async def decide(
        self,
        client_code: str,
        reason: str,
        today: date | None = None,
    ) -> Decision:
        """Decide whether the client may be disqualified.

        Args:
            client_code: Client code as entered by the requester
            reason: Stated reason (free text from the reason catalogue)
            today: Reference date; defaults to today in the business timezone

        Returns:
            Decision (outcome ERROR on any internal failure)
        """
        code = ""
        reason_text = ""

        try:
            code = normalize_code(client_code)
            reason_text = str(reason or "").strip()

            if today is None:
                today = self.today()
            elif isinstance(today, datetime):
                today = today.date()

            history = await self.sales_index.history(code)
            attribution = await self.resolver.resolve(code, history=history)

            ctx = DecisionContext(
                client_code=code,
                reason=reason_text,
                today=today,
                attribution=attribution,
                history=history,
            )
            rule = next(rule for rule in self.rules if rule.applies(ctx))
            decision = self._build(ctx, rule)

        except Exception as e:
            code = code or _best_effort_text(client_code)
            logger.error(f"Eligibility check failed for client {code}: {e}", exc_info=True)
            return Decision(
                client_code=code,
                reason=reason_text,
                outcome=DecisionOutcome.ERROR,
                display_name=ERROR_DISPLAY_NAME,
                explanation=f"Error procesando solicitud: {e}",
                rule="FAILURE",
            )

        if rule.name == "FUTURE_DATED_SALE":
            logger.warning(
                f"Client {code} has a sale dated {ctx.last_sale.isoformat()}, after {today.isoformat()}"
            )

        logger.info(
            f"Client {code} ({decision.display_name}), reason {reason_text!r}: "
            f"{decision.outcome.value} via {rule.name}"
        )
        return decision

    @staticmethod
    def _build(ctx: DecisionContext, rule: Rule) -> Decision:
        attribution = ctx.attribution
        return Decision(
            client_code=ctx.client_code,
            reason=ctx.reason,
            outcome=rule.outcome,
            display_name=attribution.display_name or CLIENT_NOT_FOUND,
            zone=attribution.zone,
            route=attribution.route,
            salesperson=attribution.salesperson,
            explanation=rule.explain(ctx),
            rule=rule.name,
            last_sale_date=ctx.last_sale,
            days_since_last_sale=ctx.days_since_last_sale,
        )


async def decide(
    store: SalesStore,
    client_code: str,
    reason: str,
    today: date | None = None,
) -> Decision:
    """Convenience function: one decision against ``store``."""
    return await EligibilityEngine(store).decide(client_code, reason, today)
