"""Audit trail of disqualification requests and the daily reporting queries.

Rows are written once and never updated. Timestamps are stored as naive
UTC; "a day" in reporting means a civil day in the business timezone.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from bajas.db.models import DisqualificationRequestModel
from bajas.models import DecisionOutcome, DisqualificationRequest, OutcomeCounts

DEFAULT_TIMEZONE = "America/La_Paz"


async def record_request(
    session: AsyncSession,
    request: DisqualificationRequest,
) -> DisqualificationRequestModel:
    """Append one audit record; flushes so the id is available."""
    row = DisqualificationRequestModel(
        client_code=request.client_code,
        display_name=request.display_name,
        reason=request.reason,
        zone=request.zone,
        route=request.route,
        salesperson=request.salesperson,
        outcome=request.outcome.value,
        explanation=request.explanation,
        evidence=list(request.evidence),
        source_ip=request.source_ip,
        requested_at=request.requested_at,
    )
    session.add(row)
    await session.flush()
    return row


def _to_request(row: DisqualificationRequestModel) -> DisqualificationRequest:
    return DisqualificationRequest(
        id=row.id,
        client_code=row.client_code,
        display_name=row.display_name,
        reason=row.reason,
        zone=row.zone,
        route=row.route,
        salesperson=row.salesperson,
        outcome=DecisionOutcome(row.outcome),
        explanation=row.explanation,
        evidence=list(row.evidence or []),
        source_ip=row.source_ip,
        requested_at=row.requested_at,
    )


def day_bounds(day: date, tz: str = DEFAULT_TIMEZONE) -> tuple[datetime, datetime]:
    """UTC [start, end) of a civil day in ``tz``, as naive datetimes."""
    zone = ZoneInfo(tz)
    start = datetime.combine(day, time.min, tzinfo=zone)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=zone)
    return (
        start.astimezone(timezone.utc).replace(tzinfo=None),
        end.astimezone(timezone.utc).replace(tzinfo=None),
    )


def business_today(tz: str = DEFAULT_TIMEZONE) -> date:
    return datetime.now(ZoneInfo(tz)).date()


async def requests_between(
    session: AsyncSession,
    start: datetime,
    end: datetime,
) -> list[DisqualificationRequest]:
    """Requests with start <= requested_at < end, oldest first."""
    result = await session.execute(
        select(DisqualificationRequestModel)
        .where(
            DisqualificationRequestModel.requested_at >= start,
            DisqualificationRequestModel.requested_at < end,
        )
        .order_by(DisqualificationRequestModel.requested_at, DisqualificationRequestModel.id)
    )
    return [_to_request(row) for row in result.scalars()]


async def requests_for_client(
    session: AsyncSession,
    client_code: str,
) -> list[DisqualificationRequest]:
    """Every request for a client, most recent first."""
    result = await session.execute(
        select(DisqualificationRequestModel)
        .where(DisqualificationRequestModel.client_code == client_code.strip())
        .order_by(
            DisqualificationRequestModel.requested_at.desc(),
            DisqualificationRequestModel.id.desc(),
        )
    )
    return [_to_request(row) for row in result.scalars()]


async def requests_on(
    session: AsyncSession,
    day: date | None = None,
    tz: str = DEFAULT_TIMEZONE,
) -> list[DisqualificationRequest]:
    """Requests of one business day (today by default)."""
    start, end = day_bounds(day or business_today(tz), tz)
    return await requests_between(session, start, end)


async def outcome_counts(
    session: AsyncSession,
    start: datetime,
    end: datetime,
) -> OutcomeCounts:
    result = await session.execute(
        select(DisqualificationRequestModel.outcome, func.count())
        .where(
            DisqualificationRequestModel.requested_at >= start,
            DisqualificationRequestModel.requested_at < end,
        )
        .group_by(DisqualificationRequestModel.outcome)
    )
    by_outcome = {outcome: count for outcome, count in result.all()}

    return OutcomeCounts(
        total=sum(by_outcome.values()),
        approved=by_outcome.get(DecisionOutcome.APPROVE.value, 0),
        rejected=by_outcome.get(DecisionOutcome.REJECT.value, 0),
        manual_review=by_outcome.get(DecisionOutcome.MANUAL_REVIEW.value, 0),
        errors=by_outcome.get(DecisionOutcome.ERROR.value, 0),
    )


async def outcome_counts_on(
    session: AsyncSession,
    day: date | None = None,
    tz: str = DEFAULT_TIMEZONE,
) -> OutcomeCounts:
    """Daily counts used by the supervisors' report."""
    start, end = day_bounds(day or business_today(tz), tz)
    return await outcome_counts(session, start, end)
