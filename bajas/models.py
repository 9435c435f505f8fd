"""Bajas Pydantic models for type-safe data validation.

Value objects passed between the storage adapters, the eligibility engine and
the intake service. Persisted rows live in ``bajas.db.models``.
"""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

CLIENT_NOT_FOUND = "CLIENTE NO ENCONTRADO"
ERROR_DISPLAY_NAME = "ERROR"


class DecisionOutcome(str, Enum):
    """Outcome of an eligibility decision."""

    APPROVE = "APPROVE"
    REJECT = "REJECT"
    MANUAL_REVIEW = "MANUAL_REVIEW"
    ERROR = "ERROR"

    @property
    def legacy_label(self) -> str:
        """Label used in the supervisors' reports."""
        return _LEGACY_LABELS[self]


_LEGACY_LABELS = {
    DecisionOutcome.APPROVE: "SI",
    DecisionOutcome.REJECT: "NO",
    DecisionOutcome.MANUAL_REVIEW: "DERIVADO A REVISIÓN MANUAL",
    DecisionOutcome.ERROR: "ERROR",
}


def _strip(value: Any) -> str:
    # Blank spreadsheet cells come through as None or NaN
    if value is None or value != value:
        return ""
    return str(value).strip()


def normalize_code(value: Any) -> str:
    """Render a client code as trimmed text.

    Spreadsheet readers hand integral codes back as floats (420568.0); those
    are rendered without the fractional part. Codes are compared as text so
    leading zeros survive.
    """
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return _strip(value)


class Client(BaseModel):
    """Entry of the client registry."""

    model_config = ConfigDict(frozen=True)

    code: str
    name: str = ""
    route: str = ""
    zone: str = ""
    active: bool = True

    @field_validator("code", "route", mode="before")
    @classmethod
    def _code(cls, v: Any) -> str:
        return normalize_code(v)

    @field_validator("name", "zone", mode="before")
    @classmethod
    def _trim(cls, v: Any) -> str:
        return _strip(v)


class SaleRecord(BaseModel):
    """One historical sale as stored, before date normalization.

    ``sale_date`` keeps whatever the backing store holds: a date from the
    relational store, or a spreadsheet serial / string / datetime from a
    snapshot.
    """

    model_config = ConfigDict(frozen=True)

    client_code: str
    sale_date: Any = None
    client_name: str = ""

    @field_validator("client_code", mode="before")
    @classmethod
    def _code(cls, v: Any) -> str:
        return normalize_code(v)

    @field_validator("client_name", mode="before")
    @classmethod
    def _trim(cls, v: Any) -> str:
        return _strip(v)


class RouteAssignment(BaseModel):
    """Route → zone / visit day / salesperson planning row."""

    model_config = ConfigDict(frozen=True)

    route: str
    zone: str = ""
    day: str = ""
    salesperson: str = ""
    synced_at: datetime | None = None

    @field_validator("route", mode="before")
    @classmethod
    def _code(cls, v: Any) -> str:
        return normalize_code(v)

    @field_validator("zone", "day", "salesperson", mode="before")
    @classmethod
    def _trim(cls, v: Any) -> str:
        # Empty string is the "unknown" value, never None
        return _strip(v)


class ReasonCode(BaseModel):
    id: int | None = None
    name: str
    active: bool = True


class Attribution(BaseModel):
    """Who the client is and which route/zone/salesperson it belongs to."""

    model_config = ConfigDict(frozen=True)

    display_name: str | None = None
    route: str = ""
    zone: str = ""
    salesperson: str = ""

    @property
    def is_known(self) -> bool:
        return bool(self.display_name)


class Decision(BaseModel):
    """Result of an eligibility decision; also the payload of the audit record."""

    model_config = ConfigDict(frozen=True)

    client_code: str
    reason: str
    outcome: DecisionOutcome
    display_name: str
    zone: str = ""
    route: str = ""
    salesperson: str = ""
    explanation: str
    rule: str
    last_sale_date: date | None = None
    days_since_last_sale: int | None = None
    decided_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def can_disqualify(self) -> bool:
        return self.outcome == DecisionOutcome.APPROVE

    @property
    def requires_manual_review(self) -> bool:
        return self.outcome == DecisionOutcome.MANUAL_REVIEW


class DisqualificationRequest(BaseModel):
    """Immutable audit record of a submitted request."""

    model_config = ConfigDict(frozen=True)

    id: int | None = None
    client_code: str
    display_name: str
    reason: str
    zone: str = ""
    route: str = ""
    salesperson: str = ""
    outcome: DecisionOutcome
    explanation: str
    evidence: list[str] = Field(default_factory=list)
    source_ip: str | None = None
    requested_at: datetime = Field(default_factory=datetime.utcnow)

    @classmethod
    def from_decision(
        cls,
        decision: Decision,
        evidence: list[str] | None = None,
        source_ip: str | None = None,
    ) -> DisqualificationRequest:
        return cls(
            client_code=decision.client_code,
            display_name=decision.display_name,
            reason=decision.reason,
            zone=decision.zone,
            route=decision.route,
            salesperson=decision.salesperson,
            outcome=decision.outcome,
            explanation=decision.explanation,
            evidence=list(evidence or []),
            source_ip=source_ip,
            requested_at=decision.decided_at,
        )


class OutcomeCounts(BaseModel):
    """Per-outcome request counts for a reporting window."""

    total: int = 0
    approved: int = 0
    rejected: int = 0
    manual_review: int = 0
    errors: int = 0
