"""SQLAlchemy async database models for bajas.

Maps to the MySQL schema of the field operation (clients, sales, route
planning, reasons, audit of requests and sync runs).
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class ClientModel(Base):
    """Client registry entry."""

    __tablename__ = "clients"

    code: Mapped[str] = mapped_column(String(32), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    route: Mapped[str | None] = mapped_column(String(64), index=True)
    zone: Mapped[str | None] = mapped_column(String(64))
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )


class SaleModel(Base):
    """One historical sale line (only client and date are used)."""

    __tablename__ = "sales"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    client_code: Mapped[str] = mapped_column(String(32), nullable=False)
    sale_date: Mapped[date | None] = mapped_column(Date)
    client_name: Mapped[str | None] = mapped_column(String(255))

    imported_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        # Most recent sale per client
        Index("idx_sales_client_date", "client_code", "sale_date"),
    )


class RouteAssignmentModel(Base):
    """Route planning row, kept in step with the planning sheet."""

    __tablename__ = "route_assignments"

    route: Mapped[str] = mapped_column(String(64), primary_key=True)
    zone: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    day: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    salesperson: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    __table_args__ = (
        Index("idx_route_zone", "zone"),
    )


class ReasonModel(Base):
    """Disqualification reason offered to requesters."""

    __tablename__ = "reasons"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class DisqualificationRequestModel(Base):
    """Audit trail of submitted requests (append-only)."""

    __tablename__ = "disqualification_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    client_code: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    reason: Mapped[str] = mapped_column(String(255), nullable=False)

    zone: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    route: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    salesperson: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    outcome: Mapped[str] = mapped_column(String(16), nullable=False)
    explanation: Mapped[str] = mapped_column(Text, nullable=False)
    evidence: Mapped[list | None] = mapped_column(JSON)
    source_ip: Mapped[str | None] = mapped_column(String(64))

    requested_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )

    __table_args__ = (
        CheckConstraint(
            "outcome IN ('APPROVE', 'REJECT', 'MANUAL_REVIEW', 'ERROR')",
            name="check_request_outcome_valid",
        ),
        Index("idx_request_outcome_time", "outcome", "requested_at"),
    )


class SyncLogModel(Base):
    """One row per route planning sync run."""

    __tablename__ = "sync_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sync_type: Mapped[str] = mapped_column(String(16), nullable=False)
    records_inserted: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    records_updated: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    records_unchanged: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    message: Mapped[str | None] = mapped_column(Text)

    run_timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )

    __table_args__ = (
        CheckConstraint("sync_type IN ('INITIAL', 'UPDATE')", name="check_sync_type_valid"),
        CheckConstraint("status IN ('SUCCESS', 'ERROR')", name="check_sync_status_valid"),
        CheckConstraint("records_inserted >= 0", name="check_records_inserted_non_negative"),
        CheckConstraint("records_updated >= 0", name="check_records_updated_non_negative"),
        CheckConstraint("records_unchanged >= 0", name="check_records_unchanged_non_negative"),
    )
