"""SQLModel table definitions for the Address Desk data layer.

Workflow columns are plain strings; legal stage/status combinations are
enforced by the workflow engine, not by the schema.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlmodel import Field, SQLModel


def _utcnow() -> datetime:
    """Return a timezone aware UTC timestamp."""

    return datetime.now(timezone.utc)


class TicketTable(SQLModel, table=True):
    """Address assignment requests and their workflow state."""

    __tablename__ = "tickets"

    id: str = Field(primary_key=True, index=True)
    ticket_number: str = Field(sa_column=Column(String(32), nullable=False, unique=True))
    version: int = Field(default=1, sa_column=Column(Integer, nullable=False, default=1))

    status: str = Field(sa_column=Column(String(50), nullable=False, index=True))
    workflow_stage: str = Field(sa_column=Column(String(50), nullable=False, index=True))
    priority: str = Field(sa_column=Column(String(20), nullable=False))
    assigned_to: str | None = Field(default=None, sa_column=Column(String(36), nullable=True, index=True))
    address_created: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))
    address_verified: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))
    approved_address: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    verification_note: str | None = Field(default=None, sa_column=Column(Text, nullable=True))

    created_by: str = Field(sa_column=Column(String(36), nullable=False))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
    due_date: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    time_to_resolve: int | None = Field(default=None, sa_column=Column(Integer, nullable=True))

    first_name: str = Field(sa_column=Column(String(50), nullable=False))
    last_name: str = Field(sa_column=Column(String(50), nullable=False))
    email: str = Field(sa_column=Column(String(255), nullable=False))
    mobile_phone: str | None = Field(default=None, sa_column=Column(String(10), nullable=True))
    landline_phone: str | None = Field(default=None, sa_column=Column(String(10), nullable=True))
    request_type: str = Field(sa_column=Column(String(50), nullable=False))
    existing_address: str | None = Field(default=None, sa_column=Column(String(200), nullable=True))
    additional_info: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    premise_type: str = Field(sa_column=Column(String(50), nullable=False))
    property_id: str | None = Field(default=None, sa_column=Column(String(100), nullable=True))
    county: str = Field(sa_column=Column(String(50), nullable=False))
    street_name: str = Field(sa_column=Column(String(255), nullable=False))
    closest_intersection: str | None = Field(default=None, sa_column=Column(String(255), nullable=True))
    subdivision: str | None = Field(default=None, sa_column=Column(String(255), nullable=True))
    lot_number: str | None = Field(default=None, sa_column=Column(String(50), nullable=True))
    x_coordinate: float = Field(sa_column=Column(Float, nullable=False))
    y_coordinate: float = Field(sa_column=Column(Float, nullable=False))

    signature_token: str | None = Field(default=None, sa_column=Column(String(64), nullable=True, index=True))
    signature_requested: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))
    signature_requested_at: datetime | None = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    signature_requested_by: str | None = Field(default=None, sa_column=Column(String(36), nullable=True))
    signature_completed: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))
    signature_completed_at: datetime | None = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    address_letter_path: str | None = Field(default=None, sa_column=Column(String(500), nullable=True))


class TicketHistoryTable(SQLModel, table=True):
    """Append-only audit trail; ``position`` orders entries within a ticket."""

    __tablename__ = "ticket_history"
    __table_args__ = (UniqueConstraint("ticket_id", "position", name="uq_ticket_history_position"),)

    id: int | None = Field(default=None, primary_key=True)
    ticket_id: str = Field(
        sa_column=Column(String(36), ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    )
    position: int = Field(sa_column=Column(Integer, nullable=False))
    workflow_stage: str = Field(sa_column=Column(String(50), nullable=False))
    status: str = Field(sa_column=Column(String(50), nullable=False))
    assigned_to: str | None = Field(default=None, sa_column=Column(String(36), nullable=True))
    notes: str = Field(sa_column=Column(Text, nullable=False))
    action_by: str = Field(sa_column=Column(String(36), nullable=False))
    timestamp: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class StaffTable(SQLModel, table=True):
    """Staff members eligible for ticket assignment."""

    __tablename__ = "staff"

    id: str = Field(primary_key=True, index=True)
    name: str = Field(sa_column=Column(String(60), nullable=False))
    email: str = Field(sa_column=Column(String(255), nullable=False, unique=True))
    department: str = Field(sa_column=Column(String(50), nullable=False, index=True))
    role: str = Field(sa_column=Column(String(50), nullable=False))
    is_available_for_assignment: bool = Field(
        default=True, sa_column=Column(Boolean, nullable=False, default=True)
    )
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
