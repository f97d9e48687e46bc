"""Ticket workflow schema: tickets, ticket history and staff."""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "20241001_000001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "staff",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=60), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("department", sa.String(length=50), nullable=False),
        sa.Column("role", sa.String(length=50), nullable=False),
        sa.Column("is_available_for_assignment", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_index("ix_staff_department", "staff", ["department"])

    op.create_table(
        "tickets",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("ticket_number", sa.String(length=32), nullable=False, unique=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("status", sa.String(length=50), nullable=False),
        sa.Column("workflow_stage", sa.String(length=50), nullable=False),
        sa.Column("priority", sa.String(length=20), nullable=False),
        sa.Column("assigned_to", sa.String(length=36), nullable=True),
        sa.Column("address_created", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("address_verified", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("approved_address", sa.Text(), nullable=True),
        sa.Column("verification_note", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(length=36), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("due_date", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("time_to_resolve", sa.Integer(), nullable=True),
        sa.Column("first_name", sa.String(length=50), nullable=False),
        sa.Column("last_name", sa.String(length=50), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("mobile_phone", sa.String(length=10), nullable=True),
        sa.Column("landline_phone", sa.String(length=10), nullable=True),
        sa.Column("request_type", sa.String(length=50), nullable=False),
        sa.Column("existing_address", sa.String(length=200), nullable=True),
        sa.Column("additional_info", sa.Text(), nullable=True),
        sa.Column("premise_type", sa.String(length=50), nullable=False),
        sa.Column("property_id", sa.String(length=100), nullable=True),
        sa.Column("county", sa.String(length=50), nullable=False),
        sa.Column("street_name", sa.String(length=255), nullable=False),
        sa.Column("closest_intersection", sa.String(length=255), nullable=True),
        sa.Column("subdivision", sa.String(length=255), nullable=True),
        sa.Column("lot_number", sa.String(length=50), nullable=True),
        sa.Column("x_coordinate", sa.Float(), nullable=False),
        sa.Column("y_coordinate", sa.Float(), nullable=False),
        sa.Column("signature_token", sa.String(length=64), nullable=True),
        sa.Column("signature_requested", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("signature_requested_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("signature_requested_by", sa.String(length=36), nullable=True),
        sa.Column("signature_completed", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("signature_completed_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("address_letter_path", sa.String(length=500), nullable=True),
    )
    op.create_index("ix_tickets_status", "tickets", ["status"])
    op.create_index("ix_tickets_workflow_stage", "tickets", ["workflow_stage"])
    op.create_index("ix_tickets_assigned_to", "tickets", ["assigned_to"])
    op.create_index("ix_tickets_signature_token", "tickets", ["signature_token"])

    op.create_table(
        "ticket_history",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("ticket_id", sa.String(length=36), sa.ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("workflow_stage", sa.String(length=50), nullable=False),
        sa.Column("status", sa.String(length=50), nullable=False),
        sa.Column("assigned_to", sa.String(length=36), nullable=True),
        sa.Column("notes", sa.Text(), nullable=False),
        sa.Column("action_by", sa.String(length=36), nullable=False),
        sa.Column("timestamp", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.UniqueConstraint("ticket_id", "position", name="uq_ticket_history_position"),
    )
    op.create_index("ix_ticket_history_ticket_id", "ticket_history", ["ticket_id"])


def downgrade() -> None:
    op.drop_index("ix_ticket_history_ticket_id", table_name="ticket_history")
    op.drop_table("ticket_history")
    op.drop_index("ix_tickets_signature_token", table_name="tickets")
    op.drop_index("ix_tickets_assigned_to", table_name="tickets")
    op.drop_index("ix_tickets_workflow_stage", table_name="tickets")
    op.drop_index("ix_tickets_status", table_name="tickets")
    op.drop_table("tickets")
    op.drop_index("ix_staff_department", table_name="staff")
    op.drop_table("staff")
