"""Initial database schema.

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-19

Creates all tables for Volga Services:
- Users, drivers and guides
- Service catalog
- Bookings, prices, status history and form inputs
- Payments
- Notifications and audit logs
"""

from typing import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers
revision: str = "001_initial"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

UUID = postgresql.UUID(as_uuid=True)


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now())


def upgrade() -> None:
    """Create all database tables."""

    # ==================== USERS ====================
    op.create_table(
        "users",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("email", sa.String(255), unique=True, nullable=False, index=True),
        sa.Column("phone", sa.String(20), index=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("role", sa.String(20), nullable=False, server_default="customer"),
        sa.Column("first_name", sa.String(100)),
        sa.Column("last_name", sa.String(100)),
        sa.Column("preferred_language", sa.String(10), server_default="en"),
        sa.Column("is_active", sa.Boolean, server_default=sa.true()),
        sa.Column("is_email_verified", sa.Boolean, server_default=sa.false()),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("last_login_at", sa.DateTime(timezone=True)),
    )

    op.create_table(
        "drivers",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("user_id", UUID, sa.ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False),
        sa.Column("full_name", sa.String(200), nullable=False),
        sa.Column("phone", sa.String(20)),
        sa.Column("vehicle_type", sa.String(50)),
        sa.Column("vehicle_number", sa.String(20)),
        sa.Column("license_number", sa.String(50)),
        sa.Column("status", sa.String(20), server_default="active", index=True),
        _created_at(),
    )

    op.create_table(
        "guides",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("user_id", UUID, sa.ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False),
        sa.Column("full_name", sa.String(200), nullable=False),
        sa.Column("phone", sa.String(20)),
        sa.Column("languages", postgresql.JSONB),
        sa.Column("specialization", sa.Text),
        sa.Column("status", sa.String(20), server_default="active", index=True),
        _created_at(),
    )

    # ==================== SERVICES ====================
    op.create_table(
        "services",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("service_type", sa.String(50), unique=True, nullable=False, index=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("image_url", sa.Text),
        sa.Column("base_price", sa.Integer),
        sa.Column("currency", sa.String(3), server_default="RUB"),
        sa.Column("is_active", sa.Boolean, server_default=sa.true(), index=True),
        sa.Column("sort_order", sa.Integer, server_default="0"),
        _created_at(),
    )

    op.create_table(
        "service_inputs",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("service_id", UUID, sa.ForeignKey("services.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("key", sa.String(50), nullable=False),
        sa.Column("label", sa.String(200), nullable=False),
        sa.Column("input_type", sa.String(20), server_default="text"),
        sa.Column("options", postgresql.JSONB),
        sa.Column("is_required", sa.Boolean, server_default=sa.false()),
        sa.Column("sort_order", sa.Integer, server_default="0"),
    )

    # ==================== BOOKINGS ====================
    op.create_table(
        "bookings",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("booking_number", sa.String(20), unique=True, nullable=False, index=True),
        sa.Column("user_id", UUID, sa.ForeignKey("users.id"), nullable=False, index=True),
        sa.Column("service_id", UUID, sa.ForeignKey("services.id")),
        sa.Column("service_type", sa.String(50), nullable=False, index=True),
        sa.Column("service_details", postgresql.JSONB, server_default="{}"),
        sa.Column("user_info", postgresql.JSONB, server_default="{}"),
        sa.Column("customer_notes", sa.Text),
        sa.Column("admin_notes", sa.Text),
        sa.Column("status", sa.String(40), server_default="under_review", index=True),
        sa.Column("payment_status", sa.String(30), server_default="pending", index=True),
        sa.Column("payment_method", sa.String(30)),
        sa.Column("transaction_id", sa.String(100)),
        sa.Column("requires_verification", sa.Boolean, server_default=sa.false()),
        sa.Column("receipt_url", sa.Text),
        sa.Column("final_paid_amount", sa.Integer),
        sa.Column("payment_currency", sa.String(3)),
        sa.Column("exchange_rate_used", sa.Numeric(12, 6)),
        sa.Column("assigned_driver_id", UUID, sa.ForeignKey("drivers.id", ondelete="SET NULL"), index=True),
        sa.Column("driver_response", sa.String(20)),
        sa.Column("driver_response_at", sa.DateTime(timezone=True)),
        sa.Column("show_driver_to_customer", sa.Boolean, server_default=sa.false()),
        sa.Column("assigned_guide_id", UUID, sa.ForeignKey("guides.id", ondelete="SET NULL"), index=True),
        sa.Column("guide_response", sa.String(20)),
        sa.Column("guide_response_at", sa.DateTime(timezone=True)),
        sa.Column("cancelled_by", sa.String(20)),
        sa.Column("cancellation_reason", sa.Text),
        sa.Column("confirmed_at", sa.DateTime(timezone=True)),
        sa.Column("paid_at", sa.DateTime(timezone=True)),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
        sa.Column("cancelled_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), index=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "booking_prices",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("booking_id", UUID, sa.ForeignKey("bookings.id", ondelete="CASCADE"), unique=True, nullable=False),
        sa.Column("admin_price", sa.Integer),
        sa.Column("tax", sa.Integer, server_default="0"),
        sa.Column("currency", sa.String(3), server_default="RUB"),
        sa.Column("locked", sa.Boolean, server_default=sa.false()),
        sa.Column("locked_at", sa.DateTime(timezone=True)),
        sa.Column("locked_by", UUID, sa.ForeignKey("users.id")),
        sa.Column("customer_proposed_price", sa.Integer),
        sa.Column("proposed_at", sa.DateTime(timezone=True)),
        sa.Column("proposal_note", sa.Text),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("admin_price IS NULL OR admin_price > 0", name="ck_booking_prices_admin_price_positive"),
        sa.CheckConstraint("tax >= 0", name="ck_booking_prices_tax_non_negative"),
    )

    op.create_table(
        "booking_status_history",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("booking_id", UUID, sa.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("old_status", sa.String(40)),
        sa.Column("new_status", sa.String(40), nullable=False),
        sa.Column("changed_by", UUID, sa.ForeignKey("users.id")),
        sa.Column("changed_by_role", sa.String(20)),
        sa.Column("notes", sa.Text),
        _created_at(),
    )

    op.create_table(
        "booking_user_inputs",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("booking_id", UUID, sa.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("input_key", sa.String(50), nullable=False),
        sa.Column("value", sa.Text),
    )

    # ==================== PAYMENTS ====================
    op.create_table(
        "payments",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("booking_id", UUID, sa.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("user_id", UUID, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("amount", sa.Integer, nullable=False),
        sa.Column("currency", sa.String(3), server_default="RUB"),
        sa.Column("exchange_rate", sa.Numeric(12, 6)),
        sa.Column("payment_method", sa.String(30), nullable=False),
        sa.Column("transaction_id", sa.String(100), nullable=False, index=True),
        sa.Column("receipt_url", sa.Text),
        sa.Column("gateway", sa.String(30), server_default="manual"),
        sa.Column("gateway_transaction_id", sa.String(100), index=True),
        sa.Column("gateway_response", postgresql.JSONB),
        sa.Column("status", sa.String(30), server_default="pending", index=True),
        sa.Column("failure_reason", sa.Text),
        sa.Column("verified_by", UUID, sa.ForeignKey("users.id")),
        sa.Column("verified_at", sa.DateTime(timezone=True)),
        sa.Column("refunded_at", sa.DateTime(timezone=True)),
        sa.Column("gateway_refund_id", sa.String(100)),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
        _created_at(),
        sa.CheckConstraint("amount > 0", name="ck_payments_amount_positive"),
    )

    # ==================== NOTIFICATIONS ====================
    op.create_table(
        "notifications",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("user_id", UUID, sa.ForeignKey("users.id", ondelete="CASCADE"), index=True),
        sa.Column("recipient_type", sa.String(20), nullable=False, index=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("body", sa.Text, nullable=False),
        sa.Column("notification_type", sa.String(50), nullable=False),
        sa.Column("booking_id", UUID, sa.ForeignKey("bookings.id", ondelete="CASCADE"), index=True),
        sa.Column("is_read", sa.Boolean, server_default=sa.false()),
        sa.Column("read_at", sa.DateTime(timezone=True)),
        sa.Column("email_sent", sa.Boolean, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), index=True),
    )

    # ==================== ADMIN ====================
    op.create_table(
        "audit_logs",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("user_id", UUID, sa.ForeignKey("users.id", ondelete="SET NULL"), index=True),
        sa.Column("actor_role", sa.String(20)),
        sa.Column("action", sa.String(100), nullable=False, index=True),
        sa.Column("resource_type", sa.String(50), nullable=False, index=True),
        sa.Column("resource_id", UUID),
        sa.Column("old_values", postgresql.JSONB),
        sa.Column("new_values", postgresql.JSONB),
        sa.Column("ip_address", sa.String(45)),
        sa.Column("user_agent", sa.Text),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), index=True),
    )


def downgrade() -> None:
    """Drop all database tables in reverse order."""
    op.drop_table("audit_logs")
    op.drop_table("notifications")
    op.drop_table("payments")
    op.drop_table("booking_user_inputs")
    op.drop_table("booking_status_history")
    op.drop_table("booking_prices")
    op.drop_table("bookings")
    op.drop_table("service_inputs")
    op.drop_table("services")
    op.drop_table("guides")
    op.drop_table("drivers")
    op.drop_table("users")
