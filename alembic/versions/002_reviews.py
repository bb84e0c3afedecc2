"""Trip reviews and review prompts.

Revision ID: 002_reviews
Revises: 001_initial
Create Date: 2026-10-19
"""

from typing import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers
revision: str = "002_reviews"
down_revision: str = "001_initial"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

UUID = postgresql.UUID(as_uuid=True)


def upgrade() -> None:
    """Create review tables."""
    op.create_table(
        "reviews",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("booking_id", UUID, sa.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, unique=True),
        sa.Column("user_id", UUID, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("driver_id", UUID, sa.ForeignKey("drivers.id", ondelete="SET NULL"), index=True),
        sa.Column("guide_id", UUID, sa.ForeignKey("guides.id", ondelete="SET NULL"), index=True),
        sa.Column("service_type", sa.String(50), nullable=False, index=True),
        sa.Column("overall_rating", sa.Integer, nullable=False),
        sa.Column("driver_rating", sa.Integer),
        sa.Column("punctuality_rating", sa.Integer),
        sa.Column("communication_rating", sa.Integer),
        sa.Column("value_rating", sa.Integer),
        sa.Column("feedback_text", sa.Text),
        sa.Column("positive_aspects", postgresql.JSONB, server_default="[]"),
        sa.Column("improvement_areas", postgresql.JSONB, server_default="[]"),
        sa.Column("status", sa.String(20), server_default="pending", index=True),
        sa.Column("is_flagged", sa.Boolean, server_default=sa.false()),
        sa.Column("flag_reason", sa.Text),
        sa.Column("moderated_by", UUID, sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("moderated_at", sa.DateTime(timezone=True)),
        sa.Column("requires_followup", sa.Boolean, server_default=sa.false(), index=True),
        sa.Column("followup_type", sa.String(30)),
        sa.Column("followup_completed", sa.Boolean, server_default=sa.false()),
        sa.Column("followup_notes", sa.Text),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("overall_rating BETWEEN 1 AND 5", name="ck_reviews_overall_rating"),
    )

    op.create_table(
        "review_prompts",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("booking_id", UUID, sa.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, unique=True),
        sa.Column("user_id", UUID, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("status", sa.String(20), server_default="scheduled", index=True),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True)),
        sa.Column("dismissed_at", sa.DateTime(timezone=True)),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )


def downgrade() -> None:
    """Drop review tables."""
    op.drop_table("review_prompts")
    op.drop_table("reviews")
