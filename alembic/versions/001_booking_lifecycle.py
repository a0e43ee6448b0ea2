"""Booking lifecycle schema.

Revision ID: 001_booking_lifecycle
Revises: None
Create Date: 2025-05-20

Creates the booking tables:
- Bookings
- Payment proofs (kept after rejection)
- Booking status events (append-only history)
"""

from typing import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers
revision: str = "001_booking_lifecycle"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create booking tables."""

    # ==================== BOOKINGS ====================
    op.create_table(
        "bookings",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("room_id", sa.String(64), nullable=False, index=True),
        sa.Column("property_id", sa.String(64), nullable=False),
        sa.Column("guest_user_id", sa.Uuid, nullable=False, index=True),
        sa.Column("tenant_owner_id", sa.Uuid, nullable=False, index=True),
        sa.Column("check_in", sa.Date, nullable=False),
        sa.Column("check_out", sa.Date, nullable=False, index=True),
        sa.Column("guests", sa.Integer, nullable=False),
        sa.Column("total_amount", sa.Integer, nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("status", sa.String(30), nullable=False, index=True),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("check_in < check_out", name="ck_bookings_date_range"),
        sa.CheckConstraint("guests > 0", name="ck_bookings_guests_positive"),
        sa.CheckConstraint("total_amount >= 0", name="ck_bookings_total_non_negative"),
        sa.CheckConstraint(
            "status IN ('WAITING_PAYMENT', 'WAITING_CONFIRMATION', 'PROCESSING', "
            "'CANCELLED', 'COMPLETED')",
            name="ck_bookings_status",
        ),
    )

    # ==================== PAYMENT PROOFS ====================
    op.create_table(
        "payment_proofs",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("booking_id", sa.Uuid, sa.ForeignKey("bookings.id"), nullable=False, index=True),
        sa.Column("file_url", sa.Text, nullable=False),
        sa.Column("content_type", sa.String(50), nullable=False),
        sa.Column("size_bytes", sa.Integer, nullable=False),
        sa.Column("submitted_by", sa.Uuid),
        sa.Column("submitted_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("verified_at", sa.DateTime(timezone=True)),
        sa.Column("rejected_at", sa.DateTime(timezone=True)),
    )

    # ==================== STATUS HISTORY ====================
    op.create_table(
        "booking_status_events",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("booking_id", sa.Uuid, sa.ForeignKey("bookings.id"), nullable=False, index=True),
        sa.Column("action", sa.String(20), nullable=False),
        sa.Column("from_status", sa.String(30)),
        sa.Column("to_status", sa.String(30), nullable=False),
        sa.Column("actor_id", sa.Uuid),
        sa.Column("actor_role", sa.String(10), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )


def downgrade() -> None:
    """Drop booking tables."""
    op.drop_table("booking_status_events")
    op.drop_table("payment_proofs")
    op.drop_table("bookings")
