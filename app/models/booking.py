"""Booking-related database models."""

from __future__ import annotations

import uuid
from datetime import UTC, date, datetime

from sqlalchemy import CheckConstraint, Date, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from app.database import Base


def utcnow() -> datetime:
    return datetime.now(UTC)


class Booking(Base):
    """Booking model.

    Status is only ever written through the ledger's compare-and-swap,
    which also bumps ``version``.
    """

    __tablename__ = "bookings"
    __table_args__ = (
        CheckConstraint("check_in < check_out", name="ck_bookings_date_range"),
        CheckConstraint("guests > 0", name="ck_bookings_guests_positive"),
        CheckConstraint("total_amount >= 0", name="ck_bookings_total_non_negative"),
        CheckConstraint(
            "status IN ('WAITING_PAYMENT', 'WAITING_CONFIRMATION', 'PROCESSING', "
            "'CANCELLED', 'COMPLETED')",
            name="ck_bookings_status",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # Catalog references (owned by the catalog service)
    room_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    property_id: Mapped[str] = mapped_column(String(64), nullable=False)

    # Parties, fixed at creation
    guest_user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    tenant_owner_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)

    # Dates
    check_in: Mapped[date] = mapped_column(Date, nullable=False)
    check_out: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    guests: Mapped[int] = mapped_column(Integer, nullable=False)

    # Pricing (smallest currency unit), fixed at creation
    total_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    # Status
    status: Mapped[str] = mapped_column(
        String(30), nullable=False, index=True
    )  # WAITING_PAYMENT, WAITING_CONFIRMATION, PROCESSING, CANCELLED, COMPLETED
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )

    # Relationships
    payment_proofs: Mapped[list["PaymentProof"]] = relationship(
        "PaymentProof",
        back_populates="booking",
        order_by="PaymentProof.submitted_at",
    )
    events: Mapped[list["BookingStatusEvent"]] = relationship(
        "BookingStatusEvent",
        back_populates="booking",
        order_by="BookingStatusEvent.created_at",
    )

    @property
    def payment_proof(self) -> PaymentProof | None:
        """Latest proof that has not been rejected."""
        active = [proof for proof in self.payment_proofs if proof.rejected_at is None]
        return active[-1] if active else None

    @property
    def nights(self) -> int:
        """Calculate number of nights."""
        return (self.check_out - self.check_in).days


class PaymentProof(Base):
    """Payment proof uploaded by the guest. Never deleted."""

    __tablename__ = "payment_proofs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("bookings.id"), nullable=False, index=True
    )
    file_url: Mapped[str] = mapped_column(Text, nullable=False)
    content_type: Mapped[str] = mapped_column(String(50), nullable=False)
    size_bytes: Mapped[int] = mapped_column(Integer, nullable=False)
    submitted_by: Mapped[uuid.UUID | None] = mapped_column(Uuid)
    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    booking: Mapped["Booking"] = relationship("Booking", back_populates="payment_proofs")


class BookingStatusEvent(Base):
    """Append-only history of committed booking transitions."""

    __tablename__ = "booking_status_events"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("bookings.id"), nullable=False, index=True
    )
    action: Mapped[str] = mapped_column(String(20), nullable=False)  # create, cancel, approve, ...
    from_status: Mapped[str | None] = mapped_column(String(30))
    to_status: Mapped[str] = mapped_column(String(30), nullable=False)
    actor_id: Mapped[uuid.UUID | None] = mapped_column(Uuid)
    actor_role: Mapped[str] = mapped_column(String(10), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )

    booking: Mapped["Booking"] = relationship("Booking", back_populates="events")
