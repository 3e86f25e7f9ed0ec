"""Claim models."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import ForeignKey, Index, Integer, String, Text, Uuid, func, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tote_engine.db.base import Base
from tote_engine.db.enums import ClaimStatus
from tote_engine.db.models.causes import Cause, InventoryReservation

_ACTIVE_CLAIM_PREDICATE = "status IN ({})".format(
    ", ".join(f"'{status}'" for status in ClaimStatus.active())
)


class Claim(Base):
    """
    One identity's request to receive one tote from a cause.

    Constraint: one active claim per (cause, email), enforced by a partial
    unique index so concurrent submissions cannot both succeed.
    """

    __tablename__ = "claims"
    __table_args__ = (
        Index(
            "uq_active_claim_per_email",
            "cause_id",
            "email",
            unique=True,
            postgresql_where=text(_ACTIVE_CLAIM_PREDICATE),
            sqlite_where=text(_ACTIVE_CLAIM_PREDICATE),
        ),
        Index("idx_claims_cause_status", "cause_id", "status"),
        Index("idx_claims_status_created", "status", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    cause_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("causes.id", ondelete="CASCADE"), nullable=False
    )

    email: Mapped[str] = mapped_column(String(320), nullable=False)
    full_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    city: Mapped[str | None] = mapped_column(String(120), nullable=True)
    state: Mapped[str | None] = mapped_column(String(120), nullable=True)
    zip_code: Mapped[str | None] = mapped_column(String(20), nullable=True)

    channel: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(
        String(30), default=ClaimStatus.RESERVED.value, nullable=False
    )
    verification_method: Mapped[str | None] = mapped_column(String(10), nullable=True)

    reservation_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("inventory_reservations.id"), nullable=False
    )
    challenge_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("verification_challenges.id", ondelete="SET NULL"), nullable=True
    )
    waitlist_entry_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("waitlist_entries.id", ondelete="SET NULL"), nullable=True
    )
    resend_count: Mapped[int] = mapped_column(Integer, default=0, server_default=text("0"), nullable=False)

    # Fulfilment
    tracking_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    carrier: Mapped[str | None] = mapped_column(String(100), nullable=True)

    verified_at: Mapped[datetime | None] = mapped_column(nullable=True)
    shipped_at: Mapped[datetime | None] = mapped_column(nullable=True)
    delivered_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(nullable=True)
    expired_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cancel_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )

    cause: Mapped["Cause"] = relationship()
    reservation: Mapped["InventoryReservation"] = relationship()
