"""Sponsorship models."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tote_engine.db.base import Base
from tote_engine.db.enums import LogoStatus, SponsorshipStatus
from tote_engine.db.models.causes import Cause


class Sponsorship(Base):
    """
    A funded commitment of N totes to a cause, subject to admin approval.

    Approval grows the cause ledger by tote_quantity; ending the campaign
    shrinks it by whatever is still unclaimed and records the shortfall.
    """

    __tablename__ = "sponsorships"
    __table_args__ = (
        CheckConstraint("tote_quantity > 0", name="ck_sponsorships_quantity_positive"),
        Index("idx_sponsorships_cause", "cause_id"),
        Index("idx_sponsorships_status", "status", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    cause_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("causes.id", ondelete="CASCADE"), nullable=False
    )

    organization_name: Mapped[str] = mapped_column(String(255), nullable=False)
    contact_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    tote_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    logo_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(
        String(20), default=SponsorshipStatus.PENDING.value, nullable=False
    )
    logo_status: Mapped[str] = mapped_column(
        String(20), default=LogoStatus.PENDING.value, nullable=False
    )
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    logo_rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(nullable=True)
    ended_at: Mapped[datetime | None] = mapped_column(nullable=True)

    # Recorded by end_campaign: what the ledger gave back and what it could not
    totes_removed_on_end: Mapped[int | None] = mapped_column(Integer, nullable=True)
    end_shortfall: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )

    cause: Mapped["Cause"] = relationship()
