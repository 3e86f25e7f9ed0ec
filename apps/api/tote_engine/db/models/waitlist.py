"""Waitlist models."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tote_engine.db.base import Base
from tote_engine.db.enums import WaitlistStatus
from tote_engine.db.models.causes import Cause

_ACTIVE_ENTRY_PREDICATE = "status IN ({})".format(
    ", ".join(f"'{status}'" for status in WaitlistStatus.active())
)


class WaitlistEntry(Base):
    """
    Ordered registration for a cause that is out of totes.

    position is assigned at join time (max + 1) and never renumbered, so
    leaving or expiring leaves gaps. Only the SHA-256 hash of the magic-link
    token is stored.
    """

    __tablename__ = "waitlist_entries"
    __table_args__ = (
        UniqueConstraint("cause_id", "position", name="uq_waitlist_position"),
        Index(
            "uq_active_waitlist_email",
            "cause_id",
            "email",
            unique=True,
            postgresql_where=text(_ACTIVE_ENTRY_PREDICATE),
            sqlite_where=text(_ACTIVE_ENTRY_PREDICATE),
        ),
        Index("idx_waitlist_cause_status_position", "cause_id", "status", "position"),
        Index("idx_waitlist_token_hash", "magic_link_token_hash"),
        Index("idx_waitlist_email", "email"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    cause_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("causes.id", ondelete="CASCADE"), nullable=False
    )

    email: Mapped[str] = mapped_column(String(320), nullable=False)
    full_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    notify_email: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    notify_sms: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    position: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=WaitlistStatus.WAITING.value, nullable=False
    )

    magic_link_token_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    magic_link_sent_at: Mapped[datetime | None] = mapped_column(nullable=True)
    magic_link_expires_at: Mapped[datetime | None] = mapped_column(nullable=True)
    reservation_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("inventory_reservations.id"), nullable=True
    )
    claimed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )

    cause: Mapped["Cause"] = relationship()
