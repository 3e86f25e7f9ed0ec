"""Verification challenge models."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import ForeignKey, Index, Integer, String, Uuid, func, text
from sqlalchemy.orm import Mapped, mapped_column

from tote_engine.db.base import Base
from tote_engine.db.enums import ChallengeStatus


class VerificationChallenge(Base):
    """
    Short-lived challenge bound to (channel, identity, purpose).

    OTP codes are stored as SHA-256 hashes. Satisfied-on-issue channels
    (qr, sponsor-link, magic-link) are created directly in `verified`.
    """

    __tablename__ = "verification_challenges"
    __table_args__ = (
        Index("idx_challenges_identity_purpose", "identity", "purpose"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    channel: Mapped[str] = mapped_column(String(20), nullable=False)
    identity: Mapped[str] = mapped_column(String(320), nullable=False)
    purpose: Mapped[str] = mapped_column(String(100), nullable=False)
    code_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), default=ChallengeStatus.PENDING.value, nullable=False
    )
    expires_at: Mapped[datetime | None] = mapped_column(nullable=True)
    verified_at: Mapped[datetime | None] = mapped_column(nullable=True)
    superseded_by_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("verification_challenges.id", ondelete="SET NULL"), nullable=True
    )
    resend_count: Mapped[int] = mapped_column(Integer, default=0, server_default=text("0"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
