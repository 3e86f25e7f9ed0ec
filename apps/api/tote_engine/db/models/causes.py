"""Cause and inventory ledger models."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    func,
    text,
    true,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tote_engine.db.base import Base
from tote_engine.db.enums import ReservationHolder, ReservationStatus


class Cause(Base):
    """
    A campaign totes are distributed for.

    The four counters form the inventory ledger for the cause:
    total = claimed + available + reserved. Counters are only changed through
    conditional UPDATE statements in inventory_service, never by assigning
    attributes on a loaded instance.
    """

    __tablename__ = "causes"
    __table_args__ = (
        CheckConstraint("total_totes >= 0", name="ck_causes_total_nonneg"),
        CheckConstraint("claimed_totes >= 0", name="ck_causes_claimed_nonneg"),
        CheckConstraint("available_totes >= 0", name="ck_causes_available_nonneg"),
        CheckConstraint("reserved_totes >= 0", name="ck_causes_reserved_nonneg"),
        CheckConstraint(
            "total_totes = claimed_totes + available_totes + reserved_totes",
            name="ck_causes_ledger_balanced",
        ),
        Index("idx_causes_online", "is_online"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_online: Mapped[bool] = mapped_column(Boolean, server_default=true(), default=True, nullable=False)

    total_totes: Mapped[int] = mapped_column(Integer, default=0, server_default=text("0"), nullable=False)
    claimed_totes: Mapped[int] = mapped_column(Integer, default=0, server_default=text("0"), nullable=False)
    available_totes: Mapped[int] = mapped_column(Integer, default=0, server_default=text("0"), nullable=False)
    reserved_totes: Mapped[int] = mapped_column(Integer, default=0, server_default=text("0"), nullable=False)

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )


class InventoryReservation(Base):
    """
    One reserve() call against a cause - the reservation token.

    The held → committed / held → released transition is guarded on the
    current status so commit and release are idempotent under races.
    """

    __tablename__ = "inventory_reservations"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_reservations_quantity_positive"),
        Index("idx_reservations_cause_status", "cause_id", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    cause_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("causes.id", ondelete="CASCADE"), nullable=False
    )
    quantity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=ReservationStatus.HELD.value, nullable=False
    )
    holder: Mapped[str] = mapped_column(
        String(20), default=ReservationHolder.CLAIM.value, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    resolved_at: Mapped[datetime | None] = mapped_column(nullable=True)

    cause: Mapped["Cause"] = relationship()
