"""Inventory ledger - per-cause tote counters and reservation tokens.

Counters move only through conditional UPDATE statements so two concurrent
callers can never both take the last unit:

    reserve:  available -> reserved
    commit:   reserved  -> claimed
    release:  reserved  -> available
    refund:   claimed   -> available   (admin cancel of a verified claim)
    grow:     total, available += n
    shrink:   total, available -= min(n, available)

Functions here flush but never commit; the calling operation owns the
transaction so a failure later in the same admission rolls the ledger back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from tote_engine.core.exceptions import (
    CauseNotFoundError,
    InvariantViolationError,
    OutOfStockError,
    ReservationNotFoundError,
    ReservationStateError,
)
from tote_engine.db.enums import ReservationHolder, ReservationStatus
from tote_engine.db.models import Cause, InventoryReservation
from tote_engine.utils.datetime_utils import utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ShrinkResult:
    removed: int
    shortfall: int


# =============================================================================
# Reads / locking
# =============================================================================


def get_availability(db: Session, cause_id: UUID) -> Cause:
    """Return the cause with fresh counters."""
    cause = db.get(Cause, cause_id, populate_existing=True)
    if not cause:
        raise CauseNotFoundError(f"Cause {cause_id} not found")
    return cause


def lock_cause(db: Session, cause_id: UUID) -> Cause:
    """
    Serialize work on one cause (promotion, shrink, waitlist join).

    PostgreSQL takes a row lock with SELECT ... FOR UPDATE. SQLite ignores
    FOR UPDATE, so the row is touched first to take the database write lock.
    """
    if db.get_bind().dialect.name == "sqlite":
        db.execute(
            update(Cause)
            .where(Cause.id == cause_id)
            .values(updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
    cause = db.execute(
        select(Cause)
        .where(Cause.id == cause_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if not cause:
        raise CauseNotFoundError(f"Cause {cause_id} not found")
    return cause


def _get_reservation(db: Session, reservation_id: UUID) -> InventoryReservation:
    reservation = db.get(InventoryReservation, reservation_id, populate_existing=True)
    if not reservation:
        raise ReservationNotFoundError(f"Reservation {reservation_id} not found")
    return reservation


def _refresh_cause(db: Session, cause_id: UUID) -> None:
    # Keep identity-map copies in step with the UPDATEs above
    db.get(Cause, cause_id, populate_existing=True)


# =============================================================================
# Reservation lifecycle
# =============================================================================


def reserve(
    db: Session,
    cause_id: UUID,
    quantity: int = 1,
    holder: ReservationHolder = ReservationHolder.CLAIM,
) -> InventoryReservation:
    """
    Move `quantity` units from available to reserved.

    Raises OutOfStockError with no side effects when fewer than `quantity`
    units are available.
    """
    if quantity <= 0:
        raise ValueError("quantity must be positive")

    result = db.execute(
        update(Cause)
        .where(Cause.id == cause_id, Cause.available_totes >= quantity)
        .values(
            available_totes=Cause.available_totes - quantity,
            reserved_totes=Cause.reserved_totes + quantity,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        # Distinguish a missing cause from an empty one
        get_availability(db, cause_id)
        raise OutOfStockError(f"No totes available for cause {cause_id}")

    reservation = InventoryReservation(
        cause_id=cause_id,
        quantity=quantity,
        status=ReservationStatus.HELD.value,
        holder=holder.value,
    )
    db.add(reservation)
    db.flush()
    _refresh_cause(db, cause_id)
    logger.debug("Reserved %s unit(s) on cause %s (reservation %s)", quantity, cause_id, reservation.id)
    return reservation


def _transition(
    db: Session,
    reservation: InventoryReservation,
    from_status: ReservationStatus,
    to_status: ReservationStatus,
) -> bool:
    result = db.execute(
        update(InventoryReservation)
        .where(
            InventoryReservation.id == reservation.id,
            InventoryReservation.status == from_status.value,
        )
        .values(status=to_status.value, resolved_at=utc_now())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def _move_counters(db: Session, cause_id: UUID, quantity: int, source: str, target: str) -> None:
    source_col = getattr(Cause, source)
    target_col = getattr(Cause, target)
    result = db.execute(
        update(Cause)
        .where(Cause.id == cause_id, source_col >= quantity)
        .values({source: source_col - quantity, target: target_col + quantity})
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        logger.error(
            "Ledger invariant violated on cause %s: cannot move %s from %s to %s",
            cause_id,
            quantity,
            source,
            target,
        )
        raise InvariantViolationError(
            f"Cannot move {quantity} from {source} to {target} on cause {cause_id}"
        )
    _refresh_cause(db, cause_id)


def commit(db: Session, reservation_id: UUID) -> bool:
    """
    Convert a held reservation into a claimed unit.

    Returns False when the reservation was already committed. Committing a
    released reservation raises ReservationStateError.
    """
    reservation = _get_reservation(db, reservation_id)
    if _transition(db, reservation, ReservationStatus.HELD, ReservationStatus.COMMITTED):
        _move_counters(db, reservation.cause_id, reservation.quantity, "reserved_totes", "claimed_totes")
        db.refresh(reservation)
        return True

    db.refresh(reservation)
    if reservation.status == ReservationStatus.COMMITTED.value:
        return False
    raise ReservationStateError(f"Reservation {reservation_id} was released and cannot be committed")


def release(db: Session, reservation_id: UUID) -> bool:
    """
    Return a held reservation's units to available.

    Idempotent: releasing a released reservation is a no-op, and a committed
    reservation is never credited back here (see `refund`).
    """
    reservation = _get_reservation(db, reservation_id)
    if not _transition(db, reservation, ReservationStatus.HELD, ReservationStatus.RELEASED):
        db.refresh(reservation)
        if reservation.status == ReservationStatus.COMMITTED.value:
            logger.info("Release of committed reservation %s ignored", reservation_id)
        return False

    _move_counters(db, reservation.cause_id, reservation.quantity, "reserved_totes", "available_totes")
    db.refresh(reservation)
    return True


def refund(db: Session, reservation_id: UUID) -> bool:
    """Return a committed (claimed, not yet shipped) unit to available."""
    reservation = _get_reservation(db, reservation_id)
    if not _transition(db, reservation, ReservationStatus.COMMITTED, ReservationStatus.RELEASED):
        db.refresh(reservation)
        return False

    _move_counters(db, reservation.cause_id, reservation.quantity, "claimed_totes", "available_totes")
    db.refresh(reservation)
    return True


# =============================================================================
# Capacity changes (sponsorship lifecycle only)
# =============================================================================


def grow(db: Session, cause_id: UUID, quantity: int) -> Cause:
    """Add sponsored totes to a cause."""
    if quantity <= 0:
        raise ValueError("quantity must be positive")
    result = db.execute(
        update(Cause)
        .where(Cause.id == cause_id)
        .values(
            total_totes=Cause.total_totes + quantity,
            available_totes=Cause.available_totes + quantity,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise CauseNotFoundError(f"Cause {cause_id} not found")
    return get_availability(db, cause_id)


def shrink(db: Session, cause_id: UUID, quantity: int) -> ShrinkResult:
    """
    Remove up to `quantity` unclaimed totes from a cause.

    Reserved and claimed units are never touched; whatever cannot be removed
    is reported as shortfall.
    """
    if quantity <= 0:
        raise ValueError("quantity must be positive")
    cause = lock_cause(db, cause_id)
    removed = min(quantity, cause.available_totes)
    if removed:
        result = db.execute(
            update(Cause)
            .where(Cause.id == cause_id, Cause.available_totes >= removed)
            .values(
                total_totes=Cause.total_totes - removed,
                available_totes=Cause.available_totes - removed,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise InvariantViolationError(f"Cause {cause_id} changed while locked")
        _refresh_cause(db, cause_id)
    return ShrinkResult(removed=removed, shortfall=quantity - removed)


def check_invariant(cause: Cause) -> None:
    """Raise if the cause counters are out of balance."""
    counters = (cause.total_totes, cause.claimed_totes, cause.available_totes, cause.reserved_totes)
    if any(value < 0 for value in counters) or cause.total_totes != (
        cause.claimed_totes + cause.available_totes + cause.reserved_totes
    ):
        raise InvariantViolationError(
            f"Cause {cause.id} ledger out of balance: total={cause.total_totes} "
            f"claimed={cause.claimed_totes} available={cause.available_totes} "
            f"reserved={cause.reserved_totes}"
        )
