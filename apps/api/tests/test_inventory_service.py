"""Tests for the inventory ledger."""

import uuid

import pytest
from sqlalchemy import func, select

from tote_engine.core.exceptions import (
    CauseNotFoundError,
    InvariantViolationError,
    OutOfStockError,
    ReservationStateError,
)
from tote_engine.db.enums import ReservationHolder, ReservationStatus
from tote_engine.db.models import InventoryReservation
from tote_engine.services import inventory_service


def _assert_balanced(cause):
    inventory_service.check_invariant(cause)


def test_reserve_moves_unit_from_available_to_reserved(db, make_cause):
    cause = make_cause(totes=3)

    reservation = inventory_service.reserve(db, cause.id)
    db.commit()

    assert reservation.status == ReservationStatus.HELD.value
    assert reservation.holder == ReservationHolder.CLAIM.value
    cause = inventory_service.get_availability(db, cause.id)
    assert (cause.available_totes, cause.reserved_totes, cause.claimed_totes) == (2, 1, 0)
    _assert_balanced(cause)


def test_reserve_out_of_stock_has_no_side_effects(db, make_cause):
    cause = make_cause(totes=1)
    inventory_service.reserve(db, cause.id)
    db.commit()

    with pytest.raises(OutOfStockError) as exc_info:
        inventory_service.reserve(db, cause.id)
    db.rollback()

    assert exc_info.value.next_step == "join_waitlist"
    count = db.execute(select(func.count(InventoryReservation.id))).scalar_one()
    assert count == 1
    cause = inventory_service.get_availability(db, cause.id)
    assert (cause.available_totes, cause.reserved_totes) == (0, 1)


def test_reserve_more_than_available_fails(db, make_cause):
    cause = make_cause(totes=2)

    with pytest.raises(OutOfStockError):
        inventory_service.reserve(db, cause.id, quantity=3)


def test_reserve_unknown_cause(db):
    with pytest.raises(CauseNotFoundError):
        inventory_service.reserve(db, uuid.uuid4())


def test_commit_is_idempotent(db, make_cause):
    cause = make_cause(totes=2)
    reservation = inventory_service.reserve(db, cause.id)

    assert inventory_service.commit(db, reservation.id) is True
    assert inventory_service.commit(db, reservation.id) is False
    db.commit()

    cause = inventory_service.get_availability(db, cause.id)
    assert (cause.available_totes, cause.reserved_totes, cause.claimed_totes) == (1, 0, 1)
    _assert_balanced(cause)


def test_release_is_idempotent(db, make_cause):
    cause = make_cause(totes=2)
    reservation = inventory_service.reserve(db, cause.id)

    assert inventory_service.release(db, reservation.id) is True
    assert inventory_service.release(db, reservation.id) is False
    db.commit()

    cause = inventory_service.get_availability(db, cause.id)
    assert (cause.available_totes, cause.reserved_totes, cause.claimed_totes) == (2, 0, 0)


def test_release_after_commit_never_credits_back(db, make_cause):
    cause = make_cause(totes=1)
    reservation = inventory_service.reserve(db, cause.id)
    inventory_service.commit(db, reservation.id)

    assert inventory_service.release(db, reservation.id) is False
    db.commit()

    cause = inventory_service.get_availability(db, cause.id)
    assert (cause.available_totes, cause.claimed_totes) == (0, 1)


def test_commit_after_release_is_rejected(db, make_cause):
    cause = make_cause(totes=1)
    reservation = inventory_service.reserve(db, cause.id)
    inventory_service.release(db, reservation.id)

    with pytest.raises(ReservationStateError):
        inventory_service.commit(db, reservation.id)


def test_refund_returns_committed_unit_once(db, make_cause):
    cause = make_cause(totes=1)
    reservation = inventory_service.reserve(db, cause.id)
    inventory_service.commit(db, reservation.id)

    assert inventory_service.refund(db, reservation.id) is True
    assert inventory_service.refund(db, reservation.id) is False
    db.commit()

    cause = inventory_service.get_availability(db, cause.id)
    assert (cause.available_totes, cause.claimed_totes, cause.total_totes) == (1, 0, 1)


def test_grow_adds_to_total_and_available(db, make_cause):
    cause = make_cause(totes=0)

    inventory_service.grow(db, cause.id, 4)
    db.commit()

    cause = inventory_service.get_availability(db, cause.id)
    assert (cause.total_totes, cause.available_totes) == (4, 4)


def test_shrink_reports_shortfall_and_keeps_claimed(db, make_cause):
    cause = make_cause(totes=5)
    held = inventory_service.reserve(db, cause.id, quantity=2)
    claimed = inventory_service.reserve(db, cause.id)
    inventory_service.commit(db, claimed.id)

    result = inventory_service.shrink(db, cause.id, 5)
    db.commit()

    assert result.removed == 2
    assert result.shortfall == 3
    cause = inventory_service.get_availability(db, cause.id)
    assert (cause.total_totes, cause.available_totes, cause.reserved_totes, cause.claimed_totes) == (3, 0, 2, 1)
    _assert_balanced(cause)
    assert held.status == ReservationStatus.HELD.value


def test_check_invariant_detects_imbalance(db, make_cause):
    cause = make_cause(totes=2)
    db.expunge(cause)
    cause.available_totes = 5

    with pytest.raises(InvariantViolationError):
        inventory_service.check_invariant(cause)
