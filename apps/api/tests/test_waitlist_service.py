"""Tests for waitlist ordering, promotion and magic links."""

from datetime import timedelta

import pytest

from support import magic_token_for, notifications_sent
from tote_engine.core.exceptions import (
    DuplicateEntryError,
    InvalidTokenError,
    InvalidTransitionError,
    TokenAlreadyUsedError,
    TokenExpiredError,
    WaitlistEntryNotFoundError,
)
from tote_engine.db.enums import ClaimChannel, ClaimStatus, NotificationTemplate, ReservationStatus, WaitlistStatus
from tote_engine.db.models import InventoryReservation
from tote_engine.services import (
    cause_service,
    claim_service,
    inventory_service,
    sponsorship_service,
    waitlist_service,
)
from tote_engine.utils.datetime_utils import ensure_utc, utc_now


def _add_totes(db, cause, quantity):
    sponsorship = sponsorship_service.submit_sponsorship(
        db, cause.id, "Harbor Co", "Lee Park", "lee@harbor.org", quantity
    )
    return sponsorship_service.approve(db, sponsorship.id)


def test_positions_are_assigned_in_join_order(db, make_cause):
    cause = make_cause(totes=0)

    entries = [waitlist_service.join(db, cause.id, f"user{i}@gmail.com") for i in range(3)]

    assert [e.position for e in entries] == [1, 2, 3]
    assert all(e.status == WaitlistStatus.WAITING.value for e in entries)


def test_duplicate_active_entry_is_rejected(db, make_cause):
    cause = make_cause(totes=0)
    waitlist_service.join(db, cause.id, "ana@gmail.com")

    with pytest.raises(DuplicateEntryError):
        waitlist_service.join(db, cause.id, "  ANA@gmail.com ")


def test_join_with_free_totes_is_promoted_immediately(db, make_cause):
    cause = make_cause(totes=1)

    entry = waitlist_service.join(db, cause.id, "ana@gmail.com")

    assert entry.status == WaitlistStatus.NOTIFIED.value
    assert entry.reservation_id is not None
    assert len(notifications_sent(db, NotificationTemplate.WAITLIST_MAGIC_LINK)) == 1
    cause = inventory_service.get_availability(db, cause.id)
    assert (cause.available_totes, cause.reserved_totes) == (0, 1)


def test_promotion_is_fifo(db, make_cause):
    cause = make_cause(totes=0)
    first = waitlist_service.join(db, cause.id, "first@gmail.com")
    second = waitlist_service.join(db, cause.id, "second@gmail.com")
    third = waitlist_service.join(db, cause.id, "third@gmail.com")

    _add_totes(db, cause, 2)

    for entry in (first, second, third):
        db.refresh(entry)
    assert first.status == WaitlistStatus.NOTIFIED.value
    assert second.status == WaitlistStatus.NOTIFIED.value
    assert third.status == WaitlistStatus.WAITING.value
    assert ensure_utc(first.magic_link_expires_at) - ensure_utc(first.magic_link_sent_at) == timedelta(hours=48)


def test_validate_token_does_not_consume(db, make_cause):
    cause = make_cause(totes=1)
    entry = waitlist_service.join(db, cause.id, "ana@gmail.com")
    token = magic_token_for(db, entry.id)

    assert waitlist_service.validate_token(db, token).id == entry.id
    assert waitlist_service.validate_token(db, token).id == entry.id


def test_token_is_single_use(db, make_cause):
    cause = make_cause(totes=1)
    entry = waitlist_service.join(db, cause.id, "ana@gmail.com")
    token = magic_token_for(db, entry.id)

    redeemed = waitlist_service.redeem_token(db, token, "ana@gmail.com")
    db.commit()

    assert redeemed.status == WaitlistStatus.CLAIMED.value
    with pytest.raises(TokenAlreadyUsedError):
        waitlist_service.validate_token(db, token)


def test_token_bound_to_identity(db, make_cause):
    cause = make_cause(totes=1)
    entry = waitlist_service.join(db, cause.id, "ana@gmail.com")
    token = magic_token_for(db, entry.id)

    with pytest.raises(InvalidTokenError):
        waitlist_service.redeem_token(db, token, "mallory@gmail.com")


def test_unknown_token(db):
    with pytest.raises(InvalidTokenError):
        waitlist_service.validate_token(db, "not-a-real-token")


def test_token_expires_after_window(db, make_cause):
    cause = make_cause(totes=1)
    entry = waitlist_service.join(db, cause.id, "ana@gmail.com")
    token = magic_token_for(db, entry.id)

    with pytest.raises(TokenExpiredError):
        waitlist_service.validate_token(db, token, now=utc_now() + timedelta(hours=48, seconds=1))


def test_sweep_expires_link_and_promotes_next(db, make_cause):
    cause = make_cause(totes=0)
    first = waitlist_service.join(db, cause.id, "first@gmail.com")
    second = waitlist_service.join(db, cause.id, "second@gmail.com")
    third = waitlist_service.join(db, cause.id, "third@gmail.com")
    _add_totes(db, cause, 1)
    db.refresh(first)
    first_reservation = first.reservation_id

    expired = waitlist_service.sweep_expired_links(db, now=utc_now() + timedelta(hours=49))

    assert expired == 1
    for entry in (first, second, third):
        db.refresh(entry)
    assert first.status == WaitlistStatus.EXPIRED.value
    assert second.status == WaitlistStatus.NOTIFIED.value
    assert third.status == WaitlistStatus.WAITING.value
    assert db.get(InventoryReservation, first_reservation).status == ReservationStatus.RELEASED.value
    cause = inventory_service.get_availability(db, cause.id)
    assert (cause.available_totes, cause.reserved_totes) == (0, 1)


def test_sweep_ignores_live_links(db, make_cause):
    cause = make_cause(totes=1)
    waitlist_service.join(db, cause.id, "ana@gmail.com")

    assert waitlist_service.sweep_expired_links(db) == 0


def test_leave_releases_tote_and_keeps_positions(db, make_cause):
    cause = make_cause(totes=0)
    first = waitlist_service.join(db, cause.id, "first@gmail.com")
    second = waitlist_service.join(db, cause.id, "second@gmail.com")
    _add_totes(db, cause, 1)

    left = waitlist_service.leave(db, first.id, "first@gmail.com")

    db.refresh(second)
    assert left.status == WaitlistStatus.LEFT.value
    assert second.status == WaitlistStatus.NOTIFIED.value
    assert second.position == 2
    third = waitlist_service.join(db, cause.id, "third@gmail.com")
    assert third.position == 3


def test_leave_requires_matching_email(db, make_cause):
    cause = make_cause(totes=0)
    entry = waitlist_service.join(db, cause.id, "ana@gmail.com")

    with pytest.raises(WaitlistEntryNotFoundError):
        waitlist_service.leave(db, entry.id, "someone@gmail.com")


def test_leave_twice_is_rejected(db, make_cause):
    cause = make_cause(totes=0)
    entry = waitlist_service.join(db, cause.id, "ana@gmail.com")
    waitlist_service.leave(db, entry.id, "ana@gmail.com")

    with pytest.raises(InvalidTransitionError):
        waitlist_service.leave(db, entry.id, "ana@gmail.com")


def test_rejoin_after_leaving(db, make_cause):
    cause = make_cause(totes=0)
    entry = waitlist_service.join(db, cause.id, "ana@gmail.com")
    waitlist_service.leave(db, entry.id, "ana@gmail.com")

    again = waitlist_service.join(db, cause.id, "ana@gmail.com")

    assert again.position == 2


def test_resend_magic_link_rotates_token(db, make_cause):
    cause = make_cause(totes=1)
    entry = waitlist_service.join(db, cause.id, "ana@gmail.com")
    old_token = magic_token_for(db, entry.id)
    reservation_id = entry.reservation_id

    waitlist_service.resend_magic_link(db, entry.id)
    new_token = magic_token_for(db, entry.id)

    assert new_token != old_token
    with pytest.raises(InvalidTokenError):
        waitlist_service.validate_token(db, old_token)
    assert waitlist_service.validate_token(db, new_token).reservation_id == reservation_id


def test_resend_magic_link_requires_notified_entry(db, make_cause):
    cause = make_cause(totes=0)
    entry = waitlist_service.join(db, cause.id, "ana@gmail.com")

    with pytest.raises(InvalidTransitionError):
        waitlist_service.resend_magic_link(db, entry.id)


def test_list_for_email_reports_entries_ahead(db, make_cause):
    cause = make_cause(totes=0)
    for i in range(3):
        waitlist_service.join(db, cause.id, f"user{i}@gmail.com")
    waitlist_service.join(db, cause.id, "ana@gmail.com")

    standings = waitlist_service.list_for_email(db, "ana@gmail.com")

    assert len(standings) == 1
    assert standings[0].ahead == 3
    assert [e.position for e in waitlist_service.list_for_cause(db, cause.id)] == [1, 2, 3, 4]


def test_offline_cause_holds_freed_totes_until_reopened(db, make_cause):
    cause = make_cause(totes=1)
    claim = claim_service.submit(db, cause.id, "xavi@gmail.com", ClaimChannel.DIRECT).claim
    entry = waitlist_service.join(db, cause.id, "yan@gmail.com")
    cause_service.update_cause(db, cause.id, is_online=False)

    claim_service.cancel(db, claim.id)

    assert waitlist_service.get_entry(db, entry.id).status == WaitlistStatus.WAITING.value
    assert notifications_sent(db, NotificationTemplate.WAITLIST_MAGIC_LINK) == []
    cause = inventory_service.get_availability(db, cause.id)
    assert (cause.available_totes, cause.reserved_totes) == (1, 0)

    cause_service.update_cause(db, cause.id, is_online=True)

    entry = waitlist_service.get_entry(db, entry.id)
    assert entry.status == WaitlistStatus.NOTIFIED.value
    token = magic_token_for(db, entry.id)
    result = claim_service.submit(db, cause.id, "yan@gmail.com", ClaimChannel.MAGIC_LINK, magic_link_token=token)
    assert result.claim.status == ClaimStatus.VERIFIED.value


def test_approval_on_offline_cause_does_not_promote(db, make_cause):
    cause = make_cause(totes=0)
    entry = waitlist_service.join(db, cause.id, "ana@gmail.com")
    cause_service.update_cause(db, cause.id, is_online=False)

    _add_totes(db, cause, 2)

    assert waitlist_service.get_entry(db, entry.id).status == WaitlistStatus.WAITING.value
    cause = inventory_service.get_availability(db, cause.id)
    assert (cause.available_totes, cause.reserved_totes) == (2, 0)
