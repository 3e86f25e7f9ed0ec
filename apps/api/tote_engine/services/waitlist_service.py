"""Waitlist queue - ordered registrations and time-boxed promotion.

Positions are handed out as max + 1 under the cause lock and never
renumbered. Promotion walks waiting entries in position order, reserving
one tote each and sending a magic link that holds the reservation for
MAGIC_LINK_TTL_HOURS. Unredeemed links are swept: the reservation goes
back to the pool and the next entry is promoted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tote_engine.core.config import settings
from tote_engine.core.exceptions import (
    CauseUnavailableError,
    DuplicateClaimError,
    DuplicateEntryError,
    InvalidTokenError,
    InvalidTransitionError,
    OutOfStockError,
    TokenAlreadyUsedError,
    TokenExpiredError,
    WaitlistEntryNotFoundError,
)
from tote_engine.core.structured_logging import build_log_context, mask_email
from tote_engine.db.enums import (
    ClaimStatus,
    NotificationChannel,
    NotificationTemplate,
    ReservationHolder,
    WaitlistStatus,
)
from tote_engine.db.models import Cause, Claim, WaitlistEntry
from tote_engine.services import inventory_service, notification_service, verification_service
from tote_engine.utils.datetime_utils import ensure_utc, utc_now
from tote_engine.utils.normalization import normalize_email, normalize_name, normalize_phone

logger = logging.getLogger(__name__)


@dataclass
class WaitlistStanding:
    entry: WaitlistEntry
    ahead: int


# =============================================================================
# Lookups
# =============================================================================


def get_entry(db: Session, entry_id: UUID) -> WaitlistEntry:
    entry = db.get(WaitlistEntry, entry_id, populate_existing=True)
    if not entry:
        raise WaitlistEntryNotFoundError(f"Waitlist entry {entry_id} not found")
    return entry


def find_active_entry(db: Session, cause_id: UUID, email: str) -> WaitlistEntry | None:
    return db.execute(
        select(WaitlistEntry).where(
            WaitlistEntry.cause_id == cause_id,
            WaitlistEntry.email == normalize_email(email),
            WaitlistEntry.status.in_(WaitlistStatus.active()),
        )
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()


def list_for_cause(
    db: Session, cause_id: UUID, status: WaitlistStatus | None = None
) -> list[WaitlistEntry]:
    """Entries for a cause in position order."""
    query = select(WaitlistEntry).where(WaitlistEntry.cause_id == cause_id)
    if status:
        query = query.where(WaitlistEntry.status == status.value)
    return list(db.execute(query.order_by(WaitlistEntry.position)).scalars())


def list_for_email(db: Session, email: str) -> list[WaitlistStanding]:
    """All of an email's entries, each with the number of waiting entries ahead."""
    entries = db.execute(
        select(WaitlistEntry)
        .where(WaitlistEntry.email == normalize_email(email))
        .order_by(WaitlistEntry.created_at.desc())
    ).scalars().all()

    standings = []
    for entry in entries:
        ahead = 0
        if entry.status == WaitlistStatus.WAITING.value:
            ahead = db.execute(
                select(func.count(WaitlistEntry.id)).where(
                    WaitlistEntry.cause_id == entry.cause_id,
                    WaitlistEntry.status == WaitlistStatus.WAITING.value,
                    WaitlistEntry.position < entry.position,
                )
            ).scalar_one()
        standings.append(WaitlistStanding(entry=entry, ahead=ahead))
    return standings


def _next_position(db: Session, cause_id: UUID) -> int:
    current = db.execute(
        select(func.max(WaitlistEntry.position)).where(WaitlistEntry.cause_id == cause_id)
    ).scalar_one()
    return (current or 0) + 1


# =============================================================================
# Join / leave
# =============================================================================


def join(
    db: Session,
    cause_id: UUID,
    email: str,
    full_name: str | None = None,
    phone: str | None = None,
    message: str | None = None,
    notify_email: bool = True,
    notify_sms: bool = False,
) -> WaitlistEntry:
    """
    Add an email to the back of a cause's waitlist.

    If totes are free the new entry is promoted straight away.
    """
    email = normalize_email(email)
    phone = normalize_phone(phone)
    try:
        cause = inventory_service.lock_cause(db, cause_id)
        if not cause.is_online:
            raise CauseUnavailableError("This cause is not accepting registrations")
        if find_active_entry(db, cause_id, email):
            raise DuplicateEntryError("You are already on the waitlist for this cause")
        has_claim = db.execute(
            select(Claim.id).where(
                Claim.cause_id == cause_id,
                Claim.email == email,
                Claim.status.in_(ClaimStatus.active()),
            )
        ).first()
        if has_claim:
            raise DuplicateClaimError("You already have a claim for this cause")

        entry = WaitlistEntry(
            cause_id=cause_id,
            email=email,
            full_name=normalize_name(full_name),
            phone=phone,
            message=message,
            notify_email=notify_email,
            notify_sms=notify_sms and bool(phone),
            position=_next_position(db, cause_id),
            status=WaitlistStatus.WAITING.value,
        )
        db.add(entry)
        db.flush()

        try_promote(db, cause_id)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise DuplicateEntryError("You are already on the waitlist for this cause")
    except Exception:
        db.rollback()
        raise

    db.refresh(entry)
    logger.info(
        "Waitlist join position=%s status=%s",
        entry.position,
        entry.status,
        extra=build_log_context(cause_id=str(cause_id), entry_id=str(entry.id), email=email),
    )
    return entry


def leave(db: Session, entry_id: UUID, email: str) -> WaitlistEntry:
    """
    Voluntarily leave the waitlist.

    A notified entry gives its held tote back and the next entry is
    promoted. Positions of remaining entries are unchanged.
    """
    entry = get_entry(db, entry_id)
    if entry.email != normalize_email(email):
        raise WaitlistEntryNotFoundError(f"Waitlist entry {entry_id} not found")

    try:
        result = db.execute(
            update(WaitlistEntry)
            .where(
                WaitlistEntry.id == entry.id,
                WaitlistEntry.status.in_(WaitlistStatus.active()),
            )
            .values(status=WaitlistStatus.LEFT.value, magic_link_token_hash=None)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise InvalidTransitionError(f"Cannot leave a waitlist entry that is {entry.status}")

        if entry.reservation_id:
            if inventory_service.release(db, entry.reservation_id):
                try_promote(db, entry.cause_id)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(entry)
    return entry


def settle_for_claim(db: Session, cause_id: UUID, email: str) -> WaitlistEntry | None:
    """
    Close the caller's own entry when they claim through another channel.

    A notified entry becomes `claimed` and is returned so the claim takes
    over the tote it holds. A waiting entry becomes `left`. Returns None
    when there is no reservation to inherit. Runs under the cause lock and
    flushes only.
    """
    if find_active_entry(db, cause_id, email) is None:
        return None
    inventory_service.lock_cause(db, cause_id)
    entry = find_active_entry(db, cause_id, email)
    if entry is None:
        return None

    if entry.status == WaitlistStatus.NOTIFIED.value:
        values = {"status": WaitlistStatus.CLAIMED.value, "claimed_at": utc_now()}
    else:
        values = {"status": WaitlistStatus.LEFT.value}
    result = db.execute(
        update(WaitlistEntry)
        .where(WaitlistEntry.id == entry.id, WaitlistEntry.status == entry.status)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        # swept in the meantime; its tote is already back in the pool
        return None
    db.refresh(entry)
    logger.info(
        "Waitlist entry closed by direct claim -> %s",
        entry.status,
        extra=build_log_context(cause_id=str(cause_id), entry_id=str(entry.id)),
    )
    if entry.status == WaitlistStatus.CLAIMED.value and entry.reservation_id:
        return entry
    return None


# =============================================================================
# Promotion
# =============================================================================


def _magic_link_url(token: str) -> str:
    return f"{settings.MAGIC_LINK_BASE_URL.rstrip('/')}/{token}"


def _send_magic_link(db: Session, entry: WaitlistEntry, cause: Cause) -> str:
    """Mint a fresh token for a notified entry and queue its delivery."""
    token = verification_service.generate_magic_link_token()
    now = utc_now()
    entry.magic_link_token_hash = verification_service.hash_token(token)
    entry.magic_link_sent_at = now
    entry.magic_link_expires_at = now + timedelta(hours=settings.MAGIC_LINK_TTL_HOURS)

    payload = {
        "cause_id": str(cause.id),
        "cause_title": cause.title,
        "entry_id": str(entry.id),
        "magic_link_url": _magic_link_url(token),
        "token": token,
        "expires_at": entry.magic_link_expires_at.isoformat(),
    }
    if entry.notify_email or not (entry.notify_sms and entry.phone):
        notification_service.enqueue_notification(
            db, entry.email, NotificationChannel.EMAIL, NotificationTemplate.WAITLIST_MAGIC_LINK, payload
        )
    if entry.notify_sms and entry.phone:
        notification_service.enqueue_notification(
            db, entry.phone, NotificationChannel.SMS, NotificationTemplate.WAITLIST_MAGIC_LINK, payload
        )
    db.flush()
    return token


def try_promote(db: Session, cause_id: UUID) -> list[WaitlistEntry]:
    """
    Promote waiting entries while the cause has available totes.

    Entries are taken strictly in position order; the scan stops at the
    first OutOfStockError. Offline causes promote nobody, since their links
    could not be redeemed. Runs under the cause lock and flushes only.
    """
    cause = inventory_service.lock_cause(db, cause_id)
    if not cause.is_online:
        return []
    waiting = db.execute(
        select(WaitlistEntry)
        .where(
            WaitlistEntry.cause_id == cause_id,
            WaitlistEntry.status == WaitlistStatus.WAITING.value,
        )
        .order_by(WaitlistEntry.position)
    ).scalars().all()

    promoted: list[WaitlistEntry] = []
    for entry in waiting:
        try:
            reservation = inventory_service.reserve(db, cause_id, 1, holder=ReservationHolder.WAITLIST)
        except OutOfStockError:
            break
        entry.status = WaitlistStatus.NOTIFIED.value
        entry.reservation_id = reservation.id
        _send_magic_link(db, entry, cause)
        promoted.append(entry)
        logger.info(
            "Promoted waitlist entry position=%s to notified",
            entry.position,
            extra=build_log_context(cause_id=str(cause_id), entry_id=str(entry.id)),
        )
    return promoted


def resend_magic_link(db: Session, entry_id: UUID) -> WaitlistEntry:
    """Re-send the link for a notified entry with a fresh 48-hour window."""
    entry = get_entry(db, entry_id)
    if entry.status != WaitlistStatus.NOTIFIED.value:
        raise InvalidTransitionError(f"Cannot resend a magic link for an entry that is {entry.status}")
    try:
        cause = inventory_service.get_availability(db, entry.cause_id)
        _send_magic_link(db, entry, cause)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(entry)
    logger.info("Magic link resent to %s", mask_email(entry.email))
    return entry


# =============================================================================
# Magic-link tokens
# =============================================================================


def validate_token(db: Session, token: str, now: datetime | None = None) -> WaitlistEntry:
    """
    Check a magic-link token without consuming it.

    Raises InvalidTokenError, TokenExpiredError or TokenAlreadyUsedError.
    """
    if not token:
        raise InvalidTokenError("Magic link is not valid")
    entry = db.execute(
        select(WaitlistEntry)
        .where(WaitlistEntry.magic_link_token_hash == verification_service.hash_token(token))
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if not entry:
        raise InvalidTokenError("Magic link is not valid")

    if entry.status == WaitlistStatus.CLAIMED.value:
        raise TokenAlreadyUsedError("This magic link was already used")
    if entry.status == WaitlistStatus.EXPIRED.value:
        raise TokenExpiredError("This magic link has expired")
    if entry.status != WaitlistStatus.NOTIFIED.value:
        raise InvalidTokenError("Magic link is not valid")

    expires_at = ensure_utc(entry.magic_link_expires_at)
    if expires_at is None or (now or utc_now()) >= expires_at:
        raise TokenExpiredError("This magic link has expired")
    return entry


def redeem_token(
    db: Session, token: str, email: str, cause_id: UUID | None = None
) -> WaitlistEntry:
    """
    Consume a magic-link token for `email`.

    The returned entry's reservation is handed to the caller's claim.
    Flushes only.
    """
    entry = validate_token(db, token)
    if entry.email != normalize_email(email):
        raise InvalidTokenError("This magic link was issued to a different email")
    if cause_id is not None and entry.cause_id != cause_id:
        raise InvalidTokenError("This magic link is for a different cause")

    result = db.execute(
        update(WaitlistEntry)
        .where(
            WaitlistEntry.id == entry.id,
            WaitlistEntry.status == WaitlistStatus.NOTIFIED.value,
        )
        .values(status=WaitlistStatus.CLAIMED.value, claimed_at=utc_now())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise TokenAlreadyUsedError("This magic link was already used")
    db.refresh(entry)
    return entry


def sweep_expired_links(db: Session, now: datetime | None = None) -> int:
    """
    Expire notified entries whose link lapsed, free their totes and
    promote the next entries. Returns the number of entries expired.
    """
    now = now or utc_now()
    stale = db.execute(
        select(WaitlistEntry)
        .where(
            WaitlistEntry.status == WaitlistStatus.NOTIFIED.value,
            WaitlistEntry.magic_link_expires_at <= now,
        )
        .order_by(WaitlistEntry.magic_link_expires_at)
        .with_for_update(skip_locked=True)
    ).scalars().all()

    expired = 0
    causes: set[UUID] = set()
    try:
        for entry in stale:
            result = db.execute(
                update(WaitlistEntry)
                .where(
                    WaitlistEntry.id == entry.id,
                    WaitlistEntry.status == WaitlistStatus.NOTIFIED.value,
                )
                .values(status=WaitlistStatus.EXPIRED.value)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                continue
            expired += 1
            if entry.reservation_id and inventory_service.release(db, entry.reservation_id):
                causes.add(entry.cause_id)

        for cause_id in causes:
            try_promote(db, cause_id)
        db.commit()
    except Exception:
        db.rollback()
        raise

    if expired:
        logger.info("Expired %s magic link(s) across %s cause(s)", expired, len(causes))
    return expired
