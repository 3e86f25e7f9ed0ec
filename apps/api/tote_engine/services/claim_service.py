"""Claim admission - one state machine for every entry channel.

reserved → pending-verification → verified → shipped → delivered, with
cancelled / expired reachable before shipping. Submission reserves (or, for
magic links, inherits) exactly one tote; the unit is committed only once the
claim is verified and is released again if the claim expires or is cancelled.

Each public operation here is one transaction: it commits on success and
rolls back everything, ledger included, on any error.
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
    ChallengeAlreadyUsedError,
    ChallengeExpiredError,
    ClaimNotFoundError,
    DuplicateClaimError,
    InvalidTransitionError,
    InvariantViolationError,
    ResendLimitError,
)
from tote_engine.core.structured_logging import build_log_context
from tote_engine.db.enums import (
    ChallengeChannel,
    ClaimChannel,
    ClaimStatus,
    NotificationChannel,
    NotificationTemplate,
    ReservationHolder,
    VerificationMethod,
)
from tote_engine.db.models import Claim, VerificationChallenge
from tote_engine.services import (
    inventory_service,
    notification_service,
    verification_service,
    waitlist_service,
)
from tote_engine.utils.datetime_utils import start_of_day, utc_now
from tote_engine.utils.normalization import normalize_email, normalize_name, normalize_phone

logger = logging.getLogger(__name__)

FULFILMENT_TRANSITIONS = {
    ClaimStatus.SHIPPED: ClaimStatus.VERIFIED,
    ClaimStatus.DELIVERED: ClaimStatus.SHIPPED,
}


@dataclass
class SubmitResult:
    claim: Claim
    challenge: VerificationChallenge

    @property
    def requires_verification(self) -> bool:
        return self.claim.status == ClaimStatus.PENDING_VERIFICATION.value


# =============================================================================
# Lookups
# =============================================================================


def get_claim(db: Session, claim_id: UUID) -> Claim:
    claim = db.get(Claim, claim_id, populate_existing=True)
    if not claim:
        raise ClaimNotFoundError(f"Claim {claim_id} not found")
    return claim


def find_active_claim(db: Session, cause_id: UUID, email: str) -> Claim | None:
    """The claim currently counting against (cause, email), if any."""
    return db.execute(
        select(Claim).where(
            Claim.cause_id == cause_id,
            Claim.email == normalize_email(email),
            Claim.status.in_(ClaimStatus.active()),
        )
    ).scalar_one_or_none()


def list_claims(
    db: Session,
    cause_id: UUID | None = None,
    status: ClaimStatus | None = None,
    email: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Claim], int]:
    """Newest claims first. Returns (items, total)."""
    filters = []
    if cause_id:
        filters.append(Claim.cause_id == cause_id)
    if status:
        filters.append(Claim.status == status.value)
    if email:
        filters.append(Claim.email == normalize_email(email))

    total = db.execute(select(func.count(Claim.id)).where(*filters)).scalar_one()
    items = db.execute(
        select(Claim).where(*filters).order_by(Claim.created_at.desc()).limit(limit).offset(offset)
    ).scalars().all()
    return list(items), total


def claim_stats(db: Session, cause_id: UUID | None = None, now: datetime | None = None) -> dict:
    """Counts by status plus claims created since midnight UTC."""
    filters = [Claim.cause_id == cause_id] if cause_id else []
    rows = db.execute(
        select(Claim.status, func.count(Claim.id)).where(*filters).group_by(Claim.status)
    ).all()
    by_status = {status.value: 0 for status in ClaimStatus}
    for status, count in rows:
        by_status[status] = count

    today = db.execute(
        select(func.count(Claim.id)).where(
            *filters, Claim.created_at >= start_of_day(now or utc_now())
        )
    ).scalar_one()
    return {"total": sum(by_status.values()), "today": today, "by_status": by_status}


# =============================================================================
# Internal helpers (flush only)
# =============================================================================


def _purpose(cause_id: UUID) -> str:
    return f"claim:{cause_id}"


def _set_status(
    db: Session, claim: Claim, from_statuses: list[str], to_status: ClaimStatus, **values
) -> bool:
    result = db.execute(
        update(Claim)
        .where(Claim.id == claim.id, Claim.status.in_(from_statuses))
        .values(status=to_status.value, **values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def _mark_verified(db: Session, claim: Claim) -> None:
    if not _set_status(
        db, claim, [ClaimStatus.RESERVED.value, ClaimStatus.PENDING_VERIFICATION.value],
        ClaimStatus.VERIFIED, verified_at=utc_now(),
    ):
        db.refresh(claim)
        raise InvalidTransitionError(f"Claim is {claim.status} and can no longer be verified")
    inventory_service.commit(db, claim.reservation_id)
    notification_service.enqueue_notification(
        db,
        claim.email,
        NotificationChannel.EMAIL,
        NotificationTemplate.CLAIM_VERIFIED,
        {"claim_id": str(claim.id), "cause_id": str(claim.cause_id)},
    )


def _expire(db: Session, claim: Claim, promote: bool = True) -> bool:
    """
    Expire an unverified claim and free its tote.

    Returns False if the claim already left the unverified states, in which
    case nothing is released.
    """
    if not _set_status(db, claim, ClaimStatus.unverified(), ClaimStatus.EXPIRED, expired_at=utc_now()):
        return False
    freed = inventory_service.release(db, claim.reservation_id)
    if freed and promote:
        waitlist_service.try_promote(db, claim.cause_id)
    return freed


# =============================================================================
# Admission
# =============================================================================


def submit(
    db: Session,
    cause_id: UUID,
    email: str,
    channel: ClaimChannel,
    *,
    full_name: str | None = None,
    phone: str | None = None,
    address: str | None = None,
    city: str | None = None,
    state: str | None = None,
    zip_code: str | None = None,
    verification_method: VerificationMethod = VerificationMethod.EMAIL,
    magic_link_token: str | None = None,
) -> SubmitResult:
    """
    Admit a claim request.

    1. Reject a second active claim for the same (cause, email)
    2. Reserve one tote, or inherit the one the waitlist already holds for
       this email (magic links, or a notified entry claiming directly)
    3. Create the claim in `reserved`
    4. Pre-satisfied channels commit the tote and land in `verified`;
       otherwise an OTP is sent and the claim waits in `pending-verification`

    Raises OutOfStockError when nothing is available (callers offer the
    waitlist), DuplicateClaimError, CauseUnavailableError and the token
    errors for magic links.
    """
    channel = ClaimChannel(channel)
    verification_method = VerificationMethod(verification_method)
    email = normalize_email(email)
    phone = normalize_phone(phone)
    if verification_method == VerificationMethod.PHONE and not phone:
        raise ValueError("A phone number is required for phone verification")

    cause = inventory_service.get_availability(db, cause_id)
    if not cause.is_online:
        raise CauseUnavailableError("This cause is not accepting claims")
    if find_active_claim(db, cause_id, email):
        raise DuplicateClaimError("You already have an active claim for this cause")

    purpose = _purpose(cause_id)
    issued = None
    waitlist_entry_id = None
    try:
        if channel in ClaimChannel.token_bearing():
            issued = verification_service.issue_challenge(
                db,
                ChallengeChannel.MAGIC_LINK,
                email,
                purpose,
                magic_link_token=magic_link_token,
                cause_id=cause_id,
            )
            entry = issued.waitlist_entry
            if entry is None or entry.reservation_id is None:
                raise InvariantViolationError("Redeemed waitlist entry holds no reservation")
            reservation_id = entry.reservation_id
            waitlist_entry_id = entry.id
        else:
            # A tote already held for this email on the waitlist goes to the claim
            entry = waitlist_service.settle_for_claim(db, cause_id, email)
            if entry is not None:
                reservation_id = entry.reservation_id
                waitlist_entry_id = entry.id
            else:
                reservation_id = inventory_service.reserve(db, cause_id, 1, holder=ReservationHolder.CLAIM).id

        claim = Claim(
            cause_id=cause_id,
            email=email,
            full_name=normalize_name(full_name),
            phone=phone,
            address=address,
            city=city,
            state=state,
            zip_code=zip_code,
            channel=channel.value,
            status=ClaimStatus.RESERVED.value,
            reservation_id=reservation_id,
            waitlist_entry_id=waitlist_entry_id,
        )
        db.add(claim)
        db.flush()

        if issued is None:
            if channel in ClaimChannel.auto_verified():
                issued = verification_service.issue_challenge(
                    db, ChallengeChannel(channel.value), email, purpose
                )
            else:
                claim.verification_method = verification_method.value
                if verification_method == VerificationMethod.PHONE:
                    issued = verification_service.issue_challenge(db, ChallengeChannel.PHONE, phone, purpose)
                else:
                    issued = verification_service.issue_challenge(db, ChallengeChannel.EMAIL, email, purpose)

        claim.challenge_id = issued.challenge.id
        db.flush()

        if issued.satisfied:
            _mark_verified(db, claim)
        else:
            _set_status(db, claim, [ClaimStatus.RESERVED.value], ClaimStatus.PENDING_VERIFICATION)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise DuplicateClaimError("You already have an active claim for this cause")
    except Exception:
        db.rollback()
        raise

    db.refresh(claim)
    logger.info(
        "Claim submitted via %s -> %s",
        channel.value,
        claim.status,
        extra=build_log_context(cause_id=str(cause_id), claim_id=str(claim.id), email=email),
    )
    return SubmitResult(claim=claim, challenge=issued.challenge)


def confirm_verification(db: Session, claim_id: UUID, code: str) -> Claim:
    """
    Verify the OTP for a pending claim and commit its tote.

    A wrong code leaves the claim untouched. An expired code may be resent
    until MAX_VERIFICATION_RESENDS; after that the claim expires and the
    tote goes back to the pool.
    """
    claim = get_claim(db, claim_id)
    if claim.status in (ClaimStatus.VERIFIED.value, ClaimStatus.SHIPPED.value, ClaimStatus.DELIVERED.value):
        raise ChallengeAlreadyUsedError("This claim is already verified")
    if claim.status != ClaimStatus.PENDING_VERIFICATION.value:
        raise InvalidTransitionError(f"Claim is {claim.status} and can no longer be verified")

    try:
        verification_service.verify(db, claim.challenge_id, code)
        _mark_verified(db, claim)
        db.commit()
    except ChallengeExpiredError:
        db.rollback()
        if claim.resend_count < settings.MAX_VERIFICATION_RESENDS:
            raise
        _expire_and_commit(db, claim)
        raise ChallengeExpiredError(
            "Verification code expired and no resends remain; please submit a new claim",
            next_step="resubmit",
        )
    except Exception:
        db.rollback()
        raise

    db.refresh(claim)
    logger.info("Claim verified", extra=build_log_context(claim_id=str(claim.id), cause_id=str(claim.cause_id)))
    return claim


def resend_verification(db: Session, claim_id: UUID) -> VerificationChallenge:
    """Send a fresh OTP for a pending claim, up to MAX_VERIFICATION_RESENDS."""
    claim = get_claim(db, claim_id)
    if claim.status != ClaimStatus.PENDING_VERIFICATION.value:
        raise InvalidTransitionError(f"Claim is {claim.status}; nothing to resend")

    if claim.resend_count >= settings.MAX_VERIFICATION_RESENDS:
        _expire_and_commit(db, claim)
        raise ResendLimitError("Too many verification codes requested; please submit a new claim")

    try:
        issued = verification_service.resend(db, claim.challenge_id)
        result = db.execute(
            update(Claim)
            .where(
                Claim.id == claim.id,
                Claim.status == ClaimStatus.PENDING_VERIFICATION.value,
                Claim.challenge_id == claim.challenge_id,
            )
            .values(challenge_id=issued.challenge.id, resend_count=Claim.resend_count + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise InvalidTransitionError("Claim changed while resending; please retry")
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(issued.challenge)
    return issued.challenge


def _expire_and_commit(db: Session, claim: Claim) -> None:
    try:
        if _expire(db, claim):
            logger.info("Claim expired after exhausting resends", extra=build_log_context(claim_id=str(claim.id)))
        db.commit()
    except Exception:
        db.rollback()
        raise


# =============================================================================
# Admin operations
# =============================================================================


def cancel(db: Session, claim_id: UUID, reason: str | None = None) -> Claim:
    """
    Cancel a claim that has not shipped.

    Held totes are released; a verified claim's committed tote is refunded.
    Either way the waitlist gets a chance at the freed unit.
    """
    claim = get_claim(db, claim_id)
    observed = claim.status
    if observed not in ClaimStatus.cancellable():
        raise InvalidTransitionError(f"Cannot cancel a claim that is {observed}")

    try:
        if not _set_status(
            db, claim, [observed], ClaimStatus.CANCELLED, cancelled_at=utc_now(), cancel_reason=reason
        ):
            raise InvalidTransitionError("Claim changed while cancelling; please retry")
        if observed in ClaimStatus.unverified():
            freed = inventory_service.release(db, claim.reservation_id)
        else:
            freed = inventory_service.refund(db, claim.reservation_id)
        if freed:
            waitlist_service.try_promote(db, claim.cause_id)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(claim)
    logger.info("Claim cancelled from %s", observed, extra=build_log_context(claim_id=str(claim.id)))
    return claim


def advance_fulfilment(
    db: Session,
    claim_id: UUID,
    to: ClaimStatus,
    tracking_number: str | None = None,
    carrier: str | None = None,
) -> Claim:
    """verified → shipped → delivered bookkeeping."""
    to = ClaimStatus(to)
    claim = get_claim(db, claim_id)
    required = FULFILMENT_TRANSITIONS.get(to)
    if required is None or claim.status != required.value:
        raise InvalidTransitionError(f"Cannot move a {claim.status} claim to {to.value}")

    values: dict = {}
    now = utc_now()
    if to == ClaimStatus.SHIPPED:
        values.update(shipped_at=now, tracking_number=tracking_number, carrier=carrier)
    else:
        values["delivered_at"] = now

    try:
        if not _set_status(db, claim, [required.value], to, **values):
            raise InvalidTransitionError("Claim changed concurrently; please retry")
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(claim)
    return claim


# =============================================================================
# Sweeps
# =============================================================================


def sweep_stale_verifications(db: Session, now: datetime | None = None) -> int:
    """
    Expire claims stuck before verification for longer than
    VERIFICATION_TIMEOUT_MINUTES and hand their totes to the waitlist.

    Each freed unit is released once (the status guard makes racing sweeps
    and cancels harmless) and promotes at most one waiting entry.
    """
    now = now or utc_now()
    cutoff = now - timedelta(minutes=settings.VERIFICATION_TIMEOUT_MINUTES)
    stale = db.execute(
        select(Claim)
        .where(Claim.status.in_(ClaimStatus.unverified()), Claim.created_at <= cutoff)
        .order_by(Claim.created_at)
        .with_for_update(skip_locked=True)
    ).scalars().all()

    expired = 0
    causes: set[UUID] = set()
    try:
        for claim in stale:
            if _set_status(db, claim, ClaimStatus.unverified(), ClaimStatus.EXPIRED, expired_at=now):
                expired += 1
                if inventory_service.release(db, claim.reservation_id):
                    causes.add(claim.cause_id)
        for cause_id in causes:
            waitlist_service.try_promote(db, cause_id)
        db.commit()
    except Exception:
        db.rollback()
        raise

    if expired:
        logger.info("Expired %s stale claim(s) across %s cause(s)", expired, len(causes))
    return expired
