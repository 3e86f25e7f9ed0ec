"""Verification gateway - OTP and pre-satisfied challenges.

OTP channels (email, phone) get a 6-digit code with a short TTL; only its
SHA-256 hash is stored. Channels that carry their own proof (QR code,
sponsor link, waitlist magic link) produce a challenge that is already
verified at issue time.

No lock is held between issuing a code and the user typing it in: each
call is its own short transaction, and `verify` flips the challenge with a
conditional UPDATE so a code can only be consumed once.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.orm import Session

from tote_engine.core.config import settings
from tote_engine.core.exceptions import (
    ChallengeAlreadyUsedError,
    ChallengeExpiredError,
    ChallengeNotFoundError,
    CodeMismatchError,
    InvalidTokenError,
)
from tote_engine.core.structured_logging import mask_email
from tote_engine.db.enums import (
    ChallengeChannel,
    ChallengeStatus,
    NotificationChannel,
    NotificationTemplate,
)
from tote_engine.db.models import VerificationChallenge
from tote_engine.services import notification_service
from tote_engine.utils.datetime_utils import ensure_utc, utc_now

if TYPE_CHECKING:
    from tote_engine.db.models import WaitlistEntry

logger = logging.getLogger(__name__)

OTP_LENGTH = 6


@dataclass
class IssuedChallenge:
    challenge: VerificationChallenge
    # Set when a magic-link token was redeemed to satisfy the challenge
    waitlist_entry: "WaitlistEntry | None" = None

    @property
    def satisfied(self) -> bool:
        return self.challenge.status == ChallengeStatus.VERIFIED.value


# =============================================================================
# Primitives
# =============================================================================


def _sha256(value: str) -> str:
    return hashlib.sha256(value.encode()).hexdigest()


def hash_code(code: str) -> str:
    return _sha256(code.strip())


def hash_token(token: str) -> str:
    return _sha256(token)


def generate_otp() -> str:
    return f"{secrets.randbelow(10**OTP_LENGTH):0{OTP_LENGTH}d}"


def generate_magic_link_token() -> str:
    """Unguessable single-use token for waitlist magic links."""
    return secrets.token_urlsafe(32)


def get_challenge(db: Session, challenge_id: UUID) -> VerificationChallenge:
    challenge = db.get(VerificationChallenge, challenge_id, populate_existing=True)
    if not challenge:
        raise ChallengeNotFoundError(f"Challenge {challenge_id} not found")
    return challenge


def _delivery_channel(channel: ChallengeChannel) -> NotificationChannel:
    return NotificationChannel.SMS if channel == ChallengeChannel.PHONE else NotificationChannel.EMAIL


def _create_otp_challenge(
    db: Session,
    channel: ChallengeChannel,
    identity: str,
    purpose: str,
    resend_count: int = 0,
) -> VerificationChallenge:
    code = generate_otp()
    challenge = VerificationChallenge(
        channel=channel.value,
        identity=identity,
        purpose=purpose,
        code_hash=hash_code(code),
        status=ChallengeStatus.PENDING.value,
        expires_at=utc_now() + timedelta(minutes=settings.OTP_TTL_MINUTES),
        resend_count=resend_count,
    )
    db.add(challenge)
    db.flush()

    notification_service.enqueue_notification(
        db,
        identity=identity,
        channel=_delivery_channel(channel),
        template_id=NotificationTemplate.OTP_CODE,
        payload={
            "code": code,
            "purpose": purpose,
            "challenge_id": str(challenge.id),
            "expires_in_minutes": settings.OTP_TTL_MINUTES,
        },
    )
    return challenge


def _create_satisfied_challenge(
    db: Session, channel: ChallengeChannel, identity: str, purpose: str
) -> VerificationChallenge:
    now = utc_now()
    challenge = VerificationChallenge(
        channel=channel.value,
        identity=identity,
        purpose=purpose,
        status=ChallengeStatus.VERIFIED.value,
        verified_at=now,
    )
    db.add(challenge)
    db.flush()
    return challenge


# =============================================================================
# Gateway operations
# =============================================================================


def issue_challenge(
    db: Session,
    channel: ChallengeChannel,
    identity: str,
    purpose: str,
    *,
    magic_link_token: str | None = None,
    cause_id: UUID | None = None,
) -> IssuedChallenge:
    """
    Issue a verification challenge for `identity`.

    - email / phone: sends a one-time code, challenge stays pending
    - qr / sponsor-link: already satisfied
    - magic-link: redeems the waitlist token for this identity and cause;
      raises InvalidTokenError / TokenExpiredError / TokenAlreadyUsedError
    """
    if channel in ChallengeChannel.otp():
        challenge = _create_otp_challenge(db, channel, identity, purpose)
        logger.info("Issued %s challenge %s for %s", channel.value, challenge.id, mask_email(identity))
        return IssuedChallenge(challenge=challenge)

    entry = None
    if channel == ChallengeChannel.MAGIC_LINK:
        # Local import: waitlist_service depends on this module's token helpers
        from tote_engine.services import waitlist_service

        if not magic_link_token:
            raise InvalidTokenError("Magic link token is required")
        entry = waitlist_service.redeem_token(db, magic_link_token, identity, cause_id=cause_id)

    challenge = _create_satisfied_challenge(db, channel, identity, purpose)
    return IssuedChallenge(challenge=challenge, waitlist_entry=entry)


def verify(db: Session, challenge_id: UUID, code: str) -> VerificationChallenge:
    """
    Check a one-time code and consume the challenge.

    Raises:
        ChallengeNotFoundError, ChallengeAlreadyUsedError,
        ChallengeExpiredError (also for superseded challenges),
        CodeMismatchError (retriable, no attempt counter)
    """
    challenge = get_challenge(db, challenge_id)

    if challenge.status == ChallengeStatus.VERIFIED.value:
        raise ChallengeAlreadyUsedError("This code was already used")
    if challenge.status == ChallengeStatus.SUPERSEDED.value:
        raise ChallengeExpiredError("A newer code was sent; use the latest one")

    now = utc_now()
    expires_at = ensure_utc(challenge.expires_at)
    if expires_at is None or now >= expires_at:
        raise ChallengeExpiredError("Verification code has expired")

    if not challenge.code_hash or not hmac.compare_digest(challenge.code_hash, hash_code(code or "")):
        raise CodeMismatchError("Verification code does not match")

    result = db.execute(
        update(VerificationChallenge)
        .where(
            VerificationChallenge.id == challenge.id,
            VerificationChallenge.status == ChallengeStatus.PENDING.value,
        )
        .values(status=ChallengeStatus.VERIFIED.value, verified_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise ChallengeAlreadyUsedError("This code was already used")

    db.refresh(challenge)
    return challenge


def resend(db: Session, challenge_id: UUID) -> IssuedChallenge:
    """
    Issue a fresh code for a pending OTP challenge.

    The old challenge is superseded (verifying it afterwards reports
    expired) and the TTL restarts. Resend limits are enforced by callers.
    """
    old = get_challenge(db, challenge_id)
    if old.status == ChallengeStatus.VERIFIED.value:
        raise ChallengeAlreadyUsedError("This challenge is already verified")
    if old.status == ChallengeStatus.SUPERSEDED.value:
        raise ChallengeExpiredError("A newer code was already sent")

    channel = ChallengeChannel(old.channel)
    if channel not in ChallengeChannel.otp():
        raise ChallengeAlreadyUsedError(f"{channel.value} challenges cannot be resent")

    new = _create_otp_challenge(db, channel, old.identity, old.purpose, resend_count=old.resend_count + 1)
    old.status = ChallengeStatus.SUPERSEDED.value
    old.superseded_by_id = new.id
    db.flush()
    logger.info("Resent %s challenge %s -> %s (resend %s)", channel.value, old.id, new.id, new.resend_count)
    return IssuedChallenge(challenge=new)
