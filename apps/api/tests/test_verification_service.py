"""Tests for the verification gateway."""

from datetime import timedelta

import pytest

from support import notifications_sent, otp_for
from tote_engine.core.exceptions import (
    ChallengeAlreadyUsedError,
    ChallengeExpiredError,
    CodeMismatchError,
    InvalidTokenError,
)
from tote_engine.db.enums import ChallengeChannel, ChallengeStatus, NotificationTemplate
from tote_engine.services import verification_service
from tote_engine.utils.datetime_utils import ensure_utc, utc_now

PURPOSE = "claim:test"


def _issue(db, channel=ChallengeChannel.EMAIL, identity="ana@gmail.com"):
    issued = verification_service.issue_challenge(db, channel, identity, PURPOSE)
    db.commit()
    return issued.challenge


def test_otp_challenge_is_pending_and_hashed(db):
    challenge = _issue(db)

    code = otp_for(db, challenge.id)
    assert challenge.status == ChallengeStatus.PENDING.value
    assert len(code) == 6 and code.isdigit()
    assert challenge.code_hash == verification_service.hash_code(code)
    assert code not in challenge.code_hash
    ttl = ensure_utc(challenge.expires_at) - utc_now()
    assert timedelta(minutes=9) < ttl <= timedelta(minutes=10)


def test_phone_challenge_is_sent_by_sms(db):
    challenge = _issue(db, ChallengeChannel.PHONE, "+919876543210")

    job = notifications_sent(db, NotificationTemplate.OTP_CODE)[0]
    assert job.payload["channel"] == "sms"
    assert job.payload["identity"] == "+919876543210"
    assert job.payload["payload"]["challenge_id"] == str(challenge.id)


def test_verify_consumes_challenge(db):
    challenge = _issue(db)
    code = otp_for(db, challenge.id)

    verified = verification_service.verify(db, challenge.id, code)
    db.commit()

    assert verified.status == ChallengeStatus.VERIFIED.value
    assert verified.verified_at is not None
    with pytest.raises(ChallengeAlreadyUsedError):
        verification_service.verify(db, challenge.id, code)


def test_wrong_code_is_retriable(db):
    challenge = _issue(db)
    code = otp_for(db, challenge.id)
    wrong = "000000" if code != "000000" else "111111"

    for _ in range(5):
        with pytest.raises(CodeMismatchError):
            verification_service.verify(db, challenge.id, wrong)

    assert verification_service.verify(db, challenge.id, code).status == ChallengeStatus.VERIFIED.value


def test_expired_code_is_rejected(db):
    challenge = _issue(db)
    code = otp_for(db, challenge.id)
    challenge.expires_at = utc_now() - timedelta(seconds=1)
    db.commit()

    with pytest.raises(ChallengeExpiredError) as exc_info:
        verification_service.verify(db, challenge.id, code)
    assert exc_info.value.next_step == "resend"


def test_resend_supersedes_previous_code(db):
    challenge = _issue(db)
    old_code = otp_for(db, challenge.id)

    issued = verification_service.resend(db, challenge.id)
    db.commit()
    new = issued.challenge

    assert new.id != challenge.id
    assert new.resend_count == 1
    db.refresh(challenge)
    assert challenge.status == ChallengeStatus.SUPERSEDED.value
    assert challenge.superseded_by_id == new.id

    with pytest.raises(ChallengeExpiredError):
        verification_service.verify(db, challenge.id, old_code)
    new_code = otp_for(db, new.id)
    assert verification_service.verify(db, new.id, new_code).status == ChallengeStatus.VERIFIED.value


def test_resend_of_verified_challenge_fails(db):
    challenge = _issue(db)
    verification_service.verify(db, challenge.id, otp_for(db, challenge.id))
    db.commit()

    with pytest.raises(ChallengeAlreadyUsedError):
        verification_service.resend(db, challenge.id)


def test_qr_and_sponsor_link_are_satisfied_on_issue(db):
    for channel in (ChallengeChannel.QR, ChallengeChannel.SPONSOR_LINK):
        issued = verification_service.issue_challenge(db, channel, "ana@gmail.com", PURPOSE)
        assert issued.satisfied
        assert issued.challenge.code_hash is None
    db.commit()
    assert notifications_sent(db, NotificationTemplate.OTP_CODE) == []


def test_magic_link_requires_token(db):
    with pytest.raises(InvalidTokenError):
        verification_service.issue_challenge(db, ChallengeChannel.MAGIC_LINK, "ana@gmail.com", PURPOSE)


def test_magic_link_tokens_are_unique_and_hashed():
    first = verification_service.generate_magic_link_token()
    second = verification_service.generate_magic_link_token()

    assert first != second
    assert len(verification_service.hash_token(first)) == 64
    assert verification_service.hash_token(first) != first
