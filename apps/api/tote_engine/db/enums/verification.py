"""Verification challenge enums."""

from enum import Enum


class ChallengeChannel(str, Enum):
    """How a verification challenge is satisfied."""

    EMAIL = "email"
    PHONE = "phone"
    QR = "qr"
    SPONSOR_LINK = "sponsor-link"
    MAGIC_LINK = "magic-link"

    @classmethod
    def otp(cls) -> set["ChallengeChannel"]:
        return {cls.EMAIL, cls.PHONE}


class ChallengeStatus(str, Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    SUPERSEDED = "superseded"
