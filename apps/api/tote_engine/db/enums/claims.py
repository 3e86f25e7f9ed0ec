"""Claim enums."""

from enum import Enum


class ClaimChannel(str, Enum):
    """Entry point a claim request arrived through."""

    DIRECT = "direct"
    QR = "qr"
    MAGIC_LINK = "magic-link"
    SPONSOR_LINK = "sponsor-link"
    WAITLIST = "waitlist"

    @classmethod
    def auto_verified(cls) -> set["ClaimChannel"]:
        """Channels pre-validated by physical proximity (no OTP step)."""
        return {cls.QR, cls.SPONSOR_LINK}

    @classmethod
    def token_bearing(cls) -> set["ClaimChannel"]:
        """Channels that redeem a waitlist magic-link reservation."""
        return {cls.MAGIC_LINK, cls.WAITLIST}


class ClaimStatus(str, Enum):
    """
    Claim lifecycle.

    reserved → pending_verification → verified → shipped → delivered
    cancelled / expired reachable from reserved or pending_verification.
    """

    RESERVED = "reserved"
    PENDING_VERIFICATION = "pending-verification"
    VERIFIED = "verified"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    EXPIRED = "expired"

    @classmethod
    def active(cls) -> list[str]:
        """Statuses that count toward the one-claim-per-identity rule."""
        return [
            cls.RESERVED.value,
            cls.PENDING_VERIFICATION.value,
            cls.VERIFIED.value,
            cls.SHIPPED.value,
            cls.DELIVERED.value,
        ]

    @classmethod
    def unverified(cls) -> list[str]:
        """Statuses still holding (not committing) their reserved unit."""
        return [cls.RESERVED.value, cls.PENDING_VERIFICATION.value]

    @classmethod
    def cancellable(cls) -> list[str]:
        """Pre-shipped statuses an admin may cancel."""
        return [cls.RESERVED.value, cls.PENDING_VERIFICATION.value, cls.VERIFIED.value]


class VerificationMethod(str, Enum):
    """Where the OTP for a direct claim is delivered."""

    EMAIL = "email"
    PHONE = "phone"
