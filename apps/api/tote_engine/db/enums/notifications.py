"""Notification enums."""

from enum import Enum


class NotificationChannel(str, Enum):
    """Transport the dispatcher should use."""

    EMAIL = "email"
    SMS = "sms"


class NotificationTemplate(str, Enum):
    """Template identifiers understood by the notification provider."""

    OTP_CODE = "otp_code"
    WAITLIST_MAGIC_LINK = "waitlist_magic_link"
    CLAIM_VERIFIED = "claim_verified"
    SPONSORSHIP_APPROVED = "sponsorship_approved"
    SPONSORSHIP_REJECTED = "sponsorship_rejected"
    LOGO_REJECTED = "logo_rejected"
