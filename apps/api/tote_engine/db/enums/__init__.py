"""Enum definitions for application constants."""

from tote_engine.db.enums.claims import (
    ClaimChannel,
    ClaimStatus,
    VerificationMethod,
)
from tote_engine.db.enums.inventory import ReservationHolder, ReservationStatus
from tote_engine.db.enums.jobs import JobStatus, JobType
from tote_engine.db.enums.notifications import NotificationChannel, NotificationTemplate
from tote_engine.db.enums.sponsorships import LogoStatus, SponsorshipStatus
from tote_engine.db.enums.verification import ChallengeChannel, ChallengeStatus
from tote_engine.db.enums.waitlist import WaitlistStatus

__all__ = [
    "ChallengeChannel",
    "ChallengeStatus",
    "ClaimChannel",
    "ClaimStatus",
    "JobStatus",
    "JobType",
    "LogoStatus",
    "NotificationChannel",
    "NotificationTemplate",
    "ReservationHolder",
    "ReservationStatus",
    "SponsorshipStatus",
    "VerificationMethod",
    "WaitlistStatus",
]
