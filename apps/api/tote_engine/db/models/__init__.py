"""SQLAlchemy ORM models."""

from tote_engine.db.models.causes import Cause, InventoryReservation
from tote_engine.db.models.claims import Claim
from tote_engine.db.models.jobs import Job
from tote_engine.db.models.sponsorships import Sponsorship
from tote_engine.db.models.verification import VerificationChallenge
from tote_engine.db.models.waitlist import WaitlistEntry

__all__ = [
    "Cause",
    "Claim",
    "InventoryReservation",
    "Job",
    "Sponsorship",
    "VerificationChallenge",
    "WaitlistEntry",
]
