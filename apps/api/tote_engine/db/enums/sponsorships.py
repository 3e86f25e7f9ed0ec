"""Sponsorship enums."""

from enum import Enum


class SponsorshipStatus(str, Enum):
    """
    Sponsorship lifecycle.

    pending → approved | rejected, approved → ended. All one-way.
    """

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    ENDED = "ended"


class LogoStatus(str, Enum):
    """Review state of the sponsor's logo artwork."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
