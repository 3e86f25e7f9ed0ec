"""Waitlist enums."""

from enum import Enum


class WaitlistStatus(str, Enum):
    """Waitlist entry lifecycle."""

    WAITING = "waiting"
    NOTIFIED = "notified"
    CLAIMED = "claimed"
    EXPIRED = "expired"
    LEFT = "left"

    @classmethod
    def active(cls) -> list[str]:
        return [cls.WAITING.value, cls.NOTIFIED.value]
