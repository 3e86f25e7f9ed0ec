"""Inventory ledger enums."""

from enum import Enum


class ReservationStatus(str, Enum):
    """Lifecycle of a single inventory reservation (the reservation token)."""

    HELD = "held"
    COMMITTED = "committed"
    RELEASED = "released"


class ReservationHolder(str, Enum):
    """Who owns the reserved unit while it is held."""

    CLAIM = "claim"
    WAITLIST = "waitlist"
