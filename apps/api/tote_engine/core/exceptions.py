"""Domain errors for tote allocation.

Every error carries a machine-readable ``kind``, the HTTP status the API
answers with, and an optional ``next_step`` hint for the client. The
FastAPI handler in ``tote_engine.main`` renders them uniformly.
"""

from __future__ import annotations


class AllocationError(Exception):
    """Base class for all allocation/claim errors."""

    kind = "allocation_error"
    status_code = 400
    next_step: str | None = None

    def __init__(self, message: str | None = None, *, next_step: str | None = None):
        super().__init__(message or self.__class__.__doc__ or self.kind)
        if next_step is not None:
            self.next_step = next_step

    @property
    def detail(self) -> str:
        return str(self)


# =============================================================================
# Inventory
# =============================================================================


class OutOfStockError(AllocationError):
    """No totes are available for this cause."""

    kind = "out_of_stock"
    status_code = 409
    next_step = "join_waitlist"


class InvariantViolationError(AllocationError):
    """Inventory counters would become inconsistent."""

    kind = "invariant_violation"
    status_code = 500


class ReservationStateError(AllocationError):
    """Reservation cannot move to the requested state."""

    kind = "invalid_transition"
    status_code = 409


# =============================================================================
# Claims / waitlist admission
# =============================================================================


class DuplicateClaimError(AllocationError):
    """An active claim already exists for this email and cause."""

    kind = "duplicate_claim"
    status_code = 409
    next_step = "view_claim"


class DuplicateEntryError(AllocationError):
    """This email is already on the waitlist for the cause."""

    kind = "duplicate_entry"
    status_code = 409
    next_step = "view_waitlist"


class CauseUnavailableError(AllocationError):
    """Cause is not accepting claims."""

    kind = "cause_unavailable"
    status_code = 409


class InvalidTransitionError(AllocationError):
    """Requested status transition is not allowed."""

    kind = "invalid_transition"
    status_code = 409


class ResendLimitError(AllocationError):
    """Verification code was resent too many times."""

    kind = "resend_limit"
    status_code = 429
    next_step = "resubmit"


# =============================================================================
# Verification challenges and magic-link tokens
# =============================================================================


class ChallengeExpiredError(AllocationError):
    """Verification code has expired."""

    kind = "expired"
    status_code = 410
    next_step = "resend"


class CodeMismatchError(AllocationError):
    """Verification code does not match."""

    kind = "mismatch"
    status_code = 400
    next_step = "retry"


class ChallengeAlreadyUsedError(AllocationError):
    """Verification code was already used."""

    kind = "already_used"
    status_code = 409
    next_step = "view_claim"


class InvalidTokenError(AllocationError):
    """Magic link is not valid."""

    kind = "invalid_token"
    status_code = 404
    next_step = "join_waitlist"


class TokenExpiredError(AllocationError):
    """Magic link has expired."""

    kind = "expired"
    status_code = 410
    next_step = "resend"


class TokenAlreadyUsedError(AllocationError):
    """Magic link was already used."""

    kind = "already_used"
    status_code = 409
    next_step = "view_claim"


# =============================================================================
# Lookups
# =============================================================================


class NotFoundError(AllocationError):
    """Resource not found."""

    kind = "not_found"
    status_code = 404


class CauseNotFoundError(NotFoundError):
    """Cause not found."""


class ClaimNotFoundError(NotFoundError):
    """Claim not found."""


class ChallengeNotFoundError(NotFoundError):
    """Verification challenge not found."""


class SponsorshipNotFoundError(NotFoundError):
    """Sponsorship not found."""


class WaitlistEntryNotFoundError(NotFoundError):
    """Waitlist entry not found."""


class ReservationNotFoundError(NotFoundError):
    """Reservation not found."""
