"""Job-related enums."""

from enum import Enum


class JobType(str, Enum):
    """Types of background jobs."""

    NOTIFICATION_SEND = "notification_send"
    VERIFICATION_SWEEP = "verification_sweep"  # Expire stalled pending-verification claims
    MAGIC_LINK_SWEEP = "magic_link_sweep"  # Expire unredeemed waitlist magic links


class JobStatus(str, Enum):
    """Status of background jobs."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
