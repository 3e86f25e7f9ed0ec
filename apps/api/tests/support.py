"""Helpers for reading what the services queued for delivery."""

from uuid import UUID

from sqlalchemy.orm import Session

from tote_engine.db.enums import JobType, NotificationTemplate
from tote_engine.db.models import Job

ADMIN_HEADERS = {"X-Admin-Key": "test-admin-key"}
INTERNAL_HEADERS = {"X-Internal-Secret": "test-internal-secret"}


def notifications_sent(db: Session, template: NotificationTemplate) -> list[Job]:
    """Queued notification jobs for a template, newest first."""
    jobs = (
        db.query(Job)
        .filter(Job.job_type == JobType.NOTIFICATION_SEND.value)
        .order_by(Job.run_at.desc())
        .all()
    )
    return [job for job in jobs if job.payload["template_id"] == template.value]


def otp_for(db: Session, challenge_id: UUID) -> str:
    """The OTP that was queued for a challenge."""
    for job in notifications_sent(db, NotificationTemplate.OTP_CODE):
        if job.payload["payload"]["challenge_id"] == str(challenge_id):
            return job.payload["payload"]["code"]
    raise AssertionError(f"No OTP queued for challenge {challenge_id}")


def magic_token_for(db: Session, entry_id: UUID) -> str:
    """The most recent magic-link token queued for a waitlist entry."""
    for job in notifications_sent(db, NotificationTemplate.WAITLIST_MAGIC_LINK):
        if job.payload["payload"]["entry_id"] == str(entry_id):
            return job.payload["payload"]["token"]
    raise AssertionError(f"No magic link queued for entry {entry_id}")
