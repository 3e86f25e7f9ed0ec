"""Job service - background job scheduling and processing state."""

from datetime import datetime
from uuid import UUID

from sqlalchemy.orm import Session

from tote_engine.db.enums import JobStatus, JobType
from tote_engine.db.models import Job
from tote_engine.utils.datetime_utils import utc_now

# Delivery secrets (OTP codes, magic-link tokens) are only kept while a job can still run
SECRET_PAYLOAD_KEYS = frozenset({"code", "token", "magic_link_url"})


def schedule_job(
    db: Session,
    job_type: JobType,
    payload: dict,
    run_at: datetime | None = None,
    idempotency_key: str | None = None,
    max_attempts: int = 3,
) -> Job:
    """
    Schedule a new background job in the caller's transaction.

    If run_at is None, the job runs immediately. The job only becomes
    visible to the worker once the caller commits, so a rolled-back
    operation never leaves a job behind.
    If idempotency_key is provided, duplicate jobs with same key will fail
    with IntegrityError (caller should catch and handle).
    """
    job = Job(
        job_type=job_type.value,
        payload=payload,
        run_at=run_at or utc_now(),
        status=JobStatus.PENDING.value,
        idempotency_key=idempotency_key,
        max_attempts=max_attempts,
    )
    db.add(job)
    db.flush()
    return job


def get_pending_jobs(db: Session, limit: int = 10) -> list[Job]:
    """
    Get pending jobs that are due to run.

    Returns jobs where status='pending' and run_at <= now, ordered by run_at.
    """
    now = utc_now()
    return (
        db.query(Job)
        .filter(
            Job.status == JobStatus.PENDING.value,
            Job.run_at <= now,
        )
        .order_by(Job.run_at)
        .limit(limit)
        .all()
    )


def get_job(db: Session, job_id: UUID) -> Job | None:
    return db.get(Job, job_id)


def list_jobs(
    db: Session,
    status: JobStatus | None = None,
    job_type: JobType | None = None,
    limit: int = 50,
) -> list[Job]:
    """List jobs with optional filters, newest first."""
    query = db.query(Job)
    if status:
        query = query.filter(Job.status == status.value)
    if job_type:
        query = query.filter(Job.job_type == job_type.value)
    return query.order_by(Job.created_at.desc()).limit(limit).all()


def redact_payload(payload: dict) -> dict:
    """Copy of a job payload with delivery secrets removed at any depth."""
    redacted = {}
    for key, value in payload.items():
        if key in SECRET_PAYLOAD_KEYS:
            continue
        redacted[key] = redact_payload(value) if isinstance(value, dict) else value
    return redacted


def mark_job_running(db: Session, job: Job) -> Job:
    """Mark a job as running (increment attempts)."""
    job.status = JobStatus.RUNNING.value
    job.attempts += 1
    db.commit()
    db.refresh(job)
    return job


def mark_job_completed(db: Session, job: Job) -> Job:
    """Mark a job as completed."""
    job.status = JobStatus.COMPLETED.value
    job.completed_at = utc_now()
    job.last_error = None
    job.payload = redact_payload(job.payload or {})
    db.commit()
    db.refresh(job)
    return job


def mark_job_failed(db: Session, job: Job, error: str, retryable: bool = True) -> Job:
    """
    Mark a job as failed.

    If retryable and attempts < max_attempts, reset to pending for retry.
    A terminal failure drops delivery secrets from the payload.
    """
    job.last_error = error
    if retryable and job.attempts < job.max_attempts:
        job.status = JobStatus.PENDING.value
    else:
        job.status = JobStatus.FAILED.value
        job.payload = redact_payload(job.payload or {})
    db.commit()
    db.refresh(job)
    return job
