"""
Background worker for notifications and expiry sweeps.

Usage:
    python -m tote_engine.worker

The worker polls the jobs table and runs each job through the handler
registry. Every SWEEP_INTERVAL_SECONDS it also queues the verification and
magic-link sweeps; the idempotency key is the interval bucket so several
workers schedule each sweep only once.
For production, run this as a separate process next to the API.
"""

import asyncio
import logging
from datetime import datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tote_engine.core.config import settings
from tote_engine.db.enums import JobType
from tote_engine.db.session import SessionLocal
from tote_engine.jobs.registry import get_handler
from tote_engine.services import job_service
from tote_engine.services.notification_service import NotificationError, TransientNotificationError
from tote_engine.utils.datetime_utils import utc_now

logger = logging.getLogger(__name__)

SWEEP_JOB_TYPES = (JobType.VERIFICATION_SWEEP, JobType.MAGIC_LINK_SWEEP)


async def process_job(db: Session, job) -> None:
    """Process a single job based on its type."""
    logger.info("Processing job %s (type=%s, attempt=%s)", job.id, job.job_type, job.attempts)
    handler = get_handler(job.job_type)
    await handler(db, job)


def schedule_periodic_sweeps(db: Session, now: datetime | None = None) -> int:
    """Queue this interval's sweep jobs. Returns how many were newly queued."""
    now = now or utc_now()
    interval = max(settings.SWEEP_INTERVAL_SECONDS, 1)
    bucket = int(now.timestamp()) // interval
    scheduled = 0
    for job_type in SWEEP_JOB_TYPES:
        try:
            job_service.schedule_job(
                db,
                job_type,
                {"bucket": bucket},
                run_at=now,
                idempotency_key=f"{job_type.value}:{bucket}",
                max_attempts=1,
            )
            db.commit()
            scheduled += 1
        except IntegrityError:
            db.rollback()
    return scheduled


async def run_batch(db: Session, limit: int | None = None) -> int:
    """Run due jobs once. Returns the number of jobs attempted."""
    jobs = job_service.get_pending_jobs(db, limit=limit or settings.WORKER_BATCH_SIZE)
    if jobs:
        logger.info("Found %s pending jobs", len(jobs))

    for job in jobs:
        try:
            job_service.mark_job_running(db, job)
            await process_job(db, job)
            job_service.mark_job_completed(db, job)
            logger.info("Job %s completed successfully", job.id)
        except TransientNotificationError as e:
            db.rollback()
            job_service.mark_job_failed(db, job, str(e))
            logger.warning("Job %s hit a transient delivery failure; will retry", job.id)
        except NotificationError as e:
            db.rollback()
            job_service.mark_job_failed(db, job, str(e), retryable=False)
            logger.error("Job %s failed permanently: %s", job.id, e)
        except Exception as e:
            db.rollback()
            job_service.mark_job_failed(db, job, str(e))
            logger.error("Job %s failed: %s", job.id, type(e).__name__)
    return len(jobs)


async def worker_loop() -> None:
    """Main worker loop - polls for and processes pending jobs."""
    logger.info(
        "Worker starting (poll interval: %ss, batch size: %s, sweep interval: %ss)",
        settings.WORKER_POLL_INTERVAL,
        settings.WORKER_BATCH_SIZE,
        settings.SWEEP_INTERVAL_SECONDS,
    )
    if settings.NOTIFICATION_BACKEND == "log":
        logger.warning("NOTIFICATION_BACKEND=log - notifications will be logged but not sent")

    while True:
        with SessionLocal() as db:
            try:
                schedule_periodic_sweeps(db)
                await run_batch(db)
            except Exception as e:
                logger.error("Error in worker loop: %s", e)

        await asyncio.sleep(settings.WORKER_POLL_INTERVAL)


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    try:
        asyncio.run(worker_loop())
    except KeyboardInterrupt:
        logger.info("Worker stopped")


if __name__ == "__main__":
    main()
