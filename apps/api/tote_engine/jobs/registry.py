"""Job handler registry."""

from __future__ import annotations

from typing import Awaitable, Callable, Mapping

from tote_engine.db.enums import JobType
from tote_engine.jobs.handlers import notifications, sweeps

JobHandler = Callable[[object, object], Awaitable[None]]

JOB_HANDLERS: Mapping[str, JobHandler] = {
    JobType.NOTIFICATION_SEND.value: notifications.process_notification_send,
    JobType.VERIFICATION_SWEEP.value: sweeps.process_verification_sweep,
    JobType.MAGIC_LINK_SWEEP.value: sweeps.process_magic_link_sweep,
}


def get_handler(job_type: str) -> JobHandler:
    try:
        return JOB_HANDLERS[job_type]
    except KeyError:
        raise ValueError(f"Unknown job type: {job_type}") from None
