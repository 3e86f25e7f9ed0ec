"""Notification dispatch boundary.

Domain services never talk to a transport directly. They call
`enqueue_notification`, which writes a NOTIFICATION_SEND job in the same
transaction as the state change; the worker later hands the payload to the
configured dispatcher.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Protocol

import httpx
from sqlalchemy.orm import Session

from tote_engine.core.config import settings
from tote_engine.core.structured_logging import mask_email
from tote_engine.db.enums import JobType, NotificationChannel, NotificationTemplate
from tote_engine.db.models import Job
from tote_engine.services import job_service
from tote_engine.utils.normalization import mask_phone

logger = logging.getLogger(__name__)

RETRY_STATUSES = {429, 500, 502, 503, 504}


class NotificationError(Exception):
    """Notification could not be delivered and should not be retried."""


class TransientNotificationError(NotificationError):
    """Delivery failed in a way that may succeed on retry."""


class NotificationDispatcher(Protocol):
    async def send(
        self,
        identity: str,
        channel: NotificationChannel,
        template_id: NotificationTemplate,
        payload: dict[str, Any],
    ) -> None: ...


def _mask_identity(identity: str, channel: NotificationChannel) -> str:
    if channel == NotificationChannel.SMS:
        return mask_phone(identity)
    return mask_email(identity)


class LogDispatcher:
    """Dry-run dispatcher: records what would have been sent."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str, str, dict[str, Any]]] = []

    async def send(self, identity, channel, template_id, payload) -> None:
        self.sent.append((identity, channel.value, template_id.value, payload))
        logger.info(
            "[DRY RUN] Notification %s via %s to %s",
            template_id.value,
            channel.value,
            _mask_identity(identity, channel),
        )


class WebhookDispatcher:
    """POSTs notifications to a delivery provider webhook."""

    def __init__(
        self,
        url: str,
        token: str = "",
        *,
        max_attempts: int = 3,
        base_delay: float = 0.5,
        max_delay: float = 4.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not url:
            raise ValueError("Webhook dispatcher requires a URL")
        self.url = url
        self.token = token
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.transport = transport

    def _delay(self, attempt: int) -> float:
        delay = min(self.max_delay, self.base_delay * (2**attempt))
        return delay + random.uniform(0, delay / 2) if delay else 0

    async def send(self, identity, channel, template_id, payload) -> None:
        body = {
            "to": identity,
            "channel": channel.value,
            "template": template_id.value,
            "data": payload,
        }
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}

        last_error = ""
        async with httpx.AsyncClient(timeout=15.0, transport=self.transport) as client:
            for attempt in range(self.max_attempts):
                try:
                    response = await client.post(self.url, json=body, headers=headers)
                except httpx.RequestError as exc:
                    last_error = type(exc).__name__
                    logger.warning("Notification webhook request failed (%s), attempt %s", last_error, attempt + 1)
                else:
                    if response.status_code < 300:
                        return
                    if response.status_code not in RETRY_STATUSES:
                        raise NotificationError(
                            f"Notification webhook rejected {template_id.value}: HTTP {response.status_code}"
                        )
                    last_error = f"HTTP {response.status_code}"
                    logger.warning("Notification webhook returned %s, attempt %s", response.status_code, attempt + 1)

                if attempt < self.max_attempts - 1:
                    delay = self._delay(attempt)
                    if delay:
                        await asyncio.sleep(delay)

        raise TransientNotificationError(f"Notification webhook unavailable: {last_error}")


def get_dispatcher() -> NotificationDispatcher:
    """Resolve the dispatcher from settings.NOTIFICATION_BACKEND."""
    backend = settings.NOTIFICATION_BACKEND.lower()
    if backend == "webhook":
        return WebhookDispatcher(settings.NOTIFICATION_WEBHOOK_URL, settings.NOTIFICATION_WEBHOOK_TOKEN)
    if backend != "log":
        logger.warning("Unknown NOTIFICATION_BACKEND '%s'; falling back to log", backend)
    return LogDispatcher()


def enqueue_notification(
    db: Session,
    identity: str,
    channel: NotificationChannel,
    template_id: NotificationTemplate,
    payload: dict[str, Any],
) -> Job:
    """Queue a notification in the caller's transaction."""
    return job_service.schedule_job(
        db,
        JobType.NOTIFICATION_SEND,
        {
            "identity": identity,
            "channel": channel.value,
            "template_id": template_id.value,
            "payload": payload,
        },
    )
