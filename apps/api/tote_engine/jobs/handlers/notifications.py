"""Notification job handlers."""

from __future__ import annotations

import logging

from tote_engine.db.enums import NotificationChannel, NotificationTemplate
from tote_engine.services import notification_service

logger = logging.getLogger(__name__)


async def process_notification_send(db, job) -> None:
    """
    Deliver one queued notification through the configured dispatcher.

    Payload:
        - identity: email address or E.164 phone
        - channel: email | sms
        - template_id: NotificationTemplate value
        - payload: template variables

    TransientNotificationError propagates so the worker retries the job.
    """
    data = job.payload or {}
    identity = data.get("identity")
    if not identity:
        raise notification_service.NotificationError("Missing identity in notification payload")
    try:
        channel = NotificationChannel(data.get("channel"))
        template_id = NotificationTemplate(data.get("template_id"))
    except ValueError as exc:
        raise notification_service.NotificationError(f"Invalid notification job payload: {exc}") from exc

    dispatcher = notification_service.get_dispatcher()
    await dispatcher.send(identity, channel, template_id, data.get("payload") or {})
    logger.info("Notification job %s delivered (%s via %s)", job.id, template_id.value, channel.value)
