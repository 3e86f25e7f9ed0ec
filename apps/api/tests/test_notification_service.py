"""Tests for notification queueing and webhook delivery."""

import json

import httpx
import pytest

from tote_engine.db.enums import JobType, NotificationChannel, NotificationTemplate
from tote_engine.db.models import Job
from tote_engine.services import notification_service
from tote_engine.services.notification_service import (
    LogDispatcher,
    NotificationError,
    TransientNotificationError,
    WebhookDispatcher,
)


def _dispatcher(handler, max_attempts=3):
    return WebhookDispatcher(
        "https://notify.acme.org/hooks/send",
        token="secret-token",
        max_attempts=max_attempts,
        base_delay=0,
        transport=httpx.MockTransport(handler),
    )


def test_enqueue_creates_pending_job(db):
    job = notification_service.enqueue_notification(
        db, "ana@gmail.com", NotificationChannel.EMAIL, NotificationTemplate.CLAIM_VERIFIED, {"claim_id": "c1"}
    )
    db.commit()

    assert job.job_type == JobType.NOTIFICATION_SEND.value
    assert job.payload == {
        "identity": "ana@gmail.com",
        "channel": "email",
        "template_id": "claim_verified",
        "payload": {"claim_id": "c1"},
    }


def test_enqueue_is_part_of_caller_transaction(db):
    notification_service.enqueue_notification(
        db, "ana@gmail.com", NotificationChannel.EMAIL, NotificationTemplate.CLAIM_VERIFIED, {}
    )
    db.rollback()

    assert db.query(Job).count() == 0


@pytest.mark.asyncio
async def test_webhook_posts_payload():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(202)

    await _dispatcher(handler).send(
        "+919876543210", NotificationChannel.SMS, NotificationTemplate.OTP_CODE, {"code": "123456"}
    )

    assert len(requests) == 1
    assert requests[0].headers["Authorization"] == "Bearer secret-token"
    body = json.loads(requests[0].content)
    assert body == {
        "to": "+919876543210",
        "channel": "sms",
        "template": "otp_code",
        "data": {"code": "123456"},
    }


@pytest.mark.asyncio
async def test_webhook_retries_server_errors():
    statuses = iter([503, 502, 200])

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(next(statuses))

    await _dispatcher(handler).send("ana@gmail.com", NotificationChannel.EMAIL, NotificationTemplate.OTP_CODE, {})


@pytest.mark.asyncio
async def test_webhook_gives_up_with_transient_error():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(429)

    with pytest.raises(TransientNotificationError):
        await _dispatcher(handler, max_attempts=2).send(
            "ana@gmail.com", NotificationChannel.EMAIL, NotificationTemplate.OTP_CODE, {}
        )
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_webhook_connection_errors_are_transient():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(TransientNotificationError):
        await _dispatcher(handler).send("ana@gmail.com", NotificationChannel.EMAIL, NotificationTemplate.OTP_CODE, {})


@pytest.mark.asyncio
async def test_webhook_client_error_is_permanent():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(400)

    with pytest.raises(NotificationError) as exc_info:
        await _dispatcher(handler).send("ana@gmail.com", NotificationChannel.EMAIL, NotificationTemplate.OTP_CODE, {})

    assert not isinstance(exc_info.value, TransientNotificationError)
    assert len(calls) == 1


def test_webhook_requires_url():
    with pytest.raises(ValueError):
        WebhookDispatcher("")


@pytest.mark.asyncio
async def test_log_dispatcher_records_sends():
    dispatcher = LogDispatcher()

    await dispatcher.send("ana@gmail.com", NotificationChannel.EMAIL, NotificationTemplate.CLAIM_VERIFIED, {"a": 1})

    assert dispatcher.sent == [("ana@gmail.com", "email", "claim_verified", {"a": 1})]


def test_get_dispatcher_defaults_to_log():
    assert isinstance(notification_service.get_dispatcher(), LogDispatcher)
