"""
Tests for the notification dispatcher, templates and channel senders.
"""

import json

import httpx
import pytest
from httpx import AsyncClient
from sqlalchemy import select

from ticketing.core.config import MessageTemplate, NotificationConfig, Settings
from ticketing.core.errors import ValidationError
from ticketing.models.notification_log import NotificationLog
from ticketing.services.channel_factory import build_sms_sender, build_whatsapp_sender
from ticketing.services.channels import (
    DisabledSender,
    RevecloudSmsSender,
    SendResult,
    TwilioWhatsAppSender,
    UltraMsgWhatsAppSender,
)
from ticketing.services.notification_service import (
    NotificationDispatcher,
    Reference,
    build_message,
    notify_safely,
    render_template,
    resolve_channel,
)


PHONE = "01712345678"


async def _logs(db_session):
    return (await db_session.execute(select(NotificationLog).order_by(NotificationLog.id))).scalars().all()


def test_render_template():
    assert render_template("Hi {{name}}, {{ date }}", {"name": "Rina", "date": "2026-01-02"}) == "Hi Rina, 2026-01-02"
    assert render_template("Keep {{unknown}}", {}) == "Keep {{unknown}}"


def test_build_message_fallback_is_bilingual():
    message = build_message(
        "booking_confirmed",
        {"date": "2026-05-01", "time_slot": "10:00 - 11:00", "name": "Rina"},
        NotificationConfig(),
    )
    bn, en = message.split("\n\n")
    assert "কনফার্ম" in bn
    assert "booking confirmed" in en
    assert "Rina" in bn and "Rina" in en


def test_build_message_uses_configured_template_and_fixed_variables():
    config = NotificationConfig(
        templates={"ticket_payment": MessageTemplate(bn="টিকিট {{ticket_number}}", en="Ticket {{ticket_number}} {{secret}}")}
    )
    message = build_message("ticket_payment", {"ticket_number": "TK1", "secret": "x"}, config)
    assert message == "টিকিট TK1\n\nTicket TK1 {{secret}}"


def test_unknown_template_type_rejected_at_load():
    with pytest.raises(ValueError):
        NotificationConfig(templates={"birthday": MessageTemplate(bn="a", en="b")})


@pytest.mark.parametrize(
    "sms,whatsapp,expected",
    [(True, True, "both"), (True, False, "sms"), (False, True, "whatsapp"), (False, False, None)],
)
def test_resolve_channel(sms, whatsapp, expected):
    assert resolve_channel(NotificationConfig(sms_enabled=sms, whatsapp_enabled=whatsapp)) == expected


@pytest.mark.asyncio
async def test_send_logs_masked_attempt(db_session, dispatcher, senders):
    result = await dispatcher.send(PHONE, "Hello", "sms", Reference("42", "ticket"))
    assert result.success and not result.duplicate
    assert senders["sms"].calls == [(PHONE, "Hello")]

    logs = await _logs(db_session)
    assert len(logs) == 1
    assert logs[0].recipient_phone == "017****678"
    assert logs[0].status == "sent"
    assert logs[0].sent_at is not None


@pytest.mark.asyncio
async def test_same_reference_sent_once(db_session, dispatcher, senders):
    reference = Reference("42", "ticket")
    await dispatcher.send(PHONE, "Hello", "sms", reference)
    again = await dispatcher.send(PHONE, "Hello", "sms", reference)

    assert again.duplicate is True
    assert again.results["sms"].duplicate is True
    assert len(senders["sms"].calls) == 1
    assert len(await _logs(db_session)) == 1


@pytest.mark.asyncio
async def test_different_reference_type_is_not_duplicate(dispatcher, senders):
    await dispatcher.send(PHONE, "Hello", "sms", Reference("7", "booking"))
    result = await dispatcher.send(PHONE, "Bye", "sms", Reference("7", "booking_cancellation"))
    assert result.duplicate is False
    assert len(senders["sms"].calls) == 2


@pytest.mark.asyncio
async def test_failed_attempt_retried_exactly_once(db_session, session_factory, fake_sender):
    sms = fake_sender("sms", [SendResult(False, "timeout"), SendResult(False, "timeout"), SendResult(True)])
    dispatcher = NotificationDispatcher(session_factory, {"sms": sms})

    result = await dispatcher.send(PHONE, "Hello", "sms")
    assert result.success is False
    assert result.results["sms"].attempts == 2
    assert len(sms.calls) == 2

    logs = await _logs(db_session)
    assert [(log.attempt, log.status) for log in logs] == [(1, "failed"), (2, "failed")]


@pytest.mark.asyncio
async def test_retry_succeeds(session_factory, fake_sender):
    sms = fake_sender("sms", [SendResult(False, "busy")])
    dispatcher = NotificationDispatcher(session_factory, {"sms": sms})
    result = await dispatcher.send(PHONE, "Hello", "sms")
    assert result.success is True
    assert result.results["sms"].attempts == 2


@pytest.mark.asyncio
async def test_both_isolates_failing_channel(session_factory, fake_sender):
    sms = fake_sender("sms")
    whatsapp = fake_sender("whatsapp", [SendResult(False, "down"), SendResult(False, "down")])
    dispatcher = NotificationDispatcher(session_factory, {"sms": sms, "whatsapp": whatsapp})

    result = await dispatcher.send(PHONE, "Hello", "both", Reference("1", "ticket"))
    assert result.success is True
    assert result.results["sms"].success is True
    assert result.results["whatsapp"].success is False
    assert result.results["whatsapp"].attempts == 2

    # Retrying the event only re-attempts the channel that never succeeded
    retry = await dispatcher.send(PHONE, "Hello", "both", Reference("1", "ticket"))
    assert retry.results["sms"].duplicate is True
    assert retry.results["whatsapp"].success is True
    assert retry.duplicate is False
    assert len(sms.calls) == 1


@pytest.mark.asyncio
async def test_disabled_sender_not_retried(session_factory):
    dispatcher = NotificationDispatcher(session_factory, {"sms": DisabledSender("sms")})
    result = await dispatcher.send(PHONE, "Hello", "sms")
    assert result.success is False
    assert result.results["sms"].attempts == 1


@pytest.mark.asyncio
async def test_raising_sender_is_a_failed_attempt(session_factory, fake_sender):
    class Broken(fake_sender):
        async def send(self, phone, message):
            raise RuntimeError("boom")

    dispatcher = NotificationDispatcher(session_factory, {"sms": Broken("sms")})
    result = await dispatcher.send(PHONE, "Hello", "sms")
    assert result.success is False
    assert result.results["sms"].error == "boom"


@pytest.mark.asyncio
async def test_invalid_channel(dispatcher):
    with pytest.raises(ValidationError):
        await dispatcher.send(PHONE, "Hello", "pigeon")


@pytest.mark.asyncio
async def test_notify_safely_swallows_errors(dispatcher):
    result = await notify_safely(dispatcher, PHONE, "no_such_type", {})
    assert result is None


@pytest.mark.asyncio
async def test_notify_safely_respects_disabled_channels(dispatcher, senders):
    config = NotificationConfig(sms_enabled=False, whatsapp_enabled=False)
    result = await notify_safely(dispatcher, PHONE, "booking_confirmed", {}, config=config)
    assert result is None
    assert senders["sms"].calls == []


@pytest.mark.asyncio
async def test_revecloud_sms_sender():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"status": "ok"})

    sender = RevecloudSmsSender("https://sms.test/send", "key", "VENUE", transport=httpx.MockTransport(handler))
    result = await sender.send(PHONE, "Hello")
    assert result.success is True
    assert seen["body"]["to"] == "8801712345678"
    assert seen["body"]["sender_id"] == "VENUE"


@pytest.mark.asyncio
async def test_sms_sender_transport_error_is_reported():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    sender = RevecloudSmsSender("https://sms.test/send", "key", "VENUE", transport=httpx.MockTransport(handler))
    result = await sender.send(PHONE, "Hello")
    assert result.success is False
    assert "unreachable" in result.error


@pytest.mark.asyncio
async def test_ultramsg_sender():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"sent": "true", "message": "ok"})

    sender = UltraMsgWhatsAppSender("instance1", "tok", transport=httpx.MockTransport(handler))
    assert (await sender.send(PHONE, "Hello")).success is True


@pytest.mark.asyncio
async def test_twilio_sender_rejection():
    def handler(request: httpx.Request) -> httpx.Response:
        assert b"whatsapp%3A%2B8801712345678" in request.content
        return httpx.Response(401, json={"message": "auth"})

    sender = TwilioWhatsAppSender("AC1", "secret", "+15550001111", transport=httpx.MockTransport(handler))
    result = await sender.send(PHONE, "Hello")
    assert result.success is False
    assert "401" in result.error


def test_factory_picks_configured_providers():
    settings = Settings(SMS_API_KEY="k", SMS_SENDER_ID="VENUE", TWILIO_ACCOUNT_SID="AC", TWILIO_AUTH_TOKEN="t",
                        TWILIO_WHATSAPP_FROM="+1555")
    assert isinstance(build_sms_sender(settings), RevecloudSmsSender)
    assert isinstance(build_whatsapp_sender(settings), TwilioWhatsAppSender)

    settings = Settings(ULTRAMSG_INSTANCE="i", ULTRAMSG_TOKEN="t", TWILIO_ACCOUNT_SID="AC")
    assert isinstance(build_whatsapp_sender(settings), UltraMsgWhatsAppSender)
    assert isinstance(build_sms_sender(Settings()), DisabledSender)


@pytest.mark.asyncio
async def test_notification_endpoint(client: AsyncClient, senders):
    body = {"phone": "+8801712345678", "message": "Hi", "channel": "sms", "reference_id": "9", "reference_type": "ticket"}
    first = await client.post("/api/v1/notifications/", json=body)
    assert first.status_code == 200
    assert first.json()["success"] is True

    second = await client.post("/api/v1/notifications/", json=body)
    assert second.json()["duplicate"] is True
    assert len(senders["sms"].calls) == 1
