"""
Notification dispatcher: at-most-once delivery per (reference, channel).

IDEMPOTENCY
===========

Webhooks and cron jobs get retried, so the same logical event can ask for
the same message twice. Before sending on a channel we look for a `sent`
row in notification_logs with the same (reference_id, reference_type,
channel). If one exists that channel is skipped and reported as a duplicate.

DELIVERY
========

- Each channel gets one retry on failure, independently of the others
- "both" sends SMS and WhatsApp separately; one failing never blocks the other
- Every attempt is written to notification_logs (masked phone) before returning
- The ledger is read and written through the dispatcher's own sessions, never
  the caller's, so a failed log write cannot expire or roll back the ticket
  or booking that triggered the message

Notifications are never fatal to the request that triggered them:
primary paths call notify_safely() after their own commit.
"""

import re
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Dict, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ticketing.core.config import NotificationConfig, get_settings
from ticketing.core.errors import ValidationError
from ticketing.core.logging import get_logger
from ticketing.core.metrics import record_notification
from ticketing.core.phone import mask_phone
from ticketing.models.notification_log import NotificationLog
from ticketing.services.channels import ChannelSender, SendResult

logger = get_logger(__name__)

CHANNELS = ("sms", "whatsapp")
CHANNEL_CHOICES = CHANNELS + ("both",)
MESSAGE_LOG_LIMIT = 500

# Fixed variable set per notification type
TEMPLATE_VARIABLES = {
    "ticket_payment": ("ticket_number", "date", "time_slot", "total", "name"),
    "booking_confirmed": ("date", "time_slot", "name"),
    "booking_payment": ("date", "time_slot", "total", "name"),
    "booking_cancelled": ("date", "time_slot", "name", "refund_note"),
    "booking_reminder": ("date", "time_slot", "name"),
}

FALLBACK_MESSAGES = {
    "ticket_payment": (
        "🎟️ Baby World টিকিট কনফার্ম!\nটিকিট: {{ticket_number}}\nতারিখ: {{date}}\nসময়: {{time_slot}}\n"
        "মোট: ৳{{total}}\nধন্যবাদ {{name}}!",
        "Ticket Confirmed!\nID: {{ticket_number}}\nDate: {{date}}\nTime: {{time_slot}}\n"
        "Total: ৳{{total}}\nThank you {{name}}!",
    ),
    "booking_confirmed": (
        "Baby World বুকিং কনফার্ম!\nতারিখ: {{date}}\nসময়: {{time_slot}}\nধন্যবাদ {{name}}!",
        "Baby World booking confirmed!\nDate: {{date}}\nTime: {{time_slot}}\nThank you {{name}}!",
    ),
    "booking_payment": (
        "✅ Baby World বুকিং পেমেন্ট সফল!\nতারিখ: {{date}}\nসময়: {{time_slot}}\nমোট: ৳{{total}}\nধন্যবাদ {{name}}!",
        "✅ Booking Payment Successful!\nDate: {{date}}\nTime: {{time_slot}}\nTotal: ৳{{total}}\nThank you {{name}}!",
    ),
    "booking_cancelled": (
        "Baby World বুকিং বাতিল!\nতারিখ: {{date}}\nসময়: {{time_slot}}\n{{refund_note}}\nধন্যবাদ।",
        "Baby World booking cancelled.\nDate: {{date}}\nTime: {{time_slot}}\n{{refund_note}}\nThank you.",
    ),
    "booking_reminder": (
        "⏰ Baby World রিমাইন্ডার!\nআগামীকাল আপনার বুকিং আছে।\nতারিখ: {{date}}\nসময়: {{time_slot}}\nঅপেক্ষায় থাকলাম!",
        "⏰ Baby World Reminder!\nYou have a booking tomorrow.\nDate: {{date}}\nTime: {{time_slot}}\nSee you soon!",
    ),
}

_PLACEHOLDER_RE = re.compile(r"\{\{\s*(\w+)\s*\}\}")


@dataclass(frozen=True)
class Reference:
    reference_id: str
    reference_type: str


@dataclass
class ChannelOutcome:
    channel: str
    success: bool
    attempts: int = 0
    duplicate: bool = False
    error: Optional[str] = None


@dataclass
class DispatchResult:
    success: bool
    duplicate: bool
    results: Dict[str, ChannelOutcome] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "duplicate": self.duplicate,
            "results": {name: asdict(outcome) for name, outcome in self.results.items()},
        }


def render_template(template: str, variables: Mapping[str, object]) -> str:
    """Replace {{name}} placeholders. Unknown placeholders are left as they are."""

    def _sub(match: re.Match) -> str:
        key = match.group(1)
        if key in variables:
            value = variables[key]
            return "" if value is None else str(value)
        return match.group(0)

    return _PLACEHOLDER_RE.sub(_sub, template)


def build_message(
    notification_type: str,
    variables: Mapping[str, object],
    config: Optional[NotificationConfig] = None,
) -> str:
    """Bengali then English, from the configured template or the built-in fallback."""
    if notification_type not in TEMPLATE_VARIABLES:
        raise ValueError(f"Unknown notification type: {notification_type}")
    config = config or get_settings().NOTIFICATIONS

    allowed = {name: variables.get(name, "") for name in TEMPLATE_VARIABLES[notification_type]}
    template = config.templates.get(notification_type)
    if template:
        bn, en = template.bn, template.en
    else:
        bn, en = FALLBACK_MESSAGES[notification_type]
    return render_template(bn, allowed) + "\n\n" + render_template(en, allowed)


def resolve_channel(config: Optional[NotificationConfig] = None) -> Optional[str]:
    config = config or get_settings().NOTIFICATIONS
    if config.sms_enabled and config.whatsapp_enabled:
        return "both"
    if config.whatsapp_enabled:
        return "whatsapp"
    if config.sms_enabled:
        return "sms"
    return None


class NotificationDispatcher:
    """Sends a rendered message over one or both channels, at most once per reference."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        senders: Mapping[str, ChannelSender],
        max_retries: int = 1,
    ):
        self.session_factory = session_factory
        self.senders = senders
        self.max_retries = max_retries

    async def send(
        self,
        phone: str,
        message: str,
        channel: str,
        reference: Optional[Reference] = None,
    ) -> DispatchResult:
        if not phone or not message:
            raise ValidationError("Phone and message are required")
        if channel not in CHANNEL_CHOICES:
            raise ValidationError(f"Invalid channel. Use one of: {', '.join(CHANNEL_CHOICES)}")

        channels = CHANNELS if channel == "both" else (channel,)
        outcomes: Dict[str, ChannelOutcome] = {}

        for name in channels:
            if reference and await self._already_sent(reference, name):
                record_notification(name, "duplicate")
                logger.info(
                    "notification_duplicate",
                    channel=name,
                    reference_id=reference.reference_id,
                    reference_type=reference.reference_type,
                )
                outcomes[name] = ChannelOutcome(channel=name, success=True, duplicate=True)
                continue
            outcomes[name] = await self._deliver(name, phone, message, reference)

        return DispatchResult(
            success=any(o.success for o in outcomes.values()),
            duplicate=all(o.duplicate for o in outcomes.values()),
            results=outcomes,
        )

    async def _already_sent(self, reference: Reference, channel: str) -> bool:
        async with self.session_factory() as session:
            result = await session.execute(
                select(NotificationLog.id)
                .where(
                    NotificationLog.reference_id == reference.reference_id,
                    NotificationLog.reference_type == reference.reference_type,
                    NotificationLog.channel == channel,
                    NotificationLog.status == "sent",
                )
                .limit(1)
            )
            return result.scalar_one_or_none() is not None

    async def _deliver(
        self, channel: str, phone: str, message: str, reference: Optional[Reference]
    ) -> ChannelOutcome:
        sender = self.senders.get(channel)
        attempts = 0
        result = SendResult(success=False, error=f"{channel} sender missing", retryable=False)

        while sender is not None and attempts <= self.max_retries:
            attempts += 1
            try:
                result = await sender.send(phone, message)
            except Exception as e:
                logger.exception("notification_sender_error", channel=channel)
                result = SendResult(success=False, error=str(e) or type(e).__name__)

            await self._log_attempt(channel, phone, message, reference, attempts, result)
            if result.success or not result.retryable:
                break
            if attempts <= self.max_retries:
                logger.info("notification_retry", channel=channel, attempt=attempts + 1)

        if sender is None:
            attempts = 1
            await self._log_attempt(channel, phone, message, reference, attempts, result)

        return ChannelOutcome(
            channel=channel,
            success=result.success,
            attempts=attempts,
            error=None if result.success else result.error,
        )

    async def _log_attempt(
        self,
        channel: str,
        phone: str,
        message: str,
        reference: Optional[Reference],
        attempt: int,
        result: SendResult,
    ) -> None:
        status = "sent" if result.success else "failed"
        async with self.session_factory() as session:
            session.add(
                NotificationLog(
                    channel=channel,
                    recipient_phone=mask_phone(phone),
                    message=message[:MESSAGE_LOG_LIMIT],
                    status=status,
                    reference_id=reference.reference_id if reference else None,
                    reference_type=reference.reference_type if reference else None,
                    attempt=attempt,
                    error_message=result.error,
                    sent_at=datetime.now(timezone.utc) if result.success else None,
                )
            )
            await session.commit()
        record_notification(channel, status)
        log = logger.info if result.success else logger.warning
        log(
            "notification_attempt",
            channel=channel,
            phone=mask_phone(phone),
            status=status,
            attempt=attempt,
            error=result.error,
        )


async def notify_safely(
    dispatcher: Optional[NotificationDispatcher],
    phone: str,
    notification_type: str,
    variables: Mapping[str, object],
    reference: Optional[Reference] = None,
    config: Optional[NotificationConfig] = None,
) -> Optional[DispatchResult]:
    """
    Fire-and-forget notification for primary request paths.
    Must be called after the primary change is committed; failures are logged, never raised.
    """
    if dispatcher is None:
        return None
    config = config or get_settings().NOTIFICATIONS
    channel = resolve_channel(config)
    if channel is None:
        logger.info("notifications_disabled", notification_type=notification_type)
        return None

    try:
        message = build_message(notification_type, variables, config)
        return await dispatcher.send(phone, message, channel, reference)
    except Exception:
        logger.exception(
            "notification_dispatch_failed",
            notification_type=notification_type,
            phone=mask_phone(phone),
        )
        return None
