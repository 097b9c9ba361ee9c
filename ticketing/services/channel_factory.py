"""
Channel sender factory.
Builds the SMS and WhatsApp senders from configured credentials.
"""

from typing import Dict, Optional

from ticketing.core.config import Settings, get_settings
from ticketing.services.channels import (
    ChannelSender,
    DisabledSender,
    RevecloudSmsSender,
    TwilioWhatsAppSender,
    UltraMsgWhatsAppSender,
)


def build_sms_sender(settings: Settings) -> ChannelSender:
    if not (settings.SMS_API_KEY and settings.SMS_SENDER_ID):
        return DisabledSender("sms")
    return RevecloudSmsSender(
        api_url=settings.SMS_API_URL,
        api_key=settings.SMS_API_KEY,
        sender_id=settings.SMS_SENDER_ID,
        timeout=settings.CHANNEL_TIMEOUT_SECONDS,
    )


def build_whatsapp_sender(settings: Settings) -> ChannelSender:
    """
    Provider selection:
    - UltraMsg when its instance and token are set
    - Twilio when its SID, token and sender number are set
    - otherwise the channel is disabled
    """
    if settings.ULTRAMSG_INSTANCE and settings.ULTRAMSG_TOKEN:
        return UltraMsgWhatsAppSender(
            instance=settings.ULTRAMSG_INSTANCE,
            token=settings.ULTRAMSG_TOKEN,
            timeout=settings.CHANNEL_TIMEOUT_SECONDS,
        )
    if settings.TWILIO_ACCOUNT_SID and settings.TWILIO_AUTH_TOKEN and settings.TWILIO_WHATSAPP_FROM:
        return TwilioWhatsAppSender(
            account_sid=settings.TWILIO_ACCOUNT_SID,
            auth_token=settings.TWILIO_AUTH_TOKEN,
            from_number=settings.TWILIO_WHATSAPP_FROM,
            timeout=settings.CHANNEL_TIMEOUT_SECONDS,
        )
    return DisabledSender("whatsapp")


# Singleton instance
_senders: Optional[Dict[str, ChannelSender]] = None


def get_channel_senders() -> Dict[str, ChannelSender]:
    """Get the configured senders keyed by channel name."""
    global _senders
    if _senders is None:
        settings = get_settings()
        _senders = {
            "sms": build_sms_sender(settings),
            "whatsapp": build_whatsapp_sender(settings),
        }
    return _senders
