"""
WhatsApp senders: UltraMsg (preferred when configured) and Twilio.
"""

from typing import Optional

import httpx

from ticketing.core.logging import get_logger
from ticketing.core.phone import mask_phone, to_international
from ticketing.services.channels.base import ChannelSender, SendResult

logger = get_logger(__name__)


class UltraMsgWhatsAppSender(ChannelSender):
    name = "whatsapp"

    def __init__(
        self,
        instance: str,
        token: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = f"https://api.ultramsg.com/{instance}/messages/chat"
        self.token = token
        self.timeout = timeout
        self._transport = transport

    async def send(self, phone: str, message: str) -> SendResult:
        payload = {"token": self.token, "to": to_international(phone), "body": message}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.url, json=payload)
            data = response.json() if response.content else {}
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("whatsapp_transport_error", provider="ultramsg", phone=mask_phone(phone), error=str(e))
            return SendResult(success=False, error=str(e) or type(e).__name__)

        sent = data.get("sent") in (True, "true")
        if sent:
            return SendResult(success=True)
        return SendResult(success=False, error=str(data.get("error") or f"UltraMsg returned {response.status_code}"))


class TwilioWhatsAppSender(ChannelSender):
    name = "whatsapp"

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = f"https://api.twilio.com/2010-04-01/Accounts/{account_sid}/Messages.json"
        self.auth = (account_sid, auth_token)
        self.from_number = from_number
        self.timeout = timeout
        self._transport = transport

    async def send(self, phone: str, message: str) -> SendResult:
        form = {
            "From": f"whatsapp:{self.from_number}",
            "To": f"whatsapp:+{to_international(phone)}",
            "Body": message,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.url, data=form, auth=self.auth)
        except httpx.HTTPError as e:
            logger.warning("whatsapp_transport_error", provider="twilio", phone=mask_phone(phone), error=str(e))
            return SendResult(success=False, error=str(e) or type(e).__name__)

        if response.is_success:
            return SendResult(success=True)
        return SendResult(success=False, error=f"Twilio returned {response.status_code}")
