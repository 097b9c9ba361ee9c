"""
SMS gateway sender (Reve Systems / Khudebarta style JSON API).
"""

from typing import Optional

import httpx

from ticketing.core.logging import get_logger
from ticketing.core.phone import mask_phone, to_international
from ticketing.services.channels.base import ChannelSender, SendResult

logger = get_logger(__name__)


class RevecloudSmsSender(ChannelSender):
    name = "sms"

    def __init__(
        self,
        api_url: str,
        api_key: str,
        sender_id: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.sender_id = sender_id
        self.timeout = timeout
        self._transport = transport

    async def send(self, phone: str, message: str) -> SendResult:
        payload = {
            "api_key": self.api_key,
            "sender_id": self.sender_id,
            "to": to_international(phone),
            "message": message,
            "type": "text",
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    self.api_url,
                    json=payload,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
        except httpx.HTTPError as e:
            logger.warning("sms_transport_error", phone=mask_phone(phone), error=str(e))
            return SendResult(success=False, error=str(e) or type(e).__name__)

        if response.is_success:
            return SendResult(success=True)
        logger.warning("sms_rejected", phone=mask_phone(phone), status_code=response.status_code)
        return SendResult(success=False, error=f"SMS gateway returned {response.status_code}")
