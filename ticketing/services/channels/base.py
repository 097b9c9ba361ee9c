"""
Channel sender interface.
Lets the dispatcher treat SMS and WhatsApp providers uniformly and lets
tests swap in fakes without touching business logic.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class SendResult:
    success: bool
    error: Optional[str] = None
    # False when retrying cannot help (e.g. provider not configured)
    retryable: bool = True


class ChannelSender(ABC):
    """
    Interface for "send text to phone number" providers.

    Implementations:
    - RevecloudSmsSender: SMS gateway
    - UltraMsgWhatsAppSender / TwilioWhatsAppSender: WhatsApp providers
    - DisabledSender: channel not configured
    """

    name: str = "channel"

    @abstractmethod
    async def send(self, phone: str, message: str) -> SendResult:
        """
        Deliver one text message.

        Args:
            phone: Local Bangladesh mobile number (01XXXXXXXXX)
            message: Rendered message body

        Returns:
            SendResult; transport failures are reported, never raised
        """
        pass


class DisabledSender(ChannelSender):
    """Stand-in for a channel whose credentials are missing."""

    def __init__(self, name: str, reason: str = "not configured"):
        self.name = name
        self.reason = reason

    async def send(self, phone: str, message: str) -> SendResult:
        return SendResult(success=False, error=f"{self.name} {self.reason}", retryable=False)
