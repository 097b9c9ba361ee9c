"""
Outbound message channels.
"""

from .base import ChannelSender, DisabledSender, SendResult
from .sms import RevecloudSmsSender
from .whatsapp import TwilioWhatsAppSender, UltraMsgWhatsAppSender

__all__ = [
    'ChannelSender', 'DisabledSender', 'SendResult',
    'RevecloudSmsSender', 'TwilioWhatsAppSender', 'UltraMsgWhatsAppSender',
]
