"""
Shared route dependencies.
"""

from typing import Mapping

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ticketing.db.session import get_session_factory
from ticketing.services.channel_factory import get_channel_senders
from ticketing.services.channels import ChannelSender
from ticketing.services.notification_service import NotificationDispatcher


def get_senders() -> Mapping[str, ChannelSender]:
    return get_channel_senders()


async def get_dispatcher(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    senders: Mapping[str, ChannelSender] = Depends(get_senders),
) -> NotificationDispatcher:
    """Dispatcher with its own ledger sessions, independent of the request session."""
    return NotificationDispatcher(session_factory, senders)
