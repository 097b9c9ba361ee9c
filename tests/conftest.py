"""
Pytest fixtures for test database, client, notification fakes and seed data.

Each test gets its own file-backed SQLite database so that concurrent
sessions (the slot race, the double gate scan) really are separate
connections contending for the same rows.
"""

import os

# Must be set before the application settings are first read
os.environ["REDIS_ENABLED"] = "false"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["VENUE_TIMEZONE"] = "Asia/Dhaka"

from datetime import timedelta
from typing import AsyncGenerator, List, Optional

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from ticketing.main import app
from ticketing.api.deps import get_senders
from ticketing.core.config import venue_today
from ticketing.db.base import Base
from ticketing.db.session import get_db, get_session_factory
from ticketing.models.gate_log import GateCamera
from ticketing.models.membership import Membership
from ticketing.models.ride import Ride
from ticketing.services.channels import ChannelSender, SendResult
from ticketing.services.notification_service import NotificationDispatcher


class FakeSender(ChannelSender):
    """Records every send; replays scripted results, then succeeds."""

    def __init__(self, name: str, results: Optional[List[SendResult]] = None):
        self.name = name
        self.results = list(results or [])
        self.calls = []

    async def send(self, phone: str, message: str) -> SendResult:
        self.calls.append((phone, message))
        if self.results:
            return self.results.pop(0)
        return SendResult(success=True)


@pytest_asyncio.fixture(scope="function")
async def engine(tmp_path):
    """Fresh schema in a per-test SQLite file."""
    test_engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'ticketing_test.db'}",
        poolclass=NullPool,
        connect_args={"timeout": 30},
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def senders():
    return {"sms": FakeSender("sms"), "whatsapp": FakeSender("whatsapp")}


@pytest.fixture
def dispatcher(session_factory, senders) -> NotificationDispatcher:
    return NotificationDispatcher(session_factory, senders)


class LedgerDownDispatcher(NotificationDispatcher):
    """Sends normally but cannot write the notification ledger."""

    async def _log_attempt(self, *args, **kwargs):
        raise RuntimeError("notification_logs unavailable")


@pytest.fixture
def ledger_down_dispatcher(session_factory, senders) -> NotificationDispatcher:
    return LedgerDownDispatcher(session_factory, senders)


@pytest_asyncio.fixture(scope="function")
async def client(session_factory, senders) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client with a fresh DB session per request and fake channel senders."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_senders] = lambda: senders
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def today():
    return venue_today()


@pytest.fixture
def tomorrow(today):
    return today + timedelta(days=1)


@pytest_asyncio.fixture
async def rides(db_session: AsyncSession) -> List[Ride]:
    """Two active rides and one retired ride."""
    catalogue = [
        Ride(name="Bumper Cars", price=150, is_active=True),
        Ride(name="Mini Train", price=80, is_active=True),
        Ride(name="Old Carousel", price=60, is_active=False),
    ]
    db_session.add_all(catalogue)
    await db_session.commit()
    for ride in catalogue:
        await db_session.refresh(ride)
    return catalogue


@pytest_asyncio.fixture
async def member(db_session: AsyncSession, today) -> Membership:
    """A 50% membership valid for the next month."""
    membership = Membership(
        member_name="Nadia Rahman",
        phone="01712345678",
        child_count=2,
        membership_type="monthly",
        discount_percent=50,
        valid_from=today,
        valid_till=today + timedelta(days=30),
        status="active",
    )
    db_session.add(membership)
    await db_session.commit()
    await db_session.refresh(membership)
    return membership


@pytest_asyncio.fixture
async def gate_camera(db_session: AsyncSession) -> GateCamera:
    camera = GateCamera(gate_id="main_gate", camera_ref="rtsp://cam-01/stream")
    db_session.add(camera)
    await db_session.commit()
    return camera


@pytest.fixture
def fake_sender():
    """The FakeSender class, for tests that script their own results."""
    return FakeSender
