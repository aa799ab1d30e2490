"""
Pytest configuration and fixtures for Municipal SMS Gateway tests.
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncGenerator, Dict, List, Optional
from unittest.mock import MagicMock, patch

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from sms_gateway.config.settings import get_settings
from sms_gateway.domain.sms_message import Base, DeliveryStatus, MessageDirection, SmsMessage
from sms_gateway.domain.webhook_records import DeliveryReceipt, InboundMessage


# Use a separate in-memory SQLite database for testing
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
TEST_WEBHOOK_TOKEN = "test-webhook-token"


@pytest_asyncio.fixture
async def test_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def test_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async_session_factory = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session_factory() as session:
        yield session
        await session.rollback()


class FakeSmsRepository:
    """In-memory SmsRepository that records what the services store."""

    def __init__(self):
        self.receipts: List[DeliveryReceipt] = []
        self.inbound: List[InboundMessage] = []
        self.outbound: Dict[str, SmsMessage] = {}

    async def find_by_message_key(self, message_key: str) -> Optional[SmsMessage]:
        return self.outbound.get(message_key)

    async def upsert_delivery_status(self, receipt: DeliveryReceipt) -> bool:
        self.receipts.append(receipt)
        return True

    async def save_inbound_message(self, message: InboundMessage) -> InboundMessage:
        self.inbound.append(message)
        return message

    async def record_outbound_message(
        self,
        message_key: str,
        phone_number: str,
        message_text: str,
        sent_at: datetime,
    ) -> SmsMessage:
        row = SmsMessage(
            message_key=message_key,
            direction=MessageDirection.OUTBOUND,
            delivery_status=DeliveryStatus.PENDING,
            phone_number=phone_number,
            message_text=message_text,
            sent_at=sent_at,
        )
        self.outbound[message_key] = row
        return row

    async def delete_older_than(self, days: int) -> int:
        return 0


@pytest.fixture
def fake_repository() -> FakeSmsRepository:
    """Create an empty in-memory repository."""
    return FakeSmsRepository()


@pytest.fixture
def mock_settings():
    """Mock application settings for testing."""
    mock = MagicMock()
    mock.webhook_token = TEST_WEBHOOK_TOKEN
    mock.mtn_base_url = "https://sms.test"
    mock.mtn_username = "municipality"
    mock.mtn_password = "secret"
    mock.mtn_timeout_seconds = 5.0
    mock.database_url = TEST_DATABASE_URL
    mock.message_retention_days = 90
    mock.retention_interval_hours = 24
    mock.debug = False
    mock.timezone = "Africa/Johannesburg"
    return mock


@pytest.fixture
def client(mock_settings, fake_repository):
    """Create a test client with settings and storage overridden."""
    from sms_gateway.main import app

    @asynccontextmanager
    async def open_fake_repository():
        yield fake_repository

    app.dependency_overrides[get_settings] = lambda: mock_settings

    with patch("sms_gateway.api.mtn_webhook.open_sms_repository", open_fake_repository), \
            patch("sms_gateway.api.sms.open_sms_repository", open_fake_repository):
        yield TestClient(app)

    app.dependency_overrides.clear()


@pytest.fixture
def dlr_params():
    """Valid delivery receipt query parameters."""
    return {
        "FN": "0821234567",
        "TN": "0839876543",
        "SC": "1",
        "ST": "OK",
        "RF": "msg-001",
        "TS": "2024-01-15T10:00:00Z",
        "token": TEST_WEBHOOK_TOKEN,
    }


@pytest.fixture
def mo_params():
    """Valid inbound message query parameters."""
    return {
        "FN": "0821234567",
        "TN": "0839876543",
        "MS": "hello",
        "TS": "2024-01-15T10:00:00Z",
        "token": TEST_WEBHOOK_TOKEN,
    }
