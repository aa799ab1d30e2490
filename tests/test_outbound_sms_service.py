"""
Unit tests for OutboundSmsService and the retention job.
"""

from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from sms_gateway.domain.sms_message import SmsMessage, MessageDirection
from sms_gateway.infrastructure.mtn_sms_client import (
    DuplicateMessageError,
    FailedMessage,
    SendResult,
    SentMessage,
)
from sms_gateway.infrastructure.scheduler import purge_expired_messages
from sms_gateway.usecases.outbound_sms_service import OutboundSmsService


class TestOutboundSmsService:
    """Tests for sending and recording outbound messages."""

    @pytest.fixture
    def mock_client(self):
        """Mock SMS client."""
        client = MagicMock()
        client.send_sms = AsyncMock()
        return client

    @pytest.mark.asyncio
    async def test_records_enqueued_messages(self, mock_client, fake_repository):
        """Test that each enqueued key is stored for later receipts."""
        mock_client.send_sms.return_value = SendResult(
            status="partial",
            successful=[
                SentMessage(number="+27821234567", key="k1"),
                SentMessage(number="+27831234567", key=None),
            ],
            failed=[FailedMessage(number="+27839876543", error="Insufficient credits", error_code=153)],
            total_sent=2,
            total_failed=1,
        )
        service = OutboundSmsService(mock_client, fake_repository)

        result = await service.send(["+27821234567", "+27839876543"], "Road closure on N2")

        assert result.status == "partial"
        assert list(fake_repository.outbound) == ["k1"]
        assert fake_repository.outbound["k1"].message_text == "Road closure on N2"
        mock_client.send_sms.assert_called_once_with(
            ["+27821234567", "+27839876543"], "Road closure on N2", ems=0, userref=None
        )

    @pytest.mark.asyncio
    async def test_client_errors_propagate(self, mock_client, fake_repository):
        """Test that nothing is recorded when the client refuses to send."""
        mock_client.send_sms.side_effect = DuplicateMessageError("duplicate")
        service = OutboundSmsService(mock_client, fake_repository)

        with pytest.raises(DuplicateMessageError):
            await service.send("+27821234567", "hello")

        assert fake_repository.outbound == {}


class TestPurgeExpiredMessages:
    """Tests for the scheduled retention job."""

    @pytest.mark.asyncio
    async def test_purges_old_messages(self, test_session):
        """Test that the job deletes messages past retention."""
        test_session.add(SmsMessage(
            direction=MessageDirection.OUTBOUND,
            message_key="old-key",
            created_at=datetime.utcnow() - timedelta(days=120),
        ))
        await test_session.commit()

        with patch("sms_gateway.infrastructure.database.DatabaseSession") as mock_db:
            mock_db.return_value.__aenter__.return_value = test_session

            deleted = await purge_expired_messages(days=90)

        assert deleted == 1

    @pytest.mark.asyncio
    async def test_purge_failure_is_logged(self, caplog):
        """Test that a failing purge does not raise into the scheduler."""
        with patch("sms_gateway.infrastructure.database.DatabaseSession") as mock_db:
            mock_db.return_value.__aenter__.side_effect = RuntimeError("no database")

            deleted = await purge_expired_messages(days=90)

        assert deleted == 0
        assert "Error purging expired messages" in caplog.text
