"""
Persistence for SMS messages and their delivery receipts.
"""

import logging
from datetime import datetime, timedelta
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional, Protocol

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from sms_gateway.domain.sms_message import SmsMessage, DeliveryStatus, MessageDirection
from sms_gateway.domain.webhook_records import DeliveryReceipt, InboundMessage
from sms_gateway.infrastructure.database import DatabaseSession
from sms_gateway.utils.phone import mask_phone_number
from sms_gateway.utils.time import to_utc_naive

logger = logging.getLogger(__name__)

FINAL_STATUSES = (DeliveryStatus.DELIVERED, DeliveryStatus.FAILED)


class SmsRepository(Protocol):
    """Storage operations needed by the webhook and outbound services."""

    async def find_by_message_key(self, message_key: str) -> Optional[SmsMessage]:
        ...

    async def upsert_delivery_status(self, receipt: DeliveryReceipt) -> bool:
        ...

    async def save_inbound_message(self, message: InboundMessage) -> SmsMessage:
        ...

    async def record_outbound_message(
        self,
        message_key: str,
        phone_number: str,
        message_text: str,
        sent_at: datetime,
    ) -> SmsMessage:
        ...

    async def delete_older_than(self, days: int) -> int:
        ...


class SqlAlchemySmsRepository:
    """SmsRepository backed by an async SQLAlchemy session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_by_message_key(self, message_key: str) -> Optional[SmsMessage]:
        result = await self.session.execute(
            select(SmsMessage).where(SmsMessage.message_key == message_key)
        )
        return result.scalar_one_or_none()

    async def upsert_delivery_status(self, receipt: DeliveryReceipt) -> bool:
        """
        Apply a delivery receipt to the message it refers to.

        Gateways redeliver receipts, so applying the same status twice is a
        no-op. A receipt for an unknown key creates the outbound row. An
        unknown status never replaces a final delivered or failed one.

        Args:
            receipt: Processed delivery receipt with a message key

        Returns:
            True if a row was inserted or changed, False for a duplicate
        """
        message = await self.find_by_message_key(receipt.message_key)

        if message is None:
            logger.warning(
                f"No outbound message for key {receipt.message_key}, recording receipt only"
            )
            message = SmsMessage(
                message_key=receipt.message_key,
                direction=MessageDirection.OUTBOUND,
                phone_number=receipt.recipient_number,
                gateway_number=receipt.sender_number,
            )
            self.session.add(message)
        elif (
            message.delivery_status == receipt.delivery_status
            and message.status_code == receipt.status_code
        ):
            logger.info(
                f"Duplicate receipt for {receipt.message_key} "
                f"({receipt.delivery_status.value}), skipping"
            )
            return False
        elif (
            message.delivery_status in FINAL_STATUSES
            and receipt.delivery_status == DeliveryStatus.UNKNOWN
        ):
            logger.info(
                f"Ignoring unknown receipt for {receipt.message_key}, "
                f"already {message.delivery_status.value}"
            )
            return False

        message.delivery_status = receipt.delivery_status
        message.status_code = receipt.status_code
        message.status_text = receipt.status_text
        message.status_updated_at = to_utc_naive(receipt.timestamp)

        await self.session.commit()
        logger.info(f"Delivery status for {receipt.message_key} set to {receipt.delivery_status.value}")
        return True

    async def save_inbound_message(self, message: InboundMessage) -> SmsMessage:
        row = SmsMessage(
            direction=MessageDirection.INBOUND,
            phone_number=message.from_number,
            gateway_number=message.to_number,
            message_text=message.message_text,
            delivery_status=DeliveryStatus.RECEIVED,
            sent_at=to_utc_naive(message.timestamp),
            status_updated_at=to_utc_naive(message.received_at),
        )
        self.session.add(row)
        await self.session.commit()
        logger.info(f"Stored inbound message {row.id} from {mask_phone_number(message.from_number)}")
        return row

    async def record_outbound_message(
        self,
        message_key: str,
        phone_number: str,
        message_text: str,
        sent_at: datetime,
    ) -> SmsMessage:
        """
        Record a message enqueued by the gateway, awaiting its receipt.

        If a receipt for the key already arrived the existing row is kept
        and only the send details are filled in.
        """
        row = await self.find_by_message_key(message_key)
        if row is None:
            row = SmsMessage(
                message_key=message_key,
                direction=MessageDirection.OUTBOUND,
                delivery_status=DeliveryStatus.PENDING,
            )
            self.session.add(row)

        row.phone_number = phone_number
        row.message_text = message_text[:1600]
        row.sent_at = to_utc_naive(sent_at)

        await self.session.commit()
        return row

    async def delete_older_than(self, days: int) -> int:
        """
        Remove messages created more than the given number of days ago.

        Args:
            days: Number of days to retain messages

        Returns:
            Number of rows deleted
        """
        cutoff = datetime.utcnow() - timedelta(days=days)
        result = await self.session.execute(
            delete(SmsMessage).where(SmsMessage.created_at < cutoff)
        )
        await self.session.commit()
        return result.rowcount or 0


@asynccontextmanager
async def open_sms_repository() -> AsyncIterator[SmsRepository]:
    """Open a database session and provide a repository bound to it."""
    async with DatabaseSession() as session:
        yield SqlAlchemySmsRepository(session)
