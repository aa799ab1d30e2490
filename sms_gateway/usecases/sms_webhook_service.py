"""
Webhook service for delivery receipts and inbound messages from the SMS gateway.
"""

import logging

from sms_gateway.domain.webhook_records import (
    DeliveryReceipt,
    DeliveryReceiptQuery,
    InboundMessage,
    InboundMessageQuery,
)
from sms_gateway.infrastructure.sms_repository import SmsRepository
from sms_gateway.utils.time import get_current_time

logger = logging.getLogger(__name__)


class SmsWebhookService:
    """Turns raw gateway callbacks into records and stores them."""

    def __init__(self, repository: SmsRepository):
        self.repository = repository

    async def handle_delivery_receipt(self, query: DeliveryReceiptQuery) -> DeliveryReceipt:
        """
        Process a delivery receipt (DLR) callback.

        Args:
            query: Raw DLR parameters

        Returns:
            The processed delivery receipt
        """
        logger.info(f"MTN Delivery Receipt received: {query.to_log_dict()}")

        receipt = DeliveryReceipt.from_query(query, received_at=get_current_time())
        logger.info(f"Processed delivery receipt: {receipt.to_log_dict()}")

        # Without a key there is nothing to reconcile against
        if not receipt.message_key:
            logger.warning("Delivery receipt without message key (RF), not stored")
            return receipt

        await self.repository.upsert_delivery_status(receipt)
        return receipt

    async def handle_inbound_message(self, query: InboundMessageQuery) -> InboundMessage:
        """
        Process a mobile originated (MO) callback.

        Args:
            query: Raw MO parameters

        Returns:
            The processed inbound message
        """
        logger.info(f"MTN Incoming Message received: {query.to_log_dict()}")

        message = InboundMessage.from_query(query, received_at=get_current_time())
        logger.info(f"Processed incoming message: {message.to_log_dict()}")

        await self.repository.save_inbound_message(message)
        return message
