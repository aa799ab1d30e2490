"""
Outbound SMS service: sends through the gateway and records what was enqueued.
"""

import logging
from typing import List, Optional, Union

from sms_gateway.infrastructure.mtn_sms_client import MtnSmsClient, SendResult
from sms_gateway.infrastructure.sms_repository import SmsRepository
from sms_gateway.utils.phone import mask_phone_number
from sms_gateway.utils.time import get_current_time

logger = logging.getLogger(__name__)


class OutboundSmsService:
    """Sends SMS and stores each enqueued message so receipts can find it."""

    def __init__(self, client: MtnSmsClient, repository: SmsRepository):
        self.client = client
        self.repository = repository

    async def send(
        self,
        to: Union[str, List[str]],
        message: str,
        ems: int = 0,
        userref: Optional[str] = None
    ) -> SendResult:
        """
        Send an SMS and record every enqueued message as pending.

        Args:
            to: Destination number or list of numbers
            message: Message text
            ems: Set to 1 for concatenated messages
            userref: Optional user reference

        Returns:
            The gateway send result
        """
        result = await self.client.send_sms(to, message, ems=ems, userref=userref)
        sent_at = get_current_time()

        for sent in result.successful:
            if not sent.key:
                logger.warning(f"Gateway enqueued {mask_phone_number(sent.number)} without a message key")
                continue
            await self.repository.record_outbound_message(
                message_key=sent.key,
                phone_number=sent.number,
                message_text=message,
                sent_at=sent_at,
            )

        for failed in result.failed:
            logger.warning(f"SMS to {mask_phone_number(failed.number)} refused: {failed.error}")

        logger.info(f"SMS send {result.status}: {result.total_sent} sent, {result.total_failed} failed")
        return result
