"""
Gateway webhook schemas.

Raw callback parameters arrive as untyped query strings. They are first
captured in a *Query model (everything optional, nothing coerced) and then
turned into a typed record with documented fallbacks:

- SC is parsed as a leading integer; no integer means no status code.
- Status code 1 is delivered, 0 is failed, anything else is unknown.
- TS is parsed best-effort; missing or unparsable falls back to receipt time.
"""

import re
from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from sms_gateway.domain.sms_message import DeliveryStatus
from sms_gateway.utils.phone import mask_phone_number
from sms_gateway.utils.time import parse_provider_timestamp

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def parse_status_code(value: Optional[str]) -> Optional[int]:
    """
    Parse the gateway status code.

    Mirrors lenient integer parsing: leading whitespace and sign are
    accepted and anything after the leading digits is ignored ("1 OK" -> 1).

    Args:
        value: Raw SC parameter

    Returns:
        Integer status code, or None if the value has no leading integer
    """
    if value is None:
        return None
    match = _LEADING_INT.match(value)
    if not match:
        return None
    return int(match.group(1))


def delivery_status_from_code(status_code: Optional[int]) -> DeliveryStatus:
    """Map a gateway status code to a delivery status."""
    if status_code == 1:
        return DeliveryStatus.DELIVERED
    if status_code == 0:
        return DeliveryStatus.FAILED
    return DeliveryStatus.UNKNOWN


class DeliveryReceiptQuery(BaseModel):
    """Raw delivery receipt (DLR) callback parameters."""
    recipient_number: Optional[str] = None  # FN
    sender_number: Optional[str] = None  # TN
    status_code: Optional[str] = None  # SC
    status_text: Optional[str] = None  # ST
    message_key: Optional[str] = None  # RF
    timestamp: Optional[str] = None  # TS

    def to_log_dict(self) -> dict:
        return {
            "from": mask_phone_number(self.recipient_number),
            "to": mask_phone_number(self.sender_number),
            "statusCode": self.status_code,
            "statusText": self.status_text,
            "messageKey": self.message_key,
            "timestamp": self.timestamp,
        }


class InboundMessageQuery(BaseModel):
    """Raw mobile originated (MO) callback parameters."""
    from_number: Optional[str] = None  # FN
    to_number: Optional[str] = None  # TN
    message_text: Optional[str] = None  # MS
    timestamp: Optional[str] = None  # TS

    def to_log_dict(self) -> dict:
        return {
            "from": mask_phone_number(self.from_number),
            "to": mask_phone_number(self.to_number),
            "message": self.message_text,
            "timestamp": self.timestamp,
        }


class DeliveryReceipt(BaseModel):
    """A processed delivery receipt for a previously sent SMS."""
    message_key: Optional[str] = None
    recipient_number: Optional[str] = None
    sender_number: Optional[str] = None
    status_code: Optional[int] = None
    status_text: Optional[str] = None
    delivery_status: DeliveryStatus
    timestamp: datetime
    received_at: datetime

    @classmethod
    def from_query(cls, query: DeliveryReceiptQuery, received_at: datetime) -> "DeliveryReceipt":
        """
        Build a receipt from raw callback parameters.

        Args:
            query: Raw DLR parameters
            received_at: Local receipt time, also the timestamp fallback

        Returns:
            DeliveryReceipt with status and timestamp resolved
        """
        status_code = parse_status_code(query.status_code)
        return cls(
            message_key=query.message_key,
            recipient_number=query.recipient_number,
            sender_number=query.sender_number,
            status_code=status_code,
            status_text=query.status_text,
            delivery_status=delivery_status_from_code(status_code),
            timestamp=parse_provider_timestamp(query.timestamp, received_at, source="DLR"),
            received_at=received_at,
        )

    def to_log_dict(self) -> dict:
        """Log view of the receipt with phone numbers masked."""
        return {
            "messageKey": self.message_key,
            "recipientNumber": mask_phone_number(self.recipient_number),
            "senderNumber": mask_phone_number(self.sender_number),
            "statusCode": self.status_code,
            "statusText": self.status_text,
            "deliveryStatus": self.delivery_status.value,
            "timestamp": self.timestamp.isoformat(),
            "receivedAt": self.received_at.isoformat(),
        }


class InboundMessage(BaseModel):
    """A processed SMS sent by a citizen to the municipality."""
    from_number: Optional[str] = None
    to_number: Optional[str] = None
    message_text: Optional[str] = None
    timestamp: datetime
    received_at: datetime

    @classmethod
    def from_query(cls, query: InboundMessageQuery, received_at: datetime) -> "InboundMessage":
        return cls(
            from_number=query.from_number,
            to_number=query.to_number,
            message_text=query.message_text,
            timestamp=parse_provider_timestamp(query.timestamp, received_at, source="MO"),
            received_at=received_at,
        )

    def to_log_dict(self) -> dict:
        return {
            "fromNumber": mask_phone_number(self.from_number),
            "toNumber": mask_phone_number(self.to_number),
            "messageText": self.message_text,
            "timestamp": self.timestamp.isoformat(),
            "receivedAt": self.received_at.isoformat(),
        }
