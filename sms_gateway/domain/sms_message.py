"""
SMS message domain model.
Stores outbound messages sent through the gateway and inbound citizen replies.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import Column, Integer, String, DateTime, Enum as SQLEnum
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class DeliveryStatus(str, Enum):
    """Delivery status enumeration."""
    PENDING = "pending"
    DELIVERED = "delivered"
    FAILED = "failed"
    UNKNOWN = "unknown"
    RECEIVED = "received"


class MessageDirection(str, Enum):
    """Direction of an SMS relative to the municipality."""
    OUTBOUND = "outbound"
    INBOUND = "inbound"


class SmsMessage(Base):
    """SQLAlchemy model for SMS messages exchanged with citizens."""

    __tablename__ = "sms_messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    message_key = Column(String(64), unique=True, nullable=True, index=True)
    direction = Column(SQLEnum(MessageDirection), nullable=False)
    phone_number = Column(String(32), nullable=True)  # Citizen side
    gateway_number = Column(String(32), nullable=True)  # Municipality side
    message_text = Column(String(1600), nullable=True)
    delivery_status = Column(SQLEnum(DeliveryStatus), default=DeliveryStatus.PENDING)
    status_code = Column(Integer, nullable=True)
    status_text = Column(String(255), nullable=True)
    sent_at = Column(DateTime, nullable=True)
    status_updated_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self) -> str:
        return (
            f"<SmsMessage(id={self.id}, key={self.message_key}, "
            f"direction={self.direction}, status={self.delivery_status})>"
        )
