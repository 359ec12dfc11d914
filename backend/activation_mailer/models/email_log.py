"""
EmailLog model for tracking sent transactional emails.

One row is written per send attempt. The existence of an
order_confirmation row for an order is what deduplicates confirmation
emails across duplicate webhook deliveries.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import Column, String, DateTime, Index, Enum as SAEnum

from activation_mailer.db_base import Base
from activation_mailer.models.base import ShopScopedMixin, TimestampMixin, generate_uuid


class EmailType(str, Enum):
    """Kind of transactional email."""
    ORDER_CONFIRMATION = "order_confirmation"
    FULFILLMENT = "fulfillment"
    OTHER = "other"


class EmailStatus(str, Enum):
    """Delivery status of a send attempt."""
    SENT = "sent"
    FAILED = "failed"
    BOUNCED = "bounced"


def failed_message_id(now: Optional[datetime] = None) -> str:
    """Sentinel message id for attempts the provider never accepted."""
    now = now or datetime.now(timezone.utc)
    return f"failed-{int(now.timestamp() * 1000)}"


class EmailLog(Base, TimestampMixin, ShopScopedMixin):
    """Append-only audit log of email send attempts."""

    __tablename__ = "email_logs"

    id = Column(
        String(36),
        primary_key=True,
        default=generate_uuid,
        comment="UUID primary key"
    )

    email_address = Column(String(255), nullable=False)

    email_type = Column(
        SAEnum(
            *[t.value for t in EmailType],
            name="email_type"
        ),
        nullable=False,
        comment="order_confirmation | fulfillment | other"
    )

    message_id = Column(
        String(255),
        nullable=False,
        comment="Provider message id or failed-<epoch ms> sentinel"
    )

    order_id = Column(String(64), nullable=False, index=True)

    sent_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )

    status = Column(
        SAEnum(
            *[s.value for s in EmailStatus],
            name="email_status"
        ),
        nullable=False,
        default=EmailStatus.SENT.value
    )

    __table_args__ = (
        Index(
            "idx_email_logs_dedup",
            "order_id",
            "email_type",
            "shop_id"
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<EmailLog(id={self.id}, order_id={self.order_id}, "
            f"type={self.email_type}, status={self.status})>"
        )
