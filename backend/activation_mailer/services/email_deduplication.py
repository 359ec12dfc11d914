"""
Order confirmation email deduplication backed by the email audit log.

assert_not_sent() is checked once per pipeline run, before any work is
done. The check and the later audit log write are not one transaction:
two concurrent deliveries of the same order can both pass the check.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from activation_mailer.models.email_log import EmailLog, EmailStatus, EmailType
from activation_mailer.repositories.base_repo import ShopScopedRepository
from activation_mailer.services.order_email_errors import OrderEmailError, StageOutcome

logger = logging.getLogger(__name__)


class EmailLogRepository(ShopScopedRepository[EmailLog]):
    def _get_model_class(self) -> type[EmailLog]:
        return EmailLog


class EmailDeduplicationGate:
    """Checks and records whether an order confirmation email went out."""

    def __init__(self, db_session: Session):
        self.db = db_session

    def find_existing(
        self,
        order_id: str,
        shop_id: str,
        email_type: EmailType = EmailType.ORDER_CONFIRMATION,
    ) -> Optional[EmailLog]:
        repo = EmailLogRepository(self.db, shop_id)
        return repo.find_first(order_id=str(order_id), email_type=email_type.value)

    def assert_not_sent(self, order_id: str, shop_id: str) -> None:
        """
        Raises:
            OrderEmailError(DUPLICATE): an order confirmation is already logged
            OrderEmailError(INTERNAL): the audit log could not be read
        """
        try:
            existing = self.find_existing(order_id, shop_id)
        except SQLAlchemyError as e:
            logger.error(
                "Error checking email deduplication",
                extra={"order_id": order_id, "shop_id": shop_id, "error": str(e)},
            )
            raise OrderEmailError.internal(f"Failed to check email deduplication: {e}")

        if existing is not None:
            logger.info(
                "Email already sent for this order",
                extra={"order_id": order_id, "existing_email_id": existing.id},
            )
            raise OrderEmailError.duplicate(
                f"Order confirmation email already sent for order {order_id}"
            )

        logger.debug("No duplicate email found, proceeding with send", extra={"order_id": order_id})

    def record(
        self,
        order_id: str,
        shop_id: str,
        email_address: str,
        message_id: str,
        status: EmailStatus = EmailStatus.SENT,
        email_type: EmailType = EmailType.ORDER_CONFIRMATION,
    ) -> StageOutcome:
        """Append an audit log row. Failures are returned, not raised."""
        try:
            repo = EmailLogRepository(self.db, shop_id)
            entry = repo.create({
                "order_id": str(order_id),
                "email_type": email_type.value,
                "email_address": email_address,
                "message_id": message_id,
                "sent_at": datetime.now(timezone.utc),
                "status": status.value,
            })
        except (SQLAlchemyError, ValueError) as e:
            logger.error(
                "Failed to create email log entry",
                extra={"order_id": order_id, "message_id": message_id, "error": str(e)},
            )
            return StageOutcome.failure("audit_log", str(e))

        logger.info(
            "Email send logged",
            extra={"email_log_id": entry.id, "order_id": order_id, "status": status.value},
        )
        return StageOutcome.success("audit_log")
