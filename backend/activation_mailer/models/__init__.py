"""
Database models for shops, orders, catalog data and the email audit log.

Shop-scoped models inherit from ShopScopedMixin.
"""

from activation_mailer.models.base import TimestampMixin, ShopScopedMixin
from activation_mailer.models.shop import ShopifyShop
from activation_mailer.models.order import ShopifyOrder, order_gid
from activation_mailer.models.customer import ShopifyCustomer
from activation_mailer.models.product import ShopifyProduct
from activation_mailer.models.email_log import (
    EmailLog,
    EmailType,
    EmailStatus,
    failed_message_id,
)

__all__ = [
    "TimestampMixin",
    "ShopScopedMixin",
    "ShopifyShop",
    "ShopifyOrder",
    "order_gid",
    "ShopifyCustomer",
    "ShopifyProduct",
    "EmailLog",
    "EmailType",
    "EmailStatus",
    "failed_message_id",
]
