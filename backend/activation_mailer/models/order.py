"""
ShopifyOrder model: local projection of a Shopify order.

The primary key is the numeric legacy resource id; the GraphQL GID is
kept alongside for Admin API calls.
"""

from sqlalchemy import Column, String, DateTime

from activation_mailer.db_base import Base
from activation_mailer.models.base import JSONType, ShopScopedMixin, TimestampMixin

ORDER_GID_PREFIX = "gid://shopify/Order/"


def order_gid(order_id: str) -> str:
    """Return the GraphQL GID for a numeric order id (GIDs pass through)."""
    order_id = str(order_id)
    if order_id.startswith("gid://"):
        return order_id
    return f"{ORDER_GID_PREFIX}{order_id}"


class ShopifyOrder(Base, TimestampMixin, ShopScopedMixin):
    """A paid Shopify order synced from webhooks."""

    __tablename__ = "shopify_orders"

    id = Column(
        String(64),
        primary_key=True,
        comment="Numeric legacy order id"
    )

    admin_graphql_api_id = Column(
        String(255),
        nullable=True,
        comment="GraphQL GID (gid://shopify/Order/<id>)"
    )

    name = Column(String(255), nullable=True, comment="Display name, e.g. #1001")
    email = Column(String(255), nullable=True, comment="Customer email on the order")

    processed_at = Column(DateTime(timezone=True), nullable=True)
    shopify_created_at = Column(DateTime(timezone=True), nullable=True)

    customer_id = Column(
        String(64),
        nullable=True,
        comment="Numeric legacy customer id"
    )

    total_price = Column(String(32), nullable=True)
    currency = Column(String(10), nullable=True)
    financial_status = Column(String(32), nullable=True)

    line_items = Column(
        JSONType,
        nullable=True,
        comment="Line items as delivered by Shopify"
    )

    def __repr__(self) -> str:
        return f"<ShopifyOrder(id={self.id}, name={self.name}, shop_id={self.shop_id})>"
