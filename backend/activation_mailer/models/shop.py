"""
ShopifyShop model: one row per installed Shopify store.

The numeric shop id is the canonical identifier used by every
shop-scoped record (orders, customers, products, email log).
"""

from sqlalchemy import Column, String, Text

from activation_mailer.db_base import Base
from activation_mailer.models.base import TimestampMixin


class ShopifyShop(Base, TimestampMixin):
    """
    An installed Shopify store.

    SECURITY:
    - access_token must be decrypted only when making Admin API calls
    - domain is unique (one app install per store)
    """

    __tablename__ = "shopify_shops"

    id = Column(
        String(64),
        primary_key=True,
        comment="Shopify numeric shop id"
    )

    domain = Column(
        String(255),
        nullable=False,
        unique=True,
        index=True,
        comment="Shopify store domain (mystore.myshopify.com)"
    )

    name = Column(
        String(255),
        nullable=True,
        comment="Store display name"
    )

    access_token = Column(
        Text,
        nullable=True,
        comment="Admin API access token for metafield writes"
    )

    def __repr__(self) -> str:
        return f"<ShopifyShop(id={self.id}, domain={self.domain})>"
