"""
ShopifyProduct model.

pathway_longurl mirrors the product metafield myoncare.pathway_longurl:
the activation destination that gets shortened for each purchase.
"""

from sqlalchemy import Column, String, Text

from activation_mailer.db_base import Base
from activation_mailer.models.base import ShopScopedMixin, TimestampMixin


class ShopifyProduct(Base, TimestampMixin, ShopScopedMixin):
    """Product catalog entry."""

    __tablename__ = "shopify_products"

    id = Column(String(64), primary_key=True, comment="Numeric product id")
    title = Column(String(512), nullable=True)

    pathway_longurl = Column(
        Text,
        nullable=True,
        comment="Activation long URL (metafield myoncare.pathway_longurl)"
    )

    featured_image_url = Column(
        Text,
        nullable=True,
        comment="Original source URL of the featured media image"
    )

    def __repr__(self) -> str:
        return f"<ShopifyProduct(id={self.id}, title={self.title})>"
