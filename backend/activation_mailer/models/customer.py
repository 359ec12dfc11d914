"""ShopifyCustomer model."""

from sqlalchemy import Column, String

from activation_mailer.db_base import Base
from activation_mailer.models.base import ShopScopedMixin, TimestampMixin


class ShopifyCustomer(Base, TimestampMixin, ShopScopedMixin):
    """Customer record, keyed by legacy resource id."""

    __tablename__ = "shopify_customers"

    id = Column(String(64), primary_key=True, comment="Numeric legacy customer id")
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)

    @property
    def display_name(self) -> str:
        parts = [p for p in (self.first_name, self.last_name) if p]
        return " ".join(parts)

    def __repr__(self) -> str:
        return f"<ShopifyCustomer(id={self.id}, shop_id={self.shop_id})>"
