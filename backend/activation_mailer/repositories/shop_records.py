"""
Repositories for the Shopify records the order email pipeline reads.

Shops are looked up globally (by id or domain); everything else is
scoped to a shop.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from activation_mailer.models.shop import ShopifyShop
from activation_mailer.models.order import ShopifyOrder
from activation_mailer.models.customer import ShopifyCustomer
from activation_mailer.models.product import ShopifyProduct
from activation_mailer.repositories.base_repo import ShopScopedRepository

logger = logging.getLogger(__name__)


class ShopRepository:
    """Lookup of installed shops."""

    def __init__(self, db_session: Session):
        self.db_session = db_session

    def get_by_id(self, shop_id: str) -> Optional[ShopifyShop]:
        return self.db_session.query(ShopifyShop).filter(
            ShopifyShop.id == str(shop_id)
        ).first()

    def get_by_domain(self, domain: str) -> Optional[ShopifyShop]:
        domain = domain.replace("https://", "").replace("http://", "").rstrip("/")
        return self.db_session.query(ShopifyShop).filter(
            ShopifyShop.domain == domain
        ).first()

    def resolve(self, shop_id: Optional[str] = None, domain: Optional[str] = None) -> Optional[ShopifyShop]:
        """Find a shop by id, falling back to domain."""
        if shop_id:
            shop = self.get_by_id(shop_id)
            if shop:
                return shop
        if domain:
            return self.get_by_domain(domain)
        return None


class OrderRepository(ShopScopedRepository[ShopifyOrder]):
    def _get_model_class(self) -> type[ShopifyOrder]:
        return ShopifyOrder


class CustomerRepository(ShopScopedRepository[ShopifyCustomer]):
    def _get_model_class(self) -> type[ShopifyCustomer]:
        return ShopifyCustomer


class ProductRepository(ShopScopedRepository[ShopifyProduct]):
    def _get_model_class(self) -> type[ShopifyProduct]:
        return ShopifyProduct
