"""
Shopify integration module.
"""

from activation_mailer.integrations.shopify.admin_client import (
    ShopifyAdminClient,
    ShopifyAPIError,
    MetafieldsSetResult,
)

__all__ = ["ShopifyAdminClient", "ShopifyAPIError", "MetafieldsSetResult"]
