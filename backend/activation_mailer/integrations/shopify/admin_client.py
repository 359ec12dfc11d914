"""
Shopify Admin GraphQL client for order metafields.

Reads and writes the JSON metafield that stores the activation short
URLs of an order.

Documentation: https://shopify.dev/docs/api/admin-graphql/latest/mutations/metafieldsSet
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)

DEFAULT_API_VERSION = "2025-04"

ORDER_METAFIELD_QUERY = """
query OrderMetafield($id: ID!, $namespace: String!, $key: String!) {
    order(id: $id) {
        id
        metafield(namespace: $namespace, key: $key) {
            id
            value
        }
    }
}
"""

METAFIELDS_SET_MUTATION = """
mutation MetafieldsSet($metafields: [MetafieldsSetInput!]!) {
    metafieldsSet(metafields: $metafields) {
        metafields {
            id
            namespace
            key
            value
        }
        userErrors {
            field
            message
        }
    }
}
"""


class ShopifyAPIError(Exception):
    """Error communicating with Shopify API."""

    def __init__(self, message: str, status_code: Optional[int] = None, response: Optional[dict] = None):
        super().__init__(message)
        self.status_code = status_code
        self.response = response


@dataclass
class MetafieldsSetResult:
    """Result of a metafieldsSet mutation."""
    metafields: List[Dict[str, Any]] = field(default_factory=list)
    user_errors: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.user_errors


class ShopifyAdminClient:
    """
    Client for the Shopify Admin GraphQL API, scoped to one shop.

    SECURITY: Access token must never be logged.
    """

    def __init__(self, shop_domain: str, access_token: str, api_version: Optional[str] = None):
        """
        Initialize admin client for a specific shop.

        Args:
            shop_domain: Shopify store domain (e.g., 'mystore.myshopify.com')
            access_token: Admin API access token
            api_version: Admin API version (default: SHOPIFY_API_VERSION env or 2025-04)
        """
        if not shop_domain:
            raise ValueError("shop_domain is required")
        if not access_token:
            raise ValueError("access_token is required")

        self.shop_domain = shop_domain.replace("https://", "").replace("http://", "").rstrip("/")
        self.access_token = access_token
        self.api_version = api_version or os.getenv("SHOPIFY_API_VERSION") or DEFAULT_API_VERSION
        self.graphql_url = f"https://{self.shop_domain}/admin/api/{self.api_version}/graphql.json"

        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(30.0, connect=10.0),
            headers={
                "Content-Type": "application/json",
                "X-Shopify-Access-Token": self.access_token
            }
        )

    async def close(self):
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _execute_graphql(self, query: str, variables: Optional[dict] = None) -> dict:
        """
        Execute a GraphQL query against Shopify Admin API.

        Returns:
            GraphQL response data

        Raises:
            ShopifyAPIError: If the API call fails
        """
        payload = {"query": query}
        if variables:
            payload["variables"] = variables

        try:
            response = await self._client.post(self.graphql_url, json=payload)
        except httpx.TimeoutException as e:
            logger.error("Shopify API timeout", extra={
                "shop_domain": self.shop_domain,
                "error": str(e)
            })
            raise ShopifyAPIError(f"Request timeout: {e}")
        except httpx.RequestError as e:
            logger.error("Shopify API request error", extra={
                "shop_domain": self.shop_domain,
                "error": str(e)
            })
            raise ShopifyAPIError(f"Request error: {e}")

        if response.status_code == 401:
            logger.error("Shopify API authentication failed", extra={
                "shop_domain": self.shop_domain,
                "status_code": response.status_code
            })
            raise ShopifyAPIError(
                "Authentication failed - access token may be invalid or expired",
                status_code=401
            )

        if response.status_code == 429:
            logger.warning("Shopify API rate limited", extra={
                "shop_domain": self.shop_domain
            })
            raise ShopifyAPIError(
                "Rate limited - please retry after a delay",
                status_code=429
            )

        if response.status_code >= 400:
            logger.error("Shopify API error", extra={
                "shop_domain": self.shop_domain,
                "status_code": response.status_code,
                "response_text": response.text[:500]
            })
            raise ShopifyAPIError(
                f"Shopify API error: {response.status_code}",
                status_code=response.status_code
            )

        try:
            result = response.json()
        except ValueError:
            raise ShopifyAPIError("Invalid JSON in Shopify API response", status_code=response.status_code)

        if result.get("errors"):
            logger.error("GraphQL errors", extra={
                "shop_domain": self.shop_domain,
                "errors": result["errors"]
            })
            raise ShopifyAPIError(
                f"GraphQL errors: {result['errors']}",
                response=result
            )

        return result.get("data") or {}

    async def get_order_metafield(self, order_gid: str, namespace: str, key: str) -> Optional[str]:
        """
        Read the raw value of an order metafield.

        Returns:
            The metafield value string, or None if the order has none

        Raises:
            ShopifyAPIError: If the API call fails
        """
        data = await self._execute_graphql(
            ORDER_METAFIELD_QUERY,
            {"id": order_gid, "namespace": namespace, "key": key},
        )
        order = data.get("order") or {}
        metafield = order.get("metafield") or {}
        return metafield.get("value")

    async def set_metafields(self, metafields: List[Dict[str, Any]]) -> MetafieldsSetResult:
        """
        Upsert metafields with a single metafieldsSet mutation.

        Raises:
            ShopifyAPIError: If the API call fails
        """
        data = await self._execute_graphql(METAFIELDS_SET_MUTATION, {"metafields": metafields})
        payload = data.get("metafieldsSet") or {}
        result = MetafieldsSetResult(
            metafields=payload.get("metafields") or [],
            user_errors=payload.get("userErrors") or [],
        )

        if result.user_errors:
            logger.warning("metafieldsSet returned user errors", extra={
                "shop_domain": self.shop_domain,
                "user_errors": result.user_errors
            })
        return result
