"""
Order metafield store for activation short URLs.

Persists the lineItemId -> shortUrl mapping of an order as a JSON array
on the order metafield myoncare/orderurls.

Merge policy: an incoming entry replaces any stored entry with the same
lineItemId. Incoming entries are deduplicated first (last one wins) and
the stored array is always sorted by lineItemId.

Saving is best-effort: every failure is reported as save_success=False
so the confirmation email can still go out.
"""

import json
import logging
import os
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Tuple, Union

from activation_mailer.integrations.shopify.admin_client import ShopifyAdminClient, ShopifyAPIError
from activation_mailer.models.order import order_gid
from activation_mailer.services.order_items import ShortUrlMapping

logger = logging.getLogger(__name__)

METAFIELD_NAMESPACE = "myoncare"
METAFIELD_KEY = "orderurls"
METAFIELD_TYPE = "json"


@dataclass
class MetafieldSaveResult:
    """Outcome of a metafield save."""
    save_success: bool
    order_urls: str = ""
    error: Optional[str] = None


def _sort_key(mapping: ShortUrlMapping) -> Tuple[int, int, str]:
    # Numeric Shopify ids sort numerically, anything else after them
    if mapping.line_item_id.isascii() and mapping.line_item_id.isdigit():
        return (0, int(mapping.line_item_id), "")
    return (1, 0, mapping.line_item_id)


def parse_mappings(raw: Optional[str]) -> List[ShortUrlMapping]:
    """Parse a stored metafield value; anything unreadable counts as empty."""
    if not raw:
        return []
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Existing orderurls metafield is not valid JSON, ignoring it")
        return []
    if not isinstance(data, list):
        return []

    mappings = []
    for entry in data:
        if isinstance(entry, dict):
            mapping = ShortUrlMapping.from_dict(entry)
            if mapping is not None:
                mappings.append(mapping)
    return mappings


def merge_mappings(
    existing: Iterable[ShortUrlMapping],
    new_entries: Iterable[ShortUrlMapping],
) -> List[ShortUrlMapping]:
    """Merge new entries over existing ones, keyed by lineItemId, sorted."""
    merged = {}
    for mapping in existing:
        merged[mapping.line_item_id] = mapping
    for mapping in new_entries:
        merged[mapping.line_item_id] = mapping
    return sorted(merged.values(), key=_sort_key)


def serialize_mappings(mappings: Iterable[ShortUrlMapping]) -> str:
    return json.dumps([m.to_dict() for m in mappings])


class OrderMetafieldStore:
    """Reads, merges and writes the orderurls metafield of an order."""

    def __init__(
        self,
        access_token: Optional[str] = None,
        api_version: Optional[str] = None,
        client_factory: Callable[..., ShopifyAdminClient] = ShopifyAdminClient,
    ):
        """
        Args:
            access_token: Admin API token (default: from SHOPIFY_ADMIN_TOKEN env)
            api_version: Admin API version override
            client_factory: Builds a ShopifyAdminClient(shop_domain, access_token, api_version)
        """
        self.access_token = access_token or os.getenv("SHOPIFY_ADMIN_TOKEN")
        self.api_version = api_version
        self._client_factory = client_factory

    async def save(
        self,
        shop_domain: str,
        order_id: str,
        new_entries: List[Union[ShortUrlMapping, dict]],
        access_token: Optional[str] = None,
    ) -> MetafieldSaveResult:
        """
        Merge new_entries into the order's stored mapping and write it back.

        Args:
            shop_domain: Shop domain (mystore.myshopify.com)
            order_id: Numeric order id or Order GID
            new_entries: ShortUrlMapping objects or {lineItemId, shortUrl} dicts
            access_token: Per-shop Admin API token; falls back to the store default

        Returns:
            MetafieldSaveResult; never raises
        """
        token = access_token or self.access_token
        if not token:
            logger.error("SHOPIFY_ADMIN_TOKEN environment variable is not set")
            return MetafieldSaveResult(save_success=False, error="missing_access_token")
        if not shop_domain:
            logger.error("Cannot save order metafield without shop domain", extra={"order_id": order_id})
            return MetafieldSaveResult(save_success=False, error="missing_shop_domain")

        entries = []
        for entry in new_entries:
            mapping = entry if isinstance(entry, ShortUrlMapping) else ShortUrlMapping.from_dict(entry)
            if mapping is not None:
                entries.append(mapping)

        owner_id = order_gid(order_id)

        try:
            async with self._client_factory(shop_domain, token, self.api_version) as client:
                existing_raw = await client.get_order_metafield(owner_id, METAFIELD_NAMESPACE, METAFIELD_KEY)
                merged = merge_mappings(parse_mappings(existing_raw), entries)
                value = serialize_mappings(merged)

                logger.debug(
                    "Saving order metafield with short URLs",
                    extra={"order_id": order_id, "entry_count": len(merged)},
                )
                result = await client.set_metafields([
                    {
                        "ownerId": owner_id,
                        "namespace": METAFIELD_NAMESPACE,
                        "key": METAFIELD_KEY,
                        "type": METAFIELD_TYPE,
                        "value": value,
                    }
                ])
        except ShopifyAPIError as e:
            logger.warning(
                "Failed to save order metafield",
                extra={"order_id": order_id, "shop_domain": shop_domain, "error": str(e)},
            )
            return MetafieldSaveResult(save_success=False, error=str(e))

        if not result.success:
            return MetafieldSaveResult(
                save_success=False,
                error="; ".join(str(e.get("message", "")) for e in result.user_errors),
            )

        logger.info(
            "Successfully saved order metafield with short URLs",
            extra={"order_id": order_id, "entry_count": len(merged)},
        )
        return MetafieldSaveResult(save_success=True, order_urls=value)
