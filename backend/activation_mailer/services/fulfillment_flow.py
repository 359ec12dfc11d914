"""
Batch fulfillment Flow action: shorten every line item of an order and
store the mapping on the order metafield.

Flow sends either structured line item records or the legacy form where
ids, quantities, long URLs and pictures arrive as comma-joined strings.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from activation_mailer.services.line_item_processor import LineItemProcessor
from activation_mailer.services.order_email_errors import OrderEmailError
from activation_mailer.services.order_items import LineItem
from activation_mailer.services.order_metafield_store import OrderMetafieldStore

logger = logging.getLogger(__name__)


def split_flow_list(value: Optional[str]) -> List[str]:
    """Split a comma-joined Flow property, dropping blanks."""
    if not value:
        return []
    return [part.strip() for part in str(value).split(",") if part.strip()]


def parse_legacy_properties(properties: Dict[str, Any]) -> List[LineItem]:
    """
    Build line items from the comma-joined legacy Flow form.

    Raises:
        OrderEmailError(VALIDATION): ids, quantities and URLs differ in length
    """
    ids = split_flow_list(properties.get("lineItemsIDs"))
    quantities = split_flow_list(properties.get("lineItemQuantities"))
    long_urls = split_flow_list(properties.get("lineItemLongUrls"))
    pictures = split_flow_list(properties.get("lineItemsPics"))

    if len(ids) != len(quantities) or len(ids) != len(long_urls):
        logger.error(
            "Line items IDs, quantities and URLs do not match in length",
            extra={"ids": len(ids), "quantities": len(quantities), "long_urls": len(long_urls)},
        )
        raise OrderEmailError.validation(
            "Line items IDs, quantities and URLs do not match in length",
            field="lineItemsIDs",
        )

    return [
        LineItem(
            id=item_id,
            quantity=quantities[i],
            long_url=long_urls[i],
            image=pictures[i] if i < len(pictures) else "",
        )
        for i, item_id in enumerate(ids)
    ]


@dataclass
class FulfillmentFlowRequest:
    order_id: str
    shop_domain: str
    line_items: List[LineItem] = field(default_factory=list)

    @classmethod
    def from_flow(cls, body: Dict[str, Any]) -> "FulfillmentFlowRequest":
        """
        Parse a Flow action body.

        Structured records in properties.lineItems take precedence over
        the legacy comma-joined properties.
        """
        properties = body.get("properties") or {}
        records = properties.get("lineItems")
        if isinstance(records, list) and records:
            line_items = [LineItem.from_dict(r) for r in records if isinstance(r, dict)]
        else:
            line_items = parse_legacy_properties(properties)

        return cls(
            order_id=str(properties.get("orderId") or properties.get("id") or ""),
            shop_domain=body.get("shopify_domain") or body.get("shop_domain") or "",
            line_items=line_items,
        )


@dataclass
class FulfillmentFlowResult:
    success: bool
    saved: bool
    line_items: List[LineItem] = field(default_factory=list)
    order_urls: str = ""

    def to_return_value(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "saved": self.saved,
            "lineItems": [item.to_dict() for item in self.line_items],
            "orderURLs": self.order_urls,
        }


class FulfillmentFlow:
    """Runs the line item processor for a batch and saves the mapping."""

    def __init__(self, processor: LineItemProcessor, metafield_store: OrderMetafieldStore):
        self.processor = processor
        self.metafield_store = metafield_store

    async def process(self, request: FulfillmentFlowRequest) -> FulfillmentFlowResult:
        """
        Raises:
            OrderEmailError(VALIDATION): empty batch or missing order id
        """
        if not request.line_items:
            logger.warning("No line items found in request", extra={"order_id": request.order_id})
            raise OrderEmailError.validation("No line items found in request", field="lineItems")
        if not request.order_id:
            raise OrderEmailError.validation("Missing orderId in request", field="orderId")

        result = await self.processor.process(request.line_items)
        if not result.success:
            return FulfillmentFlowResult(success=False, saved=False, line_items=result.line_items)

        mappings = result.to_mappings()
        if not mappings:
            logger.warning("No short URLs generated for batch", extra={"order_id": request.order_id})
            return FulfillmentFlowResult(success=True, saved=False, line_items=result.line_items)

        saved = await self.metafield_store.save(request.shop_domain, request.order_id, mappings)
        if not saved.save_success:
            logger.warning(
                "Failed to save short URL mapping as order metafield",
                extra={"order_id": request.order_id, "error": saved.error},
            )

        return FulfillmentFlowResult(
            success=True,
            saved=saved.save_success,
            line_items=result.line_items,
            order_urls=saved.order_urls,
        )
