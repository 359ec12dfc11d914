"""
Line item processor: one short URL per purchased line item.

Items are shortened one at a time so that every output list stays
index-aligned with the input. A line item without a long URL keeps an
empty short URL and does not stop the rest of the batch.
"""

import logging
from dataclasses import dataclass, field
from typing import List

from activation_mailer.integrations.myoncare.client import UrlShortenerClient
from activation_mailer.services.order_items import LineItem, ShortUrlMapping

logger = logging.getLogger(__name__)


@dataclass
class LineItemProcessingResult:
    """
    Outcome of shortening a batch.

    success is the count check len(short_urls) == len(input): items whose
    shortening came back empty still count. It turns False only when the
    loop was aborted by an unexpected exception.
    """
    success: bool
    line_items: List[LineItem] = field(default_factory=list)
    short_urls: List[str] = field(default_factory=list)
    line_item_ids: List[str] = field(default_factory=list)

    def to_mappings(self) -> List[ShortUrlMapping]:
        """Pair ids with short URLs, dropping items that got no short URL."""
        if len(self.short_urls) != len(self.line_item_ids):
            raise ValueError("Mismatch between short_urls and line_item_ids")
        return [
            ShortUrlMapping(line_item_id=item_id, short_url=url)
            for item_id, url in zip(self.line_item_ids, self.short_urls)
            if url
        ]


class LineItemProcessor:
    """Maps line items to click-limited short URLs."""

    def __init__(self, shortener: UrlShortenerClient):
        self.shortener = shortener

    async def process(self, line_items: List[LineItem]) -> LineItemProcessingResult:
        short_urls: List[str] = []
        line_item_ids: List[str] = []
        updated: List[LineItem] = []

        try:
            for item in line_items:
                if item.long_url:
                    short_url = await self.shortener.shorten(
                        item.long_url,
                        max_clicks_count=item.quantity,
                        patient_id=item.patient_id,
                        pathway_id=item.pathway_id,
                        task_id=item.task_id,
                    )
                else:
                    logger.warning(
                        "Line item has no long URL, leaving short URL empty",
                        extra={"line_item_id": item.id, "line_item_name": item.name},
                    )
                    short_url = ""

                short_urls.append(short_url)
                line_item_ids.append(item.id)
                updated.append(item.with_short_url(short_url))
                logger.debug(
                    "Short URL generated for line item",
                    extra={"line_item_id": item.id, "has_short_url": bool(short_url)},
                )
        except Exception as e:
            first = line_items[0] if line_items else LineItem(id="")
            logger.error(
                "Error processing line items",
                extra={"line_item_id": first.id, "error": str(e)},
                exc_info=True,
            )
            return LineItemProcessingResult(
                success=False,
                line_items=[LineItem(id=first.id, long_url=first.long_url)],
                short_urls=[],
                line_item_ids=[],
            )

        success = len(short_urls) == len(line_items)
        logger.info(
            "Processed line items",
            extra={
                "count": len(line_items),
                "shortened": sum(1 for url in short_urls if url),
                "success": success,
            },
        )
        return LineItemProcessingResult(
            success=success,
            line_items=updated,
            short_urls=short_urls if success else [],
            line_item_ids=line_item_ids,
        )
