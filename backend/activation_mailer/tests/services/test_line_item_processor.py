"""
Tests for the line item processor.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from activation_mailer.integrations.myoncare.client import UrlShortenerClient
from activation_mailer.services.line_item_processor import LineItemProcessingResult, LineItemProcessor
from activation_mailer.services.order_items import LineItem, ShortUrlMapping


@pytest.fixture
def shortener():
    mock = MagicMock(spec=UrlShortenerClient)
    mock.shorten = AsyncMock(side_effect=lambda url, **kwargs: f"https://myon.link/{url.rsplit('=', 1)[-1]}")
    return mock


@pytest.fixture
def processor(shortener):
    return LineItemProcessor(shortener)


def _items():
    return [
        LineItem(id="11", name="Rücken", quantity=1, long_url="https://app.test/activate?p=back"),
        LineItem(id="12", name="Gutschein", quantity=1, long_url=""),
        LineItem(id="13", name="Knie", quantity=3, long_url="https://app.test/activate?p=knee"),
    ]


class TestLineItemProcessor:

    @pytest.mark.asyncio
    async def test_outputs_index_aligned(self, processor):
        result = await processor.process(_items())

        assert result.success
        assert result.line_item_ids == ["11", "12", "13"]
        assert result.short_urls == ["https://myon.link/back", "", "https://myon.link/knee"]
        assert [item.short_url for item in result.line_items] == result.short_urls

    @pytest.mark.asyncio
    async def test_missing_long_url_skips_shortener(self, processor, shortener):
        await processor.process(_items())

        assert shortener.shorten.await_count == 2
        called_urls = [call.args[0] for call in shortener.shorten.await_args_list]
        assert "" not in called_urls

    @pytest.mark.asyncio
    async def test_quantity_used_as_click_limit(self, processor, shortener):
        await processor.process(_items())
        assert shortener.shorten.await_args_list[1].kwargs["max_clicks_count"] == 3

    @pytest.mark.asyncio
    async def test_failed_shortening_still_counts(self, processor, shortener):
        shortener.shorten.side_effect = ["", "https://myon.link/knee"]
        result = await processor.process(_items())

        assert result.success
        assert result.short_urls == ["", "", "https://myon.link/knee"]

    @pytest.mark.asyncio
    async def test_exception_aborts_with_fallback_item(self, processor, shortener):
        shortener.shorten.side_effect = RuntimeError("boom")
        result = await processor.process(_items())

        assert not result.success
        assert result.short_urls == []
        assert result.line_item_ids == []
        assert len(result.line_items) == 1
        assert result.line_items[0].id == "11"
        assert result.line_items[0].long_url == "https://app.test/activate?p=back"

    @pytest.mark.asyncio
    async def test_empty_input(self, processor):
        result = await processor.process([])
        assert result.success
        assert result.line_items == []

    @pytest.mark.asyncio
    async def test_input_items_not_mutated(self, processor):
        items = _items()
        await processor.process(items)
        assert all(item.short_url == "" for item in items)


class TestProcessingResultMappings:

    def test_mappings_skip_empty_urls(self):
        result = LineItemProcessingResult(
            success=True,
            short_urls=["u11", "", "u13"],
            line_item_ids=["11", "12", "13"],
        )
        assert result.to_mappings() == [ShortUrlMapping("11", "u11"), ShortUrlMapping("13", "u13")]

    def test_length_mismatch_raises(self):
        result = LineItemProcessingResult(success=True, short_urls=["u11"], line_item_ids=["11", "12"])
        with pytest.raises(ValueError):
            result.to_mappings()


class TestLineItem:

    def test_from_dict_accepts_flow_and_snake_case(self):
        camel = LineItem.from_dict({"id": 11, "quantity": "2", "longURL": "https://a", "lineItemPic": "https://p"})
        snake = LineItem.from_dict({"id": "11", "quantity": 2, "long_url": "https://a", "image": "https://p"})
        assert camel == snake
        assert camel.id == "11"

    def test_quantity_normalised(self):
        assert LineItem(id="1", quantity=0).quantity == 1
        assert LineItem(id="1", quantity="x").quantity == 1
