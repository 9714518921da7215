"""Tests for intent parsing and the second-level product matcher."""

import dataclasses
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from shopagent_core.exceptions import LLMError
from shopagent_core.extraction.product_matcher import ProductMatcher, brand_aliases, rank_results
from shopagent_core.intent.parser import IntentParser, detect_platform_hint, parse_intent_simple
from shopagent_core.models import Availability, Intent, Product
from shopagent_core.models.product import ProductAttributes


def _gemini_reply(text):
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def _product(title, price=None, rating=None, reviews=None, **attrs):
    return Product(
        title=title,
        link=f"https://shop.example/p/{abs(hash(title))}",
        price_numeric=price,
        rating=rating,
        reviews=reviews,
        attributes=ProductAttributes(**attrs),
        availability=Availability.IN_STOCK,
    )


class TestSimpleIntentParser:
    """Regex parsing of free-text requests."""

    def test_samsung_phone_with_ram_and_battery(self):
        intent = parse_intent_simple("samsung phone with 6gb ram and 5000mah battery")
        assert intent.product_query == "samsung phone"
        assert dict(intent.filters) == {"ram": "6", "battery": "5000", "brand": "samsung"}
        assert intent.action == "buy_now"

    def test_price_ceiling_with_suffix_and_platform(self):
        intent = parse_intent_simple("buy redmi phone under 15k on flipkart")
        assert intent.filters["price_max"] == 15000
        assert intent.filters["brand"] == "redmi"
        assert intent.platform_hint == "flipkart"
        assert intent.product_query == "redmi phone"

    def test_price_floor_and_storage(self):
        intent = parse_intent_simple("laptop with 16gb ram 1tb ssd above 50000")
        assert intent.filters["price_min"] == 50000
        assert intent.filters["storage"] == "1024"
        assert intent.filters["ram"] == "16"

    def test_rating_and_sort(self):
        intent = parse_intent_simple("cheapest 4 star headphones")
        assert intent.filters["rating"] == 4.0
        assert intent.sort == "price_low"

    def test_add_to_cart(self):
        intent = parse_intent_simple("buy boat earbuds and add to cart")
        assert intent.action == "add_to_cart"
        assert intent.product_query == "boat earbuds"

    def test_default_platform(self):
        assert parse_intent_simple("wireless mouse", "amazon").platform_hint == "amazon"
        assert parse_intent_simple("wireless mouse").platform_hint is None

    def test_platform_hint_needs_word_boundary(self):
        assert detect_platform_hint("order from Amazon please") == "amazon"
        assert detect_platform_hint("amazonite bracelet") is None

    def test_empty_query_keeps_raw_text(self):
        assert parse_intent_simple("buy").product_query == "buy"


class TestIntentValue:
    """Intent is immutable once parsed."""

    def test_frozen(self):
        intent = Intent(product_query="phone", filters={"ram": "6"})
        with pytest.raises(dataclasses.FrozenInstanceError):
            intent.product_query = "tablet"
        with pytest.raises(TypeError):
            intent.filters["ram"] = "8"

    def test_to_dict_copies_filters(self):
        intent = Intent(product_query="phone", filters={"ram": "6"})
        data = intent.to_dict()
        data["filters"]["ram"] = "8"
        assert intent.filters["ram"] == "6"


class TestIntentParser:
    """Model-first parsing with fallback."""

    def _client(self, **kwargs):
        client = MagicMock()
        client.available = True
        client.generate_content = AsyncMock(**kwargs)
        return client

    @pytest.mark.asyncio
    async def test_model_answer_is_used(self):
        answer = {
            "product": "samsung phone",
            "platform": "null",
            "filters": {"brand": "Samsung", "ram": "6", "battery": 5000, "color": None},
            "sort": "null",
            "action": "buy_now",
            "quantity": "2",
        }
        client = self._client(return_value=_gemini_reply(f"```json\n{json.dumps(answer)}\n```"))

        intent = await IntentParser(client, default_platform="amazon").parse("samsung phone 6gb 5000mah x2")

        assert intent.product_query == "samsung phone"
        assert dict(intent.filters) == {"brand": "samsung", "ram": "6", "battery": 5000}
        assert intent.platform_hint == "amazon"
        assert intent.sort is None
        assert intent.quantity == 2

    @pytest.mark.asyncio
    async def test_model_error_falls_back(self):
        client = self._client(side_effect=LLMError("quota"))
        intent = await IntentParser(client, default_platform="amazon").parse("samsung phone with 6gb ram")
        assert intent.product_query == "samsung phone"
        assert intent.filters["ram"] == "6"

    @pytest.mark.asyncio
    async def test_answer_without_product_falls_back(self):
        client = self._client(return_value=_gemini_reply('{"product": "", "filters": {}}'))
        intent = await IntentParser(client).parse("redmi phone under 10000")
        assert intent.product_query == "redmi phone"

    @pytest.mark.asyncio
    async def test_unparseable_answer_falls_back(self):
        client = self._client(return_value=_gemini_reply("Sorry, I can't do that."))
        intent = await IntentParser(client).parse("redmi phone")
        assert intent.product_query == "redmi phone"

    @pytest.mark.asyncio
    async def test_unavailable_client_is_not_called(self):
        client = self._client()
        client.available = False
        await IntentParser(client).parse("redmi phone")
        client.generate_content.assert_not_awaited()


class TestProductMatcher:
    """At-least semantics over inferred attributes."""

    FILTERS = {"brand": "samsung", "ram": "6", "battery": "5000", "price_max": 20000}

    def test_matching_product(self):
        product = _product("Samsung Galaxy M34", price=15999, ram=6, battery=6000, brand="samsung")
        assert ProductMatcher(self.FILTERS).matches(product)

    def test_reports_every_violation(self):
        product = _product("Samsung Galaxy M04", price=25999, ram=4, battery=5000, brand="samsung")
        assert ProductMatcher(self.FILTERS).mismatches(product) == ["ram", "price_max"]

    def test_unknown_attributes_pass(self):
        product = _product("Samsung Galaxy Phone", price=None)
        assert ProductMatcher(self.FILTERS).matches(product)

    def test_brand_alias_in_title(self):
        assert ProductMatcher({"brand": "samsung"}).matches(_product("Galaxy M14 5G"))
        assert not ProductMatcher({"brand": "samsung"}).matches(_product("Motorola Edge 40"))
        assert brand_aliases("redmi") == ["xiaomi", "mi", "redmi", "poco"]

    def test_rating_and_price_floor(self):
        matcher = ProductMatcher({"rating": 4, "price_min": 1000})
        assert not matcher.matches(_product("Earbuds", price=1500, rating=3.9))
        assert not matcher.matches(_product("Earbuds", price=500, rating=4.5))
        assert matcher.matches(_product("Earbuds", price=1500, rating=4.0))

    def test_filter_keeps_order(self):
        products = [
            _product("Samsung A", ram=8),
            _product("Samsung B", ram=4),
            _product("Samsung C", ram=6),
        ]
        kept = ProductMatcher({"ram": "6"}).filter(products)
        assert [p.title for p in kept] == ["Samsung A", "Samsung C"]

    def test_relevance(self):
        matcher = ProductMatcher(query="samsung phone")
        assert matcher.relevance(_product("Samsung Galaxy Phone")) > matcher.relevance(_product("Cotton Towel"))
        assert ProductMatcher().relevance(_product("x")) == 100.0


class TestRankResults:
    """Candidate ordering."""

    def test_default_keeps_page_order(self):
        products = [_product("b", price=2), _product("a", price=1)]
        assert rank_results(products) == products

    def test_cheapest_puts_unpriced_last(self):
        products = [_product("x"), _product("y", price=300), _product("z", price=100)]
        assert [p.title for p in rank_results(products, "cheapest")] == ["z", "y", "x"]

    def test_best_rated_breaks_ties_by_reviews(self):
        products = [
            _product("a", rating=4.5, reviews=10),
            _product("b", rating=4.5, reviews=900),
            _product("c", rating=4.7),
            _product("d"),
        ]
        assert [p.title for p in rank_results(products, "best_rated")] == ["c", "b", "a", "d"]

    def test_equal_prices_ordered_by_relevance(self):
        matcher = ProductMatcher(query="samsung phone")
        products = [
            _product("Cotton Towel", price=999),
            _product("Samsung Galaxy M04 Phone", price=999),
            _product("Samsung Galaxy Buds", price=1999),
            _product("Samsung Galaxy A05 Phone", price=500),
        ]
        ranked = rank_results(products, "cheapest", matcher.relevance)
        assert [p.title for p in ranked] == [
            "Samsung Galaxy A05 Phone",
            "Samsung Galaxy M04 Phone",
            "Cotton Towel",
            "Samsung Galaxy Buds",
        ]
        # Without a relevance score, ties keep page order
        assert [p.title for p in rank_results(products, "cheapest")][1:3] == ["Cotton Towel", "Samsung Galaxy M04 Phone"]
