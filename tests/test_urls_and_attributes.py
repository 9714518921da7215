"""Tests for link normalization, title attribute inference and text normalization."""

import pytest

from shopagent_core.extraction.attributes import (
    infer_attributes,
    infer_battery,
    infer_brand,
    infer_ram,
    infer_storage,
)
from shopagent_core.extraction.text_normalizer import (
    extract_number,
    fuzzy_match,
    normalize_battery_capacity,
    normalize_filter_text,
    normalize_price,
    normalize_ram_size,
    normalize_rating,
    normalize_storage_size,
)
from shopagent_core.extraction.urls import (
    decode_repeatedly,
    is_absolute_http_url,
    normalize_product_url,
    unwrap_redirect,
)


class TestNormalizeProductUrl:
    """Redirect unwrapping, decoding and absolute resolution."""

    def test_google_style_redirect(self):
        href = "https://www.google.com/url?url=https%3A%2F%2Fsite.com%2Fp%2F123"
        assert normalize_product_url(href) == "https://site.com/p/123"

    def test_amazon_sponsored_click_wrapper(self):
        href = "/sspa/click?ie=UTF8&spc=abc&url=%2Fdp%2FB0C1234567%2Fref%3Dsr_1"
        result = normalize_product_url(href, "https://www.amazon.in/s?k=phone", "amazon")
        assert result == "https://www.amazon.in/dp/B0C1234567/ref=sr_1"

    def test_relative_link_uses_page_origin(self):
        assert normalize_product_url("/p/itm123?pid=X", "https://www.flipkart.com/search?q=x") == \
            "https://www.flipkart.com/p/itm123?pid=X"

    def test_relative_link_falls_back_to_platform_origin(self):
        assert normalize_product_url("/dp/B0C1", platform="amazon") == "https://www.amazon.in/dp/B0C1"

    def test_protocol_relative(self):
        assert normalize_product_url("//cdn.shop.com/products/x") == "https://cdn.shop.com/products/x"

    def test_duplicate_slashes_collapsed(self):
        assert normalize_product_url("https://shop.com//products///x") == "https://shop.com/products/x"

    @pytest.mark.parametrize("href", [None, "", "   ", "javascript:void(0)", "#", "mailto:a@b.c"])
    def test_unusable_hrefs(self, href):
        assert normalize_product_url(href, "https://shop.com/") is None

    def test_relative_without_any_origin(self):
        assert normalize_product_url("/products/x") is None

    def test_output_is_always_absolute_http(self):
        for href in ["/dp/B0", "https://a.com/x", "//b.com/y"]:
            assert is_absolute_http_url(normalize_product_url(href, platform="amazon"))


class TestDecoding:
    """Bounded percent-decoding."""

    def test_double_encoded(self):
        assert decode_repeatedly("https%253A%252F%252Fa.com") == "https://a.com"

    def test_bounded_iterations(self):
        value = "%25252525"
        assert decode_repeatedly(value, max_iterations=1) == "%252525"

    def test_unwrap_without_query_is_identity(self):
        assert unwrap_redirect("https://a.com/p/1") == "https://a.com/p/1"


class TestAttributeInference:
    """Numeric attributes from product titles."""

    def test_full_phone_title(self):
        attrs = infer_attributes("Samsung Galaxy M34 5G (6GB RAM, 128GB Storage) 6000mAh Battery")
        assert attrs.ram == 6
        assert attrs.storage == 128
        assert attrs.battery == 6000
        assert attrs.brand == "samsung"

    def test_paired_capacity(self):
        attrs = infer_attributes("Redmi 13C (8GB/256GB) Starfrost White")
        assert attrs.ram == 8
        assert attrs.storage == 256
        assert attrs.brand == "redmi"

    def test_missing_attributes_are_none(self):
        attrs = infer_attributes("Wireless Earbuds with Charging Case")
        assert attrs.ram is None
        assert attrs.storage is None
        assert attrs.battery is None
        assert attrs.brand is None

    def test_extra_text_fills_gaps_only(self):
        attrs = infer_attributes("Moto G54 5G", "8 GB RAM | 128 GB ROM | 6000 mAh Battery")
        assert attrs.ram == 8
        assert attrs.storage == 128
        assert attrs.battery == 6000
        assert attrs.brand == "motorola"

    def test_battery_with_thousands_separator(self):
        assert infer_battery("Big 5,000 mAh cell") == 5000

    def test_terabyte_storage(self):
        assert infer_storage("Laptop 16GB RAM 1TB SSD") == 1024

    def test_ram_memory_keyword(self):
        assert infer_ram("RAM: 12 GB") == 12

    def test_brand_alias(self):
        assert infer_brand("Apple iPhone 15 (128 GB)") == "apple"
        assert infer_brand("iPhone 13 mini") == "apple"


class TestTextNormalizer:
    """Filter labels, capacities, ratings and prices."""

    def test_filter_text(self):
        assert normalize_filter_text("  RAM (1,204) ") == "ram"
        assert normalize_filter_text("Avg. Customer  Review") == "avg. customer review"

    def test_capacities(self):
        assert normalize_ram_size("6 GB & Above") == 6
        assert normalize_ram_size("512 MB") == 0.5
        assert normalize_storage_size("1 TB") == 1024
        assert normalize_battery_capacity("5,000 mAh & Above") == 5000

    def test_rating(self):
        assert normalize_rating("4★ & above") == 4
        assert normalize_rating("4.2 out of 5 stars") == 4.2

    def test_prices(self):
        assert normalize_price("₹12,499") == 12499
        assert normalize_price("20k") == 20000
        assert normalize_price("from $19.99") == 19.99
        assert normalize_price(1500) == 1500
        assert normalize_price("free") is None

    def test_extract_number(self):
        assert extract_number("1,23,456 results") == 123456
        assert extract_number("none") is None

    def test_fuzzy_match(self):
        assert fuzzy_match("Samsung", "samsung galaxy")
        assert fuzzy_match("Samsung", "samsnug")
        assert not fuzzy_match("Samsung", "Motorola")
        assert not fuzzy_match("", "x")
        assert fuzzy_match("Colour", "Colours", substring=False)
        assert not fuzzy_match("Samsung", "samsung galaxy", substring=False)
        # Two-letter options never match by containment
        assert not fuzzy_match("mi", "samsung mini")
