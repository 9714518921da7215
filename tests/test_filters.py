"""Tests for filter discovery, matching, URL building, verification and application."""

from unittest.mock import AsyncMock
from urllib.parse import parse_qs, urlparse

import pytest
from conftest import FakePage, amazon_card, amazon_results_page

from shopagent_core.dom_selectors import get_platform_selectors
from shopagent_core.filters.application import FilterApplier
from shopagent_core.filters.discovery import discover_filters
from shopagent_core.filters.matching import (
    filter_kind_for_label,
    find_group,
    match_element,
    order_filters,
)
from shopagent_core.filters.url_builder import (
    AMAZON_BATTERY_CODES,
    AMAZON_RAM_CODES,
    build_filter_url,
    build_sort_url,
    parse_filter_refinement,
    url_filter_keys,
    validate_filters,
    verify_filters_in_url,
)
from shopagent_core.filters.verifier import (
    count_changed,
    has_applied_filter_affordance,
    url_has_filter_signature,
    verify_filter_application,
)
from shopagent_core.models import FilterElement, FilterGroup, FilterType

AMAZON_SIDEBAR = """
<div id="p_89">
  <span class="a-text-bold">Brands</span>
  <ul>
    <li><a href="/s?k=phone&rh=p_89:Samsung"><span>Samsung</span></a></li>
    <li><a href="/s?k=phone&rh=p_89:Motorola"><span>Motorola</span></a></li>
  </ul>
</div>
<div id="p_n_g-1003495121111">
  <span class="a-text-bold">RAM Size</span>
  <ul>
    <li><a href="/s?rh=ram4"><span>4 GB &amp; Above</span></a></li>
    <li><a href="/s?rh=ram6"><span>6 GB &amp; Above</span></a></li>
    <li><a href="/s?rh=ram8"><span>8 GB &amp; Above</span></a></li>
  </ul>
</div>
<div id="p_n_g-101015098008111">
  <span class="a-text-bold">Battery Capacity</span>
  <ul>
    <li><a href="/s?rh=b4000"><span>4000 mAh &amp; Above</span></a></li>
    <li><a href="/s?rh=b5000"><span>5000 mAh &amp; Above</span></a></li>
  </ul>
</div>
<div id="p_123">
  <span class="a-text-bold">Customer Reviews</span>
  <ul>
    <li><a href="/s?rh=r4" aria-label="4 Stars &amp; Up"><span>4★ &amp; above</span></a></li>
    <li><a href="/s?rh=r3" aria-label="3 Stars &amp; Up"><span>3★ &amp; above</span></a></li>
  </ul>
</div>
<div id="p_36">
  <span class="a-text-bold">Price</span>
  <input type="number" id="low-price" placeholder="Min">
  <input type="number" id="high-price" placeholder="Max">
  <input type="submit" class="a-button-input" value="Go">
</div>
"""


def _shopify_page(cards):
    sidebar = (
        '<div class="facets">'
        '<details id="Details-brand"><summary>Brand</summary><ul>'
        '<li><label for="brand-1">Samsung</label><input type="checkbox" id="brand-1"></li>'
        '<li><label for="brand-2">Motorola</label><input type="checkbox" id="brand-2"></li>'
        '</ul></details>'
        '<details id="Details-ram"><summary>RAM</summary><ul>'
        '<li><label for="ram-4">4 GB</label><input type="checkbox" id="ram-4"></li>'
        '<li><label for="ram-6">6 GB</label><input type="checkbox" id="ram-6"></li>'
        '<li><label for="ram-8">8 GB</label><input type="checkbox" id="ram-8"></li>'
        '</ul></details>'
        '</div>'
    )
    grid = "".join(
        f'<div class="product-card-wrapper"><h3 class="card__heading">'
        f'<a href="/products/{handle}">{title}</a></h3><span class="price">₹12,999</span></div>'
        for handle, title in cards
    )
    return f"<html><body>{sidebar}<div id=\"product-grid\">{grid}</div></body></html>"


SHOPIFY_CARDS = [
    ("galaxy-a15", "Samsung Galaxy A15 6GB RAM 5000mAh"),
    ("galaxy-m14", "Samsung Galaxy M14 4GB RAM 6000mAh"),
    ("moto-g54", "Motorola Moto G54 8GB RAM 6000mAh"),
    ("galaxy-f15", "Samsung Galaxy F15 8GB RAM 6000mAh"),
]


class TestDiscovery:
    """Sidebar scan into filter groups."""

    def test_groups_in_sidebar_order(self):
        groups = discover_filters(amazon_results_page([], AMAZON_SIDEBAR))
        assert [g.label for g in groups] == ["brands", "ram size", "battery capacity", "customer reviews", "price"]

    def test_numeric_metadata(self):
        groups = discover_filters(amazon_results_page([], AMAZON_SIDEBAR))
        ram = find_group(groups, "ram")
        assert [e.numeric_value for e in ram.elements] == [4, 6, 8]
        assert all(e.is_numeric_kind for e in ram.elements)

    def test_rating_elements_flagged(self):
        groups = discover_filters(amazon_results_page([], AMAZON_SIDEBAR))
        reviews = find_group(groups, "rating")
        assert all(e.is_rating for e in reviews.elements)

    def test_range_group(self):
        groups = discover_filters(amazon_results_page([], AMAZON_SIDEBAR))
        price = find_group(groups, "price")
        assert price.type is FilterType.RANGE
        assert price.inputs == ("#low-price", "#high-price")
        assert price.go_button is not None

    def test_label_and_checkbox_are_one_option(self):
        groups = discover_filters(_shopify_page(SHOPIFY_CARDS))
        brand = find_group(groups, "brand")
        assert [e.text for e in brand.elements] == ["Samsung", "Motorola"]

    def test_checked_state_from_wrapped_checkbox(self):
        html = (
            '<div id="filters"><div class="filter-group"><h4>Brand</h4>'
            '<label><input type="checkbox" checked> Samsung</label>'
            '<label><input type="checkbox"> Motorola</label>'
            '</div></div>'
        )
        brand = find_group(discover_filters(html), "brand")
        assert [(e.text, e.checked) for e in brand.elements] == [("Samsung", True), ("Motorola", False)]

    def test_no_sidebar(self):
        assert discover_filters("<html><body><p>plain</p></body></html>") == []


class TestMatching:
    """Requested filter -> group -> element."""

    def _ram_group(self, values):
        return FilterGroup(
            label="ram",
            elements=[
                FilterElement(text=f"{v} GB & Above", selector=f"#ram-{v}", is_numeric_kind=True, numeric_value=v)
                for v in values
            ],
        )

    def test_label_synonyms(self):
        assert filter_kind_for_label("Internal Memory") == "ram"
        assert filter_kind_for_label("Battery Capacity (mAh)") == "battery"
        assert filter_kind_for_label("Avg. Customer Review") == "rating"
        assert filter_kind_for_label("Something Else") is None

    def test_at_least_semantics_picks_smallest_qualifying(self):
        group = self._ram_group([4, 6, 8, 12])
        assert match_element(group, "ram", "6").numeric_value == 6
        assert match_element(group, "ram", "7").numeric_value == 8

    def test_every_match_satisfies_request(self):
        group = self._ram_group([2, 3, 4, 6, 8, 12, 16])
        for wanted in (1, 3, 5, 6, 9, 16):
            element = match_element(group, "ram", str(wanted))
            assert element.numeric_value >= wanted

    def test_no_bracket_high_enough(self):
        assert match_element(self._ram_group([4, 6]), "ram", "16") is None

    def test_text_fallback_without_numeric_metadata(self):
        group = FilterGroup(label="ram", elements=[FilterElement(text="6 GB", selector="#a")])
        assert match_element(group, "ram", "6 gb").selector == "#a"

    def test_fuzzy_group_label(self):
        groups = [
            FilterGroup(label="brand", elements=[FilterElement(text="Samsung", selector="#b")]),
            FilterGroup(label="colours", elements=[FilterElement(text="Blue", selector="#c")]),
        ]
        assert find_group(groups, "color").label == "colours"
        assert find_group(groups, "battery") is None

    def test_text_options_tolerate_typos(self):
        group = FilterGroup(label="brand", elements=[
            FilterElement(text="Motorola", selector="#m"),
            FilterElement(text="Samsung", selector="#s"),
        ])
        assert match_element(group, "brand", "samsnug").selector == "#s"
        assert match_element(group, "brand", "nokia") is None

    def test_containment_preferred_over_fuzzy(self):
        group = FilterGroup(label="brand", elements=[
            FilterElement(text="Realm", selector="#realm"),
            FilterElement(text="Realme Narzo", selector="#realme"),
        ])
        assert match_element(group, "brand", "realme").selector == "#realme"

    def test_numeric_text_is_never_fuzzy(self):
        group = FilterGroup(label="ram", elements=[FilterElement(text="32 GB", selector="#a")])
        assert match_element(group, "ram", "12 gb") is None

    def test_rating_bracket(self):
        group = FilterGroup(label="customer reviews", elements=[
            FilterElement(text="4★ & above", selector="#r4", is_rating=True),
            FilterElement(text="3★ & above", selector="#r3", is_rating=True),
        ])
        assert match_element(group, "rating", 4.0).selector == "#r4"
        assert match_element(group, "rating", 3).selector == "#r3"

    def test_brand_substring(self):
        group = FilterGroup(label="brands", elements=[
            FilterElement(text="Motorola", selector="#m"),
            FilterElement(text="SAMSUNG (1,204)", selector="#s"),
        ])
        assert match_element(group, "brand", "samsung").selector == "#s"

    def test_brand_first(self):
        ordered = order_filters({"ram": "6", "battery": "5000", "brand": "samsung", "color": ""})
        assert ordered == [("brand", "samsung"), ("ram", "6"), ("battery", "5000")]

    def test_unknown_group(self):
        assert find_group([FilterGroup(label="colour")], "ram") is None


class TestUrlBuilder:
    """URL-parameter filters."""

    def test_amazon_refinement(self):
        url = build_filter_url(
            "amazon",
            "https://www.amazon.in/s?k=phone",
            {"brand": "samsung", "ram": "6", "battery": "5000", "price_max": 20000.0},
        )
        parsed = parse_filter_refinement(url)
        assert parsed["p_89"] == ["Samsung"]
        assert parsed["p_36"] == ["-2000000"]
        assert parsed["p_n_g-1003495121111"] == [AMAZON_RAM_CODES[v] for v in (6, 8, 12, 16, 32)]
        assert parsed["p_n_g-101015098008111"] == [AMAZON_BATTERY_CODES[v] for v in (5000, 6000, 7000)]
        assert parse_qs(urlparse(url).query)["k"] == ["phone"]

    def test_amazon_codes_are_at_least(self):
        url = build_filter_url("amazon", "https://www.amazon.in/s?k=phone", {"ram": "7"})
        codes = parse_filter_refinement(url)["p_n_g-1003495121111"]
        assert AMAZON_RAM_CODES[6] not in codes
        assert AMAZON_RAM_CODES[8] in codes

    def test_no_mappable_filter(self):
        assert build_filter_url("amazon", "https://www.amazon.in/s?k=phone", {"ram": "64"}) is None
        assert build_filter_url("shopify", "https://shop.example/search?q=x", {"ram": "6"}) is None

    def test_flipkart_facets(self):
        url = build_filter_url("flipkart", "https://www.flipkart.com/search?q=phone", {"brand": "samsung", "ram": "6"})
        facets = parse_qs(urlparse(url).query)["p[]"]
        assert "facets.brand[]=SAMSUNG" in facets
        assert "facets.ram[]=6 GB & Above" in facets

    def test_sort_url(self):
        url = build_sort_url("amazon", "https://www.amazon.in/s?k=phone", "cheapest")
        assert parse_qs(urlparse(url).query)["s"] == ["price-asc-rank"]
        assert build_sort_url("amazon", "https://www.amazon.in/s?k=phone", "weird") is None

    def test_verify_filters_in_url(self):
        url = build_filter_url("amazon", "https://www.amazon.in/s?k=phone", {"ram": "6"})
        assert verify_filters_in_url(url, {"ram": "6"})["missing"] == []
        assert verify_filters_in_url(url, {"ram": "6", "battery": "5000"})["missing"] == ["p_n_g-101015098008111"]

    def test_validate_filters(self):
        assert validate_filters({"price_min": 5000, "price_max": 1000})
        assert validate_filters({"rating": 7})
        assert validate_filters({"ram": "6", "price_max": 20000}) == []


class TestVerifier:
    """Side-effect signals."""

    def test_url_signatures(self):
        assert url_has_filter_signature("flipkart", "https://www.flipkart.com/search?q=x&p%5B%5D=facets.ram")
        assert url_has_filter_signature("shopify", "https://shop.example/collections/all?filter.v.price.lte=100")
        assert not url_has_filter_signature("amazon", "https://www.amazon.in/s?k=phone")

    def test_count_changed(self):
        assert count_changed(24, 10)
        assert not count_changed(24, 24)
        assert not count_changed(24, 0)
        assert not count_changed(None, 3)

    def test_dom_affordance(self):
        assert has_applied_filter_affordance('<div id="applied-filters">Clear</div>', "amazon")
        assert not has_applied_filter_affordance("<div>nothing</div>", "amazon")

    def test_any_signal_is_enough(self):
        result = verify_filter_application(
            "shopify", "https://shop.example/search?q=x", "<html></html>", count_before=20, count_after=8,
        )
        assert result.verified
        assert result.confidence == 30
        assert result.checks == {"url": False, "count": True, "dom": False}

    def test_no_signal(self):
        result = verify_filter_application("shopify", "https://shop.example/search?q=x", "<html></html>", count_before=5, count_after=5)
        assert not result.verified
        assert result.confidence == 0


class TestFilterApplier:
    """Applying filters to a (fake) live page."""

    @pytest.mark.asyncio
    async def test_amazon_url_method(self, test_config):
        full = amazon_results_page([amazon_card(f"B0{i}", f"Samsung Galaxy M{i} (6GB RAM) 6000mAh") for i in range(6)])
        filtered = amazon_results_page([amazon_card(f"B0{i}", f"Samsung Galaxy M{i} (6GB RAM) 6000mAh") for i in range(2)])
        page = FakePage(
            "https://www.amazon.in/s?k=samsung+phone",
            full,
            router=lambda url: filtered if "rh=" in url else full,
        )
        applier = FilterApplier(page, get_platform_selectors("amazon"), config=test_config)

        outcome = await applier.apply({"brand": "samsung", "ram": "6", "battery": "5000"})

        assert outcome.success
        assert outcome.method == "url"
        assert outcome.applied == ["brand", "ram", "battery"]
        assert outcome.verification.checks["url"]
        assert outcome.verification.checks["count"]
        assert "rh=" in page.url

    @pytest.mark.asyncio
    async def test_keys_without_url_parameter_are_clicked(self, test_config):
        colour_sidebar = (
            '<div id="p_n_feature_twenty_browse-bin">'
            '<span class="a-text-bold">Colour</span><ul>'
            '<li><a href="/s?k=phone&colour=blue"><span>Blue</span></a></li>'
            '<li><a href="/s?k=phone&colour=black"><span>Black</span></a></li>'
            '</ul></div>'
        )
        cards = [amazon_card(f"B0{i}", f"Samsung Galaxy M{i} (6GB RAM) 6000mAh") for i in range(6)]
        full = amazon_results_page(cards, colour_sidebar)
        filtered = amazon_results_page(cards[:3], colour_sidebar)
        page = FakePage(
            "https://www.amazon.in/s?k=samsung+phone",
            full,
            router=lambda url: filtered if "rh=" in url else full,
        )

        async def click(selector, timeout=None):
            page.clicked.append(selector)
            page.html = amazon_results_page(cards[:1], colour_sidebar)

        page.click = AsyncMock(side_effect=click)
        applier = FilterApplier(page, get_platform_selectors("amazon"), config=test_config)

        outcome = await applier.apply({"ram": "6", "color": "blue"})

        assert outcome.method == "url"
        assert outcome.applied == ["ram", "color"]
        assert outcome.skipped == []
        assert list(parse_filter_refinement(page.url)) == ["p_n_g-1003495121111"]
        assert len(page.clicked) == 1

    @pytest.mark.asyncio
    async def test_url_report_lists_only_encoded_keys(self, test_config):
        cards = [amazon_card(f"B0{i}", f"Samsung Galaxy M{i} (6GB RAM) 6000mAh") for i in range(6)]
        full = amazon_results_page(cards)
        filtered = amazon_results_page(cards[:2])
        page = FakePage(
            "https://www.amazon.in/s?k=samsung+phone",
            full,
            router=lambda url: filtered if "rh=" in url else full,
        )
        applier = FilterApplier(page, get_platform_selectors("amazon"), config=test_config)

        outcome = await applier.apply({"ram": "6", "color": "blue"})

        assert outcome.success
        assert outcome.applied == ["ram"]
        assert outcome.skipped == ["color"]

    def test_url_filter_keys(self):
        assert url_filter_keys("amazon", {"ram": "6", "color": "blue", "price_max": 20000}) == ["ram", "price_max"]
        assert url_filter_keys("amazon", {"ram": "64"}) == []
        assert url_filter_keys("flipkart", {"brand": "redmi", "storage": "128"}) == ["brand"]
        assert url_filter_keys("shopify", {"brand": "samsung"}) == []

    @pytest.mark.asyncio
    async def test_dom_method_clicks_and_rediscovers(self, test_config):
        pages = [
            _shopify_page(SHOPIFY_CARDS),
            _shopify_page([c for c in SHOPIFY_CARDS if c[1].startswith("Samsung")]),
            _shopify_page([SHOPIFY_CARDS[0], SHOPIFY_CARDS[3]]),
        ]
        page = FakePage("https://shop.example/search?q=phone", pages[0])

        async def click(selector, timeout=None):
            page.clicked.append(selector)
            page.html = pages[len(page.clicked)]

        page.click = AsyncMock(side_effect=click)
        applier = FilterApplier(page, get_platform_selectors("shopify"), config=test_config)

        outcome = await applier.apply({"ram": "6", "brand": "samsung"})

        assert outcome.success
        assert outcome.method == "dom"
        assert outcome.applied == ["brand", "ram"]
        assert outcome.skipped == []
        assert len(page.clicked) == 2

    @pytest.mark.asyncio
    async def test_click_without_effect_is_abandoned(self, test_config):
        page = FakePage("https://shop.example/search?q=phone", _shopify_page(SHOPIFY_CARDS))
        applier = FilterApplier(page, get_platform_selectors("shopify"), config=test_config)

        outcome = await applier.apply({"brand": "samsung"})

        assert not outcome.success
        assert outcome.skipped == ["brand"]
        page.dispatch_event.assert_awaited()

    @pytest.mark.asyncio
    async def test_unknown_filter_group_is_skipped(self, test_config):
        page = FakePage("https://shop.example/search?q=phone", _shopify_page(SHOPIFY_CARDS))
        applier = FilterApplier(page, get_platform_selectors("shopify"), config=test_config)

        outcome = await applier.apply({"color": "blue"})

        assert outcome.skipped == ["color"]
        assert page.clicked == []

    @pytest.mark.asyncio
    async def test_empty_filters(self, test_config):
        page = FakePage("https://shop.example/", "")
        outcome = await FilterApplier(page, get_platform_selectors("shopify"), config=test_config).apply({})
        assert outcome.success
        assert outcome.method is None
