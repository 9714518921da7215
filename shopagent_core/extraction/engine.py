"""
Extraction & Normalization Engine

Turns a search-results DOM snapshot into a canonical ``Product`` list.

1. Container selectors are tried in order; the first selector with at least
   one valid container wins (later selectors are never tried).
2. Each container's link is resolved through a fixed priority chain.
3. The link is normalized (redirect unwrapping, bounded decoding, absolute
   resolution, http(s) validation).
4. Title / price / image / rating / reviews come from ordered selector lists.
5. Products without a title or link, or garbage containers, are dropped.

Nothing is cached: every call re-parses the HTML it is given, so it is safe
to call again after any page mutation.

Usage:
    engine = ExtractionEngine(get_platform_selectors("amazon"))
    products = engine.extract(await page.content(), page.url)
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from bs4 import BeautifulSoup, Tag

from ..dom_selectors import (
    GARBAGE_KEYWORDS,
    SHORT_GARBAGE_KEYWORDS,
    SHORT_GARBAGE_LIMIT,
    PlatformSelectors,
)
from ..models import Availability, Product
from ..strategies import first_match, first_match_named, named
from .attributes import infer_attributes
from .classifier import classify, is_limited_stock
from .dom import attr, first_text, node_text, parse_html, safe_select, safe_select_one, select_first
from .text_normalizer import extract_number, normalize_price, normalize_rating
from .urls import normalize_product_url

logger = logging.getLogger(__name__)

LINK_DATA_ATTRIBUTES = ["data-url", "data-link", "data-href", "data-product-url"]

PRODUCT_PATH_SELECTORS = [
    'a[href*="/dp/"]',
    'a[href*="/gp/product/"]',
    'a[href*="/p/"]',
    'a[href*="/product/"]',
    'a[href*="/products/"]',
    'a[href*="/itm/"]',
    'a[href*="/ip/"]',
]

PRODUCT_PATH_RE = re.compile(
    r"(/dp/|/gp/product/|/p/|/product/|/products/|/itm/|/ip/)|[?&](pid|productId|asin)=",
    re.IGNORECASE,
)

_UNUSABLE_HREF = ("javascript:", "#", "mailto:", "tel:")


def _href(node: Optional[Tag]) -> Optional[str]:
    value = attr(node, "href")
    if not value or value.startswith(_UNUSABLE_HREF):
        return None
    return value


def _closest_anchor(node: Tag) -> Optional[Tag]:
    if node.name == "a":
        return node
    for parent in node.parents:
        if isinstance(parent, Tag) and parent.name == "a":
            return parent
    return node.find("a", href=True)


@dataclass(frozen=True)
class ContainerMatch:
    selector: str
    containers: List[Tag]


class ExtractionEngine:
    """Selector-driven product extraction over an HTML snapshot"""

    def __init__(self, selectors: PlatformSelectors, platform: Optional[str] = None):
        self.selectors = selectors
        self.platform = platform or selectors.platform

    # ------------------------------------------------------------------
    # Container discovery
    # ------------------------------------------------------------------

    def is_garbage(self, container: Tag) -> bool:
        text = node_text(container).lower()
        if any(keyword in text for keyword in GARBAGE_KEYWORDS):
            return True
        if len(text) < SHORT_GARBAGE_LIMIT and any(k in text for k in SHORT_GARBAGE_KEYWORDS):
            # A bare "Sponsored" banner, not a sponsored product card
            return True
        return False

    def is_valid_container(self, container: Tag) -> bool:
        """Has a link, has a title or enough text, and is not page chrome."""
        has_link = container.name == "a" and container.has_attr("href")
        has_link = has_link or container.find("a", href=True) is not None
        has_link = has_link or any(container.has_attr(a) for a in LINK_DATA_ATTRIBUTES)
        if not has_link:
            return False

        has_title = bool(first_text(container, self.selectors.title))
        if not has_title and len(node_text(container)) < self.selectors.min_text_length:
            return False

        return not self.is_garbage(container)

    def find_containers(self, soup: BeautifulSoup) -> Optional[ContainerMatch]:
        """First container selector yielding at least one valid container."""
        def by_selector(selector: str):
            def strategy(root):
                valid = [c for c in safe_select(root, selector) if self.is_valid_container(c)]
                return ContainerMatch(selector=selector, containers=valid) if valid else None
            return named(selector, strategy)

        match = first_match_named([by_selector(s) for s in self.selectors.container], soup)
        if match is None:
            logger.info(f"[{self.platform}] No container selector matched a valid product")
            return None
        logger.debug(f"[{self.platform}] Containers via {match.strategy}: {len(match.value.containers)}")
        return match.value

    # ------------------------------------------------------------------
    # Link resolution
    # ------------------------------------------------------------------

    def _link_strategies(self):
        selectors = self.selectors

        def config_selector(container: Tag):
            for selector in selectors.link:
                for el in safe_select(container, selector):
                    href = _href(el) or _href(_closest_anchor(el))
                    if href:
                        return href
            return None

        def data_attribute(container: Tag):
            for node in [container] + container.find_all(True):
                for name in LINK_DATA_ATTRIBUTES:
                    value = attr(node, name)
                    if value and not value.startswith(_UNUSABLE_HREF):
                        return value
            return None

        def product_path(container: Tag):
            for selector in PRODUCT_PATH_SELECTORS:
                href = _href(safe_select_one(container, selector))
                if href:
                    return href
            return None

        def title_anchor(container: Tag):
            title_node = select_first(container, selectors.title)
            if title_node is None:
                title_node = select_first(container, ["h2", "h3"])
            if title_node is None:
                return None
            return _href(_closest_anchor(title_node))

        def image_anchor(container: Tag):
            for img in container.find_all("img"):
                for parent in img.parents:
                    if parent is container.parent:
                        break
                    if isinstance(parent, Tag) and parent.name == "a":
                        href = _href(parent)
                        if href:
                            return href
            return None

        def product_regex(container: Tag):
            for anchor in container.find_all("a", href=True):
                href = _href(anchor)
                if href and PRODUCT_PATH_RE.search(href):
                    return href
            return None

        def identifier(container: Tag):
            for name, template in selectors.id_attributes.items():
                value = attr(container, name)
                if not value:
                    found = safe_select_one(container, f"[{name}]")
                    value = attr(found, name)
                if value:
                    return template.format(id=value)
            return None

        def first_anchor(container: Tag):
            if container.name == "a":
                return _href(container)
            for anchor in container.find_all("a", href=True):
                href = _href(anchor)
                if href:
                    return href
            return None

        return [
            named("config_selector", config_selector),
            named("data_attribute", data_attribute),
            named("product_path", product_path),
            named("title_anchor", title_anchor),
            named("image_anchor", image_anchor),
            named("product_regex", product_regex),
            named("identifier", identifier),
            named("first_anchor", first_anchor),
        ]

    def resolve_link(self, container: Tag, page_url: Optional[str] = None) -> Tuple[Optional[str], Optional[str]]:
        """
        Resolve and normalize a container's product link.

        Returns:
            (normalized URL or None, name of the winning chain step)
        """
        match = first_match_named(self._link_strategies(), container)
        if match is None:
            return None, None
        return normalize_product_url(match.value, page_url, self.platform), match.strategy

    # ------------------------------------------------------------------
    # Field extraction
    # ------------------------------------------------------------------

    def _title(self, container: Tag) -> str:
        return first_match([
            lambda c: first_text(c, self.selectors.title),
            lambda c: attr(c.find("a", title=True), "title"),
            lambda c: attr(c.find("img", alt=True), "alt"),
        ], container) or ""

    def _image(self, container: Tag) -> Optional[str]:
        img = select_first(container, self.selectors.image)
        if img is None:
            return None
        for name in ("src", "data-src", "data-lazy-src", "srcset"):
            value = attr(img, name)
            if value:
                return value.split(" ")[0]
        return None

    def _rating(self, container: Tag) -> Optional[float]:
        for selector in self.selectors.rating:
            for el in safe_select(container, selector):
                value = normalize_rating(node_text(el) or attr(el, "aria-label"))
                if value is not None:
                    return value
        return None

    def _reviews(self, container: Tag) -> Optional[int]:
        for selector in self.selectors.reviews:
            for el in safe_select(container, selector):
                value = extract_number(node_text(el) or attr(el, "aria-label"))
                if value is not None:
                    return int(value)
        return None

    def build_product(self, container: Tag, page_url: Optional[str] = None) -> Optional[Product]:
        """Product for one container, or None when it must be dropped."""
        if self.is_garbage(container):
            return None

        title = self._title(container)
        if not title:
            return None

        link, step = self.resolve_link(container, page_url)
        if not link:
            logger.debug(f"[{self.platform}] Dropping '{title[:40]}': no recoverable link")
            return None

        price_text = first_text(container, self.selectors.price) or None
        details = " ".join(node_text(el) for s in self.selectors.details for el in safe_select(container, s))
        classification = classify(container, self.platform)

        if classification.out_of_stock:
            availability = Availability.OUT_OF_STOCK
        elif is_limited_stock(container):
            availability = Availability.LIMITED
        elif price_text:
            availability = Availability.IN_STOCK
        else:
            availability = Availability.UNKNOWN

        return Product(
            title=title,
            link=link,
            price_text=price_text,
            price_numeric=normalize_price(price_text),
            image=self._image(container),
            rating=self._rating(container),
            reviews=self._reviews(container),
            attributes=infer_attributes(title, details),
            sponsored=classification.sponsored,
            availability=availability,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def extract_from_soup(self, soup: BeautifulSoup, page_url: Optional[str] = None) -> List[Product]:
        match = self.find_containers(soup)
        if match is None:
            return []

        products: List[Product] = []
        for container in match.containers:
            product = self.build_product(container, page_url)
            if product is not None:
                products.append(product)

        logger.info(
            f"[{self.platform}] Extracted {len(products)}/{len(match.containers)} products "
            f"via {match.selector}"
        )
        return products

    def extract(self, html: str, page_url: Optional[str] = None) -> List[Product]:
        """Products in DOM order; recomputed from scratch on every call."""
        return self.extract_from_soup(parse_html(html), page_url)

    def containers(self, html: str) -> List[Tag]:
        match = self.find_containers(parse_html(html))
        return match.containers if match else []
