"""
Product Matcher - second-level check of extracted products against an intent.

Site filters are lower-bound brackets and are applied best-effort, so the
orchestrator re-checks every candidate against the intent before selecting it.
Numeric attributes use at-least semantics; a product whose attribute could not
be inferred is not rejected on that attribute.

Usage:
    matcher = ProductMatcher({"brand": "samsung", "ram": "6", "price_max": 20000})
    candidates = matcher.filter(products)
    best = rank_results(candidates, "cheapest", matcher.relevance)
"""

import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from rapidfuzz import fuzz

from ..models import Product
from .text_normalizer import (
    extract_number,
    normalize_battery_capacity,
    normalize_price,
    normalize_ram_size,
    normalize_rating,
    normalize_storage_size,
)

logger = logging.getLogger(__name__)

BRAND_ALIASES: Dict[str, List[str]] = {
    "xiaomi": ["xiaomi", "mi", "redmi", "poco"],
    "apple": ["apple", "iphone", "ipad", "macbook"],
    "samsung": ["samsung", "galaxy"],
    "oneplus": ["oneplus", "one plus"],
    "vivo": ["vivo", "iqoo"],
    "oppo": ["oppo"],
    "realme": ["realme", "narzo"],
    "motorola": ["motorola", "moto"],
    "google": ["google", "pixel"],
    "nokia": ["nokia"],
}

NUMERIC_PARSERS = {
    "ram": normalize_ram_size,
    "storage": normalize_storage_size,
    "battery": normalize_battery_capacity,
}


def brand_aliases(brand: str) -> List[str]:
    key = (brand or "").strip().lower()
    for canonical, aliases in BRAND_ALIASES.items():
        if key == canonical or key in aliases:
            return aliases
    return [key] if key else []


def matches_brand(product: Product, brand: str) -> bool:
    aliases = brand_aliases(brand)
    if not aliases:
        return True
    title = product.title.lower()
    if product.attributes.brand and product.attributes.brand.lower() in aliases:
        return True
    return any(f" {alias} " in f" {title} " or title.startswith(alias) for alias in aliases)


def _requested_number(key: str, value: Any) -> Optional[float]:
    parser = NUMERIC_PARSERS.get(key)
    if parser is None:
        return extract_number(str(value))
    text = str(value)
    # Bare numbers ("6", "5000") carry no unit
    return parser(text) if any(c.isalpha() for c in text) else extract_number(text)


def meets_threshold(actual: Optional[float], requested: Optional[float]) -> bool:
    """At-least semantics; unknown actual values pass."""
    if requested is None or actual is None:
        return True
    return actual >= requested


class ProductMatcher:
    """Checks products against an intent's filter map"""

    def __init__(self, filters: Optional[Mapping[str, Any]] = None, query: Optional[str] = None):
        self.filters = dict(filters or {})
        self.query = query

    def mismatches(self, product: Product) -> List[str]:
        """Names of filters the product violates"""
        failed: List[str] = []
        for key, value in self.filters.items():
            if value in (None, ""):
                continue
            if key == "brand":
                if not matches_brand(product, str(value)):
                    failed.append(key)
            elif key in NUMERIC_PARSERS:
                if not meets_threshold(product.attributes.get(key), _requested_number(key, value)):
                    failed.append(key)
            elif key in ("price_max", "max_price"):
                limit = normalize_price(value)
                if product.price_numeric is not None and limit is not None and product.price_numeric > limit:
                    failed.append(key)
            elif key in ("price_min", "min_price"):
                floor = normalize_price(value)
                if product.price_numeric is not None and floor is not None and product.price_numeric < floor:
                    failed.append(key)
            elif key == "rating":
                if not meets_threshold(product.rating, normalize_rating(str(value)) or extract_number(str(value))):
                    failed.append(key)
        return failed

    def matches(self, product: Product) -> bool:
        return not self.mismatches(product)

    def filter(self, products: Iterable[Product]) -> List[Product]:
        kept = []
        for product in products:
            failed = self.mismatches(product)
            if failed:
                logger.debug(f"Rejected '{product.title[:50]}': {', '.join(failed)}")
                continue
            kept.append(product)
        return kept

    def relevance(self, product: Product) -> float:
        """Token-set similarity between the query and the title (0-100)."""
        if not self.query:
            return 100.0
        return float(fuzz.token_set_ratio(self.query.lower(), product.title.lower()))


def rank_results(
    products: List[Product],
    sort: Optional[str] = None,
    relevance: Optional[Callable[[Product], float]] = None,
) -> List[Product]:
    """
    Order candidates for selection.

    ``cheapest``/``price_low`` sorts by price ascending, ``best_rated`` by
    rating then review count. Equal keys are ordered by ``relevance`` (usually
    ``ProductMatcher.relevance``), highest first, then by page order. Products
    missing the sort key keep their page order after the ones that have it.
    Default keeps page order.
    """
    if not sort:
        return list(products)
    score = relevance or (lambda p: 0.0)
    key = sort.lower()
    if key in ("cheapest", "price_low", "price_asc"):
        priced = [p for p in products if p.price_numeric is not None]
        unpriced = [p for p in products if p.price_numeric is None]
        return sorted(priced, key=lambda p: (p.price_numeric, -score(p))) + unpriced
    if key in ("price_high", "price_desc"):
        priced = [p for p in products if p.price_numeric is not None]
        unpriced = [p for p in products if p.price_numeric is None]
        return sorted(priced, key=lambda p: (-p.price_numeric, -score(p))) + unpriced
    if key in ("best_rated", "rating", "top_rated"):
        rated = [p for p in products if p.rating is not None]
        unrated = [p for p in products if p.rating is None]
        return sorted(rated, key=lambda p: (-p.rating, -(p.reviews or 0), -score(p))) + unrated
    return list(products)
