"""
URL-parameter filter building.

Platforms that expose filters as query parameters are filtered by navigating
to a built URL instead of clicking the sidebar. Everything here is pure.

Amazon encodes refinements in the ``rh`` parameter:
``rh=p_36:1000000-2000000,p_123:46655,p_n_g-1003495121111:44897287031|44897288031``

Usage:
    url = build_filter_url("amazon", page.url, {"ram": "6", "battery": "5000"})
    parse_filter_refinement(url)   # {'p_n_g-...': ['...', ...], ...}
"""

import logging
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import parse_qs, quote, urlencode, urlparse, urlunparse

from ..extraction.text_normalizer import (
    extract_number,
    normalize_battery_capacity,
    normalize_price,
    normalize_ram_size,
    normalize_storage_size,
)

logger = logging.getLogger(__name__)

# =========================================================================
# Amazon refinement codes
# =========================================================================

AMAZON_FILTER_IDS = {
    "price": "p_36",
    "rating": "p_123",
    "battery": "p_n_g-101015098008111",
    "ram": "p_n_g-1003495121111",
    "storage": "p_n_g-1003492455111",
    "brand": "p_89",
    "condition": "p_n_condition-type",
}

AMAZON_RATING_CODES = {4: "46655", 3: "46654", 2: "46653", 1: "46652"}

AMAZON_RAM_CODES = {
    2: "44897277031",
    3: "44897278031",
    4: "44897279031",
    6: "44897287031",
    8: "44897288031",
    12: "44897289031",
    16: "44897290031",
    32: "44897291031",
}

AMAZON_BATTERY_CODES = {
    3000: "91805324031",
    4000: "91805325031",
    5000: "91805326031",
    6000: "92071917031",
    7000: "92071918031",
}

AMAZON_STORAGE_CODES = {
    32: "44349045031",
    64: "44349046031",
    128: "44349047031",
    256: "44349048031",
    512: "44349049031",
    1024: "44349050031",
}

AMAZON_CONDITION_CODES = {"new": "2224371031", "renewed": "8609959031", "used": "1270070031"}

# Order of components inside rh
AMAZON_RH_ORDER = ["price", "rating", "battery", "ram", "storage", "brand", "condition"]

SORT_VALUES: Dict[str, Dict[str, str]] = {
    "amazon": {
        "relevance": "relevanceblender",
        "price_low": "price-asc-rank",
        "price_high": "price-desc-rank",
        "rating": "review-rank",
        "newest": "date-desc-rank",
    },
    "flipkart": {
        "relevance": "relevance",
        "price_low": "price_asc",
        "price_high": "price_desc",
        "rating": "popularity",
        "newest": "recency_desc",
    },
    "shopify": {
        "relevance": "relevance",
        "price_low": "price-ascending",
        "price_high": "price-descending",
        "rating": "best-selling",
        "newest": "created-descending",
    },
}

SORT_PARAMS = {"amazon": "s", "flipkart": "sort", "shopify": "sort_by"}

SORT_ALIASES = {
    "cheapest": "price_low",
    "price_asc": "price_low",
    "lowest_price": "price_low",
    "price_desc": "price_high",
    "expensive": "price_high",
    "best_rated": "rating",
    "top_rated": "rating",
    "popularity": "rating",
    "latest": "newest",
}


def normalize_sort(sort: Optional[str]) -> Optional[str]:
    if not sort:
        return None
    key = sort.strip().lower().replace("-", "_").replace(" ", "_")
    return SORT_ALIASES.get(key, key)


def _gte_codes(codes: Mapping[int, str], requested: Optional[float]) -> List[str]:
    """Codes for every bracket at or above the request (at-least semantics)."""
    if requested is None:
        return []
    return [code for value, code in sorted(codes.items()) if value >= requested]


def _number(value: Any, parser) -> Optional[float]:
    text = str(value)
    return parser(text) if any(c.isalpha() for c in text) else extract_number(text)


def amazon_refinements(filters: Mapping[str, Any]) -> Dict[str, str]:
    """Map an intent filter dict onto rh components keyed by filter kind."""
    parts: Dict[str, str] = {}

    price_min = normalize_price(filters.get("price_min")) if filters.get("price_min") else None
    price_max = normalize_price(filters.get("price_max")) if filters.get("price_max") else None
    if price_min is not None or price_max is not None:
        # Amazon prices are in paise
        low = str(int(price_min * 100)) if price_min is not None else ""
        high = str(int(price_max * 100)) if price_max is not None else ""
        parts["price"] = f"{AMAZON_FILTER_IDS['price']}:{low}-{high}"

    if filters.get("rating"):
        rating = extract_number(str(filters["rating"]))
        if rating is not None:
            code = AMAZON_RATING_CODES.get(max(1, min(4, int(rating))))
            parts["rating"] = f"{AMAZON_FILTER_IDS['rating']}:{code}"

    numeric = [
        ("battery", AMAZON_BATTERY_CODES, normalize_battery_capacity),
        ("ram", AMAZON_RAM_CODES, normalize_ram_size),
        ("storage", AMAZON_STORAGE_CODES, normalize_storage_size),
    ]
    for key, codes, parser in numeric:
        if not filters.get(key):
            continue
        selected = _gte_codes(codes, _number(filters[key], parser))
        if selected:
            parts[key] = f"{AMAZON_FILTER_IDS[key]}:{'|'.join(selected)}"
        else:
            logger.debug(f"No Amazon code at or above {key}={filters[key]}")

    if filters.get("brand"):
        parts["brand"] = f"{AMAZON_FILTER_IDS['brand']}:{str(filters['brand']).strip().title()}"

    if filters.get("condition"):
        code = AMAZON_CONDITION_CODES.get(str(filters["condition"]).lower())
        if code:
            parts["condition"] = f"{AMAZON_FILTER_IDS['condition']}:{code}"

    return parts


def _replace_query(url: str, updates: Mapping[str, Any], safe: str = "") -> str:
    parsed = urlparse(url)
    query = parse_qs(parsed.query, keep_blank_values=True)
    for key, value in updates.items():
        query[key] = value if isinstance(value, list) else [value]
    encoded = urlencode(query, doseq=True, quote_via=quote, safe=safe)
    return urlunparse(parsed._replace(query=encoded))


def build_amazon_filter_url(current_url: str, filters: Mapping[str, Any]) -> Optional[str]:
    parts = amazon_refinements(filters)
    if not parts:
        return None
    rh = ",".join(parts[key] for key in AMAZON_RH_ORDER if key in parts)
    return _replace_query(current_url, {"rh": rh})


FLIPKART_FACETS = {
    "brand": "brand",
    "ram": "ram",
    "rating": "rating",
    "storage": "internal_storage",
    "battery": "battery_capacity",
}


def flipkart_facets(filters: Mapping[str, Any]) -> Dict[str, str]:
    """``p[]`` facet values keyed by the filter they encode."""
    facets: Dict[str, str] = {}
    for key, value in filters.items():
        if value in (None, ""):
            continue
        if key == "brand":
            facets[key] = f"facets.brand[]={str(value).strip().upper()}"
        elif key == "ram":
            number = _number(value, normalize_ram_size)
            if number is not None:
                facets[key] = f"facets.ram[]={int(number)} GB & Above"
        elif key == "rating":
            number = extract_number(str(value))
            if number is not None:
                facets[key] = f"facets.rating[]={int(number)}★ & above"
        elif key == "battery":
            number = _number(value, normalize_battery_capacity)
            if number is not None:
                facets[key] = f"facets.battery_capacity[]={int(number)} mAh & Above"
        elif key == "price_min":
            number = normalize_price(value)
            if number is not None:
                facets[key] = f"facets.price_range.from={int(number)}"
        elif key == "price_max":
            number = normalize_price(value)
            if number is not None:
                facets[key] = f"facets.price_range.to={int(number)}"
    return facets


def flipkart_facet_values(filters: Mapping[str, Any]) -> List[str]:
    return list(flipkart_facets(filters).values())


def build_flipkart_filter_url(current_url: str, filters: Mapping[str, Any]) -> Optional[str]:
    facets = flipkart_facet_values(filters)
    if not facets:
        return None
    parsed = urlparse(current_url)
    query = parse_qs(parsed.query, keep_blank_values=True)
    query["p[]"] = query.get("p[]", []) + [f for f in facets if f not in query.get("p[]", [])]
    return urlunparse(parsed._replace(query=urlencode(query, doseq=True)))


URL_BUILDERS = {
    "amazon": build_amazon_filter_url,
    "flipkart": build_flipkart_filter_url,
}


def supports_url_filters(platform: Optional[str]) -> bool:
    return (platform or "") in URL_BUILDERS


def build_filter_url(platform: Optional[str], current_url: str, filters: Mapping[str, Any]) -> Optional[str]:
    """
    Filtered URL for platforms with a URL scheme.

    Returns:
        New URL, or None when the platform has no URL scheme or no requested
        filter maps onto a parameter
    """
    builder = URL_BUILDERS.get(platform or "")
    if builder is None or not current_url:
        return None
    return builder(current_url, filters)


def url_filter_keys(platform: Optional[str], filters: Mapping[str, Any]) -> List[str]:
    """Requested filter keys the platform's filter URL actually carries, in request order."""
    if platform == "amazon":
        parts = amazon_refinements(filters)
        return [
            key for key in filters
            if key in parts or (key in ("price_min", "price_max") and "price" in parts and filters.get(key))
        ]
    if platform == "flipkart":
        return list(flipkart_facets(filters))
    return []


def build_sort_url(platform: Optional[str], current_url: str, sort: Optional[str]) -> Optional[str]:
    key = normalize_sort(sort)
    values = SORT_VALUES.get(platform or "", {})
    param = SORT_PARAMS.get(platform or "")
    if not key or key not in values or not param:
        return None
    return _replace_query(current_url, {param: values[key]})


# =========================================================================
# Parsing / verification helpers
# =========================================================================

def parse_filter_refinement(url: str) -> Dict[str, List[str]]:
    """Decode Amazon's ``rh`` into {filter id: [codes]}."""
    query = parse_qs(urlparse(url).query)
    rh = (query.get("rh") or [""])[0]
    result: Dict[str, List[str]] = {}
    for component in filter(None, rh.split(",")):
        if ":" not in component:
            continue
        filter_id, raw = component.split(":", 1)
        result[filter_id] = raw.split("|") if raw else []
    return result


def expected_filter_ids(filters: Mapping[str, Any]) -> List[str]:
    return [AMAZON_FILTER_IDS[key] for key in amazon_refinements(filters)]


def verify_filters_in_url(url: str, filters: Mapping[str, Any]) -> Dict[str, List[str]]:
    """
    Compare the filters an Amazon URL carries with the requested ones.

    Returns:
        {"missing": [...filter ids], "extra": [...filter ids]}
    """
    present = set(parse_filter_refinement(url))
    expected = expected_filter_ids(filters)
    return {
        "missing": [fid for fid in expected if fid not in present],
        "extra": sorted(fid for fid in present if fid not in expected),
    }


def validate_filters(filters: Mapping[str, Any]) -> List[str]:
    """Human-readable problems with a filter dict (empty when fine)."""
    problems: List[str] = []
    price_min = normalize_price(filters.get("price_min")) if filters.get("price_min") else None
    price_max = normalize_price(filters.get("price_max")) if filters.get("price_max") else None
    if price_min is not None and price_max is not None and price_min > price_max:
        problems.append(f"price_min {price_min:g} exceeds price_max {price_max:g}")
    if filters.get("rating"):
        rating = extract_number(str(filters["rating"]))
        if rating is None or not 0 < rating <= 5:
            problems.append(f"rating must be between 1 and 5, got {filters['rating']}")
    for key in ("ram", "storage", "battery"):
        if filters.get(key) and extract_number(str(filters[key])) is None:
            problems.append(f"{key} has no numeric value: {filters[key]}")
    return problems
