"""
Filter Matching

Maps a requested filter ``{key: value}`` onto a discovered group and one
clickable element in it.

- Group lookup goes through FILTER_SYNONYMS (exact label first, then a
  word-bounded containment match, then a fuzzy label match).
- RAM / battery / storage use at-least semantics: an element with numeric
  value N matches a request V iff N >= V. The least restrictive qualifying
  bracket is chosen. When no element of the group carries numeric metadata,
  normalized substring containment is used instead.
- Rating picks the lowest star bracket at or above the request.
- Brand / color and anything else use normalized substring containment,
  falling back to a rapidfuzz similarity match.
- Brand is always applied first.
"""

import logging
import re
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from ..extraction.text_normalizer import (
    extract_number,
    fuzzy_match,
    normalize_battery_capacity,
    normalize_filter_text,
    normalize_ram_size,
    normalize_rating,
    normalize_storage_size,
)
from ..models import FilterElement, FilterGroup

logger = logging.getLogger(__name__)

FILTER_SYNONYMS: Dict[str, List[str]] = {
    "brand": ["brand", "brands", "brand name", "manufacturer"],
    "ram": ["ram", "memory", "internal memory", "system memory", "ram size"],
    "storage": ["storage", "internal storage", "rom", "storage capacity", "ssd capacity", "hard disk capacity"],
    "battery": ["battery", "battery capacity", "battery power"],
    "rating": ["customer ratings", "customer rating", "rating", "avg. customer review", "customer reviews"],
    "color": ["color", "colour", "color family"],
    "price": ["price", "price range"],
    "condition": ["condition", "new & used"],
    "discount": ["discount"],
}

NUMERIC_KINDS = {
    "ram": normalize_ram_size,
    "battery": normalize_battery_capacity,
    "storage": normalize_storage_size,
}


def filter_kind_for_label(label: str) -> Optional[str]:
    """Filter key whose synonym list matches a normalized group label."""
    normalized = normalize_filter_text(label)
    if not normalized:
        return None
    for kind, synonyms in FILTER_SYNONYMS.items():
        if normalized in synonyms:
            return kind
    for kind, synonyms in FILTER_SYNONYMS.items():
        for synonym in synonyms:
            if re.search(rf"\b{re.escape(synonym)}\b", normalized):
                return kind
    return None


def parse_numeric_value(kind: str, text: str) -> Optional[float]:
    parser = NUMERIC_KINDS.get(kind)
    if parser is None:
        return None
    return parser(text)


def order_filters(filters: Mapping[str, Any]) -> List[Tuple[str, Any]]:
    """Brand first, remaining keys in their given order."""
    items = [(k, v) for k, v in filters.items() if v not in (None, "")]
    return sorted(items, key=lambda kv: 0 if kv[0] == "brand" else 1)


def find_group(groups: Iterable[FilterGroup], key: str) -> Optional[FilterGroup]:
    """
    Group whose label matches one of the key's synonyms: exact label, then
    word-bounded containment, then a fuzzy label match ("Colours", typos).
    """
    groups = list(groups)
    synonyms = FILTER_SYNONYMS.get(key, [key.lower()])

    for group in groups:
        if group.label in synonyms:
            return group
    for synonym in synonyms:
        pattern = re.compile(rf"\b{re.escape(synonym)}\b")
        for group in groups:
            if pattern.search(group.label):
                return group
    for group in groups:
        if any(fuzzy_match(group.label, synonym, substring=False) for synonym in synonyms):
            logger.debug(f"Group '{group.label}' fuzzily matched '{key}'")
            return group
    return None


def requested_number(key: str, value: Any) -> Optional[float]:
    text = str(value)
    if key in NUMERIC_KINDS and any(c.isalpha() for c in text):
        return NUMERIC_KINDS[key](text)
    return extract_number(text)


def element_matches(element: FilterElement, key: str, value: Any, fuzzy: bool = True) -> bool:
    """
    Kind-specific match of one element.

    Numeric kinds with numeric metadata: ``numeric_value >= requested``.
    Everything else: normalized requested text contained in element text, or
    with ``fuzzy`` a rapidfuzz match of the two (text kinds only).
    """
    if key in NUMERIC_KINDS and element.numeric_value is not None:
        wanted = requested_number(key, value)
        if wanted is None:
            return False
        return element.numeric_value >= wanted
    needle = normalize_filter_text(str(value))
    haystack = normalize_filter_text(element.text)
    if not needle:
        return False
    if needle in haystack:
        return True
    # "12 GB" and "32 GB" are close strings, never fuzzy-match numbers
    if not fuzzy or key in NUMERIC_KINDS or key == "rating":
        return False
    return fuzzy_match(needle, haystack)


def match_element(group: FilterGroup, key: str, value: Any) -> Optional[FilterElement]:
    """Best element in ``group`` for the request, or None."""
    elements = [e for e in group.elements if e.text]
    if not elements:
        return None

    if key in NUMERIC_KINDS:
        numeric = [e for e in elements if e.numeric_value is not None]
        if numeric:
            qualifying = [e for e in numeric if element_matches(e, key, value)]
            if not qualifying:
                logger.debug(f"No '{group.label}' bracket >= {value}")
                return None
            # Least restrictive bracket that still satisfies the request
            return min(qualifying, key=lambda e: e.numeric_value)
        logger.debug(f"'{group.label}' has no numeric metadata, using text match for {value}")

    if key == "rating":
        rated = [e for e in elements if e.is_rating] or elements
        wanted = normalize_rating(str(value))
        scored = [(normalize_rating(e.text), e) for e in rated]
        qualifying = [(v, e) for v, e in scored if v is not None and wanted is not None and v >= wanted]
        if qualifying:
            return min(qualifying, key=lambda pair: pair[0])[1]
        for element in rated:
            if element_matches(element, key, value):
                return element
        return None

    # Plain containment beats a fuzzy hit on an earlier option
    for element in elements:
        if element_matches(element, key, value, fuzzy=False):
            return element
    for element in elements:
        if element_matches(element, key, value):
            return element
    return None
