"""
Filter Discovery

Scans the filter sidebar of a DOM snapshot into ``FilterGroup`` objects.
Groups are rebuilt on every call and must be treated as stale after any click.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, List, Optional

from bs4 import BeautifulSoup, Tag

from ..dom_selectors import (
    FILTER_CONTAINER_SELECTORS,
    FILTER_EXPANDER_SELECTORS,
    FILTER_GROUP_SELECTORS,
    FILTER_HEADER_SELECTORS,
    FILTER_ITEM_SELECTORS,
)
from ..extraction.dom import attr, css_path, node_text, parse_html, safe_select, select_first
from ..extraction.text_normalizer import normalize_filter_text
from ..models import FilterElement, FilterGroup, FilterType
from .matching import filter_kind_for_label, parse_numeric_value

logger = logging.getLogger(__name__)

MIN_LABEL_LENGTH = 3
RANGE_INPUT_SELECTOR = "input[type=number], input[type=text], input:not([type])"
GO_BUTTON_SELECTOR = "input[type=submit], button[type=submit], .a-button-input, button"
_RATING_RE = re.compile(r"(★|\bstars?\b|out of 5)", re.IGNORECASE)


def _is_related(node: Tag, others: List[Tag]) -> bool:
    """True when node is, contains, or sits inside one of ``others``."""
    for other in others:
        if node is other:
            return True
        if any(parent is other for parent in node.parents):
            return True
        if any(parent is node for parent in other.parents):
            return True
    return False


def _group_label(group: Tag) -> Optional[str]:
    header = select_first(group, FILTER_HEADER_SELECTORS)
    label = normalize_filter_text(node_text(header)) if header is not None else ""
    if not label:
        raw = attr(group, "aria-label") or attr(group, "id")
        label = normalize_filter_text(re.sub(r"[_-]+", " ", raw))
    if len(label) < MIN_LABEL_LENGTH:
        return None
    return label


def _item_text(item: Tag) -> str:
    text = node_text(item)
    if text:
        return text
    if item.name == "input":
        label_id = attr(item, "id")
        if label_id:
            root = item
            while root.parent is not None:
                root = root.parent
            label = root.find("label", attrs={"for": label_id})
            if label is not None and node_text(label):
                return node_text(label)
        parent_label = item.find_parent("label")
        if parent_label is not None:
            return node_text(parent_label)
    return attr(item, "aria-label") or attr(item, "title") or attr(item, "value")


def _is_checked(item: Tag) -> bool:
    if item.has_attr("checked"):
        return True
    if attr(item, "aria-checked").lower() == "true" or attr(item, "aria-pressed").lower() == "true":
        return True
    checkbox = item.find("input", attrs={"type": "checkbox"})
    return checkbox is not None and checkbox.has_attr("checked")


def _build_elements(group: Tag, kind: Optional[str], header: Optional[Tag]) -> List[FilterElement]:
    elements: List[FilterElement] = []
    seen_texts = set()
    claimed: List[Tag] = []

    for item in safe_select(group, FILTER_ITEM_SELECTORS):
        if header is not None and (item is header or any(p is header for p in item.parents)):
            continue
        # A label wrapping a checkbox wrapping a link describes one option
        if _is_related(item, claimed):
            continue
        text = _item_text(item)
        key = normalize_filter_text(text)
        if not key or key in seen_texts:
            continue
        seen_texts.add(key)
        claimed.append(item)

        numeric_value = parse_numeric_value(kind, text) if kind else None
        elements.append(FilterElement(
            text=text,
            selector=css_path(item),
            is_numeric_kind=kind in ("ram", "battery", "storage"),
            numeric_value=numeric_value,
            is_rating=bool(_RATING_RE.search(text) or _RATING_RE.search(attr(item, "aria-label"))),
            checked=_is_checked(item),
        ))
    return elements


def _build_group(group: Tag) -> Optional[FilterGroup]:
    label = _group_label(group)
    if label is None:
        return None
    header = select_first(group, FILTER_HEADER_SELECTORS)
    kind = filter_kind_for_label(label)

    inputs = safe_select(group, RANGE_INPUT_SELECTOR)
    if len(inputs) >= 2:
        go = None
        for candidate in safe_select(group, GO_BUTTON_SELECTOR):
            if all(candidate is not i for i in inputs):
                go = candidate
                break
        return FilterGroup(
            label=label,
            type=FilterType.RANGE,
            elements=_build_elements(group, kind, header),
            inputs=(css_path(inputs[0]), css_path(inputs[1])),
            go_button=css_path(go) if go is not None else None,
        )

    elements = _build_elements(group, kind, header)
    if not elements:
        return None
    return FilterGroup(label=label, type=FilterType.SELECTION, elements=elements)


def find_filter_containers(soup: BeautifulSoup) -> List[Tag]:
    """Containers of the first sidebar selector that matches anything."""
    for selector in FILTER_CONTAINER_SELECTORS:
        found = safe_select(soup, selector)
        if found:
            return found
    return []


def discover_filters_in_soup(soup: BeautifulSoup) -> List[FilterGroup]:
    containers = find_filter_containers(soup)
    if not containers:
        logger.debug("No filter sidebar found")
        return []

    accepted: List[Tag] = []
    for container in containers:
        for selector in FILTER_GROUP_SELECTORS:
            for candidate in safe_select(container, selector):
                if _is_related(candidate, accepted):
                    continue
                if select_first(candidate, FILTER_HEADER_SELECTORS) is None and not (
                    attr(candidate, "aria-label") or attr(candidate, "id")
                ):
                    continue
                accepted.append(candidate)

    position = {id(el): i for i, el in enumerate(soup.find_all(True))}
    accepted.sort(key=lambda el: position.get(id(el), 0))

    merged: Dict[str, FilterGroup] = {}
    for node in accepted:
        group = _build_group(node)
        if group is None:
            continue
        existing = merged.get(group.label)
        if existing is None:
            merged[group.label] = group
            continue
        # Same normalized label: merge options
        known = {normalize_filter_text(e.text) for e in existing.elements}
        existing.elements.extend(e for e in group.elements if normalize_filter_text(e.text) not in known)
        if existing.inputs is None and group.inputs is not None:
            existing.type = FilterType.RANGE
            existing.inputs = group.inputs
            existing.go_button = group.go_button

    groups = list(merged.values())
    logger.info(f"Discovered {len(groups)} filter groups: {[g.label for g in groups]}")
    return groups


def discover_filters(html: str) -> List[FilterGroup]:
    """Filter groups on the current page, in sidebar order."""
    return discover_filters_in_soup(parse_html(html))


def find_expanders(html: str) -> List[str]:
    """Selectors of "see more" expanders in the filter sidebar."""
    soup = parse_html(html)
    found = []
    for container in find_filter_containers(soup):
        for selector in FILTER_EXPANDER_SELECTORS:
            for el in safe_select(container, selector):
                if "more" in node_text(el).lower():
                    found.append(css_path(el))
    return found
