"""Product counting used to verify that a filter changed the result set."""

import re
from dataclasses import dataclass
from typing import Iterable, Optional

from bs4 import BeautifulSoup

from ..dom_selectors import PlatformSelectors
from .dom import first_text, node_text, parse_html, safe_select

COUNT_EXCLUDE = ("visit the help", "customer service", "skip to main")

RESULT_COUNT_RE = re.compile(r"(\d+)\s*-\s*(\d+)\s+of\s+(over\s+)?([0-9,]+)\+?\s+results?", re.IGNORECASE)
SIMPLE_COUNT_RE = re.compile(r"([0-9,]+)\+?\s+(?:results|products|items)", re.IGNORECASE)


@dataclass(frozen=True)
class ResultCount:
    start: Optional[int]
    end: Optional[int]
    total: int
    is_lower_bound: bool = False


def parse_result_count(text: Optional[str]) -> Optional[ResultCount]:
    """
    Parse a result-info banner.

    "1-24 of over 5,000 results" -> ResultCount(1, 24, 5000, True)
    "Showing 1 – 24 of 1,204 results" and "312 results" are handled too.
    """
    if not text:
        return None
    cleaned = text.replace("–", "-").replace("—", "-")
    match = RESULT_COUNT_RE.search(cleaned)
    if match:
        return ResultCount(
            start=int(match.group(1)),
            end=int(match.group(2)),
            total=int(match.group(4).replace(",", "")),
            is_lower_bound=bool(match.group(3)),
        )
    match = SIMPLE_COUNT_RE.search(cleaned)
    if match:
        return ResultCount(start=None, end=None, total=int(match.group(1).replace(",", "")))
    return None


def count_product_containers(soup: BeautifulSoup, container_selectors: Iterable[str]) -> int:
    """
    Count valid containers for the first selector that matches any.

    A container counts when it has a link, more than 20 characters of text and
    is not help/navigation chrome.
    """
    for selector in container_selectors:
        found = safe_select(soup, selector)
        if not found:
            continue
        count = 0
        for container in found:
            if container.find("a", href=True) is None:
                continue
            text = node_text(container)
            if len(text) <= 20:
                continue
            if any(k in text.lower() for k in COUNT_EXCLUDE):
                continue
            count += 1
        if count:
            return count
    return 0


def count_products(html: str, selectors: PlatformSelectors) -> int:
    return count_product_containers(parse_html(html), selectors.container)


def read_result_count(html: str, selectors: PlatformSelectors) -> Optional[ResultCount]:
    soup = parse_html(html)
    text = first_text(soup, selectors.result_count)
    return parse_result_count(text)
