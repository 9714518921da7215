"""
Filter Verification

There is no direct success signal when a filter is applied, so success is
inferred from side effects:

- URL: the expected filter-parameter signature is present (weight 50)
- count: the product count changed and is non-zero (weight 30)
- DOM: a "clear filters" / applied-filter affordance is visible (weight 20)

Any single signal is sufficient; the confidence score is reported for logs.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional
from urllib.parse import parse_qs, urlparse

from ..dom_selectors import CLEAR_FILTER_SELECTORS
from ..extraction.dom import parse_html, safe_select
from .url_builder import verify_filters_in_url

logger = logging.getLogger(__name__)

URL_WEIGHT = 50
COUNT_WEIGHT = 30
DOM_WEIGHT = 20


@dataclass
class FilterVerification:
    verified: bool
    confidence: int
    checks: Dict[str, bool] = field(default_factory=dict)
    details: Dict[str, Any] = field(default_factory=dict)


def url_has_filter_signature(platform: Optional[str], url: str, filters: Optional[Mapping[str, Any]] = None) -> bool:
    """Expected filter parameters present in ``url``."""
    if not url:
        return False
    query = parse_qs(urlparse(url).query)

    if platform == "amazon":
        rh = (query.get("rh") or [""])[0]
        if not rh:
            return False
        if filters:
            return not verify_filters_in_url(url, filters)["missing"]
        return True

    if platform == "flipkart":
        return bool(query.get("p[]"))

    # Shopify storefront filters and generic facet params
    return any(key.startswith("filter.") or key in ("filter", "filters", "facets") for key in query)


def count_changed(before: Optional[int], after: Optional[int]) -> bool:
    if before is None or after is None:
        return False
    return after != before and after > 0


def has_applied_filter_affordance(html: str, platform: Optional[str]) -> bool:
    soup = parse_html(html)
    selectors = CLEAR_FILTER_SELECTORS.get(platform or "", []) + [
        "[class*=clear-filter i]",
        "[class*=applied-filter i]",
        "[aria-label*=clear filter i]",
    ]
    return any(safe_select(soup, selector) for selector in selectors)


def verify_filter_application(
    platform: Optional[str],
    url: str,
    html: str,
    filters: Optional[Mapping[str, Any]] = None,
    count_before: Optional[int] = None,
    count_after: Optional[int] = None,
) -> FilterVerification:
    """
    Combine the three signals.

    Returns:
        FilterVerification with ``verified`` true when any signal fired
    """
    checks = {
        "url": url_has_filter_signature(platform, url, filters),
        "count": count_changed(count_before, count_after),
        "dom": has_applied_filter_affordance(html, platform),
    }
    confidence = (
        (URL_WEIGHT if checks["url"] else 0)
        + (COUNT_WEIGHT if checks["count"] else 0)
        + (DOM_WEIGHT if checks["dom"] else 0)
    )
    result = FilterVerification(
        verified=any(checks.values()),
        confidence=confidence,
        checks=checks,
        details={"count_before": count_before, "count_after": count_after, "url": url},
    )
    logger.info(f"Filter verification: {checks} (confidence {confidence})")
    return result
