"""
Product link normalization.

Usage:
    normalize_product_url("https://www.google.com/url?url=https%3A%2F%2Fsite.com%2Fp%2F123")
    # -> "https://site.com/p/123"

    normalize_product_url("/dp/B0C1234567?ref=sr_1", platform="amazon")
    # -> "https://www.amazon.in/dp/B0C1234567?ref=sr_1"
"""

import logging
import re
from typing import Optional
from urllib.parse import parse_qs, unquote, urljoin, urlparse, urlunparse

logger = logging.getLogger(__name__)

DEFAULT_ORIGINS = {
    "amazon": "https://www.amazon.in",
    "flipkart": "https://www.flipkart.com",
    "ebay": "https://www.ebay.com",
    "walmart": "https://www.walmart.com",
}

REDIRECT_PARAMS = ("url", "link", "redirect", "target")
MAX_DECODE_ITERATIONS = 3

_DUP_SLASH_RE = re.compile(r"/{2,}")


def page_origin(page_url: Optional[str]) -> Optional[str]:
    if not page_url:
        return None
    parsed = urlparse(page_url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return None
    return f"{parsed.scheme}://{parsed.netloc}"


def decode_repeatedly(value: str, max_iterations: int = MAX_DECODE_ITERATIONS) -> str:
    """Percent-decode until stable, bounded to ``max_iterations`` passes."""
    for _ in range(max_iterations):
        if "%" not in value:
            break
        decoded = unquote(value)
        if decoded == value:
            break
        value = decoded
    return value


def unwrap_redirect(href: str) -> str:
    """
    Extract the real destination from a tracking/redirect wrapper.

    ``/sspa/click?...&url=%2Fdp%2FB0...`` and ``/url?url=https%3A...`` style
    wrappers carry the target in one of REDIRECT_PARAMS.
    """
    parsed = urlparse(href)
    if not parsed.query:
        return href
    params = parse_qs(parsed.query)
    for name in REDIRECT_PARAMS:
        values = params.get(name)
        if not values:
            continue
        target = decode_repeatedly(values[0].strip())
        if target.startswith(("http://", "https://", "/")):
            return target
    return href


def _collapse_slashes(url: str) -> str:
    parsed = urlparse(url)
    path = _DUP_SLASH_RE.sub("/", parsed.path)
    return urlunparse(parsed._replace(path=path))


def normalize_product_url(
    href: Optional[str],
    page_url: Optional[str] = None,
    platform: Optional[str] = None,
) -> Optional[str]:
    """
    Turn a raw href into an absolute http(s) product URL.

    Args:
        href: Raw attribute value
        page_url: URL of the page the href was read from
        platform: Platform key for the default-origin fallback

    Returns:
        Absolute URL, or None when the link cannot be recovered
    """
    if not href:
        return None
    value = href.strip()
    if not value or value.startswith(("javascript:", "#", "mailto:", "tel:")):
        return None

    value = unwrap_redirect(value)
    value = decode_repeatedly(value) if value.count("%2F") or value.count("%3A") else value

    if value.startswith("//"):
        value = "https:" + value

    parsed = urlparse(value)
    if not parsed.scheme:
        base = page_origin(page_url) or DEFAULT_ORIGINS.get(platform or "")
        if not base:
            logger.debug(f"Dropping relative link without origin: {href}")
            return None
        value = urljoin(base + "/", value)

    value = _collapse_slashes(value)
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return None
    return value


def is_absolute_http_url(url: Optional[str]) -> bool:
    if not url:
        return False
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)
