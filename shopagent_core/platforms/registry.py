"""
Adapter registry: platform key or page URL -> adapter.
"""

import logging
from typing import Dict, Optional, Type
from urllib.parse import urlparse

from .amazon import AmazonAdapter
from .base import SelectorDrivenAdapter
from .flipkart import FlipkartAdapter
from .shopify import ShopifyAdapter

logger = logging.getLogger(__name__)

ADAPTERS: Dict[str, Type[SelectorDrivenAdapter]] = {
    "amazon": AmazonAdapter,
    "flipkart": FlipkartAdapter,
    "shopify": ShopifyAdapter,
}

HOST_MARKERS = [
    ("amazon.", "amazon"),
    ("flipkart.", "flipkart"),
    ("myshopify.com", "shopify"),
]


def detect_platform(url: Optional[str]) -> Optional[str]:
    """Platform key for a page URL, None when the host is unknown."""
    if not url:
        return None
    host = urlparse(url).netloc.lower()
    for marker, platform in HOST_MARKERS:
        if marker in host:
            return platform
    return None


def get_adapter(platform: Optional[str], page, **kwargs) -> SelectorDrivenAdapter:
    """
    Adapter instance for ``platform``.

    Unknown platforms get the generic selector-driven adapter, which falls
    back to the generic selector table.
    """
    key = (platform or detect_platform(getattr(page, "url", None)) or "").lower()
    adapter_cls = ADAPTERS.get(key)
    if adapter_cls is None:
        logger.info(f"No dedicated adapter for '{key or 'unknown'}', using generic selectors")
        return SelectorDrivenAdapter(page, **kwargs)
    return adapter_cls(page, **kwargs)
