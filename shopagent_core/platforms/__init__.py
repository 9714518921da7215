"""
Atomized access to platform adapters.

One adapter per shopping site, all sharing SelectorDrivenAdapter.
"""

from .base import PlatformAdapter, SelectorDrivenAdapter
from .amazon import AmazonAdapter
from .flipkart import FlipkartAdapter
from .shopify import ShopifyAdapter
from .registry import ADAPTERS, detect_platform, get_adapter

__all__ = [
    'PlatformAdapter',
    'SelectorDrivenAdapter',
    'AmazonAdapter',
    'FlipkartAdapter',
    'ShopifyAdapter',
    'ADAPTERS',
    'detect_platform',
    'get_adapter',
]
