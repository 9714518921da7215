"""Amazon search-results and product-page adapter."""

from .base import SelectorDrivenAdapter


class AmazonAdapter(SelectorDrivenAdapter):
    platform = "amazon"
    search_path = "/s?k={query}"
