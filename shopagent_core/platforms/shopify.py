"""Generic Shopify storefront adapter (Dawn-style themes).

Storefronts have no canonical host, so search URLs are only built against the
shop the page is already on; otherwise the search form is used.
"""

from .base import SelectorDrivenAdapter


class ShopifyAdapter(SelectorDrivenAdapter):
    platform = "shopify"
    search_path = "/search?q={query}&type=product"
