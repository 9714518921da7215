"""Flipkart search-results and product-page adapter."""

import logging

from playwright.async_api import Error as PlaywrightError

from .base import SelectorDrivenAdapter

logger = logging.getLogger(__name__)

LOGIN_POPUP_CLOSE = [
    'button._2KpZ6l._2doB4z',
    'span[role="button"]:-soup-contains("✕")',
]


class FlipkartAdapter(SelectorDrivenAdapter):
    platform = "flipkart"
    search_path = "/search?q={query}"

    async def dismiss_login_popup(self) -> bool:
        close = await self._locate(LOGIN_POPUP_CLOSE)
        if close is None:
            return False
        try:
            await self.page.click(close, timeout=2000)
            return True
        except PlaywrightError as e:
            logger.debug(f"[flipkart] Login popup close failed: {e}")
            return False

    async def search(self, query, filters=None, sort=None) -> bool:
        ok = await super().search(query, filters, sort)
        if ok:
            # First visit opens a login modal over the results
            await self.dismiss_login_popup()
        return ok
