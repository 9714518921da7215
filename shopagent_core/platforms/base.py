"""
Platform Adapter Interface

One protocol for every shopping site, one implementation per site. All
adapters share ``SelectorDrivenAdapter``: site behaviour lives in the
``PlatformSelectors`` table and in a handful of overridable hooks
(``build_search_url``), never in the extraction or filter engines.

The adapter owns a Playwright page. Every read goes through a fresh
``page.content()`` snapshot; selectors are evaluated on that snapshot and the
matched element is addressed in the live page through ``css_path``.

Usage:
    adapter = AmazonAdapter(page)
    if await adapter.search("samsung phone", sort="price_low"):
        products = await adapter.get_search_results()
        await adapter.apply_filters({"ram": "6", "battery": "5000"})
        product = await adapter.select_product(0)
        await adapter.buy_now()
"""

import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, runtime_checkable
from urllib.parse import quote_plus

from playwright.async_api import Error as PlaywrightError

from ..config import Config, config as default_config
from ..dom_selectors import PlatformSelectors, get_platform_selectors
from ..exceptions import ActionNotFoundError, IndexOutOfRangeError, MissingLinkError
from ..extraction.dom import css_path, first_text, is_disabled, is_hidden, parse_html, safe_select
from ..extraction.engine import ExtractionEngine
from ..extraction.text_normalizer import normalize_price
from ..extraction.urls import DEFAULT_ORIGINS, is_absolute_http_url, page_origin
from ..filters.application import FilterApplicationResult, FilterApplier
from ..models import Product
from ..retry import navigate_with_retry

logger = logging.getLogger(__name__)


@runtime_checkable
class PlatformAdapter(Protocol):
    """What the page agent needs from a shopping site"""

    platform: str

    async def search(self, query: str, filters: Optional[Mapping[str, Any]] = None, sort: Optional[str] = None) -> bool: ...

    async def get_search_results(self) -> List[Product]: ...

    async def apply_filters(self, filters: Mapping[str, Any]) -> bool: ...

    async def apply_sort(self, sort: Optional[str]) -> bool: ...

    async def select_product(self, index: int) -> Product: ...

    async def buy_now(self) -> bool: ...

    async def add_to_cart(self) -> bool: ...

    async def get_product_details(self) -> Dict[str, Any]: ...

    def build_search_url(self, query: str) -> Optional[str]: ...


class SelectorDrivenAdapter:
    """Shared adapter implementation driven by a ``PlatformSelectors`` table"""

    platform = "generic"
    search_path: Optional[str] = None  # e.g. "/s?k={query}"

    def __init__(self, page, selectors: Optional[PlatformSelectors] = None, config: Optional[Config] = None):
        self.page = page
        self.selectors = selectors or get_platform_selectors(self.platform)
        self.config = config or default_config
        self.engine = ExtractionEngine(self.selectors, self.platform)
        self.last_filter_result: Optional[FilterApplicationResult] = None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def origin(self) -> Optional[str]:
        """Site origin: the current page when it belongs to this platform."""
        current = page_origin(self.page.url)
        default = DEFAULT_ORIGINS.get(self.platform)
        if current and (default is None or self.platform in current):
            return current
        return default

    def filter_applier(self) -> FilterApplier:
        return FilterApplier(self.page, self.selectors, self.platform, self.config)

    async def _settle(self):
        try:
            await self.page.wait_for_load_state("domcontentloaded", timeout=self.config.page_settle_ms * 4)
        except PlaywrightError as e:
            logger.debug(f"[{self.platform}] Load state wait ended early: {e}")

    async def _locate(self, candidates: Sequence[str]) -> Optional[str]:
        """Live-page selector for the first visible, enabled candidate match."""
        soup = parse_html(await self.page.content())
        for selector in candidates:
            for el in safe_select(soup, selector):
                if is_hidden(el) or is_disabled(el):
                    continue
                return css_path(el)
        return None

    async def _click_first(self, candidates: Sequence[str], action: str) -> bool:
        """
        Click the first candidate that is present and clickable.

        Raises:
            ActionNotFoundError: If no candidate could be clicked
        """
        soup = parse_html(await self.page.content())
        tried = 0
        for selector in candidates:
            tried += 1
            matches = [el for el in safe_select(soup, selector) if not is_hidden(el) and not is_disabled(el)]
            if not matches:
                continue
            target = css_path(matches[0])
            try:
                await self.page.click(target, timeout=self.config.step_timeout * 1000)
            except PlaywrightError as e:
                logger.debug(f"[{self.platform}] {action} candidate {selector} not clickable: {e}")
                continue
            logger.info(f"[{self.platform}] Clicked {action} via {selector}")
            await self._settle()
            return True
        raise ActionNotFoundError(action, tried)

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def build_search_url(self, query: str) -> Optional[str]:
        origin = self.origin()
        if not self.search_path or not origin:
            return None
        return origin + self.search_path.format(query=quote_plus(query.strip()))

    async def _search_via_form(self, query: str) -> bool:
        input_selector = await self._locate(self.selectors.search_input)
        if input_selector is None:
            logger.warning(f"[{self.platform}] No search input found")
            return False
        await self.page.fill(input_selector, query)
        submit = await self._locate(self.selectors.search_submit)
        if submit:
            await self.page.click(submit)
        else:
            await self.page.press(input_selector, "Enter")
        return True

    async def search(self, query: str, filters: Optional[Mapping[str, Any]] = None, sort: Optional[str] = None) -> bool:
        """Run a search; False (never an exception) when the page cannot be driven."""
        if not query or not query.strip():
            logger.warning(f"[{self.platform}] Empty search query")
            return False

        try:
            target = self.build_search_url(query)
            if target:
                logger.info(f"[{self.platform}] Search URL: {target}")
                await self.page.goto(target, wait_until="domcontentloaded")
            elif not await self._search_via_form(query):
                return False
            await self._settle()
        except (PlaywrightError, asyncio.TimeoutError) as e:
            logger.warning(f"[{self.platform}] Search for '{query}' failed: {e}")
            return False

        if sort:
            await self.apply_sort(sort)
        if filters:
            logger.debug(f"[{self.platform}] Filters {dict(filters)} deferred to the filter phase")
        return True

    async def get_search_results(self) -> List[Product]:
        """Organic in-stock products in DOM order, read fresh from the page."""
        products = self.engine.extract(await self.page.content(), self.page.url)
        usable = [
            p for p in products
            if not p.sponsored and p.is_available
        ]
        dropped = len(products) - len(usable)
        if dropped:
            logger.info(f"[{self.platform}] Dropped {dropped} sponsored/out-of-stock products")
        return usable

    # ------------------------------------------------------------------
    # Filters and sorting
    # ------------------------------------------------------------------

    async def apply_filters(self, filters: Mapping[str, Any]) -> bool:
        """Best-effort; logs and returns False instead of raising."""
        self.last_filter_result = await self.filter_applier().apply(filters)
        result = self.last_filter_result
        logger.info(
            f"[{self.platform}] Filters via {result.method or 'none'}: "
            f"applied={result.applied} skipped={result.skipped}"
        )
        return result.success

    async def apply_sort(self, sort: Optional[str]) -> bool:
        if not sort:
            return False
        applied = await self.filter_applier().apply_sort(sort)
        if applied:
            await self._settle()
        return applied

    # ------------------------------------------------------------------
    # Product page
    # ------------------------------------------------------------------

    async def select_product(self, index: int) -> Product:
        """
        Open the product at ``index`` of the current results.

        Raises:
            IndexOutOfRangeError: If ``index`` is outside the result list
            MissingLinkError: If the product carries no navigable link
        """
        products = await self.get_search_results()
        if index < 0 or index >= len(products):
            raise IndexOutOfRangeError(index, len(products))

        product = products[index]
        if not is_absolute_http_url(product.link):
            raise MissingLinkError(f"Product '{product.title[:60]}' has no navigable link")

        logger.info(f"[{self.platform}] Opening product {index}: {product.title[:60]}")
        await navigate_with_retry(self.page, product.link)
        await self._settle()
        return product

    async def buy_now(self) -> bool:
        return await self._click_first(self.selectors.buy_now, "buy_now")

    async def add_to_cart(self) -> bool:
        return await self._click_first(self.selectors.add_to_cart, "add_to_cart")

    async def get_product_details(self) -> Dict[str, Any]:
        soup = parse_html(await self.page.content())
        price = first_text(soup, self.selectors.detail_price) or None
        return {
            "title": first_text(soup, self.selectors.detail_title),
            "price": price,
            "price_numeric": normalize_price(price),
            "url": self.page.url,
        }
