"""
Filter Application

Applies an intent's filters to the live page, best-effort:

1. URL path (platforms with a URL scheme): navigate to a built filter URL and
   verify; retried before giving up on it. Keys the URL cannot carry go
   through the DOM path afterwards.
2. DOM path: discover the sidebar, match each filter (brand first), click the
   matched element and poll for a URL change or product-count delta. If
   nothing changes the click is re-dispatched as a synthetic event; if still
   unconfirmed the filter is abandoned. The sidebar is rediscovered after
   every successful click.

Nothing here raises to the caller: every failure is logged and the filter is
skipped.

Usage:
    applier = FilterApplier(page, get_platform_selectors("amazon"))
    outcome = await applier.apply({"brand": "samsung", "ram": "6"})
    outcome.success, outcome.applied, outcome.skipped
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional

from playwright.async_api import Error as PlaywrightError

from ..config import Config, config as default_config
from ..dom_selectors import PlatformSelectors
from ..exceptions import FilterVerificationTimeout
from ..extraction.product_counter import count_products
from ..extraction.text_normalizer import normalize_price
from ..models import FilterGroup, FilterType
from ..retry import RetryPolicy, is_transient_error, retry, wait_for_condition
from .discovery import discover_filters, find_expanders
from .matching import find_group, match_element, order_filters
from .url_builder import build_filter_url, build_sort_url, url_filter_keys
from .verifier import FilterVerification, verify_filter_application

logger = logging.getLogger(__name__)

@dataclass
class FilterApplicationResult:
    success: bool
    method: Optional[str] = None  # "url" | "dom"
    applied: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    verification: Optional[FilterVerification] = None


def _is_retryable_filter_error(error: BaseException) -> bool:
    return isinstance(error, FilterVerificationTimeout) or is_transient_error(error)


class FilterApplier:
    """Discovers, matches, applies and verifies filters on one page"""

    def __init__(
        self,
        page,
        selectors: PlatformSelectors,
        platform: Optional[str] = None,
        config: Optional[Config] = None,
        url_policy: Optional[RetryPolicy] = None,
    ):
        self.page = page
        self.selectors = selectors
        self.platform = platform or selectors.platform
        self.config = config or default_config
        self.url_policy = url_policy or RetryPolicy(
            max_retries=self.config.url_filter_retries,
            initial_delay_ms=1000,
            max_delay_ms=4000,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _html(self) -> str:
        return await self.page.content()

    async def _count(self) -> int:
        return count_products(await self._html(), self.selectors)

    async def _settle(self):
        try:
            await self.page.wait_for_load_state("domcontentloaded", timeout=self.config.filter_wait_ms)
        except PlaywrightError as e:
            logger.debug(f"Load state wait ended early: {e}")

    async def _wait_for_effect(self, before_url: str, before_count: int) -> bool:
        async def changed() -> bool:
            if self.page.url != before_url:
                return True
            return (await self._count()) != before_count

        return await wait_for_condition(
            changed,
            timeout_ms=self.config.filter_wait_ms,
            interval_ms=self.config.poll_interval_ms,
        )

    # ------------------------------------------------------------------
    # URL path
    # ------------------------------------------------------------------

    async def apply_via_url(self, filters: Mapping[str, Any]) -> Optional[FilterVerification]:
        """
        Navigate to the built filter URL and verify it.

        Returns:
            Verification result, or None when the platform has no URL scheme
            or every attempt failed
        """
        target = build_filter_url(self.platform, self.page.url, filters)
        if not target:
            return None

        count_before = await self._count()

        async def attempt() -> FilterVerification:
            await self.page.goto(target, wait_until="domcontentloaded")
            await self._settle()
            html = await self._html()
            verification = verify_filter_application(
                self.platform,
                self.page.url,
                html,
                filters=filters,
                count_before=count_before,
                count_after=count_products(html, self.selectors),
            )
            if not verification.verified:
                raise FilterVerificationTimeout(f"Filter URL not confirmed: {target}")
            return verification

        try:
            return await retry(attempt, self.url_policy, is_retryable=_is_retryable_filter_error)
        except (FilterVerificationTimeout, PlaywrightError, asyncio.TimeoutError) as e:
            logger.warning(f"URL filter method failed, falling back to DOM clicks: {e}")
            return None

    # ------------------------------------------------------------------
    # DOM path
    # ------------------------------------------------------------------

    async def click_and_confirm(self, selector: str) -> bool:
        """
        Click and wait for an observable effect.

        Raises:
            FilterVerificationTimeout: If neither the native nor the synthetic
                click changed the URL or the product count
        """
        before_url = self.page.url
        before_count = await self._count()

        try:
            await self.page.click(selector, timeout=self.config.filter_wait_ms)
            if await self._wait_for_effect(before_url, before_count):
                return True
        except PlaywrightError as e:
            logger.debug(f"Native click failed on {selector}: {e}")

        logger.debug(f"No effect after click on {selector}, dispatching synthetic event")
        try:
            await self.page.dispatch_event(selector, "click")
        except PlaywrightError as e:
            raise FilterVerificationTimeout(f"Synthetic click failed on {selector}: {e}") from e

        if await self._wait_for_effect(before_url, before_count):
            return True
        raise FilterVerificationTimeout(f"No URL change or count delta after clicking {selector}")

    async def apply_range(self, group: FilterGroup, low: Any, high: Any) -> bool:
        if group.inputs is None:
            return False
        min_selector, max_selector = group.inputs
        low_value = normalize_price(low) if low not in (None, "") else None
        high_value = normalize_price(high) if high not in (None, "") else None
        before_url = self.page.url
        before_count = await self._count()
        try:
            if low_value is not None:
                await self.page.fill(min_selector, str(int(low_value)))
            if high_value is not None:
                await self.page.fill(max_selector, str(int(high_value)))
            if group.go_button:
                return await self.click_and_confirm(group.go_button)
            await self.page.press(max_selector, "Enter")
            return await self._wait_for_effect(before_url, before_count)
        except (PlaywrightError, FilterVerificationTimeout) as e:
            logger.warning(f"Range filter '{group.label}' failed: {e}")
            return False

    async def _expand_sidebar(self):
        for selector in find_expanders(await self._html()):
            try:
                await self.page.click(selector, timeout=2000)
            except PlaywrightError as e:
                logger.debug(f"Expander {selector} not clickable: {e}")

    async def apply_via_dom(self, filters: Mapping[str, Any]) -> FilterApplicationResult:
        result = FilterApplicationResult(success=False, method="dom")
        await self._expand_sidebar()
        groups = discover_filters(await self._html())
        if not groups:
            result.skipped = [k for k, _ in order_filters(filters)]
            logger.info("No filter sidebar found, skipping DOM filters")
            return result

        handled_range = False
        for key, value in order_filters(filters):
            if key in ("price_min", "price_max"):
                if handled_range:
                    continue
                handled_range = True
                group = find_group(groups, "price")
                if group is None or group.type is not FilterType.RANGE:
                    result.skipped.extend(k for k in ("price_min", "price_max") if filters.get(k))
                    continue
                if await self.apply_range(group, filters.get("price_min"), filters.get("price_max")):
                    result.applied.extend(k for k in ("price_min", "price_max") if filters.get(k))
                    groups = discover_filters(await self._html())
                else:
                    result.skipped.extend(k for k in ("price_min", "price_max") if filters.get(k))
                continue

            group = find_group(groups, key)
            if group is None:
                logger.info(f"No filter group for '{key}'")
                result.skipped.append(key)
                continue

            element = match_element(group, key, value)
            if element is None:
                logger.info(f"No option in '{group.label}' matches {key}={value}")
                result.skipped.append(key)
                continue

            if element.checked:
                result.applied.append(key)
                continue

            try:
                await self.click_and_confirm(element.selector)
            except FilterVerificationTimeout as e:
                logger.warning(f"Abandoning filter {key}={value}: {e}")
                result.skipped.append(key)
                continue

            logger.info(f"Applied filter {key}={value} via '{element.text}'")
            result.applied.append(key)
            await self._settle()
            # Sidebar re-renders after every successful click
            groups = discover_filters(await self._html())

        result.success = bool(result.applied)
        return result

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def apply(self, filters: Mapping[str, Any]) -> FilterApplicationResult:
        """
        URL method first, DOM clicks as fallback. Never raises.

        Filters the URL scheme has no parameter for are clicked in the
        sidebar after a successful URL navigation.
        """
        if not filters:
            return FilterApplicationResult(success=True)

        try:
            encoded = set(url_filter_keys(self.platform, filters))
            verification = await self.apply_via_url(filters) if encoded else None
            if verification is None:
                return await self.apply_via_dom(filters)

            result = FilterApplicationResult(
                success=True,
                method="url",
                applied=[k for k, _ in order_filters(filters) if k in encoded],
                verification=verification,
            )
            remainder = {k: v for k, v in order_filters(filters) if k not in encoded}
            if remainder:
                logger.info(f"No URL parameter for {list(remainder)}, trying sidebar clicks")
                dom = await self.apply_via_dom(remainder)
                result.applied.extend(dom.applied)
                result.skipped.extend(dom.skipped)
            return result
        except (PlaywrightError, asyncio.TimeoutError) as e:
            logger.error(f"Filter application aborted: {e}")
            return FilterApplicationResult(success=False, skipped=list(filters))

    async def apply_sort(self, sort: Optional[str]) -> bool:
        """Sort via URL parameter; False when the platform has no sort scheme."""
        target = build_sort_url(self.platform, self.page.url, sort)
        if not target:
            return False
        try:
            await self.page.goto(target, wait_until="domcontentloaded")
            return True
        except PlaywrightError as e:
            logger.warning(f"Sort '{sort}' failed: {e}")
            return False
