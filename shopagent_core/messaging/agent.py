"""
Page Agent - serves message verbs against one tab's platform adapter.

Every verb handler returns a response dict; adapter and browser errors are
turned into ``success: False`` responses, never propagated to the caller.

Usage:
    agent = PageAgent(AmazonAdapter(page))
    reply = await agent.handle(make_request("tab-1", "tab-1", Verb.SEARCH, {"query": "samsung phone"}))
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict

from playwright.async_api import Error as PlaywrightError

from ..exceptions import ShopAgentError
from ..filters.discovery import discover_filters
from ..llm.snapshot import build_page_snapshot
from .verbs import Verb, failure_response, success_response

logger = logging.getLogger(__name__)

Handler = Callable[[Dict[str, Any]], Awaitable[Dict[str, Any]]]


class PageAgent:
    """Dispatches page verbs to a platform adapter"""

    def __init__(self, adapter, config=None):
        self.adapter = adapter
        self.config = config or adapter.config
        self._handlers: Dict[str, Handler] = {
            Verb.SEARCH.value: self._search,
            Verb.GET_SEARCH_RESULTS.value: self._get_search_results,
            Verb.APPLY_FILTERS.value: self._apply_filters,
            Verb.SELECT_PRODUCT.value: self._select_product,
            Verb.CLICK_BUY_NOW.value: self._buy_now,
            Verb.ADD_TO_CART.value: self._add_to_cart,
            Verb.GET_PRODUCT_DETAILS.value: self._get_product_details,
            Verb.EXTRACT_PAGE_CONTENT.value: self._extract_page_content,
            Verb.NAVIGATE.value: self._navigate,
            Verb.CLICK_ELEMENT.value: self._click_element,
            Verb.FILL_INPUT.value: self._fill_input,
        }

    @property
    def page(self):
        return self.adapter.page

    async def handle(self, request: Dict[str, Any]) -> Dict[str, Any]:
        verb = request.get("verb")
        handler = self._handlers.get(verb)
        if handler is None:
            return failure_response(request, f"Unknown verb: {verb}", "UnknownVerb")

        payload = request.get("payload") or {}
        try:
            data = await handler(payload)
        except ShopAgentError as e:
            logger.warning(f"{verb} failed: {e}")
            return failure_response(request, str(e), type(e).__name__)
        except (PlaywrightError, asyncio.TimeoutError) as e:
            logger.warning(f"{verb} browser error: {e}")
            return failure_response(request, str(e) or type(e).__name__, type(e).__name__)
        except Exception as e:
            logger.exception(f"{verb} raised unexpectedly: {e}")
            return failure_response(request, f"{type(e).__name__}: {e}", type(e).__name__)

        if data.pop("success", True) is False:
            return failure_response(request, data.pop("error", f"{verb} failed"), **data)
        return success_response(request, **data)

    # ------------------------------------------------------------------
    # Verb handlers
    # ------------------------------------------------------------------

    async def _search(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        ok = await self.adapter.search(
            payload.get("query", ""),
            payload.get("filters") or {},
            payload.get("sort"),
        )
        return {"success": ok, "error": "Search failed"} if not ok else {}

    async def _get_search_results(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        products = await self.adapter.get_search_results()
        return {"items": [p.to_dict() for p in products]}

    async def _apply_filters(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        ok = await self.adapter.apply_filters(payload.get("filters") or {})
        result = self.adapter.last_filter_result
        data = {
            "method": result.method if result else None,
            "applied": list(result.applied) if result else [],
            "skipped": list(result.skipped) if result else [],
        }
        if not ok:
            data.update(success=False, error="No filter could be applied")
        return data

    async def _select_product(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        index = payload.get("index", 0)
        if isinstance(index, bool) or not isinstance(index, int):
            return {"success": False, "error": f"SELECT_PRODUCT requires an integer index, got {index!r}"}
        product = await self.adapter.select_product(index)
        return {"product": product.to_dict()}

    async def _buy_now(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        await self.adapter.buy_now()
        return {}

    async def _add_to_cart(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        await self.adapter.add_to_cart()
        return {}

    async def _get_product_details(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return {"details": await self.adapter.get_product_details()}

    async def _extract_page_content(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        html = await self.page.content()
        # Same list SELECT_PRODUCT indexes into
        products = await self.adapter.get_search_results()
        snapshot = build_page_snapshot(
            html,
            self.page.url,
            self.adapter.platform,
            products=products,
            filter_groups=discover_filters(html),
            max_products=self.config.snapshot_max_products,
            max_options=self.config.snapshot_max_options,
        )
        return {"content": snapshot.to_dict()}

    async def _navigate(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = payload.get("url")
        if not url:
            return {"success": False, "error": "NAVIGATE requires a url"}
        await self.page.goto(url, wait_until="domcontentloaded")
        return {"url": self.page.url}

    async def _click_element(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        selector = payload.get("selector")
        if not selector:
            return {"success": False, "error": "CLICK_ELEMENT requires a selector"}
        await self.page.click(selector, timeout=self.config.step_timeout * 1000)
        return {}

    async def _fill_input(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        selector = payload.get("selector")
        if not selector:
            return {"success": False, "error": "FILL_INPUT requires a selector"}
        await self.page.fill(selector, str(payload.get("value", "")))
        if payload.get("submit"):
            await self.page.press(selector, "Enter")
        return {}
