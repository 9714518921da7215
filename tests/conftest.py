"""
Shared fixtures: HTML fixture builders, a scriptable fake Playwright page and
scripted page agents for orchestrator tests.
"""

from typing import Callable, Dict, List, Optional
from unittest.mock import AsyncMock

import pytest

from shopagent_core.config import Config
from shopagent_core.messaging.verbs import failure_response, success_response
from shopagent_core.retry import RetryPolicy


# =========================================================================
# HTML fixtures
# =========================================================================

def amazon_card(
    asin: str,
    title: str,
    price: str = "₹12,999",
    sponsored: bool = False,
    out_of_stock: bool = False,
    rating: Optional[str] = "4.2 out of 5 stars",
) -> str:
    badge = '<span class="puis-sponsored-label-text">Sponsored</span>' if sponsored else ""
    stock = '<span class="a-color-price">Currently unavailable.</span>' if out_of_stock else ""
    stars = f'<i class="a-icon a-icon-star"><span class="a-icon-alt">{rating}</span></i>' if rating else ""
    return (
        f'<div data-component-type="s-search-result" data-asin="{asin}" class="s-result-item">'
        f'{badge}'
        f'<h2><a class="a-link-normal" href="/dp/{asin}?ref=sr_1"><span>{title}</span></a></h2>'
        f'{stars}'
        f'<span class="a-price"><span class="a-offscreen">{price}</span></span>'
        f'{stock}'
        f'</div>'
    )


def amazon_results_page(cards: List[str], sidebar: str = "") -> str:
    return (
        "<html><head><title>Amazon.in : samsung phone</title></head><body>"
        '<input id="twotabsearchtextbox" name="field-keywords" type="text">'
        f'<div id="s-refinements">{sidebar}</div>'
        f'<div class="s-main-slot">{"".join(cards)}</div>'
        "<div>Need help? Visit the help section or contact customer service</div>"
        "</body></html>"
    )


AMAZON_PRODUCT_PAGE = (
    "<html><head><title>Samsung Galaxy</title></head><body>"
    '<span id="productTitle">Samsung Galaxy M34 5G (6GB RAM, 128GB Storage) 6000mAh Battery</span>'
    '<span class="a-price"><span class="a-offscreen">₹15,999</span></span>'
    '<input id="add-to-cart-button" type="submit" value="Add to Cart">'
    '<input id="buy-now-button" type="submit" value="Buy Now">'
    "</body></html>"
)


SAMSUNG_VARIANTS = [
    (4, 5000),
    (6, 6000),
    (8, 4000),
    (6, 5000),
    (4, 6000),
    (8, 5000),
]


def samsung_catalog(count: int = 25) -> List[Dict]:
    """Phones cycling through RAM / battery variants, half of each six-phone cycle satisfies 6GB + 5000mAh."""
    items = []
    for i in range(count):
        ram, battery = SAMSUNG_VARIANTS[i % len(SAMSUNG_VARIANTS)]
        items.append({
            "asin": f"B0SAM{i:03d}",
            "title": f"Samsung Galaxy M{10 + i} ({ram}GB RAM, 128GB Storage) {battery}mAh Battery",
            "price": f"₹{10000 + i * 500:,}",
            "ram": ram,
            "battery": battery,
        })
    return items


# =========================================================================
# Fake Playwright page
# =========================================================================

class FakePage:
    """
    Just enough of a Playwright page for the adapters.

    ``router`` maps a URL to the HTML served after ``goto``; clicks, fills
    and key presses are recorded.
    """

    def __init__(self, url: str, html: str = "", router: Optional[Callable[[str], str]] = None):
        self.url = url
        self.html = html
        self.router = router
        self.visited: List[str] = []
        self.clicked: List[str] = []
        self.filled: List[tuple] = []
        self.pressed: List[tuple] = []
        self.click = AsyncMock(side_effect=self._click)
        self.dispatch_event = AsyncMock()
        self.wait_for_load_state = AsyncMock()

    async def content(self) -> str:
        return self.html

    async def goto(self, url: str, wait_until: str = "load", timeout: Optional[int] = None):
        self.visited.append(url)
        self.url = url
        if self.router is not None:
            self.html = self.router(url)
        return None

    async def _click(self, selector: str, timeout: Optional[float] = None):
        self.clicked.append(selector)

    async def fill(self, selector: str, value: str):
        self.filled.append((selector, value))

    async def press(self, selector: str, key: str):
        self.pressed.append((selector, key))


# =========================================================================
# Scripted page agent
# =========================================================================

class ScriptedAgent:
    """
    Page agent answering verbs from a table of handlers.

    A handler receives the payload and returns the response data dict, or
    None for a failed action.
    """

    def __init__(self, handlers: Dict[str, Callable[[dict], Optional[dict]]]):
        self.handlers = handlers
        self.calls: List[tuple] = []

    def count(self, verb: str) -> int:
        return sum(1 for v, _ in self.calls if v == verb)

    async def handle(self, request: dict) -> dict:
        verb = request["verb"]
        self.calls.append((verb, request["payload"]))
        handler = self.handlers.get(verb)
        if handler is None:
            return failure_response(request, f"{verb} not scripted")
        data = handler(request["payload"])
        if data is None:
            return failure_response(request, f"{verb} failed")
        return success_response(request, **data)


def product_dict(index: int, title: str, price: Optional[float] = None, ram=None, battery=None, brand=None) -> dict:
    return {
        "title": title,
        "link": f"https://shop.example/p/{index}",
        "price_text": f"₹{price:,.0f}" if price is not None else None,
        "price_numeric": price,
        "image": None,
        "rating": None,
        "reviews": None,
        "attributes": {"battery": battery, "ram": ram, "storage": None, "brand": brand},
        "sponsored": False,
        "availability": "InStock",
    }


# =========================================================================
# Fixtures
# =========================================================================

@pytest.fixture
def test_config(tmp_path):
    return Config(
        gemini_api_key=None,
        default_platform="amazon",
        search_timeout=2.0,
        filter_timeout=2.0,
        buy_now_timeout=2.0,
        step_timeout=2.0,
        search_budget=2,
        selection_budget=3,
        buy_now_budget=3,
        add_to_cart_budget=3,
        escalation_budget=3,
        fallback_to_cart=False,
        poll_interval_ms=10,
        filter_wait_ms=50,
        page_settle_ms=10,
        log_dir=tmp_path / "logs",
    )


@pytest.fixture
def no_delay():
    return RetryPolicy(max_retries=0, initial_delay_ms=0, max_delay_ms=0)
