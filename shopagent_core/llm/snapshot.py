"""
Page snapshot - the simplified page view sent to the language model.

Capped to keep prompts small: at most 20 products and 5 options per filter
group by default.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from ..extraction.dom import attr, css_path, is_hidden, node_text, parse_html, safe_select
from ..models import FilterGroup, Product

MAX_PRODUCTS = 20
MAX_OPTIONS = 5
MAX_BUTTONS = 30
MAX_INPUTS = 15

BUTTON_SELECTOR = "button, input[type=submit], input[type=button], [role=button]"
INPUT_SELECTOR = "input[type=text], input[type=search], input[type=number], input:not([type]), textarea"


@dataclass
class PageSnapshot:
    title: str
    url: str
    platform: Optional[str]
    products: List[Dict[str, Any]] = field(default_factory=list)
    filters: List[Dict[str, Any]] = field(default_factory=list)
    buttons: List[Dict[str, str]] = field(default_factory=list)
    inputs: List[Dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "url": self.url,
            "platform": self.platform,
            "products": self.products,
            "filters": self.filters,
            "buttons": self.buttons,
            "inputs": self.inputs,
        }


def _product_summary(index: int, product: Product) -> Dict[str, Any]:
    return {
        "index": index,
        "title": product.title[:150],
        "price": product.price_text,
        "rating": product.rating,
        "link": product.link,
        "sponsored": product.sponsored,
        "availability": product.availability.value,
    }


def build_page_snapshot(
    html: str,
    url: str,
    platform: Optional[str],
    products: Sequence[Product] = (),
    filter_groups: Sequence[FilterGroup] = (),
    max_products: int = MAX_PRODUCTS,
    max_options: int = MAX_OPTIONS,
) -> PageSnapshot:
    soup = parse_html(html)

    buttons: List[Dict[str, str]] = []
    for el in safe_select(soup, BUTTON_SELECTOR):
        if is_hidden(el):
            continue
        text = node_text(el) or attr(el, "value") or attr(el, "aria-label")
        if not text:
            continue
        buttons.append({"text": text[:80], "selector": css_path(el)})
        if len(buttons) >= MAX_BUTTONS:
            break

    inputs: List[Dict[str, str]] = []
    for el in safe_select(soup, INPUT_SELECTOR):
        if is_hidden(el):
            continue
        inputs.append({
            "name": attr(el, "name") or attr(el, "id"),
            "placeholder": attr(el, "placeholder"),
            "selector": css_path(el),
        })
        if len(inputs) >= MAX_INPUTS:
            break

    title_tag = soup.find("title")
    return PageSnapshot(
        title=node_text(title_tag),
        url=url,
        platform=platform,
        products=[_product_summary(i, p) for i, p in enumerate(list(products)[:max_products])],
        filters=[g.to_dict(max_options=max_options) for g in filter_groups],
        buttons=buttons,
        inputs=inputs,
    )
