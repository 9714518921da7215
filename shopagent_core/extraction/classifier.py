"""
Sponsored / Out-of-Stock Classification

Pure predicates over a result container (a BeautifulSoup ``Tag``). Signals are
checked in priority order:

1. structural attributes (``data-component-type``, ``data-ad-id``, ad-holder classes)
2. dedicated sponsored / ad-label child elements
3. generic class-name patterns (``*sponsor*``, ``*ad-label*``)
4. short standalone text nodes, never the product's own title

Usage:
    from shopagent_core.extraction.classifier import classify, filter_products

    result = classify(container, "amazon")
    outcome = filter_products(containers, "amazon")
    outcome.stats  # {'total': 24, 'valid': 19, 'sponsored': 4, 'out_of_stock': 1}
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from bs4 import NavigableString, Tag

from .dom import attr, class_string, is_disabled, node_text, safe_select

# =========================================================================
# Rule tables
# =========================================================================

@dataclass(frozen=True)
class AdRules:
    """Per-platform sponsored markers"""
    attribute_values: Dict[str, List[str]] = field(default_factory=dict)
    attribute_presence: List[str] = field(default_factory=list)
    ad_classes: List[str] = field(default_factory=list)
    label_selectors: List[str] = field(default_factory=list)


PLATFORM_AD_RULES: Dict[str, AdRules] = {
    "amazon": AdRules(
        attribute_values={
            "data-component-type": ["sp-sponsored-result"],
            "data-sponsored": ["true"],
        },
        attribute_presence=["data-ad-details"],
        ad_classes=["adholder"],
        label_selectors=[
            ".s-sponsored-header",
            ".s-sponsored-info-icon",
            ".puis-sponsored-label-text",
            "[aria-label*=sponsored i]",
        ],
    ),
    "flipkart": AdRules(
        attribute_values={"data-is-ad": ["true", "1"]},
        attribute_presence=["data-ad-id"],
        ad_classes=[],
        label_selectors=["._2VHWtw", "[class*=adLabel]"],
    ),
    "shopify": AdRules(
        attribute_values={"data-sponsored": ["true"]},
        attribute_presence=[],
        ad_classes=["promoted-product"],
        label_selectors=["[class*=promoted-label]"],
    ),
}

GENERIC_AD_RULES = AdRules(
    attribute_values={"data-sponsored": ["true"], "data-ad": ["true"]},
    attribute_presence=["data-ad-id", "data-ad-details"],
    ad_classes=["ad", "advertisement", "promoted", "featured-ad", "sponsored"],
    label_selectors=["[class*=sponsor]", "[class*=ad-label]", "[class*=adLabel]"],
)

AD_LABEL_TEXTS = ("sponsored", "ad", "advertisement", "promoted")
SPONSORED_TEXT_RE = re.compile(r"^\s*(sponsored|advertisement|promoted|ad)\s*$", re.IGNORECASE)
SHORT_TEXT_LIMIT = 20

OUT_OF_STOCK_PHRASES = [
    "out of stock",
    "out-of-stock",
    "sold out",
    "sold-out",
    "currently unavailable",
    "temporarily out of stock",
    "notify me when available",
    "notify when available",
    "no stock",
]

# Too generic to match inside longer text ("EMI not available")
OOS_BADGE_TEXT_RE = re.compile(r"^\s*(unavailable|not available|coming soon|notify me)\.?\s*$", re.IGNORECASE)

PLATFORM_OOS_SELECTORS: Dict[str, List[str]] = {
    "amazon": ["#outOfStock", "[class*=out-of-stock]"],
    "flipkart": ["._16FRp0", "[class*=soldOut]", "[class*=outOfStock]"],
    "shopify": [".badge--sold-out", ".product-card__badge--sold-out", "[class*=sold-out]"],
}

TITLE_SELECTORS = "h2, h3, [class*=title], [class*=name]"
CART_BUTTON_SELECTORS = (
    "button[class*=add], button[class*=cart], button[class*=buy], "
    "input[type=submit][value*=cart i], [name*=add-to-cart]"
)

LIMITED_STOCK_RE = re.compile(r"only\s+\d+\s+left", re.IGNORECASE)


@dataclass(frozen=True)
class Classification:
    sponsored: bool = False
    out_of_stock: bool = False


@dataclass
class FilterOutcome:
    """Disjoint partition of containers"""
    valid: List[Tag] = field(default_factory=list)
    sponsored: List[Tag] = field(default_factory=list)
    out_of_stock: List[Tag] = field(default_factory=list)

    @property
    def stats(self) -> Dict[str, int]:
        return {
            "total": len(self.valid) + len(self.sponsored) + len(self.out_of_stock),
            "valid": len(self.valid),
            "sponsored": len(self.sponsored),
            "out_of_stock": len(self.out_of_stock),
        }


# =========================================================================
# Sponsored
# =========================================================================

def _title_nodes(container: Tag) -> List[Tag]:
    return safe_select(container, TITLE_SELECTORS)


def _inside_any(node, ancestors: Iterable[Tag]) -> bool:
    for ancestor in ancestors:
        if node is ancestor:
            return True
        for parent in node.parents:
            if parent is ancestor:
                return True
    return False


def _matches_structural(container: Tag, rules: AdRules) -> bool:
    for name, values in rules.attribute_values.items():
        value = attr(container, name).lower()
        if value and value in values:
            return True
        for el in safe_select(container, f"[{name}]"):
            if attr(el, name).lower() in values:
                return True
    for name in rules.attribute_presence:
        if container.has_attr(name) or safe_select(container, f"[{name}]"):
            return True
    classes = set(class_string(container).split())
    return any(ad_class in classes for ad_class in rules.ad_classes)


def _matches_label_element(container: Tag, rules: AdRules) -> bool:
    titles = _title_nodes(container)
    for selector in rules.label_selectors:
        for el in safe_select(container, selector):
            if _inside_any(el, titles):
                continue
            text = node_text(el).lower()
            label = attr(el, "aria-label").lower()
            if not text and not label:
                # Icon-only label elements count
                return True
            if text in AD_LABEL_TEXTS or text.startswith("sponsored ") or "sponsored" in label:
                return True
    return False


def _matches_class_pattern(container: Tag) -> bool:
    titles = _title_nodes(container)
    for el in [container] + container.find_all(True):
        if _inside_any(el, titles):
            continue
        classes = class_string(el)
        if "sponsor" in classes or "ad-label" in classes:
            return True
    return False


def _matches_short_text(container: Tag, pattern: re.Pattern = SPONSORED_TEXT_RE) -> bool:
    titles = _title_nodes(container)
    for text_node in container.find_all(string=True):
        if not isinstance(text_node, NavigableString):
            continue
        text = str(text_node).strip()
        if not text or len(text) >= SHORT_TEXT_LIMIT:
            continue
        if _inside_any(text_node, titles):
            continue
        if pattern.match(text):
            return True
    return False


def is_sponsored(container: Tag, platform: Optional[str] = None) -> bool:
    rules = PLATFORM_AD_RULES.get(platform or "", GENERIC_AD_RULES)
    checks = [
        lambda: _matches_structural(container, rules),
        lambda: _matches_label_element(container, rules),
        lambda: rules is not GENERIC_AD_RULES and _matches_structural(container, GENERIC_AD_RULES),
        lambda: _matches_class_pattern(container),
        lambda: _matches_short_text(container),
    ]
    return any(check() for check in checks)


# =========================================================================
# Out of stock
# =========================================================================

def _text_outside_titles(container: Tag) -> str:
    titles = _title_nodes(container)
    parts = []
    for text_node in container.find_all(string=True):
        if _inside_any(text_node, titles):
            continue
        text = str(text_node).strip()
        if text:
            parts.append(text)
    return " ".join(parts).lower()


def has_disabled_cart_control(container: Tag) -> bool:
    return any(is_disabled(el) for el in safe_select(container, CART_BUTTON_SELECTORS))


def is_out_of_stock(container: Tag, platform: Optional[str] = None) -> bool:
    """
    Phrase match outside the title, a short standalone "unavailable" style
    badge, platform stock badges, or a disabled add-to-cart control.
    """
    body = _text_outside_titles(container)
    if any(phrase in body for phrase in OUT_OF_STOCK_PHRASES):
        return True
    if _matches_short_text(container, OOS_BADGE_TEXT_RE):
        return True

    # Dedicated stock badges count by presence alone
    for selector in PLATFORM_OOS_SELECTORS.get(platform or "", []):
        if safe_select(container, selector):
            return True

    return has_disabled_cart_control(container)


def is_limited_stock(container: Tag) -> bool:
    return bool(LIMITED_STOCK_RE.search(_text_outside_titles(container)))


# =========================================================================
# Public API
# =========================================================================

def classify(container: Tag, platform: Optional[str] = None) -> Classification:
    return Classification(
        sponsored=is_sponsored(container, platform),
        out_of_stock=is_out_of_stock(container, platform),
    )


def filter_products(containers: Iterable[Tag], platform: Optional[str] = None) -> FilterOutcome:
    """
    Partition containers into valid / sponsored / out-of-stock.

    Each container lands in exactly one bucket; sponsored wins over
    out-of-stock.
    """
    outcome = FilterOutcome()
    for container in containers:
        result = classify(container, platform)
        if result.sponsored:
            outcome.sponsored.append(container)
        elif result.out_of_stock:
            outcome.out_of_stock.append(container)
        else:
            outcome.valid.append(container)
    return outcome
