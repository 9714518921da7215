"""
Intent Parser - free text -> ``Intent``

The language model parses the request when an API key is configured; any
failure (transport, unparseable answer, missing product) falls back to the
regex parser, which always produces an Intent.

Usage:
    intent = parse_intent_simple("samsung phone under 20k with 6gb ram and 5000mah battery")
    intent = await IntentParser(GeminiClient()).parse("buy a redmi phone on flipkart")
"""

import logging
import re
from typing import Any, Dict, Optional

from ..config import config as default_config
from ..exceptions import LLMError, NetworkError, RecoveryParseExhausted
from ..extraction.attributes import BRAND_CANONICAL
from ..json_recovery import parse_llm_json
from ..llm.gemini import GeminiClient, extract_text
from ..models import Intent

logger = logging.getLogger(__name__)

PLATFORM_KEYWORDS = {
    "amazon": ["amazon"],
    "flipkart": ["flipkart"],
    "shopify": ["shopify", "myshopify"],
    "ebay": ["ebay"],
    "walmart": ["walmart"],
}

PLATFORM_URLS = {
    "amazon": "https://www.amazon.in/",
}

INTENT_BRANDS = [
    "motorola", "samsung", "apple", "iphone", "xiaomi", "redmi", "oneplus",
    "oppo", "vivo", "realme", "nokia", "lg", "sony", "google", "poco", "iqoo",
]

_MULTIPLIERS = {"k": 1000, "thousand": 1000, "lakh": 100000}

PRICE_MAX_RE = re.compile(
    r"(?:under|below|less than|within|upto|up to|max(?:imum)?|<)\s*(?:rs\.?|₹|inr|\$)?\s*(\d[\d,]*(?:\.\d+)?)\s*(k|thousand|lakh)?\b",
    re.IGNORECASE,
)
PRICE_MIN_RE = re.compile(
    r"(?:above|over|more than|at least|min(?:imum)?|>)\s*(?:rs\.?|₹|inr|\$)?\s*(\d[\d,]*(?:\.\d+)?)\s*(k|thousand|lakh)?\b(?!\s*(?:mah|gb|tb|stars?))",
    re.IGNORECASE,
)
RATING_RE = re.compile(r"(\d(?:\.\d)?)\s*(?:\+\s*)?(?:stars?|★|star rating|rating)", re.IGNORECASE)
STORAGE_RE = re.compile(r"(\d+)\s*(gb|tb)\s*(?:of\s+)?(?:storage|rom|memory space|space|ssd)", re.IGNORECASE)
RAM_RE = re.compile(r"(\d+)\s*gb\s*(?:of\s+)?(?:ram|memory)\b", re.IGNORECASE)
BATTERY_RE = re.compile(r"(\d[\d,]*)\s*(?:mah(?:\s+battery)?|battery)", re.IGNORECASE)

SORT_PHRASES = [
    (re.compile(r"\b(cheapest|lowest price|low to high|budget)\b", re.IGNORECASE), "price_low"),
    (re.compile(r"\b(most expensive|high to low|premium)\b", re.IGNORECASE), "price_high"),
    (re.compile(r"\b(best rated|top rated|highest rated|best reviewed)\b", re.IGNORECASE), "rating"),
    (re.compile(r"\b(newest|latest)\b", re.IGNORECASE), "newest"),
]

FILLER_RE = re.compile(
    r"\b(buy|purchase|order|get|find|search for|search|show me|i want|i need|me|a|an|the|please|on|from|at|with|and|having)\b",
    re.IGNORECASE,
)

INTENT_SYSTEM_PROMPT = """You turn a shopping request into JSON.

Return exactly:
{
    "product": "search query for the product, without filters",
    "platform": "amazon|flipkart|shopify|null",
    "filters": {
        "brand": "brand or null",
        "price_min": number or null,
        "price_max": number or null,
        "rating": number or null,
        "ram": "GB as number or null",
        "storage": "GB as number or null",
        "battery": "mAh as number or null",
        "color": "colour or null"
    },
    "sort": "price_low|price_high|rating|newest|null",
    "action": "buy_now|add_to_cart",
    "delivery_location": "city/pincode or null",
    "payment_method": "method or null",
    "quantity": 1
}"""


def _amount(value: str, suffix: Optional[str]) -> float:
    number = float(value.replace(",", ""))
    return number * _MULTIPLIERS.get((suffix or "").lower(), 1)


def detect_platform_hint(text: str) -> Optional[str]:
    lowered = text.lower()
    for platform, keywords in PLATFORM_KEYWORDS.items():
        if any(re.search(rf"\b{re.escape(k)}\b", lowered) for k in keywords):
            return platform
    return None


def default_platform_url(platform: Optional[str]) -> str:
    key = (platform or default_config.default_platform).lower()
    return PLATFORM_URLS.get(key, f"https://www.{key}.com/")


def parse_intent_simple(text: str, default_platform: Optional[str] = None) -> Intent:
    """Regex parse of a shopping request; never fails."""
    raw = (text or "").strip()
    lowered = raw.lower()
    filters: Dict[str, Any] = {}
    consumed = []

    match = PRICE_MAX_RE.search(raw)
    if match:
        filters["price_max"] = _amount(match.group(1), match.group(2))
        consumed.append(match.group(0))
    match = PRICE_MIN_RE.search(raw)
    if match:
        filters["price_min"] = _amount(match.group(1), match.group(2))
        consumed.append(match.group(0))

    match = RATING_RE.search(raw)
    if match:
        filters["rating"] = float(match.group(1))
        consumed.append(match.group(0))

    match = STORAGE_RE.search(raw)
    if match:
        size = int(match.group(1)) * (1024 if match.group(2).lower() == "tb" else 1)
        filters["storage"] = str(size)
        consumed.append(match.group(0))

    match = RAM_RE.search(raw)
    if match:
        filters["ram"] = match.group(1)
        consumed.append(match.group(0))

    match = BATTERY_RE.search(raw)
    if match:
        filters["battery"] = match.group(1).replace(",", "")
        consumed.append(match.group(0))

    for brand in INTENT_BRANDS:
        if re.search(rf"\b{re.escape(brand)}\b", lowered):
            filters["brand"] = BRAND_CANONICAL.get(brand, brand)
            break

    sort = None
    for pattern, value in SORT_PHRASES:
        if pattern.search(raw):
            sort = value
            consumed.append(pattern.search(raw).group(0))
            break

    action = "add_to_cart" if re.search(r"\b(add to cart|add it to (?:my )?cart|to cart)\b", lowered) else "buy_now"
    platform = detect_platform_hint(raw)

    # Product query: the request minus filter phrases, platform and filler words
    query = raw
    for fragment in consumed:
        query = query.replace(fragment, " ")
    for keywords in PLATFORM_KEYWORDS.values():
        for keyword in keywords:
            query = re.sub(rf"\b{re.escape(keyword)}\b", " ", query, flags=re.IGNORECASE)
    query = re.sub(r"\b(add to cart|add it to (?:my )?cart|to cart|under|above)\b", " ", query, flags=re.IGNORECASE)
    query = FILLER_RE.sub(" ", query)
    query = re.sub(r"[^\w\s&+-]", " ", query)
    query = re.sub(r"\s+", " ", query).strip()

    return Intent(
        product_query=query or raw,
        platform_hint=platform or default_platform,
        filters=filters,
        sort=sort,
        action=action,
    )


def intent_from_llm_dict(data: Dict[str, Any], fallback_text: str) -> Intent:
    product = str(data.get("product") or "").strip()
    if not product:
        raise ValueError("model returned no product")

    filters = {
        key: value
        for key, value in (data.get("filters") or {}).items()
        if value not in (None, "", "null")
    }
    if "brand" in filters:
        brand = str(filters["brand"]).lower()
        filters["brand"] = BRAND_CANONICAL.get(brand, brand)

    platform = data.get("platform")
    platform = str(platform).lower() if platform and str(platform).lower() != "null" else None
    sort = data.get("sort")
    sort = sort if sort and sort != "null" else None
    action = data.get("action") if data.get("action") in ("buy_now", "add_to_cart") else "buy_now"

    try:
        quantity = max(1, int(data.get("quantity") or 1))
    except (TypeError, ValueError):
        quantity = 1

    return Intent(
        product_query=product,
        platform_hint=platform or detect_platform_hint(fallback_text),
        filters=filters,
        sort=sort,
        action=action,
        quantity=quantity,
        delivery_location=data.get("delivery_location") or None,
        payment_method=data.get("payment_method") or None,
    )


class IntentParser:
    """LLM-first intent parsing with a regex fallback"""

    def __init__(self, client: Optional[GeminiClient] = None, default_platform: Optional[str] = None):
        self.client = client
        self.default_platform = default_platform or default_config.default_platform

    async def parse(self, text: str) -> Intent:
        if self.client is not None and self.client.available:
            try:
                response = await self.client.generate_content(f'Request: "{text}"', INTENT_SYSTEM_PROMPT)
                intent = intent_from_llm_dict(parse_llm_json(extract_text(response)), text)
                if intent.platform_hint is None:
                    intent = Intent(**{**intent.to_dict(), "platform_hint": self.default_platform})
                logger.info(f"LLM intent: {intent.product_query} on {intent.platform_hint} {dict(intent.filters)}")
                return intent
            except (LLMError, NetworkError, RecoveryParseExhausted, ValueError) as e:
                logger.warning(f"LLM intent parsing failed, using simple parser: {e}")

        intent = parse_intent_simple(text, self.default_platform)
        logger.info(f"Simple intent: {intent.product_query} on {intent.platform_hint} {dict(intent.filters)}")
        return intent
