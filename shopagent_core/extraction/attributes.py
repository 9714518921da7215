"""
Attribute inference from product titles.

Every attribute is numeric (or a canonical brand name); an attribute that
cannot be read from the text is None, never zero.
"""

import re
from typing import Iterable, Optional

from ..models import ProductAttributes

KNOWN_BRANDS = [
    "samsung", "apple", "xiaomi", "redmi", "poco", "oneplus", "oppo", "vivo",
    "realme", "motorola", "moto", "nokia", "lg", "sony", "google", "iqoo",
    "nothing", "infinix", "tecno", "lava", "micromax", "honor", "huawei",
    "asus", "lenovo", "hp", "dell", "acer", "msi", "boat", "jbl",
]

# Alias → canonical brand
BRAND_CANONICAL = {
    "iphone": "apple",
    "mi": "xiaomi",
    "moto": "motorola",
}

_BATTERY_RE = re.compile(r"(\d[\d,]{2,6})\s*mah\b", re.IGNORECASE)
_RAM_RES = [
    re.compile(r"(\d+(?:\.\d+)?)\s*gb\s*(?:of\s+)?(?:lpddr\w*\s+|ddr\w*\s+)?(?:ram|memory)\b", re.IGNORECASE),
    re.compile(r"\b(?:ram|memory)\s*[:\-]?\s*(\d+(?:\.\d+)?)\s*gb\b", re.IGNORECASE),
]
_STORAGE_RES = [
    re.compile(r"(\d+(?:\.\d+)?)\s*(gb|tb)\s*(?:of\s+)?(?:internal\s+)?(?:storage|ssd|hdd|rom)\b", re.IGNORECASE),
    re.compile(r"\b(?:storage|ssd|hdd|rom)\s*[:\-]?\s*(\d+(?:\.\d+)?)\s*(gb|tb)\b", re.IGNORECASE),
]
# "6GB, 128GB Storage" / "8GB/256GB" / "8 GB + 128 GB"
_PAIRED_CAPACITY_RE = re.compile(r"(\d+)\s*gb\s*[,/+|]\s*(\d+)\s*(gb|tb)\b", re.IGNORECASE)


def _to_gb(value: str, unit: str) -> float:
    number = float(value)
    return number * 1024 if unit.lower() == "tb" else number


def infer_battery(text: str) -> Optional[int]:
    match = _BATTERY_RE.search(text or "")
    if not match:
        return None
    return int(match.group(1).replace(",", ""))


def infer_storage(text: str) -> Optional[float]:
    for pattern in _STORAGE_RES:
        match = pattern.search(text or "")
        if match:
            return _to_gb(match.group(1), match.group(2))
    return None


def infer_ram(text: str) -> Optional[float]:
    for pattern in _RAM_RES:
        match = pattern.search(text or "")
        if match:
            return float(match.group(1))

    # Paired capacities: smaller leading value is RAM when the pair is RAM/storage
    paired = _PAIRED_CAPACITY_RE.search(text or "")
    if paired:
        first = float(paired.group(1))
        second = _to_gb(paired.group(2), paired.group(3))
        if first < second and first <= 32:
            return first
    return None


def infer_brand(text: str, brands: Iterable[str] = KNOWN_BRANDS) -> Optional[str]:
    """Canonical brand for the earliest known brand token in ``text``."""
    lowered = (text or "").lower()
    best = None
    for brand in list(brands) + list(BRAND_CANONICAL):
        match = re.search(rf"\b{re.escape(brand)}\b", lowered)
        if match and (best is None or match.start() < best[0]):
            best = (match.start(), brand)
    if best is None:
        return None
    return BRAND_CANONICAL.get(best[1], best[1])


def infer_attributes(title: str, extra_text: str = "") -> ProductAttributes:
    """
    Infer battery/RAM/storage/brand from a product title.

    ``extra_text`` (e.g. a feature bullet list) is consulted only for numeric
    attributes the title does not carry.
    """
    title = title or ""
    battery = infer_battery(title)
    ram = infer_ram(title)
    storage = infer_storage(title)

    if extra_text:
        if battery is None:
            battery = infer_battery(extra_text)
        if ram is None:
            ram = infer_ram(extra_text)
        if storage is None:
            storage = infer_storage(extra_text)

    if storage is None:
        # Paired form without the storage keyword: "(8GB/256GB)"
        paired = _PAIRED_CAPACITY_RE.search(title)
        if paired and ram is not None and float(paired.group(1)) == ram:
            storage = _to_gb(paired.group(2), paired.group(3))

    return ProductAttributes(
        battery=battery,
        ram=ram,
        storage=storage,
        brand=infer_brand(title),
    )
