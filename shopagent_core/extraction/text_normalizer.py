"""
Text normalization for filter labels, option texts and prices.

Usage:
    normalize_filter_text("RAM (1,204)")      -> "ram"
    normalize_ram_size("6 GB & Above")        -> 6.0
    normalize_storage_size("1 TB")            -> 1024.0
    normalize_price("₹12,499")                -> 12499.0
    fuzzy_match("Samsung", "samsnug")         -> True
"""

import re
from typing import Optional

from rapidfuzz import fuzz

_PARENS_RE = re.compile(r"\([^)]*\)")
_WS_RE = re.compile(r"\s+")
_NUMBER_RE = re.compile(r"\d+(?:[.,]\d+)*")
_CURRENCY_RE = re.compile(r"[₹$€£]|rs\.?|inr|usd", re.IGNORECASE)


def normalize_filter_text(text: Optional[str]) -> str:
    """Lowercase, trim, strip parenthetical counts and collapse whitespace."""
    if not text:
        return ""
    cleaned = _PARENS_RE.sub(" ", text)
    cleaned = cleaned.replace(" ", " ")
    return _WS_RE.sub(" ", cleaned).strip().lower()


def extract_number(text: Optional[str]) -> Optional[float]:
    """First number in ``text`` with thousands separators removed."""
    if not text:
        return None
    match = _NUMBER_RE.search(str(text))
    if not match:
        return None
    raw = match.group(0)
    # "1,234" / "1,23,456" are thousands groupings; "4.5" is a decimal
    if "," in raw:
        raw = raw.replace(",", "")
    try:
        return float(raw)
    except ValueError:
        return None


def normalize_ram_size(text: Optional[str]) -> Optional[float]:
    """RAM value in GB ("6 GB", "8GB & Above", "512 MB" -> 0.5)."""
    if not text:
        return None
    lowered = text.lower()
    match = re.search(r"(\d+(?:\.\d+)?)\s*(gb|mb)\b", lowered)
    if match:
        value = float(match.group(1))
        return value / 1024 if match.group(2) == "mb" else value
    return extract_number(lowered)


def normalize_storage_size(text: Optional[str]) -> Optional[float]:
    """Storage in GB ("128 GB", "1 TB" -> 1024)."""
    if not text:
        return None
    lowered = text.lower()
    match = re.search(r"(\d+(?:\.\d+)?)\s*(tb|gb|mb)\b", lowered)
    if match:
        value = float(match.group(1))
        unit = match.group(2)
        if unit == "tb":
            return value * 1024
        if unit == "mb":
            return value / 1024
        return value
    return extract_number(lowered)


def normalize_battery_capacity(text: Optional[str]) -> Optional[float]:
    """Battery capacity in mAh ("5000 mAh & Above", "5,000mAh")."""
    if not text:
        return None
    match = re.search(r"(\d[\d,]*)\s*mah", text.lower())
    if match:
        return float(match.group(1).replace(",", ""))
    return extract_number(text)


def normalize_rating(text: Optional[str]) -> Optional[float]:
    """Star rating ("4★ & above", "4.2 out of 5 stars")."""
    if not text:
        return None
    match = re.search(r"(\d(?:\.\d)?)\s*(?:★|star|out of|&|\+|and up)", text.lower())
    if match:
        return float(match.group(1))
    value = extract_number(text)
    return value if value is not None and value <= 5 else None


def normalize_price(text: Optional[str]) -> Optional[float]:
    """
    Parse a displayed price.

    Handles currency symbols, "from", "k"/"thousand" suffixes and ranges
    (the lower bound wins).
    """
    if text is None:
        return None
    if isinstance(text, (int, float)):
        return float(text)
    lowered = _CURRENCY_RE.sub("", str(text).lower())
    lowered = lowered.replace("from", "").replace("starting at", "").strip()
    match = re.search(r"(\d[\d,]*(?:\.\d+)?)\s*(k|thousand|lakh)?\b", lowered)
    if not match:
        return None
    value = float(match.group(1).replace(",", ""))
    suffix = match.group(2)
    if suffix in ("k", "thousand"):
        value *= 1000
    elif suffix == "lakh":
        value *= 100000
    return value


def fuzzy_match(
    a: Optional[str],
    b: Optional[str],
    threshold: float = 80.0,
    substring: bool = True,
) -> bool:
    """
    Loose equality for option texts and brand names.

    Exact after normalization, or one side containing the other (when
    ``substring`` is set and the shorter side has at least 3 characters),
    otherwise a rapidfuzz ratio at or above ``threshold`` (0-100).
    """
    left = normalize_filter_text(a)
    right = normalize_filter_text(b)
    if not left or not right:
        return False
    if left == right:
        return True
    if substring and min(len(left), len(right)) >= 3 and (left in right or right in left):
        return True
    return fuzz.ratio(left, right) >= threshold
