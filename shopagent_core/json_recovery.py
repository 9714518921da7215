"""
Recovery JSON Parser

Salvages one JSON object from free-form language-model text that may be wrapped
in commentary or code fences, contain trailing commas, single quotes, unquoted
keys or several candidate objects.

Strategies run in a fixed order; the first that yields a dict wins:

1. strip code fences, parse directly
2. greedy first ``{...}`` span
3. string-aware brace scan from the first ``{``
4. every shallow (non-nested) ``{...}`` span
5. common-error repairs on the greedy span
6. array fallback (first object element, or ``{"data": [...]}``)
7. everything between the first ``{`` and the last ``}``

Usage:
    from shopagent_core.json_recovery import parse_llm_json, try_parse_llm_json

    decision = parse_llm_json(text)          # raises RecoveryParseExhausted
    decision = try_parse_llm_json(text)      # returns None instead
"""

import json
import logging
import re
from typing import Any, Dict, Iterable, List, Optional

from .exceptions import RecoveryParseExhausted
from .strategies import first_match_named, named

logger = logging.getLogger(__name__)

_FENCE_JSON = re.compile(r"```json\s*", re.IGNORECASE)
_FENCE = re.compile(r"```\s*")
_GREEDY_OBJECT = re.compile(r"\{[\s\S]*\}")
_SHALLOW_OBJECT = re.compile(r"\{[^{}]*\}")
_GREEDY_ARRAY = re.compile(r"\[[\s\S]*\]")
_TRAILING_COMMA_OBJ = re.compile(r",\s*}")
_TRAILING_COMMA_ARR = re.compile(r",\s*\]")
_UNQUOTED_KEY = re.compile(r"(\{|,)\s*([a-zA-Z_][a-zA-Z0-9_]*)\s*:")


def _loads_object(text: Optional[str]) -> Optional[Dict[str, Any]]:
    """json.loads that only accepts a dict; anything else is a miss."""
    if not text:
        return None
    try:
        value = json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return None
    return value if isinstance(value, dict) else None


def strip_code_fences(text: str) -> str:
    return _FENCE.sub("", _FENCE_JSON.sub("", text)).strip()


# =========================================================================
# Strategies
# =========================================================================

def _direct(text: str) -> Optional[Dict[str, Any]]:
    return _loads_object(strip_code_fences(text))


def _greedy_object(text: str) -> Optional[Dict[str, Any]]:
    match = _GREEDY_OBJECT.search(text)
    return _loads_object(match.group(0)) if match else None


def find_balanced_object(text: str) -> Optional[str]:
    """
    Return the exact ``{...}`` span starting at the first ``{``.

    Braces inside double-quoted strings are ignored, backslash escapes are
    respected. None when the object never closes.
    """
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for pos in range(start, len(text)):
        ch = text[pos]
        if escaped:
            escaped = False
            continue
        if ch == "\\":
            escaped = True
            continue
        if ch == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start:pos + 1]
    return None


def _balanced_scan(text: str) -> Optional[Dict[str, Any]]:
    return _loads_object(find_balanced_object(text))


def _shallow_objects(text: str) -> Optional[Dict[str, Any]]:
    for match in _SHALLOW_OBJECT.finditer(text):
        parsed = _loads_object(match.group(0))
        if parsed is not None:
            return parsed
    return None


def repair_json(candidate: str) -> str:
    """Remove trailing commas, swap single quotes, quote bare keys."""
    fixed = _TRAILING_COMMA_OBJ.sub("}", candidate)
    fixed = _TRAILING_COMMA_ARR.sub("]", fixed)
    fixed = fixed.replace("'", '"')
    fixed = _UNQUOTED_KEY.sub(r'\1"\2":', fixed)
    return fixed


def _repaired(text: str) -> Optional[Dict[str, Any]]:
    match = _GREEDY_OBJECT.search(strip_code_fences(text))
    if not match:
        return None
    return _loads_object(repair_json(match.group(0)))


def _array_fallback(text: str) -> Optional[Dict[str, Any]]:
    match = _GREEDY_ARRAY.search(text)
    if not match:
        return None
    try:
        value = json.loads(match.group(0))
    except (json.JSONDecodeError, ValueError):
        return None
    if not isinstance(value, list):
        return None
    if value and isinstance(value[0], dict):
        return value[0]
    return {"data": value}


def _outer_span(text: str) -> Optional[Dict[str, Any]]:
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None
    return _loads_object(text[start:end + 1])


STRATEGIES = [
    named("strip_fences", _direct),
    named("greedy_object", _greedy_object),
    named("balanced_scan", _balanced_scan),
    named("shallow_objects", _shallow_objects),
    named("repair_common_errors", _repaired),
    named("array_fallback", _array_fallback),
    named("outer_span", _outer_span),
]


# =========================================================================
# Public API
# =========================================================================

def try_parse_llm_json(text: Optional[str]) -> Optional[Dict[str, Any]]:
    """
    Extract one JSON object from model text.

    Returns:
        Parsed dict, or None when every strategy failed
    """
    if not text or not isinstance(text, str):
        return None

    # Any object counts, including an empty one
    match = first_match_named(STRATEGIES, text, usable=lambda result: result is not None)
    if match is None:
        logger.debug(f"All JSON recovery strategies failed for: {text[:200]!r}")
        return None

    if match.strategy != "strip_fences":
        logger.debug(f"JSON recovered via {match.strategy}")
    return match.value


def parse_llm_json(text: Optional[str]) -> Dict[str, Any]:
    """
    Extract one JSON object from model text.

    Raises:
        RecoveryParseExhausted: If no strategy produced an object
    """
    result = try_parse_llm_json(text)
    if result is None:
        preview = (text or "")[:120]
        raise RecoveryParseExhausted(f"Decision unavailable: could not parse model output {preview!r}")
    return result


def validate_json_structure(obj: Any, required_fields: Iterable[str]) -> List[str]:
    """
    Check that ``obj`` is a dict carrying every required field.

    Returns:
        Missing field names (empty list when valid)
    """
    required = list(required_fields)
    if not isinstance(obj, dict):
        return required
    return [name for name in required if name not in obj]
