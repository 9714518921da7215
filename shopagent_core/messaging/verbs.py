"""
Page message verbs and envelopes.

Requests and responses are plain dicts. Every envelope carries a correlation
``id`` and the ``tab_id`` it belongs to; a response always carries
``success`` and, on failure, ``error`` instead of raising.
"""

from enum import Enum
from typing import Any, Dict, Optional


class Verb(str, Enum):
    SEARCH = "SEARCH"
    GET_SEARCH_RESULTS = "GET_SEARCH_RESULTS"
    APPLY_FILTERS = "APPLY_FILTERS"
    SELECT_PRODUCT = "SELECT_PRODUCT"
    CLICK_BUY_NOW = "CLICK_BUY_NOW"
    ADD_TO_CART = "ADD_TO_CART"
    GET_PRODUCT_DETAILS = "GET_PRODUCT_DETAILS"
    EXTRACT_PAGE_CONTENT = "EXTRACT_PAGE_CONTENT"
    NAVIGATE = "NAVIGATE"
    CLICK_ELEMENT = "CLICK_ELEMENT"
    FILL_INPUT = "FILL_INPUT"


def make_request(request_id: str, tab_id: str, verb: Verb, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return {
        "id": request_id,
        "tab_id": tab_id,
        "verb": Verb(verb).value,
        "payload": dict(payload or {}),
    }


def success_response(request: Dict[str, Any], **data) -> Dict[str, Any]:
    return {
        "id": request.get("id"),
        "tab_id": request.get("tab_id"),
        "verb": request.get("verb"),
        "success": True,
        **data,
    }


def failure_response(request: Dict[str, Any], error: str, error_type: Optional[str] = None, **data) -> Dict[str, Any]:
    response = {
        "id": request.get("id"),
        "tab_id": request.get("tab_id"),
        "verb": request.get("verb"),
        "success": False,
        "error": error,
        **data,
    }
    if error_type:
        response["error_type"] = error_type
    return response
