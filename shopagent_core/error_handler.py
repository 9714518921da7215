"""
Failure reasons as people read them.

A FAILED task reports a reason string such as
"Buy now failed after 3 attempts: manual intervention required". The helpers
here map such reasons (or exceptions) onto a short message, a suggestion and
a retry hint.
"""

from typing import Dict, Optional, Union
import logging
import traceback

logger = logging.getLogger(__name__)

ErrorLike = Union[BaseException, str]

DEFAULT_ERROR = {
    "message": "An unexpected error occurred while running the shopping task",
    "suggestion": "Check the run log for details or try again",
    "severity": "error",
    "can_retry": True,
}

CATEGORY_KEYWORDS = [
    ("checkout", ["buy_now", "add_to_cart", "manual intervention", "checkout"]),
    ("search", ["no products", "search", "out of range", "link"]),
    ("network", ["timeout", "timed out", "connection", "network"]),
    ("browser", ["browser", "target", "navigation", "in flight"]),
    ("llm", ["llm", "model", "gemini", "decision"]),
    ("captcha", ["captcha", "sign in"]),
]


# Lowercase pattern -> user-facing info. First match wins.
ERROR_MAPPINGS = {
    # Budget exhaustion
    "manual intervention required": {
        "message": "The agent could not complete checkout on its own",
        "suggestion": "Finish the purchase manually on the open product page",
        "severity": "error",
        "can_retry": False
    },
    "no buy_now control": {
        "message": "No Buy Now button was found on the product page",
        "suggestion": "The product may be unavailable or sold by a third party. Try add to cart instead.",
        "severity": "warning",
        "can_retry": True
    },
    "no add_to_cart control": {
        "message": "No Add to Cart button was found on the product page",
        "suggestion": "The product may be unavailable. Pick another product.",
        "severity": "warning",
        "can_retry": True
    },

    # Search / results
    "no products": {
        "message": "No matching products were found",
        "suggestion": "Relax the filters or rephrase the product query",
        "severity": "warning",
        "can_retry": False
    },
    "search failed": {
        "message": "The site search could not be run",
        "suggestion": "Check that the shop URL is reachable and not showing a captcha",
        "severity": "error",
        "can_retry": True
    },
    "out of range": {
        "message": "The chosen product is no longer in the result list",
        "suggestion": "The results changed while the task was running. Try again.",
        "severity": "warning",
        "can_retry": True
    },
    "no navigable link": {
        "message": "The chosen product has no usable link",
        "suggestion": "Pick another product from the results",
        "severity": "warning",
        "can_retry": True
    },

    # Slow or unreachable site
    "timeout": {
        "message": "The page took too long to respond",
        "suggestion": "Check your internet connection or whether the site is up. Try again.",
        "severity": "warning",
        "can_retry": True
    },
    "timed out": {
        "message": "The page took too long to respond",
        "suggestion": "Check your internet connection or whether the site is up. Try again.",
        "severity": "warning",
        "can_retry": True
    },
    "connection refused": {
        "message": "Cannot connect to the site",
        "suggestion": "Check that the URL is correct and the site is reachable",
        "severity": "error",
        "can_retry": True
    },
    "network": {
        "message": "Network error",
        "suggestion": "Check your internet connection and try again",
        "severity": "error",
        "can_retry": True
    },

    # Browser session
    "target closed": {
        "message": "The browser was closed during the operation",
        "suggestion": "Run the task again",
        "severity": "error",
        "can_retry": True
    },
    "navigation failed": {
        "message": "The page could not be loaded",
        "suggestion": "Check that the URL is correct and the site is reachable",
        "severity": "error",
        "can_retry": True
    },
    "in flight": {
        "message": "The page was busy with another request",
        "suggestion": "Wait for the running task to finish before starting another",
        "severity": "error",
        "can_retry": True
    },

    # Login / captcha
    "captcha": {
        "message": "A CAPTCHA is blocking the page",
        "suggestion": "Solve the CAPTCHA in the browser window and run the task again",
        "severity": "warning",
        "can_retry": False
    },
    "sign in": {
        "message": "The site requires signing in",
        "suggestion": "Sign in to the site in the browser window, then run the task again",
        "severity": "warning",
        "can_retry": False
    },

    # LLM errors
    "decision unavailable": {
        "message": "The language model answer could not be understood",
        "suggestion": "Try again or rephrase the request",
        "severity": "error",
        "can_retry": True
    },
    "api key": {
        "message": "The language model is not configured",
        "suggestion": "Set GEMINI_API_KEY in your environment or .env file",
        "severity": "critical",
        "can_retry": False
    },
    "gemini": {
        "message": "Error talking to the Gemini API",
        "suggestion": "Check the API key and quota, then try again",
        "severity": "error",
        "can_retry": True
    },

    # Task lifecycle
    "cancelled": {
        "message": "The task was cancelled",
        "suggestion": "Start a new task",
        "severity": "warning",
        "can_retry": False
    },
    "transition": {
        "message": "The task reached an unexpected state",
        "suggestion": "Reset the agent and run the task again",
        "severity": "critical",
        "can_retry": False
    },

    # Layout drift
    "selector": {
        "message": "An element was not found on the page",
        "suggestion": "The element may not exist or the site layout has changed",
        "severity": "warning",
        "can_retry": True
    },
}


def format_user_friendly_error(
    error: ErrorLike,
    context: str = "general",
    technical_details: Optional[str] = None
) -> Dict:
    """
    Look up the first ``ERROR_MAPPINGS`` pattern contained in the error text.

    Returns a dict with ``message``, ``suggestion``, ``technical``,
    ``severity`` and ``can_retry``; unknown errors get ``DEFAULT_ERROR``.
    ``context`` is the task phase and only shows up in debug logs.
    """
    reason = str(error)
    lowered = reason.lower()
    entry = next((info for pattern, info in ERROR_MAPPINGS.items() if pattern in lowered), None)
    if entry is None:
        entry = DEFAULT_ERROR
    else:
        logger.debug(f"[{context}] '{reason}' -> {entry['message']}")
    return dict(entry, technical=technical_details or reason)


def get_error_category(error: ErrorLike) -> str:
    """checkout, search, network, browser, llm, captcha or unknown."""
    lowered = str(error).lower()
    for category, keywords in CATEGORY_KEYWORDS:
        if any(k in lowered for k in keywords):
            return category
    return "unknown"


def should_retry_error(error: ErrorLike) -> bool:
    return bool(format_user_friendly_error(error).get("can_retry", False))


def format_error_for_logging(error: ErrorLike, context: str = "") -> str:
    """Multi-line log entry: optional phase line, message, suggestion, raw reason."""
    info = format_user_friendly_error(error, context)
    lines = [f"📍 Context: {context}"] if context else []
    lines += [
        f"❌ {info['message']}",
        f"💡 {info['suggestion']}",
        f"🔧 Technical: {info['technical']}",
    ]
    return "\n".join(lines)


def create_error_response(
    error: ErrorLike,
    context: str = "",
    include_stacktrace: bool = False
) -> Dict:
    """
    Error payload carried by a FAILED ``TaskResult`` and printed by the CLI.

    Args:
        error: Exception or failure reason
        context: Phase the task failed in, reported as ``phase``
        include_stacktrace: Attach the current traceback (only meaningful
            inside an ``except`` block)
    """
    info = format_user_friendly_error(error, context)
    details = {
        "message": info["message"],
        "suggestion": info["suggestion"],
        "severity": info["severity"],
        "can_retry": info["can_retry"],
        "category": get_error_category(error),
        "reason": str(error),
    }
    if context:
        details["phase"] = context
    if include_stacktrace:
        details["stacktrace"] = traceback.format_exc()
        details["technical_details"] = info["technical"]
    return {"success": False, "error": details}
