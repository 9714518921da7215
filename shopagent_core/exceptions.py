"""
Exception taxonomy for the shopping agent.

Extraction, classification and filter errors are caught at their component
boundary and degrade to an empty result or a skipped filter. Action errors
(selection, buy-now, add-to-cart) consume a phase retry budget in the
orchestrator.
"""

from typing import Optional


class ShopAgentError(Exception):
    """Base class for all shopping agent errors"""
    pass


class SelectorNotFoundError(ShopAgentError):
    """No container or element matched any selector in a chain"""

    def __init__(self, message: str = "No selector matched", selectors=None):
        super().__init__(message)
        self.selectors = list(selectors or [])


class ElementNotClickableError(ShopAgentError):
    """Element was found but not visible/enabled within the timeout"""

    def __init__(self, selector: str, timeout_ms: Optional[int] = None):
        msg = f"Element not clickable: {selector}"
        if timeout_ms is not None:
            msg += f" (waited {timeout_ms}ms)"
        super().__init__(msg)
        self.selector = selector
        self.timeout_ms = timeout_ms


class MissingLinkError(ShopAgentError):
    """Selected product has no navigable link"""
    pass


class IndexOutOfRangeError(ShopAgentError):
    """Product index exceeds the current result count"""

    def __init__(self, index: int, count: int):
        super().__init__(f"Product index {index} out of range (have {count} results)")
        self.index = index
        self.count = count


class FilterVerificationTimeout(ShopAgentError):
    """Filter click produced no observable effect within the wait window"""
    pass


class ActionNotFoundError(ShopAgentError):
    """No buy-now / add-to-cart candidate control matched"""

    def __init__(self, action: str, tried: int = 0):
        super().__init__(f"No {action} control found after trying {tried} selectors")
        self.action = action
        self.tried = tried


class RecoveryParseExhausted(ShopAgentError):
    """Every JSON recovery strategy failed on a model response"""
    pass


class NetworkError(ShopAgentError):
    """Network-related error (timeout, connection refused, etc.)"""
    pass


class LLMError(ShopAgentError):
    """Language model call failed or returned no usable text"""
    pass


class ProtocolViolationError(ShopAgentError):
    """A second page request was issued while one is still in flight for the tab"""
    pass


class InvalidTransitionError(ShopAgentError):
    """Task state machine received a transition it does not allow"""
    pass


class TaskCancelledError(ShopAgentError):
    """The task was reset while an async step was pending; its result is stale"""
    pass
