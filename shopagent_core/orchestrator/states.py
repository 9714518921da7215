"""
Task states and the transitions allowed between them.

IDLE is only re-entered through an explicit reset, never through a
transition. FAILED is reachable from every active (non-idle, non-terminal) state.
"""

from enum import Enum
from typing import Dict, FrozenSet


class TaskStatus(Enum):
    IDLE = "IDLE"
    PARSING_INTENT = "PARSING_INTENT"
    SEARCHING = "SEARCHING"
    APPLYING_FILTERS = "APPLYING_FILTERS"
    VERIFYING_FILTERS = "VERIFYING_FILTERS"
    SELECTING_PRODUCT = "SELECTING_PRODUCT"
    PRODUCT_PAGE = "PRODUCT_PAGE"
    ADDING_TO_CART = "ADDING_TO_CART"
    BUYING_NOW = "BUYING_NOW"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


TERMINAL_STATES: FrozenSet[TaskStatus] = frozenset({TaskStatus.COMPLETED, TaskStatus.FAILED})

ALLOWED_TRANSITIONS: Dict[TaskStatus, FrozenSet[TaskStatus]] = {
    TaskStatus.IDLE: frozenset({TaskStatus.PARSING_INTENT}),
    TaskStatus.PARSING_INTENT: frozenset({TaskStatus.SEARCHING}),
    TaskStatus.SEARCHING: frozenset({TaskStatus.APPLYING_FILTERS, TaskStatus.SELECTING_PRODUCT}),
    TaskStatus.APPLYING_FILTERS: frozenset({TaskStatus.VERIFYING_FILTERS, TaskStatus.SELECTING_PRODUCT}),
    TaskStatus.VERIFYING_FILTERS: frozenset({TaskStatus.SELECTING_PRODUCT}),
    # COMPLETED here: the language model reported the goal as already reached
    TaskStatus.SELECTING_PRODUCT: frozenset({TaskStatus.PRODUCT_PAGE, TaskStatus.COMPLETED}),
    TaskStatus.PRODUCT_PAGE: frozenset({TaskStatus.BUYING_NOW, TaskStatus.ADDING_TO_CART}),
    TaskStatus.BUYING_NOW: frozenset({TaskStatus.COMPLETED, TaskStatus.ADDING_TO_CART}),
    TaskStatus.ADDING_TO_CART: frozenset({TaskStatus.COMPLETED}),
    TaskStatus.COMPLETED: frozenset(),
    TaskStatus.FAILED: frozenset(),
}

def can_transition(current: TaskStatus, target: TaskStatus) -> bool:
    if target is TaskStatus.FAILED:
        # An idle state has no task to fail
        return current is not TaskStatus.IDLE and current not in TERMINAL_STATES
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())
