"""
Task state owned by the orchestrator, and the result handed to the caller.
"""

import time
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional

from ..exceptions import InvalidTransitionError
from ..models import Intent, Product
from .states import TaskStatus, can_transition


@dataclass(frozen=True)
class PhaseTransition:
    from_status: TaskStatus
    to_status: TaskStatus
    reason: str = ""
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from": self.from_status.value,
            "to": self.to_status.value,
            "reason": self.reason,
            "timestamp": self.timestamp,
        }


@dataclass
class TaskState:
    """
    The one mutable record of the running task.

    ``generation`` increases on every reset; async results tagged with an
    older generation (or another tab) are discarded.
    """
    status: TaskStatus = TaskStatus.IDLE
    tab_id: Optional[str] = None
    intent: Optional[Intent] = None
    generation: int = 0
    retry_counters: Dict[str, int] = field(default_factory=dict)
    history: List[PhaseTransition] = field(default_factory=list)

    # Working data
    instruction: Optional[str] = None
    products: List[Product] = field(default_factory=list)
    selected_product: Optional[Product] = None
    product_details: Optional[Dict[str, Any]] = None
    filter_report: Dict[str, Any] = field(default_factory=dict)
    failure_reason: Optional[str] = None
    failure_phase: Optional[str] = None
    started_at: Optional[float] = None

    def is_current(self, generation: int, tab_id: Optional[str]) -> bool:
        return generation == self.generation and tab_id == self.tab_id

    def attempts(self, phase: str) -> int:
        return self.retry_counters.get(phase, 0)

    def record_attempt(self, phase: str) -> int:
        self.retry_counters[phase] = self.attempts(phase) + 1
        return self.retry_counters[phase]

    def transition(self, target: TaskStatus, reason: str = "") -> PhaseTransition:
        """
        Move to ``target``.

        Raises:
            InvalidTransitionError: If the move is not allowed from the current status
        """
        if not can_transition(self.status, target):
            raise InvalidTransitionError(
                f"Illegal transition {self.status.value} -> {target.value}"
            )
        step = PhaseTransition(self.status, target, reason)
        self.history.append(step)
        self.status = target
        return step

    def begin(self, tab_id: str, instruction: str) -> None:
        """IDLE -> PARSING_INTENT for a new task."""
        self.transition(TaskStatus.PARSING_INTENT, "task started")
        self.tab_id = tab_id
        self.instruction = instruction
        self.started_at = time.time()

    def reset(self) -> int:
        """Back to IDLE with a new generation; returns the new generation."""
        fresh = TaskState(generation=self.generation + 1)
        for f in fields(self):
            setattr(self, f.name, getattr(fresh, f.name))
        return self.generation

    @property
    def elapsed_ms(self) -> int:
        if self.started_at is None:
            return 0
        return int((time.time() - self.started_at) * 1000)


@dataclass
class TaskResult:
    success: bool
    status: str
    instruction: Optional[str] = None
    intent: Optional[Dict[str, Any]] = None
    product: Optional[Dict[str, Any]] = None
    product_details: Optional[Dict[str, Any]] = None
    filters: Dict[str, Any] = field(default_factory=dict)
    candidates: int = 0
    history: List[Dict[str, Any]] = field(default_factory=list)
    error: Optional[Dict[str, Any]] = None
    duration_ms: int = 0

    @classmethod
    def from_state(cls, state: TaskState, error: Optional[Dict[str, Any]] = None) -> "TaskResult":
        return cls(
            success=state.status is TaskStatus.COMPLETED,
            status=state.status.value,
            instruction=state.instruction,
            intent=state.intent.to_dict() if state.intent else None,
            product=state.selected_product.to_dict() if state.selected_product else None,
            product_details=state.product_details,
            filters=dict(state.filter_report),
            candidates=len(state.products),
            history=[t.to_dict() for t in state.history],
            error=error,
            duration_ms=state.elapsed_ms,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "status": self.status,
            "instruction": self.instruction,
            "intent": self.intent,
            "product": self.product,
            "product_details": self.product_details,
            "filters": self.filters,
            "candidates": self.candidates,
            "history": self.history,
            "error": self.error,
            "duration_ms": self.duration_ms,
        }
