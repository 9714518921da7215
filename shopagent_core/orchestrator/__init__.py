"""
Atomized access to the task orchestrator.
"""

from .states import ALLOWED_TRANSITIONS, TERMINAL_STATES, TaskStatus, can_transition
from .state import PhaseTransition, TaskResult, TaskState
from .orchestrator import MANUAL_INTERVENTION, ShoppingOrchestrator

__all__ = [
    'ALLOWED_TRANSITIONS',
    'TERMINAL_STATES',
    'TaskStatus',
    'can_transition',
    'PhaseTransition',
    'TaskResult',
    'TaskState',
    'MANUAL_INTERVENTION',
    'ShoppingOrchestrator',
]
