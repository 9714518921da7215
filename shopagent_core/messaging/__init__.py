"""
Atomized access to page messaging.

PageChannel sends verbs to per-tab PageAgents, one request in flight per tab.
"""

from .verbs import Verb, failure_response, make_request, success_response
from .agent import PageAgent
from .channel import PageChannel

__all__ = [
    'Verb',
    'make_request',
    'success_response',
    'failure_response',
    'PageAgent',
    'PageChannel',
]
