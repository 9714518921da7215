"""
Atomized access to intent parsing.
"""

from .parser import (
    IntentParser,
    default_platform_url,
    detect_platform_hint,
    intent_from_llm_dict,
    parse_intent_simple,
)

__all__ = [
    'IntentParser',
    'default_platform_url',
    'detect_platform_hint',
    'intent_from_llm_dict',
    'parse_intent_simple',
]
