"""
shopagent_core package: intent-fulfillment orchestrator for browser shopping

Usage:
    from shopagent_core import ShoppingOrchestrator, PageChannel, PageAgent, get_adapter

    channel = PageChannel()
    orchestrator = ShoppingOrchestrator(
        channel,
        agent_factory=lambda platform: PageAgent(get_adapter(platform, page)),
    )
    result = await orchestrator.run("samsung phone under 20k with 6gb ram")
"""
from .config import Config, config
from .exceptions import ShopAgentError
from .models import Availability, FilterGroup, FilterType, Intent, Product
from .intent import IntentParser, parse_intent_simple
from .llm import GeminiClient, PageAnalyzer
from .messaging import PageAgent, PageChannel, Verb
from .orchestrator import ShoppingOrchestrator, TaskResult, TaskStatus
from .platforms import PlatformAdapter, get_adapter, detect_platform

__all__ = [
    # Core
    "Config",
    "config",
    "ShopAgentError",
    # Models
    "Availability",
    "FilterGroup",
    "FilterType",
    "Intent",
    "Product",
    # Intent and language model
    "IntentParser",
    "parse_intent_simple",
    "GeminiClient",
    "PageAnalyzer",
    # Messaging
    "PageAgent",
    "PageChannel",
    "Verb",
    # Orchestration
    "ShoppingOrchestrator",
    "TaskResult",
    "TaskStatus",
    # Platforms
    "PlatformAdapter",
    "get_adapter",
    "detect_platform",
]

__version__ = "0.1.0"
