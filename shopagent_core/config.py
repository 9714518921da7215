#!/usr/bin/env python3
from dataclasses import dataclass
import os
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ["true", "1", "yes"]


@dataclass
class Config:
    """Application configuration"""
    # Language model (Gemini generateContent)
    gemini_api_key: Optional[str] = os.getenv("SHOPAGENT_GEMINI_API_KEY") or os.getenv("GEMINI_API_KEY") or None
    gemini_model: str = os.getenv("SHOPAGENT_GEMINI_MODEL", "gemini-2.0-flash")
    gemini_base_url: str = os.getenv("SHOPAGENT_GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta")
    llm_timeout: int = int(os.getenv("SHOPAGENT_LLM_TIMEOUT", "60"))
    temperature: float = float(os.getenv("SHOPAGENT_TEMPERATURE", "0.2"))

    # Browser
    headless: bool = _flag("SHOPAGENT_HEADLESS", "true")
    locale: str = os.getenv("SHOPAGENT_LOCALE", "en-IN")
    default_platform: str = os.getenv("SHOPAGENT_DEFAULT_PLATFORM", "amazon").lower()

    # Per-phase timeouts (seconds)
    search_timeout: float = float(os.getenv("SHOPAGENT_SEARCH_TIMEOUT", "10"))
    filter_timeout: float = float(os.getenv("SHOPAGENT_FILTER_TIMEOUT", "25"))
    buy_now_timeout: float = float(os.getenv("SHOPAGENT_BUY_NOW_TIMEOUT", "15"))
    step_timeout: float = float(os.getenv("SHOPAGENT_STEP_TIMEOUT", "10"))

    # Per-phase retry budgets
    search_budget: int = int(os.getenv("SHOPAGENT_SEARCH_BUDGET", "2"))
    selection_budget: int = int(os.getenv("SHOPAGENT_SELECTION_BUDGET", "3"))
    buy_now_budget: int = int(os.getenv("SHOPAGENT_BUY_NOW_BUDGET", "3"))
    add_to_cart_budget: int = int(os.getenv("SHOPAGENT_ADD_TO_CART_BUDGET", "3"))
    escalation_budget: int = int(os.getenv("SHOPAGENT_ESCALATION_BUDGET", "3"))
    fallback_to_cart: bool = _flag("SHOPAGENT_FALLBACK_TO_CART", "false")

    # Filters and DOM polling
    url_filter_retries: int = int(os.getenv("SHOPAGENT_URL_FILTER_RETRIES", "3"))
    poll_interval_ms: int = int(os.getenv("SHOPAGENT_POLL_INTERVAL_MS", "200"))
    filter_wait_ms: int = int(os.getenv("SHOPAGENT_FILTER_WAIT_MS", "3000"))
    page_settle_ms: int = int(os.getenv("SHOPAGENT_PAGE_SETTLE_MS", "1500"))

    # Page snapshot sent to the language model
    snapshot_max_products: int = int(os.getenv("SHOPAGENT_SNAPSHOT_MAX_PRODUCTS", "20"))
    snapshot_max_options: int = int(os.getenv("SHOPAGENT_SNAPSHOT_MAX_OPTIONS", "5"))

    log_dir: Path = Path(os.getenv("SHOPAGENT_LOG_DIR", "./logs"))
    enable_debug: bool = _flag("SHOPAGENT_DEBUG", "false")

    def timeout_for(self, phase: str) -> float:
        """Bounded wait (seconds) for the async action of a phase."""
        return {
            "search": self.search_timeout,
            "filters": self.filter_timeout,
            "buy_now": self.buy_now_timeout,
        }.get(phase, self.step_timeout)

    def budget_for(self, phase: str) -> int:
        return {
            "search": self.search_budget,
            "select": self.selection_budget,
            "buy_now": self.buy_now_budget,
            "add_to_cart": self.add_to_cart_budget,
            "escalation": self.escalation_budget,
        }.get(phase, 1)


config = Config()
