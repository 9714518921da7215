"""
Configuration Logger - Centralized config mapping and logging

Single source of truth for the environment variables behind ``Config`` and
helpers to dump them into a run log or the CLI.
"""

from typing import Dict, Any, Optional, List
from .config import config, Config


def get_all_config_variables(cfg: Optional[Config] = None) -> Dict[str, Any]:
    """
    Get all configuration variables with their env names and current values.

    The API key is masked.

    Returns:
        Dict mapping env variable names to their current values
    """
    cfg = cfg or config
    return {
        # Language model
        "SHOPAGENT_GEMINI_API_KEY": "set" if cfg.gemini_api_key else "missing",
        "SHOPAGENT_GEMINI_MODEL": cfg.gemini_model,
        "SHOPAGENT_GEMINI_BASE_URL": cfg.gemini_base_url,
        "SHOPAGENT_LLM_TIMEOUT": cfg.llm_timeout,
        "SHOPAGENT_TEMPERATURE": cfg.temperature,

        # Browser
        "SHOPAGENT_HEADLESS": cfg.headless,
        "SHOPAGENT_LOCALE": cfg.locale,
        "SHOPAGENT_DEFAULT_PLATFORM": cfg.default_platform,

        # Timeouts
        "SHOPAGENT_SEARCH_TIMEOUT": cfg.search_timeout,
        "SHOPAGENT_FILTER_TIMEOUT": cfg.filter_timeout,
        "SHOPAGENT_BUY_NOW_TIMEOUT": cfg.buy_now_timeout,
        "SHOPAGENT_STEP_TIMEOUT": cfg.step_timeout,

        # Budgets
        "SHOPAGENT_SEARCH_BUDGET": cfg.search_budget,
        "SHOPAGENT_SELECTION_BUDGET": cfg.selection_budget,
        "SHOPAGENT_BUY_NOW_BUDGET": cfg.buy_now_budget,
        "SHOPAGENT_ADD_TO_CART_BUDGET": cfg.add_to_cart_budget,
        "SHOPAGENT_ESCALATION_BUDGET": cfg.escalation_budget,
        "SHOPAGENT_FALLBACK_TO_CART": cfg.fallback_to_cart,

        # Filters / polling
        "SHOPAGENT_URL_FILTER_RETRIES": cfg.url_filter_retries,
        "SHOPAGENT_POLL_INTERVAL_MS": cfg.poll_interval_ms,
        "SHOPAGENT_FILTER_WAIT_MS": cfg.filter_wait_ms,
        "SHOPAGENT_PAGE_SETTLE_MS": cfg.page_settle_ms,

        # Snapshot
        "SHOPAGENT_SNAPSHOT_MAX_PRODUCTS": cfg.snapshot_max_products,
        "SHOPAGENT_SNAPSHOT_MAX_OPTIONS": cfg.snapshot_max_options,

        "SHOPAGENT_LOG_DIR": str(cfg.log_dir),
        "SHOPAGENT_DEBUG": cfg.enable_debug,
    }


def log_all_config(run_logger, cfg: Optional[Config] = None) -> None:
    """
    Log all configuration variables to run logger.

    Args:
        run_logger: Logger instance with log_kv method
        cfg: Config to dump (module singleton by default)
    """
    config_vars = get_all_config_variables(cfg)

    # Most relevant first
    for key in ("SHOPAGENT_GEMINI_MODEL", "SHOPAGENT_GEMINI_API_KEY", "SHOPAGENT_DEFAULT_PLATFORM"):
        run_logger.log_kv(key, str(config_vars[key]))

    for key in sorted(config_vars):
        if key in ("SHOPAGENT_GEMINI_MODEL", "SHOPAGENT_GEMINI_API_KEY", "SHOPAGENT_DEFAULT_PLATFORM"):
            continue
        run_logger.log_kv(key, str(config_vars[key]))


def format_config_for_cli(cfg: Optional[Config] = None) -> List[str]:
    """Format configuration for CLI output (``--config``)."""
    config_vars = get_all_config_variables(cfg)
    lines = ["=== Configuration ==="]
    lines.append(f"Model: {config_vars['SHOPAGENT_GEMINI_MODEL']}")
    lines.append(f"API key: {config_vars['SHOPAGENT_GEMINI_API_KEY']}")
    lines.append(f"Default platform: {config_vars['SHOPAGENT_DEFAULT_PLATFORM']}")
    lines.append(f"Headless: {config_vars['SHOPAGENT_HEADLESS']}")
    lines.append(
        f"Budgets: search={config_vars['SHOPAGENT_SEARCH_BUDGET']} "
        f"select={config_vars['SHOPAGENT_SELECTION_BUDGET']} "
        f"buy_now={config_vars['SHOPAGENT_BUY_NOW_BUDGET']}"
    )
    return lines


def validate_config(cfg: Optional[Config] = None) -> List[str]:
    """
    Validate configuration and return list of warnings.

    Returns:
        List of warning messages (empty if all OK)
    """
    cfg = cfg or config
    warnings = []

    if not cfg.gemini_api_key:
        warnings.append("⚠️  GEMINI_API_KEY is not set, LLM fallback and intent parsing are disabled")

    if cfg.buy_now_budget < 1:
        warnings.append("⚠️  SHOPAGENT_BUY_NOW_BUDGET < 1, checkout will never be attempted")

    if cfg.poll_interval_ms <= 0 or cfg.poll_interval_ms > cfg.filter_wait_ms:
        warnings.append("⚠️  SHOPAGENT_POLL_INTERVAL_MS must be positive and below SHOPAGENT_FILTER_WAIT_MS")

    if cfg.snapshot_max_products > 20:
        warnings.append("⚠️  SHOPAGENT_SNAPSHOT_MAX_PRODUCTS above 20 inflates LLM prompts")

    return warnings


__all__ = [
    "get_all_config_variables",
    "log_all_config",
    "format_config_for_cli",
    "validate_config",
]
