"""Tests for configuration helpers, user-facing errors and the markdown run log."""

from unittest.mock import MagicMock

from shopagent_core.config import Config
from shopagent_core.cli import _start_url, build_parser, main
from shopagent_core.config_logger import (
    format_config_for_cli,
    get_all_config_variables,
    log_all_config,
    validate_config,
)
from shopagent_core.error_handler import (
    create_error_response,
    format_error_for_logging,
    format_user_friendly_error,
    get_error_category,
    should_retry_error,
)
from shopagent_core.exceptions import ActionNotFoundError, IndexOutOfRangeError
from shopagent_core.models import Product
from shopagent_core.models.product import ProductAttributes
from shopagent_logs import RunLogger, create_run_logger


class TestConfig:
    """Phase lookups and config dumps."""

    def test_phase_lookups(self):
        cfg = Config(search_timeout=5, buy_now_timeout=7, step_timeout=3, buy_now_budget=4)
        assert cfg.timeout_for("search") == 5
        assert cfg.timeout_for("buy_now") == 7
        assert cfg.timeout_for("select") == 3
        assert cfg.budget_for("buy_now") == 4
        assert cfg.budget_for("unknown") == 1

    def test_api_key_is_masked(self):
        variables = get_all_config_variables(Config(gemini_api_key="super-secret"))
        assert variables["SHOPAGENT_GEMINI_API_KEY"] == "set"
        assert "super-secret" not in str(variables)

    def test_log_all_config(self):
        run_logger = MagicMock()
        cfg = Config(gemini_api_key=None)
        log_all_config(run_logger, cfg)
        keys = [call.args[0] for call in run_logger.log_kv.call_args_list]
        assert keys[0] == "SHOPAGENT_GEMINI_MODEL"
        assert sorted(keys) == sorted(get_all_config_variables(cfg))

    def test_cli_lines(self):
        lines = format_config_for_cli(Config(gemini_api_key=None, default_platform="flipkart"))
        assert lines[0] == "=== Configuration ==="
        assert "Default platform: flipkart" in lines
        assert "API key: missing" in lines

    def test_validate(self):
        good = Config(gemini_api_key="k", buy_now_budget=3, poll_interval_ms=200, filter_wait_ms=3000, snapshot_max_products=20)
        assert validate_config(good) == []

        bad = Config(gemini_api_key=None, buy_now_budget=0, poll_interval_ms=5000, filter_wait_ms=3000, snapshot_max_products=20)
        warnings = validate_config(bad)
        assert len(warnings) == 3
        assert any("GEMINI_API_KEY" in w for w in warnings)


class TestErrorHandler:
    """Failure reasons -> user-facing messages."""

    def test_budget_exhaustion(self):
        friendly = format_user_friendly_error("Buy now failed after 3 attempts: manual intervention required", "buy_now")
        assert friendly["message"] == "The agent could not complete checkout on its own"
        assert friendly["can_retry"] is False

    def test_exception_input(self):
        assert should_retry_error(ActionNotFoundError("buy_now", 9))
        assert should_retry_error(IndexOutOfRangeError(5, 2))

    def test_unknown_error(self):
        friendly = format_user_friendly_error("something odd happened")
        assert friendly["message"] == "An unexpected error occurred while running the shopping task"
        assert friendly["technical"] == "something odd happened"

    def test_categories(self):
        assert get_error_category("Add to cart failed: manual intervention required") == "checkout"
        assert get_error_category("Search failed after 2 attempts") == "search"
        assert get_error_category("Connection reset by peer") == "network"
        assert get_error_category("Decision unavailable: no JSON") == "llm"
        assert get_error_category("weird") == "unknown"

    def test_error_response(self):
        response = create_error_response("Task cancelled", "cancel")
        assert response["success"] is False
        assert response["error"]["message"] == "The task was cancelled"
        assert response["error"]["phase"] == "cancel"
        assert response["error"]["reason"] == "Task cancelled"
        assert "stacktrace" not in response["error"]

    def test_logging_format(self):
        text = format_error_for_logging("Request timed out", "search")
        assert text.splitlines()[0] == "📍 Context: search"
        assert "The page took too long to respond" in text


class TestRunLogger:
    """Markdown run log."""

    def test_log_file_sections(self, tmp_path):
        run_log = RunLogger(
            instruction="samsung phone with 6gb ram",
            url="https://www.amazon.in/",
            command_line='shopagent "samsung phone with 6gb ram"',
            log_dir=str(tmp_path),
            session_id="test",
        )
        run_log.log_heading("SEARCHING")
        run_log.log_transition("PARSING_INTENT", "SEARCHING", "query 'samsung phone'")
        run_log.log_products([
            Product(
                title="Samsung Galaxy M14",
                link="https://www.amazon.in/dp/B0A",
                price_text="₹10,999",
                attributes=ProductAttributes(ram=6, battery=6000),
            )
        ], "Search results")
        run_log.log_code("json", '{"action": "select_product", "product_index": 0}')
        run_log.log_heading("COMPLETED")
        run_log.finalize(True, 1234)

        content = (tmp_path / "run-test.md").read_text(encoding="utf-8")
        assert "- [SEARCHING](#searching)\n- [COMPLETED](#completed)" in content
        assert "**PARSING_INTENT → SEARCHING** (query 'samsung phone')" in content
        assert "Samsung Galaxy M14" in content
        assert "```json\n{\"action\": \"select_product\", \"product_index\": 0}\n```" in content
        assert "**Status:** ✅ COMPLETED" in content
        assert "**Duration:** 1234ms" in content
        assert run_log.log_path == str(tmp_path / "run-test.md")

    def test_empty_products_and_failure(self, tmp_path):
        run_log = create_run_logger("wireless mouse", log_dir=str(tmp_path))
        run_log.log_products([], "Search results")
        run_log.finalize(False, 10, "No products found for 'wireless mouse'")

        content = run_log.path.read_text(encoding="utf-8")
        assert "Search results: none" in content
        assert "**Status:** ❌ FAILED" in content
        assert "**Error:** No products found for 'wireless mouse'" in content


class TestCli:
    """Argument handling without a browser."""

    def test_start_url(self, test_config):
        parser = build_parser()
        assert _start_url(parser.parse_args(["redmi note on flipkart"]), test_config) == "https://www.flipkart.com/"
        assert _start_url(parser.parse_args(["mouse", "--url", "https://shop.example/"]), test_config) == "https://shop.example/"
        assert _start_url(parser.parse_args(["samsung phone"]), test_config) == "https://www.amazon.in/"

    def test_config_flag(self, capsys):
        code = main(["--config"])
        out = capsys.readouterr().out
        assert out.splitlines()[0] == "=== Configuration ==="
        assert code in (0, 1)

    def test_missing_instruction_prints_help(self, capsys):
        assert main([]) == 1
        assert "usage: shopagent" in capsys.readouterr().out
