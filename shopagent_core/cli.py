#!/usr/bin/env python3
"""
shopagent CLI - run one shopping request in a Playwright browser

Usage:
    shopagent "samsung phone under 20k with 6gb ram and 5000mah battery"
    shopagent "redmi note on flipkart, add to cart" --show
    shopagent "wireless earbuds" --url https://example-shop.myshopify.com --platform shopify
    shopagent --config
"""

import argparse
import asyncio
import json
import logging
import shlex
import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional

from playwright.async_api import Error as PlaywrightError, async_playwright

from .config import Config, config as default_config
from .config_logger import format_config_for_cli, log_all_config, validate_config
from .intent.parser import IntentParser, default_platform_url, detect_platform_hint
from .llm.analyzer import PageAnalyzer
from .llm.gemini import GeminiClient
from .messaging.agent import PageAgent
from .messaging.channel import PageChannel
from .orchestrator.orchestrator import ShoppingOrchestrator
from .platforms.registry import get_adapter
from shopagent_logs import create_run_logger

logger = logging.getLogger(__name__)

LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-dev-shm-usage",
    "--disable-blink-features=AutomationControlled",
]


def _configure_logging(args):
    if args.verbose or default_config.enable_debug:
        level = logging.DEBUG
    elif args.quiet:
        level = logging.ERROR
    else:
        level = logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def _build_config(args) -> Config:
    cfg = default_config
    overrides = {}
    if args.show:
        overrides["headless"] = False
    if args.platform:
        overrides["default_platform"] = args.platform.lower()
    if args.log_dir:
        overrides["log_dir"] = Path(args.log_dir)
    if args.fallback_to_cart:
        overrides["fallback_to_cart"] = True
    return replace(cfg, **overrides) if overrides else cfg


def _start_url(args, cfg: Config) -> str:
    if args.url:
        return args.url
    return default_platform_url(detect_platform_hint(args.instruction) or cfg.default_platform)


async def run_instruction(args, cfg: Config) -> dict:
    start_url = _start_url(args, cfg)
    run_logger = create_run_logger(
        args.instruction,
        url=start_url,
        command_line="shopagent " + " ".join(shlex.quote(a) for a in sys.argv[1:]),
        log_dir=str(cfg.log_dir),
    )
    log_all_config(run_logger, cfg)

    client = None if args.no_llm else GeminiClient()
    playwright = await async_playwright().start()
    browser = None
    try:
        browser = await playwright.chromium.launch(headless=bool(cfg.headless), args=LAUNCH_ARGS)
        context = await browser.new_context(locale=cfg.locale, viewport={"width": 1366, "height": 900})
        page = await context.new_page()
        logger.info(f"Opening {start_url}")
        await page.goto(start_url, wait_until="domcontentloaded")

        channel = PageChannel(default_timeout=cfg.step_timeout)
        orchestrator = ShoppingOrchestrator(
            channel,
            intent_parser=IntentParser(client, default_platform=cfg.default_platform),
            analyzer=PageAnalyzer(client) if client is not None else None,
            config=cfg,
            run_logger=run_logger,
            agent_factory=lambda platform: PageAgent(get_adapter(platform, page, config=cfg), cfg),
        )
        result = await orchestrator.run(args.instruction, tab_id=args.tab_id)
        data = result.to_dict()
        data["run_log"] = run_logger.log_path
        if args.show and args.keep_open and result.success:
            logger.info("Browser left open for manual checkout, press Ctrl+C to exit")
            await asyncio.Event().wait()
        return data
    finally:
        if browser is not None:
            await browser.close()
        await playwright.stop()


def cmd_config(args) -> int:
    cfg = _build_config(args)
    for line in format_config_for_cli(cfg):
        print(line)
    problems = validate_config(cfg)
    for problem in problems:
        print(problem)
    return 1 if problems else 0


def cmd_run(args) -> int:
    cfg = _build_config(args)
    try:
        data = asyncio.run(run_instruction(args, cfg))
    except PlaywrightError as e:
        logger.error(f"Browser error: {e}")
        return 2
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return 130

    output = json.dumps(data, indent=2, ensure_ascii=False)
    if args.output:
        with open(args.output, 'w', encoding='utf-8') as f:
            f.write(output)
        logger.info(f"Result written to: {args.output}")
    else:
        print(output)
    return 0 if data.get("success") else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shopagent",
        description="shopagent - fulfil a shopping request in a real browser",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument('instruction', nargs='?', help='Shopping request in plain language')
    parser.add_argument('--url', help='Start URL (defaults to the platform home page)')
    parser.add_argument('--platform', help='Platform when the request names none (amazon, flipkart, shopify)')
    parser.add_argument('--tab-id', default='tab-1', help='Tab identifier for the page channel')
    parser.add_argument('--show', action='store_true', help='Run with a visible browser window')
    parser.add_argument('--keep-open', action='store_true', help='Leave the visible browser open after success')
    parser.add_argument('--no-llm', action='store_true', help='Disable the language model (regex intent parsing, no escalation)')
    parser.add_argument('--fallback-to-cart', action='store_true', help='Add to cart when buy now keeps failing')
    parser.add_argument('--log-dir', help='Directory for markdown run logs')
    parser.add_argument('--output', '-o', help='Write the JSON result to a file')
    parser.add_argument('--config', action='store_true', help='Print the active configuration and exit')
    parser.add_argument('--verbose', '-v', action='store_true', help='Verbose output')
    parser.add_argument('--quiet', '-q', action='store_true', help='Quiet mode')
    return parser


def main(argv: Optional[list] = None) -> int:
    """Main CLI entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args)

    if args.config:
        return cmd_config(args)
    if not args.instruction:
        parser.print_help()
        return 1
    return cmd_run(args)


if __name__ == "__main__":
    sys.exit(main())
