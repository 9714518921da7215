"""
Shopping Orchestrator - intent-fulfillment state machine

Drives one shopping task through:

    IDLE → PARSING_INTENT → SEARCHING → (APPLYING_FILTERS → VERIFYING_FILTERS)?
         → SELECTING_PRODUCT → PRODUCT_PAGE → (BUYING_NOW | ADDING_TO_CART) → COMPLETED

with FAILED reachable from any non-terminal state. Every page action goes
through the ``PageChannel`` with a phase timeout; action failures consume a
phase-scoped retry budget and exhausting it fails the task with a structured
reason. Filters are best-effort and never fail the task. When extraction or
matching yields nothing usable, a page snapshot is handed to the language
model and its decision is mapped onto one concrete action.

Usage:
    channel = PageChannel()
    orchestrator = ShoppingOrchestrator(
        channel,
        agent_factory=lambda platform: PageAgent(get_adapter(platform, page)),
        analyzer=PageAnalyzer(GeminiClient()),
    )
    result = await orchestrator.run("samsung phone with 6gb ram and 5000mah battery", tab_id="tab-1")
    print(result.to_dict())
"""

import asyncio
import json
import logging
from dataclasses import asdict
from typing import Any, Callable, Dict, List, Optional

from ..config import Config, config as default_config
from ..error_handler import create_error_response
from ..exceptions import (
    LLMError,
    NetworkError,
    RecoveryParseExhausted,
    TaskCancelledError,
)
from ..extraction.product_matcher import ProductMatcher, rank_results
from ..intent.parser import IntentParser
from ..llm.analyzer import LLMDecision
from ..llm.snapshot import PageSnapshot
from ..messaging.verbs import Verb
from ..models import Product
from ..retry import ACTION_POLICY, RetryPolicy
from .state import TaskResult, TaskState
from .states import TERMINAL_STATES, TaskStatus

logger = logging.getLogger(__name__)

MANUAL_INTERVENTION = "manual intervention required"


class ShoppingOrchestrator:
    """
    Runs shopping tasks one at a time against a page channel.

    Owns the single ``TaskState``; nothing else mutates it.
    """

    def __init__(
        self,
        channel,
        intent_parser: Optional[IntentParser] = None,
        analyzer=None,
        config: Optional[Config] = None,
        run_logger=None,
        agent_factory: Optional[Callable[[Optional[str]], Any]] = None,
        action_policy: Optional[RetryPolicy] = None,
    ):
        self.channel = channel
        self.config = config or default_config
        self.intent_parser = intent_parser or IntentParser(default_platform=self.config.default_platform)
        self.analyzer = analyzer
        self.run_logger = run_logger
        self.agent_factory = agent_factory
        self.action_policy = action_policy or ACTION_POLICY
        self.state = TaskState()
        self._relaxed = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def run(self, instruction: str, tab_id: str = "tab-1") -> TaskResult:
        """
        Fulfil one shopping request.

        Returns:
            TaskResult; a failed task carries ``error`` instead of raising

        Raises:
            InvalidTransitionError: If a task is already running
        """
        self.state.begin(tab_id, instruction)
        generation = self.state.generation
        self._relaxed = False
        self._log("🛒 SHOPPING ORCHESTRATOR", "header")
        self._log(f"Instruction: {instruction}")

        phases = (
            self._parse_intent,
            self._search,
            self._apply_filters,
            self._select_product,
            self._open_product_page,
            self._checkout,
        )
        try:
            for phase in phases:
                await phase()
                if self.state.status in TERMINAL_STATES:
                    break
        except TaskCancelledError as e:
            self._log(f"Discarding stale task result: {e}", "warning")
            return self._cancelled(instruction)
        except Exception as e:
            if not self.state.is_current(generation, tab_id):
                self._log(f"Discarding error from stale task: {e}", "warning")
                return self._cancelled(instruction)
            logger.exception(f"Unexpected error in {self.state.status.value}: {e}")
            phase = self.state.status.value.lower()
            reason = f"Unexpected error: {type(e).__name__}: {e}"
            if self.state.status in TERMINAL_STATES:
                self.state.failure_reason = self.state.failure_reason or reason
            else:
                self._fail(reason, phase)

        return self._finish()

    def _cancelled(self, instruction: str) -> TaskResult:
        return TaskResult(
            success=False,
            status=TaskStatus.IDLE.value,
            instruction=instruction,
            error=create_error_response("Task cancelled", "cancel")["error"],
        )

    def reset(self) -> int:
        """
        Cancel the current task and return to IDLE.

        Results of steps still in flight for the old task are discarded when
        they arrive. Returns the new task generation.
        """
        previous = self.state.status
        generation = self.state.reset()
        self._log(f"Task reset from {previous.value} (generation {generation})", "warning")
        return generation

    cancel = reset

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def _log(self, message: str, level: str = "info"):
        if level == "header":
            logger.info(message)
        elif level == "error":
            logger.error(message)
        elif level == "warning":
            logger.warning(message)
        else:
            logger.info(message)

        if self.run_logger:
            if level == "header":
                self.run_logger.log_heading(message)
            elif level == "error":
                self.run_logger.log_error(message)
            elif level == "warning":
                self.run_logger.log_warning(message)
            else:
                self.run_logger.log_text(message)

    def _transition(self, target: TaskStatus, reason: str = ""):
        step = self.state.transition(target, reason)
        logger.info(f"{step.from_status.value} → {step.to_status.value} {reason}".rstrip())
        if self.run_logger:
            self.run_logger.log_heading(target.value)
            self.run_logger.log_transition(step.from_status.value, step.to_status.value, reason)

    def _fail(self, reason: str, phase: str):
        self.state.failure_reason = reason
        self.state.failure_phase = phase
        self._log(f"Task failed in {phase}: {reason}", "error")
        self._transition(TaskStatus.FAILED, reason)

    def _ensure_current(self, generation: int, tab_id: Optional[str]):
        if not self.state.is_current(generation, tab_id):
            raise TaskCancelledError(
                f"generation {generation} / tab {tab_id} superseded by "
                f"generation {self.state.generation} / tab {self.state.tab_id}"
            )

    async def _request(self, verb: Verb, payload: Optional[Dict[str, Any]] = None, phase: str = "step") -> Dict[str, Any]:
        generation, tab_id = self.state.generation, self.state.tab_id
        reply = await self.channel.request(tab_id, verb, payload, timeout=self.config.timeout_for(phase))
        self._ensure_current(generation, tab_id)
        return reply

    async def _backoff(self, attempt: int):
        """Sleep before the next attempt; raises TaskCancelledError if the task was reset meanwhile."""
        generation, tab_id = self.state.generation, self.state.tab_id
        delay_ms = self.action_policy.delay_ms(attempt - 1)
        if delay_ms > 0:
            await asyncio.sleep(delay_ms / 1000)
        self._ensure_current(generation, tab_id)

    async def _read_products(self) -> List[Product]:
        reply = await self._request(Verb.GET_SEARCH_RESULTS, phase="step")
        if not reply.get("success"):
            self._log(f"Could not read results: {reply.get('error')}", "warning")
            return []
        return [Product.from_dict(item) for item in reply.get("items") or []]

    def _matcher(self) -> ProductMatcher:
        intent = self.state.intent
        return ProductMatcher({} if self._relaxed else intent.filters, intent.product_query)

    def _finish(self) -> TaskResult:
        state = self.state
        error = None
        if state.status is TaskStatus.FAILED:
            error = create_error_response(state.failure_reason or "unknown failure", state.failure_phase or "")["error"]
        result = TaskResult.from_state(state, error)

        if self.run_logger:
            self.run_logger.log_json(result.to_dict(), "Task Result")
            self.run_logger.finalize(result.success, result.duration_ms, state.failure_reason)

        state.reset()
        return result

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    async def _parse_intent(self):
        generation, tab_id = self.state.generation, self.state.tab_id
        intent = await self.intent_parser.parse(self.state.instruction)
        self._ensure_current(generation, tab_id)

        self.state.intent = intent
        self._log(f"Product: {intent.product_query}")
        self._log(f"Platform: {intent.platform_hint or 'current page'}")
        if intent.has_filters:
            self._log(f"Filters: {dict(intent.filters)}")

        if self.agent_factory is not None:
            self.channel.register(tab_id, self.agent_factory(intent.platform_hint))
        self._transition(TaskStatus.SEARCHING, f"query '{intent.product_query}'")

    async def _search(self):
        intent = self.state.intent
        budget = self.config.budget_for("search")
        payload = {"query": intent.product_query, "filters": dict(intent.filters), "sort": intent.sort}

        while True:
            attempt = self.state.record_attempt("search")
            reply = await self._request(Verb.SEARCH, payload, "search")
            if reply.get("success"):
                break
            self._log(f"Search attempt {attempt}/{budget} failed: {reply.get('error')}", "warning")
            if attempt >= budget:
                self._fail(f"Search failed after {attempt} attempts: {reply.get('error')}", "search")
                return
            await self._backoff(attempt)

        self.state.products = await self._read_products()
        self._log(f"Found {len(self.state.products)} products")
        if self.run_logger:
            self.run_logger.log_products(self.state.products, "Search results")

    async def _apply_filters(self):
        """Best-effort: every failure here logs and moves on to selection."""
        intent = self.state.intent
        if not intent.has_filters:
            self._transition(TaskStatus.SELECTING_PRODUCT, "no filters requested")
            return
        if not self.state.products:
            self._transition(TaskStatus.SELECTING_PRODUCT, "no results to filter")
            return

        self._transition(TaskStatus.APPLYING_FILTERS, ", ".join(intent.filters))
        count_before = len(self.state.products)
        reply = await self._request(Verb.APPLY_FILTERS, {"filters": dict(intent.filters)}, "filters")
        report: Dict[str, Any] = {
            "requested": dict(intent.filters),
            "method": reply.get("method"),
            "applied": reply.get("applied", []),
            "skipped": reply.get("skipped", []),
            "count_before": count_before,
            "verified": False,
        }
        self.state.filter_report = report

        if not reply.get("success"):
            self._log(f"Filters not applied ({reply.get('error')}), continuing with current results", "warning")
            self._transition(TaskStatus.SELECTING_PRODUCT, "filters skipped")
            return

        self._transition(TaskStatus.VERIFYING_FILTERS, f"applied {report['applied']}")
        products = await self._read_products()
        satisfying = self._matcher().filter(products)
        report.update(
            count_after=len(products),
            satisfying=len(satisfying),
            verified=(bool(products) and len(products) != count_before) or bool(satisfying),
        )
        if products:
            self.state.products = products
        self._log(
            f"Filtered results: {len(products)} (before {count_before}), "
            f"{len(satisfying)} satisfy every filter"
        )
        self._transition(TaskStatus.SELECTING_PRODUCT, "filters verified" if report["verified"] else "filters unconfirmed")

    async def _select_product(self):
        if self.state.status is not TaskStatus.SELECTING_PRODUCT:
            return
        intent = self.state.intent
        budget = self.config.budget_for("select")

        while self.state.status is TaskStatus.SELECTING_PRODUCT:
            products = await self._read_products()
            self.state.products = products
            matcher = self._matcher()
            candidates = rank_results(matcher.filter(products), intent.sort, matcher.relevance)

            if not candidates:
                await self._escalate(products)
                continue

            tried = self.state.attempts("select")
            chosen = candidates[min(tried, len(candidates) - 1)]
            index = next(i for i, p in enumerate(products) if p.link == chosen.link)
            self._log(f"Selecting #{index}: {chosen.title[:80]} ({chosen.price_text or 'no price'})")

            if await self._open_product(index):
                return

            attempt = self.state.record_attempt("select")
            if attempt >= budget:
                self._fail(f"Product selection failed after {attempt} attempts: {MANUAL_INTERVENTION}", "select")
                return
            await self._backoff(attempt)

    async def _open_product(self, index: int) -> bool:
        reply = await self._request(Verb.SELECT_PRODUCT, {"index": index}, "select")
        if not reply.get("success"):
            self._log(f"Could not open product {index}: {reply.get('error')}", "warning")
            return False
        self.state.selected_product = Product.from_dict(reply["product"])
        self._transition(TaskStatus.PRODUCT_PAGE, self.state.selected_product.title[:60])
        return True

    # ------------------------------------------------------------------
    # Language-model escalation
    # ------------------------------------------------------------------

    async def _escalate(self, products: List[Product]):
        """
        Zero usable products: ask the language model for the next action.

        Without a model, a non-empty result list is used as-is once (filters
        relaxed); otherwise the task fails.
        """
        budget = self.config.budget_for("escalation")
        attempt = self.state.record_attempt("escalation")
        if attempt > budget:
            self._fail(f"No usable products after {budget} escalations: {MANUAL_INTERVENTION}", "select")
            return

        if self.analyzer is None or not self.analyzer.available:
            if products and not self._relaxed:
                self._log("No product satisfies every filter, relaxing to all results", "warning")
                self._relaxed = True
            else:
                self._fail(f"No products found for '{self.state.intent.product_query}'", "select")
            return

        self._log(f"Escalating to language model ({attempt}/{budget})")
        reply = await self._request(Verb.EXTRACT_PAGE_CONTENT, phase="step")
        if not reply.get("success"):
            self._log(f"Page snapshot failed: {reply.get('error')}", "warning")
            return

        snapshot = PageSnapshot(**reply["content"])
        generation, tab_id = self.state.generation, self.state.tab_id
        context = self._decision_context()
        try:
            if snapshot.products:
                picks = await self.analyzer.match_products(snapshot, context)
                self._ensure_current(generation, tab_id)
                if picks:
                    self._log(f"Language model matched products {picks}, opening #{picks[0]}")
                    await self._open_product(picks[0])
                    return
            decision = await self.analyzer.decide(snapshot, context)
        except (LLMError, NetworkError, RecoveryParseExhausted) as e:
            self._log(f"Decision unavailable: {e}", "warning")
            return
        self._ensure_current(generation, tab_id)
        if self.run_logger:
            self.run_logger.log_code("json", json.dumps(asdict(decision), ensure_ascii=False))
        await self._apply_decision(decision)

    def _decision_context(self) -> Dict[str, Any]:
        intent = self.state.intent
        return {
            "request": self.state.instruction,
            "product": intent.product_query,
            "filters": dict(intent.filters),
            "sort": intent.sort,
            "action": intent.action,
            "phase": self.state.status.value,
        }

    async def _apply_decision(self, decision: LLMDecision):
        self._log(f"LLM decision: {decision.action} ({decision.reason or 'no reason given'})")

        if decision.action == "select_product":
            await self._open_product(decision.product_index)
        elif decision.action == "click":
            reply = await self._request(Verb.CLICK_ELEMENT, {"selector": decision.selector}, "step")
            if not reply.get("success"):
                self._log(f"Click on {decision.selector} failed: {reply.get('error')}", "warning")
        elif decision.action == "input":
            payload = {"selector": decision.selector, "value": decision.value or "", "submit": True}
            reply = await self._request(Verb.FILL_INPUT, payload, "step")
            if not reply.get("success"):
                self._log(f"Input into {decision.selector} failed: {reply.get('error')}", "warning")
        elif decision.action == "completed":
            self._transition(TaskStatus.COMPLETED, f"language model: {decision.reason or 'goal reached'}")
        else:
            self._fail(f"Language model gave up: {decision.reason or 'no reason given'}", "select")

    # ------------------------------------------------------------------
    # Product page and checkout
    # ------------------------------------------------------------------

    async def _open_product_page(self):
        if self.state.status is not TaskStatus.PRODUCT_PAGE:
            return
        reply = await self._request(Verb.GET_PRODUCT_DETAILS, phase="step")
        if reply.get("success"):
            self.state.product_details = reply.get("details")
            self._log(f"Product page: {self.state.product_details}")
        else:
            self._log(f"Product details unavailable: {reply.get('error')}", "warning")

        if self.state.intent.action == "add_to_cart":
            self._transition(TaskStatus.ADDING_TO_CART, "requested add to cart")
        else:
            self._transition(TaskStatus.BUYING_NOW, "requested buy now")

    async def _attempt_action(self, verb: Verb, phase: str) -> bool:
        """Retry ``verb`` until it succeeds or the phase budget is spent."""
        budget = self.config.budget_for(phase)
        while self.state.attempts(phase) < budget:
            attempt = self.state.record_attempt(phase)
            reply = await self._request(verb, phase=phase)
            if reply.get("success"):
                self._log(f"{verb.value} succeeded on attempt {attempt}")
                return True
            self._log(f"{verb.value} attempt {attempt}/{budget} failed: {reply.get('error')}", "warning")
            if attempt < budget:
                await self._backoff(attempt)
        return False

    async def _checkout(self):
        if self.state.status is TaskStatus.BUYING_NOW:
            if await self._attempt_action(Verb.CLICK_BUY_NOW, "buy_now"):
                self._transition(TaskStatus.COMPLETED, "buy now clicked")
                return
            attempts = self.state.attempts("buy_now")
            if not self.config.fallback_to_cart:
                self._fail(f"Buy now failed after {attempts} attempts: {MANUAL_INTERVENTION}", "buy_now")
                return
            self._transition(TaskStatus.ADDING_TO_CART, f"buy now failed after {attempts} attempts")

        if self.state.status is TaskStatus.ADDING_TO_CART:
            if await self._attempt_action(Verb.ADD_TO_CART, "add_to_cart"):
                self._transition(TaskStatus.COMPLETED, "added to cart")
                return
            attempts = self.state.attempts("add_to_cart")
            self._fail(f"Add to cart failed after {attempts} attempts: {MANUAL_INTERVENTION}", "add_to_cart")
