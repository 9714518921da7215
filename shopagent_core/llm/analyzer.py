"""
LLM Page Analyzer

Asks the language model what to do next when deterministic extraction or
matching produced nothing usable. The model sees a ``PageSnapshot`` and the
task context; its free-form answer goes through the recovery JSON parser.

Usage:
    analyzer = PageAnalyzer(GeminiClient())
    decision = await analyzer.decide(snapshot, {"product": "samsung phone", "filters": {...}})
    decision.action   # click | select_product | input | completed | error
"""

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from ..json_recovery import parse_llm_json
from .gemini import GeminiClient, extract_text
from .snapshot import PageSnapshot

logger = logging.getLogger(__name__)


class AnalysisMode(Enum):
    MATCH_PRODUCTS = "match_products"
    GENERAL = "general"


DECISION_ACTIONS = ("click", "select_product", "input", "completed", "error")

ACTION_ALIASES = {
    "select": "select_product",
    "choose_product": "select_product",
    "open_product": "select_product",
    "type": "input",
    "fill": "input",
    "done": "completed",
    "complete": "completed",
    "finish": "completed",
    "fail": "error",
    "failed": "error",
}

SYSTEM_INSTRUCTION = (
    "You are a shopping assistant controlling a web browser. "
    "You receive a simplified snapshot of the current page and the shopper's goal. "
    "Answer with a single JSON object and nothing else."
)

MODE_PROMPTS = {
    AnalysisMode.GENERAL: """Decide the single next action that moves the task forward.

Return JSON:
{
    "action": "click|select_product|input|completed|error",
    "selector": "CSS selector from the snapshot buttons/inputs (click, input)",
    "product_index": 0,
    "value": "text to type (input only)",
    "reason": "short explanation"
}

Use "select_product" with "product_index" when one of the listed products fits the goal.
Use "completed" when the goal is already reached, "error" when it cannot be reached.""",

    AnalysisMode.MATCH_PRODUCTS: """Pick the products that satisfy every requested filter.

Return JSON:
{
    "matches": [{"index": 0, "confidence": 0.9}],
    "reason": "short explanation"
}

Use the "index" values from the snapshot products, best match first. Return an empty list when no product fits.""",
}


@dataclass(frozen=True)
class LLMDecision:
    action: str
    selector: Optional[str] = None
    product_index: Optional[int] = None
    value: Optional[str] = None
    reason: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LLMDecision":
        raw = str(data.get("action") or "").strip().lower()
        action = ACTION_ALIASES.get(raw, raw)
        if action not in DECISION_ACTIONS:
            return cls(action="error", reason=f"Unknown action from model: {raw or 'none'}")

        index = data.get("product_index", data.get("index"))
        try:
            index = int(index) if index is not None else None
        except (TypeError, ValueError):
            index = None

        decision = cls(
            action=action,
            selector=data.get("selector") or None,
            product_index=index,
            value=None if data.get("value") is None else str(data.get("value")),
            reason=data.get("reason"),
        )
        if action == "select_product" and decision.product_index is None:
            return cls(action="error", reason="select_product without product_index")
        if action in ("click", "input") and not decision.selector:
            return cls(action="error", reason=f"{action} without selector")
        return decision


class PageAnalyzer:
    """Snapshot + context -> structured model answer"""

    def __init__(self, client: Optional[GeminiClient] = None):
        self.client = client or GeminiClient()

    @property
    def available(self) -> bool:
        return self.client.available

    def build_prompt(self, snapshot: PageSnapshot, context: Dict[str, Any], mode: AnalysisMode) -> str:
        return (
            f"{MODE_PROMPTS[mode]}\n\n"
            f"Goal:\n{json.dumps(context, ensure_ascii=False, default=str)}\n\n"
            f"Page snapshot:\n{json.dumps(snapshot.to_dict(), ensure_ascii=False, default=str)}"
        )

    async def analyze(
        self,
        snapshot: PageSnapshot,
        context: Dict[str, Any],
        mode: AnalysisMode = AnalysisMode.GENERAL,
    ) -> Dict[str, Any]:
        """
        Run one analysis.

        Raises:
            LLMError: On transport / API failure
            RecoveryParseExhausted: If the answer holds no JSON object
        """
        prompt = self.build_prompt(snapshot, context, mode)
        response = await self.client.generate_content(prompt, SYSTEM_INSTRUCTION)
        text = extract_text(response)
        logger.debug(f"LLM {mode.value} answer: {text[:300]}")
        return parse_llm_json(text)

    async def decide(self, snapshot: PageSnapshot, context: Dict[str, Any]) -> LLMDecision:
        data = await self.analyze(snapshot, context, AnalysisMode.GENERAL)
        decision = LLMDecision.from_dict(data)
        logger.info(f"LLM decision: {decision.action} ({decision.reason})")
        return decision

    async def match_products(self, snapshot: PageSnapshot, context: Dict[str, Any]) -> List[int]:
        """
        Indices of snapshot products the model judges to fit the goal,
        highest confidence first. Indices outside the snapshot are dropped.
        """
        data = await self.analyze(snapshot, context, AnalysisMode.MATCH_PRODUCTS)
        known = {p.get("index") for p in snapshot.products}
        scored = []
        for item in data.get("matches") or []:
            if not isinstance(item, dict):
                continue
            try:
                index = int(item.get("index"))
                confidence = float(item.get("confidence", 0) or 0)
            except (TypeError, ValueError):
                continue
            if index in known and index not in (i for _, i in scored):
                scored.append((confidence, index))
        scored.sort(key=lambda pair: -pair[0])
        logger.info(f"LLM product matches: {[i for _, i in scored]} ({data.get('reason')})")
        return [index for _, index in scored]
