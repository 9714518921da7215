"""
Page Channel - correlation-id request/response to per-tab page agents.

At most one request may be in flight per tab. Each request gets a fresh
correlation id; a reply whose id or tab id does not match the pending request
is stale and dropped.

Usage:
    channel = PageChannel()
    channel.register("tab-1", PageAgent(adapter))
    reply = await channel.request("tab-1", Verb.SEARCH, {"query": "phone"}, timeout=10)
"""

import asyncio
import itertools
import logging
from typing import Any, Dict, Optional

from ..exceptions import ProtocolViolationError
from .verbs import Verb, failure_response, make_request

logger = logging.getLogger(__name__)


class PageChannel:
    """Request/response transport between the orchestrator and page agents"""

    def __init__(self, default_timeout: float = 10.0):
        self.default_timeout = default_timeout
        self._agents: Dict[str, Any] = {}
        self._pending: Dict[str, str] = {}
        self._ids = itertools.count(1)

    def register(self, tab_id: str, agent) -> None:
        self._agents[tab_id] = agent

    def in_flight(self, tab_id: str) -> Optional[str]:
        """Correlation id of the pending request for ``tab_id``, if any."""
        return self._pending.get(tab_id)

    def _next_id(self, tab_id: str) -> str:
        return f"{tab_id}:{next(self._ids)}"

    async def request(
        self,
        tab_id: str,
        verb: Verb,
        payload: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> Dict[str, Any]:
        """
        Send one verb to the tab's page agent and await its reply.

        Returns:
            The agent's response dict; a ``success: False`` response on
            timeout, unknown tab or stale reply

        Raises:
            ProtocolViolationError: If a request is already in flight for the tab
        """
        if tab_id in self._pending:
            raise ProtocolViolationError(
                f"Request {self._pending[tab_id]} still in flight for tab {tab_id}"
            )

        request = make_request(self._next_id(tab_id), tab_id, verb, payload)
        agent = self._agents.get(tab_id)
        if agent is None:
            return failure_response(request, f"No page agent registered for tab {tab_id}", "UnknownTab")

        wait = self.default_timeout if timeout is None else timeout
        self._pending[tab_id] = request["id"]
        logger.debug(f"→ {request['verb']} [{request['id']}]")
        try:
            reply = await asyncio.wait_for(agent.handle(request), timeout=wait)
        except asyncio.TimeoutError:
            logger.warning(f"{request['verb']} [{request['id']}] timed out after {wait}s")
            return failure_response(request, f"{request['verb']} timed out after {wait}s", "TimeoutError")
        finally:
            if self._pending.get(tab_id) == request["id"]:
                del self._pending[tab_id]

        if not isinstance(reply, dict) or reply.get("id") != request["id"] or reply.get("tab_id") != tab_id:
            stale_id = reply.get("id") if isinstance(reply, dict) else None
            logger.warning(f"Dropping stale reply {stale_id} for request {request['id']}")
            return failure_response(request, "Stale reply dropped", "StaleReply")

        logger.debug(f"← {request['verb']} [{request['id']}] success={reply.get('success')}")
        return reply
