#!/usr/bin/env python3
import logging
from typing import Any, Dict, Optional

import aiohttp

from ..config import config as default_config
from ..exceptions import LLMError, NetworkError
from ..retry import LLM_POLICY, RetryPolicy, retry

logger = logging.getLogger(__name__)


def extract_text(response: Dict[str, Any]) -> str:
    """Text of ``candidates[0].content.parts[0].text``; empty when absent."""
    try:
        return response["candidates"][0]["content"]["parts"][0]["text"] or ""
    except (KeyError, IndexError, TypeError):
        return ""


class GeminiClient:
    """Minimal async client for Gemini generateContent"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        temperature: Optional[float] = None,
        timeout: Optional[int] = None,
        policy: RetryPolicy = LLM_POLICY,
    ):
        self.api_key = api_key if api_key is not None else default_config.gemini_api_key
        self.model = model or default_config.gemini_model
        self.base_url = (base_url or default_config.gemini_base_url).rstrip('/')
        self.temperature = default_config.temperature if temperature is None else temperature
        self.timeout = timeout or default_config.llm_timeout
        self.policy = policy

    @property
    def available(self) -> bool:
        return bool(self.api_key)

    def _payload(self, prompt: str, system_instruction: Optional[str]) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {"temperature": self.temperature},
        }
        if system_instruction:
            payload["systemInstruction"] = {"parts": [{"text": system_instruction}]}
        return payload

    async def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base_url}/models/{self.model}:generateContent"
        timeout_obj = aiohttp.ClientTimeout(total=self.timeout)
        async with aiohttp.ClientSession(timeout=timeout_obj) as session:
            async with session.post(url, params={"key": self.api_key}, json=payload) as resp:
                if resp.status == 429 or resp.status >= 500:
                    raise NetworkError(f"Gemini returned {resp.status}")
                if resp.status != 200:
                    body = await resp.text()
                    raise LLMError(f"Gemini returned {resp.status}: {body[:200]}")
                return await resp.json()

    async def generate_content(self, prompt: str, system_instruction: Optional[str] = None) -> Dict[str, Any]:
        """
        Raw generateContent response.

        Raises:
            LLMError: If no API key is configured or the API rejects the call
            NetworkError: If the API stays unavailable after retries
        """
        if not self.api_key:
            raise LLMError("Gemini API key not configured")
        return await retry(self._post, self.policy, self._payload(prompt, system_instruction))

    async def ainvoke(self, prompt: str, system_instruction: Optional[str] = None):
        data = await self.generate_content(prompt, system_instruction)
        text = extract_text(data)
        if not text:
            logger.warning("Gemini response carried no text")
        return {"text": text}
