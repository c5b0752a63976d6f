from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

import httpx

from retail_nlq.handlers.error_handler import GenerationError

logger = logging.getLogger(__name__)

OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"


@dataclass
class OpenRouterChat:
    """OpenAI-compatible chat completions over plain HTTP."""

    model: str
    api_key: Optional[str] = None
    temperature: float = 0.1
    timeout_s: float = 30.0
    base_url: str = OPENROUTER_URL
    app_title: str = "277 BI"
    transport: Optional[httpx.BaseTransport] = None

    def complete(self, messages: List[Dict[str, str]], max_output_tokens: int = 900):
        if not self.api_key:
            raise GenerationError("LLM_API_KEY not configured")

        sanitized = [m for m in messages if (m.get("content") or "").strip()]
        if not sanitized:
            raise GenerationError("No valid messages to send")

        payload = {
            "model": self.model,
            "messages": sanitized,
            "temperature": float(self.temperature),
            "max_tokens": int(max_output_tokens),
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "X-Title": self.app_title,
        }

        logger.debug("OpenRouter call model=%s messages=%d", self.model, len(sanitized))
        try:
            with httpx.Client(timeout=self.timeout_s, transport=self.transport) as client:
                res = client.post(self.base_url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise GenerationError(f"OpenRouter request failed: {e}") from e

        if res.status_code >= 400:
            raise GenerationError(f"OpenRouter API error: {res.status_code} {res.text}")

        try:
            data = res.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise GenerationError("LLM returned malformed response") from e

        text = (content or "").strip()
        if not text:
            raise GenerationError("LLM returned empty response")
        return text
