from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

import google.generativeai as genai

from retail_nlq.handlers.error_handler import GenerationError

logger = logging.getLogger(__name__)


def _flatten(messages: List[Dict[str, str]]):
    system = []
    convo = []
    for m in messages:
        role = m.get("role")
        content = (m.get("content") or "").strip()
        if not content:
            continue
        if role == "system":
            system.append(content)
        elif role == "user":
            convo.append(f"User: {content}")
        else:
            convo.append(f"Assistant: {content}")
    out = ""
    if system:
        out += "\n\n".join(system).strip() + "\n\n"
    out += "\n".join(convo).strip()
    return out


@dataclass
class GeminiChat:
    model: str
    api_key: Optional[str] = None
    temperature: float = 0.1
    timeout_s: float = 30.0

    def __post_init__(self):
        self._model = None

    def _client(self):
        if not self.api_key:
            raise GenerationError("GEMINI_API_KEY is not set")
        if self._model is None:
            genai.configure(api_key=self.api_key)
            self._model = genai.GenerativeModel(self.model)
        return self._model

    def complete(self, messages: List[Dict[str, str]], max_output_tokens: int = 900):
        model = self._client()
        prompt = _flatten(messages)
        if not prompt:
            raise GenerationError("No valid messages to send")
        logger.debug("Gemini call model=%s prompt_chars=%d", self.model, len(prompt))
        try:
            resp = model.generate_content(
                prompt,
                generation_config={
                    "temperature": float(self.temperature),
                    "max_output_tokens": int(max_output_tokens),
                },
                request_options={"timeout": self.timeout_s},
            )
        except Exception as e:
            raise GenerationError(f"Gemini API error: {e}") from e

        try:
            text = resp.text
        except ValueError as e:
            # Raised when the candidate was blocked or carries no text part.
            raise GenerationError(f"Gemini returned no usable text: {e}") from e

        text = (text or "").strip()
        if not text:
            raise GenerationError("LLM returned empty response")
        return text
