from __future__ import annotations

from retail_nlq.llm.gemini_client import GeminiChat
from retail_nlq.llm.openrouter_client import OpenRouterChat
from retail_nlq.utils.config_loader import EngineConfig


def build_llm(config: EngineConfig):
    if config.provider == "openrouter":
        return OpenRouterChat(
            model=config.model,
            api_key=config.api_key,
            temperature=config.temperature,
            timeout_s=config.llm_timeout_s,
        )
    return GeminiChat(
        model=config.model,
        api_key=config.api_key,
        temperature=config.temperature,
        timeout_s=config.llm_timeout_s,
    )
