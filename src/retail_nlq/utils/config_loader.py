from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

DEFAULT_CONFIG_PATH = "config/model_config.yaml"

DEFAULT_MODELS = {
    "gemini": "gemini-2.5-flash",
    "openrouter": "google/gemini-2.0-flash-001",
}


@dataclass(frozen=True)
class EngineConfig:
    """Everything the pipeline needs, passed in explicitly rather than read from the environment."""

    provider: str = "gemini"
    model: str = DEFAULT_MODELS["gemini"]
    api_key: Optional[str] = None
    temperature: float = 0.1
    llm_timeout_s: float = 30.0
    sql_max_tokens: int = 2000
    insight_max_tokens: int = 900
    max_rows: int = 1000
    statement_timeout_s: float = 10.0
    history_turns: int = 6
    insight_sample_rows: int = 50
    max_question_length: int = 500
    database_url: Optional[str] = None


def load_yaml(path: str):
    p = Path(path)
    if not p.exists():
        return {}
    with p.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def load_config(path: str = DEFAULT_CONFIG_PATH, env: Optional[Mapping[str, str]] = None):
    cfg: Dict[str, Any] = load_yaml(path)
    env = os.environ if env is None else env

    llm = cfg.get("llm", {}) or {}
    db = cfg.get("database", {}) or {}
    engine = cfg.get("engine", {}) or {}
    tokens = llm.get("max_output_tokens", {}) or {}

    provider = str(env.get("LLM_PROVIDER", llm.get("provider", "gemini"))).lower()
    if provider not in DEFAULT_MODELS:
        raise ValueError(f"Unknown LLM provider: {provider}")

    if provider == "gemini":
        model = env.get("GEMINI_MODEL", llm.get("model", DEFAULT_MODELS["gemini"]))
        api_key = env.get("GEMINI_API_KEY") or env.get("LLM_API_KEY")
    else:
        model = env.get("LLM_MODEL", llm.get("model", DEFAULT_MODELS["openrouter"]))
        api_key = env.get("LLM_API_KEY")

    return EngineConfig(
        provider=provider,
        model=model,
        api_key=api_key or None,
        temperature=float(env.get("TEMPERATURE", llm.get("temperature", 0.1))),
        llm_timeout_s=float(llm.get("timeout_s", 30)),
        sql_max_tokens=int(tokens.get("sql", 2000)),
        insight_max_tokens=int(tokens.get("insights", 900)),
        max_rows=int(env.get("MAX_SQL_ROWS", db.get("max_rows", 1000))),
        statement_timeout_s=float(db.get("statement_timeout_s", 10)),
        history_turns=int(engine.get("history_turns", 6)),
        insight_sample_rows=int(engine.get("insight_sample_rows", 50)),
        max_question_length=int(engine.get("max_question_length", 500)),
        database_url=env.get("DATABASE_URL", db.get("url")) or None,
    )
