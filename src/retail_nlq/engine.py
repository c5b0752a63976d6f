from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from retail_nlq.analysis.translator import Turn
from retail_nlq.data_engine.duckdb_service import DuckDBService
from retail_nlq.data_engine.postgres_service import PostgresService
from retail_nlq.graphs.ask_graph import build_ask_graph
from retail_nlq.llm.factory import build_llm
from retail_nlq.types import AnalysisResponse
from retail_nlq.utils.config_loader import EngineConfig

logger = logging.getLogger(__name__)


def build_executor(config: EngineConfig):
    if config.database_url:
        return PostgresService.from_url(config.database_url, statement_timeout_s=config.statement_timeout_s)
    return DuckDBService.in_memory(statement_timeout_s=config.statement_timeout_s)


@dataclass
class RetailQueryEngine:
    """High-level façade for the question -> SQL -> answer flow.

    This class wires together:
    - the generation client (Gemini or OpenRouter)
    - the executor (PostgreSQL when `database_url` is set, else DuckDB)
    - the LangGraph pipeline

    Both collaborators can be passed in directly, which is how tests use it.
    """

    config: EngineConfig = field(default_factory=EngineConfig)
    llm: Any = None
    executor: Any = None

    def __post_init__(self):
        if self.llm is None:
            self.llm = build_llm(self.config)
        if self.executor is None:
            self.executor = build_executor(self.config)
        self._graph = build_ask_graph(self.llm, self.executor, self.config)

    def ask_question(self, question: str, prior_turns: Optional[Sequence[Turn]] = None):
        started = time.perf_counter()
        state = {"question": question or "", "prior_turns": list(prior_turns or [])}
        out = self._graph.invoke(state)
        elapsed_ms = int((time.perf_counter() - started) * 1000)

        response = AnalysisResponse(
            answer=out.get("answer") or "",
            chart_type=out.get("chart_type"),
            chart_data=out.get("chart_data"),
            insights=list(out.get("insights") or []),
            sql=out.get("sql") or "",
            query_time_ms=elapsed_ms,
            error=out.get("error"),
            error_kind=out.get("error_kind"),
        )
        logger.info("Answered in %d ms (error_kind=%s)", elapsed_ms, response.error_kind)
        return response


def ask_question(
    question: str,
    prior_turns: Optional[Sequence[Turn]] = None,
    *,
    llm: Any = None,
    executor: Any = None,
    config: Optional[EngineConfig] = None,
):
    engine = RetailQueryEngine(config=config or EngineConfig(), llm=llm, executor=executor)
    return engine.ask_question(question, prior_turns)
