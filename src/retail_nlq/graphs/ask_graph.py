from __future__ import annotations

import logging
import re
from typing import Any, List, Optional, Sequence, TypedDict

from langgraph.graph import END, StateGraph

from retail_nlq.analysis.insights import InsightGenerator
from retail_nlq.analysis.result_shaper import shape_result
from retail_nlq.analysis.translator import SqlTranslator, Turn
from retail_nlq.data_engine.sql_safety import require_safe_statement
from retail_nlq.handlers.error_handler import SqlRejectedError
from retail_nlq.prompts import INSIGHT_FALLBACK, META_QUESTION_ANSWER
from retail_nlq.types import ChartHint, GeneratedStatement, ResultRow, SafeStatement
from retail_nlq.utils.config_loader import EngineConfig

logger = logging.getLogger(__name__)

INVALID_QUESTION = "invalid_question"
GENERATION_UNAVAILABLE = "generation_unavailable"
REJECTED_BY_VALIDATOR = "rejected_by_validator"
EXECUTION_FAILED = "execution_failed"

# Questions about the assistant itself rather than about the data.
META_PATTERNS = [
    re.compile(p)
    for p in (
        r"為什麼.*不出來",
        r"為什麼.*看不到",
        r"為什麼.*沒有",
        r"為什麼.*失敗",
        r"為什麼.*錯",
        r"為什麼.*不能",
        r"為什麼.*無法",
        r"為何.*不",
        r"怎麼.*錯",
        r"什麼意思",
        r"解釋.*一下",
        r"你是誰",
        r"幫我.*什麼",
        r"哪裡.*問題",
        r"出.*什麼.*問題",
    )
]


class AskState(TypedDict, total=False):
    question: str
    prior_turns: Sequence[Turn]

    generated: GeneratedStatement
    statement: SafeStatement
    rows: List[ResultRow]

    answer: str
    sql: str
    chart_type: Optional[ChartHint]
    chart_data: Optional[List[ResultRow]]
    insights: List[str]
    error: str
    error_kind: str
    done: bool


def is_meta_question(question: str):
    return any(p.search(question) for p in META_PATTERNS)


def _describe(e: Exception):
    return str(e) or type(e).__name__


def _fail(state: AskState, kind: str, answer: str, detail: str):
    state["error_kind"] = kind
    state["error"] = detail
    state["answer"] = answer
    state["done"] = True
    return state


def _route(next_node: str):
    def route(state: AskState):
        return END if state.get("done") else next_node

    return route


def build_ask_graph(llm: Any, executor: Any, config: EngineConfig):
    translator = SqlTranslator(
        llm=llm,
        history_turns=config.history_turns,
        max_output_tokens=config.sql_max_tokens,
    )
    insight_gen = InsightGenerator(
        llm=llm,
        sample_rows=config.insight_sample_rows,
        max_output_tokens=config.insight_max_tokens,
    )

    def guard(state: AskState):
        question = (state.get("question") or "").strip()
        state["question"] = question
        if not question:
            return _fail(state, INVALID_QUESTION, "請輸入問題", "empty question")
        if len(question) > config.max_question_length:
            msg = f"問題長度不可超過 {config.max_question_length} 字"
            return _fail(state, INVALID_QUESTION, msg, "question too long")
        if is_meta_question(question):
            logger.info("Meta question, skipping SQL generation: %s", question)
            state["answer"] = META_QUESTION_ANSWER
            state["done"] = True
        return state

    def translate(state: AskState):
        try:
            state["generated"] = translator.translate(state["question"], state.get("prior_turns"))
        except Exception as e:
            logger.warning("SQL generation failed: %s", e)
            msg = _describe(e)
            return _fail(state, GENERATION_UNAVAILABLE, f"查詢失敗：{msg}", msg)
        state["sql"] = state["generated"].sql
        return state

    def validate(state: AskState):
        try:
            state["statement"] = require_safe_statement(state["generated"], max_rows=config.max_rows)
        except SqlRejectedError as e:
            state["sql"] = e.sql
            return _fail(state, REJECTED_BY_VALIDATOR, f"SQL 安全檢查未通過：{e.reason}", e.reason)
        state["sql"] = state["statement"].sql
        return state

    def execute(state: AskState):
        try:
            state["rows"] = executor.run(state["statement"])
        except Exception as e:
            logger.warning("Query execution failed: %s", e)
            msg = _describe(e)
            return _fail(state, EXECUTION_FAILED, f"查詢失敗：{msg}", msg)
        logger.info("Query returned %d rows", len(state["rows"]))
        return state

    def shape(state: AskState):
        shaped = shape_result(state["question"], state.get("rows") or [])
        state["answer"] = shaped.answer
        state["chart_type"] = shaped.chart_type
        state["chart_data"] = shaped.chart_data if shaped.chart_type else None
        return state

    def insights(state: AskState):
        rows = state.get("rows") or []
        if not rows:
            state["insights"] = []
            return state
        try:
            state["insights"] = insight_gen.generate(state["question"], rows)
        except Exception as e:
            logger.warning("Insight generation failed, using fallback: %s", e)
            state["insights"] = [INSIGHT_FALLBACK]
        return state

    g = StateGraph(AskState)
    g.add_node("guard", guard)
    g.add_node("translator", translate)
    g.add_node("validator", validate)
    g.add_node("executor", execute)
    g.add_node("shaper", shape)
    g.add_node("insight", insights)
    g.set_entry_point("guard")
    g.add_conditional_edges("guard", _route("translator"), ["translator", END])
    g.add_conditional_edges("translator", _route("validator"), ["validator", END])
    g.add_conditional_edges("validator", _route("executor"), ["executor", END])
    g.add_conditional_edges("executor", _route("shaper"), ["shaper", END])
    g.add_edge("shaper", "insight")
    g.add_edge("insight", END)
    return g.compile()
