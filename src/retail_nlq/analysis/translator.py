from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from retail_nlq.data_engine.schema_context import CATEGORY_VALUE, CATEGORY_VALUES, DB_SCHEMA, STORES
from retail_nlq.handlers.error_handler import GenerationError
from retail_nlq.prompts import SQL_SYSTEM_PROMPT
from retail_nlq.types import GeneratedStatement
from retail_nlq.utils.helpers import month_starts, strip_code_fences

logger = logging.getLogger(__name__)

Turn = Union[str, Mapping[str, str]]

_ROLE_LABELS = {"user": "使用者", "assistant": "助理"}


def render_turns(turns: Optional[Sequence[Turn]], limit: int):
    """Render the most recent `limit` turns as `使用者：…` / `助理：…` lines."""
    if not turns or limit <= 0:
        return []
    lines: List[str] = []
    for turn in list(turns)[-limit:]:
        if isinstance(turn, str):
            text = turn.strip()
        else:
            content = (turn.get("content") or "").strip()
            label = _ROLE_LABELS.get(turn.get("role") or "", "助理")
            text = f"{label}：{content}" if content else ""
        if text:
            lines.append(text)
    return lines


@dataclass
class SqlTranslator:
    llm: Any
    schema: str = DB_SCHEMA
    history_turns: int = 6
    max_output_tokens: int = 2000

    def build_messages(self, question: str, prior_turns: Optional[Sequence[Turn]] = None, today: Optional[date] = None):
        today = today or date.today()
        last_month, this_month, next_month = month_starts(today)
        system = SQL_SYSTEM_PROMPT.format(
            today=today.isoformat(),
            this_month_start=this_month.isoformat(),
            last_month_start=last_month.isoformat(),
            next_month_start=next_month.isoformat(),
            schema=self.schema,
            stores=", ".join(STORES),
            category=CATEGORY_VALUE,
            categories=", ".join(CATEGORY_VALUES),
        )
        messages: List[Dict[str, str]] = [{"role": "system", "content": system}]
        history = render_turns(prior_turns, self.history_turns)
        if history:
            messages.append({"role": "system", "content": "RECENT_CHAT\n" + "\n".join(history)})
        messages.append({"role": "user", "content": question})
        return messages

    def translate(self, question: str, prior_turns: Optional[Sequence[Turn]] = None, today: Optional[date] = None):
        messages = self.build_messages(question, prior_turns, today)
        out = self.llm.complete(messages, max_output_tokens=self.max_output_tokens)
        sql = strip_code_fences(out)
        if not sql:
            raise GenerationError("LLM returned empty SQL")
        logger.info("Generated SQL:\n%s", sql)
        return GeneratedStatement(sql)
