from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, List

from retail_nlq.prompts import INSIGHT_SYSTEM_PROMPT
from retail_nlq.types import ResultRow
from retail_nlq.utils.helpers import rows_to_json

MAX_INSIGHTS = 3

_ENUM_MARKER = re.compile(r"^\s*(?:\d+\s*[\.\)、:：](?!\d)|[-*•](?=\s))\s*")


def parse_insights(text: str):
    lines = [_ENUM_MARKER.sub("", line).strip() for line in (text or "").splitlines()]
    return [line for line in lines if line][:MAX_INSIGHTS]


@dataclass
class InsightGenerator:
    llm: Any
    sample_rows: int = 50
    max_output_tokens: int = 900

    def generate(self, question: str, rows: List[ResultRow]):
        messages = [
            {"role": "system", "content": INSIGHT_SYSTEM_PROMPT},
            {"role": "user", "content": f"問題：{question}\n資料：{rows_to_json(rows[: self.sample_rows])}"},
        ]
        out = self.llm.complete(messages, max_output_tokens=self.max_output_tokens)
        return parse_insights(out)
