"""
Deterministic presentation shaping for query results.

- Chart hint: ordered keyword/shape rules, first match wins.
- Store colours: attach a display colour to rows naming a known store.
- Summary: one literal sentence; narrative belongs to the insight step.
"""

from __future__ import annotations

import logging
import re
from datetime import date, datetime
from decimal import Decimal
from typing import Any, List, Optional

from retail_nlq.types import ChartHint, ResultRow, ShapedResult

logger = logging.getLogger(__name__)

STORE_COLORS = {
    "台南": "#FF6B35", "台南店": "#FF6B35",
    "高雄": "#F7C948", "高雄店": "#F7C948",
    "台中": "#2EC4B6", "台中店": "#2EC4B6",
    "台北": "#E71D73", "台北店": "#E71D73",
    "美術": "#9B5DE5", "美術店": "#9B5DE5",
}

NO_RESULTS_ANSWER = "查詢沒有找到符合條件的資料。"


def _keywords(*words: str):
    return re.compile("|".join(re.escape(w) for w in words), re.IGNORECASE)


_TREND_WORDS = _keywords("趨勢", "走勢", "每月", "每週", "每天", "trend", "monthly", "weekly", "daily", "over time")
_TIME_COLUMN_WORDS = _keywords("月", "日期", "period", "date", "month")
_RANKING_WORDS = _keywords("排名", "比較", "各門市", "各店", "前", "top", "rank", "ranking", "compare")
_PROPORTION_WORDS = _keywords("佔比", "比例", "分佈", "佔", "比率", "share", "proportion", "distribution")
_VERSUS_WORDS = _keywords("對比", "vs", "versus")

SMALL_RESULT_ROWS = 10
SMALL_RESULT_COLUMNS = 3


def infer_chart_hint(question: str, rows: List[ResultRow]):
    if not rows:
        return None
    if len(rows) == 1:
        return ChartHint.TABLE

    q = question or ""
    keys = [str(k) for k in rows[0].keys()]

    if _TREND_WORDS.search(q) or any(_TIME_COLUMN_WORDS.search(k) for k in keys):
        return ChartHint.LINE
    if _RANKING_WORDS.search(q):
        return ChartHint.BAR
    if _PROPORTION_WORDS.search(q):
        return ChartHint.PIE
    if _VERSUS_WORDS.search(q):
        return ChartHint.GROUPED_BAR

    if len(rows) <= SMALL_RESULT_ROWS and len(keys) <= SMALL_RESULT_COLUMNS:
        return ChartHint.BAR
    return ChartHint.TABLE


def add_store_colors(rows: List[ResultRow]):
    out: List[ResultRow] = []
    for row in rows:
        if "color" in row:
            out.append(row)
            continue
        color = next((STORE_COLORS[v] for v in row.values() if isinstance(v, str) and v in STORE_COLORS), None)
        out.append({**row, "color": color} if color else row)
    return out


def _format_value(value: Any):
    if value is None:
        return "-"
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, Decimal):
        value = float(value)
    if isinstance(value, int):
        return f"{value:,}"
    if isinstance(value, float):
        return f"{int(value):,}" if value.is_integer() else f"{value:,.2f}"
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


def summarize_rows(rows: List[ResultRow]):
    if not rows:
        return NO_RESULTS_ANSWER
    if len(rows) == 1 and len(rows[0]) <= 2:
        return "，".join(f"{k}：{_format_value(v)}" for k, v in rows[0].items())
    return f"查詢到 {len(rows)} 筆結果。"


def shape_result(question: str, rows: List[ResultRow]):
    chart_type: Optional[ChartHint] = infer_chart_hint(question, rows)
    logger.debug("Chart hint %s for %d rows", chart_type, len(rows))
    return ShapedResult(
        chart_type=chart_type,
        chart_data=add_store_colors(rows),
        answer=summarize_rows(rows),
    )
