from __future__ import annotations

import json
import re
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List

_FENCE_OPEN = re.compile(r"^```[a-zA-Z]*\s*")
_FENCE_CLOSE = re.compile(r"\s*```$")


def strip_code_fences(text: str):
    text = (text or "").strip()
    text = _FENCE_OPEN.sub("", text)
    text = _FENCE_CLOSE.sub("", text)
    return text.strip()


def month_starts(today: date):
    """First day of last, this and next month."""
    this_month = today.replace(day=1)
    if today.month == 1:
        last_month = date(today.year - 1, 12, 1)
    else:
        last_month = date(today.year, today.month - 1, 1)
    if today.month == 12:
        next_month = date(today.year + 1, 1, 1)
    else:
        next_month = date(today.year, today.month + 1, 1)
    return last_month, this_month, next_month


def to_scalar(value: Any):
    if value is None or isinstance(value, (str, bool, int, float, date, datetime)):
        return value
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if hasattr(value, "item"):
        # numpy / pandas scalars
        return value.item()
    return str(value)


def rows_to_json(rows: List[Dict[str, Any]]):
    return json.dumps(rows, ensure_ascii=False, default=str)

