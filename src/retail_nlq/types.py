from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

ResultRow = Dict[str, Any]


class ChartHint(str, Enum):
    BAR = "horizontal_bar"
    LINE = "line"
    PIE = "pie"
    GROUPED_BAR = "grouped_bar"
    TABLE = "table"


@dataclass(frozen=True)
class GeneratedStatement:
    """Raw SQL text from the translator. Never executed."""

    sql: str


@dataclass(frozen=True)
class SafeStatement:
    """SQL that passed every validator gate and rewrite.

    Only `validate_and_sanitize_sql` builds these; executors refuse anything else.
    """

    sql: str


@dataclass(frozen=True)
class ValidationResult:
    ok: bool
    sql: str
    statement: Optional[SafeStatement] = None
    reason: Optional[str] = None


@dataclass
class ShapedResult:
    chart_type: Optional[ChartHint]
    chart_data: List[ResultRow]
    answer: str


@dataclass
class AnalysisResponse:
    answer: str
    chart_type: Optional[ChartHint] = None
    chart_data: Optional[List[ResultRow]] = None
    insights: List[str] = field(default_factory=list)
    sql: str = ""
    query_time_ms: int = 0
    error: Optional[str] = None
    error_kind: Optional[str] = None

    @property
    def ok(self):
        return self.error is None

    def to_dict(self):
        return {
            "answer": self.answer,
            "chart_type": self.chart_type.value if self.chart_type else None,
            "chart_data": self.chart_data,
            "insights": list(self.insights),
            "sql": self.sql,
            "query_time_ms": self.query_time_ms,
            "error": self.error,
            "error_kind": self.error_kind,
        }
