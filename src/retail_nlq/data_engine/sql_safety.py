from __future__ import annotations

import logging
import re
from datetime import date
from typing import List, Optional

from retail_nlq.data_engine.schema_context import (
    CATEGORY_COLUMN,
    CATEGORY_VALUE,
    DISPATCH_CATEGORY,
    RETURN_CATEGORY,
    TRANSACTION_TABLE,
)
from retail_nlq.handlers.error_handler import SqlRejectedError
from retail_nlq.types import GeneratedStatement, SafeStatement, ValidationResult

logger = logging.getLogger(__name__)

MAX_LIMIT = 1000

FORBIDDEN_KEYWORDS = [
    "INSERT", "UPDATE", "DELETE", "DROP", "ALTER", "TRUNCATE",
    "CREATE", "GRANT", "REVOKE", "EXECUTE", "EXEC",
    "INTO", "MERGE", "COPY", "CALL", "ATTACH", "PRAGMA",
    "INFORMATION_SCHEMA",
]

_FORBIDDEN_RE = re.compile(r"\b(" + "|".join(FORBIDDEN_KEYWORDS) + r")\b", re.IGNORECASE)
_SYSTEM_CATALOG_RE = re.compile(r"\b(?:pg|sqlite|duckdb)_\w*", re.IGNORECASE)
_READ_INTRO_RE = re.compile(r"^(?:SELECT\b|WITH\b[\s\S]*\bSELECT\b)", re.IGNORECASE)

_COL = r"(?P<col>[A-Za-z_]\w*(?:\.[A-Za-z_]\w*)?)"
_CAST = r"(?:::\w+)?"
_MONTH = r"'?(?P<month>\d{1,2})'?(?!\d)"
_MONTH_PATTERNS = [
    re.compile(rf"\bEXTRACT\s*\(\s*MONTH\s+FROM\s+{_COL}\s*\){_CAST}\s*=\s*{_MONTH}", re.IGNORECASE),
    re.compile(rf"\bDATE_PART\s*\(\s*'month'\s*,\s*{_COL}\s*\){_CAST}\s*=\s*{_MONTH}", re.IGNORECASE),
    re.compile(rf"\bMONTH\s*\(\s*{_COL}\s*\)\s*=\s*{_MONTH}", re.IGNORECASE),
]

_CATEGORY_REF = rf"(?P<col>(?:\w+\.)?{CATEGORY_COLUMN})"
_CATEGORY_DISPATCH_RE = re.compile(rf"\b{_CATEGORY_REF}\s*=\s*'{DISPATCH_CATEGORY}'", re.IGNORECASE)
_CATEGORY_NOT_RETURN_RE = re.compile(rf"\b{_CATEGORY_REF}\s*(?:!=|<>)\s*'{RETURN_CATEGORY}'", re.IGNORECASE)
_CATEGORY_IN_RE = re.compile(rf"\b{_CATEGORY_REF}\s+(?P<neg>NOT\s+)?IN\s*\((?P<values>[^)]*)\)", re.IGNORECASE)
_CATEGORY_MENTION_RE = re.compile(rf"\b{CATEGORY_COLUMN}\b", re.IGNORECASE)
_TABLE_RE = re.compile(rf"\b{TRANSACTION_TABLE}\b", re.IGNORECASE)

_WHERE_RE = re.compile(r"\bWHERE\b", re.IGNORECASE)
_CLAUSE_END_RE = re.compile(
    r"\b(?:GROUP\s+BY|ORDER\s+BY|HAVING|LIMIT|OFFSET|WINDOW|UNION|INTERSECT|EXCEPT|FETCH)\b",
    re.IGNORECASE,
)
_SET_OP_RE = re.compile(r"\b(?:UNION|INTERSECT|EXCEPT)\b", re.IGNORECASE)
_ROW_CLAUSE_RE = re.compile(r"\b(?:LIMIT|OFFSET|FETCH)\b", re.IGNORECASE)
_PLAIN_COUNT_RE = re.compile(r"^[0-9]+$")
_PLAIN_FETCH_RE = re.compile(r"^(?:FIRST|NEXT)\s+(?:([0-9]+)\s+)?ROWS?\s+ONLY$", re.IGNORECASE)

CATEGORY_FILTER = f"{CATEGORY_COLUMN} = '{CATEGORY_VALUE}'"


def _normalize(sql: str):
    text = (sql or "").strip()
    if text.endswith(";"):
        text = text[:-1].rstrip()
    return text


def _mask_literals(sql: str):
    # Blank out string literals, keeping offsets so matches map back onto `sql`.
    # Double-quoted identifiers keep their word characters so quoted table and
    # column names are still found.
    out: List[str] = []
    quote: Optional[str] = None
    for ch in sql:
        if quote:
            if ch == quote:
                quote = None
                out.append(ch)
            elif quote == '"' and (ch.isalnum() or ch == "_"):
                out.append(ch)
            else:
                out.append(" ")
        elif ch in ("'", '"'):
            quote = ch
            out.append(ch)
        else:
            out.append(ch)
    return "".join(out)


def _depths(masked: str):
    depth = 0
    out: List[int] = []
    for ch in masked:
        if ch == "(":
            out.append(depth)
            depth += 1
        elif ch == ")":
            depth = max(depth - 1, 0)
            out.append(depth)
        else:
            out.append(depth)
    return out


def _at_level(masked: str, depths: List[int], level: int):
    return "".join(ch if d == level else " " for ch, d in zip(masked, depths))


def _check_gates(sql: str):
    hits = [m for m in (_FORBIDDEN_RE.search(sql), _SYSTEM_CATALOG_RE.search(sql)) if m]
    if hits:
        first = min(hits, key=lambda m: m.start())
        token = first.group(0)
        if first.re is _FORBIDDEN_RE:
            token = token.upper()
        return f"禁止使用 {token}"

    if not _READ_INTRO_RE.match(sql):
        return "只允許 SELECT 查詢"

    if ";" in sql:
        return "禁止多語句查詢"

    if "--" in sql or "/*" in sql:
        return "禁止 SQL 註解"

    return None


def _explicit_year(sql: str, col: str):
    c = re.escape(col)
    patterns = [
        rf"\bEXTRACT\s*\(\s*YEAR\s+FROM\s+{c}\s*\){_CAST}\s*=\s*'?(\d{{4}})'?",
        rf"\bDATE_PART\s*\(\s*'year'\s*,\s*{c}\s*\){_CAST}\s*=\s*'?(\d{{4}})'?",
        rf"\bYEAR\s*\(\s*{c}\s*\)\s*=\s*'?(\d{{4}})'?",
    ]
    for p in patterns:
        m = re.search(p, sql, re.IGNORECASE)
        if m and int(m.group(1)) > 0:
            return int(m.group(1))
    return None


def _rewrite_month_filters(sql: str, today: date):
    def _range(m: re.Match):
        col = m.group("col")
        month = int(m.group("month"))
        if not 1 <= month <= 12:
            return m.group(0)
        year = _explicit_year(source, col) or today.year
        start = date(year, month, 1)
        end = date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1)
        return f"({col} >= '{start.isoformat()}' AND {col} < '{end.isoformat()}')"

    for pattern in _MONTH_PATTERNS:
        source = sql
        sql = pattern.sub(_range, source)
    return sql


def _normalize_category_filters(sql: str):
    if not _TABLE_RE.search(_mask_literals(sql)):
        return sql

    def _fixed(m: re.Match):
        return f"{m.group('col')} = '{CATEGORY_VALUE}'"

    def _in_list(m: re.Match):
        values = re.findall(r"'([^']*)'", m.group("values"))
        if m.group("neg"):
            wrong = CATEGORY_VALUE not in values
        else:
            wrong = CATEGORY_VALUE in values and len(set(values)) > 1
        return _fixed(m) if wrong else m.group(0)

    sql = _CATEGORY_DISPATCH_RE.sub(_fixed, sql)
    sql = _CATEGORY_NOT_RETURN_RE.sub(_fixed, sql)
    return _CATEGORY_IN_RE.sub(_in_list, sql)


def _splice(head: str, inserted: str, rest: str):
    rest = rest.lstrip()
    if not rest:
        return f"{head.rstrip()} {inserted}"
    sep = "" if rest.startswith(")") else " "
    return f"{head.rstrip()} {inserted}{sep}{rest}"


def _inject_into_scope(sql: str, table_pos: int):
    masked = _mask_literals(sql)
    depths = _depths(masked)
    level = depths[table_pos]
    flat = _at_level(masked, depths, level)

    start = table_pos
    while start > 0 and depths[start - 1] >= level:
        start -= 1
    end = table_pos
    while end < len(sql) and depths[end] >= level:
        end += 1

    # Narrow to the UNION/INTERSECT/EXCEPT branch holding the reference.
    before = list(_SET_OP_RE.finditer(flat, start, table_pos))
    if before:
        start = before[-1].end()
    after = _SET_OP_RE.search(flat, table_pos, end)
    if after:
        end = after.start()

    if _CATEGORY_MENTION_RE.search(masked, start, end):
        return sql

    where = _WHERE_RE.search(flat, table_pos, end)
    if where:
        stop = _CLAUSE_END_RE.search(flat, where.end(), end)
        cond_end = stop.start() if stop else end
        condition = sql[where.end():cond_end].strip()
        return _splice(sql[:where.start()], f"WHERE {CATEGORY_FILTER} AND ({condition})", sql[cond_end:])

    stop = _CLAUSE_END_RE.search(flat, table_pos, end)
    insert_at = stop.start() if stop else end
    return _splice(sql[:insert_at], f"WHERE {CATEGORY_FILTER}", sql[insert_at:])


def _inject_category_filter(sql: str):
    count = len(_TABLE_RE.findall(_mask_literals(sql)))
    for i in range(count):
        # Offsets move after each splice, so look the reference up again.
        positions = [m.start() for m in _TABLE_RE.finditer(_mask_literals(sql))]
        sql = _inject_into_scope(sql, positions[i])
    return sql


def _enforce_row_cap(sql: str, max_rows: int):
    masked = _mask_literals(sql)
    top = _at_level(masked, _depths(masked), 0)
    clauses = [m for m in _ROW_CLAUSE_RE.finditer(top) if m.group(0).upper() != "OFFSET"]
    if not clauses:
        return f"{sql} LIMIT {max_rows}"

    # Each LIMIT/FETCH clause runs to the next LIMIT/OFFSET/FETCH or the end.
    for m in reversed(clauses):
        nxt = _ROW_CLAUSE_RE.search(top, m.end())
        stop = nxt.start() if nxt else len(sql)
        value = sql[m.end():stop].strip()
        if m.group(0).upper() == "LIMIT":
            within = bool(_PLAIN_COUNT_RE.match(value)) and int(value) <= max_rows
            capped = str(max_rows)
        else:
            fetch = _PLAIN_FETCH_RE.match(value)
            within = bool(fetch) and int(fetch.group(1) or 1) <= max_rows
            capped = f"FIRST {max_rows} ROWS ONLY"
        if not within:
            sql = _splice(sql[:m.end()], capped, sql[stop:])
    return sql


def validate_and_sanitize_sql(sql: str, max_rows: int = MAX_LIMIT, today: Optional[date] = None):
    """Gate and rewrite generated SQL.

    Returns a ValidationResult. On success `statement` holds the rewritten,
    row-capped SafeStatement. On rejection `sql` is the untouched input and
    `reason` names the failed gate; the caller must not execute anything.
    """
    raw = sql or ""
    trimmed = _normalize(raw)

    reason = _check_gates(trimmed)
    if reason:
        logger.warning("SQL rejected (%s): %s", reason, trimmed)
        return ValidationResult(ok=False, sql=raw, reason=reason)

    cap = max(1, min(int(max_rows), MAX_LIMIT))
    rewritten = _rewrite_month_filters(trimmed, today or date.today())
    rewritten = _normalize_category_filters(rewritten)
    rewritten = _inject_category_filter(rewritten)
    rewritten = _enforce_row_cap(rewritten, cap)

    reason = _check_gates(rewritten)
    if reason:
        logger.warning("Rewritten SQL rejected (%s): %s", reason, rewritten)
        return ValidationResult(ok=False, sql=raw, reason=reason)

    if rewritten != trimmed:
        logger.debug("SQL rewritten:\n%s\n->\n%s", trimmed, rewritten)
    return ValidationResult(ok=True, sql=rewritten, statement=SafeStatement(rewritten))


def require_safe_statement(statement: GeneratedStatement, max_rows: int = MAX_LIMIT, today: Optional[date] = None):
    result = validate_and_sanitize_sql(statement.sql, max_rows=max_rows, today=today)
    if not result.ok:
        raise SqlRejectedError(result.reason or "SQL rejected", sql=result.sql)
    return result.statement
