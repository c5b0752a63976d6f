from datetime import date

import pandas as pd
import pytest

from retail_nlq.data_engine.duckdb_service import DuckDBService
from retail_nlq.utils.config_loader import EngineConfig


class FakeLLM:
    """Scripted stand-in for a generation client.

    Each call pops the next reply; a reply that is an exception is raised.
    Every message list it receives is kept in `calls`.
    """

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls = []

    def complete(self, messages, max_output_tokens=900):
        self.calls.append(messages)
        if not self.replies:
            raise AssertionError("FakeLLM ran out of scripted replies")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


class RecordingExecutor:
    """Wraps an executor and records every statement it was asked to run."""

    def __init__(self, inner):
        self.inner = inner
        self.statements = []

    def run(self, statement):
        self.statements.append(statement)
        return self.inner.run(statement)


@pytest.fixture
def config():
    return EngineConfig(api_key="test-key")


@pytest.fixture
def duckdb_service():
    svc = DuckDBService.in_memory(statement_timeout_s=5)
    svc.register_table(
        "member_transactions",
        pd.DataFrame(
            {
                "store": ["台南", "台南", "高雄", "台中", "台北", "高雄"],
                "transaction_date": [
                    date(2026, 9, 3),
                    date(2026, 9, 12),
                    date(2026, 9, 20),
                    date(2026, 9, 21),
                    date(2026, 8, 30),
                    date(2026, 9, 25),
                ],
                "transaction_type": ["收銀", "收銀", "收銀", "收銀", "收銀", "銷退"],
                "product_name": ["車燈", "打氣筒", "安全帽", "車燈", "坐墊", "安全帽"],
                "quantity": [1, 2, 1, 3, 1, -1],
                "total": [1200, 900, 2500, 3600, 800, -2500],
                "member_id": ["M1", "M2", "M3", "M1", "M4", "M3"],
            }
        ),
    )
    svc.register_table(
        "store_revenue_daily",
        pd.DataFrame(
            {
                "store": ["台南", "高雄", "台中", "台北", "美術"],
                "revenue_date": [date(2026, 9, 1)] * 5,
                "revenue": [52000, 48000, 30500, 61000, 12000],
            }
        ),
    )
    svc.register_table(
        "unified_members",
        pd.DataFrame(
            {
                "member_id": ["M1", "M2", "M3", "M4"],
                "name": ["王小明", "林美玲", "陳大文", "張志豪"],
                "member_level": ["銀卡", "一般", "金卡", "一般"],
                "total_spent": [15000, 900, 42000, 800],
            }
        ),
    )
    return svc


@pytest.fixture
def recording_executor(duckdb_service):
    return RecordingExecutor(duckdb_service)


@pytest.fixture
def make_llm():
    return FakeLLM
