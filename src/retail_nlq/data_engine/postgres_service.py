from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from retail_nlq.handlers.error_handler import ExecutionError
from retail_nlq.types import ResultRow, SafeStatement
from retail_nlq.utils.helpers import to_scalar

logger = logging.getLogger(__name__)


@dataclass
class PostgresService:
    """Read-only executor for the production PostgreSQL store.

    The statement timeout is set server-side through the connection options,
    and every statement runs inside a READ ONLY transaction that is rolled back.
    """

    engine: Engine

    @classmethod
    def from_url(
        cls,
        url: str,
        statement_timeout_s: float = 10.0,
        pool_size: int = 10,
        pool_timeout: int = 5,
    ):
        engine = create_engine(
            url,
            pool_pre_ping=True,
            pool_size=pool_size,
            pool_timeout=pool_timeout,
            connect_args={
                "options": f"-c statement_timeout={int(statement_timeout_s * 1000)}",
                "connect_timeout": pool_timeout,
            },
        )
        return cls(engine=engine)

    def run(self, statement: SafeStatement) -> List[ResultRow]:
        if not isinstance(statement, SafeStatement):
            raise TypeError("PostgresService only executes validated SafeStatement objects")
        logger.debug("Executing on PostgreSQL:\n%s", statement.sql)
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SET TRANSACTION READ ONLY"))
                result = conn.execute(text(statement.sql))
                rows = [{k: to_scalar(v) for k, v in m.items()} for m in result.mappings()]
                conn.rollback()
        except SQLAlchemyError as e:
            raise ExecutionError(f"Query failed: {e}") from e
        return rows
