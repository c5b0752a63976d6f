from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass
from typing import List

import duckdb
import pandas as pd

from retail_nlq.handlers.error_handler import ExecutionError
from retail_nlq.types import ResultRow, SafeStatement
from retail_nlq.utils.helpers import to_scalar

logger = logging.getLogger(__name__)

_TABLE_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


@dataclass
class DuckDBService:
    """Encapsulates the DuckDB connection + table registration.

    Runs only SafeStatements, each on its own cursor, interrupted after
    `statement_timeout_s`.
    """

    conn: duckdb.DuckDBPyConnection
    statement_timeout_s: float = 10.0

    @classmethod
    def in_memory(cls, statement_timeout_s: float = 10.0):
        conn = duckdb.connect(database=":memory:")
        return cls(conn=conn, statement_timeout_s=statement_timeout_s)

    def register_table(self, name: str, df: pd.DataFrame):
        if not _TABLE_NAME.match(name):
            raise ValueError(f"Invalid table name: {name!r}")
        self.conn.register("_incoming_df", df)
        try:
            self.conn.execute(f'CREATE OR REPLACE TABLE "{name}" AS SELECT * FROM _incoming_df')
        finally:
            self.conn.unregister("_incoming_df")
        logger.info("Registered table %s (%d rows)", name, len(df))

    def table_names(self):
        return [r[0] for r in self.conn.execute("SHOW TABLES").fetchall()]

    def run(self, statement: SafeStatement) -> List[ResultRow]:
        if not isinstance(statement, SafeStatement):
            raise TypeError("DuckDBService only executes validated SafeStatement objects")
        logger.debug("Executing on DuckDB:\n%s", statement.sql)

        cursor = self.conn.cursor()
        timed_out = threading.Event()

        def _interrupt():
            timed_out.set()
            cursor.interrupt()

        timer = threading.Timer(self.statement_timeout_s, _interrupt)
        timer.daemon = True
        timer.start()
        try:
            res = cursor.execute(statement.sql)
            columns = [d[0] for d in res.description]
            records = res.fetchall()
        except duckdb.Error as e:
            if timed_out.is_set():
                raise ExecutionError(f"Query timed out after {self.statement_timeout_s:g}s") from e
            raise ExecutionError(f"Query failed: {e}") from e
        finally:
            timer.cancel()
            cursor.close()

        return [{c: to_scalar(v) for c, v in zip(columns, record)} for record in records]
