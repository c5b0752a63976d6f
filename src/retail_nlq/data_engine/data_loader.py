from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

import pandas as pd

from retail_nlq.data_engine.duckdb_service import DuckDBService

NUMERIC_COLUMNS = ["revenue", "total", "price", "quantity", "total_spent", "balance", "product_count"]
DATE_COLUMNS = ["revenue_date", "transaction_date", "repair_date", "order_date"]


def read_csv(source):
    try:
        df = pd.read_csv(source, low_memory=False)
    except UnicodeDecodeError:
        if hasattr(source, "seek"):
            source.seek(0)
        df = pd.read_csv(source, low_memory=False, encoding="latin1")

    for col in NUMERIC_COLUMNS:
        if col in df.columns:
            df[col] = pd.to_numeric(df[col], errors="coerce")
    for col in DATE_COLUMNS:
        if col in df.columns:
            df[col] = pd.to_datetime(df[col], errors="coerce").dt.date
    return df


@dataclass
class DataLoader:
    """Loads table exports (one CSV per table, named after it) into DuckDB."""

    input_dir: Optional[Path] = None

    def list_csv_files(self):
        if self.input_dir is None or not self.input_dir.exists():
            return []
        return sorted(self.input_dir.glob("*.csv"))

    def load_into(self, svc: DuckDBService, files: Optional[Dict[str, object]] = None):
        """Register every CSV as a table; `files` maps table name to an uploaded file."""
        sources: Dict[str, object] = {p.stem: p for p in self.list_csv_files()}
        sources.update(files or {})
        for name, source in sources.items():
            svc.register_table(name, read_csv(source))
        return sorted(sources)
