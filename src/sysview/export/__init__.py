"""Export module - model snapshots and tabular dumps."""

from __future__ import annotations

from sysview.export.dump import dump_rows, rows_to_dataframe
from sysview.export.storage import ModelStorage

__all__ = ["ModelStorage", "dump_rows", "rows_to_dataframe"]
