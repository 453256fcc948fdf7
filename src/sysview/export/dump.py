"""Tabular export of queried rows."""

from __future__ import annotations

from pathlib import Path

import pandas as pd

from sysview.core.schemas import PidState
from sysview.model.queriable import FieldId, Queriable, field_paths
from sysview.view.rows import row_values

OUTPUT_FORMATS = ("csv", "json")


def rows_to_dataframe(rows: list[Queriable], field_ids: list[FieldId]) -> pd.DataFrame:
    """One row per model and one column per field path; absent values are NA."""
    data = [
        [None if field is None else _plain(field.value) for field in values]
        for values in row_values(rows, field_ids)
    ]
    return pd.DataFrame(data, columns=field_paths(field_ids))


def _plain(value: object) -> object:
    if isinstance(value, PidState):
        return str(value)
    return value


def dump_rows(
    rows: list[Queriable],
    field_ids: list[FieldId],
    output_format: str = "csv",
    path: Path | None = None,
) -> str:
    """Render rows as csv or json, optionally writing them to ``path``.

    Returns:
        The rendered text
    """
    if output_format not in OUTPUT_FORMATS:
        raise ValueError(f"Unsupported output format: {output_format}")
    df = rows_to_dataframe(rows, field_ids)
    if output_format == "csv":
        text = df.to_csv(index=False)
    else:
        text = df.to_json(orient="records", indent=2)
    if path is not None:
        path.write_text(text)
    return text
