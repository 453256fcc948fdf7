"""View module - presentation-side state and row building."""

from __future__ import annotations

from sysview.view.rows import cgroup_rows, format_field, process_rows, row_values
from sysview.view.shared import ModelHolder
from sysview.view.state import ViewState

__all__ = [
    "ModelHolder",
    "ViewState",
    "cgroup_rows",
    "format_field",
    "process_rows",
    "row_values",
]
