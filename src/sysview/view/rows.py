"""Flatten models into sorted, filtered table rows."""

from __future__ import annotations

from sysview.model.cgroup import CgroupModel
from sysview.model.field import Field, FieldKind
from sysview.model.process import ProcessModel, SingleProcessModel
from sysview.model.queriable import FieldId, Queriable, query, sort_queriables
from sysview.view.state import ViewState

MISSING = "?"


def format_field(field: Field | None, precision: int = 2) -> str:
    """Render a queried value for display; absent values render as ``?``."""
    if field is None:
        return MISSING
    if field.kind is FieldKind.F64:
        return f"{field.value:.{precision}f}"
    return str(field)


def _matches(item: Queriable, filter_info: tuple[FieldId, str] | None) -> bool:
    if filter_info is None:
        return True
    field_id, pattern = filter_info
    field = query(item, field_id)
    return field is not None and pattern in str(field)


def _visible_paths(node: CgroupModel, state: ViewState, keep: set[str]) -> bool:
    """Collect nodes that match the filter or have a matching descendant."""
    found = _matches(node, state.filter_info)
    for child in node.children:
        found = _visible_paths(child, state, keep) or found
    if found:
        keep.add(node.full_path)
    return found


def cgroup_rows(root: CgroupModel, state: ViewState) -> list[CgroupModel]:
    """Depth-first rows of the cgroup tree.

    Siblings are ordered by the sort column, children of collapsed cgroups
    are hidden, and with a filter only matching cgroups and their ancestors
    are kept.
    """
    keep: set[str] | None = None
    if state.filter_info is not None:
        keep = set()
        _visible_paths(root, state, keep)

    rows: list[CgroupModel] = []

    def visit(node: CgroupModel) -> None:
        if keep is not None and node.full_path not in keep:
            return
        rows.append(node)
        if node.full_path in state.collapsed:
            return
        children = list(node.children)
        if state.sort_order is not None:
            sort_queriables(children, state.sort_order, state.reverse)
        for child in children:
            visit(child)

    visit(root)
    return rows


def process_rows(model: ProcessModel, state: ViewState) -> list[SingleProcessModel]:
    """Processes passing the filter, ordered by the sort column (pid otherwise)."""
    rows = [p for _, p in sorted(model.processes.items()) if _matches(p, state.filter_info)]
    if state.sort_order is not None:
        sort_queriables(rows, state.sort_order, state.reverse)
    return rows


def row_values(rows: list[Queriable], field_ids: list[FieldId]) -> list[list[Field | None]]:
    return [[query(row, field_id) for field_id in field_ids] for row in rows]
