"""Sort, filter and collapse state of a table view, addressed by field paths."""

from __future__ import annotations

import logging

from sysview.model.cgroup import CgroupModel
from sysview.model.field import FieldIdError, FieldTypeError
from sysview.model.queriable import FieldId

logger = logging.getLogger(__name__)


class ViewState:
    """State of one table (cgroups or processes).

    Args:
        field_id_type: FieldId type of the rows, e.g. ``CgroupModelFieldId``
        sort_order: Initial sort column
        reverse: Sort descending

    Attributes:
        filter_info: Column and substring rows must contain, or None
        collapsed: Full paths of cgroups whose children are hidden
    """

    def __init__(
        self,
        field_id_type: type[FieldId],
        sort_order: FieldId | None = None,
        reverse: bool = False,
    ) -> None:
        self.field_id_type = field_id_type
        self.sort_order: FieldId | None = None
        self.reverse = reverse
        self.filter_info: tuple[FieldId, str] | None = None
        self.collapsed: set[str] = set()
        if sort_order is not None:
            self.sort_order = self._check(sort_order)

    def _check(self, field_id: FieldId) -> FieldId:
        if not isinstance(field_id, self.field_id_type):
            raise FieldTypeError(
                f"{type(field_id).__name__} is not a {self.field_id_type.__name__}"
            )
        return field_id

    def set_sort_tag(self, field_id: FieldId) -> None:
        """Select a sort column; selecting the current one flips the direction."""
        if field_id == self.sort_order:
            self.reverse = not self.reverse
        else:
            self.sort_order = self._check(field_id)
            self.reverse = True

    def set_sort_string(self, path: str, reverse: bool | None = None) -> bool:
        """Select a sort column by path.

        Returns:
            False if ``path`` does not name a field, leaving the state unchanged
        """
        try:
            field_id = self.field_id_type.from_path(path)
        except FieldIdError as e:
            logger.warning(f"Invalid sort field: {e}")
            return False
        self.sort_order = field_id
        if reverse is not None:
            self.reverse = reverse
        return True

    def set_filter(self, field_id: FieldId, pattern: str | None) -> None:
        """Keep only rows whose ``field_id`` value contains ``pattern``; None clears."""
        if pattern is None:
            self.filter_info = None
        else:
            self.filter_info = (self._check(field_id), pattern)

    def set_filter_string(self, path: str, pattern: str | None) -> bool:
        try:
            field_id = self.field_id_type.from_path(path)
        except FieldIdError as e:
            logger.warning(f"Invalid filter field: {e}")
            return False
        self.set_filter(field_id, pattern)
        return True

    def toggle_collapse(self, full_path: str) -> bool:
        """Collapse or expand a cgroup; returns True if it is now collapsed."""
        if full_path in self.collapsed:
            self.collapsed.discard(full_path)
            return False
        self.collapsed.add(full_path)
        return True

    def forget_recreated(self, root: CgroupModel) -> list[str]:
        """Drop collapse state of every cgroup recreated since the last tick."""
        forgotten = [
            node.full_path
            for node in root.walk()
            if node.recreate_flag and node.full_path in self.collapsed
        ]
        for full_path in forgotten:
            self.collapsed.discard(full_path)
        if forgotten:
            logger.debug(f"Reset view state of recreated cgroups: {forgotten}")
        return forgotten
