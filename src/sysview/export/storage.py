"""Snapshot storage for derived models."""

from __future__ import annotations

import logging
from pathlib import Path

from sysview.core.constants import MAX_STORED_SNAPSHOTS
from sysview.model.model import Model

logger = logging.getLogger(__name__)


class ModelStorage:
    """Stores Model snapshots as JSON files.

    File names start with the model timestamp, so sorting names sorts
    snapshots chronologically. Only the newest ``max_snapshots`` are kept.
    """

    def __init__(self, snapshot_dir: Path, max_snapshots: int = MAX_STORED_SNAPSHOTS) -> None:
        """Initialize storage with snapshot directory."""
        self.snapshot_dir = Path(snapshot_dir).resolve()
        self.snapshot_dir.mkdir(parents=True, exist_ok=True)
        self.max_snapshots = max_snapshots

    def save(self, model: Model, name: str | None = None) -> Path:
        """Save a model snapshot.

        Args:
            model: Model to store
            name: Optional label appended to the file name

        Returns:
            Path of the written file
        """
        stem = model.timestamp.strftime("%Y-%m-%d_%H-%M-%S-%f")
        if name:
            stem = f"{stem}_{name}"
        path = self.snapshot_dir / f"{stem}.json"
        path.write_text(model.model_dump_json())
        logger.info(f"Saved snapshot to {path}")
        self._prune()
        return path

    def load(self, name: str | None = None) -> Model:
        """Load a snapshot.

        Args:
            name: Snapshot name as returned by ``list()``, or None for latest

        Returns:
            The stored Model
        """
        if name is None:
            snapshots = self.list()
            if not snapshots:
                raise FileNotFoundError(f"No snapshots found in {self.snapshot_dir}")
            name = snapshots[-1]
        path = self.snapshot_dir / f"{name}.json"
        if not path.exists():
            raise FileNotFoundError(f"Snapshot not found: {path}")
        return Model.model_validate_json(path.read_text())

    def list(self) -> list[str]:
        """Names of stored snapshots, oldest first."""
        return sorted(p.stem for p in self.snapshot_dir.glob("*.json"))

    def _prune(self) -> None:
        snapshots = self.list()
        for stale in snapshots[: max(0, len(snapshots) - self.max_snapshots)]:
            (self.snapshot_dir / f"{stale}.json").unlink()
            logger.debug(f"Removed old snapshot {stale}")
