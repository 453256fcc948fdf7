"""Holder for the model shown by a presentation layer."""

from __future__ import annotations

import threading

from sysview.model.model import Model


class ModelHolder:
    """Single-writer, many-reader slot for the current Model.

    Models are immutable, so swapping the reference under a lock is enough
    for readers never to observe a partially built tree.
    """

    def __init__(self, model: Model | None = None) -> None:
        self._lock = threading.Lock()
        self._model = model
        self._generation = 0

    def swap(self, model: Model) -> Model | None:
        """Install ``model`` and return the one it replaces."""
        with self._lock:
            previous = self._model
            self._model = model
            self._generation += 1
            return previous

    def get(self) -> Model | None:
        with self._lock:
            return self._model

    @property
    def generation(self) -> int:
        """Number of models swapped in so far."""
        with self._lock:
            return self._generation
