"""Utilities."""

from __future__ import annotations

from sysview.utils.logging import get_logger, setup_logging

__all__ = ["get_logger", "setup_logging"]
