"""sysview - derived resource models for cgroups, processes and the host."""

from __future__ import annotations

from sysview.core.schemas import Sample, SysviewConfig
from sysview.model.model import Model, ModelFieldId

__version__ = "0.1.0"

__all__ = [
    "Model",
    "ModelFieldId",
    "Sample",
    "SysviewConfig",
    "__version__",
]
