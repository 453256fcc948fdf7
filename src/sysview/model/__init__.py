"""Model module - derived metrics and field queries.

Models are rebuilt from raw samples on every tick:
- Model: top-level composition of the per-domain models
- CgroupModel: recursive cgroup tree
- ProcessModel / SystemModel / NetworkModel

Shared utilities:
- field / queriable: uniform values and path-addressed queries
- delta: rate and percentage computation
"""

from __future__ import annotations

from sysview.model.cgroup import (
    CgroupCpuModel,
    CgroupIoModel,
    CgroupMemoryModel,
    CgroupModel,
    CgroupModelFieldId,
    CgroupPressureModel,
)
from sysview.model.delta import count_per_sec, elapsed_usec, opt_add, opt_multiply, usec_pct
from sysview.model.field import Field, FieldIdError, FieldKind, FieldTypeError
from sysview.model.model import Model, ModelFieldId
from sysview.model.network import NetworkModel, NetworkModelFieldId, SingleNetModel
from sysview.model.process import (
    ProcessModel,
    ProcessModelFieldId,
    SingleProcessModel,
    SingleProcessModelFieldId,
)
from sysview.model.queriable import (
    CompositeFieldId,
    FieldId,
    LeafFieldId,
    MapFieldId,
    Queriable,
    Recursive,
    VecFieldId,
    query,
    sort_queriables,
)
from sysview.model.system import SingleCpuModel, SingleDiskModel, SystemModel, SystemModelFieldId

__all__ = [
    "CgroupCpuModel",
    "CgroupIoModel",
    "CgroupMemoryModel",
    "CgroupModel",
    "CgroupModelFieldId",
    "CgroupPressureModel",
    "CompositeFieldId",
    "Field",
    "FieldId",
    "FieldIdError",
    "FieldKind",
    "FieldTypeError",
    "LeafFieldId",
    "MapFieldId",
    "Model",
    "ModelFieldId",
    "NetworkModel",
    "NetworkModelFieldId",
    "ProcessModel",
    "ProcessModelFieldId",
    "Queriable",
    "Recursive",
    "SingleCpuModel",
    "SingleDiskModel",
    "SingleNetModel",
    "SingleProcessModel",
    "SingleProcessModelFieldId",
    "SystemModel",
    "SystemModelFieldId",
    "VecFieldId",
    "count_per_sec",
    "elapsed_usec",
    "opt_add",
    "opt_multiply",
    "query",
    "sort_queriables",
    "usec_pct",
]
