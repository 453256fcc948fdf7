"""Cgroup models derived from two cgroup sample trees.

``CgroupModel.build`` walks the current sample tree together with the
matching nodes of the previous sample tree (by child name) and produces a
fresh, immutable tree of models for the tick. Identity of each node across
ticks is checked with the cgroup directory inode number: when it changed the
cgroup was deleted and recreated and its cumulative counters are not
comparable, so delta-derived sub-models are dropped and ``recreate_flag`` is
set.

Each sub-model has its own validity condition:
- CPU and IO need a previous sample with a matching inode.
- Memory gauges need only the current sample; memory rates need the previous
  ``memory.stat`` regardless of inode.
- Pressure uses the kernel's own ``avg10`` and needs no history.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from datetime import timedelta
from typing import ClassVar

from pydantic import BaseModel, Field, field_validator

from sysview.core.constants import ROOT_CGROUP_NAME
from sysview.core.schemas import CgroupSample, CpuStat, IoStat, Pressure
from sysview.model.delta import count_per_sec, opt_add, usec_pct
from sysview.model.field import FieldKind
from sysview.model.queriable import (
    CompositeFieldId,
    FieldId,
    LeafFieldId,
    Queriable,
    Recursive,
)

logger = logging.getLogger(__name__)

FROZEN = {"frozen": True}


class CgroupCpuModelFieldId(LeafFieldId):
    USAGE_PCT = ("usage_pct", FieldKind.F64)
    USER_PCT = ("user_pct", FieldKind.F64)
    SYSTEM_PCT = ("system_pct", FieldKind.F64)
    NR_PERIODS_PER_SEC = ("nr_periods_per_sec", FieldKind.F64)
    NR_THROTTLED_PER_SEC = ("nr_throttled_per_sec", FieldKind.F64)
    THROTTLED_PCT = ("throttled_pct", FieldKind.F64)


class CgroupCpuModel(Queriable, BaseModel):
    """CPU usage of a cgroup over the last interval."""

    FIELD_ID: ClassVar[type[FieldId]] = CgroupCpuModelFieldId

    usage_pct: float | None = None
    user_pct: float | None = None
    system_pct: float | None = None
    nr_periods_per_sec: float | None = None
    nr_throttled_per_sec: float | None = None
    throttled_pct: float | None = None

    model_config = FROZEN

    @classmethod
    def build(cls, begin: CpuStat, end: CpuStat, delta: timedelta) -> CgroupCpuModel:
        return cls(
            usage_pct=usec_pct(begin.usage_usec, end.usage_usec, delta),
            user_pct=usec_pct(begin.user_usec, end.user_usec, delta),
            system_pct=usec_pct(begin.system_usec, end.system_usec, delta),
            nr_periods_per_sec=count_per_sec(begin.nr_periods, end.nr_periods, delta),
            nr_throttled_per_sec=count_per_sec(begin.nr_throttled, end.nr_throttled, delta),
            throttled_pct=usec_pct(begin.throttled_usec, end.throttled_usec, delta),
        )


class CgroupIoModelFieldId(LeafFieldId):
    RBYTES_PER_SEC = ("rbytes_per_sec", FieldKind.F64)
    WBYTES_PER_SEC = ("wbytes_per_sec", FieldKind.F64)
    RIOS_PER_SEC = ("rios_per_sec", FieldKind.F64)
    WIOS_PER_SEC = ("wios_per_sec", FieldKind.F64)
    DBYTES_PER_SEC = ("dbytes_per_sec", FieldKind.F64)
    DIOS_PER_SEC = ("dios_per_sec", FieldKind.F64)
    RWBYTES_PER_SEC = ("rwbytes_per_sec", FieldKind.F64)


class CgroupIoModel(Queriable, BaseModel):
    """Block IO rates of a cgroup, for one device or summed over devices."""

    FIELD_ID: ClassVar[type[FieldId]] = CgroupIoModelFieldId

    rbytes_per_sec: float | None = None
    wbytes_per_sec: float | None = None
    rios_per_sec: float | None = None
    wios_per_sec: float | None = None
    dbytes_per_sec: float | None = None
    dios_per_sec: float | None = None
    rwbytes_per_sec: float | None = None

    model_config = FROZEN

    @classmethod
    def build(cls, begin: IoStat, end: IoStat, delta: timedelta) -> CgroupIoModel:
        rbytes_per_sec = count_per_sec(begin.rbytes, end.rbytes, delta)
        wbytes_per_sec = count_per_sec(begin.wbytes, end.wbytes, delta)
        return cls(
            rbytes_per_sec=rbytes_per_sec,
            wbytes_per_sec=wbytes_per_sec,
            rios_per_sec=count_per_sec(begin.rios, end.rios, delta),
            wios_per_sec=count_per_sec(begin.wios, end.wios, delta),
            dbytes_per_sec=count_per_sec(begin.dbytes, end.dbytes, delta),
            dios_per_sec=count_per_sec(begin.dios, end.dios, delta),
            rwbytes_per_sec=opt_add(rbytes_per_sec, wbytes_per_sec),
        )

    @classmethod
    def empty(cls) -> CgroupIoModel:
        """All-zero model.

        An empty io.stat means the cgroup did no IO at all, so totals default
        to zero instead of None.
        """
        return cls(**{name: 0.0 for name in cls.model_fields})

    def __add__(self, other: CgroupIoModel) -> CgroupIoModel:
        return CgroupIoModel(
            **{
                name: opt_add(getattr(self, name), getattr(other, name))
                for name in CgroupIoModel.model_fields
            }
        )


class CgroupMemoryModelFieldId(LeafFieldId):
    TOTAL = ("total", FieldKind.U64)
    SWAP = ("swap", FieldKind.U64)
    ANON = ("anon", FieldKind.U64)
    FILE = ("file", FieldKind.U64)
    KERNEL_STACK = ("kernel_stack", FieldKind.U64)
    SLAB = ("slab", FieldKind.U64)
    SOCK = ("sock", FieldKind.U64)
    SHMEM = ("shmem", FieldKind.U64)
    FILE_MAPPED = ("file_mapped", FieldKind.U64)
    FILE_DIRTY = ("file_dirty", FieldKind.U64)
    FILE_WRITEBACK = ("file_writeback", FieldKind.U64)
    ANON_THP = ("anon_thp", FieldKind.U64)
    INACTIVE_ANON = ("inactive_anon", FieldKind.U64)
    ACTIVE_ANON = ("active_anon", FieldKind.U64)
    INACTIVE_FILE = ("inactive_file", FieldKind.U64)
    ACTIVE_FILE = ("active_file", FieldKind.U64)
    UNEVICTABLE = ("unevictable", FieldKind.U64)
    SLAB_RECLAIMABLE = ("slab_reclaimable", FieldKind.U64)
    SLAB_UNRECLAIMABLE = ("slab_unreclaimable", FieldKind.U64)
    PGFAULT = ("pgfault", FieldKind.F64)
    PGMAJFAULT = ("pgmajfault", FieldKind.F64)
    WORKINGSET_REFAULT = ("workingset_refault", FieldKind.F64)
    WORKINGSET_ACTIVATE = ("workingset_activate", FieldKind.F64)
    WORKINGSET_NODERECLAIM = ("workingset_nodereclaim", FieldKind.F64)
    PGREFILL = ("pgrefill", FieldKind.F64)
    PGSCAN = ("pgscan", FieldKind.F64)
    PGSTEAL = ("pgsteal", FieldKind.F64)
    PGACTIVATE = ("pgactivate", FieldKind.F64)
    PGDEACTIVATE = ("pgdeactivate", FieldKind.F64)
    PGLAZYFREE = ("pglazyfree", FieldKind.F64)
    PGLAZYFREED = ("pglazyfreed", FieldKind.F64)
    THP_FAULT_ALLOC = ("thp_fault_alloc", FieldKind.F64)
    THP_COLLAPSE_ALLOC = ("thp_collapse_alloc", FieldKind.F64)
    MEMORY_HIGH = ("memory_high", FieldKind.I64)
    EVENTS_LOW = ("events_low", FieldKind.U64)
    EVENTS_HIGH = ("events_high", FieldKind.U64)
    EVENTS_MAX = ("events_max", FieldKind.U64)
    EVENTS_OOM = ("events_oom", FieldKind.U64)
    EVENTS_OOM_KILL = ("events_oom_kill", FieldKind.U64)


# memory.stat counters reported as per-second rates
_MEMORY_RATE_FIELDS = (
    "pgfault",
    "pgmajfault",
    "workingset_refault",
    "workingset_activate",
    "workingset_nodereclaim",
    "pgrefill",
    "pgscan",
    "pgsteal",
    "pgactivate",
    "pgdeactivate",
    "pglazyfree",
    "pglazyfreed",
    "thp_fault_alloc",
    "thp_collapse_alloc",
)

# memory.stat values reported as they are
_MEMORY_GAUGE_FIELDS = (
    "anon",
    "file",
    "kernel_stack",
    "slab",
    "sock",
    "shmem",
    "file_mapped",
    "file_dirty",
    "file_writeback",
    "anon_thp",
    "inactive_anon",
    "active_anon",
    "inactive_file",
    "active_file",
    "unevictable",
    "slab_reclaimable",
    "slab_unreclaimable",
)


class CgroupMemoryModel(Queriable, BaseModel):
    """Memory usage of a cgroup.

    Gauges (bytes) and event counts come straight from the current sample.
    Fields named after memory.stat event counters (``pgfault``, ``pgscan``,
    ...) are per-second rates and need the previous ``memory.stat``.
    """

    FIELD_ID: ClassVar[type[FieldId]] = CgroupMemoryModelFieldId

    total: int | None = None
    swap: int | None = None
    anon: int | None = None
    file: int | None = None
    kernel_stack: int | None = None
    slab: int | None = None
    sock: int | None = None
    shmem: int | None = None
    file_mapped: int | None = None
    file_dirty: int | None = None
    file_writeback: int | None = None
    anon_thp: int | None = None
    inactive_anon: int | None = None
    active_anon: int | None = None
    inactive_file: int | None = None
    active_file: int | None = None
    unevictable: int | None = None
    slab_reclaimable: int | None = None
    slab_unreclaimable: int | None = None
    pgfault: float | None = None
    pgmajfault: float | None = None
    workingset_refault: float | None = None
    workingset_activate: float | None = None
    workingset_nodereclaim: float | None = None
    pgrefill: float | None = None
    pgscan: float | None = None
    pgsteal: float | None = None
    pgactivate: float | None = None
    pgdeactivate: float | None = None
    pglazyfree: float | None = None
    pglazyfreed: float | None = None
    thp_fault_alloc: float | None = None
    thp_collapse_alloc: float | None = None
    memory_high: int | None = None
    events_low: int | None = None
    events_high: int | None = None
    events_max: int | None = None
    events_oom: int | None = None
    events_oom_kill: int | None = None

    model_config = FROZEN

    @classmethod
    def build(
        cls,
        sample: CgroupSample,
        last: tuple[CgroupSample, timedelta] | None,
    ) -> CgroupMemoryModel:
        values: dict[str, int | float | None] = {
            "total": sample.memory_current,
            "swap": sample.memory_swap_current,
            "memory_high": sample.memory_high,
        }
        events = sample.memory_events
        if events is not None:
            values.update(
                events_low=events.low,
                events_high=events.high,
                events_max=events.max,
                events_oom=events.oom,
                events_oom_kill=events.oom_kill,
            )
        stat = sample.memory_stat
        if stat is not None:
            for name in _MEMORY_GAUGE_FIELDS:
                values[name] = getattr(stat, name)
            if last is not None and last[0].memory_stat is not None:
                last_stat, delta = last[0].memory_stat, last[1]
                for name in _MEMORY_RATE_FIELDS:
                    values[name] = count_per_sec(
                        getattr(last_stat, name), getattr(stat, name), delta
                    )
        return cls(**values)

    def __add__(self, other: CgroupMemoryModel) -> CgroupMemoryModel:
        # memory.high is a per-cgroup limit and is not summed
        values = {
            name: opt_add(getattr(self, name), getattr(other, name))
            for name in CgroupMemoryModel.model_fields
            if name != "memory_high"
        }
        return CgroupMemoryModel(**values)


class CgroupPressureModelFieldId(LeafFieldId):
    CPU_SOME_PCT = ("cpu_some_pct", FieldKind.F64)
    IO_SOME_PCT = ("io_some_pct", FieldKind.F64)
    IO_FULL_PCT = ("io_full_pct", FieldKind.F64)
    MEMORY_SOME_PCT = ("memory_some_pct", FieldKind.F64)
    MEMORY_FULL_PCT = ("memory_full_pct", FieldKind.F64)


class CgroupPressureModel(Queriable, BaseModel):
    """PSI stall percentages of a cgroup."""

    FIELD_ID: ClassVar[type[FieldId]] = CgroupPressureModelFieldId

    cpu_some_pct: float | None = None
    io_some_pct: float | None = None
    io_full_pct: float | None = None
    memory_some_pct: float | None = None
    memory_full_pct: float | None = None

    model_config = FROZEN

    @classmethod
    def build(cls, pressure: Pressure) -> CgroupPressureModel:
        # kernel avg10, not a delta of `total`
        return cls(
            cpu_some_pct=pressure.cpu.some.avg10,
            io_some_pct=pressure.io.some.avg10,
            io_full_pct=pressure.io.full.avg10,
            memory_some_pct=pressure.memory.some.avg10,
            memory_full_pct=pressure.memory.full.avg10,
        )


class CgroupModelFieldId(CompositeFieldId):
    """Queryable fields of a cgroup: ``name``, ``cpu.usage_pct``, ``mem.total``, ..."""

    LEAVES = {
        "name": FieldKind.STR,
        "full_path": FieldKind.STR,
        "inode_number": FieldKind.U64,
    }
    SUBQUERIES = {
        "cpu": ("cpu", CgroupCpuModelFieldId),
        "mem": ("memory", CgroupMemoryModelFieldId),
        "io": ("io_total", CgroupIoModelFieldId),
        "pressure": ("pressure", CgroupPressureModelFieldId),
    }


def _inode_matches(last: CgroupSample, current: CgroupSample) -> bool:
    # None on both sides counts as the same cgroup
    return last.inode_number == current.inode_number


class CgroupModel(Queriable, Recursive, BaseModel):
    """One node of the cgroup tree for a single tick.

    Attributes:
        full_path: Path relative to the cgroup root, ``""`` for the root itself
        depth: Distance from the root (root is 0)
        io: Per-device IO models keyed by ``major:minor``
        io_total: Sum of ``io`` over all devices
        children: Child cgroups, kept sorted and unique by name
        count: Number of cgroups in this subtree, including this one
        recreate_flag: The cgroup was deleted and recreated since the last tick
    """

    FIELD_ID: ClassVar[type[FieldId]] = CgroupModelFieldId

    name: str
    full_path: str
    inode_number: int | None = None
    depth: int = 0
    cpu: CgroupCpuModel | None = None
    memory: CgroupMemoryModel | None = None
    io: dict[str, CgroupIoModel] | None = None
    io_total: CgroupIoModel | None = None
    pressure: CgroupPressureModel | None = None
    children: list[CgroupModel] = Field(default_factory=list)
    count: int = 1
    recreate_flag: bool = False

    model_config = FROZEN

    @field_validator("children")
    @classmethod
    def sort_children(cls, v: list[CgroupModel]) -> list[CgroupModel]:
        """Order children by name and reject duplicate names."""
        ordered = sorted(v, key=lambda child: child.name)
        for prev, cur in zip(ordered, ordered[1:]):
            if prev.name == cur.name:
                raise ValueError(f"Duplicate child cgroup name: {cur.name}")
        return ordered

    @classmethod
    def build(
        cls,
        name: str,
        full_path: str,
        depth: int,
        sample: CgroupSample,
        last: tuple[CgroupSample, timedelta] | None,
    ) -> CgroupModel:
        """Recursively build the model of ``sample`` and all its children.

        Args:
            name: Directory name of this cgroup
            full_path: Path of this cgroup relative to the root
            depth: Depth of this cgroup in the tree
            sample: Current sample of this cgroup
            last: Sample of the same path at the previous tick and the time
                elapsed since, or None if the path was not present

        Returns:
            Immutable model of the subtree
        """
        cpu = None
        io = None
        io_total = None
        recreate_flag = False
        if last is not None and _inode_matches(last[0], sample):
            last_sample, delta = last
            if last_sample.cpu_stat is not None and sample.cpu_stat is not None:
                cpu = CgroupCpuModel.build(last_sample.cpu_stat, sample.cpu_stat, delta)
            if last_sample.io_stat is not None and sample.io_stat is not None:
                io = {
                    device: CgroupIoModel.build(last_sample.io_stat[device], end, delta)
                    for device, end in sorted(sample.io_stat.items())
                    if device in last_sample.io_stat
                }
                io_total = CgroupIoModel.empty()
                for device_model in io.values():
                    io_total = io_total + device_model
        elif last is not None:
            logger.debug(
                f"cgroup {full_path or name} recreated: inode "
                f"{last[0].inode_number} -> {sample.inode_number}"
            )
            recreate_flag = True

        memory = CgroupMemoryModel.build(sample, last)
        pressure = CgroupPressureModel.build(sample.pressure) if sample.pressure else None

        last_children = (last[0].children or {}) if last is not None else {}
        children = []
        for child_name, child_sample in (sample.children or {}).items():
            child_last = None
            if last is not None and child_name in last_children:
                child_last = (last_children[child_name], last[1])
            children.append(
                cls.build(
                    child_name,
                    f"{full_path}/{child_name}",
                    depth + 1,
                    child_sample,
                    child_last,
                )
            )

        return cls(
            name=name,
            full_path=full_path,
            inode_number=sample.inode_number,
            depth=depth,
            cpu=cpu,
            memory=memory,
            io=io,
            io_total=io_total,
            pressure=pressure,
            children=children,
            count=1 + sum(child.count for child in children),
            recreate_flag=recreate_flag,
        )

    @classmethod
    def build_root(
        cls,
        sample: CgroupSample,
        last: tuple[CgroupSample, timedelta] | None,
    ) -> CgroupModel:
        """Build the whole tree under the synthetic ``<root>`` node."""
        return cls.build(ROOT_CGROUP_NAME, "", 0, sample, last).aggr_top_level_val()

    def aggr_top_level_val(self) -> CgroupModel:
        """Return a copy whose memory is the sum of its direct children's.

        Counters of the real root cgroup do not describe the whole tree, so
        the top-level value is synthesized from the top-level children.
        """
        memory = None
        for child in self.children:
            memory = opt_add(memory, child.memory)
        return self.model_copy(update={"memory": memory})

    def get_depth(self) -> int:
        return self.depth

    def child(self, name: str) -> CgroupModel | None:
        """Look up a direct child by name."""
        for child in self.children:
            if child.name == name:
                return child
        return None

    def walk(self) -> Iterator[CgroupModel]:
        """Yield this cgroup and all descendants depth-first, children by name."""
        yield self
        for child in self.children:
            yield from child.walk()
