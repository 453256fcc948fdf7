"""Host-wide models: CPUs, memory, paging and block devices."""

from __future__ import annotations

from datetime import timedelta
from typing import ClassVar

from pydantic import BaseModel, Field

from sysview.core.constants import MSEC_PER_SEC, SECTOR_SIZE
from sysview.core.schemas import DiskStat, MemInfo, ProcStat, SystemCpuStat, SystemSample, VmStat
from sysview.model.delta import count_per_sec, elapsed_usec, opt_add, opt_multiply, usec_pct
from sysview.model.field import FieldKind
from sysview.model.queriable import (
    CompositeFieldId,
    FieldId,
    LeafFieldId,
    MapFieldId,
    Queriable,
)

FROZEN = {"frozen": True}

# Index used for the aggregate "cpu" line of /proc/stat
TOTAL_CPU_IDX = -1

_CPU_STATES = (
    "user",
    "nice",
    "system",
    "idle",
    "iowait",
    "irq",
    "softirq",
    "stolen",
    "guest",
    "guest_nice",
)

# guest time is already accounted in user/nice
_CPU_TOTAL_STATES = _CPU_STATES[:8]


def _delta(begin: int | None, end: int | None) -> int | None:
    if begin is None or end is None:
        return None
    return end - begin


def _ratio_pct(part: int | None, total: int | None) -> float | None:
    if part is None or total is None or total <= 0:
        return None
    return part * 100.0 / total


class SingleCpuModelFieldId(LeafFieldId):
    IDX = ("idx", FieldKind.I32)
    USAGE_PCT = ("usage_pct", FieldKind.F64)
    USER_PCT = ("user_pct", FieldKind.F64)
    NICE_PCT = ("nice_pct", FieldKind.F64)
    SYSTEM_PCT = ("system_pct", FieldKind.F64)
    IDLE_PCT = ("idle_pct", FieldKind.F64)
    IOWAIT_PCT = ("iowait_pct", FieldKind.F64)
    IRQ_PCT = ("irq_pct", FieldKind.F64)
    SOFTIRQ_PCT = ("softirq_pct", FieldKind.F64)
    STOLEN_PCT = ("stolen_pct", FieldKind.F64)
    GUEST_PCT = ("guest_pct", FieldKind.F64)
    GUEST_NICE_PCT = ("guest_nice_pct", FieldKind.F64)


class SingleCpuModel(Queriable, BaseModel):
    """Time share of each CPU state over the last interval.

    Percentages are relative to the total time the CPU accounted in the
    interval rather than to wall-clock time, so they add up to 100.
    """

    FIELD_ID: ClassVar[type[FieldId]] = SingleCpuModelFieldId

    idx: int
    usage_pct: float | None = None
    user_pct: float | None = None
    nice_pct: float | None = None
    system_pct: float | None = None
    idle_pct: float | None = None
    iowait_pct: float | None = None
    irq_pct: float | None = None
    softirq_pct: float | None = None
    stolen_pct: float | None = None
    guest_pct: float | None = None
    guest_nice_pct: float | None = None

    model_config = FROZEN

    @classmethod
    def build(
        cls, idx: int, begin: SystemCpuStat, end: SystemCpuStat, delta: timedelta
    ) -> SingleCpuModel:
        if elapsed_usec(delta) <= 0:
            return cls(idx=idx)
        deltas = {
            state: _delta(getattr(begin, f"{state}_usec"), getattr(end, f"{state}_usec"))
            for state in _CPU_STATES
        }
        total = None
        if all(deltas[state] is not None for state in _CPU_TOTAL_STATES):
            total = sum(deltas[state] for state in _CPU_TOTAL_STATES)  # type: ignore[misc]
        busy = None
        if total is not None:
            busy = total - deltas["idle"] - deltas["iowait"]  # type: ignore[operator]
        return cls(
            idx=idx,
            usage_pct=_ratio_pct(busy, total),
            **{f"{state}_pct": _ratio_pct(deltas[state], total) for state in _CPU_STATES},
        )


class MemoryModelFieldId(LeafFieldId):
    TOTAL = ("total", FieldKind.U64)
    FREE = ("free", FieldKind.U64)
    AVAILABLE = ("available", FieldKind.U64)
    BUFFERS = ("buffers", FieldKind.U64)
    CACHED = ("cached", FieldKind.U64)
    SWAP_CACHED = ("swap_cached", FieldKind.U64)
    ACTIVE = ("active", FieldKind.U64)
    INACTIVE = ("inactive", FieldKind.U64)
    ANON = ("anon", FieldKind.U64)
    FILE = ("file", FieldKind.U64)
    UNEVICTABLE = ("unevictable", FieldKind.U64)
    MLOCKED = ("mlocked", FieldKind.U64)
    SWAP_TOTAL = ("swap_total", FieldKind.U64)
    SWAP_FREE = ("swap_free", FieldKind.U64)
    DIRTY = ("dirty", FieldKind.U64)
    WRITEBACK = ("writeback", FieldKind.U64)
    ANON_PAGES = ("anon_pages", FieldKind.U64)
    MAPPED = ("mapped", FieldKind.U64)
    SHMEM = ("shmem", FieldKind.U64)
    SLAB_RECLAIMABLE = ("slab_reclaimable", FieldKind.U64)
    SLAB_UNRECLAIMABLE = ("slab_unreclaimable", FieldKind.U64)
    KERNEL_STACK = ("kernel_stack", FieldKind.U64)
    PAGE_TABLES = ("page_tables", FieldKind.U64)
    HUGE_PAGES_TOTAL = ("huge_pages_total", FieldKind.U64)
    HUGE_PAGES_FREE = ("huge_pages_free", FieldKind.U64)
    HUGE_PAGE_SIZE = ("huge_page_size", FieldKind.U64)


class MemoryModel(Queriable, BaseModel):
    """Host memory in bytes."""

    FIELD_ID: ClassVar[type[FieldId]] = MemoryModelFieldId

    total: int | None = None
    free: int | None = None
    available: int | None = None
    buffers: int | None = None
    cached: int | None = None
    swap_cached: int | None = None
    active: int | None = None
    inactive: int | None = None
    anon: int | None = None
    file: int | None = None
    unevictable: int | None = None
    mlocked: int | None = None
    swap_total: int | None = None
    swap_free: int | None = None
    dirty: int | None = None
    writeback: int | None = None
    anon_pages: int | None = None
    mapped: int | None = None
    shmem: int | None = None
    slab_reclaimable: int | None = None
    slab_unreclaimable: int | None = None
    kernel_stack: int | None = None
    page_tables: int | None = None
    huge_pages_total: int | None = None
    huge_pages_free: int | None = None
    huge_page_size: int | None = None

    model_config = FROZEN

    @classmethod
    def build(cls, meminfo: MemInfo) -> MemoryModel:
        values = meminfo.model_dump(exclude={"active_anon", "inactive_anon", "active_file", "inactive_file"})
        values["anon"] = opt_add(meminfo.active_anon, meminfo.inactive_anon)
        values["file"] = opt_add(meminfo.active_file, meminfo.inactive_file)
        return cls(**values)


class VmModelFieldId(LeafFieldId):
    PGPGIN_PER_SEC = ("pgpgin_per_sec", FieldKind.F64)
    PGPGOUT_PER_SEC = ("pgpgout_per_sec", FieldKind.F64)
    PSWPIN_PER_SEC = ("pswpin_per_sec", FieldKind.F64)
    PSWPOUT_PER_SEC = ("pswpout_per_sec", FieldKind.F64)
    PGSTEAL_KSWAPD = ("pgsteal_kswapd", FieldKind.F64)
    PGSTEAL_DIRECT = ("pgsteal_direct", FieldKind.F64)
    PGSCAN_KSWAPD = ("pgscan_kswapd", FieldKind.F64)
    PGSCAN_DIRECT = ("pgscan_direct", FieldKind.F64)
    OOM_KILL = ("oom_kill", FieldKind.U64)


class VmModel(Queriable, BaseModel):
    """Paging, swapping and reclaim activity per second."""

    FIELD_ID: ClassVar[type[FieldId]] = VmModelFieldId

    pgpgin_per_sec: float | None = None
    pgpgout_per_sec: float | None = None
    pswpin_per_sec: float | None = None
    pswpout_per_sec: float | None = None
    pgsteal_kswapd: float | None = None
    pgsteal_direct: float | None = None
    pgscan_kswapd: float | None = None
    pgscan_direct: float | None = None
    oom_kill: int | None = None

    model_config = FROZEN

    @classmethod
    def build(cls, sample: VmStat, last: tuple[VmStat, timedelta] | None) -> VmModel:
        if last is None:
            return cls(oom_kill=sample.oom_kill)
        begin, delta = last
        return cls(
            pgpgin_per_sec=count_per_sec(begin.pgpgin, sample.pgpgin, delta),
            pgpgout_per_sec=count_per_sec(begin.pgpgout, sample.pgpgout, delta),
            pswpin_per_sec=count_per_sec(begin.pswpin, sample.pswpin, delta),
            pswpout_per_sec=count_per_sec(begin.pswpout, sample.pswpout, delta),
            pgsteal_kswapd=count_per_sec(begin.pgsteal_kswapd, sample.pgsteal_kswapd, delta),
            pgsteal_direct=count_per_sec(begin.pgsteal_direct, sample.pgsteal_direct, delta),
            pgscan_kswapd=count_per_sec(begin.pgscan_kswapd, sample.pgscan_kswapd, delta),
            pgscan_direct=count_per_sec(begin.pgscan_direct, sample.pgscan_direct, delta),
            oom_kill=sample.oom_kill,
        )


class SingleDiskModelFieldId(LeafFieldId):
    NAME = ("name", FieldKind.STR)
    READ_BYTES_PER_SEC = ("read_bytes_per_sec", FieldKind.F64)
    WRITE_BYTES_PER_SEC = ("write_bytes_per_sec", FieldKind.F64)
    DISCARD_BYTES_PER_SEC = ("discard_bytes_per_sec", FieldKind.F64)
    DISK_TOTAL_BYTES_PER_SEC = ("disk_total_bytes_per_sec", FieldKind.F64)
    READ_COMPLETED = ("read_completed", FieldKind.F64)
    READ_MERGED = ("read_merged", FieldKind.F64)
    TIME_SPEND_READ_PCT = ("time_spend_read_pct", FieldKind.F64)
    WRITE_COMPLETED = ("write_completed", FieldKind.F64)
    WRITE_MERGED = ("write_merged", FieldKind.F64)
    TIME_SPEND_WRITE_PCT = ("time_spend_write_pct", FieldKind.F64)
    DISCARD_COMPLETED = ("discard_completed", FieldKind.F64)
    TIME_SPEND_DISCARD_PCT = ("time_spend_discard_pct", FieldKind.F64)
    MAJOR = ("major", FieldKind.U64)
    MINOR = ("minor", FieldKind.U64)


class SingleDiskModel(Queriable, BaseModel):
    """Throughput of one block device.

    ``*_completed`` and ``*_merged`` are operations per second.
    """

    FIELD_ID: ClassVar[type[FieldId]] = SingleDiskModelFieldId

    name: str | None = None
    read_bytes_per_sec: float | None = None
    write_bytes_per_sec: float | None = None
    discard_bytes_per_sec: float | None = None
    disk_total_bytes_per_sec: float | None = None
    read_completed: float | None = None
    read_merged: float | None = None
    time_spend_read_pct: float | None = None
    write_completed: float | None = None
    write_merged: float | None = None
    time_spend_write_pct: float | None = None
    discard_completed: float | None = None
    time_spend_discard_pct: float | None = None
    major: int | None = None
    minor: int | None = None

    model_config = FROZEN

    @classmethod
    def build(cls, sample: DiskStat, last: tuple[DiskStat, timedelta] | None) -> SingleDiskModel:
        if last is None:
            return cls(name=sample.name, major=sample.major, minor=sample.minor)
        begin, delta = last

        def bytes_per_sec(attr: str) -> float | None:
            sectors = count_per_sec(getattr(begin, attr), getattr(sample, attr), delta)
            return opt_multiply(sectors, SECTOR_SIZE)

        def ms_pct(attr: str) -> float | None:
            # millisecond counter: scale to microseconds for usec_pct
            return usec_pct(
                opt_multiply(getattr(begin, attr), MSEC_PER_SEC),
                opt_multiply(getattr(sample, attr), MSEC_PER_SEC),
                delta,
            )

        read_bytes = bytes_per_sec("read_sectors")
        write_bytes = bytes_per_sec("write_sectors")
        return cls(
            name=sample.name,
            read_bytes_per_sec=read_bytes,
            write_bytes_per_sec=write_bytes,
            discard_bytes_per_sec=bytes_per_sec("discard_sectors"),
            disk_total_bytes_per_sec=opt_add(read_bytes, write_bytes),
            read_completed=count_per_sec(begin.read_completed, sample.read_completed, delta),
            read_merged=count_per_sec(begin.read_merged, sample.read_merged, delta),
            time_spend_read_pct=ms_pct("time_spend_read_ms"),
            write_completed=count_per_sec(begin.write_completed, sample.write_completed, delta),
            write_merged=count_per_sec(begin.write_merged, sample.write_merged, delta),
            time_spend_write_pct=ms_pct("time_spend_write_ms"),
            discard_completed=count_per_sec(
                begin.discard_completed, sample.discard_completed, delta
            ),
            time_spend_discard_pct=ms_pct("time_spend_discard_ms"),
            major=sample.major,
            minor=sample.minor,
        )


class ProcStatModelFieldId(LeafFieldId):
    TOTAL_INTERRUPT_CT = ("total_interrupt_ct", FieldKind.F64)
    CONTEXT_SWITCHES = ("context_switches", FieldKind.F64)
    BOOT_TIME_EPOCH_SECS = ("boot_time_epoch_secs", FieldKind.U64)
    TOTAL_PROCESSES = ("total_processes", FieldKind.F64)
    RUNNING_PROCESSES = ("running_processes", FieldKind.U32)
    BLOCKED_PROCESSES = ("blocked_processes", FieldKind.U32)


class ProcStatModel(Queriable, BaseModel):
    """Interrupt, context switch and fork rates plus current task counts."""

    FIELD_ID: ClassVar[type[FieldId]] = ProcStatModelFieldId

    total_interrupt_ct: float | None = None
    context_switches: float | None = None
    boot_time_epoch_secs: int | None = None
    total_processes: float | None = None
    running_processes: int | None = None
    blocked_processes: int | None = None

    model_config = FROZEN

    @classmethod
    def build(cls, sample: ProcStat, last: tuple[ProcStat, timedelta] | None) -> ProcStatModel:
        rates: dict[str, float | None] = {}
        if last is not None:
            begin, delta = last
            rates = {
                "total_interrupt_ct": count_per_sec(
                    begin.total_interrupt_count, sample.total_interrupt_count, delta
                ),
                "context_switches": count_per_sec(
                    begin.context_switches, sample.context_switches, delta
                ),
                "total_processes": count_per_sec(
                    begin.total_processes, sample.total_processes, delta
                ),
            }
        return cls(
            boot_time_epoch_secs=sample.boot_time_epoch_secs,
            running_processes=sample.running_processes,
            blocked_processes=sample.blocked_processes,
            **rates,
        )


class SingleCpuMapFieldId(MapFieldId):
    """``<cpu idx>.<cpu field path>``."""

    ELEMENT = SingleCpuModelFieldId
    KEY_TYPE = int


class SingleDiskMapFieldId(MapFieldId):
    """``<disk name>.<disk field path>``."""

    ELEMENT = SingleDiskModelFieldId


class SystemModelFieldId(CompositeFieldId):
    LEAVES = {
        "hostname": FieldKind.STR,
        "kernel_version": FieldKind.STR,
    }
    SUBQUERIES = {
        "stat": ("stat", ProcStatModelFieldId),
        "cpu": ("total_cpu", SingleCpuModelFieldId),
        "cpus": ("cpus", SingleCpuMapFieldId),
        "mem": ("mem", MemoryModelFieldId),
        "vm": ("vm", VmModelFieldId),
        "disks": ("disks", SingleDiskMapFieldId),
    }


class SystemModel(Queriable, BaseModel):
    """Host-wide view for a single tick."""

    FIELD_ID: ClassVar[type[FieldId]] = SystemModelFieldId

    hostname: str = ""
    kernel_version: str | None = None
    stat: ProcStatModel = Field(default_factory=ProcStatModel)
    total_cpu: SingleCpuModel = Field(default_factory=lambda: SingleCpuModel(idx=TOTAL_CPU_IDX))
    cpus: dict[int, SingleCpuModel] = Field(default_factory=dict)
    mem: MemoryModel = Field(default_factory=MemoryModel)
    vm: VmModel = Field(default_factory=VmModel)
    disks: dict[str, SingleDiskModel] = Field(default_factory=dict)

    model_config = FROZEN

    @classmethod
    def build(
        cls,
        sample: SystemSample,
        last: tuple[SystemSample, timedelta] | None,
    ) -> SystemModel:
        last_stat, delta = (last[0].stat, last[1]) if last is not None else (None, timedelta(0))

        total_cpu = SingleCpuModel(idx=TOTAL_CPU_IDX)
        if last_stat is not None and last_stat.total_cpu and sample.stat.total_cpu:
            total_cpu = SingleCpuModel.build(
                TOTAL_CPU_IDX, last_stat.total_cpu, sample.stat.total_cpu, delta
            )

        cpus = {}
        last_cpus = (last_stat.cpus or {}) if last_stat is not None else {}
        for idx, end in sorted((sample.stat.cpus or {}).items()):
            if idx in last_cpus:
                cpus[idx] = SingleCpuModel.build(idx, last_cpus[idx], end, delta)
            else:
                cpus[idx] = SingleCpuModel(idx=idx)

        disks = {}
        for name, disk in sorted(sample.disks.items()):
            disk_last = None
            if last is not None and name in last[0].disks:
                disk_last = (last[0].disks[name], last[1])
            disks[name] = SingleDiskModel.build(disk, disk_last)

        return cls(
            hostname=sample.hostname,
            kernel_version=sample.kernel_version,
            stat=ProcStatModel.build(
                sample.stat, (last[0].stat, last[1]) if last is not None else None
            ),
            total_cpu=total_cpu,
            cpus=cpus,
            mem=MemoryModel.build(sample.meminfo),
            vm=VmModel.build(sample.vmstat, (last[0].vmstat, last[1]) if last is not None else None),
            disks=disks,
        )
