"""Pydantic schemas for sysview.

This module defines the data contracts consumed by the model layer: the
immutable ``Sample`` tree produced by a collector for one point in time, and
the user-facing ``SysviewConfig``.

Every leaf of a sample is optional. A kernel file may not exist, may be
unreadable, or the feature may be disabled, and the model layer must treat
absence as an expected state rather than an error.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

from sysview.core.constants import DEFAULT_CGROUP_ROOT

FROZEN = {"frozen": True}


# =============================================================================
# CGROUP SAMPLES (cgroup v2 interface files)
# =============================================================================


class CpuStat(BaseModel):
    """Counters from ``cpu.stat``."""

    usage_usec: int | None = None
    user_usec: int | None = None
    system_usec: int | None = None
    nr_periods: int | None = None
    nr_throttled: int | None = None
    throttled_usec: int | None = None

    model_config = FROZEN


class IoStat(BaseModel):
    """Per-device counters from one line of ``io.stat``."""

    rbytes: int | None = None
    wbytes: int | None = None
    rios: int | None = None
    wios: int | None = None
    dbytes: int | None = None
    dios: int | None = None

    model_config = FROZEN


class MemoryStat(BaseModel):
    """Gauges and event counters from ``memory.stat``."""

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
    pgfault: int | None = None
    pgmajfault: int | None = None
    workingset_refault: int | None = None
    workingset_activate: int | None = None
    workingset_nodereclaim: int | None = None
    pgrefill: int | None = None
    pgscan: int | None = None
    pgsteal: int | None = None
    pgactivate: int | None = None
    pgdeactivate: int | None = None
    pglazyfree: int | None = None
    pglazyfreed: int | None = None
    thp_fault_alloc: int | None = None
    thp_collapse_alloc: int | None = None

    model_config = FROZEN


class MemoryEvents(BaseModel):
    """Counters from ``memory.events``."""

    low: int | None = None
    high: int | None = None
    max: int | None = None
    oom: int | None = None
    oom_kill: int | None = None

    model_config = FROZEN


class PressureMetrics(BaseModel):
    """One ``some``/``full`` line of a PSI file."""

    avg10: float | None = None
    avg60: float | None = None
    avg300: float | None = None
    total: int | None = None

    model_config = FROZEN


class CpuPressure(BaseModel):
    """``cpu.pressure``."""

    some: PressureMetrics = Field(default_factory=PressureMetrics)

    model_config = FROZEN


class IoPressure(BaseModel):
    """``io.pressure``."""

    some: PressureMetrics = Field(default_factory=PressureMetrics)
    full: PressureMetrics = Field(default_factory=PressureMetrics)

    model_config = FROZEN


class MemoryPressure(BaseModel):
    """``memory.pressure``."""

    some: PressureMetrics = Field(default_factory=PressureMetrics)
    full: PressureMetrics = Field(default_factory=PressureMetrics)

    model_config = FROZEN


class Pressure(BaseModel):
    """PSI for all three resources of a cgroup."""

    cpu: CpuPressure = Field(default_factory=CpuPressure)
    io: IoPressure = Field(default_factory=IoPressure)
    memory: MemoryPressure = Field(default_factory=MemoryPressure)

    model_config = FROZEN


class CgroupSample(BaseModel):
    """Raw values of one cgroup directory, with its children keyed by name.

    Attributes:
        io_stat: Per-device counters keyed by ``major:minor``
        memory_high: ``memory.high`` in bytes, -1 when set to ``max``
        inode_number: Inode of the cgroup directory, used to detect recreation
        children: Child cgroups keyed by directory name
    """

    cpu_stat: CpuStat | None = None
    io_stat: dict[str, IoStat] | None = None
    memory_current: int | None = None
    memory_swap_current: int | None = None
    memory_high: int | None = None
    memory_events: MemoryEvents | None = None
    memory_stat: MemoryStat | None = None
    pressure: Pressure | None = None
    inode_number: int | None = None
    children: dict[str, CgroupSample] | None = None

    model_config = FROZEN


# =============================================================================
# PROCESS SAMPLES (/proc/<pid>)
# =============================================================================


class PidState(str, Enum):
    """Scheduler state of a process, as the single letter of ``/proc/<pid>/stat``.

    Declaration order defines the ordering used when sorting by state.
    """

    RUNNING = "R"
    SLEEPING = "S"
    UNINTERRUPTIBLE_SLEEP = "D"
    STOPPED = "T"
    TRACING_STOPPED = "t"
    ZOMBIE = "Z"
    DEAD = "X"
    IDLE = "I"
    PARKED = "P"

    @property
    def rank(self) -> int:
        return list(PidState).index(self)

    def __str__(self) -> str:
        return self.name.replace("_", " ").title().replace(" ", "")


class PidStat(BaseModel):
    """Fields of ``/proc/<pid>/stat`` (cpu times already in microseconds)."""

    pid: int | None = None
    ppid: int | None = None
    comm: str | None = None
    state: PidState | None = None
    minflt: int | None = None
    majflt: int | None = None
    user_usecs: int | None = None
    system_usecs: int | None = None
    num_threads: int | None = None
    running_secs: int | None = None
    rss_bytes: int | None = None

    model_config = FROZEN


class PidIo(BaseModel):
    """``/proc/<pid>/io``."""

    rbytes: int | None = None
    wbytes: int | None = None

    model_config = FROZEN


class PidMem(BaseModel):
    """Memory fields of ``/proc/<pid>/status`` in bytes."""

    vm_size: int | None = None
    lock: int | None = None
    pin: int | None = None
    anon: int | None = None
    file: int | None = None
    shmem: int | None = None
    pte: int | None = None
    swap: int | None = None
    huge_tlb: int | None = None

    model_config = FROZEN


class PidInfo(BaseModel):
    """Everything sampled for a single process."""

    stat: PidStat = Field(default_factory=PidStat)
    io: PidIo = Field(default_factory=PidIo)
    mem: PidMem = Field(default_factory=PidMem)
    cgroup: str = ""
    cmdline_vec: list[str] | None = None
    exe_path: str | None = None

    model_config = FROZEN


# =============================================================================
# SYSTEM SAMPLES (/proc/stat, /proc/meminfo, /proc/vmstat, /proc/diskstats)
# =============================================================================


class SystemCpuStat(BaseModel):
    """One ``cpu`` line of ``/proc/stat`` converted to microseconds."""

    user_usec: int | None = None
    nice_usec: int | None = None
    system_usec: int | None = None
    idle_usec: int | None = None
    iowait_usec: int | None = None
    irq_usec: int | None = None
    softirq_usec: int | None = None
    stolen_usec: int | None = None
    guest_usec: int | None = None
    guest_nice_usec: int | None = None

    model_config = FROZEN


class ProcStat(BaseModel):
    """Host-wide counters of ``/proc/stat``."""

    total_cpu: SystemCpuStat | None = None
    cpus: dict[int, SystemCpuStat] | None = None
    total_interrupt_count: int | None = None
    context_switches: int | None = None
    boot_time_epoch_secs: int | None = None
    total_processes: int | None = None
    running_processes: int | None = None
    blocked_processes: int | None = None

    model_config = FROZEN


class MemInfo(BaseModel):
    """``/proc/meminfo`` values in bytes."""

    total: int | None = None
    free: int | None = None
    available: int | None = None
    buffers: int | None = None
    cached: int | None = None
    swap_cached: int | None = None
    active: int | None = None
    inactive: int | None = None
    active_anon: int | None = None
    inactive_anon: int | None = None
    active_file: int | None = None
    inactive_file: int | None = None
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


class VmStat(BaseModel):
    """Selected counters of ``/proc/vmstat``."""

    pgpgin: int | None = None
    pgpgout: int | None = None
    pswpin: int | None = None
    pswpout: int | None = None
    pgsteal_kswapd: int | None = None
    pgsteal_direct: int | None = None
    pgscan_kswapd: int | None = None
    pgscan_direct: int | None = None
    oom_kill: int | None = None

    model_config = FROZEN


class DiskStat(BaseModel):
    """One line of ``/proc/diskstats``."""

    name: str | None = None
    major: int | None = None
    minor: int | None = None
    read_completed: int | None = None
    read_merged: int | None = None
    read_sectors: int | None = None
    time_spend_read_ms: int | None = None
    write_completed: int | None = None
    write_merged: int | None = None
    write_sectors: int | None = None
    time_spend_write_ms: int | None = None
    discard_completed: int | None = None
    discard_merged: int | None = None
    discard_sectors: int | None = None
    time_spend_discard_ms: int | None = None

    model_config = FROZEN


class SystemSample(BaseModel):
    """Host-wide sample."""

    hostname: str = ""
    kernel_version: str | None = None
    stat: ProcStat = Field(default_factory=ProcStat)
    meminfo: MemInfo = Field(default_factory=MemInfo)
    vmstat: VmStat = Field(default_factory=VmStat)
    disks: dict[str, DiskStat] = Field(default_factory=dict)

    model_config = FROZEN


# =============================================================================
# NETWORK SAMPLES (/proc/net/dev, /proc/net/snmp)
# =============================================================================


class InterfaceStat(BaseModel):
    """Counters of one interface in ``/proc/net/dev``."""

    rx_bytes: int | None = None
    tx_bytes: int | None = None
    rx_packets: int | None = None
    tx_packets: int | None = None
    rx_errors: int | None = None
    tx_errors: int | None = None
    rx_dropped: int | None = None
    tx_dropped: int | None = None

    model_config = FROZEN


class TcpStat(BaseModel):
    """``Tcp:`` counters of ``/proc/net/snmp``."""

    active_opens: int | None = None
    passive_opens: int | None = None
    attempt_fails: int | None = None
    estab_resets: int | None = None
    curr_estab: int | None = None
    in_segs: int | None = None
    out_segs: int | None = None
    retrans_segs: int | None = None
    in_errs: int | None = None
    out_rsts: int | None = None

    model_config = FROZEN


class UdpStat(BaseModel):
    """``Udp:`` counters of ``/proc/net/snmp``."""

    in_datagrams: int | None = None
    no_ports: int | None = None
    in_errors: int | None = None
    out_datagrams: int | None = None
    rcvbuf_errors: int | None = None
    sndbuf_errors: int | None = None

    model_config = FROZEN


class NetworkSample(BaseModel):
    """Host network sample."""

    interfaces: dict[str, InterfaceStat] = Field(default_factory=dict)
    tcp: TcpStat | None = None
    udp: UdpStat | None = None

    model_config = FROZEN


class Sample(BaseModel):
    """Complete point-in-time sample handed from the collector to the model layer.

    Samples must not be mutated once handed to ``Model.build``; they are frozen
    to make that explicit.
    """

    cgroup: CgroupSample = Field(default_factory=CgroupSample)
    processes: dict[int, PidInfo] = Field(default_factory=dict)
    system: SystemSample = Field(default_factory=SystemSample)
    netstats: NetworkSample = Field(default_factory=NetworkSample)

    model_config = FROZEN


# =============================================================================
# CONFIGURATION
# =============================================================================


class SysviewConfig(BaseModel):
    """Top-level sysview configuration.

    This is the configuration loaded from YAML/JSON files. Sort fields are
    given as field paths (e.g. ``cpu.usage_pct``) and validated on load.
    """

    cgroup_root: Path = Field(default=Path(DEFAULT_CGROUP_ROOT), description="cgroup2 mount")
    interval_ms: int = Field(default=1000, ge=50, le=60000, description="Sampling interval")
    snapshot_dir: Path = Field(default=Path("./snapshots"), description="Model snapshots")
    log_level: str = Field(default="INFO")
    cgroup_sort: str | None = Field(default=None, description="Cgroup sort field path")
    process_sort: str | None = Field(default=None, description="Process sort field path")
    reverse: bool = Field(default=True, description="Sort descending")
    dump_fields: list[str] = Field(
        default_factory=lambda: ["full_path", "cpu.usage_pct", "mem.total", "io.rbytes_per_sec"],
        description="Cgroup fields written by `sysview dump`",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and check the log level name."""
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level

    @field_validator("cgroup_sort")
    @classmethod
    def validate_cgroup_sort(cls, v: str | None) -> str | None:
        """Ensure the cgroup sort path names a real field."""
        if v is not None:
            from sysview.model.cgroup import CgroupModelFieldId

            CgroupModelFieldId.from_path(v)
        return v

    @field_validator("process_sort")
    @classmethod
    def validate_process_sort(cls, v: str | None) -> str | None:
        """Ensure the process sort path names a real field."""
        if v is not None:
            from sysview.model.process import SingleProcessModelFieldId

            SingleProcessModelFieldId.from_path(v)
        return v

    @field_validator("dump_fields")
    @classmethod
    def validate_dump_fields(cls, v: list[str]) -> list[str]:
        """Ensure every dump column names a real cgroup field."""
        from sysview.model.cgroup import CgroupModelFieldId

        for path in v:
            CgroupModelFieldId.from_path(path)
        return v
