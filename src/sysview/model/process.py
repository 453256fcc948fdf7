"""Per-process models derived from two process-table samples.

Processes are paired by pid only. A pid reused by a new process between two
ticks is not detected; its rates are computed against the old process.
"""

from __future__ import annotations

from datetime import timedelta
from typing import ClassVar

from pydantic import BaseModel, Field

from sysview.core.schemas import PidInfo, PidIo, PidStat, PidState
from sysview.model.delta import count_per_sec, opt_add, usec_pct
from sysview.model.field import FieldKind
from sysview.model.queriable import (
    CompositeFieldId,
    FieldId,
    LeafFieldId,
    MapFieldId,
    Queriable,
)

FROZEN = {"frozen": True}


class ProcessIoModelFieldId(LeafFieldId):
    RBYTES_PER_SEC = ("rbytes_per_sec", FieldKind.F64)
    WBYTES_PER_SEC = ("wbytes_per_sec", FieldKind.F64)
    RWBYTES_PER_SEC = ("rwbytes_per_sec", FieldKind.F64)


class ProcessIoModel(Queriable, BaseModel):
    FIELD_ID: ClassVar[type[FieldId]] = ProcessIoModelFieldId

    rbytes_per_sec: float | None = None
    wbytes_per_sec: float | None = None
    rwbytes_per_sec: float | None = None

    model_config = FROZEN

    @classmethod
    def build(cls, begin: PidIo, end: PidIo, delta: timedelta) -> ProcessIoModel:
        rbytes_per_sec = count_per_sec(begin.rbytes, end.rbytes, delta)
        wbytes_per_sec = count_per_sec(begin.wbytes, end.wbytes, delta)
        # missing read or write rates count as 0
        return cls(
            rbytes_per_sec=rbytes_per_sec,
            wbytes_per_sec=wbytes_per_sec,
            rwbytes_per_sec=(rbytes_per_sec or 0.0) + (wbytes_per_sec or 0.0),
        )


class ProcessCpuModelFieldId(LeafFieldId):
    USAGE_PCT = ("usage_pct", FieldKind.F64)
    USER_PCT = ("user_pct", FieldKind.F64)
    SYSTEM_PCT = ("system_pct", FieldKind.F64)
    NUM_THREADS = ("num_threads", FieldKind.U64)


class ProcessCpuModel(Queriable, BaseModel):
    FIELD_ID: ClassVar[type[FieldId]] = ProcessCpuModelFieldId

    usage_pct: float | None = None
    user_pct: float | None = None
    system_pct: float | None = None
    num_threads: int | None = None

    model_config = FROZEN

    @classmethod
    def build(cls, begin: PidStat, end: PidStat, delta: timedelta) -> ProcessCpuModel:
        user_pct = usec_pct(begin.user_usecs, end.user_usecs, delta)
        system_pct = usec_pct(begin.system_usecs, end.system_usecs, delta)
        return cls(
            usage_pct=opt_add(user_pct, system_pct),
            user_pct=user_pct,
            system_pct=system_pct,
            num_threads=end.num_threads,
        )


class ProcessMemoryModelFieldId(LeafFieldId):
    MINORFAULTS_PER_SEC = ("minorfaults_per_sec", FieldKind.F64)
    MAJORFAULTS_PER_SEC = ("majorfaults_per_sec", FieldKind.F64)
    RSS_BYTES = ("rss_bytes", FieldKind.U64)
    VM_SIZE = ("vm_size", FieldKind.U64)
    LOCK = ("lock", FieldKind.U64)
    PIN = ("pin", FieldKind.U64)
    ANON = ("anon", FieldKind.U64)
    FILE = ("file", FieldKind.U64)
    SHMEM = ("shmem", FieldKind.U64)
    PTE = ("pte", FieldKind.U64)
    SWAP = ("swap", FieldKind.U64)
    HUGE_TLB = ("huge_tlb", FieldKind.U64)


class ProcessMemoryModel(Queriable, BaseModel):
    FIELD_ID: ClassVar[type[FieldId]] = ProcessMemoryModelFieldId

    minorfaults_per_sec: float | None = None
    majorfaults_per_sec: float | None = None
    rss_bytes: int | None = None
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

    @classmethod
    def build(cls, begin: PidInfo, end: PidInfo, delta: timedelta) -> ProcessMemoryModel:
        mem = end.mem
        return cls(
            minorfaults_per_sec=count_per_sec(begin.stat.minflt, end.stat.minflt, delta),
            majorfaults_per_sec=count_per_sec(begin.stat.majflt, end.stat.majflt, delta),
            rss_bytes=end.stat.rss_bytes,
            vm_size=mem.vm_size,
            lock=mem.lock,
            pin=mem.pin,
            anon=mem.anon,
            file=mem.file,
            shmem=mem.shmem,
            pte=mem.pte,
            swap=mem.swap,
            huge_tlb=mem.huge_tlb,
        )


class SingleProcessModelFieldId(CompositeFieldId):
    """Queryable fields of a process: ``pid``, ``comm``, ``cpu.usage_pct``, ..."""

    LEAVES = {
        "pid": FieldKind.I32,
        "ppid": FieldKind.I32,
        "comm": FieldKind.STR,
        "state": FieldKind.PID_STATE,
        "uptime_secs": FieldKind.U64,
        "cgroup": FieldKind.STR,
        "cmdline": FieldKind.STR,
        "exe_path": FieldKind.STR,
    }
    SUBQUERIES = {
        "io": ("io", ProcessIoModelFieldId),
        "mem": ("mem", ProcessMemoryModelFieldId),
        "cpu": ("cpu", ProcessCpuModelFieldId),
    }


class SingleProcessModel(Queriable, BaseModel):
    """One process for a single tick.

    ``io``, ``mem`` and ``cpu`` are only present when the same pid was also
    sampled at the previous tick.
    """

    FIELD_ID: ClassVar[type[FieldId]] = SingleProcessModelFieldId

    pid: int | None = None
    ppid: int | None = None
    comm: str | None = None
    state: PidState | None = None
    uptime_secs: int | None = None
    cgroup: str | None = None
    io: ProcessIoModel | None = None
    mem: ProcessMemoryModel | None = None
    cpu: ProcessCpuModel | None = None
    cmdline: str | None = None
    exe_path: str | None = None

    model_config = FROZEN

    @classmethod
    def build(
        cls,
        sample: PidInfo,
        last: tuple[PidInfo, timedelta] | None,
    ) -> SingleProcessModel:
        io = mem = cpu = None
        if last is not None:
            last_info, delta = last
            io = ProcessIoModel.build(last_info.io, sample.io, delta)
            mem = ProcessMemoryModel.build(last_info, sample, delta)
            cpu = ProcessCpuModel.build(last_info.stat, sample.stat, delta)
        cmdline = "?" if sample.cmdline_vec is None else " ".join(sample.cmdline_vec)
        return cls(
            pid=sample.stat.pid,
            ppid=sample.stat.ppid,
            comm=sample.stat.comm,
            state=sample.stat.state,
            uptime_secs=sample.stat.running_secs,
            cgroup=sample.cgroup,
            io=io,
            mem=mem,
            cpu=cpu,
            cmdline=cmdline,
            exe_path=sample.exe_path,
        )


class ProcessMapFieldId(MapFieldId):
    """``<pid>.<process field path>``."""

    ELEMENT = SingleProcessModelFieldId
    KEY_TYPE = int


class ProcessModelFieldId(CompositeFieldId):
    SUBQUERIES = {"processes": ("processes", ProcessMapFieldId)}


class ProcessModel(Queriable, BaseModel):
    """All processes of a tick keyed by pid."""

    FIELD_ID: ClassVar[type[FieldId]] = ProcessModelFieldId

    processes: dict[int, SingleProcessModel] = Field(default_factory=dict)

    model_config = FROZEN

    @classmethod
    def build(
        cls,
        sample: dict[int, PidInfo],
        last: tuple[dict[int, PidInfo], timedelta] | None,
    ) -> ProcessModel:
        processes = {}
        for pid, info in sorted(sample.items()):
            pid_last = None
            if last is not None and pid in last[0]:
                pid_last = (last[0][pid], last[1])
            processes[pid] = SingleProcessModel.build(info, pid_last)
        return cls(processes=processes)
