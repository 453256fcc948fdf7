"""Core module - configuration, constants and the sample contract."""

from __future__ import annotations

from sysview.core.config import load_config, save_config
from sysview.core.constants import DEFAULT_CGROUP_ROOT, ROOT_CGROUP_NAME
from sysview.core.schemas import (
    CgroupSample,
    CpuStat,
    IoStat,
    MemoryEvents,
    MemoryStat,
    NetworkSample,
    PidInfo,
    PidState,
    Pressure,
    Sample,
    SystemSample,
    SysviewConfig,
)

__all__ = [
    "CgroupSample",
    "CpuStat",
    "DEFAULT_CGROUP_ROOT",
    "IoStat",
    "load_config",
    "MemoryEvents",
    "MemoryStat",
    "NetworkSample",
    "PidInfo",
    "PidState",
    "Pressure",
    "ROOT_CGROUP_NAME",
    "Sample",
    "save_config",
    "SystemSample",
    "SysviewConfig",
]
