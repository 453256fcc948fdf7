"""Shared constants for sysview.

Centralized constants to avoid duplication and ensure consistency across modules.
"""

from __future__ import annotations

# Name given to the synthetic node at the top of every cgroup tree.
ROOT_CGROUP_NAME = "<root>"

# Default mount point of the unified (v2) cgroup hierarchy.
DEFAULT_CGROUP_ROOT = "/sys/fs/cgroup"

USEC_PER_SEC = 1_000_000
MSEC_PER_SEC = 1_000

# /proc/diskstats counts 512-byte sectors regardless of the device block size.
SECTOR_SIZE = 512

# memory.high reports "max" when unlimited; stored as -1.
MEMORY_HIGH_UNLIMITED = -1

# Maximum number of model snapshots kept by ModelStorage before pruning.
MAX_STORED_SNAPSHOTS = 500
