"""Shared fixtures for sysview tests."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from sysview.core.schemas import CgroupSample, CpuStat, MemoryStat
from sysview.model.model import Model

FIXTURE_DIR = Path(__file__).parent / "fixtures"

ONE_SECOND = timedelta(seconds=1)
TIMESTAMP = datetime(2024, 5, 1, 12, 0, 0, tzinfo=UTC)


def make_cgroup(
    inode: int | None = 5,
    usage_usec: int | None = None,
    memory_current: int | None = None,
    children: dict[str, CgroupSample] | None = None,
    **kwargs,
) -> CgroupSample:
    """Build a CgroupSample with the commonly varied fields."""
    cpu_stat = kwargs.pop("cpu_stat", None)
    if cpu_stat is None and usage_usec is not None:
        cpu_stat = CpuStat(usage_usec=usage_usec)
    return CgroupSample(
        inode_number=inode,
        cpu_stat=cpu_stat,
        memory_current=memory_current,
        children=children,
        **kwargs,
    )


def make_memory_stat(**values: int) -> MemoryStat:
    return MemoryStat(**values)


@pytest.fixture(scope="session")
def sample_model_json() -> str:
    """The fixed reference model document."""
    return (FIXTURE_DIR / "sample_model.json").read_text()


@pytest.fixture(scope="session")
def sample_model(sample_model_json: str) -> Model:
    return Model.model_validate_json(sample_model_json)
