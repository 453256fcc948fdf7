"""Tests for host-wide models."""

from datetime import timedelta

import pytest

from conftest import ONE_SECOND
from sysview.core.schemas import DiskStat, MemInfo, ProcStat, SystemCpuStat, SystemSample, VmStat
from sysview.model.system import (
    TOTAL_CPU_IDX,
    MemoryModel,
    SingleCpuModel,
    SingleDiskModel,
    SystemModel,
    SystemModelFieldId,
)


def _cpu(user: int, system: int, idle: int, iowait: int = 0) -> SystemCpuStat:
    return SystemCpuStat(
        user_usec=user,
        nice_usec=0,
        system_usec=system,
        idle_usec=idle,
        iowait_usec=iowait,
        irq_usec=0,
        softirq_usec=0,
        stolen_usec=0,
        guest_usec=0,
        guest_nice_usec=0,
    )


class TestSingleCpuModel:
    """Tests for CPU state percentages."""

    def test_ratios_of_total(self) -> None:
        """Test that each state is a share of the summed state deltas."""
        model = SingleCpuModel.build(
            0, _cpu(0, 0, 0), _cpu(300, 100, 500, iowait=100), ONE_SECOND
        )
        assert model.user_pct == pytest.approx(30.0)
        assert model.system_pct == pytest.approx(10.0)
        assert model.idle_pct == pytest.approx(50.0)
        assert model.iowait_pct == pytest.approx(10.0)
        assert model.usage_pct == pytest.approx(40.0)

    def test_no_progress(self) -> None:
        """Test that unchanged counters give no percentages."""
        model = SingleCpuModel.build(1, _cpu(5, 5, 5), _cpu(5, 5, 5), ONE_SECOND)
        assert model.usage_pct is None
        assert model.idx == 1

    def test_missing_state(self) -> None:
        """Test that a missing state counter leaves the total unknown."""
        model = SingleCpuModel.build(
            0, SystemCpuStat(user_usec=1), SystemCpuStat(user_usec=2), ONE_SECOND
        )
        assert model.usage_pct is None
        assert model.user_pct is None

    @pytest.mark.parametrize("elapsed", [timedelta(0), timedelta(seconds=-1)])
    def test_unusable_elapsed(self, elapsed: timedelta) -> None:
        """Test that a non-positive interval gives no percentages despite progress."""
        model = SingleCpuModel.build(2, _cpu(0, 0, 0), _cpu(300, 100, 500), elapsed)
        assert model == SingleCpuModel(idx=2)


class TestSingleDiskModel:
    """Tests for disk rates."""

    def test_rates(self) -> None:
        """Test sector to byte conversion and busy-time percentages."""
        begin = DiskStat(
            name="sda", read_sectors=0, write_sectors=0, read_completed=0, time_spend_read_ms=0
        )
        end = DiskStat(
            name="sda",
            read_sectors=8,
            write_sectors=16,
            read_completed=4,
            time_spend_read_ms=250,
        )
        model = SingleDiskModel.build(end, (begin, ONE_SECOND))
        assert model.read_bytes_per_sec == pytest.approx(4096.0)
        assert model.write_bytes_per_sec == pytest.approx(8192.0)
        assert model.disk_total_bytes_per_sec == pytest.approx(12288.0)
        assert model.read_completed == pytest.approx(4.0)
        assert model.time_spend_read_pct == pytest.approx(25.0)
        assert model.time_spend_write_pct is None

    def test_without_history(self) -> None:
        """Test that identity fields survive without a previous sample."""
        model = SingleDiskModel.build(DiskStat(name="sda", major=8, minor=0), None)
        assert model.name == "sda"
        assert model.major == 8
        assert model.read_bytes_per_sec is None


class TestSystemModel:
    """Tests for SystemModel.build."""

    def _sample(self, scale: int) -> SystemSample:
        return SystemSample(
            hostname="box",
            kernel_version="6.8.0",
            stat=ProcStat(
                total_cpu=_cpu(100 * scale, 100 * scale, 800 * scale),
                cpus={0: _cpu(50 * scale, 50 * scale, 400 * scale)},
                context_switches=1000 * scale,
                running_processes=3,
            ),
            meminfo=MemInfo(total=1024, active_anon=10, inactive_anon=5, active_file=7),
            vmstat=VmStat(pgpgin=100 * scale, oom_kill=0),
            disks={"sda": DiskStat(name="sda", read_sectors=scale)},
        )

    def test_build(self) -> None:
        """Test building every host sub-model from two samples."""
        model = SystemModel.build(self._sample(2), (self._sample(1), timedelta(seconds=2)))
        assert model.hostname == "box"
        assert model.total_cpu.idx == TOTAL_CPU_IDX
        assert model.total_cpu.usage_pct == pytest.approx(20.0)
        assert model.cpus[0].usage_pct == pytest.approx(20.0)
        assert model.stat.context_switches == pytest.approx(500.0)
        assert model.stat.running_processes == 3
        assert model.vm.pgpgin_per_sec == pytest.approx(50.0)
        assert model.disks["sda"].read_bytes_per_sec == pytest.approx(256.0)

    def test_first_tick(self) -> None:
        """Test that the first tick has gauges but no rates."""
        model = SystemModel.build(self._sample(1), None)
        assert model.total_cpu.usage_pct is None
        assert model.cpus[0].idx == 0
        assert model.mem.total == 1024
        assert model.vm.pgpgin_per_sec is None

    def test_zero_elapsed(self) -> None:
        """Test that a zero interval leaves every CPU share and rate absent."""
        model = SystemModel.build(self._sample(2), (self._sample(1), timedelta(0)))
        assert model.total_cpu == SingleCpuModel(idx=TOTAL_CPU_IDX)
        assert model.cpus[0] == SingleCpuModel(idx=0)
        assert model.stat.context_switches is None
        assert model.vm.pgpgin_per_sec is None
        assert model.disks["sda"].read_bytes_per_sec is None
        assert model.mem.total == 1024

    def test_memory_groups_lru_lists(self) -> None:
        """Test that anon and file sum their active and inactive lists."""
        memory = MemoryModel.build(MemInfo(active_anon=10, inactive_anon=5, active_file=7))
        assert memory.anon == 15
        assert memory.file == 7

    def test_query_paths(self) -> None:
        """Test querying through the cpu and disk maps."""
        model = SystemModel.build(self._sample(2), (self._sample(1), ONE_SECOND))
        usage = model.query(SystemModelFieldId.from_path("cpus.0.usage_pct"))
        assert float(usage) == pytest.approx(20.0)
        assert model.query(SystemModelFieldId.from_path("cpus.3.usage_pct")) is None
        assert model.query(SystemModelFieldId.from_path("disks.sda.name")).to_str() == "sda"
        assert model.query(SystemModelFieldId.from_path("mem.anon")).value == 15
