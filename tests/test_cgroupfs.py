"""Tests for the cgroup v2 filesystem reader and collector."""

import time
from pathlib import Path

import pytest

from sysview.collector.cgroupfs import CgroupReader, Collector
from sysview.view.shared import ModelHolder


def _write_cgroup(path: Path, usage_usec: int = 1000, memory: int = 4096) -> None:
    path.mkdir(parents=True, exist_ok=True)
    (path / "cpu.stat").write_text(
        f"usage_usec {usage_usec}\nuser_usec 600\nsystem_usec 400\n"
        "nr_periods 0\nnr_throttled 0\nthrottled_usec 0\n"
    )
    (path / "io.stat").write_text(
        "8:0 rbytes=1024 wbytes=2048 rios=1 wios=2 dbytes=0 dios=0\n"
        "259:0 rbytes=10 wbytes=0 rios=1 wios=0 dbytes=0 dios=0\n"
    )
    (path / "memory.current").write_text(f"{memory}\n")
    (path / "memory.high").write_text("max\n")
    (path / "memory.events").write_text("low 0\nhigh 0\nmax 0\noom 0\noom_kill 2\n")
    (path / "memory.stat").write_text("anon 1024\nfile 2048\npgfault 77\nunknown_key 5\n")
    (path / "cpu.pressure").write_text(
        "some avg10=1.50 avg60=0.20 avg300=0.00 total=12345\n"
        "full avg10=0.00 avg60=0.00 avg300=0.00 total=0\n"
    )
    (path / "io.pressure").write_text(
        "some avg10=0.25 avg60=0.00 avg300=0.00 total=10\n"
        "full avg10=0.10 avg60=0.00 avg300=0.00 total=5\n"
    )


class FlakyReader(CgroupReader):
    """Reader whose first read fails with an unexpected error."""

    def __init__(self, root: Path) -> None:
        super().__init__(root)
        self.calls = 0

    def read(self):
        self.calls += 1
        if self.calls == 1:
            raise RuntimeError("transient read failure")
        return super().read()


def _wait_for(condition, timeout: float = 5.0) -> None:
    deadline = time.monotonic() + timeout
    while not condition() and time.monotonic() < deadline:
        time.sleep(0.01)


@pytest.fixture
def cgroup_root(tmp_path: Path) -> Path:
    root = tmp_path / "cgroup"
    _write_cgroup(root)
    _write_cgroup(root / "system.slice", usage_usec=500, memory=100)
    _write_cgroup(root / "system.slice" / "sshd.service", usage_usec=100, memory=50)
    (root / "user.slice").mkdir()
    return root


class TestCgroupReader:
    """Tests for CgroupReader."""

    def test_reads_files(self, cgroup_root) -> None:
        """Test parsing every supported cgroup interface file."""
        sample = CgroupReader(cgroup_root).read()

        assert sample.cpu_stat.usage_usec == 1000
        assert sample.cpu_stat.user_usec == 600
        assert sample.io_stat["8:0"].wbytes == 2048
        assert sample.io_stat["259:0"].rbytes == 10
        assert sample.memory_current == 4096
        assert sample.memory_high == -1
        assert sample.memory_events.oom_kill == 2
        assert sample.memory_stat.pgfault == 77
        assert sample.pressure.cpu.some.avg10 == pytest.approx(1.5)
        assert sample.pressure.cpu.some.total == 12345
        assert sample.pressure.io.full.avg10 == pytest.approx(0.1)
        assert sample.pressure.memory.some.avg10 is None
        assert sample.inode_number == cgroup_root.stat().st_ino

    def test_recurses(self, cgroup_root) -> None:
        """Test reading nested cgroup directories."""
        sample = CgroupReader(cgroup_root).read()
        assert set(sample.children) == {"system.slice", "user.slice"}
        sshd = sample.children["system.slice"].children["sshd.service"]
        assert sshd.memory_current == 50
        assert sshd.children == {}

    def test_missing_files_are_none(self, cgroup_root) -> None:
        """Test that missing interface files read as None."""
        user = CgroupReader(cgroup_root).read().children["user.slice"]
        assert user.cpu_stat is None
        assert user.io_stat is None
        assert user.memory_current is None
        assert user.memory_swap_current is None
        assert user.pressure is None
        assert user.inode_number is not None

    def test_unparsable_value(self, cgroup_root) -> None:
        """Test that garbage in a single-value file reads as None."""
        (cgroup_root / "memory.current").write_text("garbage\n")
        assert CgroupReader(cgroup_root).read().memory_current is None

    def test_missing_root(self, tmp_path) -> None:
        """Test reading a root that does not exist."""
        with pytest.raises(FileNotFoundError):
            CgroupReader(tmp_path / "nope").read()


class TestCollector:
    """Tests for Collector."""

    def test_first_and_second_tick(self, cgroup_root) -> None:
        """Test that the second tick has rates against the first."""
        collector = Collector(CgroupReader(cgroup_root))

        first = collector.collect()
        assert first.cgroup.count == 4
        assert first.cgroup.child("system.slice").cpu is None

        _write_cgroup(cgroup_root / "system.slice", usage_usec=100_500, memory=100)
        second = collector.collect()
        slice_model = second.cgroup.child("system.slice")
        assert second.time_elapsed.total_seconds() > 0
        assert slice_model.cpu.usage_pct > 0
        assert slice_model.recreate_flag is False
        assert slice_model.memory.memory_high == -1
        assert second.cgroup.memory.total == 100

    def test_background_loop(self, cgroup_root) -> None:
        """Test that the background loop keeps swapping models in."""
        holder = ModelHolder()
        collector = Collector(CgroupReader(cgroup_root), interval_ms=10)
        collector.start(holder)
        try:
            deadline = time.monotonic() + 5
            while holder.generation < 2 and time.monotonic() < deadline:
                time.sleep(0.01)
        finally:
            collector.stop()

        assert holder.generation >= 2
        assert holder.get().cgroup.child("system.slice") is not None

    def test_loop_survives_tick_error(self, cgroup_root) -> None:
        """Test that an unexpected error skips one tick and sampling goes on."""
        holder = ModelHolder()
        reader = FlakyReader(cgroup_root)
        collector = Collector(reader, interval_ms=10)
        collector.start(holder)
        try:
            _wait_for(lambda: holder.generation >= 1)
            assert collector._thread is not None
            assert collector._thread.is_alive()
        finally:
            collector.stop()

        assert reader.calls >= 2
        assert holder.generation >= 1
        assert holder.get().cgroup.child("system.slice") is not None

    def test_missing_root_stops_loop(self, tmp_path) -> None:
        """Test that a vanished root ends the loop and allows a restart."""
        holder = ModelHolder()
        collector = Collector(CgroupReader(tmp_path / "gone"), interval_ms=10)
        collector.start(holder)
        _wait_for(lambda: not collector._running)

        assert collector._running is False
        assert holder.get() is None

        _write_cgroup(tmp_path / "gone")
        collector.start(holder)
        try:
            _wait_for(lambda: holder.generation >= 1)
        finally:
            collector.stop()
        assert holder.generation >= 1
