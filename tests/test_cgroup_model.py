"""Tests for the cgroup tree builder and cgroup sub-models."""

from datetime import timedelta

import pytest

from conftest import ONE_SECOND, make_cgroup, make_memory_stat
from sysview.core.schemas import (
    CpuStat,
    IoStat,
    MemoryEvents,
    Pressure,
    PressureMetrics,
)
from sysview.model.cgroup import (
    CgroupIoModel,
    CgroupMemoryModel,
    CgroupModel,
    CgroupModelFieldId,
)


def _assert_counts(node: CgroupModel) -> None:
    assert node.count == 1 + sum(child.count for child in node.children)
    for child in node.children:
        _assert_counts(child)


class TestCgroupCpu:
    """Tests for CPU derivation and recreation detection."""

    def test_same_inode_gives_usage(self) -> None:
        """Test CPU usage between two samples of the same cgroup."""
        last = make_cgroup(inode=5, usage_usec=1_000_000)
        current = make_cgroup(inode=5, usage_usec=2_000_000)

        model = CgroupModel.build("a", "/a", 1, current, (last, ONE_SECOND))

        assert model.cpu is not None
        assert model.cpu.usage_pct == pytest.approx(100.0)
        assert model.recreate_flag is False

    def test_inode_change_marks_recreated(self) -> None:
        """Test that a changed inode sets recreate_flag and drops CPU."""
        last = make_cgroup(inode=5, usage_usec=1_000_000)
        current = make_cgroup(inode=7, usage_usec=2_000_000)

        model = CgroupModel.build("a", "/a", 1, current, (last, ONE_SECOND))

        assert model.recreate_flag is True
        assert model.cpu is None
        assert model.io_total is None

    def test_one_sided_inode_marks_recreated(self) -> None:
        """Test that an inode present on only one side counts as recreation."""
        last = make_cgroup(inode=None, usage_usec=1_000_000)
        current = make_cgroup(inode=7, usage_usec=2_000_000)

        model = CgroupModel.build("a", "/a", 1, current, (last, ONE_SECOND))

        assert model.recreate_flag is True
        assert model.cpu is None

    def test_no_inodes_treated_as_same(self) -> None:
        """Test that missing inodes on both sides keep the cgroup identity."""
        last = make_cgroup(inode=None, usage_usec=0)
        current = make_cgroup(inode=None, usage_usec=500_000)

        model = CgroupModel.build("a", "/a", 1, current, (last, ONE_SECOND))

        assert model.recreate_flag is False
        assert model.cpu.usage_pct == pytest.approx(50.0)

    def test_first_observation(self) -> None:
        """A cgroup seen for the first time is not flagged as recreated."""
        model = CgroupModel.build("a", "/a", 1, make_cgroup(usage_usec=10), None)
        assert model.cpu is None
        assert model.recreate_flag is False

    def test_throttling(self) -> None:
        """Test throttling rates and percentage."""
        last = make_cgroup(cpu_stat=CpuStat(nr_periods=10, nr_throttled=2, throttled_usec=0))
        current = make_cgroup(
            cpu_stat=CpuStat(nr_periods=20, nr_throttled=4, throttled_usec=250_000)
        )
        model = CgroupModel.build("a", "/a", 1, current, (last, timedelta(seconds=2)))
        assert model.cpu.nr_periods_per_sec == pytest.approx(5.0)
        assert model.cpu.nr_throttled_per_sec == pytest.approx(1.0)
        assert model.cpu.throttled_pct == pytest.approx(12.5)
        assert model.cpu.usage_pct is None


class TestCgroupIo:
    """Tests for per-device IO and totals."""

    def test_totals_sum_devices(self) -> None:
        """Test that io_total sums the per-device models."""
        last = make_cgroup(
            io_stat={"8:0": IoStat(rbytes=0, wbytes=0), "8:16": IoStat(rbytes=0, wbytes=0)}
        )
        current = make_cgroup(
            io_stat={
                "8:0": IoStat(rbytes=1000, wbytes=500),
                "8:16": IoStat(rbytes=3000, wbytes=None),
            }
        )

        model = CgroupModel.build("a", "/a", 1, current, (last, ONE_SECOND))

        assert set(model.io) == {"8:0", "8:16"}
        assert model.io["8:16"].wbytes_per_sec is None
        assert model.io_total.rbytes_per_sec == pytest.approx(4000.0)
        assert model.io_total.wbytes_per_sec == pytest.approx(500.0)
        assert model.io_total.rwbytes_per_sec == pytest.approx(4500.0)

    def test_new_device_skipped(self) -> None:
        """Test that a device without a previous counter is skipped."""
        last = make_cgroup(io_stat={})
        current = make_cgroup(io_stat={"8:0": IoStat(rbytes=1000)})
        model = CgroupModel.build("a", "/a", 1, current, (last, ONE_SECOND))
        assert model.io == {}
        assert model.io_total == CgroupIoModel.empty()

    def test_empty_io_is_zero_not_absent(self) -> None:
        """Test that an empty io.stat gives all-zero totals."""
        model = CgroupModel.build(
            "a", "/a", 1, make_cgroup(io_stat={}), (make_cgroup(io_stat={}), ONE_SECOND)
        )
        assert model.io_total.rbytes_per_sec == 0.0
        assert all(value == 0.0 for value in CgroupIoModel.empty().model_dump().values())

    def test_unavailable_io_has_no_total(self) -> None:
        """Test that an unreadable io.stat gives no IO total."""
        model = CgroupModel.build("a", "/a", 1, make_cgroup(), (make_cgroup(), ONE_SECOND))
        assert model.io is None
        assert model.io_total is None
        assert model.query(CgroupModelFieldId.from_path("io.rbytes_per_sec")) is None


class TestCgroupMemory:
    """Tests for memory gauges and rates."""

    def test_gauges_without_history(self) -> None:
        """Test memory gauges on the first observation."""
        sample = make_cgroup(
            memory_current=4096,
            memory_high=-1,
            memory_stat=make_memory_stat(anon=1024, file=2048, pgfault=10),
            memory_events=MemoryEvents(oom_kill=1),
        )
        memory = CgroupMemoryModel.build(sample, None)
        assert memory.total == 4096
        assert memory.anon == 1024
        assert memory.memory_high == -1
        assert memory.events_oom_kill == 1
        assert memory.pgfault is None

    def test_rates_survive_recreation(self) -> None:
        """Memory rates only depend on both memory.stat blocks being present."""
        last = make_cgroup(inode=5, memory_stat=make_memory_stat(pgfault=100, pgscan=0))
        current = make_cgroup(inode=9, memory_stat=make_memory_stat(pgfault=300, pgscan=50))

        model = CgroupModel.build("a", "/a", 1, current, (last, timedelta(seconds=2)))

        assert model.recreate_flag is True
        assert model.memory.pgfault == pytest.approx(100.0)
        assert model.memory.pgscan == pytest.approx(25.0)

    def test_memory_always_present(self) -> None:
        """Test that a memory model is built even without memory files."""
        model = CgroupModel.build("a", "/a", 1, make_cgroup(), None)
        assert model.memory is not None
        assert model.memory.total is None

    def test_sum_drops_memory_high(self) -> None:
        """Test that adding memory models leaves memory_high unset."""
        lhs = CgroupMemoryModel(total=100, memory_high=10, pgfault=1.0)
        rhs = CgroupMemoryModel(total=200, memory_high=20)
        total = lhs + rhs
        assert total.total == 300
        assert total.pgfault == 1.0
        assert total.memory_high is None


class TestCgroupPressure:
    """Tests for pressure."""

    def test_uses_avg10(self) -> None:
        """Test that pressure percentages come from avg10."""
        pressure = Pressure.model_validate(
            {
                "cpu": {"some": {"avg10": 1.5, "avg60": 9.0}},
                "io": {"some": {"avg10": 2.5}, "full": {"avg10": 0.5}},
            }
        )
        model = CgroupModel.build("a", "/a", 1, make_cgroup(pressure=pressure), None)
        assert model.pressure.cpu_some_pct == 1.5
        assert model.pressure.io_full_pct == 0.5
        assert model.pressure.memory_some_pct is None

    def test_absent_pressure(self) -> None:
        """Test that missing PSI files give no pressure model."""
        model = CgroupModel.build("a", "/a", 1, make_cgroup(), None)
        assert model.pressure is None
        assert PressureMetrics().avg10 is None


class TestCgroupTree:
    """Tests for recursion, counts and root aggregation."""

    def _tree(self) -> tuple:
        last = make_cgroup(
            inode=1,
            children={
                "a": make_cgroup(inode=10, usage_usec=0),
                "b": make_cgroup(
                    inode=20,
                    usage_usec=0,
                    children={"c": make_cgroup(inode=30, usage_usec=0)},
                ),
            },
        )
        current = make_cgroup(
            inode=1,
            children={
                "b": make_cgroup(
                    inode=20,
                    usage_usec=100_000,
                    children={
                        "c": make_cgroup(inode=31, usage_usec=50_000),
                        "d": make_cgroup(inode=40, usage_usec=5),
                    },
                ),
                "a": make_cgroup(inode=10, usage_usec=200_000, memory_current=100),
            },
        )
        return current, last

    def test_structure(self) -> None:
        """Test names, paths and depths of a built tree."""
        current, last = self._tree()
        root = CgroupModel.build_root(current, (last, ONE_SECOND))

        assert root.name == "<root>"
        assert root.full_path == ""
        assert [child.name for child in root.children] == ["a", "b"]
        b = root.child("b")
        assert b.full_path == "/b"
        assert b.get_depth() == 1
        assert b.child("c").full_path == "/b/c"
        assert b.child("c").get_depth() == 2
        assert root.count == 5
        _assert_counts(root)

    def test_children_states(self) -> None:
        """Test per-child rates in a built tree."""
        current, last = self._tree()
        root = CgroupModel.build_root(current, (last, ONE_SECOND))
        b = root.child("b")

        assert root.child("a").cpu.usage_pct == pytest.approx(20.0)
        assert b.cpu.usage_pct == pytest.approx(10.0)
        assert b.child("c").recreate_flag is True
        assert b.child("c").cpu is None
        assert b.child("d").recreate_flag is False
        assert b.child("d").cpu is None

    def test_walk_is_depth_first(self) -> None:
        """Test depth-first traversal order."""
        current, last = self._tree()
        root = CgroupModel.build_root(current, (last, ONE_SECOND))
        assert [node.full_path for node in root.walk()] == ["", "/a", "/b", "/b/c", "/b/d"]

    def test_root_memory_aggregation(self) -> None:
        """Test that root memory is the sum of the top-level children."""
        sample = make_cgroup(
            inode=1,
            children={
                "x": make_cgroup(inode=2, memory_current=100),
                "y": make_cgroup(inode=3, memory_current=200),
            },
        )
        root = CgroupModel.build_root(sample, None)
        assert root.memory.total == 300
        assert root.child("x").memory.total == 100

    def test_root_aggregation_overrides_only_memory(self) -> None:
        """Test that root CPU keeps the real root cgroup values."""
        last = make_cgroup(inode=1, usage_usec=0, children={"x": make_cgroup(inode=2)})
        current = make_cgroup(
            inode=1,
            usage_usec=400_000,
            memory_current=999,
            children={"x": make_cgroup(inode=2, memory_current=100)},
        )
        root = CgroupModel.build_root(current, (last, ONE_SECOND))
        assert root.memory.total == 100
        assert root.cpu.usage_pct == pytest.approx(40.0)

    def test_childless_root_has_no_memory(self) -> None:
        """Test root memory of a tree without children."""
        root = CgroupModel.build_root(make_cgroup(memory_current=5), None)
        assert root.memory is None
        assert root.count == 1

    def test_children_sorted_and_unique(self) -> None:
        """Test child ordering and rejection of duplicate names."""
        node = CgroupModel(
            name="p",
            full_path="/p",
            children=[
                CgroupModel(name="z", full_path="/p/z"),
                CgroupModel(name="m", full_path="/p/m"),
            ],
        )
        assert [child.name for child in node.children] == ["m", "z"]
        with pytest.raises(ValueError):
            CgroupModel(
                name="p",
                full_path="/p",
                children=[
                    CgroupModel(name="m", full_path="/p/m"),
                    CgroupModel(name="m", full_path="/p/m", depth=3),
                ],
            )

    def test_structural_equality(self) -> None:
        """Cgroups with the same name but different values are not equal."""
        lhs = CgroupModel(name="a", full_path="/a", count=1)
        rhs = CgroupModel(name="a", full_path="/a", count=1, recreate_flag=True)
        assert lhs != rhs
