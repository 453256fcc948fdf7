"""cgroup v2 filesystem reader and tick loop.

Reads the unified hierarchy directly and turns every cgroup directory into a
CgroupSample, recursing into sub-directories.

Files sourced per cgroup:
- cpu.stat: usage/user/system time and throttling
- io.stat: per-device bytes and operations, keyed by ``major:minor``
- memory.current, memory.swap.current, memory.high
- memory.events, memory.stat
- cpu.pressure, io.pressure, memory.pressure (PSI)

Any file that is missing or unreadable yields None for its value.
"""

from __future__ import annotations

import logging
import re
import threading
import time
from datetime import UTC, datetime, timedelta
from pathlib import Path

from sysview.core.constants import DEFAULT_CGROUP_ROOT, MEMORY_HIGH_UNLIMITED
from sysview.core.schemas import (
    CgroupSample,
    CpuPressure,
    CpuStat,
    IoPressure,
    IoStat,
    MemoryEvents,
    MemoryPressure,
    MemoryStat,
    Pressure,
    PressureMetrics,
    Sample,
)
from sysview.model.model import Model
from sysview.view.shared import ModelHolder

logger = logging.getLogger(__name__)

_IO_KEYS = tuple(IoStat.model_fields)
_IO_PAIR = re.compile(r"(\w+)=(\d+)")
_PSI_PAIR = re.compile(r"(avg10|avg60|avg300|total)=([\d.]+)")


class CgroupReader:
    """Reads a cgroup v2 hierarchy into CgroupSample trees.

    Args:
        root: Mount point of the unified hierarchy (or any cgroup below it)
    """

    def __init__(self, root: Path | str = DEFAULT_CGROUP_ROOT) -> None:
        self.root = Path(root)

    def read(self) -> CgroupSample:
        """Read the whole tree under ``root``.

        Raises:
            FileNotFoundError: If ``root`` does not exist
        """
        if not self.root.is_dir():
            raise FileNotFoundError(f"cgroup root not found: {self.root}")
        return self.read_cgroup(self.root)

    def read_cgroup(self, path: Path) -> CgroupSample:
        """Read one cgroup directory and, recursively, its children."""
        children: dict[str, CgroupSample] = {}
        try:
            subdirs = sorted(p for p in path.iterdir() if p.is_dir())
        except FileNotFoundError:
            # removed while walking
            logger.debug(f"cgroup vanished during read: {path}")
            subdirs = []
        except PermissionError:
            logger.warning(f"Permission denied listing cgroup {path}")
            subdirs = []
        for subdir in subdirs:
            children[subdir.name] = self.read_cgroup(subdir)

        return CgroupSample(
            cpu_stat=self._read_cpu_stat(path),
            io_stat=self._read_io_stat(path),
            memory_current=self._read_single_value(path / "memory.current"),
            memory_swap_current=self._read_single_value(path / "memory.swap.current"),
            memory_high=self._read_single_value(path / "memory.high"),
            memory_events=self._read_keyed(path / "memory.events", MemoryEvents),
            memory_stat=self._read_keyed(path / "memory.stat", MemoryStat),
            pressure=self._read_pressure(path),
            inode_number=self._read_inode(path),
            children=children,
        )

    def _read_text(self, path: Path) -> str | None:
        try:
            return path.read_text()
        except FileNotFoundError:
            logger.debug(f"{path} not found")
        except PermissionError:
            logger.warning(f"Permission denied reading {path}")
        except OSError as e:
            logger.debug(f"Error reading {path}: {e}")
        return None

    def _read_inode(self, path: Path) -> int | None:
        try:
            return path.stat().st_ino
        except OSError as e:
            logger.debug(f"Could not stat {path}: {e}")
            return None

    def _read_single_value(self, path: Path) -> int | None:
        """Read a single integer value; ``max`` maps to -1."""
        content = self._read_text(path)
        if content is None:
            return None
        value = content.strip()
        if value == "max":
            return MEMORY_HIGH_UNLIMITED
        try:
            return int(value)
        except ValueError:
            logger.debug(f"Unparsable value in {path}: {value!r}")
            return None

    def _read_key_values(self, path: Path) -> dict[str, int] | None:
        """Parse ``key value`` lines.

        Format:
            usage_usec 123456
            user_usec 100000
        """
        content = self._read_text(path)
        if content is None:
            return None
        result: dict[str, int] = {}
        for line in content.strip().split("\n"):
            parts = line.split()
            if len(parts) != 2:
                continue
            try:
                result[parts[0]] = int(parts[1])
            except ValueError:
                logger.debug(f"Skipping unparsable line in {path}: {line!r}")
        return result

    def _read_keyed(self, path: Path, schema: type) -> object | None:
        values = self._read_key_values(path)
        if values is None:
            return None
        return schema(**{k: v for k, v in values.items() if k in schema.model_fields})

    def _read_cpu_stat(self, path: Path) -> CpuStat | None:
        return self._read_keyed(path / "cpu.stat", CpuStat)  # type: ignore[return-value]

    def _read_io_stat(self, path: Path) -> dict[str, IoStat] | None:
        """Read io.stat.

        Format (per device):
            8:0 rbytes=12345 wbytes=67890 rios=100 wios=50 dbytes=0 dios=0
        """
        content = self._read_text(path / "io.stat")
        if content is None:
            return None
        devices: dict[str, IoStat] = {}
        for line in content.strip().split("\n"):
            parts = line.split(None, 1)
            if len(parts) < 2:
                continue
            device, rest = parts
            values = {k: int(v) for k, v in _IO_PAIR.findall(rest) if k in _IO_KEYS}
            devices[device] = IoStat(**values)
        return devices

    def _read_psi(self, path: Path) -> dict[str, PressureMetrics] | None:
        """Read a PSI file.

        Format:
            some avg10=0.00 avg60=0.00 avg300=0.00 total=12345
            full avg10=0.00 avg60=0.00 avg300=0.00 total=67890
        """
        content = self._read_text(path)
        if content is None:
            return None
        result: dict[str, PressureMetrics] = {}
        for line in content.strip().split("\n"):
            kind, _, rest = line.partition(" ")
            if kind not in ("some", "full"):
                continue
            values = dict(_PSI_PAIR.findall(rest))
            result[kind] = PressureMetrics(
                avg10=float(values["avg10"]) if "avg10" in values else None,
                avg60=float(values["avg60"]) if "avg60" in values else None,
                avg300=float(values["avg300"]) if "avg300" in values else None,
                total=int(values["total"]) if "total" in values else None,
            )
        return result

    def _read_pressure(self, path: Path) -> Pressure | None:
        cpu = self._read_psi(path / "cpu.pressure")
        io = self._read_psi(path / "io.pressure")
        memory = self._read_psi(path / "memory.pressure")
        if cpu is None and io is None and memory is None:
            return None
        return Pressure(
            cpu=CpuPressure(some=(cpu or {}).get("some", PressureMetrics())),
            io=IoPressure(**(io or {})),
            memory=MemoryPressure(**(memory or {})),
        )


class Collector:
    """Produces one Model per tick from a CgroupReader.

    Keeps the previous sample and its monotonic read time so that every tick
    after the first has rates. Only the cgroup part of the Sample is filled.

    Args:
        reader: Source of cgroup samples
        interval_ms: Sleep between ticks of the background loop
    """

    def __init__(self, reader: CgroupReader, interval_ms: int = 1000) -> None:
        self._reader = reader
        self._interval_seconds = interval_ms / 1000
        self._last: tuple[Sample, float] | None = None
        self._running = False
        self._thread: threading.Thread | None = None

    def collect(self) -> Model:
        """Read a new sample and derive its model against the previous one."""
        now = datetime.now(UTC)
        mono_now = time.monotonic()
        sample = Sample(cgroup=self._reader.read())

        last = None
        if self._last is not None:
            last_sample, last_mono = self._last
            last = (last_sample, timedelta(seconds=mono_now - last_mono))

        model = Model.build(now, sample, last)
        self._last = (sample, mono_now)
        return model

    def start(self, holder: ModelHolder) -> None:
        """Collect in a background thread, swapping each model into ``holder``."""
        if self._running:
            logger.warning("Collector already running")
            return
        self._running = True
        self._thread = threading.Thread(target=self._monitor_loop, args=(holder,), daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._running = False
        if self._thread is not None:
            self._thread.join(timeout=2.0)
            self._thread = None

    def _monitor_loop(self, holder: ModelHolder) -> None:
        """Background loop that swaps a new model into ``holder`` every tick."""
        try:
            while self._running:
                try:
                    holder.swap(self.collect())
                except FileNotFoundError as e:
                    logger.warning(f"Stopping collection: {e}")
                    return
                except Exception as e:
                    logger.warning(f"Error collecting cgroup sample: {e}")

                time.sleep(self._interval_seconds)
        finally:
            self._running = False
