"""Collector module - reads cgroup v2 files into samples and models."""

from __future__ import annotations

from sysview.collector.cgroupfs import CgroupReader, Collector

__all__ = ["CgroupReader", "Collector"]
