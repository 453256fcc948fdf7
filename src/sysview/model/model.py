"""Top-level model for one sampling tick."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import ClassVar

from pydantic import BaseModel, Field

from sysview.core.schemas import Sample
from sysview.model.cgroup import CgroupModel, CgroupModelFieldId
from sysview.model.network import NetworkModel, NetworkModelFieldId
from sysview.model.process import ProcessModel, ProcessModelFieldId
from sysview.model.queriable import CompositeFieldId, FieldId, Queriable
from sysview.model.system import SystemModel, SystemModelFieldId

logger = logging.getLogger(__name__)

FROZEN = {"frozen": True}


class ModelFieldId(CompositeFieldId):
    """Paths into a whole tick, e.g. ``cgroup.mem.total``."""

    SUBQUERIES = {
        "system": ("system", SystemModelFieldId),
        "cgroup": ("cgroup", CgroupModelFieldId),
        "process": ("process", ProcessModelFieldId),
        "network": ("network", NetworkModelFieldId),
    }


class Model(Queriable, BaseModel):
    """Everything derived from one Sample and, optionally, the previous one.

    Attributes:
        time_elapsed: Interval since the previous sample (zero on the first tick)
        timestamp: When the current sample was taken
        system: Host-wide CPU, memory, paging and disk metrics
        cgroup: The cgroup tree under ``<root>``
        process: All processes keyed by pid
        network: Interface and protocol metrics
    """

    FIELD_ID: ClassVar[type[FieldId]] = ModelFieldId

    time_elapsed: timedelta = timedelta(0)
    timestamp: datetime
    system: SystemModel = Field(default_factory=SystemModel)
    cgroup: CgroupModel
    process: ProcessModel = Field(default_factory=ProcessModel)
    network: NetworkModel = Field(default_factory=NetworkModel)

    model_config = FROZEN

    @classmethod
    def build(
        cls,
        timestamp: datetime,
        sample: Sample,
        last: tuple[Sample, timedelta] | None = None,
    ) -> Model:
        """Derive the model of ``sample``.

        Args:
            timestamp: Time the sample was taken
            sample: Current raw sample
            last: Previous raw sample and the time elapsed since it was taken

        Returns:
            Immutable model; every rate is None when ``last`` is None
        """
        if last is not None and last[1] <= timedelta(0):
            logger.warning(f"Non-positive interval {last[1]} between samples, rates unavailable")

        def pair(attr: str):
            if last is None:
                return None
            return getattr(last[0], attr), last[1]

        return cls(
            time_elapsed=last[1] if last is not None else timedelta(0),
            timestamp=timestamp,
            system=SystemModel.build(sample.system, pair("system")),
            cgroup=CgroupModel.build_root(sample.cgroup, pair("cgroup")),
            process=ProcessModel.build(sample.processes, pair("processes")),
            network=NetworkModel.build(sample.netstats, pair("netstats")),
        )
