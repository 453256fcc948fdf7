"""Network interface and protocol counters turned into rates."""

from __future__ import annotations

from datetime import timedelta
from typing import ClassVar

from pydantic import BaseModel, Field

from sysview.core.schemas import InterfaceStat, NetworkSample, TcpStat, UdpStat
from sysview.model.delta import count_per_sec, opt_add
from sysview.model.field import FieldKind
from sysview.model.queriable import (
    CompositeFieldId,
    FieldId,
    LeafFieldId,
    MapFieldId,
    Queriable,
)

FROZEN = {"frozen": True}


def _rates(
    begin: BaseModel | None,
    end: BaseModel,
    delta: timedelta | None,
    attrs: tuple[str, ...],
) -> dict[str, float | None]:
    if begin is None or delta is None:
        return {f"{attr}_per_sec": None for attr in attrs}
    return {
        f"{attr}_per_sec": count_per_sec(getattr(begin, attr), getattr(end, attr), delta)
        for attr in attrs
    }


_INTERFACE_COUNTERS = (
    "rx_bytes",
    "tx_bytes",
    "rx_packets",
    "tx_packets",
    "rx_errors",
    "tx_errors",
    "rx_dropped",
    "tx_dropped",
)

_TCP_COUNTERS = (
    "active_opens",
    "passive_opens",
    "attempt_fails",
    "estab_resets",
    "in_segs",
    "out_segs",
    "retrans_segs",
    "in_errs",
    "out_rsts",
)

_UDP_COUNTERS = (
    "in_datagrams",
    "no_ports",
    "in_errors",
    "out_datagrams",
    "rcvbuf_errors",
    "sndbuf_errors",
)


class SingleNetModelFieldId(LeafFieldId):
    INTERFACE = ("interface", FieldKind.STR)
    RX_BYTES_PER_SEC = ("rx_bytes_per_sec", FieldKind.F64)
    TX_BYTES_PER_SEC = ("tx_bytes_per_sec", FieldKind.F64)
    THROUGHPUT_PER_SEC = ("throughput_per_sec", FieldKind.F64)
    RX_PACKETS_PER_SEC = ("rx_packets_per_sec", FieldKind.F64)
    TX_PACKETS_PER_SEC = ("tx_packets_per_sec", FieldKind.F64)
    RX_ERRORS_PER_SEC = ("rx_errors_per_sec", FieldKind.F64)
    TX_ERRORS_PER_SEC = ("tx_errors_per_sec", FieldKind.F64)
    RX_DROPPED_PER_SEC = ("rx_dropped_per_sec", FieldKind.F64)
    TX_DROPPED_PER_SEC = ("tx_dropped_per_sec", FieldKind.F64)
    RX_BYTES = ("rx_bytes", FieldKind.U64)
    TX_BYTES = ("tx_bytes", FieldKind.U64)


class SingleNetModel(Queriable, BaseModel):
    """Traffic of one network interface."""

    FIELD_ID: ClassVar[type[FieldId]] = SingleNetModelFieldId

    interface: str
    rx_bytes_per_sec: float | None = None
    tx_bytes_per_sec: float | None = None
    throughput_per_sec: float | None = None
    rx_packets_per_sec: float | None = None
    tx_packets_per_sec: float | None = None
    rx_errors_per_sec: float | None = None
    tx_errors_per_sec: float | None = None
    rx_dropped_per_sec: float | None = None
    tx_dropped_per_sec: float | None = None
    rx_bytes: int | None = None
    tx_bytes: int | None = None

    model_config = FROZEN

    @classmethod
    def build(
        cls,
        interface: str,
        sample: InterfaceStat,
        last: tuple[InterfaceStat, timedelta] | None,
    ) -> SingleNetModel:
        begin, delta = last if last is not None else (None, None)
        rates = _rates(begin, sample, delta, _INTERFACE_COUNTERS)
        return cls(
            interface=interface,
            throughput_per_sec=opt_add(rates["rx_bytes_per_sec"], rates["tx_bytes_per_sec"]),
            rx_bytes=sample.rx_bytes,
            tx_bytes=sample.tx_bytes,
            **rates,
        )


class TcpModelFieldId(LeafFieldId):
    ACTIVE_OPENS_PER_SEC = ("active_opens_per_sec", FieldKind.F64)
    PASSIVE_OPENS_PER_SEC = ("passive_opens_per_sec", FieldKind.F64)
    ATTEMPT_FAILS_PER_SEC = ("attempt_fails_per_sec", FieldKind.F64)
    ESTAB_RESETS_PER_SEC = ("estab_resets_per_sec", FieldKind.F64)
    CURR_ESTAB_CONN = ("curr_estab_conn", FieldKind.U64)
    IN_SEGS_PER_SEC = ("in_segs_per_sec", FieldKind.F64)
    OUT_SEGS_PER_SEC = ("out_segs_per_sec", FieldKind.F64)
    RETRANS_SEGS_PER_SEC = ("retrans_segs_per_sec", FieldKind.F64)
    IN_ERRS_PER_SEC = ("in_errs_per_sec", FieldKind.F64)
    OUT_RSTS_PER_SEC = ("out_rsts_per_sec", FieldKind.F64)


class TcpModel(Queriable, BaseModel):
    FIELD_ID: ClassVar[type[FieldId]] = TcpModelFieldId

    active_opens_per_sec: float | None = None
    passive_opens_per_sec: float | None = None
    attempt_fails_per_sec: float | None = None
    estab_resets_per_sec: float | None = None
    curr_estab_conn: int | None = None
    in_segs_per_sec: float | None = None
    out_segs_per_sec: float | None = None
    retrans_segs_per_sec: float | None = None
    in_errs_per_sec: float | None = None
    out_rsts_per_sec: float | None = None

    model_config = FROZEN

    @classmethod
    def build(cls, sample: TcpStat, last: tuple[TcpStat, timedelta] | None) -> TcpModel:
        begin, delta = last if last is not None else (None, None)
        return cls(
            curr_estab_conn=sample.curr_estab,
            **_rates(begin, sample, delta, _TCP_COUNTERS),
        )


class UdpModelFieldId(LeafFieldId):
    IN_DATAGRAMS_PER_SEC = ("in_datagrams_per_sec", FieldKind.F64)
    NO_PORTS_PER_SEC = ("no_ports_per_sec", FieldKind.F64)
    IN_ERRORS_PER_SEC = ("in_errors_per_sec", FieldKind.F64)
    OUT_DATAGRAMS_PER_SEC = ("out_datagrams_per_sec", FieldKind.F64)
    RCVBUF_ERRORS_PER_SEC = ("rcvbuf_errors_per_sec", FieldKind.F64)
    SNDBUF_ERRORS_PER_SEC = ("sndbuf_errors_per_sec", FieldKind.F64)


class UdpModel(Queriable, BaseModel):
    FIELD_ID: ClassVar[type[FieldId]] = UdpModelFieldId

    in_datagrams_per_sec: float | None = None
    no_ports_per_sec: float | None = None
    in_errors_per_sec: float | None = None
    out_datagrams_per_sec: float | None = None
    rcvbuf_errors_per_sec: float | None = None
    sndbuf_errors_per_sec: float | None = None

    model_config = FROZEN

    @classmethod
    def build(cls, sample: UdpStat, last: tuple[UdpStat, timedelta] | None) -> UdpModel:
        begin, delta = last if last is not None else (None, None)
        return cls(**_rates(begin, sample, delta, _UDP_COUNTERS))


class SingleNetMapFieldId(MapFieldId):
    """``<interface>.<interface field path>``; interface names may contain dots."""

    ELEMENT = SingleNetModelFieldId


class NetworkModelFieldId(CompositeFieldId):
    SUBQUERIES = {
        "interfaces": ("interfaces", SingleNetMapFieldId),
        "tcp": ("tcp", TcpModelFieldId),
        "udp": ("udp", UdpModelFieldId),
    }


class NetworkModel(Queriable, BaseModel):
    """Per-interface traffic plus TCP and UDP protocol activity."""

    FIELD_ID: ClassVar[type[FieldId]] = NetworkModelFieldId

    interfaces: dict[str, SingleNetModel] = Field(default_factory=dict)
    tcp: TcpModel | None = None
    udp: UdpModel | None = None

    model_config = FROZEN

    @classmethod
    def build(
        cls,
        sample: NetworkSample,
        last: tuple[NetworkSample, timedelta] | None,
    ) -> NetworkModel:
        interfaces = {}
        for name, stat in sorted(sample.interfaces.items()):
            iface_last = None
            if last is not None and name in last[0].interfaces:
                iface_last = (last[0].interfaces[name], last[1])
            interfaces[name] = SingleNetModel.build(name, stat, iface_last)

        tcp = udp = None
        if sample.tcp is not None:
            tcp_last = None
            if last is not None and last[0].tcp is not None:
                tcp_last = (last[0].tcp, last[1])
            tcp = TcpModel.build(sample.tcp, tcp_last)
        if sample.udp is not None:
            udp_last = None
            if last is not None and last[0].udp is not None:
                udp_last = (last[0].udp, last[1])
            udp = UdpModel.build(sample.udp, udp_last)

        return cls(interfaces=interfaces, tcp=tcp, udp=udp)
