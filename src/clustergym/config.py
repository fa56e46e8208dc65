from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from clustergym.utils.units import parse_data_rate, parse_time


@dataclass(frozen=True)
class TopologyConfig:
    group_count: int = 3
    nodes_per_group: int = 3
    data_rate_bps: float = 5e6
    delay_s: float = 0.002
    address_prefix: str = "10.0"
    address_start: int = 1
    address_mask: str = "255.255.255.0"


@dataclass(frozen=True)
class FlowConfig:
    src_group: int
    dst_group: int
    dst_role: str = "member"
    port: int = 9
    start: float = 5.0
    stop: float = 20.0
    max_packets: int = 15
    interval: float = 1.0
    packet_size: int = 1024


@dataclass(frozen=True)
class ServerConfig:
    start: float = 0.0
    stop: float = 30.0


@dataclass(frozen=True)
class LatencyConfig:
    sink_group: int = 0
    overflow: str = "raise"
    shared_schedule: Optional[Tuple[float, ...]] = None


@dataclass(frozen=True)
class MonitorConfig:
    enabled: bool = True
    interval: float = 1.0
    tx_power: float = 7.5


@dataclass(frozen=True)
class EnvConfig:
    enabled: bool = True
    step_time: float = 0.5
    horizon: float = 29.0
    low: float = 0.0
    high: float = 100.0
    monitored: Optional[Tuple[int, ...]] = None
    action_effect: str = "none"
    nudge_distance: float = 1.5
    controller: str = "none"
    stop_on_done: bool = True


@dataclass(frozen=True)
class ExperimentConfig:
    name: str = "run"
    seed: int = 42
    stop_time: float = 30.0
    output_dir: str = "results/runs"
    topology: TopologyConfig = field(default_factory=TopologyConfig)
    flows: List[FlowConfig] = field(default_factory=list)
    servers: ServerConfig = field(default_factory=ServerConfig)
    latency: LatencyConfig = field(default_factory=LatencyConfig)
    monitor: MonitorConfig = field(default_factory=MonitorConfig)
    env: EnvConfig = field(default_factory=EnvConfig)


def parse_experiment_config(raw: Dict[str, Any]) -> ExperimentConfig:
    topo_raw = dict(raw.get("topology", {}))
    servers_raw = dict(raw.get("servers", {}))
    latency_raw = dict(raw.get("latency", {}))
    monitor_raw = dict(raw.get("monitor", {}))
    env_raw = dict(raw.get("env", {}))

    topology = TopologyConfig(
        group_count=int(topo_raw.get("group_count", 3)),
        nodes_per_group=int(topo_raw.get("nodes_per_group", 3)),
        data_rate_bps=parse_data_rate(topo_raw.get("data_rate", "5Mbps")),
        delay_s=parse_time(topo_raw.get("delay", "2ms")),
        address_prefix=str(topo_raw.get("address_prefix", "10.0")),
        address_start=int(topo_raw.get("address_start", 1)),
        address_mask=str(topo_raw.get("address_mask", "255.255.255.0")),
    )

    flows = [
        FlowConfig(
            src_group=int(item["src_group"]),
            dst_group=int(item["dst_group"]),
            dst_role=str(item.get("dst_role", "member")).lower(),
            port=int(item.get("port", 9)),
            start=parse_time(item.get("start", 5.0)),
            stop=parse_time(item.get("stop", 20.0)),
            max_packets=int(item.get("max_packets", 15)),
            interval=parse_time(item.get("interval", 1.0)),
            packet_size=int(item.get("packet_size", 1024)),
        )
        for item in raw.get("flows", [])
    ]

    schedule = latency_raw.get("shared_schedule")
    monitored = env_raw.get("monitored")

    return ExperimentConfig(
        name=str(raw.get("name", "run")),
        seed=int(raw.get("seed", 42)),
        stop_time=parse_time(raw.get("stop_time", 30.0)),
        output_dir=str(raw.get("output_dir", "results/runs")),
        topology=topology,
        flows=flows,
        servers=ServerConfig(
            start=parse_time(servers_raw.get("start", 0.0)),
            stop=parse_time(servers_raw.get("stop", 30.0)),
        ),
        latency=LatencyConfig(
            sink_group=int(latency_raw.get("sink_group", 0)),
            overflow=str(latency_raw.get("overflow", "raise")),
            shared_schedule=tuple(float(t) for t in schedule) if schedule is not None else None,
        ),
        monitor=MonitorConfig(
            enabled=bool(monitor_raw.get("enabled", True)),
            interval=parse_time(monitor_raw.get("interval", 1.0)),
            tx_power=float(monitor_raw.get("tx_power", 7.5)),
        ),
        env=EnvConfig(
            enabled=bool(env_raw.get("enabled", True)),
            step_time=parse_time(env_raw.get("step_time", 0.5)),
            horizon=parse_time(env_raw.get("horizon", 29.0)),
            low=float(env_raw.get("low", 0.0)),
            high=float(env_raw.get("high", 100.0)),
            monitored=tuple(int(n) for n in monitored) if monitored is not None else None,
            action_effect=str(env_raw.get("action_effect", "none")).lower(),
            nudge_distance=float(env_raw.get("nudge_distance", 1.5)),
            controller=str(env_raw.get("controller", "none")).lower(),
            stop_on_done=bool(env_raw.get("stop_on_done", True)),
        ),
    )
