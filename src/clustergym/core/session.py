"""One simulation run: engine, topology, traffic, tracking and env bridge.

Everything a run mutates lives on the session object, so two sessions built
from the same config never share state and always produce the same result.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

from clustergym.apps.echo import UdpEchoClient, UdpEchoServer
from clustergym.config import ExperimentConfig, FlowConfig
from clustergym.core.clock import SimClock
from clustergym.core.errors import TopologyConfigError
from clustergym.core.logging import JsonlLogger
from clustergym.core.network_model import NetworkModel
from clustergym.core.types import NodeId, Packet, RunResult
from clustergym.env.bridge import LatencyEnvironment, StepDriver, load_action_handler, random_controller
from clustergym.topology.addressing import SubnetAllocator
from clustergym.topology.builder import HierarchicalTopology, HierarchyBuilder, LinkParams
from clustergym.tracking.event_log import EventLog
from clustergym.tracking.monitor import PeriodicMonitor, TrafficCounters

_log = logging.getLogger("clustergym.session")

DESTINATION_ROLES = ("member", "head")


class SimulationSession:
    def __init__(
        self,
        config: ExperimentConfig,
        events: Optional[JsonlLogger] = None,
        throughput_csv: str | Path | None = None,
    ) -> None:
        self.config = config
        self.events = events or JsonlLogger(path=None)
        self.throughput_csv = throughput_csv
        self.clock = SimClock()
        self.network = NetworkModel(self.clock)
        self.event_log = EventLog(
            shared_schedule=config.latency.shared_schedule,
            overflow=config.latency.overflow,
        )
        self.counters = TrafficCounters()
        self.topology: Optional[HierarchicalTopology] = None
        self.monitor: Optional[PeriodicMonitor] = None
        self.env: Optional[LatencyEnvironment] = None
        self.driver: Optional[StepDriver] = None
        self.servers: Dict[Tuple[NodeId, int], UdpEchoServer] = {}
        self.clients: List[UdpEchoClient] = []
        self.tracked: Set[NodeId] = set()
        self.sink_members: List[NodeId] = []

    @classmethod
    def from_config(
        cls,
        config: ExperimentConfig,
        events: Optional[JsonlLogger] = None,
        throughput_csv: str | Path | None = None,
        drive_env: bool = True,
    ) -> "SimulationSession":
        session = cls(config, events=events, throughput_csv=throughput_csv)
        session.build(drive_env=drive_env)
        return session

    def build(self, drive_env: bool = True) -> None:
        if self.topology is not None:
            raise RuntimeError("session already built")
        cfg = self.config
        topo_cfg = cfg.topology

        allocator = SubnetAllocator(
            prefix=topo_cfg.address_prefix,
            start=topo_cfg.address_start,
            mask=topo_cfg.address_mask,
        )
        builder = HierarchyBuilder(
            self.network,
            allocator=allocator,
            link=LinkParams(rate_bps=topo_cfg.data_rate_bps, delay_s=topo_cfg.delay_s),
            seed=cfg.seed,
        )
        self.topology = builder.build(topo_cfg.group_count, topo_cfg.nodes_per_group)
        self.events.log("topology_built", **self.topology.describe())

        sink_group = cfg.latency.sink_group
        if not 0 <= sink_group < len(self.topology.groups):
            raise TopologyConfigError(f"latency sink group {sink_group} does not exist")
        self.sink_members = list(self.topology.groups[sink_group].members)
        self.tracked = set(self.sink_members)

        for flow in cfg.flows:
            self._install_flow(flow)

        if cfg.monitor.enabled:
            self.monitor = PeriodicMonitor(
                self.event_log,
                self.counters,
                interval=cfg.monitor.interval,
                sinks=len(self.tracked),
                tx_power=cfg.monitor.tx_power,
                csv_path=self.throughput_csv,
                events=self.events,
            )
            self.monitor.start(self.clock)

        if cfg.env.enabled:
            self.env = self._make_env()
            if drive_env:
                controller = None
                if cfg.env.controller == "random":
                    controller = random_controller(self.env.action_space(), seed=cfg.seed)
                self.driver = StepDriver(
                    self.clock,
                    self.env,
                    cfg.env.step_time,
                    controller=controller,
                    stop_on_done=cfg.env.stop_on_done,
                    events=self.events,
                )
                self.driver.start()

    def require_topology(self) -> HierarchicalTopology:
        if self.topology is None:
            raise RuntimeError("session not built")
        return self.topology

    def _make_env(self) -> LatencyEnvironment:
        self.require_topology()
        env_cfg = self.config.env
        monitored = list(env_cfg.monitored) if env_cfg.monitored is not None else list(self.sink_members)
        for node in monitored:
            self.network.node(node)
        if env_cfg.action_effect == "nudge":
            handler = load_action_handler("nudge", distance=env_cfg.nudge_distance)
        else:
            handler = load_action_handler(env_cfg.action_effect)
        return LatencyEnvironment(
            self.network,
            self.event_log,
            self.clock,
            monitored,
            low=env_cfg.low,
            high=env_cfg.high,
            horizon=env_cfg.horizon,
            action_handler=handler,
        )

    def _install_flow(self, flow: FlowConfig) -> None:
        topology = self.require_topology()
        groups = topology.groups
        for idx in (flow.src_group, flow.dst_group):
            if not 0 <= idx < len(groups):
                raise TopologyConfigError(f"flow references unknown group {idx}")
        if flow.dst_role not in DESTINATION_ROLES:
            raise TopologyConfigError(f"flow dst_role must be one of {DESTINATION_ROLES}, got {flow.dst_role!r}")

        src = groups[flow.src_group]
        dst = groups[flow.dst_group]
        servers = self.config.servers
        for j, member in enumerate(src.members):
            slot = j % len(dst.members)
            if flow.dst_role == "member":
                target = dst.members[slot]
                address = topology.spoke_address(dst.index, slot)
            else:
                target = dst.head
                address = topology.head_address(dst.index, slot)

            self.tracked.add(target)
            key = (target, flow.port)
            if key not in self.servers:
                server = UdpEchoServer(self.network, target, port=flow.port, on_receive=self._on_server_receive)
                server.start(self.clock, start=servers.start, stop=servers.stop)
                self.servers[key] = server

            client = UdpEchoClient(
                self.network,
                member,
                address,
                port=flow.port,
                max_packets=flow.max_packets,
                interval=flow.interval,
                packet_size=flow.packet_size,
                on_send=self._on_client_send,
            )
            client.start(self.clock, start=flow.start, stop=flow.stop)
            self.clients.append(client)
            _log.debug("flow %d -> %d (%s) port %d", member, target, address, flow.port)

    def _on_client_send(self, node: NodeId, packet: Packet, now: float) -> None:
        destination = self.network.owner_of(packet.dst_address)
        if destination in self.tracked and not self.event_log.uses_shared_schedule:
            self.event_log.on_send(node, now, destination=destination)
        else:
            self.event_log.on_send(node, now)
        self.events.log("send", time=now, node=node, destination=destination, uid=packet.uid)

    def _on_server_receive(self, node: NodeId, packet: Packet, now: float) -> None:
        self.counters.record(packet.payload_size)
        if node not in self.tracked:
            return
        self.event_log.on_receive(node, now)
        latency = self.event_log.latency_for(node, now)
        self.events.log("receive", time=now, node=node, uid=packet.uid, latency=latency)

    def run(self, until: Optional[float] = None) -> RunResult:
        self.require_topology()
        stop_time = self.config.stop_time if until is None else float(until)
        self.clock.run(stop_time)
        snapshot = self.event_log.snapshot()
        result = RunResult(
            stop_time=self.clock.now,
            latency_samples=self.event_log.all_samples(),
            sends=snapshot["sends"],
            receives=snapshot["receives"],
            delivered_packets=self.network.delivered_packets,
            dropped_packets=self.network.dropped_packets,
            steps=list(self.driver.records) if self.driver else [],
            done=self.env.done() if self.env else False,
            extra={
                "monitor_ticks": self.monitor.ticks if self.monitor else 0,
                "unmatched_receives": self.event_log.unmatched,
                "clients": [
                    {"node": c.node_id, "target": c.target_address, "sent": c.sent, "echoed": c.echoed}
                    for c in self.clients
                ],
                "servers": [
                    {"node": node, "port": port, "received": s.received}
                    for (node, port), s in sorted(self.servers.items())
                ],
            },
        )
        _log.info(
            "run finished at t=%.3f: %d samples, mean latency %.6f",
            result.stop_time,
            len(result.latency_samples),
            self.event_log.mean_latency(),
        )
        return result
