"""Minimal packet engine: nodes, point-to-point channels and datagram sockets.

Links are store-and-forward pipes: a packet occupies the sending direction
for ``wire_size * 8 / rate`` seconds and arrives ``delay`` seconds after it
has been serialized. Forwarding uses a static next-hop table.
"""

from __future__ import annotations

import ipaddress
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from clustergym.core.clock import SimClock
from clustergym.core.mobility import MobilityModel
from clustergym.core.routing import compute_next_hops
from clustergym.core.types import NodeId, NodeRole, Packet, Position
from clustergym.topology.topology import Topology

_log = logging.getLogger("clustergym.network")

ReceiveCallback = Callable[["Socket", Packet], None]

EPHEMERAL_PORT_START = 49153


@dataclass(frozen=True)
class Interface:
    link_id: int
    address: str
    network: ipaddress.IPv4Network


@dataclass
class Node:
    node_id: NodeId
    group: Optional[int] = None
    role: Optional[NodeRole] = None
    interfaces: List[Interface] = field(default_factory=list)
    sockets: Dict[int, "Socket"] = field(default_factory=dict)
    mobility: Optional[MobilityModel] = None

    def address_on(self, link_id: int) -> Optional[str]:
        for iface in self.interfaces:
            if iface.link_id == link_id:
                return iface.address
        return None


class Socket:
    def __init__(self, network: "NetworkModel", node_id: NodeId, port: int, on_receive: ReceiveCallback) -> None:
        self._network = network
        self.node_id = node_id
        self.port = port
        self.on_receive = on_receive

    def send_to(self, address: str, port: int, payload_size: int) -> Optional[Packet]:
        return self._network.send(self.node_id, self.port, address, port, payload_size)

    def reply(self, request: Packet) -> Optional[Packet]:
        return self._network.reply(self.node_id, request)


class PointToPointChannel:
    def __init__(self, link_id: int, a: NodeId, b: NodeId, rate_bps: float, delay_s: float) -> None:
        if rate_bps <= 0:
            raise ValueError(f"link rate must be > 0, got {rate_bps}")
        if delay_s < 0:
            raise ValueError(f"link delay must be >= 0, got {delay_s}")
        self.link_id = link_id
        self.a = a
        self.b = b
        self.rate_bps = float(rate_bps)
        self.delay_s = float(delay_s)
        self._busy_until: Dict[NodeId, float] = {a: 0.0, b: 0.0}
        self.transmitted = 0

    def peer(self, node: NodeId) -> NodeId:
        if node == self.a:
            return self.b
        if node == self.b:
            return self.a
        raise ValueError(f"node {node} is not attached to link {self.link_id}")

    def transmission_time(self, wire_size: int) -> float:
        return wire_size * 8.0 / self.rate_bps

    def reserve(self, sender: NodeId, now: float, wire_size: int) -> float:
        """Queue one packet from ``sender`` and return its arrival time at the peer."""
        start = max(now, self._busy_until[sender])
        done = start + self.transmission_time(wire_size)
        self._busy_until[sender] = done
        self.transmitted += 1
        return done + self.delay_s


class NetworkModel:
    def __init__(self, clock: SimClock) -> None:
        self.clock = clock
        self.nodes: List[Node] = []
        self.channels: List[PointToPointChannel] = []
        self.graph = Topology()
        self._channel_by_pair: Dict[Tuple[NodeId, NodeId], PointToPointChannel] = {}
        self._address_owner: Dict[str, NodeId] = {}
        self._next_hops: Dict[NodeId, Dict[NodeId, NodeId]] = {}
        self._next_uid = 0
        self.delivered_packets = 0
        self.dropped_packets = 0

    def create_nodes(self, count: int) -> List[NodeId]:
        if count <= 0:
            raise ValueError(f"node count must be > 0, got {count}")
        ids = []
        for _ in range(count):
            node = Node(node_id=len(self.nodes))
            self.nodes.append(node)
            self.graph.add_node(node.node_id)
            ids.append(node.node_id)
        return ids

    def node(self, node_id: NodeId) -> Node:
        if not 0 <= node_id < len(self.nodes):
            raise KeyError(f"Unknown node: {node_id}")
        return self.nodes[node_id]

    def install_link(self, a: NodeId, b: NodeId, rate_bps: float, delay_s: float) -> PointToPointChannel:
        self.node(a)
        self.node(b)
        key = (min(a, b), max(a, b))
        if key in self._channel_by_pair:
            raise ValueError(f"link between {a} and {b} already installed")
        channel = PointToPointChannel(len(self.channels), a, b, rate_bps, delay_s)
        self.channels.append(channel)
        self._channel_by_pair[key] = channel
        self.graph.add_link(a, b, 1.0)
        return channel

    def assign(self, channel: PointToPointChannel, network: ipaddress.IPv4Network) -> Tuple[str, str]:
        hosts = iter(network.hosts())
        addr_a, addr_b = str(next(hosts)), str(next(hosts))
        for node_id, addr in ((channel.a, addr_a), (channel.b, addr_b)):
            if addr in self._address_owner:
                raise ValueError(f"address {addr} already assigned")
            self._address_owner[addr] = node_id
            self.node(node_id).interfaces.append(
                Interface(link_id=channel.link_id, address=addr, network=network)
            )
        return addr_a, addr_b

    def install_mobility(self, node_id: NodeId, model: MobilityModel) -> None:
        self.node(node_id).mobility = model

    def position(self, node_id: NodeId) -> Position:
        model = self.node(node_id).mobility
        if model is None:
            raise ValueError(f"node {node_id} has no mobility model")
        return model.position_at(self.clock.now)

    def owner_of(self, address: str) -> Optional[NodeId]:
        return self._address_owner.get(address)

    def populate_routes(self) -> None:
        self._next_hops = compute_next_hops(self.graph.snapshot())
        _log.debug("routing tables populated for %d nodes", len(self._next_hops))

    def next_hop(self, node_id: NodeId, dst: NodeId) -> Optional[NodeId]:
        return self._next_hops.get(node_id, {}).get(dst)

    def bind(self, node_id: NodeId, port: int, on_receive: ReceiveCallback) -> Socket:
        node = self.node(node_id)
        if port in node.sockets:
            raise ValueError(f"port {port} already bound on node {node_id}")
        sock = Socket(self, node_id, port, on_receive)
        node.sockets[port] = sock
        return sock

    def unbind(self, sock: Socket) -> None:
        self.node(sock.node_id).sockets.pop(sock.port, None)

    def ephemeral_port(self, node_id: NodeId) -> int:
        port = EPHEMERAL_PORT_START
        while port in self.node(node_id).sockets:
            port += 1
        return port

    def send(
        self,
        node_id: NodeId,
        src_port: int,
        dst_address: str,
        dst_port: int,
        payload_size: int,
    ) -> Optional[Packet]:
        dst = self.owner_of(dst_address)
        src_address = self._source_address(node_id, dst)
        if dst is None or src_address is None:
            self._drop(node_id, f"no route to {dst_address}")
            return None
        packet = Packet(
            uid=self._allocate_uid(),
            src_node=node_id,
            src_address=src_address,
            src_port=src_port,
            dst_address=dst_address,
            dst_port=dst_port,
            payload_size=int(payload_size),
            created=self.clock.now,
        )
        self._forward(node_id, packet)
        return packet

    def reply(self, node_id: NodeId, request: Packet) -> Optional[Packet]:
        return self.send(node_id, request.dst_port, request.src_address, request.src_port, request.payload_size)

    def _allocate_uid(self) -> int:
        uid = self._next_uid
        self._next_uid += 1
        return uid

    def _source_address(self, node_id: NodeId, dst: Optional[NodeId]) -> Optional[str]:
        node = self.node(node_id)
        if not node.interfaces:
            return None
        if dst is None or dst == node_id:
            return node.interfaces[0].address
        hop = self.next_hop(node_id, dst)
        if hop is None:
            return None
        channel = self._channel_by_pair[(min(node_id, hop), max(node_id, hop))]
        return node.address_on(channel.link_id)

    def _forward(self, at: NodeId, packet: Packet) -> None:
        dst = self.owner_of(packet.dst_address)
        if dst == at:
            self.clock.schedule(0.0, self._deliver, at, packet)
            return
        hop = self.next_hop(at, dst) if dst is not None else None
        if hop is None:
            self._drop(at, f"no route to {packet.dst_address}")
            return
        channel = self._channel_by_pair[(min(at, hop), max(at, hop))]
        arrival = channel.reserve(at, self.clock.now, packet.wire_size)
        self.clock.schedule(arrival - self.clock.now, self._forward, hop, packet)

    def _deliver(self, node_id: NodeId, packet: Packet) -> None:
        sock = self.node(node_id).sockets.get(packet.dst_port)
        if sock is None:
            self._drop(node_id, f"port {packet.dst_port} closed")
            return
        self.delivered_packets += 1
        sock.on_receive(sock, packet)

    def _drop(self, node_id: NodeId, reason: str) -> None:
        self.dropped_packets += 1
        _log.debug("t=%.6f node %d dropped packet: %s", self.clock.now, node_id, reason)
