"""Datagram echo server and fixed-rate echo client."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from clustergym.core.clock import SimClock
from clustergym.core.network_model import NetworkModel, Socket
from clustergym.core.types import NodeId, Packet

_log = logging.getLogger("clustergym.apps.echo")

PacketHook = Callable[[NodeId, Packet, float], None]


class UdpEchoServer:
    def __init__(
        self,
        network: NetworkModel,
        node_id: NodeId,
        port: int = 9,
        on_receive: Optional[PacketHook] = None,
    ) -> None:
        self.network = network
        self.node_id = node_id
        self.port = int(port)
        self.on_receive = on_receive
        self.received = 0
        self._socket: Optional[Socket] = None

    def start(self, clock: SimClock, start: float = 0.0, stop: Optional[float] = None) -> None:
        clock.schedule(max(0.0, start - clock.now), self._open)
        if stop is not None:
            clock.schedule(max(0.0, stop - clock.now), self._close)

    def _open(self) -> None:
        self._socket = self.network.bind(self.node_id, self.port, self._handle)

    def _close(self) -> None:
        if self._socket is not None:
            self.network.unbind(self._socket)
            self._socket = None

    def _handle(self, sock: Socket, packet: Packet) -> None:
        now = self.network.clock.now
        self.received += 1
        _log.debug(
            "t=%.6f node %d received %d bytes from %s",
            now,
            self.node_id,
            packet.payload_size,
            packet.src_address,
        )
        if self.on_receive is not None:
            self.on_receive(self.node_id, packet, now)
        sock.reply(packet)


class UdpEchoClient:
    """Sends ``max_packets`` datagrams, one every ``interval`` seconds, until ``stop``."""

    def __init__(
        self,
        network: NetworkModel,
        node_id: NodeId,
        target_address: str,
        port: int = 9,
        max_packets: int = 1,
        interval: float = 1.0,
        packet_size: int = 1024,
        on_send: Optional[PacketHook] = None,
        on_echo: Optional[PacketHook] = None,
    ) -> None:
        if max_packets < 0:
            raise ValueError(f"max_packets must be >= 0, got {max_packets}")
        if interval <= 0:
            raise ValueError(f"interval must be > 0, got {interval}")
        if packet_size <= 0:
            raise ValueError(f"packet_size must be > 0, got {packet_size}")
        self.network = network
        self.node_id = node_id
        self.target_address = target_address
        self.port = int(port)
        self.max_packets = int(max_packets)
        self.interval = float(interval)
        self.packet_size = int(packet_size)
        self.on_send = on_send
        self.on_echo = on_echo
        self.sent = 0
        self.echoed = 0
        self._stop: Optional[float] = None
        self._socket: Optional[Socket] = None

    def start(self, clock: SimClock, start: float = 0.0, stop: Optional[float] = None) -> None:
        self._stop = stop
        clock.schedule(max(0.0, start - clock.now), self._begin)

    def _begin(self) -> None:
        port = self.network.ephemeral_port(self.node_id)
        self._socket = self.network.bind(self.node_id, port, self._handle_echo)
        self._send()

    def _send(self) -> None:
        clock = self.network.clock
        if self._socket is None or self.sent >= self.max_packets:
            return
        if self._stop is not None and clock.now >= self._stop:
            return
        packet = self._socket.send_to(self.target_address, self.port, self.packet_size)
        self.sent += 1
        if packet is not None and self.on_send is not None:
            self.on_send(self.node_id, packet, clock.now)
        if self.sent < self.max_packets:
            clock.schedule(self.interval, self._send)

    def _handle_echo(self, sock: Socket, packet: Packet) -> None:
        self.echoed += 1
        if self.on_echo is not None:
            self.on_echo(self.node_id, packet, self.network.clock.now)
