"""Per-node send/receive timestamps and FIFO latency matching.

Each receive at a node is matched to the oldest unconsumed expected send
time for that node, in arrival order. Expected send times come either from
the send path (``on_send(..., destination=node)``) or from one fixed schedule
shared by all nodes, indexed by a per-node cursor.
"""

from __future__ import annotations

import logging
from collections import defaultdict, deque
from typing import Deque, Dict, List, Optional, Sequence

from clustergym.core.errors import LatencyMatchError
from clustergym.core.types import NodeId, ReceiveRecord, SendRecord

_log = logging.getLogger("clustergym.event_log")

OVERFLOW_POLICIES = ("raise", "drop")


class EventLog:
    def __init__(
        self,
        shared_schedule: Optional[Sequence[float]] = None,
        overflow: str = "raise",
    ) -> None:
        if overflow not in OVERFLOW_POLICIES:
            raise ValueError(f"overflow must be one of {OVERFLOW_POLICIES}, got {overflow!r}")
        self.overflow = overflow
        self._shared = [float(t) for t in shared_schedule] if shared_schedule is not None else None
        self._cursor: Dict[NodeId, int] = defaultdict(int)
        self._expected: Dict[NodeId, Deque[float]] = defaultdict(deque)
        self._sends: List[SendRecord] = []
        self._receives: List[ReceiveRecord] = []
        self._sends_by_node: Dict[NodeId, List[float]] = defaultdict(list)
        self._receives_by_node: Dict[NodeId, List[float]] = defaultdict(list)
        self._samples: List[float] = []
        self._samples_by_node: Dict[NodeId, List[float]] = defaultdict(list)
        self.unmatched = 0

    @property
    def uses_shared_schedule(self) -> bool:
        return self._shared is not None

    def on_send(self, node_id: NodeId, t: float, destination: Optional[NodeId] = None) -> None:
        self._sends.append(SendRecord(node_id=node_id, time=float(t)))
        self._sends_by_node[node_id].append(float(t))
        if destination is not None and self._shared is None:
            self._expected[destination].append(float(t))

    def expect(self, node_id: NodeId, t: float) -> None:
        """Queue an expected send time for ``node_id`` without a send record."""
        if self._shared is not None:
            raise ValueError("expected send times come from the shared schedule")
        self._expected[node_id].append(float(t))

    def on_receive(self, node_id: NodeId, t: float) -> None:
        self._receives.append(ReceiveRecord(node_id=node_id, time=float(t)))
        self._receives_by_node[node_id].append(float(t))

    def latency_for(self, node_id: NodeId, t: Optional[float] = None) -> Optional[float]:
        if t is None:
            received = self._receives_by_node.get(node_id)
            if not received:
                raise ValueError(f"node {node_id} has no receive record")
            t = received[-1]
        sent = self._consume(node_id)
        if sent is None:
            return None
        latency = float(t) - sent
        self._samples.append(latency)
        self._samples_by_node[node_id].append(latency)
        return latency

    def _consume(self, node_id: NodeId) -> Optional[float]:
        if self._shared is not None:
            cursor = self._cursor[node_id]
            if cursor < len(self._shared):
                self._cursor[node_id] = cursor + 1
                return self._shared[cursor]
        elif self._expected[node_id]:
            self._cursor[node_id] += 1
            return self._expected[node_id].popleft()

        received = len(self._receives_by_node.get(node_id, []))
        if self.overflow == "raise":
            raise LatencyMatchError(node_id, received)
        self.unmatched += 1
        _log.warning("node %d: receive #%d has no expected send time, sample dropped", node_id, received)
        return None

    def cursor(self, node_id: NodeId) -> int:
        return self._cursor[node_id]

    def pending(self, node_id: NodeId) -> int:
        if self._shared is not None:
            return max(0, len(self._shared) - self._cursor[node_id])
        return len(self._expected[node_id])

    def all_samples(self) -> List[float]:
        return list(self._samples)

    def samples_for(self, node_id: NodeId) -> List[float]:
        return list(self._samples_by_node.get(node_id, []))

    def mean_latency(self) -> float:
        if not self._samples:
            return 0.0
        return sum(self._samples) / len(self._samples)

    def sends(self, node_id: NodeId) -> List[float]:
        return list(self._sends_by_node.get(node_id, []))

    def receives(self, node_id: NodeId) -> List[float]:
        return list(self._receives_by_node.get(node_id, []))

    def send_count(self) -> int:
        return len(self._sends)

    def receive_count(self) -> int:
        return len(self._receives)

    def snapshot(self) -> Dict[str, object]:
        return {
            "sends": {n: list(self._sends_by_node[n]) for n in sorted(self._sends_by_node)},
            "receives": {n: list(self._receives_by_node[n]) for n in sorted(self._receives_by_node)},
            "latencies": list(self._samples),
        }
