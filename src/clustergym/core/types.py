from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

NodeId = int
Seconds = float
Position = Tuple[float, float]

# IPv4 (20) + UDP (8) + PPP (2)
HEADER_OVERHEAD_BYTES = 30


class NodeRole(str, Enum):
    MEMBER = "member"
    HEAD = "head"


class LinkKind(str, Enum):
    MESH = "mesh"
    BACKBONE = "backbone"
    SPOKE = "spoke"


@dataclass(frozen=True)
class Packet:
    uid: int
    src_node: NodeId
    src_address: str
    src_port: int
    dst_address: str
    dst_port: int
    payload_size: int
    created: Seconds

    @property
    def wire_size(self) -> int:
        return self.payload_size + HEADER_OVERHEAD_BYTES


@dataclass(frozen=True)
class SendRecord:
    node_id: NodeId
    time: Seconds


@dataclass(frozen=True)
class ReceiveRecord:
    node_id: NodeId
    time: Seconds


@dataclass
class StepRecord:
    time: Seconds
    observation: List[float]
    reward: float
    done: bool
    action: Optional[int] = None


@dataclass
class RunResult:
    stop_time: Seconds
    latency_samples: List[float]
    sends: Dict[NodeId, List[Seconds]]
    receives: Dict[NodeId, List[Seconds]]
    delivered_packets: int
    dropped_packets: int
    steps: List[StepRecord] = field(default_factory=list)
    done: bool = False
    extra: Dict[str, Any] = field(default_factory=dict)
