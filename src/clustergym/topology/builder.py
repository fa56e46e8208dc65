"""Three-tier cluster topology: members, one head per group, head backbone.

Links are installed in a fixed order (intra-group mesh, head backbone,
member-to-head spokes) and then addressed in that same order, so a given
``(group_count, nodes_per_group)`` always yields the same address plan.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from itertools import combinations
from typing import Dict, List, Optional, Tuple

from clustergym.core.errors import AddressSpaceExhausted, TopologyConfigError
from clustergym.core.mobility import Bounds, ConstantPosition, GridPositionAllocator, RandomWalk2d
from clustergym.core.network_model import NetworkModel, PointToPointChannel
from clustergym.core.types import LinkKind, NodeId, NodeRole
from clustergym.topology.addressing import Subnet, SubnetAllocator
from clustergym.topology.topology import Topology

_log = logging.getLogger("clustergym.topology")


@dataclass(frozen=True)
class LinkParams:
    rate_bps: float = 5e6
    delay_s: float = 0.002


@dataclass(frozen=True)
class LayoutParams:
    leftmost_x: float = 10.0
    group_delta_x: float = 30.0
    member_y: float = 60.0
    grid_delta_x: float = 10.0
    grid_delta_y: float = 30.0
    grid_width: int = 3
    head_y: float = 10.0
    walk_y_min: float = -100.0
    walk_y_max: float = 100.0
    walk_speed: Tuple[float, float] = (2.0, 4.0)
    walk_distance: float = 1.0


@dataclass(frozen=True)
class Group:
    index: int
    members: Tuple[NodeId, ...]
    head: NodeId


@dataclass
class LinkInfo:
    link_id: int
    kind: LinkKind
    a: NodeId
    b: NodeId
    channel: PointToPointChannel
    subnet: Optional[Subnet] = None
    addresses: Optional[Tuple[str, str]] = None

    def as_dict(self) -> Dict[str, object]:
        return {
            "link_id": self.link_id,
            "kind": self.kind.value,
            "a": self.a,
            "b": self.b,
            "subnet": str(self.subnet) if self.subnet else None,
            "addresses": list(self.addresses) if self.addresses else None,
            "transmitted": self.channel.transmitted,
        }


def expected_link_count(group_count: int, nodes_per_group: int) -> int:
    mesh = group_count * nodes_per_group * (nodes_per_group - 1) // 2
    backbone = group_count * (group_count - 1) // 2
    spokes = group_count * nodes_per_group
    return mesh + backbone + spokes


class HierarchicalTopology:
    def __init__(self, network: NetworkModel, groups: List[Group], links: List[LinkInfo]) -> None:
        self.network = network
        self.groups = groups
        self.links = links
        self._group_of: Dict[NodeId, int] = {}
        self._role: Dict[NodeId, NodeRole] = {}
        self._spokes: Dict[Tuple[int, int], LinkInfo] = {}
        for group in groups:
            for node in group.members:
                self._group_of[node] = group.index
                self._role[node] = NodeRole.MEMBER
            self._group_of[group.head] = group.index
            self._role[group.head] = NodeRole.HEAD
        for link in links:
            if link.kind is LinkKind.SPOKE:
                group = self.groups[self._group_of[link.a]]
                self._spokes[(group.index, group.members.index(link.a))] = link

    @property
    def graph(self) -> Topology:
        return self.network.graph

    @property
    def link_count(self) -> int:
        return len(self.links)

    @property
    def node_count(self) -> int:
        return len(self._role)

    def group_of(self, node: NodeId) -> int:
        return self._group_of[node]

    def role(self, node: NodeId) -> NodeRole:
        return self._role[node]

    def heads(self) -> List[NodeId]:
        return [g.head for g in self.groups]

    def links_of_kind(self, kind: LinkKind) -> List[LinkInfo]:
        return [link for link in self.links if link.kind is kind]

    def subnets(self) -> List[Subnet]:
        return [link.subnet for link in self.links if link.subnet is not None]

    def spoke(self, group: int, member: int) -> LinkInfo:
        return self._spokes[(group, member)]

    def spoke_address(self, group: int, member: int) -> str:
        """Address of the ``member``-th member of ``group`` on its spoke link."""
        return self._spoke_addresses(group, member)[0]

    def head_address(self, group: int, member: int = 0) -> str:
        """Address of the head of ``group`` on the spoke facing ``member``."""
        return self._spoke_addresses(group, member)[1]

    def _spoke_addresses(self, group: int, member: int) -> Tuple[str, str]:
        link = self.spoke(group, member)
        if link.addresses is None:
            raise RuntimeError(f"spoke link {link.link_id} has no addresses assigned")
        return link.addresses

    def is_connected(self) -> bool:
        return self.graph.is_connected()

    def describe(self) -> Dict[str, object]:
        return {
            "groups": [
                {"index": g.index, "members": list(g.members), "head": g.head} for g in self.groups
            ],
            "links": [link.as_dict() for link in self.links],
        }


class HierarchyBuilder:
    def __init__(
        self,
        network: NetworkModel,
        allocator: Optional[SubnetAllocator] = None,
        link: LinkParams = LinkParams(),
        layout: LayoutParams = LayoutParams(),
        seed: int = 0,
    ) -> None:
        self.network = network
        self.allocator = allocator or SubnetAllocator()
        self.link = link
        self.layout = layout
        self.seed = int(seed)

    def build(self, group_count: int, nodes_per_group: int) -> HierarchicalTopology:
        self._validate(group_count, nodes_per_group)

        groups = self._create_groups(group_count, nodes_per_group)
        links: List[LinkInfo] = []

        for group in groups:
            for a, b in combinations(group.members, 2):
                links.append(self._install(LinkKind.MESH, a, b))

        for left, right in combinations(groups, 2):
            links.append(self._install(LinkKind.BACKBONE, left.head, right.head))

        for group in groups:
            for member in group.members:
                links.append(self._install(LinkKind.SPOKE, member, group.head))

        self._install_mobility(groups)

        for link in links:
            link.subnet = self.allocator.next()
            link.addresses = self.network.assign(link.channel, link.subnet.network)

        self.network.populate_routes()
        topology = HierarchicalTopology(self.network, groups, links)
        _log.info(
            "built %d groups x %d members: %d nodes, %d links, subnets %s..%s",
            group_count,
            nodes_per_group,
            topology.node_count,
            topology.link_count,
            links[0].subnet if links else None,
            links[-1].subnet if links else None,
        )
        return topology

    def _validate(self, group_count: int, nodes_per_group: int) -> None:
        if int(group_count) <= 0:
            raise TopologyConfigError(f"group_count must be > 0, got {group_count}")
        if int(nodes_per_group) <= 0:
            raise TopologyConfigError(f"nodes_per_group must be > 0, got {nodes_per_group}")
        needed = expected_link_count(group_count, nodes_per_group)
        if needed > self.allocator.capacity:
            raise AddressSpaceExhausted(
                f"topology needs {needed} subnets, allocator has {self.allocator.capacity} left"
            )

    def _create_groups(self, group_count: int, nodes_per_group: int) -> List[Group]:
        groups = []
        for index in range(group_count):
            members = self.network.create_nodes(nodes_per_group)
            head = self.network.create_nodes(1)[0]
            for node in members:
                self._tag(node, index, NodeRole.MEMBER)
            self._tag(head, index, NodeRole.HEAD)
            groups.append(Group(index=index, members=tuple(members), head=head))
        return groups

    def _tag(self, node_id: NodeId, group: int, role: NodeRole) -> None:
        node = self.network.node(node_id)
        node.group = group
        node.role = role

    def _install(self, kind: LinkKind, a: NodeId, b: NodeId) -> LinkInfo:
        channel = self.network.install_link(a, b, self.link.rate_bps, self.link.delay_s)
        return LinkInfo(link_id=channel.link_id, kind=kind, a=a, b=b, channel=channel)

    def _install_mobility(self, groups: List[Group]) -> None:
        lay = self.layout
        for group in groups:
            left = lay.leftmost_x + group.index * lay.group_delta_x
            grid = GridPositionAllocator(
                min_x=left,
                min_y=lay.member_y,
                delta_x=lay.grid_delta_x,
                delta_y=lay.grid_delta_y,
                grid_width=lay.grid_width,
            )
            bounds = Bounds(left, left + lay.group_delta_x, lay.walk_y_min, lay.walk_y_max)
            for slot, member in enumerate(group.members):
                rng = random.Random(self.seed * 1_000_003 + member)
                walk = RandomWalk2d(
                    grid.position(slot),
                    bounds,
                    rng,
                    speed=lay.walk_speed,
                    distance=lay.walk_distance,
                )
                self.network.install_mobility(member, walk)
            head_y = lay.head_y if group.index % 2 == 0 else lay.head_y * 1.5
            self.network.install_mobility(group.head, ConstantPosition(left, head_y))
