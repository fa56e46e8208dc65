from __future__ import annotations

import pytest

from clustergym.core.clock import SimClock
from clustergym.core.errors import AddressSpaceExhausted, TopologyConfigError
from clustergym.core.network_model import NetworkModel
from clustergym.core.types import LinkKind, NodeRole
from clustergym.topology.addressing import SubnetAllocator
from clustergym.topology.builder import HierarchyBuilder, expected_link_count


def build(groups=3, per_group=3, allocator=None):
    network = NetworkModel(SimClock())
    topo = HierarchyBuilder(network, allocator=allocator).build(groups, per_group)
    return network, topo


def test_three_by_three_has_21_links():
    _, topo = build()
    assert topo.link_count == 21
    assert expected_link_count(3, 3) == 21
    assert len(topo.links_of_kind(LinkKind.MESH)) == 9
    assert len(topo.links_of_kind(LinkKind.BACKBONE)) == 3
    assert len(topo.links_of_kind(LinkKind.SPOKE)) == 9
    assert topo.node_count == 12


def test_node_ids_members_then_head_per_group():
    _, topo = build()
    assert [list(g.members) for g in topo.groups] == [[0, 1, 2], [4, 5, 6], [8, 9, 10]]
    assert topo.heads() == [3, 7, 11]
    assert topo.role(3) is NodeRole.HEAD
    assert topo.role(5) is NodeRole.MEMBER
    assert topo.group_of(9) == 2


def test_subnets_unique_and_in_link_order():
    _, topo = build()
    bases = [s.base for s in topo.subnets()]
    assert len(set(bases)) == 21
    assert bases == [f"10.0.{i}.0" for i in range(1, 22)]
    first = topo.links[0]
    assert first.kind is LinkKind.MESH
    assert (first.a, first.b) == (0, 1)
    assert first.addresses == ("10.0.1.1", "10.0.1.2")


def test_spoke_addresses():
    _, topo = build()
    # spokes follow 9 mesh and 3 backbone links
    assert topo.spoke_address(0, 0) == "10.0.13.1"
    assert topo.head_address(0, 0) == "10.0.13.2"
    assert topo.spoke_address(1, 2) == "10.0.18.1"


def test_every_node_reaches_every_other():
    network, topo = build()
    assert topo.is_connected()
    for src in range(topo.node_count):
        for dst in range(topo.node_count):
            if src != dst:
                assert network.next_hop(src, dst) is not None


def test_single_member_groups():
    _, topo = build(groups=2, per_group=1)
    assert topo.link_count == expected_link_count(2, 1) == 3
    assert topo.is_connected()


def test_invalid_counts_fail_before_install():
    network = NetworkModel(SimClock())
    with pytest.raises(TopologyConfigError):
        HierarchyBuilder(network).build(0, 3)
    with pytest.raises(TopologyConfigError):
        HierarchyBuilder(network).build(3, -1)
    assert network.nodes == []
    assert network.channels == []


def test_address_exhaustion_fails_before_install():
    network = NetworkModel(SimClock())
    builder = HierarchyBuilder(network, allocator=SubnetAllocator(start=250))
    with pytest.raises(AddressSpaceExhausted):
        builder.build(3, 3)
    assert network.channels == []


def test_host_mask_fails_before_install():
    network = NetworkModel(SimClock())
    with pytest.raises(TopologyConfigError):
        HierarchyBuilder(network, allocator=SubnetAllocator(prefix="10.0.0", mask="255.255.255.255")).build(3, 3)
    assert network.nodes == []
    assert network.channels == []


def test_member_positions_start_on_group_grid():
    network, topo = build()
    assert network.position(0) == pytest.approx((10.0, 60.0))
    assert network.position(1) == pytest.approx((20.0, 60.0))
    assert network.position(4) == pytest.approx((40.0, 60.0))
    assert network.position(3) == pytest.approx((10.0, 10.0))
    assert network.position(7) == pytest.approx((40.0, 15.0))


def test_graph_mirrors_installed_links():
    network, topo = build()
    edges = topo.graph.edge_list()
    assert len(edges) == 21
    assert (edges[0].u, edges[0].v) == (0, 1)
    assert all(e.metric == 1.0 for e in edges)
    assert topo.describe()["groups"][1] == {"index": 1, "members": [4, 5, 6], "head": 7}


def test_head_neighbours_are_members_and_other_heads():
    network, topo = build()
    assert sorted(topo.graph.neighbors(3)) == [0, 1, 2, 7, 11]
    assert topo.graph.has_link(0, 2)
    assert not topo.graph.has_link(0, 4)
    assert network.node(7).group == 1
    assert network.node(7).role is NodeRole.HEAD
    assert network.node(8).role is NodeRole.MEMBER
