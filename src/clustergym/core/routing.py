"""Static shortest-path next hops, computed once after the topology is built."""

from __future__ import annotations

import heapq
from typing import Dict, Iterable, List, Mapping, Set, Tuple

from clustergym.core.types import NodeId

EPSILON = 1e-9


def dijkstra_with_predecessors(
    graph: Mapping[int, Mapping[int, float]],
    start: int,
) -> Tuple[Dict[int, float], Dict[int, Set[int]]]:
    distances: Dict[int, float] = {start: 0.0}
    predecessors: Dict[int, Set[int]] = {start: set()}
    pq: List[Tuple[float, int]] = [(0.0, start)]

    while pq:
        dist_u, u = heapq.heappop(pq)
        if dist_u > distances.get(u, float("inf")) + EPSILON:
            continue
        for v, weight in graph.get(u, {}).items():
            nd = dist_u + float(weight)
            current = distances.get(v, float("inf"))
            if nd + EPSILON < current:
                distances[v] = nd
                predecessors[v] = {u}
                heapq.heappush(pq, (nd, v))
            elif abs(nd - current) <= EPSILON:
                predecessors.setdefault(v, set()).add(u)

    return distances, predecessors


def first_hops(start: int, dst: int, predecessors: Mapping[int, Iterable[int]]) -> List[int]:
    """All neighbours of ``start`` that begin some shortest path to ``dst``."""
    if dst == start:
        return []
    hops: Set[int] = set()
    stack: List[int] = [dst]
    visited: Set[int] = set()
    while stack:
        node = stack.pop()
        if node in visited:
            continue
        visited.add(node)
        for parent in predecessors.get(node, []):
            if parent == start:
                hops.add(node)
            else:
                stack.append(parent)
    return sorted(hops)


def compute_next_hops(
    graph: Mapping[int, Mapping[int, float]],
) -> Dict[NodeId, Dict[NodeId, NodeId]]:
    """Next-hop table ``table[node][dst]``; ties go to the lowest neighbour id."""
    table: Dict[NodeId, Dict[NodeId, NodeId]] = {}
    for node in sorted(graph):
        _, preds = dijkstra_with_predecessors(graph, node)
        routes: Dict[NodeId, NodeId] = {}
        for dst in sorted(preds):
            if dst == node:
                continue
            hops = first_hops(node, dst, preds)
            if hops:
                routes[dst] = hops[0]
        table[node] = routes
    return table
