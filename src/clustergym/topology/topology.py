from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Dict, List, Set, Tuple

from clustergym.core.types import NodeId

Metric = float


@dataclass
class Edge:
    u: NodeId
    v: NodeId
    metric: Metric


class Topology:
    """Undirected adjacency view of the installed links."""

    def __init__(self) -> None:
        self._adj: Dict[NodeId, Dict[NodeId, Metric]] = {}

    def add_node(self, node: NodeId) -> None:
        self._adj.setdefault(node, {})

    def nodes(self) -> List[NodeId]:
        return sorted(self._adj.keys())

    def neighbors(self, node: NodeId) -> Dict[NodeId, Metric]:
        return dict(self._adj.get(node, {}))

    def has_link(self, u: NodeId, v: NodeId) -> bool:
        return v in self._adj.get(u, {})

    def add_link(self, u: NodeId, v: NodeId, metric: Metric = 1.0) -> None:
        if u == v:
            raise ValueError(f"self-loop on node {u}")
        self.add_node(u)
        self.add_node(v)
        self._adj[u][v] = float(metric)
        self._adj[v][u] = float(metric)

    def edge_list(self) -> List[Edge]:
        edges: List[Edge] = []
        seen: set[Tuple[int, int]] = set()
        for u in self.nodes():
            for v, m in self._adj[u].items():
                key = (min(u, v), max(u, v))
                if key in seen:
                    continue
                seen.add(key)
                edges.append(Edge(u=key[0], v=key[1], metric=m))
        return sorted(edges, key=lambda e: (e.u, e.v))

    def snapshot(self) -> Dict[NodeId, Dict[NodeId, Metric]]:
        return {n: dict(nei) for n, nei in self._adj.items()}

    def reachable_from(self, start: NodeId) -> Set[NodeId]:
        if start not in self._adj:
            return set()
        seen = {start}
        queue = deque([start])
        while queue:
            node = queue.popleft()
            for nbr in sorted(self._adj[node]):
                if nbr not in seen:
                    seen.add(nbr)
                    queue.append(nbr)
        return seen

    def is_connected(self) -> bool:
        nodes = self.nodes()
        if not nodes:
            return True
        return len(self.reachable_from(nodes[0])) == len(nodes)
