"""Island partitioning, reachability queries and temporary bridges.

Islands are connected components of the connectivity graph plus the active
bridges (strongly connected components for directed graphs). Adding a
bridge merges islands incrementally through a union-find over island ids;
removing one only raises a dirty flag, and the next query recomputes the
whole partition.
"""

from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional

import networkx as nx

from .errors import InvalidBridgeCostError, InvalidEndpointError, NodeNotFoundError
from .graph import ConnectivityGraph, Edge, NodeId
from .vector import ZERO_THRESHOLD, Vec3

LOGGER = logging.getLogger(__name__)

IslandId = int
BridgeId = int


@dataclass(frozen=True, slots=True)
class Bridge:
    """Temporary two-way connector between two nodes."""

    id: BridgeId
    a: NodeId
    b: NodeId
    cost: float

    def to_json_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "a": self.a, "b": self.b, "cost": self.cost}

    @classmethod
    def from_json_dict(cls, payload: Mapping[str, Any]) -> "Bridge":
        return cls(int(payload["id"]), int(payload["a"]), int(payload["b"]), float(payload["cost"]))


class IslandManager:
    """Tracks island membership of every node of one connectivity graph."""

    def __init__(self, graph: Optional[ConnectivityGraph] = None) -> None:
        self._graph: Optional[ConnectivityGraph] = None
        self._labels: Dict[NodeId, IslandId] = {}
        self._parent: Dict[IslandId, IslandId] = {}
        self._bridges: Dict[BridgeId, Bridge] = {}
        self._by_node: Dict[NodeId, List[BridgeId]] = {}
        self._next_bridge_id: BridgeId = 1
        self._dirty = False
        self._lock = threading.RLock()
        if graph is not None:
            self.rebuild(graph)

    @property
    def graph(self) -> Optional[ConnectivityGraph]:
        return self._graph

    @property
    def is_dirty(self) -> bool:
        """``True`` when the next query will trigger a full recompute."""

        return self._dirty

    def rebuild(self, graph: Optional[ConnectivityGraph] = None) -> None:
        """Recompute the partition over native edges plus active bridges.

        Passing a new ``graph`` keeps the bridges whose endpoints still exist.
        """

        with self._lock:
            if graph is not None and graph is not self._graph:
                self._graph = graph
                for bridge in list(self._bridges.values()):
                    if not (graph.has_node(bridge.a) and graph.has_node(bridge.b)):
                        LOGGER.warning("Dropping bridge %d: endpoint missing after rebuild", bridge.id)
                        self._forget_bridge(bridge.id)
            if self._graph is None:
                raise ValueError("IslandManager.rebuild requires a graph")

            g = self._graph.to_networkx()
            for bridge in self._bridges.values():
                g.add_edge(bridge.a, bridge.b)
                if g.is_directed():
                    g.add_edge(bridge.b, bridge.a)
            if g.is_directed():
                components = nx.strongly_connected_components(g)
            else:
                components = nx.connected_components(g)

            labels: Dict[NodeId, IslandId] = {}
            for island, members in enumerate(sorted((sorted(c) for c in components), key=lambda c: c[0])):
                for node in members:
                    labels[node] = island
            self._labels = labels
            self._parent = {island: island for island in set(labels.values())}
            self._dirty = False
            LOGGER.debug("Island partition rebuilt: nodes=%d islands=%d bridges=%d", len(labels), len(self._parent), len(self._bridges))

    def _ensure_fresh(self) -> None:
        if self._dirty:
            with self._lock:
                if self._dirty:
                    LOGGER.debug("Lazy island recompute after bridge change")
                    self.rebuild()

    def _find(self, island: IslandId) -> IslandId:
        root = island
        while self._parent[root] != root:
            root = self._parent[root]
        while self._parent[island] != root:
            self._parent[island], island = root, self._parent[island]
        return root

    def _union(self, a: IslandId, b: IslandId) -> None:
        ra, rb = self._find(a), self._find(b)
        if ra == rb:
            return
        if rb < ra:
            ra, rb = rb, ra
        self._parent[rb] = ra

    # -- queries -----------------------------------------------------------

    def island_of(self, node: NodeId) -> IslandId:
        """Return the island id of ``node``."""

        self._ensure_fresh()
        with self._lock:
            try:
                label = self._labels[node]
            except KeyError:
                raise NodeNotFoundError(node) from None
            return self._find(label)

    def are_connected(self, a: NodeId, b: NodeId) -> bool:
        return self.island_of(a) == self.island_of(b)

    def islands(self) -> Dict[IslandId, List[NodeId]]:
        """Return island id -> sorted member nodes."""

        self._ensure_fresh()
        with self._lock:
            out: Dict[IslandId, List[NodeId]] = {}
            for node in sorted(self._labels):
                out.setdefault(self._find(self._labels[node]), []).append(node)
            return out

    # -- bridges -----------------------------------------------------------

    def add_bridge(self, a: NodeId, b: NodeId, cost: float) -> BridgeId:
        """Connect ``a`` and ``b`` with a two-way edge of ``cost``."""

        with self._lock:
            if self._graph is None or not self._graph.has_node(a) or not self._graph.has_node(b):
                raise InvalidEndpointError(f"Bridge endpoint missing from graph: {a!r} <-> {b!r}")
            if a == b:
                raise InvalidEndpointError(f"Bridge endpoints must differ: {a!r}")
            try:
                value = float(cost)
            except (TypeError, ValueError):
                raise InvalidBridgeCostError(f"Bridge cost must be a real number, got {cost!r}") from None
            if not math.isfinite(value) or value < 0:
                raise InvalidBridgeCostError(f"Bridge cost must be finite and non-negative, got {cost!r}")

            bridge = Bridge(self._next_bridge_id, a, b, value)
            self._next_bridge_id += 1
            self._bridges[bridge.id] = bridge
            self._by_node.setdefault(a, []).append(bridge.id)
            self._by_node.setdefault(b, []).append(bridge.id)

            if self._graph.directed:
                # Merging strongly connected components may pull in others.
                self._dirty = True
            elif not self._dirty:
                self._union(self._labels[a], self._labels[b])
            LOGGER.debug("Bridge %d added: %s <-> %s cost=%s", bridge.id, a, b, value)
            return bridge.id

    def remove_bridge(self, bridge_id: BridgeId) -> None:
        """Remove a bridge; unknown ids are ignored."""

        with self._lock:
            if bridge_id not in self._bridges:
                return
            self._forget_bridge(bridge_id)
            self._dirty = True
            LOGGER.debug("Bridge %d removed; island partition marked dirty", bridge_id)

    def _forget_bridge(self, bridge_id: BridgeId) -> None:
        bridge = self._bridges.pop(bridge_id)
        for node in (bridge.a, bridge.b):
            ids = self._by_node.get(node, [])
            if bridge_id in ids:
                ids.remove(bridge_id)
            if not ids:
                self._by_node.pop(node, None)

    def bridges(self) -> List[Bridge]:
        return list(self._bridges.values())

    def bridge(self, bridge_id: BridgeId) -> Optional[Bridge]:
        return self._bridges.get(bridge_id)

    def bridge_edges(self, node: NodeId) -> List[Edge]:
        """Return the bridge edges leaving ``node``."""

        out = []
        for bridge_id in self._by_node.get(node, ()):
            bridge = self._bridges[bridge_id]
            target = bridge.b if bridge.a == node else bridge.a
            out.append(Edge(node, target, bridge.cost, None, bridge.id))
        return out

    # -- serialization -----------------------------------------------------

    def to_json_dict(self) -> Dict[str, Any]:
        """Return a deterministic JSON-serializable representation."""

        self._ensure_fresh()
        with self._lock:
            return {
                "islands": [[node, self._find(self._labels[node])] for node in sorted(self._labels)],
                "bridges": [self._bridges[i].to_json_dict() for i in sorted(self._bridges)],
                "next_bridge_id": self._next_bridge_id,
            }

    @classmethod
    def from_json_dict(cls, payload: Mapping[str, Any], graph: ConnectivityGraph) -> "IslandManager":
        """Restore a manager for ``graph`` without recomputing the partition."""

        manager = cls()
        manager._graph = graph
        for item in payload.get("bridges", []):
            bridge = Bridge.from_json_dict(item)
            if not (graph.has_node(bridge.a) and graph.has_node(bridge.b)):
                raise InvalidEndpointError(f"Stored bridge {bridge.id} references a missing node")
            manager._bridges[bridge.id] = bridge
            manager._by_node.setdefault(bridge.a, []).append(bridge.id)
            manager._by_node.setdefault(bridge.b, []).append(bridge.id)
        manager._next_bridge_id = int(payload.get("next_bridge_id", max(manager._bridges, default=0) + 1))
        labels = {int(node): int(island) for node, island in payload.get("islands", [])}
        if set(labels) != set(graph):
            LOGGER.warning("Stored island labels do not cover the graph; recomputing")
            manager.rebuild()
        else:
            manager._labels = labels
            manager._parent = {island: island for island in set(labels.values())}
        return manager


class BridgedGraph:
    """Graph provider exposing native edges plus the island manager's bridges."""

    def __init__(self, graph: ConnectivityGraph, islands: IslandManager) -> None:
        self._graph = graph
        self._islands = islands
        self.directed = graph.directed
        self.heuristic_kind = graph.heuristic_kind

    @property
    def graph(self) -> ConnectivityGraph:
        return self._graph

    def neighbors(self, node: NodeId) -> Iterable[Edge]:
        yield from self._graph.neighbors(node)
        yield from self._islands.bridge_edges(node)

    def has_node(self, node: NodeId) -> bool:
        return self._graph.has_node(node)

    def position(self, node: NodeId) -> Optional[Vec3]:
        return self._graph.position(node)

    def cost_ratio(self) -> Optional[float]:
        ratio = self._graph.cost_ratio()
        if ratio is None:
            return None
        for bridge in self._islands.bridges():
            length = self._graph.position(bridge.a).distance(self._graph.position(bridge.b))
            if length > ZERO_THRESHOLD:
                ratio = min(ratio, bridge.cost / length)
        return ratio


__all__ = ["Bridge", "BridgeId", "BridgedGraph", "IslandId", "IslandManager"]
