"""Connectivity graph model and the spatial graph builder.

Every spatial representation (mesh, net, grid, free grid) is turned into a
:class:`ConnectivityGraph` by :func:`build_graph`. The graph stores its
adjacency in a :mod:`networkx` graph and keeps per-node geometry plus
per-edge portals so that search and refinement never need to look back at
the raw geometry.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Protocol, Sequence, Tuple

import networkx as nx

from .errors import BuildError, DuplicateNodeError, InvalidEdgeError, NodeNotFoundError
from .options import NavOptions
from .vector import ZERO_THRESHOLD, Precision, Vec3, triangle_area

LOGGER = logging.getLogger(__name__)

NodeId = int
"""Stable integer identifier of a graph node."""


class NodeKind(str, Enum):
    """Geometric payload carried by a node."""

    TRIANGLE = "triangle"
    CELL = "cell"
    POINT = "point"


@dataclass(frozen=True, slots=True)
class Portal:
    """Shared boundary segment between two adjacent nodes."""

    a: Vec3
    b: Vec3

    @property
    def midpoint(self) -> Vec3:
        return self.a.lerp(self.b, 0.5)

    def to_json_list(self) -> List[List[float]]:
        return [list(self.a.to_tuple()), list(self.b.to_tuple())]

    @classmethod
    def from_json_list(cls, value: Sequence[Sequence[float]]) -> "Portal":
        return cls(Vec3.of(value[0]), Vec3.of(value[1]))


@dataclass(frozen=True, slots=True)
class Node:
    """A navigable region or point. Immutable once the graph is built."""

    id: NodeId
    kind: NodeKind
    position: Optional[Vec3] = None
    """Centroid, cell center or point; ``None`` for abstract net nodes."""

    vertices: Tuple[Vec3, ...] = ()
    """Triangle corners or cell rectangle corners (counter-clockwise)."""

    coord: Optional[Tuple[int, int]] = None
    """Integer cell coordinate for uniform grids."""

    cost: float = 1.0
    """Traversal cost multiplier of the region."""

    metadata: Dict[str, Any] = field(default_factory=dict, hash=False, compare=False)

    @property
    def normal(self) -> Optional[Vec3]:
        """Unit normal of triangle nodes, ``None`` otherwise."""

        if self.kind is not NodeKind.TRIANGLE or len(self.vertices) != 3:
            return None
        a, b, c = self.vertices
        return (b - a).cross(c - a).normalize()

    @property
    def area(self) -> float:
        if self.kind is NodeKind.TRIANGLE and len(self.vertices) == 3:
            return triangle_area(*self.vertices)
        if self.kind is NodeKind.CELL and len(self.vertices) == 4:
            a, b, c, _ = self.vertices
            return (b - a).length() * (c - b).length()
        return 0.0

    def to_json_dict(self) -> Dict[str, Any]:
        """Return a JSON-serializable dictionary with a fixed key order."""

        return {
            "id": self.id,
            "kind": self.kind.value,
            "position": list(self.position.to_tuple()) if self.position is not None else None,
            "vertices": [list(v.to_tuple()) for v in self.vertices],
            "coord": list(self.coord) if self.coord is not None else None,
            "cost": self.cost,
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_json_dict(cls, payload: Mapping[str, Any]) -> "Node":
        position = payload.get("position")
        coord = payload.get("coord")
        return cls(
            id=int(payload["id"]),
            kind=NodeKind(payload["kind"]),
            position=Vec3.of(position) if position is not None else None,
            vertices=tuple(Vec3.of(v) for v in payload.get("vertices") or ()),
            coord=(int(coord[0]), int(coord[1])) if coord is not None else None,
            cost=float(payload.get("cost", 1.0)),
            metadata=dict(payload.get("metadata") or {}),
        )


@dataclass(frozen=True, slots=True)
class Edge:
    """Traversable connection between two nodes."""

    source: NodeId
    target: NodeId
    cost: float
    portal: Optional[Portal] = None
    bridge: Optional[int] = None
    """Bridge id when the edge was injected by the island manager."""

    @property
    def key(self) -> Tuple[NodeId, NodeId]:
        return (self.source, self.target)


class GraphProvider(Protocol):
    """Protocol describing objects capable of yielding neighbor edges."""

    directed: bool
    heuristic_kind: str

    def neighbors(self, node: NodeId) -> Iterable[Edge]:
        """Yield edges leaving ``node``."""

    def has_node(self, node: NodeId) -> bool:
        """Return whether ``node`` exists."""

    def position(self, node: NodeId) -> Optional[Vec3]:
        """Return the representative position of ``node`` when it has one."""

    def cost_ratio(self) -> Optional[float]:
        """Return the smallest cost per unit of straight-line length over all edges."""


class SpatialSource(Protocol):
    """Capability interface implemented by every representation adapter.

    ``produce_portals`` is optional; representations without continuous
    interior geometry simply do not define it.
    """

    kind: str
    directed: bool

    def produce_nodes(self, tolerance: float, precision: Precision) -> List[Node]:
        """Return nodes with quantized geometry, ids in a stable order."""

    def produce_edges(self, nodes: Sequence[Node], tolerance: float) -> List[Edge]:
        """Return edges between ``nodes`` (one per pair for undirected sources)."""


def _edge_key(source: NodeId, target: NodeId, directed: bool) -> Tuple[NodeId, NodeId]:
    if directed or source <= target:
        return (source, target)
    return (target, source)


class ConnectivityGraph:
    """Immutable weighted connectivity graph with node geometry and portals.

    Construction validates the invariants: node ids are unique, every edge
    references two existing nodes, there are no self loops and every cost is
    finite and non-negative. Violations raise :class:`BuildError` subclasses.
    """

    def __init__(
        self,
        nodes: Iterable[Node],
        edges: Iterable[Edge],
        *,
        directed: bool = False,
        kind: str = "net",
        precision: Precision = "double",
        tolerance: float = 0.0,
        heuristic_kind: str = "distance",
    ) -> None:
        self.kind = kind
        self.heuristic_kind = heuristic_kind
        self.directed = directed
        self.precision = precision
        self.tolerance = tolerance
        self._graph: nx.Graph = nx.DiGraph() if directed else nx.Graph()
        self._nodes: Dict[NodeId, Node] = {}

        for node in sorted(nodes, key=lambda n: n.id):
            if node.id in self._nodes:
                raise DuplicateNodeError(f"Duplicate node id {node.id}")
            self._nodes[node.id] = node
            self._graph.add_node(node.id)

        pending: Dict[Tuple[NodeId, NodeId], Edge] = {}
        for edge in edges:
            self._validate_edge(edge)
            key = _edge_key(edge.source, edge.target, directed)
            previous = pending.get(key)
            if previous is not None:
                LOGGER.debug("Parallel edge %s: keeping cheaper cost", key)
                if previous.cost <= edge.cost:
                    continue
            pending[key] = edge
        for key in sorted(pending):
            edge = pending[key]
            self._graph.add_edge(key[0], key[1], cost=float(edge.cost), portal=edge.portal)

        self._cost_ratio = self._compute_cost_ratio()

    def _validate_edge(self, edge: Edge) -> None:
        if edge.source not in self._nodes or edge.target not in self._nodes:
            raise InvalidEdgeError(f"Edge {edge.source}->{edge.target} references a missing node")
        if edge.source == edge.target:
            raise InvalidEdgeError(f"Self loop on node {edge.source}")
        try:
            cost = float(edge.cost)
        except (TypeError, ValueError):
            raise InvalidEdgeError(f"Edge {edge.source}->{edge.target} has non-numeric cost {edge.cost!r}") from None
        if not math.isfinite(cost):
            raise InvalidEdgeError(f"Edge {edge.source}->{edge.target} has non-finite cost {edge.cost!r}")
        if cost < 0:
            raise InvalidEdgeError(f"Edge {edge.source}->{edge.target} has negative cost {edge.cost!r}")

    def _compute_cost_ratio(self) -> Optional[float]:
        if any(node.position is None for node in self._nodes.values()):
            return None
        ratio: Optional[float] = None
        for a, b, data in self._graph.edges(data=True):
            length = self._nodes[a].position.distance(self._nodes[b].position)
            if length <= ZERO_THRESHOLD:
                continue
            value = data["cost"] / length
            if ratio is None or value < ratio:
                ratio = value
        return ratio

    # -- queries -----------------------------------------------------------

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node: object) -> bool:
        return node in self._nodes

    def __iter__(self) -> Iterator[NodeId]:
        return iter(self._nodes)

    @property
    def nodes(self) -> List[Node]:
        return list(self._nodes.values())

    def to_networkx(self) -> nx.Graph:
        """Return a mutable copy of the underlying networkx graph."""

        return self._graph.copy()

    def has_node(self, node: NodeId) -> bool:
        return node in self._nodes

    def node(self, node: NodeId) -> Node:
        try:
            return self._nodes[node]
        except KeyError:
            raise NodeNotFoundError(node) from None

    def position(self, node: NodeId) -> Optional[Vec3]:
        return self.node(node).position

    def cost_ratio(self) -> Optional[float]:
        return self._cost_ratio

    def number_of_edges(self) -> int:
        return self._graph.number_of_edges()

    def neighbors(self, node: NodeId) -> Iterable[Edge]:
        """Yield native edges leaving ``node`` in deterministic order."""

        if node not in self._nodes:
            raise NodeNotFoundError(node)
        for target, data in self._graph.adj[node].items():
            yield Edge(node, target, data["cost"], data["portal"])

    def edge(self, source: NodeId, target: NodeId) -> Optional[Edge]:
        data = self._graph.get_edge_data(source, target)
        if data is None:
            return None
        return Edge(source, target, data["cost"], data["portal"])

    def edges(self) -> List[Edge]:
        """Return every edge once, sorted by ``(source, target)``."""

        out = []
        for a, b, data in self._graph.edges(data=True):
            source, target = _edge_key(a, b, self.directed)
            out.append(Edge(source, target, data["cost"], data["portal"]))
        out.sort(key=lambda e: e.key)
        return out

    # -- serialization -----------------------------------------------------

    def to_json_dict(self) -> Dict[str, Any]:
        """Return a deterministic JSON-serializable representation."""

        return {
            "kind": self.kind,
            "directed": self.directed,
            "precision": self.precision,
            "tolerance": self.tolerance,
            "heuristic_kind": self.heuristic_kind,
            "nodes": [self._nodes[n].to_json_dict() for n in sorted(self._nodes)],
            "edges": [
                {
                    "source": e.source,
                    "target": e.target,
                    "cost": e.cost,
                    "portal": e.portal.to_json_list() if e.portal is not None else None,
                }
                for e in self.edges()
            ],
        }

    @classmethod
    def from_json_dict(cls, payload: Mapping[str, Any], *, precision: Optional[Precision] = None) -> "ConnectivityGraph":
        """Rebuild a graph from :meth:`to_json_dict` output.

        When ``precision`` is given it must match the stored precision.
        """

        stored = payload.get("precision", "double")
        if precision is not None and precision != stored:
            raise BuildError(f"Graph precision {stored!r} does not match configured precision {precision!r}")
        nodes = [Node.from_json_dict(item) for item in payload.get("nodes", [])]
        edges = [
            Edge(
                int(item["source"]),
                int(item["target"]),
                float(item["cost"]),
                Portal.from_json_list(item["portal"]) if item.get("portal") is not None else None,
            )
            for item in payload.get("edges", [])
        ]
        return cls(
            nodes,
            edges,
            directed=bool(payload.get("directed", False)),
            kind=str(payload.get("kind", "net")),
            precision=stored,
            tolerance=float(payload.get("tolerance", 0.0)),
            heuristic_kind=str(payload.get("heuristic_kind", "distance")),
        )


def build_graph(
    source: SpatialSource,
    tolerance: Optional[float] = None,
    options: Optional[NavOptions] = None,
) -> ConnectivityGraph:
    """Build a :class:`ConnectivityGraph` from a representation adapter.

    Raises :class:`BuildError` (or a subclass) when the geometry is invalid;
    no partial graph is ever returned.
    """

    opts = options or NavOptions()
    tol = opts.tolerance if tolerance is None else tolerance
    if tol is None or not math.isfinite(tol) or tol < 0:
        raise BuildError(f"tolerance must be a non-negative real, got {tol!r}")

    t0_ns = time.perf_counter_ns()
    try:
        nodes = source.produce_nodes(tol, opts.precision)
        edges = source.produce_edges(nodes, tol)

        produce_portals = getattr(source, "produce_portals", None)
        if produce_portals is not None:
            portals: Dict[Tuple[NodeId, NodeId], Portal] = produce_portals(nodes, tol)
            edges = [_with_portal(edge, portals) for edge in edges]

        graph = ConnectivityGraph(
            nodes,
            edges,
            directed=source.directed,
            kind=source.kind,
            precision=opts.precision,
            tolerance=tol,
            heuristic_kind=getattr(source, "heuristic_kind", "distance"),
        )
    except BuildError as exc:
        LOGGER.warning("Rejected %s geometry: %s", source.kind, exc)
        raise

    duration_ms = int((time.perf_counter_ns() - t0_ns) / 1_000_000)
    LOGGER.info(
        "build_graph metrics: kind=%s nodes=%d edges=%d directed=%s precision=%s duration_ms=%d",
        graph.kind,
        len(graph),
        graph.number_of_edges(),
        graph.directed,
        graph.precision,
        duration_ms,
    )
    return graph


def _with_portal(edge: Edge, portals: Mapping[Tuple[NodeId, NodeId], Portal]) -> Edge:
    portal = portals.get(edge.key)
    if portal is None:
        portal = portals.get((edge.target, edge.source))
    if portal is None or edge.portal is not None:
        return edge
    return replace(edge, portal=portal)


__all__ = [
    "ConnectivityGraph",
    "Edge",
    "GraphProvider",
    "Node",
    "NodeId",
    "NodeKind",
    "Portal",
    "SpatialSource",
    "build_graph",
]
