"""Arbitrary connectivity graph ("net") supplied as explicit nodes and edges."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Sequence

from .errors import DuplicateNodeError, InvalidEdgeError
from .graph import Edge, Node, NodeKind
from .mesh import VertexWelder
from .vector import Precision, Vec3


@dataclass(frozen=True, slots=True)
class NetNode:
    id: int
    position: Optional[Vec3] = None
    metadata: Dict[str, Any] = field(default_factory=dict, hash=False, compare=False)


@dataclass(frozen=True, slots=True)
class NetEdge:
    source: int
    target: int
    cost: Optional[float] = None
    """Traversal cost; defaults to the distance between positioned endpoints."""


@dataclass(slots=True)
class NavNet:
    """Caller-built graph; directed when ``directed`` is set."""

    kind: ClassVar[str] = "net"

    nodes: List[NetNode]
    edges: List[NetEdge]
    directed: bool = False

    def __post_init__(self) -> None:
        self.nodes = [n if isinstance(n, NetNode) else NetNode(*n) for n in self.nodes]
        self.edges = [e if isinstance(e, NetEdge) else NetEdge(*e) for e in self.edges]

    @property
    def heuristic_kind(self) -> str:
        """``"distance"`` when every node is positioned, ``"zero"`` otherwise."""

        if self.nodes and all(n.position is not None for n in self.nodes):
            return "distance"
        return "zero"

    def produce_nodes(self, tolerance: float, precision: Precision) -> List[Node]:
        ids = set()
        welder = VertexWelder(tolerance)
        owners: Dict[int, int] = {}
        out: List[Node] = []
        for item in self.nodes:
            node_id = int(item.id)
            if node_id in ids:
                raise DuplicateNodeError(f"Duplicate net node id {node_id}")
            ids.add(node_id)
            position = None
            if item.position is not None:
                position = Vec3.of(item.position).quantize(precision)
                slot = welder.find(position)
                if slot is not None:
                    raise DuplicateNodeError(
                        f"Net nodes {owners[slot]} and {node_id} lie within tolerance {tolerance}"
                    )
                owners[welder.add(position)] = node_id
            out.append(Node(id=node_id, kind=NodeKind.POINT, position=position, metadata=dict(item.metadata)))
        return out

    def produce_edges(self, nodes: Sequence[Node], tolerance: float) -> List[Edge]:
        by_id = {node.id: node for node in nodes}
        out: List[Edge] = []
        for item in self.edges:
            a, b = by_id.get(item.source), by_id.get(item.target)
            if a is None or b is None:
                raise InvalidEdgeError(f"Net edge {item.source}->{item.target} references a missing node")
            cost = item.cost
            if cost is None:
                if a.position is None or b.position is None:
                    raise InvalidEdgeError(
                        f"Net edge {item.source}->{item.target} has no cost and an unpositioned endpoint"
                    )
                cost = a.position.distance(b.position)
            out.append(Edge(a.id, b.id, cost))
        return out

    def to_json_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "directed": self.directed,
            "nodes": [
                {
                    "id": n.id,
                    "position": list(Vec3.of(n.position).to_tuple()) if n.position is not None else None,
                    "metadata": dict(n.metadata),
                }
                for n in self.nodes
            ],
            "edges": [{"source": e.source, "target": e.target, "cost": e.cost} for e in self.edges],
        }

    @classmethod
    def from_json_dict(cls, payload: Mapping[str, Any]) -> "NavNet":
        nodes = [
            NetNode(
                int(item["id"]),
                Vec3.of(item["position"]) if item.get("position") is not None else None,
                dict(item.get("metadata") or {}),
            )
            for item in payload.get("nodes", [])
        ]
        edges = [NetEdge(int(e["source"]), int(e["target"]), e.get("cost")) for e in payload.get("edges", [])]
        return cls(nodes, edges, directed=bool(payload.get("directed", False)))


__all__ = ["NavNet", "NetEdge", "NetNode"]
