"""Triangle navigation mesh representation.

Each triangle becomes a node positioned at its centroid. Triangles sharing
an edge (after welding vertices closer than the tolerance) are connected,
and the shared edge becomes the portal used by the funnel.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from typing import Any, ClassVar, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .cost import CostFn, CostModel
from .errors import DegenerateGeometryError, DuplicateNodeError
from .graph import Edge, Node, NodeId, NodeKind, Portal
from .vector import Precision, Vec3, centroid, triangle_area

LOGGER = logging.getLogger(__name__)

Triangle = Tuple[int, int, int]


class VertexWelder:
    """Merge points closer than ``tolerance`` using a uniform spatial hash."""

    def __init__(self, tolerance: float) -> None:
        self._tolerance = tolerance
        self._buckets: Dict[Tuple[int, int, int], List[int]] = {}
        self.points: List[Vec3] = []

    def _key(self, point: Vec3) -> Tuple[int, int, int]:
        if self._tolerance <= 0.0:
            return (hash(point.x), hash(point.y), hash(point.z))
        t = self._tolerance
        return (math.floor(point.x / t), math.floor(point.y / t), math.floor(point.z / t))

    def find(self, point: Vec3) -> Optional[int]:
        """Return the index of an existing point within tolerance, if any."""

        kx, ky, kz = self._key(point)
        if self._tolerance <= 0.0:
            for index in self._buckets.get((kx, ky, kz), ()):
                if self.points[index] == point:
                    return index
            return None
        for dx in (-1, 0, 1):
            for dy in (-1, 0, 1):
                for dz in (-1, 0, 1):
                    for index in self._buckets.get((kx + dx, ky + dy, kz + dz), ()):
                        if self.points[index].distance(point) <= self._tolerance:
                            return index
        return None

    def add(self, point: Vec3) -> int:
        index = self.find(point)
        if index is not None:
            return index
        index = len(self.points)
        self.points.append(point)
        self._buckets.setdefault(self._key(point), []).append(index)
        return index


@dataclass(slots=True)
class TriangleMesh:
    """Vertices plus index triples, optionally with per-triangle area costs."""

    kind: ClassVar[str] = "mesh"
    directed: ClassVar[bool] = False
    heuristic_kind: ClassVar[str] = "distance"

    vertices: List[Vec3]
    triangles: List[Triangle]
    area_costs: Optional[List[float]] = None
    """Traversal cost factor per triangle (default 1, clamped at 0)."""

    cost_fn: Optional[CostFn] = field(default=None, compare=False)

    def __post_init__(self) -> None:
        self.vertices = [Vec3.of(v) for v in self.vertices]
        self.triangles = [tuple(int(i) for i in t) for t in self.triangles]
        if self.area_costs is not None:
            if len(self.area_costs) != len(self.triangles):
                raise ValueError(
                    f"area_costs has {len(self.area_costs)} entries for {len(self.triangles)} triangles"
                )
            self.area_costs = [max(float(c), 0.0) for c in self.area_costs]

    @classmethod
    def from_triangle_soup(cls, triples: Iterable[Sequence[Any]], tolerance: float = 1e-6, **kwargs: Any) -> "TriangleMesh":
        """Build a mesh from vertex triples, welding corners within ``tolerance``."""

        welder = VertexWelder(tolerance)
        triangles = []
        for triple in triples:
            corners = [Vec3.of(v) for v in triple]
            if len(corners) != 3:
                raise DegenerateGeometryError(f"Triangle must have 3 corners, got {len(corners)}")
            triangles.append(tuple(welder.add(c) for c in corners))
        return cls(welder.points, triangles, **kwargs)

    @property
    def origin(self) -> Vec3:
        """Mean of all vertices."""

        if not self.vertices:
            return Vec3(0.0, 0.0, 0.0)
        return centroid(self.vertices)

    def area_cost(self, index: int) -> float:
        if self.area_costs is None:
            return 1.0
        return self.area_costs[index]

    def with_area_cost(self, index: int, cost: float) -> Tuple["TriangleMesh", float]:
        """Return a copy with triangle ``index`` costing ``cost`` and the old cost."""

        costs = list(self.area_costs) if self.area_costs is not None else [1.0] * len(self.triangles)
        old = costs[index]
        costs[index] = max(float(cost), 0.0)
        return replace(self, area_costs=costs), old

    def scaled(self, factor: Any, origin: Optional[Vec3] = None) -> "TriangleMesh":
        """Scale vertices around ``origin`` (default: mesh origin) by a scalar or per-axis factor."""

        pivot = self.origin if origin is None else Vec3.of(origin)
        scale = Vec3(factor, factor, factor) if isinstance(factor, (int, float)) else Vec3.of(factor)
        return replace(self, vertices=[(v - pivot).mul(scale) + pivot for v in self.vertices])

    def thickened(self, value: float) -> "TriangleMesh":
        """Offset every vertex along the mean normal of its adjacent triangles."""

        sums = [Vec3(0.0, 0.0, 0.0)] * len(self.vertices)
        for a, b, c in self.triangles:
            normal = (self.vertices[b] - self.vertices[a]).cross(self.vertices[c] - self.vertices[a]).normalize()
            for index in (a, b, c):
                sums[index] = sums[index] + normal
        shifted = [v + sums[i].normalize() * value for i, v in enumerate(self.vertices)]
        return replace(self, vertices=shifted)

    def hard_edges(self) -> Dict[int, List[Tuple[Vec3, Vec3]]]:
        """Return boundary edges (shared by fewer than two triangles) per triangle."""

        counts: Dict[Tuple[int, int], int] = {}
        for t in self.triangles:
            for u, v in ((t[0], t[1]), (t[1], t[2]), (t[2], t[0])):
                key = (min(u, v), max(u, v))
                counts[key] = counts.get(key, 0) + 1
        out: Dict[int, List[Tuple[Vec3, Vec3]]] = {}
        for index, t in enumerate(self.triangles):
            planes = [
                (self.vertices[u], self.vertices[v])
                for u, v in ((t[0], t[1]), (t[1], t[2]), (t[2], t[0]))
                if counts[(min(u, v), max(u, v))] < 2
            ]
            if planes:
                out[index] = planes
        return out

    # -- capability interface ---------------------------------------------

    def produce_nodes(self, tolerance: float, precision: Precision) -> List[Node]:
        welder = VertexWelder(tolerance)
        remap = [welder.add(v.quantize(precision)) for v in self.vertices]
        points = welder.points

        nodes: List[Node] = []
        seen: Dict[Tuple[int, ...], int] = {}
        for index, triangle in enumerate(self.triangles):
            if len(triangle) != 3:
                raise DegenerateGeometryError(f"Triangle {index} has {len(triangle)} indices")
            for corner, vertex in enumerate(triangle):
                if not 0 <= vertex < len(remap):
                    raise DegenerateGeometryError(
                        f"Triangle {index} corner {corner} references vertex {vertex} out of {len(remap)}"
                    )
            welded = tuple(remap[v] for v in triangle)
            if len(set(welded)) < 3:
                raise DegenerateGeometryError(f"Triangle {index} collapses after welding: {triangle}")
            corners = tuple(points[v] for v in welded)
            area = triangle_area(*corners)
            if area <= tolerance or area <= 0.0:
                raise DegenerateGeometryError(f"Triangle {index} has near-zero area {area!r}")
            key = tuple(sorted(welded))
            if key in seen:
                raise DuplicateNodeError(f"Triangle {index} duplicates triangle {seen[key]}")
            seen[key] = index
            nodes.append(
                Node(
                    id=index,
                    kind=NodeKind.TRIANGLE,
                    position=centroid(corners).quantize(precision),
                    vertices=corners,
                    cost=self.area_cost(index),
                    metadata={"area": area, "indices": list(welded)},
                )
            )
        return nodes

    def _shared_edges(self, nodes: Sequence[Node]) -> Dict[Tuple[int, int], List[NodeId]]:
        edges: Dict[Tuple[int, int], List[NodeId]] = {}
        for node in nodes:
            a, b, c = node.metadata["indices"]
            for u, v in ((a, b), (b, c), (c, a)):
                edges.setdefault((min(u, v), max(u, v)), []).append(node.id)
        return edges

    def produce_edges(self, nodes: Sequence[Node], tolerance: float) -> List[Edge]:
        by_id = {node.id: node for node in nodes}
        model = CostModel(distance_metric="euclidean", combine="product", cost_fn=self.cost_fn)
        out: List[Edge] = []
        for tris in self._shared_edges(nodes).values():
            if len(tris) > 2:
                LOGGER.debug("Non-manifold edge shared by triangles %s", tris)
            for i, a in enumerate(tris):
                for b in tris[i + 1:]:
                    out.append(Edge(a, b, model.edge_cost(by_id[a], by_id[b])))
        return out

    def produce_portals(self, nodes: Sequence[Node], tolerance: float) -> Dict[Tuple[NodeId, NodeId], Portal]:
        corners: Dict[int, Vec3] = {}
        for node in nodes:
            for index, point in zip(node.metadata["indices"], node.vertices):
                corners[index] = point
        out: Dict[Tuple[NodeId, NodeId], Portal] = {}
        for (u, v), tris in self._shared_edges(nodes).items():
            portal = Portal(corners[u], corners[v])
            for i, a in enumerate(tris):
                for b in tris[i + 1:]:
                    out[(a, b)] = portal
        return out

    # -- serialization -----------------------------------------------------

    def to_json_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "vertices": [list(v.to_tuple()) for v in self.vertices],
            "triangles": [list(t) for t in self.triangles],
            "area_costs": list(self.area_costs) if self.area_costs is not None else None,
        }

    @classmethod
    def from_json_dict(cls, payload: Mapping[str, Any]) -> "TriangleMesh":
        if "triangle_soup" in payload:
            return cls.from_triangle_soup(payload["triangle_soup"], float(payload.get("tolerance", 1e-6)))
        return cls(
            vertices=payload["vertices"],
            triangles=payload["triangles"],
            area_costs=payload.get("area_costs"),
        )


__all__ = ["Triangle", "TriangleMesh", "VertexWelder"]
