"""Locate world positions on a connectivity graph.

Node footprints are indexed in plan view (orthogonal to the up axis) with a
:class:`shapely.STRtree`; candidates are then ranked by exact 3D distance
to the node geometry.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Tuple

from shapely import STRtree
from shapely.geometry import Point, Polygon

from .graph import ConnectivityGraph, Node, NodeId, NodeKind
from .options import NavQuery
from .vector import UpAxis, Vec3

LOGGER = logging.getLogger(__name__)


def closest_point_on_triangle(p: Vec3, a: Vec3, b: Vec3, c: Vec3) -> Vec3:
    """Closest point to ``p`` on triangle ``abc`` (Voronoi region walk)."""

    ab, ac, ap = b - a, c - a, p - a
    d1, d2 = ab.dot(ap), ac.dot(ap)
    if d1 <= 0.0 and d2 <= 0.0:
        return a

    bp = p - b
    d3, d4 = ab.dot(bp), ac.dot(bp)
    if d3 >= 0.0 and d4 <= d3:
        return b

    vc = d1 * d4 - d3 * d2
    if vc <= 0.0 and d1 >= 0.0 and d3 <= 0.0:
        return a + ab * (d1 / (d1 - d3))

    cp = p - c
    d5, d6 = ab.dot(cp), ac.dot(cp)
    if d6 >= 0.0 and d5 <= d6:
        return c

    vb = d5 * d2 - d1 * d6
    if vb <= 0.0 and d2 >= 0.0 and d6 <= 0.0:
        return a + ac * (d2 / (d2 - d6))

    va = d3 * d6 - d5 * d4
    if va <= 0.0 and (d4 - d3) >= 0.0 and (d5 - d6) >= 0.0:
        return b + (c - b) * ((d4 - d3) / ((d4 - d3) + (d5 - d6)))

    denom = 1.0 / (va + vb + vc)
    return a + ab * (vb * denom) + ac * (vc * denom)


_PLANE_AXES = {"z": ("x", "y", "z"), "y": ("x", "z", "y"), "x": ("y", "z", "x")}


def closest_point_on_node(node: Node, point: Vec3, up_axis: UpAxis = "z") -> Vec3:
    """Closest point to ``point`` on the geometry carried by ``node``.

    Cells are clamped to their extent in the plane orthogonal to ``up_axis``
    and keep the height of their center.
    """

    if node.kind is NodeKind.TRIANGLE:
        return closest_point_on_triangle(point, *node.vertices)
    if node.kind is NodeKind.CELL and node.vertices:
        u, v, up = _PLANE_AXES[up_axis]
        coords = {up: getattr(node.position, up)}
        for axis in (u, v):
            values = [getattr(corner, axis) for corner in node.vertices]
            coords[axis] = min(max(getattr(point, axis), min(values)), max(values))
        return Vec3(**coords)
    return node.position


def _footprint(node: Node, up_axis: UpAxis) -> Any:
    if node.kind in (NodeKind.TRIANGLE, NodeKind.CELL) and len(node.vertices) >= 3:
        polygon = Polygon([v.planar(up_axis) for v in node.vertices])
        if polygon.area > 0.0:
            return polygon
        # Vertical faces collapse in plan view; index their outline instead.
        return polygon.exterior
    return Point(node.position.planar(up_axis))


class NodeLocator:
    """Spatial index answering "which node is at or nearest to this position"."""

    def __init__(self, graph: ConnectivityGraph, up_axis: UpAxis = "z") -> None:
        self._up_axis = up_axis
        self._nodes: List[Node] = [node for node in graph.nodes if node.position is not None]
        self._tree = STRtree([_footprint(node, up_axis) for node in self._nodes]) if self._nodes else None
        LOGGER.debug("NodeLocator indexed %d of %d nodes", len(self._nodes), len(graph))

    def __len__(self) -> int:
        return len(self._nodes)

    def _best(self, indices: Any, point: Vec3) -> Optional[Tuple[NodeId, Vec3]]:
        best: Optional[Tuple[float, NodeId, Vec3]] = None
        for index in indices:
            node = self._nodes[int(index)]
            closest = closest_point_on_node(node, point, self._up_axis)
            candidate = ((closest - point).sqr_length(), node.id, closest)
            if best is None or candidate[:2] < best[:2]:
                best = candidate
        if best is None:
            return None
        return best[1], best[2]

    def closest(self, position: Any, query: NavQuery = NavQuery.CLOSEST) -> Optional[Tuple[NodeId, Vec3]]:
        """Return ``(node id, closest point)`` for ``position`` or ``None`` when nothing is indexed."""

        if self._tree is None:
            return None
        point = Vec3.of(position)
        query = NavQuery(query)
        if query is NavQuery.ACCURACY:
            return self._best(range(len(self._nodes)), point)

        here = Point(point.planar(self._up_axis))
        hits = sorted(int(i) for i in self._tree.query(here, predicate="intersects"))
        if hits:
            if query is NavQuery.CLOSEST_FIRST:
                hits = hits[:1]
            return self._best(hits, point)
        nearest = self._tree.nearest(here)
        if nearest is None:
            return None
        return self._best([nearest], point)

    def locate(self, position: Any, query: NavQuery = NavQuery.CLOSEST) -> Optional[NodeId]:
        found = self.closest(position, query)
        return found[0] if found is not None else None


__all__ = ["NodeLocator", "closest_point_on_node", "closest_point_on_triangle"]
