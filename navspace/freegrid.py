"""Free grid: sparse axis-aligned rectangles in world space.

Rectangles touching along a boundary segment of positive length are linked
and the shared segment becomes the portal. With the ``"8"`` rule corner
contacts are linked too, through a point portal. Adjacency candidates come
from a :class:`shapely.STRtree` over the rectangles.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar, Dict, Iterator, List, Literal, Mapping, Optional, Sequence, Tuple

from shapely import STRtree
from shapely.geometry import box

from .cost import CostModel, DistanceMetric
from .errors import DegenerateGeometryError, DuplicateNodeError
from .graph import Edge, Node, NodeId, NodeKind, Portal
from .vector import Precision, Vec3

LOGGER = logging.getLogger(__name__)

PairFilter = Callable[[Node, Node], bool]


@dataclass(frozen=True, slots=True)
class FreeCell:
    """Rectangle ``[min_x, max_x] x [min_y, max_y]`` at height ``z``."""

    min_x: float
    min_y: float
    max_x: float
    max_y: float
    cost: float = 1.0
    z: float = 0.0

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        return (self.min_x, self.min_y, self.max_x, self.max_y)

    @property
    def center(self) -> Vec3:
        return Vec3((self.min_x + self.max_x) * 0.5, (self.min_y + self.max_y) * 0.5, self.z)

    def to_json_list(self) -> List[float]:
        return [self.min_x, self.min_y, self.max_x, self.max_y, self.cost, self.z]


def _bounds(node: Node) -> Tuple[float, float, float, float]:
    return tuple(node.metadata["bounds"])


def _contact(a: Node, b: Node, tolerance: float) -> Tuple[str, Optional[Portal]]:
    """Classify how two cells touch: ``overlap``, ``edge``, ``corner`` or ``none``."""

    ax0, ay0, ax1, ay1 = _bounds(a)
    bx0, by0, bx1, by1 = _bounds(b)
    ox = min(ax1, bx1) - max(ax0, bx0)
    oy = min(ay1, by1) - max(ay0, by0)
    z = (a.position.z + b.position.z) * 0.5
    if ox > tolerance and oy > tolerance:
        return "overlap", None
    if abs(ox) <= tolerance and oy > tolerance:
        x = max(ax0, bx0)
        return "edge", Portal(Vec3(x, max(ay0, by0), z), Vec3(x, min(ay1, by1), z))
    if ox > tolerance and abs(oy) <= tolerance:
        y = max(ay0, by0)
        return "edge", Portal(Vec3(max(ax0, bx0), y, z), Vec3(min(ax1, bx1), y, z))
    if abs(ox) <= tolerance and abs(oy) <= tolerance:
        corner = Vec3(max(ax0, bx0), max(ay0, by0), z)
        return "corner", Portal(corner, corner)
    return "none", None


@dataclass(slots=True)
class FreeGrid:
    kind: ClassVar[str] = "freegrid"
    directed: ClassVar[bool] = False
    heuristic_kind: ClassVar[str] = "distance"

    cells: List[FreeCell]
    neighbors: Literal["4", "8"] = "4"
    metric: DistanceMetric = "euclidean"
    accept: Optional[PairFilter] = field(default=None, compare=False)
    """Optional veto over candidate pairs: ``accept(node_a, node_b) -> bool``."""

    def __post_init__(self) -> None:
        self.cells = [c if isinstance(c, FreeCell) else FreeCell(*c) for c in self.cells]
        if self.neighbors not in ("4", "8"):
            raise ValueError(f"Free grid neighbor rule must be '4' or '8', got {self.neighbors!r}")

    def _pairs(self, nodes: Sequence[Node], tolerance: float) -> Iterator[Tuple[Node, Node, str, Optional[Portal]]]:
        # Grow each query box by the tolerance so exact contacts are candidates.
        boxes = [box(*_bounds(node)) for node in nodes]
        tree = STRtree(boxes)
        for i, node in enumerate(nodes):
            x0, y0, x1, y1 = _bounds(node)
            query_box = box(x0 - tolerance, y0 - tolerance, x1 + tolerance, y1 + tolerance)
            for j in sorted(int(k) for k in tree.query(query_box)):
                if j <= i:
                    continue
                other = nodes[j]
                contact, portal = _contact(node, other, tolerance)
                yield node, other, contact, portal

    def produce_nodes(self, tolerance: float, precision: Precision) -> List[Node]:
        nodes: List[Node] = []
        for index, cell in enumerate(self.cells):
            low = Vec3(cell.min_x, cell.min_y, cell.z).quantize(precision)
            high = Vec3(cell.max_x, cell.max_y, cell.z).quantize(precision)
            width, height = high.x - low.x, high.y - low.y
            if not (math.isfinite(width) and math.isfinite(height)) or width <= tolerance or height <= tolerance:
                raise DegenerateGeometryError(f"Cell {index} has zero area: {cell.bounds}")
            if not math.isfinite(cell.cost) or cell.cost < 0:
                raise DegenerateGeometryError(f"Cell {index} has invalid cost {cell.cost!r}")
            nodes.append(
                Node(
                    id=index,
                    kind=NodeKind.CELL,
                    position=cell.center.quantize(precision),
                    vertices=(low, Vec3(high.x, low.y, low.z), high, Vec3(low.x, high.y, low.z)),
                    cost=float(cell.cost),
                    metadata={"bounds": [low.x, low.y, high.x, high.y]},
                )
            )

        for a, b, contact, _ in self._pairs(nodes, tolerance):
            if contact != "overlap":
                continue
            if all(abs(p - q) <= tolerance for p, q in zip(_bounds(a), _bounds(b))):
                raise DuplicateNodeError(f"Cells {a.id} and {b.id} are identical")
            area = box(*_bounds(a)).intersection(box(*_bounds(b))).area
            raise DegenerateGeometryError(f"Cells {a.id} and {b.id} overlap (area {area:.6g})")
        return nodes

    def _links(self, nodes: Sequence[Node], tolerance: float) -> Iterator[Tuple[Node, Node, Portal]]:
        for a, b, contact, portal in self._pairs(nodes, tolerance):
            if contact == "edge" or (contact == "corner" and self.neighbors == "8"):
                if self.accept is not None and not self.accept(a, b):
                    LOGGER.debug("Pair %d-%d vetoed by accept filter", a.id, b.id)
                    continue
                yield a, b, portal

    def produce_edges(self, nodes: Sequence[Node], tolerance: float) -> List[Edge]:
        model = CostModel(distance_metric=self.metric, combine="mean")
        return [Edge(a.id, b.id, model.edge_cost(a, b)) for a, b, _ in self._links(nodes, tolerance)]

    def produce_portals(self, nodes: Sequence[Node], tolerance: float) -> Dict[Tuple[NodeId, NodeId], Portal]:
        return {(a.id, b.id): portal for a, b, portal in self._links(nodes, tolerance)}

    # -- serialization -----------------------------------------------------

    def to_json_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "cells": [c.to_json_list() for c in self.cells],
            "neighbors": self.neighbors,
            "metric": self.metric,
        }

    @classmethod
    def from_json_dict(cls, payload: Mapping[str, Any]) -> "FreeGrid":
        return cls(
            cells=[FreeCell(*(float(v) for v in c)) for c in payload["cells"]],
            neighbors=str(payload.get("neighbors", "4")),
            metric=payload.get("metric", "euclidean"),
        )


__all__ = ["FreeCell", "FreeGrid", "PairFilter"]
