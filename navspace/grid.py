"""Uniform grid representation.

Occupied cells are nodes positioned at their centers. Adjacency follows a
4-, 8- or custom offset rule; edge cost is the metric distance between
centers scaled by the mean of both cells' cost multipliers. Grids carry no
portals, so refined paths are the cell centers themselves.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, ClassVar, Dict, List, Mapping, Sequence, Tuple, Union

import numpy as np

from .cost import CostModel, DistanceMetric
from .errors import DegenerateGeometryError, DuplicateNodeError, InvalidEdgeError
from .graph import Edge, Node, NodeId, NodeKind
from .vector import Precision, Vec3

LOGGER = logging.getLogger(__name__)

Coord = Tuple[int, int]
Offsets = Sequence[Coord]

FOUR: Tuple[Coord, ...] = ((1, 0), (0, 1), (-1, 0), (0, -1))
EIGHT: Tuple[Coord, ...] = FOUR + ((1, 1), (-1, 1), (-1, -1), (1, -1))


def offsets_for(rule: Union[str, Offsets]) -> Tuple[Coord, ...]:
    """Resolve ``"4"``, ``"8"`` or an explicit offset sequence."""

    if isinstance(rule, str):
        if rule == "4":
            return FOUR
        if rule == "8":
            return EIGHT
        raise ValueError(f"Unknown neighbor rule: {rule!r}")
    out = []
    for dx, dy in rule:
        if (dx, dy) == (0, 0):
            raise ValueError("Neighbor offset (0, 0) would create a self loop")
        out.append((int(dx), int(dy)))
    return tuple(out)


@dataclass(frozen=True, slots=True)
class GridCell:
    """Occupied cell at integer coordinate ``(x, y)``."""

    x: int
    y: int
    cost: float = 1.0

    @property
    def coord(self) -> Coord:
        return (self.x, self.y)


@dataclass(slots=True)
class UniformGrid:
    kind: ClassVar[str] = "grid"
    heuristic_kind: ClassVar[str] = "distance"

    cells: List[GridCell]
    cell_size: float = 1.0
    origin: Vec3 = Vec3(0.0, 0.0, 0.0)
    """World position of the corner of cell ``(0, 0)``."""

    neighbors: Union[str, Offsets] = "4"
    metric: DistanceMetric = "euclidean"
    allow_corner_cutting: bool = False
    """Allow diagonal moves past a missing orthogonal neighbor."""

    one_way: Sequence[Tuple[Coord, Coord]] = ()
    """``(from, to)`` pairs traversable only in that direction."""

    def __post_init__(self) -> None:
        self.cells = [c if isinstance(c, GridCell) else GridCell(*c) for c in self.cells]
        self.origin = Vec3.of(self.origin)
        self.one_way = [(tuple(a), tuple(b)) for a, b in self.one_way]

    @property
    def directed(self) -> bool:
        return bool(self.one_way)

    @classmethod
    def from_mask(cls, mask: Any, **kwargs: Any) -> "UniformGrid":
        """Build a grid from a 2D array indexed ``[y][x]``.

        Boolean masks mark walkable cells; numeric masks give each non-zero
        cell its cost multiplier.
        """

        array = np.asarray(mask)
        if array.ndim != 2:
            raise ValueError(f"Grid mask must be 2D, got shape {array.shape}")
        cells = []
        for y, x in np.argwhere(array):
            value = array[y, x]
            cost = 1.0 if array.dtype == np.bool_ else float(value)
            cells.append(GridCell(int(x), int(y), cost))
        return cls(cells, **kwargs)

    def center(self, coord: Coord) -> Vec3:
        x, y = coord
        size = self.cell_size
        return self.origin + Vec3((x + 0.5) * size, (y + 0.5) * size, 0.0)

    def coord_of(self, position: Any) -> Coord:
        """Return the cell coordinate containing a world position."""

        local = Vec3.of(position) - self.origin
        return (math.floor(local.x / self.cell_size), math.floor(local.y / self.cell_size))

    # -- capability interface ---------------------------------------------

    def produce_nodes(self, tolerance: float, precision: Precision) -> List[Node]:
        if not self.cell_size > 0 or not math.isfinite(self.cell_size):
            raise DegenerateGeometryError(f"cell_size must be positive, got {self.cell_size!r}")
        seen: Dict[Coord, int] = {}
        nodes: List[Node] = []
        size = self.cell_size
        for index, cell in enumerate(self.cells):
            if cell.coord in seen:
                raise DuplicateNodeError(f"Cell {cell.coord} listed twice (entries {seen[cell.coord]} and {index})")
            if not math.isfinite(cell.cost) or cell.cost < 0:
                raise DegenerateGeometryError(f"Cell {cell.coord} has invalid cost {cell.cost!r}")
            seen[cell.coord] = index
            low = self.origin + Vec3(cell.x * size, cell.y * size, 0.0)
            corners = (
                low,
                low + Vec3(size, 0.0, 0.0),
                low + Vec3(size, size, 0.0),
                low + Vec3(0.0, size, 0.0),
            )
            nodes.append(
                Node(
                    id=index,
                    kind=NodeKind.CELL,
                    position=self.center(cell.coord).quantize(precision),
                    vertices=tuple(c.quantize(precision) for c in corners),
                    coord=cell.coord,
                    cost=float(cell.cost),
                    metadata={"bounds": [low.x, low.y, low.x + size, low.y + size]},
                )
            )
        return nodes

    def produce_edges(self, nodes: Sequence[Node], tolerance: float) -> List[Edge]:
        by_coord: Dict[Coord, Node] = {node.coord: node for node in nodes}
        model = CostModel(distance_metric=self.metric, combine="mean")
        blocked = set()
        for a, b in self.one_way:
            if a not in by_coord or b not in by_coord:
                raise InvalidEdgeError(f"One-way link {a} -> {b} references a missing cell")
            blocked.add((by_coord[b].id, by_coord[a].id))

        out: List[Edge] = []
        linked = set()
        for node in nodes:
            x, y = node.coord
            for dx, dy in offsets_for(self.neighbors):
                other = by_coord.get((x + dx, y + dy))
                if other is None:
                    continue
                if abs(dx) == 1 and abs(dy) == 1 and not self.allow_corner_cutting:
                    if (x + dx, y) not in by_coord or (x, y + dy) not in by_coord:
                        continue
                cost = model.edge_cost(node, other)
                for source, target in ((node.id, other.id), (other.id, node.id)):
                    if (source, target) in blocked or (source, target) in linked:
                        continue
                    if not self.directed and (target, source) in linked:
                        continue
                    linked.add((source, target))
                    out.append(Edge(source, target, cost))

        for a, b in self.one_way:
            if (by_coord[a].id, by_coord[b].id) not in linked:
                raise InvalidEdgeError(f"One-way link {a} -> {b} joins cells that are not neighbors")
        return out

    # -- serialization -----------------------------------------------------

    def to_json_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "cells": [[c.x, c.y, c.cost] for c in self.cells],
            "cell_size": self.cell_size,
            "origin": list(self.origin.to_tuple()),
            "neighbors": self.neighbors if isinstance(self.neighbors, str) else [list(o) for o in self.neighbors],
            "metric": self.metric,
            "allow_corner_cutting": self.allow_corner_cutting,
            "one_way": [[list(a), list(b)] for a, b in self.one_way],
        }

    @classmethod
    def from_json_dict(cls, payload: Mapping[str, Any]) -> "UniformGrid":
        options = {
            "cell_size": float(payload.get("cell_size", 1.0)),
            "origin": Vec3.of(payload.get("origin", (0.0, 0.0, 0.0))),
            "neighbors": payload.get("neighbors", "4"),
            "metric": payload.get("metric", "euclidean"),
            "allow_corner_cutting": bool(payload.get("allow_corner_cutting", False)),
            "one_way": payload.get("one_way", ()),
        }
        if "mask" in payload:
            return cls.from_mask(payload["mask"], **options)
        cells = [GridCell(int(c[0]), int(c[1]), float(c[2]) if len(c) > 2 else 1.0) for c in payload["cells"]]
        return cls(cells, **options)


__all__ = ["EIGHT", "FOUR", "GridCell", "UniformGrid", "offsets_for"]
