"""Path-related data models and polyline utilities for navspace.

`PathResult` is deliberately JSON-friendly so that callers can serialize it
via the provided :meth:`PathResult.to_json_dict` helper without losing
fidelity.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .graph import NodeId
from .vector import ZERO_THRESHOLD, Vec3, polyline_length


@dataclass(slots=True)
class PathResult:
    """Outcome of a successful path query."""

    waypoints: List[Vec3]
    """World-space polyline; a single point for a trivial path."""

    cost: float
    """Accumulated traversal cost along the node path."""

    nodes: List[NodeId] = field(default_factory=list)
    """Traversed graph nodes in order."""

    expanded: int = 0
    """Total node expansions performed by the search."""

    bridges: List[int] = field(default_factory=list)
    """Ids of the bridges crossed, in traversal order."""

    @property
    def is_empty(self) -> bool:
        """``True`` when the result carries no path at all."""

        return not self.waypoints and not self.nodes

    @property
    def length(self) -> float:
        """Geometric length of the waypoint polyline."""

        return polyline_length(self.waypoints)

    def to_json_dict(self) -> Dict[str, Any]:
        """Return a JSON-serializable dictionary representation."""

        return {
            "waypoints": [list(p.to_tuple()) for p in self.waypoints],
            "cost": self.cost,
            "nodes": list(self.nodes),
            "expanded": self.expanded,
            "bridges": list(self.bridges),
        }


def path_length(path: Sequence[Vec3]) -> float:
    """Return the sum of segment lengths of ``path``."""

    return polyline_length(path)


def _point_on_segment(a: Vec3, b: Vec3, point: Vec3) -> Tuple[Vec3, float]:
    d = a.distance(b)
    t = point.project(a, b)
    if t <= 0.0:
        return a, 0.0
    if t >= 1.0:
        return b, d
    return a.lerp(b, t), t * d


def project_on_path(path: Sequence[Vec3], point: Vec3, offset: float = 0.0) -> float:
    """Return the distance along ``path`` of the point closest to ``point``.

    ``offset`` is added to the projected distance and the result is clamped
    to ``[0, path_length(path)]``.
    """

    if len(path) < 2:
        projected = 0.0
    else:
        best: Optional[Tuple[float, float]] = None
        walked = 0.0
        for a, b in zip(path, path[1:]):
            closest, along = _point_on_segment(a, b, point)
            candidate = ((closest - point).sqr_length(), walked + along)
            if best is None or candidate[0] < best[0]:
                best = candidate
            walked += a.distance(b)
        projected = best[1]
    return min(max(projected + offset, 0.0), path_length(path))


def point_on_path(path: Sequence[Vec3], distance: float) -> Optional[Vec3]:
    """Return the point ``distance`` units along ``path``, or ``None`` past its end."""

    if len(path) < 2:
        return None
    remaining = distance
    for a, b in zip(path, path[1:]):
        d = a.distance(b)
        if remaining <= d + ZERO_THRESHOLD:
            if d <= 0.0:
                return a
            return a.lerp(b, min(max(remaining / d, 0.0), 1.0))
        remaining -= d
    return None


def path_target_point(path: Sequence[Vec3], point: Vec3, offset: float) -> Optional[Tuple[Vec3, float]]:
    """Project ``point`` on ``path``, move ``offset`` along it, return that point and its distance."""

    s = project_on_path(path, point, offset)
    target = point_on_path(path, s)
    if target is None:
        return None
    return target, s


__all__ = [
    "PathResult",
    "path_length",
    "path_target_point",
    "point_on_path",
    "project_on_path",
]
