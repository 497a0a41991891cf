"""Path refinement: funnel (string pulling) and portal midpoints.

Portals are oriented left/right as seen from the node being left, in the
plane orthogonal to the configured up axis. Waypoints keep their full 3D
coordinates. Bridge edges carry no portal; a path crossing one is split
there and each corridor is refined on its own.
"""

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

from .graph import Node, Portal
from .options import PathMode
from .vector import ZERO_THRESHOLD, UpAxis, Vec3, dedup_consecutive

Oriented = Tuple[Vec3, Vec3]


def _area(a: Vec3, b: Vec3, c: Vec3, up_axis: UpAxis) -> float:
    """Twice the signed plan-view area of ``a, b, c``; positive when ``c`` is left of ``a -> b``."""

    ax, ay = a.planar(up_axis)
    bx, by = b.planar(up_axis)
    cx, cy = c.planar(up_axis)
    return (bx - ax) * (cy - ay) - (by - ay) * (cx - ax)


def orient_portal(portal: Portal, origin: Vec3, up_axis: UpAxis = "z") -> Oriented:
    """Return ``(left, right)`` endpoints of ``portal`` seen from ``origin``."""

    if _area(origin, portal.a, portal.b, up_axis) > 0.0:
        return portal.b, portal.a
    return portal.a, portal.b


def string_pull(start: Vec3, end: Vec3, portals: Sequence[Oriented], up_axis: UpAxis = "z") -> List[Vec3]:
    """Shortest taut polyline from ``start`` to ``end`` through oriented portals."""

    gates: List[Oriented] = [(start, start), *portals, (end, end)]
    path = [start]
    apex = left = right = start
    apex_i = left_i = right_i = 0
    i = 1
    while i < len(gates):
        gate_left, gate_right = gates[i]

        if _area(apex, right, gate_right, up_axis) >= 0.0:
            if apex.same_as(right) or _area(apex, left, gate_right, up_axis) < 0.0:
                right, right_i = gate_right, i
            else:
                path.append(left)
                apex, apex_i = left, left_i
                left = right = apex
                left_i = right_i = apex_i
                i = apex_i + 1
                continue

        if _area(apex, left, gate_left, up_axis) <= 0.0:
            if apex.same_as(left) or _area(apex, right, gate_left, up_axis) > 0.0:
                left, left_i = gate_left, i
            else:
                path.append(right)
                apex, apex_i = right, right_i
                left = right = apex
                left_i = right_i = apex_i
                i = apex_i + 1
                continue

        i += 1

    path.append(end)
    return dedup_consecutive(path)


def _segment_crossing(p: Vec3, q: Vec3, portal: Portal, up_axis: UpAxis) -> Optional[Tuple[float, float]]:
    """Return ``(s, t)`` where plan-view segment ``p q`` crosses the portal, if it does."""

    px, py = p.planar(up_axis)
    qx, qy = q.planar(up_axis)
    ax, ay = portal.a.planar(up_axis)
    bx, by = portal.b.planar(up_axis)
    rx, ry = qx - px, qy - py
    sx, sy = bx - ax, by - ay
    denom = rx * sy - ry * sx
    if abs(denom) <= ZERO_THRESHOLD * ZERO_THRESHOLD:
        return None
    s = ((ax - px) * sy - (ay - py) * sx) / denom
    t = ((ax - px) * ry - (ay - py) * rx) / denom
    eps = ZERO_THRESHOLD
    if -eps <= s <= 1.0 + eps and -eps <= t <= 1.0 + eps:
        return s, min(max(t, 0.0), 1.0)
    return None


def follow_surface(
    waypoints: List[Vec3],
    nodes: Sequence[Node],
    portals: Sequence[Portal],
    up_axis: UpAxis = "z",
) -> List[Vec3]:
    """Insert a point on every crossed portal where the surface bends.

    Only triangle nodes have normals; flat corridors are returned unchanged.
    """

    if len(waypoints) < 2:
        return waypoints
    out = [waypoints[0]]
    k = 0
    for i, portal in enumerate(portals):
        n, m = nodes[i].normal, nodes[i + 1].normal
        if n is None or m is None or n.dot(m) >= 1.0 - ZERO_THRESHOLD:
            continue
        while k < len(waypoints) - 1:
            hit = _segment_crossing(waypoints[k], waypoints[k + 1], portal, up_axis)
            if hit is not None:
                s, t = hit
                if ZERO_THRESHOLD < s < 1.0 - ZERO_THRESHOLD:
                    out.append(portal.a.lerp(portal.b, t))
                break
            k += 1
            out.append(waypoints[k])
    out.extend(waypoints[k + 1:])
    return dedup_consecutive(out)


def _corridors(
    nodes: Sequence[Node], portals: Sequence[Optional[Portal]], start: Vec3, end: Vec3
) -> List[Tuple[Vec3, Vec3, int, int]]:
    """Split the node path at portal-less edges into ``(from, to, first, last)`` corridors."""

    out = []
    first = 0
    seg_start = start
    for i, portal in enumerate(portals):
        if portal is None:
            out.append((seg_start, nodes[i].position, first, i))
            first = i + 1
            seg_start = nodes[i + 1].position
    out.append((seg_start, end, first, len(nodes) - 1))
    return out


def refine(
    node_path: Sequence[Node],
    portals: Sequence[Optional[Portal]],
    start: Vec3,
    end: Vec3,
    up_axis: UpAxis = "z",
    mode: PathMode = PathMode.ACCURACY,
) -> List[Vec3]:
    """Turn a node path into a waypoint polyline.

    ``portals[i]`` is the portal between ``node_path[i]`` and
    ``node_path[i + 1]`` or ``None`` when that edge has none (grid
    adjacency, bridges). Paths without any portal are returned as the
    node positions unchanged.
    """

    if len(node_path) <= 1:
        if start.same_as(end):
            return [start]
        return [start, end]
    if len(portals) != len(node_path) - 1:
        raise ValueError(f"Expected {len(node_path) - 1} portals, got {len(portals)}")
    if all(portal is None for portal in portals):
        return [node.position for node in node_path if node.position is not None]

    out: List[Vec3] = []
    for seg_start, seg_end, first, last in _corridors(node_path, portals, start, end):
        seg_nodes = node_path[first:last + 1]
        seg_portals = [p for p in portals[first:last]]
        if mode is PathMode.MIDPOINTS:
            points = [seg_start, *(p.midpoint for p in seg_portals), seg_end]
        else:
            oriented = [orient_portal(p, n.position, up_axis) for p, n in zip(seg_portals, seg_nodes)]
            points = string_pull(seg_start, seg_end, oriented, up_axis)
            points = follow_surface(points, seg_nodes, seg_portals, up_axis)
        out.extend(points)
    return dedup_consecutive(out)


def midpoints(
    node_path: Sequence[Node],
    portals: Sequence[Optional[Portal]],
    start: Vec3,
    end: Vec3,
) -> List[Vec3]:
    """Polyline through the midpoint of every crossed portal."""

    return refine(node_path, portals, start, end, mode=PathMode.MIDPOINTS)


__all__ = ["follow_surface", "midpoints", "orient_portal", "refine", "string_pull"]
