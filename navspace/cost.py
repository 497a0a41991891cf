"""Cost and heuristic utilities for navspace."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Literal, Optional

from .graph import GraphProvider, Node, NodeId
from .vector import Vec3

DistanceMetric = Literal["euclidean", "manhattan"]
CostCombine = Literal["product", "mean"]

Heuristic = Callable[[NodeId, NodeId], float]
"""Estimate of the remaining cost from a node to the goal node."""

CostFn = Callable[[Node, Node, float], float]
"""Caller-supplied edge cost: ``(node_a, node_b, distance) -> cost``."""


def euclidean(a: Vec3, b: Vec3) -> float:
    return a.distance(b)


def manhattan(a: Vec3, b: Vec3) -> float:
    return abs(a.x - b.x) + abs(a.y - b.y) + abs(a.z - b.z)


_METRICS = {
    "euclidean": euclidean,
    "manhattan": manhattan,
}


def metric(name: DistanceMetric) -> Callable[[Vec3, Vec3], float]:
    try:
        return _METRICS[name]
    except KeyError:
        raise ValueError(f"Unknown distance metric: {name!r}") from None


@dataclass(slots=True)
class CostModel:
    """Provides deterministic edge costs for the representation adapters.

    Region cost multipliers are combined either as a product (mesh areas)
    or as a mean (grid cells). A ``cost_fn`` replaces the whole rule.
    """

    distance_metric: DistanceMetric = "euclidean"
    """Distance between the two node positions."""

    combine: CostCombine = "product"
    """How the two nodes' cost multipliers scale the distance."""

    cost_fn: Optional[CostFn] = None
    """Optional override receiving both nodes and their distance."""

    def distance(self, a: Vec3, b: Vec3) -> float:
        return metric(self.distance_metric)(a, b)

    def edge_cost(self, a: Node, b: Node) -> float:
        """Return the traversal cost between two positioned nodes."""

        distance = self.distance(a.position, b.position)
        if self.cost_fn is not None:
            return self.cost_fn(a, b, distance)
        if self.combine == "mean":
            return distance * (a.cost + b.cost) * 0.5
        return distance * a.cost * b.cost


def zero_heuristic(_node: NodeId, _goal: NodeId) -> float:
    """Heuristic for graphs without an admissible spatial estimate."""

    return 0.0


class DistanceHeuristic:
    """Straight-line distance scaled by the cheapest cost per unit length.

    ``scale`` is the minimum of ``cost / |p(u) - p(v)|`` over every edge the
    provider can traverse, so ``scale * |p(n) - p(goal)|`` never exceeds the
    true remaining cost regardless of cost multipliers, metrics or bridges.
    """

    __slots__ = ("_provider", "scale")

    def __init__(self, provider: GraphProvider, scale: Optional[float] = None) -> None:
        self._provider = provider
        self.scale = provider.cost_ratio() if scale is None else scale

    def __call__(self, node: NodeId, goal: NodeId) -> float:
        if not self.scale:
            return 0.0
        a = self._provider.position(node)
        b = self._provider.position(goal)
        if a is None or b is None:
            return 0.0
        return a.distance(b) * self.scale


def default_heuristic(provider: GraphProvider) -> Heuristic:
    """Pick the heuristic named by ``provider.heuristic_kind``.

    A ``"distance"`` provider without a finite cost ratio (some node lacks a
    position, or every edge has zero length) still falls back to zero.
    """

    if provider.heuristic_kind == "zero" or provider.cost_ratio() is None:
        return zero_heuristic
    return DistanceHeuristic(provider)


__all__ = [
    "CostFn",
    "CostModel",
    "DistanceHeuristic",
    "DistanceMetric",
    "Heuristic",
    "default_heuristic",
    "euclidean",
    "manhattan",
    "metric",
    "zero_heuristic",
]
