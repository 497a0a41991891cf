"""A* search implementation for navspace.

Implements deterministic A* using a binary heap with stable tie-breaking and
reconstructs the node path from recorded parent links. Respects
``max_expansions`` and ``timeout_ms`` between expansions.
"""

from __future__ import annotations

import heapq
import itertools
import logging
import time
from dataclasses import dataclass, field
from math import inf
from typing import Callable, Dict, List, Optional, Tuple

from .cost import Heuristic, zero_heuristic
from .errors import NodeNotFoundError, SearchTimeoutError, UnreachableError
from .graph import Edge, GraphProvider, NodeId
from .islands import IslandManager
from .options import NavOptions
from .path import PathResult

LOGGER = logging.getLogger(__name__)

EdgeFilter = Callable[[Edge], bool]
"""Query-time predicate; edges for which it returns ``False`` are not traversed."""


@dataclass(slots=True)
class _QueueItem:
    f: float
    h: float
    g: float
    seq: int
    node: NodeId

    def key(self) -> Tuple[float, float, int, float, NodeId]:
        # Deterministic ordering: lowest f, then lowest h, then most recently relaxed.
        return (self.f, self.h, -self.seq, self.g, self.node)


@dataclass(slots=True)
class SearchOutcome:
    """Raw result of :func:`astar`; ``reason`` is set when no path was produced."""

    nodes: Optional[List[NodeId]]
    edges: List[Edge] = field(default_factory=list)
    cost: float = 0.0
    reason: Optional[str] = None
    expanded: int = 0


def astar(
    start: NodeId,
    goal: NodeId,
    graph: GraphProvider,
    heuristic: Heuristic = zero_heuristic,
    options: Optional[NavOptions] = None,
    edge_filter: Optional[EdgeFilter] = None,
) -> SearchOutcome:
    """Run A* from ``start`` to ``goal`` over ``graph``.

    Returns a :class:`SearchOutcome` with the node path and traversed edges,
    or ``reason`` set to ``"unreachable"``, ``"timeout"`` or
    ``"max-expansions"``. Edges rejected by ``edge_filter`` are skipped.
    """

    opts = options or NavOptions()

    if start == goal:
        return SearchOutcome(nodes=[start], edges=[], cost=0.0, reason=None, expanded=0)

    start_time = time.monotonic_ns()
    timeout_ns = int(opts.timeout_ms) * 1_000_000

    g_score: Dict[NodeId, float] = {start: 0.0}
    parent: Dict[NodeId, Tuple[NodeId, Edge]] = {}

    counter = itertools.count()
    start_h = heuristic(start, goal)
    open_heap = [_QueueItem(f=start_h, h=start_h, g=0.0, seq=next(counter), node=start).key()]

    expanded = 0

    while open_heap:
        if timeout_ns and (time.monotonic_ns() - start_time) >= timeout_ns:
            return SearchOutcome(nodes=None, reason="timeout", expanded=expanded)

        _, _, _, g, current = heapq.heappop(open_heap)
        if g != g_score.get(current, inf):
            continue

        if current == goal:
            nodes, edges = _reconstruct(current, parent)
            return SearchOutcome(nodes=nodes, edges=edges, cost=g, reason=None, expanded=expanded)

        expanded += 1
        if expanded > opts.max_expansions:
            return SearchOutcome(nodes=None, reason="max-expansions", expanded=expanded)

        for edge in graph.neighbors(current):
            if edge_filter is not None and not edge_filter(edge):
                continue
            neighbor = edge.target
            tentative_g = g + edge.cost
            if tentative_g >= g_score.get(neighbor, inf):
                continue

            g_score[neighbor] = tentative_g
            parent[neighbor] = (current, edge)

            nh = heuristic(neighbor, goal)
            item = _QueueItem(f=tentative_g + nh, h=nh, g=tentative_g, seq=next(counter), node=neighbor)
            heapq.heappush(open_heap, item.key())

    return SearchOutcome(nodes=None, reason="unreachable", expanded=expanded)


def _reconstruct(end: NodeId, parent: Dict[NodeId, Tuple[NodeId, Edge]]) -> Tuple[List[NodeId], List[Edge]]:
    rev_nodes: List[NodeId] = [end]
    rev_edges: List[Edge] = []
    cur = end
    while cur in parent:
        prev, edge = parent[cur]
        rev_nodes.append(prev)
        rev_edges.append(edge)
        cur = prev
    rev_nodes.reverse()
    rev_edges.reverse()
    return rev_nodes, rev_edges


def find_path(
    graph: GraphProvider,
    start: NodeId,
    goal: NodeId,
    heuristic: Heuristic = zero_heuristic,
    options: Optional[NavOptions] = None,
    islands: Optional[IslandManager] = None,
    edge_filter: Optional[EdgeFilter] = None,
) -> PathResult:
    """Find the cheapest node path or raise a :class:`~navspace.errors.SearchError`.

    When ``islands`` is given and the graph is undirected, start and goal on
    different islands fail immediately with zero expansions. ``edge_filter``
    vetoes edges (bridges included) for this query only.
    """

    for node in (start, goal):
        if not graph.has_node(node):
            raise NodeNotFoundError(node)

    if start == goal:
        position = graph.position(start)
        return PathResult(waypoints=[position] if position is not None else [], cost=0.0, nodes=[start], expanded=0)

    if islands is not None and not graph.directed and not islands.are_connected(start, goal):
        LOGGER.debug("Island fast check: %s and %s on different islands", start, goal)
        raise UnreachableError(start, goal, expanded=0)

    opts = options or NavOptions()
    outcome = astar(start, goal, graph, heuristic, opts, edge_filter)
    if outcome.reason == "unreachable":
        raise UnreachableError(start, goal, expanded=outcome.expanded)
    if outcome.reason == "timeout":
        raise SearchTimeoutError("timeout", expanded=outcome.expanded, limit=opts.timeout_ms)
    if outcome.reason == "max-expansions":
        raise SearchTimeoutError("max-expansions", expanded=outcome.expanded, limit=opts.max_expansions)

    waypoints = [p for p in (graph.position(n) for n in outcome.nodes) if p is not None]
    return PathResult(
        waypoints=waypoints,
        cost=outcome.cost,
        nodes=outcome.nodes,
        expanded=outcome.expanded,
        bridges=[e.bridge for e in outcome.edges if e.bridge is not None],
    )


__all__ = ["EdgeFilter", "SearchOutcome", "astar", "find_path"]
