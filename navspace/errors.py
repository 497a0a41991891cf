"""Exception taxonomy for navspace."""

from __future__ import annotations

from typing import Any, Optional


class NavError(Exception):
    """Base class for every error raised by navspace."""


class BuildError(NavError):
    """Raised when raw geometry cannot be turned into a connectivity graph."""


class DegenerateGeometryError(BuildError):
    """Zero-area triangles or cells, bad indices, or overlapping cells."""


class DuplicateNodeError(BuildError):
    """Two nodes share an id or a position within tolerance."""


class InvalidEdgeError(BuildError):
    """Negative or non-finite cost, dangling reference, or self loop."""


class NodeNotFoundError(LookupError):
    """Raised when a query references a node missing from the graph."""

    def __init__(self, node: Any) -> None:
        super().__init__(f"Node not found in graph: {node!r}")
        self.node = node


class SearchError(NavError):
    """Base class for failed path queries."""

    def __init__(self, message: str, *, expanded: int = 0) -> None:
        super().__init__(message)
        self.expanded = expanded


class UnreachableError(SearchError):
    """No path connects start and goal."""

    def __init__(self, start: Any, goal: Any, *, expanded: int = 0) -> None:
        super().__init__(f"No path from {start!r} to {goal!r}", expanded=expanded)
        self.start = start
        self.goal = goal


class SearchTimeoutError(SearchError):
    """Search budget (expansions or wall-clock) exhausted before reaching the goal."""

    def __init__(self, reason: str, *, expanded: int = 0, limit: Optional[int] = None) -> None:
        super().__init__(f"Search aborted: {reason} (expanded={expanded}, limit={limit})", expanded=expanded)
        self.reason = reason
        self.limit = limit


class IslandError(NavError):
    """Base class for rejected island-manager requests."""


class InvalidEndpointError(IslandError):
    """A bridge endpoint is unknown, or both endpoints are the same node."""


class InvalidBridgeCostError(IslandError):
    """A bridge cost is negative or not finite."""


__all__ = [
    "BuildError",
    "DegenerateGeometryError",
    "DuplicateNodeError",
    "InvalidBridgeCostError",
    "InvalidEdgeError",
    "InvalidEndpointError",
    "IslandError",
    "NavError",
    "NodeNotFoundError",
    "SearchError",
    "SearchTimeoutError",
    "UnreachableError",
]
