"""Engine configuration data models for navspace."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from .vector import Precision, UpAxis

DEFAULT_MAX_EXPANSIONS = 250_000_000
DEFAULT_TIMEOUT_MS = 0
DEFAULT_TOLERANCE = 1e-6


class PathMode(str, Enum):
    """Quality of the refined path."""

    ACCURACY = "accuracy"
    """Shortest taut polyline through portals (funnel)."""

    MIDPOINTS = "midpoints"
    """Polyline through the midpoint of every crossed portal."""


class NavQuery(str, Enum):
    """Quality of locating a position on the navigable space."""

    ACCURACY = "accuracy"
    """Exact closest point over every node."""

    CLOSEST = "closest"
    """Closest node in plan view, refined in 3D."""

    CLOSEST_FIRST = "closest-first"
    """First node whose plan-view bounds contain the position."""


@dataclass(slots=True)
class NavOptions:
    """Configuration passed explicitly to graphs and navigation spaces.

    One instance governs one graph; several spaces with different settings
    may coexist. Serialize with :meth:`to_json_dict`.
    """

    precision: Precision = "double"
    """Coordinate width for the whole graph: ``"single"`` or ``"double"``."""

    tolerance: float = DEFAULT_TOLERANCE
    """Coordinate deduplication and portal matching tolerance."""

    parallel: bool = False
    """Run batched queries on a thread pool when ``True``."""

    max_workers: Optional[int] = None
    """Thread pool size for parallel queries; ``None`` lets the executor decide."""

    max_expansions: int = DEFAULT_MAX_EXPANSIONS
    """Maximum node expansions before a query fails with ``reason="max-expansions"``."""

    timeout_ms: int = DEFAULT_TIMEOUT_MS
    """Wall-clock budget per query in milliseconds; ``0`` disables the deadline."""

    path_mode: PathMode = PathMode.ACCURACY
    """Path refinement quality."""

    query: NavQuery = NavQuery.CLOSEST
    """Position lookup quality."""

    up_axis: UpAxis = "z"
    """Axis treated as height when refining paths in plan view."""

    extras: Dict[str, Any] = field(default_factory=dict)
    """Arbitrary additional flags kept for forward compatibility."""

    def __post_init__(self) -> None:
        if self.precision not in ("single", "double"):
            raise ValueError(f"precision must be 'single' or 'double', got {self.precision!r}")
        if self.tolerance < 0:
            raise ValueError(f"tolerance must be non-negative, got {self.tolerance!r}")
        if self.max_expansions <= 0:
            raise ValueError(f"max_expansions must be positive, got {self.max_expansions!r}")
        if self.timeout_ms < 0:
            raise ValueError(f"timeout_ms must be non-negative, got {self.timeout_ms!r}")
        if self.up_axis not in ("x", "y", "z"):
            raise ValueError(f"up_axis must be one of x, y, z, got {self.up_axis!r}")
        self.path_mode = PathMode(self.path_mode)
        self.query = NavQuery(self.query)

    def to_json_dict(self) -> Dict[str, Any]:
        """Return a JSON-serializable dictionary representation."""

        return {
            "precision": self.precision,
            "tolerance": self.tolerance,
            "parallel": self.parallel,
            "max_workers": self.max_workers,
            "max_expansions": self.max_expansions,
            "timeout_ms": self.timeout_ms,
            "path_mode": self.path_mode.value,
            "query": self.query.value,
            "up_axis": self.up_axis,
            "extras": dict(self.extras),
        }

    @classmethod
    def from_json_dict(cls, payload: Dict[str, Any]) -> "NavOptions":
        known = {name for name in cls.__dataclass_fields__}
        return cls(**{key: value for key, value in payload.items() if key in known})
