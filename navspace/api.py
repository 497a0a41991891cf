"""Public API for navspace.

`NavigationSpace` owns one connectivity graph, its island partition and the
spatial index used to snap positions onto nodes. Searches run in read
phases; rebuilds and bridge changes run in exclusive write phases. Each
query logs one INFO summary metrics line.
"""

from __future__ import annotations

import json
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from . import astar
from .astar import EdgeFilter
from .cost import default_heuristic
from .errors import NavError, NodeNotFoundError, SearchError
from .funnel import refine
from .graph import ConnectivityGraph, NodeId, Portal, SpatialSource, build_graph
from .islands import Bridge, BridgedGraph, BridgeId, IslandId, IslandManager
from .locate import NodeLocator
from .locking import ReadWriteLock
from .options import NavOptions, NavQuery, PathMode
from .path import PathResult
from .vector import Vec3

LOGGER = logging.getLogger(__name__)

FORMAT_VERSION = 1

Query = Tuple[Any, Any]
QueryOutcome = Union[PathResult, NavError, LookupError]


class NavigationSpace:
    """Navigation engine over one spatial representation."""

    def __init__(self, source: Optional[SpatialSource] = None, options: Optional[NavOptions] = None) -> None:
        self.options = options or NavOptions()
        self._lock = ReadWriteLock()
        self._source: Optional[SpatialSource] = None
        self._graph: Optional[ConnectivityGraph] = None
        self._islands: Optional[IslandManager] = None
        self._locator: Optional[NodeLocator] = None
        if source is not None:
            self.rebuild(source)

    @classmethod
    def from_graph(cls, graph: ConnectivityGraph, options: Optional[NavOptions] = None) -> "NavigationSpace":
        """Wrap an already built graph (for example one loaded from JSON)."""

        space = cls(options=options)
        space._install(None, graph, IslandManager(graph))
        return space

    def _install(self, source: Optional[SpatialSource], graph: ConnectivityGraph, islands: IslandManager) -> None:
        locator = NodeLocator(graph, self.options.up_axis)
        with self._lock.write():
            self._source = source
            self._graph = graph
            self._islands = islands
            self._locator = locator

    # -- state -------------------------------------------------------------

    @property
    def source(self) -> Optional[SpatialSource]:
        return self._source

    @property
    def graph(self) -> ConnectivityGraph:
        if self._graph is None:
            raise NavError("NavigationSpace has no graph; call rebuild() first")
        return self._graph

    @property
    def islands(self) -> IslandManager:
        if self._islands is None:
            raise NavError("NavigationSpace has no graph; call rebuild() first")
        return self._islands

    def rebuild(self, source: Optional[SpatialSource] = None) -> ConnectivityGraph:
        """Rebuild graph and islands from ``source`` (default: the current one).

        On :class:`~navspace.errors.BuildError` the previous graph stays in
        place. Active bridges do not survive a rebuild.
        """

        src = source if source is not None else self._source
        if src is None:
            raise ValueError("rebuild() needs a source")
        graph = build_graph(src, options=self.options)
        self._install(src, graph, IslandManager(graph))
        return graph

    # -- queries -----------------------------------------------------------

    def locate(self, position: Any, query: Optional[NavQuery] = None) -> Optional[NodeId]:
        """Return the node at or nearest to ``position``."""

        found = self._closest(position, query)
        return found[0] if found is not None else None

    def closest_point(self, position: Any, query: Optional[NavQuery] = None) -> Optional[Vec3]:
        """Return the closest point on the navigable space to ``position``."""

        found = self._closest(position, query)
        return found[1] if found is not None else None

    def _closest(self, position: Any, query: Optional[NavQuery]) -> Optional[Tuple[NodeId, Vec3]]:
        with self._lock.read():
            if self._locator is None:
                raise NavError("NavigationSpace has no graph; call rebuild() first")
            return self._locator.closest(position, query or self.options.query)

    def find_node_path(
        self,
        start: NodeId,
        goal: NodeId,
        options: Optional[NavOptions] = None,
        edge_filter: Optional[EdgeFilter] = None,
    ) -> PathResult:
        """Cheapest path between two node ids; waypoints are node positions."""

        opts = options or self.options
        with self._lock.read():
            provider = BridgedGraph(self.graph, self.islands)
            return self._search(provider, start, goal, opts, edge_filter)

    def find_path(
        self,
        start: Any,
        goal: Any,
        options: Optional[NavOptions] = None,
        edge_filter: Optional[EdgeFilter] = None,
    ) -> PathResult:
        """Cheapest refined path between two world positions.

        Positions are snapped onto the graph with ``options.query``; the
        waypoint polyline runs from the snapped start to the snapped goal.
        ``edge_filter`` vetoes edges for this query only.
        """

        opts = options or self.options
        with self._lock.read():
            graph = self.graph
            if self._locator is None or len(self._locator) == 0:
                raise NodeNotFoundError(start)
            begin = self._locator.closest(start, opts.query)
            end = self._locator.closest(goal, opts.query)
            if begin is None:
                raise NodeNotFoundError(start)
            if end is None:
                raise NodeNotFoundError(goal)
            provider = BridgedGraph(graph, self.islands)
            result = self._search(provider, begin[0], end[0], opts, edge_filter)

            node_path = [graph.node(n) for n in result.nodes]
            portals: List[Optional[Portal]] = []
            for u, v in zip(result.nodes, result.nodes[1:]):
                edge = graph.edge(u, v)
                portals.append(edge.portal if edge is not None else None)
            result.waypoints = refine(node_path, portals, begin[1], end[1], opts.up_axis, PathMode(opts.path_mode))
            return result

    def _search(
        self,
        provider: BridgedGraph,
        start: NodeId,
        goal: NodeId,
        opts: NavOptions,
        edge_filter: Optional[EdgeFilter] = None,
    ) -> PathResult:
        t0_ns = time.perf_counter_ns()
        reason = "ok"
        expanded = 0
        path_len = 0
        cost = 0.0
        try:
            result = astar.find_path(provider, start, goal, default_heuristic(provider), opts, self.islands, edge_filter)
            expanded, path_len, cost = result.expanded, len(result.nodes), result.cost
            return result
        except SearchError as exc:
            reason = getattr(exc, "reason", "unreachable")
            expanded = exc.expanded
            raise
        except NodeNotFoundError:
            reason = "node-not-found"
            raise
        finally:
            duration_ms = int((time.perf_counter_ns() - t0_ns) / 1_000_000)
            LOGGER.info(
                "find_path metrics: start=%s goal=%s reason=%s expanded=%d path_len=%d cost=%.6g duration_ms=%d",
                start,
                goal,
                reason,
                expanded,
                path_len,
                cost,
                duration_ms,
            )

    def find_paths(
        self,
        queries: Sequence[Query],
        options: Optional[NavOptions] = None,
        edge_filter: Optional[EdgeFilter] = None,
    ) -> List[QueryOutcome]:
        """Run independent position queries, in parallel when enabled.

        Each entry of the returned list is the query's :class:`PathResult`
        or the error it raised, in query order.
        """

        opts = options or self.options

        def run(query: Query) -> QueryOutcome:
            try:
                return self.find_path(query[0], query[1], opts, edge_filter)
            except (NavError, LookupError) as exc:
                return exc

        if not opts.parallel or len(queries) < 2:
            return [run(q) for q in queries]
        with ThreadPoolExecutor(max_workers=opts.max_workers) as pool:
            return list(pool.map(run, queries))

    # -- islands -----------------------------------------------------------

    def island_of(self, node: NodeId) -> IslandId:
        with self._lock.read():
            return self.islands.island_of(node)

    def are_connected(self, a: NodeId, b: NodeId) -> bool:
        with self._lock.read():
            return self.islands.are_connected(a, b)

    def add_bridge(self, a: NodeId, b: NodeId, cost: float) -> BridgeId:
        with self._lock.write():
            return self.islands.add_bridge(a, b, cost)

    def remove_bridge(self, bridge_id: BridgeId) -> None:
        with self._lock.write():
            self.islands.remove_bridge(bridge_id)

    def bridges(self) -> List[Bridge]:
        with self._lock.read():
            return self.islands.bridges()

    # -- persistence -------------------------------------------------------

    def to_json_dict(self) -> Dict[str, Any]:
        """Return options, graph and island state as one JSON-ready dict."""

        with self._lock.read():
            return {
                "version": FORMAT_VERSION,
                "options": self.options.to_json_dict(),
                "graph": self.graph.to_json_dict(),
                "islands": self.islands.to_json_dict(),
            }

    @classmethod
    def from_json_dict(cls, payload: Dict[str, Any], options: Optional[NavOptions] = None) -> "NavigationSpace":
        version = payload.get("version", FORMAT_VERSION)
        if version != FORMAT_VERSION:
            raise ValueError(f"Unsupported navigation space format version {version!r}")
        opts = options or NavOptions.from_json_dict(payload.get("options", {}))
        graph = ConnectivityGraph.from_json_dict(payload["graph"], precision=opts.precision)
        islands = IslandManager.from_json_dict(payload.get("islands", {}), graph)
        space = cls(options=opts)
        space._install(None, graph, islands)
        return space

    def save(self, path: Union[str, Path]) -> None:
        out_file = Path(path)
        out_file.parent.mkdir(parents=True, exist_ok=True)
        out_file.write_text(json.dumps(self.to_json_dict(), separators=(",", ":")) + "\n", encoding="utf-8")

    @classmethod
    def load(cls, path: Union[str, Path], options: Optional[NavOptions] = None) -> "NavigationSpace":
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
        return cls.from_json_dict(payload, options)


__all__ = ["FORMAT_VERSION", "NavigationSpace"]
