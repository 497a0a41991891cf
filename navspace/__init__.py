"""navspace: shortest walkable paths over meshes, grids, free grids and nets."""

from .api import NavigationSpace
from .astar import EdgeFilter, astar, find_path
from .cost import CostModel, DistanceHeuristic, default_heuristic, zero_heuristic
from .errors import (
    BuildError,
    DegenerateGeometryError,
    DuplicateNodeError,
    InvalidBridgeCostError,
    InvalidEdgeError,
    InvalidEndpointError,
    IslandError,
    NavError,
    NodeNotFoundError,
    SearchError,
    SearchTimeoutError,
    UnreachableError,
)
from .freegrid import FreeCell, FreeGrid
from .funnel import midpoints, refine
from .graph import ConnectivityGraph, Edge, Node, NodeKind, Portal, build_graph
from .grid import GridCell, UniformGrid
from .islands import Bridge, IslandManager
from .mesh import TriangleMesh
from .net import NavNet, NetEdge, NetNode
from .options import NavOptions, NavQuery, PathMode
from .path import PathResult, path_length, path_target_point, point_on_path, project_on_path
from .regions import RegionSet
from .vector import Vec3

__all__ = [
    "Bridge",
    "BuildError",
    "ConnectivityGraph",
    "CostModel",
    "DegenerateGeometryError",
    "DistanceHeuristic",
    "DuplicateNodeError",
    "Edge",
    "EdgeFilter",
    "FreeCell",
    "FreeGrid",
    "GridCell",
    "InvalidBridgeCostError",
    "InvalidEdgeError",
    "InvalidEndpointError",
    "IslandError",
    "IslandManager",
    "NavError",
    "NavNet",
    "NavOptions",
    "NavQuery",
    "NavigationSpace",
    "NetEdge",
    "NetNode",
    "Node",
    "NodeKind",
    "NodeNotFoundError",
    "PathMode",
    "PathResult",
    "Portal",
    "RegionSet",
    "SearchError",
    "SearchTimeoutError",
    "TriangleMesh",
    "UnreachableError",
    "Vec3",
    "astar",
    "build_graph",
    "default_heuristic",
    "find_path",
    "midpoints",
    "path_length",
    "path_target_point",
    "point_on_path",
    "project_on_path",
    "refine",
    "zero_heuristic",
]
