"""Geometry ingestion helpers built on shapely.

Turns outlines and walkable tile sets into the raw inputs the adapters
consume: triangle meshes for :mod:`navspace.mesh` and packed rectangles
for :mod:`navspace.freegrid`.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Sequence, Tuple

from shapely.geometry import MultiPolygon, Polygon, box
from shapely.geometry.polygon import orient
from shapely.ops import triangulate, unary_union

from .freegrid import FreeCell
from .mesh import TriangleMesh

LOGGER = logging.getLogger(__name__)

Tile = Tuple[int, int]


def triangles_from_polygon(poly: Polygon) -> List[Polygon]:
    """Triangulate polygon area; keep only triangles whose centroid lies within the polygon."""

    tris = triangulate(poly)
    return [orient(t, 1.0) for t in tris if t.centroid.within(poly)]


def tiles_to_polygons(tiles: Iterable[Tile], tile_size: float = 1.0) -> List[Polygon]:
    """Union unit tiles into polygons (with holes where tiles are missing)."""

    squares = [box(x * tile_size, y * tile_size, (x + 1) * tile_size, (y + 1) * tile_size) for x, y in set(tiles)]
    if not squares:
        return []
    merged = unary_union(squares)
    if isinstance(merged, Polygon):
        return [merged]
    if isinstance(merged, MultiPolygon):
        return list(merged.geoms)
    return [g for g in getattr(merged, "geoms", []) if isinstance(g, Polygon)]


def triangulate_outline(
    outline: Sequence[Sequence[float]],
    holes: Sequence[Sequence[Sequence[float]]] = (),
    z: float = 0.0,
    tolerance: float = 1e-6,
) -> TriangleMesh:
    """Triangulate a planar outline (minus holes) into a :class:`TriangleMesh` at height ``z``."""

    poly = Polygon(outline, holes)
    if not poly.is_valid or poly.area <= 0.0:
        raise ValueError("Outline must be a valid polygon with positive area")
    return _mesh_from_polygons([poly], z, tolerance)


def triangulate_tiles(tiles: Iterable[Tile], tile_size: float = 1.0, z: float = 0.0, tolerance: float = 1e-6) -> TriangleMesh:
    """Triangulate the union of walkable tiles."""

    return _mesh_from_polygons(tiles_to_polygons(tiles, tile_size), z, tolerance)


def _mesh_from_polygons(polys: Iterable[Polygon], z: float, tolerance: float) -> TriangleMesh:
    soup = []
    for poly in polys:
        for tri in triangles_from_polygon(poly):
            coords = list(tri.exterior.coords)[:3]
            soup.append([(x, y, z) for x, y in coords])
    LOGGER.debug("Triangulated %d triangles", len(soup))
    return TriangleMesh.from_triangle_soup(soup, tolerance)


def pack_tiles(
    tiles: Iterable[Tile],
    max_w: int,
    max_h: int,
    tile_size: float = 1.0,
    z: float = 0.0,
) -> List[FreeCell]:
    """Greedy maximal rectangles over contiguous tiles, with caps on width/height.

    Rows are scanned bottom-up, left to right; each rectangle grows right,
    then up while full rows stay covered.
    """

    if max_w < 1 or max_h < 1:
        raise ValueError(f"max_w and max_h must be >= 1, got {max_w}, {max_h}")
    occ = set(tiles)
    visited = set()
    cells: List[FreeCell] = []
    for (x0, y0) in sorted(occ, key=lambda p: (p[1], p[0])):
        if (x0, y0) in visited:
            continue
        x1 = x0
        while (x1 + 1, y0) in occ and (x1 + 1, y0) not in visited and (x1 + 1 - x0) < max_w:
            x1 += 1
        y1 = y0
        while (y1 + 1 - y0) < max_h:
            ny = y1 + 1
            if all((x, ny) in occ and (x, ny) not in visited for x in range(x0, x1 + 1)):
                y1 = ny
            else:
                break
        for yy in range(y0, y1 + 1):
            for xx in range(x0, x1 + 1):
                visited.add((xx, yy))
        cells.append(FreeCell(x0 * tile_size, y0 * tile_size, (x1 + 1) * tile_size, (y1 + 1) * tile_size, 1.0, z))
    return cells


__all__ = [
    "pack_tiles",
    "tiles_to_polygons",
    "triangles_from_polygon",
    "triangulate_outline",
    "triangulate_tiles",
]
