# tests/conftest.py

from __future__ import annotations

import pytest

from navspace import FreeCell, FreeGrid, GridCell, TriangleMesh, UniformGrid


@pytest.fixture
def corridor_mesh() -> TriangleMesh:
    """Straight 2x1 strip of four triangles, ids 0..3 left to right."""

    vertices = [(0, 0, 0), (1, 0, 0), (2, 0, 0), (0, 1, 0), (1, 1, 0), (2, 1, 0)]
    triangles = [(0, 1, 3), (1, 4, 3), (1, 2, 4), (2, 5, 4)]
    return TriangleMesh(vertices, triangles)


@pytest.fixture
def l_mesh() -> TriangleMesh:
    """L-shaped strip of three unit squares bending around (1, 1)."""

    vertices = [
        (0, 0, 0),  # 0 A
        (1, 0, 0),  # 1 B
        (2, 0, 0),  # 2 C
        (0, 1, 0),  # 3 D
        (1, 1, 0),  # 4 E
        (2, 1, 0),  # 5 F
        (1, 2, 0),  # 6 G
        (2, 2, 0),  # 7 H
    ]
    triangles = [(0, 1, 4), (0, 4, 3), (1, 2, 5), (1, 5, 4), (4, 5, 7), (4, 7, 6)]
    return TriangleMesh(vertices, triangles)


@pytest.fixture
def two_grids() -> UniformGrid:
    """Two disjoint 2x2 grids: ids 0..3 at x in [0, 1], ids 4..7 at x in [3, 4]."""

    cells = [GridCell(0, 0), GridCell(1, 0), GridCell(0, 1), GridCell(1, 1)]
    cells += [GridCell(3, 0), GridCell(4, 0), GridCell(3, 1), GridCell(4, 1)]
    return UniformGrid(cells)


@pytest.fixture
def u_freegrid() -> FreeGrid:
    """Bottom bar, tall right post, top bar: a U turned on its side."""

    return FreeGrid(
        [
            FreeCell(0, 0, 2, 1),
            FreeCell(2, 0, 3, 3),
            FreeCell(0, 2, 2, 3),
        ]
    )
