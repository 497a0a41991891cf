import math

import pytest

from navspace import (
    BuildError,
    DegenerateGeometryError,
    DuplicateNodeError,
    InvalidEdgeError,
    NavOptions,
    NodeKind,
    TriangleMesh,
    Vec3,
    build_graph,
    find_path,
)


class TestMeshBuild:
    """Triangles become nodes; shared edges become links with portals."""

    def test_corridor_links_triangles_sharing_an_edge(self, corridor_mesh):
        graph = build_graph(corridor_mesh)

        assert len(graph) == 4
        assert [e.key for e in graph.edges()] == [(0, 1), (1, 2), (2, 3)]
        assert all(node.kind is NodeKind.TRIANGLE for node in graph.nodes)
        assert all(edge.cost >= 0 for edge in graph.edges())

    def test_edge_cost_is_centroid_distance(self, corridor_mesh):
        graph = build_graph(corridor_mesh)

        assert graph.edge(0, 1).cost == pytest.approx(math.sqrt(2) / 3)
        assert graph.edge(1, 2).cost == pytest.approx(math.sqrt(5) / 3)
        assert graph.edge(1, 0).cost == graph.edge(0, 1).cost

    def test_portal_is_the_shared_edge(self, corridor_mesh):
        graph = build_graph(corridor_mesh)

        portal = graph.edge(0, 1).portal
        assert {portal.a.to_tuple(), portal.b.to_tuple()} == {(1.0, 0.0, 0.0), (0.0, 1.0, 0.0)}

    def test_l_mesh_adjacency(self, l_mesh):
        graph = build_graph(l_mesh)

        assert [e.key for e in graph.edges()] == [(0, 1), (0, 3), (2, 3), (3, 4), (4, 5)]

    def test_vertices_within_tolerance_are_welded(self):
        vertices = [(0, 0, 0), (1, 0, 0), (0, 1, 0), (1 + 1e-8, 0, 0), (1, 1, 0)]
        mesh = TriangleMesh(vertices, [(0, 1, 2), (3, 4, 2)])

        graph = build_graph(mesh, tolerance=1e-6)

        assert graph.number_of_edges() == 1

    def test_vertices_beyond_tolerance_stay_apart(self):
        vertices = [(0, 0, 0), (1, 0, 0), (0, 1, 0), (1.01, 0, 0), (1, 1, 0)]
        mesh = TriangleMesh(vertices, [(0, 1, 2), (3, 4, 2)])

        graph = build_graph(mesh, tolerance=1e-6)

        assert graph.number_of_edges() == 0

    def test_triangle_soup_welds_corners(self):
        soup = [
            [(0, 0, 0), (1, 0, 0), (0, 1, 0)],
            [(1, 0, 0), (1, 1, 0), (0, 1, 0)],
        ]
        mesh = TriangleMesh.from_triangle_soup(soup)

        assert len(mesh.vertices) == 4
        assert build_graph(mesh).number_of_edges() == 1

    def test_single_precision_quantizes_positions(self, corridor_mesh):
        graph = build_graph(corridor_mesh, options=NavOptions(precision="single"))

        centroid = graph.node(0).position
        assert centroid.x != 1 / 3
        assert centroid.x == pytest.approx(1 / 3, abs=1e-6)
        assert graph.precision == "single"

    def test_custom_cost_fn(self, corridor_mesh):
        mesh = TriangleMesh(corridor_mesh.vertices, corridor_mesh.triangles, cost_fn=lambda a, b, d: 2.0)

        graph = build_graph(mesh)

        assert {e.cost for e in graph.edges()} == {2.0}

    def test_cost_fn_receives_nodes_and_centroid_distance(self):
        # Square fanned around its center: 0 bottom, 1 right, 2 top, 3 left.
        vertices = [(0, 0, 0), (2, 0, 0), (2, 2, 0), (0, 2, 0), (1, 1, 0)]
        triangles = [(0, 1, 4), (1, 2, 4), (2, 3, 4), (3, 0, 4)]
        calls = []

        def avoid_right(a, b, distance):
            calls.append((a, b, distance))
            return distance * (10.0 if 1 in (a.id, b.id) else 1.0)

        graph = build_graph(TriangleMesh(vertices, triangles, cost_fn=avoid_right))

        assert len(calls) == graph.number_of_edges() == 4
        for a, b, distance in calls:
            assert a.kind is NodeKind.TRIANGLE and b.kind is NodeKind.TRIANGLE
            assert distance == pytest.approx(a.position.distance(b.position))
        assert find_path(graph, 0, 2).nodes == [0, 3, 2]
        assert graph.edge(0, 1).cost == pytest.approx(10.0 * graph.edge(0, 3).cost)


class TestMeshErrors:
    """Invalid geometry is rejected and no graph is produced."""

    def test_zero_area_triangle(self):
        mesh = TriangleMesh([(0, 0, 0), (1, 0, 0), (2, 0, 0)], [(0, 1, 2)])
        with pytest.raises(DegenerateGeometryError):
            build_graph(mesh)

    def test_repeated_index(self):
        mesh = TriangleMesh([(0, 0, 0), (1, 0, 0), (0, 1, 0)], [(0, 0, 1)])
        with pytest.raises(DegenerateGeometryError):
            build_graph(mesh)

    def test_out_of_range_index(self):
        mesh = TriangleMesh([(0, 0, 0), (1, 0, 0), (0, 1, 0)], [(0, 1, 7)])
        with pytest.raises(DegenerateGeometryError):
            build_graph(mesh)

    def test_duplicate_triangle(self):
        mesh = TriangleMesh([(0, 0, 0), (1, 0, 0), (0, 1, 0)], [(0, 1, 2), (2, 1, 0)])
        with pytest.raises(DuplicateNodeError):
            build_graph(mesh)

    def test_negative_tolerance(self, corridor_mesh):
        with pytest.raises(BuildError):
            build_graph(corridor_mesh, tolerance=-1.0)

    def test_negative_cost_from_cost_fn(self, corridor_mesh):
        mesh = TriangleMesh(corridor_mesh.vertices, corridor_mesh.triangles, cost_fn=lambda a, b, d: -1.0)
        with pytest.raises(InvalidEdgeError):
            build_graph(mesh)


class TestMeshExtras:
    def test_area_cost_scales_touching_edges(self, corridor_mesh):
        mesh, old = corridor_mesh.with_area_cost(1, 3.0)

        graph = build_graph(mesh)

        assert old == 1.0
        assert graph.edge(0, 1).cost == pytest.approx(3.0 * math.sqrt(2) / 3)
        assert graph.edge(2, 3).cost == pytest.approx(math.sqrt(2) / 3)
        assert corridor_mesh.area_costs is None

    def test_area_costs_are_clamped_at_zero(self, corridor_mesh):
        mesh, _ = corridor_mesh.with_area_cost(0, -5.0)

        assert mesh.area_costs[0] == 0.0
        assert build_graph(mesh).edge(0, 1).cost == 0.0

    def test_origin_is_vertex_mean(self, corridor_mesh):
        assert corridor_mesh.origin == Vec3(1.0, 0.5, 0.0)

    def test_scaled_around_origin(self, corridor_mesh):
        scaled = corridor_mesh.scaled(2.0)

        assert scaled.vertices[0] == Vec3(-1.0, -0.5, 0.0)
        assert scaled.vertices[5] == Vec3(3.0, 1.5, 0.0)
        assert scaled.triangles == corridor_mesh.triangles

    def test_thickened_moves_along_normals(self, corridor_mesh):
        thick = corridor_mesh.thickened(0.5)

        assert all(v.z == pytest.approx(0.5) for v in thick.vertices)

    def test_hard_edges_are_the_boundary(self, corridor_mesh):
        hard = corridor_mesh.hard_edges()

        assert sum(len(edges) for edges in hard.values()) == 6
        assert len(hard[0]) == 2
        assert len(hard[1]) == 1
