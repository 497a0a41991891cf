import json

import pytest

from navspace import (
    BuildError,
    ConnectivityGraph,
    DegenerateGeometryError,
    GridCell,
    IslandManager,
    NavError,
    NavigationSpace,
    NavNet,
    NavOptions,
    NavQuery,
    NetEdge,
    NetNode,
    NodeNotFoundError,
    PathResult,
    TriangleMesh,
    UniformGrid,
    UnreachableError,
    Vec3,
    build_graph,
)


class TestSerialization:
    def test_graph_round_trip(self, corridor_mesh):
        graph = build_graph(corridor_mesh)

        payload = json.loads(json.dumps(graph.to_json_dict()))
        restored = ConnectivityGraph.from_json_dict(payload)

        assert restored.to_json_dict() == graph.to_json_dict()
        assert [n.id for n in restored.nodes] == [0, 1, 2, 3]
        assert restored.edges() == graph.edges()
        assert restored.nodes == graph.nodes

    def test_node_order_and_ids_are_stable(self, two_grids):
        payload = build_graph(two_grids).to_json_dict()

        assert list(payload) == ["kind", "directed", "precision", "tolerance", "heuristic_kind", "nodes", "edges"]
        assert [n["id"] for n in payload["nodes"]] == list(range(8))
        keys = [(e["source"], e["target"]) for e in payload["edges"]]
        assert keys == sorted(keys)

    def test_space_round_trip_keeps_islands_and_bridges(self, two_grids):
        space = NavigationSpace(two_grids)
        bridge_id = space.add_bridge(1, 4, 5.0)

        payload = json.loads(json.dumps(space.to_json_dict()))
        restored = NavigationSpace.from_json_dict(payload)

        assert restored.graph.to_json_dict() == space.graph.to_json_dict()
        assert restored.islands.to_json_dict() == space.islands.to_json_dict()
        assert [b.id for b in restored.bridges()] == [bridge_id]
        assert restored.find_node_path(0, 4).cost == pytest.approx(6.0)
        assert restored.add_bridge(3, 6, 1.0) == bridge_id + 1

    def test_islands_round_trip(self, two_grids):
        graph = build_graph(two_grids)
        islands = IslandManager(graph)
        islands.add_bridge(1, 4, 2.0)

        restored = IslandManager.from_json_dict(json.loads(json.dumps(islands.to_json_dict())), graph)

        assert [restored.island_of(n) for n in graph] == [islands.island_of(n) for n in graph]

    def test_save_and_load(self, corridor_mesh, tmp_path):
        space = NavigationSpace(corridor_mesh)
        target = tmp_path / "nested" / "space.json"

        space.save(target)
        loaded = NavigationSpace.load(target)

        assert loaded.graph.to_json_dict() == space.graph.to_json_dict()
        assert loaded.find_path((0.2, 0.5, 0.0), (1.8, 0.5, 0.0)).nodes == [0, 1, 2, 3]

    def test_precision_mismatch_is_rejected(self, corridor_mesh):
        payload = NavigationSpace(corridor_mesh).to_json_dict()

        with pytest.raises(BuildError):
            NavigationSpace.from_json_dict(payload, NavOptions(precision="single"))

    def test_unknown_version(self, corridor_mesh):
        payload = NavigationSpace(corridor_mesh).to_json_dict()
        payload["version"] = 99

        with pytest.raises(ValueError):
            NavigationSpace.from_json_dict(payload)


class TestNavigationSpace:
    def test_failed_rebuild_keeps_previous_graph(self, corridor_mesh):
        space = NavigationSpace(corridor_mesh)
        broken = TriangleMesh([(0, 0, 0), (1, 0, 0), (2, 0, 0)], [(0, 1, 2)])

        with pytest.raises(DegenerateGeometryError):
            space.rebuild(broken)

        assert len(space.graph) == 4
        assert space.source is corridor_mesh
        assert space.find_path((0.2, 0.5, 0.0), (1.8, 0.5, 0.0)).nodes == [0, 1, 2, 3]

    def test_rebuild_without_source(self):
        with pytest.raises(ValueError):
            NavigationSpace().rebuild()

    def test_queries_before_build(self):
        space = NavigationSpace()

        with pytest.raises(NavError):
            space.find_node_path(0, 1)
        with pytest.raises(NavError):
            space.closest_point((0, 0, 0))

    def test_closest_point_modes(self, corridor_mesh):
        space = NavigationSpace(corridor_mesh)

        above = space.closest_point((0.5, 0.25, 3.0))
        assert above.to_tuple() == pytest.approx((0.5, 0.25, 0.0))

        outside = (-1.0, 0.5, 0.0)
        for query in NavQuery:
            assert space.closest_point(outside, query).to_tuple() == pytest.approx((0.0, 0.5, 0.0))
        assert space.locate(outside) == 0
        assert space.locate((1.8, 0.5, 0.0), NavQuery.CLOSEST_FIRST) == 3

    def test_trivial_position_query(self, corridor_mesh):
        space = NavigationSpace(corridor_mesh)

        result = space.find_path((0.2, 0.2, 0.0), (0.2, 0.2, 0.0))

        assert result.nodes == [0]
        assert result.cost == 0.0
        assert len(result.waypoints) == 1

    def test_unpositioned_net_needs_node_queries(self):
        net = NavNet([NetNode(0), NetNode(1)], [NetEdge(0, 1, 2.0)])
        space = NavigationSpace(net)

        assert space.find_node_path(0, 1).cost == 2.0
        with pytest.raises(NodeNotFoundError):
            space.find_path((0, 0, 0), (1, 0, 0))

    @pytest.mark.parametrize("parallel", [False, True])
    def test_find_paths(self, two_grids, parallel):
        space = NavigationSpace(two_grids, NavOptions(parallel=parallel, max_workers=4))
        queries = [
            ((0.5, 0.5, 0.0), (1.5, 1.5, 0.0)),
            ((0.5, 0.5, 0.0), (4.5, 1.5, 0.0)),
            ((3.5, 0.5, 0.0), (4.5, 1.5, 0.0)),
        ] * 3

        results = space.find_paths(queries)

        assert len(results) == len(queries)
        for index, result in enumerate(results):
            if index % 3 == 1:
                assert isinstance(result, UnreachableError)
            else:
                assert isinstance(result, PathResult)
                assert result.cost > 0

    def test_edge_filter_can_veto_bridges(self, two_grids):
        space = NavigationSpace(two_grids)
        space.add_bridge(1, 4, 5.0)

        with pytest.raises(UnreachableError):
            space.find_node_path(0, 4, edge_filter=lambda e: e.bridge is None)

        assert space.find_node_path(0, 4).nodes == [0, 1, 4]

    def test_edge_filter_on_position_queries(self, two_grids):
        space = NavigationSpace(two_grids)

        def avoid_corner(edge):
            return 1 not in (edge.source, edge.target)

        result = space.find_path((0.5, 0.5, 0.0), (1.5, 1.5, 0.0), edge_filter=avoid_corner)

        assert result.nodes == [0, 2, 3]
        outcomes = space.find_paths([((0.5, 0.5, 0.0), (1.5, 1.5, 0.0))] * 2, edge_filter=avoid_corner)
        assert [o.nodes for o in outcomes] == [[0, 2, 3], [0, 2, 3]]

    def test_failed_search_leaves_state_unchanged(self, two_grids):
        space = NavigationSpace(two_grids)
        before = space.to_json_dict()

        with pytest.raises(UnreachableError):
            space.find_node_path(0, 4)

        assert space.to_json_dict() == before

    def test_metrics_line_is_logged(self, corridor_mesh, caplog):
        space = NavigationSpace(corridor_mesh)

        with caplog.at_level("INFO", logger="navspace"):
            space.find_node_path(0, 3)

        assert any("find_path metrics:" in r.getMessage() and "reason=ok" in r.getMessage() for r in caplog.records)

    def test_build_metrics_line_is_logged(self, corridor_mesh, caplog):
        with caplog.at_level("INFO", logger="navspace"):
            NavigationSpace(corridor_mesh)

        assert any("build_graph metrics: kind=mesh nodes=4 edges=3" in r.getMessage() for r in caplog.records)

    @pytest.mark.parametrize(
        "source",
        [
            UniformGrid([GridCell(0, 0), GridCell(0, 0)]),
            UniformGrid([GridCell(0, 0), GridCell(2, 0)], one_way=[((0, 0), (2, 0))]),
            NavNet([NetNode(0), NetNode(1)], [NetEdge(0, 1, -1.0)]),
        ],
    )
    def test_rejected_geometry_is_logged(self, source, caplog):
        with caplog.at_level("WARNING", logger="navspace"):
            with pytest.raises(BuildError):
                build_graph(source)

        assert [r.levelname for r in caplog.records] == ["WARNING"]
        assert caplog.records[0].getMessage().startswith(f"Rejected {source.kind} geometry:")

    def test_result_json(self, corridor_mesh):
        result = NavigationSpace(corridor_mesh).find_path((0.2, 0.5, 0.0), (1.8, 0.5, 0.0))

        payload = json.loads(json.dumps(result.to_json_dict()))

        assert payload["nodes"] == [0, 1, 2, 3]
        assert payload["bridges"] == []
        assert Vec3.of(payload["waypoints"][-1]).same_as(Vec3(1.8, 0.5, 0.0))
