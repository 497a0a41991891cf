import itertools

import networkx as nx
import pytest

from navspace import (
    ConnectivityGraph,
    GridCell,
    IslandManager,
    NavNet,
    NavOptions,
    NetEdge,
    NetNode,
    NodeNotFoundError,
    RegionSet,
    SearchTimeoutError,
    UniformGrid,
    UnreachableError,
    astar,
    build_graph,
    default_heuristic,
    find_path,
    zero_heuristic,
)
from navspace.cost import DistanceHeuristic
from navspace.islands import BridgedGraph


def _exhaustive_cost(graph, start, goal):
    g = graph.to_networkx()
    best = None
    for path in nx.all_simple_paths(g, start, goal):
        cost = sum(g.edges[u, v]["cost"] for u, v in zip(path, path[1:]))
        if best is None or cost < best:
            best = cost
    return best


@pytest.fixture
def weighted_net():
    positions = {0: (0, 0), 1: (1, 0), 2: (2, 0), 3: (0, 1), 4: (1, 1), 5: (2, 1)}
    nodes = [NetNode(i, p) for i, p in positions.items()]
    edges = [
        NetEdge(0, 1, 4.0),
        NetEdge(1, 2, 1.0),
        NetEdge(0, 3, 1.0),
        NetEdge(3, 4, 1.0),
        NetEdge(4, 1, 1.5),
        NetEdge(4, 5, 3.0),
        NetEdge(2, 5, 1.0),
        NetEdge(0, 4, 2.5),
    ]
    return build_graph(NavNet(nodes, edges))


class TestSearch:
    def test_same_start_and_goal_is_trivial(self, corridor_mesh):
        graph = build_graph(corridor_mesh)

        result = find_path(graph, 2, 2, default_heuristic(graph))

        assert result.nodes == [2]
        assert result.cost == 0.0
        assert result.expanded == 0
        assert len(result.waypoints) == 1

    def test_optimal_against_exhaustive_enumeration(self, weighted_net):
        heuristic = default_heuristic(weighted_net)
        for start, goal in itertools.permutations(weighted_net, 2):
            result = find_path(weighted_net, start, goal, heuristic)
            assert result.cost == pytest.approx(_exhaustive_cost(weighted_net, start, goal))

    def test_optimal_with_cell_costs(self):
        cells = [GridCell(x, y, 5.0 if (x, y) == (1, 1) else 1.0) for x in range(3) for y in range(3)]
        graph = build_graph(UniformGrid(cells, neighbors="8"))
        heuristic = default_heuristic(graph)

        for start, goal in [(0, 8), (2, 6), (1, 7)]:
            result = find_path(graph, start, goal, heuristic)
            assert result.cost == pytest.approx(_exhaustive_cost(graph, start, goal))

    def test_path_nodes_follow_edges(self, weighted_net):
        result = find_path(weighted_net, 0, 2, default_heuristic(weighted_net))

        assert result.nodes[0] == 0 and result.nodes[-1] == 2
        for u, v in zip(result.nodes, result.nodes[1:]):
            assert weighted_net.edge(u, v) is not None

    def test_unreachable(self, two_grids):
        graph = build_graph(two_grids)

        with pytest.raises(UnreachableError) as info:
            find_path(graph, 0, 4, default_heuristic(graph))
        assert info.value.expanded > 0

    def test_island_fast_check_skips_search(self, two_grids):
        graph = build_graph(two_grids)

        with pytest.raises(UnreachableError) as info:
            find_path(graph, 0, 4, default_heuristic(graph), islands=IslandManager(graph))
        assert info.value.expanded == 0

    def test_unknown_node(self, corridor_mesh):
        graph = build_graph(corridor_mesh)

        with pytest.raises(NodeNotFoundError):
            find_path(graph, 0, 42)
        with pytest.raises(LookupError):
            find_path(graph, 42, 0)

    def test_max_expansions_budget(self):
        graph = build_graph(UniformGrid([GridCell(x, 0) for x in range(5)]))

        with pytest.raises(SearchTimeoutError) as info:
            find_path(graph, 0, 4, zero_heuristic, NavOptions(max_expansions=1))
        assert info.value.reason == "max-expansions"
        assert info.value.expanded == 2

    def test_outcome_reports_budget_reason(self):
        graph = build_graph(UniformGrid([GridCell(x, 0) for x in range(5)]))

        outcome = astar(0, 4, graph, zero_heuristic, NavOptions(max_expansions=1))

        assert outcome.nodes is None
        assert outcome.reason == "max-expansions"

    def test_deterministic_between_runs(self):
        graph = build_graph(UniformGrid([GridCell(x, y) for y in range(4) for x in range(4)], neighbors="8"))
        heuristic = default_heuristic(graph)

        first = find_path(graph, 0, 15, heuristic)
        for _ in range(5):
            again = find_path(graph, 0, 15, heuristic)
            assert again.nodes == first.nodes
            assert again.expanded == first.expanded

    def test_unpositioned_net_uses_zero_heuristic(self):
        net = NavNet([NetNode(1), NetNode(2), NetNode(3)], [NetEdge(1, 2, 1.0), NetEdge(2, 3, 2.0)])
        graph = build_graph(net)

        assert default_heuristic(graph) is zero_heuristic
        result = find_path(graph, 1, 3)
        assert result.nodes == [1, 2, 3]
        assert result.cost == 3.0
        assert result.waypoints == []

    def test_graph_carries_source_heuristic_kind(self, weighted_net, two_grids):
        unpositioned = build_graph(NavNet([NetNode(1), NetNode(2)], [NetEdge(1, 2, 1.0)]))
        mixed = build_graph(RegionSet([two_grids, NavNet([NetNode(0), NetNode(1)], [NetEdge(0, 1, 1.0)])]))

        assert weighted_net.heuristic_kind == "distance"
        assert build_graph(two_grids).heuristic_kind == "distance"
        assert unpositioned.heuristic_kind == "zero"
        assert mixed.heuristic_kind == "zero"
        assert default_heuristic(mixed) is zero_heuristic

    def test_zero_heuristic_kind_is_honoured(self, weighted_net):
        payload = weighted_net.to_json_dict()
        payload["heuristic_kind"] = "zero"
        graph = ConnectivityGraph.from_json_dict(payload)

        assert graph.cost_ratio() is not None
        assert default_heuristic(graph) is zero_heuristic
        assert isinstance(default_heuristic(weighted_net), DistanceHeuristic)
        assert default_heuristic(BridgedGraph(graph, IslandManager(graph))) is zero_heuristic

    def test_distance_heuristic_is_admissible(self, weighted_net):
        heuristic = DistanceHeuristic(weighted_net)
        for node, goal in itertools.permutations(weighted_net, 2):
            assert heuristic(node, goal) <= _exhaustive_cost(weighted_net, node, goal) + 1e-9


class TestDirected:
    def test_one_way_grid(self):
        grid = UniformGrid([GridCell(x, 0) for x in range(3)], one_way=[((0, 0), (1, 0))])
        graph = build_graph(grid)

        assert graph.directed
        assert find_path(graph, 0, 2).nodes == [0, 1, 2]
        with pytest.raises(UnreachableError) as info:
            find_path(graph, 2, 0, islands=IslandManager(graph))
        assert info.value.expanded > 0

    def test_directed_net(self):
        net = NavNet([NetNode(0), NetNode(1)], [NetEdge(0, 1, 1.0)], directed=True)
        graph = build_graph(net)

        assert find_path(graph, 0, 1).cost == 1.0
        with pytest.raises(UnreachableError):
            find_path(graph, 1, 0)


class TestEdgeFilter:
    def test_vetoed_node_is_routed_around(self, weighted_net):
        assert find_path(weighted_net, 0, 2).nodes == [0, 3, 4, 1, 2]

        result = find_path(weighted_net, 0, 2, default_heuristic(weighted_net), edge_filter=lambda e: 1 not in (e.source, e.target))

        assert result.nodes == [0, 3, 4, 5, 2]
        assert result.cost == pytest.approx(6.0)

    def test_filter_sees_candidate_edges(self, weighted_net):
        seen = []

        def record(edge):
            seen.append(edge)
            return True

        result = find_path(weighted_net, 0, 2, edge_filter=record)

        assert result.cost == pytest.approx(4.5)
        assert all(weighted_net.has_node(e.source) and weighted_net.has_node(e.target) for e in seen)
        assert {(0, 3), (0, 1), (0, 4)} <= {e.key for e in seen}

    def test_everything_vetoed_is_unreachable(self, weighted_net):
        with pytest.raises(UnreachableError) as info:
            find_path(weighted_net, 0, 5, edge_filter=lambda e: False)
        assert info.value.expanded == 1

    def test_filter_does_not_persist(self, weighted_net):
        with pytest.raises(UnreachableError):
            find_path(weighted_net, 0, 2, edge_filter=lambda e: e.cost >= 2.0 and e.target != 2)

        assert find_path(weighted_net, 0, 2).cost == pytest.approx(4.5)

    def test_costly_edges_can_be_vetoed(self):
        graph = build_graph(UniformGrid([GridCell(x, y, 2.0 if (x, y) == (1, 0) else 1.0) for y in range(2) for x in range(3)]))
        assert find_path(graph, 0, 2).nodes == [0, 1, 2]

        outcome = astar(0, 2, graph, zero_heuristic, None, lambda e: e.cost < 1.5)

        assert outcome.reason is None
        assert 1 not in outcome.nodes
        assert outcome.nodes == [0, 3, 4, 5, 2]
        assert outcome.cost == pytest.approx(4.0)


class TestTimeout:
    def test_wall_clock_budget(self):
        graph = build_graph(UniformGrid([GridCell(x, y) for y in range(150) for x in range(150)]))

        with pytest.raises(SearchTimeoutError) as info:
            find_path(graph, 0, len(graph) - 1, zero_heuristic, NavOptions(timeout_ms=1))
        assert info.value.reason == "timeout"
        assert info.value.limit == 1

    def test_zero_timeout_means_unbounded(self):
        graph = build_graph(UniformGrid([GridCell(x, 0) for x in range(20)]))

        result = find_path(graph, 0, 19, zero_heuristic, NavOptions(timeout_ms=0))

        assert result.nodes == list(range(20))
