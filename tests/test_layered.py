"""Tests for layout/layered.py: cycle removal, layering, dummy insertion,
crossing minimisation and coordinate assignment.
"""

from __future__ import annotations

from collections import defaultdict

import networkx as nx

from node_layout.forest import build_forest
from node_layout.graph import GraphModel
from node_layout.layout.layered import (
    LayerAssignment,
    assign_coordinates,
    compute_layered_layout,
    count_crossings,
    insert_dummy_nodes,
    minimise_crossings,
    remove_cycles,
)
from node_layout.layout.types import AugmentedGraph, DummyNode, LayoutNode, Vec2, is_dummy
from node_layout.params import LayoutParameters

# ─── Helpers ──────────────────────────────────────────────────────────────────


class Box:
    def __init__(self, name: str, width: float = 1.0, height: float = 1.0) -> None:
        self.name = name
        self.width = width
        self.height = height

    def set_position(self, x: float, y: float) -> None:
        self.position = (x, y)

    def __repr__(self) -> str:
        return f"Box({self.name})"


def make_graph(*edges: tuple[str, str]) -> nx.DiGraph:
    """Build a DiGraph from a list of (src, tgt) string pairs."""
    g: nx.DiGraph = nx.DiGraph()
    for src, tgt in edges:
        g.add_edge(src, tgt)
    return g


def make_augmented_graph(
    edges: list[tuple[str, str]],
    layers: dict[str, int],
) -> AugmentedGraph:
    """Build a minimal AugmentedGraph from (src, tgt) edges and explicit layers."""
    g: nx.DiGraph = nx.DiGraph()
    for nid in layers:
        g.add_node(nid)
    for src, tgt in edges:
        g.add_edge(src, tgt, weight=1.0)
    layer_count = (max(layers.values()) + 1) if layers else 0
    return AugmentedGraph(graph=g, layers=layers, layer_count=layer_count, dummy_edges=[])


def pipeline(*edges: tuple[str, str]) -> AugmentedGraph:
    dag, reversed_edges = remove_cycles(make_graph(*edges))
    return insert_dummy_nodes(dag, LayerAssignment.assign(dag, reversed_edges))


# ─── Cycle Removal Tests ──────────────────────────────────────────────────────


class TestCycleRemoval:
    def test_dag_has_no_reversed_edges(self):
        """A → B → C (simple DAG, no cycles): zero reversed edges."""
        g = make_graph(("A", "B"), ("B", "C"))
        dag, reversed_edges = remove_cycles(g)
        assert reversed_edges == set()
        assert nx.is_directed_acyclic_graph(dag)

    def test_single_cycle_reversed(self):
        """A → B → A: exactly one edge reversed, result is a DAG."""
        g = make_graph(("A", "B"), ("B", "A"))
        dag, reversed_edges = remove_cycles(g)
        assert reversed_edges == {("B", "A")}
        assert nx.is_directed_acyclic_graph(dag)

    def test_reversed_pair_weights_are_summed(self):
        g = make_graph(("A", "B"), ("B", "A"))
        dag, _ = remove_cycles(g)
        assert dag.number_of_edges() == 1
        assert dag["A"]["B"]["weight"] == 2.0

    def test_self_loop_reversed(self):
        """A → A: counted as reversed and dropped from the DAG."""
        g = make_graph(("A", "A"))
        dag, reversed_edges = remove_cycles(g)
        assert reversed_edges == {("A", "A")}
        assert nx.is_directed_acyclic_graph(dag)
        assert dag.number_of_edges() == 0

    def test_complex_cycle(self):
        """A → B → C → A plus D → B: result must be a DAG."""
        g = make_graph(("A", "B"), ("B", "C"), ("C", "A"), ("D", "B"))
        dag, reversed_edges = remove_cycles(g)
        assert nx.is_directed_acyclic_graph(dag)
        assert len(reversed_edges) >= 1

    def test_input_not_mutated(self):
        g = make_graph(("A", "B"), ("B", "A"), ("B", "B"))
        remove_cycles(g)
        assert set(g.edges) == {("A", "B"), ("B", "A"), ("B", "B")}

    def test_long_cycle_does_not_recurse(self):
        n = 5000
        g = make_graph(*[(str(i), str((i + 1) % n)) for i in range(n)])
        dag, reversed_edges = remove_cycles(g)
        assert nx.is_directed_acyclic_graph(dag)
        assert len(reversed_edges) == 1

    def test_empty_graph(self):
        g: nx.DiGraph = nx.DiGraph()
        dag, reversed_edges = remove_cycles(g)
        assert dag.number_of_nodes() == 0
        assert len(reversed_edges) == 0


# ─── Layer Assignment Tests ───────────────────────────────────────────────────


class TestLayerAssignment:
    def test_chain(self):
        la = LayerAssignment.assign(make_graph(("A", "B"), ("B", "C")))
        assert la.layers == {"A": 0, "B": 1, "C": 2}
        assert la.layer_count == 3

    def test_longest_path_wins(self):
        """A → C directly and via B: C sits below B, not next to it."""
        la = LayerAssignment.assign(make_graph(("A", "C"), ("A", "B"), ("B", "C")))
        assert la.layers["C"] == 2

    def test_every_surviving_edge_points_down(self):
        g = make_graph(("A", "B"), ("B", "C"), ("C", "A"), ("C", "D"), ("D", "B"), ("E", "A"))
        dag, reversed_edges = remove_cycles(g)
        la = LayerAssignment.assign(dag, reversed_edges)
        for src, tgt in dag.edges:
            assert la.layers[tgt] > la.layers[src], f"{src}->{tgt}"

    def test_empty(self):
        la = LayerAssignment.assign(nx.DiGraph())
        assert la.layers == {}
        assert la.layer_count == 0


# ─── Dummy Node Insertion Tests ───────────────────────────────────────────────


class TestInsertDummyNodes:
    def test_long_edge_gets_one_dummy(self):
        """A → C alongside A → B → C: the A → C edge spans two layers."""
        aug = pipeline(("A", "C"), ("A", "B"), ("B", "C"))
        assert len(aug.dummy_edges) == 1
        chain = aug.dummy_edges[0]
        assert (chain.original_src, chain.original_tgt) == ("A", "C")
        assert len(chain.dummy_ids) == 1
        assert aug.layers[chain.dummy_ids[0]] == 1

    def test_all_edges_span_one_layer(self):
        aug = pipeline(("A", "B"), ("B", "C"), ("C", "D"), ("A", "D"), ("B", "D"))
        for src, tgt in aug.graph.edges:
            assert aug.layers[tgt] - aug.layers[src] == 1

    def test_dummy_never_equals_handle(self):
        aug = pipeline(("A", "C"), ("A", "B"), ("B", "C"))
        dummy = aug.dummy_edges[0].dummy_ids[0]
        assert isinstance(dummy, DummyNode)
        assert is_dummy(dummy)
        assert dummy not in {"A", "B", "C"}

    def test_no_long_edges_no_dummies(self):
        aug = pipeline(("A", "B"), ("B", "C"))
        assert aug.dummy_edges == []
        assert aug.graph.number_of_nodes() == 3


# ─── count_crossings Tests ────────────────────────────────────────────────────


class TestCountCrossings:
    def test_no_crossings_simple_chain(self):
        aug = make_augmented_graph([("A", "B")], {"A": 0, "B": 1})
        assert count_crossings([["A"], ["B"]], aug.graph) == 0

    def test_no_crossings_parallel(self):
        aug = make_augmented_graph([("A", "C"), ("B", "D")], {"A": 0, "B": 0, "C": 1, "D": 1})
        assert count_crossings([["A", "B"], ["C", "D"]], aug.graph) == 0

    def test_one_crossing(self):
        """A→D and B→C with A before B: D after C means one crossing."""
        aug = make_augmented_graph([("A", "D"), ("B", "C")], {"A": 0, "B": 0, "C": 1, "D": 1})
        assert count_crossings([["A", "B"], ["C", "D"]], aug.graph) == 1

    def test_complete_bipartite(self):
        """K(2,2) always has exactly one crossing."""
        edges = [("A", "C"), ("A", "D"), ("B", "C"), ("B", "D")]
        aug = make_augmented_graph(edges, {"A": 0, "B": 0, "C": 1, "D": 1})
        assert count_crossings([["A", "B"], ["C", "D"]], aug.graph) == 1

    def test_empty_graph_no_crossings(self):
        assert count_crossings([], nx.DiGraph()) == 0

    def test_crossing_reduces_with_swap(self):
        aug = make_augmented_graph([("A", "D"), ("B", "C")], {"A": 0, "B": 0, "C": 1, "D": 1})
        assert count_crossings([["A", "B"], ["C", "D"]], aug.graph) == 1
        assert count_crossings([["A", "B"], ["D", "C"]], aug.graph) == 0


# ─── minimise_crossings Tests ─────────────────────────────────────────────────


class TestMinimiseCrossings:
    def test_returns_all_nodes(self):
        aug = make_augmented_graph([("A", "B"), ("A", "C")], {"A": 0, "B": 1, "C": 1})
        result = minimise_crossings(aug)
        assert {nid for layer in result for nid in layer} == {"A", "B", "C"}

    def test_each_node_in_correct_layer(self):
        layers = {"A": 0, "B": 1, "C": 1, "D": 2}
        aug = make_augmented_graph([("A", "B"), ("A", "C"), ("B", "D"), ("C", "D")], layers)
        result = minimise_crossings(aug)
        for node_id, expected_layer in layers.items():
            assert node_id in result[expected_layer]

    def test_resolves_simple_crossing(self):
        aug = make_augmented_graph([("A", "D"), ("B", "C")], {"A": 0, "B": 0, "C": 1, "D": 1})
        result = minimise_crossings(aug)
        assert count_crossings(result, aug.graph) == 0

    def test_never_worse_than_initial(self):
        layers = {"A": 0, "B": 0, "C": 0, "D": 1, "E": 1, "F": 1}
        edges = [("A", "F"), ("A", "E"), ("B", "D"), ("C", "D"), ("C", "F")]
        aug = make_augmented_graph(edges, layers)
        initial = count_crossings([["A", "B", "C"], ["D", "E", "F"]], aug.graph)
        assert count_crossings(minimise_crossings(aug), aug.graph) <= initial

    def test_zero_iterations_keeps_insertion_order(self):
        aug = make_augmented_graph([("A", "D"), ("B", "C")], {"A": 0, "B": 0, "C": 1, "D": 1})
        assert minimise_crossings(aug, max_iterations=0) == [["A", "B"], ["C", "D"]]

    def test_empty_graph(self):
        aug = AugmentedGraph(graph=nx.DiGraph(), layers={}, layer_count=0, dummy_edges=[])
        assert minimise_crossings(aug) == []

    def test_single_node_single_layer(self):
        aug = make_augmented_graph([], {"A": 0})
        assert minimise_crossings(aug) == [["A"]]


# ─── assign_coordinates Tests ─────────────────────────────────────────────────


class TestAssignCoordinates:
    def test_layer_y_uses_layer_spacing(self):
        aug = make_augmented_graph([("A", "B"), ("B", "C")], {"A": 0, "B": 1, "C": 2})
        params = LayoutParameters(layer_spacing=7.0)
        result = {n.node: n for n in assign_coordinates([["A"], ["B"], ["C"]], aug, params)}
        assert [result[k].y for k in "ABC"] == [0.0, 7.0, 14.0]

    def test_layer_centred_on_origin(self):
        """Two unit-width nodes with spacing 2: centres at -1.5 and 1.5."""
        a, b, c = Box("a"), Box("b"), Box("c")
        g: nx.DiGraph = nx.DiGraph()
        g.add_edge(a, c)
        g.add_edge(b, c)
        aug = AugmentedGraph(graph=g, layers={a: 0, b: 0, c: 1}, layer_count=2)
        result = {n.node: n for n in assign_coordinates([[a, b], [c]], aug)}
        assert result[a].x == -1.5
        assert result[b].x == 1.5
        assert result[c].x == 0.0

    def test_width_from_handle(self):
        a, b = Box("a", width=6.0), Box("b", width=2.0)
        aug = AugmentedGraph(graph=nx.DiGraph(), layers={a: 0, b: 0}, layer_count=1)
        aug.graph.add_nodes_from([a, b])
        result = {n.node: n for n in assign_coordinates([[a, b]], aug)}
        assert result[a].width == 6.0
        # a spans [-5, 1], gap of 2, b spans [3, 5]
        assert result[b].x - result[a].x == 3.0 + 2.0 + 1.0

    def test_dummy_has_zero_size(self):
        aug = pipeline(("A", "C"), ("A", "B"), ("B", "C"))
        dummies = [n for n in assign_coordinates(minimise_crossings(aug), aug) if n.is_dummy]
        assert len(dummies) == 1
        assert (dummies[0].width, dummies[0].height) == (0.0, 0.0)

    def test_order_field_matches_position_in_layer(self):
        layers = {"A": 0, "B": 0, "C": 0}
        aug = make_augmented_graph([], layers)
        result = assign_coordinates([["C", "A", "B"]], aug)
        assert {n.node: n.order for n in result} == {"C": 0, "A": 1, "B": 2}

    def test_layout_node_construction(self):
        node = LayoutNode(node="A", layer=0, order=0, x=5, y=10, width=7, height=3)
        assert (node.x, node.y, node.width, node.height) == (5, 10, 7, 3)
        assert not node.is_dummy


# ─── Full Pipeline Tests ──────────────────────────────────────────────────────


class TestComputeLayeredLayout:
    def test_chain_layers_from_forest_root(self):
        roots = build_forest([("A", "B"), ("B", "C")])
        assert [r.handle for r in roots] == ["A"]
        result = compute_layered_layout([("A", "B"), ("B", "C")])
        assert result.layers == {"A": 0, "B": 1, "C": 2}

    def test_forest_roots_accepted_as_source(self):
        roots = build_forest([("A", "B"), ("B", "C")])
        result = compute_layered_layout(roots)
        assert result.layers == {"A": 0, "B": 1, "C": 2}

    def test_order_is_permutation_per_layer(self):
        edges = [("A", "B"), ("A", "C"), ("A", "F"), ("B", "D"), ("C", "D"), ("D", "A"), ("E", "F"), ("F", "G")]
        result = compute_layered_layout(edges)
        by_layer: dict[int, list[int]] = defaultdict(list)
        for node in result.nodes:
            by_layer[node.layer].append(node.order)
        for orders in by_layer.values():
            assert sorted(orders) == list(range(len(orders)))

    def test_positions_exclude_dummies(self):
        result = compute_layered_layout([("A", "C"), ("A", "B"), ("B", "C")])
        assert set(result.positions) == {"A", "B", "C"}
        assert len(result.dummy_edges) == 1
        assert any(n.is_dummy for n in result.nodes)

    def test_cycle_is_reported(self):
        result = compute_layered_layout([("A", "B"), ("B", "A")])
        assert result.reversed_edges == {("B", "A")}
        assert result.layers == {"A": 0, "B": 1}

    def test_isolated_nodes_kept(self):
        graph = GraphModel.build(["A", "B", "C"], [("A", "B")])
        result = compute_layered_layout(graph)
        assert result.layers["C"] == 0
        assert set(result.positions) == {"A", "B", "C"}

    def test_positions_are_vectors(self):
        result = compute_layered_layout([("A", "B")])
        assert result.positions["A"] == Vec2(0.0, 0.0)
        assert result.positions["B"] == Vec2(0.0, 10.0)

    def test_empty_input(self):
        result = compute_layered_layout([])
        assert result.positions == {}
        assert result.nodes == []

    def test_single_node_is_noop(self):
        graph = GraphModel.build(["A"], [])
        result = compute_layered_layout(graph)
        assert result.layers == {"A": 0}
        assert result.positions == {}

    def test_deterministic(self):
        edges = [("A", "D"), ("B", "C"), ("C", "E"), ("D", "E"), ("A", "E")]
        first = compute_layered_layout(edges)
        second = compute_layered_layout(edges)
        assert first.ordering == second.ordering
        assert first.positions == second.positions
