"""Layered layout: a Sugiyama-style pipeline.

Phases:
  1. Cycle removal      (DFS back-edge reversal)
  2. Layer assignment   (Kahn longest-path layering)
  3. Dummy node insertion (long edges become single-layer hops)
  4. Crossing minimization (barycenter heuristic)
  5. Coordinate assignment (x/y positions)

Phases run strictly in order and each works on its own copy of the graph;
the caller's GraphModel is never mutated.
"""

from __future__ import annotations

import bisect
import logging
from collections import deque
from collections.abc import Hashable, Iterator
from itertools import count, groupby

import networkx as nx

from node_layout.forest import ForestSource, coerce_graph
from node_layout.graph import node_size
from node_layout.layout.types import (
    AugmentedGraph,
    DummyEdge,
    DummyNode,
    LayeredLayout,
    LayoutNode,
    Vec2,
    is_dummy,
)
from node_layout.params import LayoutParameters

logger = logging.getLogger(__name__)

# ─── Cycle Removal (DFS back-edges) ───────────────────────────────────────────


def remove_cycles(graph: nx.DiGraph) -> tuple[nx.DiGraph, set[tuple[Hashable, Hashable]]]:
    """Remove cycles from a copy of the DiGraph by reversing DFS back-edges.

    Returns a tuple of:
    - new_graph: copy of graph with back-edges reversed (self-loops removed)
    - reversed_edges: set of (src, tgt) tuples that were reversed
      (identified relative to the ORIGINAL graph's edge directions)

    A back-edge is an edge whose target is on the current DFS stack. The DFS
    visits roots in node insertion order and is iterative.
    """
    if graph.number_of_nodes() == 0:
        return graph.copy(), set()

    reversed_edges: set[tuple[Hashable, Hashable]] = set()
    visited: set[Hashable] = set()
    on_stack: set[Hashable] = set()

    for start in graph.nodes:
        if start in visited:
            continue
        visited.add(start)
        on_stack.add(start)
        stack: list[tuple[Hashable, Iterator[Hashable]]] = [(start, iter(list(graph.successors(start))))]
        while stack:
            node, successors = stack[-1]
            succ = next(successors, None)
            if succ is None:
                stack.pop()
                on_stack.discard(node)
                continue
            if succ in on_stack:
                # Includes self-loops (node is on its own stack).
                reversed_edges.add((node, succ))
                continue
            if succ in visited:
                continue
            visited.add(succ)
            on_stack.add(succ)
            stack.append((succ, iter(list(graph.successors(succ)))))

    new_graph: nx.DiGraph = nx.DiGraph()
    for node_id in graph.nodes:
        new_graph.add_node(node_id, **graph.nodes[node_id])

    for src, tgt, edge_attrs in graph.edges(data=True):
        if src == tgt:
            continue
        if (src, tgt) in reversed_edges:
            src, tgt = tgt, src
        if new_graph.has_edge(src, tgt):
            # A 2-cycle collapses onto one edge; keep the combined weight.
            new_graph[src][tgt]["weight"] = new_graph[src][tgt].get("weight", 1.0) + edge_attrs.get("weight", 1.0)
        else:
            new_graph.add_edge(src, tgt, **edge_attrs)

    logger.debug("cycle removal: reversed %d edge(s)", len(reversed_edges))
    return new_graph, reversed_edges


# ─── Layer Assignment ─────────────────────────────────────────────────────────


class LayerAssignment:
    """Result of layer assignment: each node is assigned a layer (rank).

    Layer 0 is the top layer. This is computed on the cycle-free copy of the
    graph produced by ``remove_cycles``.

    Attributes:
        layers: Maps node → layer index.
        layer_count: Total number of layers.
        reversed_edges: Edges reversed during cycle removal (as (src, tgt) pairs).
    """

    def __init__(
        self,
        layers: dict[Hashable, int],
        layer_count: int,
        reversed_edges: set[tuple[Hashable, Hashable]],
    ) -> None:
        self.layers = layers
        self.layer_count = layer_count
        self.reversed_edges = reversed_edges

    @classmethod
    def assign(
        cls,
        dag: nx.DiGraph,
        reversed_edges: set[tuple[Hashable, Hashable]] | None = None,
    ) -> LayerAssignment:
        """Assign layers by a topological (Kahn) sweep.

        Each dequeued node relaxes its successors with
        ``layer[v] = max(layer[v], layer[u] + 1)``, which yields the minimum
        feasible layer for every node (longest-path layering).
        """
        layers: dict[Hashable, int] = {node: 0 for node in dag.nodes}
        remaining: dict[Hashable, int] = {node: dag.in_degree(node) for node in dag.nodes}
        queue: deque[Hashable] = deque(node for node in dag.nodes if remaining[node] == 0)

        processed = 0
        while queue:
            current = queue.popleft()
            processed += 1
            for succ in dag.successors(current):
                if layers[succ] < layers[current] + 1:
                    layers[succ] = layers[current] + 1
                remaining[succ] -= 1
                if remaining[succ] == 0:
                    queue.append(succ)

        if processed != dag.number_of_nodes():
            logger.warning(
                "layer assignment reached %d of %d nodes; input was not acyclic",
                processed,
                dag.number_of_nodes(),
            )

        layer_count = (max(layers.values()) + 1) if layers else 0
        return cls(layers=layers, layer_count=layer_count, reversed_edges=set(reversed_edges or ()))


# ─── Dummy Node Insertion ──────────────────────────────────────────────────────


def insert_dummy_nodes(dag: nx.DiGraph, la: LayerAssignment) -> AugmentedGraph:
    """Insert dummy nodes into the cycle-free, layer-assigned graph.

    For each edge (u → v) where layer[v] - layer[u] > 1, the edge is removed
    and replaced by the chain:
        u → d₀ → d₁ → … → dₖ → v
    where each dᵢ lives in layer ``layer[u] + i + 1``.

    Returns:
        An ``AugmentedGraph`` where every edge connects adjacent-layer nodes.
    """
    g: nx.DiGraph = nx.DiGraph()
    for node_id in dag.nodes:
        g.add_node(node_id, **dag.nodes[node_id])

    layers: dict[Hashable, int] = dict(la.layers)
    dummy_edges: list[DummyEdge] = []
    chains = count()

    for src, tgt, attrs in list(dag.edges(data=True)):
        weight = attrs.get("weight", 1.0)
        span = layers[tgt] - layers[src]

        if span <= 1:
            g.add_edge(src, tgt, weight=weight)
            continue

        chain = next(chains)
        dummy_ids: list[DummyNode] = []
        prev = src
        for step in range(span - 1):
            dummy = DummyNode(chain, step)
            g.add_node(dummy)
            layers[dummy] = layers[src] + step + 1
            g.add_edge(prev, dummy, weight=weight)
            dummy_ids.append(dummy)
            prev = dummy
        g.add_edge(prev, tgt, weight=weight)

        dummy_edges.append(DummyEdge(original_src=src, original_tgt=tgt, dummy_ids=dummy_ids, weight=weight))

    layer_count = (max(layers.values()) + 1) if layers else 0
    logger.debug("dummy insertion: %d long edge(s) split", len(dummy_edges))
    return AugmentedGraph(graph=g, layers=layers, layer_count=layer_count, dummy_edges=dummy_edges)


# ─── Crossing Minimization (Barycenter) ───────────────────────────────────────


def minimise_crossings(aug: AugmentedGraph, max_iterations: int = 24) -> list[list[Hashable]]:
    """Minimise edge crossings using the barycenter heuristic.

    Each round is a forward sweep (layers 1..N, keyed on predecessors) then a
    backward sweep (layers N-1..0, keyed on successors). Rounds stop early
    when a full round moves nothing. The ordering with the fewest crossings
    seen is returned.

    Returns a list[list[node]], one inner list per layer, in minimised order.
    """
    layer_count = aug.layer_count

    # Initial ordering: group by layer, keep insertion order for determinism.
    ordering: list[list[Hashable]] = [[] for _ in range(layer_count)]
    for node in aug.graph.nodes:
        ordering[aug.layers[node]].append(node)

    best = [list(layer) for layer in ordering]
    best_crossings = count_crossings(ordering, aug.graph)

    for round_idx in range(max_iterations):
        if best_crossings == 0:
            break
        changed = False

        for layer_idx in range(1, layer_count):
            changed |= _reorder_layer(ordering, layer_idx, layer_idx - 1, aug.graph, "incoming")

        for layer_idx in range(layer_count - 2, -1, -1):
            changed |= _reorder_layer(ordering, layer_idx, layer_idx + 1, aug.graph, "outgoing")

        crossings = count_crossings(ordering, aug.graph)
        if crossings < best_crossings:
            best_crossings = crossings
            best = [list(layer) for layer in ordering]

        if not changed:
            logger.debug("crossing minimisation settled after %d round(s)", round_idx + 1)
            break

    return best


def _reorder_layer(
    ordering: list[list[Hashable]],
    layer_idx: int,
    fixed_idx: int,
    graph: nx.DiGraph,
    direction: str,
) -> bool:
    """Stable-sort one layer by barycenter against a fixed neighbour layer."""
    fixed_pos: dict[Hashable, float] = {node: float(i) for i, node in enumerate(ordering[fixed_idx])}
    layer = ordering[layer_idx]
    keys = {node: _barycenter(node, graph, fixed_pos, direction, float(i)) for i, node in enumerate(layer)}
    reordered = sorted(layer, key=keys.__getitem__)
    if reordered == layer:
        return False
    ordering[layer_idx] = reordered
    return True


def _barycenter(
    node: Hashable,
    graph: nx.DiGraph,
    neighbor_pos: dict[Hashable, float],
    direction: str,
    fallback: float,
) -> float:
    """Average position of a node's neighbours in the adjacent layer (barycenter weight).

    direction: "incoming" to look at predecessors, "outgoing" for successors.
    Nodes without neighbours there keep ``fallback`` (their current index).
    """
    neighbors = graph.predecessors(node) if direction == "incoming" else graph.successors(node)
    positions = [neighbor_pos[nb] for nb in neighbors if nb in neighbor_pos]
    if not positions:
        return fallback
    return sum(positions) / len(positions)


def count_crossings(ordering: list[list[Hashable]], graph: nx.DiGraph) -> int:
    """Count edge crossings between consecutive layers.

    Edges are sorted by (source position, target position); a later edge
    crosses every earlier edge from a strictly-left source whose target lies
    strictly to its right.
    """
    total = 0
    for l_idx in range(len(ordering) - 1):
        tgt_pos: dict[Hashable, int] = {node: i for i, node in enumerate(ordering[l_idx + 1])}
        edges: list[tuple[int, int]] = []
        for sp, src in enumerate(ordering[l_idx]):
            if src in graph:
                edges.extend((sp, tgt_pos[nb]) for nb in graph.successors(src) if nb in tgt_pos)
        edges.sort()

        seen: list[int] = []
        for _, group in groupby(edges, key=lambda e: e[0]):
            targets = [tp for _, tp in group]
            for tp in targets:
                total += len(seen) - bisect.bisect_right(seen, tp)
            for tp in targets:
                bisect.insort(seen, tp)
    return total


# ─── Coordinate Assignment ────────────────────────────────────────────────────


def assign_coordinates(
    ordering: list[list[Hashable]],
    aug: AugmentedGraph,
    params: LayoutParameters | None = None,
) -> list[LayoutNode]:
    """Assign (x, y) coordinates to every node in the augmented graph.

    Each layer is packed left-to-right with ``width + node_spacing`` and
    centred on x = 0; ``x`` is the node centre. ``y = layer * layer_spacing``.
    Dummy nodes have zero size.
    """
    params = params or LayoutParameters()
    nodes: list[LayoutNode] = []

    for layer_idx, layer_nodes in enumerate(ordering):
        sizes = [(0.0, 0.0) if is_dummy(node) else node_size(node) for node in layer_nodes]
        total_width = sum(w for w, _ in sizes) + params.node_spacing * max(0, len(layer_nodes) - 1)
        x = -total_width / 2.0
        y = layer_idx * params.layer_spacing

        for order, (node, (width, height)) in enumerate(zip(layer_nodes, sizes)):
            nodes.append(
                LayoutNode(
                    node=node,
                    layer=layer_idx,
                    order=order,
                    x=x + width / 2.0,
                    y=y,
                    width=width,
                    height=height,
                )
            )
            x += width + params.node_spacing

    return nodes


# ─── Full Layout Pipeline ──────────────────────────────────────────────────────


def compute_layered_layout(source: ForestSource, params: LayoutParameters | None = None) -> LayeredLayout:
    """Run all five phases and return the result without touching any handle."""
    params = params or LayoutParameters()
    graph = coerce_graph(source)
    digraph = graph.digraph

    if digraph.number_of_nodes() == 0:
        return LayeredLayout()
    if digraph.number_of_nodes() == 1:
        (only,) = digraph.nodes
        return LayeredLayout(ordering=[[only]], layers={only: 0})

    dag, reversed_edges = remove_cycles(digraph)
    la = LayerAssignment.assign(dag, reversed_edges)
    aug = insert_dummy_nodes(dag, la)
    ordering = minimise_crossings(aug, params.max_crossing_iterations)
    layout_nodes = assign_coordinates(ordering, aug, params)

    positions = {n.node: Vec2(n.x, n.y) for n in layout_nodes if not n.is_dummy}
    crossings = count_crossings(ordering, aug.graph)
    logger.debug(
        "layered layout: %d nodes, %d layers, %d dummies, %d crossings",
        len(positions),
        aug.layer_count,
        len(layout_nodes) - len(positions),
        crossings,
    )

    return LayeredLayout(
        nodes=layout_nodes,
        ordering=ordering,
        layers=dict(la.layers),
        reversed_edges=reversed_edges,
        dummy_edges=aug.dummy_edges,
        crossings=crossings,
        positions=positions,
    )
