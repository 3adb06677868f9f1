"""Multiscale force-directed layout.

The graph is coarsened into a hierarchy by greedy neighbour matching, the
coarsest level is placed on a circle, and each level is refined by a force
simulation before its positions are interpolated down to the next finer
level.

Within one iteration all forces are computed from a frozen snapshot of the
positions before any node moves, so the force phase can be fanned out over
a thread pool without locks.
"""

from __future__ import annotations

import logging
import math
import random
from collections.abc import Hashable, Mapping, Sequence
from concurrent.futures import Executor, ThreadPoolExecutor
from contextlib import nullcontext
from dataclasses import dataclass, field

import networkx as nx

from node_layout.forest import ForestSource, coerce_graph
from node_layout.graph import GraphModel
from node_layout.layout.types import PositionMap, Vec2
from node_layout.params import LayoutParameters

logger = logging.getLogger(__name__)

# Distances below this are treated as coincident when computing forces.
MIN_DISTANCE: float = 0.01
GOLDEN_ANGLE: float = math.pi * (3.0 - math.sqrt(5.0))
# Below this many nodes a thread pool costs more than it saves.
PARALLEL_MIN_NODES: int = 64


@dataclass(eq=False)
class CoarseNode:
    """One or more original nodes merged during coarsening."""

    represented: list[Hashable]
    position: Vec2 = field(default_factory=Vec2)
    velocity: Vec2 = field(default_factory=Vec2)
    force: Vec2 = field(default_factory=Vec2)
    mass: float = 1.0
    neighbors: dict[CoarseNode, float] = field(default_factory=dict)
    parent: CoarseNode | None = None
    children: list[CoarseNode] = field(default_factory=list)

    @property
    def degree(self) -> int:
        return len(self.neighbors)

    def __repr__(self) -> str:
        return f"CoarseNode(represented={self.represented!r}, mass={self.mass})"


Level = list[CoarseNode]


# ─── Graph Construction ───────────────────────────────────────────────────────


def undirected_weights(graph: GraphModel) -> nx.Graph:
    """Collapse direction: u→v and v→u merge, weights summed; self-loops dropped."""
    g: nx.Graph = nx.Graph()
    g.add_nodes_from(graph.digraph.nodes)
    for src, tgt, attrs in graph.digraph.edges(data=True):
        if src == tgt:
            continue
        weight = attrs.get("weight", 1.0)
        if g.has_edge(src, tgt):
            g[src][tgt]["weight"] += weight
        else:
            g.add_edge(src, tgt, weight=weight)
    return g


def build_finest_level(
    graph: nx.Graph,
    params: LayoutParameters,
    rng: random.Random,
    initial_positions: Mapping[Hashable, Vec2 | tuple[float, float]] | None = None,
) -> Level:
    """Wrap every node in a unit-mass CoarseNode with a seeded start position."""
    spread = math.sqrt(max(1, graph.number_of_nodes())) * params.ideal_edge_length
    initial_positions = initial_positions or {}

    lookup: dict[Hashable, CoarseNode] = {}
    level: Level = []
    for handle in graph.nodes:
        given = initial_positions.get(handle)
        if given is not None:
            position = given if isinstance(given, Vec2) else Vec2(float(given[0]), float(given[1]))
        else:
            position = Vec2(rng.uniform(-spread, spread), rng.uniform(-spread, spread))
        node = CoarseNode(represented=[handle], position=position)
        lookup[handle] = node
        level.append(node)

    for u, v, attrs in graph.edges(data=True):
        weight = attrs.get("weight", 1.0)
        lookup[u].neighbors[lookup[v]] = weight
        lookup[v].neighbors[lookup[u]] = weight
    return level


# ─── Coarsening ───────────────────────────────────────────────────────────────


def coarsen(level: Level, use_distance: bool = False) -> Level:
    """One greedy matching pass.

    Each unprocessed node is merged with its best unprocessed neighbour:
    the one with the lowest degree, or the nearest one when ``use_distance``.
    Unmatched nodes are carried up alone. Sets ``parent`` on every node of
    ``level``.
    """
    processed: set[CoarseNode] = set()
    coarser: Level = []

    for node in level:
        if node in processed:
            continue
        processed.add(node)

        best: CoarseNode | None = None
        best_score = -math.inf
        for neighbor in node.neighbors:
            if neighbor in processed:
                continue
            if use_distance:
                score = 1.0 / (node.position.distance_to(neighbor.position) + 1e-9)
            else:
                score = 1.0 / (neighbor.degree + 1)
            if score > best_score:
                best_score = score
                best = neighbor

        members = [node] if best is None else [node, best]
        if best is not None:
            processed.add(best)

        mass = sum(m.mass for m in members)
        position = Vec2(
            sum(m.position.x * m.mass for m in members) / mass,
            sum(m.position.y * m.mass for m in members) / mass,
        )
        merged = CoarseNode(
            represented=[h for m in members for h in m.represented],
            position=position,
            mass=mass,
            children=members,
        )
        for member in members:
            member.parent = merged
        coarser.append(merged)

    for merged in coarser:
        for child in merged.children:
            for neighbor, weight in child.neighbors.items():
                target = neighbor.parent
                if target is None or target is merged:
                    continue
                merged.neighbors[target] = merged.neighbors.get(target, 0.0) + weight

    return coarser


def build_hierarchy(finest: Level, params: LayoutParameters, use_distance: bool = False) -> list[Level]:
    """Coarsen until the level is small enough or a pass stops paying off.

    ``levels[0]`` is the finest level, ``levels[-1]`` the coarsest. A pass is
    kept only if it strictly shrinks the level and keeps at least
    ``coarsening_ratio`` of its nodes.
    """
    levels: list[Level] = [finest]
    while len(levels[-1]) > params.coarsening_threshold and len(levels) < params.max_levels:
        current = levels[-1]
        coarser = coarsen(current, use_distance)
        if len(coarser) >= len(current) or len(coarser) < len(current) * params.coarsening_ratio:
            for node in current:
                node.parent = None
            break
        levels.append(coarser)

    logger.debug("coarsening hierarchy: %s", " -> ".join(str(len(level)) for level in levels))
    return levels


# ─── Initial Placement ────────────────────────────────────────────────────────


def place_on_circle(level: Level, params: LayoutParameters) -> None:
    """Spread the nodes evenly on a circle of radius sqrt(n) * ideal_edge_length."""
    n = len(level)
    if n == 0:
        return
    radius = math.sqrt(n) * params.ideal_edge_length
    for i, node in enumerate(level):
        angle = 2.0 * math.pi * i / n
        node.position = Vec2(radius * math.cos(angle), radius * math.sin(angle))
        node.velocity = Vec2()


def place_on_grid(level: Level, params: LayoutParameters) -> None:
    """Row-major square grid with pitch 2 * ideal_edge_length, centred on the origin."""
    n = len(level)
    if n == 0:
        return
    cols = math.ceil(math.sqrt(n))
    spacing = params.ideal_edge_length * 2.0
    offset = (cols - 1) * spacing / 2.0
    for i, node in enumerate(level):
        row, col = divmod(i, cols)
        node.position = Vec2(col * spacing - offset, row * spacing - offset)
        node.velocity = Vec2()


# ─── Force Simulation ─────────────────────────────────────────────────────────


class _Snapshot:
    """Read-only view of one level's positions for the force phase."""

    def __init__(self, level: Level, params: LayoutParameters, edge_pairs_only: bool) -> None:
        index = {node: i for i, node in enumerate(level)}
        self.count = len(level)
        self.xs = [node.position.x for node in level]
        self.ys = [node.position.y for node in level]
        self.masses = [node.mass for node in level]
        self.adjacency = [[(index[nb], w) for nb, w in node.neighbors.items() if nb in index] for node in level]
        self.params = params
        self.edge_pairs_only = edge_pairs_only
        self.cell = params.repulsion_cutoff
        self.grid: dict[tuple[int, int], list[int]] = {}
        if not edge_pairs_only:
            for i in range(self.count):
                self.grid.setdefault(self._cell_of(i), []).append(i)

    def _cell_of(self, i: int) -> tuple[int, int]:
        return math.floor(self.xs[i] / self.cell), math.floor(self.ys[i] / self.cell)

    def _repulsion(self, i: int, j: int) -> tuple[float, float]:
        dx = self.xs[i] - self.xs[j]
        dy = self.ys[i] - self.ys[j]
        dist = math.hypot(dx, dy)
        if dist < MIN_DISTANCE:
            # Coincident pair: push apart along a fixed, pair-specific direction.
            lo, hi = (i, j) if i < j else (j, i)
            angle = GOLDEN_ANGLE * (lo * self.count + hi)
            sign = 1.0 if i < j else -1.0
            dx, dy, dist = sign * math.cos(angle), sign * math.sin(angle), 1.0
            scale = MIN_DISTANCE
        else:
            scale = dist
        magnitude = self.params.repulsion_strength * self.masses[i] * self.masses[j] / (scale * scale)
        return dx / dist * magnitude, dy / dist * magnitude

    def force_on(self, i: int) -> tuple[float, float]:
        params = self.params
        fx = fy = 0.0

        if not self.edge_pairs_only:
            cutoff = params.repulsion_cutoff
            cx, cy = self._cell_of(i)
            for gx in (cx - 1, cx, cx + 1):
                for gy in (cy - 1, cy, cy + 1):
                    for j in self.grid.get((gx, gy), ()):
                        if j == i:
                            continue
                        if math.hypot(self.xs[i] - self.xs[j], self.ys[i] - self.ys[j]) >= cutoff:
                            continue
                        rx, ry = self._repulsion(i, j)
                        fx += rx
                        fy += ry

        for j, weight in self.adjacency[i]:
            if self.edge_pairs_only:
                rx, ry = self._repulsion(i, j)
                fx += rx
                fy += ry
            dx = self.xs[j] - self.xs[i]
            dy = self.ys[j] - self.ys[i]
            dist = math.hypot(dx, dy)
            if dist < MIN_DISTANCE:
                continue
            magnitude = params.attraction_strength * weight * math.log(dist / params.ideal_edge_length)
            fx += dx / dist * magnitude
            fy += dy / dist * magnitude

        return fx, fy

    def force_chunk(self, indices: range) -> list[tuple[float, float]]:
        return [self.force_on(i) for i in indices]


def compute_forces(
    level: Level,
    params: LayoutParameters,
    executor: Executor | None = None,
    edge_pairs_only: bool = False,
) -> list[Vec2]:
    """Net force on every node of ``level``; positions are only read."""
    snapshot = _Snapshot(level, params, edge_pairs_only)
    n = len(level)
    if executor is None or n < PARALLEL_MIN_NODES:
        raw = snapshot.force_chunk(range(n))
    else:
        chunk = math.ceil(n / params.workers)
        chunks = [range(start, min(n, start + chunk)) for start in range(0, n, chunk)]
        raw = [f for part in executor.map(snapshot.force_chunk, chunks) for f in part]
    return [Vec2(fx, fy) for fx, fy in raw]


def integrate(level: Level, forces: Sequence[Vec2], params: LayoutParameters, temperature: float) -> float:
    """Apply one integration step and return the level's kinetic energy."""
    dt = params.time_step
    energy = 0.0
    for node, force in zip(level, forces):
        force = force.clamped(temperature)
        velocity = (node.velocity + force * (dt / node.mass)) * params.damping
        node.force = force
        node.velocity = velocity
        node.position = node.position + velocity * dt
        energy += 0.5 * node.mass * (velocity.x * velocity.x + velocity.y * velocity.y)
    return energy


def refine(
    level: Level,
    params: LayoutParameters,
    iterations: int,
    executor: Executor | None = None,
    edge_pairs_only: bool = False,
) -> int:
    """Run the cooled force simulation on one level; returns iterations used."""
    temperature = params.initial_temperature
    for iteration in range(iterations):
        forces = compute_forces(level, params, executor, edge_pairs_only)
        energy = integrate(level, forces, params, temperature)
        temperature = max(temperature * params.cooling_rate, params.min_temperature)
        if energy < params.energy_epsilon:
            return iteration + 1
    return iterations


def interpolate(fine: Level, params: LayoutParameters, rng: random.Random) -> None:
    """Seed each fine node from its coarse parent, plus jitter and some momentum."""
    jitter = params.interpolation_jitter * params.ideal_edge_length
    for node in fine:
        parent = node.parent
        if parent is None:
            continue
        offset = Vec2(rng.uniform(-1.0, 1.0), rng.uniform(-1.0, 1.0)) * jitter
        node.position = parent.position + offset
        node.velocity = parent.velocity * params.velocity_retention


# ─── Full Layout Pipeline ──────────────────────────────────────────────────────


def compute_multiscale_layout(
    source: ForestSource,
    params: LayoutParameters | None = None,
    initial_positions: Mapping[Hashable, Vec2 | tuple[float, float]] | None = None,
) -> PositionMap:
    """Lay out ``source`` and return centred positions; no handle is touched.

    ``initial_positions`` (optional) replaces the random start positions and
    switches coarsening to distance-based matching. The circle and grid
    start placements are skipped, so the finest level starts where the
    caller put it and coarse levels start at their mass-weighted centres.
    """
    params = params or LayoutParameters()
    graph = undirected_weights(coerce_graph(source))
    if graph.number_of_nodes() == 0:
        return {}

    rng = random.Random(params.seed)
    finest = build_finest_level(graph, params, rng, initial_positions)

    seeded = bool(initial_positions)
    if params.workers > 1 and len(finest) >= PARALLEL_MIN_NODES:
        pool = ThreadPoolExecutor(max_workers=params.workers, thread_name_prefix="node-layout")
    else:
        pool = nullcontext()
    with pool as executor:
        if len(finest) > params.large_graph_threshold:
            logger.debug("multiscale: %d nodes above threshold, single-level edge-only variant", len(finest))
            if not seeded:
                place_on_grid(finest, params)
            refine(finest, params, params.large_graph_iterations, executor, edge_pairs_only=True)
        else:
            levels = build_hierarchy(finest, params, use_distance=seeded)
            if not seeded:
                place_on_circle(levels[-1], params)
            for depth in range(len(levels) - 1, -1, -1):
                used = refine(levels[depth], params, params.max_iterations_per_level, executor)
                logger.debug("multiscale: level %d (%d nodes) refined in %d iterations", depth, len(levels[depth]), used)
                if depth > 0:
                    interpolate(levels[depth - 1], params, rng)

    cx = sum(node.position.x for node in finest) / len(finest)
    cy = sum(node.position.y for node in finest) / len(finest)
    centroid = Vec2(cx, cy)
    return {node.represented[0]: node.position - centroid for node in finest}
