"""Layout types shared across the layout engines."""

from __future__ import annotations

import math
from collections.abc import Hashable
from dataclasses import dataclass, field

import networkx as nx


@dataclass(frozen=True)
class Vec2:
    """A 2D vector / point in layout units."""

    x: float = 0.0
    y: float = 0.0

    def __add__(self, other: Vec2) -> Vec2:
        return Vec2(self.x + other.x, self.y + other.y)

    def __sub__(self, other: Vec2) -> Vec2:
        return Vec2(self.x - other.x, self.y - other.y)

    def __mul__(self, factor: float) -> Vec2:
        return Vec2(self.x * factor, self.y * factor)

    __rmul__ = __mul__

    def __truediv__(self, divisor: float) -> Vec2:
        return Vec2(self.x / divisor, self.y / divisor)

    def __neg__(self) -> Vec2:
        return Vec2(-self.x, -self.y)

    def length(self) -> float:
        return math.hypot(self.x, self.y)

    def distance_to(self, other: Vec2) -> float:
        return math.hypot(self.x - other.x, self.y - other.y)

    def clamped(self, max_length: float) -> Vec2:
        """Scale down to ``max_length`` if longer; direction is preserved."""
        length = self.length()
        if length <= max_length or length == 0.0:
            return self
        return self * (max_length / length)


# Positions handed back to the collaborator, keyed by its node handles.
PositionMap = dict[Hashable, Vec2]


@dataclass(frozen=True)
class DummyNode:
    """Synthetic node standing in for one hop of a multi-layer edge.

    ``chain`` identifies the long edge, ``step`` the hop within it (0-based).
    Being its own type, a dummy can never compare equal to a collaborator handle.
    """

    chain: int
    step: int


def is_dummy(node: object) -> bool:
    return isinstance(node, DummyNode)


@dataclass
class LayoutNode:
    """A positioned node in the layered layout (real or dummy).

    ``x`` is the node's horizontal centre, ``y`` its layer row.
    """

    node: Hashable
    layer: int
    order: int
    x: float
    y: float
    width: float
    height: float

    @property
    def is_dummy(self) -> bool:
        return is_dummy(self.node)


@dataclass
class DummyEdge:
    """The result of dummy node insertion for a single long edge.

    When an edge spans more than one layer (layer[tgt] - layer[src] > 1),
    it is replaced by a chain of dummy nodes, one per intermediate layer.
    """

    original_src: Hashable
    original_tgt: Hashable
    dummy_ids: list[DummyNode]
    weight: float = 1.0


@dataclass
class AugmentedGraph:
    """A graph augmented with dummy nodes for edges that span multiple layers.

    After dummy node insertion, every edge in the augmented graph connects
    nodes in adjacent layers (layer difference == 1). This is a pre-condition
    for crossing minimisation and coordinate assignment.
    """

    graph: nx.DiGraph
    layers: dict[Hashable, int]
    layer_count: int
    dummy_edges: list[DummyEdge] = field(default_factory=list)


@dataclass
class LayeredLayout:
    """Everything the layered engine computed, before any write-back.

    ``positions`` covers real nodes only; dummies live in ``nodes`` and
    ``dummy_edges`` so a renderer can route long edges through them.
    """

    nodes: list[LayoutNode] = field(default_factory=list)
    ordering: list[list[Hashable]] = field(default_factory=list)
    layers: dict[Hashable, int] = field(default_factory=dict)
    reversed_edges: set[tuple[Hashable, Hashable]] = field(default_factory=set)
    dummy_edges: list[DummyEdge] = field(default_factory=list)
    crossings: int = 0
    positions: PositionMap = field(default_factory=dict)
