"""GraphModel: in-memory adjacency over opaque, collaborator-owned node handles.

Nodes are stored directly as ``networkx.DiGraph`` nodes, so lookups are hash
lookups on the handle's own ``__hash__``/``__eq__``. Edge direction means
"source is drawn above / before target".
"""

from __future__ import annotations

import math
from collections.abc import Hashable, Iterable, Iterator
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

import networkx as nx

from node_layout.errors import InvalidNodeSizeError, UnknownNodeError

DEFAULT_NODE_SIZE: float = 1.0


@runtime_checkable
class NodeHandle(Protocol):
    """What the engines need from a collaborator's node.

    ``width``/``height`` are read-only. ``is_valid`` is optional; when present
    and falsy the handle is skipped at write-back.
    """

    @property
    def width(self) -> float: ...

    @property
    def height(self) -> float: ...

    def set_position(self, x: float, y: float) -> None: ...


@dataclass(frozen=True)
class Edge:
    """A directed edge between two handles."""

    source: Hashable
    target: Hashable
    weight: float = 1.0


def as_edge(item: Edge | tuple[Any, ...]) -> Edge:
    """Accept an ``Edge`` or a ``(source, target[, weight])`` tuple."""
    if isinstance(item, Edge):
        return item
    if len(item) == 2:
        return Edge(item[0], item[1])
    if len(item) == 3:
        return Edge(item[0], item[1], float(item[2]))
    raise TypeError(f"expected (source, target[, weight]), got {item!r}")


def node_size(handle: object) -> tuple[float, float]:
    """Return ``(width, height)`` for a handle, defaulting missing sizes to 1."""
    width = float(getattr(handle, "width", DEFAULT_NODE_SIZE))
    height = float(getattr(handle, "height", DEFAULT_NODE_SIZE))
    for value in (width, height):
        if not math.isfinite(value) or value < 0:
            raise InvalidNodeSizeError(f"node {handle!r} has invalid size ({width}, {height})")
    return width, height


class GraphModel:
    """Directed graph over node handles.

    Parallel edges collapse into a single edge whose ``weight`` is the sum of
    the parallel weights. Node order is insertion order, which every engine
    relies on for deterministic output.
    """

    def __init__(self, digraph: nx.DiGraph | None = None) -> None:
        self.digraph: nx.DiGraph = digraph if digraph is not None else nx.DiGraph()

    @classmethod
    def build(cls, nodes: Iterable[Hashable], edges: Iterable[Edge | tuple[Any, ...]]) -> GraphModel:
        """Build from an explicit node list; edges must only reference listed nodes."""
        g: nx.DiGraph = nx.DiGraph()
        for node in nodes:
            g.add_node(node)
        model = cls(g)
        for item in edges:
            edge = as_edge(item)
            if edge.source not in g:
                raise UnknownNodeError(edge.source)
            if edge.target not in g:
                raise UnknownNodeError(edge.target)
            model._add_edge(edge)
        return model

    @classmethod
    def from_edges(cls, edges: Iterable[Edge | tuple[Any, ...]]) -> GraphModel:
        """Build from edges alone; nodes appear in order of first reference."""
        model = cls()
        for item in edges:
            edge = as_edge(item)
            model.digraph.add_node(edge.source)
            model.digraph.add_node(edge.target)
            model._add_edge(edge)
        return model

    def _add_edge(self, edge: Edge) -> None:
        if self.digraph.has_edge(edge.source, edge.target):
            self.digraph[edge.source][edge.target]["weight"] += edge.weight
        else:
            self.digraph.add_edge(edge.source, edge.target, weight=edge.weight)

    # ── Queries ──────────────────────────────────────────────────────────────

    def _require(self, node: Hashable) -> None:
        if node not in self.digraph:
            raise UnknownNodeError(node)

    def neighbors_out(self, node: Hashable) -> list[Hashable]:
        self._require(node)
        return list(self.digraph.successors(node))

    def neighbors_in(self, node: Hashable) -> list[Hashable]:
        self._require(node)
        return list(self.digraph.predecessors(node))

    def all_nodes(self) -> list[Hashable]:
        return list(self.digraph.nodes)

    def edges(self) -> list[Edge]:
        return [Edge(s, t, attrs.get("weight", 1.0)) for s, t, attrs in self.digraph.edges(data=True)]

    def weight(self, source: Hashable, target: Hashable) -> float:
        self._require(source)
        self._require(target)
        if not self.digraph.has_edge(source, target):
            return 0.0
        return self.digraph[source][target].get("weight", 1.0)

    def number_of_edges(self) -> int:
        return self.digraph.number_of_edges()

    def __len__(self) -> int:
        return self.digraph.number_of_nodes()

    def __contains__(self, node: object) -> bool:
        return node in self.digraph

    def __iter__(self) -> Iterator[Hashable]:
        return iter(self.digraph.nodes)

    def __repr__(self) -> str:
        return f"GraphModel(nodes={len(self)}, edges={self.number_of_edges()})"
