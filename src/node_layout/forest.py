"""Forest building: turn an arbitrary (possibly cyclic) edge list into rooted trees.

The forest is a DAG-with-merge: a TreeNode may have several parents, and
cycles stay in the data. A cycle is made reachable by declaring one of its
nodes a "cycle root".

Every traversal here uses an explicit stack, so pathological inputs (long
chains, deep cycles) never hit the interpreter's recursion limit.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Hashable, Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from typing import Any

from node_layout.graph import Edge, GraphModel

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class TreeNode:
    """A node in the forest. Equality and hashing are by identity."""

    handle: Hashable
    children: list[TreeNode] = field(default_factory=list)
    parents: list[TreeNode] = field(default_factory=list)

    def __repr__(self) -> str:
        return f"TreeNode({self.handle!r}, children={len(self.children)}, parents={len(self.parents)})"


ForestSource = GraphModel | Sequence[TreeNode] | Iterable[Edge | tuple[Any, ...]]


def build_forest(source: GraphModel | Iterable[Edge | tuple[Any, ...]]) -> list[TreeNode]:
    """Build the forest and return its roots.

    Roots are, in order: parent-less nodes, then one entry point per cycle
    met while walking up the parents of every node not yet visited. If
    neither exists, the nodes with the most children are used. Always
    returns at least one root for non-empty input.
    """
    graph = source if isinstance(source, GraphModel) else GraphModel.from_edges(source)

    node_map: dict[Hashable, TreeNode] = {handle: TreeNode(handle) for handle in graph}
    for src, tgt in graph.digraph.edges():
        parent = node_map[src]
        child = node_map[tgt]
        if child not in parent.children:
            parent.children.append(child)
        if parent not in child.parents:
            child.parents.append(parent)

    return find_root_nodes(list(node_map.values()))


def find_root_nodes(nodes: Sequence[TreeNode]) -> list[TreeNode]:
    """Select roots for an already-linked set of TreeNodes."""
    if not nodes:
        return []

    roots: list[TreeNode] = []
    recorded: set[TreeNode] = set()
    visited: set[TreeNode] = set()
    in_stack: set[TreeNode] = set()

    for node in nodes:
        if not node.parents:
            roots.append(node)
            recorded.add(node)
            visited.add(node)

    for node in nodes:
        if node not in visited:
            _find_cycle_roots(node, visited, in_stack, roots, recorded)

    if not roots:
        max_children = max(len(n.children) for n in nodes)
        roots = [n for n in nodes if len(n.children) == max_children]
        recorded.update(roots)
        logger.warning(
            "degenerate root set: no parent-less node or cycle entry found; using %d node(s) with %d children",
            len(roots),
            max_children,
        )

    reached = set(walk_forest(roots))
    for node in nodes:
        if node not in reached:
            logger.debug("node %r unreachable from roots; promoting to root", node.handle)
            roots.append(node)
            reached.update(walk_forest([node]))

    logger.debug("forest: %d nodes, %d roots", len(nodes), len(roots))
    return roots


def _find_cycle_roots(
    start: TreeNode,
    visited: set[TreeNode],
    in_stack: set[TreeNode],
    roots: list[TreeNode],
    recorded: set[TreeNode],
) -> None:
    """DFS along ``parents``; the first node met again on the stack is a cycle root."""
    visited.add(start)
    in_stack.add(start)
    stack: list[tuple[TreeNode, Iterator[TreeNode]]] = [(start, iter(start.parents))]

    while stack:
        node, parents = stack[-1]
        parent = next(parents, None)
        if parent is None:
            stack.pop()
            in_stack.discard(node)
            continue
        if parent in in_stack:
            if parent not in recorded:
                roots.append(parent)
                recorded.add(parent)
            continue
        if parent in visited:
            continue
        visited.add(parent)
        in_stack.add(parent)
        stack.append((parent, iter(parent.parents)))


def walk_forest(roots: Iterable[TreeNode]) -> Iterator[TreeNode]:
    """Pre-order traversal over ``children``; every node is yielded exactly once."""
    seen: set[TreeNode] = set()
    for root in roots:
        if root in seen:
            continue
        seen.add(root)
        stack: list[TreeNode] = [root]
        while stack:
            node = stack.pop()
            yield node
            for child in reversed(node.children):
                if child not in seen:
                    seen.add(child)
                    stack.append(child)


def forest_levels(roots: Sequence[TreeNode]) -> dict[TreeNode, int]:
    """Breadth-first depth of every reachable node (roots are level 0)."""
    levels: dict[TreeNode, int] = {}
    queue: deque[TreeNode] = deque()
    for root in roots:
        if root not in levels:
            levels[root] = 0
            queue.append(root)
    while queue:
        node = queue.popleft()
        for child in node.children:
            if child not in levels:
                levels[child] = levels[node] + 1
                queue.append(child)
    return levels


def forest_to_graph(roots: Sequence[TreeNode]) -> GraphModel:
    """Flatten a forest back into a GraphModel (children edges only)."""
    model = GraphModel()
    nodes = list(walk_forest(roots))
    for node in nodes:
        model.digraph.add_node(node.handle)
    for node in nodes:
        for child in node.children:
            if not model.digraph.has_edge(node.handle, child.handle):
                model.digraph.add_edge(node.handle, child.handle, weight=1.0)
    return model


def _is_forest(source: object) -> bool:
    return isinstance(source, Sequence) and len(source) > 0 and all(isinstance(n, TreeNode) for n in source)


def coerce_graph(source: ForestSource) -> GraphModel:
    """Accept a GraphModel, a list of TreeNode roots, or an edge iterable."""
    if isinstance(source, GraphModel):
        return source
    if _is_forest(source):
        return forest_to_graph(source)  # type: ignore[arg-type]
    return GraphModel.from_edges(source)  # type: ignore[arg-type]


def coerce_forest(source: ForestSource) -> list[TreeNode]:
    """Like ``coerce_graph`` but returns forest roots."""
    if _is_forest(source):
        return list(source)  # type: ignore[arg-type]
    return build_forest(source)  # type: ignore[arg-type]
