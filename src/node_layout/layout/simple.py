"""Deterministic fallback layouts: grid, hierarchical grid, radial and tree.

All four work on the forest produced by ``build_forest`` and return a
PositionMap keyed by node handle. None of them touches a handle.
"""

from __future__ import annotations

import enum
import logging
import math
from collections import deque

from node_layout.forest import ForestSource, TreeNode, coerce_forest, forest_levels, walk_forest
from node_layout.graph import node_size
from node_layout.layout.types import PositionMap, Vec2
from node_layout.params import LayoutParameters

logger = logging.getLogger(__name__)


class GridArrangement(enum.Enum):
    SQUARE_OPTIMAL = "square_optimal"
    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"
    SINGLE_ROW = "single_row"
    SINGLE_COLUMN = "single_column"


# ─── Grid ─────────────────────────────────────────────────────────────────────


def grid_dimensions(count: int, arrangement: GridArrangement) -> tuple[int, int]:
    """(rows, cols) for ``count`` cells; rows * cols >= count."""
    if count <= 0:
        return 0, 0
    if arrangement is GridArrangement.SINGLE_ROW:
        return 1, count
    if arrangement is GridArrangement.SINGLE_COLUMN:
        return count, 1
    if arrangement is GridArrangement.HORIZONTAL:
        cols = math.ceil(math.sqrt(count * 1.5))
        return math.ceil(count / cols), cols
    if arrangement is GridArrangement.VERTICAL:
        rows = math.ceil(math.sqrt(count * 1.5))
        return rows, math.ceil(count / rows)
    rows = math.ceil(math.sqrt(count))
    return rows, math.ceil(count / rows)


def compute_grid_layout(
    source: ForestSource,
    params: LayoutParameters | None = None,
    arrangement: GridArrangement = GridArrangement.SQUARE_OPTIMAL,
) -> PositionMap:
    """Row-major grid in forest walk order."""
    params = params or LayoutParameters()
    nodes = list(walk_forest(coerce_forest(source)))
    if not nodes:
        return {}

    rows, cols = grid_dimensions(len(nodes), arrangement)
    pitch = params.cell_size + params.grid_spacing
    origin_x = origin_y = 0.0
    if params.center_grid:
        origin_x = -(cols - 1) * pitch / 2.0
        origin_y = -(rows - 1) * pitch / 2.0

    positions: PositionMap = {}
    for i, node in enumerate(nodes):
        row, col = divmod(i, cols)
        positions[node.handle] = Vec2(origin_x + col * pitch, origin_y + row * pitch)
    logger.debug("grid layout: %d nodes in %dx%d (%s)", len(nodes), rows, cols, arrangement.value)
    return positions


def compute_hierarchical_grid_layout(source: ForestSource, params: LayoutParameters | None = None) -> PositionMap:
    """One centred row per breadth-first depth from the roots."""
    params = params or LayoutParameters()
    levels = forest_levels(coerce_forest(source))
    if not levels:
        return {}

    rows: dict[int, list[TreeNode]] = {}
    for node, depth in levels.items():
        rows.setdefault(depth, []).append(node)

    pitch = params.cell_size + params.grid_spacing
    max_depth = max(rows)
    top = -max_depth * pitch / 2.0 if params.center_grid else 0.0

    positions: PositionMap = {}
    for depth, row in rows.items():
        start_x = -(len(row) - 1) * pitch / 2.0
        y = top + depth * pitch
        for i, node in enumerate(row):
            positions[node.handle] = Vec2(start_x + i * pitch, y)
    return positions


# ─── Radial ───────────────────────────────────────────────────────────────────


def compute_radial_layout(source: ForestSource, params: LayoutParameters | None = None) -> PositionMap:
    """Children fan out over their parent's angular sector.

    A lone root sits at the origin; several roots share a circle. Each ring
    is ``radius_increment`` further out than the one before, and siblings
    are never closer (in angle) than ``min_distance / radius`` radians.
    """
    params = params or LayoutParameters()
    roots = coerce_forest(source)
    if not roots:
        return {}

    positions: PositionMap = {}
    placed: set[TreeNode] = set()
    # (node, position, sector start angle, sector span, depth)
    queue: deque[tuple[TreeNode, Vec2, float, float, int]] = deque()

    if len(roots) == 1:
        queue.append((roots[0], Vec2(), 0.0, 2.0 * math.pi, 0))
    else:
        ring = len(roots) * params.root_spacing / (2.0 * math.pi)
        span = 2.0 * math.pi / len(roots)
        for i, root in enumerate(roots):
            angle = i * span
            position = Vec2(ring * math.cos(angle), ring * math.sin(angle))
            queue.append((root, position, angle - span / 2.0, span, 0))
    for root, *_ in queue:
        placed.add(root)

    while queue:
        node, position, sector_start, sector_span, depth = queue.popleft()
        positions[node.handle] = position

        children = [child for child in node.children if child not in placed]
        if not children:
            continue
        radius = params.start_radius + depth * params.radius_increment
        step = sector_span / len(children)
        if radius > 0.0:
            step = max(step, params.min_distance / radius)
        middle = sector_start + sector_span / 2.0
        for i, child in enumerate(children):
            angle = middle + (i - (len(children) - 1) / 2.0) * step
            offset = Vec2(radius * math.cos(angle), radius * math.sin(angle))
            placed.add(child)
            queue.append((child, position + offset, angle - step / 2.0, step, depth + 1))

    return positions


# ─── Tree ─────────────────────────────────────────────────────────────────────


def _subtree_widths(roots: list[TreeNode], params: LayoutParameters) -> dict[TreeNode, float]:
    """Bottom-up subtree widths; a child still in progress (a cycle) counts as itself."""
    own: dict[TreeNode, float] = {}
    widths: dict[TreeNode, float] = {}

    def own_width(node: TreeNode) -> float:
        if node not in own:
            own[node] = node_size(node.handle)[0]
        return own[node]

    for root in roots:
        if root in widths:
            continue
        in_progress: set[TreeNode] = set()
        stack: list[tuple[TreeNode, bool]] = [(root, False)]
        while stack:
            node, expanded = stack.pop()
            if expanded:
                in_progress.discard(node)
                width = own_width(node)
                if node.children:
                    total = sum(widths.get(child, own_width(child)) for child in node.children)
                    total += params.node_spacing * (len(node.children) - 1)
                    width = max(width, total)
                widths[node] = width
                continue
            if node in widths or node in in_progress:
                continue
            in_progress.add(node)
            stack.append((node, True))
            for child in reversed(node.children):
                if child not in widths and child not in in_progress:
                    stack.append((child, False))
    return widths


def _shift_subtree(node: TreeNode, delta: float, positions: dict[TreeNode, Vec2]) -> None:
    shift = Vec2(0.0, delta)
    for member in walk_forest([node]):
        if member in positions:
            positions[member] = positions[member] + shift


def compute_tree_layout(source: ForestSource, params: LayoutParameters | None = None) -> PositionMap:
    """Top-down tree: each parent centred over its children's subtrees.

    Levels are ``layer_spacing`` apart. Roots sit side by side,
    ``subtree_spacing`` apart. Nodes reached through a cycle end up at or
    above one of their parents; those subtrees are pushed below that parent.
    Roots never move, and neither does a node whose parent is its own
    descendant.
    """
    params = params or LayoutParameters()
    roots = coerce_forest(source)
    if not roots:
        return {}

    widths = _subtree_widths(roots, params)
    level_spacing = params.layer_spacing

    placed: dict[TreeNode, Vec2] = {}
    cursor = 0.0
    for root in roots:
        if root in placed:
            continue
        stack: list[tuple[TreeNode, float, float]] = [(root, cursor + widths[root] / 2.0, 0.0)]
        cursor += widths[root] + params.subtree_spacing
        while stack:
            node, x, y = stack.pop()
            if node in placed:
                continue
            placed[node] = Vec2(x, y)
            if not node.children:
                continue
            total = sum(widths[child] for child in node.children)
            total += params.node_spacing * (len(node.children) - 1)
            left = x - total / 2.0
            slots = []
            for child in node.children:
                slots.append((child, left + widths[child] / 2.0, y + level_spacing))
                left += widths[child] + params.node_spacing
            stack.extend(reversed(slots))

    root_set = set(roots)
    shifted = 0
    for node in walk_forest(roots):
        if node in root_set:
            continue
        for parent in node.parents:
            if parent not in placed:
                continue
            if placed[node].y <= placed[parent].y:
                # A parent inside the node's own subtree closes a cycle back to it.
                if parent in set(walk_forest([node])):
                    continue
                _shift_subtree(node, placed[parent].y + level_spacing - placed[node].y, placed)
                shifted += 1
    if shifted:
        logger.debug("tree layout: shifted %d subtrees below their cycle parents", shifted)

    return {node.handle: position for node, position in placed.items()}
