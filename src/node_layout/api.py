"""Entry points used by collaborators.

``compute_layout`` dispatches on a LayoutType and returns positions only.
The ``*_layout`` functions compute and then apply in one call, returning an
ApplyReport of how many handles were moved and which were skipped.
"""

from __future__ import annotations

import enum
import logging
import sys
from collections.abc import Callable, Hashable, Mapping

from node_layout.forest import ForestSource
from node_layout.layout.layered import compute_layered_layout
from node_layout.layout.multiscale import compute_multiscale_layout
from node_layout.layout.simple import (
    GridArrangement,
    compute_grid_layout,
    compute_hierarchical_grid_layout,
    compute_radial_layout,
    compute_tree_layout,
)
from node_layout.layout.types import PositionMap, Vec2
from node_layout.params import LayoutParameters
from node_layout.positions import ApplyReport, apply_positions

logger = logging.getLogger(__name__)


class LayoutType(enum.Enum):
    """Available layout engines.

    There is no separate GRIP member: the GRIP-style coarsen-and-refine
    scheme is what MULTISCALE runs.
    """

    GRID = "grid"
    RADIAL = "radial"
    TREE = "tree"
    HIERARCHICAL_GRID = "hierarchical_grid"
    LAYERED = "layered"
    MULTISCALE = "multiscale"

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]

    @property
    def recommended_max_nodes(self) -> int:
        """Rough node count above which another layout type will look or run better."""
        return _RECOMMENDED_MAX_NODES[self]

    @property
    def is_hierarchical(self) -> bool:
        return self in (LayoutType.TREE, LayoutType.LAYERED, LayoutType.RADIAL, LayoutType.HIERARCHICAL_GRID)

    @property
    def is_scalable(self) -> bool:
        return self is LayoutType.MULTISCALE


_DESCRIPTIONS = {
    LayoutType.GRID: "Regular grid arrangement with uniform spacing",
    LayoutType.RADIAL: "Circular arrangement with roots at the centre",
    LayoutType.TREE: "Hierarchical tree with clear parent-child relationships",
    LayoutType.HIERARCHICAL_GRID: "One grid row per tree depth",
    LayoutType.LAYERED: "Layered hierarchical layout with minimal crossings",
    LayoutType.MULTISCALE: "Multi-scale force-directed layout for large graphs",
}

_RECOMMENDED_MAX_NODES = {
    LayoutType.GRID: 100,
    LayoutType.RADIAL: 200,
    LayoutType.TREE: 100,
    LayoutType.HIERARCHICAL_GRID: 100,
    LayoutType.LAYERED: 300,
    LayoutType.MULTISCALE: sys.maxsize,
}


def _layered_positions(source: ForestSource, params: LayoutParameters | None = None) -> PositionMap:
    return compute_layered_layout(source, params).positions


_ENGINES: dict[LayoutType, Callable[[ForestSource, LayoutParameters | None], PositionMap]] = {
    LayoutType.GRID: compute_grid_layout,
    LayoutType.RADIAL: compute_radial_layout,
    LayoutType.TREE: compute_tree_layout,
    LayoutType.HIERARCHICAL_GRID: compute_hierarchical_grid_layout,
    LayoutType.LAYERED: _layered_positions,
    LayoutType.MULTISCALE: compute_multiscale_layout,
}


def compute_layout(
    layout_type: LayoutType | str,
    source: ForestSource,
    params: LayoutParameters | None = None,
) -> PositionMap:
    """Compute positions with the engine for ``layout_type``; no handle is touched."""
    layout_type = LayoutType(layout_type)
    positions = _ENGINES[layout_type](source, params)
    logger.debug("%s layout computed for %d nodes", layout_type.value, len(positions))
    return positions


def apply_layout(
    layout_type: LayoutType | str,
    source: ForestSource,
    params: LayoutParameters | None = None,
) -> ApplyReport:
    return apply_positions(compute_layout(layout_type, source, params))


# ─── Compute-and-apply shortcuts ──────────────────────────────────────────────


def layered_layout(source: ForestSource, params: LayoutParameters | None = None) -> ApplyReport:
    return apply_positions(compute_layered_layout(source, params).positions)


def multiscale_layout(
    source: ForestSource,
    params: LayoutParameters | None = None,
    initial_positions: Mapping[Hashable, Vec2 | tuple[float, float]] | None = None,
) -> ApplyReport:
    return apply_positions(compute_multiscale_layout(source, params, initial_positions))


def grid_layout(
    source: ForestSource,
    params: LayoutParameters | None = None,
    arrangement: GridArrangement = GridArrangement.SQUARE_OPTIMAL,
) -> ApplyReport:
    return apply_positions(compute_grid_layout(source, params, arrangement))


def hierarchical_grid_layout(source: ForestSource, params: LayoutParameters | None = None) -> ApplyReport:
    return apply_positions(compute_hierarchical_grid_layout(source, params))


def radial_layout(source: ForestSource, params: LayoutParameters | None = None) -> ApplyReport:
    return apply_positions(compute_radial_layout(source, params))


def tree_layout(source: ForestSource, params: LayoutParameters | None = None) -> ApplyReport:
    return apply_positions(compute_tree_layout(source, params))
