"""Layout engines. Every engine computes positions; none writes them back."""

from node_layout.layout.layered import compute_layered_layout
from node_layout.layout.multiscale import compute_multiscale_layout
from node_layout.layout.simple import (
    GridArrangement,
    compute_grid_layout,
    compute_hierarchical_grid_layout,
    compute_radial_layout,
    compute_tree_layout,
)
from node_layout.layout.types import DummyNode, LayeredLayout, LayoutNode, PositionMap, Vec2

__all__ = [
    "DummyNode",
    "GridArrangement",
    "LayeredLayout",
    "LayoutNode",
    "PositionMap",
    "Vec2",
    "compute_grid_layout",
    "compute_hierarchical_grid_layout",
    "compute_layered_layout",
    "compute_multiscale_layout",
    "compute_radial_layout",
    "compute_tree_layout",
]
