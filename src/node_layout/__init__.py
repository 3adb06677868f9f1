"""node_layout: automatic 2D layout for node graphs.

Positions are computed first (``compute_*``) and written back to node
handles in a separate step (``apply_positions`` or the ``*_layout``
shortcuts).
"""

import logging

from node_layout.api import (
    LayoutType,
    apply_layout,
    compute_layout,
    grid_layout,
    hierarchical_grid_layout,
    layered_layout,
    multiscale_layout,
    radial_layout,
    tree_layout,
)
from node_layout.errors import (
    InvalidHandleError,
    InvalidNodeSizeError,
    InvalidParametersError,
    LayoutError,
    UnknownNodeError,
)
from node_layout.forest import TreeNode, build_forest, find_root_nodes, walk_forest
from node_layout.graph import Edge, GraphModel, NodeHandle
from node_layout.layout import (
    GridArrangement,
    LayeredLayout,
    PositionMap,
    Vec2,
    compute_grid_layout,
    compute_hierarchical_grid_layout,
    compute_layered_layout,
    compute_multiscale_layout,
    compute_radial_layout,
    compute_tree_layout,
)
from node_layout.params import LayoutParameters
from node_layout.positions import ApplyReport, apply_positions

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"

__all__ = [
    "ApplyReport",
    "Edge",
    "GraphModel",
    "GridArrangement",
    "InvalidHandleError",
    "InvalidNodeSizeError",
    "InvalidParametersError",
    "LayeredLayout",
    "LayoutError",
    "LayoutParameters",
    "LayoutType",
    "NodeHandle",
    "PositionMap",
    "TreeNode",
    "UnknownNodeError",
    "Vec2",
    "apply_layout",
    "apply_positions",
    "build_forest",
    "compute_grid_layout",
    "compute_hierarchical_grid_layout",
    "compute_layered_layout",
    "compute_layout",
    "compute_multiscale_layout",
    "compute_radial_layout",
    "compute_tree_layout",
    "find_root_nodes",
    "grid_layout",
    "hierarchical_grid_layout",
    "layered_layout",
    "multiscale_layout",
    "radial_layout",
    "tree_layout",
    "walk_forest",
]
