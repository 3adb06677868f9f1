"""Exception taxonomy for the layout engines.

Empty graphs, degenerate root sets and non-converging simulations are not
errors: they are handled in-line (no-op, logged warning, iteration bound).
"""

from __future__ import annotations


class LayoutError(Exception):
    """Base class for every error raised by node_layout."""


class UnknownNodeError(LayoutError, KeyError):
    """An edge or a query referenced a node that is not part of the graph."""

    def __init__(self, node: object) -> None:
        super().__init__(node)
        self.node = node

    def __str__(self) -> str:
        return f"unknown node: {self.node!r}"


class InvalidParametersError(LayoutError, ValueError):
    """A LayoutParameters field is out of range or unrecognised."""


class InvalidNodeSizeError(LayoutError, ValueError):
    """A node handle reported a negative or non-finite width/height."""


class InvalidHandleError(LayoutError):
    """Raised by a collaborator handle whose underlying object is gone.

    ``apply_positions`` catches this, counts the handle as skipped and keeps
    writing the remaining positions.
    """
