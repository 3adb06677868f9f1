"""LayoutParameters: immutable configuration shared by every engine.

Parameters are passed by value into each layout call; nothing here is global.
"""

from __future__ import annotations

import dataclasses
import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from node_layout.errors import InvalidParametersError

_NON_NEGATIVE = (
    "layer_spacing",
    "node_spacing",
    "subtree_spacing",
    "repulsion_strength",
    "attraction_strength",
    "min_temperature",
    "energy_epsilon",
    "interpolation_jitter",
    "velocity_retention",
    "min_distance",
    "start_radius",
    "radius_increment",
    "root_spacing",
    "cell_size",
    "grid_spacing",
)
_POSITIVE = ("ideal_edge_length", "time_step", "repulsion_cutoff", "initial_temperature")
_UNIT_INTERVAL = ("coarsening_ratio", "cooling_rate", "damping")
_COUNTS = (
    "max_iterations_per_level",
    "max_crossing_iterations",
    "coarsening_threshold",
    "large_graph_threshold",
    "large_graph_iterations",
)


@dataclass(frozen=True)
class LayoutParameters:
    """Tuning knobs for all layout engines.

    Layered:     layer_spacing, node_spacing, max_crossing_iterations.
    Multiscale:  repulsion_strength, attraction_strength, ideal_edge_length,
                 damping, time_step, max_iterations_per_level,
                 coarsening_threshold, coarsening_ratio, max_levels,
                 cooling_rate, initial_temperature, min_temperature,
                 repulsion_cutoff, energy_epsilon, interpolation_jitter,
                 velocity_retention, large_graph_threshold,
                 large_graph_iterations, seed, workers.
    Tree:        layer_spacing (as level spacing), node_spacing, subtree_spacing.
    Radial:      min_distance, start_radius, radius_increment, root_spacing.
    Grid:        cell_size, grid_spacing, center_grid.
    """

    layer_spacing: float = 10.0
    node_spacing: float = 2.0
    subtree_spacing: float = 2.0
    max_crossing_iterations: int = 24

    repulsion_strength: float = 1.0
    attraction_strength: float = 1.0
    ideal_edge_length: float = 5.0
    damping: float = 0.5
    time_step: float = 1.0
    max_iterations_per_level: int = 50
    coarsening_threshold: int = 20
    coarsening_ratio: float = 0.5
    max_levels: int = 10
    cooling_rate: float = 0.95
    initial_temperature: float = 10.0
    min_temperature: float = 0.01
    repulsion_cutoff: float = 50.0
    energy_epsilon: float = 1e-6
    interpolation_jitter: float = 0.1
    velocity_retention: float = 0.5
    large_graph_threshold: int = 1000
    large_graph_iterations: int = 20
    seed: int = 0
    workers: int = 1

    min_distance: float = 2.0
    start_radius: float = 3.0
    radius_increment: float = 4.0
    root_spacing: float = 10.0

    cell_size: float = 5.0
    grid_spacing: float = 1.0
    center_grid: bool = True

    def __post_init__(self) -> None:
        for name in _NON_NEGATIVE:
            value = getattr(self, name)
            if not math.isfinite(value) or value < 0:
                raise InvalidParametersError(f"{name} must be a finite non-negative number, got {value!r}")
        for name in _POSITIVE:
            value = getattr(self, name)
            if not math.isfinite(value) or value <= 0:
                raise InvalidParametersError(f"{name} must be a finite positive number, got {value!r}")
        for name in _UNIT_INTERVAL:
            value = getattr(self, name)
            if not 0 < value <= 1:
                raise InvalidParametersError(f"{name} must lie in (0, 1], got {value!r}")
        for name in _COUNTS:
            if getattr(self, name) < 0:
                raise InvalidParametersError(f"{name} must be >= 0, got {getattr(self, name)!r}")
        if self.max_levels < 1:
            raise InvalidParametersError(f"max_levels must be >= 1, got {self.max_levels!r}")
        if self.workers < 1:
            raise InvalidParametersError(f"workers must be >= 1, got {self.workers!r}")
        if self.min_temperature > self.initial_temperature:
            raise InvalidParametersError("min_temperature must not exceed initial_temperature")

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> LayoutParameters:
        """Build parameters from plain configuration data (e.g. a parsed settings file)."""
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = sorted(set(mapping) - known)
        if unknown:
            raise InvalidParametersError(f"unknown layout parameter(s): {', '.join(unknown)}")
        return cls(**dict(mapping))

    def with_overrides(self, **changes: Any) -> LayoutParameters:
        """Return a copy with some fields replaced (validated again)."""
        try:
            return dataclasses.replace(self, **changes)
        except TypeError as exc:
            raise InvalidParametersError(str(exc)) from exc

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)
