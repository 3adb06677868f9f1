"""Tests for params.py: defaults, validation and configuration helpers."""

from __future__ import annotations

import dataclasses
import math

import pytest

from node_layout.errors import InvalidParametersError
from node_layout.params import LayoutParameters


class TestDefaults:
    def test_documented_defaults(self):
        params = LayoutParameters()
        assert params.layer_spacing == 10.0
        assert params.ideal_edge_length == 5.0
        assert params.coarsening_ratio == 0.5
        assert params.max_crossing_iterations == 24
        assert params.seed == 0
        assert params.workers == 1
        assert params.center_grid is True

    def test_frozen(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            LayoutParameters().seed = 3  # type: ignore[misc]


class TestValidation:
    @pytest.mark.parametrize(
        "changes",
        [
            {"layer_spacing": -1.0},
            {"node_spacing": math.inf},
            {"ideal_edge_length": 0.0},
            {"repulsion_cutoff": -5.0},
            {"damping": 0.0},
            {"cooling_rate": 1.5},
            {"coarsening_ratio": 0.0},
            {"max_iterations_per_level": -1},
            {"max_levels": 0},
            {"workers": 0},
            {"min_temperature": 20.0},
        ],
    )
    def test_rejects_out_of_range(self, changes):
        with pytest.raises(InvalidParametersError):
            LayoutParameters(**changes)

    def test_invalid_parameters_is_value_error(self):
        with pytest.raises(ValueError):
            LayoutParameters(time_step=-1.0)

    def test_boundary_values_accepted(self):
        params = LayoutParameters(damping=1.0, cooling_rate=1.0, max_iterations_per_level=0, layer_spacing=0.0)
        assert params.damping == 1.0


class TestConfigHelpers:
    def test_from_mapping(self):
        params = LayoutParameters.from_mapping({"seed": 42, "workers": 2})
        assert (params.seed, params.workers) == (42, 2)

    def test_from_mapping_unknown_key(self):
        with pytest.raises(InvalidParametersError, match="bogus"):
            LayoutParameters.from_mapping({"bogus": 1})

    def test_from_mapping_validates(self):
        with pytest.raises(InvalidParametersError):
            LayoutParameters.from_mapping({"damping": 2.0})

    def test_with_overrides_returns_copy(self):
        base = LayoutParameters()
        changed = base.with_overrides(seed=9)
        assert changed.seed == 9
        assert base.seed == 0

    def test_with_overrides_unknown_field(self):
        with pytest.raises(InvalidParametersError):
            LayoutParameters().with_overrides(nope=1)

    def test_to_dict_round_trip(self):
        params = LayoutParameters(seed=5)
        assert LayoutParameters.from_mapping(params.to_dict()) == params
