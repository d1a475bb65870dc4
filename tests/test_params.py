"""
Tests for model and simulation parameters.
"""

import dataclasses

import numpy as np
import pytest

from pyatn.core.errors import FoodWebNotNormalizedError, IncorrectParameterDimensionsError
from pyatn.core.foodweb import FoodWeb
from pyatn.core.params import Defaults, ModelParameters, SimulationParameters


class TestModelParameterDefaults:
    """Tests for default parameter values."""

    def test_node_defaults(self):
        params = ModelParameters.with_defaults(3)
        assert np.all(params.metabolic_rate == 0.5)
        assert np.all(params.growth_rate == 1.0)
        assert np.all(params.carrying_capacity == 1.0)

    def test_link_defaults(self):
        params = ModelParameters.with_defaults(3)
        assert params.maximum_ingestion_rate.shape == (3, 3)
        assert np.all(params.maximum_ingestion_rate == 6.0)
        assert np.all(params.predator_interference == 0.0)
        assert np.all(params.functional_response_control == 0.2)
        assert np.all(params.relative_half_saturation_density == 1.0)
        assert np.all(params.half_saturation_density == 0.5)
        assert np.all(params.assimilation_efficiency == 1.0)

    def test_system_defaults(self):
        params = ModelParameters.with_defaults(2)
        assert params.use_system_carrying_capacity is False
        assert params.system_carrying_capacity == 1.0

    def test_node_count(self):
        assert ModelParameters.with_defaults(4).node_count == 4

    def test_defaults_are_independent_arrays(self):
        params = ModelParameters.with_defaults(2)
        params.metabolic_rate[0] = 9.0
        assert ModelParameters.with_defaults(2).metabolic_rate[0] == Defaults.metabolic_rate

    def test_lists_converted_to_arrays(self):
        params = ModelParameters.with_defaults(1)
        params = dataclasses.replace(params, metabolic_rate=[0.3])
        assert isinstance(params.metabolic_rate, np.ndarray)


class TestFoodWebDefaults:
    """Tests for food-web-dependent defaults."""

    def test_assimilation_efficiency_by_prey_type(self, producer_consumer_web):
        params = ModelParameters.for_food_web(producer_consumer_web)
        # Column = prey: node 0 is a producer, node 1 a consumer
        assert np.all(params.assimilation_efficiency[:, 0] == 0.5)
        assert np.all(params.assimilation_efficiency[:, 1] == 0.8)

    def test_requires_normalized_web(self):
        web = FoodWeb()
        web.add_producer_node(1)
        params = ModelParameters.with_defaults(1)
        with pytest.raises(FoodWebNotNormalizedError):
            params.apply_food_web_defaults(web)


class TestCheckDimensions:
    """Tests for dimension validation."""

    def test_matching(self):
        ModelParameters.with_defaults(3).check_dimensions(3)

    def test_wrong_node_count(self):
        with pytest.raises(IncorrectParameterDimensionsError):
            ModelParameters.with_defaults(3).check_dimensions(2)

    def test_wrong_link_shape(self):
        params = ModelParameters.with_defaults(3)
        params.half_saturation_density = np.ones((3, 2))
        with pytest.raises(IncorrectParameterDimensionsError, match="half_saturation_density"):
            params.check_dimensions(3)

    def test_copy_is_deep_enough(self):
        params = ModelParameters.with_defaults(2)
        copy = params.copy()
        copy.growth_rate[0] = 5.0
        assert params.growth_rate[0] == 1.0


class TestSimulationParameters:
    """Tests for SimulationParameters."""

    def test_defaults(self):
        params = SimulationParameters()
        assert params.timesteps == 100
        assert params.step_size == 0.1
        assert params.stop_on_steady_state is False
        assert params.record_biomass is True

    def test_frozen(self):
        params = SimulationParameters()
        with pytest.raises(dataclasses.FrozenInstanceError):
            params.timesteps = 5

    def test_invalid_step_size(self):
        with pytest.raises(ValueError):
            SimulationParameters(step_size=0)

    def test_invalid_timesteps(self):
        with pytest.raises(ValueError):
            SimulationParameters(timesteps=-1)
