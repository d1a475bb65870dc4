"""
Parameter data structures for PyATN.

This module contains the ModelParameters class holding the biological
coefficients of the ATN model equations, and SimulationParameters holding
the settings of a single simulation run.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Dict

import numpy as np

from pyatn.core.constants import DEFAULT_STEP_SIZE, DEFAULT_TIMESTEPS
from pyatn.core.errors import FoodWebNotNormalizedError, IncorrectParameterDimensionsError
from pyatn.core.foodweb import FoodWeb, NodeType


NODE_PARAMETERS = ("metabolic_rate", "growth_rate", "carrying_capacity")

LINK_PARAMETERS = (
    "maximum_ingestion_rate",
    "predator_interference",
    "functional_response_control",
    "relative_half_saturation_density",
    "half_saturation_density",
    "assimilation_efficiency",
)


class Defaults:
    """Default parameter values."""
    use_system_carrying_capacity = False
    system_carrying_capacity = 1.0

    metabolic_rate = 0.5
    growth_rate = 1.0
    carrying_capacity = 1.0

    maximum_ingestion_rate = 6.0
    predator_interference = 0.0
    functional_response_control = 0.2
    relative_half_saturation_density = 1.0
    half_saturation_density = 0.5

    # Assimilation efficiency depends on whether the prey is a plant or animal
    assimilation_efficiency = 1.0
    assimilation_efficiency_plant = 0.5
    assimilation_efficiency_animal = 0.8


@dataclass
class ModelParameters:
    """Container for ATN model parameters.

    Link-level parameters are indexed ``[predator, prey]``.

    Attributes
    ----------
    use_system_carrying_capacity : bool
        Use a carrying capacity shared by all producers
    system_carrying_capacity : float
        Ks: system-wide carrying capacity (only used if enabled)
    metabolic_rate : np.ndarray
        x: mass-specific metabolic rate, per node
    growth_rate : np.ndarray
        r: maximum mass-specific growth rate, per node
    carrying_capacity : np.ndarray
        K: carrying capacity, per node
    maximum_ingestion_rate : np.ndarray
        y: maximum ingestion rate
    predator_interference : np.ndarray
        d: predator interference
    functional_response_control : np.ndarray
        q: functional response control parameter
    relative_half_saturation_density : np.ndarray
        alpha: relative half saturation density
    half_saturation_density : np.ndarray
        B0: half saturation density
    assimilation_efficiency : np.ndarray
        e: assimilation efficiency

    Examples
    --------
    >>> params = ModelParameters.with_defaults(3)
    >>> params.metabolic_rate[1] = 0.2
    """

    metabolic_rate: np.ndarray
    growth_rate: np.ndarray
    carrying_capacity: np.ndarray
    maximum_ingestion_rate: np.ndarray
    predator_interference: np.ndarray
    functional_response_control: np.ndarray
    relative_half_saturation_density: np.ndarray
    half_saturation_density: np.ndarray
    assimilation_efficiency: np.ndarray
    use_system_carrying_capacity: bool = Defaults.use_system_carrying_capacity
    system_carrying_capacity: float = Defaults.system_carrying_capacity

    def __post_init__(self):
        for name in NODE_PARAMETERS + LINK_PARAMETERS:
            setattr(self, name, np.array(getattr(self, name), dtype=float))

    @classmethod
    def with_defaults(cls, n: int) -> "ModelParameters":
        """Instantiate with default values, except food-web-dependent defaults."""
        node = {name: np.full(n, getattr(Defaults, name)) for name in NODE_PARAMETERS}
        link = {name: np.full((n, n), getattr(Defaults, name)) for name in LINK_PARAMETERS}
        return cls(**node, **link)

    @classmethod
    def for_food_web(cls, food_web: FoodWeb) -> "ModelParameters":
        """Instantiate with default values, including food-web-dependent defaults."""
        params = cls.with_defaults(food_web.node_count())
        params.apply_food_web_defaults(food_web)
        return params

    @property
    def node_count(self) -> int:
        return len(self.metabolic_rate)

    def apply_food_web_defaults(self, food_web: FoodWeb) -> None:
        """Set defaults for parameters that depend on food web structure.

        Currently this only sets assimilation efficiency, whose default
        depends on whether the prey node is a producer or a consumer.
        """
        if not food_web.ids_are_normalized():
            raise FoodWebNotNormalizedError()
        for node_id in food_web.nodes():
            if food_web.node_type(node_id) == NodeType.PRODUCER:
                self.assimilation_efficiency[:, node_id] = Defaults.assimilation_efficiency_plant
            else:
                self.assimilation_efficiency[:, node_id] = Defaults.assimilation_efficiency_animal

    def check_dimensions(self, n: int) -> None:
        """Raise IncorrectParameterDimensionsError unless every array matches n nodes."""
        for name in NODE_PARAMETERS:
            value = getattr(self, name)
            if value.shape != (n,):
                raise IncorrectParameterDimensionsError(n, name, value.shape)
        for name in LINK_PARAMETERS:
            value = getattr(self, name)
            if value.shape != (n, n):
                raise IncorrectParameterDimensionsError(n, name, value.shape)

    def copy(self) -> "ModelParameters":
        return ModelParameters(**{f.name: getattr(self, f.name) for f in fields(self)})

    def to_dict(self) -> Dict[str, object]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class SimulationParameters:
    """Parameters of a simulation run, as distinct from the model parameters.

    Attributes
    ----------
    timesteps : int
        Number of timesteps to simulate
    step_size : float
        Time increment per timestep
    stop_on_steady_state : bool
        Stop the simulation when a steady state is detected
    record_biomass : bool
        Include the biomass time series in the results
    """
    timesteps: int = DEFAULT_TIMESTEPS
    step_size: float = DEFAULT_STEP_SIZE
    stop_on_steady_state: bool = False
    record_biomass: bool = True

    def __post_init__(self):
        if self.timesteps < 0:
            raise ValueError(f"timesteps must be non-negative, got {self.timesteps}")
        if not self.step_size > 0:
            raise ValueError(f"step_size must be positive, got {self.step_size}")
