"""
ATN model differential equations.

Implements the allometric trophic network (bioenergetic) biomass equations
in the form scipy's ODE solvers expect, ``fun(t, y) -> dydt``.

For consumer i and each prey j of i, the functional response is::

    F[i,j] = B[j]^(1+q[i,j]) / (B0[i,j]^(1+q[i,j]) + sum_m alpha[i,m] B[m]^(1+q[i,m]))

with m ranging over the prey of i. Producer growth is logistic, either
per node (G[i] = 1 - B[i]/K[i]) or against a system-wide carrying capacity
shared by all producers (G[i] = 1 - sum(B[producers])/Ks, competition
coefficient fixed at 1). Then::

    dB[i]/dt = r[i] B[i] G[i] - loss[i]                         (producers)
    dB[i]/dt = -x[i] B[i] + sum_j x[i] y[i,j] alpha[i,j] F[i,j] B[i] - loss[i]
                                                                (consumers)
    loss[i] = sum_{predators j} x[j] y[j,i] alpha[j,i] F[j,i] B[j] / e[j,i]

Producers carry no metabolic loss term.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from pyatn.core.constants import EXTINCT
from pyatn.core.errors import EmptyFoodWebError, FoodWebNotNormalizedError
from pyatn.core.foodweb import FoodWeb, NodeType
from pyatn.core.params import ModelParameters


class ModelEquations:
    """Derivative function of the ATN model for one food web.

    Parameters
    ----------
    food_web : FoodWeb
        Food web with node IDs 0..N-1
    parameters : ModelParameters
        Model parameters sized for N nodes

    Raises
    ------
    EmptyFoodWebError
        If the food web has no nodes
    FoodWebNotNormalizedError
        If node IDs are not exactly 0..N-1
    IncorrectParameterDimensionsError
        If any parameter array is not sized for N nodes
    """

    def __init__(self, food_web: FoodWeb, parameters: ModelParameters):
        n = food_web.node_count()
        if n == 0:
            raise EmptyFoodWebError()
        if not food_web.ids_are_normalized():
            raise FoodWebNotNormalizedError()

        self._food_web = food_web
        self._n = n
        self.parameters = parameters

        self._producers = np.array(food_web.nodes_of_type(NodeType.PRODUCER), dtype=int)
        self._consumers = np.array(food_web.nodes_of_type(NodeType.CONSUMER), dtype=int)

        # feeds[i, j]: consumer i eats j
        self._feeds = np.zeros((n, n), dtype=bool)
        for prey, predator in food_web.graph.edges:
            if food_web.node_type(predator) == NodeType.CONSUMER:
                self._feeds[predator, prey] = True

        self._current_derivatives: Optional[np.ndarray] = None

    @property
    def parameters(self) -> ModelParameters:
        return self._parameters

    @parameters.setter
    def parameters(self, parameters: ModelParameters) -> None:
        parameters.check_dimensions(self._n)
        self._parameters = parameters

    @property
    def food_web(self) -> FoodWeb:
        return self._food_web

    @property
    def dimension(self) -> int:
        return self._n

    @property
    def producers(self) -> np.ndarray:
        return self._producers

    @property
    def consumers(self) -> np.ndarray:
        return self._consumers

    @property
    def current_derivatives(self) -> Optional[np.ndarray]:
        """Most recently computed derivative vector (None before the first call)."""
        return self._current_derivatives

    def compute(self, t: float, biomass: np.ndarray) -> np.ndarray:
        """Compute dB/dt at time t.

        Parameters
        ----------
        t : float
            Time (the equations are autonomous, so it is unused)
        biomass : np.ndarray
            Biomass of each node; values below EXTINCT are treated as 0

        Returns
        -------
        np.ndarray
            Derivative of the biomass of each node
        """
        p = self._parameters
        B = np.array(biomass, dtype=float)
        B[B < EXTINCT] = 0.0

        F = self._functional_response(B)

        # flux[i, j]: biomass flow rate from prey j into consumer i
        flux = (
            p.metabolic_rate[:, None]
            * p.maximum_ingestion_rate
            * p.relative_half_saturation_density
            * F
            * B[:, None]
        )
        loss = np.divide(
            flux,
            p.assimilation_efficiency,
            out=np.zeros_like(flux),
            where=self._feeds,
        ).sum(axis=0)

        B_dot = -loss
        producers = self._producers
        consumers = self._consumers
        B_dot[producers] += p.growth_rate[producers] * B[producers] * self._growth_function(B)
        B_dot[consumers] += (
            -p.metabolic_rate[consumers] * B[consumers]
            + flux[consumers].sum(axis=1)
        )

        self._current_derivatives = B_dot
        return B_dot.copy()

    __call__ = compute

    def _functional_response(self, B: np.ndarray) -> np.ndarray:
        p = self._parameters
        exponent = 1.0 + p.functional_response_control
        with np.errstate(divide="ignore", invalid="ignore"):
            # weighted[i, m] = B[m]^(1+q[i, m])
            weighted = np.power(B[None, :], exponent)
            total = np.where(
                self._feeds, p.relative_half_saturation_density * weighted, 0.0
            ).sum(axis=1)
            denominator = np.power(p.half_saturation_density, exponent) + total[:, None]
            return np.divide(
                weighted, denominator, out=np.zeros_like(weighted), where=self._feeds
            )

    def _growth_function(self, B: np.ndarray) -> np.ndarray:
        p = self._parameters
        producers = self._producers
        if p.use_system_carrying_capacity:
            return 1.0 - B[producers].sum() / p.system_carrying_capacity
        return 1.0 - B[producers] / p.carrying_capacity[producers]

    def __repr__(self) -> str:
        return (
            f"ModelEquations(nodes={self._n}, producers={len(self._producers)}, "
            f"consumers={len(self._consumers)})"
        )
