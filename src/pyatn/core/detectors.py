"""
Steady-state detectors.

Event handlers for ``AdaptiveIntegrator`` that stop a simulation once
further integration would not change its outcome:

- ConstantSteadyStateDetector: every node is extinct, or every relative
  derivative is effectively zero.
- OscillatingSteadyStateDetector: the biomass state keeps returning to the
  state it held at the start of the integration chunk while some nodes
  oscillate, i.e. the system sits on a periodic attractor.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

import numpy as np

from pyatn.core.constants import (
    ABS_RELATIVE_DERIVATIVE_THRESHOLD,
    EXTINCT,
    RELATIVE_ERROR_TOLERANCE,
    REQUIRED_MATCHING_STATE_COUNT,
)
from pyatn.core.equations import ModelEquations
from pyatn.core.integrator import EventAction
from pyatn.logger import get_logger

logger = get_logger(__name__)


class StopEvent(Enum):
    """Why a simulation ended."""
    NONE = "NONE"
    UNKNOWN = "UNKNOWN"
    TOTAL_EXTINCTION = "TOTAL_EXTINCTION"
    CONSTANT_BIOMASS_PRODUCERS_ONLY = "CONSTANT_BIOMASS_PRODUCERS_ONLY"
    CONSTANT_BIOMASS_WITH_CONSUMERS = "CONSTANT_BIOMASS_WITH_CONSUMERS"
    OSCILLATING_STEADY_STATE = "OSCILLATING_STEADY_STATE"


class SteadyStateDetector:
    """Base class for event handlers that may stop a simulation."""

    def __init__(self, equations: ModelEquations):
        self.equations = equations
        self.stop_event = StopEvent.NONE
        self.time_stopped: Optional[float] = None

    def init(self, t0: float, y0: np.ndarray, t: float) -> None:
        pass

    def integration_was_stopped(self) -> bool:
        return self.time_stopped is not None

    def _stop(self, t: float, stop_event: StopEvent) -> EventAction:
        self.time_stopped = t
        self.stop_event = stop_event
        logger.info(f"{type(self).__name__} stopped integration at t = {t}: {stop_event.name}")
        return EventAction.STOP


class ConstantSteadyStateDetector(SteadyStateDetector):
    """Stop integration when the system reaches a constant state.

    The switching function is::

        g = min(max(0, max_i B[i]) - EXTINCT, max_i |dB[i]/dt / B[i]| - 1e-10)

    where the relative derivative is taken as 0 for nodes with B[i] == 0.
    It crosses zero downward when all nodes go extinct or all derivatives
    vanish, so the handler must be registered for decreasing crossings only.
    """

    def init(self, t0: float, y0: np.ndarray, t: float) -> None:
        self.time_stopped = None

    @staticmethod
    def _max_biomass(B: np.ndarray) -> float:
        return max(0.0, float(np.max(B)))

    @staticmethod
    def _max_abs_relative_derivative(B: np.ndarray, B_dot: np.ndarray) -> float:
        relative = np.divide(B_dot, B, out=np.zeros_like(B_dot, dtype=float), where=B != 0)
        return float(np.max(np.abs(relative)))

    def switching_value(self, t: float, B: np.ndarray, B_dot: np.ndarray) -> float:
        B = np.asarray(B, dtype=float)
        B_dot = np.asarray(B_dot, dtype=float)
        return min(
            self._max_biomass(B) - EXTINCT,
            self._max_abs_relative_derivative(B, B_dot) - ABS_RELATIVE_DERIVATIVE_THRESHOLD,
        )

    def classify(self, B: np.ndarray, B_dot: np.ndarray) -> StopEvent:
        """Name the constant state that B is in."""
        B = np.asarray(B, dtype=float)
        if self._max_biomass(B) <= EXTINCT:
            return StopEvent.TOTAL_EXTINCTION
        if self._max_abs_relative_derivative(B, np.asarray(B_dot, dtype=float)) \
                <= ABS_RELATIVE_DERIVATIVE_THRESHOLD:
            consumers = self.equations.consumers
            if np.any(B[consumers] > EXTINCT):
                return StopEvent.CONSTANT_BIOMASS_WITH_CONSUMERS
            return StopEvent.CONSTANT_BIOMASS_PRODUCERS_ONLY
        return StopEvent.UNKNOWN

    def on_zero_crossing(
        self, t: float, B: np.ndarray, B_dot: np.ndarray, increasing: bool
    ) -> EventAction:
        stop_event = self.classify(B, B_dot)
        if stop_event == StopEvent.UNKNOWN:
            logger.warning(
                f"Constant steady state detector fired at t = {t} "
                f"without a recognizable steady state"
            )
        return self._stop(t, stop_event)


class OscillatingSteadyStateDetector(SteadyStateDetector):
    """Stop integration when the system settles into a periodic cycle.

    The switching function ``snapshot_sum - sum(B)`` crosses zero every time
    total biomass returns to its value at the start of the chunk. A crossing
    counts as a match when every node is within 1% of its snapshot biomass
    and at least one node has had both a negative and a positive derivative
    since the snapshot. Integration stops on the third match.
    """

    def __init__(self, equations: ModelEquations):
        super().__init__(equations)
        n = equations.dimension
        self.biomass_snapshot = np.zeros(n)
        self.biomass_snapshot_sum = 0.0
        self.min_derivative = np.full(n, np.inf)
        self.max_derivative = np.full(n, -np.inf)
        self.matching_state_count = 0
        self.num_oscillating = 0

    def init(self, t0: float, y0: np.ndarray, t: float) -> None:
        self.biomass_snapshot = np.array(y0, dtype=float)
        self.biomass_snapshot_sum = float(self.biomass_snapshot.sum())
        self.min_derivative = np.full(len(self.biomass_snapshot), np.inf)
        self.max_derivative = np.full(len(self.biomass_snapshot), -np.inf)
        self.matching_state_count = 0
        self.num_oscillating = 0

    def switching_value(self, t: float, B: np.ndarray, B_dot: np.ndarray) -> float:
        B_dot = np.asarray(B_dot, dtype=float)
        np.minimum(self.min_derivative, B_dot, out=self.min_derivative)
        np.maximum(self.max_derivative, B_dot, out=self.max_derivative)
        return self.biomass_snapshot_sum - float(np.sum(B))

    def relative_error(self, B: np.ndarray) -> np.ndarray:
        """Relative error of B against the snapshot.

        A node with zero snapshot biomass matches only if it is still zero.
        """
        B = np.asarray(B, dtype=float)
        error = np.abs(B - self.biomass_snapshot)
        snapshot = self.biomass_snapshot
        relative = np.divide(error, snapshot, out=np.zeros_like(error), where=snapshot != 0)
        relative[(snapshot == 0) & (error != 0)] = np.inf
        return relative

    def on_zero_crossing(
        self, t: float, B: np.ndarray, B_dot: np.ndarray, increasing: bool
    ) -> EventAction:
        if np.any(self.relative_error(B) > RELATIVE_ERROR_TOLERANCE):
            return EventAction.CONTINUE

        self.num_oscillating = int(
            np.sum((self.min_derivative < 0) & (self.max_derivative > 0))
        )
        if self.num_oscillating == 0:
            return EventAction.CONTINUE

        self.matching_state_count += 1
        logger.debug(
            f"Biomass state matched snapshot at t = {t} "
            f"({self.matching_state_count}/{REQUIRED_MATCHING_STATE_COUNT}, "
            f"{self.num_oscillating} nodes oscillating)"
        )
        if self.matching_state_count >= REQUIRED_MATCHING_STATE_COUNT:
            return self._stop(t, StopEvent.OSCILLATING_STEADY_STATE)
        return EventAction.CONTINUE
