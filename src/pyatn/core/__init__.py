"""
Core module for PyATN.

Contains the food web, the ATN model equations, the event-aware integrator,
the steady-state detectors and the simulation driver.
"""

from pyatn.core.foodweb import FoodWeb, NodeType
from pyatn.core.params import Defaults, ModelParameters, SimulationParameters
from pyatn.core.equations import ModelEquations
from pyatn.core.integrator import AdaptiveIntegrator, EventAction, EventFilter
from pyatn.core.detectors import (
    ConstantSteadyStateDetector,
    OscillatingSteadyStateDetector,
    StopEvent,
)
from pyatn.core.simulation import (
    Simulation,
    SimulationResults,
    SimulationState,
    StepRecorder,
    run_simulation,
)

__all__ = [
    # Food web
    "FoodWeb",
    "NodeType",
    # Parameters
    "Defaults",
    "ModelParameters",
    "SimulationParameters",
    # Model
    "ModelEquations",
    # Integration
    "AdaptiveIntegrator",
    "EventAction",
    "EventFilter",
    "ConstantSteadyStateDetector",
    "OscillatingSteadyStateDetector",
    "StopEvent",
    # Simulation
    "Simulation",
    "SimulationResults",
    "SimulationState",
    "StepRecorder",
    "run_simulation",
]
