"""
PyATN - Python Allometric Trophic Network simulator

Simulates biomass dynamics of food webs under the ATN bioenergetic model,
with early stopping at constant or oscillating steady states.
"""

__version__ = "0.1.0"
__author__ = "PyATN Development Team"

# Core imports
from pyatn.core.foodweb import FoodWeb, NodeType
from pyatn.core.params import ModelParameters, SimulationParameters
from pyatn.core.equations import ModelEquations
from pyatn.core.detectors import StopEvent
from pyatn.core.simulation import (
    Simulation,
    SimulationResults,
    SimulationState,
    run_simulation,
)
from pyatn.core.errors import (
    ATNError,
    ModelConfigurationError,
    IntegrationError,
    NoBracketingError,
)

__all__ = [
    # Version
    "__version__",
    "__author__",
    # Model
    "FoodWeb",
    "NodeType",
    "ModelParameters",
    "SimulationParameters",
    "ModelEquations",
    # Simulation
    "StopEvent",
    "Simulation",
    "SimulationResults",
    "SimulationState",
    "run_simulation",
    # Errors
    "ATNError",
    "ModelConfigurationError",
    "IntegrationError",
    "NoBracketingError",
]
