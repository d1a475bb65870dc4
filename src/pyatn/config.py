"""PyATN Configuration.

Centralized configuration for the solver, the steady-state event search,
batch runs and plots. Model parameter defaults live on
``pyatn.core.params.Defaults``.
"""
from dataclasses import dataclass
from typing import Dict

from pyatn.core.constants import (
    CONSTANT_DETECTOR_MAX_CHECK_INTERVAL,
    DEFAULT_NODE_CONFIG_BIOMASS_SCALE,
    DEFAULT_STEP_SIZE,
    EVENT_CONVERGENCE,
    EVENT_MAX_ITERATIONS,
    FIRST_CHUNK_TIMESTEPS,
    INTEGRATION_ATOL,
    INTEGRATION_MAX_STEP,
    INTEGRATION_METHOD,
    INTEGRATION_RTOL,
)


@dataclass
class SolverConfig:
    """Adaptive ODE solver configuration."""

    max_step: float = INTEGRATION_MAX_STEP
    atol: float = INTEGRATION_ATOL
    rtol: float = INTEGRATION_RTOL
    method: str = INTEGRATION_METHOD


@dataclass
class EventConfig:
    """Steady-state event search configuration.

    The oscillating detector is checked every output step, so it has no
    separate interval here.
    """

    constant_max_check_interval: float = CONSTANT_DETECTOR_MAX_CHECK_INTERVAL
    convergence: float = EVENT_CONVERGENCE
    max_iterations: int = EVENT_MAX_ITERATIONS
    first_chunk_timesteps: int = FIRST_CHUNK_TIMESTEPS


@dataclass
class BatchConfig:
    """Batch run defaults."""

    biomass_scale: float = DEFAULT_NODE_CONFIG_BIOMASS_SCALE
    step_size: float = DEFAULT_STEP_SIZE
    output_prefix: str = 'ATN'
    output_extension: str = '.h5'


@dataclass
class PlotConfig:
    """Matplotlib plot configuration."""

    default_width: int = 10
    default_height: int = 6
    dpi: int = 100

    # Node type colors
    colors: Dict[str, str] = None

    def __post_init__(self):
        """Initialize node type colors."""
        if self.colors is None:
            self.colors = {
                'PRODUCER': '#2ecc71',  # Green
                'CONSUMER': '#3498db',  # Blue
                'extinct': '#95a5a6',   # Gray
            }


# Create singleton instances for easy import
SOLVER = SolverConfig()
EVENTS = EventConfig()
BATCH = BatchConfig()
PLOTS = PlotConfig()
