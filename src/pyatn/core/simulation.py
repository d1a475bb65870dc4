"""
ATN simulation driver.

Runs the model equations forward from an initial biomass vector, recording
the biomass at every output timestep and, when requested, stopping early
once a steady-state detector recognizes a constant or oscillating state.

Integration proceeds in chunks of doubling length (1000 timesteps, then up
to 2000, 4000, ...). The oscillating-state detector snapshots the state at
the start of each chunk, so the doubling lets it find cycles of any period.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

import numpy as np
import pandas as pd

from pyatn.config import EVENTS, SOLVER, EventConfig, SolverConfig
from pyatn.core.constants import EXTINCT, NEVER_EXTINCT
from pyatn.core.detectors import (
    ConstantSteadyStateDetector,
    OscillatingSteadyStateDetector,
    StopEvent,
)
from pyatn.core.equations import ModelEquations
from pyatn.core.errors import IncorrectParameterDimensionsError, NoBracketingError
from pyatn.core.integrator import AdaptiveIntegrator, EventFilter
from pyatn.core.params import ModelParameters, SimulationParameters
from pyatn.logger import get_logger

logger = get_logger(__name__)


class SimulationState(Enum):
    NOT_STARTED = "not_started"
    INTEGRATING = "integrating"
    COMPLETED = "completed"
    STOPPED_BY_CONSTANT_DETECTOR = "stopped_by_constant_detector"
    STOPPED_BY_OSCILLATION_DETECTOR = "stopped_by_oscillation_detector"


@dataclass
class SimulationResults:
    """Everything a completed simulation can report.

    Attributes
    ----------
    simulation_parameters : SimulationParameters
        Parameters the simulation was run with
    model_parameters : ModelParameters
        Model parameters the simulation was run with
    biomass : np.ndarray or None
        Biomass per timestep and node, shape (timesteps, n_nodes);
        None when biomass recording was disabled
    extinction_timesteps : np.ndarray
        Timestep at which each node first went extinct, -1 if it never did
    final_biomass : np.ndarray
        Biomass of each node where integration ended
    stop_event : StopEvent
        Why the simulation ended before its last timestep, or NONE
    timesteps_simulated : int
        Number of timesteps actually simulated
    """
    simulation_parameters: SimulationParameters
    model_parameters: ModelParameters
    biomass: Optional[np.ndarray]
    extinction_timesteps: np.ndarray
    final_biomass: np.ndarray
    stop_event: StopEvent = StopEvent.NONE
    timesteps_simulated: int = 0

    @property
    def node_count(self) -> int:
        return len(self.final_biomass)

    @property
    def stopped_early(self) -> bool:
        return self.stop_event != StopEvent.NONE

    def biomass_frame(self, node_ids: Optional[Sequence[int]] = None) -> pd.DataFrame:
        """Simulated biomass rows as a DataFrame indexed by time.

        Parameters
        ----------
        node_ids : sequence of int, optional
            Column labels (e.g. the original node IDs); defaults to 0..N-1

        Returns
        -------
        pd.DataFrame
            One row per simulated timestep, one column per node
        """
        if self.biomass is None:
            raise ValueError("Biomass was not recorded for this simulation")
        rows = self.biomass[: self.timesteps_simulated]
        step_size = self.simulation_parameters.step_size
        index = pd.Index(np.arange(len(rows)) * step_size, name="time")
        columns = list(node_ids) if node_ids is not None else list(range(self.node_count))
        if len(columns) != self.node_count:
            raise ValueError(
                f"Expected {self.node_count} node IDs, got {len(columns)}"
            )
        return pd.DataFrame(rows, index=index, columns=columns)


class StepRecorder:
    """Fixed-interval step handler that records biomass and extinctions.

    Only states on the output grid are written to the biomass matrix. The
    off-grid state at which an event stopped integration still counts for
    extinctions and becomes ``last_state``.

    Parameters
    ----------
    biomass : np.ndarray or None
        Output matrix of shape (timesteps, n_nodes), filled in place;
        None to only track extinctions
    step_size : float
        Time per timestep
    node_count : int
        Number of nodes
    """

    def __init__(self, biomass: Optional[np.ndarray], step_size: float, node_count: int):
        self.biomass = biomass
        self.step_size = step_size
        self.extinction_timesteps = np.full(node_count, NEVER_EXTINCT, dtype=int)
        self.last_handled_timestep = -1
        self.last_state: Optional[np.ndarray] = None

    def init(self, t0: float, y0: np.ndarray, t: float) -> None:
        pass

    def handle_step(self, t: float, y: np.ndarray, is_last: bool) -> None:
        timestep = int(round(t / self.step_size))
        self.last_handled_timestep = timestep
        self.last_state = np.array(y, dtype=float)
        on_grid = abs(t - timestep * self.step_size) <= 1e-9 * self.step_size
        if self.biomass is not None and on_grid and 0 <= timestep < len(self.biomass):
            self.biomass[timestep] = y
        newly_extinct = (self.extinction_timesteps == NEVER_EXTINCT) & (np.asarray(y) < EXTINCT)
        self.extinction_timesteps[newly_extinct] = timestep


class Simulation:
    """One run of the ATN model.

    Parameters
    ----------
    simulation_parameters : SimulationParameters
        Timesteps, step size and stopping/recording options
    equations : ModelEquations
        Parameterized model equations
    initial_biomass : array-like
        Biomass of each node at timestep 0

    Examples
    --------
    >>> sim = Simulation(SimulationParameters(timesteps=1000), equations, [0.5, 0.1])
    >>> results = sim.run()
    >>> results.stop_event
    <StopEvent.NONE: 'NONE'>
    """

    def __init__(
        self,
        simulation_parameters: SimulationParameters,
        equations: ModelEquations,
        initial_biomass,
        solver_config: SolverConfig = SOLVER,
        event_config: EventConfig = EVENTS,
    ):
        initial_biomass = np.array(initial_biomass, dtype=float)
        if initial_biomass.shape != (equations.dimension,):
            raise IncorrectParameterDimensionsError(
                equations.dimension, "initial_biomass", initial_biomass.shape
            )
        self.simulation_parameters = simulation_parameters
        self.equations = equations
        self.initial_biomass = initial_biomass
        self.solver_config = solver_config
        self.event_config = event_config

        self.state = SimulationState.NOT_STARTED
        self.results: Optional[SimulationResults] = None
        self.constant_detector: Optional[ConstantSteadyStateDetector] = None
        self.oscillation_detector: Optional[OscillatingSteadyStateDetector] = None

    def run(self) -> SimulationResults:
        """Run the simulation, store its results and return them."""
        params = self.simulation_parameters
        timesteps = params.timesteps
        step_size = params.step_size
        n = self.equations.dimension

        self.state = SimulationState.INTEGRATING
        logger.debug(
            f"Starting simulation: {n} nodes, {timesteps} timesteps of {step_size}"
        )

        biomass = np.zeros((timesteps, n)) if params.record_biomass else None
        if biomass is not None and timesteps > 0:
            biomass[0] = self.initial_biomass

        recorder = StepRecorder(biomass, step_size, n)
        integrator = AdaptiveIntegrator(
            max_step=self.solver_config.max_step,
            atol=self.solver_config.atol,
            rtol=self.solver_config.rtol,
            method=self.solver_config.method,
        )
        integrator.add_step_handler(recorder, step_size)

        if params.stop_on_steady_state:
            self.constant_detector = ConstantSteadyStateDetector(self.equations)
            self.oscillation_detector = OscillatingSteadyStateDetector(self.equations)
            integrator.add_event_handler(
                self.constant_detector,
                self.event_config.constant_max_check_interval,
                self.event_config.convergence,
                self.event_config.max_iterations,
                EventFilter.DECREASING_ONLY,
            )

        current_biomass = self.initial_biomass.copy()
        detectors_removed = False
        chunk = 0
        prev_start = -1
        start = 0
        end = min(self.event_config.first_chunk_timesteps, timesteps)
        while start < timesteps and start > prev_start:
            if params.stop_on_steady_state and chunk == 1 and not detectors_removed:
                integrator.add_event_handler(
                    self.oscillation_detector,
                    step_size,
                    self.event_config.convergence,
                    self.event_config.max_iterations,
                )

            logger.debug(f"Integrating chunk {chunk}: timesteps {start} to {end}")
            try:
                _, current_biomass = integrator.integrate(
                    self.equations, start * step_size, current_biomass, end * step_size
                )
            except NoBracketingError as e:
                logger.warning(f"{e}; removing steady state detectors and continuing")
                integrator.clear_event_handlers()
                detectors_removed = True
                if recorder.last_state is not None:
                    current_biomass = recorder.last_state

            if params.stop_on_steady_state and self._detector_stopped():
                break

            prev_start = start
            start = recorder.last_handled_timestep
            end = min(timesteps, end * 2)
            chunk += 1

        self.results = self._resolve_results(biomass, recorder, current_biomass)
        logger.debug(
            f"Simulation finished after {self.results.timesteps_simulated} timesteps "
            f"({self.results.stop_event.name})"
        )
        return self.results

    def _detector_stopped(self) -> bool:
        return (
            self.constant_detector.integration_was_stopped()
            or self.oscillation_detector.integration_was_stopped()
        )

    def _resolve_results(self, biomass, recorder, current_biomass) -> SimulationResults:
        params = self.simulation_parameters
        stop_event = StopEvent.NONE
        timesteps_simulated = params.timesteps
        self.state = SimulationState.COMPLETED

        if params.stop_on_steady_state:
            if self.constant_detector.integration_was_stopped():
                stop_event = self.constant_detector.stop_event
                timesteps_simulated = int(self.constant_detector.time_stopped / params.step_size)
                self.state = SimulationState.STOPPED_BY_CONSTANT_DETECTOR
            elif self.oscillation_detector.integration_was_stopped():
                stop_event = self.oscillation_detector.stop_event
                timesteps_simulated = int(self.oscillation_detector.time_stopped / params.step_size)
                self.state = SimulationState.STOPPED_BY_OSCILLATION_DETECTOR

        if biomass is not None:
            timesteps_simulated = min(timesteps_simulated, len(biomass))

        return SimulationResults(
            simulation_parameters=params,
            model_parameters=self.equations.parameters,
            biomass=biomass,
            extinction_timesteps=recorder.extinction_timesteps.copy(),
            final_biomass=np.array(current_biomass, dtype=float),
            stop_event=stop_event,
            timesteps_simulated=timesteps_simulated,
        )


def run_simulation(
    simulation_parameters: SimulationParameters,
    equations: ModelEquations,
    initial_biomass,
) -> SimulationResults:
    """Run a simulation and return its results.

    Examples
    --------
    >>> results = run_simulation(SimulationParameters(timesteps=100), equations, [0.5])
    >>> results.final_biomass
    """
    return Simulation(simulation_parameters, equations, initial_biomass).run()
