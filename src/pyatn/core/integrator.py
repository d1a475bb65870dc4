"""
Event-aware adaptive integration.

Steps an adaptive embedded Runge-Kutta solver from ``scipy.integrate``
(DOP853 by default) and layers two things on top of it that
``solve_ivp`` does not offer:

- Fixed-interval output: step handlers receive the interpolated state at
  every integer multiple of their output interval, plus the first and the
  last point of each integration.
- Stateful event handlers: each handler supplies a switching function g.
  A sign change of g is located by bisection on the dense output, and the
  handler decides at each crossing whether integration continues or stops.

Handlers receive the derivative at the evaluated point explicitly, so they
never depend on which state the derivative function saw last.

Notes
-----
scipy's steppers take ``max_step`` but no minimum step size, so only the
upper bound on the internal step is configured.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Protocol, Tuple

import numpy as np
from scipy import integrate, optimize

from pyatn.core.constants import (
    EVENT_CONVERGENCE,
    EVENT_MAX_ITERATIONS,
    INTEGRATION_ATOL,
    INTEGRATION_MAX_STEP,
    INTEGRATION_METHOD,
    INTEGRATION_RTOL,
)
from pyatn.core.errors import IntegrationError, NoBracketingError, SolverFailedError
from pyatn.logger import get_logger

logger = get_logger(__name__)

RHS = Callable[[float, np.ndarray], np.ndarray]

_SOLVERS = {
    "DOP853": integrate.DOP853,
    "RK45": integrate.RK45,
    "RK23": integrate.RK23,
}


def _sign(g: float) -> Optional[bool]:
    """True for g > 0, False for g < 0 and None for g exactly 0."""
    if g == 0:
        return None
    return g > 0


class EventAction(Enum):
    """What an event handler asks the integrator to do after a crossing."""
    CONTINUE = "continue"
    STOP = "stop"


class EventFilter(Enum):
    """Which sign changes of the switching function trigger the handler."""
    BOTH = "both"
    DECREASING_ONLY = "decreasing_only"


class StepHandler(Protocol):
    def init(self, t0: float, y0: np.ndarray, t: float) -> None: ...

    def handle_step(self, t: float, y: np.ndarray, is_last: bool) -> None: ...


class EventHandler(Protocol):
    def init(self, t0: float, y0: np.ndarray, t: float) -> None: ...

    def switching_value(self, t: float, y: np.ndarray, y_dot: np.ndarray) -> float: ...

    def on_zero_crossing(
        self, t: float, y: np.ndarray, y_dot: np.ndarray, increasing: bool
    ) -> EventAction: ...


@dataclass
class _StepOutput:
    handler: StepHandler
    step_size: float
    next_index: int = 0

    def time_of(self, index: int) -> float:
        return index * self.step_size


@dataclass
class _EventState:
    handler: EventHandler
    max_check_interval: float
    convergence: float
    max_iterations: int
    event_filter: EventFilter
    # Last point at which g was evaluated, and the sign considered current;
    # None while g has stayed exactly 0 since t0 was set
    t0: float = 0.0
    g0: float = 0.0
    g0_positive: Optional[bool] = True
    # Time of the last event; the sign at t0 is forced when t0 equals it
    last_event_time: Optional[float] = None


@dataclass
class _Crossing:
    state: _EventState
    t: float
    y: np.ndarray
    y_dot: np.ndarray
    increasing: bool


class AdaptiveIntegrator:
    """Adaptive ODE integrator with fixed-interval output and stop events.

    Parameters
    ----------
    max_step : float
        Maximum internal step size
    atol : float
        Absolute error tolerance
    rtol : float
        Relative error tolerance
    method : str
        Name of the scipy Runge-Kutta stepper ('DOP853', 'RK45' or 'RK23')

    Examples
    --------
    >>> integrator = AdaptiveIntegrator()
    >>> integrator.add_step_handler(recorder, step_size=0.1)
    >>> t, y = integrator.integrate(equations, 0.0, y0, 10.0)
    """

    def __init__(
        self,
        max_step: float = INTEGRATION_MAX_STEP,
        atol: float = INTEGRATION_ATOL,
        rtol: float = INTEGRATION_RTOL,
        method: str = INTEGRATION_METHOD,
    ):
        if method not in _SOLVERS:
            raise ValueError(f"Unknown integration method: {method}")
        self.max_step = max_step
        self.atol = atol
        self.rtol = rtol
        self.method = method
        self._step_outputs: List[_StepOutput] = []
        self._events: List[_EventState] = []
        self._fun: Optional[RHS] = None

    # ------------------------------------------------------------------
    # Handler registration
    # ------------------------------------------------------------------

    def add_step_handler(self, handler: StepHandler, step_size: float) -> None:
        if not step_size > 0:
            raise ValueError(f"step_size must be positive, got {step_size}")
        self._step_outputs.append(_StepOutput(handler, float(step_size)))

    def add_event_handler(
        self,
        handler: EventHandler,
        max_check_interval: float,
        convergence: float = EVENT_CONVERGENCE,
        max_iterations: int = EVENT_MAX_ITERATIONS,
        event_filter: EventFilter = EventFilter.BOTH,
    ) -> None:
        if not max_check_interval > 0:
            raise ValueError(f"max_check_interval must be positive, got {max_check_interval}")
        self._events.append(
            _EventState(handler, float(max_check_interval), convergence, max_iterations, event_filter)
        )

    def clear_event_handlers(self) -> None:
        self._events = []

    @property
    def event_handlers(self) -> List[EventHandler]:
        return [state.handler for state in self._events]

    # ------------------------------------------------------------------
    # Integration
    # ------------------------------------------------------------------

    def integrate(
        self, fun: RHS, t0: float, y0: np.ndarray, t_end: float
    ) -> Tuple[float, np.ndarray]:
        """Integrate from t0 to t_end, or until an event handler stops it.

        Parameters
        ----------
        fun : callable
            Right-hand side ``fun(t, y) -> dydt``
        t0 : float
            Initial time
        y0 : np.ndarray
            Initial state
        t_end : float
            Final time (must not be before t0)

        Returns
        -------
        tuple
            (t, y) at the point where integration ended

        Raises
        ------
        NoBracketingError
            If an event's root search cannot bracket the sign change
        SolverFailedError
            If the stepper fails (e.g. the step size underflows)
        """
        if t_end < t0:
            raise ValueError(f"t_end ({t_end}) is before t0 ({t0})")
        self._fun = fun
        y0 = np.array(y0, dtype=float)

        for output in self._step_outputs:
            output.handler.init(t0, y0.copy(), t_end)
        for state in self._events:
            state.handler.init(t0, y0.copy(), t_end)
            state.t0 = t0
            state.g0 = self._switching_value(state, t0, y0)
            state.g0_positive = _sign(state.g0)
            state.last_event_time = None

        if t_end == t0:
            for output in self._step_outputs:
                output.handler.handle_step(t0, y0.copy(), True)
            return t0, y0

        for output in self._step_outputs:
            output.handler.handle_step(t0, y0.copy(), False)
            output.next_index = self._first_index_after(output, t0)

        solver = _SOLVERS[self.method](
            fun, t0, y0, t_end, max_step=self.max_step, rtol=self.rtol, atol=self.atol
        )

        while solver.status == "running":
            message = solver.step()
            if solver.status == "failed":
                raise SolverFailedError(f"Integration failed at t = {solver.t}: {message}")

            t_step = solver.t
            dense = solver.dense_output()

            while True:
                crossing = self._earliest_crossing(t_step, dense)
                if crossing is None:
                    break
                self._emit_outputs(crossing.t, dense, t_end)
                action = crossing.state.handler.on_zero_crossing(
                    crossing.t, crossing.y.copy(), crossing.y_dot.copy(), crossing.increasing
                )
                if action == EventAction.STOP:
                    logger.debug(f"Integration stopped by event at t = {crossing.t}")
                    self._emit_last(crossing.t, crossing.y)
                    return crossing.t, crossing.y
                self._reset_after_event(crossing)

            self._emit_outputs(t_step, dense, t_end)

        y_end = np.array(solver.y, dtype=float)
        self._emit_last(t_end, y_end)
        return t_end, y_end

    # ------------------------------------------------------------------
    # Step output
    # ------------------------------------------------------------------

    @staticmethod
    def _tolerance(output: _StepOutput) -> float:
        return 1e-9 * output.step_size

    def _first_index_after(self, output: _StepOutput, t: float) -> int:
        return math.floor(t / output.step_size + 1e-9) + 1

    def _emit_outputs(self, t_to: float, dense, t_end: float) -> None:
        """Emit grid points up to and including t_to."""
        for output in self._step_outputs:
            eps = self._tolerance(output)
            while output.time_of(output.next_index) <= t_to + eps:
                t = output.time_of(output.next_index)
                is_last = abs(t - t_end) <= eps
                if is_last:
                    t = t_end
                output.handler.handle_step(t, np.asarray(dense(min(t, t_to)), dtype=float), is_last)
                output.next_index += 1

    def _emit_last(self, t: float, y: np.ndarray) -> None:
        """Emit the final point unless it coincided with a grid point."""
        for output in self._step_outputs:
            last_emitted = output.time_of(output.next_index - 1)
            if abs(last_emitted - t) > self._tolerance(output):
                output.handler.handle_step(t, y.copy(), True)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def _derivative(self, t: float, y: np.ndarray) -> np.ndarray:
        return np.asarray(self._fun(t, y), dtype=float)

    def _switching_value(self, state: _EventState, t: float, y: np.ndarray) -> float:
        return float(state.handler.switching_value(t, y, self._derivative(t, y)))

    def _earliest_crossing(self, t_hi: float, dense) -> Optional[_Crossing]:
        crossings = []
        pending = []
        for state in self._events:
            crossing, t_last, g_last, positive = self._scan(state, t_hi, dense)
            if crossing is None:
                pending.append((state, t_last, g_last, positive))
            else:
                crossings.append(crossing)
        if not crossings:
            for state, t_last, g_last, positive in pending:
                state.t0 = t_last
                state.g0 = g_last
                state.g0_positive = positive
            return None
        return min(crossings, key=lambda c: c.t)

    def _scan(self, state: _EventState, t_hi: float, dense):
        """Sample g from state.t0 to t_hi looking for a sign change.

        Returns (crossing, t_last, g_last, positive); crossing is None when
        none was found, in which case (t_last, g_last) is the last sample and
        positive the sign of g considered current there.

        While g stays exactly 0 from t0 no sign is known yet; the first
        nonzero sample sets it without reporting a crossing.
        """
        span = t_hi - state.t0
        if span <= 0:
            return None, state.t0, state.g0, state.g0_positive
        n = max(1, math.ceil(span / state.max_check_interval))
        h = span / n

        ta, ga, positive = state.t0, state.g0, state.g0_positive
        for i in range(1, n + 1):
            tb = t_hi if i == n else state.t0 + i * h
            gb = self._switching_value(state, tb, dense(tb))
            if positive is None:
                positive = _sign(gb)
            elif positive != (gb >= 0):
                increasing = not positive
                if ta == state.last_event_time and (ga >= 0) == (gb >= 0):
                    # Root already handled at the previous event
                    positive = gb >= 0
                elif increasing and state.event_filter == EventFilter.DECREASING_ONLY:
                    positive = gb >= 0
                else:
                    crossing = self._locate(state, ta, ga, tb, gb, increasing, dense)
                    return crossing, tb, gb, positive
            ta, ga = tb, gb
        return None, ta, ga, positive

    def _locate(self, state, ta, ga, tb, gb, increasing, dense) -> _Crossing:
        """Bisect g on [ta, tb] and build the crossing on its post-crossing side."""
        if not ga * gb <= 0:
            raise NoBracketingError(ta, tb, ga, gb)

        def g(t):
            return self._switching_value(state, t, dense(t))

        try:
            root = optimize.bisect(
                g, ta, tb, xtol=state.convergence, maxiter=state.max_iterations
            )
        except ValueError as e:
            raise NoBracketingError(ta, tb, ga, gb) from e
        except RuntimeError as e:
            raise IntegrationError(f"Event search did not converge on [{ta}, {tb}]") from e

        t_event = root
        if (g(t_event) >= 0) != increasing:
            t_event = min(root + state.convergence, tb)
        y = np.asarray(dense(t_event), dtype=float)
        return _Crossing(state, t_event, y, self._derivative(t_event, y), increasing)

    def _reset_after_event(self, crossing: _Crossing) -> None:
        for state in self._events:
            state.t0 = crossing.t
            if state is crossing.state:
                state.g0 = self._switching_value(state, crossing.t, crossing.y)
                state.g0_positive = crossing.increasing
                state.last_event_time = crossing.t
            else:
                state.g0 = self._switching_value(state, crossing.t, crossing.y)
                state.g0_positive = _sign(state.g0)
