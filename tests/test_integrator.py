"""
Tests for the event-aware adaptive integrator.
"""

import numpy as np
import pytest

from pyatn.core.errors import NoBracketingError
from pyatn.core.integrator import AdaptiveIntegrator, EventAction, EventFilter


def decay(t, y):
    return -y


def rotation(t, y):
    """y = (sin t, cos t) for y0 = (0, 1)."""
    return np.array([y[1], -y[0]])


class Recorder:
    """Step handler collecting every output point."""

    def __init__(self):
        self.times = []
        self.states = []
        self.last_flags = []
        self.init_calls = []

    def init(self, t0, y0, t):
        self.init_calls.append((t0, t))

    def handle_step(self, t, y, is_last):
        self.times.append(t)
        self.states.append(np.array(y))
        self.last_flags.append(is_last)


class ThresholdEvent:
    """Event at y[0] == threshold."""

    def __init__(self, threshold, action=EventAction.STOP):
        self.threshold = threshold
        self.action = action
        self.crossings = []

    def init(self, t0, y0, t):
        pass

    def switching_value(self, t, y, y_dot):
        return y[0] - self.threshold

    def on_zero_crossing(self, t, y, y_dot, increasing):
        self.crossings.append((t, increasing))
        return self.action


class TestStepOutput:
    """Tests for fixed-interval output."""

    def test_outputs_at_multiples(self):
        integrator = AdaptiveIntegrator()
        recorder = Recorder()
        integrator.add_step_handler(recorder, 0.1)
        t, y = integrator.integrate(decay, 0.0, np.array([1.0]), 1.0)

        assert t == 1.0
        np.testing.assert_allclose(recorder.times, np.arange(11) * 0.1)
        np.testing.assert_allclose(
            np.array(recorder.states)[:, 0], np.exp(-np.arange(11) * 0.1), rtol=1e-8
        )
        assert y[0] == pytest.approx(np.exp(-1.0), rel=1e-8)

    def test_only_last_point_flagged(self):
        integrator = AdaptiveIntegrator()
        recorder = Recorder()
        integrator.add_step_handler(recorder, 0.1)
        integrator.integrate(decay, 0.0, np.array([1.0]), 1.0)
        assert recorder.last_flags[-1] is True
        assert not any(recorder.last_flags[:-1])

    def test_resume_from_later_start(self):
        integrator = AdaptiveIntegrator()
        recorder = Recorder()
        integrator.add_step_handler(recorder, 0.5)
        integrator.integrate(decay, 2.0, np.array([1.0]), 4.0)
        np.testing.assert_allclose(recorder.times, [2.0, 2.5, 3.0, 3.5, 4.0])
        assert recorder.init_calls == [(2.0, 4.0)]

    def test_end_not_on_grid(self):
        integrator = AdaptiveIntegrator()
        recorder = Recorder()
        integrator.add_step_handler(recorder, 0.4)
        integrator.integrate(decay, 0.0, np.array([1.0]), 1.0)
        np.testing.assert_allclose(recorder.times, [0.0, 0.4, 0.8, 1.0])
        assert recorder.last_flags == [False, False, False, True]

    def test_zero_length_interval(self):
        integrator = AdaptiveIntegrator()
        recorder = Recorder()
        integrator.add_step_handler(recorder, 0.1)
        t, y = integrator.integrate(decay, 1.0, np.array([2.0]), 1.0)
        assert t == 1.0
        assert y[0] == 2.0
        assert recorder.times == [1.0]
        assert recorder.last_flags == [True]

    def test_initial_state_not_modified(self):
        y0 = np.array([1.0])
        AdaptiveIntegrator().integrate(decay, 0.0, y0, 1.0)
        assert y0[0] == 1.0


class TestEvents:
    """Tests for event location and actions."""

    def test_stop_event(self):
        integrator = AdaptiveIntegrator()
        event = ThresholdEvent(0.5)
        integrator.add_event_handler(event, max_check_interval=1.0)
        t, y = integrator.integrate(decay, 0.0, np.array([1.0]), 10.0)

        assert t == pytest.approx(np.log(2), abs=2e-4)
        assert len(event.crossings) == 1
        assert event.crossings[0][1] is False
        # Located on the post-crossing side
        assert y[0] <= 0.5

    def test_stop_event_ends_output(self):
        integrator = AdaptiveIntegrator()
        recorder = Recorder()
        integrator.add_step_handler(recorder, 0.1)
        integrator.add_event_handler(ThresholdEvent(0.5), max_check_interval=1.0)
        t, _ = integrator.integrate(decay, 0.0, np.array([1.0]), 10.0)

        np.testing.assert_allclose(recorder.times[:-1], np.arange(7) * 0.1)
        assert recorder.times[-1] == t
        assert recorder.last_flags[-1] is True

    def test_continue_event_both_directions(self):
        integrator = AdaptiveIntegrator()
        event = ThresholdEvent(0.0, action=EventAction.CONTINUE)
        integrator.add_event_handler(event, max_check_interval=0.5)
        t, _ = integrator.integrate(rotation, 0.0, np.array([0.0, 1.0]), 10.0)

        assert t == 10.0
        times = [c[0] for c in event.crossings]
        np.testing.assert_allclose(times, [np.pi, 2 * np.pi, 3 * np.pi], atol=2e-4)
        assert [c[1] for c in event.crossings] == [False, True, False]

    def test_decreasing_only_filter(self):
        integrator = AdaptiveIntegrator()
        event = ThresholdEvent(0.0, action=EventAction.CONTINUE)
        integrator.add_event_handler(
            event, max_check_interval=0.5, event_filter=EventFilter.DECREASING_ONLY
        )
        integrator.integrate(rotation, 0.0, np.array([0.0, 1.0]), 10.0)

        times = [c[0] for c in event.crossings]
        np.testing.assert_allclose(times, [np.pi, 3 * np.pi], atol=2e-4)

    def test_zero_at_start_then_moving_away(self):
        """g == 0 at t0 followed by motion to one side is not a crossing."""

        class Snapshot(ThresholdEvent):
            def init(self, t0, y0, t):
                self.threshold = y0[0]

            def switching_value(self, t, y, y_dot):
                return self.threshold - y[0]

        integrator = AdaptiveIntegrator()
        event = Snapshot(0.0, action=EventAction.CONTINUE)
        integrator.add_event_handler(event, max_check_interval=0.1)
        t, _ = integrator.integrate(lambda t, y: y, 100.0, np.array([0.2]), 102.0)

        assert t == 102.0
        assert event.crossings == []

    def test_zero_at_start_sign_from_first_sample(self):
        integrator = AdaptiveIntegrator()
        event = ThresholdEvent(0.0, action=EventAction.CONTINUE)
        integrator.add_event_handler(event, max_check_interval=0.5)
        # y[0] = -sin t starts at 0 and goes negative
        integrator.integrate(rotation, 0.0, np.array([0.0, -1.0]), 10.0)

        times = [c[0] for c in event.crossings]
        np.testing.assert_allclose(times, [np.pi, 2 * np.pi, 3 * np.pi], atol=2e-4)
        assert [c[1] for c in event.crossings] == [True, False, True]

    def test_event_inside_long_step(self):
        """Sampling every max_check_interval finds events the steps jump over."""

        class TimeEvent(ThresholdEvent):
            def switching_value(self, t, y, y_dot):
                return 5.0 - t

        integrator = AdaptiveIntegrator(max_step=100.0)
        event = TimeEvent(0.0)
        integrator.add_event_handler(event, max_check_interval=1.0)
        t, _ = integrator.integrate(lambda t, y: np.zeros_like(y), 0.0, np.array([1.0]), 50.0)
        assert t == pytest.approx(5.0, abs=2e-4)

    def test_earliest_event_wins(self):
        integrator = AdaptiveIntegrator()
        late = ThresholdEvent(0.2)
        early = ThresholdEvent(0.6)
        integrator.add_event_handler(late, max_check_interval=1.0)
        integrator.add_event_handler(early, max_check_interval=1.0)
        t, _ = integrator.integrate(decay, 0.0, np.array([1.0]), 10.0)

        assert t == pytest.approx(np.log(1 / 0.6), abs=2e-4)
        assert len(early.crossings) == 1
        assert late.crossings == []

    def test_handler_receives_derivative(self):
        received = []

        class Spy(ThresholdEvent):
            def switching_value(self, t, y, y_dot):
                received.append((np.array(y), np.array(y_dot)))
                return 1.0

        integrator = AdaptiveIntegrator()
        integrator.add_event_handler(Spy(0.0), max_check_interval=1.0)
        integrator.integrate(decay, 0.0, np.array([1.0]), 2.0)
        assert received
        for y, y_dot in received:
            np.testing.assert_allclose(y_dot, -y)

    def test_clear_event_handlers(self):
        integrator = AdaptiveIntegrator()
        event = ThresholdEvent(0.5)
        integrator.add_event_handler(event, max_check_interval=1.0)
        integrator.clear_event_handlers()
        t, _ = integrator.integrate(decay, 0.0, np.array([1.0]), 2.0)
        assert t == 2.0
        assert integrator.event_handlers == []
        assert event.crossings == []

    def test_no_bracketing(self):
        class Undefined(ThresholdEvent):
            def switching_value(self, t, y, y_dot):
                return 1.0 if t < 0.5 else float("nan")

        integrator = AdaptiveIntegrator()
        integrator.add_event_handler(Undefined(0.0), max_check_interval=0.1)
        with pytest.raises(NoBracketingError):
            integrator.integrate(decay, 0.0, np.array([1.0]), 2.0)


class TestConfiguration:
    """Tests for argument validation."""

    def test_unknown_method(self):
        with pytest.raises(ValueError):
            AdaptiveIntegrator(method="Euler")

    def test_backwards_interval(self):
        with pytest.raises(ValueError):
            AdaptiveIntegrator().integrate(decay, 1.0, np.array([1.0]), 0.0)

    def test_invalid_step_size(self):
        with pytest.raises(ValueError):
            AdaptiveIntegrator().add_step_handler(Recorder(), 0.0)

    def test_invalid_check_interval(self):
        with pytest.raises(ValueError):
            AdaptiveIntegrator().add_event_handler(ThresholdEvent(0.0), 0.0)
