"""
Test suite for the step-by-step integrator.

Tests cover:
- Accuracy on a harmonic oscillator, forward and backward
- Raw event location, stop and reset actions
- Step handler coverage of the integration interval
- Dense output sealing and interpolation
- Handler configuration restore by IntegratorSession
"""

import pytest
import numpy as np
from troxia import (
    ODEIntegrator, Action, DenseOutputModel, IntegratorSession,
    IntegrationError, DimensionMismatchError,
)
from troxia.ode import ODEState, ExpandableODE, OrdinaryDifferentialEquation, SecondaryODE


class Oscillator(OrdinaryDifferentialEquation):
    def get_dimension(self):
        return 2

    def compute_derivatives(self, t, y):
        return [y[1], -y[0]]


class Integral(SecondaryODE):
    def get_dimension(self):
        return 1

    def compute_derivatives(self, t, primary, primary_dot, secondary):
        return [primary[0]]


class RawEvent:
    """Zero crossings of the oscillator position."""

    def __init__(self, action=Action.STOP):
        self.action = action
        self.events = []

    def init(self, s0, final_time):
        pass

    def g(self, state):
        return state.primary_state[0]

    def event_occurred(self, state, increasing):
        self.events.append((state.time, increasing))
        return self.action

    def reset_state(self, state):
        return state


class Bounce(RawEvent):
    """Reverses the velocity on downward crossings."""

    def event_occurred(self, state, increasing):
        self.events.append((state.time, increasing))
        return Action.CONTINUE if increasing else Action.RESET_STATE

    def reset_state(self, state):
        x, v = state.primary_state
        return ODEState(state.time, [x, -v])


class StepRecorder:
    def __init__(self):
        self.steps = []
        self.initial = None
        self.final = None

    def init(self, s0, final_time):
        self.initial = s0.time

    def handle_step(self, interpolator):
        self.steps.append((interpolator.previous_state.time,
                           interpolator.current_state.time))

    def finish(self, final_state):
        self.final = final_state.time


def oscillator():
    return ExpandableODE(Oscillator())


def start():
    return ODEState(0.0, [1.0, 0.0])


@pytest.fixture
def integrator():
    return ODEIntegrator('DOP853', rtol=1e-11, atol=1e-12)


class TestAccuracy:
    """Integrate x'' = -x from x(0) = 1."""

    def test_half_period(self, integrator):
        final = integrator.integrate(oscillator(), start(), np.pi)
        assert final.time == np.pi
        np.testing.assert_allclose(final.primary_state, [-1.0, 0.0], atol=1e-9)
        np.testing.assert_allclose(final.primary_derivative, [0.0, 1.0], atol=1e-9)

    def test_backward(self, integrator):
        final = integrator.integrate(oscillator(), start(), -np.pi / 2)
        np.testing.assert_allclose(final.primary_state, [0.0, 1.0], atol=1e-9)

    def test_secondary_block(self, integrator):
        """The secondary block integrates the position: sin(t)."""
        ode = oscillator()
        ode.add_secondary_equations(Integral())
        final = integrator.integrate(ode, ODEState(0.0, [1.0, 0.0], [[0.0]]), np.pi / 2)
        assert final.get_secondary_state(1)[0] == pytest.approx(1.0, abs=1e-9)

    @pytest.mark.parametrize("method", ['RK45', 'Radau', 'LSODA'])
    def test_other_methods(self, method):
        integrator = ODEIntegrator(method, rtol=1e-9, atol=1e-12)
        final = integrator.integrate(oscillator(), start(), np.pi)
        np.testing.assert_allclose(final.primary_state, [-1.0, 0.0], atol=1e-5)

    def test_counters(self, integrator):
        integrator.integrate(oscillator(), start(), np.pi)
        assert integrator.steps > 0
        assert integrator.evaluations > integrator.steps


class TestErrors:
    """Invalid integration requests."""

    def test_unknown_method(self):
        with pytest.raises(ValueError, match="Unknown integration method"):
            ODEIntegrator('Euler')

    def test_unknown_root_solver(self, integrator):
        with pytest.raises(ValueError, match="Unknown root solver"):
            integrator.add_event_handler(RawEvent(), 0.1, 1e-10, 100, solver='newton')

    def test_empty_interval(self, integrator):
        with pytest.raises(IntegrationError, match="too small"):
            integrator.integrate(oscillator(), start(), 0.0)

    def test_wrong_initial_dimension(self, integrator):
        with pytest.raises(DimensionMismatchError):
            integrator.integrate(oscillator(), ODEState(0.0, [1.0, 0.0, 0.0]), 1.0)

    def test_min_step(self):
        """Steps below the minimal step abort the integration."""
        integrator = ODEIntegrator('DOP853', rtol=1e-11, atol=1e-12, min_step=10.0)
        with pytest.raises(IntegrationError, match="minimal step"):
            integrator.integrate(oscillator(), start(), 100.0)


class TestEvents:
    """Raw event location on the integrator."""

    def test_stop(self, integrator):
        event = RawEvent(Action.STOP)
        integrator.add_event_handler(event, 0.1, 1e-12, 100)
        final = integrator.integrate(oscillator(), start(), np.pi)
        assert final.time == pytest.approx(np.pi / 2, abs=1e-9)
        assert event.events == [(final.time, False)]

    def test_continue_finds_every_crossing(self, integrator):
        event = RawEvent(Action.CONTINUE)
        integrator.add_event_handler(event, 0.1, 1e-12, 100)
        final = integrator.integrate(oscillator(), start(), 2 * np.pi)
        assert final.time == 2 * np.pi
        times = [t for t, _ in event.events]
        np.testing.assert_allclose(times, [np.pi / 2, 3 * np.pi / 2], atol=1e-9)
        assert [inc for _, inc in event.events] == [False, True]

    def test_reset_state(self, integrator):
        """A velocity reversal at x = 0 sends the oscillator back up."""
        event = Bounce()
        integrator.add_event_handler(event, 0.1, 1e-12, 100)
        final = integrator.integrate(oscillator(), start(), np.pi)
        assert event.events[0][0] == pytest.approx(np.pi / 2, abs=1e-9)
        np.testing.assert_allclose(final.primary_state, [1.0, 0.0], atol=1e-8)

    def test_stop_finishes_step_handlers(self, integrator):
        recorder = StepRecorder()
        integrator.add_event_handler(RawEvent(Action.STOP), 0.1, 1e-12, 100)
        integrator.add_step_handler(recorder)
        final = integrator.integrate(oscillator(), start(), np.pi)
        assert recorder.final == final.time
        assert recorder.steps[-1][1] == final.time


class TestStepHandlers:
    """Step handlers see the whole interval, step after step."""

    def test_contiguous_steps(self, integrator):
        recorder = StepRecorder()
        integrator.add_step_handler(recorder)
        integrator.integrate(oscillator(), start(), 3.0)
        assert recorder.initial == 0.0
        assert recorder.steps[0][0] == 0.0
        assert recorder.steps[-1][1] == 3.0
        for (_, end), (begin, _) in zip(recorder.steps, recorder.steps[1:]):
            assert end == begin
        assert recorder.final == 3.0

    def test_event_splits_step(self, integrator):
        """Continuing events split steps at the event time."""
        recorder = StepRecorder()
        integrator.add_event_handler(RawEvent(Action.CONTINUE), 0.1, 1e-12, 100)
        integrator.add_step_handler(recorder)
        integrator.integrate(oscillator(), start(), np.pi)
        boundaries = [end for _, end in recorder.steps]
        assert min(abs(b - np.pi / 2) for b in boundaries) < 1e-9

    def test_registrations_persist(self, integrator):
        recorder = StepRecorder()
        integrator.add_step_handler(recorder)
        integrator.integrate(oscillator(), start(), 1.0)
        integrator.integrate(oscillator(), start(), 1.0)
        assert integrator.step_handlers == (recorder,)


class TestDenseOutput:
    """Dense output accumulated over a whole integration."""

    def test_interpolation(self, integrator):
        model = DenseOutputModel()
        integrator.add_step_handler(model)
        integrator.integrate(oscillator(), start(), np.pi)
        model.seal()
        for t in (0.0, 0.4, np.pi / 3, 2.5, np.pi):
            state = model.get_interpolated_state(t)
            np.testing.assert_allclose(state.primary_state, [np.cos(t), -np.sin(t)],
                                       atol=1e-8)
        assert model.initial_time == 0.0
        assert model.final_time == np.pi

    def test_backward_model(self, integrator):
        model = DenseOutputModel()
        integrator.add_step_handler(model)
        integrator.integrate(oscillator(), start(), -2.0)
        model.seal()
        assert not model.is_forward
        state = model.get_interpolated_state(-1.0)
        np.testing.assert_allclose(state.primary_state, [np.cos(1.0), np.sin(1.0)],
                                   atol=1e-8)

    def test_requires_seal(self, integrator):
        model = DenseOutputModel()
        integrator.add_step_handler(model)
        integrator.integrate(oscillator(), start(), 1.0)
        with pytest.raises(RuntimeError, match="sealed"):
            model.get_interpolated_state(0.5)

    def test_sealed_is_read_only(self, integrator):
        model = DenseOutputModel()
        integrator.add_step_handler(model)
        integrator.integrate(oscillator(), start(), 1.0)
        model.seal()
        assert model.is_sealed
        assert model.solution is not None
        with pytest.raises(RuntimeError, match="sealed"):
            integrator.integrate(oscillator(), start(), 1.0)


class TestSession:
    """IntegratorSession restores handler configuration on every exit path."""

    def test_restore_on_success(self, integrator):
        persistent = StepRecorder()
        integrator.add_step_handler(persistent)
        temporary = StepRecorder()
        with IntegratorSession(integrator):
            integrator.add_step_handler(temporary)
            integrator.add_event_handler(RawEvent(), 0.1, 1e-10, 50)
            integrator.integrate(oscillator(), start(), np.pi)
        assert integrator.step_handlers == (persistent,)
        assert integrator.event_handlers_configurations == ()
        assert temporary.final == pytest.approx(np.pi / 2, abs=1e-8)

    def test_restore_on_error(self, integrator):
        event = RawEvent()
        integrator.add_event_handler(event, 0.2, 1e-10, 50, solver='bisect')
        before = integrator.event_handlers_configurations
        with pytest.raises(IntegrationError):
            with IntegratorSession(integrator):
                integrator.clear_event_handlers()
                integrator.add_step_handler(StepRecorder())
                integrator.integrate(oscillator(), start(), 0.0)
        assert integrator.event_handlers_configurations == before
        assert integrator.step_handlers == ()

    def test_enter_returns_integrator(self, integrator):
        with IntegratorSession(integrator) as guarded:
            assert guarded is integrator
