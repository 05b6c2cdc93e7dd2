"""
Test suite for IntegratedPropagator.

Tests cover:
- Preconditions (missing initial state, non-positive mass, re-entrancy)
- Degenerate propagation and accuracy over one orbital period
- Call counter, pre-roll leg and reset-at-end semantics
- Integrator handler restore when propagation fails
- Integrable generators, providers and unmanaged additional states
- Orbit representations and propagation hooks
"""

import pytest
import numpy as np
from troxia import (
    IntegratedPropagator, ODEIntegrator, SpacecraftState, DateDetector, FunctionalDetector,
    EventRecorder, ImpulseManeuver, IntegrableGenerator, AdditionalStateProvider,
    MainStateEquations, StepHandler, PropagationType, EARTH,
    MissingInitialStateError, NonPositiveMassError, ConfigurationError, IntegrationError,
    MissingAdditionalStateError, NameConflictError, DimensionMismatchError,
    UnsupportedMapperError,
)


class Clock(IntegrableGenerator):
    """Elapsed time accumulator."""

    def __init__(self, name='clock', dimension=None):
        super().__init__(name, dimension)
        self.init_calls = 0

    def init(self, initial_state, target):
        self.init_calls += 1

    def compute_derivatives(self, state):
        return [1.0]


class SpeedIntegral(IntegrableGenerator):
    """Path length: integral of the speed, read from the primary derivative."""

    def compute_derivatives(self, state):
        return [np.linalg.norm(state.derivatives[:3])]


class Radius(AdditionalStateProvider):
    def __init__(self):
        super().__init__('radius')

    def get_additional_state(self, state):
        return [np.linalg.norm(state.position)]


class RawStepRecorder:
    """Step handler registered directly on the integrator."""

    def __init__(self):
        self.steps = 0

    def init(self, s0, final_time):
        pass

    def handle_step(self, interpolator):
        self.steps += 1

    def finish(self, final_state):
        pass


class KeplerianMotion(MainStateEquations):
    """Two-body rates in Keplerian elements with mean anomaly."""

    def compute_derivatives(self, state):
        a = state.orbit.elements[0]
        n = np.sqrt(EARTH.mu / a**3)
        return [0.0, 0.0, 0.0, 0.0, 0.0, n, 0.0]


class HookedPropagator(IntegratedPropagator):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.legs = []
        self.after = 0
        self.changes = []

    def before_integration(self, initial_state, target):
        self.legs.append((initial_state.date, target))

    def after_integration(self):
        self.after += 1

    def state_changed(self, new_state):
        self.changes.append(new_state.date)


class TestPreconditions:
    """Checks performed before integrating."""

    def test_missing_initial_state(self, integrator, two_body):
        propagator = IntegratedPropagator(integrator, two_body)
        with pytest.raises(MissingInitialStateError):
            propagator.propagate(100.0)

    @pytest.mark.parametrize("mass, shown", [(0.0, "0.0"), (-5.0, "-5.0"), (float("nan"), "nan")])
    def test_non_positive_mass(self, propagator, leo_orbit, mass, shown):
        state = SpacecraftState(leo_orbit, date=0.0, mass=mass)
        propagator.reset_initial_state(state)
        with pytest.raises(NonPositiveMassError, match=shown):
            propagator.propagate(100.0)
        assert propagator.initial_state is state

    def test_reentrant_call(self, propagator):
        """propagate cannot be called from inside a propagation."""
        class Nested(StepHandler):
            def handle_step(self, interpolator):
                propagator.propagate(10.0)

        propagator.add_step_handler(Nested())
        with pytest.raises(ConfigurationError, match="in progress"):
            propagator.propagate(100.0)

        propagator.clear_step_handlers()
        assert propagator.propagate(100.0).date == 100.0

    def test_unsupported_mapper(self, integrator, two_body):
        with pytest.raises(UnsupportedMapperError):
            IntegratedPropagator(integrator, two_body, orbit_type='equi',
                                 position_angle='mean')

    def test_reserved_generator_name(self, propagator):
        with pytest.raises(NameConflictError):
            propagator.add_integrable_generator(Clock('mass'))
        assert propagator.integrable_generators == ()


class TestPropagation:
    """Basic propagation behavior."""

    def test_degenerate(self, propagator, leo_state):
        """Propagating to the initial date returns the initial state."""
        final = propagator.propagate(0.0)
        assert final is leo_state
        assert propagator.calls == 0

    def test_degenerate_keeps_counter(self, propagator):
        propagator.propagate(100.0)
        calls = propagator.calls
        assert calls > 0
        final = propagator.propagate(100.0)
        assert final is propagator.initial_state
        assert propagator.calls == calls

    def test_closed_orbit(self, propagator, leo_state, leo_period):
        """Point mass orbits close after one period."""
        final = propagator.propagate(leo_period)
        assert final.date == leo_period
        np.testing.assert_allclose(final.position, leo_state.position, rtol=0, atol=1e-4)
        np.testing.assert_allclose(final.velocity, leo_state.velocity, rtol=0, atol=1e-6)
        assert final.mass == leo_state.mass

    def test_call_counter(self, propagator, integrator):
        propagator.propagate(3000.0)
        assert propagator.calls > 0
        assert propagator.calls == integrator.evaluations
        assert propagator.calls >= integrator.steps

    def test_backward(self, propagator, leo_state):
        back = propagator.propagate(-1500.0)
        assert back.date == -1500.0
        propagator.reset_initial_state(back)
        forth = propagator.propagate(0.0)
        np.testing.assert_allclose(forth.position, leo_state.position, rtol=0, atol=1e-4)

    def test_mu_taken_from_state(self, propagator):
        assert np.isnan(propagator.mu)
        propagator.propagate(10.0)
        assert propagator.mu == EARTH.mu
        assert propagator.mapper.reference_date == 0.0

    def test_output_type(self, integrator, earth_equations, leo_state):
        propagator = IntegratedPropagator(integrator, earth_equations,
                                          propagation_type=PropagationType.MEAN)
        propagator.reset_initial_state(leo_state)
        propagator.propagate(60.0)
        assert propagator.propagation_type is PropagationType.MEAN

    def test_keplerian_mean_anomaly(self, integrator, earth_equations, leo_state):
        """Integrating Keplerian elements gives the same orbit as Cartesian."""
        cartesian = IntegratedPropagator(integrator, earth_equations)
        cartesian.reset_initial_state(leo_state)
        expected = cartesian.propagate(2000.0)

        keplerian = IntegratedPropagator(ODEIntegrator('DOP853', rtol=1e-12, atol=1e-12),
                                         KeplerianMotion(), orbit_type='kep',
                                         position_angle='mean')
        keplerian.reset_initial_state(leo_state)
        final = keplerian.propagate(2000.0)
        np.testing.assert_allclose(final.position, expected.position, rtol=0, atol=1e-4)
        np.testing.assert_allclose(final.velocity, expected.velocity, rtol=0, atol=1e-6)


class TestResetAtEnd:
    """Initial state update after successful propagations."""

    def test_reset_true_chains(self, propagator):
        first = propagator.propagate(1000.0)
        assert propagator.initial_state is first
        assert propagator.start_date == 1000.0
        second = propagator.propagate(2000.0)
        assert second.date == 2000.0

    def test_reset_false_keeps_state(self, propagator, leo_state):
        propagator.reset_at_end = False
        propagator.propagate(1000.0)
        assert propagator.initial_state is leo_state
        assert propagator.start_date == 0.0

    @staticmethod
    def _direct(integrator, equations, state, target):
        direct = IntegratedPropagator(integrator, equations)
        direct.reset_initial_state(state)
        return direct.propagate(target)

    def test_chained_legs_match_single_leg(self, integrator, earth_equations, leo_state):
        """propagate(t0, t1) then propagate(t1, t2) equals propagate(t0, t2)."""
        chained = IntegratedPropagator(integrator, earth_equations)
        chained.reset_initial_state(leo_state)
        chained.propagate(0.0, 1000.0)
        final = chained.propagate(1000.0, 2000.0)

        expected = self._direct(integrator, earth_equations, leo_state, 2000.0)
        assert final.date == 2000.0
        np.testing.assert_allclose(final.position, expected.position, rtol=0, atol=1e-6)
        np.testing.assert_allclose(final.velocity, expected.velocity, rtol=0, atol=1e-9)

    def test_no_reset_second_leg_pre_rolls(self, integrator, earth_equations, leo_state):
        """Without reset, propagate(t1, t2) restarts from the original state."""
        propagator = IntegratedPropagator(integrator, earth_equations, reset_at_end=False)
        propagator.reset_initial_state(leo_state)
        propagator.propagate(1000.0)
        final = propagator.propagate(1000.0, 2000.0)

        expected = self._direct(integrator, earth_equations, leo_state, 2000.0)
        assert propagator.initial_state is leo_state
        np.testing.assert_allclose(final.position, expected.position, rtol=0, atol=1e-5)
        np.testing.assert_allclose(final.velocity, expected.velocity, rtol=0, atol=1e-8)

    def test_pre_roll(self, integrator, earth_equations, leo_state):
        """A start date away from the initial date triggers a silent pre-roll."""
        direct = IntegratedPropagator(integrator, earth_equations)
        direct.reset_initial_state(leo_state)
        expected = direct.propagate(1000.0)

        propagator = HookedPropagator(integrator, earth_equations, reset_at_end=False)
        propagator.reset_initial_state(leo_state)
        recorder = EventRecorder()
        propagator.add_event_detector(DateDetector(250.0, handler=recorder))
        propagator.add_event_detector(DateDetector(750.0, handler=recorder))
        final = propagator.propagate(500.0, 1000.0)

        np.testing.assert_allclose(final.position, expected.position, rtol=0, atol=1e-4)
        np.testing.assert_allclose(recorder.dates, [750.0], atol=1e-5)
        assert propagator.legs == [(0.0, 500.0), (500.0, 1000.0)]
        assert propagator.after == 2
        assert propagator.initial_state is leo_state

    def test_reset_initial_state_clears_start(self, propagator, leo_state):
        propagator.propagate(100.0)
        propagator.reset_initial_state(leo_state)
        assert propagator.start_date == 0.0


class TestFailure:
    """Failed propagations leave the integrator and propagator untouched."""

    def test_integrator_handlers_restored(self, integrator, two_body, leo_state):
        raw = RawStepRecorder()
        integrator.add_step_handler(raw)
        two_body.fail_after = 200
        propagator = IntegratedPropagator(integrator, two_body)
        propagator.reset_initial_state(leo_state)
        propagator.add_step_handler(RawStepRecorder())
        propagator.add_event_detector(DateDetector(1e5))

        with pytest.raises(IntegrationError) as info:
            propagator.propagate(20000.0)
        assert isinstance(info.value.__cause__, ValueError)
        assert integrator.step_handlers == (raw,)
        assert integrator.event_handlers_configurations == ()
        assert propagator.initial_state is leo_state
        assert raw.steps > 0

    def test_can_propagate_after_failure(self, integrator, two_body, leo_state):
        two_body.fail_after = 50
        propagator = IntegratedPropagator(integrator, two_body)
        propagator.reset_initial_state(leo_state)
        with pytest.raises(IntegrationError):
            propagator.propagate(5000.0)
        two_body.fail_after = None
        assert propagator.propagate(100.0).date == 100.0


class TestAdditionalStates:
    """Generators, providers and unmanaged states."""

    def test_clock_generator(self, propagator, leo_state):
        clock = Clock()
        propagator.add_integrable_generator(clock)
        propagator.reset_initial_state(leo_state.add_additional_state('clock', [5.0]))
        final = propagator.propagate(1000.0)
        assert final.get_additional_state('clock')[0] == pytest.approx(1005.0, abs=1e-8)
        assert clock.init_calls == 1

    def test_generator_sees_primary_derivative(self, propagator, leo_state):
        propagator.add_integrable_generator(SpeedIntegral('path'))
        propagator.reset_initial_state(leo_state.add_additional_state('path', [0.0]))
        final = propagator.propagate(600.0)
        speed = np.linalg.norm(leo_state.velocity)
        assert final.get_additional_state('path')[0] == pytest.approx(600.0 * speed, rel=2e-2)

    def test_missing_generator_value(self, propagator):
        propagator.add_integrable_generator(Clock())
        with pytest.raises(MissingAdditionalStateError, match="clock"):
            propagator.propagate(100.0)

    def test_declared_dimension_checked(self, propagator, leo_state):
        propagator.add_integrable_generator(Clock(dimension=2))
        propagator.reset_initial_state(leo_state.add_additional_state('clock', [0.0]))
        with pytest.raises(DimensionMismatchError):
            propagator.propagate(100.0)

    def test_unmanaged_state_carried(self, propagator, leo_state):
        propagator.reset_initial_state(leo_state.add_additional_state('tag', [42.0, 7.0]))
        final = propagator.propagate(300.0)
        np.testing.assert_array_equal(final.get_additional_state('tag'), [42.0, 7.0])
        assert not propagator.is_additional_state_managed('tag')

    def test_provider(self, propagator):
        propagator.add_additional_state_provider(Radius())
        final = propagator.propagate(300.0)
        assert final.get_additional_state('radius')[0] == pytest.approx(
            np.linalg.norm(final.position), rel=1e-14)
        assert propagator.managed_additional_states == ('radius',)

    def test_generator_through_pre_roll(self, propagator, leo_state):
        """Generators integrate during the pre-roll leg too."""
        propagator.add_integrable_generator(Clock())
        propagator.reset_initial_state(leo_state.add_additional_state('clock', [0.0]))
        final = propagator.propagate(200.0, 500.0)
        assert final.get_additional_state('clock')[0] == pytest.approx(500.0, abs=1e-8)


class TestHooks:
    """Propagation hooks."""

    def test_state_changed_on_reset(self, integrator, earth_equations, leo_state):
        propagator = HookedPropagator(integrator, earth_equations)
        propagator.reset_initial_state(leo_state)
        propagator.add_event_detector(
            ImpulseManeuver(DateDetector(400.0), [0.0, 0.01, 0.0], isp=300.0))
        propagator.propagate(800.0)
        assert len(propagator.changes) == 1
        assert propagator.changes[0] == pytest.approx(400.0, abs=1e-5)

    def test_functional_detector_stop(self, propagator):
        """Stopping events end the propagation early."""
        detector = FunctionalDetector(lambda s: s.position[2] - 3000.0,
                                      max_check=60.0, threshold=1e-8)
        propagator.add_event_detector(detector)
        final = propagator.propagate(10000.0)
        assert final.date < 10000.0
        assert final.position[2] == pytest.approx(3000.0, abs=1e-4)
