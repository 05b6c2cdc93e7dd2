'''Numerical propagation of spacecraft states
IntegratedPropagator class definition'''

import logging
import math
import numpy as np
from .adapters import (LegContext, MainEquationsAdapter, SecondaryEquationsAdapter,
                       AdaptedEventDetector, AdaptedStepHandler, EphemerisGenerator)
from .config import config
from .errors import (TroxiaError, ConfigurationError, IntegrationError,
                     MissingInitialStateError, NonPositiveMassError)
from .generators import GeneratorRegistry
from .handlers import StepNormalizer
from .integrator import IntegratorSession
from .mapper import StateMapper
from .ode import ExpandableODE
from .orbital_elements import OrbitalElements, OEType, PositionAngle
from .state import PropagationType
from .utils import Timer

logger = logging.getLogger(__name__)


class IntegratedPropagator:
    """
    Propagator integrating the main state and additional states numerically.

    A call to ``propagate`` runs in up to two legs. If the requested start
    date differs from the initial state date, a silent pre-roll leg first
    brings the initial state to the start date, without events or step
    handlers. The main leg then integrates from the start date to the
    target with the registered event detectors, step handlers and pending
    ephemeris generators. Handlers added to the integrator for a call are
    removed when the call ends, whatever the outcome.

    Parameters
    ----------
    integrator : ODEIntegrator
        Integrator, possibly shared and carrying its own handlers
    main_equations : MainStateEquations
        Rates of the 7 primary components
    propagation_type : PropagationType, optional
        Mean or osculating semantics of output states (default osculating)
    orbit_type : OEType or str, optional
        Representation of the integrated orbital components (default Cartesian)
    position_angle : PositionAngle or str, optional
        Anomaly convention of Keplerian components (default true anomaly)
    attitude_provider : AttitudeProvider, optional
        Attitude law of rebuilt states (default inertial identity)
    reset_at_end : bool, optional
        Replace the initial state by the final state after each successful
        propagation (default config.RESET_AT_END)

    Notes
    -----
    ``propagate`` is not re-entrant: calling it from a step handler or
    event detector of the same propagator raises ConfigurationError.
    Concurrent calls from several threads must be serialized by the caller.

    Examples
    --------
    >>> integrator = ODEIntegrator('DOP853', rtol=1e-10, atol=1e-10)
    >>> propagator = IntegratedPropagator(integrator, GravityEquations(EARTH))
    >>> propagator.reset_initial_state(SpacecraftState(orbit, date=0.0, mass=500.0))
    >>> generator = propagator.get_ephemeris_generator()
    >>> final_state = propagator.propagate(86400.0)
    >>> ephemeris = generator.get_generated_ephemeris()
    """

    # ========== CONSTRUCTION ==========
    def __init__(self, integrator, main_equations,
                 propagation_type=PropagationType.OSCULATING,
                 orbit_type=OEType.CARTESIAN, position_angle=PositionAngle.TRUE,
                 attitude_provider=None, reset_at_end=None):
        self._integrator = integrator
        self._main_equations = main_equations
        self._propagation_type = propagation_type
        self._reset_at_end = config.RESET_AT_END if reset_at_end is None else bool(reset_at_end)

        self._orbit_type = OrbitalElements._parse_element_type(orbit_type)
        self._position_angle = OrbitalElements._parse_position_angle(position_angle)
        self._attitude_provider = attitude_provider
        self._mu = math.nan
        self._mapper = None

        self._initial_state = None
        self._start_date = None
        self._registry = GeneratorRegistry()
        self._detectors = []
        self._step_handlers = []
        self._pending_generators = []
        self._calls = 0
        self._propagating = False

        # fail early on unsupported orbit type / angle combinations
        StateMapper(0.0, 1.0, orbit_type, position_angle, attitude_provider)

    # ========== PROPERTY ACCESS ==========
    @property
    def integrator(self):
        return self._integrator

    @property
    def main_equations(self):
        return self._main_equations

    @property
    def propagation_type(self):
        return self._propagation_type

    @property
    def reset_at_end(self):
        return self._reset_at_end

    @reset_at_end.setter
    def reset_at_end(self, value):
        self._reset_at_end = bool(value)

    @property
    def basic_dimension(self):
        return StateMapper.BASIC_DIMENSION

    @property
    def calls(self):
        """Derivative evaluations of the main equations during the last leg"""
        return self._calls

    @property
    def mapper(self):
        """Mapper of the last integration leg (None before the first one)"""
        return self._mapper

    # ========== INITIAL STATE ==========
    @property
    def initial_state(self):
        return self._initial_state

    def reset_initial_state(self, state):
        """Set the initial state; the start date goes back to its date."""
        self._initial_state = state
        self._start_date = None

    @property
    def start_date(self):
        """Date ``propagate(target)`` starts from (default: initial state date)"""
        if self._start_date is not None:
            return self._start_date
        return None if self._initial_state is None else self._initial_state.date

    # ========== MAPPER PARAMETERS ==========
    @property
    def mu(self):
        """Gravitational parameter of rebuilt orbits (NaN: taken from the initial state)"""
        return self._mu

    def set_mu(self, mu):
        self._mu = float(mu)
        self._rebuild_mapper()

    @property
    def orbit_type(self):
        return self._orbit_type

    def set_orbit_type(self, orbit_type):
        orbit_type = OrbitalElements._parse_element_type(orbit_type)
        StateMapper(0.0, 1.0, orbit_type, self._position_angle, self._attitude_provider)
        self._orbit_type = orbit_type
        self._rebuild_mapper()

    @property
    def position_angle(self):
        return self._position_angle

    def set_position_angle(self, position_angle):
        position_angle = OrbitalElements._parse_position_angle(position_angle)
        StateMapper(0.0, 1.0, self._orbit_type, position_angle, self._attitude_provider)
        self._position_angle = position_angle
        self._rebuild_mapper()

    @property
    def attitude_provider(self):
        return self._attitude_provider

    def set_attitude_provider(self, attitude_provider):
        self._attitude_provider = attitude_provider
        self._rebuild_mapper()

    def _rebuild_mapper(self):
        # mappers are immutable, states built by the previous one stay valid
        if math.isnan(self._mu):
            return
        reference_date, frame = 0.0, None
        if self._mapper is not None:
            reference_date, frame = self._mapper.reference_date, self._mapper.frame
        self._mapper = StateMapper(reference_date, self._mu, self._orbit_type,
                                   self._position_angle, self._attitude_provider, frame)

    # ========== ADDITIONAL STATES ==========
    def add_integrable_generator(self, generator):
        """
        Add a generator of an integrated additional state.

        Its initial value must be present in the initial state under the
        generator name when propagation starts.

        Raises
        ------
        NameConflictError
            If the name is reserved or already managed
        """
        self._registry.add_generator(generator)

    @property
    def integrable_generators(self):
        return self._registry.generators

    def add_additional_state_provider(self, provider):
        """
        Add a provider of a closed-form additional state.

        Raises
        ------
        NameConflictError
            If the name is reserved or already managed
        """
        self._registry.add_provider(provider)

    @property
    def additional_state_providers(self):
        return self._registry.providers

    def is_additional_state_managed(self, name):
        return self._registry.is_managed(name)

    @property
    def managed_additional_states(self):
        return self._registry.managed_names()

    def update_additional_states(self, state):
        """Add the closed-form additional states to ``state``, in registration order."""
        for provider in self._registry.providers:
            state = state.add_additional_state(provider.name,
                                               provider.get_additional_state(state))
        return state

    # ========== EVENTS ==========
    def add_event_detector(self, detector):
        self._detectors.append(detector)

    @property
    def event_detectors(self):
        return tuple(self._detectors)

    def clear_event_detectors(self):
        self._detectors.clear()

    # ========== STEP HANDLERS ==========
    def add_step_handler(self, handler):
        self._step_handlers.append(handler)

    @property
    def step_handlers(self):
        return tuple(self._step_handlers)

    def clear_step_handlers(self):
        self._step_handlers.clear()

    def set_step_handler(self, h, fixed_step_handler):
        """Replace all step handlers by one fixed step handler sampled every ``h`` seconds."""
        self._step_handlers = [StepNormalizer(h, fixed_step_handler)]

    # ========== EPHEMERIS ==========
    def get_ephemeris_generator(self):
        """
        Ephemeris generator attached to the next propagation.

        Returns
        -------
        EphemerisGenerator
            ``get_generated_ephemeris()`` returns the ephemeris once the next
            ``propagate`` call has finished
        """
        generator = EphemerisGenerator()
        self._pending_generators.append(generator)
        return generator

    # ========== HOOKS ==========
    def get_initial_integration_state(self, initial_state):
        """State the leg integration starts from (default: ``initial_state``)."""
        return initial_state

    def before_integration(self, initial_state, target):
        pass

    def after_integration(self):
        pass

    def state_changed(self, new_state):
        """Called when an event detector resets the state."""

    # ========== PROPAGATION ==========
    def propagate(self, start, end=None):
        """
        Propagate the initial state.

        Parameters
        ----------
        start : float
            Target date if ``end`` is None (the propagation then starts at
            ``start_date``), otherwise start date
        end : float, optional
            Target date

        Returns
        -------
        SpacecraftState
            State at the target date, or at the event that stopped propagation

        Raises
        ------
        MissingInitialStateError
            If no initial state was set
        NonPositiveMassError
            If the mass is not strictly positive
        IntegrationError
            If the numerical integration fails
        """
        if self._initial_state is None:
            raise MissingInitialStateError()
        if self._propagating:
            raise ConfigurationError(
                "propagate() cannot be called while a propagation is in progress")
        if end is None:
            start, end = self.start_date, start
        start, end = float(start), float(end)

        # ephemeris generators belong to this call only
        ephemeris_generators, self._pending_generators = self._pending_generators, []
        self._propagating = True
        try:
            with IntegratorSession(self._integrator):
                state = self._initial_state
                if start != state.date:
                    logger.debug(f"Pre-roll from {state.date} to {start}")
                    state = self._integrate_dynamics(state, start)
                final_state = self._integrate_dynamics(state, end, main_leg=True,
                                                       ephemeris_generators=ephemeris_generators)
        finally:
            self._propagating = False

        if self._reset_at_end:
            self._initial_state = final_state
            self._start_date = final_state.date
        return final_state

    def _integrate_dynamics(self, initial_state, target, main_leg=False,
                            ephemeris_generators=()):
        """Integrate one leg from ``initial_state`` to ``target``."""
        if initial_state.date == target:
            return initial_state

        if math.isnan(self._mu):
            self._mu = initial_state.mu
        self._mapper = StateMapper(initial_state.date, self._mu, self._orbit_type,
                                   self._position_angle, self._attitude_provider,
                                   initial_state.frame)
        if not initial_state.mass > 0.0:
            raise NonPositiveMassError(initial_state.mass)

        context = LegContext(self, self._mapper, initial_state, target)
        start_state = self.get_initial_integration_state(initial_state)
        ode_state = context.initial_ode_state(start_state)

        ode = ExpandableODE(MainEquationsAdapter(context, self._main_equations))
        for index, generator in enumerate(context.generators, start=1):
            ode.add_secondary_equations(SecondaryEquationsAdapter(
                context, generator, ode_state.get_secondary_state(index).size))

        if main_leg:
            for detector in self._detectors:
                self._integrator.add_event_handler(
                    AdaptedEventDetector(context, detector), detector.max_check_interval,
                    detector.threshold, detector.max_iteration_count)
            for handler in self._step_handlers:
                self._integrator.add_step_handler(AdaptedStepHandler(context, handler))
            for generator in ephemeris_generators:
                generator.bind(context, target)
                self._integrator.add_step_handler(generator)

        for provider in self._registry.providers:
            provider.init(start_state, target)

        self.before_integration(start_state, target)
        try:
            with Timer(verbose=False) as timer:
                final = self._integrator.integrate(ode, ode_state,
                                                   self._mapper.map_date_to_double(target))
        except TroxiaError:
            raise
        except (ValueError, ArithmeticError, np.linalg.LinAlgError) as exc:
            raise IntegrationError(
                f"Integration from {initial_state.date} to {target} failed: {exc}") from exc
        finally:
            self._calls = context.calls
        self.after_integration()

        logger.debug(f"{'Main leg' if main_leg else 'Pre-roll'} from {initial_state.date} "
                     f"to {target}: {context.calls} calls, "
                     f"{self._integrator.steps} steps in {timer.elapsed:.3f} s")
        return context.convert(final, target)

    def __repr__(self):
        return (f"IntegratedPropagator(integrator={self._integrator!r}, "
                f"orbit_type={self._orbit_type.value}, "
                f"reset_at_end={self._reset_at_end})")
