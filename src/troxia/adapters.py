'''Per-leg adapters between spacecraft states and the numerical integrator
Every object here is created for one integration leg and discarded after it'''

import math
import logging
import numpy as np
from .config import config
from .errors import DimensionMismatchError, MissingAdditionalStateError
from .ephemeris import IntegratedEphemeris
from .handlers import StepInterpolator
from .integrator import DenseOutputModel
from .ode import ODEState, ODEStateAndDerivative, OrdinaryDifferentialEquation, SecondaryODE
from .state import PropagationType

logger = logging.getLogger(__name__)


# ========== CONVERSION CONTEXT ==========
class LegContext:
    """
    Conversion context shared by all adapters of one integration leg.

    The mapper's reference date is the leg start date, so integration
    time 0 is the leg start and every numeric time is an offset from it.

    Parameters
    ----------
    propagator : IntegratedPropagator
        Owner of the leg, receiving the call counter and hook notifications
    mapper : StateMapper
        Mapper rebuilt at the leg initial date
    initial_state : SpacecraftState
        State the leg starts from
    target : float
        Requested end date of the leg
    """

    def __init__(self, propagator, mapper, initial_state, target):
        self.propagator = propagator
        self.mapper = mapper
        self.initial_state = initial_state
        self.start_date = initial_state.date
        self.target = float(target)
        self.propagation_type = propagator.propagation_type
        self.generators = propagator.integrable_generators
        self.unmanaged = {name: value
                          for name, value in initial_state.additional_states.items()
                          if not propagator.is_additional_state_managed(name)}
        # bumped by every state reset, keys the event g-value caches
        self.reset_generation = 0
        self.calls = 0

    @property
    def generator_names(self):
        return tuple(g.name for g in self.generators)

    def date(self, t, snap=None):
        return self.mapper.map_double_to_date(t, snap)

    def update_additional_states(self, state):
        """Copy the unmanaged states, then apply the propagator's providers."""
        if self.unmanaged:
            state = state.with_additional_states(self.unmanaged)
        return self.propagator.update_additional_states(state)

    def convert(self, ode_state, snap=None):
        """Spacecraft state (with every additional state) from a numeric state."""
        primary_dot = getattr(ode_state, 'primary_derivative', None)
        state = self.mapper.array_to_state(self.date(ode_state.time, snap),
                                           ode_state.primary_state, primary_dot,
                                           self.propagation_type)
        if self.generators:
            state = state.with_additional_states({
                g.name: ode_state.get_secondary_state(index)
                for index, g in enumerate(self.generators, start=1)
            })
        return self.update_additional_states(state)

    def to_ode_state(self, state):
        """Numeric state (primary and generator blocks) from a spacecraft state."""
        primary, primary_dot = self.mapper.state_to_array(state)
        secondary = [state.get_additional_state(g.name) for g in self.generators]
        return ODEStateAndDerivative(state.date - self.start_date, primary,
                                     primary_dot, secondary)

    def initial_ode_state(self, state):
        """
        Numeric initial state of the leg.

        Raises
        ------
        MissingAdditionalStateError
            If a generator has no initial value in ``state``
        """
        primary, _ = self.mapper.state_to_array(state)
        secondary = []
        for generator in self.generators:
            if not state.has_additional_state(generator.name):
                raise MissingAdditionalStateError(
                    generator.name,
                    f"Cannot compute additional state '{generator.name}': "
                    f"no initial value in the initial state")
            secondary.append(state.get_additional_state(generator.name))
        return ODEState(self.mapper.map_date_to_double(state.date), primary, secondary)

    def state_changed(self, new_state):
        self.reset_generation += 1
        self.propagator.state_changed(new_state)


# ========== EQUATIONS ==========
class MainEquationsAdapter(OrdinaryDifferentialEquation):
    """
    Main state equations seen by the integrator.

    Creating the adapter resets the leg call counter; every derivative
    evaluation increments it.
    """

    def __init__(self, context, main_equations):
        self._context = context
        self._main = main_equations
        context.calls = 0

    def get_dimension(self):
        return self._context.mapper.BASIC_DIMENSION

    def init(self, t0, y0, final_time):
        context = self._context
        state = context.mapper.array_to_state(context.date(t0), y0, None,
                                              PropagationType.MEAN)
        state = context.update_additional_states(state)
        self._main.init(state, context.date(final_time, context.target))

    def compute_derivatives(self, t, y):
        context = self._context
        context.calls += 1
        state = context.mapper.array_to_state(context.date(t), y, None,
                                              PropagationType.MEAN)
        state = context.update_additional_states(state)
        return np.asarray(self._main.compute_derivatives(state), dtype=float)


class SecondaryEquationsAdapter(SecondaryODE):
    """
    Equations of one integrable generator seen by the integrator.

    The generator sees the current primary state and derivative, and its
    own block under its name. Blocks of other generators are not visible.
    """

    def __init__(self, context, generator, dimension):
        declared = generator.dimension
        if declared is not None and declared != dimension:
            raise DimensionMismatchError(declared, dimension,
                                         what=f"additional state '{generator.name}'")
        self._context = context
        self._generator = generator
        self._dimension = int(dimension)

    def get_dimension(self):
        return self._dimension

    def _state(self, t, primary, primary_dot, secondary):
        context = self._context
        state = context.mapper.array_to_state(context.date(t), primary, primary_dot,
                                              PropagationType.MEAN)
        state = state.add_additional_state(self._generator.name, secondary)
        return context.update_additional_states(state)

    def init(self, t0, primary0, secondary0, final_time):
        state = self._state(t0, primary0, None, secondary0)
        self._generator.init(state, self._context.date(final_time, self._context.target))

    def compute_derivatives(self, t, primary, primary_dot, secondary):
        state = self._state(t, primary, primary_dot, secondary)
        derivative = np.asarray(self._generator.compute_derivatives(state),
                                dtype=float).reshape(-1)
        if derivative.size != self._dimension:
            raise DimensionMismatchError(self._dimension, derivative.size,
                                         what=f"'{self._generator.name}' derivative")
        return derivative


# ========== EVENTS ==========
class AdaptedEventDetector:
    """
    Event detector seen by the integrator.

    Switching function values are cached by (time, reset generation): the
    root finder probes the same time several times, and a cached value is
    never reused across a state reset.
    """

    def __init__(self, context, detector):
        self._context = context
        self._detector = detector
        self._last_t = math.nan
        self._last_g = math.nan
        self._last_generation = -1

    @property
    def detector(self):
        return self._detector

    def init(self, s0, t):
        context = self._context
        self._detector.init(context.convert(s0), context.date(t, context.target))
        self._last_t = math.nan
        self._last_g = math.nan
        self._last_generation = -1

    def g(self, s):
        generation = self._context.reset_generation
        if (config.EVENT_G_CACHE and s.time == self._last_t and
                generation == self._last_generation):
            return self._last_g
        value = float(self._detector.g(self._context.convert(s)))
        self._last_t = s.time
        self._last_g = value
        self._last_generation = generation
        return value

    def event_occurred(self, s, increasing):
        return self._detector.event_occurred(self._context.convert(s), increasing)

    def reset_state(self, s):
        context = self._context
        old_state = context.convert(s)
        new_state = self._detector.reset_state(old_state)
        context.state_changed(new_state)
        logger.debug(f"State reset by {self._detector!r} at date {new_state.date}")
        primary, _ = context.mapper.state_to_array(new_state)
        secondary = [new_state.get_additional_state(name) for name in context.generator_names]
        return ODEState(new_state.date - context.start_date, primary, secondary)

    def __repr__(self):
        return f"Adapted({self._detector!r})"


# ========== STEP HANDLERS ==========
class AdaptedStepInterpolator(StepInterpolator):
    """Spacecraft state view of an integrator step interpolator."""

    def __init__(self, context, interpolator):
        self._context = context
        self._interpolator = interpolator

    @property
    def previous_state(self):
        return self._context.convert(self._interpolator.previous_state)

    @property
    def current_state(self):
        return self._context.convert(self._interpolator.current_state, self._context.target)

    @property
    def is_forward(self):
        return self._interpolator.is_forward

    def get_interpolated_state(self, date):
        context = self._context
        raw = self._interpolator.get_interpolated_state(date - context.start_date)
        return context.convert(raw, date)

    def restrict_step(self, previous_state, current_state):
        context = self._context
        restricted = self._interpolator.restrict_step(context.to_ode_state(previous_state),
                                                      context.to_ode_state(current_state))
        return AdaptedStepInterpolator(context, restricted)


class AdaptedStepHandler:
    """User step handler seen by the integrator."""

    def __init__(self, context, handler):
        self._context = context
        self._handler = handler

    @property
    def handler(self):
        return self._handler

    def init(self, s0, t):
        context = self._context
        self._handler.init(context.convert(s0), context.date(t, context.target))

    def handle_step(self, interpolator):
        self._handler.handle_step(AdaptedStepInterpolator(self._context, interpolator))

    def finish(self, final_state):
        self._handler.finish(self._context.convert(final_state, self._context.target))


# ========== EPHEMERIS GENERATION ==========
class EphemerisGenerator:
    """
    Step handler building an ephemeris from the dense output of one leg.

    Obtained from ``IntegratedPropagator.get_ephemeris_generator``, it is
    attached to the next propagation only. The ephemeris is available from
    ``get_generated_ephemeris`` once that propagation has finished; it is
    None before, or if the propagation did not integrate anything.
    """

    def __init__(self):
        self._context = None
        self._end_date = None
        self._model = None
        self._ephemeris = None

    def bind(self, context, end_date):
        """Attach the generator to the main leg of a propagation."""
        if self._ephemeris is not None or self._context is not None:
            raise RuntimeError("Ephemeris generator can only be used for one propagation")
        self._context = context
        self._end_date = float(end_date)

    def init(self, s0, t):
        self._model = DenseOutputModel()
        self._model.init(s0, t)

    def handle_step(self, interpolator):
        self._model.handle_step(interpolator)

    def finish(self, final_state):
        model = self._model
        model.finish(final_state)
        model.seal()

        context = self._context
        start_date = context.date(model.initial_time)
        final_date = context.date(model.final_time, self._end_date)
        if model.is_forward:
            min_date, max_date = start_date, final_date
        else:
            min_date, max_date = final_date, start_date

        self._ephemeris = IntegratedEphemeris(
            start_date, min_date, max_date, context.mapper, context.propagation_type,
            model, dict(context.unmanaged),
            context.propagator.additional_state_providers, context.generator_names)
        logger.debug(f"Ephemeris generated over [{min_date}, {max_date}]")

    def get_generated_ephemeris(self):
        return self._ephemeris

    def __repr__(self):
        ready = "ready" if self._ephemeris is not None else "pending"
        return f"EphemerisGenerator({ready})"
