'''Step-by-step numerical integration with event location and step handlers
ODEIntegrator, DenseOutputModel and IntegratorSession definitions'''

import logging
import math
from dataclasses import dataclass
from enum import Enum
import numpy as np
from scipy.integrate import RK23, RK45, DOP853, Radau, BDF, LSODA, OdeSolution
from scipy.optimize import brentq, brenth, ridder, bisect
from .config import config
from .errors import DimensionMismatchError, IntegrationError
from .ode import ODEState, ODEStateAndDerivative

logger = logging.getLogger(__name__)


class Action(Enum):
    """Decision returned by an event handler when its event occurs."""
    CONTINUE = 'continue'
    STOP = 'stop'
    RESET_STATE = 'reset_state'
    RESET_DERIVATIVES = 'reset_derivatives'


@dataclass(frozen=True)
class EventHandlerConfiguration:
    """Event handler registered on an integrator, with its location settings."""
    handler: object
    max_check_interval: float
    convergence: float
    max_iteration_count: int
    solver: str


# ========== INTERPOLATION ==========
class ODEStateInterpolator:
    """
    Interpolator over one integration step.

    The global bounds are those of the solver step. The soft bounds are the
    part of the step handed to step handlers, narrowed by ``restrict_step``
    when an event splits the step. Interpolation is valid over the whole
    global step.
    """

    def __init__(self, forward, global_previous, global_current,
                 soft_previous, soft_current, mapper, dense):
        self._forward = forward
        self._global_previous = global_previous
        self._global_current = global_current
        self._soft_previous = soft_previous
        self._soft_current = soft_current
        self._mapper = mapper
        self._dense = dense

    @property
    def is_forward(self):
        return self._forward

    @property
    def previous_state(self):
        return self._soft_previous

    @property
    def current_state(self):
        return self._soft_current

    @property
    def global_previous_state(self):
        return self._global_previous

    @property
    def global_current_state(self):
        return self._global_current

    @property
    def mapper(self):
        return self._mapper

    @property
    def dense(self):
        return self._dense

    def get_interpolated_state(self, time):
        """Interpolated state and derivative at ``time``."""
        if time == self._soft_previous.time:
            return self._soft_previous
        if time == self._soft_current.time:
            return self._soft_current
        y = np.asarray(self._dense(time), dtype=float)
        return self._mapper.map_state_and_derivative(time, y, self._derivative(time))

    def restrict_step(self, previous_state, current_state):
        """Same step, with soft bounds narrowed to the given states."""
        return ODEStateInterpolator(self._forward, self._global_previous,
                                    self._global_current, previous_state,
                                    current_state, self._mapper, self._dense)

    def _derivative(self, time):
        # central difference on the dense output polynomial
        span = abs(self._global_current.time - self._global_previous.time)
        h = 1e-6 * span if span > 0 else 1e-6
        return (np.asarray(self._dense(time + h)) - np.asarray(self._dense(time - h))) / (2 * h)


# ========== EVENTS ==========
class _EventState:
    """
    Sign tracking and root location for one registered event handler.

    A switching function value of exactly zero counts as positive, so a root
    reached by an increasing g on the last step of a leg is still reported.
    """

    def __init__(self, configuration, forward):
        self.configuration = configuration
        self.handler = configuration.handler
        self._direction = 1.0 if forward else -1.0
        self._root_finder = ODEIntegrator._ROOT_SOLVERS[configuration.solver]
        self._t_last = math.nan
        self._g_positive = None

    def init(self, s0, final_time):
        self.handler.init(s0, final_time)
        self.reinitialize(s0)

    def reinitialize(self, state, fallback=None):
        """Restart sign tracking at ``state``; a zero g defers to ``fallback``."""
        self._t_last = state.time
        g = self.handler.g(state)
        self._g_positive = fallback if g == 0 else g >= 0

    def _g(self, interpolator, t):
        return self.handler.g(interpolator.get_interpolated_state(t))

    def find_event(self, interpolator):
        """
        Earliest sign change in (t_last, current time].

        Returns
        -------
        tuple or None
            (event time, increasing) of the first event, or None
        """
        ta = self._t_last
        t_end = interpolator.current_state.time
        if ta == t_end:
            return None
        cfg = self.configuration

        if self._g_positive is None:
            # g was exactly zero at the last reset: take the sign just after it
            probe = ta + self._direction * cfg.convergence
            if self._direction * (probe - t_end) > 0:
                probe = t_end
            self._g_positive = self._g(interpolator, probe) >= 0

        n = max(1, math.ceil(abs(t_end - ta) / cfg.max_check_interval))
        h = (t_end - ta) / n
        for i in range(n):
            tb = t_end if i == n - 1 else ta + h
            gb = self._g(interpolator, tb)
            if (gb >= 0) != self._g_positive:
                return self._locate(interpolator, ta, tb, gb), gb >= 0
            ta = tb
        return None

    def _locate(self, interpolator, ta, tb, gb):
        cfg = self.configuration
        new_positive = gb >= 0

        def f(t):
            return self._g(interpolator, t)

        if gb == 0:
            root = tb
        else:
            ga = f(ta)
            if ga == 0 or (ga >= 0) == new_positive:
                # ta lies on a root already handled, move just past it
                shifted = ta + self._direction * cfg.convergence
                if self._direction * (shifted - tb) >= 0:
                    return tb
                if (f(shifted) >= 0) == new_positive:
                    return shifted
                ta = shifted
            try:
                root = self._root_finder(f, min(ta, tb), max(ta, tb),
                                         xtol=cfg.convergence,
                                         maxiter=cfg.max_iteration_count)
            except (RuntimeError, ValueError) as exc:
                raise IntegrationError(
                    f"Event location failed between t={ta} and t={tb} "
                    f"for {self.handler!r}: {exc}") from exc

        # the event time must sit on the new side of the root
        if (f(root) >= 0) != new_positive:
            root = root + self._direction * cfg.convergence
            if self._direction * (root - tb) > 0:
                root = tb
        return root

    def do_event(self, state, increasing):
        action = self.handler.event_occurred(state, increasing)
        self._t_last = state.time
        self._g_positive = increasing
        return action

    def step_accepted(self, time):
        self._t_last = time


# ========== INTEGRATOR ==========
class ODEIntegrator:
    """
    Adaptive step integrator driving a scipy ``OdeSolver`` one step at a time.

    Between steps, registered event handlers are checked for sign changes
    of their switching functions and registered step handlers receive an
    interpolator over the accepted step.

    Parameters
    ----------
    method : str, optional
        scipy solver name (default config.INTEGRATION_METHOD)
    rtol, atol : float or array-like, optional
        Tolerances (default config.INTEGRATION_RTOL / INTEGRATION_ATOL)
    min_step : float, optional
        Steps smaller than this abort the integration (default config.MIN_STEP)
    max_step : float, optional
        Largest allowed step (default config.MAX_STEP)
    first_step : float, optional
        Initial step size (default: chosen by the solver)

    Notes
    -----
    Handler registrations persist across ``integrate`` calls. Counters
    ``evaluations`` and ``steps`` describe the last call only.
    """

    _SOLVERS = {
        'RK23': RK23,
        'RK45': RK45,
        'DOP853': DOP853,
        'Radau': Radau,
        'BDF': BDF,
        'LSODA': LSODA,
    }
    # solvers whose ``f`` attribute holds the derivative at the step end
    _FSAL_SOLVERS = frozenset(('RK23', 'RK45', 'DOP853'))
    _ROOT_SOLVERS = {
        'brentq': brentq,
        'brenth': brenth,
        'ridder': ridder,
        'bisect': bisect,
    }

    # ========== CONSTRUCTION ==========
    def __init__(self, method=None, rtol=None, atol=None, min_step=None,
                 max_step=None, first_step=None):
        method = config.INTEGRATION_METHOD if method is None else method
        if method not in self._SOLVERS:
            raise ValueError(f"Unknown integration method '{method}'. "
                             f"Valid options: {list(self._SOLVERS)}")
        self._method = method
        self._rtol = config.INTEGRATION_RTOL if rtol is None else rtol
        self._atol = config.INTEGRATION_ATOL if atol is None else atol
        self._min_step = config.MIN_STEP if min_step is None else float(min_step)
        self._max_step = config.MAX_STEP if max_step is None else float(max_step)
        self._first_step = first_step
        if self._max_step <= 0:
            raise ValueError(f"max_step must be positive, got {self._max_step}")

        self._event_handlers = []
        self._step_handlers = []
        self._evaluations = 0
        self._steps = 0

    # ========== HANDLER REGISTRATION ==========
    def add_event_handler(self, handler, max_check_interval, convergence,
                          max_iteration_count, solver=None):
        """Register an event handler with its location settings."""
        solver = config.DEFAULT_ROOT_SOLVER if solver is None else solver
        if solver not in self._ROOT_SOLVERS:
            raise ValueError(f"Unknown root solver '{solver}'. "
                             f"Valid options: {list(self._ROOT_SOLVERS)}")
        if max_check_interval <= 0:
            raise ValueError(f"max_check_interval must be positive, got {max_check_interval}")
        if convergence <= 0:
            raise ValueError(f"convergence must be positive, got {convergence}")
        self._event_handlers.append(EventHandlerConfiguration(
            handler, float(max_check_interval), float(convergence),
            int(max_iteration_count), solver))

    @property
    def event_handlers_configurations(self):
        return tuple(self._event_handlers)

    def clear_event_handlers(self):
        self._event_handlers.clear()

    def add_step_handler(self, handler):
        self._step_handlers.append(handler)

    @property
    def step_handlers(self):
        return tuple(self._step_handlers)

    def clear_step_handlers(self):
        self._step_handlers.clear()

    # ========== PROPERTY ACCESS ==========
    @property
    def name(self):
        return self._method

    @property
    def rtol(self):
        return self._rtol

    @property
    def atol(self):
        return self._atol

    @property
    def evaluations(self):
        """Derivative evaluations of the last integration"""
        return self._evaluations

    @property
    def steps(self):
        """Accepted steps of the last integration"""
        return self._steps

    # ========== INTEGRATION ==========
    def integrate(self, ode, initial_state, final_time):
        """
        Integrate ``ode`` from ``initial_state`` to ``final_time``.

        Parameters
        ----------
        ode : ExpandableODE
        initial_state : ODEState
        final_time : float

        Returns
        -------
        ODEStateAndDerivative
            State at ``final_time``, or at the event that stopped integration

        Raises
        ------
        DimensionMismatchError
            If the initial state does not match the equations layout
        IntegrationError
            If the solver fails, the step size underflows or an event
            cannot be located
        """
        mapper = ode.mapper
        t0 = initial_state.time
        final_time = float(final_time)
        y0 = initial_state.complete_state
        if y0.size != mapper.total_dimension:
            raise DimensionMismatchError(mapper.total_dimension, y0.size,
                                         what="initial state")
        if abs(final_time - t0) <= 1e-12 * max(abs(t0), abs(final_time)):
            raise IntegrationError(
                f"Integration interval too small: [{t0}, {final_time}]")

        self._evaluations = 0
        self._steps = 0
        forward = final_time > t0

        def fun(t, y):
            self._evaluations += 1
            return ode.compute_derivatives(t, y)

        ode.init(initial_state, final_time)
        solver = self._create_solver(fun, t0, y0, final_time)
        state = mapper.map_state_and_derivative(t0, y0, self._initial_derivative(solver, fun))

        events = [_EventState(cfg, forward) for cfg in self._event_handlers]
        for event in events:
            event.init(state, final_time)
        for handler in self._step_handlers:
            handler.init(state, final_time)

        logger.debug(f"{self._method} integration from t={t0} to t={final_time} "
                     f"({len(events)} events, {len(self._step_handlers)} step handlers)")

        while True:
            message = solver.step()
            if solver.status == 'failed':
                raise IntegrationError(
                    f"{self._method} integration failed at t={solver.t}: {message}")
            self._steps += 1
            finished = solver.status == 'finished'
            if solver.step_size < self._min_step and not finished:
                raise IntegrationError(
                    f"Step size {solver.step_size} at t={solver.t} is below "
                    f"the minimal step {self._min_step}")

            dense = solver.dense_output()
            t, y = solver.t, solver.y
            if finished and t != final_time:
                # LSODA may stop a rounding error away from its bound
                t, y = final_time, np.asarray(dense(final_time), dtype=float)
            current = mapper.map_state_and_derivative(
                t, y, self._step_end_derivative(solver, dense))
            interpolator = ODEStateInterpolator(forward, state, current, state,
                                                current, mapper, dense)
            outcome, state, triggered = self._accept_step(interpolator, events, final_time)

            if outcome is Action.STOP:
                logger.debug(f"Integration stopped at t={state.time} after "
                             f"{self._steps} steps, {self._evaluations} evaluations")
                return state

            if outcome is None:
                continue

            # state reset: restart the solver from the new state
            y = state.complete_state
            if y.size != mapper.total_dimension:
                raise DimensionMismatchError(mapper.total_dimension, y.size,
                                             what="reset state")
            if state.time == final_time:
                state = mapper.map_state_and_derivative(state.time, y, fun(state.time, y))
                for handler in self._step_handlers:
                    handler.finish(state)
                return state
            solver = self._create_solver(fun, state.time, y, final_time)
            state = mapper.map_state_and_derivative(
                state.time, y, self._initial_derivative(solver, fun))
            for event in events:
                event.reinitialize(state, triggered[1] if event is triggered[0] else None)

    def _accept_step(self, interpolator, events, final_time):
        """
        Process events inside one step and forward the step to handlers.

        Returns
        -------
        outcome : Action or None
            STOP when integration ends, RESET_STATE when the solver must be
            restarted, None to keep stepping
        state : ODEStateAndDerivative
            State the integration continues from
        triggered : tuple or None
            (event state, increasing) of the event requesting a restart
        """
        previous = interpolator.previous_state
        current = interpolator.current_state
        forward = interpolator.is_forward

        while True:
            occurrences = []
            for event in events:
                found = event.find_event(interpolator)
                if found is not None:
                    occurrences.append((found[0], found[1], event))
            if not occurrences:
                break

            sign = 1.0 if forward else -1.0
            t_event, increasing, event = min(occurrences, key=lambda o: sign * o[0])
            event_state = interpolator.get_interpolated_state(t_event)

            restricted = interpolator.restrict_step(previous, event_state)
            for handler in self._step_handlers:
                handler.handle_step(restricted)

            action = event.do_event(event_state, increasing)
            logger.debug(f"Event {event.handler!r} at t={t_event} "
                         f"({'increasing' if increasing else 'decreasing'}): {action.name}")

            if action is Action.STOP:
                for handler in self._step_handlers:
                    handler.finish(event_state)
                return Action.STOP, event_state, None

            if action is Action.RESET_STATE:
                new_state = event.handler.reset_state(event_state)
                return Action.RESET_STATE, new_state, (event, increasing)

            if action is Action.RESET_DERIVATIVES:
                return Action.RESET_STATE, event_state, (event, increasing)

            previous = event_state
            interpolator = interpolator.restrict_step(event_state, current)

        for handler in self._step_handlers:
            handler.handle_step(interpolator.restrict_step(previous, current))
        for event in events:
            event.step_accepted(current.time)

        if current.time == final_time:
            for handler in self._step_handlers:
                handler.finish(current)
            logger.debug(f"Integration reached t={final_time} after "
                         f"{self._steps} steps, {self._evaluations} evaluations")
            return Action.STOP, current, None
        return None, current, None

    def _create_solver(self, fun, t0, y0, final_time):
        kwargs = dict(rtol=self._rtol, atol=self._atol, max_step=self._max_step)
        if self._first_step is not None:
            kwargs['first_step'] = self._first_step
        return self._SOLVERS[self._method](fun, t0, np.array(y0, dtype=float),
                                           final_time, **kwargs)

    def _initial_derivative(self, solver, fun):
        if self._method in self._FSAL_SOLVERS:
            return np.array(solver.f)
        return np.asarray(fun(solver.t, solver.y), dtype=float)

    def _step_end_derivative(self, solver, dense):
        if self._method in self._FSAL_SOLVERS:
            return np.array(solver.f)
        h = 1e-6 * solver.step_size if solver.step_size > 0 else 1e-6
        return (np.asarray(dense(solver.t + h)) - np.asarray(dense(solver.t - h))) / (2 * h)

    def __repr__(self):
        return (f"ODEIntegrator(method='{self._method}', rtol={self._rtol}, "
                f"atol={self._atol}, max_step={self._max_step})")


# ========== DENSE OUTPUT ==========
class DenseOutputModel:
    """
    Step handler accumulating the dense output of a whole integration.

    Segments are appended as steps are handled; ``seal`` freezes them into
    a ``scipy.integrate.OdeSolution``. A sealed model is read-only.
    """

    def __init__(self):
        self._times = []
        self._interpolants = []
        self._mapper = None
        self._forward = True
        self._initial_state = None
        self._final_state = None
        self._solution = None
        self._sealed = False

    def init(self, s0, final_time):
        self._check_not_sealed()
        self._initial_state = s0
        self._final_state = s0
        self._forward = final_time >= s0.time

    def handle_step(self, interpolator):
        self._check_not_sealed()
        self._mapper = interpolator.mapper
        self._forward = interpolator.is_forward
        t_prev = interpolator.previous_state.time
        t_curr = interpolator.current_state.time
        if t_curr == t_prev:
            return
        if not self._times:
            self._times.append(t_prev)
        self._times.append(t_curr)
        self._interpolants.append(interpolator.dense)
        self._final_state = interpolator.current_state

    def finish(self, final_state):
        self._check_not_sealed()
        self._final_state = final_state

    def seal(self):
        """Freeze the accumulated steps; further handling raises."""
        if self._sealed:
            return
        if self._interpolants:
            self._solution = OdeSolution(np.array(self._times), list(self._interpolants))
        self._sealed = True

    @property
    def is_sealed(self):
        return self._sealed

    @property
    def is_forward(self):
        return self._forward

    @property
    def initial_time(self):
        return self._initial_state.time

    @property
    def final_time(self):
        return self._final_state.time

    @property
    def solution(self):
        """Sealed ``OdeSolution`` (None before sealing or if no step was taken)"""
        return self._solution

    def get_interpolated_state(self, time):
        """
        Complete state at ``time`` as an ODEState.

        Raises
        ------
        RuntimeError
            If the model has not been sealed
        """
        if not self._sealed:
            raise RuntimeError("Dense output model must be sealed before interpolation")
        if time == self._final_state.time:
            return ODEState(time, self._final_state.primary_state,
                            self._final_state.secondary_states)
        if self._solution is None:
            return ODEState(time, self._initial_state.primary_state,
                            self._initial_state.secondary_states)
        return self._mapper.map_state(time, self._solution(time))

    def _check_not_sealed(self):
        if self._sealed:
            raise RuntimeError("Dense output model is sealed and cannot be modified")


# ========== SESSION GUARD ==========
class IntegratorSession:
    """
    Scoped guard over an integrator's handler configuration.

    The configuration is captured when the guard is created and restored
    when the ``with`` block exits, whatever the exit path, so handlers
    added inside the block never outlive it.

    Examples
    --------
    >>> with IntegratorSession(integrator):
    ...     integrator.add_step_handler(handler)
    ...     integrator.integrate(ode, s0, t)
    >>> handler in integrator.step_handlers
    False
    """

    def __init__(self, integrator):
        self._integrator = integrator
        self._event_configurations = integrator.event_handlers_configurations
        self._step_handlers = integrator.step_handlers

    def __enter__(self):
        return self._integrator

    def __exit__(self, exc_type, exc, tb):
        integrator = self._integrator
        integrator.clear_event_handlers()
        integrator.clear_step_handlers()
        for cfg in self._event_configurations:
            integrator.add_event_handler(cfg.handler, cfg.max_check_interval,
                                         cfg.convergence, cfg.max_iteration_count,
                                         cfg.solver)
        for handler in self._step_handlers:
            integrator.add_step_handler(handler)
        logger.debug(f"Integrator handlers restored "
                     f"({len(self._event_configurations)} events, "
                     f"{len(self._step_handlers)} step handlers)")
        return False
