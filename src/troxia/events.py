'''Event detectors working on spacecraft states
EventDetector base class, common detectors and event handler callables'''

import copy
import numpy as np
from .bodies import G0
from .config import config
from .integrator import Action
from .orbital_elements import OrbitalElements
from .state import SpacecraftState


# ========== EVENT HANDLERS ==========
# An event handler is any callable (state, detector, increasing) -> Action.

def stop_on_event(state, detector, increasing):
    """Stop propagation at the event."""
    return Action.STOP


def continue_on_event(state, detector, increasing):
    """Record nothing and keep propagating."""
    return Action.CONTINUE


def reset_state_on_event(state, detector, increasing):
    """Ask the detector to reset the state at the event."""
    return Action.RESET_STATE


class EventRecorder:
    """
    Event handler remembering every event it sees.

    Parameters
    ----------
    action : Action, optional
        Action returned for every event (default CONTINUE)

    Examples
    --------
    >>> recorder = EventRecorder()
    >>> propagator.add_event_detector(DateDetector(600.0, handler=recorder))
    >>> propagator.propagate(3600.0)
    >>> recorder.dates
    [600.0]
    """

    def __init__(self, action=Action.CONTINUE):
        self.action = action
        self.events = []

    def __call__(self, state, detector, increasing):
        self.events.append((state, increasing))
        return self.action

    @property
    def dates(self):
        return [state.date for state, _ in self.events]

    def clear(self):
        self.events.clear()


# ========== DETECTORS ==========
class EventDetector:
    """
    Switching function over spacecraft states plus the handling of its roots.

    Subclasses implement ``g``. An event occurs when ``g`` changes sign
    along the trajectory; ``event_occurred`` then decides what happens.

    Parameters
    ----------
    max_check : float, optional
        Maximal time between two checks of the switching function [s]
        (default config.DEFAULT_MAX_CHECK)
    threshold : float, optional
        Convergence threshold on the event date [s]
        (default config.DEFAULT_THRESHOLD)
    max_iter : int, optional
        Maximal root finder iterations (default config.DEFAULT_MAX_ITER)
    handler : callable, optional
        (state, detector, increasing) -> Action (default: stop_on_event)
    """

    def __init__(self, max_check=None, threshold=None, max_iter=None, handler=None):
        self._max_check = float(config.DEFAULT_MAX_CHECK if max_check is None else max_check)
        self._threshold = float(config.DEFAULT_THRESHOLD if threshold is None else threshold)
        self._max_iter = int(config.DEFAULT_MAX_ITER if max_iter is None else max_iter)
        self._handler = stop_on_event if handler is None else handler
        if self._max_check <= 0:
            raise ValueError(f"max_check must be positive, got {self._max_check}")
        if self._threshold <= 0:
            raise ValueError(f"threshold must be positive, got {self._threshold}")
        if self._max_iter < 1:
            raise ValueError(f"max_iter must be at least 1, got {self._max_iter}")

    # ========== PROPERTY ACCESS ==========
    @property
    def max_check_interval(self):
        return self._max_check

    @property
    def threshold(self):
        return self._threshold

    @property
    def max_iteration_count(self):
        return self._max_iter

    @property
    def handler(self):
        return self._handler

    # ========== DETECTION ==========
    def init(self, initial_state, target):
        """Called at the start of each propagation leg."""

    def g(self, state):
        raise NotImplementedError

    def event_occurred(self, state, increasing):
        return self._handler(state, self, increasing)

    def reset_state(self, old_state):
        """State to continue from after a RESET_STATE decision (default: unchanged)."""
        return old_state

    # ========== COPIES ==========
    def with_handler(self, handler):
        """Copy of this detector using another event handler."""
        return self._with(_handler=handler)

    def with_max_check(self, max_check):
        return self._with(_max_check=float(max_check))

    def with_threshold(self, threshold):
        return self._with(_threshold=float(threshold))

    def with_max_iter(self, max_iter):
        return self._with(_max_iter=int(max_iter))

    def _with(self, **attributes):
        new = copy.copy(self)
        new.__dict__.update(attributes)
        return new

    def __repr__(self):
        return (f"{type(self).__name__}(max_check={self._max_check}, "
                f"threshold={self._threshold})")


class DateDetector(EventDetector):
    """
    Event at a fixed date.

    The switching function is ``date - target_date``; it increases in
    forward propagation.
    """

    def __init__(self, target_date, **kwargs):
        super().__init__(**kwargs)
        self._target_date = float(target_date)

    @property
    def target_date(self):
        return self._target_date

    def g(self, state):
        return state.date - self._target_date

    def __repr__(self):
        return f"DateDetector(target_date={self._target_date})"


class FunctionalDetector(EventDetector):
    """
    Detector whose switching function is any callable of the state.

    Examples
    --------
    >>> # stop when the spacecraft crosses the equatorial plane northward
    >>> node = FunctionalDetector(lambda s: s.position[2], max_check=60.0)
    """

    def __init__(self, g_function, **kwargs):
        super().__init__(**kwargs)
        self._g_function = g_function

    def g(self, state):
        return float(self._g_function(state))


class ImpulseManeuver(EventDetector):
    """
    Impulsive maneuver performed when a trigger detector fires.

    The trigger's switching function and settings are used unchanged. When
    the trigger handler asks to stop, the maneuver resets the state
    instead: the velocity increment is added in the inertial frame and the
    mass drops according to the rocket equation. Other trigger decisions
    let the propagation continue without maneuvering.

    Parameters
    ----------
    trigger : EventDetector
        Detector firing the maneuver
    delta_v : array-like
        Velocity increment in the inertial frame [km/s]
    isp : float
        Specific impulse [s]
    """

    def __init__(self, trigger, delta_v, isp, **kwargs):
        kwargs.setdefault('max_check', trigger.max_check_interval)
        kwargs.setdefault('threshold', trigger.threshold)
        kwargs.setdefault('max_iter', trigger.max_iteration_count)
        super().__init__(**kwargs)
        self._trigger = trigger
        self._delta_v = np.array(delta_v, dtype=float)
        if self._delta_v.shape != (3,):
            raise ValueError(f"delta_v must be a 3-vector, got shape {self._delta_v.shape}")
        if isp <= 0:
            raise ValueError(f"Specific impulse must be positive, got {isp}")
        self._isp = float(isp)
        # effective exhaust velocity in km/s
        self._vex = self._isp * G0 / 1000.0

    @property
    def trigger(self):
        return self._trigger

    @property
    def delta_v(self):
        return self._delta_v.copy()

    @property
    def isp(self):
        return self._isp

    def init(self, initial_state, target):
        self._trigger.init(initial_state, target)

    def g(self, state):
        return self._trigger.g(state)

    def event_occurred(self, state, increasing):
        action = self._trigger.event_occurred(state, increasing)
        return Action.RESET_STATE if action is Action.STOP else Action.CONTINUE

    def reset_state(self, old_state):
        cart = old_state.orbit.to_cartesian()
        elements = np.concatenate((cart.position, cart.velocity + self._delta_v))
        orbit = OrbitalElements.cartesian(elements, mu=old_state.mu)
        mass = old_state.mass * np.exp(-np.linalg.norm(self._delta_v) / self._vex)
        return SpacecraftState(orbit, date=old_state.date, mass=mass,
                               attitude=old_state.attitude, frame=old_state.frame,
                               additional_states=old_state.additional_states)

    def __repr__(self):
        return (f"ImpulseManeuver(trigger={self._trigger!r}, "
                f"delta_v={self._delta_v.tolist()}, isp={self._isp})")
