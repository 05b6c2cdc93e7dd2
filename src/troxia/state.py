'''Spacecraft state snapshots
SpacecraftState class definition'''

from enum import Enum
from types import MappingProxyType
import numpy as np
from .config import config
from .errors import InconsistentEpochError, MissingAdditionalStateError
from .orbital_elements import OrbitalElements
from .attitudes import InertialProvider


class PropagationType(Enum):
    """Selects mean or osculating element semantics when rebuilding states."""
    MEAN = 'mean'
    OSCULATING = 'osculating'


def _frozen_array(value):
    array = np.array(value, dtype=float).reshape(-1)
    array.flags.writeable = False
    return array


class SpacecraftState:
    """
    Immutable snapshot of a spacecraft at a date.

    Holds the orbit, the mass, the attitude and any number of named
    additional states (variable length numeric arrays). Every modifier
    returns a new instance; arrays handed out are read-only.

    Parameters
    ----------
    orbit : OrbitalElements
        Orbit at the state date
    date : float, optional
        Date [s] on the propagation time scale (default 0.0)
    mass : float, optional
        Spacecraft mass [kg] (default config.DEFAULT_MASS)
    attitude : Attitude, optional
        Attitude at the state date. Defaults to an inertially fixed
        identity attitude.
    frame : str, optional
        Reference frame name (default config.DEFAULT_FRAME, or the
        attitude frame if an attitude is given)
    additional_states : mapping of str to array-like, optional
        Named additional states
    derivatives : array-like, optional
        Rates of the 7 primary components (6 orbital + mass), expressed in
        the representation given by ``derivatives_type``
    derivatives_type : tuple, optional
        (OEType, PositionAngle) the derivatives are expressed in

    Raises
    ------
    InconsistentEpochError
        If the attitude date differs from the state date
    """

    def __init__(self, orbit, date=0.0, mass=None, attitude=None, frame=None,
                 additional_states=None, derivatives=None, derivatives_type=None):
        if not isinstance(orbit, OrbitalElements):
            raise TypeError(f"orbit must be OrbitalElements, got {type(orbit)}")
        self._orbit = orbit
        self._date = float(date)
        self._mass = float(config.DEFAULT_MASS if mass is None else mass)

        if frame is None:
            frame = attitude.frame if attitude is not None else config.DEFAULT_FRAME
        self._frame = frame

        if attitude is None:
            attitude = InertialProvider().get_attitude(orbit, self._date, frame)
        elif attitude.date != self._date:
            raise InconsistentEpochError(self._date, attitude.date, what="attitude date")
        self._attitude = attitude

        states = {}
        if additional_states is not None:
            for name, value in additional_states.items():
                states[name] = _frozen_array(value)
        self._additional_states = MappingProxyType(states)

        if derivatives is not None:
            derivatives = _frozen_array(derivatives)
            if derivatives.shape != (7,):
                raise ValueError(
                    f"Primary derivatives must have 7 components, got {derivatives.shape[0]}")
        self._derivatives = derivatives
        self._derivatives_type = derivatives_type if derivatives is not None else None

    # ========== PROPERTY ACCESS ==========
    @property
    def orbit(self):
        """Orbit at the state date"""
        return self._orbit

    @property
    def date(self):
        """Date of the state [s]"""
        return self._date

    @property
    def mass(self):
        """Spacecraft mass [kg]"""
        return self._mass

    @property
    def attitude(self):
        """Attitude at the state date"""
        return self._attitude

    @property
    def frame(self):
        """Reference frame name"""
        return self._frame

    @property
    def mu(self):
        """Gravitational parameter of the orbit [km³/s²]"""
        return self._orbit.mu

    @property
    def additional_states(self):
        """Read-only mapping of additional state name to read-only array"""
        return self._additional_states

    @property
    def derivatives(self):
        """Rates of the 7 primary components, or None"""
        return self._derivatives

    @property
    def derivatives_type(self):
        """(OEType, PositionAngle) of the primary derivatives, or None"""
        return self._derivatives_type

    @property
    def position(self):
        """Cartesian position [km]"""
        return self._orbit.to_cartesian().position

    @property
    def velocity(self):
        """Cartesian velocity [km/s]"""
        return self._orbit.to_cartesian().velocity

    # ========== ADDITIONAL STATES ==========
    def has_additional_state(self, name):
        return name in self._additional_states

    def get_additional_state(self, name):
        """
        Get an additional state by name.

        Raises
        ------
        MissingAdditionalStateError
            If no additional state has this name
        """
        try:
            return self._additional_states[name]
        except KeyError:
            raise MissingAdditionalStateError(name) from None

    def add_additional_state(self, name, value):
        """Return a copy of this state with one more (or a replaced) additional state."""
        return self.with_additional_states({name: value})

    def with_additional_states(self, states):
        """Return a copy of this state with several additional states added or replaced."""
        merged = dict(self._additional_states)
        merged.update(states)
        return self._copy(additional_states=merged)

    # ========== COPIES ==========
    def with_mass(self, mass):
        return self._copy(mass=mass)

    def with_orbit(self, orbit):
        # derivatives belong to the previous orbit
        return self._copy(orbit=orbit, derivatives=None)

    def with_attitude(self, attitude):
        return self._copy(attitude=attitude)

    def _copy(self, **changes):
        kwargs = dict(
            orbit=self._orbit, date=self._date, mass=self._mass,
            attitude=self._attitude, frame=self._frame,
            additional_states=self._additional_states,
            derivatives=self._derivatives, derivatives_type=self._derivatives_type,
        )
        kwargs.update(changes)
        return SpacecraftState(**kwargs)

    # ========== SPECIAL METHODS ==========
    def __repr__(self):
        extra = f", additional={list(self._additional_states)}" if self._additional_states else ""
        return (f"SpacecraftState(date={self._date}, mass={self._mass}, "
                f"orbit={self._orbit!r}{extra})")
