'''Conversion between flat numeric arrays and spacecraft states
StateMapper class definition'''

import numpy as np
from .config import config
from .errors import DimensionMismatchError, UnsupportedMapperError
from .orbital_elements import OrbitalElements, OEType, PositionAngle
from .attitudes import InertialProvider
from .state import SpacecraftState, PropagationType


class StateMapper:
    """
    Immutable mapping between spacecraft states and 7-component arrays.

    The primary array holds the six orbital components in the configured
    representation followed by the mass. A mapper is a value object: to
    change any parameter, build a new mapper (see ``replace``). States
    built by an older mapper carry their own date and orbit, so they remain
    valid after the owner swaps mappers.

    Parameters
    ----------
    reference_date : float
        Origin of the integration time axis [s]
    mu : float
        Gravitational parameter used for orbits rebuilt from arrays [km³/s²]
    orbit_type : OEType or str, optional
        Representation of the orbital components (default Cartesian)
    position_angle : PositionAngle or str, optional
        Anomaly convention for Keplerian arrays (default true anomaly).
        Ignored for Cartesian arrays.
    attitude_provider : AttitudeProvider, optional
        Attitude law applied to rebuilt states (default inertial identity)
    frame : str, optional
        Frame name of rebuilt states (default config.DEFAULT_FRAME)

    Raises
    ------
    UnsupportedMapperError
        If equinoctial elements are requested with an anomaly other than
        the true longitude, or mu is not finite and positive
    """

    BASIC_DIMENSION = 7

    def __init__(self, reference_date, mu, orbit_type=OEType.CARTESIAN,
                 position_angle=PositionAngle.TRUE, attitude_provider=None,
                 frame=None):
        orbit_type = OrbitalElements._parse_element_type(orbit_type)
        position_angle = OrbitalElements._parse_position_angle(position_angle)
        if orbit_type == OEType.EQUINOCTIAL and position_angle != PositionAngle.TRUE:
            raise UnsupportedMapperError(
                f"Equinoctial arrays only support the true longitude, "
                f"got {position_angle.value} angle")
        if not np.isfinite(mu) or mu <= 0:
            raise UnsupportedMapperError(
                f"Gravitational parameter must be finite and positive, got {mu}")

        self._reference_date = float(reference_date)
        self._mu = float(mu)
        self._orbit_type = orbit_type
        self._position_angle = position_angle
        self._attitude_provider = (InertialProvider() if attitude_provider is None
                                   else attitude_provider)
        self._frame = config.DEFAULT_FRAME if frame is None else frame

    # ========== PROPERTY ACCESS ==========
    @property
    def reference_date(self):
        return self._reference_date

    @property
    def mu(self):
        return self._mu

    @property
    def orbit_type(self):
        return self._orbit_type

    @property
    def position_angle(self):
        return self._position_angle

    @property
    def attitude_provider(self):
        return self._attitude_provider

    @property
    def frame(self):
        return self._frame

    def replace(self, **changes):
        """Build a new mapper with some parameters changed."""
        params = dict(
            reference_date=self._reference_date, mu=self._mu,
            orbit_type=self._orbit_type, position_angle=self._position_angle,
            attitude_provider=self._attitude_provider, frame=self._frame,
        )
        params.update(changes)
        return StateMapper(**params)

    # ========== DATES ==========
    def map_date_to_double(self, date):
        """Offset of ``date`` from the reference date [s]."""
        return float(date) - self._reference_date

    def map_double_to_date(self, t, date=None):
        """
        Date at offset ``t`` from the reference date.

        If ``date`` is given and its offset is exactly ``t``, ``date`` is
        returned unchanged, so that a target date survives the round trip
        without floating-point drift.
        """
        if date is not None and float(date) - self._reference_date == t:
            return float(date)
        return self._reference_date + float(t)

    # ========== STATES ==========
    def state_to_array(self, state):
        """
        Map a spacecraft state to its primary array.

        Parameters
        ----------
        state : SpacecraftState

        Returns
        -------
        primary : np.ndarray
            7 components: orbital components in the mapper representation,
            then mass
        primary_dot : np.ndarray or None
            Rates of the primary components, if the state carries
            derivatives expressed in the mapper representation

        Raises
        ------
        SingularRepresentationError
            If the orbit cannot be expressed in the mapper representation
        """
        orbit = state.orbit
        if orbit.element_type != self._orbit_type:
            orbit.check_singularity(self._orbit_type)

        primary = np.empty(self.BASIC_DIMENSION)
        if self._orbit_type == OEType.KEPLERIAN:
            primary[:6] = orbit.to_keplerian_array(self._position_angle)
        else:
            primary[:6] = orbit.convert_to(self._orbit_type).elements
        primary[6] = state.mass

        primary_dot = None
        if (state.derivatives is not None and
                state.derivatives_type == (self._orbit_type, self._position_angle)):
            primary_dot = np.array(state.derivatives)
        return primary, primary_dot

    def array_to_state(self, date, primary, primary_dot=None,
                       propagation_type=PropagationType.OSCULATING):
        """
        Map a primary array back to a spacecraft state.

        Parameters
        ----------
        date : float
            State date [s]
        primary : array-like
            7 primary components
        primary_dot : array-like, optional
            Rates of the primary components
        propagation_type : PropagationType, optional
            Mean or osculating semantics. Purely numerical integration
            does not distinguish them, so the value is carried for
            semi-analytical subclasses only.

        Returns
        -------
        SpacecraftState
            State without additional states
        """
        primary = np.asarray(primary, dtype=float)
        if primary.shape != (self.BASIC_DIMENSION,):
            raise DimensionMismatchError(self.BASIC_DIMENSION, primary.size,
                                         what="primary state")

        if self._orbit_type == OEType.KEPLERIAN:
            orbit = OrbitalElements.from_keplerian_array(
                primary[:6], self._position_angle, mu=self._mu)
        else:
            orbit = OrbitalElements(primary[:6], self._orbit_type,
                                    validate=False, mu=self._mu)

        attitude = self._attitude_provider.get_attitude(orbit, date, self._frame)
        derivatives_type = None
        if primary_dot is not None:
            derivatives_type = (self._orbit_type, self._position_angle)
        return SpacecraftState(orbit, date=date, mass=primary[6], attitude=attitude,
                               frame=self._frame, derivatives=primary_dot,
                               derivatives_type=derivatives_type)

    def __repr__(self):
        return (f"StateMapper(reference_date={self._reference_date}, mu={self._mu}, "
                f"orbit_type={self._orbit_type.value}, "
                f"position_angle={self._position_angle.value}, frame='{self._frame}')")
