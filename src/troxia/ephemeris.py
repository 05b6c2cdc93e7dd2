'''Bounded ephemeris built from the dense output of a propagation
IntegratedEphemeris class definition'''

import numpy as np
import pandas as pd
from typing import Union, Optional
import plotly.graph_objects as go
from .config import config
from .errors import EphemerisRangeError
from .orbital_elements import OEType, PositionAngle

# column names of the primary components, by representation
_COMPONENT_NAMES = {
    OEType.CARTESIAN: ('x', 'y', 'z', 'vx', 'vy', 'vz'),
    OEType.KEPLERIAN: ('a', 'e', 'i', 'omega', 'w'),
    OEType.EQUINOCTIAL: ('p', 'f', 'g', 'h', 'k', 'L'),
}
_ANOMALY_NAMES = {
    PositionAngle.TRUE: 'nu',
    PositionAngle.ECCENTRIC: 'E',
    PositionAngle.MEAN: 'M',
}


class IntegratedEphemeris:
    """
    Read-only propagator interpolating a finished integration.

    Valid over [min_date, max_date] only. The ephemeris owns the mapper
    and dense output it was built from, so later changes to the propagator
    that produced it have no effect on it.

    Attributes:
        start_date: Date the integration started from
        min_date, max_date: Validity interval, ordered whatever the
            propagation direction
        mapper: State mapper of the integration leg
        propagation_type: Mean or osculating semantics of rebuilt states
    """
    # ========== CONSTRUCTION ==========
    def __init__(self, start_date, min_date, max_date, mapper, propagation_type,
                 model, unmanaged, providers, managed_names):
        if not model.is_sealed:
            raise ValueError("Ephemeris requires a sealed dense output model")
        self._start_date = float(start_date)
        self._min_date = float(min_date)
        self._max_date = float(max_date)
        self._mapper = mapper
        self._propagation_type = propagation_type
        self._model = model
        self._unmanaged = {name: np.array(value) for name, value in unmanaged.items()}
        self._providers = tuple(providers)
        self._managed_names = tuple(managed_names)

    # ========== PROPERTY ACCESS ==========
    @property
    def start_date(self):
        return self._start_date

    @property
    def min_date(self):
        return self._min_date

    @property
    def max_date(self):
        return self._max_date

    @property
    def final_date(self):
        """Date the integration ended at (min_date for backward propagation)"""
        return self._min_date if self._start_date == self._max_date else self._max_date

    @property
    def duration(self):
        """Length of the validity interval [s]."""
        return self._max_date - self._min_date

    @property
    def mapper(self):
        return self._mapper

    @property
    def propagation_type(self):
        return self._propagation_type

    @property
    def managed_names(self):
        """Names of the integrated additional states"""
        return self._managed_names

    @property
    def unmanaged_names(self):
        """Names of the additional states copied verbatim from the initial state"""
        return tuple(self._unmanaged)

    def is_additional_state_managed(self, name):
        return (name in self._managed_names or name in self._unmanaged or
                any(p.name == name for p in self._providers))

    # ========== STATE ACCESS ==========
    def state_at(self, date: float):
        """
        Spacecraft state at a date of the validity interval.

        Parameters:
            date: Date to query (must be in [min_date, max_date])

        Raises:
            EphemerisRangeError: If date is outside the validity interval
        """
        self._validate_date(date)
        date = float(date)
        ode_state = self._model.get_interpolated_state(self._mapper.map_date_to_double(date))
        return self._build_state(date, ode_state)

    def propagate(self, date: float):
        """Alias of ``state_at``, for use wherever a propagator is expected."""
        return self.state_at(date)

    def evaluate(self, dates: Union[float, np.ndarray, list]):
        """
        Evaluate the ephemeris at one or more dates.

        Returns:
            Single SpacecraftState if dates is scalar,
            list of SpacecraftState if dates is array-like
        """
        if np.isscalar(dates):
            return self.state_at(dates)
        return [self.state_at(d) for d in np.asarray(dates, dtype=float)]

    def sample(self, n_points: int = 100):
        """
        Uniformly sample the ephemeris in time, in propagation order.

        Returns:
            List of SpacecraftState from start_date to final_date
        """
        if n_points < 2:
            raise ValueError("n_points must be at least 2, use .state_at()")
        return [self.state_at(d) for d in self.get_times(n_points)]

    def sample_raw(self, n_points: int = 100) -> np.ndarray:
        """
        Uniformly sample the primary components, without building states.

        Returns:
            Array of shape (n_points, 7): orbital components in the mapper
            representation, then mass
        """
        if n_points < 2:
            raise ValueError("n_points must be at least 2, use .state_at()")
        return self._primary_array(self.get_times(n_points))

    def contains_date(self, date: float) -> bool:
        """Check if date is within the validity interval."""
        return self._min_date <= date <= self._max_date

    def get_times(self, n_points: int = 100) -> np.ndarray:
        """Uniform dates from start_date to final_date."""
        return np.linspace(self._start_date, self.final_date, n_points)

    def _validate_date(self, date):
        if not self.contains_date(date):
            raise EphemerisRangeError(date, self._min_date, self._max_date)

    def _build_state(self, date, ode_state):
        state = self._mapper.array_to_state(date, ode_state.primary_state, None,
                                            self._propagation_type)
        blocks = dict(self._unmanaged)
        for index, name in enumerate(self._managed_names, start=1):
            blocks[name] = ode_state.get_secondary_state(index)
        if blocks:
            state = state.with_additional_states(blocks)
        for provider in self._providers:
            state = state.add_additional_state(provider.name,
                                               provider.get_additional_state(state))
        return state

    def _primary_array(self, dates):
        rows = []
        for date in dates:
            self._validate_date(date)
            ode_state = self._model.get_interpolated_state(
                self._mapper.map_date_to_double(date))
            rows.append(ode_state.complete_state)
        return np.array(rows)

    # ========== EXPORT ==========
    def component_names(self):
        """Column names of the 7 primary components."""
        orbit_type = self._mapper.orbit_type
        names = _COMPONENT_NAMES[orbit_type]
        if orbit_type == OEType.KEPLERIAN:
            names = names + (_ANOMALY_NAMES[self._mapper.position_angle],)
        return names + ('mass',)

    def to_dataframe(self,
                     dates: Optional[np.ndarray] = None,
                     n_points: int = 1000) -> pd.DataFrame:
        """
        Export the ephemeris to a pandas DataFrame.

        Parameters:
            dates: Specific dates to evaluate. If None, uses uniform sampling.
            n_points: Number of uniform samples if dates not provided (default: 1000)

        Returns:
            DataFrame with a 'date' column, one column per primary component
            and one column per scalar of each integrated additional state
            (named '<state>_<index>')
        """
        if dates is None:
            dates = self.get_times(n_points)
        else:
            dates = np.asarray(dates, dtype=float)

        complete = self._primary_array(dates)

        data = {'date': dates}
        for column, name in enumerate(self.component_names()):
            data[name] = complete[:, column]

        probe = self._model.get_interpolated_state(
            self._mapper.map_date_to_double(self._start_date))
        offset = self._mapper.BASIC_DIMENSION
        for index, name in enumerate(self._managed_names, start=1):
            size = probe.get_secondary_state(index).size
            for k in range(size):
                data[f'{name}_{k}'] = complete[:, offset + k]
            offset += size

        return pd.DataFrame(data)

    # ========== PLOTTING ==========
    def plot_3d(self, n_points: Optional[int] = None, body_radius: Optional[float] = None,
                body_color: Optional[str] = None, traj_color: Optional[str] = None,
                body_opacity: Optional[float] = None) -> go.Figure:
        """
        Create 3D plot of the ephemeris positions with optional central body.

        Parameters:
            n_points: Number of points to sample (default: config.DEFAULT_PLOT_POINTS)
            body_radius: Radius of the central body sphere [km]; no sphere if None
            body_color: Color of central body (default: config.DEFAULT_BODY_COLOR)
            traj_color: Color of trajectory line (default: config.DEFAULT_TRAJ_COLOR)
            body_opacity: Opacity of central body (default: config.DEFAULT_BODY_OPACITY)

        Returns:
            Plotly Figure object
        """
        n_points = config.DEFAULT_PLOT_POINTS if n_points is None else n_points
        body_color = config.DEFAULT_BODY_COLOR if body_color is None else body_color
        traj_color = config.DEFAULT_TRAJ_COLOR if traj_color is None else traj_color
        body_opacity = config.DEFAULT_BODY_OPACITY if body_opacity is None else body_opacity

        positions = self._positions(self.get_times(n_points))

        fig = go.Figure()
        if body_radius is not None:
            self._add_sphere_to_plot(fig, center=(0, 0, 0), radius=body_radius,
                                     color=body_color, opacity=body_opacity,
                                     name="Central Body")

        fig.add_trace(go.Scatter3d(
            x=positions[:, 0],
            y=positions[:, 1],
            z=positions[:, 2],
            mode='lines',
            line=dict(color=traj_color, width=3),
            name='Ephemeris',
            hovertemplate='x: %{x:.3f}<br>y: %{y:.3f}<br>z: %{z:.3f}<extra></extra>'
        ))

        fig.update_layout(
            scene=dict(
                xaxis_title='X [km]',
                yaxis_title='Y [km]',
                zaxis_title='Z [km]',
                aspectmode='data'
            ),
            title=f'Ephemeris [{self._min_date}, {self._max_date}]',
            showlegend=True
        )
        return fig

    def _positions(self, dates):
        if self._mapper.orbit_type == OEType.CARTESIAN:
            return self._primary_array(dates)[:, 0:3]
        return np.array([self.state_at(d).position for d in dates])

    def _add_sphere_to_plot(self, fig, center, radius, color, opacity, name):
        """Helper to add a sphere to the plot at specified center."""
        u = np.linspace(0, 2 * np.pi, 30)
        v = np.linspace(0, np.pi, 20)

        x = center[0] + radius * np.outer(np.cos(u), np.sin(v))
        y = center[1] + radius * np.outer(np.sin(u), np.sin(v))
        z = center[2] + radius * np.outer(np.ones(np.size(u)), np.cos(v))

        fig.add_trace(go.Surface(
            x=x, y=y, z=z,
            colorscale=[[0, color], [1, color]],
            showscale=False,
            opacity=opacity,
            name=name,
            hoverinfo='name'
        ))

    # ========== SPECIAL METHODS ==========
    def __repr__(self):
        return (f"IntegratedEphemeris(min_date={self._min_date}, "
                f"max_date={self._max_date}, duration={self.duration})")

    def __call__(self, date: float):
        """
        Evaluate the ephemeris at a date.
        Syntactic sugar for .state_at(date). Allows ephem(date) syntax.
        """
        return self.state_at(date)
