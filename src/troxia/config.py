"""
Package-wide settings of troxia.

Settings are read when objects are created (integrators, detectors,
propagators, states), so changing one does not affect existing objects.
EVENT_G_CACHE is the exception: it is read at every switching function
evaluation.

Examples
--------
>>> import troxia
>>> troxia.config.INTEGRATION_RTOL = 1e-12
>>> print(troxia.config)
>>> troxia.config.reset()
>>> with troxia.temp_config(DEFAULT_THRESHOLD=1e-9):
...     detector = troxia.DateDetector(3600.0)
"""

from dataclasses import dataclass, fields
from contextlib import contextmanager
import math


@dataclass
class TroxiaConfig:
    """
    Mutable settings object; the package uses the single instance ``config``.

    Attributes
    ----------
    EQUALITY_RTOL, EQUALITY_ATOL : float
        Tolerances of OrbitalElements equality (1e-12, 1e-14)
    HASH_DECIMALS : int
        Read-only, derived from EQUALITY_ATOL
    SNAP_TO_CIRCULAR : float
        Eccentricity under which Keplerian elements are singular (1e-8)
    SNAP_TO_EQUATORIAL : float
        Inclination, or its supplement, under which angular elements are
        singular [rad] (1e-8)
    KEPLER_TOL, KEPLER_MAX_ITER
        Newton solver of Kepler's equation (1e-14 rad, 50 iterations)
    INTEGRATION_METHOD : str
        scipy step solver of new integrators: 'RK23', 'RK45', 'DOP853',
        'Radau', 'BDF' or 'LSODA' ('DOP853')
    INTEGRATION_RTOL, INTEGRATION_ATOL : float
        Integrator tolerances (1e-10, 1e-10)
    MIN_STEP : float
        Step size [s] under which integration fails (0.0: solver limit only)
    MAX_STEP : float
        Largest step size [s] (inf)
    DEFAULT_MAX_CHECK : float
        Largest interval between two switching function checks [s] (600.0)
    DEFAULT_THRESHOLD : float
        Convergence threshold on event dates [s] (1e-6)
    DEFAULT_MAX_ITER : int
        Root finder iterations per event (100)
    DEFAULT_ROOT_SOLVER : str
        scipy.optimize bracketing solver: 'brentq', 'brenth', 'ridder' or
        'bisect' ('brentq')
    EVENT_G_CACHE : bool
        Reuse the switching function value computed at the same time and
        reset generation (True)
    RESET_AT_END : bool
        Reset-at-end policy of new propagators (True)
    DEFAULT_MASS : float
        Mass of states built without one [kg] (1000.0)
    DEFAULT_FRAME : str
        Frame of states built without one ('EME2000')
    STRICT_VALIDATION : bool
        Soft validation failures raise if True, warn if False (True)
    DEFAULT_COMPILE : bool
        Compile heyoka equations on construction (True)
    DEFAULT_PLOT_POINTS, DEFAULT_BODY_COLOR, DEFAULT_TRAJ_COLOR, DEFAULT_BODY_OPACITY
        Ephemeris plot defaults (1000, 'lightblue', 'red', 0.6)
    """

    # ---- Element sets ----
    EQUALITY_RTOL: float = 1e-12
    EQUALITY_ATOL: float = 1e-14
    SNAP_TO_CIRCULAR: float = 1e-8
    SNAP_TO_EQUATORIAL: float = 1e-8
    KEPLER_TOL: float = 1e-14
    KEPLER_MAX_ITER: int = 50

    # ---- Integration ----
    INTEGRATION_METHOD: str = 'DOP853'
    INTEGRATION_RTOL: float = 1e-10
    INTEGRATION_ATOL: float = 1e-10
    MIN_STEP: float = 0.0
    MAX_STEP: float = math.inf

    # ---- Events ----
    DEFAULT_MAX_CHECK: float = 600.0
    DEFAULT_THRESHOLD: float = 1e-6
    DEFAULT_MAX_ITER: int = 100
    DEFAULT_ROOT_SOLVER: str = 'brentq'
    EVENT_G_CACHE: bool = True

    # ---- Propagation ----
    RESET_AT_END: bool = True
    DEFAULT_MASS: float = 1000.0
    DEFAULT_FRAME: str = 'EME2000'
    STRICT_VALIDATION: bool = True
    DEFAULT_COMPILE: bool = True

    # ---- Plotting ----
    DEFAULT_PLOT_POINTS: int = 1000
    DEFAULT_BODY_COLOR: str = 'lightblue'
    DEFAULT_TRAJ_COLOR: str = 'red'
    DEFAULT_BODY_OPACITY: float = 0.6

    @property
    def HASH_DECIMALS(self) -> int:
        """
        Decimals kept when hashing orbital elements.

        Two decimals coarser than EQUALITY_ATOL, so that elements comparing
        equal also hash equal.
        """
        return max(-math.floor(math.log10(self.EQUALITY_ATOL)) - 2, 0)

    def reset(self):
        """Restore every setting to its default value."""
        for f in fields(self):
            setattr(self, f.name, f.default)

    def __repr__(self):
        lines = [f"{type(self).__name__}:"]
        for section, names in _SECTIONS:
            lines.append(f"  {section}:")
            lines.extend(f"    {name} = {getattr(self, name)!r}" for name in names)
        return "\n".join(lines)


# settings grouped for display
_SECTIONS = (
    ("Element sets", ("EQUALITY_RTOL", "EQUALITY_ATOL", "HASH_DECIMALS", "SNAP_TO_CIRCULAR",
                      "SNAP_TO_EQUATORIAL", "KEPLER_TOL", "KEPLER_MAX_ITER")),
    ("Integration", ("INTEGRATION_METHOD", "INTEGRATION_RTOL", "INTEGRATION_ATOL",
                     "MIN_STEP", "MAX_STEP")),
    ("Events", ("DEFAULT_MAX_CHECK", "DEFAULT_THRESHOLD", "DEFAULT_MAX_ITER",
                "DEFAULT_ROOT_SOLVER", "EVENT_G_CACHE")),
    ("Propagation", ("RESET_AT_END", "DEFAULT_MASS", "DEFAULT_FRAME",
                     "STRICT_VALIDATION", "DEFAULT_COMPILE")),
    ("Plotting", ("DEFAULT_PLOT_POINTS", "DEFAULT_BODY_COLOR", "DEFAULT_TRAJ_COLOR",
                  "DEFAULT_BODY_OPACITY")),
)

config = TroxiaConfig()


@contextmanager
def temp_config(**overrides):
    """
    Override settings for the duration of a ``with`` block.

    Previous values come back when the block exits, also on exceptions.

    Examples
    --------
    >>> with troxia.temp_config(EVENT_G_CACHE=False, RESET_AT_END=False):
    ...     final_state = propagator.propagate(3600.0)

    Raises
    ------
    AttributeError
        If a name is not a setting (nothing is modified then)
    """
    known = {f.name for f in fields(config)}
    unknown = sorted(set(overrides) - known)
    if unknown:
        raise AttributeError(f"Unknown settings {unknown}; valid settings: {sorted(known)}")

    saved = {name: getattr(config, name) for name in overrides}
    for name, value in overrides.items():
        setattr(config, name, value)
    try:
        yield config
    finally:
        for name, value in saved.items():
            setattr(config, name, value)
