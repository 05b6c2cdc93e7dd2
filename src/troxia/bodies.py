"""
Central body and atmosphere parameters.

Frozen dataclasses plus predefined Solar System bodies. Constants are those
of Vallado, Fundamentals of Astrodynamics, 5th edition (2022), Appendix D,
in km and seconds.
"""

from dataclasses import dataclass
from typing import Optional


def _require_positive(**values):
    for name, value in values.items():
        if value <= 0:
            raise ValueError(f"{name} must be positive, got {value}")


@dataclass(frozen=True)
class BodyParams:
    """
    Gravity field and rotation of a central body.

    Attributes
    ----------
    mu : float
        Gravitational parameter [km^3/s^2]
    radius : float
        Equatorial radius [km]
    J2 : float, optional
        Second zonal harmonic; needed by the "J2" perturbation
    rotation_rate : float, optional
        Spin rate about +z [rad/s]; needed by the "drag" perturbation
    name : str, optional
    """
    mu: float
    radius: float
    J2: Optional[float] = None
    rotation_rate: Optional[float] = None
    name: Optional[str] = None

    def __post_init__(self):
        _require_positive(mu=self.mu, radius=self.radius)
        if self.J2 is not None and abs(self.J2) > 1:
            raise ValueError(f"|J2| must not exceed 1, got {self.J2}")


@dataclass(frozen=True)
class AtmoParams:
    """
    Exponential atmosphere rho(r) = rho0 exp(-(r - r0) / H).

    SI units, converted to km by the drag model.

    Attributes
    ----------
    rho0 : float
        Density at the reference radius [kg/m^3]
    H : float
        Scale height [m]
    r0 : float
        Reference radius from the body center [m]
    """
    rho0: float
    H: float
    r0: float

    def __post_init__(self):
        _require_positive(rho0=self.rho0, H=self.H, r0=self.r0)


G0 = 9.80665

MERCURY = BodyParams(
    mu=2.2032e4,
    radius=2439.0,
    J2=6.0e-5,
    rotation_rate=1.24001e-6,
    name='Mercury'
)

VENUS = BodyParams(
    mu=3.257e5,
    radius=6052.0,
    J2=2.7e-5,
    rotation_rate=-2.9926e-7,
    name='Venus'
)

EARTH = BodyParams(
    mu=3.986004415e5,
    radius=6378.1363,
    J2=1.0826269e-3,
    rotation_rate=7.2921150e-5,
    name='Earth'
)

MOON = BodyParams(
    mu=4.902799e3,
    radius=1738.0,
    J2=2.027e-4,
    rotation_rate=2.661700e-6,
    name='Moon'
)

MARS = BodyParams(
    mu=4.305e4,
    radius=3397.2,
    J2=1.964e-3,
    rotation_rate=7.0882181e-5,
    name='Mars'
)

JUPITER = BodyParams(
    mu=1.268e8,
    radius=71492.0,
    J2=1.475e-2,
    rotation_rate=1.7585e-4,
    name='Jupiter'
)

SUN = BodyParams(
    mu=1.32712428e11,
    radius=6.96e5,
    J2=None,
    rotation_rate=None,
    name='Sun'
)

EARTH_STD_ATMO = AtmoParams(
    rho0=1.225,
    H=8500.0,
    r0=6378137.0
)
