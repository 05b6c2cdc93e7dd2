'''Orbital element sets and anomaly conversions
OrbitalElements class definition'''

import numpy as np
from enum import Enum
from .config import config
from .errors import SingularRepresentationError

# define an enumerated list of element types
class OEType(Enum):
    CARTESIAN = 'cart'      # [x;y;z;vx;vy;vz]
    KEPLERIAN = 'kep'       # [a;e;i;Omega;w;anomaly]
    EQUINOCTIAL = 'equi'    # [p;f;g;h;k;L]

# define the anomaly conventions a Keplerian array may carry
class PositionAngle(Enum):
    TRUE = 'true'
    ECCENTRIC = 'eccentric'
    MEAN = 'mean'


# ========== ANOMALY CONVERSIONS ==========
def true_to_eccentric(nu, e):
    """
    Convert true anomaly to eccentric (e < 1) or hyperbolic (e > 1) anomaly.

    The elliptic branch keeps the revolution count of ``nu``, so that
    angles beyond 2*pi produced by integration survive the conversion.
    """
    if e < 1:
        beta = e / (1 + np.sqrt((1 - e) * (1 + e)))
        return nu - 2 * np.arctan(beta * np.sin(nu) / (1 + beta * np.cos(nu)))
    return 2 * np.arctanh(np.sqrt((e - 1) / (e + 1)) * np.tan(nu / 2))

def eccentric_to_true(E, e):
    """Convert eccentric (e < 1) or hyperbolic (e > 1) anomaly to true anomaly."""
    if e < 1:
        beta = e / (1 + np.sqrt((1 - e) * (1 + e)))
        return E + 2 * np.arctan(beta * np.sin(E) / (1 - beta * np.cos(E)))
    return 2 * np.arctan(np.sqrt((e + 1) / (e - 1)) * np.tanh(E / 2))

def eccentric_to_mean(E, e):
    """Kepler's equation: M = E - e sin E, or M = e sinh H - H for e > 1."""
    if e < 1:
        return E - e * np.sin(E)
    return e * np.sinh(E) - E

def mean_to_eccentric(M, e):
    """
    Solve Kepler's equation for the eccentric or hyperbolic anomaly.

    Newton iterations, converged to config.KEPLER_TOL.

    Raises
    ------
    SingularRepresentationError
        If the iteration does not converge within config.KEPLER_MAX_ITER
    """
    if e < 1:
        E = M + e * np.sin(M) if e < 0.8 else M + e * np.sign(np.sin(M))
        for _ in range(config.KEPLER_MAX_ITER):
            f = E - e * np.sin(E) - M
            dE = f / (1 - e * np.cos(E))
            E = E - dE
            if abs(dE) <= config.KEPLER_TOL * max(1.0, abs(E)):
                return E
    else:
        H = np.arcsinh(M / e)
        for _ in range(config.KEPLER_MAX_ITER):
            f = e * np.sinh(H) - H - M
            dH = f / (e * np.cosh(H) - 1)
            H = H - dH
            if abs(dH) <= config.KEPLER_TOL * max(1.0, abs(H)):
                return H
    raise SingularRepresentationError(
        f"Kepler equation did not converge for M={M}, e={e} "
        f"after {config.KEPLER_MAX_ITER} iterations"
    )

def true_to_mean(nu, e):
    """Convert true anomaly to mean anomaly."""
    return eccentric_to_mean(true_to_eccentric(nu, e), e)

def mean_to_true(M, e):
    """Convert mean anomaly to true anomaly."""
    return eccentric_to_true(mean_to_eccentric(M, e), e)


# ========== ELEMENT SET GEOMETRY ==========
def _momentum_and_eccentricity(rvec, vvec, mu):
    """Angular momentum vector h = r x v and eccentricity vector of a Cartesian state."""
    hvec = np.cross(rvec, vvec)
    evec = np.cross(vvec, hvec) / mu - rvec / np.linalg.norm(rvec)
    return hvec, evec

def _inclination(hvec):
    return np.arctan2(np.hypot(hvec[0], hvec[1]), hvec[2])

def _perifocal_axes(raan, i, w):
    """Inertial unit vectors towards periapsis (P) and 90 deg ahead of it (Q)."""
    cO, sO = np.cos(raan), np.sin(raan)
    ci, si = np.cos(i), np.sin(i)
    cw, sw = np.cos(w), np.sin(w)
    P = np.array([cO * cw - sO * sw * ci, sO * cw + cO * sw * ci, sw * si])
    Q = np.array([-cO * sw - sO * cw * ci, -sO * sw + cO * cw * ci, cw * si])
    return P, Q

def _equinoctial_axes(h, k):
    """Inertial unit vectors f and g of the prograde equinoctial frame."""
    s2 = 1.0 + h * h + k * k
    f_hat = np.array([1.0 - k * k + h * h, 2.0 * h * k, -2.0 * k]) / s2
    g_hat = np.array([2.0 * h * k, 1.0 + k * k - h * h, 2.0 * h]) / s2
    return f_hat, g_hat


# component names accepted as keyword arguments, by element type
_NAMED_COMPONENTS = {
    'KEPLERIAN': ('a', 'e', 'i', 'omega', 'w', 'nu'),
    'CARTESIAN': ('x', 'y', 'z', 'vx', 'vy', 'vz'),
    'EQUINOCTIAL': ('p', 'f', 'g', 'h', 'k', 'L'),
}

# string spellings of element types
_TYPE_ALIASES = {
    'cart': OEType.CARTESIAN, 'cartesian': OEType.CARTESIAN,
    'kep': OEType.KEPLERIAN, 'kepler': OEType.KEPLERIAN, 'keplerian': OEType.KEPLERIAN,
    'eq': OEType.EQUINOCTIAL, 'equi': OEType.EQUINOCTIAL, 'equinoctial': OEType.EQUINOCTIAL,
}

# (label, unit, angle) of each component, for printing
_DISPLAY = {
    OEType.KEPLERIAN: (('a', 'km', False), ('e', '', False), ('i', 'deg', True),
                       ('RAAN', 'deg', True), ('w', 'deg', True), ('nu', 'deg', True)),
    OEType.CARTESIAN: (('x', 'km', False), ('y', 'km', False), ('z', 'km', False),
                       ('vx', 'km/s', False), ('vy', 'km/s', False), ('vz', 'km/s', False)),
    OEType.EQUINOCTIAL: (('p', 'km', False), ('f', '', False), ('g', '', False),
                         ('h', '', False), ('k', '', False), ('L', 'deg', True)),
}


class OrbitalElements:
    """
    Six-component orbit description in one of three representations.

    Cartesian elements are position and velocity in the inertial frame
    centered on the primary body. Keplerian elements carry the true anomaly;
    other anomaly conventions are handled through ``to_keplerian_array`` and
    ``from_keplerian_array``. Equinoctial elements use the modified,
    prograde formulation.

    Instances are immutable: the element array is read-only and every
    conversion returns a new object carrying the same ``mu``.

    Parameters
    ----------
    elements : array-like, optional
        The 6 components, in the order of ``element_type``
    element_type : OEType or str, optional
        'cart', 'kep' or 'equi' (required with ``elements``)
    validate : bool, optional
        Check the components for physical consistency (default True)
    mu : float, optional
        Gravitational parameter [km³/s²] (default: Earth)
    **kwargs
        Named components instead of ``elements``: (a, e, i, omega, w, nu),
        (x, y, z, vx, vy, vz) or (p, f, g, h, k, L); the type follows

    Examples
    --------
    >>> OrbitalElements([7000, 0.01, 0.5, 0, 0, 0], 'kep', mu=398600.4418)
    >>> OrbitalElements(a=7000, e=0.01, i=0.5, omega=0, w=0, nu=0)
    """
    # Earth, used when no gravitational parameter is given
    DEFAULT_MU = 398600.435507  # km³/s²

    # method converting self.elements, by (source, target) type
    _CONVERSIONS = {
        (OEType.KEPLERIAN, OEType.CARTESIAN): '_keplerian_to_cartesian',
        (OEType.KEPLERIAN, OEType.EQUINOCTIAL): '_keplerian_to_equinoctial',
        (OEType.CARTESIAN, OEType.KEPLERIAN): '_cartesian_to_keplerian',
        (OEType.CARTESIAN, OEType.EQUINOCTIAL): '_cartesian_to_equinoctial',
        (OEType.EQUINOCTIAL, OEType.KEPLERIAN): '_equinoctial_to_keplerian',
        (OEType.EQUINOCTIAL, OEType.CARTESIAN): '_equinoctial_to_cartesian',
    }

    # ========== CONSTRUCTION ==========
    def __init__(self, elements=None, element_type=None, validate=True,
                 mu=None, **kwargs):
        self._mu = self.DEFAULT_MU if mu is None else float(mu)

        if elements is not None:
            self.elements = np.array(elements, dtype=float)
            self.element_type = self._parse_element_type(element_type)
        elif kwargs:
            self.elements, self.element_type = self._from_named_params(kwargs)
        else:
            raise ValueError(
                "OrbitalElements needs an elements array with its element_type, "
                "or the six named components of one representation")

        self.elements.flags.writeable = False
        if validate:
            self._validate()

    # unchecked constructors for states produced by numerical code
    @classmethod
    def cartesian(cls, elements, mu=None):
        """Cartesian elements [x, y, z, vx, vy, vz], not validated."""
        return cls(elements, OEType.CARTESIAN, validate=False, mu=mu)

    @classmethod
    def keplerian(cls, elements, mu=None):
        """Keplerian elements [a, e, i, Ω, ω, ν], not validated."""
        return cls(elements, OEType.KEPLERIAN, validate=False, mu=mu)

    @classmethod
    def equinoctial(cls, elements, mu=None):
        """Modified equinoctial elements [p, f, g, h, k, L], not validated."""
        return cls(elements, OEType.EQUINOCTIAL, validate=False, mu=mu)

    @classmethod
    def from_keplerian_array(cls, elements, position_angle, mu=None):
        """
        Create Keplerian elements from an array whose last slot is expressed
        with the given anomaly convention.

        Parameters
        ----------
        elements : array-like
            [a, e, i, Ω, ω, anomaly]
        position_angle : PositionAngle or str
            Convention of the anomaly slot
        mu : float, optional

        Returns
        -------
        OrbitalElements
            Keplerian elements carrying the true anomaly
        """
        position_angle = cls._parse_position_angle(position_angle)
        a, e, i, omega, w, anomaly = np.asarray(elements, dtype=float)
        if position_angle == PositionAngle.ECCENTRIC:
            nu = eccentric_to_true(anomaly, e)
        elif position_angle == PositionAngle.MEAN:
            nu = mean_to_true(anomaly, e)
        else:
            nu = anomaly
        return cls([a, e, i, omega, w, nu], OEType.KEPLERIAN, validate=False, mu=mu)

    # ========== VALIDATION ==========
    def _validate(self):
        """Reject components inconsistent with the element type (use validate=False to skip)."""
        if self.elements.shape != (6,):
            raise ValueError(f"Orbital elements must be a 6-vector, got shape {self.elements.shape}")
        if not np.all(np.isfinite(self.elements)):
            raise ValueError(f"Orbital elements contain NaN or Inf: {self.elements.tolist()}")
        if self._mu <= 0:
            raise ValueError(f"Gravitational parameter must be positive, got {self._mu}")

        check = {
            OEType.KEPLERIAN: self._validate_keplerian,
            OEType.CARTESIAN: self._validate_cartesian,
            OEType.EQUINOCTIAL: self._validate_equinoctial,
        }[self.element_type]
        check()

    def _validate_keplerian(self):
        a, e, i = self.elements[:3]
        if not 0 <= e <= 10:
            raise ValueError(f"Eccentricity must lie in [0, 10], got e={e}")
        if e < 1 and a <= 0:
            raise ValueError(f"Elliptic orbit (e={e}) needs a positive semi-major axis, got a={a}")
        if e >= 1 and a >= 0:
            raise ValueError(f"Hyperbolic orbit (e={e}) needs a negative semi-major axis, got a={a}")
        if not 0 <= i <= np.pi:
            raise ValueError(f"Inclination must lie in [0, pi], got i={i}")
        for name, angle in zip(("RAAN", "Argument of periapsis", "True anomaly"),
                               self.elements[3:]):
            if not -np.pi <= angle <= 2 * np.pi:
                raise ValueError(f"{name} must lie in [-pi, 2 pi], got {angle}")

    def _validate_equinoctial(self):
        p, f, g = self.elements[:3]
        if p <= 0:
            raise ValueError(f"Semi-latus rectum must be positive, got p={p}")
        if max(abs(f), abs(g)) > 10:
            raise ValueError(f"Eccentricity components must lie in [-10, 10], got f={f}, g={g}")

    def _validate_cartesian(self):
        # km and km/s: any bound orbit is far more than 10 times larger in position
        r = np.linalg.norm(self.elements[:3])
        v = np.linalg.norm(self.elements[3:])
        if r < 10 * v:
            raise ValueError(
                f"|r| = {r:.2f} km is not an order of magnitude above |v| = {v:.2f} km/s; "
                f"check the units")

    def check_singularity(self, target_type):
        """
        Check that these elements can be expressed in ``target_type``.

        Keplerian elements are singular for circular, equatorial and
        parabolic orbits. The prograde equinoctial formulation is singular
        for retrograde equatorial orbits. Cartesian is never singular.

        Parameters
        ----------
        target_type : OEType or str

        Raises
        ------
        SingularRepresentationError
            If the representation is singular for this orbit
        """
        target_type = self._parse_element_type(target_type)
        if target_type == OEType.CARTESIAN:
            return

        rvec, vvec = self._cartesian_vectors()
        hvec, evec = _momentum_and_eccentricity(rvec, vvec, self._mu)
        if not np.any(hvec):
            raise SingularRepresentationError(
                f"Rectilinear motion cannot be expressed as "
                f"{target_type.value} elements")
        i = _inclination(hvec)
        e = np.linalg.norm(evec)

        if target_type == OEType.KEPLERIAN:
            if e < config.SNAP_TO_CIRCULAR:
                raise SingularRepresentationError(
                    f"Keplerian elements are singular for circular orbits (e={e:.3e})")
            if abs(e - 1) < config.SNAP_TO_CIRCULAR:
                raise SingularRepresentationError(
                    f"Keplerian elements are singular for parabolic orbits (e={e:.12f})")
            if min(i, np.pi - i) < config.SNAP_TO_EQUATORIAL:
                raise SingularRepresentationError(
                    f"Keplerian elements are singular for equatorial orbits "
                    f"(i={np.degrees(i):.3e} deg)")
        elif np.pi - i < config.SNAP_TO_EQUATORIAL:
            raise SingularRepresentationError(
                f"Equinoctial elements are singular for retrograde equatorial "
                f"orbits (i={np.degrees(i):.6f} deg)")

    # ========== ELEMENT TYPE CONVERSIONS ==========
    def convert_to(self, target_type):
        """
        Same orbit in another representation.

        Parameters
        ----------
        target_type : OEType or str
            'cart', 'kep' or 'equi'

        Returns
        -------
        OrbitalElements
            New elements with the same ``mu`` (a copy if the type is unchanged)
        """
        target_type = self._parse_element_type(target_type)
        if target_type == self.element_type:
            return self.copy()
        convert = getattr(self, self._CONVERSIONS[(self.element_type, target_type)])
        return OrbitalElements(convert(), target_type, validate=False, mu=self._mu)

    def _keplerian_to_cartesian(self):
        a, e, i, raan, w, nu = self.elements
        p = a * (1 - e**2)
        P, Q = _perifocal_axes(raan, i, w)
        radius = p / (1 + e * np.cos(nu))
        speed = np.sqrt(self._mu / p)
        position = radius * (np.cos(nu) * P + np.sin(nu) * Q)
        velocity = speed * (-np.sin(nu) * P + (e + np.cos(nu)) * Q)
        return np.concatenate((position, velocity))

    def _keplerian_to_equinoctial(self):
        # Walker et al, Celestial Mechanics 36, p. 409
        a, e, i, raan, w, nu = self.elements
        longitude_of_periapsis = raan + w
        tan_half_i = np.tan(i / 2)
        return np.array([
            a * (1 - e**2),
            e * np.cos(longitude_of_periapsis),
            e * np.sin(longitude_of_periapsis),
            tan_half_i * np.cos(raan),
            tan_half_i * np.sin(raan),
            longitude_of_periapsis + nu,
        ])

    def _cartesian_to_keplerian(self):
        """Flores & Fantino, Advances in Space Research 75, p. 4910."""
        rvec, vvec = self.elements[:3], self.elements[3:]
        hvec, evec = _momentum_and_eccentricity(rvec, vvec, self._mu)
        raan = np.arctan2(hvec[0], -hvec[1])
        # orthonormal in-plane basis starting at the ascending node
        node = np.array([np.cos(raan), np.sin(raan), 0.0])
        ahead = np.cross(hvec, node) / np.linalg.norm(hvec)

        a = 1.0 / (2.0 / np.linalg.norm(rvec) - np.dot(vvec, vvec) / self._mu)
        w = np.arctan2(np.dot(evec, ahead), np.dot(evec, node))
        nu = np.arctan2(np.dot(rvec, ahead), np.dot(rvec, node)) - w
        return np.array([a, np.linalg.norm(evec), _inclination(hvec), raan, w, nu])

    def _cartesian_to_equinoctial(self):
        rvec, vvec = self.elements[:3], self.elements[3:]
        hvec, evec = _momentum_and_eccentricity(rvec, vvec, self._mu)
        h_norm = np.linalg.norm(hvec)
        normal = hvec / h_norm
        h = -normal[1] / (1 + normal[2])
        k = normal[0] / (1 + normal[2])
        f_hat, g_hat = _equinoctial_axes(h, k)
        true_longitude = np.arctan2(np.dot(rvec, g_hat), np.dot(rvec, f_hat)) % (2 * np.pi)
        return np.array([h_norm**2 / self._mu, np.dot(evec, f_hat), np.dot(evec, g_hat),
                         h, k, true_longitude])

    def _equinoctial_to_keplerian(self):
        p, f, g, h, k, L = self.elements
        e_squared = f**2 + g**2
        raan = np.arctan2(k, h)
        w = np.arctan2(g * h - f * k, f * h + g * k)
        i = 2 * np.arctan(np.hypot(h, k))
        return np.array([p / (1 - e_squared), np.sqrt(e_squared), i, raan, w, L - raan - w])

    def _equinoctial_to_cartesian(self):
        p, f, g, h, k, L = self.elements
        f_hat, g_hat = _equinoctial_axes(h, k)
        cos_L, sin_L = np.cos(L), np.sin(L)
        radius = p / (1 + f * cos_L + g * sin_L)
        speed = np.sqrt(self._mu / p)
        position = radius * (cos_L * f_hat + sin_L * g_hat)
        velocity = speed * ((f + cos_L) * g_hat - (g + sin_L) * f_hat)
        return np.concatenate((position, velocity))

    def to_cartesian(self):
        return self.convert_to(OEType.CARTESIAN)

    def to_keplerian(self):
        return self.convert_to(OEType.KEPLERIAN)

    def to_equinoctial(self):
        return self.convert_to(OEType.EQUINOCTIAL)

    def to_keplerian_array(self, position_angle=PositionAngle.TRUE):
        """
        Keplerian elements as an array with the anomaly slot expressed
        in the requested convention.

        Returns
        -------
        np.ndarray
            [a, e, i, Ω, ω, anomaly]
        """
        position_angle = self._parse_position_angle(position_angle)
        kep = np.array(self.to_keplerian().elements)
        e, nu = kep[1], kep[5]
        if position_angle == PositionAngle.ECCENTRIC:
            kep[5] = true_to_eccentric(nu, e)
        elif position_angle == PositionAngle.MEAN:
            kep[5] = true_to_mean(nu, e)
        return kep

    # ========== PROPERTY ACCESS ==========
    @property
    def mu(self):
        """Gravitational parameter [km³/s²]"""
        return self._mu

    @property
    def a(self):
        """Semi-major axis [km]"""
        return self._semi_major_axis_and_eccentricity()[0]

    @property
    def e(self):
        """Eccentricity"""
        return self._semi_major_axis_and_eccentricity()[1]

    @property
    def position(self):
        """Position vector [km] (Cartesian elements only)"""
        if self.element_type != OEType.CARTESIAN:
            raise AttributeError(
                f"position is only stored by Cartesian elements, not {self.element_type.value}; "
                f"use to_cartesian()")
        return self.elements[:3]

    @property
    def velocity(self):
        """Velocity vector [km/s] (Cartesian elements only)"""
        if self.element_type != OEType.CARTESIAN:
            raise AttributeError(
                f"velocity is only stored by Cartesian elements, not {self.element_type.value}; "
                f"use to_cartesian()")
        return self.elements[3:]

    # ========== ORBITAL PROPERTIES ==========
    def orbital_period(self):
        """
        Orbital period [s].

        Raises
        ------
        ValueError
            For parabolic and hyperbolic orbits
        """
        a, e = self._semi_major_axis_and_eccentricity()
        if e >= 1:
            raise ValueError(f"Orbit with e={e} is not closed and has no period")
        return 2 * np.pi * np.sqrt(a**3 / self._mu)

    def specific_energy(self):
        """Specific orbital energy v²/2 - μ/r [km²/s²]"""
        if self.element_type == OEType.KEPLERIAN:
            return -self._mu / (2 * self.elements[0])
        rvec, vvec = self._cartesian_vectors()
        return np.dot(vvec, vvec) / 2 - self._mu / np.linalg.norm(rvec)

    def specific_angular_momentum(self):
        """Magnitude of r x v [km²/s]"""
        if self.element_type == OEType.CARTESIAN:
            return np.linalg.norm(np.cross(self.elements[:3], self.elements[3:]))
        # h = sqrt(mu p) in both other representations
        if self.element_type == OEType.EQUINOCTIAL:
            p = self.elements[0]
        else:
            p = self.elements[0] * (1 - self.elements[1]**2)
        return np.sqrt(self._mu * p)

    def mean_motion(self):
        """
        Mean motion n = √(μ/|a|³) [rad/s].

        Defined for hyperbolic orbits as well, where it scales the
        hyperbolic mean anomaly.
        """
        a, e = self._semi_major_axis_and_eccentricity()
        if abs(e - 1) < config.SNAP_TO_CIRCULAR:
            raise ValueError("Mean motion undefined for parabolic orbits")
        return np.sqrt(self._mu / abs(a)**3)

    # ========== UTILITY METHODS ==========
    def copy(self):
        return OrbitalElements(self.elements.copy(), self.element_type,
                               validate=False, mu=self._mu)

    def _semi_major_axis_and_eccentricity(self):
        if self.element_type == OEType.KEPLERIAN:
            return self.elements[0], self.elements[1]
        if self.element_type == OEType.EQUINOCTIAL:
            p, f, g = self.elements[:3]
            e = np.hypot(f, g)
            return p / (1 - e**2), e
        kep = self.to_keplerian()
        return kep.elements[0], kep.elements[1]

    def _cartesian_vectors(self):
        cart = self.elements if self.element_type == OEType.CARTESIAN \
            else self.to_cartesian().elements
        return cart[:3], cart[3:]

    # ========== SPECIAL METHODS ==========
    def __len__(self):
        return 6

    def __getitem__(self, key):
        return self.elements[key]

    def __iter__(self):
        return iter(self.elements)

    def __repr__(self):
        return (f"OrbitalElements({self.elements.tolist()}, '{self.element_type.value}', "
                f"mu={self._mu})")

    def __str__(self):
        lines = [f"{self.element_type.name.capitalize()} elements:"]
        for (label, unit, angle), value in zip(_DISPLAY[self.element_type], self.elements):
            shown = np.degrees(value) if angle else value
            lines.append(f"  {label:<4} = {shown:14.6f} {unit}".rstrip())
        return "\n".join(lines)

    def __eq__(self, other):
        # tolerant, consistent with __hash__
        if not isinstance(other, OrbitalElements):
            return False
        return (self.element_type == other.element_type and
                np.allclose(self.elements, other.elements,
                            rtol=config.EQUALITY_RTOL, atol=config.EQUALITY_ATOL))

    def __hash__(self):
        rounded = tuple(round(float(x), config.HASH_DECIMALS) for x in self.elements)
        return hash((self.element_type, rounded))

    # ========== STATIC METHODS ==========
    @staticmethod
    def _parse_element_type(element_type):
        """OEType from an OEType or one of its string spellings."""
        if isinstance(element_type, OEType):
            return element_type
        if not isinstance(element_type, str):
            raise TypeError(f"element_type must be OEType or str, got {type(element_type)}")
        try:
            return _TYPE_ALIASES[element_type.lower()]
        except KeyError:
            raise ValueError(f"Unknown element type '{element_type}'. "
                             f"Use one of {sorted(_TYPE_ALIASES)}") from None

    @staticmethod
    def _parse_position_angle(position_angle):
        """PositionAngle from a PositionAngle or its string value."""
        if isinstance(position_angle, PositionAngle):
            return position_angle
        if not isinstance(position_angle, str):
            raise TypeError(f"position_angle must be PositionAngle or str, "
                            f"got {type(position_angle)}")
        try:
            return PositionAngle(position_angle.lower())
        except ValueError:
            raise ValueError(
                f"Unknown position angle '{position_angle}'. "
                f"Use: {[p.value for p in PositionAngle]}") from None

    @staticmethod
    def _from_named_params(kwargs):
        """Elements array and type from the complete set of named components of one type."""
        for type_name, names in _NAMED_COMPONENTS.items():
            if all(name in kwargs for name in names):
                return np.array([kwargs[name] for name in names], dtype=float), OEType[type_name]
        expected = "; ".join(f"{t.lower()}: {', '.join(n)}" for t, n in _NAMED_COMPONENTS.items())
        raise ValueError(f"Cannot infer the element type from {sorted(kwargs)} ({expected})")
