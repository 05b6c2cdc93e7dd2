'''Equations of motion for the main state and variational equations
MainStateEquations, GravityEquations and StateTransitionGenerator definitions'''

import logging
from typing import Optional
import numpy as np
import heyoka as hy
from .bodies import BodyParams, AtmoParams
from .config import config
from .errors import PhysicalInvariantError, UnsupportedMapperError
from .generators import IntegrableGenerator
from .orbital_elements import OEType
from .utils import Timer, validation_error

logger = logging.getLogger(__name__)


class MainStateEquations:
    """
    Aggregated rates of the 7 primary components.

    The propagator calls ``compute_derivatives`` once per evaluation with
    a state whose orbit is expressed in the propagator's representation,
    and expects rates in that same representation, mass rate last.
    """

    def init(self, initial_state, target):
        pass

    def compute_derivatives(self, state):
        raise NotImplementedError


class GravityEquations(MainStateEquations):
    """
    Point mass gravity with optional J2 and drag, in Cartesian coordinates.

    The equations are built symbolically with heyoka over the variables
    (x, y, z, vx, vy, vz, m) and compiled into a function of the primary
    array. Mass is constant (no thrust), but drag depends on it.

    Parameters
    ----------
    body : BodyParams
        Central body
    perturbations : tuple of str, optional
        Subset of ("J2", "drag")
    atmosphere : AtmoParams, optional
        Exponential atmosphere, required for drag
    drag_area_coeff : float, optional
        Drag coefficient times reference area [m²], required for drag
    compile : bool, optional
        Compile immediately (default config.DEFAULT_COMPILE); otherwise
        compilation happens at first use

    Raises
    ------
    ValueError
        If perturbations are unknown, duplicated or lack their parameters

    Notes
    -----
    Propagators using these equations must use the Cartesian orbit type;
    ``init`` raises UnsupportedMapperError otherwise.
    """
    # currently implemented perturbations
    _VALID_PERTURBATIONS = frozenset(("J2", "drag"))

    # ========== CONSTRUCTION ==========
    def __init__(self, body: BodyParams, perturbations: tuple = (),
                 atmosphere: Optional[AtmoParams] = None,
                 drag_area_coeff: Optional[float] = None,
                 compile: Optional[bool] = None):
        self._validate_params(body, perturbations, atmosphere, drag_area_coeff)

        self._body = body
        self._perturbations = tuple(perturbations)
        self._atmosphere = atmosphere
        self._drag_area_coeff = None if drag_area_coeff is None else float(drag_area_coeff)

        self._vars = hy.make_vars("x", "y", "z", "vx", "vy", "vz", "m")
        self._rates = self._build_eom(*self._vars)
        self._pars = (np.array([self._drag_area_coeff]) if "drag" in self._perturbations
                      else None)
        self._cfunc = None
        self._jacobian_cfunc = None

        if config.DEFAULT_COMPILE if compile is None else compile:
            self.compile()

    # ========== VALIDATION ==========
    @staticmethod
    def _validate_params(body, perturbations, atmosphere, drag_area_coeff):
        for pert in perturbations:
            if pert not in GravityEquations._VALID_PERTURBATIONS:
                raise ValueError(
                    f"Unknown perturbation '{pert}'. "
                    f"Valid options: {GravityEquations._VALID_PERTURBATIONS}"
                )

        if len(perturbations) != len(set(perturbations)):
            raise ValueError(f"Duplicate perturbations found: {perturbations}")

        if "J2" in perturbations and body.J2 is None:
            raise ValueError("J2 perturbation requested but body.J2 is None")

        if "drag" in perturbations:
            if atmosphere is None:
                raise ValueError("drag perturbation requested but atmosphere is None")
            if body.rotation_rate is None:
                raise ValueError("drag perturbation requires body.rotation_rate")
            if drag_area_coeff is None or drag_area_coeff <= 0:
                raise ValueError(
                    f"drag perturbation requires a positive drag_area_coeff, "
                    f"got {drag_area_coeff}")

    # ========== PROPERTY ACCESS ==========
    @property
    def body(self) -> BodyParams:
        return self._body

    @property
    def perturbations(self) -> tuple:
        return self._perturbations

    @property
    def atmosphere(self) -> Optional[AtmoParams]:
        return self._atmosphere

    @property
    def drag_area_coeff(self) -> Optional[float]:
        return self._drag_area_coeff

    @property
    def rates(self):
        """Symbolic rates of (x, y, z, vx, vy, vz, m)"""
        return list(self._rates)

    @property
    def is_compiled(self) -> bool:
        return self._cfunc is not None

    # ========== SYMBOLIC EQUATIONS ==========
    def _build_eom(self, x, y, z, vx, vy, vz, m):
        """
        Build symbolic rates for the state variables.

        Body and atmosphere parameters are hardcoded into the expressions;
        the drag coefficient times area is a runtime parameter (hy.par[0]).
        State vector order: [x, y, z, vx, vy, vz, m] (km, km/s, kg)
        """
        r = hy.sqrt(x**2 + y**2 + z**2)
        mu = self._body.mu

        a_total_x = -mu * x / r**3
        a_total_y = -mu * y / r**3
        a_total_z = -mu * z / r**3

        if "J2" in self._perturbations:
            a_J2_x, a_J2_y, a_J2_z = self._build_J2_perturbation(x, y, z, r, mu)
            a_total_x = a_total_x + a_J2_x
            a_total_y = a_total_y + a_J2_y
            a_total_z = a_total_z + a_J2_z

        if "drag" in self._perturbations:
            a_drag_x, a_drag_y, a_drag_z = self._build_drag_perturbation(
                x, y, z, vx, vy, vz, m, r)
            a_total_x = a_total_x + a_drag_x
            a_total_y = a_total_y + a_drag_y
            a_total_z = a_total_z + a_drag_z

        # no thrust: constant mass
        return [vx, vy, vz, a_total_x, a_total_y, a_total_z, 0.0 * m]

    def _build_J2_perturbation(self, x, y, z, r, mu):
        """Build J2 perturbation acceleration terms."""
        J2 = self._body.J2
        R = self._body.radius
        # Common factor: (3/2) * J2 * μ * R² / r⁵
        factor = 1.5 * J2 * mu * R**2 / r**5
        # a_J2 = factor * [x(5z²/r² - 1), y(5z²/r² - 1), z(5z²/r² - 3)]
        z2_r2 = z**2 / r**2

        a_J2_x = factor * x * (5.0 * z2_r2 - 1.0)
        a_J2_y = factor * y * (5.0 * z2_r2 - 1.0)
        a_J2_z = factor * z * (5.0 * z2_r2 - 3.0)

        return a_J2_x, a_J2_y, a_J2_z

    def _build_drag_perturbation(self, x, y, z, vx, vy, vz, m, r):
        """
        Build atmospheric drag perturbation.

        Uses exponential atmosphere model and accounts for body rotation.
        """
        rho0 = self._atmosphere.rho0  # kg/m³
        H = self._atmosphere.H  # m
        r0 = self._atmosphere.r0  # m
        omega = self._body.rotation_rate  # rad/s

        # Density will be kg/km³, scale height in km
        rho0_km = rho0 * 1e9
        H_km = H / 1000.0
        r0_km = r0 / 1000.0

        # ρ(r) = ρ₀ * exp(-(r - r₀)/H)
        rho = rho0_km * hy.exp(-(r - r0_km) / H_km)

        # v_rel = v_inertial - ω × r, rotation about z
        vx_rel = vx + omega * y
        vy_rel = vy - omega * x
        vz_rel = vz
        v_rel = hy.sqrt(vx_rel**2 + vy_rel**2 + vz_rel**2)

        # Drag coefficient * area [m²], converted to km²
        Cd_A_km = hy.par[0] / 1e6

        # a_drag = -(1/2) * ρ * (Cd*A/m) * v_rel * v⃗_rel
        drag_factor = -0.5 * rho * Cd_A_km / m * v_rel

        return drag_factor * vx_rel, drag_factor * vy_rel, drag_factor * vz_rel

    def _build_jacobian(self):
        """Symbolic ∂(ṙ, v̇)/∂(r, v), row major."""
        position_velocity = self._vars[:6]
        return [hy.diff(rate, var)
                for rate in self._rates[:6] for var in position_velocity]

    # ========== COMPILATION ==========
    def compile(self):
        """
        Compile the equations and their Jacobian if not already compiled.

        Returns
        -------
        self
            Returns self for method chaining
        """
        if self._cfunc is not None:
            return self
        label = "point mass"
        if self._perturbations:
            label += f" with {', '.join(self._perturbations)}"
        with Timer(verbose=False) as timer:
            self._cfunc = hy.cfunc(self._rates, vars=self._vars)
            self._jacobian_cfunc = hy.cfunc(self._build_jacobian(), vars=self._vars)
        logger.info(f"Compiled {label} equations in {timer.elapsed:.3f} s")
        return self

    def _evaluate(self, function, y):
        if self._pars is None:
            return function(y)
        return function(y, pars=self._pars)

    # ========== EVALUATION ==========
    @staticmethod
    def _check_representation(state):
        if state.orbit.element_type != OEType.CARTESIAN:
            raise UnsupportedMapperError(
                f"GravityEquations require Cartesian orbits, "
                f"got {state.orbit.element_type.value}")

    @staticmethod
    def _primary(state):
        return np.append(state.orbit.elements, state.mass)

    def init(self, initial_state, target):
        self._check_representation(initial_state)
        r = np.linalg.norm(initial_state.orbit.position)
        if r < self._body.radius:
            validation_error(
                f"Initial position is inside {self._body.name or 'the central body'}: "
                f"r={r:.3f} km < radius={self._body.radius} km",
                PhysicalInvariantError)
        self.compile()

    def rates_at(self, y):
        """Rates of a raw [x, y, z, vx, vy, vz, m] array."""
        self.compile()
        return np.asarray(self._evaluate(self._cfunc, np.asarray(y, dtype=float)))

    def jacobian_at(self, y):
        """6x6 Jacobian of position/velocity rates at a raw primary array."""
        self.compile()
        values = self._evaluate(self._jacobian_cfunc, np.asarray(y, dtype=float))
        return np.asarray(values).reshape(6, 6)

    def compute_derivatives(self, state):
        return self.rates_at(self._primary(state))

    def __repr__(self):
        perts = f", perturbations={self._perturbations}" if self._perturbations else ""
        return f"GravityEquations(body={self._body.name}{perts})"


class StateTransitionGenerator(IntegrableGenerator):
    """
    Variational equations of the position/velocity state.

    Integrates the 6x6 state transition matrix Φ(t, t0) as a 36-component
    additional state (row major), with dΦ/dt = A(t) Φ and A the Jacobian
    of the equations of motion. Estimators read partial derivatives of the
    state with respect to the initial state from it.

    Parameters
    ----------
    equations : GravityEquations
        Equations providing the symbolic Jacobian
    name : str, optional
        Additional state name (default "stm")

    Examples
    --------
    >>> stm = StateTransitionGenerator(equations)
    >>> propagator.add_integrable_generator(stm)
    >>> propagator.reset_initial_state(stm.initial_state_with_stm(state))
    >>> phi = stm.get_state_transition_matrix(propagator.propagate(3600.0))
    """

    DIMENSION = 36

    def __init__(self, equations, name="stm"):
        super().__init__(name, dimension=self.DIMENSION)
        self._equations = equations

    @property
    def equations(self):
        return self._equations

    def initial_state_with_stm(self, state):
        """Copy of ``state`` carrying Φ(t0, t0) = I."""
        return state.add_additional_state(self.name, np.eye(6).ravel())

    def get_state_transition_matrix(self, state):
        """Φ as a 6x6 array from a state carrying this generator's block."""
        return np.array(state.get_additional_state(self.name)).reshape(6, 6)

    def init(self, initial_state, target):
        GravityEquations._check_representation(initial_state)

    def compute_derivatives(self, state):
        A = self._equations.jacobian_at(GravityEquations._primary(state))
        phi = self.get_state_transition_matrix(state)
        return (A @ phi).ravel()
