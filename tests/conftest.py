"""Shared fixtures for the troxia test suite."""

import pytest
import numpy as np
from troxia import (
    config, EARTH, OE, SpacecraftState, ODEIntegrator, GravityEquations,
    IntegratedPropagator, MainStateEquations,
)


@pytest.fixture(autouse=True)
def restore_config():
    """Every test starts and ends with default configuration."""
    config.reset()
    yield
    config.reset()


@pytest.fixture(scope="session")
def earth_equations():
    """Point mass Earth equations, compiled once for the whole session."""
    return GravityEquations(EARTH, compile=True)


@pytest.fixture
def leo_orbit():
    """Inclined, slightly eccentric LEO orbit in Cartesian elements."""
    kep = OE(a=7000.0, e=0.01, i=0.5, omega=0.3, w=0.2, nu=0.1, mu=EARTH.mu)
    return kep.to_cartesian()


@pytest.fixture
def leo_state(leo_orbit):
    return SpacecraftState(leo_orbit, date=0.0, mass=500.0)


@pytest.fixture
def leo_period(leo_orbit):
    return leo_orbit.orbital_period()


@pytest.fixture
def integrator():
    return ODEIntegrator('DOP853', rtol=1e-10, atol=1e-10)


@pytest.fixture
def propagator(integrator, earth_equations, leo_state):
    prop = IntegratedPropagator(integrator, earth_equations)
    prop.reset_initial_state(leo_state)
    return prop


class NumpyTwoBody(MainStateEquations):
    """Point mass equations in plain numpy, for tests needing custom behavior."""

    def __init__(self, mu=EARTH.mu, fail_after=None):
        self.mu = mu
        self.fail_after = fail_after
        self.init_calls = 0
        self.evaluations = 0

    def init(self, initial_state, target):
        self.init_calls += 1

    def compute_derivatives(self, state):
        self.evaluations += 1
        if self.fail_after is not None and self.evaluations > self.fail_after:
            raise ValueError("force model evaluation failed")
        r = np.asarray(state.orbit.elements[:3])
        v = np.asarray(state.orbit.elements[3:])
        a = -self.mu * r / np.linalg.norm(r)**3
        return np.concatenate((v, a, [0.0]))


@pytest.fixture
def two_body():
    """Fresh numpy point mass equations."""
    return NumpyTwoBody()
