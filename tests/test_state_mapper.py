"""
Test suite for the StateMapper class.

Tests cover:
- Round trips state -> array -> state for every supported representation
- Date offsets and exact target date snapping
- Unsupported parameter combinations and singular orbits
- Spacecraft state immutability and additional state access
"""

import pytest
import numpy as np
from scipy.spatial.transform import Rotation
from troxia import (
    StateMapper, SpacecraftState, OrbitalElements, OEType, PositionAngle,
    InertialProvider, Attitude, EARTH, UnsupportedMapperError, DimensionMismatchError,
    SingularRepresentationError, MissingAdditionalStateError, InconsistentEpochError,
)

ATOL_POS = 1e-7    # km
ATOL_VEL = 1e-10   # km/s


@pytest.fixture
def state(leo_orbit):
    return SpacecraftState(leo_orbit, date=120.0, mass=750.0)


class TestRoundtrip:
    """state_to_array followed by array_to_state recovers the state."""

    @pytest.mark.parametrize("orbit_type, angle", [
        (OEType.CARTESIAN, PositionAngle.TRUE),
        (OEType.KEPLERIAN, PositionAngle.TRUE),
        (OEType.KEPLERIAN, PositionAngle.ECCENTRIC),
        (OEType.KEPLERIAN, PositionAngle.MEAN),
        (OEType.EQUINOCTIAL, PositionAngle.TRUE),
    ])
    def test_roundtrip(self, state, orbit_type, angle):
        """Position, velocity, mass and date survive the round trip."""
        mapper = StateMapper(100.0, EARTH.mu, orbit_type, angle)
        primary, _ = mapper.state_to_array(state)
        assert primary.shape == (StateMapper.BASIC_DIMENSION,)
        assert primary[6] == 750.0

        back = mapper.array_to_state(state.date, primary)
        np.testing.assert_allclose(back.position, state.position, rtol=0, atol=ATOL_POS)
        np.testing.assert_allclose(back.velocity, state.velocity, rtol=0, atol=ATOL_VEL)
        assert back.mass == state.mass
        assert back.date == state.date
        assert back.orbit.element_type == orbit_type

    def test_cartesian_array_is_elements(self, state, leo_orbit):
        """Cartesian arrays hold the position and velocity directly."""
        mapper = StateMapper(0.0, EARTH.mu)
        primary, primary_dot = mapper.state_to_array(state)
        np.testing.assert_array_equal(primary[:6], leo_orbit.elements)
        assert primary_dot is None

    def test_derivatives_carried(self, state):
        """Derivatives come back when expressed in the mapper representation."""
        mapper = StateMapper(0.0, EARTH.mu)
        rates = np.arange(7.0)
        rebuilt = mapper.array_to_state(10.0, mapper.state_to_array(state)[0], rates)
        _, primary_dot = mapper.state_to_array(rebuilt)
        np.testing.assert_array_equal(primary_dot, rates)

        kep_mapper = mapper.replace(orbit_type='kep')
        assert kep_mapper.state_to_array(rebuilt)[1] is None

    def test_attitude_from_provider(self, state):
        """Rebuilt states take their attitude from the provider."""
        rotation = Rotation.from_euler('z', 30, degrees=True)
        mapper = StateMapper(0.0, EARTH.mu, attitude_provider=InertialProvider(rotation))
        back = mapper.array_to_state(5.0, mapper.state_to_array(state)[0])
        assert back.attitude.date == 5.0
        np.testing.assert_allclose(back.attitude.rotation.as_quat(), rotation.as_quat())

    def test_wrong_length(self):
        """Primary arrays must hold seven components."""
        mapper = StateMapper(0.0, EARTH.mu)
        with pytest.raises(DimensionMismatchError):
            mapper.array_to_state(0.0, np.zeros(6))


class TestDates:
    """Date <-> double mapping."""

    def test_offsets(self):
        """Doubles are offsets from the reference date."""
        mapper = StateMapper(1000.0, EARTH.mu)
        assert mapper.map_date_to_double(1250.0) == 250.0
        assert mapper.map_double_to_date(-50.0) == 950.0

    def test_snaps_to_given_date(self):
        """A target date whose offset matches is returned unchanged."""
        mapper = StateMapper(0.1, EARTH.mu)
        target = 0.3
        t = mapper.map_date_to_double(target)
        assert mapper.map_double_to_date(t, target) == target

    def test_no_snap_when_offset_differs(self):
        """A date whose offset differs is ignored."""
        mapper = StateMapper(0.0, EARTH.mu)
        assert mapper.map_double_to_date(10.0, 10.5) == 10.0


class TestUnsupported:
    """Rejected configurations and singular orbits."""

    @pytest.mark.parametrize("angle", ['eccentric', 'mean'])
    def test_equinoctial_needs_true_longitude(self, angle):
        with pytest.raises(UnsupportedMapperError, match="true longitude"):
            StateMapper(0.0, EARTH.mu, 'equi', angle)

    @pytest.mark.parametrize("mu", [np.nan, 0.0, -1.0])
    def test_invalid_mu(self, mu):
        with pytest.raises(UnsupportedMapperError):
            StateMapper(0.0, mu)

    def test_circular_orbit_keplerian_mapper(self):
        """Circular orbits cannot be mapped to Keplerian arrays."""
        circ = OrbitalElements([7000.0, 0.0, 0.5, 0.0, 0.0, 0.0], 'kep', mu=EARTH.mu)
        state = SpacecraftState(circ.to_cartesian())
        mapper = StateMapper(0.0, EARTH.mu, 'kep')
        with pytest.raises(SingularRepresentationError):
            mapper.state_to_array(state)

    def test_circular_orbit_equinoctial_mapper(self):
        """Equinoctial arrays handle circular orbits."""
        circ = OrbitalElements([7000.0, 0.0, 0.5, 0.0, 0.0, 0.0], 'kep', mu=EARTH.mu)
        state = SpacecraftState(circ.to_cartesian())
        primary, _ = StateMapper(0.0, EARTH.mu, 'equi').state_to_array(state)
        assert primary[0] == pytest.approx(7000.0)

    def test_replace_builds_new_mapper(self):
        """replace leaves the original mapper untouched."""
        mapper = StateMapper(0.0, EARTH.mu)
        other = mapper.replace(reference_date=60.0, orbit_type='kep')
        assert mapper.reference_date == 0.0
        assert mapper.orbit_type == OEType.CARTESIAN
        assert other.reference_date == 60.0
        assert other.orbit_type == OEType.KEPLERIAN


class TestSpacecraftState:
    """Immutable state snapshots."""

    def test_additional_states_read_only(self, state):
        """Additional states cannot be modified in place."""
        tagged = state.add_additional_state('tag', [1.0, 2.0])
        assert not state.has_additional_state('tag')
        with pytest.raises(ValueError):
            tagged.get_additional_state('tag')[0] = 5.0
        with pytest.raises(TypeError):
            tagged.additional_states['tag'] = np.zeros(2)

    def test_missing_additional_state(self, state):
        with pytest.raises(MissingAdditionalStateError, match="tag"):
            state.get_additional_state('tag')

    def test_with_mass(self, state):
        lighter = state.with_mass(700.0)
        assert lighter.mass == 700.0
        assert state.mass == 750.0
        assert lighter.orbit is state.orbit

    def test_attitude_epoch_checked(self, leo_orbit):
        """Attitude dates must match the state date."""
        with pytest.raises(InconsistentEpochError):
            SpacecraftState(leo_orbit, date=10.0, attitude=Attitude(0.0, 'EME2000'))

    def test_with_orbit_drops_derivatives(self, state):
        """Derivatives belong to the orbit they were computed for."""
        mapper = StateMapper(0.0, EARTH.mu)
        rebuilt = mapper.array_to_state(0.0, mapper.state_to_array(state)[0], np.ones(7))
        assert rebuilt.with_orbit(rebuilt.orbit).derivatives is None

    def test_mu_from_orbit(self, state):
        assert state.mu == EARTH.mu
