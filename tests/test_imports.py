"""Smoke tests to verify package imports work."""

def test_package_imports():
    """Test that all main classes can be imported."""
    from troxia import (OrbitalElements, SpacecraftState, IntegratedPropagator,
                        IntegratedEphemeris, ODEIntegrator)
    assert OrbitalElements is not None
    assert SpacecraftState is not None
    assert IntegratedPropagator is not None
    assert IntegratedEphemeris is not None
    assert ODEIntegrator is not None

def test_version_exists():
    """Test that version is defined."""
    import troxia
    assert hasattr(troxia, '__version__')
    assert troxia.__version__ == "0.1.0"

def test_all_exports_resolve():
    """Every name in __all__ is importable."""
    import troxia
    for name in troxia.__all__:
        assert getattr(troxia, name) is not None

def test_can_create_orbital_elements():
    """Test basic OrbitalElements creation."""
    from troxia import OrbitalElements
    oe = OrbitalElements([7000,0.01,0.1,0,0,0],'kep')
    assert oe.a == 7000

def test_can_create_state():
    """Test basic SpacecraftState creation."""
    from troxia import OrbitalElements, SpacecraftState, config
    oe = OrbitalElements([7000,0.01,0.1,0,0,0],'kep')
    state = SpacecraftState(oe)
    assert state.mass == config.DEFAULT_MASS
    assert state.date == 0.0

def test_earth_constants():
    """Test predefined Earth parameters."""
    from troxia import EARTH
    assert EARTH.mu == 3.986004415e5
