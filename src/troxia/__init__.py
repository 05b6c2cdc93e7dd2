"""
Troxia: Numerical Orbit Propagation Core

A Python package integrating spacecraft states together with additional
states (variational equations, user quantities), with event detection,
step handlers and interpolated ephemerides.
"""

import logging

# Configuration
from .config import config, temp_config

# Errors
from .errors import (
    TroxiaError,
    ConfigurationError,
    MissingInitialStateError,
    NameConflictError,
    UnsupportedMapperError,
    MissingAdditionalStateError,
    PhysicalInvariantError,
    NonPositiveMassError,
    InconsistentEpochError,
    SingularRepresentationError,
    IntegrationError,
    DimensionMismatchError,
    EphemerisRangeError,
)

# Core classes
from .orbital_elements import OrbitalElements, OrbitalElements as OE, OEType, PositionAngle
from .bodies import BodyParams, AtmoParams
from .attitudes import Attitude, AttitudeProvider, InertialProvider
from .state import SpacecraftState, PropagationType
from .mapper import StateMapper
from .integrator import ODEIntegrator, Action, DenseOutputModel, IntegratorSession
from .generators import IntegrableGenerator, AdditionalStateProvider, GeneratorRegistry
from .events import (EventDetector, DateDetector, FunctionalDetector, ImpulseManeuver,
                     EventRecorder, stop_on_event, continue_on_event, reset_state_on_event)
from .handlers import StepHandler, StepInterpolator, FixedStepHandler, StepNormalizer
from .dynamics import MainStateEquations, GravityEquations, StateTransitionGenerator
from .ephemeris import IntegratedEphemeris
from .propagator import IntegratedPropagator

# Commonly-used celestial bodies
from .bodies import EARTH, MOON, MARS, SUN

# Standard atmosphere model
from .bodies import EARTH_STD_ATMO

# Package metadata
__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

# Define what gets imported with "from troxia import *"
__all__ = [
    # Configuration
    "config",
    "temp_config",
    # Errors
    "TroxiaError",
    "ConfigurationError",
    "MissingInitialStateError",
    "NameConflictError",
    "UnsupportedMapperError",
    "MissingAdditionalStateError",
    "PhysicalInvariantError",
    "NonPositiveMassError",
    "InconsistentEpochError",
    "SingularRepresentationError",
    "IntegrationError",
    "DimensionMismatchError",
    "EphemerisRangeError",
    # Classes
    "OrbitalElements",
    "OEType",
    "PositionAngle",
    "BodyParams",
    "AtmoParams",
    "Attitude",
    "AttitudeProvider",
    "InertialProvider",
    "SpacecraftState",
    "PropagationType",
    "StateMapper",
    "ODEIntegrator",
    "Action",
    "DenseOutputModel",
    "IntegratorSession",
    "IntegrableGenerator",
    "AdditionalStateProvider",
    "GeneratorRegistry",
    "EventDetector",
    "DateDetector",
    "FunctionalDetector",
    "ImpulseManeuver",
    "EventRecorder",
    "StepHandler",
    "StepInterpolator",
    "FixedStepHandler",
    "StepNormalizer",
    "MainStateEquations",
    "GravityEquations",
    "StateTransitionGenerator",
    "IntegratedEphemeris",
    "IntegratedPropagator",
    # Event handlers
    "stop_on_event",
    "continue_on_event",
    "reset_state_on_event",
    # Abbreviations
    "OE",
    # Constants
    "EARTH",
    "MOON",
    "MARS",
    "SUN",
    "EARTH_STD_ATMO",
]
