"""
Spacecraft attitude containers and providers.

Attitude is not integrated. It is derived from the orbit at every state
reconstruction by the attitude provider configured on the state mapper.
"""

from dataclasses import dataclass, field
import numpy as np
from scipy.spatial.transform import Rotation


@dataclass(frozen=True)
class Attitude:
    """
    Orientation of the spacecraft body frame at a date.

    Attributes
    ----------
    date : float
        Date of the attitude [s]
    frame : str
        Name of the reference frame the rotation is expressed in
    rotation : scipy.spatial.transform.Rotation
        Rotation from the reference frame to the body frame
    spin : np.ndarray
        Angular velocity of the body frame [rad/s]
    """
    date: float
    frame: str
    rotation: Rotation = field(default_factory=Rotation.identity)
    spin: np.ndarray = field(default_factory=lambda: np.zeros(3))

    def __post_init__(self):
        spin = np.array(self.spin, dtype=float)
        if spin.shape != (3,):
            raise ValueError(f"Spin must be a 3-vector, got shape {spin.shape}")
        spin.flags.writeable = False
        # frozen dataclass: bypass __setattr__ to store the normalized copy
        object.__setattr__(self, 'spin', spin)
        object.__setattr__(self, 'date', float(self.date))

    def with_date(self, date):
        """Same orientation and spin at another date."""
        return Attitude(date, self.frame, self.rotation, self.spin)


class AttitudeProvider:
    """Attitude law: computes the attitude for an orbit at a date."""

    def get_attitude(self, orbit, date, frame):
        raise NotImplementedError


class InertialProvider(AttitudeProvider):
    """
    Attitude law keeping a fixed orientation with respect to the frame.

    Parameters
    ----------
    rotation : scipy.spatial.transform.Rotation, optional
        Fixed rotation from the reference frame to the body frame.
        Defaults to identity (body axes aligned with the frame).
    """

    def __init__(self, rotation=None):
        self._rotation = Rotation.identity() if rotation is None else rotation

    @property
    def rotation(self):
        return self._rotation

    def get_attitude(self, orbit, date, frame):
        return Attitude(date, frame, self._rotation)

    def __repr__(self):
        return f"InertialProvider(quat={np.round(self._rotation.as_quat(), 6).tolist()})"
