"""
Data structures for frame-tagged inertial measurements.

This module defines the value types shared by the kinematics predictor, the
gyroscope fitters and the robust calibrator:
    - BodyKinematics: specific force and angular rate resolved in body axes
    - ECEFFrame: body position, velocity and attitude in ECEF
    - FrameBodyKinematics: one calibration measurement (measured kinematics
      plus the frame pair and time interval that produced it)

All structures are frozen dataclasses holding NumPy arrays. Inputs are
converted to float64 copies on construction so callers cannot mutate a
measurement after it has been handed to a calibrator.

Frame Conventions:
    - b: Body frame (sensor frame)
    - e: Earth-Centered Earth-Fixed frame (WGS84)

Units:
    - specific force: m/s²
    - angular rate: rad/s
    - position: m, velocity: m/s
    - time interval: s

References:
    Groves, Principles of GNSS, Inertial, and Multisensor Integrated
    Navigation Systems, 2nd ed., Sections 2.5 and 5.2.
"""

from dataclasses import dataclass, field
from typing import Union

import numpy as np

ArrayOrFloat = Union[float, np.ndarray]


def _as_vector3(value, name: str) -> np.ndarray:
    array = np.array(value, dtype=np.float64).reshape(-1)
    if array.shape != (3,):
        raise ValueError(f"{name} must have 3 elements, got shape {array.shape}")
    return array


def _as_std(value, name: str) -> np.ndarray:
    array = np.array(value, dtype=np.float64).reshape(-1)
    if array.size == 1:
        array = np.repeat(array, 3)
    if array.shape != (3,):
        raise ValueError(
            f"{name} must be a scalar or have 3 elements, got shape {array.shape}"
        )
    if np.any(array < 0.0):
        raise ValueError(f"{name} must be non-negative, got {array}")
    return array


@dataclass(frozen=True)
class BodyKinematics:
    """
    Specific force and angular rate of the body resolved in body axes.

    Attributes:
        specific_force: Specific force f_ib_b, shape (3,). Units: m/s².
        angular_rate: Angular rate ω_ib_b, shape (3,). Units: rad/s.
    """

    specific_force: np.ndarray = field(default_factory=lambda: np.zeros(3))
    angular_rate: np.ndarray = field(default_factory=lambda: np.zeros(3))

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "specific_force", _as_vector3(self.specific_force, "specific_force")
        )
        object.__setattr__(
            self, "angular_rate", _as_vector3(self.angular_rate, "angular_rate")
        )

    @property
    def angular_rate_norm(self) -> float:
        return float(np.linalg.norm(self.angular_rate))

    @property
    def specific_force_norm(self) -> float:
        return float(np.linalg.norm(self.specific_force))


@dataclass(frozen=True)
class ECEFFrame:
    """
    Body position, velocity and attitude resolved in ECEF axes.

    The attitude is not checked for orthonormality here; the kinematics
    predictor rejects an invalid rotation when it is actually used, so a
    malformed frame can still be stored and later flagged as an outlier.

    Attributes:
        position: r_eb_e, shape (3,). Units: m.
        velocity: v_eb_e, shape (3,). Units: m/s.
        c_body_to_ecef: C_b_e, shape (3, 3).
    """

    position: np.ndarray
    velocity: np.ndarray
    c_body_to_ecef: np.ndarray

    def __post_init__(self) -> None:
        object.__setattr__(self, "position", _as_vector3(self.position, "position"))
        object.__setattr__(self, "velocity", _as_vector3(self.velocity, "velocity"))
        c = np.array(self.c_body_to_ecef, dtype=np.float64)
        if c.shape != (3, 3):
            raise ValueError(f"c_body_to_ecef must have shape (3, 3), got {c.shape}")
        object.__setattr__(self, "c_body_to_ecef", c)


@dataclass(frozen=True)
class FrameBodyKinematics:
    """
    One calibration measurement.

    Couples the kinematics measured by the IMU with the pair of ECEF frames
    (current and previous) from which the expected kinematics over the same
    time interval can be predicted.

    Attributes:
        kinematics: Measured body kinematics.
        frame: Body frame at the end of the interval.
        previous_frame: Body frame at the start of the interval.
        time_interval: Interval length in seconds (>= 0).
        specific_force_standard_deviation: Accelerometer noise std, scalar or
            per-axis (m/s²).
        angular_rate_standard_deviation: Gyroscope noise std, scalar or
            per-axis (rad/s). Used as fit weights, so it must be positive
            for the non-linear fitter.
    """

    kinematics: BodyKinematics
    frame: ECEFFrame
    previous_frame: ECEFFrame
    time_interval: float
    specific_force_standard_deviation: ArrayOrFloat = 1.0
    angular_rate_standard_deviation: ArrayOrFloat = 1.0

    def __post_init__(self) -> None:
        if self.time_interval < 0.0:
            raise ValueError(
                f"time_interval must be non-negative, got {self.time_interval}"
            )
        object.__setattr__(self, "time_interval", float(self.time_interval))
        object.__setattr__(
            self,
            "specific_force_standard_deviation",
            _as_std(
                self.specific_force_standard_deviation,
                "specific_force_standard_deviation",
            ),
        )
        object.__setattr__(
            self,
            "angular_rate_standard_deviation",
            _as_std(
                self.angular_rate_standard_deviation,
                "angular_rate_standard_deviation",
            ),
        )
