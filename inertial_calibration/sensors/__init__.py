"""
Inertial sensor models used for gyroscope calibration.

Modules:
    types: BodyKinematics, ECEFFrame and FrameBodyKinematics measurements
    gravity: ECEF gravity (J2 plus centrifugal term)
    kinematics: Expected kinematics between two ECEF frames
    generators: Synthetic measurements with a known error model and outliers
"""

from inertial_calibration.sensors.types import (
    BodyKinematics,
    ECEFFrame,
    FrameBodyKinematics,
)
from inertial_calibration.sensors.gravity import (
    EARTH_GRAVITATIONAL_CONSTANT,
    EARTH_ROTATION_RATE,
    EARTH_SECOND_GRAVITATIONAL_CONSTANT,
    ecef_gravity,
)
from inertial_calibration.sensors.kinematics import (
    estimate_kinematics,
    estimate_kinematics_batch,
)
from inertial_calibration.sensors.generators import (
    DEFAULT_TIME_INTERVAL,
    IMUErrors,
    generate_measured_kinematics,
    generate_measurements,
    ned_frame_to_ecef,
    random_frame_pair,
)

__all__ = [
    # Types
    "BodyKinematics",
    "ECEFFrame",
    "FrameBodyKinematics",
    # Gravity
    "EARTH_GRAVITATIONAL_CONSTANT",
    "EARTH_SECOND_GRAVITATIONAL_CONSTANT",
    "EARTH_ROTATION_RATE",
    "ecef_gravity",
    # Kinematics
    "estimate_kinematics",
    "estimate_kinematics_batch",
    # Generators
    "DEFAULT_TIME_INTERVAL",
    "IMUErrors",
    "generate_measured_kinematics",
    "generate_measurements",
    "ned_frame_to_ecef",
    "random_frame_pair",
]
