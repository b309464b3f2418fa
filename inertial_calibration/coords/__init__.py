"""Rotations and frame conversions used to express measurement frames in ECEF."""

from inertial_calibration.coords.rotations import (
    eci_to_ecef_rotation,
    euler_to_rotation_matrix,
    is_valid_rotation_matrix,
    skew_symmetric,
)
from inertial_calibration.coords.transforms import (
    WGS84_A,
    WGS84_E2,
    llh_to_ecef,
    ned_to_ecef_frame,
    ned_to_ecef_rotation,
)

__all__ = [
    # Rotations
    "euler_to_rotation_matrix",
    "skew_symmetric",
    "is_valid_rotation_matrix",
    "eci_to_ecef_rotation",
    # Transforms
    "WGS84_A",
    "WGS84_E2",
    "llh_to_ecef",
    "ned_to_ecef_rotation",
    "ned_to_ecef_frame",
]
