"""Rotation matrices used by the frame and kinematics models.

This module provides the small set of rotation utilities the calibration
pipeline needs:
- Euler angles (roll-pitch-yaw, ZYX convention) to rotation matrix
- Skew-symmetric (cross product) matrices
- Validity checks for body-to-ECEF coordinate transformations
- Earth rotation (ECI to ECEF) over an elapsed angle

Conventions:
- Euler angles: [roll, pitch, yaw] in radians (ZYX/3-2-1 convention)
- Rotation matrices: 3x3 numpy arrays mapping body vectors into the
  destination frame, v_dst = R @ v_body

Reference: Groves, Principles of GNSS, Inertial, and Multisensor Integrated
Navigation Systems, Chapter 2.
"""

import numpy as np
from numpy.typing import NDArray

# Default tolerance used to decide whether a matrix is a proper rotation.
ROTATION_TOLERANCE = 1e-6


def euler_to_rotation_matrix(
    roll: float,
    pitch: float,
    yaw: float,
) -> NDArray[np.float64]:
    """Convert Euler angles to rotation matrix.

    Converts roll-pitch-yaw Euler angles (ZYX convention) to a 3x3
    rotation matrix that transforms vectors from body frame to the
    local navigation (NED) frame.

    Args:
        roll: Roll angle φ in radians (rotation about x-axis).
        pitch: Pitch angle θ in radians (rotation about y-axis).
        yaw: Yaw angle ψ in radians (rotation about z-axis).

    Returns:
        3x3 rotation matrix C_b_n such that v_nav = C_b_n @ v_body.

    Example:
        >>> R = euler_to_rotation_matrix(0.1, 0.2, 0.3)
        >>> print(f"Determinant (should be 1.0): {np.linalg.det(R):.6f}")
    """
    cr = np.cos(roll)
    sr = np.sin(roll)
    cp = np.cos(pitch)
    sp = np.sin(pitch)
    cy = np.cos(yaw)
    sy = np.sin(yaw)

    # ZYX (3-2-1) Euler angle rotation matrix
    R = np.array(
        [
            [cy * cp, cy * sp * sr - sy * cr, cy * sp * cr + sy * sr],
            [sy * cp, sy * sp * sr + cy * cr, sy * sp * cr - cy * sr],
            [-sp, cp * sr, cp * cr],
        ],
        dtype=np.float64,
    )

    return R


def skew_symmetric(v: NDArray[np.float64]) -> NDArray[np.float64]:
    """Build the skew-symmetric matrix [v×] such that [v×] @ u = v × u.

    Args:
        v: 3-vector.

    Returns:
        3x3 skew-symmetric matrix.

    Raises:
        ValueError: If v does not have 3 elements.
    """
    v = np.asarray(v, dtype=np.float64).reshape(-1)
    if v.shape != (3,):
        raise ValueError(f"Expected 3-vector, got shape {v.shape}")

    return np.array(
        [
            [0.0, -v[2], v[1]],
            [v[2], 0.0, -v[0]],
            [-v[1], v[0], 0.0],
        ],
        dtype=np.float64,
    )


def is_valid_rotation_matrix(
    R: NDArray[np.float64],
    tol: float = ROTATION_TOLERANCE,
) -> bool:
    """Check whether R is a proper rotation (orthonormal with det = +1).

    Args:
        R: Candidate matrix.
        tol: Absolute tolerance on R'R = I and det(R) = 1.

    Returns:
        True if R is a finite 3x3 proper rotation matrix.
    """
    R = np.asarray(R, dtype=np.float64)
    if R.shape != (3, 3) or not np.all(np.isfinite(R)):
        return False
    if not np.allclose(R.T @ R, np.eye(3), atol=tol):
        return False
    return abs(np.linalg.det(R) - 1.0) <= tol


def eci_to_ecef_rotation(angle: float) -> NDArray[np.float64]:
    """Rotation from ECI to ECEF axes after the Earth turned by `angle`.

    Implements Groves Eq. (2.145) with α = ω_ie·Δt:

        C_i_e = [ cos α   sin α   0 ]
                [-sin α   cos α   0 ]
                [ 0       0       1 ]

    Args:
        angle: Earth rotation angle in radians.

    Returns:
        3x3 rotation matrix.
    """
    ca = np.cos(angle)
    sa = np.sin(angle)
    return np.array(
        [
            [ca, sa, 0.0],
            [-sa, ca, 0.0],
            [0.0, 0.0, 1.0],
        ],
        dtype=np.float64,
    )
