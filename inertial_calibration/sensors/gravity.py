"""
ECEF gravity model.

This module implements the J2 gravitational model of Groves Eq. (2.142),
combined with the centrifugal acceleration of the rotating Earth, giving the
acceleration due to gravity g_b_e resolved in ECEF axes at an arbitrary
ECEF position.

    γ = -μ/r³ · ( r + 1.5·J2·(R0/r)² · [(1 - 5z²/r²)x, (1 - 5z²/r²)y, (3 - 5z²/r²)z] )
    g = γ + ω_ie² · [x, y, 0]

This module is used by:
    - Expected kinematics prediction (specific force = dv/dt - g + Coriolis)
    - Synthetic measurement generation

Design Philosophy:
    - Single source of truth for Earth constants used by the predictor
    - Positions at the Earth's centre return a zero vector instead of NaN

References:
    Groves, Principles of GNSS, Inertial, and Multisensor Integrated
    Navigation Systems, 2nd ed., Section 2.4.7.
"""

import numpy as np

from inertial_calibration.coords.transforms import WGS84_A

# WGS84 Earth gravitational constant (m³/s²)
EARTH_GRAVITATIONAL_CONSTANT = 3.986004418e14

# Second gravitational constant
EARTH_SECOND_GRAVITATIONAL_CONSTANT = 1.082627e-3

# Earth rotation rate (rad/s)
EARTH_ROTATION_RATE = 7.292115e-5


def ecef_gravity(position: np.ndarray) -> np.ndarray:
    """
    Compute gravity (gravitation plus centrifugal term) in ECEF axes.

    Args:
        position: ECEF position r_eb_e, shape (3,). Units: m.

    Returns:
        Gravity vector g_b_e, shape (3,). Units: m/s².
        Zero vector when the position is the Earth's centre.

    Raises:
        ValueError: If position does not have 3 elements.

    Example:
        >>> from inertial_calibration.coords import llh_to_ecef
        >>> g = ecef_gravity(llh_to_ecef(0.0, 0.0, 0.0))
        >>> print(f"{np.linalg.norm(g):.4f} m/s²")  # ~9.78
    """
    r = np.asarray(position, dtype=np.float64).reshape(-1)
    if r.shape != (3,):
        raise ValueError(f"position must have 3 elements, got shape {r.shape}")

    mag_r = np.linalg.norm(r)
    if mag_r == 0.0:
        return np.zeros(3)

    z_scale = 5.0 * (r[2] / mag_r) ** 2
    j2_term = (
        1.5
        * EARTH_SECOND_GRAVITATIONAL_CONSTANT
        * (WGS84_A / mag_r) ** 2
        * np.array(
            [
                (1.0 - z_scale) * r[0],
                (1.0 - z_scale) * r[1],
                (3.0 - z_scale) * r[2],
            ]
        )
    )
    gamma = -EARTH_GRAVITATIONAL_CONSTANT / mag_r**3 * (r + j2_term)

    centrifugal = EARTH_ROTATION_RATE**2 * np.array([r[0], r[1], 0.0])
    return gamma + centrifugal
