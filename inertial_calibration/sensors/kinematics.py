"""
Expected body kinematics from a pair of ECEF frames.

Given the body frame at two consecutive epochs, this module recovers the
specific force and angular rate that an ideal (error-free) IMU would have
measured over the interval. It is the inverse of the ECEF strapdown update:

    Attitude increment (Groves Eqs. (5.73), (2.145)):
        C_old_new = C_b_e(t)ᵀ · C_i_e(ω_ie·Δt) · C_b_e(t-Δt)
        α = ½ [C₂₃ - C₃₂, C₃₁ - C₁₃, C₁₂ - C₂₁] · θ / sin θ
        ω_ib_b = α / Δt

    Specific force (Groves Eq. (5.36)):
        f_ib_e = (v(t) - v(t-Δt)) / Δt - g(r) + 2 Ω_ie v(t-Δt)

    Average attitude over the interval (Groves Eqs. (5.84), (5.85)):
        C̄_b_e = C_b_e(t-Δt) · (I + (1-cos|α|)/|α|² [α×] + (1-sin|α|/|α|)/|α|² [α×]²)
                - ½ [ω_ie Δt ẑ ×] · C_b_e(t-Δt)
        f_ib_b = C̄_b_e⁻¹ f_ib_e

The calibrator uses this predictor to obtain the true angular rate and
specific force for every measurement once, before robust estimation starts.

References:
    Groves, Principles of GNSS, Inertial, and Multisensor Integrated
    Navigation Systems, 2nd ed., Sections 5.2 and 5.5.
"""

import numpy as np

from inertial_calibration.coords.rotations import (
    eci_to_ecef_rotation,
    is_valid_rotation_matrix,
    skew_symmetric,
)
from inertial_calibration.sensors.gravity import EARTH_ROTATION_RATE, ecef_gravity
from inertial_calibration.sensors.types import BodyKinematics, ECEFFrame

# Below this rotation angle the small-angle increment needs no rescaling (rad).
SCALING_THRESHOLD = 2e-5

# Below this increment norm the attitude is treated as constant (rad).
ALPHA_THRESHOLD = 1e-8


def estimate_kinematics(
    time_interval: float,
    frame: ECEFFrame,
    previous_frame: ECEFFrame,
) -> BodyKinematics:
    """
    Predict the body kinematics between two ECEF frames.

    Args:
        time_interval: Time between previous_frame and frame in seconds.
        frame: Body frame at the end of the interval.
        previous_frame: Body frame at the start of the interval.

    Returns:
        BodyKinematics with the specific force (m/s²) and angular rate (rad/s)
        resolved in body axes. A zero interval returns zero kinematics.

    Raises:
        ValueError: If time_interval is negative or either attitude is not a
            valid rotation matrix.

    Example:
        >>> k = estimate_kinematics(0.02, frame, previous_frame)
        >>> print(k.angular_rate)
    """
    if time_interval < 0.0:
        raise ValueError(f"time_interval must be non-negative, got {time_interval}")
    if not is_valid_rotation_matrix(frame.c_body_to_ecef):
        raise ValueError("frame attitude is not a valid rotation matrix")
    if not is_valid_rotation_matrix(previous_frame.c_body_to_ecef):
        raise ValueError("previous_frame attitude is not a valid rotation matrix")

    if time_interval == 0.0:
        return BodyKinematics()

    earth_angle = EARTH_ROTATION_RATE * time_interval
    c_earth = eci_to_ecef_rotation(earth_angle)

    c_be = frame.c_body_to_ecef
    old_c_be = previous_frame.c_body_to_ecef
    c_old_new = c_be.T @ c_earth @ old_c_be

    alpha = 0.5 * np.array(
        [
            c_old_new[1, 2] - c_old_new[2, 1],
            c_old_new[2, 0] - c_old_new[0, 2],
            c_old_new[0, 1] - c_old_new[1, 0],
        ]
    )

    cos_angle = np.clip(0.5 * (np.trace(c_old_new) - 1.0), -1.0, 1.0)
    angle = np.arccos(cos_angle)
    if angle > SCALING_THRESHOLD:
        alpha *= angle / np.sin(angle)

    angular_rate = alpha / time_interval

    # Specific force resolved in ECEF axes
    v = frame.velocity
    old_v = previous_frame.velocity
    g = ecef_gravity(frame.position)
    coriolis = 2.0 * skew_symmetric([0.0, 0.0, EARTH_ROTATION_RATE]) @ old_v
    f_ib_e = (v - old_v) / time_interval - g + coriolis

    # Average body-to-ECEF attitude over the interval
    ave_c_be = old_c_be.copy()
    alpha_norm = np.linalg.norm(alpha)
    if alpha_norm > ALPHA_THRESHOLD:
        alpha_skew = skew_symmetric(alpha)
        alpha_norm2 = alpha_norm**2
        value1 = (1.0 - np.cos(alpha_norm)) / alpha_norm2
        value2 = (1.0 - np.sin(alpha_norm) / alpha_norm) / alpha_norm2
        ave_c_be = ave_c_be @ (
            np.eye(3) + value1 * alpha_skew + value2 * alpha_skew @ alpha_skew
        )

    earth_skew = skew_symmetric([0.0, 0.0, earth_angle])
    ave_c_be = ave_c_be - 0.5 * earth_skew @ ave_c_be

    specific_force = np.linalg.solve(ave_c_be, f_ib_e)

    return BodyKinematics(specific_force=specific_force, angular_rate=angular_rate)


def estimate_kinematics_batch(measurements, predictor=estimate_kinematics):
    """
    Predict the expected kinematics of every measurement.

    Args:
        measurements: Sequence of FrameBodyKinematics.
        predictor: Callable (time_interval, frame, previous_frame) ->
            BodyKinematics. Defaults to estimate_kinematics.

    Returns:
        Tuple (true_rates, true_forces, valid):
            true_rates: Expected angular rates, shape (N, 3).
            true_forces: Expected specific forces, shape (N, 3).
            valid: Boolean mask, False where prediction failed (invalid
                attitude or singular average attitude). Failed rows are zero.
    """
    n = len(measurements)
    true_rates = np.zeros((n, 3))
    true_forces = np.zeros((n, 3))
    valid = np.ones(n, dtype=bool)

    for i, m in enumerate(measurements):
        try:
            k = predictor(m.time_interval, m.frame, m.previous_frame)
        except (ValueError, np.linalg.LinAlgError):
            valid[i] = False
            continue
        true_rates[i] = k.angular_rate
        true_forces[i] = k.specific_force

    return true_rates, true_forces, valid
