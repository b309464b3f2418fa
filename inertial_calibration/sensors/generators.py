"""
Synthetic gyroscope calibration measurements.

This module generates frame-tagged measurements for testing and examples:
    1. Pick a geodetic position and a random body attitude (previous frame)
    2. Rotate and accelerate the body over one time interval (current frame)
    3. Predict the true kinematics between both frames
    4. Distort the true angular rate with a known gyroscope error model

Gyroscope error model:
    Ω_meas = b_g + (I + M_g) Ω_true + G_g f_true + n_g

    where b_g is the gyroscope bias, M_g the scale factor and cross-coupling
    matrix, G_g the g-dependent cross-bias matrix and n_g white noise.

Outliers are produced by adding an error of bounded magnitude in a random
direction to the measured angular rate, so every outlier is guaranteed to lie
at least `outlier_error_range[0]` rad/s away from the true model.

Usage:
    >>> from inertial_calibration.sensors import IMUErrors, generate_measurements
    >>> errors = IMUErrors(bias_g=[1e-4, -2e-4, 3e-4])
    >>> rng = np.random.default_rng(42)
    >>> measurements, outliers = generate_measurements(50, errors, rng=rng)
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np

from inertial_calibration.coords.rotations import euler_to_rotation_matrix
from inertial_calibration.coords.transforms import ned_to_ecef_frame
from inertial_calibration.sensors.kinematics import estimate_kinematics
from inertial_calibration.sensors.types import (
    BodyKinematics,
    ECEFFrame,
    FrameBodyKinematics,
)

# Default sampling interval of the generated measurements (s).
DEFAULT_TIME_INTERVAL = 0.02


@dataclass(frozen=True)
class IMUErrors:
    """
    Known gyroscope errors applied to true kinematics.

    Attributes:
        bias_g: Gyroscope bias b_g, shape (3,). Units: rad/s.
        mg: Scale factor and cross-coupling matrix M_g, shape (3, 3).
        gg: G-dependent cross-bias matrix G_g, shape (3, 3). Units: rad/s per m/s².
        gyro_noise_std: Per-axis gyroscope white noise std (rad/s).
        accel_noise_std: Per-axis accelerometer white noise std (m/s²).
    """

    bias_g: np.ndarray = field(default_factory=lambda: np.zeros(3))
    mg: np.ndarray = field(default_factory=lambda: np.zeros((3, 3)))
    gg: np.ndarray = field(default_factory=lambda: np.zeros((3, 3)))
    gyro_noise_std: float = 0.0
    accel_noise_std: float = 0.0

    def __post_init__(self) -> None:
        bias_g = np.array(self.bias_g, dtype=np.float64).reshape(-1)
        if bias_g.shape != (3,):
            raise ValueError(f"bias_g must have 3 elements, got shape {bias_g.shape}")
        mg = np.array(self.mg, dtype=np.float64)
        gg = np.array(self.gg, dtype=np.float64)
        if mg.shape != (3, 3):
            raise ValueError(f"mg must have shape (3, 3), got {mg.shape}")
        if gg.shape != (3, 3):
            raise ValueError(f"gg must have shape (3, 3), got {gg.shape}")
        if self.gyro_noise_std < 0 or self.accel_noise_std < 0:
            raise ValueError("noise standard deviations must be non-negative")
        object.__setattr__(self, "bias_g", bias_g)
        object.__setattr__(self, "mg", mg)
        object.__setattr__(self, "gg", gg)


def generate_measured_kinematics(
    true_kinematics: BodyKinematics,
    errors: IMUErrors,
    rng: Optional[np.random.Generator] = None,
) -> BodyKinematics:
    """
    Apply the gyroscope error model to true kinematics.

    Args:
        true_kinematics: Error-free body kinematics.
        errors: Known IMU errors.
        rng: Random generator used for noise. Required only when a noise
             std is non-zero.

    Returns:
        Measured BodyKinematics.
    """
    if rng is None:
        rng = np.random.default_rng()

    omega = true_kinematics.angular_rate
    f = true_kinematics.specific_force

    measured_rate = errors.bias_g + (np.eye(3) + errors.mg) @ omega + errors.gg @ f
    measured_force = f.copy()

    if errors.gyro_noise_std > 0:
        measured_rate = measured_rate + rng.normal(0.0, errors.gyro_noise_std, 3)
    if errors.accel_noise_std > 0:
        measured_force = measured_force + rng.normal(0.0, errors.accel_noise_std, 3)

    return BodyKinematics(specific_force=measured_force, angular_rate=measured_rate)


def ned_frame_to_ecef(
    latitude: float,
    longitude: float,
    height: float,
    roll: float,
    pitch: float,
    yaw: float,
    velocity_ned: Optional[np.ndarray] = None,
) -> ECEFFrame:
    """
    Build an ECEF frame from a geodetic position and NED attitude.

    Args:
        latitude: Latitude in radians.
        longitude: Longitude in radians.
        height: Height above the WGS84 ellipsoid (m).
        roll: Roll in radians.
        pitch: Pitch in radians.
        yaw: Yaw in radians.
        velocity_ned: Velocity resolved in NED axes (m/s). Defaults to zero.

    Returns:
        ECEFFrame with position, velocity and body-to-ECEF attitude.
    """
    if velocity_ned is None:
        velocity_ned = np.zeros(3)
    C_b_n = euler_to_rotation_matrix(roll, pitch, yaw)
    r_e, v_e, C_b_e = ned_to_ecef_frame(
        latitude, longitude, height, np.asarray(velocity_ned, dtype=np.float64), C_b_n
    )
    return ECEFFrame(position=r_e, velocity=v_e, c_body_to_ecef=C_b_e)


def random_frame_pair(
    rng: np.random.Generator,
    time_interval: float = DEFAULT_TIME_INTERVAL,
    max_angle_step_deg: float = 2.0,
    max_speed: float = 2.0,
    max_speed_step: float = 0.2,
) -> Tuple[ECEFFrame, ECEFFrame]:
    """
    Draw a random (previous_frame, frame) pair one time interval apart.

    The previous frame has a random position, attitude and NED velocity. The
    current frame rotates each Euler angle by up to `max_angle_step_deg` and
    changes each velocity component by up to `max_speed_step` m/s.

    Returns:
        Tuple (previous_frame, frame).
    """
    lat = np.deg2rad(rng.uniform(-90.0, 90.0))
    lon = np.deg2rad(rng.uniform(-180.0, 180.0))
    height = rng.uniform(-50.0, 50.0)

    roll, pitch, yaw = np.deg2rad(rng.uniform(-180.0, 180.0, 3))
    # Keep pitch away from gimbal lock
    pitch = 0.5 * pitch
    v_ned = rng.uniform(-max_speed, max_speed, 3)
    previous_frame = ned_frame_to_ecef(lat, lon, height, roll, pitch, yaw, v_ned)

    d_roll, d_pitch, d_yaw = np.deg2rad(
        rng.uniform(-max_angle_step_deg, max_angle_step_deg, 3)
    )
    new_v_ned = v_ned + rng.uniform(-max_speed_step, max_speed_step, 3)
    frame = ned_frame_to_ecef(
        lat,
        lon,
        height,
        roll + d_roll,
        pitch + d_pitch,
        yaw + d_yaw,
        new_v_ned,
    )
    # Move the body along its mean velocity over the interval
    position = previous_frame.position + 0.5 * (
        previous_frame.velocity + frame.velocity
    ) * time_interval
    frame = ECEFFrame(
        position=position, velocity=frame.velocity, c_body_to_ecef=frame.c_body_to_ecef
    )

    return previous_frame, frame


def generate_measurements(
    num_measurements: int,
    errors: IMUErrors,
    rng: Optional[np.random.Generator] = None,
    time_interval: float = DEFAULT_TIME_INTERVAL,
    outlier_ratio: float = 0.0,
    outlier_error_range: Tuple[float, float] = (0.05, 0.5),
    angular_rate_standard_deviation: Optional[float] = None,
    specific_force_standard_deviation: float = 1e-3,
    max_angle_step_deg: float = 2.0,
) -> Tuple[List[FrameBodyKinematics], np.ndarray]:
    """
    Generate a measurement set with a known fraction of outliers.

    Args:
        num_measurements: Number of measurements to generate.
        errors: Gyroscope error model applied to every measurement.
        rng: Random generator. Defaults to an unseeded generator.
        time_interval: Interval between frame pairs (s).
        outlier_ratio: Fraction of measurements to corrupt, in [0, 1).
        outlier_error_range: (min, max) norm of the error added to outliers
            in rad/s.
        angular_rate_standard_deviation: Std stored in each measurement.
            Defaults to errors.gyro_noise_std, or 1e-4 rad/s when noise-free.
        specific_force_standard_deviation: Std stored in each measurement.
        max_angle_step_deg: Maximum Euler angle change per interval.

    Returns:
        Tuple (measurements, outlier_mask) where outlier_mask[i] is True for
        corrupted measurements.

    Raises:
        ValueError: If num_measurements < 1 or the outlier settings are invalid.
    """
    if num_measurements < 1:
        raise ValueError(f"num_measurements must be >= 1, got {num_measurements}")
    if not 0.0 <= outlier_ratio < 1.0:
        raise ValueError(f"outlier_ratio must be in [0, 1), got {outlier_ratio}")
    low, high = outlier_error_range
    if low <= 0.0 or high < low:
        raise ValueError(f"invalid outlier_error_range {outlier_error_range}")

    if rng is None:
        rng = np.random.default_rng()
    if angular_rate_standard_deviation is None:
        angular_rate_standard_deviation = (
            errors.gyro_noise_std if errors.gyro_noise_std > 0 else 1e-4
        )

    num_outliers = int(round(outlier_ratio * num_measurements))
    outlier_mask = np.zeros(num_measurements, dtype=bool)
    if num_outliers > 0:
        outlier_mask[rng.choice(num_measurements, num_outliers, replace=False)] = True

    measurements = []
    for i in range(num_measurements):
        previous_frame, frame = random_frame_pair(
            rng, time_interval, max_angle_step_deg=max_angle_step_deg
        )
        true_kinematics = estimate_kinematics(time_interval, frame, previous_frame)
        measured = generate_measured_kinematics(true_kinematics, errors, rng)

        if outlier_mask[i]:
            direction = rng.normal(size=3)
            direction /= np.linalg.norm(direction)
            magnitude = rng.uniform(low, high)
            measured = BodyKinematics(
                specific_force=measured.specific_force,
                angular_rate=measured.angular_rate + magnitude * direction,
            )

        measurements.append(
            FrameBodyKinematics(
                kinematics=measured,
                frame=frame,
                previous_frame=previous_frame,
                time_interval=time_interval,
                specific_force_standard_deviation=specific_force_standard_deviation,
                angular_rate_standard_deviation=angular_rate_standard_deviation,
            )
        )

    return measurements, outlier_mask
