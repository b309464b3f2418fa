"""
Save and load frame-based gyroscope measurements as NumPy .npz archives.

Archive layout (N measurements):
    angular_rate, specific_force: measured kinematics, (N, 3)
    position, velocity, c_body_to_ecef: current frames, (N, 3) / (N, 3, 3)
    previous_position, previous_velocity, previous_c_body_to_ecef:
        previous frames, same shapes
    time_interval: (N,)
    specific_force_std, angular_rate_std: per-axis standard deviations, (N, 3)
"""

from pathlib import Path
from typing import List, Sequence, Union

import numpy as np

from inertial_calibration.sensors.types import (
    BodyKinematics,
    ECEFFrame,
    FrameBodyKinematics,
)

_KEYS = (
    "angular_rate",
    "specific_force",
    "position",
    "velocity",
    "c_body_to_ecef",
    "previous_position",
    "previous_velocity",
    "previous_c_body_to_ecef",
    "time_interval",
    "specific_force_std",
    "angular_rate_std",
)


def save_measurements(
    path: Union[str, Path], measurements: Sequence[FrameBodyKinematics]
) -> None:
    """Write measurements to a compressed .npz archive."""
    measurements = list(measurements)
    np.savez_compressed(
        path,
        angular_rate=np.array([m.kinematics.angular_rate for m in measurements]),
        specific_force=np.array([m.kinematics.specific_force for m in measurements]),
        position=np.array([m.frame.position for m in measurements]),
        velocity=np.array([m.frame.velocity for m in measurements]),
        c_body_to_ecef=np.array([m.frame.c_body_to_ecef for m in measurements]),
        previous_position=np.array([m.previous_frame.position for m in measurements]),
        previous_velocity=np.array([m.previous_frame.velocity for m in measurements]),
        previous_c_body_to_ecef=np.array(
            [m.previous_frame.c_body_to_ecef for m in measurements]
        ),
        time_interval=np.array([m.time_interval for m in measurements]),
        specific_force_std=np.array(
            [m.specific_force_standard_deviation for m in measurements]
        ),
        angular_rate_std=np.array(
            [m.angular_rate_standard_deviation for m in measurements]
        ),
    )


def load_measurements(path: Union[str, Path]) -> List[FrameBodyKinematics]:
    """
    Read measurements written by save_measurements.

    Raises:
        ValueError: If the archive lacks a required array.
    """
    with np.load(path) as data:
        missing = [key for key in _KEYS if key not in data.files]
        if missing:
            raise ValueError(f"{path} is missing arrays: {missing}")
        arrays = {key: data[key] for key in _KEYS}

    measurements = []
    for i in range(len(arrays["time_interval"])):
        measurements.append(
            FrameBodyKinematics(
                kinematics=BodyKinematics(
                    specific_force=arrays["specific_force"][i],
                    angular_rate=arrays["angular_rate"][i],
                ),
                frame=ECEFFrame(
                    position=arrays["position"][i],
                    velocity=arrays["velocity"][i],
                    c_body_to_ecef=arrays["c_body_to_ecef"][i],
                ),
                previous_frame=ECEFFrame(
                    position=arrays["previous_position"][i],
                    velocity=arrays["previous_velocity"][i],
                    c_body_to_ecef=arrays["previous_c_body_to_ecef"][i],
                ),
                time_interval=float(arrays["time_interval"][i]),
                specific_force_standard_deviation=arrays["specific_force_std"][i],
                angular_rate_standard_deviation=arrays["angular_rate_std"][i],
            )
        )
    return measurements
