"""
Measurement store for frame-based gyroscope calibration.

GyroscopeMeasurements holds an ordered, immutable sequence of
FrameBodyKinematics and exposes only its length and indexed access.
expected_samples() predicts the true kinematics of every measurement once
and returns them as a KinematicsSamples bundle of arrays, which the fitters
and the robust calibrator slice by subset indices.
"""

from collections import abc
from dataclasses import dataclass
from typing import Callable, Iterable

import numpy as np

from inertial_calibration.sensors.kinematics import (
    estimate_kinematics,
    estimate_kinematics_batch,
)
from inertial_calibration.sensors.types import FrameBodyKinematics


@dataclass(frozen=True)
class KinematicsSamples:
    """
    Measured and expected kinematics of a measurement set as arrays.

    Attributes:
        measured_rates: Measured angular rates, shape (N, 3).
        true_rates: Expected angular rates, shape (N, 3).
        true_forces: Expected specific forces, shape (N, 3).
        rate_std: Per-axis angular rate standard deviations, shape (N, 3).
        valid: False where the expected kinematics could not be predicted.
    """

    measured_rates: np.ndarray
    true_rates: np.ndarray
    true_forces: np.ndarray
    rate_std: np.ndarray
    valid: np.ndarray

    def __len__(self) -> int:
        return len(self.measured_rates)

    def subset(self, indices) -> "KinematicsSamples":
        indices = np.asarray(indices)
        return KinematicsSamples(
            measured_rates=self.measured_rates[indices],
            true_rates=self.true_rates[indices],
            true_forces=self.true_forces[indices],
            rate_std=self.rate_std[indices],
            valid=self.valid[indices],
        )


class GyroscopeMeasurements(abc.Sequence):
    """Ordered, read-only collection of FrameBodyKinematics."""

    def __init__(self, measurements: Iterable[FrameBodyKinematics]):
        items = tuple(measurements)
        for i, m in enumerate(items):
            if not isinstance(m, FrameBodyKinematics):
                raise ValueError(
                    f"measurement {i} is a {type(m).__name__}, "
                    f"expected FrameBodyKinematics"
                )
        self._items = items

    def __len__(self) -> int:
        return len(self._items)

    def __getitem__(self, index):
        return self._items[index]

    def __repr__(self) -> str:
        return f"GyroscopeMeasurements(n={len(self)})"

    def expected_samples(
        self,
        predictor: Callable = estimate_kinematics,
    ) -> KinematicsSamples:
        """Predict the expected kinematics of every measurement."""
        true_rates, true_forces, valid = estimate_kinematics_batch(
            self._items, predictor
        )
        n = len(self._items)
        measured_rates = np.zeros((n, 3))
        rate_std = np.ones((n, 3))
        for i, m in enumerate(self._items):
            measured_rates[i] = m.kinematics.angular_rate
            rate_std[i] = m.angular_rate_standard_deviation

        return KinematicsSamples(
            measured_rates=measured_rates,
            true_rates=true_rates,
            true_forces=true_forces,
            rate_std=rate_std,
            valid=valid,
        )
