"""
Configuration of the robust gyroscope calibrator.

RobustCalibrationConfig collects every tunable of a robust calibration run.
It is immutable: the calibrator swaps the whole instance through
dataclasses.replace when a setter is called, so an invalid value raises
ValueError before the calibrator state changes.

Parameters:
    robust_method: RANSAC, LMEDS, MSAC, PROSAC or PROMEDS.
    confidence: Probability of drawing an outlier-free subset, in [0, 1].
    max_iterations: Hard cap on sampling iterations (>= 1).
    progress_delta: Minimum progress change between notifications, in [0, 1].
    preliminary_subset_size: Measurements per sampled subset (>= 6).
    common_axis_used: Force myx = mzx = mzy = 0.
    use_linear_calibrator: Fit preliminary solutions linearly.
    refine_preliminary_solutions: Refine preliminary solutions non-linearly.
    refine_result: Refine the winning solution over its inliers.
    keep_covariance: Keep the covariance of non-linear fits.
    threshold: Inlier residual threshold for RANSAC, MSAC and PROSAC (rad/s).
        For LMEDS and PROMEDS it caps the residuals counted as inliers when
        bounding the number of iterations.
    stop_threshold: Median residual stopping LMEDS/PROMEDS early (rad/s).
    inlier_factor: Robust scale multiple for LMEDS/PROMEDS inliers.
    initial_mg: Initial scale factors and cross couplings (3x3).
    initial_gg: Initial g-dependent cross biases (3x3).
    quality_scores: One score per measurement, higher is better. Required by
        PROSAC and PROMEDS, at least 6 values when given.

Usage:
    >>> config = RobustCalibrationConfig(robust_method="ransac", threshold=5e-4)
    >>> config = RobustCalibrationConfig.from_json("calibration.json")
"""

import json
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

import numpy as np

from inertial_calibration.robust.methods import RobustMethod

# Minimum number of measurements needed to solve the 18 unknowns.
MINIMUM_MEASUREMENTS = 6

DEFAULT_CONFIDENCE = 0.99
DEFAULT_MAX_ITERATIONS = 5000
DEFAULT_PROGRESS_DELTA = 0.05
DEFAULT_THRESHOLD = 1e-3
DEFAULT_STOP_THRESHOLD = 1e-5
DEFAULT_INLIER_FACTOR = 1.5
DEFAULT_ROBUST_METHOD = RobustMethod.LMEDS


def _as_matrix3(value, name: str) -> np.ndarray:
    matrix = np.array(value, dtype=np.float64)
    if matrix.shape != (3, 3):
        raise ValueError(f"{name} must have shape (3, 3), got {matrix.shape}")
    if not np.all(np.isfinite(matrix)):
        raise ValueError(f"{name} must contain only finite values")
    matrix.flags.writeable = False
    return matrix


@dataclass(frozen=True, eq=False)
class RobustCalibrationConfig:
    """Validated, immutable settings of a robust gyroscope calibration."""

    robust_method: RobustMethod = DEFAULT_ROBUST_METHOD
    confidence: float = DEFAULT_CONFIDENCE
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    progress_delta: float = DEFAULT_PROGRESS_DELTA
    preliminary_subset_size: int = MINIMUM_MEASUREMENTS
    common_axis_used: bool = False
    use_linear_calibrator: bool = True
    refine_preliminary_solutions: bool = False
    refine_result: bool = True
    keep_covariance: bool = True
    threshold: float = DEFAULT_THRESHOLD
    stop_threshold: float = DEFAULT_STOP_THRESHOLD
    inlier_factor: float = DEFAULT_INLIER_FACTOR
    initial_mg: np.ndarray = field(default_factory=lambda: np.zeros((3, 3)))
    initial_gg: np.ndarray = field(default_factory=lambda: np.zeros((3, 3)))
    quality_scores: Optional[np.ndarray] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "robust_method", RobustMethod.parse(self.robust_method))

        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be in [0, 1], got {self.confidence}")
        if int(self.max_iterations) != self.max_iterations or self.max_iterations < 1:
            raise ValueError(
                f"max_iterations must be an integer >= 1, got {self.max_iterations}"
            )
        if not 0.0 <= self.progress_delta <= 1.0:
            raise ValueError(
                f"progress_delta must be in [0, 1], got {self.progress_delta}"
            )
        if (
            int(self.preliminary_subset_size) != self.preliminary_subset_size
            or self.preliminary_subset_size < MINIMUM_MEASUREMENTS
        ):
            raise ValueError(
                f"preliminary_subset_size must be an integer >= "
                f"{MINIMUM_MEASUREMENTS}, got {self.preliminary_subset_size}"
            )
        for name in ("threshold", "stop_threshold", "inlier_factor"):
            value = getattr(self, name)
            if not value > 0.0:
                raise ValueError(f"{name} must be positive, got {value}")

        object.__setattr__(self, "max_iterations", int(self.max_iterations))
        object.__setattr__(
            self, "preliminary_subset_size", int(self.preliminary_subset_size)
        )
        for name in (
            "common_axis_used",
            "use_linear_calibrator",
            "refine_preliminary_solutions",
            "refine_result",
            "keep_covariance",
        ):
            object.__setattr__(self, name, bool(getattr(self, name)))

        object.__setattr__(self, "initial_mg", _as_matrix3(self.initial_mg, "initial_mg"))
        object.__setattr__(self, "initial_gg", _as_matrix3(self.initial_gg, "initial_gg"))

        if self.quality_scores is not None:
            scores = np.array(self.quality_scores, dtype=np.float64).reshape(-1)
            if len(scores) < MINIMUM_MEASUREMENTS:
                raise ValueError(
                    f"quality_scores must have at least {MINIMUM_MEASUREMENTS} "
                    f"values, got {len(scores)}"
                )
            if not np.all(np.isfinite(scores)):
                raise ValueError("quality_scores must contain only finite values")
            scores.flags.writeable = False
            object.__setattr__(self, "quality_scores", scores)

    def to_dict(self) -> Dict[str, Any]:
        """Return a JSON-serialisable dictionary of all settings."""
        data = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, RobustMethod):
                value = value.value
            elif isinstance(value, np.ndarray):
                value = value.tolist()
            data[f.name] = value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RobustCalibrationConfig":
        """
        Build a configuration from a dictionary.

        Missing keys take their default values.

        Raises:
            ValueError: If a key is unknown or a value is invalid.
        """
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")
        return cls(**data)

    @classmethod
    def from_json(cls, path: Union[str, Path]) -> "RobustCalibrationConfig":
        """Load a configuration from a JSON file written by to_json."""
        with open(path, "r") as f:
            return cls.from_dict(json.load(f))

    def to_json(self, path: Union[str, Path]) -> None:
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)
