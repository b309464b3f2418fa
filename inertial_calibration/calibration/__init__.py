"""
Gyroscope calibration with known bias from frame-based measurements.

Modules:
    errors: CalibrationError hierarchy
    config: RobustCalibrationConfig
    gyroscope_model: Parameter layout, design matrix and residuals
    measurements: Measurement store and precomputed kinematics samples
    gyroscope_fitters: Linear and non-linear (Levenberg-Marquardt) fitters
    listener: Calibration event listener
    robust_gyroscope: RobustKnownBiasAndFrameGyroscopeCalibrator
    dataset: .npz persistence of measurements
"""

from inertial_calibration.calibration.errors import (
    CalibrationError,
    FitError,
    LockedError,
    NoSolutionError,
    NotReadyError,
)
from inertial_calibration.calibration.config import (
    MINIMUM_MEASUREMENTS,
    RobustCalibrationConfig,
)
from inertial_calibration.calibration.measurements import (
    GyroscopeMeasurements,
    KinematicsSamples,
)
from inertial_calibration.calibration.gyroscope_fitters import (
    NonLinearFitResult,
    linear_fit,
    linear_fit_from_kinematics,
    nonlinear_fit,
    nonlinear_fit_from_kinematics,
)
from inertial_calibration.calibration.listener import (
    RobustKnownBiasAndFrameGyroscopeCalibratorListener,
)
from inertial_calibration.calibration.robust_gyroscope import (
    PreliminaryResult,
    RobustCalibrationResult,
    RobustKnownBiasAndFrameGyroscopeCalibrator,
)
from inertial_calibration.calibration.dataset import (
    load_measurements,
    save_measurements,
)

__all__ = [
    # Errors
    "CalibrationError",
    "LockedError",
    "NotReadyError",
    "NoSolutionError",
    "FitError",
    # Configuration
    "MINIMUM_MEASUREMENTS",
    "RobustCalibrationConfig",
    # Measurements
    "GyroscopeMeasurements",
    "KinematicsSamples",
    # Fitters
    "NonLinearFitResult",
    "linear_fit",
    "linear_fit_from_kinematics",
    "nonlinear_fit",
    "nonlinear_fit_from_kinematics",
    # Robust calibration
    "RobustKnownBiasAndFrameGyroscopeCalibratorListener",
    "PreliminaryResult",
    "RobustCalibrationResult",
    "RobustKnownBiasAndFrameGyroscopeCalibrator",
    # Dataset I/O
    "save_measurements",
    "load_measurements",
]
