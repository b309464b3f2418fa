"""
Least squares estimators used by the gyroscope fitters.

Modules:
    least_squares: Linear and weighted linear least squares
    nonlinear_least_squares: Levenberg-Marquardt with fit statistics
"""

from inertial_calibration.estimators.least_squares import (
    linear_least_squares,
    weighted_least_squares,
)
from inertial_calibration.estimators.nonlinear_least_squares import (
    NonlinearLSResult,
    levenberg_marquardt,
)

__all__ = [
    "linear_least_squares",
    "weighted_least_squares",
    "NonlinearLSResult",
    "levenberg_marquardt",
]
