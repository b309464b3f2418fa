"""
Linear and non-linear fitters of the known-bias gyroscope error model.

Both fitters solve

    Ω_meas - b_g - Ω_true = M_g Ω_true + G_g f_true

for M_g and G_g over a set of measurements whose true kinematics are known
(see gyroscope_model for the parameter layout).

    linear_fit:    closed-form least squares over the stacked rows.
    nonlinear_fit: Levenberg-Marquardt weighted by 1/σ² of the angular rate
                   noise, seeded with initial M_g and G_g, returning the
                   parameter covariance, MSE and chi-square.

With a common axis the non-linear fit estimates 15 unknowns and propagates
its covariance back to the 18-parameter layout (C = J Σ Jᵀ), so callers
always receive an 18x18 covariance.

Each fitter has an array form (*_from_kinematics) used by the robust
calibrator, which predicts the true kinematics only once, and a form taking
FrameBodyKinematics measurements directly.

Failures (too few measurements, rank deficient system, invalid standard
deviations, non-finite result) raise FitError.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from inertial_calibration.calibration.config import MINIMUM_MEASUREMENTS
from inertial_calibration.calibration.errors import FitError
from inertial_calibration.calibration.gyroscope_model import (
    common_axis_jacobian,
    design_matrix,
    pack_parameters,
    unpack_parameters,
)
from inertial_calibration.calibration.measurements import GyroscopeMeasurements
from inertial_calibration.estimators.least_squares import linear_least_squares
from inertial_calibration.estimators.nonlinear_least_squares import (
    levenberg_marquardt,
)
from inertial_calibration.sensors.types import FrameBodyKinematics


@dataclass
class NonLinearFitResult:
    """Output of a non-linear gyroscope fit.

    Attributes:
        mg: Estimated scale factors and cross couplings (3x3).
        gg: Estimated g-dependent cross biases (3x3).
        covariance: 18x18 parameter covariance, or None.
        mse: Mean squared residual of the angular rate components.
        chi_sq: Weighted sum of squared residuals.
    """

    mg: np.ndarray
    gg: np.ndarray
    covariance: Optional[np.ndarray]
    mse: float
    chi_sq: float


def _check_inputs(measured_rates, true_rates, true_forces, bias):
    measured_rates = np.atleast_2d(np.asarray(measured_rates, dtype=np.float64))
    true_rates = np.atleast_2d(np.asarray(true_rates, dtype=np.float64))
    true_forces = np.atleast_2d(np.asarray(true_forces, dtype=np.float64))
    bias = np.asarray(bias, dtype=np.float64).reshape(-1)

    if bias.shape != (3,):
        raise ValueError(f"bias must have 3 elements, got shape {bias.shape}")
    n = len(measured_rates)
    for name, array in (
        ("measured_rates", measured_rates),
        ("true_rates", true_rates),
        ("true_forces", true_forces),
    ):
        if array.shape != (n, 3):
            raise ValueError(f"{name} must have shape ({n}, 3), got {array.shape}")
    if n < MINIMUM_MEASUREMENTS:
        raise FitError(
            f"At least {MINIMUM_MEASUREMENTS} measurements are required, got {n}"
        )
    return measured_rates, true_rates, true_forces, bias


def linear_fit_from_kinematics(
    measured_rates: np.ndarray,
    true_rates: np.ndarray,
    true_forces: np.ndarray,
    bias: np.ndarray,
    common_axis_used: bool = False,
):
    """
    Closed-form least squares estimate of M_g and G_g.

    Args:
        measured_rates: Measured angular rates, shape (N, 3).
        true_rates: Expected angular rates, shape (N, 3).
        true_forces: Expected specific forces, shape (N, 3).
        bias: Known gyroscope bias, shape (3,).
        common_axis_used: Force myx = mzx = mzy = 0.

    Returns:
        Tuple (mg, gg) of 3x3 matrices.

    Raises:
        FitError: If fewer than 6 measurements are given or the system is
            rank deficient.
    """
    measured_rates, true_rates, true_forces, bias = _check_inputs(
        measured_rates, true_rates, true_forces, bias
    )

    A = design_matrix(true_rates, true_forces, common_axis_used)
    b = (measured_rates - bias - true_rates).reshape(-1)

    try:
        x, _ = linear_least_squares(A, b)
    except ValueError as e:
        raise FitError(f"Linear fit failed: {e}") from e

    return unpack_parameters(x, common_axis_used)


def nonlinear_fit_from_kinematics(
    measured_rates: np.ndarray,
    true_rates: np.ndarray,
    true_forces: np.ndarray,
    rate_std: np.ndarray,
    bias: np.ndarray,
    common_axis_used: bool = False,
    initial_mg: Optional[np.ndarray] = None,
    initial_gg: Optional[np.ndarray] = None,
) -> NonLinearFitResult:
    """
    Weighted Levenberg-Marquardt estimate of M_g and G_g.

    Args:
        measured_rates: Measured angular rates, shape (N, 3).
        true_rates: Expected angular rates, shape (N, 3).
        true_forces: Expected specific forces, shape (N, 3).
        rate_std: Angular rate standard deviations, shape (N, 3) or (N,).
        bias: Known gyroscope bias, shape (3,).
        common_axis_used: Force myx = mzx = mzy = 0.
        initial_mg: Initial M_g. Defaults to zeros.
        initial_gg: Initial G_g. Defaults to zeros.

    Returns:
        NonLinearFitResult with an 18x18 covariance.

    Raises:
        FitError: If fewer than 6 measurements are given, a standard
            deviation is not positive, or the fit does not produce a finite
            solution.
    """
    measured_rates, true_rates, true_forces, bias = _check_inputs(
        measured_rates, true_rates, true_forces, bias
    )
    n = len(measured_rates)

    rate_std = np.asarray(rate_std, dtype=np.float64)
    if rate_std.ndim == 1:
        rate_std = np.repeat(rate_std[:, np.newaxis], 3, axis=1)
    if rate_std.shape != (n, 3):
        raise ValueError(f"rate_std must have shape ({n}, 3), got {rate_std.shape}")
    if np.any(~np.isfinite(rate_std)) or np.any(rate_std <= 0.0):
        raise FitError("Angular rate standard deviations must be positive")

    if initial_mg is None:
        initial_mg = np.zeros((3, 3))
    if initial_gg is None:
        initial_gg = np.zeros((3, 3))

    A = design_matrix(true_rates, true_forces, common_axis_used)
    y = (measured_rates - bias - true_rates).reshape(-1)
    weights = 1.0 / rate_std.reshape(-1) ** 2
    x0 = pack_parameters(initial_mg, initial_gg, common_axis_used)

    if np.linalg.matrix_rank(A) < A.shape[1]:
        raise FitError("Non-linear fit failed: system is rank deficient")

    try:
        result = levenberg_marquardt(
            h=lambda x: A @ x,
            jacobian=lambda x: A,
            y=y,
            x0=x0,
            weights=weights,
        )
    except (ValueError, np.linalg.LinAlgError) as e:
        raise FitError(f"Non-linear fit failed: {e}") from e

    if not np.all(np.isfinite(result.x)):
        raise FitError("Non-linear fit produced a non-finite solution")

    mg, gg = unpack_parameters(result.x, common_axis_used)

    covariance = result.covariance
    if covariance is not None and common_axis_used:
        J = common_axis_jacobian()
        covariance = J @ covariance @ J.T

    return NonLinearFitResult(
        mg=mg,
        gg=gg,
        covariance=covariance,
        mse=result.mse,
        chi_sq=result.chi_sq,
    )


def _samples(measurements: Sequence[FrameBodyKinematics]):
    samples = GyroscopeMeasurements(measurements).expected_samples()
    if not np.all(samples.valid):
        raise FitError(
            "Expected kinematics could not be predicted for all measurements"
        )
    return samples


def linear_fit(
    measurements: Sequence[FrameBodyKinematics],
    bias: np.ndarray,
    common_axis_used: bool = False,
):
    """Linear fit of M_g and G_g from frame-based measurements.

    Returns:
        Tuple (mg, gg).
    """
    samples = _samples(measurements)
    return linear_fit_from_kinematics(
        samples.measured_rates,
        samples.true_rates,
        samples.true_forces,
        bias,
        common_axis_used,
    )


def nonlinear_fit(
    measurements: Sequence[FrameBodyKinematics],
    bias: np.ndarray,
    common_axis_used: bool = False,
    initial_mg: Optional[np.ndarray] = None,
    initial_gg: Optional[np.ndarray] = None,
) -> NonLinearFitResult:
    """Non-linear fit of M_g and G_g from frame-based measurements."""
    samples = _samples(measurements)
    return nonlinear_fit_from_kinematics(
        samples.measured_rates,
        samples.true_rates,
        samples.true_forces,
        samples.rate_std,
        bias,
        common_axis_used,
        initial_mg,
        initial_gg,
    )
