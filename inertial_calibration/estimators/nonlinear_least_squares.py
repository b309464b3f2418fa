"""
Nonlinear least squares using Levenberg-Marquardt.

This module implements the damped Gauss-Newton iteration used by the
non-linear gyroscope fitter to refine scale factors, cross-couplings and
g-dependent biases over a set of measurements.

Mathematical Formulation:
    Given observations y, weights w and measurement model h(x), we seek:
        x̂ = argmin ½ Σ wᵢ (yᵢ - hᵢ(x))²

    Levenberg-Marquardt update:
        (JᵀWJ + μI) Δx = JᵀW r,   r = y - h(x)
    where μ is adapted from the gain ratio between actual and predicted
    cost decrease (Nielsen's rule).

Fit statistics:
    covariance = (JᵀWJ)⁻¹ at the solution (weights are inverse variances)
    chi_sq     = Σ wᵢ rᵢ²
    mse        = Σ rᵢ² / m

References:
    Madsen, Nielsen and Tingleff, Methods for Non-Linear Least Squares
    Problems, 2nd ed., Section 3.2.
"""

from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np


@dataclass
class NonlinearLSResult:
    """Result container for nonlinear least squares optimization.

    Attributes:
        x: Estimated parameter vector.
        covariance: Parameter covariance (n × n), or None.
        iterations: Number of iterations performed.
        residuals: Final residuals r = y - h(x̂).
        chi_sq: Weighted sum of squared residuals.
        mse: Mean of squared (unweighted) residuals.
        converged: Whether the relative step fell below tolerance.
    """

    x: np.ndarray
    covariance: Optional[np.ndarray]
    iterations: int
    residuals: np.ndarray
    chi_sq: float
    mse: float
    converged: bool


def levenberg_marquardt(
    h: Callable[[np.ndarray], np.ndarray],
    jacobian: Callable[[np.ndarray], np.ndarray],
    y: np.ndarray,
    x0: np.ndarray,
    weights: Optional[np.ndarray] = None,
    max_iter: int = 100,
    tol: float = 1e-12,
    mu0: float = 1e-3,
    return_covariance: bool = True,
) -> NonlinearLSResult:
    """
    Levenberg-Marquardt solver for weighted nonlinear least squares.

    Small μ gives Gauss-Newton behaviour (fast near the solution), large μ
    gives gradient descent behaviour (robust far from it).

    Args:
        h: Measurement model h: Rⁿ → Rᵐ.
        jacobian: Function returning J = ∂h/∂x (m × n).
        y: Observation vector (m,).
        x0: Initial parameter estimate (n,).
        weights: Optional per-observation weights (m,), typically 1/σ².
        max_iter: Maximum number of iterations.
        tol: Convergence tolerance on the relative step ‖Δx‖ / (‖x‖ + tol).
        mu0: Initial damping parameter.
        return_covariance: If True, compute (JᵀWJ)⁻¹ at the final estimate.

    Returns:
        NonlinearLSResult containing estimate, covariance and fit statistics.

    Raises:
        ValueError: If shapes are inconsistent, weights are negative, or the
            model produces non-finite values at the initial estimate.

    Example:
        Scale factor s and bias b of a single gyroscope axis:

        >>> true_rates = np.array([-1.0, -0.5, 0.0, 0.5, 1.0])
        >>> measured = 1.002 * true_rates + 3e-4
        >>> A = np.column_stack([true_rates, np.ones_like(true_rates)])
        >>> result = levenberg_marquardt(
        ...     lambda x: A @ x, lambda x: A, measured - true_rates,
        ...     x0=np.zeros(2), weights=np.full(5, 1e8),
        ... )
        >>> s, b = result.x  # ≈ (2e-3, 3e-4)
    """
    y = np.asarray(y, dtype=np.float64)
    x0 = np.asarray(x0, dtype=np.float64)

    if y.ndim != 1:
        raise ValueError(f"y must be 1D array, got shape {y.shape}")
    if x0.ndim != 1:
        raise ValueError(f"x0 must be 1D array, got shape {x0.shape}")

    m = len(y)
    n = len(x0)
    x = x0.copy()

    if weights is None:
        w = np.ones(m)
    else:
        w = np.asarray(weights, dtype=np.float64)
        if w.ndim != 1 or len(w) != m:
            raise ValueError(f"weights must be 1D array of length {m}")
        if np.any(w < 0) or not np.all(np.isfinite(w)):
            raise ValueError("weights must be finite and non-negative")

    r = y - h(x)
    if len(r) != m:
        raise ValueError(f"h(x) returned {len(r)} elements, expected {m}")
    if not np.all(np.isfinite(r)):
        raise ValueError("model produced non-finite residuals at x0")
    cost = 0.5 * np.sum(w * r**2)

    mu = mu0
    nu = 2.0
    converged = False
    iteration = 0

    for iteration in range(max_iter):
        J = jacobian(x)
        if J.shape != (m, n):
            raise ValueError(f"Jacobian shape {J.shape}, expected ({m}, {n})")

        JtW = J.T * w
        JtWJ = JtW @ J
        JtWr = JtW @ r

        delta_x = np.zeros(n)
        accepted = False
        while not accepted:
            JtWJ_damped = JtWJ + mu * np.eye(n)
            try:
                delta_x = np.linalg.solve(JtWJ_damped, JtWr)
            except np.linalg.LinAlgError:
                delta_x = np.linalg.lstsq(JtWJ_damped, JtWr, rcond=None)[0]

            x_new = x + delta_x
            r_new = y - h(x_new)
            cost_new = 0.5 * np.sum(w * r_new**2)

            predicted_decrease = 0.5 * delta_x @ (mu * delta_x + JtWr)
            actual_decrease = cost - cost_new

            if np.isfinite(cost_new) and predicted_decrease > 0.0:
                gain_ratio = actual_decrease / predicted_decrease
            else:
                gain_ratio = 0.0

            if gain_ratio > 0:
                x = x_new
                r = r_new
                cost = cost_new
                mu = mu * max(1.0 / 3.0, 1.0 - (2.0 * gain_ratio - 1.0) ** 3)
                nu = 2.0
                accepted = True
            else:
                mu = mu * nu
                nu = 2.0 * nu
                if mu > 1e20:
                    break

        step_norm = np.linalg.norm(delta_x)
        if not accepted or step_norm <= tol * (np.linalg.norm(x) + tol):
            # A rejected step at huge damping means no further decrease is possible
            converged = True
            break

    P = None
    if return_covariance:
        J = jacobian(x)
        JtWJ = (J.T * w) @ J
        try:
            P = np.linalg.inv(JtWJ)
        except np.linalg.LinAlgError:
            P = np.linalg.pinv(JtWJ)

    return NonlinearLSResult(
        x=x,
        covariance=P,
        iterations=iteration + 1,
        residuals=r,
        chi_sq=float(np.sum(w * r**2)),
        mse=float(np.mean(r**2)) if m > 0 else 0.0,
        converged=converged,
    )
