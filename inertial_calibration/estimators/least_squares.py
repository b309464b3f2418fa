"""
Linear least squares estimation.

This module implements the closed-form least squares solvers used by the
linear gyroscope fitter.

Functions:
    - linear_least_squares: Ordinary LS (SVD-based lstsq after a rank check)
    - weighted_least_squares: LS with per-row weights or standard deviations

Mathematical Formulation:
    Ordinary:  x̂ = (AᵀA)⁻¹ Aᵀb
    Weighted:  x̂ = (AᵀWA)⁻¹ AᵀWb,  W = diag(wᵢ), wᵢ = 1/σᵢ²

Both solvers check the rank of the design matrix first and raise ValueError
when the system has no unique solution; callers that sample minimal subsets
rely on this to discard degenerate subsets.
"""

from typing import Optional, Tuple

import numpy as np


def _check_system(A: np.ndarray, b: np.ndarray) -> Tuple[int, int]:
    if A.ndim != 2 or b.ndim != 1:
        raise ValueError(f"A must be 2D and b must be 1D. Got A: {A.shape}, b: {b.shape}")

    m, n = A.shape
    if m < n:
        raise ValueError(f"Underdetermined system: m={m} < n={n}. Need m ≥ n.")
    if len(b) != m:
        raise ValueError(f"Dimension mismatch: A has {m} rows, b has {len(b)} elements")
    if not (np.all(np.isfinite(A)) and np.all(np.isfinite(b))):
        raise ValueError("A and b must contain only finite values")
    return m, n


def linear_least_squares(
    A: np.ndarray, b: np.ndarray, return_covariance: bool = False
) -> Tuple[np.ndarray, Optional[np.ndarray]]:
    """
    Ordinary linear least squares.

    Solves: x_hat = argmin ||Ax - b||²

    Args:
        A: Design matrix (m × n), where m ≥ n.
        b: Observation vector (m,).
        return_covariance: If True, also return σ̂²(AᵀA)⁻¹ with the unbiased
            residual variance σ̂² (1.0 for an exactly determined system).

    Returns:
        Tuple of:
            - x_hat: Estimated parameter vector (n,).
            - P: Covariance matrix (n × n), or None.

    Raises:
        ValueError: If dimensions don't match, values are not finite or A is
            rank deficient.

    Example:
        >>> A = np.array([[1.0, 0.0], [0.0, 1.0], [1.0, 1.0]])
        >>> b = np.array([1.0, 2.0, 3.0])
        >>> x_hat, _ = linear_least_squares(A, b)
    """
    A = np.asarray(A, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    m, n = _check_system(A, b)

    rank = np.linalg.matrix_rank(A)
    if rank < n:
        raise ValueError(
            f"A is rank deficient: rank={rank} < n={n}. System has no unique solution."
        )

    # lstsq on A avoids squaring the condition number of AᵀA
    x_hat = np.linalg.lstsq(A, b, rcond=None)[0]

    P = None
    if return_covariance:
        residuals = b - A @ x_hat
        sigma2 = np.sum(residuals**2) / (m - n) if m > n else 1.0
        P = sigma2 * np.linalg.inv(A.T @ A)

    return x_hat, P


def weighted_least_squares(
    A: np.ndarray,
    b: np.ndarray,
    W_or_sigma: np.ndarray,
    is_sigma: bool = False,
    return_covariance: bool = False,
) -> Tuple[np.ndarray, Optional[np.ndarray]]:
    """
    Weighted linear least squares with diagonal weights.

    Solves: x_hat = argmin (Ax - b)ᵀ W (Ax - b)

    Setting wᵢ = 1/σᵢ² (the inverse noise variance) gives the best linear
    unbiased estimate, whose covariance is (AᵀWA)⁻¹.

    Args:
        A: Design matrix (m × n), where m ≥ n.
        b: Observation vector (m,).
        W_or_sigma: Per-row weights wᵢ, or standard deviations σᵢ when
            is_sigma is True, shape (m,).
        is_sigma: Interpret W_or_sigma as σᵢ.
        return_covariance: If True, also return (AᵀWA)⁻¹.

    Returns:
        Tuple of (x_hat, P) as in linear_least_squares.

    Raises:
        ValueError: If dimensions don't match, weights are invalid or the
            weighted system is rank deficient.
    """
    A = np.asarray(A, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    m, n = _check_system(A, b)

    W_or_sigma = np.asarray(W_or_sigma, dtype=np.float64)
    if W_or_sigma.shape != (m,):
        raise ValueError(
            f"W_or_sigma length mismatch: expected ({m},), got {W_or_sigma.shape}"
        )

    if is_sigma:
        if np.any(W_or_sigma <= 0):
            raise ValueError("Sigma values must be positive")
        weights = 1.0 / W_or_sigma**2
    else:
        weights = W_or_sigma
        if np.any(weights < 0):
            raise ValueError("Weights must be non-negative")

    sqrt_w = np.sqrt(weights)
    Aw = A * sqrt_w[:, np.newaxis]
    bw = b * sqrt_w

    rank = np.linalg.matrix_rank(Aw)
    if rank < n:
        raise ValueError(f"Weighted system is rank deficient: rank={rank} < n={n}")

    x_hat = np.linalg.lstsq(Aw, bw, rcond=None)[0]

    P = None
    if return_covariance:
        P = np.linalg.inv(Aw.T @ Aw)

    return x_hat, P
