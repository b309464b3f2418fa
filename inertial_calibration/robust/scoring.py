"""
Consensus scoring strategies.

Each strategy turns the residuals of a candidate model over the full
measurement set into a comparable quality value (higher is better) and an
InliersData partition. A candidate replaces the best one only when its
quality is strictly greater, so ties keep the earlier candidate.

Strategies:
    RansacStrategy: quality = (inlier count, -Σ inlier residuals)
    MsacStrategy:   quality = -Σ min(rᵢ, τ)
    LMedSStrategy:  quality = -median(rᵢ²); inliers are those below a
                    threshold derived from the robust scale of the residuals.

Residuals are norms of d-dimensional error vectors (d = 1 for scalar
residuals, d = 3 for angular rates). With χ_d(p) = √(chi2.ppf(p, d)) the
robust per-axis scale and the inlier threshold are

    σ̂ = (1 + 5 / (N - m)) · √median(rᵢ²) / χ_d(0.5)
    τ  = max(k · χ_d(0.99) · σ̂, stop_threshold)

For d = 1, 1 / χ_1(0.5) is the usual 1.4826 MAD constant.

The fraction of inliers of a median-based candidate is not used directly to
bound the iteration count: a contaminated candidate has a large median and
therefore a large τ that accepts almost everything. The bound uses the
inliers below min(τ, bound_threshold) instead (see iteration_inliers).

References:
    Rousseeuw and Leroy, Robust Regression and Outlier Detection, 1987,
    Chapter 5 (LMedS scale estimate).
    Torr and Zisserman, MLESAC: A New Robust Estimator with Application to
    Estimating Image Geometry, CVIU 78(1), 2000 (MSAC cost).
"""

import sys
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
from scipy import stats

from inertial_calibration.robust.inliers import InliersData

# Probability mass of the residual distribution accepted as inliers.
INLIER_PROBABILITY = 0.99

# Residual reported for measurements whose prediction failed; never an inlier.
MAX_RESIDUAL = sys.float_info.max


@dataclass(frozen=True)
class Consensus:
    """Quality of one candidate and the inlier partition it induces."""

    quality: Tuple[float, ...]
    inliers_data: InliersData

    def is_better_than(self, other: "Consensus") -> bool:
        return other is None or self.quality > other.quality


def _check_threshold(value: float, name: str) -> float:
    value = float(value)
    if not value > 0.0:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


class RansacStrategy:
    """Inlier counting against a fixed residual threshold."""

    def __init__(self, threshold: float):
        self.threshold = _check_threshold(threshold, "threshold")

    def evaluate(self, residuals: np.ndarray, subset_size: int) -> Consensus:
        residuals = np.asarray(residuals, dtype=np.float64)
        inliers = residuals <= self.threshold
        count = int(np.count_nonzero(inliers))
        quality = (float(count), -float(np.sum(residuals[inliers])))
        return Consensus(quality, InliersData(inliers, residuals, self.threshold))

    def is_converged(self, consensus: Consensus) -> bool:
        return False

    def iteration_inliers(self, consensus: Consensus) -> np.ndarray:
        return consensus.inliers_data.inliers


class MsacStrategy:
    """Truncated residual cost against a fixed threshold."""

    def __init__(self, threshold: float):
        self.threshold = _check_threshold(threshold, "threshold")

    def evaluate(self, residuals: np.ndarray, subset_size: int) -> Consensus:
        residuals = np.asarray(residuals, dtype=np.float64)
        inliers = residuals <= self.threshold
        cost = float(np.sum(np.minimum(residuals, self.threshold)))
        return Consensus((-cost,), InliersData(inliers, residuals, self.threshold))

    def is_converged(self, consensus: Consensus) -> bool:
        return False

    def iteration_inliers(self, consensus: Consensus) -> np.ndarray:
        return consensus.inliers_data.inliers


class LMedSStrategy:
    """
    Least median of squares.

    Args:
        stop_threshold: Median residual at or below which the search stops
            early. Also the lower bound of the derived inlier threshold.
        inlier_factor: Multiple k of the χ_d(0.99) quantile of the robust
            scale used as inlier threshold.
        residual_dof: Dimension d of the error vector whose norm is the
            residual.
        bound_threshold: Largest residual counted as inlier when bounding
            the number of iterations. None uses the derived threshold.
    """

    def __init__(
        self,
        stop_threshold: float,
        inlier_factor: float = 1.5,
        residual_dof: int = 1,
        bound_threshold: Optional[float] = None,
    ):
        self.stop_threshold = _check_threshold(stop_threshold, "stop_threshold")
        self.inlier_factor = _check_threshold(inlier_factor, "inlier_factor")
        if int(residual_dof) != residual_dof or residual_dof < 1:
            raise ValueError(f"residual_dof must be an integer >= 1, got {residual_dof}")
        self.residual_dof = int(residual_dof)
        self.bound_threshold = (
            None
            if bound_threshold is None
            else _check_threshold(bound_threshold, "bound_threshold")
        )
        self._median_quantile = float(np.sqrt(stats.chi2.ppf(0.5, self.residual_dof)))
        self._inlier_quantile = float(
            np.sqrt(stats.chi2.ppf(INLIER_PROBABILITY, self.residual_dof))
        )

    def evaluate(self, residuals: np.ndarray, subset_size: int) -> Consensus:
        residuals = np.asarray(residuals, dtype=np.float64)
        num = len(residuals)

        with np.errstate(over="ignore"):
            median_sq = float(np.median(residuals * residuals))
        median_residual = float(np.sqrt(median_sq))

        correction = 1.0 + 5.0 / max(num - subset_size, 1)
        scale = correction * median_residual / self._median_quantile
        threshold = max(
            self.inlier_factor * self._inlier_quantile * scale, self.stop_threshold
        )
        inliers = (residuals <= threshold) & (residuals < MAX_RESIDUAL)
        return Consensus(
            (-median_sq,),
            InliersData(inliers, residuals, threshold, median_residual),
        )

    def is_converged(self, consensus: Consensus) -> bool:
        median = consensus.inliers_data.median_residual
        return median is not None and median <= self.stop_threshold

    def iteration_inliers(self, consensus: Consensus) -> np.ndarray:
        data = consensus.inliers_data
        if self.bound_threshold is None or data.threshold <= self.bound_threshold:
            return data.inliers
        return data.inliers & (data.residuals <= self.bound_threshold)
