"""Consensus set produced by the winning candidate of a robust estimation."""

from dataclasses import dataclass
from typing import Optional

import numpy as np


@dataclass(frozen=True)
class InliersData:
    """
    Read-only inlier partition of a measurement set.

    Attributes:
        inliers: Boolean membership mask over all measurements, shape (N,).
        residuals: Residual of every measurement against the winning model.
        threshold: Residual threshold that produced the mask. For median-based
            methods this is derived from the robust scale of the residuals.
        median_residual: Median residual of the winning model (median-based
            methods only).
    """

    inliers: np.ndarray
    residuals: np.ndarray
    threshold: float
    median_residual: Optional[float] = None

    def __post_init__(self) -> None:
        inliers = np.array(self.inliers, dtype=bool).reshape(-1)
        residuals = np.array(self.residuals, dtype=np.float64).reshape(-1)
        if inliers.shape != residuals.shape:
            raise ValueError(
                f"inliers and residuals must have the same length, "
                f"got {inliers.shape} and {residuals.shape}"
            )
        inliers.flags.writeable = False
        residuals.flags.writeable = False
        object.__setattr__(self, "inliers", inliers)
        object.__setattr__(self, "residuals", residuals)

    @property
    def num_inliers(self) -> int:
        return int(np.count_nonzero(self.inliers))

    @property
    def num_measurements(self) -> int:
        return len(self.inliers)

    @property
    def inlier_ratio(self) -> float:
        if self.num_measurements == 0:
            return 0.0
        return self.num_inliers / self.num_measurements

    @property
    def inlier_indices(self) -> np.ndarray:
        return np.flatnonzero(self.inliers)
