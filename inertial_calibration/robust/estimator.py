"""
Generic robust consensus estimator.

RobustEstimator drives the sample → fit → score loop shared by all robust
methods. It knows nothing about the model being estimated: the caller
supplies a function fitting a model to a subset of measurement indices and a
function returning the residual of every measurement against a model.

Loop per iteration:
    1. Draw a subset (uniform or progressive, depending on the method)
    2. Fit a preliminary model; None means the subset was degenerate and the
       iteration is discarded (it still counts toward the budget)
    3. Score the model over all measurements
    4. Keep it if strictly better than the best so far and tighten the
       required iteration count from its inlier ratio (for median methods,
       the inliers below the strategy's bound threshold)
    5. Stop on convergence (median methods), once the required iteration
       count is reached, or at max_iterations

Progress is reported as iteration / required_iterations whenever it has
advanced by at least progress_delta since the last report, and always as 1.0
when the loop ends.
"""

from dataclasses import dataclass
from typing import Any, Callable, Optional

import numpy as np

from inertial_calibration.robust.inliers import InliersData
from inertial_calibration.robust.iterations import (
    progressive_required_iterations,
    required_iterations,
)
from inertial_calibration.robust.methods import RobustMethod
from inertial_calibration.robust.sampling import (
    ProgressiveSubsetSampler,
    UniformSubsetSampler,
)
from inertial_calibration.robust.scoring import (
    LMedSStrategy,
    MsacStrategy,
    RansacStrategy,
)


@dataclass
class RobustEstimate:
    """Winning model of a robust estimation run.

    Attributes:
        model: Best preliminary model, or None if no subset produced one.
        inliers_data: Inlier partition of the best model, or None.
        iterations: Number of iterations run.
    """

    model: Any
    inliers_data: Optional[InliersData]
    iterations: int


def make_strategy(
    method: RobustMethod,
    threshold: float,
    stop_threshold: float,
    inlier_factor: float = 1.5,
    residual_dof: int = 1,
):
    """
    Return the consensus strategy used by `method`.

    For LMEDS and PROMEDS `threshold` caps the residuals counted as inliers
    when bounding the number of iterations.
    """
    method = RobustMethod.parse(method)
    if method in (RobustMethod.RANSAC, RobustMethod.PROSAC):
        return RansacStrategy(threshold)
    if method == RobustMethod.MSAC:
        return MsacStrategy(threshold)
    return LMedSStrategy(
        stop_threshold,
        inlier_factor,
        residual_dof=residual_dof,
        bound_threshold=threshold,
    )


class RobustEstimator:
    """
    Sample consensus loop parameterised by a RobustMethod.

    Args:
        method: Robust method tag.
        num_measurements: Total number of measurements N.
        subset_size: Subset size m (<= N).
        fit_subset: Callable(indices) -> model or None.
        compute_residuals: Callable(model) -> residual array of shape (N,).
        strategy: Consensus strategy; see make_strategy.
        confidence: Requested confidence in [0, 1].
        max_iterations: Hard iteration cap (>= 1).
        progress_delta: Minimum progress increase between reports, in [0, 1].
        quality_scores: Per-measurement scores, required for PROSAC/PROMEDS.
        rng: Random generator for the samplers.
        on_next_iteration: Optional callback(iteration).
        on_progress: Optional callback(progress).
    """

    def __init__(
        self,
        method: RobustMethod,
        num_measurements: int,
        subset_size: int,
        fit_subset: Callable[[np.ndarray], Any],
        compute_residuals: Callable[[Any], np.ndarray],
        strategy,
        confidence: float = 0.99,
        max_iterations: int = 5000,
        progress_delta: float = 0.05,
        quality_scores: Optional[np.ndarray] = None,
        rng: Optional[np.random.Generator] = None,
        on_next_iteration: Optional[Callable[[int], None]] = None,
        on_progress: Optional[Callable[[float], None]] = None,
    ):
        self.method = RobustMethod.parse(method)
        if subset_size < 1 or subset_size > num_measurements:
            raise ValueError(
                f"subset_size must be in [1, {num_measurements}], got {subset_size}"
            )
        if not 0.0 <= confidence <= 1.0:
            raise ValueError(f"confidence must be in [0, 1], got {confidence}")
        if max_iterations < 1:
            raise ValueError(f"max_iterations must be >= 1, got {max_iterations}")
        if not 0.0 <= progress_delta <= 1.0:
            raise ValueError(f"progress_delta must be in [0, 1], got {progress_delta}")

        self.num_measurements = num_measurements
        self.subset_size = subset_size
        self.fit_subset = fit_subset
        self.compute_residuals = compute_residuals
        self.strategy = strategy
        self.confidence = confidence
        self.max_iterations = max_iterations
        self.progress_delta = progress_delta
        self.on_next_iteration = on_next_iteration
        self.on_progress = on_progress

        rng = rng if rng is not None else np.random.default_rng()
        if self.method.requires_quality_scores:
            if quality_scores is None or len(quality_scores) != num_measurements:
                raise ValueError(
                    f"{self.method.name} requires one quality score per measurement"
                )
            self.sampler = ProgressiveSubsetSampler(
                quality_scores, subset_size, max_iterations, rng
            )
        else:
            self.sampler = UniformSubsetSampler(rng)

    def _required_iterations(self, inliers: np.ndarray) -> int:
        if self.method.requires_quality_scores:
            return progressive_required_iterations(
                inliers[self.sampler.order],
                self.confidence,
                self.subset_size,
                self.max_iterations,
            )
        return required_iterations(
            self.confidence,
            float(np.mean(inliers)),
            self.subset_size,
            self.max_iterations,
        )

    def _notify_progress(self, progress: float) -> None:
        if self.on_progress is not None:
            self.on_progress(progress)

    def estimate(self) -> RobustEstimate:
        """
        Run the consensus loop.

        Returns:
            RobustEstimate with the winning model, or model None when every
            subset failed to produce one.
        """
        best_model = None
        best = None
        required = self.max_iterations
        iteration = 0
        last_progress = 0.0

        while iteration < required:
            indices = self.sampler.sample(self.num_measurements, self.subset_size)
            iteration += 1
            if self.on_next_iteration is not None:
                self.on_next_iteration(iteration)

            model = self.fit_subset(indices)
            if model is not None:
                residuals = self.compute_residuals(model)
                consensus = self.strategy.evaluate(residuals, self.subset_size)
                if consensus.is_better_than(best):
                    best = consensus
                    best_model = model
                    bound = self._required_iterations(
                        self.strategy.iteration_inliers(consensus)
                    )
                    required = min(required, bound)
                    if self.strategy.is_converged(consensus):
                        break

            progress = min(iteration / required, 1.0)
            if progress - last_progress >= self.progress_delta and progress < 1.0:
                last_progress = progress
                self._notify_progress(progress)

        self._notify_progress(1.0)

        return RobustEstimate(
            model=best_model,
            inliers_data=best.inliers_data if best is not None else None,
            iterations=iteration,
        )
