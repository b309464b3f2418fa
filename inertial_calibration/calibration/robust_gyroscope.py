"""
Robust gyroscope calibration with known bias and known frames.

RobustKnownBiasAndFrameGyroscopeCalibrator estimates the gyroscope scale
factor and cross-coupling matrix M_g and the g-dependent cross-bias matrix
G_g from frame-based measurements, tolerating an unknown fraction of
corrupted measurements.

Pipeline:
    1. Predict the true kinematics of every measurement once from its frame
       pair and time interval.
    2. Repeatedly sample a subset of preliminary_subset_size measurements and
       fit a preliminary solution (linear fit and/or non-linear refinement).
       Subsets whose fit fails are discarded.
    3. Score each preliminary solution over all measurements with the
       configured robust method (RANSAC, LMEDS, MSAC, PROSAC, PROMEDS) and
       keep the best one.
    4. Optionally refine the best solution with a non-linear fit over its
       inliers. If that fit fails, the preliminary solution is kept and a
       RuntimeWarning is emitted. When it succeeds, the inliers are
       re-derived from the residuals of the refined solution.

Residual of a measurement against a candidate (M_g, G_g):

    ‖b_g + (I + M_g) Ω_true + G_g f_true - Ω_meas‖

Measurements whose true kinematics cannot be predicted get the maximal
float residual and are therefore always outliers.

Locking:
    While calibrate() runs, every setter and calibrate() itself raise
    LockedError. Listener callbacks run in that state. Results of a previous
    successful run are replaced only when a new run succeeds.

Usage:
    >>> calibrator = RobustKnownBiasAndFrameGyroscopeCalibrator(
    ...     measurements, bias, robust_method="ransac", rng=42
    ... )
    >>> calibrator.calibrate()
    >>> print(calibrator.estimated_mg)
"""

import warnings
from dataclasses import dataclass, replace
from typing import Any, Callable, Optional, Sequence, Tuple, Union

import numpy as np

from inertial_calibration.calibration.config import (
    MINIMUM_MEASUREMENTS,
    RobustCalibrationConfig,
)
from inertial_calibration.calibration.errors import (
    FitError,
    LockedError,
    NoSolutionError,
    NotReadyError,
)
from inertial_calibration.calibration.gyroscope_fitters import (
    linear_fit_from_kinematics,
    nonlinear_fit_from_kinematics,
)
from inertial_calibration.calibration.gyroscope_model import (
    num_unknowns,
    residual_norms,
)
from inertial_calibration.calibration.listener import (
    RobustKnownBiasAndFrameGyroscopeCalibratorListener,
)
from inertial_calibration.calibration.measurements import (
    GyroscopeMeasurements,
    KinematicsSamples,
)
from inertial_calibration.robust.estimator import RobustEstimator, make_strategy
from inertial_calibration.robust.inliers import InliersData
from inertial_calibration.robust.methods import RobustMethod
from inertial_calibration.robust.scoring import MAX_RESIDUAL
from inertial_calibration.sensors.kinematics import estimate_kinematics
from inertial_calibration.sensors.types import FrameBodyKinematics


@dataclass
class PreliminaryResult:
    """Candidate solution fitted from one subset of measurements."""

    mg: np.ndarray
    gg: np.ndarray
    covariance: Optional[np.ndarray] = None
    mse: float = 0.0
    chi_sq: float = 0.0


@dataclass(frozen=True)
class RobustCalibrationResult:
    """
    Outcome of a successful robust calibration.

    Attributes:
        mg: Estimated scale factors and cross couplings (3x3).
        gg: Estimated g-dependent cross biases (3x3).
        covariance: 18x18 parameter covariance, or None when no kept
            non-linear fit produced one.
        mse: Mean squared residual of the final fit (0 when not refined).
        chi_sq: Chi-square of the final fit (0 when not refined).
        inliers_data: Inliers of the final solution, re-derived from the
            refined model when refinement succeeded.
        iterations: Number of robust iterations run.
    """

    mg: np.ndarray
    gg: np.ndarray
    covariance: Optional[np.ndarray]
    mse: float
    chi_sq: float
    inliers_data: InliersData
    iterations: int


def _config_property(name: str, doc: str) -> property:
    def getter(self):
        return getattr(self._config, name)

    def setter(self, value):
        self._check_not_running()
        self._config = replace(self._config, **{name: value})

    return property(getter, setter, doc=doc)


def _as_bias(bias) -> np.ndarray:
    bias = np.array(bias, dtype=np.float64).reshape(-1)
    if bias.shape != (3,):
        raise ValueError(f"bias must have 3 elements, got shape {bias.shape}")
    if not np.all(np.isfinite(bias)):
        raise ValueError("bias must contain only finite values")
    bias.flags.writeable = False
    return bias


class RobustKnownBiasAndFrameGyroscopeCalibrator:
    """
    Robust estimator of gyroscope M_g and G_g with known bias.

    Args:
        measurements: Frame-based measurements (at least 6 to be ready).
        bias: Known gyroscope bias (rad/s), 3 values. Defaults to zero.
        config: Initial configuration. Keyword overrides are applied on top.
        listener: Optional listener receiving calibration events.
        rng: numpy Generator or integer seed used for subset sampling.
        kinematics_predictor: Callable (time_interval, frame, previous_frame)
            -> BodyKinematics predicting the true kinematics.
        linear_fitter: Linear fit collaborator, see
            linear_fit_from_kinematics.
        nonlinear_fitter: Non-linear fit collaborator, see
            nonlinear_fit_from_kinematics.
        **overrides: Any RobustCalibrationConfig field.

    Raises:
        ValueError: If an argument or configuration value is invalid.
    """

    MINIMUM_MEASUREMENTS = MINIMUM_MEASUREMENTS

    def __init__(
        self,
        measurements: Optional[Sequence[FrameBodyKinematics]] = None,
        bias=None,
        config: Optional[RobustCalibrationConfig] = None,
        listener: Optional[RobustKnownBiasAndFrameGyroscopeCalibratorListener] = None,
        rng: Union[np.random.Generator, int, None] = None,
        kinematics_predictor: Callable = estimate_kinematics,
        linear_fitter: Callable = linear_fit_from_kinematics,
        nonlinear_fitter: Callable = nonlinear_fit_from_kinematics,
        **overrides: Any,
    ):
        if config is None:
            config = RobustCalibrationConfig()
        if overrides:
            config = replace(config, **overrides)

        self._config = config
        self._measurements = (
            GyroscopeMeasurements(measurements) if measurements is not None else None
        )
        self._bias = _as_bias(np.zeros(3) if bias is None else bias)
        self._listener = listener
        self._rng = np.random.default_rng(rng)
        self._kinematics_predictor = kinematics_predictor
        self._linear_fitter = linear_fitter
        self._nonlinear_fitter = nonlinear_fitter

        self._running = False
        self._result: Optional[RobustCalibrationResult] = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_ready(self) -> bool:
        """
        True when calibrate() can run: at least 6 measurements, no fewer
        than the subset size, and one quality score per measurement for
        PROSAC and PROMEDS.
        """
        if self._measurements is None:
            return False
        n = len(self._measurements)
        if n < MINIMUM_MEASUREMENTS or n < self._config.preliminary_subset_size:
            return False
        if self._config.robust_method.requires_quality_scores:
            scores = self._config.quality_scores
            return scores is not None and len(scores) == n
        return True

    @property
    def minimum_required_measurements(self) -> int:
        return MINIMUM_MEASUREMENTS

    @property
    def num_unknowns(self) -> int:
        return num_unknowns(self._config.common_axis_used)

    def _check_not_running(self) -> None:
        if self._running:
            raise LockedError("Calibrator is running")

    # ------------------------------------------------------------------
    # Inputs and configuration
    # ------------------------------------------------------------------

    @property
    def config(self) -> RobustCalibrationConfig:
        return self._config

    @config.setter
    def config(self, value: RobustCalibrationConfig) -> None:
        self._check_not_running()
        if not isinstance(value, RobustCalibrationConfig):
            raise ValueError("config must be a RobustCalibrationConfig")
        self._config = value

    @property
    def measurements(self) -> Optional[GyroscopeMeasurements]:
        return self._measurements

    @measurements.setter
    def measurements(self, value: Optional[Sequence[FrameBodyKinematics]]) -> None:
        self._check_not_running()
        self._measurements = GyroscopeMeasurements(value) if value is not None else None

    @property
    def bias(self) -> np.ndarray:
        return self._bias

    @bias.setter
    def bias(self, value) -> None:
        self._check_not_running()
        self._bias = _as_bias(value)

    @property
    def listener(self) -> Optional[RobustKnownBiasAndFrameGyroscopeCalibratorListener]:
        return self._listener

    @listener.setter
    def listener(self, value) -> None:
        self._check_not_running()
        self._listener = value

    robust_method = _config_property("robust_method", "Robust estimation method.")
    confidence = _config_property("confidence", "Requested confidence in [0, 1].")
    max_iterations = _config_property("max_iterations", "Iteration cap (>= 1).")
    progress_delta = _config_property(
        "progress_delta", "Minimum progress change between notifications."
    )
    preliminary_subset_size = _config_property(
        "preliminary_subset_size", "Measurements per sampled subset (>= 6)."
    )
    common_axis_used = _config_property(
        "common_axis_used", "Whether myx, mzx and mzy are fixed to zero."
    )
    use_linear_calibrator = _config_property(
        "use_linear_calibrator", "Fit preliminary solutions linearly."
    )
    refine_preliminary_solutions = _config_property(
        "refine_preliminary_solutions", "Refine preliminary solutions non-linearly."
    )
    refine_result = _config_property(
        "refine_result", "Refine the winning solution over its inliers."
    )
    keep_covariance = _config_property(
        "keep_covariance", "Keep the covariance of non-linear fits."
    )
    threshold = _config_property(
        "threshold", "Inlier threshold for RANSAC, MSAC and PROSAC (rad/s)."
    )
    stop_threshold = _config_property(
        "stop_threshold", "Median residual stopping LMEDS and PROMEDS (rad/s)."
    )
    inlier_factor = _config_property(
        "inlier_factor", "Robust scale multiple of the LMEDS inlier threshold."
    )
    initial_mg = _config_property("initial_mg", "Initial M_g (3x3).")
    initial_gg = _config_property("initial_gg", "Initial G_g (3x3).")
    quality_scores = _config_property(
        "quality_scores", "Per-measurement quality scores, higher is better."
    )

    def set_initial_scaling_factors(self, sx: float, sy: float, sz: float) -> None:
        mg = np.array(self._config.initial_mg)
        mg[0, 0], mg[1, 1], mg[2, 2] = sx, sy, sz
        self.initial_mg = mg

    def set_initial_cross_coupling_errors(
        self,
        mxy: float,
        mxz: float,
        myx: float,
        myz: float,
        mzx: float,
        mzy: float,
    ) -> None:
        mg = np.array(self._config.initial_mg)
        mg[0, 1], mg[0, 2] = mxy, mxz
        mg[1, 0], mg[1, 2] = myx, myz
        mg[2, 0], mg[2, 1] = mzx, mzy
        self.initial_mg = mg

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    @property
    def result(self) -> Optional[RobustCalibrationResult]:
        return self._result

    @property
    def estimated_mg(self) -> Optional[np.ndarray]:
        return self._result.mg if self._result is not None else None

    @property
    def estimated_gg(self) -> Optional[np.ndarray]:
        return self._result.gg if self._result is not None else None

    @property
    def estimated_covariance(self) -> Optional[np.ndarray]:
        return self._result.covariance if self._result is not None else None

    @property
    def estimated_mse(self) -> float:
        return self._result.mse if self._result is not None else 0.0

    @property
    def estimated_chi_sq(self) -> float:
        return self._result.chi_sq if self._result is not None else 0.0

    @property
    def inliers_data(self) -> Optional[InliersData]:
        return self._result.inliers_data if self._result is not None else None

    @property
    def iterations(self) -> int:
        return self._result.iterations if self._result is not None else 0

    def _estimated_mg_entry(self, row: int, col: int) -> Optional[float]:
        mg = self.estimated_mg
        return float(mg[row, col]) if mg is not None else None

    @property
    def estimated_sx(self) -> Optional[float]:
        return self._estimated_mg_entry(0, 0)

    @property
    def estimated_sy(self) -> Optional[float]:
        return self._estimated_mg_entry(1, 1)

    @property
    def estimated_sz(self) -> Optional[float]:
        return self._estimated_mg_entry(2, 2)

    @property
    def estimated_mxy(self) -> Optional[float]:
        return self._estimated_mg_entry(0, 1)

    @property
    def estimated_mxz(self) -> Optional[float]:
        return self._estimated_mg_entry(0, 2)

    @property
    def estimated_myx(self) -> Optional[float]:
        return self._estimated_mg_entry(1, 0)

    @property
    def estimated_myz(self) -> Optional[float]:
        return self._estimated_mg_entry(1, 2)

    @property
    def estimated_mzx(self) -> Optional[float]:
        return self._estimated_mg_entry(2, 0)

    @property
    def estimated_mzy(self) -> Optional[float]:
        return self._estimated_mg_entry(2, 1)

    # ------------------------------------------------------------------
    # Residuals
    # ------------------------------------------------------------------

    def compute_error(self, measurement: FrameBodyKinematics, candidate) -> float:
        """
        Residual of one measurement against a candidate solution.

        Args:
            measurement: Frame-based measurement.
            candidate: Any object with mg and gg attributes.

        Returns:
            Norm of predicted minus measured angular rate (rad/s), or the
            maximal float when the true kinematics cannot be predicted.
        """
        try:
            k = self._kinematics_predictor(
                measurement.time_interval, measurement.frame, measurement.previous_frame
            )
        except (ValueError, np.linalg.LinAlgError):
            return MAX_RESIDUAL

        with np.errstate(over="ignore", invalid="ignore"):
            error = residual_norms(
                measurement.kinematics.angular_rate,
                self._bias,
                candidate.mg,
                candidate.gg,
                k.angular_rate,
                k.specific_force,
            )[0]
        return float(error) if np.isfinite(error) else MAX_RESIDUAL

    def _compute_residuals(
        self, samples: KinematicsSamples, candidate: PreliminaryResult
    ) -> np.ndarray:
        with np.errstate(over="ignore", invalid="ignore"):
            residuals = residual_norms(
                samples.measured_rates,
                self._bias,
                candidate.mg,
                candidate.gg,
                samples.true_rates,
                samples.true_forces,
            )
        residuals[~samples.valid | ~np.isfinite(residuals)] = MAX_RESIDUAL
        return residuals

    # ------------------------------------------------------------------
    # Fitting
    # ------------------------------------------------------------------

    def _nonlinear(self, samples: KinematicsSamples, mg, gg):
        config = self._config
        return self._nonlinear_fitter(
            measured_rates=samples.measured_rates,
            true_rates=samples.true_rates,
            true_forces=samples.true_forces,
            rate_std=samples.rate_std,
            bias=self._bias,
            common_axis_used=config.common_axis_used,
            initial_mg=mg,
            initial_gg=gg,
        )

    def _compute_preliminary_solution(
        self, samples: KinematicsSamples, indices: np.ndarray
    ) -> Optional[PreliminaryResult]:
        subset = samples.subset(indices)
        if not np.all(subset.valid):
            return None

        config = self._config
        result = PreliminaryResult(
            mg=np.array(config.initial_mg), gg=np.array(config.initial_gg)
        )

        try:
            if config.use_linear_calibrator:
                mg, gg = self._linear_fitter(
                    measured_rates=subset.measured_rates,
                    true_rates=subset.true_rates,
                    true_forces=subset.true_forces,
                    bias=self._bias,
                    common_axis_used=config.common_axis_used,
                )
                result = PreliminaryResult(mg=mg, gg=gg)

            if config.refine_preliminary_solutions:
                fit = self._nonlinear(subset, result.mg, result.gg)
                result = PreliminaryResult(
                    mg=fit.mg,
                    gg=fit.gg,
                    covariance=fit.covariance if config.keep_covariance else None,
                    mse=fit.mse,
                    chi_sq=fit.chi_sq,
                )
        except (FitError, ValueError):
            return None

        return result

    def _attempt_refine(
        self,
        samples: KinematicsSamples,
        preliminary: PreliminaryResult,
        inliers_data: InliersData,
    ) -> Tuple[PreliminaryResult, bool]:
        config = self._config
        if not config.refine_result:
            return replace(preliminary, covariance=None), False

        inliers = inliers_data.inlier_indices
        if len(inliers) == 0:
            return preliminary, False

        try:
            fit = self._nonlinear(samples.subset(inliers), preliminary.mg, preliminary.gg)
        except (FitError, ValueError) as e:
            warnings.warn(
                f"Refinement over {len(inliers)} inliers failed ({e}); "
                f"keeping the preliminary solution",
                RuntimeWarning,
            )
            return preliminary, False

        refined = PreliminaryResult(
            mg=fit.mg,
            gg=fit.gg,
            covariance=fit.covariance if config.keep_covariance else None,
            mse=fit.mse,
            chi_sq=fit.chi_sq,
        )
        return refined, True

    # ------------------------------------------------------------------
    # Calibration
    # ------------------------------------------------------------------

    def _on_next_iteration(self, iteration: int) -> None:
        if self._listener is not None:
            self._listener.on_calibrate_next_iteration(self, iteration)

    def _on_progress(self, progress: float) -> None:
        if self._listener is not None:
            self._listener.on_calibrate_progress_change(self, progress)

    def calibrate(self) -> RobustCalibrationResult:
        """
        Run the robust calibration.

        Returns:
            RobustCalibrationResult, also available through the estimated_*
            properties.

        Raises:
            LockedError: If a calibration is already running.
            NotReadyError: If is_ready is False.
            NoSolutionError: If no sampled subset produced a solution.
        """
        self._check_not_running()
        if not self.is_ready:
            raise NotReadyError(
                "Calibrator is not ready: at least "
                f"{MINIMUM_MEASUREMENTS} measurements (and one quality score per "
                "measurement for PROSAC/PROMEDS) are required"
            )

        self._running = True
        try:
            if self._listener is not None:
                self._listener.on_calibrate_start(self)

            config = self._config
            samples = self._measurements.expected_samples(self._kinematics_predictor)
            strategy = make_strategy(
                config.robust_method,
                config.threshold,
                config.stop_threshold,
                config.inlier_factor,
                residual_dof=3,
            )

            estimator = RobustEstimator(
                method=config.robust_method,
                num_measurements=len(samples),
                subset_size=config.preliminary_subset_size,
                fit_subset=lambda indices: self._compute_preliminary_solution(
                    samples, indices
                ),
                compute_residuals=lambda candidate: self._compute_residuals(
                    samples, candidate
                ),
                strategy=strategy,
                confidence=config.confidence,
                max_iterations=config.max_iterations,
                progress_delta=config.progress_delta,
                quality_scores=config.quality_scores,
                rng=self._rng,
                on_next_iteration=self._on_next_iteration,
                on_progress=self._on_progress,
            )
            estimate = estimator.estimate()

            if estimate.model is None:
                raise NoSolutionError(
                    f"No preliminary solution found after {estimate.iterations} "
                    f"iterations using {config.robust_method.name}"
                )

            final, refined = self._attempt_refine(
                samples, estimate.model, estimate.inliers_data
            )
            inliers_data = estimate.inliers_data
            if refined:
                inliers_data = strategy.evaluate(
                    self._compute_residuals(samples, final),
                    config.preliminary_subset_size,
                ).inliers_data

            self._result = RobustCalibrationResult(
                mg=final.mg,
                gg=final.gg,
                covariance=final.covariance,
                mse=final.mse,
                chi_sq=final.chi_sq,
                inliers_data=inliers_data,
                iterations=estimate.iterations,
            )

            if self._listener is not None:
                self._listener.on_calibrate_end(self)
        finally:
            self._running = False

        return self._result

    def __repr__(self) -> str:
        n = len(self._measurements) if self._measurements is not None else 0
        method = RobustMethod.parse(self._config.robust_method).name
        return (
            f"RobustKnownBiasAndFrameGyroscopeCalibrator(method={method}, "
            f"measurements={n}, running={self._running})"
        )
