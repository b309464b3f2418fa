"""
Unit tests for RobustKnownBiasAndFrameGyroscopeCalibrator.

Tests cover:
    - Exact recovery of M_g and G_g with every robust method
    - Detection of the injected outliers
    - Recovery and outlier detection on noisy measurements
    - Locking of every setter while a calibration runs and listener events
    - Readiness, NoSolutionError and refinement fallback
    - Common-axis calibration and per-entry accessors

Run with: pytest tests/inertial_calibration/calibration/test_robust_gyroscope.py -v
"""

from functools import partial

import numpy as np
import pytest

from inertial_calibration.calibration.config import RobustCalibrationConfig
from inertial_calibration.calibration.errors import (
    FitError,
    LockedError,
    NoSolutionError,
    NotReadyError,
)
from inertial_calibration.calibration.gyroscope_fitters import linear_fit_from_kinematics
from inertial_calibration.calibration.listener import (
    RobustKnownBiasAndFrameGyroscopeCalibratorListener,
)
from inertial_calibration.calibration.measurements import GyroscopeMeasurements
from inertial_calibration.calibration.robust_gyroscope import (
    RobustCalibrationResult,
    RobustKnownBiasAndFrameGyroscopeCalibrator,
)
from inertial_calibration.robust.methods import RobustMethod
from inertial_calibration.robust.scoring import MAX_RESIDUAL
from inertial_calibration.sensors.generators import IMUErrors, generate_measurements
from inertial_calibration.sensors.kinematics import estimate_kinematics

DEG_TO_RAD = np.pi / 180.0

BIAS_G = np.array([-9e-3, 13e-3, -8e-3]) * DEG_TO_RAD / 3600.0
MG = np.array(
    [
        [400e-6, -300e-6, 250e-6],
        [-150e-6, -300e-6, -150e-6],
        [200e-6, 100e-6, -350e-6],
    ]
)
GG = (DEG_TO_RAD / (3600.0 * 9.80665)) * np.array(
    [
        [0.9, -1.1, -0.6],
        [-0.5, 1.9, -1.6],
        [0.3, 1.1, -1.3],
    ]
)

NUM_MEASUREMENTS = 100
OUTLIER_RATIO = 0.2


def _generate(
    mg=MG,
    num_measurements=NUM_MEASUREMENTS,
    outlier_ratio=OUTLIER_RATIO,
    seed=42,
    gyro_noise_std=0.0,
):
    errors = IMUErrors(bias_g=BIAS_G, mg=mg, gg=GG, gyro_noise_std=gyro_noise_std)
    return generate_measurements(
        num_measurements,
        errors,
        rng=np.random.default_rng(seed),
        outlier_ratio=outlier_ratio,
    )


def _quality_scores(measurements):
    """Higher for measurements the uncorrected model already explains."""
    s = GyroscopeMeasurements(measurements).expected_samples()
    return -np.linalg.norm(s.measured_rates - BIAS_G - s.true_rates, axis=1)


def _calibrator(measurements, method, **kwargs):
    method = RobustMethod.parse(method)
    if method.requires_quality_scores:
        kwargs.setdefault("quality_scores", _quality_scores(measurements))
    kwargs.setdefault("rng", 7)
    return RobustKnownBiasAndFrameGyroscopeCalibrator(
        measurements, BIAS_G, robust_method=method, **kwargs
    )


@pytest.fixture(scope="module")
def dataset():
    """100 noise-free measurements, 20% of them corrupted."""
    return _generate()


@pytest.fixture(scope="module", params=[0.2, 0.3, 0.4], ids=lambda r: f"outliers{r}")
def noisy_dataset(request):
    """200 measurements with 1e-6 rad/s gyro noise and a share of outliers."""
    return _generate(
        num_measurements=200, outlier_ratio=request.param, seed=11, gyro_noise_std=1e-6
    )


def _raising_fitter(error):
    def fitter(**kwargs):
        raise error

    return fitter


class FlakyLinearFitter:
    """Linear fitter failing with a ValueError on every odd call."""

    def __init__(self):
        self.calls = 0
        self.failures = 0

    def __call__(self, **kwargs):
        self.calls += 1
        if self.calls % 2 == 1:
            self.failures += 1
            raise np.linalg.LinAlgError("Singular matrix")
        return linear_fit_from_kinematics(**kwargs)


class ToggleLinearFitter:
    """Linear fitter that can be switched to always fail."""

    def __init__(self):
        self.fail = False

    def __call__(self, **kwargs):
        if self.fail:
            raise FitError("forced failure")
        return linear_fit_from_kinematics(**kwargs)


class RecordingListener(RobustKnownBiasAndFrameGyroscopeCalibratorListener):
    def __init__(self):
        self.starts = 0
        self.ends = 0
        self.iterations = []
        self.progress = []
        self.locked = {}

    def on_calibrate_start(self, calibrator):
        self.starts += 1
        self.locked["start"] = self._try_every_setter(calibrator)

    def on_calibrate_end(self, calibrator):
        self.ends += 1
        self.locked["end"] = self._try_every_setter(calibrator)

    def on_calibrate_next_iteration(self, calibrator, iteration):
        self.iterations.append(iteration)
        if iteration == 1:
            self.locked["iteration"] = self._try_every_setter(calibrator)

    def on_calibrate_progress_change(self, calibrator, progress):
        self.progress.append(progress)

    @classmethod
    def _try_every_setter(cls, calibrator):
        """Attempt every mutation; True for each one rejected with LockedError."""
        state = (
            calibrator.config,
            calibrator.measurements,
            calibrator.bias,
            calibrator.listener,
        )
        attempts = {"running": calibrator.is_running}
        for name, attr in vars(type(calibrator)).items():
            if isinstance(attr, property) and attr.fset is not None:
                value = getattr(calibrator, name)
                attempts[name] = cls._raises_locked(
                    partial(setattr, calibrator, name, value)
                )
        attempts["set_initial_scaling_factors"] = cls._raises_locked(
            partial(calibrator.set_initial_scaling_factors, 1e-3, 2e-3, 3e-3)
        )
        attempts["set_initial_cross_coupling_errors"] = cls._raises_locked(
            partial(calibrator.set_initial_cross_coupling_errors, *([1e-4] * 6))
        )
        attempts["calibrate"] = cls._raises_locked(calibrator.calibrate)
        after = (
            calibrator.config,
            calibrator.measurements,
            calibrator.bias,
            calibrator.listener,
        )
        attempts["unchanged"] = all(a is b for a, b in zip(state, after))
        return attempts

    @staticmethod
    def _raises_locked(action):
        try:
            action()
        except LockedError:
            return True
        return False


class TestRobustCalibration:
    @pytest.mark.parametrize("method", [m.value for m in RobustMethod])
    def test_recovers_parameters(self, dataset, method):
        measurements, _ = dataset
        calibrator = _calibrator(measurements, method)

        result = calibrator.calibrate()

        assert isinstance(result, RobustCalibrationResult)
        np.testing.assert_allclose(calibrator.estimated_mg, MG, atol=1e-8)
        np.testing.assert_allclose(calibrator.estimated_gg, GG, atol=1e-9)
        assert calibrator.estimated_covariance.shape == (18, 18)
        assert calibrator.estimated_mse < 1e-18

    @pytest.mark.parametrize("method", [m.value for m in RobustMethod])
    def test_detects_injected_outliers(self, dataset, method):
        measurements, outliers = dataset
        calibrator = _calibrator(measurements, method)

        calibrator.calibrate()

        assert calibrator.inliers_data.num_inliers == NUM_MEASUREMENTS - int(
            OUTLIER_RATIO * NUM_MEASUREMENTS
        )
        np.testing.assert_array_equal(calibrator.inliers_data.inliers, ~outliers)

    def test_same_seed_same_result(self, dataset):
        measurements, _ = dataset

        a = _calibrator(measurements, "ransac", rng=3, refine_result=False).calibrate()
        b = _calibrator(measurements, "ransac", rng=3, refine_result=False).calibrate()

        np.testing.assert_array_equal(a.mg, b.mg)
        np.testing.assert_array_equal(a.gg, b.gg)
        assert a.iterations == b.iterations

    def test_repeated_setter_has_no_side_effect(self, dataset):
        measurements, _ = dataset
        once = _calibrator(measurements, "msac", rng=4)
        once.threshold = 5e-4
        twice = _calibrator(measurements, "msac", rng=4)
        twice.threshold = 5e-4
        twice.threshold = 5e-4

        a = once.calibrate()
        b = twice.calibrate()

        np.testing.assert_array_equal(a.mg, b.mg)
        assert a.iterations == b.iterations

    def test_iterations_bounded_by_max(self, dataset):
        measurements, _ = dataset
        calibrator = _calibrator(measurements, "msac", max_iterations=10, confidence=1.0)

        calibrator.calibrate()

        assert 1 <= calibrator.iterations <= 10

    def test_refined_preliminary_solutions(self, dataset):
        measurements, _ = dataset
        calibrator = _calibrator(
            measurements,
            "ransac",
            use_linear_calibrator=False,
            refine_preliminary_solutions=True,
        )

        calibrator.calibrate()

        np.testing.assert_allclose(calibrator.estimated_mg, MG, atol=1e-8)

    def test_unrefined_result_has_no_covariance(self, dataset):
        measurements, _ = dataset
        calibrator = _calibrator(measurements, "lmeds", refine_result=False)

        calibrator.calibrate()

        assert calibrator.estimated_covariance is None
        assert calibrator.estimated_mse == 0.0
        np.testing.assert_allclose(calibrator.estimated_mg, MG, atol=1e-8)

    def test_covariance_can_be_dropped(self, dataset):
        measurements, _ = dataset
        calibrator = _calibrator(measurements, "lmeds", keep_covariance=False)

        calibrator.calibrate()

        assert calibrator.estimated_covariance is None
        np.testing.assert_allclose(calibrator.estimated_mg, MG, atol=1e-8)

    def test_common_axis(self):
        mg = np.triu(MG)
        measurements, outliers = _generate(mg=mg, seed=5)
        calibrator = _calibrator(measurements, "ransac", common_axis_used=True)

        calibrator.calibrate()

        np.testing.assert_allclose(calibrator.estimated_mg, mg, atol=1e-8)
        assert calibrator.estimated_myx == 0.0
        assert calibrator.estimated_mzx == 0.0
        assert calibrator.estimated_mzy == 0.0
        assert calibrator.num_unknowns == 15
        np.testing.assert_array_equal(calibrator.inliers_data.inliers, ~outliers)

    def test_entry_accessors(self, dataset):
        measurements, _ = dataset
        calibrator = _calibrator(measurements, "lmeds")
        assert calibrator.estimated_sx is None

        calibrator.calibrate()

        mg = calibrator.estimated_mg
        assert calibrator.estimated_sx == mg[0, 0]
        assert calibrator.estimated_sy == mg[1, 1]
        assert calibrator.estimated_sz == mg[2, 2]
        assert calibrator.estimated_mxy == mg[0, 1]
        assert calibrator.estimated_mxz == mg[0, 2]
        assert calibrator.estimated_myz == mg[1, 2]

    def test_compute_error(self, dataset):
        measurements, outliers = dataset
        calibrator = _calibrator(measurements, "lmeds")
        result = calibrator.calibrate()

        inlier = int(np.flatnonzero(~outliers)[0])
        outlier = int(np.flatnonzero(outliers)[0])

        assert calibrator.compute_error(measurements[inlier], result) < 1e-10
        assert calibrator.compute_error(measurements[outlier], result) >= 0.05 - 1e-6

    def test_unpredictable_measurement_is_outlier(self):
        measurements, _ = _generate(num_measurements=30, outlier_ratio=0.0, seed=9)
        bad = measurements[3]

        def predictor(time_interval, frame, previous_frame):
            if frame is bad.frame:
                raise ValueError("invalid attitude")
            return estimate_kinematics(time_interval, frame, previous_frame)

        calibrator = _calibrator(measurements, "ransac", kinematics_predictor=predictor)
        result = calibrator.calibrate()

        assert not result.inliers_data.inliers[3]
        assert result.inliers_data.num_inliers == 29
        assert calibrator.compute_error(bad, result) == MAX_RESIDUAL
        np.testing.assert_allclose(result.mg, MG, atol=1e-8)


class TestNoisyCalibration:
    @pytest.mark.parametrize("seed", range(4))
    @pytest.mark.parametrize("method", ["lmeds", "promeds"])
    def test_median_methods_recover_parameters(self, noisy_dataset, method, seed):
        measurements, _ = noisy_dataset
        calibrator = _calibrator(measurements, method, rng=seed)

        calibrator.calibrate()

        np.testing.assert_allclose(calibrator.estimated_mg, MG, atol=1e-5)
        np.testing.assert_allclose(calibrator.estimated_gg, GG, atol=1e-6)

    @pytest.mark.parametrize("method", [m.value for m in RobustMethod])
    def test_detects_injected_outliers(self, noisy_dataset, method):
        measurements, outliers = noisy_dataset
        calibrator = _calibrator(measurements, method)

        calibrator.calibrate()

        np.testing.assert_array_equal(calibrator.inliers_data.inliers, ~outliers)


class TestReadiness:
    @pytest.mark.parametrize("method", [m.value for m in RobustMethod])
    def test_six_measurements_are_enough(self, method):
        measurements, _ = _generate(num_measurements=6, outlier_ratio=0.0, seed=1)
        calibrator = _calibrator(measurements, method)

        assert calibrator.is_ready
        calibrator.calibrate()

        np.testing.assert_allclose(calibrator.estimated_mg, MG, atol=1e-8)

    @pytest.mark.parametrize("method", [m.value for m in RobustMethod])
    def test_five_measurements_are_not_ready(self, method):
        measurements, _ = _generate(num_measurements=5, outlier_ratio=0.0, seed=1)
        calibrator = RobustKnownBiasAndFrameGyroscopeCalibrator(
            measurements, BIAS_G, robust_method=method
        )

        assert not calibrator.is_ready
        with pytest.raises(NotReadyError):
            calibrator.calibrate()
        assert calibrator.result is None

    def test_progressive_method_needs_scores(self, dataset):
        measurements, _ = dataset
        calibrator = RobustKnownBiasAndFrameGyroscopeCalibrator(
            measurements, BIAS_G, robust_method="prosac"
        )
        assert not calibrator.is_ready

        calibrator.quality_scores = np.ones(NUM_MEASUREMENTS - 1)
        assert not calibrator.is_ready
        with pytest.raises(NotReadyError):
            calibrator.calibrate()

        calibrator.quality_scores = _quality_scores(measurements)
        assert calibrator.is_ready

    def test_no_measurements(self):
        calibrator = RobustKnownBiasAndFrameGyroscopeCalibrator()

        assert not calibrator.is_ready
        np.testing.assert_array_equal(calibrator.bias, np.zeros(3))
        with pytest.raises(NotReadyError):
            calibrator.calibrate()

    def test_subset_larger_than_measurements(self):
        measurements, _ = _generate(num_measurements=8, outlier_ratio=0.0)
        calibrator = _calibrator(measurements, "ransac", preliminary_subset_size=9)

        assert not calibrator.is_ready


class TestFailures:
    def test_no_solution_keeps_previous_result(self, dataset):
        measurements, _ = dataset
        fitter = ToggleLinearFitter()
        calibrator = _calibrator(
            measurements, "lmeds", linear_fitter=fitter, max_iterations=20
        )
        previous = calibrator.calibrate()

        fitter.fail = True
        with pytest.raises(NoSolutionError):
            calibrator.calibrate()

        assert calibrator.result is previous
        assert not calibrator.is_running

    @pytest.mark.parametrize(
        "error",
        [
            FitError("fit diverged"),
            ValueError("non-finite residuals"),
            np.linalg.LinAlgError("Singular matrix"),
        ],
        ids=["fit_error", "value_error", "lin_alg_error"],
    )
    def test_failed_refinement_keeps_preliminary_solution(self, dataset, error):
        measurements, _ = dataset
        calibrator = _calibrator(
            measurements, "ransac", nonlinear_fitter=_raising_fitter(error)
        )

        with pytest.warns(RuntimeWarning):
            result = calibrator.calibrate()

        reference = _calibrator(measurements, "ransac", refine_result=False).calibrate()
        np.testing.assert_array_equal(result.mg, reference.mg)
        np.testing.assert_array_equal(result.gg, reference.gg)
        np.testing.assert_array_equal(
            result.inliers_data.inliers, reference.inliers_data.inliers
        )
        assert result.covariance is None

    @pytest.mark.parametrize("method", ["ransac", "lmeds"])
    def test_subsets_failing_with_value_error_are_discarded(self, dataset, method):
        measurements, _ = dataset
        fitter = FlakyLinearFitter()
        calibrator = _calibrator(measurements, method, linear_fitter=fitter)

        calibrator.calibrate()

        assert fitter.failures >= 1
        assert calibrator.iterations == fitter.calls
        np.testing.assert_allclose(calibrator.estimated_mg, MG, atol=1e-8)
        np.testing.assert_allclose(calibrator.estimated_gg, GG, atol=1e-9)

    def test_preliminary_value_errors_exhaust_iterations(self, dataset):
        measurements, _ = dataset
        calibrator = _calibrator(
            measurements,
            "msac",
            linear_fitter=_raising_fitter(ValueError("ill-conditioned subset")),
            max_iterations=15,
        )

        with pytest.raises(NoSolutionError):
            calibrator.calibrate()

        assert calibrator.result is None
        assert not calibrator.is_running

    def test_invalid_setter_value_leaves_config_unchanged(self, dataset):
        measurements, _ = dataset
        calibrator = _calibrator(measurements, "ransac")

        with pytest.raises(ValueError):
            calibrator.confidence = 1.5
        with pytest.raises(ValueError):
            calibrator.bias = np.zeros(2)
        with pytest.raises(ValueError):
            calibrator.measurements = [measurements[0], "not a measurement"]

        assert calibrator.confidence == 0.99
        np.testing.assert_array_equal(calibrator.bias, BIAS_G)
        assert len(calibrator.measurements) == NUM_MEASUREMENTS

    def test_invalid_construction(self, dataset):
        measurements, _ = dataset
        with pytest.raises(ValueError):
            RobustKnownBiasAndFrameGyroscopeCalibrator(measurements, bias=[1.0, 2.0])
        with pytest.raises(ValueError):
            RobustKnownBiasAndFrameGyroscopeCalibrator(measurements, max_iterations=0)
        with pytest.raises(TypeError):
            RobustKnownBiasAndFrameGyroscopeCalibrator(measurements, tolerance=1.0)


class TestListenerAndLocking:
    def test_listener_events(self, dataset):
        measurements, _ = dataset
        listener = RecordingListener()
        calibrator = _calibrator(
            measurements, "ransac", listener=listener, progress_delta=0.1
        )

        calibrator.calibrate()

        assert listener.starts == 1
        assert listener.ends == 1
        assert listener.iterations == list(range(1, calibrator.iterations + 1))
        assert listener.progress[-1] == 1.0
        assert all(0.0 < p <= 1.0 for p in listener.progress)

    def test_calibrator_is_locked_during_callbacks(self, dataset):
        measurements, _ = dataset
        listener = RecordingListener()
        calibrator = _calibrator(measurements, "lmeds", listener=listener)
        config = calibrator.config
        bias = calibrator.bias

        calibrator.calibrate()

        assert set(listener.locked) == {"start", "iteration", "end"}
        for stage, attempts in listener.locked.items():
            rejected = [name for name, locked in attempts.items() if not locked]
            assert rejected == [], stage
        setters = {
            name
            for name, attr in vars(RobustKnownBiasAndFrameGyroscopeCalibrator).items()
            if isinstance(attr, property) and attr.fset is not None
        }
        assert {
            "config",
            "measurements",
            "bias",
            "listener",
            "robust_method",
            "quality_scores",
            "initial_mg",
            "initial_gg",
            "threshold",
        } <= setters
        assert setters <= set(listener.locked["start"])

        assert not calibrator.is_running
        assert calibrator.config is config
        assert calibrator.bias is bias
        assert calibrator.listener is listener
        assert calibrator.measurements is not None
        assert calibrator.threshold == RobustCalibrationConfig().threshold

        calibrator.threshold = 1e-2
        assert calibrator.threshold == 1e-2

    def test_initial_value_helpers(self):
        calibrator = RobustKnownBiasAndFrameGyroscopeCalibrator()

        calibrator.set_initial_scaling_factors(1e-3, 2e-3, 3e-3)
        calibrator.set_initial_cross_coupling_errors(1e-4, 2e-4, 3e-4, 4e-4, 5e-4, 6e-4)

        np.testing.assert_allclose(
            calibrator.initial_mg,
            [[1e-3, 1e-4, 2e-4], [3e-4, 2e-3, 4e-4], [5e-4, 6e-4, 3e-3]],
        )
