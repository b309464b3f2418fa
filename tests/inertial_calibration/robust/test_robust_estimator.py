"""
Unit tests for the generic robust consensus loop.

The model in these tests is a constant: a subset of size one is fitted by
its single value and the residual of every point is its absolute distance
to the constant.
"""

import numpy as np
import pytest

from inertial_calibration.robust.estimator import RobustEstimator, make_strategy
from inertial_calibration.robust.methods import RobustMethod
from inertial_calibration.robust.scoring import (
    LMedSStrategy,
    MsacStrategy,
    RansacStrategy,
)

TRUE_VALUE = 3.0


@pytest.fixture
def values():
    """20 points at 3.0 with 6 gross outliers."""
    data = np.full(20, TRUE_VALUE)
    data[[1, 4, 7, 11, 15, 18]] = [10.0, -5.0, 7.5, 100.0, -20.0, 42.0]
    return data


def _estimator(values, method, **kwargs):
    method = RobustMethod.parse(method)
    kwargs.setdefault("rng", np.random.default_rng(0))
    if method.requires_quality_scores:
        kwargs.setdefault("quality_scores", -np.abs(values - np.median(values)))
    return RobustEstimator(
        method=method,
        num_measurements=len(values),
        subset_size=1,
        fit_subset=lambda idx: float(values[idx[0]]),
        compute_residuals=lambda model: np.abs(values - model),
        strategy=make_strategy(method, threshold=0.1, stop_threshold=1e-6),
        **kwargs,
    )


class TestMakeStrategy:
    def test_mapping(self):
        assert isinstance(make_strategy("ransac", 1.0, 1e-3), RansacStrategy)
        assert isinstance(make_strategy("prosac", 1.0, 1e-3), RansacStrategy)
        assert isinstance(make_strategy("msac", 1.0, 1e-3), MsacStrategy)
        assert isinstance(make_strategy("lmeds", 1.0, 1e-3), LMedSStrategy)
        assert isinstance(make_strategy("promeds", 1.0, 1e-3), LMedSStrategy)


class TestRobustEstimator:
    @pytest.mark.parametrize("method", [m.value for m in RobustMethod])
    def test_recovers_constant_and_inliers(self, values, method):
        estimate = _estimator(values, method).estimate()

        assert estimate.model == pytest.approx(TRUE_VALUE)
        np.testing.assert_array_equal(
            estimate.inliers_data.inliers, values == TRUE_VALUE
        )
        assert 1 <= estimate.iterations <= 5000

    def test_iterations_bounded_by_max(self, values):
        estimate = _estimator(values, "ransac", max_iterations=3, confidence=1.0).estimate()
        assert estimate.iterations == 3

    def test_callbacks(self, values):
        iterations = []
        progress = []

        estimate = _estimator(
            values,
            "ransac",
            confidence=1.0,
            max_iterations=100,
            progress_delta=0.1,
            on_next_iteration=iterations.append,
            on_progress=progress.append,
        ).estimate()

        assert iterations == list(range(1, estimate.iterations + 1))
        assert progress[-1] == 1.0
        assert all(b - a >= 0.1 - 1e-12 for a, b in zip(progress[:-2], progress[1:-1]))
        assert all(0.0 < p < 1.0 for p in progress[:-1])

    def test_no_model_when_every_fit_fails(self, values):
        estimator = RobustEstimator(
            method=RobustMethod.LMEDS,
            num_measurements=len(values),
            subset_size=1,
            fit_subset=lambda idx: None,
            compute_residuals=lambda model: pytest.fail("no model to score"),
            strategy=make_strategy("lmeds", 0.1, 1e-6),
            max_iterations=25,
        )

        estimate = estimator.estimate()

        assert estimate.model is None
        assert estimate.inliers_data is None
        assert estimate.iterations == 25

    def test_lmeds_stops_on_exact_fit(self, values):
        estimate = _estimator(values, "lmeds", confidence=1.0).estimate()
        # Converged on the first clean subset instead of running 5000 iterations
        assert estimate.iterations < 50

    @pytest.mark.parametrize(
        "bound_threshold, expected_iterations", [(None, 4), (0.1, 200)]
    )
    def test_median_bound_ignores_inflated_inliers(
        self, bound_threshold, expected_iterations
    ):
        # Median threshold of these residuals inflates to ~3.6, admitting 15/20
        residuals = np.array([0.5] * 15 + [5.0] * 5)
        estimator = RobustEstimator(
            method=RobustMethod.LMEDS,
            num_measurements=len(residuals),
            subset_size=1,
            fit_subset=lambda idx: 0.0,
            compute_residuals=lambda model: residuals,
            strategy=LMedSStrategy(1e-6, bound_threshold=bound_threshold),
            max_iterations=200,
            rng=np.random.default_rng(0),
        )

        estimate = estimator.estimate()

        assert estimate.inliers_data.num_inliers == 15
        assert estimate.iterations == expected_iterations

    def test_progressive_requires_scores(self, values):
        with pytest.raises(ValueError):
            _estimator(values, "prosac", quality_scores=None)
        with pytest.raises(ValueError):
            _estimator(values, "promeds", quality_scores=np.ones(3))

    def test_invalid_arguments_raise(self, values):
        with pytest.raises(ValueError):
            _estimator(values, "ransac", confidence=1.5)
        with pytest.raises(ValueError):
            _estimator(values, "ransac", max_iterations=0)
        with pytest.raises(ValueError):
            _estimator(values, "ransac", progress_delta=-0.1)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
