"""
Unit tests for the Levenberg-Marquardt solver.

Tests cover:
    - Linear models solved in few iterations
    - Nonlinear 2D range positioning
    - Weighted problems and fit statistics
    - Input validation
"""

import unittest

import numpy as np
from numpy.testing import assert_allclose

from inertial_calibration.estimators.nonlinear_least_squares import (
    NonlinearLSResult,
    levenberg_marquardt,
)


class TestLevenbergMarquardtLinearModel(unittest.TestCase):
    def setUp(self):
        rng = np.random.default_rng(1)
        self.A = rng.normal(size=(30, 4))
        self.x_true = np.array([1e-4, -2e-4, 3e-6, 5e-5])
        self.y = self.A @ self.x_true

    def test_recovers_small_parameters(self):
        """Relative convergence test does not stop early on tiny parameters."""
        result = levenberg_marquardt(
            lambda x: self.A @ x, lambda x: self.A, self.y, np.zeros(4)
        )

        self.assertIsInstance(result, NonlinearLSResult)
        assert_allclose(result.x, self.x_true, atol=1e-12)
        self.assertTrue(result.converged)
        self.assertLess(result.chi_sq, 1e-20)

    def test_covariance_is_inverse_information(self):
        w = np.full(30, 4.0)
        result = levenberg_marquardt(
            lambda x: self.A @ x, lambda x: self.A, self.y, np.zeros(4), weights=w
        )

        expected = np.linalg.inv(self.A.T @ np.diag(w) @ self.A)
        assert_allclose(result.covariance, expected, rtol=1e-8)

    def test_covariance_can_be_skipped(self):
        result = levenberg_marquardt(
            lambda x: self.A @ x,
            lambda x: self.A,
            self.y,
            np.zeros(4),
            return_covariance=False,
        )
        self.assertIsNone(result.covariance)

    def test_statistics(self):
        y = self.y.copy()
        y[0] += 1.0
        w = np.full(30, 2.0)

        result = levenberg_marquardt(
            lambda x: self.A @ x, lambda x: self.A, y, np.zeros(4), weights=w
        )

        r = y - self.A @ result.x
        assert_allclose(result.residuals, r, atol=1e-10)
        self.assertAlmostEqual(result.chi_sq, float(np.sum(w * r**2)), places=8)
        self.assertAlmostEqual(result.mse, float(np.mean(r**2)), places=10)


class TestLevenbergMarquardtRangePositioning(unittest.TestCase):
    """hᵢ(x) = ‖x - aᵢ‖ for 4 anchors at the corners of a 10x10 area."""

    def setUp(self):
        self.anchors = np.array([[0, 0], [10, 0], [0, 10], [10, 10]], dtype=float)
        self.true_pos = np.array([3.0, 4.0])

        def h(x):
            return np.linalg.norm(self.anchors - x, axis=1)

        def jacobian(x):
            diff = x - self.anchors
            ranges = np.linalg.norm(diff, axis=1, keepdims=True)
            return diff / np.maximum(ranges, 1e-10)

        self.h = h
        self.jacobian = jacobian

    def test_converges_from_poor_initial_guess(self):
        y = self.h(self.true_pos)

        result = levenberg_marquardt(self.h, self.jacobian, y, np.array([9.0, 9.0]))

        assert_allclose(result.x, self.true_pos, atol=1e-6)
        self.assertTrue(result.converged)


class TestLevenbergMarquardtValidation(unittest.TestCase):
    def test_invalid_inputs_raise(self):
        A = np.eye(3)

        with self.assertRaises(ValueError):
            levenberg_marquardt(lambda x: A @ x, lambda x: A, np.ones((3, 1)), np.zeros(3))
        with self.assertRaises(ValueError):
            levenberg_marquardt(lambda x: A @ x, lambda x: A, np.ones(3), np.zeros((3, 1)))
        with self.assertRaises(ValueError):
            levenberg_marquardt(
                lambda x: A @ x, lambda x: A, np.ones(3), np.zeros(3), weights=-np.ones(3)
            )
        with self.assertRaises(ValueError):
            levenberg_marquardt(
                lambda x: A @ x, lambda x: A, np.array([1.0, np.inf, 1.0]), np.zeros(3)
            )

    def test_wrong_jacobian_shape_raises(self):
        A = np.eye(3)
        with self.assertRaises(ValueError):
            levenberg_marquardt(lambda x: A @ x, lambda x: A[:2], np.ones(3), np.zeros(3))


if __name__ == "__main__":
    unittest.main()
