"""Unit tests for adaptive iteration bounds."""

import unittest

import numpy as np
import pytest

from inertial_calibration.robust.iterations import (
    non_random_minimum_inliers,
    progressive_required_iterations,
    required_iterations,
)


class TestRequiredIterations(unittest.TestCase):
    def test_reference_value(self) -> None:
        """log(0.01) / log(1 - 0.8⁶) = 15.1 → 16."""
        self.assertEqual(required_iterations(0.99, 0.8, 6, 5000), 16)

    def test_monotonic_in_confidence(self) -> None:
        counts = [required_iterations(p, 0.5, 6, 100000) for p in (0.5, 0.9, 0.99, 0.999)]
        self.assertEqual(counts, sorted(counts))
        self.assertLess(counts[0], counts[-1])

    def test_monotonic_in_inlier_ratio(self) -> None:
        counts = [required_iterations(0.99, e, 6, 100000) for e in (0.3, 0.5, 0.7, 0.9)]
        self.assertEqual(counts, sorted(counts, reverse=True))

    def test_clamped_to_max_iterations(self) -> None:
        self.assertEqual(required_iterations(0.99, 0.1, 6, 5000), 5000)

    def test_degenerate_cases(self) -> None:
        self.assertEqual(required_iterations(0.99, 1.0, 6, 5000), 1)
        self.assertEqual(required_iterations(0.0, 0.5, 6, 5000), 1)
        self.assertEqual(required_iterations(0.99, 0.0, 6, 5000), 5000)
        self.assertEqual(required_iterations(1.0, 0.5, 6, 5000), 5000)

    def test_invalid_arguments_raise(self) -> None:
        with pytest.raises(ValueError):
            required_iterations(1.5, 0.5, 6, 10)
        with pytest.raises(ValueError):
            required_iterations(0.9, -0.1, 6, 10)
        with pytest.raises(ValueError):
            required_iterations(0.9, 0.5, 0, 10)
        with pytest.raises(ValueError):
            required_iterations(0.9, 0.5, 6, 0)


class TestNonRandomMinimumInliers(unittest.TestCase):
    def test_minimal_prefix_needs_more_than_subset(self) -> None:
        self.assertEqual(int(non_random_minimum_inliers([6], 6)[0]), 7)

    def test_grows_with_prefix_size(self) -> None:
        minimum = non_random_minimum_inliers(np.arange(7, 500), 6)
        self.assertTrue(np.all(np.diff(minimum) >= 0))
        self.assertTrue(np.all(minimum > 6))
        # With β = 1% a few percent of the prefix is enough
        self.assertLess(minimum[-1], 30)


class TestProgressiveRequiredIterations(unittest.TestCase):
    def test_all_inliers(self) -> None:
        self.assertEqual(progressive_required_iterations(np.ones(100, bool), 0.99, 6, 5000), 1)

    def test_never_above_full_set_bound(self) -> None:
        rng = np.random.default_rng(0)
        inliers = rng.random(200) < 0.6
        full = required_iterations(0.99, inliers.mean(), 6, 5000)

        self.assertLessEqual(progressive_required_iterations(inliers, 0.99, 6, 5000), full)

    def test_clean_prefix_lowers_bound(self) -> None:
        """Inliers ranked first give a bound below the full-set one."""
        inliers = np.zeros(200, dtype=bool)
        inliers[:80] = True
        full = required_iterations(0.99, 0.4, 6, 5000)

        progressive = progressive_required_iterations(inliers, 0.99, 6, 5000)

        self.assertLess(progressive, full)
        self.assertEqual(progressive, 1)

    def test_set_of_subset_size(self) -> None:
        inliers = np.array([True, True, True, True, True, False])
        self.assertEqual(
            progressive_required_iterations(inliers, 0.99, 6, 5000),
            required_iterations(0.99, 5 / 6, 6, 5000),
        )


if __name__ == "__main__":
    unittest.main()
