"""Unit tests for rotation utilities.

Test cases include:
- Identity and known rotations (90° yaw)
- Orthogonality and determinant checks
- Skew-symmetric cross product matrices
- Rotation validity checks
- Earth rotation (ECI to ECEF)
"""

import unittest

import numpy as np

from inertial_calibration.coords.rotations import (
    eci_to_ecef_rotation,
    euler_to_rotation_matrix,
    is_valid_rotation_matrix,
    skew_symmetric,
)


class TestEulerToRotationMatrix(unittest.TestCase):
    """Test cases for Euler angles to rotation matrix conversion."""

    def test_identity_rotation(self) -> None:
        R = euler_to_rotation_matrix(0.0, 0.0, 0.0)
        np.testing.assert_allclose(R, np.eye(3), atol=1e-12)

    def test_rotation_matrix_properties(self) -> None:
        """Test that rotation matrix is orthogonal with det(R) = 1."""
        R = euler_to_rotation_matrix(0.1, 0.2, 0.3)

        np.testing.assert_allclose(R.T @ R, np.eye(3), atol=1e-12)
        self.assertAlmostEqual(np.linalg.det(R), 1.0, places=12)

    def test_yaw_90_degrees(self) -> None:
        """Body x axis points east after a 90° yaw."""
        R = euler_to_rotation_matrix(0.0, 0.0, np.pi / 2)

        np.testing.assert_allclose(R @ [1.0, 0.0, 0.0], [0.0, 1.0, 0.0], atol=1e-12)

    def test_roll_90_degrees(self) -> None:
        R = euler_to_rotation_matrix(np.pi / 2, 0.0, 0.0)

        np.testing.assert_allclose(R @ [0.0, 1.0, 0.0], [0.0, 0.0, 1.0], atol=1e-12)


class TestSkewSymmetric(unittest.TestCase):
    def test_cross_product(self) -> None:
        v = np.array([1.0, -2.0, 3.0])
        u = np.array([0.5, 4.0, -1.0])

        np.testing.assert_allclose(skew_symmetric(v) @ u, np.cross(v, u), atol=1e-12)

    def test_antisymmetry(self) -> None:
        S = skew_symmetric([0.3, 0.2, 0.1])
        np.testing.assert_allclose(S, -S.T)

    def test_invalid_shape_raises(self) -> None:
        with self.assertRaises(ValueError):
            skew_symmetric([1.0, 2.0])


class TestIsValidRotationMatrix(unittest.TestCase):
    def test_valid_rotation(self) -> None:
        self.assertTrue(is_valid_rotation_matrix(euler_to_rotation_matrix(0.4, -0.2, 2.0)))

    def test_scaled_matrix_is_invalid(self) -> None:
        self.assertFalse(is_valid_rotation_matrix(2.0 * np.eye(3)))

    def test_reflection_is_invalid(self) -> None:
        self.assertFalse(is_valid_rotation_matrix(np.diag([1.0, 1.0, -1.0])))

    def test_wrong_shape_is_invalid(self) -> None:
        self.assertFalse(is_valid_rotation_matrix(np.eye(2)))

    def test_non_finite_is_invalid(self) -> None:
        R = np.eye(3)
        R[0, 0] = np.nan
        self.assertFalse(is_valid_rotation_matrix(R))


class TestEciToEcefRotation(unittest.TestCase):
    def test_zero_angle_is_identity(self) -> None:
        np.testing.assert_allclose(eci_to_ecef_rotation(0.0), np.eye(3))

    def test_rotation_about_z(self) -> None:
        angle = 0.3
        C = eci_to_ecef_rotation(angle)

        self.assertTrue(is_valid_rotation_matrix(C))
        np.testing.assert_allclose(C @ [0.0, 0.0, 1.0], [0.0, 0.0, 1.0])
        # ECI x axis appears rotated by -angle in ECEF
        np.testing.assert_allclose(
            C @ [1.0, 0.0, 0.0], [np.cos(angle), -np.sin(angle), 0.0], atol=1e-12
        )


if __name__ == "__main__":
    unittest.main()
