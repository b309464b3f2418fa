"""Robust inertial sensor calibration.

This package contains the components needed to calibrate a gyroscope error
model from redundant, outlier-contaminated measurements:
- coords: Rotations and geodetic/ECEF frame conversions
- sensors: Kinematics, ECEF frames, gravity and synthetic measurement generation
- estimators: Linear and nonlinear (Levenberg-Marquardt) least squares
- robust: Sampling, consensus scoring and iteration control (RANSAC family)
- calibration: Gyroscope error model fitters and the robust calibrator
"""

__version__ = "0.1.0"
