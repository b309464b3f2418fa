"""
Example: Robust Gyroscope Calibration with Known Bias.

This script calibrates the scale factors, cross couplings (M_g) and the
g-dependent cross biases (G_g) of a gyroscope from frame-based measurements
with a known bias, while a fraction of the measurements is corrupted.

Run from repository root:
    python gyro_calibration/example_robust_calibration.py
    python gyro_calibration/example_robust_calibration.py --data gyro_calibration_noisy

Demonstrates:
    - Predicting true kinematics from consecutive ECEF frames
    - Sampling minimal subsets and fitting preliminary solutions
    - Scoring preliminary solutions with a robust method
    - Refining the best solution over its inliers with Levenberg-Marquardt

Gyroscope Error Model:
    Ω_meas = b_g + (I + M_g) Ω_true + G_g f_true + n_g

    M_g = [[sx,  mxy, mxz],
           [myx, sy,  myz],
           [mzx, mzy, sz ]]
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Dict

import numpy as np

sys.path.insert(0, str(Path(__file__).parent.parent))

from inertial_calibration.calibration import (  # noqa: E402
    GyroscopeMeasurements,
    RobustKnownBiasAndFrameGyroscopeCalibrator,
    RobustKnownBiasAndFrameGyroscopeCalibratorListener,
    load_measurements,
)
from inertial_calibration.sensors import IMUErrors, generate_measurements  # noqa: E402

DEG_TO_RAD = np.pi / 180.0
STANDARD_GRAVITY = 9.80665


class ProgressPrinter(RobustKnownBiasAndFrameGyroscopeCalibratorListener):
    """Print calibration progress."""

    def on_calibrate_start(self, calibrator):
        print(f"  Started: {calibrator}")

    def on_calibrate_progress_change(self, calibrator, progress):
        print(f"  Progress: {progress * 100:5.1f}%")

    def on_calibrate_end(self, calibrator):
        print("  Finished")


def default_errors(gyro_noise_std: float = 1e-6) -> IMUErrors:
    """Reference gyroscope errors used when no dataset is given."""
    bias_g = np.array([-9e-3, 13e-3, -8e-3]) * DEG_TO_RAD / 3600.0
    mg = np.array(
        [
            [400e-6, -300e-6, 250e-6],
            [0.0, -300e-6, -150e-6],
            [0.0, 0.0, -350e-6],
        ]
    )
    gg = (DEG_TO_RAD / (3600.0 * STANDARD_GRAVITY)) * np.array(
        [
            [0.9, -1.1, -0.6],
            [-0.5, 1.9, -1.6],
            [0.3, 1.1, -1.3],
        ]
    )
    return IMUErrors(bias_g=bias_g, mg=mg, gg=gg, gyro_noise_std=gyro_noise_std)


def load_gyro_dataset(data_dir: str) -> Dict:
    """Load a dataset written by scripts/generate_gyro_calibration_dataset.py.

    Args:
        data_dir: Path to dataset directory (e.g., 'data/sim/gyro_calibration_noisy')

    Returns:
        Dictionary with measurements, true errors and outlier mask.
    """
    path = Path(data_dir)
    truth = np.load(path / "truth.npz")

    data = {
        "measurements": load_measurements(path / "measurements.npz"),
        "errors": IMUErrors(bias_g=truth["bias_g"], mg=truth["mg"], gg=truth["gg"]),
        "outliers": truth["outliers"],
    }

    config_path = path / "config.json"
    if config_path.exists():
        with open(config_path) as f:
            data["config"] = json.load(f)

    return data


def print_matrix(name: str, estimated: np.ndarray, true: np.ndarray) -> None:
    print(f"\n  {name} (estimated / true):")
    for row_est, row_true in zip(estimated, true):
        est = "  ".join(f"{v:+.3e}" for v in row_est)
        tru = "  ".join(f"{v:+.3e}" for v in row_true)
        print(f"    [{est}]   [{tru}]")


def run_calibration(
    measurements, errors: IMUErrors, outliers: np.ndarray, method: str
) -> None:
    """Calibrate and print a report against the true errors."""
    print("\n" + "-" * 70)
    print(f"Method: {method.upper()}")
    print("-" * 70)

    calibrator = RobustKnownBiasAndFrameGyroscopeCalibrator(
        measurements,
        errors.bias_g,
        listener=ProgressPrinter(),
        rng=0,
        robust_method=method,
        threshold=1e-4,
        progress_delta=0.25,
    )
    if calibrator.robust_method.requires_quality_scores:
        # Scores decrease with the residual of the uncorrected model.
        samples = GyroscopeMeasurements(measurements).expected_samples()
        raw = samples.measured_rates - errors.bias_g - samples.true_rates
        calibrator.quality_scores = -np.linalg.norm(np.nan_to_num(raw), axis=1)

    result = calibrator.calibrate()

    print_matrix("M_g", result.mg, errors.mg)
    print_matrix("G_g", result.gg, errors.gg)

    mg_error = np.max(np.abs(result.mg - errors.mg))
    gg_error = np.max(np.abs(result.gg - errors.gg))
    detected = ~result.inliers_data.inliers

    print(f"\n  Max |M_g error|: {mg_error:.3e}")
    print(f"  Max |G_g error|: {gg_error:.3e}")
    print(f"  Iterations:      {result.iterations}")
    print(f"  Inliers:         {result.inliers_data.num_inliers}/{len(measurements)}")
    print(f"  Outliers found:  {int(np.sum(detected & outliers))}/{int(outliers.sum())}")
    print(f"  MSE:             {result.mse:.3e} (rad/s)^2")
    if result.covariance is not None:
        std = np.sqrt(np.diag(result.covariance))
        print(f"  Std of sx, sy, sz: {std[0]:.2e}, {std[4]:.2e}, {std[8]:.2e}")


def run_with_inline_data(method: str) -> None:
    """Generate measurements with 20% outliers and calibrate them."""
    print("\nGenerating 200 measurements with 20% outliers...")
    errors = default_errors()
    measurements, outliers = generate_measurements(
        200, errors, rng=np.random.default_rng(42), outlier_ratio=0.2
    )
    run_calibration(measurements, errors, outliers, method)


def run_with_dataset(data_dir: str, method: str) -> None:
    print(f"\nLoading dataset: {data_dir}")
    data = load_gyro_dataset(data_dir)
    if "config" in data:
        print(f"  Outlier ratio: {data['config'].get('outlier_ratio')}")
    run_calibration(data["measurements"], data["errors"], data["outliers"], method)


def main():
    """Main execution with CLI argument parsing."""
    parser = argparse.ArgumentParser(
        description="Robust Gyroscope Calibration Example",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with inline generated data (default)
  python example_robust_calibration.py

  # Run with pre-generated dataset and PROSAC
  python example_robust_calibration.py --data gyro_calibration_noisy --method prosac
        """,
    )
    parser.add_argument(
        "--data",
        type=str,
        default=None,
        help="Dataset name or path (e.g., 'gyro_calibration_noisy' or full path)",
    )
    parser.add_argument(
        "--method",
        type=str,
        default="lmeds",
        choices=["ransac", "lmeds", "msac", "prosac", "promeds"],
        help="Robust method (default: lmeds)",
    )
    args = parser.parse_args()

    print("\n" + "=" * 70)
    print("ROBUST GYROSCOPE CALIBRATION (KNOWN BIAS AND FRAME)")
    print("=" * 70)

    if args.data:
        data_path = Path(args.data)
        if not data_path.exists():
            data_path = Path("data/sim") / args.data
        if not data_path.exists():
            print(f"Error: Dataset not found at '{args.data}' or 'data/sim/{args.data}'")
            print("\nAvailable datasets:")
            sim_dir = Path("data/sim")
            if sim_dir.exists():
                for d in sorted(sim_dir.iterdir()):
                    if d.is_dir() and d.name.startswith("gyro"):
                        print(f"  - {d.name}")
            return
        run_with_dataset(str(data_path), args.method)
    else:
        run_with_inline_data(args.method)

    print("\n" + "=" * 70)


if __name__ == "__main__":
    main()
