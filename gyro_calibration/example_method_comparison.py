"""
Example: Comparison of Robust Methods for Gyroscope Calibration.

Runs RANSAC, LMEDS, MSAC, PROSAC and PROMEDS on the same measurement sets
while the fraction of corrupted measurements grows, and plots the M_g and
G_g estimation errors and the number of robust iterations.

Run from repository root:
    python gyro_calibration/example_method_comparison.py

PROSAC and PROMEDS receive quality scores that rank each measurement by
the residual of the uncorrected model (Ω_meas - b_g - Ω_true), so corrupted
measurements tend to be sampled last.
"""

import sys
import time
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np

sys.path.insert(0, str(Path(__file__).parent.parent))

from inertial_calibration.calibration import (  # noqa: E402
    GyroscopeMeasurements,
    NoSolutionError,
    RobustKnownBiasAndFrameGyroscopeCalibrator,
)
from inertial_calibration.robust import RobustMethod  # noqa: E402
from inertial_calibration.sensors import IMUErrors, generate_measurements  # noqa: E402

DEG_TO_RAD = np.pi / 180.0
STANDARD_GRAVITY = 9.80665

OUTLIER_RATIOS = [0.0, 0.1, 0.2, 0.3, 0.4]
NUM_MEASUREMENTS = 150


def reference_errors() -> IMUErrors:
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
    return IMUErrors(bias_g=bias_g, mg=mg, gg=gg, gyro_noise_std=1e-6)


def uncorrected_quality_scores(measurements, bias_g: np.ndarray) -> np.ndarray:
    """Higher score for measurements closer to the uncorrected model."""
    samples = GyroscopeMeasurements(measurements).expected_samples()
    raw = samples.measured_rates - bias_g - samples.true_rates
    return -np.linalg.norm(np.nan_to_num(raw), axis=1)


def run_comparison():
    """Calibrate every method at every outlier ratio.

    Returns:
        Dictionary mapping method name to lists of M_g errors, G_g errors,
        iterations and run times (one entry per outlier ratio).
    """
    errors = reference_errors()
    results = {
        method.name: {"mg": [], "gg": [], "iterations": [], "time": []}
        for method in RobustMethod
    }

    for ratio in OUTLIER_RATIOS:
        print(f"\nOutlier ratio: {ratio * 100:.0f}%")
        measurements, _ = generate_measurements(
            NUM_MEASUREMENTS,
            errors,
            rng=np.random.default_rng(7),
            outlier_ratio=ratio,
        )
        scores = uncorrected_quality_scores(measurements, errors.bias_g)

        for method in RobustMethod:
            calibrator = RobustKnownBiasAndFrameGyroscopeCalibrator(
                measurements,
                errors.bias_g,
                rng=0,
                robust_method=method,
                threshold=1e-4,
                quality_scores=scores,
            )
            start = time.perf_counter()
            try:
                result = calibrator.calibrate()
            except NoSolutionError as e:
                print(f"  {method.name:8s} failed: {e}")
                for key in ("mg", "gg", "iterations", "time"):
                    results[method.name][key].append(np.nan)
                continue
            elapsed = time.perf_counter() - start

            mg_error = np.max(np.abs(result.mg - errors.mg))
            gg_error = np.max(np.abs(result.gg - errors.gg))
            results[method.name]["mg"].append(mg_error)
            results[method.name]["gg"].append(gg_error)
            results[method.name]["iterations"].append(result.iterations)
            results[method.name]["time"].append(elapsed)

            print(
                f"  {method.name:8s} M_g err={mg_error:.2e}  G_g err={gg_error:.2e}  "
                f"iterations={result.iterations:5d}  time={elapsed * 1000:7.1f} ms"
            )

    return results


def plot_comparison(results) -> None:
    fig, axes = plt.subplots(1, 3, figsize=(18, 5))
    ratios = np.array(OUTLIER_RATIOS) * 100

    for name, data in results.items():
        axes[0].semilogy(ratios, data["mg"], "o-", label=name)
        axes[1].semilogy(ratios, data["gg"], "o-", label=name)
        axes[2].plot(ratios, data["iterations"], "o-", label=name)

    axes[0].set_title("Max |M_g error|")
    axes[0].set_ylabel("Error (-)")
    axes[1].set_title("Max |G_g error|")
    axes[1].set_ylabel("Error (rad/s per m/s²)")
    axes[2].set_title("Robust iterations")
    axes[2].set_ylabel("Iterations")
    for ax in axes:
        ax.set_xlabel("Outliers (%)")
        ax.grid(True, alpha=0.3)
        ax.legend()

    plt.tight_layout()

    output_dir = Path(__file__).parent / "figs"
    output_dir.mkdir(exist_ok=True)
    output_path = output_dir / "gyro_robust_method_comparison.png"
    plt.savefig(output_path, dpi=150, bbox_inches="tight")
    print(f"\nPlot saved as: {output_path}")
    plt.show()


def main():
    print("\n" + "=" * 70)
    print("ROBUST METHOD COMPARISON: GYROSCOPE CALIBRATION WITH KNOWN BIAS")
    print("=" * 70)
    print(f"\nMeasurements per run: {NUM_MEASUREMENTS}")
    print(f"Methods: {', '.join(m.name for m in RobustMethod)}")

    results = run_comparison()
    plot_comparison(results)

    print("\n" + "=" * 70)
    print("Comparison complete!")
    print("=" * 70)


if __name__ == "__main__":
    main()
