"""
Generate Gyroscope Calibration Dataset.

This script generates frame-based gyroscope measurements distorted by a known
error model (bias, scale factors, cross couplings and g-dependent cross
biases), with an optional fraction of corrupted measurements, for robust
calibration experiments.

Key Learning Objectives:
    - See how the gyroscope error model distorts true angular rates
    - Compare robust estimators as the outlier fraction grows
    - Study the effect of gyroscope noise on calibration accuracy

Gyroscope Error Model:
    Ω_meas = b_g + (I + M_g) Ω_true + G_g f_true + n_g

Outputs (under data/sim/<name>/):
    measurements.npz : FrameBodyKinematics archive (see calibration.dataset)
    truth.npz        : bias_g, mg, gg and the outlier mask
    config.json      : generation parameters
"""

import argparse
import json
import sys
from pathlib import Path

import numpy as np

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from inertial_calibration.calibration import save_measurements  # noqa: E402
from inertial_calibration.sensors import IMUErrors, generate_measurements  # noqa: E402

DEG_TO_RAD = np.pi / 180.0
STANDARD_GRAVITY = 9.80665

# Reference error model (deg/h/g for G_g)
TRUE_BIAS_G = np.array([-9e-3, 13e-3, -8e-3]) * DEG_TO_RAD / 3600.0
TRUE_MG = np.array(
    [
        [400e-6, -300e-6, 250e-6],
        [0.0, -300e-6, -150e-6],
        [0.0, 0.0, -350e-6],
    ]
)
TRUE_GG = (DEG_TO_RAD / (3600.0 * STANDARD_GRAVITY)) * np.array(
    [
        [0.9, -1.1, -0.6],
        [-0.5, 1.9, -1.6],
        [0.3, 1.1, -1.3],
    ]
)

PRESETS = {
    "baseline": {
        "num_measurements": 100,
        "gyro_noise_std": 0.0,
        "outlier_ratio": 0.0,
        "output": "data/sim/gyro_calibration_baseline",
    },
    "noisy": {
        "num_measurements": 500,
        "gyro_noise_std": 1e-5,
        "outlier_ratio": 0.1,
        "output": "data/sim/gyro_calibration_noisy",
    },
    "heavy_outliers": {
        "num_measurements": 300,
        "gyro_noise_std": 1e-6,
        "outlier_ratio": 0.4,
        "output": "data/sim/gyro_calibration_heavy_outliers",
    },
}


def generate_dataset(
    output_dir: str,
    num_measurements: int = 100,
    gyro_noise_std: float = 0.0,
    outlier_ratio: float = 0.0,
    time_interval: float = 0.02,
    seed: int = 42,
    preset: str = None,
) -> None:
    """
    Generate and save a gyroscope calibration dataset.

    Args:
        output_dir: Output directory path.
        num_measurements: Number of measurements.
        gyro_noise_std: Gyroscope white noise std (rad/s).
        outlier_ratio: Fraction of corrupted measurements in [0, 1).
        time_interval: Interval between frame pairs (s).
        seed: Random seed.
        preset: Name of the preset the parameters come from, if any.
    """
    print("\n" + "=" * 70)
    print(f"Generating Gyroscope Calibration Dataset: {Path(output_dir).name}")
    print("=" * 70)

    rng = np.random.default_rng(seed)
    errors = IMUErrors(
        bias_g=TRUE_BIAS_G,
        mg=TRUE_MG,
        gg=TRUE_GG,
        gyro_noise_std=gyro_noise_std,
    )

    print("\nStep 1: Generating measurements...")
    measurements, outliers = generate_measurements(
        num_measurements,
        errors,
        rng=rng,
        time_interval=time_interval,
        outlier_ratio=outlier_ratio,
    )
    print(f"  Measurements: {len(measurements)}")
    print(f"  Outliers: {int(outliers.sum())} ({outlier_ratio * 100:.1f}%)")
    print(f"  Gyro noise: {gyro_noise_std:.2e} rad/s")

    print("\nStep 2: Saving dataset...")
    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)

    save_measurements(output_path / "measurements.npz", measurements)
    np.savez(
        output_path / "truth.npz",
        bias_g=errors.bias_g,
        mg=errors.mg,
        gg=errors.gg,
        outliers=outliers,
    )

    config = {
        "dataset": "gyro_calibration",
        "preset": preset,
        "num_measurements": num_measurements,
        "time_interval_s": time_interval,
        "gyro_noise_std_rad_s": gyro_noise_std,
        "outlier_ratio": outlier_ratio,
        "num_outliers": int(outliers.sum()),
        "bias_g_rad_s": errors.bias_g.tolist(),
        "seed": seed,
    }
    with open(output_path / "config.json", "w") as f:
        json.dump(config, f, indent=2)

    print(f"   Saved: measurements.npz")
    print(f"   Saved: truth.npz")
    print(f"   Saved: config.json")

    print("\n" + "=" * 70)
    print("Dataset generation complete!")
    print("=" * 70)


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Generate Gyroscope Calibration Dataset",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Presets:
  baseline         100 noise-free measurements, no outliers
  noisy            500 measurements, 1e-5 rad/s noise, 10%% outliers
  heavy_outliers   300 measurements, 40%% outliers

Examples:
  python scripts/generate_gyro_calibration_dataset.py --preset baseline
  python scripts/generate_gyro_calibration_dataset.py \\
      --output data/sim/my_gyro --num-measurements 200 --outlier-ratio 0.2
        """,
    )
    parser.add_argument(
        "--preset",
        type=str,
        choices=sorted(PRESETS),
        help="Use preset configuration (overrides other parameters)",
    )
    parser.add_argument(
        "--output",
        type=str,
        default="data/sim/gyro_calibration",
        help="Output directory (default: data/sim/gyro_calibration)",
    )
    parser.add_argument(
        "--num-measurements", type=int, default=100, help="Number of measurements"
    )
    parser.add_argument(
        "--gyro-noise", type=float, default=0.0, help="Gyro noise std (rad/s)"
    )
    parser.add_argument(
        "--outlier-ratio", type=float, default=0.0, help="Outlier fraction 0-1"
    )
    parser.add_argument(
        "--dt", type=float, default=0.02, help="Time interval in seconds (default: 0.02)"
    )
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")

    args = parser.parse_args()

    params = {
        "output_dir": args.output,
        "num_measurements": args.num_measurements,
        "gyro_noise_std": args.gyro_noise,
        "outlier_ratio": args.outlier_ratio,
    }
    if args.preset is not None:
        preset = PRESETS[args.preset]
        params.update(
            output_dir=preset["output"],
            num_measurements=preset["num_measurements"],
            gyro_noise_std=preset["gyro_noise_std"],
            outlier_ratio=preset["outlier_ratio"],
        )

    generate_dataset(
        time_interval=args.dt,
        seed=args.seed,
        preset=args.preset,
        **params,
    )


if __name__ == "__main__":
    main()
