"""
Robust sample consensus engine.

Modules:
    methods: RobustMethod tag (RANSAC, LMEDS, MSAC, PROSAC, PROMEDS)
    inliers: InliersData consensus set
    sampling: Uniform and progressive (PROSAC) subset samplers
    scoring: RANSAC, MSAC and LMedS consensus strategies
    iterations: Adaptive iteration bounds
    estimator: Generic sample -> fit -> score loop
"""

from inertial_calibration.robust.methods import RobustMethod
from inertial_calibration.robust.inliers import InliersData
from inertial_calibration.robust.sampling import (
    ProgressiveSubsetSampler,
    UniformSubsetSampler,
)
from inertial_calibration.robust.scoring import (
    MAX_RESIDUAL,
    Consensus,
    LMedSStrategy,
    MsacStrategy,
    RansacStrategy,
)
from inertial_calibration.robust.iterations import (
    non_random_minimum_inliers,
    progressive_required_iterations,
    required_iterations,
)
from inertial_calibration.robust.estimator import (
    RobustEstimate,
    RobustEstimator,
    make_strategy,
)

__all__ = [
    "RobustMethod",
    "InliersData",
    "UniformSubsetSampler",
    "ProgressiveSubsetSampler",
    "MAX_RESIDUAL",
    "Consensus",
    "RansacStrategy",
    "MsacStrategy",
    "LMedSStrategy",
    "required_iterations",
    "non_random_minimum_inliers",
    "progressive_required_iterations",
    "RobustEstimate",
    "RobustEstimator",
    "make_strategy",
]
