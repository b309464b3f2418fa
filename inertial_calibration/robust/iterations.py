"""
Adaptive iteration bounds for random sample consensus.

The number of random subsets k needed to draw at least one outlier-free
subset of size m with probability p, when a fraction ε of the data are
inliers, is

    k = log(1 - p) / log(1 - εᵐ)

Progressive sampling (PROSAC/PROMedS) additionally evaluates this bound on
every prefix U_n of the quality-sorted measurements and keeps the smallest
bound among prefixes whose inlier count is not explainable by chance
(non-randomness criterion):

    I_min(n) = m + min{ j : P(Binom(n - m, β) ≥ j) < ψ }

References:
    Fischler and Bolles, Random Sample Consensus, Comm. ACM 24(6), 1981.
    Chum and Matas, Matching with PROSAC - Progressive Sample Consensus,
    CVPR 2005, Section 2.2.
"""

import math

import numpy as np
from scipy import stats

# Probability that a non-random support is reached by chance.
NON_RANDOMNESS_PSI = 0.05

# Probability that an outlier is consistent with a wrong model.
NON_RANDOMNESS_BETA = 0.01


def required_iterations(
    confidence: float,
    inlier_ratio: float,
    subset_size: int,
    max_iterations: int,
) -> int:
    """
    Number of iterations needed to reach the requested confidence.

    Args:
        confidence: Probability of drawing at least one outlier-free subset,
            in [0, 1].
        inlier_ratio: Fraction of inliers ε, in [0, 1].
        subset_size: Subset size m (>= 1).
        max_iterations: Upper bound on the result (>= 1).

    Returns:
        Required iteration count clamped to [1, max_iterations].

    Raises:
        ValueError: If an argument is out of range.

    Example:
        >>> required_iterations(0.99, 0.8, 6, 5000)
        16
    """
    if not 0.0 <= confidence <= 1.0:
        raise ValueError(f"confidence must be in [0, 1], got {confidence}")
    if not 0.0 <= inlier_ratio <= 1.0:
        raise ValueError(f"inlier_ratio must be in [0, 1], got {inlier_ratio}")
    if subset_size < 1:
        raise ValueError(f"subset_size must be >= 1, got {subset_size}")
    if max_iterations < 1:
        raise ValueError(f"max_iterations must be >= 1, got {max_iterations}")

    if confidence == 0.0 or inlier_ratio == 1.0:
        return 1
    if confidence == 1.0 or inlier_ratio == 0.0:
        return max_iterations

    p_good = inlier_ratio**subset_size
    denominator = math.log1p(-p_good)
    if denominator == 0.0:
        return max_iterations

    k = math.ceil(math.log1p(-confidence) / denominator)
    return int(min(max(k, 1), max_iterations))


def non_random_minimum_inliers(prefix_sizes: np.ndarray, subset_size: int) -> np.ndarray:
    """
    Minimum inlier count for each prefix size to be non-random.

    Args:
        prefix_sizes: Prefix lengths n (>= subset_size).
        subset_size: Subset size m.

    Returns:
        Integer array I_min(n). A prefix of exactly m points can never be
        non-random, so I_min(m) = m + 1.
    """
    prefix_sizes = np.asarray(prefix_sizes, dtype=int)
    trials = prefix_sizes - subset_size
    isf = stats.binom.isf(
        NON_RANDOMNESS_PSI, np.maximum(trials, 1), NON_RANDOMNESS_BETA
    )
    isf = np.where(trials > 0, isf, 0.0)
    return (subset_size + isf + 1).astype(int)


def progressive_required_iterations(
    sorted_inliers: np.ndarray,
    confidence: float,
    subset_size: int,
    max_iterations: int,
) -> int:
    """
    Iteration bound for progressive sampling.

    Args:
        sorted_inliers: Inlier mask ordered by decreasing quality score.
        confidence: Requested confidence in [0, 1].
        subset_size: Subset size m.
        max_iterations: Upper bound on the result.

    Returns:
        The smallest bound among non-random prefixes and the full set,
        clamped to [1, max_iterations].
    """
    sorted_inliers = np.asarray(sorted_inliers, dtype=bool)
    total = len(sorted_inliers)
    cumulative = np.cumsum(sorted_inliers)

    best = required_iterations(
        confidence, cumulative[-1] / total, subset_size, max_iterations
    )
    if total <= subset_size:
        return best

    prefix_sizes = np.arange(subset_size + 1, total + 1)
    prefix_inliers = cumulative[prefix_sizes - 1]
    minimum = non_random_minimum_inliers(prefix_sizes, subset_size)

    for n, count in zip(
        prefix_sizes[prefix_inliers >= minimum],
        prefix_inliers[prefix_inliers >= minimum],
    ):
        k = required_iterations(confidence, count / n, subset_size, max_iterations)
        best = min(best, k)

    return best
