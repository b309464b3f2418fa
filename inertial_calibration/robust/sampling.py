"""
Subset samplers for random sample consensus.

UniformSubsetSampler draws every subset uniformly at random without
replacement (RANSAC, LMedS, MSAC).

ProgressiveSubsetSampler implements the PROSAC growth function. Measurements
are sorted once by decreasing quality score (stable, so ties keep their
original order) and subsets are drawn from a prefix U_n whose size grows with
the number of drawn samples t:

    T_m     = T_N · Π_{i=0}^{m-1} (m - i) / (N - i)
    T_{n+1} = T_n · (n + 1) / (n + 1 - m)
    T'_{n+1} = T'_n + ⌈T_{n+1} - T_n⌉,   T'_m = 1

While t ≤ T'_n the sample is the n-th point plus m - 1 points from U_{n-1};
once the pool holds all N points the sample is drawn uniformly from it.
T_N is the iteration cap, and the pool is forced to the full set on the last
allowed iteration.

Reference:
    Chum and Matas, Matching with PROSAC - Progressive Sample Consensus,
    CVPR 2005, Section 3.
"""

import math
from typing import Optional

import numpy as np


class UniformSubsetSampler:
    """Uniform sampling without replacement."""

    def __init__(self, rng: Optional[np.random.Generator] = None):
        self.rng = rng if rng is not None else np.random.default_rng()

    def sample(self, num_measurements: int, subset_size: int) -> np.ndarray:
        if subset_size > num_measurements:
            raise ValueError(
                f"subset_size {subset_size} exceeds number of measurements "
                f"{num_measurements}"
            )
        return np.sort(self.rng.choice(num_measurements, subset_size, replace=False))


class ProgressiveSubsetSampler:
    """
    Quality-guided sampling from a growing pool (PROSAC).

    Args:
        quality_scores: One score per measurement, higher is better.
        subset_size: Subset size m.
        max_iterations: Iteration cap, used as T_N.
        rng: Random generator.
    """

    def __init__(
        self,
        quality_scores: np.ndarray,
        subset_size: int,
        max_iterations: int,
        rng: Optional[np.random.Generator] = None,
    ):
        scores = np.asarray(quality_scores, dtype=np.float64).reshape(-1)
        if subset_size < 1 or subset_size > len(scores):
            raise ValueError(
                f"subset_size must be in [1, {len(scores)}], got {subset_size}"
            )
        if max_iterations < 1:
            raise ValueError(f"max_iterations must be >= 1, got {max_iterations}")

        self.rng = rng if rng is not None else np.random.default_rng()
        self.subset_size = subset_size
        self.max_iterations = max_iterations
        self.num_measurements = len(scores)
        self.order = np.argsort(-scores, kind="stable")

        m = subset_size
        N = self.num_measurements
        t_n = float(max_iterations)
        for i in range(m):
            t_n *= (m - i) / (N - i)

        self._t = 0
        self._n = m
        self._t_n = t_n
        self._t_prime = 1

    @property
    def pool_size(self) -> int:
        """Current size n of the sampling pool."""
        return self._n

    @property
    def samples_drawn(self) -> int:
        return self._t

    def _grow(self) -> None:
        m = self.subset_size
        n = self._n
        t_next = self._t_n * (n + 1) / (n + 1 - m)
        self._t_prime += math.ceil(t_next - self._t_n)
        self._t_n = t_next
        self._n = n + 1

    def sample(
        self,
        num_measurements: Optional[int] = None,
        subset_size: Optional[int] = None,
    ) -> np.ndarray:
        """
        Draw the next subset of original measurement indices.

        The arguments are accepted for interface compatibility with
        UniformSubsetSampler and must match the construction values.
        """
        if num_measurements is not None and num_measurements != self.num_measurements:
            raise ValueError("num_measurements differs from the quality score count")
        if subset_size is not None and subset_size != self.subset_size:
            raise ValueError("subset_size differs from the configured subset size")

        self._t += 1
        N = self.num_measurements
        m = self.subset_size

        while self._n < N and self._t > self._t_prime:
            self._grow()
        if self._t >= self.max_iterations:
            self._n = N

        if self._n < N and self._t <= self._t_prime:
            others = self.rng.choice(self._n - 1, m - 1, replace=False)
            positions = np.append(others, self._n - 1)
        else:
            positions = self.rng.choice(self._n, m, replace=False)

        return np.sort(self.order[positions])
