"""Robust estimation methods supported by the consensus engine."""

from enum import Enum


class RobustMethod(Enum):
    """
    Robust estimation method tag.

    RANSAC and MSAC score candidates against a fixed residual threshold,
    LMEDS minimises the median squared residual. PROSAC and PROMEDS use the
    same scoring as RANSAC and LMEDS respectively, but draw subsets from a
    growing pool of measurements sorted by quality score.
    """

    RANSAC = "ransac"
    LMEDS = "lmeds"
    MSAC = "msac"
    PROSAC = "prosac"
    PROMEDS = "promeds"

    @property
    def requires_quality_scores(self) -> bool:
        return self in (RobustMethod.PROSAC, RobustMethod.PROMEDS)

    @property
    def is_median_based(self) -> bool:
        return self in (RobustMethod.LMEDS, RobustMethod.PROMEDS)

    @classmethod
    def parse(cls, value) -> "RobustMethod":
        """Accept a RobustMethod or its (case-insensitive) name or value."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            key = value.strip().lower()
            for method in cls:
                if method.value == key:
                    return method
        raise ValueError(
            f"Unknown robust method {value!r}. "
            f"Choose from {[m.value for m in cls]}."
        )
