"""
Relevance normalization policies.

Every strategy maps its raw score onto [0, 1] through one of these so the
merged result list can be sorted on a single axis.
"""

from abc import ABC, abstractmethod


def clamp_unit(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


class RelevancePolicy(ABC):
    """Maps a strategy's raw score onto the shared relevance band."""

    @abstractmethod
    def normalize(self, raw: float) -> float:
        """Return relevance in [0, 1] for a raw score."""


class SaturatingRelevance(RelevancePolicy):
    """
    For unbounded non-negative scores such as ts_rank_cd.

    raw / (raw + half_point): 0 stays 0, half_point maps to 0.5, large
    scores approach 1.
    """

    def __init__(self, half_point: float = 1.0):
        if half_point <= 0:
            raise ValueError("half_point must be positive")
        self.half_point = half_point

    def normalize(self, raw: float) -> float:
        raw = max(0.0, float(raw or 0.0))
        return clamp_unit(raw / (raw + self.half_point))


class FixedRelevance(RelevancePolicy):
    """Boolean matchers: every match scores the same."""

    def __init__(self, value: float = 1.0):
        self.value = clamp_unit(value)

    def normalize(self, raw: float) -> float:
        return self.value


class DistanceDecayRelevance(RelevancePolicy):
    """
    Linear decay over distance expressed as a fraction of the search radius.

    max(0, 1 - ratio / 2): the center scores 1.0 and the radius edge 0.5.
    """

    def normalize(self, raw: float) -> float:
        return clamp_unit(1.0 - max(0.0, float(raw)) / 2.0)

    def score(self, distance_km: float, radius_km: float) -> float:
        if radius_km <= 0:
            return 0.0
        return self.normalize(distance_km / radius_km)
