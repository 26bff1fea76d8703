"""
Confidence scoring for the local capture matcher.
"""

from dataclasses import dataclass
from typing import Optional

from ..core.constants import (
    LOCAL_MARGIN_SCALE,
    LOCAL_NO_RUNNER_UP_MARGIN,
    LOCAL_SIMILARITY_SCALE,
    LOCAL_SIMILARITY_WEIGHT,
)


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return min(high, max(low, value))


@dataclass(frozen=True)
class MatcherCalibration:
    """Empirical constants of the two-factor confidence model."""

    similarity_scale: float = LOCAL_SIMILARITY_SCALE
    margin_scale: float = LOCAL_MARGIN_SCALE
    similarity_weight: float = LOCAL_SIMILARITY_WEIGHT
    no_runner_up_margin: float = LOCAL_NO_RUNNER_UP_MARGIN

    @classmethod
    def from_settings(cls, settings) -> "MatcherCalibration":
        return cls(
            similarity_scale=settings.LOCAL_SIMILARITY_SCALE,
            margin_scale=settings.LOCAL_MARGIN_SCALE,
            similarity_weight=settings.LOCAL_SIMILARITY_WEIGHT,
        )


def confidence_from_distances(
    best: float,
    second: Optional[float],
    calibration: MatcherCalibration = MatcherCalibration(),
) -> float:
    """Calculate confidence from the two nearest candidate distances.

    Args:
        best: Mean absolute distance to the nearest candidate
        second: Distance to the runner-up, None when there is only one candidate

    Returns:
        Confidence score between 0.0 and 1.0
    """
    # Absolute closeness of the best match
    similarity = clamp(1.0 - best / calibration.similarity_scale)

    # How clearly it beats the runner-up
    if second is None:
        margin = calibration.no_runner_up_margin
    else:
        margin = clamp((second - best) / calibration.margin_scale)

    weight = calibration.similarity_weight
    return clamp(similarity * weight + margin * (1.0 - weight))
