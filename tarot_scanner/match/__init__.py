"""
Match module: local nearest-neighbor matching and its confidence model.
"""

from .local_matcher import LocalCaptureMatcher, local_label
from .score import MatcherCalibration, clamp, confidence_from_distances

__all__ = [
    "LocalCaptureMatcher",
    "local_label",
    "MatcherCalibration",
    "clamp",
    "confidence_from_distances",
]
