"""Tarot Card Scanner - Recognize physical tarot cards and their orientation from a camera."""

__version__ = "1.0.0"
__author__ = "Tarot Scanner Team"
__description__ = "Tarot card recognition from a camera using a trained classifier or local reference captures"

from .core.types import Card, Orientation, RecognitionResult, RecognitionStatus
from .labels import build_lookup, match_label, normalize, parse_label
from .match import LocalCaptureMatcher
from .model import ModelReadinessInspector, TrainedModelAdapter
from .recognition import RecognitionOptions, RecognitionOrchestrator
from .store import SqliteCaptureStore, default_catalog, load_catalog
from .ui.notifier import notifier
from .utils.config import settings

# Core functionality imports
from .utils.log import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__author__",
    "__description__",
    # Core components
    "configure_logging",
    "get_logger",
    "settings",
    "Card",
    "Orientation",
    "RecognitionResult",
    "RecognitionStatus",
    "build_lookup",
    "match_label",
    "normalize",
    "parse_label",
    "LocalCaptureMatcher",
    "ModelReadinessInspector",
    "TrainedModelAdapter",
    "RecognitionOptions",
    "RecognitionOrchestrator",
    "SqliteCaptureStore",
    "default_catalog",
    "load_catalog",
    "notifier",
]
