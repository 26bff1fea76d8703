from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List

import numpy as np

# 864-element float32 luminance descriptor
Signature = np.ndarray


class Orientation(str, Enum):
    UPRIGHT = "upright"
    REVERSED = "reversed"

    @property
    def is_reversed(self) -> bool:
        return self is Orientation.REVERSED

    @classmethod
    def from_reversed(cls, is_reversed: bool) -> "Orientation":
        return cls.REVERSED if is_reversed else cls.UPRIGHT


class RecognitionStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    RUNNING = "running"
    RUNNING_LOCAL = "running-local"
    NO_MODEL = "no-model"
    ERROR = "error"


@dataclass(frozen=True)
class Card:
    id: int
    name: str
    image_url: str


@dataclass
class CaptureSample:
    card_id: int
    orientation: Orientation
    blob: bytes
    captured_at: float


@dataclass
class CaptureRecord:
    card_id: int
    upright: List[CaptureSample] = field(default_factory=list)
    reversed: List[CaptureSample] = field(default_factory=list)
    updated_at: float = 0.0

    def samples(self, orientation: Orientation) -> List[CaptureSample]:
        return self.reversed if orientation is Orientation.REVERSED else self.upright


@dataclass
class MatchCandidate:
    card_id: int
    orientation: Orientation
    signatures: List[Signature]

    @property
    def sample_count(self) -> int:
        return len(self.signatures)


@dataclass
class MatcherStats:
    records: int = 0
    cards_with_usable_candidates: int = 0
    candidate_count: int = 0
    failed_sample_count: int = 0


@dataclass
class LocalPrediction:
    card_id: int
    orientation: Orientation
    confidence: float
    label: str


@dataclass
class ModelPrediction:
    index: int
    label: str
    confidence: float
    scores: List[float]


@dataclass
class ModelLabelMatch:
    card: Optional[Card]
    orientation: Orientation
    normalized_label: str
    base_label: str


@dataclass(frozen=True)
class RecognitionResult:
    card: Card
    is_reversed: bool
    confidence: float
    label: str


@dataclass
class ModelDiagnostics:
    checked: bool = False
    placeholder: bool = False
    format: Optional[str] = None
    labels_count: int = 0
    output_classes: Optional[int] = None
    expected_classes: int = 0
    warnings: List[str] = field(default_factory=list)


@dataclass
class InspectionResult:
    diagnostics: ModelDiagnostics
    labels: List[str]
    fatal_error: Optional[str] = None
    missing_artifact: bool = False


@dataclass
class LabelDiagnostics:
    total_labels: int = 0
    mapped_labels: int = 0
    unmapped_labels: List[str] = field(default_factory=list)
    suggestions: dict = field(default_factory=dict)
