"""
Nearest-neighbor card matcher built from the user's own capture photos.

Each (card, orientation) pair with at least one decodable photo becomes a
candidate holding every sample signature. A live frame is scored against
the nearest sample of each candidate rather than a per-candidate mean, so
that photos taken under different light keep their own shape.
"""

import asyncio
from typing import Iterable, List, Optional, Tuple

import cv2
import numpy as np

from ..core.constants import LOCAL_MAX_SAMPLES
from ..core.types import (
    Card,
    CaptureSample,
    LocalPrediction,
    MatchCandidate,
    MatcherStats,
    Orientation,
)
from ..store.captures import CaptureStore
from ..utils.error_handler import DecodeError
from ..utils.log import LoggerMixin
from ..vision.signature import mean_absolute_distance, signature_from_blob, signature_from_frame
from .score import MatcherCalibration, confidence_from_distances


def local_label(card_id: int, orientation: Orientation) -> str:
    return f"local-card-{card_id}-{orientation.value}"


class LocalCaptureMatcher(LoggerMixin):
    """Matches live frames against reference signatures from capture samples."""

    def __init__(
        self,
        store: CaptureStore,
        calibration: MatcherCalibration = MatcherCalibration(),
        max_samples: int = LOCAL_MAX_SAMPLES,
    ):
        self.store = store
        self.calibration = calibration
        self.max_samples = max_samples
        self.candidates: List[MatchCandidate] = []
        self.stats = MatcherStats()

    async def _orientation_candidate(
        self, card_id: int, orientation: Orientation, samples: List[CaptureSample]
    ) -> Tuple[Optional[MatchCandidate], int]:
        signatures = []
        failed = 0
        for sample in samples[: self.max_samples]:
            try:
                signatures.append(await asyncio.to_thread(signature_from_blob, sample.blob))
            except (DecodeError, cv2.error) as e:
                failed += 1
                self.logger.warning(
                    "Failed to process local capture",
                    card_id=card_id,
                    orientation=orientation.value,
                    error=str(e),
                )
            await asyncio.sleep(0)

        if not signatures:
            return None, failed
        return MatchCandidate(card_id=card_id, orientation=orientation, signatures=signatures), failed

    async def load(self, catalog: Optional[Iterable[Card]] = None) -> MatcherStats:
        """Rebuild candidates from every capture record in the store."""
        context = self.log_start("local_matcher_load")
        known_ids = {card.id for card in catalog} if catalog is not None else None

        records = await asyncio.to_thread(self.store.get_all_card_captures)
        candidates: List[MatchCandidate] = []
        stats = MatcherStats(records=len(records))

        for record in records:
            if known_ids is not None and record.card_id not in known_ids:
                self.logger.warning("Capture record for unknown card skipped", card_id=record.card_id)
                continue

            usable = False
            for orientation in (Orientation.UPRIGHT, Orientation.REVERSED):
                candidate, failed = await self._orientation_candidate(
                    record.card_id, orientation, record.samples(orientation)
                )
                stats.failed_sample_count += failed
                if candidate is not None:
                    candidates.append(candidate)
                    usable = True

            if usable:
                stats.cards_with_usable_candidates += 1

        stats.candidate_count = len(candidates)
        self.candidates = candidates
        self.stats = stats
        self.log_success(
            context,
            records=stats.records,
            cards=stats.cards_with_usable_candidates,
            candidates=stats.candidate_count,
            failed_samples=stats.failed_sample_count,
        )
        return stats

    def has_candidates(self) -> bool:
        return bool(self.candidates)

    def unusable_reason(self) -> str:
        """Why a load produced no candidates, or '' when there was nothing to load."""
        if self.stats.records > 0 and self.stats.failed_sample_count > 0:
            return (
                f"Local captures found ({self.stats.records} card(s)), but "
                f"{self.stats.failed_sample_count} sample(s) could not be read."
            )
        if self.stats.records > 0:
            return (
                f"Local captures found ({self.stats.records} card(s)), but none "
                "are usable for recognition."
            )
        return ""

    def rank(self, signature: np.ndarray) -> List[Tuple[MatchCandidate, float]]:
        """Candidates with their nearest-sample distance, closest first."""
        ranked = [
            (candidate, min(mean_absolute_distance(signature, s) for s in candidate.signatures))
            for candidate in self.candidates
        ]
        ranked.sort(key=lambda item: item[1])
        return ranked

    def predict(self, frame: Optional[np.ndarray]) -> Optional[LocalPrediction]:
        if not self.candidates:
            return None

        signature = signature_from_frame(frame)
        if signature is None:
            return None

        ranked = self.rank(signature)
        best, best_distance = ranked[0]
        second_distance = ranked[1][1] if len(ranked) > 1 else None
        confidence = confidence_from_distances(best_distance, second_distance, self.calibration)

        return LocalPrediction(
            card_id=best.card_id,
            orientation=best.orientation,
            confidence=confidence,
            label=local_label(best.card_id, best.orientation),
        )
