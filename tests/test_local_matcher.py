"""
Tests for the local capture matcher and its confidence model.
"""

from unittest.mock import Mock

import numpy as np
import pytest

from conftest import encode_png, frame_showing
from tarot_scanner.core.types import CaptureRecord, CaptureSample, Orientation
from tarot_scanner.match import LocalCaptureMatcher, MatcherCalibration, clamp, confidence_from_distances, local_label


def _record(card_id, upright=(), reversed_=()):
    record = CaptureRecord(card_id=card_id)
    record.upright = [CaptureSample(card_id, Orientation.UPRIGHT, blob, 0.0) for blob in upright]
    record.reversed = [CaptureSample(card_id, Orientation.REVERSED, blob, 0.0) for blob in reversed_]
    return record


def _store(*records):
    store = Mock()
    store.get_all_card_captures.return_value = list(records)
    return store


class TestConfidence:
    """Test the two-factor confidence model."""

    def test_clamp(self):
        assert clamp(-0.5) == 0.0
        assert clamp(1.5) == 1.0
        assert clamp(0.3) == 0.3

    def test_exact_match_clear_winner(self):
        assert confidence_from_distances(0.0, 2.0) == pytest.approx(1.0)

    def test_formula(self):
        # similarity = 1 - 0.44/2.2 = 0.8, margin = 0.5
        assert confidence_from_distances(0.44, 0.94) == pytest.approx(0.8 * 0.72 + 0.5 * 0.28)

    def test_no_runner_up_uses_neutral_margin(self):
        assert confidence_from_distances(0.0, None) == pytest.approx(0.72 + 0.5 * 0.28)

    def test_tied_candidates_lose_margin(self):
        assert confidence_from_distances(0.0, 0.0) == pytest.approx(0.72)

    def test_far_match_clamps_to_zero_similarity(self):
        assert confidence_from_distances(5.0, 5.0) == 0.0

    def test_custom_calibration(self):
        calibration = MatcherCalibration(similarity_scale=1.0, margin_scale=0.5, similarity_weight=0.5)
        assert confidence_from_distances(0.5, 0.75, calibration) == pytest.approx(0.5 * 0.5 + 0.5 * 0.5)

    def test_from_settings(self):
        settings = Mock(LOCAL_SIMILARITY_SCALE=3.0, LOCAL_MARGIN_SCALE=2.0, LOCAL_SIMILARITY_WEIGHT=0.6)
        calibration = MatcherCalibration.from_settings(settings)
        assert calibration.similarity_scale == 3.0
        assert calibration.margin_scale == 2.0
        assert calibration.similarity_weight == 0.6


class TestLocalCaptureMatcherLoad:
    """Test candidate construction from capture records."""

    @pytest.mark.asyncio
    async def test_load_counts(self, card_images):
        blob = encode_png(card_images[0])
        matcher = LocalCaptureMatcher(_store(_record(0, upright=[blob] * 3, reversed_=[blob] * 3)))

        stats = await matcher.load()

        assert stats.records == 1
        assert stats.cards_with_usable_candidates == 1
        assert stats.candidate_count == 2
        assert stats.failed_sample_count == 0
        assert matcher.has_candidates()

    @pytest.mark.asyncio
    async def test_bad_samples_are_counted_not_fatal(self, card_images):
        good = encode_png(card_images[0])
        matcher = LocalCaptureMatcher(_store(_record(0, upright=[good, b"broken"], reversed_=[b"broken"])))

        stats = await matcher.load()

        assert stats.failed_sample_count == 2
        assert stats.candidate_count == 1
        assert matcher.candidates[0].orientation is Orientation.UPRIGHT
        assert matcher.candidates[0].sample_count == 1

    @pytest.mark.asyncio
    async def test_record_with_only_failures(self):
        matcher = LocalCaptureMatcher(_store(_record(3, upright=[b"x"], reversed_=[b"y"])))

        stats = await matcher.load()

        assert stats.records == 1
        assert stats.cards_with_usable_candidates == 0
        assert not matcher.has_candidates()
        assert "2 sample(s) could not be read" in matcher.unusable_reason()

    @pytest.mark.asyncio
    async def test_record_without_samples(self):
        matcher = LocalCaptureMatcher(_store(_record(3)))
        await matcher.load()
        assert "none are usable" in matcher.unusable_reason()

    @pytest.mark.asyncio
    async def test_empty_store_has_no_reason(self):
        matcher = LocalCaptureMatcher(_store())
        stats = await matcher.load()
        assert stats.records == 0
        assert matcher.unusable_reason() == ""

    @pytest.mark.asyncio
    async def test_samples_capped_per_orientation(self, card_images):
        blob = encode_png(card_images[0])
        matcher = LocalCaptureMatcher(_store(_record(0, upright=[blob] * 12)), max_samples=10)
        await matcher.load()
        assert matcher.candidates[0].sample_count == 10

    @pytest.mark.asyncio
    async def test_unknown_cards_skipped_with_catalog(self, card_images, cards):
        blob = encode_png(card_images[0])
        matcher = LocalCaptureMatcher(_store(_record(0, upright=[blob]), _record(42, upright=[blob])))

        stats = await matcher.load(cards)

        assert stats.records == 2
        assert stats.cards_with_usable_candidates == 1
        assert {c.card_id for c in matcher.candidates} == {0}

    @pytest.mark.asyncio
    async def test_load_from_sqlite_store(self, fool_captures):
        matcher = LocalCaptureMatcher(fool_captures)
        stats = await matcher.load()
        assert stats.candidate_count == 2
        assert stats.cards_with_usable_candidates == 1


class TestLocalCaptureMatcherPredict:
    """Test live-frame prediction."""

    def test_predict_without_candidates(self):
        matcher = LocalCaptureMatcher(_store())
        assert matcher.predict(np.zeros((480, 640, 3), dtype=np.uint8)) is None

    @pytest.mark.asyncio
    async def test_predict_without_frame(self, fool_captures):
        matcher = LocalCaptureMatcher(fool_captures)
        await matcher.load()
        assert matcher.predict(None) is None

    @pytest.mark.asyncio
    async def test_predict_picks_card_and_orientation(self, capture_store, card_images):
        capture_store.add_capture(0, Orientation.UPRIGHT, encode_png(card_images[0]))
        capture_store.add_capture(1, Orientation.UPRIGHT, encode_png(card_images[1]))
        capture_store.add_capture(1, Orientation.REVERSED, encode_png(np.rot90(card_images[1], 2).copy()))
        matcher = LocalCaptureMatcher(capture_store)
        await matcher.load()

        upright = matcher.predict(frame_showing(card_images[1]))
        reversed_ = matcher.predict(frame_showing(np.rot90(card_images[1], 2).copy()))

        assert upright.card_id == 1
        assert upright.orientation is Orientation.UPRIGHT
        assert upright.label == "local-card-1-upright"
        assert 0.0 <= upright.confidence <= 1.0
        assert reversed_.card_id == 1
        assert reversed_.orientation is Orientation.REVERSED

    @pytest.mark.asyncio
    async def test_rank_uses_nearest_sample(self, capture_store, card_images):
        # A candidate with one matching and one unrelated sample still ranks at distance ~0
        capture_store.add_capture(0, Orientation.UPRIGHT, encode_png(card_images[1]))
        capture_store.add_capture(0, Orientation.UPRIGHT, encode_png(card_images[0]))
        matcher = LocalCaptureMatcher(capture_store)
        await matcher.load()

        ranked = matcher.rank(matcher.candidates[0].signatures[1])

        assert ranked[0][1] == 0.0

    def test_local_label(self):
        assert local_label(7, Orientation.REVERSED) == "local-card-7-reversed"
