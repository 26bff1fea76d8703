"""
Tests for image signature extraction.
"""

import io

import cv2
import numpy as np
import pytest
from PIL import Image

from conftest import encode_png, frame_showing, make_card_image
from tarot_scanner.core.constants import SIGNATURE_SIZE
from tarot_scanner.utils.error_handler import DecodeError
from tarot_scanner.vision.signature import (
    CropStrategy,
    crop_rect,
    decode_image,
    mean_absolute_distance,
    normalize_signature,
    signature_from_blob,
    signature_from_frame,
    signature_from_image,
)


class TestCropRect:
    """Test source rectangle selection."""

    def test_zero_size_has_no_rect(self):
        assert crop_rect(0, 480, CropStrategy.COVER) is None
        assert crop_rect(640, 0, CropStrategy.CENTERED_ROI) is None

    def test_cover_wide_image_crops_width(self):
        assert crop_rect(640, 480, CropStrategy.COVER) == (160, 0, 320, 480)

    def test_cover_tall_image_crops_height(self):
        assert crop_rect(200, 600, CropStrategy.COVER) == (0, 150, 200, 300)

    def test_centered_roi(self):
        assert crop_rect(600, 900, CropStrategy.CENTERED_ROI) == (96, 144, 408, 612)

    def test_centered_roi_shrinks_to_frame_height(self):
        sx, sy, sw, sh = crop_rect(1280, 720, CropStrategy.CENTERED_ROI)
        assert sh == 720
        assert sy == 0
        assert sw == 480
        assert sx == 400


class TestSignature:
    """Test signature computation."""

    def test_signature_shape_and_normalization(self):
        signature = signature_from_image(make_card_image(1))
        assert signature.shape == (SIGNATURE_SIZE,)
        assert signature.dtype == np.float32
        assert abs(float(signature.mean())) < 1e-4
        assert abs(float(signature.std()) - 1.0) < 1e-3

    def test_signature_is_deterministic(self):
        image = make_card_image(7)
        first = signature_from_image(image)
        second = signature_from_image(image.copy())
        assert np.array_equal(first, second)

    def test_self_distance_is_zero(self):
        signature = signature_from_image(make_card_image(3))
        assert mean_absolute_distance(signature, signature) == 0.0

    def test_brightness_shift_is_cancelled(self):
        image = make_card_image(4)
        brighter = np.clip(image.astype(np.int16) + 10, 0, 255).astype(np.uint8)
        distance = mean_absolute_distance(signature_from_image(image), signature_from_image(brighter))
        assert distance < 0.1

    def test_different_cards_are_far_apart(self):
        a = signature_from_image(make_card_image(10))
        b = signature_from_image(make_card_image(20))
        assert mean_absolute_distance(a, b) > 0.3

    def test_flat_image_gives_zero_signature(self):
        flat = np.full((90, 60, 3), 128, dtype=np.uint8)
        assert not signature_from_image(flat).any()

    def test_normalize_signature_floor(self):
        assert not normalize_signature(np.ones(10, dtype=np.float32)).any()

    def test_empty_frame_is_not_ready(self):
        assert signature_from_image(None) is None
        assert signature_from_image(np.zeros((0, 0, 3), dtype=np.uint8)) is None
        assert signature_from_frame(None) is None

    def test_grayscale_and_bgra_inputs(self):
        image = make_card_image(5)
        gray = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
        bgra = cv2.cvtColor(image, cv2.COLOR_BGR2BGRA)
        assert signature_from_image(gray).shape == (SIGNATURE_SIZE,)
        assert np.array_equal(signature_from_image(bgra), signature_from_image(image))

    def test_frame_roi_matches_reference_still(self):
        image = make_card_image(11)
        reference = signature_from_blob(encode_png(image))
        live = signature_from_frame(frame_showing(image))
        other = signature_from_frame(frame_showing(make_card_image(12)))
        assert mean_absolute_distance(reference, live) < mean_absolute_distance(reference, other)

    def test_empty_distance_is_infinite(self):
        empty = np.zeros(0, dtype=np.float32)
        assert mean_absolute_distance(empty, empty) == float("inf")


class TestDecode:
    """Test blob decoding with its fallback path."""

    def test_decode_png(self):
        image = make_card_image(2)
        decoded = decode_image(encode_png(image))
        assert decoded.shape == image.shape
        assert np.array_equal(decoded, image)

    def test_fallback_decoder_used_when_opencv_fails(self):
        image = make_card_image(2)
        buffer = io.BytesIO()
        Image.fromarray(cv2.cvtColor(image, cv2.COLOR_BGR2RGB)).save(buffer, format="PNG")

        with pytest.MonkeyPatch.context() as mp:
            mp.setattr("tarot_scanner.vision.signature._decode_with_opencv", lambda blob: None)
            decoded = decode_image(buffer.getvalue())

        assert np.array_equal(decoded, image)

    def test_undecodable_blob(self):
        with pytest.raises(DecodeError):
            decode_image(b"definitely not an image")

    def test_signature_from_blob_raises_decode_error(self):
        with pytest.raises(DecodeError):
            signature_from_blob(b"")
