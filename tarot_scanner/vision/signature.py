"""Image signatures: tiny normalized luminance fingerprints of a card region.

A signature is the card region drawn into a 24x36 grid (downsampling is the
low-pass filter), converted to luminance and z-score normalized so that
exposure and contrast changes between the reference photo and the live
frame mostly cancel out.
"""

from enum import Enum
from typing import Optional, Tuple

import cv2
import numpy as np

from ..core.constants import (
    LUMA_WEIGHTS,
    ROI_WIDTH_FRACTION,
    SIGNATURE_HEIGHT,
    SIGNATURE_WIDTH,
    TARGET_RATIO,
)
from ..core.types import Signature
from ..utils.error_handler import DecodeError


class CropStrategy(str, Enum):
    """How the card region is cut out of the source image."""

    COVER = "cover"  # reference stills: largest centered 2:3 crop
    CENTERED_ROI = "centered-roi"  # live video: the viewfinder guide region


def crop_rect(width: int, height: int, strategy: CropStrategy) -> Optional[Tuple[int, int, int, int]]:
    """Source rectangle (sx, sy, sw, sh) for a frame of the given size."""
    if width <= 0 or height <= 0:
        return None

    if strategy is CropStrategy.CENTERED_ROI:
        sw = width * ROI_WIDTH_FRACTION
        sh = sw / TARGET_RATIO
        if sh > height:
            sh = float(height)
            sw = sh * TARGET_RATIO
        sw, sh = max(1, round(sw)), max(1, round(sh))
        return (width - sw) // 2, (height - sh) // 2, sw, sh

    sx, sy, sw, sh = 0, 0, width, height
    if width / height > TARGET_RATIO:
        sw = max(1, round(height * TARGET_RATIO))
        sx = (width - sw) // 2
    else:
        sh = max(1, round(width / TARGET_RATIO))
        sy = (height - sh) // 2
    return sx, sy, sw, sh


def as_bgr(image: np.ndarray) -> np.ndarray:
    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)
    return image


def render(image: np.ndarray, rect: Tuple[int, int, int, int]) -> np.ndarray:
    """Draw the source rectangle into the fixed signature grid."""
    sx, sy, sw, sh = rect
    region = image[sy:sy + sh, sx:sx + sw]
    return cv2.resize(region, (SIGNATURE_WIDTH, SIGNATURE_HEIGHT), interpolation=cv2.INTER_AREA)


def luminance(bgr: np.ndarray) -> np.ndarray:
    """Per-pixel luma in [0, 1], flattened row-major."""
    pixels = bgr.astype(np.float32)
    wr, wg, wb = LUMA_WEIGHTS
    luma = wr * pixels[..., 2] + wg * pixels[..., 1] + wb * pixels[..., 0]
    return (luma / 255.0).reshape(-1).astype(np.float32)


def normalize_signature(values: np.ndarray) -> Signature:
    """Zero mean, unit population variance; a flat input maps to all zeros."""
    values = values.astype(np.float64)
    if values.size == 0 or np.ptp(values) == 0:
        return np.zeros(values.shape, dtype=np.float32)
    std = values.std() or 1.0
    return ((values - values.mean()) / std).astype(np.float32)


def signature_from_image(image: Optional[np.ndarray], strategy: CropStrategy = CropStrategy.COVER) -> Optional[Signature]:
    """Signature of a BGR image, or None when it has no pixels yet."""
    if image is None or image.size == 0:
        return None
    height, width = image.shape[:2]
    rect = crop_rect(width, height, strategy)
    if rect is None:
        return None
    return normalize_signature(luminance(render(as_bgr(image), rect)))


def signature_from_frame(frame: Optional[np.ndarray]) -> Optional[Signature]:
    return signature_from_image(frame, CropStrategy.CENTERED_ROI)


def _decode_with_opencv(blob: bytes) -> Optional[np.ndarray]:
    buffer = np.frombuffer(blob, dtype=np.uint8)
    if buffer.size == 0:
        return None
    return cv2.imdecode(buffer, cv2.IMREAD_COLOR)


def _decode_with_pillow(blob: bytes) -> np.ndarray:
    import io
    from PIL import Image

    with Image.open(io.BytesIO(blob)) as img:
        rgb = np.asarray(img.convert("RGB"))
    return cv2.cvtColor(rgb, cv2.COLOR_RGB2BGR)


def decode_image(blob: bytes) -> np.ndarray:
    """Decode an encoded image into a BGR array.

    OpenCV first; Pillow covers the formats OpenCV was built without.

    Raises:
        DecodeError: If neither decoder can read the blob
    """
    try:
        image = _decode_with_opencv(blob)
    except cv2.error:
        image = None
    if image is not None and image.size > 0:
        return image

    try:
        return _decode_with_pillow(blob)
    except Exception as e:
        raise DecodeError(
            "Unable to decode capture image",
            details={"size_bytes": len(blob), "error": str(e)},
        ) from e


def signature_from_blob(blob: bytes) -> Signature:
    """Signature of an encoded reference still (cover crop)."""
    signature = signature_from_image(decode_image(blob), CropStrategy.COVER)
    if signature is None:
        raise DecodeError("Decoded capture image is empty", details={"size_bytes": len(blob)})
    return signature


def mean_absolute_distance(a: Signature, b: Signature) -> float:
    size = min(len(a), len(b))
    if size == 0:
        return float("inf")
    return float(np.abs(a[:size] - b[:size]).mean())
