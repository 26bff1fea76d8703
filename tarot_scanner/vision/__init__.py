"""Image signature extraction."""

from .signature import (
    as_bgr,
    CropStrategy,
    crop_rect,
    decode_image,
    mean_absolute_distance,
    signature_from_blob,
    signature_from_frame,
    signature_from_image,
)

__all__ = [
    "as_bgr",
    "CropStrategy",
    "crop_rect",
    "decode_image",
    "mean_absolute_distance",
    "signature_from_blob",
    "signature_from_frame",
    "signature_from_image",
]
