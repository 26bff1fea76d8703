"""Capture package: frame sources and the preview overlay."""

from .frames import CameraFrameSource, FrameSource, StillFrameSource
from .overlay import CameraOverlay, camera_overlay

__all__ = [
    "CameraFrameSource",
    "FrameSource",
    "StillFrameSource",
    "CameraOverlay",
    "camera_overlay",
]
