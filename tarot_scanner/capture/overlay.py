"""Preview overlay showing the recognition viewfinder and status."""

from enum import Enum
from typing import Optional, Tuple

import cv2
import numpy as np

from ..core.types import RecognitionResult, RecognitionStatus
from ..utils import LoggerMixin
from ..vision.signature import CropStrategy, crop_rect


class OverlayColor(Enum):
    """Colors for different overlay elements (BGR)."""

    RUNNING = (0, 255, 0)  # Green
    RUNNING_LOCAL = (0, 255, 255)  # Yellow
    LOADING = (255, 165, 0)
    STOPPED = (0, 0, 255)  # Red
    TEXT_BG = (0, 0, 0)
    TEXT_FG = (255, 255, 255)


_STATUS_COLORS = {
    RecognitionStatus.RUNNING: OverlayColor.RUNNING,
    RecognitionStatus.RUNNING_LOCAL: OverlayColor.RUNNING_LOCAL,
    RecognitionStatus.LOADING: OverlayColor.LOADING,
}


class CameraOverlay(LoggerMixin):
    """Draws the card guide and recognition state on preview frames."""

    def __init__(self):
        self.font = cv2.FONT_HERSHEY_SIMPLEX
        self.line_thickness = 2

    def draw_viewfinder(self, frame: np.ndarray, status: RecognitionStatus) -> np.ndarray:
        """Outline the region the local matcher reads from live frames."""
        overlay_frame = frame.copy()
        height, width = frame.shape[:2]
        rect = crop_rect(width, height, CropStrategy.CENTERED_ROI)
        if rect is None:
            return overlay_frame

        x, y, w, h = rect
        color = _STATUS_COLORS.get(status, OverlayColor.STOPPED).value
        cv2.rectangle(overlay_frame, (x, y), (x + w, y + h), color, self.line_thickness)
        return overlay_frame

    def draw_status(
        self,
        frame: np.ndarray,
        status: RecognitionStatus,
        result: Optional[RecognitionResult] = None,
        message: Optional[str] = None,
    ) -> np.ndarray:
        overlay_frame = frame.copy()
        lines = [f"status: {status.value}"]
        if result is not None:
            orientation = "reversed" if result.is_reversed else "upright"
            lines.append(f"{result.card.name} ({orientation}) {result.confidence:.2f}")
        if message:
            lines.append(message)

        y = 30
        for line in lines:
            self._draw_text_with_background(overlay_frame, line, (10, y), OverlayColor.TEXT_FG.value)
            y += 28
        return overlay_frame

    def _draw_text_with_background(
        self,
        frame: np.ndarray,
        text: str,
        position: Tuple[int, int],
        color: Tuple[int, int, int],
        scale: float = 0.6,
        thickness: int = 1,
    ) -> None:
        (text_width, text_height), baseline = cv2.getTextSize(text, self.font, scale, thickness)
        x, y = position
        cv2.rectangle(
            frame,
            (x - 2, y - text_height - 2),
            (x + text_width + 2, y + baseline + 2),
            OverlayColor.TEXT_BG.value,
            -1,
        )
        cv2.putText(frame, text, position, self.font, scale, color, thickness, cv2.LINE_AA)


# Global overlay instance
camera_overlay = CameraOverlay()
