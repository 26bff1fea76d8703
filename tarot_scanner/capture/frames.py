"""Frame sources feeding the recognition loop."""

import time
from pathlib import Path
from typing import Optional, Protocol, Union

import cv2
import numpy as np

from ..utils.config import settings
from ..utils.error_handler import CaptureError, DecodeError
from ..utils.log import LoggerMixin
from ..vision.signature import decode_image


class FrameSource(Protocol):
    def read_frame(self) -> Optional[np.ndarray]:
        """Current decodable BGR frame, or None while the source is not ready."""
        ...


class CameraFrameSource(LoggerMixin):
    """OpenCV camera with a bounded wait for the first frame."""

    def __init__(self, camera_index: Optional[int] = None, ready_timeout_s: Optional[float] = None):
        self.cap = None
        self.camera_index = settings.CAMERA_INDEX if camera_index is None else camera_index
        self.ready_timeout_s = ready_timeout_s or settings.CAMERA_READY_TIMEOUT_S
        self.is_initialized = False
        self.last_frame: Optional[np.ndarray] = None

    def initialize(self) -> None:
        """Open the camera and wait until it delivers a frame.

        Raises:
            CaptureError: camera cannot be opened or stays dark past the timeout
        """
        self.cap = cv2.VideoCapture(self.camera_index)
        if not self.cap.isOpened():
            self.cap.release()
            self.cap = None
            raise CaptureError(
                f"Failed to open camera {self.camera_index}",
                details={"camera_index": self.camera_index},
            )

        self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, 1280)
        self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, 720)

        deadline = time.monotonic() + self.ready_timeout_s
        while time.monotonic() < deadline:
            ret, frame = self.cap.read()
            if ret and frame is not None and frame.size:
                self.is_initialized = True
                self.logger.info(
                    "Camera initialized successfully",
                    camera_index=self.camera_index,
                    frame_size=f"{frame.shape[1]}x{frame.shape[0]}",
                )
                return
            time.sleep(0.05)

        self.release()
        raise CaptureError(
            f"Camera {self.camera_index} delivered no frame within {self.ready_timeout_s:.1f}s",
            details={"camera_index": self.camera_index, "timeout_s": self.ready_timeout_s},
        )

    def read_frame(self) -> Optional[np.ndarray]:
        if not self.is_initialized:
            return None
        ret, frame = self.cap.read()
        if not ret or frame is None or not frame.size:
            return None
        self.last_frame = frame
        return frame

    def release(self):
        """Release camera resources."""
        if self.cap:
            self.cap.release()
            self.cap = None
            self.is_initialized = False
            self.logger.info("Camera released")

    def __enter__(self):
        self.initialize()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()


class StillFrameSource:
    """Serves the same image on every read, for offline recognition and tests."""

    def __init__(self, image: Optional[np.ndarray] = None):
        self.image = image

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "StillFrameSource":
        path = Path(path)
        try:
            blob = path.read_bytes()
        except OSError as e:
            raise CaptureError(f"Could not read image {path}: {e}") from e
        try:
            return cls(decode_image(blob))
        except DecodeError as e:
            raise CaptureError(f"Could not decode image {path}", details={"error": e.message}) from e

    def read_frame(self) -> Optional[np.ndarray]:
        return self.image
