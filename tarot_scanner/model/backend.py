"""Process-wide TensorFlow execution backend.

The backend is picked once, on first use, and shared by every model adapter
in the process. It is never torn down.
"""

import threading
from typing import Optional

import tensorflow as tf

from ..utils.log import get_logger

logger = get_logger(__name__)

_device: Optional[str] = None
_lock = threading.Lock()


def ensure_initialized() -> str:
    """Select the execution device, GPU when TensorFlow sees one, else CPU.

    Safe to call any number of times; only the first call does work.

    Returns:
        The TensorFlow device string used for inference.
    """
    global _device
    if _device is not None:
        return _device

    with _lock:
        if _device is None:
            gpus = tf.config.list_physical_devices("GPU")
            for gpu in gpus:
                try:
                    tf.config.experimental.set_memory_growth(gpu, True)
                except RuntimeError as e:
                    # Raised once the runtime has already been initialized
                    logger.debug("GPU memory growth unchanged", gpu=gpu.name, error=str(e))
            _device = "/GPU:0" if gpus else "/CPU:0"
            logger.info("Inference backend ready", device=_device, gpus=len(gpus))

    return _device
