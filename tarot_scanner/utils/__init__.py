"""Utilities package."""

from .config import ensure_capture_dir, resolve_model_root, settings
from .log import LoggerMixin, configure_logging, get_logger

__all__ = [
    "settings",
    "ensure_capture_dir",
    "resolve_model_root",
    "get_logger",
    "LoggerMixin",
    "configure_logging",
]
