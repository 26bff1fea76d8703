"""Structured logging for the recognizer, built on structlog.

Recognition events carry numpy scalars (confidences, class indices) and
status enums; they are turned into plain values before rendering. Values
bound with ``structlog.contextvars`` (the orchestrator binds the load
generation) are merged into every event logged while they are bound.
"""

import logging
import sys
import time
from enum import Enum
from typing import Any, Dict, Optional

import numpy as np
import structlog

from .config import settings

LOG_FORMATS = ("json", "console")


def plain_values(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """structlog processor: numpy values and enums become JSON-friendly."""
    for key, value in event_dict.items():
        if isinstance(value, np.generic):
            event_dict[key] = value.item()
        elif isinstance(value, np.ndarray):
            event_dict[key] = value.tolist()
        elif isinstance(value, Enum):
            event_dict[key] = value.value
    return event_dict


def _renderer(log_format: str):
    if log_format == "console":
        return structlog.dev.ConsoleRenderer(colors=False)
    return structlog.processors.JSONRenderer()


def configure_logging(level: Optional[str] = None, log_format: Optional[str] = None):
    """Configure structlog on top of stdlib logging.

    Args:
        level: Level name, defaults to ``settings.LOG_LEVEL``; unknown names mean INFO
        log_format: ``json`` (default) or ``console`` for the interactive CLI
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO),
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            plain_values,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            _renderer(log_format or settings.LOG_FORMAT),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: Optional[str] = None) -> structlog.BoundLogger:
    """Get a configured logger instance."""
    if not structlog.is_configured():
        configure_logging()

    return structlog.get_logger(name)


def _operation_fields(context: Dict[str, Any], **kwargs: Any) -> Dict[str, Any]:
    # Later keys win, so a field given again at completion replaces the start value
    fields = {k: v for k, v in context.items() if k not in ("event", "start_time")}
    fields.update(kwargs)
    if "start_time" in context:
        fields["duration_ms"] = int((time.time() - context["start_time"]) * 1000)
    return fields


class LoggerMixin:
    """Gives a class a logger named after it and timed operation logging."""

    @property
    def logger(self) -> structlog.BoundLogger:
        if not hasattr(self, "_logger"):
            self._logger = get_logger(self.__class__.__name__)
        return self._logger

    def log_start(self, event: str, **kwargs: Any) -> Dict[str, Any]:
        """Log the start of an operation at debug and return its context.

        Loads and ticks repeat all the time, so only completions and
        failures are logged above debug.
        """
        context = {"event": event, "start_time": time.time(), **kwargs}
        self.logger.debug(f"{event} started", **kwargs)
        return context

    def log_success(self, context: Dict[str, Any], **kwargs: Any):
        self.logger.info(
            f"{context.get('event', 'operation')} completed",
            **_operation_fields(context, **kwargs),
        )

    def log_error(self, context: Dict[str, Any], error: Exception, **kwargs: Any):
        self.logger.error(
            f"{context.get('event', 'operation')} failed",
            **_operation_fields(context, error=str(error), error_type=type(error).__name__, **kwargs),
        )
