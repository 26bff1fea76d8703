"""
Centralized error handling for the tarot scanner.

This module provides the exception hierarchy shared by the recognition
pipeline and helpers that turn failures into logged, non-fatal outcomes
where the pipeline must keep running (the polling loop, per-sample decoding).
"""

from typing import Any, Dict, Optional
from dataclasses import dataclass


class TarotScannerError(Exception):
    """Base exception class for all tarot scanner errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(TarotScannerError):
    """Raised when there are configuration or environment variable issues."""
    pass


class CaptureError(TarotScannerError):
    """Raised when the camera cannot deliver frames."""
    pass


class DecodeError(TarotScannerError):
    """Raised when an image blob cannot be decoded by any decoder."""
    pass


class CaptureStoreError(TarotScannerError):
    """Raised when capture storage operations fail."""
    pass


class ArtifactError(TarotScannerError):
    """Raised when a model artifact cannot be fetched or parsed.

    ``status`` carries the HTTP-like status of the fetch (404 for a missing
    file) or ``None`` when the artifact was found but could not be parsed.
    """

    def __init__(
        self,
        message: str,
        url: str = "",
        status: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details={"url": url, "status": status, **(details or {})})
        self.url = url
        self.status = status

    @property
    def is_missing(self) -> bool:
        return self.status == 404


class NetworkError(ArtifactError):
    """Raised when an artifact host cannot be reached or times out."""
    pass


class ModelLoadError(TarotScannerError):
    """Raised when the trained classifier cannot be loaded."""

    def __init__(self, message: str, status: Optional[int] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details=details)
        self.status = status

    @property
    def is_missing(self) -> bool:
        return self.status == 404 or "404" in self.message


@dataclass
class ErrorContext:
    """Context information for error reporting."""
    operation: str
    module: str
    function: str
    input_data: Optional[Dict[str, Any]] = None
    timestamp: Optional[str] = None


def handle_error(
    error: Exception,
    context: ErrorContext,
    logger: Any,
    reraise: bool = True,
    default_return: Any = None
) -> Any:
    """
    Centralized error handling with logging and optional recovery.

    Args:
        error: The exception that occurred
        context: Context information about where the error occurred
        logger: structlog or stdlib logger used for reporting
        reraise: Whether to re-raise the exception after logging
        default_return: Value to return if not re-raising

    Returns:
        The default_return value if not re-raising

    Raises:
        The original exception if reraise is True
    """
    error_msg = f"Error in {context.module}.{context.function} during {context.operation}"

    if isinstance(error, TarotScannerError):
        error_msg += f": {error.message}"
    else:
        error_msg += f": {str(error)}"

    logger.error(
        error_msg,
        error_type=type(error).__name__,
        operation=context.operation,
        error_module=context.module,
        error_function=context.function,
        input_data=context.input_data,
        exc_info=True,
    )

    if reraise:
        raise error

    return default_return


async def safe_execute_async(
    func,
    *args,
    context: ErrorContext,
    logger: Any,
    default_return: Any = None,
    **kwargs
) -> Any:
    """
    Await a coroutine function, logging and absorbing any failure.

    Returns:
        Function result or default_return on error
    """
    try:
        return await func(*args, **kwargs)
    except Exception as e:
        return handle_error(e, context, logger, reraise=False, default_return=default_return)


def validate_required_fields(data: Dict[str, Any], required_fields: list, context: ErrorContext) -> None:
    """
    Validate that required fields are present in data.

    Raises:
        ConfigurationError: If required fields are missing
    """
    missing_fields = [field for field in required_fields if field not in data or data[field] is None]

    if missing_fields:
        raise ConfigurationError(
            f"Missing required fields: {missing_fields}",
            details={
                "missing_fields": missing_fields,
                "available_fields": list(data.keys()),
                "operation": context.operation,
            }
        )
