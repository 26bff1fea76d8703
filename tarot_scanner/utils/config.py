"""Configuration and settings management."""

from typing import Optional
from pydantic_settings import BaseSettings
from pydantic import field_validator
from pathlib import Path


class Settings(BaseSettings):
    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"

    # Trained model artifacts
    MODEL_URL: str = "/model/model.json"
    METADATA_URL: str = "/model/metadata.json"
    MODEL_ROOT: str = "public"

    # Recognition loop
    RECOGNITION_INTERVAL_MS: int = 300
    CONFIDENCE_THRESHOLD: float = 0.84
    MIN_VOTES: int = 3

    # Local capture matcher calibration
    LOCAL_SIMILARITY_SCALE: float = 2.2
    LOCAL_MARGIN_SCALE: float = 1.0
    LOCAL_SIMILARITY_WEIGHT: float = 0.72
    LOCAL_MAX_SAMPLES: int = 10

    # Capture storage
    CAPTURE_DB_PATH: str = "captures/captures.db"

    # Card catalog
    CATALOG_PATH: Optional[str] = None

    # Camera settings
    CAMERA_INDEX: int = 0
    CAMERA_READY_TIMEOUT_S: float = 5.0

    # HTTP artifact fetches
    HTTP_TIMEOUT_S: float = 15.0

    @field_validator('LOG_LEVEL', mode='before')
    @classmethod
    def validate_log_level(cls, v):
        """Convert empty/whitespace strings to default."""
        if isinstance(v, str) and not v.strip():
            return "INFO"
        return v

    @field_validator('LOG_FORMAT', mode='before')
    @classmethod
    def validate_log_format(cls, v):
        """Blank means json; otherwise one of json or console."""
        if isinstance(v, str) and not v.strip():
            return "json"
        if isinstance(v, str) and v.strip().lower() in ("json", "console"):
            return v.strip().lower()
        raise ValueError("must be json or console")

    @field_validator('MODEL_URL', mode='before')
    @classmethod
    def validate_model_url(cls, v):
        """Convert empty/whitespace strings to default."""
        if isinstance(v, str) and not v.strip():
            return "/model/model.json"
        return v

    @field_validator('METADATA_URL', mode='before')
    @classmethod
    def validate_metadata_url(cls, v):
        """Convert empty/whitespace strings to default."""
        if isinstance(v, str) and not v.strip():
            return "/model/metadata.json"
        return v

    @field_validator('CAPTURE_DB_PATH', mode='before')
    @classmethod
    def validate_capture_path(cls, v):
        """Convert empty/whitespace strings to default."""
        if isinstance(v, str) and not v.strip():
            return "captures/captures.db"
        return v

    @field_validator('CATALOG_PATH', mode='before')
    @classmethod
    def validate_catalog_path(cls, v):
        """Convert empty/whitespace strings to None."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator('CONFIDENCE_THRESHOLD', 'LOCAL_SIMILARITY_WEIGHT')
    @classmethod
    def validate_unit_interval(cls, v):
        if not 0.0 <= v <= 1.0:
            raise ValueError("must be between 0 and 1")
        return v

    @field_validator('MIN_VOTES', 'RECOGNITION_INTERVAL_MS', 'LOCAL_MAX_SAMPLES')
    @classmethod
    def validate_positive(cls, v):
        if v < 1:
            raise ValueError("must be a positive integer")
        return v

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore"
    }


# Global settings instance
settings = Settings()


def ensure_capture_dir(db_path: Optional[str] = None) -> Path:
    """Ensure the capture database directory exists and return the DB path."""
    path = Path(db_path or settings.CAPTURE_DB_PATH)
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def resolve_model_root() -> Path:
    """Directory that rooted artifact paths like /model/model.json resolve against."""
    return Path(settings.MODEL_ROOT).expanduser()
