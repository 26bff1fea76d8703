"""Storage package: capture samples and the card catalog."""

from .captures import (
    CaptureStore,
    DirectoryCaptureStore,
    ImportSummary,
    SqliteCaptureStore,
    import_captures,
    infer_orientation,
)
from .catalog import DEFAULT_CATALOG_PATH, card_from_dict, default_catalog, load_catalog

__all__ = [
    "CaptureStore",
    "DirectoryCaptureStore",
    "ImportSummary",
    "SqliteCaptureStore",
    "import_captures",
    "infer_orientation",
    "card_from_dict",
    "load_catalog",
    "default_catalog",
    "DEFAULT_CATALOG_PATH",
]
