"""Card catalog loading."""

import json
from pathlib import Path
from typing import Any, Dict, List, Union

from ..core.types import Card
from ..utils.config import settings
from ..utils.error_handler import ConfigurationError, ErrorContext, validate_required_fields

# Accepted spellings per field, first present wins
_FIELD_ALIASES = {
    "id": ("id",),
    "name": ("name", "nome"),
    "image_url": ("image_url", "imageUrl", "imagemUrl"),
}


def _pick(entry: Dict[str, Any], field: str) -> Any:
    for key in _FIELD_ALIASES[field]:
        if key in entry and entry[key] is not None:
            return entry[key]
    return None


def card_from_dict(entry: Dict[str, Any]) -> Card:
    """Build a Card from a catalog entry, ignoring fields the recognizer doesn't use."""
    fields = {field: _pick(entry, field) for field in _FIELD_ALIASES}
    validate_required_fields(
        fields, ["id", "name"],
        ErrorContext(operation="load_catalog", module=__name__, function="card_from_dict"),
    )
    return Card(id=int(fields["id"]), name=str(fields["name"]), image_url=str(fields["image_url"] or ""))


def load_catalog(path: Union[str, Path]) -> List[Card]:
    """Read a JSON array of cards (or an object with a ``cards`` array)."""
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise ConfigurationError(
            f"Could not read card catalog: {path}",
            details={"path": str(path), "error": str(e)},
        ) from e

    if isinstance(data, dict):
        data = data.get("cards", [])
    if not isinstance(data, list):
        raise ConfigurationError("Card catalog must be a JSON array", details={"path": str(path)})

    return [card_from_dict(entry) for entry in data]


DEFAULT_CATALOG_PATH = Path(__file__).resolve().parent.parent / "data" / "cards.json"


def default_catalog() -> List[Card]:
    """The configured catalog, or the bundled 78-card Rider-Waite deck."""
    return load_catalog(settings.CATALOG_PATH or DEFAULT_CATALOG_PATH)
