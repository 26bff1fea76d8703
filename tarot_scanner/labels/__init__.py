"""
Label reconciliation between model/file labels and the card catalog.
"""

from .reconcile import (
    LabelMapping,
    MappedLabel,
    ParsedLabel,
    build_lookup,
    image_label,
    match_label,
    normalize,
    parse_label,
    suggest_alias,
)

__all__ = [
    "LabelMapping",
    "MappedLabel",
    "ParsedLabel",
    "build_lookup",
    "image_label",
    "match_label",
    "normalize",
    "parse_label",
    "suggest_alias",
]
