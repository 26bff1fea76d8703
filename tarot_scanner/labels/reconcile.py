"""Label reconciliation: map free-form class labels onto catalog cards.

Labels come from a trained model's metadata or from capture file names, in
whatever shape the person who trained or named them chose
("00_fool_invertido", "O Louco - reversed", "0"). Everything is reduced to a
canonical hyphenated token before lookup.
"""

import re
import unicodedata
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Dict, Iterable, List, Optional, Tuple

from rapidfuzz import fuzz, process

from ..core.constants import MAX_UNMAPPED_LABELS, REVERSED_TOKENS, UPRIGHT_TOKENS
from ..core.types import Card, LabelDiagnostics, ModelLabelMatch, Orientation

_COMBINING_MARKS = re.compile(r"[\u0300-\u036f]")
_DISALLOWED = re.compile(r"[^\w\s-]", re.ASCII)
_SEPARATORS = re.compile(r"[\s_-]+", re.ASCII)

# Minimum rapidfuzz ratio for an unmapped label suggestion
SUGGESTION_MIN_SCORE = 60.0


@dataclass(frozen=True)
class ParsedLabel:
    normalized: str
    base: str
    orientation: Orientation


def normalize(value: str) -> str:
    """Canonical form of a label: ascii, lowercase, hyphen separated."""
    text = unicodedata.normalize("NFD", value)
    text = _COMBINING_MARKS.sub("", text).lower()
    text = _DISALLOWED.sub("", text)
    text = _SEPARATORS.sub("-", text)
    return text.strip("-")


def _tokenize(value: str) -> List[str]:
    return [token for token in normalize(value).split("-") if token]


def parse_label(label: str) -> ParsedLabel:
    """Split a label into its card part and orientation.

    A label without any reversed token is upright, whether or not it carries
    an upright token.
    """
    tokens = _tokenize(label)
    stripped = [t for t in tokens if t not in REVERSED_TOKENS and t not in UPRIGHT_TOKENS]
    is_reversed = any(t in REVERSED_TOKENS for t in tokens)

    return ParsedLabel(
        normalized=normalize(label),
        base="-".join(stripped),
        orientation=Orientation.from_reversed(is_reversed),
    )


def image_label(image_url: str) -> str:
    """Normalized basename of a card image path, extension stripped."""
    stem = PurePosixPath(image_url).stem if image_url else ""
    return normalize(stem) if stem else ""


def build_lookup(cards: Iterable[Card]) -> Dict[str, Card]:
    """Alias map: id, zero-padded id, normalized name and image label.

    Plain assignment, so when two cards share an alias the later one wins.
    """
    lookup: Dict[str, Card] = {}
    for card in cards:
        lookup[str(card.id)] = card
        lookup[f"{card.id:02d}"] = card
        lookup[normalize(card.name)] = card
        name = image_label(card.image_url)
        if name:
            lookup[name] = card
    return lookup


def match_label(label: str, lookup: Dict[str, Card]) -> ModelLabelMatch:
    parsed = parse_label(label)
    card = lookup.get(parsed.base) or lookup.get(parsed.normalized)

    return ModelLabelMatch(
        card=card,
        orientation=parsed.orientation,
        normalized_label=parsed.normalized,
        base_label=parsed.base,
    )


def suggest_alias(label: str, lookup: Dict[str, Card]) -> Optional[Tuple[str, float]]:
    """Closest lookup alias for a label that did not resolve, for display only."""
    if not lookup:
        return None
    base = parse_label(label).base
    if not base:
        return None
    best = process.extractOne(base, list(lookup.keys()), scorer=fuzz.ratio)
    if best is None or best[1] < SUGGESTION_MIN_SCORE:
        return None
    return best[0], float(best[1])


@dataclass
class MappedLabel:
    card: Card
    is_reversed: bool
    original_label: str


@dataclass
class LabelMapping:
    """Pre-resolved model labels keyed by their normalized form."""

    by_normalized_label: Dict[str, MappedLabel] = field(default_factory=dict)
    diagnostics: LabelDiagnostics = field(default_factory=LabelDiagnostics)

    @classmethod
    def from_labels(cls, labels: Iterable[str], lookup: Dict[str, Card]) -> "LabelMapping":
        labels = list(labels)
        mapping: Dict[str, MappedLabel] = {}
        unmapped: List[str] = []

        for label in labels:
            matched = match_label(label, lookup)
            if matched.card is None:
                unmapped.append(label)
                continue
            mapping[matched.normalized_label] = MappedLabel(
                card=matched.card,
                is_reversed=matched.orientation is Orientation.REVERSED,
                original_label=label,
            )

        shown = unmapped[:MAX_UNMAPPED_LABELS]
        suggestions = {}
        for label in shown:
            suggestion = suggest_alias(label, lookup)
            if suggestion:
                suggestions[label] = suggestion[0]

        return cls(
            by_normalized_label=mapping,
            diagnostics=LabelDiagnostics(
                total_labels=len(labels),
                mapped_labels=len(mapping),
                unmapped_labels=shown,
                suggestions=suggestions,
            ),
        )

    def get(self, label: str) -> Optional[MappedLabel]:
        return self.by_normalized_label.get(normalize(label))
