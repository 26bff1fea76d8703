"""
Tests for label reconciliation between model labels and the card catalog.
"""

import pytest

from tarot_scanner.core.types import Card, Orientation
from tarot_scanner.labels import (
    LabelMapping,
    build_lookup,
    image_label,
    match_label,
    normalize,
    parse_label,
    suggest_alias,
)


class TestNormalize:
    """Test label normalization."""

    @pytest.mark.parametrize("raw,expected", [
        ("O Louco", "o-louco"),
        ("00_fool_invertido", "00-fool-invertido"),
        ("A Força", "a-forca"),
        ("  Ás de Paus!! ", "as-de-paus"),
        ("--The__Tower--", "the-tower"),
        ("", ""),
    ])
    def test_normalize_values(self, raw, expected):
        assert normalize(raw) == expected

    @pytest.mark.parametrize("raw", ["O Louco", "A Roda da Fortuna (reversed)", "__x__", "Três de Copas"])
    def test_normalize_is_idempotent(self, raw):
        once = normalize(raw)
        assert normalize(once) == once


class TestParseLabel:
    """Test orientation parsing."""

    def test_reversed_token(self):
        parsed = parse_label("00_fool_invertido")
        assert parsed.orientation is Orientation.REVERSED
        assert parsed.base == "00-fool"

    def test_upright_token(self):
        parsed = parse_label("00_fool_vertical")
        assert parsed.orientation is Orientation.UPRIGHT
        assert parsed.base == "00-fool"

    def test_missing_token_defaults_to_upright(self):
        # No orientation marker at all still reads as upright
        parsed = parse_label("00_fool")
        assert parsed.orientation is Orientation.UPRIGHT
        assert parsed.base == "00-fool"

    def test_english_tokens(self):
        assert parse_label("The Fool reversed").orientation is Orientation.REVERSED
        assert parse_label("the fool upright").orientation is Orientation.UPRIGHT

    def test_normalized_form_kept(self):
        assert parse_label("00 Fool Invertido").normalized == "00-fool-invertido"


class TestLookup:
    """Test catalog alias lookup."""

    def test_image_label(self):
        assert image_label("/cards/00_fool.svg") == "00-fool"
        assert image_label("") == ""

    def test_aliases(self, cards):
        lookup = build_lookup(cards)
        fool = cards[0]
        assert lookup["0"] is fool
        assert lookup["00"] is fool
        assert lookup["o-louco"] is fool
        assert lookup["00-fool"] is fool

    def test_later_card_wins_shared_alias(self):
        first = Card(id=5, name="Twin", image_url="")
        second = Card(id=6, name="Twin", image_url="")
        assert build_lookup([first, second])["twin"] is second

    @pytest.mark.parametrize("label", ["0", "00", "O Louco", "00_fool", "00_fool_vertical", "o-louco-invertido"])
    def test_match_label_resolves_fool(self, cards, label):
        assert match_label(label, build_lookup(cards)).card.id == 0

    def test_match_label_orientation(self, cards):
        matched = match_label("01_magician_invertido", build_lookup(cards))
        assert matched.card.id == 1
        assert matched.orientation is Orientation.REVERSED
        assert matched.base_label == "01-magician"

    def test_match_label_unknown(self, cards):
        matched = match_label("99_unknown", build_lookup(cards))
        assert matched.card is None

    def test_suggest_alias_for_typo(self, cards):
        suggestion = suggest_alias("00_fol_vertical", build_lookup(cards))
        assert suggestion is not None
        assert suggestion[0] == "00-fool"

    def test_suggest_alias_nothing_close(self, cards):
        assert suggest_alias("zzzzzzzzzzzz", build_lookup(cards)) is None


class TestLabelMapping:
    """Test pre-resolved model label mapping and its diagnostics."""

    def test_from_labels(self, cards):
        labels = ["00_fool_vertical", "00_fool_invertido", "01_magician_vertical", "mystery"]
        mapping = LabelMapping.from_labels(labels, build_lookup(cards))

        assert mapping.diagnostics.total_labels == 4
        assert mapping.diagnostics.mapped_labels == 3
        assert mapping.diagnostics.unmapped_labels == ["mystery"]
        assert mapping.get("00 fool invertido").is_reversed is True
        assert mapping.get("00_fool_vertical").card.id == 0

    def test_unmapped_labels_capped(self, cards):
        labels = [f"unknown_{i}" for i in range(20)]
        mapping = LabelMapping.from_labels(labels, build_lookup(cards))
        assert mapping.diagnostics.total_labels == 20
        assert mapping.diagnostics.mapped_labels == 0
        assert len(mapping.diagnostics.unmapped_labels) == 8

    def test_empty(self, cards):
        mapping = LabelMapping.from_labels([], build_lookup(cards))
        assert mapping.diagnostics.total_labels == 0
        assert mapping.get("anything") is None
