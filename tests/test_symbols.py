"""Tests for chord symbol parsing and pitch-class resolution."""

import pytest
from pathlib import Path

# Add package root to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from chordloop.inference import (
    InvalidChordSymbol,
    parse_chord_sequence,
    parse_chord_symbol,
    resolve_pitch_classes,
    resolve_progression,
)


class TestParseChordSequence:
    """Tests for splitting progression text."""

    def test_ignores_bar_separators(self):
        assert parse_chord_sequence("I7 I7 | IV7 IV7 | I7") == ["I7", "I7", "IV7", "IV7", "I7"]

    def test_collapses_whitespace(self):
        assert parse_chord_sequence("  C\tAm\n F   G ") == ["C", "Am", "F", "G"]

    def test_empty_input(self):
        assert parse_chord_sequence("") == []
        assert parse_chord_sequence("   ") == []
        assert parse_chord_sequence("| |") == []
        assert parse_chord_sequence(None) == []

    def test_bar_glued_to_chord_is_kept(self):
        """Only standalone '|' tokens are separators."""
        assert parse_chord_sequence("C| G") == ["C|", "G"]


class TestResolvePitchClasses:
    """Tests for symbol to pitch-class resolution."""

    def test_triads(self):
        assert resolve_pitch_classes("Cm") == [0, 3, 7]
        assert resolve_pitch_classes("Bb") == [10, 2, 5]
        assert resolve_pitch_classes("C") == [0, 4, 7]
        assert resolve_pitch_classes("F#dim") == [6, 9, 0]

    def test_sevenths(self):
        assert resolve_pitch_classes("G7") == [7, 11, 2, 5]
        assert resolve_pitch_classes("Cmaj7") == [0, 4, 7, 11]
        assert resolve_pitch_classes("Cm7b5") == [0, 3, 6, 10]
        assert resolve_pitch_classes("AmMaj7") == [9, 0, 4, 8]

    def test_slash_chord_uses_upper_chord(self):
        assert resolve_pitch_classes("D/F#") == [2, 6, 9]
        assert resolve_pitch_classes("C/G") == [0, 4, 7]

    def test_unicode_accidentals(self):
        assert resolve_pitch_classes("B♭") == resolve_pitch_classes("Bb")
        assert resolve_pitch_classes("F♯m") == [6, 9, 1]

    def test_surrounding_whitespace(self):
        assert resolve_pitch_classes("  Am  ") == [9, 0, 4]

    def test_invalid_input_yields_empty_set(self):
        assert resolve_pitch_classes("") == []
        assert resolve_pitch_classes(None) == []
        assert resolve_pitch_classes("H7") == []
        assert resolve_pitch_classes("I7") == []
        assert resolve_pitch_classes("Cxyz") == []

    def test_flat_root_wraps(self):
        assert resolve_pitch_classes("Cb")[0] == 11

    def test_resolve_progression(self):
        assert resolve_progression("C Am | F G") == [
            [0, 4, 7],
            [9, 0, 4],
            [5, 9, 0],
            [7, 11, 2],
        ]


class TestParseChordSymbol:
    """Tests for the raising parser behind resolve_pitch_classes."""

    def test_unknown_root_raises(self):
        with pytest.raises(InvalidChordSymbol):
            parse_chord_symbol("X")

    def test_unknown_quality_raises(self):
        with pytest.raises(InvalidChordSymbol, match="quality"):
            parse_chord_symbol("Cfoo")

    def test_bass_note(self):
        symbol = parse_chord_symbol("D/F#")
        assert symbol.root == 2
        assert symbol.bass == 6
        assert symbol.quality == ""
        assert symbol.root_name == "D"

    def test_bad_bass_is_ignored(self):
        symbol = parse_chord_symbol("C/Z")
        assert symbol.bass is None
        assert symbol.pitch_classes == [0, 4, 7]
