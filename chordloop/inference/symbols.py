"""Chord symbol resolution - lead-sheet symbols to pitch-class sets.

Chord identities always come from the user's progression text. This module
turns that text into the pitch classes the tracker listens for and the
renderer highlights. Malformed symbols resolve to an empty set so a bad
token means "no highlight" rather than a crash in a polling loop.
"""

import re
from dataclasses import dataclass
from typing import List, Optional

from ..core.constants import NATURAL_PITCH_CLASSES, PITCH_NAMES


class InvalidChordSymbol(ValueError):
    """Raised when a chord symbol has an unknown root or quality."""


# Chord qualities (intervals from root in semitones)
QUALITY_INTERVALS = {
    # Triads
    "": [0, 4, 7],
    "m": [0, 3, 7],
    "min": [0, 3, 7],
    "dim": [0, 3, 6],
    "aug": [0, 4, 8],
    "+": [0, 4, 8],
    "sus2": [0, 2, 7],
    "sus4": [0, 5, 7],
    # Seventh chords
    "7": [0, 4, 7, 10],
    "maj7": [0, 4, 7, 11],
    "m7": [0, 3, 7, 10],
    "dim7": [0, 3, 6, 9],
    "m7b5": [0, 3, 6, 10],
    "mMaj7": [0, 3, 7, 11],
    "7b5": [0, 4, 6, 10],
    "7#5": [0, 4, 8, 10],
    # Sixths and extensions
    "6": [0, 4, 7, 9],
    "m6": [0, 3, 7, 9],
    "add9": [0, 4, 7, 2],
    "9": [0, 4, 7, 10, 2],
    "11": [0, 4, 7, 10, 2, 5],
    "13": [0, 4, 7, 10, 2, 9],
}

ACCIDENTAL_OFFSETS = {"": 0, "#": 1, "b": -1}

_ROOT_PATTERN = re.compile(r"^([A-G])(#|b)?(.*)$")


@dataclass(frozen=True)
class ChordSymbol:
    """A parsed lead-sheet chord symbol."""

    root: int  # Root pitch class (0-11)
    quality: str  # Quality suffix, e.g. "m7b5"
    bass: Optional[int] = None  # Bass pitch class for slash chords

    @property
    def root_name(self) -> str:
        return PITCH_NAMES[self.root]

    @property
    def pitch_classes(self) -> List[int]:
        """Pitch classes of the chord, root first."""
        return [(self.root + interval) % 12 for interval in QUALITY_INTERVALS[self.quality]]


def parse_chord_sequence(text: Optional[str]) -> List[str]:
    """
    Split progression text into chord tokens.

    Bar separators ("|") are dropped, order is preserved.

    Example:
        >>> parse_chord_sequence("I7 I7 | IV7 IV7 | I7")
        ['I7', 'I7', 'IV7', 'IV7', 'I7']
    """
    if not isinstance(text, str):
        return []
    return [token for token in text.split() if token != "|"]


def _normalize_accidentals(symbol: str) -> str:
    return symbol.strip().replace("♭", "b").replace("♯", "#")


def _parse_note(name: str) -> int:
    match = re.fullmatch(r"([A-G])(#|b)?", name.strip())
    if not match:
        raise InvalidChordSymbol(f"Unknown note name: {name!r}")
    letter, accidental = match.group(1), match.group(2) or ""
    return (NATURAL_PITCH_CLASSES[letter] + ACCIDENTAL_OFFSETS[accidental]) % 12


def parse_chord_symbol(token: str) -> ChordSymbol:
    """
    Parse a chord symbol of the form Root[accidental][quality][/Bass].

    Raises:
        InvalidChordSymbol: If the root or quality is not recognized
    """
    if not isinstance(token, str):
        raise InvalidChordSymbol(f"Chord symbol must be a string, got {type(token).__name__}")

    symbol = _normalize_accidentals(token)
    upper, _, bass_part = symbol.partition("/")
    upper = upper.strip()

    match = _ROOT_PATTERN.match(upper)
    if not match:
        raise InvalidChordSymbol(f"Unknown chord root in {token!r}")

    letter, accidental, quality = match.group(1), match.group(2) or "", match.group(3).strip()
    if quality not in QUALITY_INTERVALS:
        raise InvalidChordSymbol(f"Unknown chord quality {quality!r} in {token!r}")

    root = (NATURAL_PITCH_CLASSES[letter] + ACCIDENTAL_OFFSETS[accidental]) % 12

    # The bass note never changes the pitch-class set; a bad one is ignored
    bass = None
    if bass_part.strip():
        try:
            bass = _parse_note(bass_part)
        except InvalidChordSymbol:
            bass = None

    return ChordSymbol(root=root, quality=quality, bass=bass)


def resolve_pitch_classes(token: Optional[str]) -> List[int]:
    """
    Resolve a chord symbol to its pitch classes, root first.

    Returns an empty list for anything that cannot be parsed.

    Example:
        >>> resolve_pitch_classes("Bb")
        [10, 2, 5]
    """
    try:
        return parse_chord_symbol(token).pitch_classes
    except InvalidChordSymbol:
        return []


def resolve_progression(text: Optional[str]) -> List[List[int]]:
    """Resolve every chord of a progression string."""
    return [resolve_pitch_classes(token) for token in parse_chord_sequence(text)]
