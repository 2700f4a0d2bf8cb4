"""Loop geometry - mapping between loop time and chord index.

Every function here is pure. Durations and offsets are rounded to whole
milliseconds so that persisted models compare exactly.
"""

import math
from typing import List, Sequence

from .constants import LOOP_MIN_DURATION_MS


def normalize_loop_duration_ms(loop_duration_ms: float) -> float:
    """Clamp a loop duration to a positive whole number of milliseconds."""
    if loop_duration_ms is None or not math.isfinite(loop_duration_ms):
        return float(LOOP_MIN_DURATION_MS)
    return float(max(LOOP_MIN_DURATION_MS, round(loop_duration_ms)))


def normalize_offset_ms(offset_ms: float, loop_duration_ms: float) -> float:
    """Wrap an offset into [0, loop_duration_ms)."""
    duration = normalize_loop_duration_ms(loop_duration_ms)
    normalized = ((offset_ms % duration) + duration) % duration
    # Rounding can land exactly on the loop end
    return float(round(normalized) % duration)


def uniform_offsets_ms(chord_count: int, loop_duration_ms: float) -> List[float]:
    """Evenly spaced chord starts, first chord at 0."""
    duration = normalize_loop_duration_ms(loop_duration_ms)
    step = duration / chord_count
    return [normalize_offset_ms(i * step, duration) for i in range(chord_count)]


def build_chord_offsets_ms(
    chord_count: int,
    loop_duration_ms: float,
    started_with_first_chord: bool,
    raw_marks_ms: Sequence[float],
) -> List[float]:
    """
    Build chord start offsets from captured marks.

    Args:
        chord_count: Number of chords in the loop
        loop_duration_ms: Loop length in milliseconds
        started_with_first_chord: If True, chord 1 starts at offset 0 and
            raw_marks_ms hold the starts of chords 2..n. Otherwise
            raw_marks_ms hold the starts of all n chords.
        raw_marks_ms: Captured chord-start marks, relative to loop start

    Returns:
        Exactly chord_count ascending offsets. Missing marks are filled
        with uniform spacing; surplus marks are dropped.
    """
    if chord_count <= 0:
        return []

    duration = normalize_loop_duration_ms(loop_duration_ms)
    marks = sorted(normalize_offset_ms(m, duration) for m in raw_marks_ms)

    offsets = [0.0] + marks if started_with_first_chord else marks
    offsets = offsets[:chord_count]

    if len(offsets) < chord_count:
        step = duration / chord_count
        for i in range(len(offsets), chord_count):
            offsets.append(float(round((i * step) % duration)))

    return sorted(normalize_offset_ms(o, duration) for o in offsets)


def get_loop_position_ms(elapsed_ms: float, loop_duration_ms: float) -> float:
    """Position inside the current loop cycle."""
    return normalize_offset_ms(elapsed_ms, loop_duration_ms)


def get_loop_progress(elapsed_ms: float, loop_duration_ms: float) -> float:
    """Fraction of the loop elapsed, in [0, 1)."""
    duration = normalize_loop_duration_ms(loop_duration_ms)
    return get_loop_position_ms(elapsed_ms, duration) / duration


def get_active_chord_index(
    chord_offsets_ms: Sequence[float],
    elapsed_ms: float,
    loop_duration_ms: float,
) -> int:
    """
    Index of the chord sounding at elapsed_ms.

    A position before the first offset belongs to the previous cycle's last
    chord, so the first chord never starts early.
    """
    if len(chord_offsets_ms) == 0:
        return 0

    duration = normalize_loop_duration_ms(loop_duration_ms)
    offsets = sorted(normalize_offset_ms(o, duration) for o in chord_offsets_ms)
    position = get_loop_position_ms(elapsed_ms, duration)

    for i in range(len(offsets) - 1, -1, -1):
        if position >= offsets[i]:
            return i

    return len(offsets) - 1
