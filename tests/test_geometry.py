"""Tests for loop geometry."""

import pytest
from pathlib import Path

# Add package root to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from chordloop.core import (
    LOOP_MIN_DURATION_MS,
    build_chord_offsets_ms,
    get_active_chord_index,
    get_loop_position_ms,
    get_loop_progress,
    normalize_loop_duration_ms,
    normalize_offset_ms,
)
from chordloop.core.geometry import uniform_offsets_ms


class TestNormalization:
    """Tests for duration and offset normalization."""

    def test_loop_duration_is_clamped(self):
        assert normalize_loop_duration_ms(0) == LOOP_MIN_DURATION_MS
        assert normalize_loop_duration_ms(-100) == LOOP_MIN_DURATION_MS
        assert normalize_loop_duration_ms(float("nan")) == LOOP_MIN_DURATION_MS
        assert normalize_loop_duration_ms(float("inf")) == LOOP_MIN_DURATION_MS
        assert normalize_loop_duration_ms(4000.4) == 4000

    def test_offset_is_non_negative(self):
        assert normalize_offset_ms(-500, 8000) == 7500
        assert normalize_offset_ms(8500, 8000) == 500
        assert normalize_offset_ms(16000, 8000) == 0

    def test_offset_never_reaches_loop_end(self):
        assert normalize_offset_ms(7999.7, 8000) == 0


class TestBuildChordOffsets:
    """Tests for build_chord_offsets_ms."""

    def test_started_with_first_chord(self):
        assert build_chord_offsets_ms(4, 8000, True, [2000, 4000, 6000]) == [0, 2000, 4000, 6000]

    def test_not_started_with_first_chord(self):
        offsets = build_chord_offsets_ms(4, 8000, False, [500, 2500, 4500, 6500])
        assert offsets == [500, 2500, 4500, 6500]

    @pytest.mark.parametrize("chord_count", [1, 2, 3, 4, 7, 12])
    @pytest.mark.parametrize("loop_duration_ms", [1, 250, 3999.6, 8000])
    def test_length_and_first_offset(self, chord_count, loop_duration_ms):
        offsets = build_chord_offsets_ms(chord_count, loop_duration_ms, True, [])
        assert len(offsets) == chord_count
        assert offsets[0] == 0

    def test_missing_marks_are_filled_uniformly(self):
        assert build_chord_offsets_ms(4, 8000, True, [2000]) == [0, 2000, 4000, 6000]

    def test_surplus_marks_are_dropped(self):
        assert build_chord_offsets_ms(2, 8000, True, [3000, 5000, 7000]) == [0, 3000]

    def test_no_chords(self):
        assert build_chord_offsets_ms(0, 8000, True, [1000]) == []

    def test_uniform_offsets(self):
        assert uniform_offsets_ms(4, 8000) == [0, 2000, 4000, 6000]


class TestActiveChordIndex:
    """Tests for get_active_chord_index."""

    OFFSETS = [500, 2500, 4500, 6500]

    def test_inside_loop(self):
        assert get_active_chord_index(self.OFFSETS, 700, 8000) == 0
        assert get_active_chord_index(self.OFFSETS, 3000, 8000) == 1
        assert get_active_chord_index(self.OFFSETS, 7000, 8000) == 3

    def test_before_first_offset_wraps_to_last_chord(self):
        assert get_active_chord_index(self.OFFSETS, 100, 8000) == 3

    def test_exact_offset_starts_chord(self):
        assert get_active_chord_index(self.OFFSETS, 2500, 8000) == 1

    def test_later_cycles(self):
        assert get_active_chord_index(self.OFFSETS, 8000 * 3 + 4600, 8000) == 2

    def test_empty_offsets(self):
        assert get_active_chord_index([], 1234, 8000) == 0


class TestLoopPosition:
    """Tests for loop position and progress."""

    def test_position(self):
        assert get_loop_position_ms(8500, 8000) == 500

    def test_progress(self):
        assert get_loop_progress(8500, 8000) == pytest.approx(0.0625)

    def test_progress_range(self):
        for elapsed in [0, 1, 3999, 4000, 123456, -1]:
            progress = get_loop_progress(elapsed, 4000)
            assert 0.0 <= progress < 1.0
