"""Tests for the manual tap-capture session."""

import pytest
from pathlib import Path

# Add package root to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from chordloop.capture import ManualCaptureSession, LoopMeasurement, CaptureStatus
from chordloop.inference import parse_chord_sequence


def capture(session: ManualCaptureSession, times):
    session.start(times[0])
    for t in times[1:]:
        session.tap(t)
    return session


class TestCaptureLifecycle:
    """State transitions of a capture."""

    def test_starts_idle(self):
        session = ManualCaptureSession(4)
        assert session.status is CaptureStatus.IDLE
        assert session.model is None

    def test_start_seeds_first_fencepost(self):
        session = ManualCaptureSession(4)
        assert session.start(1500.0)
        assert session.status is CaptureStatus.RUNNING
        assert session.fenceposts == [0.0]

    def test_cannot_start_without_chords(self):
        session = ManualCaptureSession(0)
        assert not session.start(0.0)
        assert session.status is CaptureStatus.IDLE

    def test_cannot_start_twice(self):
        session = ManualCaptureSession(4)
        session.start(0.0)
        assert not session.start(10.0)

    def test_tap_ignored_unless_running(self):
        session = ManualCaptureSession(4)
        assert not session.tap(100.0)
        assert session.fenceposts == []

    def test_incomplete_capture_keeps_running(self):
        session = capture(ManualCaptureSession(4), [0, 1000, 2000])
        assert session.status is CaptureStatus.RUNNING
        assert session.taps_remaining == 2
        assert session.model is None

    def test_reset_from_any_state(self):
        session = capture(ManualCaptureSession(4), [0, 1000])
        session.reset()
        assert session.status is CaptureStatus.IDLE
        assert session.fenceposts == []

        capture(session, [0, 1000, 2000, 3000, 4000])
        assert session.status is CaptureStatus.DONE
        session.reset()
        assert session.status is CaptureStatus.IDLE
        assert session.model is None

    def test_can_capture_again_after_done(self):
        session = capture(ManualCaptureSession(2), [0, 1000, 2000])
        assert session.status is CaptureStatus.DONE
        assert session.start(5000.0)
        assert session.status is CaptureStatus.RUNNING
        assert session.model is None


class TestCaptureResult:
    """Calibrated models produced by a completed capture."""

    def test_started_with_first_chord(self):
        chords = parse_chord_sequence("C Am F G")
        session = capture(ManualCaptureSession(len(chords)), [0, 1000, 2000, 3000, 4000])

        assert session.status is CaptureStatus.DONE
        assert session.model.loop_duration_ms == 4000
        assert list(session.model.chord_offsets_ms) == [0, 1000, 2000, 3000]
        assert session.model.started_with_first_chord

    def test_relative_to_start_time(self):
        session = capture(ManualCaptureSession(4), [10000, 11000, 12000, 13000, 14000])
        assert session.model.loop_duration_ms == 4000
        assert list(session.model.chord_offsets_ms) == [0, 1000, 2000, 3000]

    def test_extra_leading_mark_when_not_started_with_first_chord(self):
        session = ManualCaptureSession(4, started_with_first_chord=False)
        assert session.required_taps == 6

        capture(session, [0, 500, 2500, 4500, 6500, 8000])
        assert session.status is CaptureStatus.DONE
        assert session.model.loop_duration_ms == 8000
        assert list(session.model.chord_offsets_ms) == [500, 2500, 4500, 6500]
        assert not session.model.started_with_first_chord

    def test_uneven_chord_lengths(self):
        session = capture(ManualCaptureSession(3), [0, 2000, 3000, 6000])
        assert session.model.loop_duration_ms == 6000
        assert list(session.model.chord_offsets_ms) == [0, 2000, 3000]

    def test_single_chord(self):
        session = capture(ManualCaptureSession(1), [0, 2500])
        assert session.model.loop_duration_ms == 2500
        assert list(session.model.chord_offsets_ms) == [0]

    def test_progress(self):
        session = ManualCaptureSession(4)
        session.start(0.0)
        session.tap(1000.0)
        assert session.progress == pytest.approx(2 / 5)
        for t in (2000.0, 3000.0, 4000.0):
            session.tap(t)
        assert session.progress == 1.0


class TestLoopMeasurement:
    """Measuring the loop length with a start and a stop tap."""

    def test_start_stop(self):
        measurement = LoopMeasurement()
        assert measurement.status is CaptureStatus.IDLE
        assert measurement.start(2000.0)
        assert measurement.status is CaptureStatus.RUNNING
        assert measurement.stop(9999.6) == 8000.0
        assert measurement.status is CaptureStatus.DONE
        assert measurement.loop_duration_ms == 8000.0

    def test_short_measurement_is_clamped(self):
        measurement = LoopMeasurement()
        measurement.start(0.0)
        assert measurement.stop(40.0) == 250.0

    def test_stop_without_start(self):
        measurement = LoopMeasurement()
        assert measurement.stop(1000.0) is None
        assert measurement.status is CaptureStatus.IDLE

    def test_start_while_running(self):
        measurement = LoopMeasurement()
        measurement.start(0.0)
        assert not measurement.start(500.0)
        assert measurement.stop(3000.0) == 3000.0

    def test_tap_toggles(self):
        measurement = LoopMeasurement()
        assert measurement.tap(100.0) is None
        assert measurement.tap(4100.0) == 4000.0
        # A third tap starts a new measurement
        assert measurement.tap(5000.0) is None
        assert measurement.status is CaptureStatus.RUNNING
        assert measurement.loop_duration_ms is None

    def test_reset(self):
        measurement = LoopMeasurement()
        measurement.tap(0.0)
        measurement.tap(1000.0)
        measurement.reset()
        assert measurement.status is CaptureStatus.IDLE
        assert measurement.loop_duration_ms is None
