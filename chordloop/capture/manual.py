"""Manual loop capture - calibrate a loop from tap timestamps."""

from enum import Enum
from typing import List, Optional

from ..core import (
    CalibratedLoopModel,
    build_chord_offsets_ms,
    normalize_loop_duration_ms,
)
from ..core.geometry import uniform_offsets_ms


class CaptureStatus(Enum):
    """State of a manual capture."""
    IDLE = "idle"
    RUNNING = "running"
    DONE = "done"


class ManualCaptureSession:
    """Tap-driven loop calibration.

    The player taps at the loop start, at every chord change and at the
    loop restart. When the loop does not begin on chord 1, one extra tap
    marks the loop start before chord 1.

    The session is driven only by taps; an incomplete capture simply stays
    RUNNING and reset() is always available.
    """

    def __init__(self, chord_count: int, started_with_first_chord: bool = True):
        """
        Initialize ManualCaptureSession.

        Args:
            chord_count: Number of chords in the progression
            started_with_first_chord: True if the loop starts on chord 1
        """
        self.chord_count = chord_count
        self.started_with_first_chord = started_with_first_chord
        self.status = CaptureStatus.IDLE
        self.start_ms: Optional[float] = None
        self.fenceposts: List[float] = []
        self.model: Optional[CalibratedLoopModel] = None

    @property
    def required_taps(self) -> int:
        """Fenceposts needed to complete the capture, including the start."""
        if self.chord_count <= 0:
            return 0
        extra = 1 if self.started_with_first_chord else 2
        return self.chord_count + extra

    @property
    def taps_remaining(self) -> int:
        if self.status is not CaptureStatus.RUNNING:
            return 0
        return max(0, self.required_taps - len(self.fenceposts))

    @property
    def progress(self) -> float:
        """Fraction of the required fenceposts captured so far."""
        if self.status is CaptureStatus.DONE:
            return 1.0
        if self.required_taps == 0:
            return 0.0
        return len(self.fenceposts) / self.required_taps

    def start(self, now_ms: float) -> bool:
        """
        Start a capture; the start itself is the first fencepost.

        Returns:
            False if the session is already running or has no chords
        """
        if self.chord_count <= 0 or self.status is CaptureStatus.RUNNING:
            return False
        self.start_ms = now_ms
        self.fenceposts = [0.0]
        self.model = None
        self.status = CaptureStatus.RUNNING
        return True

    def tap(self, now_ms: float) -> bool:
        """
        Record a tap.

        Returns:
            False if the session is not running
        """
        if self.status is not CaptureStatus.RUNNING:
            return False
        self.fenceposts.append(now_ms - self.start_ms)
        if len(self.fenceposts) >= self.required_taps:
            self._finish()
        return True

    def reset(self) -> None:
        """Discard the capture and return to IDLE."""
        self.status = CaptureStatus.IDLE
        self.start_ms = None
        self.fenceposts = []
        self.model = None

    def _finish(self) -> None:
        first = self.fenceposts[0]
        loop_duration_ms = normalize_loop_duration_ms(self.fenceposts[-1] - first)

        n = self.chord_count
        if self.started_with_first_chord:
            chord_marks = self.fenceposts[1:n]  # chords 2..n, chord 1 is at the start
        else:
            chord_marks = self.fenceposts[1:n + 1]
        relative = [mark - first for mark in chord_marks]

        offsets = build_chord_offsets_ms(
            n, loop_duration_ms, self.started_with_first_chord, relative
        )
        if len(set(offsets)) != n:
            offsets = uniform_offsets_ms(n, loop_duration_ms)

        self.model = CalibratedLoopModel(
            chord_count=n,
            loop_duration_ms=loop_duration_ms,
            started_with_first_chord=self.started_with_first_chord,
            chord_offsets_ms=tuple(offsets),
        )
        self.status = CaptureStatus.DONE


class LoopMeasurement:
    """Measure the loop length with two taps: one at the loop start, one at its restart.

    The measured length is the guide loop duration that automatic capture
    uses to constrain dwell times and rescale its estimate.
    """

    def __init__(self):
        self.status = CaptureStatus.IDLE
        self.start_ms: Optional[float] = None
        self.loop_duration_ms: Optional[float] = None

    def start(self, now_ms: float) -> bool:
        """
        Start measuring.

        Returns:
            False if a measurement is already running
        """
        if self.status is CaptureStatus.RUNNING:
            return False
        self.start_ms = now_ms
        self.loop_duration_ms = None
        self.status = CaptureStatus.RUNNING
        return True

    def stop(self, now_ms: float) -> Optional[float]:
        """
        Stop measuring.

        Returns:
            Normalized loop duration in ms, or None if no measurement was running
        """
        if self.status is not CaptureStatus.RUNNING:
            return None
        self.loop_duration_ms = normalize_loop_duration_ms(now_ms - self.start_ms)
        self.start_ms = None
        self.status = CaptureStatus.DONE
        return self.loop_duration_ms

    def tap(self, now_ms: float) -> Optional[float]:
        """Single-key control: the first tap starts, the next one stops."""
        if self.status is CaptureStatus.RUNNING:
            return self.stop(now_ms)
        self.start(now_ms)
        return None

    def reset(self) -> None:
        self.status = CaptureStatus.IDLE
        self.start_ms = None
        self.loop_duration_ms = None
