"""Playback transport - map wall-clock time through a loop model."""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Sequence

from ..core import (
    CalibratedLoopModel,
    LoopPosition,
    get_active_chord_index,
    get_loop_position_ms,
    normalize_loop_duration_ms,
)
from ..inference.symbols import resolve_pitch_classes


class TransportStatus(Enum):
    PLAYING = "playing"
    PAUSED = "paused"
    STOPPED = "stopped"


@dataclass(frozen=True)
class PlaybackState:
    """Snapshot of the transport."""

    status: TransportStatus
    started_at_ms: float
    paused_elapsed_ms: float


def monotonic_ms() -> float:
    """Default transport clock."""
    return time.perf_counter() * 1000.0


class PlaybackTransport:
    """Play/pause/stop over a calibrated loop.

    The transport never schedules anything itself; a renderer polls
    position() on its own tick.
    """

    def __init__(
        self,
        model: CalibratedLoopModel,
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Initialize PlaybackTransport.

        Args:
            model: Calibrated loop model to play through
            clock: Millisecond clock (default: monotonic performance counter)
        """
        self.model = model
        self.clock = clock or monotonic_ms
        self.status = TransportStatus.STOPPED
        self.started_at_ms = 0.0
        self.paused_elapsed_ms = 0.0

    @property
    def loop_duration_ms(self) -> float:
        return normalize_loop_duration_ms(self.model.loop_duration_ms)

    @property
    def state(self) -> PlaybackState:
        return PlaybackState(self.status, self.started_at_ms, self.paused_elapsed_ms)

    def _now(self, now_ms: Optional[float]) -> float:
        return self.clock() if now_ms is None else now_ms

    def load(self, model: CalibratedLoopModel) -> None:
        """Replace the model after recalibration and stop."""
        self.model = model
        self.stop()

    def play(self, now_ms: Optional[float] = None) -> None:
        """Start from the loop start, or resume from a pause."""
        now = self._now(now_ms)
        if self.status is TransportStatus.PLAYING:
            return
        if self.status is TransportStatus.PAUSED:
            self.started_at_ms = now - self.paused_elapsed_ms
        else:
            self.started_at_ms = now
            self.paused_elapsed_ms = 0.0
        self.status = TransportStatus.PLAYING

    def pause(self, now_ms: Optional[float] = None) -> None:
        if self.status is not TransportStatus.PLAYING:
            return
        now = self._now(now_ms)
        self.paused_elapsed_ms = (now - self.started_at_ms) % self.loop_duration_ms
        self.status = TransportStatus.PAUSED

    def stop(self) -> None:
        self.paused_elapsed_ms = 0.0
        self.status = TransportStatus.STOPPED

    def elapsed(self, now_ms: Optional[float] = None) -> float:
        """Elapsed time inside the loop."""
        if self.status is TransportStatus.PLAYING:
            return (self._now(now_ms) - self.started_at_ms) % self.loop_duration_ms
        return self.paused_elapsed_ms

    def position(self, now_ms: Optional[float] = None) -> LoopPosition:
        """Active chord and loop progress at now_ms."""
        elapsed = self.elapsed(now_ms)
        duration = self.loop_duration_ms
        position_ms = get_loop_position_ms(elapsed, duration)
        return LoopPosition(
            chord_index=get_active_chord_index(self.model.chord_offsets_ms, elapsed, duration),
            progress=position_ms / duration,
            position_ms=position_ms,
        )

    def active_pitch_classes(
        self,
        chord_tokens: Sequence[str],
        now_ms: Optional[float] = None,
    ) -> Optional[List[int]]:
        """
        Pitch classes of the active chord, for highlighting.

        Returns:
            None when stopped or when the chord index has no token
        """
        if self.status is TransportStatus.STOPPED:
            return None
        index = self.position(now_ms).chord_index
        if index >= len(chord_tokens):
            return None
        return resolve_pitch_classes(chord_tokens[index])
