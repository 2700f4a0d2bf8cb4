"""Data classes shared by every layer of the synchronization engine."""

from dataclasses import dataclass, field
from typing import Any, Dict, Tuple
import numpy as np


@dataclass(frozen=True)
class CalibratedLoopModel:
    """Calibrated timing of a chord loop.

    A model is never edited in place; recalibration produces a new one.

    Attributes:
        chord_count: Number of chords in the progression
        loop_duration_ms: Length of one loop cycle in milliseconds
        started_with_first_chord: True if chord 1 starts exactly at loop start
        chord_offsets_ms: Start of each chord within the loop, ascending
    """

    chord_count: int
    loop_duration_ms: float
    started_with_first_chord: bool
    chord_offsets_ms: Tuple[float, ...]

    def __post_init__(self):
        offsets = tuple(float(o) for o in self.chord_offsets_ms)
        object.__setattr__(self, "chord_offsets_ms", offsets)

        if self.chord_count < 1:
            raise ValueError(f"chord_count must be positive, got {self.chord_count}")
        if not np.isfinite(self.loop_duration_ms) or self.loop_duration_ms <= 0:
            raise ValueError(
                f"loop_duration_ms must be a positive number, got {self.loop_duration_ms}"
            )
        if len(offsets) != self.chord_count:
            raise ValueError(
                f"Expected {self.chord_count} chord offsets, got {len(offsets)}"
            )
        if any(o < 0 or o >= self.loop_duration_ms for o in offsets):
            raise ValueError(
                f"Chord offsets must lie in [0, {self.loop_duration_ms}): {list(offsets)}"
            )
        if any(b <= a for a, b in zip(offsets, offsets[1:])):
            raise ValueError(f"Chord offsets must be distinct and ascending: {list(offsets)}")
        if self.started_with_first_chord and offsets[0] != 0:
            raise ValueError("First chord offset must be 0 when the loop starts on chord 1")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return {
            "chord_count": self.chord_count,
            "loop_duration_ms": self.loop_duration_ms,
            "started_with_first_chord": self.started_with_first_chord,
            "chord_offsets_ms": list(self.chord_offsets_ms),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CalibratedLoopModel":
        """Rebuild a model from :meth:`to_dict` output."""
        return cls(
            chord_count=int(data["chord_count"]),
            loop_duration_ms=float(data["loop_duration_ms"]),
            started_with_first_chord=bool(data["started_with_first_chord"]),
            chord_offsets_ms=tuple(data["chord_offsets_ms"]),
        )


@dataclass
class AudioFrame:
    """Features of one analysis tick, produced by the acquisition layer."""

    timestamp_ms: float
    rms: float
    spectral_flux: float
    chroma: np.ndarray = field(default_factory=lambda: np.zeros(12))

    def __post_init__(self):
        self.chroma = np.asarray(self.chroma, dtype=float)
        if self.chroma.shape != (12,):
            raise ValueError(f"chroma must have 12 bins, got shape {self.chroma.shape}")


@dataclass(frozen=True)
class StateEvent:
    """A committed chord-state transition."""

    state_index: int
    time_ms: float
    confidence: float


@dataclass(frozen=True)
class LoopPosition:
    """Live playback position polled by a renderer."""

    chord_index: int
    progress: float  # Fraction of the loop elapsed, in [0, 1)
    position_ms: float

