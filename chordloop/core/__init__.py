"""Core types, constants and loop geometry for chordloop."""

from .models import (
    AudioFrame,
    CalibratedLoopModel,
    LoopPosition,
    StateEvent,
)
from .constants import (
    PITCH_NAMES,
    LOOP_MIN_DURATION_MS,
    DEFAULT_SR,
    DEFAULT_N_FFT,
)
from .geometry import (
    normalize_loop_duration_ms,
    normalize_offset_ms,
    build_chord_offsets_ms,
    get_active_chord_index,
    get_loop_position_ms,
    get_loop_progress,
)

__all__ = [
    "AudioFrame",
    "CalibratedLoopModel",
    "LoopPosition",
    "StateEvent",
    "PITCH_NAMES",
    "LOOP_MIN_DURATION_MS",
    "DEFAULT_SR",
    "DEFAULT_N_FFT",
    "normalize_loop_duration_ms",
    "normalize_offset_ms",
    "build_chord_offsets_ms",
    "get_active_chord_index",
    "get_loop_position_ms",
    "get_loop_progress",
]
