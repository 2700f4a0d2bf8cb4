"""Inference layer - Chords, chord states and loop timing.

Pipeline: progression text -> pitch-class sets
          chroma + onsets -> chord-state events -> loop model
"""

from .symbols import (
    ChordSymbol,
    InvalidChordSymbol,
    parse_chord_sequence,
    parse_chord_symbol,
    resolve_pitch_classes,
    resolve_progression,
)
from .tracker import ChordStateTracker, TrackerConfig
from .estimator import (
    AutoSyncEstimator,
    EstimatorConfig,
    OnsetSyncResult,
    detect_loop_sync_from_onsets,
)

__all__ = [
    # Chord symbols
    "ChordSymbol",
    "InvalidChordSymbol",
    "parse_chord_sequence",
    "parse_chord_symbol",
    "resolve_pitch_classes",
    "resolve_progression",
    # Tracking
    "ChordStateTracker",
    "TrackerConfig",
    # Estimation
    "AutoSyncEstimator",
    "EstimatorConfig",
    "OnsetSyncResult",
    "detect_loop_sync_from_onsets",
]
