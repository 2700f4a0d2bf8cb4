"""chordloop - Chord indicator synchronization for looping backing tracks.

Architecture Layers:
    1. core/      - Loop model types and loop geometry
    2. analysis/  - Streaming signal analysis (onsets, chroma)
    3. inference/ - Chord symbols, chord-state tracking, loop estimation
    4. capture/   - Manual (tap) and automatic (listening) calibration
    5. input/     - Audio frames from recorded signals
    6. playback/  - Transport mapping wall-clock time to the active chord
    7. output/    - Persistence of calibrated loops
"""

__version__ = "0.1.0"

# Core types
from .core import CalibratedLoopModel, AudioFrame, StateEvent, LoopPosition

# Analysis layer
from .analysis import OnsetDetector, ChromaExtractor

# Inference layer
from .inference import (
    parse_chord_sequence,
    resolve_pitch_classes,
    ChordStateTracker,
    AutoSyncEstimator,
    detect_loop_sync_from_onsets,
)

# Capture layer
from .capture import ManualCaptureSession, LoopMeasurement, AutoSyncSession, AudioSource, AudioAcquisitionError

# Input layer
from .input import FileAudioSource

# Playback layer
from .playback import PlaybackTransport

# Output layer
from .output import LoopSyncStore, LoopSyncConfig, progression_sync_key

__all__ = [
    # Core
    "CalibratedLoopModel",
    "AudioFrame",
    "StateEvent",
    "LoopPosition",
    # Analysis
    "OnsetDetector",
    "ChromaExtractor",
    # Inference
    "parse_chord_sequence",
    "resolve_pitch_classes",
    "ChordStateTracker",
    "AutoSyncEstimator",
    "detect_loop_sync_from_onsets",
    # Capture
    "ManualCaptureSession",
    "LoopMeasurement",
    "AutoSyncSession",
    "AudioSource",
    "AudioAcquisitionError",
    # Input
    "FileAudioSource",
    # Playback
    "PlaybackTransport",
    # Output
    "LoopSyncStore",
    "LoopSyncConfig",
    "progression_sync_key",
]
