"""Automatic loop capture - listen to the backing track and calibrate.

AutoSyncSession wires the streaming pipeline together:

    AudioFrame -> OnsetDetector -> ChordStateTracker -> StateEvent log
                                                    -> AutoSyncEstimator

It also owns the audio source for the length of the session. The source is
released on stop, on failure and when the session is used as a context
manager and the block exits.
"""

import warnings
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Sequence

from ..core import AudioFrame, CalibratedLoopModel, StateEvent
from ..analysis.onset import OnsetConfig, OnsetDetector
from ..inference.tracker import ChordStateTracker, TrackerConfig
from ..inference.estimator import AutoSyncEstimator, EstimatorConfig


class AudioAcquisitionError(RuntimeError):
    """The audio source could not be opened (permission, device, file)."""


class AudioSource(ABC):
    """Abstract producer of AudioFrames (microphone, file, test harness)."""

    @abstractmethod
    def open(self) -> None:
        """Acquire the underlying device or file."""
        pass

    @abstractmethod
    def read_frame(self) -> Optional[AudioFrame]:
        """Next frame, or None when the source is exhausted."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Release the underlying device or file. Must be idempotent."""
        pass


@dataclass
class SyncDiagnostics:
    """Evidence collected so far versus what the estimator needs."""

    state_events: int
    required_state_events: int
    listened_ms: float
    required_listen_ms: float
    onset_count: int

    @property
    def ready(self) -> bool:
        return (
            self.state_events >= self.required_state_events
            and self.listened_ms >= self.required_listen_ms
        )

    @property
    def message(self) -> str:
        """Human-readable comparison of actual and required evidence."""
        if self.ready:
            return "Enough evidence collected."
        parts = []
        if self.state_events < self.required_state_events:
            parts.append(
                f"heard {self.state_events} chord changes, need {self.required_state_events}"
            )
        if self.listened_ms < self.required_listen_ms:
            parts.append(
                f"listened {self.listened_ms / 1000:.1f}s, need {self.required_listen_ms / 1000:.1f}s"
            )
        return "Keep playing: " + "; ".join(parts) + "."


class AutoSyncSession:
    """One auto-sync capture over a single progression."""

    def __init__(
        self,
        chord_pitch_classes: Sequence[Sequence[int]],
        source: Optional[AudioSource] = None,
        guide_loop_duration_ms: Optional[float] = None,
        onset_config: Optional[OnsetConfig] = None,
        tracker_config: Optional[TrackerConfig] = None,
        estimator_config: Optional[EstimatorConfig] = None,
    ):
        """
        Initialize AutoSyncSession.

        Args:
            chord_pitch_classes: Pitch classes of each chord, in progression order
            source: Audio source to pull frames from (optional when frames are pushed via step)
            guide_loop_duration_ms: Loop length from rhythmic taps, if known
            onset_config: Optional OnsetConfig
            tracker_config: Optional TrackerConfig
            estimator_config: Optional EstimatorConfig
        """
        self.chord_count = len(chord_pitch_classes)
        self.source = source
        self.guide_loop_duration_ms = guide_loop_duration_ms
        self.onsets = OnsetDetector(onset_config)
        self.tracker = ChordStateTracker(
            chord_pitch_classes, tracker_config, guide_loop_duration_ms
        )
        self.estimator = AutoSyncEstimator(estimator_config)
        self.is_open = False
        self.model: Optional[CalibratedLoopModel] = None

    @property
    def events(self) -> List[StateEvent]:
        return self.tracker.events

    @property
    def guided(self) -> bool:
        return self.guide_loop_duration_ms is not None and self.guide_loop_duration_ms > 0

    def start(self) -> None:
        """
        Acquire the audio source.

        Raises:
            AudioAcquisitionError: If the source cannot be opened; the source
                is released before the error propagates
        """
        if self.source is None or self.is_open:
            return
        try:
            self.source.open()
        except Exception as e:
            try:
                self.source.close()
            except Exception as close_error:
                warnings.warn(f"Failed to release audio source: {close_error}")
            raise AudioAcquisitionError(f"Failed to open audio source: {e}") from e
        self.is_open = True

    def stop(self) -> None:
        """Release the audio source."""
        if self.source is not None:
            self.source.close()
        self.is_open = False

    def __enter__(self) -> "AutoSyncSession":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    def step(self, frame: AudioFrame) -> Optional[StateEvent]:
        """Feed one frame through onset detection and chord tracking."""
        onset = self.onsets.step(frame)
        return self.tracker.step(frame.chroma, frame.timestamp_ms, onset=onset)

    def estimate(self) -> Optional[CalibratedLoopModel]:
        """Current loop estimate, or None while evidence is insufficient."""
        self.model = self.estimator.estimate(
            self.tracker.events,
            self.chord_count,
            self.tracker.elapsed_ms,
            self.guide_loop_duration_ms,
        )
        return self.model

    def diagnostics(self) -> SyncDiagnostics:
        return SyncDiagnostics(
            state_events=len(self.tracker.events),
            required_state_events=self.estimator.minimum_state_events(
                self.chord_count, self.guided
            ),
            listened_ms=self.tracker.elapsed_ms,
            required_listen_ms=self.estimator.minimum_listen_ms(self.chord_count, self.guided),
            onset_count=self.onsets.onset_count,
        )

    def run(self, max_frames: Optional[int] = None, stop_when_ready: bool = True) -> Optional[CalibratedLoopModel]:
        """
        Pull frames from the source until a model is estimated.

        The source is released on every exit path.

        Args:
            max_frames: Stop after this many frames (None = until exhausted)
            stop_when_ready: Return as soon as a model can be estimated;
                otherwise keep listening and estimate from everything heard

        Returns:
            CalibratedLoopModel, or None if the source ran out first
        """
        if self.source is None:
            raise ValueError("AutoSyncSession.run() needs an audio source")

        self.start()
        try:
            count = 0
            while max_frames is None or count < max_frames:
                frame = self.source.read_frame()
                if frame is None:
                    break
                count += 1
                event = self.step(frame)
                if event is not None and stop_when_ready and self.estimate() is not None:
                    return self.model
            return self.estimate()
        finally:
            self.stop()
