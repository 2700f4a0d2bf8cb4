"""Chord state tracking - which chord of a known progression is sounding.

The tracker never recognizes chords on its own. It knows the progression's
pitch-class sets and keeps a posterior over "which of these chords is
playing now", updated frame by frame from chroma vectors:

- Emission: how much chroma energy falls on each chord's pitch classes
- Continuity prior: a chord mostly stays, sometimes steps forward by one,
  rarely by two
- Voting: the per-frame winner must hold a majority of recent frames
- Gating: confidence, dwell time and onset evidence must all agree before a
  state change is committed
"""

from collections import deque
from dataclasses import dataclass
from typing import Deque, List, Optional, Sequence
import numpy as np

from ..core import StateEvent


@dataclass
class TrackerConfig:
    """Configuration for chord state tracking.

    Attributes:
        inside_weight: Weight of chroma energy on chord tones (default: 1.25)
        outside_weight: Penalty for chroma energy off chord tones (default: 0.25)
        min_emission: Emission floor so no state ever becomes impossible (default: 0.001)
        stay_weight: Continuity weight for staying on a chord (default: 0.89)
        step_weight: Continuity weight for moving one chord forward (default: 0.10)
        skip_weight: Continuity weight for moving two chords forward (default: 0.01)
        vote_window: Number of recent per-frame winners kept (default: 8)
        min_votes: Votes needed for a stable candidate (default: 5)
        min_confidence: Best/second posterior ratio needed to commit (default: 1.06)
        strong_confidence: Ratio that commits without onset evidence (default: 1.45)
        scarce_strong_confidence: Same, when onsets are scarce (default: 1.95)
        onset_window_ms: An onset this recent supports a change (default: 260)
        guided_dwell_fraction: Dwell as a fraction of one chord's guided length (default: 0.55)
        min_guided_dwell_ms: Floor for the guided dwell time (default: 260)
        dwell_ms: Dwell time without a guide (default: 320)
        scarce_dwell_ms: Dwell time without a guide when onsets are scarce (default: 620)
        scarce_after_ms: Listening time before onset scarcity is judged (default: 4000)
        scarce_onset_count: Fewer onsets than this counts as scarce (default: 2)
    """

    inside_weight: float = 1.25
    outside_weight: float = 0.25
    min_emission: float = 0.001
    stay_weight: float = 0.89
    step_weight: float = 0.10
    skip_weight: float = 0.01
    vote_window: int = 8
    min_votes: int = 5
    min_confidence: float = 1.06
    strong_confidence: float = 1.45
    scarce_strong_confidence: float = 1.95
    onset_window_ms: float = 260.0
    guided_dwell_fraction: float = 0.55
    min_guided_dwell_ms: float = 260.0
    dwell_ms: float = 320.0
    scarce_dwell_ms: float = 620.0
    scarce_after_ms: float = 4000.0
    scarce_onset_count: int = 2


class ChordStateTracker:
    """Track the sounding chord of a known progression from chroma frames."""

    # Guards the confidence ratio when only one state has any mass
    EPSILON = 1e-9

    def __init__(
        self,
        chord_pitch_classes: Sequence[Sequence[int]],
        config: Optional[TrackerConfig] = None,
        guide_loop_duration_ms: Optional[float] = None,
    ):
        """
        Initialize ChordStateTracker.

        Args:
            chord_pitch_classes: Pitch classes of each chord, in progression order
            config: Optional TrackerConfig for tuning
            guide_loop_duration_ms: Loop length from rhythmic taps, if known
        """
        if len(chord_pitch_classes) == 0:
            raise ValueError("ChordStateTracker needs at least one chord")

        self.config = config or TrackerConfig()
        self.chord_count = len(chord_pitch_classes)
        self.guide_loop_duration_ms = guide_loop_duration_ms

        # Chord-tone masks [chord_count, 12]
        self.masks = np.zeros((self.chord_count, 12), dtype=bool)
        for i, pcs in enumerate(chord_pitch_classes):
            for pc in pcs:
                self.masks[i, int(pc) % 12] = True

        self.reset()

    def reset(self) -> None:
        """Forget all history."""
        self.posterior: Optional[np.ndarray] = None
        self.confidence = 0.0
        self.best_state: Optional[int] = None
        self.committed_state: Optional[int] = None
        self.last_commit_ms: Optional[float] = None
        self.events: List[StateEvent] = []
        self.votes: Deque[int] = deque(maxlen=self.config.vote_window)
        self.start_ms: Optional[float] = None
        self.last_frame_ms: Optional[float] = None
        self.onset_count = 0
        self.last_onset_ms: Optional[float] = None

    @property
    def elapsed_ms(self) -> float:
        """Listening time covered by the frames seen so far."""
        if self.start_ms is None or self.last_frame_ms is None:
            return 0.0
        return self.last_frame_ms - self.start_ms

    @property
    def onsets_scarce(self) -> bool:
        """True once enough time has passed with almost no onsets."""
        cfg = self.config
        return self.elapsed_ms >= cfg.scarce_after_ms and self.onset_count < cfg.scarce_onset_count

    @property
    def dwell_ms(self) -> float:
        """Minimum time between two committed state changes."""
        cfg = self.config
        if self.guide_loop_duration_ms and self.guide_loop_duration_ms > 0:
            per_chord = self.guide_loop_duration_ms / self.chord_count
            return max(cfg.min_guided_dwell_ms, per_chord * cfg.guided_dwell_fraction)
        return cfg.scarce_dwell_ms if self.onsets_scarce else cfg.dwell_ms

    def emissions(self, chroma: np.ndarray) -> np.ndarray:
        """Emission score of every chord state for one chroma vector."""
        cfg = self.config
        chroma = np.nan_to_num(np.asarray(chroma, dtype=float), nan=0.0)
        chroma = np.maximum(chroma, 0.0)
        inside = self.masks @ chroma
        outside = chroma.sum() - inside
        scores = cfg.inside_weight * inside - cfg.outside_weight * outside
        return np.maximum(cfg.min_emission, scores)

    def _update_posterior(self, emission: np.ndarray) -> np.ndarray:
        cfg = self.config
        if self.posterior is None:
            prior = np.ones(self.chord_count)
        else:
            p = self.posterior
            prior = np.maximum.reduce([
                cfg.stay_weight * p,
                cfg.step_weight * np.roll(p, 1),  # p[i-1]
                cfg.skip_weight * np.roll(p, 2),  # p[i-2]
            ])
        posterior = prior * emission
        total = posterior.sum()
        if total <= 0 or not np.isfinite(total):
            return np.full(self.chord_count, 1.0 / self.chord_count)
        return posterior / total

    def _stable_candidate(self) -> Optional[int]:
        counts = np.bincount(np.asarray(self.votes, dtype=int), minlength=self.chord_count)
        best = int(np.argmax(counts))
        return best if counts[best] >= self.config.min_votes else None

    def _is_forward_step(self, candidate: int) -> bool:
        if self.committed_state is None:
            return True
        step = (candidate - self.committed_state) % self.chord_count
        return step in (1, 2)

    def step(
        self,
        chroma: np.ndarray,
        time_ms: float,
        onset: bool = False,
    ) -> Optional[StateEvent]:
        """
        Advance the tracker by one frame.

        Args:
            chroma: Chroma vector [12] for this frame
            time_ms: Frame timestamp in milliseconds
            onset: Whether an onset fired on this frame

        Returns:
            The committed StateEvent, or None if the state did not change
        """
        cfg = self.config
        if self.start_ms is None:
            self.start_ms = time_ms
        self.last_frame_ms = time_ms
        if onset:
            self.onset_count += 1
            self.last_onset_ms = time_ms

        self.posterior = self._update_posterior(self.emissions(chroma))

        order = np.argsort(self.posterior)[::-1]
        best = int(order[0])
        best_p = float(self.posterior[best])
        second_p = float(self.posterior[order[1]]) if self.chord_count > 1 else 0.0
        self.best_state = best
        self.confidence = best_p / max(second_p, self.EPSILON)
        self.votes.append(best)

        candidate = self._stable_candidate()
        if candidate is None or candidate == self.committed_state:
            return None
        if self.confidence < cfg.min_confidence:
            return None
        if self.last_commit_ms is not None and time_ms - self.last_commit_ms <= self.dwell_ms:
            return None

        scarce = self.onsets_scarce
        recent_onset = (
            self.last_onset_ms is not None
            and time_ms - self.last_onset_ms <= cfg.onset_window_ms
        )
        strong_bar = cfg.scarce_strong_confidence if scarce else cfg.strong_confidence
        if not (
            recent_onset
            or (scarce and self._is_forward_step(candidate))
            or self.confidence >= strong_bar
        ):
            return None

        event = StateEvent(state_index=candidate, time_ms=time_ms, confidence=self.confidence)
        self.committed_state = candidate
        self.last_commit_ms = time_ms
        self.events.append(event)
        return event
