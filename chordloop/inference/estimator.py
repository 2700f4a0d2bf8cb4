"""Loop estimation - calibrated loop models from detected events.

Two estimators:
- AutoSyncEstimator: from committed chord-state events (tracker output)
- detect_loop_sync_from_onsets: from raw onset times only, when nothing is
  known about which chord is sounding
"""

from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence
import numpy as np

from ..core import (
    CalibratedLoopModel,
    StateEvent,
    normalize_loop_duration_ms,
    normalize_offset_ms,
)
from ..core.constants import LOOP_MIN_DURATION_MS
from ..core.geometry import uniform_offsets_ms


@dataclass
class EstimatorConfig:
    """Configuration for event-based loop estimation.

    Attributes:
        events_per_chord: Required events per chord without a guide (default: 2.0)
        min_events: Absolute floor on required events (default: 4)
        listen_ms_per_chord: Required listening time per chord without a guide (default: 1500)
        min_listen_ms: Absolute floor on required listening time (default: 6000)
        guide_relief: Divisor applied to both requirements when a guide is known (default: 2.0)
        min_guided_events: Absolute floor on required events when a guide is known (default: 3)
        min_delta_ms: Shortest plausible gap between two events (default: 280)
        max_delta_ms: Longest plausible gap between two events (default: 18000)
    """

    events_per_chord: float = 2.0
    min_events: int = 4
    listen_ms_per_chord: float = 1500.0
    min_listen_ms: float = 6000.0
    guide_relief: float = 2.0
    min_guided_events: int = 3
    min_delta_ms: float = 280.0
    max_delta_ms: float = 18000.0


class AutoSyncEstimator:
    """Turn a chord-state event log into a CalibratedLoopModel.

    Each pair of consecutive events yields a duration for every chord step
    between them; skipped detections spread their gap evenly over the
    skipped chords. Per-chord medians make the result robust to the odd
    late or early commit.
    """

    def __init__(self, config: Optional[EstimatorConfig] = None):
        self.config = config or EstimatorConfig()

    def minimum_state_events(self, chord_count: int, guided: bool = False) -> int:
        """Events needed before an estimate is attempted."""
        cfg = self.config
        required = max(cfg.min_events, int(np.ceil(cfg.events_per_chord * chord_count)))
        if guided:
            required = max(cfg.min_guided_events, int(np.ceil(required / cfg.guide_relief)))
        return required

    def minimum_listen_ms(self, chord_count: int, guided: bool = False) -> float:
        """Listening time needed before an estimate is attempted."""
        cfg = self.config
        required = max(cfg.min_listen_ms, cfg.listen_ms_per_chord * chord_count)
        if guided:
            required /= cfg.guide_relief
        return float(required)

    def step_durations(
        self,
        events: Sequence[StateEvent],
        chord_count: int,
    ) -> Dict[int, List[float]]:
        """
        Per-chord duration samples from consecutive event pairs.

        Returns:
            Mapping of chord index to the durations observed for it
        """
        cfg = self.config
        buckets: Dict[int, List[float]] = defaultdict(list)
        for prev, curr in zip(events, events[1:]):
            delta = curr.time_ms - prev.time_ms
            if delta < cfg.min_delta_ms or delta > cfg.max_delta_ms:
                continue
            steps = (curr.state_index - prev.state_index) % chord_count
            if steps == 0:
                steps = chord_count
            per_step = delta / steps
            for k in range(steps):
                buckets[(prev.state_index + k) % chord_count].append(per_step)
        return buckets

    def estimate(
        self,
        events: Sequence[StateEvent],
        chord_count: int,
        listened_ms: float,
        guide_loop_duration_ms: Optional[float] = None,
    ) -> Optional[CalibratedLoopModel]:
        """
        Estimate the loop model.

        Args:
            events: Committed state events, in time order
            chord_count: Number of chords in the progression
            listened_ms: How long the session has been listening
            guide_loop_duration_ms: Loop length from rhythmic taps, if known

        Returns:
            CalibratedLoopModel, or None while the evidence is insufficient
        """
        if chord_count <= 0:
            return None

        guided = guide_loop_duration_ms is not None and guide_loop_duration_ms > 0
        if len(events) < self.minimum_state_events(chord_count, guided):
            return None
        if listened_ms < self.minimum_listen_ms(chord_count, guided):
            return None

        buckets = self.step_durations(events, chord_count)
        all_samples = [d for samples in buckets.values() for d in samples]
        if not all_samples:
            return None

        global_median = float(np.median(all_samples))
        durations = np.array([
            float(np.median(buckets[i])) if buckets.get(i) else global_median
            for i in range(chord_count)
        ])

        if guided:
            durations *= guide_loop_duration_ms / durations.sum()
            loop_duration_ms = normalize_loop_duration_ms(guide_loop_duration_ms)
        else:
            loop_duration_ms = normalize_loop_duration_ms(durations.sum())

        starts = np.concatenate([[0.0], np.cumsum(durations)[:-1]])
        offsets = sorted({normalize_offset_ms(s, loop_duration_ms) for s in starts})
        if len(offsets) != chord_count:
            offsets = uniform_offsets_ms(chord_count, loop_duration_ms)

        return CalibratedLoopModel(
            chord_count=chord_count,
            loop_duration_ms=loop_duration_ms,
            started_with_first_chord=True,
            chord_offsets_ms=tuple(offsets),
        )


@dataclass
class OnsetSyncResult:
    """Loop timing inferred from onsets alone."""

    loop_duration_ms: float
    chord_offsets_ms: List[float]
    onset_count: int

    def to_model(self, started_with_first_chord: bool = True) -> CalibratedLoopModel:
        return CalibratedLoopModel(
            chord_count=len(self.chord_offsets_ms),
            loop_duration_ms=self.loop_duration_ms,
            started_with_first_chord=started_with_first_chord,
            chord_offsets_ms=tuple(self.chord_offsets_ms),
        )


def dedupe_onsets(onset_times_ms: Sequence[float], min_separation_ms: float = 140.0) -> List[float]:
    """Sort onsets and drop any closer than min_separation_ms to the previous kept one."""
    deduped: List[float] = []
    for t in sorted(t for t in onset_times_ms if np.isfinite(t)):
        if not deduped or abs(t - deduped[-1]) >= min_separation_ms:
            deduped.append(float(t))
    return deduped


def _merge_phase_clusters(
    phases_ms: List[float],
    loop_duration_ms: float,
    tolerance_ms: float,
) -> List[float]:
    """Group loop phases into clusters and return their median centers."""
    if not phases_ms:
        return []

    values = sorted(phases_ms)
    clusters: List[List[float]] = [[values[0]]]
    for value in values[1:]:
        if abs(value - float(np.median(clusters[-1]))) <= tolerance_ms:
            clusters[-1].append(value)
        else:
            clusters.append([value])

    # The last cluster may continue across the loop boundary into the first
    if len(clusters) > 1:
        first_center = float(np.median(clusters[0]))
        last_center = float(np.median(clusters[-1]))
        if loop_duration_ms - last_center + first_center <= tolerance_ms:
            wrapped = [v - loop_duration_ms for v in clusters.pop()]
            clusters[0] = wrapped + clusters[0]

    return sorted(normalize_offset_ms(float(np.median(c)), loop_duration_ms) for c in clusters)


def _compress_centers(centers_ms: List[float], loop_duration_ms: float, chord_count: int) -> List[float]:
    """Merge the closest neighbouring centers until chord_count remain."""
    working = sorted(centers_ms)
    while len(working) > chord_count:
        gaps = np.diff(working)
        i = int(np.argmin(gaps))
        merged = normalize_offset_ms((working[i] + working[i + 1]) * 0.5, loop_duration_ms)
        working[i:i + 2] = [merged]
        working.sort()
    return working


def detect_loop_sync_from_onsets(
    onset_times_ms: Sequence[float],
    chord_count: int,
    started_with_first_chord: bool = True,
) -> Optional[OnsetSyncResult]:
    """
    Infer loop length and chord offsets from onset times.

    Assumes one onset per chord change. The loop length is the median span
    of chord_count consecutive onsets; chord offsets are the clustered loop
    phases of all onsets.

    Args:
        onset_times_ms: Detected onset times in milliseconds
        chord_count: Number of chords in the progression
        started_with_first_chord: Shift offsets so chord 1 starts at 0

    Returns:
        OnsetSyncResult, or None if there are too few usable onsets
    """
    if chord_count <= 0:
        return None

    onsets = dedupe_onsets(onset_times_ms)
    if len(onsets) < max(chord_count + 1, 4):
        return None

    spans = [
        onsets[i + chord_count] - onsets[i]
        for i in range(len(onsets) - chord_count)
        if onsets[i + chord_count] - onsets[i] >= LOOP_MIN_DURATION_MS
    ]
    if not spans:
        return None

    loop_duration_ms = normalize_loop_duration_ms(float(np.median(spans)))
    phases = [normalize_offset_ms(t - onsets[0], loop_duration_ms) for t in onsets]
    tolerance_ms = max(90.0, round(loop_duration_ms / (chord_count * 7)))

    centers = _merge_phase_clusters(phases, loop_duration_ms, tolerance_ms)
    centers = _compress_centers(centers, loop_duration_ms, chord_count)
    if len(centers) < chord_count:
        centers = uniform_offsets_ms(chord_count, loop_duration_ms)

    offsets = sorted(centers)
    if started_with_first_chord:
        shift = offsets[0]
        offsets = sorted(normalize_offset_ms(o - shift, loop_duration_ms) for o in offsets)
        offsets[0] = 0.0

    offsets = sorted(normalize_offset_ms(o, loop_duration_ms) for o in offsets[:chord_count])
    if len(offsets) < chord_count:
        return None

    return OnsetSyncResult(
        loop_duration_ms=loop_duration_ms,
        chord_offsets_ms=offsets,
        onset_count=len(onsets),
    )
