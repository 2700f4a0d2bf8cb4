"""Streaming onset detection from per-frame energy and spectral flux."""

from dataclasses import dataclass
from typing import List, Optional
import numpy as np

from ..core import AudioFrame


@dataclass
class OnsetConfig:
    """Configuration for onset detection.

    Attributes:
        rms_smoothing: Weight of the previous RMS baseline (default: 0.985)
        flux_smoothing: Weight of the previous flux baseline (default: 0.96)
        min_rms: Absolute RMS floor for an energy onset (default: 0.004)
        rms_ratio: RMS must exceed this multiple of the baseline (default: 1.85)
        min_attack: Absolute floor for the RMS rise (default: 0.0012)
        attack_ratio: RMS rise must exceed this multiple of the baseline (default: 0.18)
        min_flux: Absolute spectral-flux floor (default: 0.02)
        flux_ratio: Flux must exceed this multiple of its baseline (default: 2.2)
        refractory_ms: Minimum gap between two onsets (default: 180)
        level_decay: Per-frame decay of the input level meter (default: 0.92)
        level_gain: Scale from RMS to the [0, 1] input level (default: 8.0)
    """

    rms_smoothing: float = 0.985
    flux_smoothing: float = 0.96
    min_rms: float = 0.004
    rms_ratio: float = 1.85
    min_attack: float = 0.0012
    attack_ratio: float = 0.18
    min_flux: float = 0.02
    flux_ratio: float = 2.2
    refractory_ms: float = 180.0
    level_decay: float = 0.92
    level_gain: float = 8.0


def spectral_flux(
    prev_magnitude: Optional[np.ndarray],
    magnitude: np.ndarray,
    skip_bins: int = 2,
) -> float:
    """
    Positive spectral flux between two magnitude spectra.

    Args:
        prev_magnitude: Previous frame's linear magnitude spectrum (None on the first frame)
        magnitude: Current frame's linear magnitude spectrum
        skip_bins: Number of lowest bins to ignore (DC and rumble)

    Returns:
        Sum of the positive bin-wise magnitude increases
    """
    if prev_magnitude is None or len(prev_magnitude) != len(magnitude):
        return 0.0
    diff = np.asarray(magnitude[skip_bins:], dtype=float) - np.asarray(
        prev_magnitude[skip_bins:], dtype=float
    )
    diff = np.nan_to_num(diff, nan=0.0, posinf=0.0, neginf=0.0)
    return float(np.sum(np.maximum(diff, 0.0)))


class OnsetDetector:
    """Flags note attacks in a stream of audio frames.

    Keeps exponentially smoothed RMS and flux baselines. A frame is an onset
    when either its energy jumps above the RMS baseline with a sharp attack,
    or its spectral flux jumps above the flux baseline. Onsets closer than
    the refractory gap are suppressed.
    """

    def __init__(self, config: Optional[OnsetConfig] = None):
        self.config = config or OnsetConfig()
        self.reset()

    def reset(self) -> None:
        """Forget all history."""
        self.rms_baseline = 0.0
        self.flux_baseline = 0.0
        self.prev_rms = 0.0
        self.input_level = 0.0
        self.last_onset_ms: Optional[float] = None
        self.onset_times_ms: List[float] = []

    @property
    def onset_count(self) -> int:
        return len(self.onset_times_ms)

    def step(self, frame: AudioFrame) -> bool:
        """
        Analyze one frame.

        Returns:
            True if an onset fires on this frame
        """
        cfg = self.config
        rms = max(0.0, float(frame.rms))
        flux = max(0.0, float(frame.spectral_flux))
        baseline = self.rms_baseline
        attack = rms - self.prev_rms

        energy_onset = (
            rms > max(cfg.min_rms, cfg.rms_ratio * baseline)
            and attack > max(cfg.min_attack, cfg.attack_ratio * baseline)
        )
        flux_onset = flux > max(cfg.min_flux, cfg.flux_ratio * self.flux_baseline)

        self.rms_baseline = cfg.rms_smoothing * baseline + (1.0 - cfg.rms_smoothing) * rms
        self.flux_baseline = (
            cfg.flux_smoothing * self.flux_baseline + (1.0 - cfg.flux_smoothing) * flux
        )
        self.prev_rms = rms
        self.input_level = min(1.0, max(rms * cfg.level_gain, self.input_level * cfg.level_decay))

        if not (energy_onset or flux_onset):
            return False

        if (
            self.last_onset_ms is not None
            and frame.timestamp_ms - self.last_onset_ms < cfg.refractory_ms
        ):
            return False

        self.last_onset_ms = frame.timestamp_ms
        self.onset_times_ms.append(frame.timestamp_ms)
        return True
