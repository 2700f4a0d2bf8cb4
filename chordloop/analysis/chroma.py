"""Chroma extraction - per-frame spectrum to 12-bin pitch-class energy."""

import numpy as np
import librosa

from ..core.constants import CHROMA_FMIN, CHROMA_FMAX


class ChromaExtractor:
    """Fold a log-magnitude spectrum into a normalized chroma vector."""

    def __init__(self, fmin: float = CHROMA_FMIN, fmax: float = CHROMA_FMAX):
        """
        Initialize ChromaExtractor.

        Args:
            fmin: Lowest frequency (Hz) that contributes to the chroma
            fmax: Highest frequency (Hz) that contributes to the chroma
        """
        self.fmin = fmin
        self.fmax = fmax
        self._cache_key = None
        self._bins = None
        self._pitch_classes = None

    def _band(self, n_bins: int, sample_rate: float):
        """Bin indices inside the band and their pitch classes (cached per shape)."""
        key = (n_bins, sample_rate)
        if key != self._cache_key:
            # n_bins spans 0..Nyquist, as in an analyser's frequency bin count
            freqs = np.arange(n_bins) * sample_rate / (2.0 * n_bins)
            bins = np.nonzero((freqs >= self.fmin) & (freqs <= self.fmax))[0]
            midi = librosa.hz_to_midi(freqs[bins])
            self._bins = bins
            self._pitch_classes = np.mod(np.round(midi).astype(int), 12)
            self._cache_key = key
        return self._bins, self._pitch_classes

    def extract(self, db_spectrum: np.ndarray, sample_rate: float) -> np.ndarray:
        """
        Compute chroma for one frame.

        Args:
            db_spectrum: Magnitude spectrum in dB, bins from 0 Hz to Nyquist
            sample_rate: Sample rate of the analysed signal

        Returns:
            Chroma vector [12], L1-normalized; zeros for a silent frame
        """
        db_spectrum = np.asarray(db_spectrum, dtype=float)
        chroma = np.zeros(12)
        if db_spectrum.size == 0 or sample_rate <= 0:
            return chroma

        bins, pitch_classes = self._band(len(db_spectrum), float(sample_rate))
        if bins.size == 0:
            return chroma

        magnitude = librosa.db_to_amplitude(db_spectrum[bins])
        magnitude = np.nan_to_num(magnitude, nan=0.0, posinf=0.0, neginf=0.0)
        np.add.at(chroma, pitch_classes, magnitude)

        total = np.sum(np.maximum(chroma, 0.0))
        if total <= 0 or not np.isfinite(total):
            return np.zeros(12)
        return chroma / total
