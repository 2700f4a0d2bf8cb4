"""Frame building - raw audio to AudioFrames.

The synchronization engine only consumes AudioFrames. These sources play the
role of the host's acquisition layer for recorded audio: they slice a signal
into hops, window and transform each slice, and derive RMS, spectral flux
and chroma the same way a live analyser would.
"""

from pathlib import Path
from typing import Optional, Union
import numpy as np
import librosa

from ..core import AudioFrame
from ..core.constants import DEFAULT_SR, DEFAULT_N_FFT, DEFAULT_HOP_MS
from ..analysis.chroma import ChromaExtractor
from ..analysis.onset import spectral_flux
from ..capture.auto import AudioSource


class FrameBuilder:
    """Turn successive analysis windows into AudioFrames."""

    def __init__(
        self,
        sample_rate: int = DEFAULT_SR,
        n_fft: int = DEFAULT_N_FFT,
        chroma: Optional[ChromaExtractor] = None,
    ):
        """
        Initialize FrameBuilder.

        Args:
            sample_rate: Sample rate of the incoming samples
            n_fft: FFT window size
            chroma: ChromaExtractor to use (default: standard band)
        """
        self.sample_rate = sample_rate
        self.n_fft = n_fft
        self.chroma = chroma or ChromaExtractor()
        self.window = np.hanning(n_fft)
        self._prev_magnitude: Optional[np.ndarray] = None

    def reset(self) -> None:
        self._prev_magnitude = None

    def build(self, timestamp_ms: float, samples: np.ndarray) -> AudioFrame:
        """
        Build the frame for the window ending at timestamp_ms.

        Args:
            timestamp_ms: Time of the window end in milliseconds
            samples: Most recent samples (zero-padded on the left if short)

        Returns:
            AudioFrame with rms, spectral flux and chroma
        """
        samples = np.asarray(samples, dtype=float)[-self.n_fft:]
        if len(samples) < self.n_fft:
            samples = np.pad(samples, (self.n_fft - len(samples), 0))

        rms = float(np.sqrt(np.mean(samples ** 2)))

        # Drop the Nyquist bin so bin i sits at i * sr / n_fft
        spectrum = np.fft.rfft(samples * self.window)[: self.n_fft // 2]
        magnitude = np.abs(spectrum) * 2.0 / self.window.sum()
        db = librosa.amplitude_to_db(magnitude, ref=1.0)

        flux = spectral_flux(self._prev_magnitude, magnitude)
        self._prev_magnitude = magnitude

        return AudioFrame(
            timestamp_ms=float(timestamp_ms),
            rms=rms,
            spectral_flux=flux,
            chroma=self.chroma.extract(db, self.sample_rate),
        )


class ArrayAudioSource(AudioSource):
    """AudioSource over an in-memory mono signal."""

    def __init__(
        self,
        audio: Optional[np.ndarray],
        sample_rate: int = DEFAULT_SR,
        hop_ms: float = DEFAULT_HOP_MS,
        n_fft: int = DEFAULT_N_FFT,
    ):
        self.audio = audio
        self.sample_rate = sample_rate
        self.hop_ms = hop_ms
        self.n_fft = n_fft
        self.builder = FrameBuilder(sample_rate=sample_rate, n_fft=n_fft)
        self._hop = max(1, int(round(sample_rate * hop_ms / 1000.0)))
        self._end = 0
        self.is_open = False

    def open(self) -> None:
        if self.audio is None:
            raise ValueError("No audio to read")
        self.builder.reset()
        self._end = 0
        self.is_open = True

    def read_frame(self) -> Optional[AudioFrame]:
        if not self.is_open:
            return None
        end = self._end + self._hop
        if end > len(self.audio):
            return None
        self._end = end
        start = max(0, end - self.n_fft)
        timestamp_ms = end * 1000.0 / self.sample_rate
        return self.builder.build(timestamp_ms, self.audio[start:end])

    def close(self) -> None:
        self.is_open = False

    def get_duration(self) -> float:
        """Duration of the signal in seconds."""
        if self.audio is None:
            return 0.0
        return len(self.audio) / self.sample_rate


class FileAudioSource(ArrayAudioSource):
    """AudioSource that reads a recorded backing track from disk."""

    SUPPORTED_FORMATS = {".wav", ".mp3", ".flac", ".ogg", ".m4a", ".mp4"}

    def __init__(
        self,
        path: Union[str, Path],
        sample_rate: int = DEFAULT_SR,
        hop_ms: float = DEFAULT_HOP_MS,
        n_fft: int = DEFAULT_N_FFT,
    ):
        super().__init__(None, sample_rate=sample_rate, hop_ms=hop_ms, n_fft=n_fft)
        self.path = Path(path)

    def open(self) -> None:
        """
        Load the file.

        Raises:
            FileNotFoundError: If the file doesn't exist
            ValueError: If the format is not supported
        """
        if not self.path.exists():
            raise FileNotFoundError(f"Audio file not found: {self.path}")
        if self.path.suffix.lower() not in self.SUPPORTED_FORMATS:
            raise ValueError(
                f"Unsupported format: {self.path.suffix}. "
                f"Supported: {self.SUPPORTED_FORMATS}"
            )

        self.audio, _ = librosa.load(str(self.path), sr=self.sample_rate, mono=True)
        super().open()

    def close(self) -> None:
        super().close()
        self.audio = None
