"""Analysis layer - Low-level streaming signal analysis.

This layer turns per-frame signal features into musical evidence:
- Onset detection (energy attack and spectral flux)
- Chroma extraction (spectrum to pitch-class energy)
"""

from .onset import OnsetDetector, OnsetConfig, spectral_flux
from .chroma import ChromaExtractor

__all__ = [
    "OnsetDetector",
    "OnsetConfig",
    "spectral_flux",
    "ChromaExtractor",
]
