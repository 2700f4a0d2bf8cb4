"""Input layer - Audio frames from recorded or in-memory signals."""

from .frames import FrameBuilder, ArrayAudioSource, FileAudioSource

__all__ = [
    "FrameBuilder",
    "ArrayAudioSource",
    "FileAudioSource",
]
