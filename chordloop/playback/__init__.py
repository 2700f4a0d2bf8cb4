"""Playback layer - Transport over a calibrated loop."""

from .transport import PlaybackTransport, PlaybackState, TransportStatus

__all__ = [
    "PlaybackTransport",
    "PlaybackState",
    "TransportStatus",
]
