"""Capture layer - Manual and automatic loop calibration sessions."""

from .manual import ManualCaptureSession, LoopMeasurement, CaptureStatus
from .auto import (
    AudioSource,
    AudioAcquisitionError,
    AutoSyncSession,
    SyncDiagnostics,
)

__all__ = [
    "ManualCaptureSession",
    "LoopMeasurement",
    "CaptureStatus",
    "AudioSource",
    "AudioAcquisitionError",
    "AutoSyncSession",
    "SyncDiagnostics",
]
