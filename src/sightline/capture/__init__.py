"""Capture providers for sightline.

Enumerates visual sources and captures still images from them. The
abstract base class allows alternative implementations (monitor capture,
webcam capture, simulated sources for testing).

Public API:
    CaptureProvider -- Abstract base class
    SimulatedCaptureProvider -- Generated frames for fake windows
    MonitorCaptureProvider -- mss display capture
    WebcamCaptureProvider -- OpenCV webcam capture
"""

from sightline.capture.base import CaptureError, CaptureProvider, SourceNotFoundError
from sightline.capture.simulated import SimulatedCaptureProvider

__all__ = [
    "CaptureProvider",
    "CaptureError",
    "SourceNotFoundError",
    "SimulatedCaptureProvider",
    "MonitorCaptureProvider",
    "WebcamCaptureProvider",
]


def __getattr__(name: str) -> type:
    """Lazy import for concrete implementations that require external deps."""
    if name == "MonitorCaptureProvider":
        from sightline.capture.monitor import MonitorCaptureProvider
        return MonitorCaptureProvider
    if name == "WebcamCaptureProvider":
        from sightline.capture.webcam import WebcamCaptureProvider
        return WebcamCaptureProvider
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
