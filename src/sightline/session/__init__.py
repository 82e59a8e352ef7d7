"""Capture sessions and their orchestration.

Public API:
    SessionOrchestrator -- Registry of sessions and their sampling loops
    CaptureSession -- One source paired with its analyzer
    SessionAnalyzer -- Serialized finding log and chat thread
"""

from sightline.session.analyzer import SessionAnalyzer
from sightline.session.orchestrator import SessionOrchestrator
from sightline.session.session import CaptureSession

__all__ = ["CaptureSession", "SessionAnalyzer", "SessionOrchestrator"]
