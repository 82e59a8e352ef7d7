"""Domain models for sightline.

This package contains the core data structures, enumerations, value
objects and error types used throughout the system. All models use
Pydantic v2 for validation and serialization.
"""

from sightline.domain.errors import (
    CaptureError,
    InferenceError,
    InvalidInputError,
    ProviderError,
    ProviderUnavailableError,
    SessionNotFoundError,
    SourceNotFoundError,
)
from sightline.domain.models import (
    AnalysisLog,
    CapturedImage,
    ChatMessage,
    MessageRole,
    OrchestratorSnapshot,
    ProviderFailure,
    SessionSnapshot,
    WindowSource,
)

__all__ = [
    "AnalysisLog",
    "CaptureError",
    "CapturedImage",
    "ChatMessage",
    "InferenceError",
    "InvalidInputError",
    "MessageRole",
    "OrchestratorSnapshot",
    "ProviderError",
    "ProviderFailure",
    "ProviderUnavailableError",
    "SessionNotFoundError",
    "SessionSnapshot",
    "SourceNotFoundError",
    "WindowSource",
]
