"""Error taxonomy for sightline.

Provider errors are non-fatal: they are logged and recorded where they
occur and never cross a session boundary. Invalid input is rejected
synchronously before any state is touched.
"""

from __future__ import annotations


class ProviderError(Exception):
    """Base class for failures raised by a capture or inference provider."""

    def __init__(self, message: str, provider: str = "") -> None:
        super().__init__(message)
        self.provider = provider


class ProviderUnavailableError(ProviderError):
    """The provider backend is temporarily unavailable.

    Retried naturally on the next sampling tick or the next user action.
    """


class SourceNotFoundError(ProviderError):
    """The requested visual source no longer exists."""

    def __init__(self, source_id: int, provider: str = "") -> None:
        super().__init__(f"Source {source_id} not found", provider=provider)
        self.source_id = source_id


class CaptureError(ProviderUnavailableError):
    """Raised when frame capture or source enumeration fails."""


class InferenceError(ProviderUnavailableError):
    """Raised when the inference backend fails to produce a reply."""

    def __init__(self, message: str, provider: str = "", raw_response: str = "") -> None:
        super().__init__(message, provider=provider)
        self.raw_response = raw_response


class InvalidInputError(ValueError):
    """Raised when a command is rejected before any state mutation."""


class SessionNotFoundError(InvalidInputError):
    """Raised when a command targets a session that is not active."""

    def __init__(self, session_id: object) -> None:
        super().__init__(f"Session {session_id} is not active")
        self.session_id = session_id
