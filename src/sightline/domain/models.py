"""Core domain models for the sightline system.

These models represent the data flowing through the pipeline: sources
enumerated by a capture provider, images captured from them, findings
produced by the inference provider, and the conversational thread held
per session.
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime

import numpy as np
from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class MessageRole(str, enum.Enum):
    """Author of a chat message."""

    USER = "user"
    SYSTEM = "system"  # Reply produced by the inference provider


# ---------------------------------------------------------------------------
# Capture Models
# ---------------------------------------------------------------------------


class WindowSource(BaseModel):
    """A visual source that can be sampled, as enumerated by a provider.

    The id is only unique within the provider that produced it.
    """

    model_config = ConfigDict(frozen=True)

    id: int = Field(description="Provider-scoped source identifier")
    name: str = Field(description="Title of the window, monitor or device")
    owner_name: str = Field(default="", description="Owning application name")


class CapturedImage(BaseModel):
    """A single still image captured from a source.

    Contains the raw image data as a numpy array along with metadata
    about when and from where it was captured.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    image: np.ndarray = Field(description="Raw image data as BGR numpy array (OpenCV format)")
    source_id: int = Field(description="Id of the source this image was captured from")
    timestamp: datetime = Field(default_factory=datetime.now, description="When the image was captured")
    frame_number: int = Field(default=0, ge=0, description="Per-source sequential frame counter")

    @property
    def width(self) -> int:
        return int(self.image.shape[1])

    @property
    def height(self) -> int:
        return int(self.image.shape[0])


# ---------------------------------------------------------------------------
# Analysis Models
# ---------------------------------------------------------------------------


class AnalysisLog(BaseModel):
    """One finding produced by feeding a captured image to the inference provider."""

    model_config = ConfigDict(frozen=True)

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    timestamp: datetime = Field(default_factory=datetime.now)
    content: str = Field(description="Text of the finding")
    frame_number: int | None = Field(
        default=None, description="Frame the finding was produced from, if known"
    )


class ChatMessage(BaseModel):
    """One message of a session's conversational thread."""

    model_config = ConfigDict(frozen=True)

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    role: MessageRole
    text: str
    timestamp: datetime = Field(default_factory=datetime.now)


# ---------------------------------------------------------------------------
# Observation Snapshots
# ---------------------------------------------------------------------------


class SessionSnapshot(BaseModel):
    """Point-in-time, read-only view of one capture session.

    Findings are listed newest first; chat history is chronological.
    """

    model_config = ConfigDict(frozen=True)

    session_id: uuid.UUID
    source: WindowSource
    created_at: datetime
    busy: bool
    last_image_at: datetime | None = None
    last_frame_number: int | None = None
    logs: list[AnalysisLog] = Field(default_factory=list)
    chat_history: list[ChatMessage] = Field(default_factory=list)
    dropped_observations: int = Field(default=0, ge=0)


class OrchestratorSnapshot(BaseModel):
    """Point-in-time view of every active session and the known sources."""

    model_config = ConfigDict(frozen=True)

    available_sources: list[WindowSource] = Field(default_factory=list)
    sessions: list[SessionSnapshot] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=datetime.now)


class ProviderFailure(BaseModel):
    """A provider error recorded on the orchestrator's error channel."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=datetime.now)
    session_id: uuid.UUID | None = Field(default=None, description="Session affected, if any")
    operation: str = Field(description="Pipeline step that failed: list_sources, capture, observe, converse")
    provider: str = Field(default="")
    error_type: str
    message: str
