"""Abstract base class for inference providers.

All inference implementations must conform to this interface, enabling
the system to swap the simulated backend for a real multimodal model
without changing the orchestration pipeline.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from sightline.domain.errors import InferenceError
from sightline.domain.models import CapturedImage, ChatMessage
from sightline.utils.imaging import numpy_to_base64_png, resize_for_mllm

logger = logging.getLogger(__name__)


DEFAULT_ANALYSIS_PROMPT = """You are watching a live application window through periodic screenshots.

For the screenshot you are given, report one short finding about what is on screen:
the application and activity visible, notable UI elements and their position,
warnings or errors, and how much the content appears to be changing.

Answer in one or two plain sentences. Do not use markdown."""

DEFAULT_CHAT_PROMPT = """You are an assistant looking at the same application window as the user.
The most recent screenshot of the window is attached when available.
Answer the user's question about what is on screen concisely and concretely."""


class InferenceProvider(ABC):
    """Abstract interface for image analysis and conversational replies.

    Both calls may be slow and may fail; they are single request/response
    calls with no streaming.
    """

    name: str = "inference"

    def __init__(
        self,
        model: str,
        analysis_prompt: str | None = None,
        chat_prompt: str | None = None,
    ) -> None:
        self._model = model
        self._analysis_prompt = analysis_prompt or DEFAULT_ANALYSIS_PROMPT
        self._chat_prompt = chat_prompt or DEFAULT_CHAT_PROMPT

    @property
    def model(self) -> str:
        return self._model

    @abstractmethod
    async def analyze_image(self, image: CapturedImage) -> str:
        """Produce a textual finding for a captured image.

        Raises:
            InferenceError: If the backend call fails.
        """
        ...

    @abstractmethod
    async def reply(
        self,
        text: str,
        image: CapturedImage | None = None,
        history: list[ChatMessage] | None = None,
    ) -> str:
        """Produce a reply to a conversational turn.

        Args:
            text: The user's message.
            image: Most recent capture of the session, used as context.
            history: Earlier messages of the thread, oldest first, not
                     including the current turn.

        Raises:
            InferenceError: If the backend call fails.
        """
        ...

    async def health_check(self) -> bool:
        """Check if the backend is reachable. Default assumes it is."""
        return True

    def _encode_image_to_base64(self, image: CapturedImage) -> str:
        """Resize a captured image for the model and encode it as base64 PNG."""
        return numpy_to_base64_png(resize_for_mllm(image.image))

    def _error(self, message: str, raw_response: str = "") -> InferenceError:
        return InferenceError(message, provider=self.name, raw_response=raw_response)


__all__ = ["InferenceProvider", "InferenceError"]
