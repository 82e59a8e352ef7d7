"""Simulated inference provider.

Returns canned findings and replies after a fixed delay. Stands in for a
real multimodal model in demos and tests.
"""

from __future__ import annotations

import asyncio
import logging
import random

from sightline.domain.models import CapturedImage, ChatMessage
from sightline.interpreter.base import InferenceProvider

logger = logging.getLogger(__name__)

CANNED_FINDINGS = (
    "User is editing source code; a warning marker is shown on line 20.",
    "Low rate of change. Content is mostly static text.",
    "A red button control is visible near (200, 350).",
    "Video playback detected, no subtitles shown.",
)

CANNED_REPLY = (
    "I can see the frame you shared. Regarding \"{text}\", try checking the "
    "view hierarchy, or restructure the layout into a split view."
)


class SimulatedInferenceProvider(InferenceProvider):
    """Canned-output provider with configurable latency."""

    name = "simulated"

    def __init__(
        self,
        analysis_delay: float = 0.5,
        reply_delay: float = 1.0,
        findings: tuple[str, ...] = CANNED_FINDINGS,
        seed: int | None = None,
    ) -> None:
        super().__init__(model="simulated")
        self._analysis_delay = analysis_delay
        self._reply_delay = reply_delay
        self._findings = findings
        self._random = random.Random(seed)

    async def analyze_image(self, image: CapturedImage) -> str:
        await asyncio.sleep(self._analysis_delay)
        return self._random.choice(self._findings)

    async def reply(
        self,
        text: str,
        image: CapturedImage | None = None,
        history: list[ChatMessage] | None = None,
    ) -> str:
        await asyncio.sleep(self._reply_delay)
        return CANNED_REPLY.format(text=text)
