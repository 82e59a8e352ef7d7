"""Simulated capture provider.

Serves a fixed set of fake desktop windows and returns generated frames.
Used for demos and tests; sources can be added or removed at runtime to
simulate windows opening and closing.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

import numpy as np

from sightline.capture.base import CaptureProvider
from sightline.domain.models import CapturedImage, WindowSource

logger = logging.getLogger(__name__)

DEFAULT_SOURCES = (
    WindowSource(id=1, name="Editor", owner_name="IDE"),
    WindowSource(id=2, name="Documentation", owner_name="Browser"),
    WindowSource(id=3, name="Build Output", owner_name="Terminal"),
)


class SimulatedCaptureProvider(CaptureProvider):
    """Returns generated frames for an in-memory list of sources."""

    name = "simulated"

    def __init__(
        self,
        sources: list[WindowSource] | tuple[WindowSource, ...] = DEFAULT_SOURCES,
        frame_size: tuple[int, int] = (320, 240),
        delay: float = 0.0,
        seed: int | None = None,
    ) -> None:
        super().__init__()
        self._sources: dict[int, WindowSource] = {s.id: s for s in sources}
        self._frame_size = frame_size
        self._delay = delay
        self._rng = np.random.default_rng(seed)

    def add_source(self, source: WindowSource) -> None:
        self._sources[source.id] = source

    def remove_source(self, source_id: int) -> None:
        """Make a source vanish; later captures for it raise SourceNotFoundError."""
        self._sources.pop(source_id, None)

    async def list_sources(self) -> list[WindowSource]:
        if self._delay:
            await asyncio.sleep(self._delay)
        return list(self._sources.values())

    async def capture(self, source_id: int) -> CapturedImage:
        if self._delay:
            await asyncio.sleep(self._delay)
        if source_id not in self._sources:
            raise self._not_found(source_id)
        w, h = self._frame_size
        frame = self._rng.integers(0, 256, size=(h, w, 3), dtype=np.uint8)
        return CapturedImage(
            image=frame,
            source_id=source_id,
            timestamp=datetime.now(),
            frame_number=self._next_frame_number(source_id),
        )
