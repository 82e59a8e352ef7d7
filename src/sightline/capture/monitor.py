"""Monitor capture implementation using mss.

Each physical display is exposed as a source. mss handles are not shared
between threads, so every blocking call opens its own handle inside the
thread pool executor.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

import cv2
import mss
from mss.exception import ScreenShotError
import numpy as np

from sightline.capture.base import CaptureProvider
from sightline.domain.models import CapturedImage, WindowSource

logger = logging.getLogger(__name__)

_MON_START = 1  # mss index 0 is the union of all displays


class MonitorCaptureProvider(CaptureProvider):
    """Captures whole displays via mss."""

    name = "monitor"

    async def list_sources(self) -> list[WindowSource]:
        loop = asyncio.get_running_loop()
        try:
            monitors = await loop.run_in_executor(None, self._list_monitors_sync)
        except ScreenShotError as e:
            raise self._unavailable(f"Failed to enumerate monitors: {e}") from e
        sources = [
            WindowSource(
                id=index,
                name=f"Display {index} ({mon['width']}x{mon['height']})",
                owner_name="Screen",
            )
            for index, mon in enumerate(monitors[_MON_START:], start=_MON_START)
        ]
        logger.debug("Found %d monitors", len(sources))
        return sources

    async def capture(self, source_id: int) -> CapturedImage:
        loop = asyncio.get_running_loop()
        try:
            frame = await loop.run_in_executor(None, self._grab_sync, source_id)
        except ScreenShotError as e:
            raise self._unavailable(f"Failed to capture display {source_id}: {e}") from e
        if frame is None:
            raise self._not_found(source_id)
        return CapturedImage(
            image=frame,
            source_id=source_id,
            timestamp=datetime.now(),
            frame_number=self._next_frame_number(source_id),
        )

    @staticmethod
    def _list_monitors_sync() -> list[dict]:
        with mss.mss() as sct:
            return list(sct.monitors)

    @staticmethod
    def _grab_sync(source_id: int) -> np.ndarray | None:
        """Synchronous grab (runs in thread pool). None if the display is gone."""
        with mss.mss() as sct:
            monitors = sct.monitors
            if source_id < _MON_START or source_id >= len(monitors):
                return None
            shot = sct.grab(monitors[source_id])
            return cv2.cvtColor(np.asarray(shot), cv2.COLOR_BGRA2BGR)
