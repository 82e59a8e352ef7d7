"""Webcam capture implementation using OpenCV.

Each camera device that can be opened is exposed as a source. Devices are
opened lazily on first capture and kept open until the provider closes.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from datetime import datetime

import cv2
import numpy as np

from sightline.capture.base import CaptureProvider
from sightline.domain.models import CapturedImage, WindowSource

logger = logging.getLogger(__name__)


class WebcamCaptureProvider(CaptureProvider):
    """Captures frames from local webcams using OpenCV.

    Runs OpenCV's blocking calls in a thread pool executor to avoid
    blocking the async event loop. Each device has its own lock, so
    different devices can be read concurrently.
    """

    name = "webcam"

    def __init__(
        self,
        max_devices: int = 4,
        resolution: tuple[int, int] | None = None,
    ) -> None:
        super().__init__()
        self._max_devices = max_devices
        self._resolution = resolution
        self._caps: dict[int, cv2.VideoCapture] = {}
        self._locks: dict[int, threading.Lock] = {}
        self._closed = False

    async def open(self) -> None:
        self._closed = False
        await super().open()

    async def close(self) -> None:
        """Release every opened webcam device.

        Reads still running in the thread pool finish before their device
        is released, and no device is reopened afterwards.
        """
        self._closed = True
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._release_all_sync)
        self._is_open = False

    async def list_sources(self) -> list[WindowSource]:
        loop = asyncio.get_running_loop()
        try:
            available = await loop.run_in_executor(None, self._probe_devices_sync)
        except cv2.error as e:
            raise self._unavailable(f"Failed to enumerate webcams: {e}") from e
        return [
            WindowSource(id=index, name=f"Camera {index}", owner_name="Webcam")
            for index in available
        ]

    async def capture(self, source_id: int) -> CapturedImage:
        loop = asyncio.get_running_loop()
        try:
            frame = await loop.run_in_executor(None, self._capture_sync, source_id)
        except cv2.error as e:
            raise self._unavailable(f"Failed to capture from webcam {source_id}: {e}") from e
        return CapturedImage(
            image=frame,
            source_id=source_id,
            timestamp=datetime.now(),
            frame_number=self._next_frame_number(source_id),
        )

    def _probe_devices_sync(self) -> list[int]:
        """Return indices of devices that can be opened (runs in thread pool)."""
        available = []
        for index in range(self._max_devices):
            if index in self._caps and self._caps[index].isOpened():
                available.append(index)
                continue
            cap = cv2.VideoCapture(index)
            try:
                if cap.isOpened():
                    available.append(index)
            finally:
                cap.release()
        return available

    def _capture_sync(self, source_id: int) -> np.ndarray:
        """Synchronous frame capture (runs in thread pool)."""
        if source_id < 0 or source_id >= self._max_devices:
            raise self._not_found(source_id)
        lock = self._locks.setdefault(source_id, threading.Lock())
        with lock:
            if self._closed:
                raise self._unavailable("Webcam provider is closed")
            cap = self._caps.get(source_id)
            if cap is None or not cap.isOpened():
                cap = self._open_device_sync(source_id)
            try:
                ret, frame = cap.read()
            except cv2.error as e:
                logger.debug("Webcam %d read raised: %s", source_id, e)
                ret, frame = False, None
            if not ret or frame is None:
                # Device unplugged or busy; reopen on the next attempt
                cap.release()
                self._caps.pop(source_id, None)
                raise self._unavailable(f"Failed to read frame from webcam {source_id}")
            return frame

    def _release_all_sync(self) -> None:
        """Release devices under their locks (runs in thread pool)."""
        for index, lock in list(self._locks.items()):
            with lock:
                cap = self._caps.pop(index, None)
                if cap is not None and cap.isOpened():
                    cap.release()
                    logger.info("Released webcam device %d", index)
        self._caps.clear()

    def _open_device_sync(self, source_id: int) -> cv2.VideoCapture:
        cap = cv2.VideoCapture(source_id)
        if not cap.isOpened():
            cap.release()
            raise self._not_found(source_id)
        if self._resolution:
            w, h = self._resolution
            cap.set(cv2.CAP_PROP_FRAME_WIDTH, w)
            cap.set(cv2.CAP_PROP_FRAME_HEIGHT, h)
        self._caps[source_id] = cap
        self._is_open = True
        logger.info(
            "Opened webcam device %d (%dx%d)",
            source_id,
            int(cap.get(cv2.CAP_PROP_FRAME_WIDTH)),
            int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT)),
        )
        return cap
