"""Capture session: one source paired with its own analyzer."""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime
from typing import Callable

from sightline.domain.errors import ProviderError
from sightline.domain.models import CapturedImage, SessionSnapshot, WindowSource
from sightline.events import EventBus
from sightline.interpreter.base import InferenceProvider
from sightline.session.analyzer import SessionAnalyzer

logger = logging.getLogger(__name__)

SessionErrorHandler = Callable[[ProviderError, str, uuid.UUID], None]


class CaptureSession:
    """The live pairing of a source with its analyzer and latest image.

    The session's analyzer is created with it and owned exclusively by
    it. last_image is written only by the session's sampling loop.
    """

    def __init__(
        self,
        source: WindowSource,
        inference: InferenceProvider,
        events: EventBus | None = None,
        on_error: SessionErrorHandler | None = None,
        chat_context_messages: int = 20,
    ) -> None:
        self.id: uuid.UUID = uuid.uuid4()
        self.source = source
        self.created_at = datetime.now()
        self.analyzer = SessionAnalyzer(
            inference,
            session_id=self.id,
            events=events,
            on_error=self._bind_error_handler(on_error),
            chat_context_messages=chat_context_messages,
        )
        self.last_image: CapturedImage | None = None
        self.consecutive_failures = 0
        self._sampling_task: asyncio.Task | None = None

    def _bind_error_handler(self, on_error: SessionErrorHandler | None):
        if on_error is None:
            return None
        return lambda error, operation: on_error(error, operation, self.id)

    @property
    def sampling_task(self) -> asyncio.Task | None:
        return self._sampling_task

    @property
    def is_sampling(self) -> bool:
        return self._sampling_task is not None and not self._sampling_task.done()

    def attach_sampling_task(self, task: asyncio.Task) -> None:
        if self.is_sampling:
            raise RuntimeError(f"Session {self.id} already has a sampling loop")
        self._sampling_task = task

    async def stop_sampling(self) -> None:
        """Cancel the sampling loop and wait until it has fully exited."""
        task = self._sampling_task
        if task is None:
            return
        task.cancel()
        # Waits without re-raising the loop's CancelledError.
        await asyncio.wait([task])
        logger.debug("Sampling loop stopped for session %s", self.id)

    def snapshot(self) -> SessionSnapshot:
        image = self.last_image
        return SessionSnapshot(
            session_id=self.id,
            source=self.source,
            created_at=self.created_at,
            busy=self.analyzer.busy,
            last_image_at=image.timestamp if image else None,
            last_frame_number=image.frame_number if image else None,
            logs=self.analyzer.logs,
            chat_history=self.analyzer.chat_history,
            dropped_observations=self.analyzer.dropped_observations,
        )

    def __repr__(self) -> str:
        return f"CaptureSession(id={self.id}, source={self.source.id!r}:{self.source.name!r})"
