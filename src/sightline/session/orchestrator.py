"""The session orchestrator that drives the capture pipeline.

Owns the registry of active capture sessions, runs one independent
periodic sampling loop per session, and mediates every call to the
capture and inference providers.

Coordinates, per session: sleep -> capture -> store image -> observe
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections import deque

from sightline.capture.base import CaptureProvider
from sightline.domain.errors import InvalidInputError, ProviderError, SessionNotFoundError
from sightline.domain.models import (
    ChatMessage,
    OrchestratorSnapshot,
    ProviderFailure,
    WindowSource,
)
from sightline.events import EventBus, EventKind
from sightline.interpreter.base import InferenceProvider
from sightline.session.session import CaptureSession

logger = logging.getLogger(__name__)

DEFAULT_CAPTURE_INTERVAL = 2.0


class SessionOrchestrator:
    """Registry of active capture sessions and their sampling loops.

    Sessions never share mutable state, so loops for different sessions
    run independently. The registry itself is the one structure shared by
    all loops; structural changes go through a lock and readers iterate
    over a copy.

    Example usage::

        async with SessionOrchestrator(capture, inference) as orchestrator:
            sources = await orchestrator.refresh_sources()
            session_id = await orchestrator.add_session(sources[0])
            reply = await orchestrator.converse(session_id, "What is on screen?")
    """

    def __init__(
        self,
        capture: CaptureProvider,
        inference: InferenceProvider,
        capture_interval: float = DEFAULT_CAPTURE_INTERVAL,
        events: EventBus | None = None,
        chat_context_messages: int = 20,
        max_recent_errors: int = 100,
    ) -> None:
        if capture_interval <= 0:
            raise ValueError("capture_interval must be > 0")
        self._capture = capture
        self._inference = inference
        self._capture_interval = capture_interval
        self._events = events if events is not None else EventBus()
        self._chat_context_messages = chat_context_messages

        self._sessions: dict[uuid.UUID, CaptureSession] = {}
        self._registry_lock = asyncio.Lock()
        self._available_sources: list[WindowSource] = []
        self._recent_errors: deque[ProviderFailure] = deque(maxlen=max_recent_errors)
        self._pending: set[asyncio.Task] = set()
        self._running = False
        self._closed = False

    # -- observation ---------------------------------------------------------

    @property
    def events(self) -> EventBus:
        return self._events

    @property
    def capture_interval(self) -> float:
        return self._capture_interval

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def active_sessions(self) -> dict[uuid.UUID, CaptureSession]:
        """Active sessions in the order they were added."""
        return dict(self._sessions)

    @property
    def available_sources(self) -> list[WindowSource]:
        return list(self._available_sources)

    @property
    def recent_errors(self) -> list[ProviderFailure]:
        """Most recent provider failures, oldest first."""
        return list(self._recent_errors)

    def get_session(self, session_id: uuid.UUID) -> CaptureSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def find_session(self, source_id: int) -> CaptureSession | None:
        for session in list(self._sessions.values()):
            if session.source.id == source_id:
                return session
        return None

    async def health_check(self) -> bool:
        """Whether the inference backend reports itself reachable."""
        return await self._inference.health_check()

    def snapshot(self) -> OrchestratorSnapshot:
        return OrchestratorSnapshot(
            available_sources=list(self._available_sources),
            sessions=[s.snapshot() for s in list(self._sessions.values())],
        )

    # -- lifecycle -----------------------------------------------------------

    async def start(self) -> None:
        """Open the capture provider. Called by the async context manager."""
        if self._closed:
            raise RuntimeError("Orchestrator is closed")
        if self._running:
            return
        await self._capture.open()
        self._running = True
        logger.info(
            "Orchestrator started (capture=%s, inference=%s, interval=%.1fs)",
            self._capture.name, self._inference.name, self._capture_interval,
        )

    async def close(self) -> None:
        """Remove every session and wait for in-flight analysis to settle."""
        if self._closed:
            return
        self._closed = True
        for session_id in list(self._sessions):
            await self.remove_session(session_id)
        if self._pending:
            await asyncio.wait(list(self._pending))
        if self._running:
            await self._capture.close()
        self._running = False
        logger.info("Orchestrator closed")

    async def __aenter__(self) -> SessionOrchestrator:
        await self.start()
        return self

    async def __aexit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        await self.close()

    # -- commands ------------------------------------------------------------

    async def refresh_sources(self) -> list[WindowSource]:
        """Replace the list of available sources with a fresh enumeration.

        On failure the previous list is kept and the error is re-raised
        to the caller after being recorded.

        Raises:
            ProviderError: If the capture provider cannot enumerate sources.
        """
        try:
            sources = list(await self._capture.list_sources())
        except ProviderError as e:
            self._record_error(e, "list_sources")
            raise
        self._available_sources = sources
        self._events.publish(
            EventKind.SOURCES_REFRESHED,
            sources=[s.model_dump(mode="json") for s in sources],
        )
        logger.info("Found %d available sources", len(sources))
        return list(sources)

    async def add_session(self, source: WindowSource) -> uuid.UUID:
        """Start observing a source.

        Idempotent by source id: adding a source that already has a session
        returns the existing session's id and starts nothing new.
        """
        async with self._registry_lock:
            if self._closed:
                raise RuntimeError("Orchestrator is closed")
            existing = self.find_session(source.id)
            if existing is not None:
                logger.debug("Source %d already has session %s", source.id, existing.id)
                return existing.id

            session = CaptureSession(
                source,
                self._inference,
                events=self._events,
                on_error=self._record_error,
                chat_context_messages=self._chat_context_messages,
            )
            self._sessions[session.id] = session
            session.attach_sampling_task(
                asyncio.create_task(
                    self._sampling_loop(session),
                    name=f"sightline-sampling-{source.id}",
                )
            )

        self._events.publish(
            EventKind.SESSION_ADDED,
            session_id=session.id,
            source=source.model_dump(mode="json"),
        )
        logger.info(
            "Added session %s for source %d (%s / %s)",
            session.id, source.id, source.name, source.owner_name,
        )
        return session.id

    async def remove_session(self, session_id: uuid.UUID) -> None:
        """Stop observing a session and discard its state.

        When this returns, the session's loop has exited and no new capture
        for it can start. Analysis already in flight runs to completion but
        its result is discarded. Unknown ids are ignored.
        """
        async with self._registry_lock:
            session = self._sessions.pop(session_id, None)
            if session is None:
                return
            session.analyzer.close()
            await session.stop_sampling()

        self._events.publish(
            EventKind.SESSION_REMOVED,
            session_id=session_id,
            source=session.source.model_dump(mode="json"),
        )
        logger.info("Removed session %s (source %d)", session_id, session.source.id)

    async def converse(self, session_id: uuid.UUID, text: str) -> ChatMessage | None:
        """Send a user turn to a session, with its latest image as context.

        Returns:
            The reply, or None if the provider failed.

        Raises:
            InvalidInputError: If text is empty.
            SessionNotFoundError: If the session is not active.
        """
        if not text or not text.strip():
            raise InvalidInputError("Message text must not be empty")
        session = self.get_session(session_id)
        return await session.analyzer.converse(text, session.last_image)

    async def sample(self, session_id: uuid.UUID) -> asyncio.Task | None:
        """Run one sampling tick for a session right now.

        Returns:
            The task analysing the new image, or None if the capture failed.

        Raises:
            SessionNotFoundError: If the session is not active.
        """
        return await self._sample_session(self.get_session(session_id))

    # -- internals -----------------------------------------------------------

    async def _sampling_loop(self, session: CaptureSession) -> None:
        logger.debug("Sampling loop started for session %s", session.id)
        while True:
            await asyncio.sleep(self._capture_interval)
            try:
                await self._sample_session(session)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Unexpected error sampling session %s", session.id)

    async def _sample_session(self, session: CaptureSession) -> asyncio.Task | None:
        if self._sessions.get(session.id) is not session:
            return None
        try:
            image = await self._capture.capture(session.source.id)
        except ProviderError as e:
            session.consecutive_failures += 1
            self._record_error(
                e, "capture", session.id,
                repeated=session.consecutive_failures > 1,
            )
            return None

        if self._sessions.get(session.id) is not session:
            # Removed while the capture was in flight
            return None
        if session.consecutive_failures:
            logger.info(
                "Capture recovered for session %s after %d failures",
                session.id, session.consecutive_failures,
            )
            session.consecutive_failures = 0

        session.last_image = image
        self._events.publish(
            EventKind.IMAGE_CAPTURED,
            session_id=session.id,
            frame_number=image.frame_number,
            width=image.width,
            height=image.height,
        )
        task = asyncio.create_task(
            session.analyzer.observe(image),
            name=f"sightline-observe-{session.source.id}-{image.frame_number}",
        )
        self._pending.add(task)
        task.add_done_callback(self._on_observe_done)
        return task

    def _on_observe_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Analysis task %s failed", task.get_name(), exc_info=exc)

    def _record_error(
        self,
        error: ProviderError,
        operation: str,
        session_id: uuid.UUID | None = None,
        repeated: bool = False,
    ) -> None:
        failure = ProviderFailure(
            session_id=session_id,
            operation=operation,
            provider=error.provider,
            error_type=type(error).__name__,
            message=str(error),
        )
        self._recent_errors.append(failure)
        self._events.publish(
            EventKind.ERROR,
            session_id=session_id,
            failure=failure.model_dump(mode="json"),
        )
        log = logger.debug if repeated else logger.warning
        log("%s failed (session=%s): %s", operation, session_id, error)
