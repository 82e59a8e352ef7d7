"""Per-session analysis stage.

A SessionAnalyzer owns one session's finding log and chat history and
serializes every inference call for that session through a single-slot
busy gate. The two entry points handle overload differently:

* observe() drops a sample that arrives while the gate is held. Samples
  are periodic, so the next tick supersedes it.
* converse() waits its turn. A user's message is never discarded.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable

from sightline.domain.errors import InvalidInputError, ProviderError
from sightline.domain.models import AnalysisLog, CapturedImage, ChatMessage, MessageRole
from sightline.events import EventBus, EventKind
from sightline.interpreter.base import InferenceProvider

logger = logging.getLogger(__name__)

ErrorHandler = Callable[[ProviderError, str], None]


class SessionAnalyzer:
    """Finding log and conversational thread for one capture session.

    At most one provider call is in flight per analyzer. The gate is
    released on every exit path, including provider failure and
    cancellation, so the analyzer can never be left busy.
    """

    def __init__(
        self,
        inference: InferenceProvider,
        session_id: uuid.UUID | None = None,
        events: EventBus | None = None,
        on_error: ErrorHandler | None = None,
        chat_context_messages: int = 20,
    ) -> None:
        """Initialize the analyzer.

        Args:
            inference: Backend used for findings and replies.
            session_id: Id of the owning session, attached to published events.
            events: Bus to publish state changes on. None disables notifications.
            on_error: Called with every provider error and the failing operation
                      ("observe" or "converse"). Errors are only logged if unset.
            chat_context_messages: How many earlier chat messages are handed to
                                   the provider as conversation history.
        """
        self._inference = inference
        self._session_id = session_id
        self._events = events
        self._on_error = on_error
        self._chat_context_messages = chat_context_messages

        self._gate = asyncio.Lock()
        self._queued_turns = 0
        self._logs: list[AnalysisLog] = []
        self._chat_history: list[ChatMessage] = []
        self._closed = False
        self._dropped_observations = 0
        self._last_error: ProviderError | None = None

    # -- observation ---------------------------------------------------------

    @property
    def busy(self) -> bool:
        """True while a provider call is in flight."""
        return self._gate.locked()

    @property
    def logs(self) -> list[AnalysisLog]:
        """Findings, newest first."""
        return list(reversed(self._logs))

    @property
    def logs_chronological(self) -> list[AnalysisLog]:
        """Findings in the order they were recorded."""
        return list(self._logs)

    @property
    def chat_history(self) -> list[ChatMessage]:
        """Chat messages, oldest first."""
        return list(self._chat_history)

    @property
    def dropped_observations(self) -> int:
        return self._dropped_observations

    @property
    def last_error(self) -> ProviderError | None:
        return self._last_error

    @property
    def closed(self) -> bool:
        return self._closed

    # -- commands ------------------------------------------------------------

    async def observe(self, image: CapturedImage) -> AnalysisLog | None:
        """Analyze one captured image and record the finding.

        Returns:
            The recorded finding, or None if the sample was dropped because
            the analyzer was busy, the provider failed, or the analyzer was
            closed before the result arrived.
        """
        if self._closed:
            return None
        if self._gate.locked() or self._queued_turns:
            self._dropped_observations += 1
            logger.debug(
                "Analyzer busy, dropped frame %d (session=%s)",
                image.frame_number, self._session_id,
            )
            return None

        async with self._hold():
            try:
                content = await self._inference.analyze_image(image)
            except ProviderError as e:
                self._handle_error(e, "observe")
                return None

            if self._closed:
                logger.debug("Discarding finding for closed session %s", self._session_id)
                return None

            entry = AnalysisLog(content=content, frame_number=image.frame_number)
            self._logs.append(entry)
            self._publish(EventKind.FINDING_ADDED, log=entry.model_dump(mode="json"))
            return entry

    async def converse(
        self,
        text: str,
        context_image: CapturedImage | None = None,
    ) -> ChatMessage | None:
        """Run one conversational turn.

        Waits for the busy gate rather than dropping the turn. Once the
        gate is held, the user's message is appended and published before
        the provider is called, so the turn is visible while the reply is
        pending.

        Returns:
            The system reply, or None if the provider failed (the user's
            message stays in the history without a reply) or the analyzer
            was closed.

        Raises:
            InvalidInputError: If text is empty. Nothing is recorded.
        """
        if not text or not text.strip():
            raise InvalidInputError("Message text must not be empty")
        if self._closed:
            return None

        self._queued_turns += 1
        queued = True
        try:
            async with self._hold():
                self._queued_turns -= 1
                queued = False
                if self._closed:
                    return None

                history = self._chat_history[-self._chat_context_messages:] if self._chat_context_messages else []
                self._append_chat(ChatMessage(role=MessageRole.USER, text=text))

                try:
                    reply = await self._inference.reply(text, context_image, history)
                except ProviderError as e:
                    self._handle_error(e, "converse")
                    return None

                if self._closed:
                    logger.debug("Discarding reply for closed session %s", self._session_id)
                    return None

                message = ChatMessage(role=MessageRole.SYSTEM, text=reply)
                self._append_chat(message)
                return message
        finally:
            if queued:
                self._queued_turns -= 1

    def close(self) -> None:
        """Detach the analyzer from its session.

        Calls still in flight are allowed to finish, but their results are
        discarded and no further events are published.
        """
        self._closed = True

    # -- internals -----------------------------------------------------------

    @asynccontextmanager
    async def _hold(self) -> AsyncIterator[None]:
        await self._gate.acquire()
        try:
            self._publish(EventKind.BUSY_CHANGED, busy=True)
            yield
        finally:
            self._gate.release()
            self._publish(EventKind.BUSY_CHANGED, busy=False)

    def _append_chat(self, message: ChatMessage) -> None:
        self._chat_history.append(message)
        self._publish(EventKind.CHAT_MESSAGE_ADDED, message=message.model_dump(mode="json"))

    def _handle_error(self, error: ProviderError, operation: str) -> None:
        self._last_error = error
        if self._closed:
            return
        if self._on_error is not None:
            self._on_error(error, operation)
        else:
            logger.warning("%s failed (session=%s): %s", operation, self._session_id, error)

    def _publish(self, kind: EventKind, **data: object) -> None:
        if self._events is None or self._closed:
            return
        self._events.publish(kind, session_id=self._session_id, **data)
