"""FastAPI HTTP server exposing the orchestrator to an out-of-process view.

Mirrors the orchestrator's commands (refresh sources, add and remove
sessions, send a chat turn), its snapshot API, and streams every change
event over a WebSocket.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator

import uvicorn
from fastapi import FastAPI, HTTPException, WebSocket
from pydantic import BaseModel, Field

from sightline import __version__
from sightline.domain.errors import InvalidInputError, ProviderError, SessionNotFoundError
from sightline.domain.models import ChatMessage, SessionSnapshot, WindowSource
from sightline.session.orchestrator import SessionOrchestrator
from sightline.utils.imaging import encode_thumbnail

logger = logging.getLogger(__name__)


class AddSessionRequest(BaseModel):
    source_id: int = Field(description="Id of an available source to start observing")


class ChatRequest(BaseModel):
    text: str = Field(min_length=1, description="The user's message")


class AddSessionResponse(BaseModel):
    session_id: uuid.UUID


class ChatResponse(BaseModel):
    reply: ChatMessage | None = Field(default=None, description="None when the provider failed")
    busy: bool


class SessionDetail(BaseModel):
    session: SessionSnapshot
    thumbnail: str | None = Field(default=None, description="Base64 JPEG preview of the last image")


class EndpointStatus(BaseModel):
    status: str = "ok"
    running: bool = True
    sessions: int = 0
    inference_reachable: bool = True


def create_app(orchestrator: SessionOrchestrator) -> FastAPI:
    """Create and configure the FastAPI application."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await orchestrator.start()
        logger.info("Endpoint started")
        yield
        await orchestrator.close()
        logger.info("Endpoint stopped")

    app = FastAPI(
        title="sightline Endpoint",
        description="Local observation and command endpoint for sightline sessions",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.orchestrator = orchestrator

    def _session(session_id: uuid.UUID):
        try:
            return orchestrator.get_session(session_id)
        except SessionNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e)) from e

    @app.get("/health")
    async def health_check() -> EndpointStatus:
        reachable = await orchestrator.health_check()
        return EndpointStatus(
            status="ok" if reachable else "degraded",
            running=orchestrator.is_running,
            sessions=len(orchestrator.active_sessions),
            inference_reachable=reachable,
        )

    @app.get("/sources")
    async def list_sources() -> list[WindowSource]:
        return orchestrator.available_sources

    @app.post("/sources/refresh")
    async def refresh_sources() -> list[WindowSource]:
        try:
            return await orchestrator.refresh_sources()
        except ProviderError as e:
            raise HTTPException(status_code=503, detail=str(e)) from e

    @app.get("/sessions")
    async def list_sessions() -> list[SessionSnapshot]:
        return orchestrator.snapshot().sessions

    @app.post("/sessions")
    async def add_session(request: AddSessionRequest) -> AddSessionResponse:
        source = _find_source(request.source_id)
        if source is None:
            try:
                await orchestrator.refresh_sources()
            except ProviderError as e:
                raise HTTPException(status_code=503, detail=str(e)) from e
            source = _find_source(request.source_id)
        if source is None:
            raise HTTPException(status_code=404, detail=f"Source {request.source_id} not available")
        return AddSessionResponse(session_id=await orchestrator.add_session(source))

    @app.get("/sessions/{session_id}")
    async def get_session(session_id: uuid.UUID, thumbnail: bool = False) -> SessionDetail:
        session = _session(session_id)
        preview = None
        if thumbnail and session.last_image is not None:
            preview = encode_thumbnail(session.last_image.image)
        return SessionDetail(session=session.snapshot(), thumbnail=preview)

    @app.delete("/sessions/{session_id}")
    async def remove_session(session_id: uuid.UUID) -> dict[str, str]:
        await orchestrator.remove_session(session_id)
        return {"status": "ok"}

    @app.post("/sessions/{session_id}/chat")
    async def chat(session_id: uuid.UUID, request: ChatRequest) -> ChatResponse:
        session = _session(session_id)
        try:
            reply = await orchestrator.converse(session_id, request.text)
        except SessionNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e)) from e
        except InvalidInputError as e:
            raise HTTPException(status_code=422, detail=str(e)) from e
        return ChatResponse(reply=reply, busy=session.analyzer.busy)

    @app.websocket("/events")
    async def stream_events(websocket: WebSocket, replay: bool = False) -> None:
        await websocket.accept()
        subscription = orchestrator.events.subscribe(replay=replay)

        async def pump() -> None:
            async for event in subscription:
                await websocket.send_text(event.model_dump_json())

        async def watch_disconnect() -> None:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    return

        tasks = {asyncio.create_task(pump()), asyncio.create_task(watch_disconnect())}
        try:
            await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        finally:
            subscription.close()
            for task in tasks:
                task.cancel()
            await asyncio.wait(tasks)

    def _find_source(source_id: int) -> WindowSource | None:
        for source in orchestrator.available_sources:
            if source.id == source_id:
                return source
        return None

    return app


def serve(orchestrator: SessionOrchestrator, host: str = "127.0.0.1", port: int = 8765) -> None:
    """Run the endpoint with uvicorn until interrupted."""
    app = create_app(orchestrator)
    uvicorn.run(app, host=host, port=port)
