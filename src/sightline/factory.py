"""Construction of providers and the orchestrator from settings."""

from __future__ import annotations

import logging

from sightline.capture.base import CaptureProvider
from sightline.config.settings import Settings
from sightline.events import EventBus
from sightline.interpreter.base import InferenceProvider
from sightline.session.orchestrator import SessionOrchestrator

logger = logging.getLogger(__name__)


def build_capture_provider(settings: Settings) -> CaptureProvider:
    cfg = settings.capture
    if cfg.provider == "monitor":
        from sightline.capture.monitor import MonitorCaptureProvider
        return MonitorCaptureProvider()
    if cfg.provider == "webcam":
        from sightline.capture.webcam import WebcamCaptureProvider
        resolution = None
        if cfg.resolution_width and cfg.resolution_height:
            resolution = (cfg.resolution_width, cfg.resolution_height)
        return WebcamCaptureProvider(max_devices=cfg.max_webcam_devices, resolution=resolution)
    from sightline.capture.simulated import SimulatedCaptureProvider
    return SimulatedCaptureProvider()


def build_inference_provider(settings: Settings) -> InferenceProvider:
    cfg = settings.inference
    if cfg.provider == "openai":
        from sightline.interpreter.openai import OpenAIProvider
        api_key, base_url = settings.inference_credentials()
        if not api_key:
            logger.warning("No API key configured for the openai inference provider")
        return OpenAIProvider(
            api_key=api_key,
            model=cfg.model,
            base_url=base_url,
            analysis_prompt=cfg.analysis_prompt_override,
            chat_prompt=cfg.chat_prompt_override,
            max_tokens=cfg.max_tokens,
        )
    from sightline.interpreter.simulated import SimulatedInferenceProvider
    return SimulatedInferenceProvider(
        analysis_delay=cfg.simulated_analysis_delay,
        reply_delay=cfg.simulated_reply_delay,
    )


def build_orchestrator(settings: Settings, events: EventBus | None = None) -> SessionOrchestrator:
    """Wire the configured providers into a new orchestrator."""
    return SessionOrchestrator(
        capture=build_capture_provider(settings),
        inference=build_inference_provider(settings),
        capture_interval=settings.capture.capture_interval,
        events=events,
        chat_context_messages=settings.inference.chat_context_messages,
    )
