"""Inference providers for sightline.

Provides a backend-agnostic interface for turning screenshots into
findings and answering conversational turns about them.

Public API:
    InferenceProvider -- Abstract base class
    SimulatedInferenceProvider -- Canned responses with a fixed delay
    OpenAIProvider -- OpenAI / OpenRouter implementation
"""

from sightline.interpreter.base import InferenceError, InferenceProvider
from sightline.interpreter.simulated import SimulatedInferenceProvider

__all__ = ["InferenceProvider", "InferenceError", "SimulatedInferenceProvider", "OpenAIProvider"]


def __getattr__(name: str) -> type:
    """Lazy import for concrete implementations that require external deps."""
    if name == "OpenAIProvider":
        from sightline.interpreter.openai import OpenAIProvider
        return OpenAIProvider
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
