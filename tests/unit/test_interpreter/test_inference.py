"""Tests for the InferenceProvider base class and concrete providers."""

from __future__ import annotations

import base64
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from sightline.domain.errors import InferenceError
from sightline.domain.models import CapturedImage, ChatMessage, MessageRole
from sightline.interpreter.base import DEFAULT_ANALYSIS_PROMPT, InferenceProvider
from sightline.interpreter.openai import OpenAIProvider
from sightline.interpreter.simulated import CANNED_FINDINGS, SimulatedInferenceProvider


def _response(content: str | None) -> SimpleNamespace:
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def _provider_with_client(response: object = None, error: Exception | None = None) -> OpenAIProvider:
    provider = OpenAIProvider(api_key="test-key", model="test-model", max_tokens=64)
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=response, side_effect=error)
    provider._client = client
    return provider


class TestInferenceProviderInterface:
    def test_cannot_instantiate_abstract_class(self) -> None:
        """InferenceProvider should not be instantiable directly."""
        with pytest.raises(TypeError):
            InferenceProvider(model="test")  # type: ignore[abstract]

    def test_encodes_image_as_png(self, sample_capture: CapturedImage) -> None:
        provider = SimulatedInferenceProvider()
        encoded = provider._encode_image_to_base64(sample_capture)
        assert base64.b64decode(encoded).startswith(b"\x89PNG")


class TestSimulatedInferenceProvider:
    @pytest.mark.asyncio
    async def test_returns_canned_finding(self, sample_capture: CapturedImage) -> None:
        provider = SimulatedInferenceProvider(analysis_delay=0, reply_delay=0, seed=3)
        assert await provider.analyze_image(sample_capture) in CANNED_FINDINGS

    @pytest.mark.asyncio
    async def test_reply_mentions_user_text(self) -> None:
        provider = SimulatedInferenceProvider(analysis_delay=0, reply_delay=0)
        reply = await provider.reply("why is the button red?")
        assert "why is the button red?" in reply


class TestOpenAIProvider:
    @pytest.mark.asyncio
    async def test_analyze_sends_prompt_and_image(self, sample_capture: CapturedImage) -> None:
        provider = _provider_with_client(_response("  A terminal with a failing build.  "))

        finding = await provider.analyze_image(sample_capture)

        assert finding == "A terminal with a failing build."
        kwargs = provider._client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "test-model"
        assert kwargs["max_tokens"] == 64
        system, user = kwargs["messages"]
        assert system == {"role": "system", "content": DEFAULT_ANALYSIS_PROMPT}
        assert user["content"][0]["image_url"]["url"].startswith("data:image/png;base64,")

    @pytest.mark.asyncio
    async def test_reply_maps_history_roles(self, sample_capture: CapturedImage) -> None:
        provider = _provider_with_client(_response("It is a dialog."))
        history = [
            ChatMessage(role=MessageRole.USER, text="hello"),
            ChatMessage(role=MessageRole.SYSTEM, text="hi there"),
        ]

        await provider.reply("what is this?", sample_capture, history)

        messages = provider._client.chat.completions.create.call_args.kwargs["messages"]
        assert [m["role"] for m in messages] == ["system", "user", "assistant", "user"]
        assert messages[-1]["content"][1] == {"type": "text", "text": "what is this?"}

    @pytest.mark.asyncio
    async def test_reply_without_image_sends_plain_text(self) -> None:
        provider = _provider_with_client(_response("Sure."))
        await provider.reply("hello")

        messages = provider._client.chat.completions.create.call_args.kwargs["messages"]
        assert messages[-1] == {"role": "user", "content": "hello"}

    @pytest.mark.asyncio
    async def test_api_failure_raises_inference_error(self, sample_capture: CapturedImage) -> None:
        provider = _provider_with_client(error=RuntimeError("connection reset"))

        with pytest.raises(InferenceError) as info:
            await provider.analyze_image(sample_capture)
        assert info.value.provider == "openai"
        assert "connection reset" in str(info.value)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("content", [None, "", "   "])
    async def test_empty_response_raises(self, content: str | None) -> None:
        provider = _provider_with_client(_response(content))
        with pytest.raises(InferenceError):
            await provider.reply("hello")

    @pytest.mark.asyncio
    async def test_health_check_reports_failure(self) -> None:
        provider = _provider_with_client()
        provider._client.models.list = AsyncMock(side_effect=RuntimeError("unauthorized"))
        assert await provider.health_check() is False
