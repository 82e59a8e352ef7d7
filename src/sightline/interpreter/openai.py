"""OpenAI-compatible inference provider implementation.

Works with OpenAI, OpenRouter, and any OpenAI-compatible API
by setting a custom base_url.
"""

from __future__ import annotations

import logging

from sightline.domain.errors import InferenceError
from sightline.domain.models import CapturedImage, ChatMessage, MessageRole
from sightline.interpreter.base import InferenceProvider

logger = logging.getLogger(__name__)


class OpenAIProvider(InferenceProvider):
    """Inference provider using OpenAI's chat completions API.

    Also works with OpenRouter and other OpenAI-compatible endpoints.
    """

    name = "openai"

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o",
        base_url: str | None = None,
        analysis_prompt: str | None = None,
        chat_prompt: str | None = None,
        max_tokens: int = 512,
    ) -> None:
        super().__init__(model=model, analysis_prompt=analysis_prompt, chat_prompt=chat_prompt)
        self._api_key = api_key
        self._base_url = base_url
        self._max_tokens = max_tokens
        self._client = None

    async def _ensure_client(self) -> None:
        """Lazily initialize the OpenAI async client."""
        if self._client is not None:
            return
        from openai import AsyncOpenAI
        kwargs = {"api_key": self._api_key}
        if self._base_url:
            kwargs["base_url"] = self._base_url
        self._client = AsyncOpenAI(**kwargs)
        logger.info("Initialized OpenAI client (model=%s, base_url=%s)", self._model, self._base_url)

    def _image_part(self, image: CapturedImage) -> dict:
        b64_image = self._encode_image_to_base64(image)
        return {
            "type": "image_url",
            "image_url": {
                "url": f"data:image/png;base64,{b64_image}",
                "detail": "high",
            },
        }

    async def analyze_image(self, image: CapturedImage) -> str:
        """Describe a screenshot using the vision API."""
        messages = [
            {"role": "system", "content": self._analysis_prompt},
            {
                "role": "user",
                "content": [
                    self._image_part(image),
                    {"type": "text", "text": "Report one finding for this screenshot."},
                ],
            },
        ]
        return await self._complete(messages)

    async def reply(
        self,
        text: str,
        image: CapturedImage | None = None,
        history: list[ChatMessage] | None = None,
    ) -> str:
        """Answer a user turn, attaching the latest screenshot when available."""
        messages: list[dict] = [{"role": "system", "content": self._chat_prompt}]
        for message in history or []:
            role = "user" if message.role == MessageRole.USER else "assistant"
            messages.append({"role": role, "content": message.text})

        if image is not None:
            content: str | list[dict] = [self._image_part(image), {"type": "text", "text": text}]
        else:
            content = text
        messages.append({"role": "user", "content": content})
        return await self._complete(messages)

    async def _complete(self, messages: list[dict]) -> str:
        await self._ensure_client()
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                max_tokens=self._max_tokens,
                messages=messages,
            )
        except Exception as e:
            raise self._error(f"OpenAI API call failed: {e}") from e

        raw_text = response.choices[0].message.content if response.choices else None
        if not raw_text or not raw_text.strip():
            raise self._error("OpenAI API returned an empty response", raw_response=raw_text or "")
        logger.debug("Inference raw response: %s", raw_text[:200])
        return raw_text.strip()

    async def health_check(self) -> bool:
        """Check if the API is reachable."""
        try:
            await self._ensure_client()
            await self._client.models.list()
            return True
        except Exception as e:
            logger.warning("Health check failed: %s", e)
            return False


__all__ = ["OpenAIProvider", "InferenceError"]
