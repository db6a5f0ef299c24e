"""Text generation backing ``POST /api/generate``.

Any OpenAI-compatible chat completion endpoint works; the deltas are
relayed verbatim, so the directive tags come from the model itself.
"""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Optional

import openai
from openai import AsyncOpenAI

from ..config import Settings, get_settings
from ..exceptions import GenerationServiceError
from ..stream.transport import GenerationRequest
from .prompts import build_generation_messages
from .retry import with_retry

logger = logging.getLogger(__name__)

RETRYABLE_ERRORS = (
    openai.RateLimitError,
    openai.APITimeoutError,
    openai.APIConnectionError,
    openai.InternalServerError,
)


def _map_error(exc: Exception) -> GenerationServiceError:
    if isinstance(exc, openai.RateLimitError):
        return GenerationServiceError(
            "Rate limit exceeded. Please wait a moment before trying again.",
            retryable=True,
        )
    if isinstance(exc, openai.AuthenticationError):
        return GenerationServiceError("Generation service rejected the API key")
    if isinstance(exc, openai.APITimeoutError):
        return GenerationServiceError("Generation service timed out", retryable=True)
    if isinstance(exc, openai.OpenAIError):
        return GenerationServiceError(f"Generation service error: {exc}", retryable=isinstance(exc, RETRYABLE_ERRORS))
    return GenerationServiceError(f"Generation failed: {exc}")


class LLMGenerator:
    def __init__(
        self,
        *,
        settings: Optional[Settings] = None,
        client: Optional[Any] = None,
    ) -> None:
        self._settings = settings or get_settings()
        if client is None:
            if not self._settings.openai_api_key:
                raise GenerationServiceError("OPENAI_API_KEY is not configured")
            client = AsyncOpenAI(
                api_key=self._settings.openai_api_key,
                base_url=self._settings.openai_base_url,
                timeout=self._settings.openai_timeout_seconds,
            )
        self._client = client

    async def _open_stream(self, request: GenerationRequest) -> Any:
        return await self._client.chat.completions.create(
            model=self._settings.model,
            messages=build_generation_messages(request),
            temperature=self._settings.temperature,
            max_tokens=self._settings.max_tokens,
            stream=True,
        )

    async def stream(self, request: GenerationRequest) -> AsyncIterator[str]:
        """Yield text deltas; only opening the stream is retried."""
        try:
            completion = await with_retry(
                self._open_stream,
                request,
                max_retries=self._settings.openai_max_retries,
                base_delay=self._settings.openai_base_delay,
                retry_on=RETRYABLE_ERRORS,
            )
            async for chunk in completion:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta
                content = getattr(delta, "content", None) if delta is not None else None
                if content:
                    yield content
        except openai.OpenAIError as exc:
            logger.warning("Generation stream failed: %s", exc)
            raise _map_error(exc) from exc


__all__ = ["RETRYABLE_ERRORS", "LLMGenerator"]
