"""
OpenAI-backed TextGenerator for report narratives.

Single-turn chat completion: the prompt is sent as one user message and the
first choice's content is returned. Errors propagate; the narrative
synthesizer owns retries and the templated fallback.
"""

from __future__ import annotations

from typing import Any

from openai import AsyncOpenAI

from backend_riskscope.config.settings import DEFAULT_OPENAI_MODEL, Settings
from backend_riskscope.core.exceptions import NarrativeGenerationFailure
from backend_riskscope.riskscope_logging import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_TOKENS = 800
DEFAULT_TEMPERATURE = 0.7


class OpenAITextGenerator:
    def __init__(
        self,
        api_key: str,
        *,
        model: str = DEFAULT_OPENAI_MODEL,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        temperature: float = DEFAULT_TEMPERATURE,
        timeout_sec: float | None = None,
        client: Any = None,
    ) -> None:
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self._api_key = api_key
        self._timeout = timeout_sec
        self._client = client

    @property
    def client(self) -> Any:
        # Built lazily so constructing the generator never touches the network
        if self._client is None:
            kwargs: dict[str, Any] = {"api_key": self._api_key}
            if self._timeout is not None:
                kwargs["timeout"] = self._timeout
            self._client = AsyncOpenAI(**kwargs)
        return self._client

    async def complete(self, prompt: str) -> str:
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )
        choices = getattr(response, "choices", None) or []
        if not choices:
            raise NarrativeGenerationFailure("completion returned no choices")
        content = choices[0].message.content
        if not content or not content.strip():
            raise NarrativeGenerationFailure("completion returned empty content")
        logger.debug("openai_completion_received", model=self.model, chars=len(content))
        return content


def build_text_generator(settings: Settings) -> OpenAITextGenerator | None:
    """Configured generator, or None when no API key is set (templated narratives only)."""
    if not settings.has_openai:
        logger.info("text_generator_disabled", reason="no_openai_api_key")
        return None
    return OpenAITextGenerator(
        settings.openai_api_key,
        model=settings.openai_model,
        max_tokens=settings.openai_max_tokens,
        temperature=settings.openai_temperature,
        timeout_sec=settings.narrative_timeout_sec,
    )
