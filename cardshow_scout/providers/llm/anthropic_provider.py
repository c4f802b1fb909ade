"""Anthropic LLM provider adapter.

Wraps the ``anthropic`` async client to implement :class:`ILLMProvider`.

Key differences from the OpenAI adapter:
    - Uses Anthropic's Messages API (not chat.completions)
    - System prompt is a separate parameter, not a message in the list
    - Response content is a list of blocks, so text blocks are joined
"""

from __future__ import annotations

import anthropic
import structlog

from cardshow_scout.config.settings import Settings
from cardshow_scout.interfaces.llm_provider import ILLMProvider
from cardshow_scout.utils.errors import LLMError, RateLimitError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_MODEL = "claude-3-5-haiku-latest"


class AnthropicLLMProvider(ILLMProvider):
    """LLM provider backed by the Anthropic Claude API."""

    def __init__(self, settings: Settings) -> None:
        self._api_key = settings.anthropic_api_key
        self._timeout_s = settings.ai_timeout_ms / 1000.0
        self._client = anthropic.AsyncAnthropic(
            api_key=self._api_key,
            timeout=self._timeout_s,
            max_retries=0,
        )
        self._model = settings.anthropic_model or _DEFAULT_MODEL

    # ------------------------------------------------------------------
    # ILLMProvider implementation
    # ------------------------------------------------------------------

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.0,
        max_tokens: int = 4000,
    ) -> str:
        """Generate a text completion via the Anthropic Messages API."""
        try:
            response = await self._client.messages.create(
                model=self._model,
                max_tokens=max_tokens,
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
                temperature=temperature,
            )
        except anthropic.APITimeoutError as exc:
            raise LLMError(
                message=f"Anthropic timed out after {self._timeout_s:g}s",
                provider_name=self.get_provider_name(),
            ) from exc
        except anthropic.RateLimitError as exc:
            raise RateLimitError(
                message=f"Anthropic rate limit exceeded: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        except anthropic.APIError as exc:
            raise LLMError(
                message=f"Anthropic API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        text_blocks = [block.text for block in response.content if block.type == "text"]
        if not text_blocks:
            raise LLMError(
                message="Anthropic returned no text content",
                provider_name=self.get_provider_name(),
            )
        logger.info(
            "anthropic_completion",
            model=self._model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )
        return "\n".join(text_blocks)

    def is_available(self) -> bool:
        """Return ``True`` if an Anthropic API key is configured."""
        return bool(self._api_key)

    def get_provider_name(self) -> str:
        return "anthropic"
