"""Abstract base class for LLM service providers.

Defines the contract for the large-language-model backend that turns HTML
chunks into card show JSON.  Implementations wrap an OpenAI-compatible
endpoint or the Anthropic API; the extractor only ever sees this interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations: OpenAILLMProvider, AnthropicLLMProvider
# Located in: cardshow_scout/providers/llm/
class ILLMProvider(ABC):
    """Contract for the text-extraction endpoint.

    The endpoint is a fallible black box: implementations must map timeouts
    and API failures to :class:`~cardshow_scout.utils.errors.LLMError`
    (or its :class:`RateLimitError` subclass) and never return ``None``.
    """

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.0,
        max_tokens: int = 4000,
    ) -> str:
        """Generate a text completion from the model.

        Parameters
        ----------
        system_prompt:
            The system/instruction message that sets the model's behaviour.
        user_prompt:
            The user-facing prompt containing the HTML chunk.
        temperature:
            Sampling temperature (0.0 = deterministic).
        max_tokens:
            Upper bound on the number of tokens in the response.

        Returns
        -------
        str
            The model's raw text response (possibly fenced or prose-wrapped).

        Raises
        ------
        cardshow_scout.utils.errors.LLMError
            If the API call fails, times out or returns an empty response.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier such as ``"openai"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider has credentials configured."""
