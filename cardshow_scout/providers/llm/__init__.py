"""LLM provider adapters.

Two concrete implementations of ILLMProvider (cardshow_scout/interfaces/llm_provider.py):
    - OpenAILLMProvider    - gpt-4o-mini (also any OpenAI-compatible endpoint)
    - AnthropicLLMProvider - Claude via the Messages API

main.build_services() creates the provider matching the configured API key
(OPENAI_API_KEY first, then ANTHROPIC_API_KEY) and hands it to the extractor.
"""

from cardshow_scout.providers.llm.anthropic_provider import AnthropicLLMProvider
from cardshow_scout.providers.llm.openai_provider import OpenAILLMProvider

__all__ = ["OpenAILLMProvider", "AnthropicLLMProvider"]
