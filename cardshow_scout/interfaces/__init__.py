"""Public interface definitions for external services and storage.

Every external dependency of the ingestion pipeline is accessed through the
abstract base classes defined in this package.  Concrete adapters implement
them and are wired together in ``cardshow_scout/main.py``, so business logic
never imports ``openai`` or ``aiosqlite`` directly and tests can inject
``MagicMock(spec=...)`` doubles.

CONCRETE PROVIDER MAP:
    Interface          →  Concrete implementations (in cardshow_scout/providers/)
    ─────────────────────────────────────────────────────────────────────
    ILLMProvider       →  OpenAILLMProvider, AnthropicLLMProvider
    ISourceRegistry    →  SQLiteSourceRegistry
    IPendingStore      →  SQLitePendingStore
"""

from cardshow_scout.interfaces.llm_provider import ILLMProvider
from cardshow_scout.interfaces.pending_store import IPendingStore
from cardshow_scout.interfaces.source_registry import ISourceRegistry

__all__ = [
    "ILLMProvider",
    "IPendingStore",
    "ISourceRegistry",
]
