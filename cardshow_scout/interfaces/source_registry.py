"""Abstract base class for the Source Registry.

The registry holds the configured source URLs together with their enable
flag, priority score and fetch bookkeeping.  Writes are row-scoped (one
source URL per call) so concurrent workers never need a global lock.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from cardshow_scout.models.source import ScrapingSource, SourceSeed


# Concrete implementation: SQLiteSourceRegistry (cardshow_scout/providers/storage/)
class ISourceRegistry(ABC):
    """Contract for scraping source persistence."""

    @abstractmethod
    async def initialize(self) -> None:
        """Create the schema if it does not exist."""

    @abstractmethod
    async def upsert_seed(self, seed: SourceSeed) -> ScrapingSource:
        """Insert a source or update its configured fields.

        Runtime counters (``error_streak``, timestamps) of an existing row are
        left untouched.
        """

    @abstractmethod
    async def get(self, url: str) -> ScrapingSource | None:
        """Return the source registered under *url*, or ``None``."""

    @abstractmethod
    async def list_all(self) -> list[ScrapingSource]:
        """Return every source, highest priority first."""

    @abstractmethod
    async def list_enabled(self, limit: int | None = None) -> list[ScrapingSource]:
        """Return enabled sources ordered by ``priority_score`` descending."""

    @abstractmethod
    async def record_fetch_success(
        self, url: str, show_count: int = 0
    ) -> ScrapingSource | None:
        """Set ``last_success_at``, reset the error streak and re-enable.

        The priority score rises by *show_count*, at most 5 points, capped
        at 100.
        """

    @abstractmethod
    async def record_fetch_failure(self, url: str, threshold: int) -> ScrapingSource | None:
        """Set ``last_error_at`` and increment the error streak.

        The source is disabled once the streak exceeds *threshold*.  The priority
        score drops by one point, floored at 0.
        """

    @abstractmethod
    async def set_priority(self, url: str, priority_score: float) -> None:
        """Overwrite the priority score of one source."""
