"""Abstract base class for the Pending Store.

The pending store owns the review queue (``scraped_shows_pending``), the
canonical ``shows`` table and the append-only ``admin_feedback`` log.  All
writes are row-scoped; the only cross-row guarantee is the uniqueness of the
dedup key among PENDING rows, which is enforced at insert time.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date, datetime

from cardshow_scout.models.feedback import FeedbackRecord
from cardshow_scout.models.show import CanonicalShow, NormalizedShow, PendingShow


# Concrete implementation: SQLitePendingStore (cardshow_scout/providers/storage/)
class IPendingStore(ABC):
    """Contract for review-queue and canonical-show persistence."""

    @abstractmethod
    async def initialize(self) -> None:
        """Create the schema if it does not exist."""

    # -- Review queue ------------------------------------------------------

    @abstractmethod
    async def insert(self, pending: PendingShow) -> PendingShow:
        """Persist a new PENDING row.

        Raises
        ------
        cardshow_scout.utils.errors.StoreConflictError
            If a PENDING row already holds ``pending.dedup_key``.
        """

    @abstractmethod
    async def get(self, pending_id: str) -> PendingShow | None:
        """Return the pending row with *pending_id* in any status."""

    @abstractmethod
    async def list_pending(self, limit: int | None = 50, offset: int = 0) -> list[PendingShow]:
        """Return PENDING rows by ``(confidence desc, created_at asc)``."""

    @abstractmethod
    async def find_in_window(
        self, start: date, end: date, window_days: int = 3
    ) -> tuple[list[PendingShow], list[CanonicalShow]]:
        """Return PENDING rows and canonical shows whose dates fall within
        *window_days* of the ``[start, end]`` range."""

    @abstractmethod
    async def merge_into(
        self, pending_id: str, payload: NormalizedShow, confidence_score: int
    ) -> bool:
        """Replace the payload of a row that is still PENDING.

        Returns ``False`` when the row no longer exists or was decided.
        """

    @abstractmethod
    async def link_duplicate(self, pending_id: str, duplicate_of: str) -> bool:
        """Point a PENDING row at the row it duplicates."""

    @abstractmethod
    async def queue_stats(self) -> dict[str, int]:
        """Return row counts by status plus a ``total``."""

    # -- Decisions -----------------------------------------------------------

    @abstractmethod
    async def approve(
        self,
        pending_id: str,
        canonical: CanonicalShow,
        feedback: FeedbackRecord,
        decided_at: datetime,
    ) -> bool:
        """Atomically mark a PENDING row APPROVED, write *canonical* and
        append *feedback*.  Returns ``False`` if the row was not PENDING."""

    @abstractmethod
    async def reject(
        self,
        pending_id: str,
        admin_notes: str,
        feedback: FeedbackRecord,
        decided_at: datetime,
    ) -> bool:
        """Atomically mark a PENDING row REJECTED and append *feedback*.
        Returns ``False`` if the row was not PENDING."""

    # -- Canonical shows and feedback --------------------------------------

    @abstractmethod
    async def get_canonical(self, show_id: str) -> CanonicalShow | None:
        """Return one canonical show."""

    @abstractmethod
    async def list_canonical(self) -> list[CanonicalShow]:
        """Return every canonical show ordered by start date."""

    @abstractmethod
    async def list_feedback(self, since: datetime) -> list[FeedbackRecord]:
        """Return feedback records created at or after *since*, oldest first."""
