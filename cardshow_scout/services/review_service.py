"""Review decision service: the PENDING → APPROVED / REJECTED state machine.

# ─── ARCHITECTURE ────────────────────────────────────────────────────
#
# ReviewService sits between the admin API routes and the pending store.
#
#   approve(id, edits) → merge admin edits into the normalized payload,
#                        write a canonical show, flip the row to APPROVED,
#                        append an approved / approved_with_edits feedback
#                        record with per-field {from, to} diffs
#   reject(id, reason) → flip the row to REJECTED, append a rejected
#                        feedback record carrying the reason and its tags
#
# Every decision returns a DecisionResult instead of raising.  Deciding an
# already-decided row is a no-op reported as ``already_decided``; batch
# variants decide each id on its own so one failure never aborts the rest.
#
# Layer: Services (depends on Interfaces, used by API routes and CLI)
# ─────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable

import structlog
from pydantic import ValidationError

from cardshow_scout.interfaces.pending_store import IPendingStore
from cardshow_scout.models.feedback import FeedbackAction, FeedbackRecord, FieldCorrection
from cardshow_scout.models.pipeline import DecisionOutcome, DecisionResult, DuplicatePair
from cardshow_scout.models.show import CanonicalShow, NormalizedShow, PendingShow
from cardshow_scout.services.deduplicator import find_duplicate_pairs
from cardshow_scout.utils.errors import CardShowScoutError

logger = structlog.get_logger(logger_name=__name__)

# Accept both snake_case and the camelCase keys used in raw_payload.
_EDITABLE_FIELDS: dict[str, str] = {}
for _name, _info in NormalizedShow.model_fields.items():
    _EDITABLE_FIELDS[_name] = _name
    if _info.alias:
        _EDITABLE_FIELDS[_info.alias] = _name


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def build_canonical(show: NormalizedShow, pending: PendingShow) -> CanonicalShow:
    """Map an approved payload to a canonical show row."""
    location_parts = [show.venue_name, show.address, show.city, show.state]
    location = ", ".join(p for p in location_parts if p) or None
    return CanonicalShow(
        title=show.name,
        location=location,
        address=show.address,
        city=show.city,
        state=show.state,
        start_date=show.start_date,
        end_date=show.end_date,
        entry_fee=show.entry_fee,
        description=show.description,
        url=show.url,
        contact_info=show.contact_info,
        pending_id=pending.id,
        source_url=pending.source_url,
    )


def apply_edits(
    show: NormalizedShow, edits: dict[str, Any]
) -> tuple[NormalizedShow, dict[str, FieldCorrection]]:
    """Apply admin edits and return the edited show with its field diffs.

    Raises
    ------
    ValueError
        If an edit names an unknown field or produces an invalid show.
    """
    unknown = sorted(k for k in edits if k not in _EDITABLE_FIELDS)
    if unknown:
        raise ValueError(f"Unknown fields: {', '.join(unknown)}")

    original = show.model_dump(mode="json")
    updated = dict(original)
    for key, value in edits.items():
        updated[_EDITABLE_FIELDS[key]] = value

    try:
        edited = NormalizedShow.model_validate(updated)
    except ValidationError as exc:
        raise ValueError(f"Invalid edits: {exc.error_count()} validation error(s)") from exc

    after = edited.model_dump(mode="json")
    corrections = {
        name: FieldCorrection(from_value=original[name], to_value=after[name])
        for name in original
        if original[name] != after[name]
    }
    return edited, corrections


class ReviewService:
    """Applies admin decisions to pending shows.

    All external dependencies are injected.
    """

    def __init__(
        self,
        *,
        pending_store: IPendingStore,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = pending_store
        self._clock = clock

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    async def approve(
        self,
        pending_id: str,
        edits: dict[str, Any] | None = None,
        notes: str = "",
    ) -> DecisionResult:
        """Approve one pending show, optionally with field edits."""
        pending = await self._store.get(pending_id)
        if pending is None:
            return DecisionResult(
                pending_id=pending_id,
                outcome=DecisionOutcome.NOT_FOUND,
                message="Pending show not found",
            )
        if pending.is_decided:
            return self._already_decided(pending)

        try:
            show, corrections = apply_edits(pending.raw_payload, edits or {})
        except ValueError as exc:
            return DecisionResult(
                pending_id=pending_id, outcome=DecisionOutcome.FAILED, message=str(exc)
            )

        decided_at = self._clock()
        canonical = build_canonical(show, pending)
        feedback = FeedbackRecord(
            pending_id=pending_id,
            source_url=pending.source_url,
            action=(
                FeedbackAction.APPROVED_WITH_EDITS if corrections else FeedbackAction.APPROVED
            ),
            field_corrections=corrections,
            confidence_score=pending.confidence_score,
            notes=notes,
            created_at=decided_at,
        )

        try:
            updated = await self._store.approve(pending_id, canonical, feedback, decided_at)
        except CardShowScoutError as exc:
            logger.error("approve_failed", pending_id=pending_id, error=str(exc))
            return DecisionResult(
                pending_id=pending_id, outcome=DecisionOutcome.FAILED, message=str(exc)
            )
        if not updated:
            # Decided by someone else between the read and the write.
            return await self._reload_already_decided(pending_id)

        logger.info(
            "show_approved",
            pending_id=pending_id,
            show_id=canonical.id,
            edited_fields=sorted(corrections),
        )
        return DecisionResult(
            pending_id=pending_id,
            outcome=DecisionOutcome.APPROVED,
            canonical_show=canonical,
            message="Show approved",
        )

    async def reject(self, pending_id: str, reason: str = "") -> DecisionResult:
        """Reject one pending show.  *reason* may start with rejection tags."""
        pending = await self._store.get(pending_id)
        if pending is None:
            return DecisionResult(
                pending_id=pending_id,
                outcome=DecisionOutcome.NOT_FOUND,
                message="Pending show not found",
            )
        if pending.is_decided:
            return self._already_decided(pending)

        decided_at = self._clock()
        feedback = FeedbackRecord(
            pending_id=pending_id,
            source_url=pending.source_url,
            action=FeedbackAction.REJECTED,
            confidence_score=pending.confidence_score,
            notes=reason,
            created_at=decided_at,
        )
        try:
            updated = await self._store.reject(pending_id, reason, feedback, decided_at)
        except CardShowScoutError as exc:
            logger.error("reject_failed", pending_id=pending_id, error=str(exc))
            return DecisionResult(
                pending_id=pending_id, outcome=DecisionOutcome.FAILED, message=str(exc)
            )
        if not updated:
            return await self._reload_already_decided(pending_id)

        return DecisionResult(
            pending_id=pending_id,
            outcome=DecisionOutcome.REJECTED,
            message="Show rejected",
        )

    async def approve_batch(self, pending_ids: list[str]) -> list[DecisionResult]:
        """Approve each id independently; one failure never aborts the rest."""
        results = []
        for pending_id in pending_ids:
            results.append(await self._isolated(self.approve(pending_id), pending_id))
        logger.info(
            "batch_approved",
            approved=sum(1 for r in results if r.outcome is DecisionOutcome.APPROVED),
            total=len(pending_ids),
        )
        return results

    async def reject_batch(self, pending_ids: list[str], reason: str = "") -> list[DecisionResult]:
        """Reject each id independently; one failure never aborts the rest."""
        results = []
        for pending_id in pending_ids:
            results.append(await self._isolated(self.reject(pending_id, reason), pending_id))
        logger.info(
            "batch_rejected",
            rejected=sum(1 for r in results if r.outcome is DecisionOutcome.REJECTED),
            total=len(pending_ids),
        )
        return results

    # ------------------------------------------------------------------
    # Queue
    # ------------------------------------------------------------------

    async def list_pending(self, limit: int = 50, offset: int = 0) -> list[PendingShow]:
        """Return the review queue, most confident first."""
        return await self._store.list_pending(limit, offset)

    async def get_pending(self, pending_id: str) -> PendingShow | None:
        return await self._store.get(pending_id)

    async def queue_stats(self) -> dict[str, int]:
        return await self._store.queue_stats()

    async def find_duplicate_pending(self, threshold: float = 0.85) -> list[DuplicatePair]:
        """Pairs of PENDING rows that look like the same event."""
        rows = await self._store.list_pending(limit=None)
        return find_duplicate_pairs(rows, threshold)

    async def link_duplicate(self, pending_id: str, duplicate_of: str) -> bool:
        """Mark one PENDING row as a duplicate of another row."""
        if await self._store.get(duplicate_of) is None:
            return False
        return await self._store.link_duplicate(pending_id, duplicate_of)

    # ─── Private helpers ─────────────────────────────────────────────

    @staticmethod
    def _already_decided(pending: PendingShow) -> DecisionResult:
        return DecisionResult(
            pending_id=pending.id,
            outcome=DecisionOutcome.ALREADY_DECIDED,
            message=f"Pending show already {pending.status.value}",
        )

    async def _reload_already_decided(self, pending_id: str) -> DecisionResult:
        pending = await self._store.get(pending_id)
        if pending is None:
            return DecisionResult(
                pending_id=pending_id,
                outcome=DecisionOutcome.NOT_FOUND,
                message="Pending show not found",
            )
        return self._already_decided(pending)

    @staticmethod
    async def _isolated(decision: Any, pending_id: str) -> DecisionResult:
        try:
            return await decision
        except Exception as exc:
            logger.error("batch_item_failed", pending_id=pending_id, error=str(exc))
            return DecisionResult(
                pending_id=pending_id, outcome=DecisionOutcome.FAILED, message=str(exc)
            )
