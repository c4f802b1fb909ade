"""Pydantic v2 schemas for the admin review API.

# ─── SCHEMA DESIGN ───────────────────────────────────────────────────
#
# Same frozen=True immutability pattern as the domain models.  These
# models shape the JSON exchanged between the external admin dashboard
# and the /admin endpoints.
#
# Naming:
#   PendingShowResponse    - one review-queue row with triage hints (read)
#   ApproveRequest         - optional field edits + notes (write)
#   RejectRequest          - rejection reason, may start with tags (write)
#   BulkDecisionRequest    - batch approve/reject (write)
#   DecisionResponse       - per-item decision outcome (read)
#   BatchDecisionResponse  - per-item outcomes of a batch (read)
#   QueueStats             - dashboard summary counts (read)
#   FeedbackStatsEntry     - per-source decision stats (read, camelCase)
# ─────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from cardshow_scout.models.pipeline import DecisionResult
from cardshow_scout.models.show import PendingShow
from cardshow_scout.utils.confidence import detect_issues, needs_attention, quality_band


class PendingShowResponse(BaseModel):
    """A single pending show awaiting admin review."""
    model_config = ConfigDict(frozen=True)

    id: str
    source_url: str
    status: str
    confidence_score: int
    quality_band: str
    needs_attention: bool
    issues: list[str] = Field(default_factory=list)
    admin_notes: str = Field(default="")
    duplicate_of: str | None = None
    created_at: datetime
    decided_at: datetime | None = None
    payload: dict[str, Any] = Field(description="Normalized show, camelCase keys")

    @classmethod
    def from_pending(cls, pending: PendingShow) -> PendingShowResponse:
        return cls(
            id=pending.id,
            source_url=pending.source_url,
            status=pending.status.value,
            confidence_score=pending.confidence_score,
            quality_band=quality_band(pending.confidence_score).value,
            needs_attention=needs_attention(pending.confidence_score),
            issues=detect_issues(pending.raw_payload),
            admin_notes=pending.admin_notes,
            duplicate_of=pending.duplicate_of,
            created_at=pending.created_at,
            decided_at=pending.decided_at,
            payload=pending.raw_payload.to_payload(),
        )


class ApproveRequest(BaseModel):
    """Request body for approving a single pending show."""
    model_config = ConfigDict(frozen=True)

    edits: dict[str, Any] = Field(
        default_factory=dict,
        description="Field overrides, snake_case or camelCase keys",
    )
    notes: str = Field(default="")


class RejectRequest(BaseModel):
    """Request body for rejecting a single pending show."""
    model_config = ConfigDict(frozen=True)

    reason: str = Field(
        default="",
        description="Optional reason, e.g. 'DATE_FORMAT, STATE_FULL - wrong year'",
    )


class BulkDecisionRequest(BaseModel):
    """Request body for batch approve/reject operations."""
    model_config = ConfigDict(frozen=True)

    ids: list[str] = Field(description="Pending show IDs to approve or reject")
    reason: str = Field(default="", description="Rejection reason (only for reject)")


class LinkDuplicateRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    duplicate_of: str


class DecisionResponse(BaseModel):
    """Outcome of one decision."""
    model_config = ConfigDict(frozen=True)

    pending_id: str
    outcome: str
    message: str = Field(default="")
    show: dict[str, Any] | None = None

    @classmethod
    def from_result(cls, result: DecisionResult) -> DecisionResponse:
        show = None
        if result.canonical_show is not None:
            show = result.canonical_show.model_dump(mode="json")
        return cls(
            pending_id=result.pending_id,
            outcome=result.outcome.value,
            message=result.message,
            show=show,
        )


class BatchDecisionResponse(BaseModel):
    """Per-item outcomes of a batch decision."""
    model_config = ConfigDict(frozen=True)

    succeeded: int = Field(default=0)
    total: int = Field(default=0)
    results: list[DecisionResponse] = Field(default_factory=list)


class DuplicatePairResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    first_id: str
    second_id: str
    first_name: str
    second_name: str
    similarity: float


class QueueStats(BaseModel):
    """Summary counts for the review dashboard."""
    model_config = ConfigDict(frozen=True)

    pending: int = Field(default=0)
    approved: int = Field(default=0)
    rejected: int = Field(default=0)
    total: int = Field(default=0)


class FeedbackStatsEntry(BaseModel):
    """Per-source decision statistics, camelCase on the wire."""
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    source_url: str = Field(alias="source_url")
    total: int
    approved: int
    rejected: int
    approval_rate: float
    rejection_rate: float
    avg_confidence: float | None = None
    field_corrections: dict[str, int] = Field(default_factory=dict)
    rejection_tags: dict[str, int] = Field(default_factory=dict)


class PriorityChangeEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    source_url: str
    old_priority: float
    new_priority: float
    rejection_rate: float
    reason: str


class ErrorResponse(BaseModel):
    """Structured error body returned by the error-handling middleware."""
    model_config = ConfigDict(frozen=True)

    error: str
    detail: str
