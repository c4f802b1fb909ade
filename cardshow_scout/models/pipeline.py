"""Outcome models reported by the ingestion pipeline and the review API.

Failures local to one chunk or one source are recorded in these models
instead of being raised, so a batch run always finishes with a per-source
summary and a batch decision always returns a per-item result.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from cardshow_scout.models.show import CanonicalShow, NormalizedShow, PendingShow, RawCandidate


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------
class ChunkExtraction(BaseModel):
    """Candidates parsed from one chunk.  A failed chunk has none."""

    model_config = ConfigDict(frozen=True)

    chunk_index: int = Field(ge=0)
    candidates: list[RawCandidate] = Field(default_factory=list)
    failed: bool = False
    error: str | None = None
    # Parsed objects discarded because their date had already passed.
    past_dropped: int = 0


# ---------------------------------------------------------------------------
# Deduplication
# ---------------------------------------------------------------------------
class DedupAction(str, Enum):  # noqa: UP042
    """What the deduplicator decided for one candidate."""

    INSERT = "insert"                    # no match: new PENDING row
    MERGE_PENDING = "merge_pending"      # matched a PENDING row: fill-missing merge
    MATCH_CANONICAL = "match_canonical"  # already an approved show: nothing stored


class DedupDecision(BaseModel):
    """The deduplicator's verdict for one candidate."""

    model_config = ConfigDict(frozen=True)

    action: DedupAction
    # Id of the earliest-created matching row (pending or canonical).
    duplicate_of: str | None = None
    # Field names filled into the existing row by the merge.
    merged_fields: list[str] = Field(default_factory=list)
    # Existing pending payload with the missing fields filled in.
    merged_payload: NormalizedShow | None = None


# ---------------------------------------------------------------------------
# Batch run reporting
# ---------------------------------------------------------------------------
class SourceRunStatus(str, Enum):  # noqa: UP042
    SUCCESS = "success"
    PARTIAL = "partial"    # some chunks failed or the time budget ran out
    FAILED = "failed"      # fetch failed or every chunk failed
    SKIPPED = "skipped"    # batch cancelled before this source started


class SourceRunSummary(BaseModel):
    """What happened to one source during a batch run."""

    model_config = ConfigDict(frozen=True)

    source_url: str
    status: SourceRunStatus
    chunks_total: int = 0
    chunks_failed: int = 0
    chunks_skipped: int = 0
    candidates_extracted: int = 0
    dropped: int = 0
    inserted: int = 0
    merged: int = 0
    matched_canonical: int = 0
    error: str | None = None


class BatchReport(BaseModel):
    """Per-source summary of one batch run."""

    model_config = ConfigDict(frozen=True)

    started_at: datetime
    finished_at: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc)  # noqa: UP017
    )
    cancelled: bool = False
    sources: list[SourceRunSummary] = Field(default_factory=list)

    @property
    def inserted(self) -> int:
        return sum(s.inserted for s in self.sources)

    @property
    def failed_sources(self) -> list[str]:
        return [s.source_url for s in self.sources if s.status is SourceRunStatus.FAILED]


# ---------------------------------------------------------------------------
# Review decisions
# ---------------------------------------------------------------------------
class DecisionOutcome(str, Enum):  # noqa: UP042
    APPROVED = "approved"
    REJECTED = "rejected"
    ALREADY_DECIDED = "already_decided"
    NOT_FOUND = "not_found"
    FAILED = "failed"


class DecisionResult(BaseModel):
    """Result of one approve/reject call; batch calls return one per id."""

    model_config = ConfigDict(frozen=True)

    pending_id: str
    outcome: DecisionOutcome
    canonical_show: CanonicalShow | None = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.outcome in (DecisionOutcome.APPROVED, DecisionOutcome.REJECTED)


class DuplicatePair(BaseModel):
    """Two PENDING rows that look like the same event."""

    model_config = ConfigDict(frozen=True)

    first: PendingShow
    second: PendingShow
    similarity: float = Field(ge=0.0, le=1.0)
