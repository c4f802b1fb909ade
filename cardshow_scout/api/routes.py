"""Admin review API endpoints for cardshow_scout.

# ─── ROUTE ARCHITECTURE ─────────────────────────────────────────────
#
# These endpoints back the external admin dashboard.  All routes
# delegate to ReviewService and FeedbackLoop (stored on app.state); the
# route handlers are thin wrappers that validate input and format output.
#
# Endpoints:
#   GET  /admin/pending                - Review queue, most confident first
#   GET  /admin/pending/duplicates     - Pending pairs that look alike
#   GET  /admin/pending/{id}           - One pending show with triage hints
#   POST /admin/pending/{id}/approve   - Approve, optionally with edits
#   POST /admin/pending/{id}/reject    - Reject with an optional reason
#   POST /admin/pending/{id}/link      - Mark as duplicate of another row
#   POST /admin/approve-batch          - Batch approve, per-item results
#   POST /admin/reject-batch           - Batch reject, per-item results
#   GET  /admin/stats/queue            - Dashboard summary counts
#   GET  /admin/stats/feedback         - Per-source decision statistics
#   POST /admin/priorities             - Recompute source priorities (?dry_run)
#
# Layer: API (depends on Services via app.state)
# ─────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request

from cardshow_scout.api.schemas import (
    ApproveRequest,
    BatchDecisionResponse,
    BulkDecisionRequest,
    DecisionResponse,
    DuplicatePairResponse,
    FeedbackStatsEntry,
    LinkDuplicateRequest,
    PendingShowResponse,
    PriorityChangeEntry,
    QueueStats,
    RejectRequest,
)
from cardshow_scout.models.pipeline import DecisionOutcome, DecisionResult

admin_router = APIRouter(prefix="/admin", tags=["admin"])

_ERROR_STATUS = {
    DecisionOutcome.NOT_FOUND: 404,
    DecisionOutcome.ALREADY_DECIDED: 409,
    DecisionOutcome.FAILED: 400,
}


def _get_review_service(request: Request):
    """Retrieve ReviewService from app.state."""
    svc = getattr(request.app.state, "review_service", None)
    if svc is None:
        raise HTTPException(status_code=503, detail="Review service unavailable")
    return svc


def _get_feedback_loop(request: Request):
    """Retrieve FeedbackLoop from app.state."""
    svc = getattr(request.app.state, "feedback_loop", None)
    if svc is None:
        raise HTTPException(status_code=503, detail="Feedback loop unavailable")
    return svc


def _decision_or_error(result: DecisionResult) -> DecisionResponse:
    status_code = _ERROR_STATUS.get(result.outcome)
    if status_code is not None:
        raise HTTPException(status_code=status_code, detail=result.message)
    return DecisionResponse.from_result(result)


def _batch_response(results: list[DecisionResult]) -> BatchDecisionResponse:
    return BatchDecisionResponse(
        succeeded=sum(1 for r in results if r.ok),
        total=len(results),
        results=[DecisionResponse.from_result(r) for r in results],
    )


@admin_router.get("/pending", response_model=list[PendingShowResponse])
async def list_pending(
    request: Request,
    limit: int = 50,
    offset: int = 0,
) -> list[PendingShowResponse]:
    """List pending shows, highest confidence first."""
    svc = _get_review_service(request)
    rows = await svc.list_pending(limit=limit, offset=offset)
    return [PendingShowResponse.from_pending(r) for r in rows]


@admin_router.get("/pending/duplicates", response_model=list[DuplicatePairResponse])
async def list_duplicates(
    request: Request, threshold: float = 0.85
) -> list[DuplicatePairResponse]:
    """List pairs of pending shows whose names look alike."""
    svc = _get_review_service(request)
    pairs = await svc.find_duplicate_pending(threshold)
    return [
        DuplicatePairResponse(
            first_id=p.first.id,
            second_id=p.second.id,
            first_name=p.first.raw_payload.name,
            second_name=p.second.raw_payload.name,
            similarity=round(p.similarity, 3),
        )
        for p in pairs
    ]


@admin_router.get("/pending/{pending_id}", response_model=PendingShowResponse)
async def get_pending(request: Request, pending_id: str) -> PendingShowResponse:
    """Get details for a specific pending show."""
    svc = _get_review_service(request)
    row = await svc.get_pending(pending_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Pending show not found")
    return PendingShowResponse.from_pending(row)


@admin_router.post("/pending/{pending_id}/approve", response_model=DecisionResponse)
async def approve_pending(
    request: Request, pending_id: str, body: ApproveRequest | None = None
) -> DecisionResponse:
    """Approve a pending show and publish it as a canonical show."""
    svc = _get_review_service(request)
    body = body or ApproveRequest()
    result = await svc.approve(pending_id, edits=body.edits, notes=body.notes)
    return _decision_or_error(result)


@admin_router.post("/pending/{pending_id}/reject", response_model=DecisionResponse)
async def reject_pending(
    request: Request, pending_id: str, body: RejectRequest | None = None
) -> DecisionResponse:
    """Reject a pending show."""
    svc = _get_review_service(request)
    body = body or RejectRequest()
    result = await svc.reject(pending_id, body.reason)
    return _decision_or_error(result)


@admin_router.post("/pending/{pending_id}/link")
async def link_duplicate(
    request: Request, pending_id: str, body: LinkDuplicateRequest
) -> dict:
    """Mark a pending show as a duplicate of another row."""
    svc = _get_review_service(request)
    linked = await svc.link_duplicate(pending_id, body.duplicate_of)
    if not linked:
        raise HTTPException(status_code=404, detail="Pending show or target not found")
    return {"status": "linked", "id": pending_id, "duplicate_of": body.duplicate_of}


@admin_router.post("/approve-batch", response_model=BatchDecisionResponse)
async def approve_batch(request: Request, body: BulkDecisionRequest) -> BatchDecisionResponse:
    """Approve multiple pending shows.  Each id is decided on its own."""
    svc = _get_review_service(request)
    results = await svc.approve_batch(body.ids)
    return _batch_response(results)


@admin_router.post("/reject-batch", response_model=BatchDecisionResponse)
async def reject_batch(request: Request, body: BulkDecisionRequest) -> BatchDecisionResponse:
    """Reject multiple pending shows.  Each id is decided on its own."""
    svc = _get_review_service(request)
    results = await svc.reject_batch(body.ids, body.reason)
    return _batch_response(results)


@admin_router.get("/stats/queue", response_model=QueueStats)
async def queue_stats(request: Request) -> QueueStats:
    """Return review queue summary counts for the dashboard."""
    svc = _get_review_service(request)
    stats = await svc.queue_stats()
    return QueueStats(**stats)


@admin_router.get("/stats/feedback", response_model=list[FeedbackStatsEntry])
async def feedback_stats(
    request: Request,
    days_ago: int | None = None,
    min_count: int | None = None,
) -> list[FeedbackStatsEntry]:
    """Per-source approval and rejection statistics."""
    loop = _get_feedback_loop(request)
    stats = await loop.get_feedback_stats(days_ago=days_ago, min_count=min_count)
    return [FeedbackStatsEntry(**s.model_dump()) for s in stats]


@admin_router.post("/priorities", response_model=list[PriorityChangeEntry])
async def update_priorities(
    request: Request,
    days_ago: int | None = None,
    min_count: int | None = None,
    dry_run: bool = False,
) -> list[PriorityChangeEntry]:
    """Recompute source priorities from recent admin feedback.

    With ``dry_run=true`` the changes are returned without being applied.
    """
    loop = _get_feedback_loop(request)
    changes = await loop.update_priorities(
        days_ago=days_ago, min_count=min_count, dry_run=dry_run
    )
    return [PriorityChangeEntry(**c.model_dump()) for c in changes]
