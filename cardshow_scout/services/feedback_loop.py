"""Feedback loop: turn admin decisions into per-source trust.

# ─── ARCHITECTURE ────────────────────────────────────────────────────
#
# Reads the append-only admin_feedback log through IPendingStore and
# writes ONLY to the source registry:
#
#   get_feedback_stats()  → approval / rejection rates, average confidence
#                           of approved rows, field-correction and
#                           rejection-tag counts per source
#   update_priorities()   → tiered priority adjustment per enabled source
#                           (dry_run computes without writing)
#   record_fetch_*()      → error-streak bookkeeping, auto-disable and the
#                           per-run priority nudge (+yield on success,
#                           -1 on a failed fetch)
#
# It never mutates pending rows or canonical shows.
#
# Layer: Services (depends on Interfaces, used by pipeline, API and CLI)
# ─────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import re
from collections import Counter, defaultdict
from datetime import datetime, timedelta, timezone
from typing import Callable

import structlog

from cardshow_scout.interfaces.pending_store import IPendingStore
from cardshow_scout.interfaces.source_registry import ISourceRegistry
from cardshow_scout.models.feedback import (
    REJECTION_TAGS,
    FeedbackAction,
    FeedbackRecord,
    PriorityChange,
    SourceFeedbackStats,
)
from cardshow_scout.models.source import ScrapingSource

logger = structlog.get_logger(logger_name=__name__)

_TAG_SECTION_RE = re.compile(r"[-–]")
_TAG_SPLIT_RE = re.compile(r"[,\s]+")

# (minimum rejection rate %, penalty, floor), checked in order.
_PENALTY_TIERS: tuple[tuple[float, float, float], ...] = (
    (80.0, 20.0, 10.0),
    (50.0, 10.0, 20.0),
    (30.0, 5.0, 30.0),
)
_BONUS_MAX_REJECTION = 10.0
_BONUS_MIN_DECISIONS = 10
_BONUS = 5.0
_APPROVALS_PER_VOLUME_POINT = 25
_VOLUME_BONUS_CAP = 5.0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_rejection_tags(reason: str | None) -> list[str]:
    """Return the tags written before the first dash of *reason*.

    ``"DATE_FORMAT STATE_FULL - dates still carry the state"`` gives
    ``["DATE_FORMAT", "STATE_FULL"]``.  Without a dash the whole reason is
    the tag section.  A section holding any word that is not a known tag
    is free text and yields no tags, so ``"looks like spam"`` gives ``[]``.
    """
    if not reason:
        return []
    head = _TAG_SECTION_RE.split(reason, maxsplit=1)[0]
    words = [w.upper() for w in _TAG_SPLIT_RE.split(head) if w]
    if not words or any(w not in REJECTION_TAGS for w in words):
        return []
    return words


def compute_priority(current: float, stats: SourceFeedbackStats) -> tuple[float, str]:
    """Return the adjusted priority and a short reason.

    The result never rises with a higher rejection rate, never falls with
    more approvals, and stays within [0, 100].
    """
    new = current
    reason = "no change"

    for threshold, penalty, floor in _PENALTY_TIERS:
        if stats.rejection_rate >= threshold:
            # A floor never lifts a source that already sits below it.
            new = min(current, max(floor, current - penalty))
            reason = f"rejection rate {stats.rejection_rate:g}% >= {threshold:g}%"
            break
    else:
        if (
            stats.rejection_rate <= _BONUS_MAX_REJECTION
            and stats.total >= _BONUS_MIN_DECISIONS
        ):
            new = current + _BONUS
            reason = f"rejection rate {stats.rejection_rate:g}% with {stats.total} decisions"

    volume_bonus = min(_VOLUME_BONUS_CAP, float(stats.approved // _APPROVALS_PER_VOLUME_POINT))
    if volume_bonus:
        new += volume_bonus
        reason += f"; volume bonus +{volume_bonus:g}"

    return max(0.0, min(100.0, new)), reason


def aggregate_feedback(records: list[FeedbackRecord]) -> list[SourceFeedbackStats]:
    """Aggregate feedback records per source, largest sources first."""
    grouped: dict[str, list[FeedbackRecord]] = defaultdict(list)
    for record in records:
        grouped[record.source_url].append(record)

    stats: list[SourceFeedbackStats] = []
    for source_url, rows in grouped.items():
        approved = [r for r in rows if r.action is not FeedbackAction.REJECTED]
        rejected = [r for r in rows if r.action is FeedbackAction.REJECTED]
        total = len(rows)

        corrections: Counter[str] = Counter()
        for row in approved:
            corrections.update(row.field_corrections.keys())
        tags: Counter[str] = Counter()
        for row in rejected:
            tags.update(parse_rejection_tags(row.notes))

        avg_confidence = None
        if approved:
            avg_confidence = round(sum(r.confidence_score for r in approved) / len(approved), 1)

        stats.append(
            SourceFeedbackStats(
                source_url=source_url,
                total=total,
                approved=len(approved),
                rejected=len(rejected),
                approval_rate=round(100.0 * len(approved) / total, 1),
                rejection_rate=round(100.0 * len(rejected) / total, 1),
                avg_confidence=avg_confidence,
                field_corrections=dict(corrections),
                rejection_tags=dict(tags),
            )
        )

    stats.sort(key=lambda s: (-s.total, s.source_url))
    return stats


class FeedbackLoop:
    """Aggregates admin decisions and updates the source registry."""

    def __init__(
        self,
        *,
        pending_store: IPendingStore,
        source_registry: ISourceRegistry,
        window_days: int = 30,
        min_count: int = 1,
        priority_min_count: int = 10,
        error_streak_threshold: int = 5,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = pending_store
        self._registry = source_registry
        self._window_days = window_days
        self._min_count = min_count
        self._priority_min_count = priority_min_count
        self._error_streak_threshold = error_streak_threshold
        self._clock = clock

    async def get_feedback_stats(
        self, days_ago: int | None = None, min_count: int | None = None
    ) -> list[SourceFeedbackStats]:
        """Per-source decision statistics over the trailing window."""
        days = self._window_days if days_ago is None else days_ago
        minimum = self._min_count if min_count is None else min_count
        since = self._clock() - timedelta(days=days)
        records = await self._store.list_feedback(since)
        return [s for s in aggregate_feedback(records) if s.total >= minimum]

    async def update_priorities(
        self,
        days_ago: int | None = None,
        min_count: int | None = None,
        dry_run: bool = False,
    ) -> list[PriorityChange]:
        """Recompute priority scores for enabled sources with enough decisions.

        *min_count* defaults to ``priority_min_count``.  With *dry_run* the
        changes are computed and returned but nothing is written.
        """
        minimum = self._priority_min_count if min_count is None else min_count
        changes: list[PriorityChange] = []
        for stats in await self.get_feedback_stats(days_ago, minimum):
            source = await self._registry.get(stats.source_url)
            if source is None or not source.enabled:
                continue
            new_priority, reason = compute_priority(source.priority_score, stats)
            if new_priority == source.priority_score:
                continue
            if not dry_run:
                await self._registry.set_priority(source.url, new_priority)
            changes.append(
                PriorityChange(
                    source_url=source.url,
                    old_priority=source.priority_score,
                    new_priority=new_priority,
                    rejection_rate=stats.rejection_rate,
                    reason=reason,
                )
            )

        logger.info("priorities_updated", changed=len(changes), dry_run=dry_run)
        return changes

    async def record_fetch_success(
        self, url: str, show_count: int = 0
    ) -> ScrapingSource | None:
        return await self._registry.record_fetch_success(url, show_count)

    async def record_fetch_failure(self, url: str) -> ScrapingSource | None:
        return await self._registry.record_fetch_failure(url, self._error_streak_threshold)
