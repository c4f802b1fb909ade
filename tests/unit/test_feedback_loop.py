"""Unit tests for the feedback loop: tag parsing, aggregation and priority tiers."""

from __future__ import annotations

from datetime import timedelta

import pytest

from conftest import NOW, make_pending, make_show

from cardshow_scout.models.feedback import (
    FeedbackAction,
    FeedbackRecord,
    FieldCorrection,
    SourceFeedbackStats,
)
from cardshow_scout.models.source import SourceSeed
from cardshow_scout.providers.storage.sqlite_pending_store import SQLitePendingStore
from cardshow_scout.providers.storage.sqlite_source_registry import SQLiteSourceRegistry
from cardshow_scout.services.feedback_loop import (
    FeedbackLoop,
    aggregate_feedback,
    compute_priority,
    parse_rejection_tags,
)
from cardshow_scout.services.review_service import ReviewService

_SOURCE = "https://a.example.com/"


def _stats(approved: int, rejected: int) -> SourceFeedbackStats:
    total = approved + rejected
    return SourceFeedbackStats(
        source_url=_SOURCE,
        total=total,
        approved=approved,
        rejected=rejected,
        approval_rate=round(100.0 * approved / total, 1) if total else 0.0,
        rejection_rate=round(100.0 * rejected / total, 1) if total else 0.0,
    )


def _record(action: FeedbackAction, source: str = _SOURCE, **kwargs) -> FeedbackRecord:
    return FeedbackRecord(pending_id="p", source_url=source, action=action, **kwargs)


# ======================================================================
# parse_rejection_tags
# ======================================================================


class TestParseRejectionTags:
    def test_tags_before_dash(self) -> None:
        assert parse_rejection_tags("DATE_FORMAT, STATE_FULL - date has the state") == [
            "DATE_FORMAT",
            "STATE_FULL",
        ]

    def test_lowercase_and_en_dash(self) -> None:
        assert parse_rejection_tags("spam – casino ad") == ["SPAM"]

    def test_unknown_words_ignored(self) -> None:
        assert parse_rejection_tags("looks wrong") == []
        assert parse_rejection_tags("") == []
        assert parse_rejection_tags(None) == []

    def test_free_text_is_not_tagged(self) -> None:
        assert parse_rejection_tags("looks like spam") == []
        assert parse_rejection_tags("this is spam - casino ad") == []
        assert parse_rejection_tags("Duplicate of the Indy listing") == []

    def test_bare_tag_list(self) -> None:
        assert parse_rejection_tags("SPAM") == ["SPAM"]
        assert parse_rejection_tags("duplicate, extra_html") == ["DUPLICATE", "EXTRA_HTML"]


# ======================================================================
# compute_priority
# ======================================================================


class TestComputePriority:
    @pytest.mark.parametrize(
        ("approved", "rejected", "current", "expected"),
        [
            (1, 9, 50.0, 30.0),   # 90% rejected: -20
            (1, 9, 25.0, 10.0),   # floor 10
            (1, 9, 5.0, 5.0),     # floor never raises a source
            (4, 6, 50.0, 40.0),   # 60% rejected: -10
            (4, 6, 22.0, 20.0),   # floor 20
            (6, 4, 50.0, 45.0),   # 40% rejected: -5
            (6, 4, 32.0, 30.0),   # floor 30
            (8, 2, 50.0, 50.0),   # 20% rejected: unchanged
            (10, 1, 50.0, 55.0),  # <=10% with >=10 decisions: +5
            (9, 0, 50.0, 50.0),   # too few decisions for the bonus
        ],
    )
    def test_tiers(self, approved: int, rejected: int, current: float, expected: float) -> None:
        new, _ = compute_priority(current, _stats(approved, rejected))
        assert new == pytest.approx(expected)

    def test_volume_bonus(self) -> None:
        new, reason = compute_priority(50.0, _stats(50, 0))
        assert new == pytest.approx(50.0 + 5.0 + 2.0)
        assert "volume bonus" in reason

    def test_clamped_to_100(self) -> None:
        new, _ = compute_priority(98.0, _stats(200, 0))
        assert new == 100.0

    def test_monotone_in_rejection_rate(self) -> None:
        priorities = [compute_priority(50.0, _stats(100 - r, r))[0] for r in range(0, 101, 5)]
        assert priorities == sorted(priorities, reverse=True)


# ======================================================================
# aggregate_feedback
# ======================================================================


class TestAggregateFeedback:
    def test_rates_and_counters(self) -> None:
        records = [
            _record(FeedbackAction.APPROVED, confidence_score=90),
            _record(
                FeedbackAction.APPROVED_WITH_EDITS,
                confidence_score=70,
                field_corrections={"state": FieldCorrection(from_value="Indiana", to_value="IN")},
            ),
            _record(FeedbackAction.REJECTED, confidence_score=40, notes="DATE_FORMAT - bad"),
            _record(FeedbackAction.REJECTED, source="https://b.example.com/"),
        ]
        stats = {s.source_url: s for s in aggregate_feedback(records)}

        a = stats[_SOURCE]
        assert (a.total, a.approved, a.rejected) == (3, 2, 1)
        assert a.approval_rate == 66.7
        assert a.rejection_rate == 33.3
        assert a.avg_confidence == 80.0
        assert a.field_corrections == {"state": 1}
        assert a.rejection_tags == {"DATE_FORMAT": 1}

        b = stats["https://b.example.com/"]
        assert b.rejection_rate == 100.0
        assert b.avg_confidence is None

    def test_largest_source_first(self) -> None:
        records = [_record(FeedbackAction.APPROVED, source="https://small.example.com/")]
        records += [_record(FeedbackAction.APPROVED)] * 3
        assert aggregate_feedback(records)[0].source_url == _SOURCE


# ======================================================================
# FeedbackLoop against SQLite
# ======================================================================


class TestFeedbackLoop:
    @pytest.mark.asyncio
    async def test_update_priorities_penalises_noisy_source(
        self,
        pending_store: SQLitePendingStore,
        source_registry: SQLiteSourceRegistry,
    ) -> None:
        await source_registry.upsert_seed(SourceSeed(url=_SOURCE))
        review = ReviewService(pending_store=pending_store, clock=lambda: NOW)
        for i in range(5):
            pending = make_pending(make_show(name=f"Show {i}"), source_url=_SOURCE)
            await pending_store.insert(pending)
            if i == 0:
                await review.approve(pending.id)
            else:
                await review.reject(pending.id, "SPAM")

        loop = FeedbackLoop(
            pending_store=pending_store, source_registry=source_registry, clock=lambda: NOW
        )
        stats = await loop.get_feedback_stats()
        assert stats[0].rejection_rate == 80.0
        assert stats[0].rejection_tags == {"SPAM": 4}

        changes = await loop.update_priorities(min_count=1)
        assert len(changes) == 1
        assert changes[0].old_priority == 50.0
        assert changes[0].new_priority == 30.0
        source = await source_registry.get(_SOURCE)
        assert source is not None and source.priority_score == 30.0

        # A second pass applies the tier again, starting from the new priority.
        again = await loop.update_priorities(min_count=1)
        assert again[0].new_priority == 10.0

    @pytest.mark.asyncio
    async def test_window_excludes_old_feedback(
        self,
        pending_store: SQLitePendingStore,
        source_registry: SQLiteSourceRegistry,
    ) -> None:
        await source_registry.upsert_seed(SourceSeed(url=_SOURCE))
        pending = make_pending(source_url=_SOURCE)
        await pending_store.insert(pending)
        await ReviewService(pending_store=pending_store).reject(pending.id, "SPAM")

        future = FeedbackLoop(
            pending_store=pending_store,
            source_registry=source_registry,
            clock=lambda: NOW + timedelta(days=4000),
        )
        assert await future.get_feedback_stats(days_ago=30) == []

    @pytest.mark.asyncio
    async def test_min_count_filters_sources(
        self,
        pending_store: SQLitePendingStore,
        source_registry: SQLiteSourceRegistry,
    ) -> None:
        pending = make_pending(source_url=_SOURCE)
        await pending_store.insert(pending)
        await ReviewService(pending_store=pending_store).approve(pending.id)

        loop = FeedbackLoop(pending_store=pending_store, source_registry=source_registry)
        assert len(await loop.get_feedback_stats(min_count=1)) == 1
        assert await loop.get_feedback_stats(min_count=2) == []

    @pytest.mark.asyncio
    async def test_fetch_bookkeeping_uses_threshold(
        self,
        pending_store: SQLitePendingStore,
        source_registry: SQLiteSourceRegistry,
    ) -> None:
        await source_registry.upsert_seed(SourceSeed(url=_SOURCE))
        loop = FeedbackLoop(
            pending_store=pending_store,
            source_registry=source_registry,
            error_streak_threshold=1,
        )
        await loop.record_fetch_failure(_SOURCE)
        source = await loop.record_fetch_failure(_SOURCE)
        assert source is not None and not source.enabled

        source = await loop.record_fetch_success(_SOURCE)
        assert source is not None and source.enabled and source.error_streak == 0
        assert source.priority_score == 50.0 - 2

    @pytest.mark.asyncio
    async def test_fetch_success_rewards_yield(
        self,
        pending_store: SQLitePendingStore,
        source_registry: SQLiteSourceRegistry,
    ) -> None:
        await source_registry.upsert_seed(SourceSeed(url=_SOURCE, priority_score=90))
        loop = FeedbackLoop(pending_store=pending_store, source_registry=source_registry)

        source = await loop.record_fetch_success(_SOURCE, show_count=7)
        assert source is not None and source.priority_score == 95.0
        source = await loop.record_fetch_success(_SOURCE, show_count=2)
        assert source is not None and source.priority_score == 97.0
        source = await loop.record_fetch_success(_SOURCE, show_count=5)
        assert source is not None and source.priority_score == 100.0
        source = await loop.record_fetch_success(_SOURCE)
        assert source is not None and source.priority_score == 100.0

    @pytest.mark.asyncio
    async def test_fetch_failure_floors_at_zero(
        self,
        pending_store: SQLitePendingStore,
        source_registry: SQLiteSourceRegistry,
    ) -> None:
        await source_registry.upsert_seed(SourceSeed(url=_SOURCE, priority_score=0.5))
        loop = FeedbackLoop(pending_store=pending_store, source_registry=source_registry)

        source = await loop.record_fetch_failure(_SOURCE)
        assert source is not None and source.priority_score == 0.0


async def _decide(
    pending_store: SQLitePendingStore, approved: int, rejected: int
) -> None:
    review = ReviewService(pending_store=pending_store, clock=lambda: NOW)
    for i in range(approved + rejected):
        pending = make_pending(make_show(name=f"Show {i}"), source_url=_SOURCE)
        await pending_store.insert(pending)
        if i < approved:
            await review.approve(pending.id)
        else:
            await review.reject(pending.id, "SPAM")


class TestUpdatePriorities:
    @pytest.mark.asyncio
    async def test_default_minimum_is_ten_decisions(
        self,
        pending_store: SQLitePendingStore,
        source_registry: SQLiteSourceRegistry,
    ) -> None:
        await source_registry.upsert_seed(SourceSeed(url=_SOURCE))
        await _decide(pending_store, approved=1, rejected=8)
        loop = FeedbackLoop(
            pending_store=pending_store, source_registry=source_registry, clock=lambda: NOW
        )

        assert await loop.update_priorities() == []

        await _decide(pending_store, approved=0, rejected=1)
        changes = await loop.update_priorities()
        assert [c.new_priority for c in changes] == [30.0]

    @pytest.mark.asyncio
    async def test_dry_run_writes_nothing(
        self,
        pending_store: SQLitePendingStore,
        source_registry: SQLiteSourceRegistry,
    ) -> None:
        await source_registry.upsert_seed(SourceSeed(url=_SOURCE))
        await _decide(pending_store, approved=1, rejected=9)
        loop = FeedbackLoop(
            pending_store=pending_store, source_registry=source_registry, clock=lambda: NOW
        )

        preview = await loop.update_priorities(dry_run=True)
        assert [(c.old_priority, c.new_priority) for c in preview] == [(50.0, 30.0)]
        source = await source_registry.get(_SOURCE)
        assert source is not None and source.priority_score == 50.0

        applied = await loop.update_priorities()
        assert applied == preview
        source = await source_registry.get(_SOURCE)
        assert source is not None and source.priority_score == 30.0

    @pytest.mark.asyncio
    async def test_disabled_source_is_left_alone(
        self,
        pending_store: SQLitePendingStore,
        source_registry: SQLiteSourceRegistry,
    ) -> None:
        await source_registry.upsert_seed(SourceSeed(url=_SOURCE, enabled=False))
        await _decide(pending_store, approved=0, rejected=10)
        loop = FeedbackLoop(
            pending_store=pending_store, source_registry=source_registry, clock=lambda: NOW
        )

        assert await loop.update_priorities() == []
        source = await source_registry.get(_SOURCE)
        assert source is not None and source.priority_score == 50.0
