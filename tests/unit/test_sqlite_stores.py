"""Unit tests for the SQLite source registry and pending store.

Each test runs against a fresh database file under pytest's tmp_path.
"""

from __future__ import annotations

from datetime import date, timedelta
from pathlib import Path

import pytest

from conftest import NOW, make_pending, make_show, make_unreachable

from cardshow_scout.models.feedback import FeedbackAction, FeedbackRecord, FieldCorrection
from cardshow_scout.models.show import ReviewStatus
from cardshow_scout.models.source import SourceSeed
from cardshow_scout.providers.storage.sqlite_pending_store import SQLitePendingStore
from cardshow_scout.providers.storage.sqlite_source_registry import SQLiteSourceRegistry
from cardshow_scout.services.review_service import build_canonical
from cardshow_scout.utils.errors import StorageError, StoreConflictError


def _feedback(pending, action=FeedbackAction.APPROVED, **kwargs) -> FeedbackRecord:  # noqa: ANN001
    return FeedbackRecord(
        pending_id=pending.id,
        source_url=pending.source_url,
        action=action,
        confidence_score=pending.confidence_score,
        **kwargs,
    )


# ─── Source registry ──────────────────────────────────────────────


class TestSourceRegistry:
    @pytest.mark.asyncio
    async def test_upsert_and_get(self, source_registry: SQLiteSourceRegistry) -> None:
        seed = SourceSeed(url="https://a.example.com/", priority_score=70, config={"state": "IN"})
        stored = await source_registry.upsert_seed(seed)

        assert stored.url == seed.url
        assert stored.priority_score == 70
        assert stored.config == {"state": "IN"}
        assert await source_registry.get(seed.url) == stored
        assert await source_registry.get("https://missing.example.com/") is None

    @pytest.mark.asyncio
    async def test_reimport_keeps_learned_priority(self, source_registry: SQLiteSourceRegistry) -> None:
        url = "https://a.example.com/"
        await source_registry.upsert_seed(SourceSeed(url=url))
        await source_registry.set_priority(url, 35.0)

        stored = await source_registry.upsert_seed(SourceSeed(url=url, priority_score=90, enabled=False))
        assert stored.priority_score == 35.0
        assert stored.enabled is False

    @pytest.mark.asyncio
    async def test_list_enabled_by_priority(self, source_registry: SQLiteSourceRegistry) -> None:
        await source_registry.upsert_seed(SourceSeed(url="https://low.example.com/", priority_score=20))
        await source_registry.upsert_seed(SourceSeed(url="https://high.example.com/", priority_score=80))
        await source_registry.upsert_seed(SourceSeed(url="https://off.example.com/", enabled=False))

        enabled = await source_registry.list_enabled()
        assert [s.url for s in enabled] == ["https://high.example.com/", "https://low.example.com/"]
        assert len(await source_registry.list_enabled(limit=1)) == 1
        assert len(await source_registry.list_all()) == 3

    @pytest.mark.asyncio
    async def test_error_streak_disables_after_threshold(
        self, source_registry: SQLiteSourceRegistry
    ) -> None:
        url = "https://flaky.example.com/"
        await source_registry.upsert_seed(SourceSeed(url=url))

        for _ in range(3):
            source = await source_registry.record_fetch_failure(url, threshold=3)
        assert source is not None
        assert source.error_streak == 3
        assert source.enabled is True
        assert source.last_error_at is not None

        source = await source_registry.record_fetch_failure(url, threshold=3)
        assert source is not None
        assert source.error_streak == 4
        assert source.enabled is False

    @pytest.mark.asyncio
    async def test_success_resets_streak(self, source_registry: SQLiteSourceRegistry) -> None:
        url = "https://a.example.com/"
        await source_registry.upsert_seed(SourceSeed(url=url))
        await source_registry.record_fetch_failure(url, threshold=5)

        source = await source_registry.record_fetch_success(url)
        assert source is not None
        assert source.error_streak == 0
        assert source.last_success_at is not None

    @pytest.mark.asyncio
    async def test_unknown_source_bookkeeping(self, source_registry: SQLiteSourceRegistry) -> None:
        assert await source_registry.record_fetch_success("https://nope.example.com/") is None
        assert await source_registry.record_fetch_failure("https://nope.example.com/", 5) is None

    @pytest.mark.asyncio
    async def test_unopenable_database(self, tmp_path: Path) -> None:
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")
        registry = SQLiteSourceRegistry(db_path=blocker / "db.sqlite")
        with pytest.raises(StorageError):
            await registry.initialize()

    @pytest.mark.asyncio
    async def test_lost_database_raises_storage_error(self, tmp_path: Path) -> None:
        db_path = tmp_path / "data" / "db.sqlite"
        registry = SQLiteSourceRegistry(db_path=db_path)
        await registry.initialize()
        await registry.upsert_seed(SourceSeed(url="https://a.example.com/"))
        make_unreachable(db_path)

        with pytest.raises(StorageError):
            await registry.list_enabled()
        with pytest.raises(StorageError):
            await registry.record_fetch_failure("https://a.example.com/", threshold=5)


# ─── Pending store: queue ─────────────────────────────────────────


class TestPendingQueue:
    @pytest.mark.asyncio
    async def test_insert_and_get_roundtrip(self, pending_store: SQLitePendingStore) -> None:
        pending = make_pending(make_show(entry_fee=0.0))
        await pending_store.insert(pending)

        loaded = await pending_store.get(pending.id)
        assert loaded is not None
        assert loaded.status is ReviewStatus.PENDING
        assert loaded.raw_payload == pending.raw_payload
        assert loaded.raw_payload.entry_fee == 0.0
        assert loaded.dedup_key == pending.dedup_key

    @pytest.mark.asyncio
    async def test_duplicate_key_conflicts(self, pending_store: SQLitePendingStore) -> None:
        first = make_pending()
        await pending_store.insert(first)

        with pytest.raises(StoreConflictError) as exc_info:
            await pending_store.insert(make_pending())
        assert exc_info.value.existing_id == first.id

    @pytest.mark.asyncio
    async def test_decided_row_frees_its_key(self, pending_store: SQLitePendingStore) -> None:
        first = make_pending()
        await pending_store.insert(first)
        await pending_store.reject(first.id, "", _feedback(first, FeedbackAction.REJECTED), NOW)

        await pending_store.insert(make_pending())
        assert (await pending_store.queue_stats())["total"] == 2

    @pytest.mark.asyncio
    async def test_list_pending_order(self, pending_store: SQLitePendingStore) -> None:
        sparse = make_show(name="Sparse Show", venue_name=None, address=None, description=None)
        late = make_pending(make_show(name="Late Show"), created_at=NOW + timedelta(minutes=5))
        early = make_pending(make_show(name="Early Show"), created_at=NOW)
        low = make_pending(sparse, created_at=NOW - timedelta(days=1))
        for row in (late, low, early):
            await pending_store.insert(row)

        rows = await pending_store.list_pending()
        assert [r.raw_payload.name for r in rows] == ["Early Show", "Late Show", "Sparse Show"]
        assert len(await pending_store.list_pending(limit=1, offset=1)) == 1
        assert len(await pending_store.list_pending(limit=None)) == 3

    @pytest.mark.asyncio
    async def test_find_in_window(self, pending_store: SQLitePendingStore) -> None:
        near = make_pending(make_show(start_date=date(2025, 7, 17), end_date=date(2025, 7, 17)))
        far = make_pending(
            make_show(name="Far Show", start_date=date(2025, 9, 1), end_date=date(2025, 9, 1))
        )
        await pending_store.insert(near)
        await pending_store.insert(far)

        pending, canonical = await pending_store.find_in_window(
            date(2025, 7, 15), date(2025, 7, 15), window_days=3
        )
        assert [p.id for p in pending] == [near.id]
        assert canonical == []

    @pytest.mark.asyncio
    async def test_merge_into_updates_payload(self, pending_store: SQLitePendingStore) -> None:
        pending = make_pending(make_show(description=None))
        await pending_store.insert(pending)
        merged = pending.raw_payload.model_copy(update={"description": "Now with 90 tables"})

        assert await pending_store.merge_into(pending.id, merged, 100)
        loaded = await pending_store.get(pending.id)
        assert loaded is not None
        assert loaded.raw_payload.description == "Now with 90 tables"
        assert loaded.confidence_score == 100

    @pytest.mark.asyncio
    async def test_link_duplicate(self, pending_store: SQLitePendingStore) -> None:
        a = make_pending()
        b = make_pending(make_show(name="Indy Card Expo II"))
        await pending_store.insert(a)
        await pending_store.insert(b)

        assert await pending_store.link_duplicate(b.id, a.id)
        assert not await pending_store.link_duplicate(a.id, a.id)
        loaded = await pending_store.get(b.id)
        assert loaded is not None and loaded.duplicate_of == a.id


# ─── Pending store: decisions ─────────────────────────────────────


class TestPendingDecisions:
    @pytest.mark.asyncio
    async def test_approve_writes_canonical_and_feedback(
        self, pending_store: SQLitePendingStore
    ) -> None:
        pending = make_pending()
        await pending_store.insert(pending)
        canonical = build_canonical(pending.raw_payload, pending)
        feedback = _feedback(
            pending,
            FeedbackAction.APPROVED_WITH_EDITS,
            field_corrections={"city": FieldCorrection(from_value="Indy", to_value="Indianapolis")},
        )

        assert await pending_store.approve(pending.id, canonical, feedback, NOW)

        loaded = await pending_store.get(pending.id)
        assert loaded is not None
        assert loaded.status is ReviewStatus.APPROVED
        assert loaded.decided_at == NOW

        shows = await pending_store.list_canonical()
        assert [s.id for s in shows] == [canonical.id]
        assert shows[0].pending_id == pending.id
        assert await pending_store.get_canonical(canonical.id) == shows[0]

        records = await pending_store.list_feedback(NOW - timedelta(days=1))
        assert len(records) == 1
        assert records[0].action is FeedbackAction.APPROVED_WITH_EDITS
        assert records[0].field_corrections["city"].to_value == "Indianapolis"

    @pytest.mark.asyncio
    async def test_second_decision_is_refused(self, pending_store: SQLitePendingStore) -> None:
        pending = make_pending()
        await pending_store.insert(pending)
        await pending_store.reject(
            pending.id, "SPAM", _feedback(pending, FeedbackAction.REJECTED), NOW
        )

        canonical = build_canonical(pending.raw_payload, pending)
        later = NOW + timedelta(hours=1)
        assert not await pending_store.approve(pending.id, canonical, _feedback(pending), later)
        assert not await pending_store.reject(
            pending.id, "again", _feedback(pending, FeedbackAction.REJECTED), later
        )

        loaded = await pending_store.get(pending.id)
        assert loaded is not None
        assert loaded.status is ReviewStatus.REJECTED
        assert loaded.decided_at == NOW
        assert loaded.admin_notes == "SPAM"
        assert await pending_store.list_canonical() == []
        assert len(await pending_store.list_feedback(NOW - timedelta(days=1))) == 1

    @pytest.mark.asyncio
    async def test_queue_stats(self, pending_store: SQLitePendingStore) -> None:
        a = make_pending()
        b = make_pending(make_show(name="Other Show"))
        await pending_store.insert(a)
        await pending_store.insert(b)
        await pending_store.reject(a.id, "", _feedback(a, FeedbackAction.REJECTED), NOW)

        assert await pending_store.queue_stats() == {
            "pending": 1,
            "approved": 0,
            "rejected": 1,
            "total": 2,
        }

    @pytest.mark.asyncio
    async def test_lost_queue_database_raises_storage_error(self, tmp_path: Path) -> None:
        db_path = tmp_path / "data" / "db.sqlite"
        store = SQLitePendingStore(db_path=db_path)
        await store.initialize()
        pending = make_pending()
        await store.insert(pending)
        make_unreachable(db_path)

        with pytest.raises(StorageError):
            await store.insert(make_pending(make_show(name="Other Show")))
        with pytest.raises(StorageError):
            await store.get(pending.id)
        with pytest.raises(StorageError):
            await store.find_in_window(date(2025, 7, 15), date(2025, 7, 15))
        with pytest.raises(StorageError):
            await store.queue_stats()
