"""SQLite-backed Pending Store: review queue, canonical shows, admin feedback.

# ─── ARCHITECTURE ────────────────────────────────────────────────────
#
# Same provider pattern as the source registry:
#   - aiosqlite for async I/O via connection.connect() (StorageError on failure)
#   - WAL mode for concurrent reads during writes
#   - Parameterized queries throughout (no string interpolation in SQL)
#   - idempotent initialize() with CREATE TABLE IF NOT EXISTS
#
# Three tables:
#   scraped_shows_pending  review queue; raw_payload is the camelCase JSON
#                          of the normalized show
#   shows                  canonical, approved events
#   admin_feedback         append-only log of review decisions
#
# Cross-run idempotency: a partial UNIQUE index on dedup_key among
# PENDING rows.  A second insert of the same event fails with an
# IntegrityError, surfaced as StoreConflictError so the caller merges.
#
# Decisions: the status flip is guarded by WHERE status = 'PENDING' and
# runs in the same transaction as the canonical insert and the feedback
# append, so a decided row can never be decided again.
#
# Layer: Providers (implements IPendingStore interface)
# Depends on: aiosqlite, structlog
# ─────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import json
from datetime import date, datetime, timedelta
from pathlib import Path

import aiosqlite
import structlog

from cardshow_scout.interfaces.pending_store import IPendingStore
from cardshow_scout.models.feedback import FeedbackRecord
from cardshow_scout.models.show import (
    CanonicalShow,
    NormalizedShow,
    PendingShow,
    ReviewStatus,
)
from cardshow_scout.providers.storage.connection import connect
from cardshow_scout.utils.errors import StorageError, StoreConflictError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/cardshow_scout.db")

_CREATE_TABLES_SQL = [
    """\
CREATE TABLE IF NOT EXISTS scraped_shows_pending (
    id                TEXT PRIMARY KEY,
    source_url        TEXT    NOT NULL,
    raw_payload       TEXT    NOT NULL,
    status            TEXT    NOT NULL DEFAULT 'PENDING',
    admin_notes       TEXT    NOT NULL DEFAULT '',
    confidence_score  INTEGER NOT NULL DEFAULT 0,
    duplicate_of      TEXT,
    dedup_key         TEXT    NOT NULL,
    start_date        TEXT    NOT NULL,
    end_date          TEXT    NOT NULL,
    created_at        TEXT    NOT NULL,
    decided_at        TEXT
);
""",
    """\
CREATE TABLE IF NOT EXISTS shows (
    id            TEXT PRIMARY KEY,
    title         TEXT NOT NULL,
    location      TEXT,
    address       TEXT,
    city          TEXT,
    state         TEXT,
    start_date    TEXT NOT NULL,
    end_date      TEXT NOT NULL,
    entry_fee     REAL,
    description   TEXT,
    url           TEXT,
    contact_info  TEXT,
    status        TEXT NOT NULL DEFAULT 'ACTIVE',
    organizer_id  TEXT,
    features      TEXT NOT NULL DEFAULT '{}',
    categories    TEXT NOT NULL DEFAULT '[]',
    latitude      REAL,
    longitude     REAL,
    pending_id    TEXT UNIQUE,
    source_url    TEXT,
    created_at    TEXT NOT NULL
);
""",
    """\
CREATE TABLE IF NOT EXISTS admin_feedback (
    id                 TEXT PRIMARY KEY,
    pending_id         TEXT    NOT NULL,
    source_url         TEXT    NOT NULL,
    action             TEXT    NOT NULL,
    field_corrections  TEXT    NOT NULL DEFAULT '{}',
    confidence_score   INTEGER NOT NULL DEFAULT 0,
    notes              TEXT    NOT NULL DEFAULT '',
    created_at         TEXT    NOT NULL
);
""",
]

_CREATE_INDICES_SQL = [
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_pending_dedup_key "
    "ON scraped_shows_pending(dedup_key) WHERE status = 'PENDING';",
    "CREATE INDEX IF NOT EXISTS idx_pending_status ON scraped_shows_pending(status);",
    "CREATE INDEX IF NOT EXISTS idx_pending_dates "
    "ON scraped_shows_pending(start_date, end_date);",
    "CREATE INDEX IF NOT EXISTS idx_shows_dates ON shows(start_date, end_date);",
    "CREATE INDEX IF NOT EXISTS idx_feedback_created ON admin_feedback(created_at);",
    "CREATE INDEX IF NOT EXISTS idx_feedback_source ON admin_feedback(source_url);",
]

_PENDING_COLUMNS = (
    "id, source_url, raw_payload, status, admin_notes, confidence_score, "
    "duplicate_of, dedup_key, created_at, decided_at"
)

_SHOW_COLUMNS = (
    "id, title, location, address, city, state, start_date, end_date, entry_fee, "
    "description, url, contact_info, status, organizer_id, features, categories, "
    "latitude, longitude, pending_id, source_url, created_at"
)


def _row_to_pending(row: aiosqlite.Row) -> PendingShow:
    return PendingShow(
        id=row["id"],
        source_url=row["source_url"],
        raw_payload=NormalizedShow.model_validate(json.loads(row["raw_payload"])),
        status=ReviewStatus(row["status"]),
        admin_notes=row["admin_notes"] or "",
        confidence_score=row["confidence_score"],
        duplicate_of=row["duplicate_of"],
        dedup_key=row["dedup_key"],
        created_at=row["created_at"],
        decided_at=row["decided_at"],
    )


def _row_to_show(row: aiosqlite.Row) -> CanonicalShow:
    coordinates = None
    if row["latitude"] is not None and row["longitude"] is not None:
        coordinates = (row["latitude"], row["longitude"])
    return CanonicalShow(
        id=row["id"],
        title=row["title"],
        location=row["location"],
        address=row["address"],
        city=row["city"],
        state=row["state"],
        start_date=row["start_date"],
        end_date=row["end_date"],
        entry_fee=row["entry_fee"],
        description=row["description"],
        url=row["url"],
        contact_info=row["contact_info"],
        status=row["status"],
        organizer_id=row["organizer_id"],
        features=json.loads(row["features"] or "{}"),
        categories=json.loads(row["categories"] or "[]"),
        coordinates=coordinates,
        pending_id=row["pending_id"],
        source_url=row["source_url"],
        created_at=row["created_at"],
    )


def _row_to_feedback(row: aiosqlite.Row) -> FeedbackRecord:
    return FeedbackRecord(
        id=row["id"],
        pending_id=row["pending_id"],
        source_url=row["source_url"],
        action=row["action"],
        field_corrections=json.loads(row["field_corrections"] or "{}"),
        confidence_score=row["confidence_score"],
        notes=row["notes"] or "",
        created_at=row["created_at"],
    )


def _feedback_params(feedback: FeedbackRecord) -> tuple:
    corrections = {
        name: correction.model_dump(mode="json", by_alias=True)
        for name, correction in feedback.field_corrections.items()
    }
    return (
        feedback.id,
        feedback.pending_id,
        feedback.source_url,
        feedback.action.value,
        json.dumps(corrections),
        feedback.confidence_score,
        feedback.notes,
        feedback.created_at.isoformat(),
    )


_INSERT_FEEDBACK_SQL = (
    "INSERT INTO admin_feedback "
    "(id, pending_id, source_url, action, field_corrections, confidence_score, "
    "notes, created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?)"
)


class SQLitePendingStore(IPendingStore):
    """SQLite-backed review queue and canonical show store."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the tables and indices (idempotent)."""
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute("PRAGMA journal_mode=WAL;")
                for table_sql in _CREATE_TABLES_SQL:
                    await db.execute(table_sql)
                for idx_sql in _CREATE_INDICES_SQL:
                    await db.execute(idx_sql)
                await db.commit()
        except (OSError, aiosqlite.Error) as exc:
            raise StorageError(
                message=f"Cannot open pending store at {self._db_path}: {exc}",
            ) from exc
        logger.info("pending_store_initialized", path=str(self._db_path))

    # ------------------------------------------------------------------
    # Review queue
    # ------------------------------------------------------------------

    async def insert(self, pending: PendingShow) -> PendingShow:
        payload = pending.raw_payload
        async with connect(self._db_path) as db:
            try:
                await db.execute(
                    f"INSERT INTO scraped_shows_pending ({_PENDING_COLUMNS}, start_date, end_date) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        pending.id,
                        pending.source_url,
                        json.dumps(payload.to_payload()),
                        pending.status.value,
                        pending.admin_notes,
                        pending.confidence_score,
                        pending.duplicate_of,
                        pending.dedup_key,
                        pending.created_at.isoformat(),
                        pending.decided_at.isoformat() if pending.decided_at else None,
                        payload.start_date.isoformat(),
                        payload.end_date.isoformat(),
                    ),
                )
                await db.commit()
            except aiosqlite.IntegrityError as exc:
                await db.rollback()
                cursor = await db.execute(
                    "SELECT id FROM scraped_shows_pending "
                    "WHERE dedup_key = ? AND status = 'PENDING'",
                    (pending.dedup_key,),
                )
                row = await cursor.fetchone()
                raise StoreConflictError(
                    dedup_key=pending.dedup_key,
                    existing_id=row[0] if row else None,
                ) from exc

        logger.info(
            "pending_show_inserted",
            pending_id=pending.id,
            source_url=pending.source_url,
            confidence_score=pending.confidence_score,
        )
        return pending

    async def get(self, pending_id: str) -> PendingShow | None:
        async with connect(self._db_path, rows=True) as db:
            cursor = await db.execute(
                f"SELECT {_PENDING_COLUMNS} FROM scraped_shows_pending WHERE id = ?",
                (pending_id,),
            )
            row = await cursor.fetchone()
        return _row_to_pending(row) if row else None

    async def list_pending(self, limit: int | None = 50, offset: int = 0) -> list[PendingShow]:
        """Return PENDING rows, most confident first, oldest first on ties."""
        async with connect(self._db_path, rows=True) as db:
            cursor = await db.execute(
                f"SELECT {_PENDING_COLUMNS} FROM scraped_shows_pending "
                "WHERE status = 'PENDING' "
                "ORDER BY confidence_score DESC, created_at ASC, id ASC "
                "LIMIT ? OFFSET ?",
                # SQLite treats a negative LIMIT as "no limit".
                (-1 if limit is None else limit, offset),
            )
            rows = await cursor.fetchall()
        return [_row_to_pending(r) for r in rows]

    async def find_in_window(
        self, start: date, end: date, window_days: int = 3
    ) -> tuple[list[PendingShow], list[CanonicalShow]]:
        lower = (start - timedelta(days=window_days)).isoformat()
        upper = (end + timedelta(days=window_days)).isoformat()
        async with connect(self._db_path, rows=True) as db:
            cursor = await db.execute(
                f"SELECT {_PENDING_COLUMNS} FROM scraped_shows_pending "
                "WHERE status = 'PENDING' AND start_date <= ? AND end_date >= ? "
                "ORDER BY created_at ASC",
                (upper, lower),
            )
            pending_rows = await cursor.fetchall()
            cursor = await db.execute(
                f"SELECT {_SHOW_COLUMNS} FROM shows "
                "WHERE start_date <= ? AND end_date >= ? ORDER BY created_at ASC",
                (upper, lower),
            )
            show_rows = await cursor.fetchall()
        return [_row_to_pending(r) for r in pending_rows], [_row_to_show(r) for r in show_rows]

    async def merge_into(
        self, pending_id: str, payload: NormalizedShow, confidence_score: int
    ) -> bool:
        async with connect(self._db_path) as db:
            cursor = await db.execute(
                "UPDATE scraped_shows_pending SET raw_payload = ?, confidence_score = ?, "
                "start_date = ?, end_date = ? WHERE id = ? AND status = 'PENDING'",
                (
                    json.dumps(payload.to_payload()),
                    confidence_score,
                    payload.start_date.isoformat(),
                    payload.end_date.isoformat(),
                    pending_id,
                ),
            )
            await db.commit()
            return cursor.rowcount > 0

    async def link_duplicate(self, pending_id: str, duplicate_of: str) -> bool:
        async with connect(self._db_path) as db:
            cursor = await db.execute(
                "UPDATE scraped_shows_pending SET duplicate_of = ? "
                "WHERE id = ? AND status = 'PENDING' AND id != ?",
                (duplicate_of, pending_id, duplicate_of),
            )
            await db.commit()
            updated = cursor.rowcount > 0
        if updated:
            logger.info("pending_show_linked", pending_id=pending_id, duplicate_of=duplicate_of)
        return updated

    async def queue_stats(self) -> dict[str, int]:
        """Return row counts by status."""
        async with connect(self._db_path, rows=True) as db:
            cursor = await db.execute(
                "SELECT status, COUNT(*) as cnt FROM scraped_shows_pending GROUP BY status"
            )
            rows = await cursor.fetchall()

        stats = {"pending": 0, "approved": 0, "rejected": 0, "total": 0}
        for row in rows:
            status = row["status"].lower()
            count = row["cnt"]
            if status in stats:
                stats[status] = count
            stats["total"] += count
        return stats

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    async def approve(
        self,
        pending_id: str,
        canonical: CanonicalShow,
        feedback: FeedbackRecord,
        decided_at: datetime,
    ) -> bool:
        latitude, longitude = canonical.coordinates or (None, None)
        async with connect(self._db_path) as db:
            try:
                cursor = await db.execute(
                    "UPDATE scraped_shows_pending SET status = 'APPROVED', decided_at = ?, "
                    "admin_notes = ? WHERE id = ? AND status = 'PENDING'",
                    (decided_at.isoformat(), feedback.notes, pending_id),
                )
                if cursor.rowcount == 0:
                    await db.rollback()
                    return False
                await db.execute(
                    f"INSERT INTO shows ({_SHOW_COLUMNS}) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        canonical.id,
                        canonical.title,
                        canonical.location,
                        canonical.address,
                        canonical.city,
                        canonical.state,
                        canonical.start_date.isoformat(),
                        canonical.end_date.isoformat(),
                        canonical.entry_fee,
                        canonical.description,
                        canonical.url,
                        canonical.contact_info,
                        canonical.status,
                        canonical.organizer_id,
                        json.dumps(canonical.features),
                        json.dumps(canonical.categories),
                        latitude,
                        longitude,
                        canonical.pending_id,
                        canonical.source_url,
                        canonical.created_at.isoformat(),
                    ),
                )
                await db.execute(_INSERT_FEEDBACK_SQL, _feedback_params(feedback))
                await db.commit()
            except aiosqlite.Error as exc:
                await db.rollback()
                raise StorageError(
                    message=f"Approval of {pending_id} failed: {exc}",
                ) from exc

        logger.info("pending_show_approved", pending_id=pending_id, show_id=canonical.id)
        return True

    async def reject(
        self,
        pending_id: str,
        admin_notes: str,
        feedback: FeedbackRecord,
        decided_at: datetime,
    ) -> bool:
        async with connect(self._db_path) as db:
            try:
                cursor = await db.execute(
                    "UPDATE scraped_shows_pending SET status = 'REJECTED', decided_at = ?, "
                    "admin_notes = ? WHERE id = ? AND status = 'PENDING'",
                    (decided_at.isoformat(), admin_notes, pending_id),
                )
                if cursor.rowcount == 0:
                    await db.rollback()
                    return False
                await db.execute(_INSERT_FEEDBACK_SQL, _feedback_params(feedback))
                await db.commit()
            except aiosqlite.Error as exc:
                await db.rollback()
                raise StorageError(
                    message=f"Rejection of {pending_id} failed: {exc}",
                ) from exc

        logger.info("pending_show_rejected", pending_id=pending_id, reason=admin_notes)
        return True

    # ------------------------------------------------------------------
    # Canonical shows and feedback
    # ------------------------------------------------------------------

    async def get_canonical(self, show_id: str) -> CanonicalShow | None:
        async with connect(self._db_path, rows=True) as db:
            cursor = await db.execute(
                f"SELECT {_SHOW_COLUMNS} FROM shows WHERE id = ?",
                (show_id,),
            )
            row = await cursor.fetchone()
        return _row_to_show(row) if row else None

    async def list_canonical(self) -> list[CanonicalShow]:
        async with connect(self._db_path, rows=True) as db:
            cursor = await db.execute(
                f"SELECT {_SHOW_COLUMNS} FROM shows ORDER BY start_date ASC, created_at ASC"
            )
            rows = await cursor.fetchall()
        return [_row_to_show(r) for r in rows]

    async def list_feedback(self, since: datetime) -> list[FeedbackRecord]:
        async with connect(self._db_path, rows=True) as db:
            cursor = await db.execute(
                "SELECT id, pending_id, source_url, action, field_corrections, "
                "confidence_score, notes, created_at FROM admin_feedback "
                "WHERE created_at >= ? ORDER BY created_at ASC",
                (since.isoformat(),),
            )
            rows = await cursor.fetchall()
        return [_row_to_feedback(r) for r in rows]
