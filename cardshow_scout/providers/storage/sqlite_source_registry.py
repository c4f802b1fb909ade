"""SQLite-backed Source Registry.

# ─── ARCHITECTURE ────────────────────────────────────────────────────
#
#   - aiosqlite for async I/O, one short-lived connection per call opened
#     through connection.connect(), which raises sqlite failures as StorageError
#   - WAL mode so the review API can read while a batch run writes
#   - Parameterized queries throughout (no string interpolation in SQL)
#   - idempotent initialize() with CREATE TABLE IF NOT EXISTS
#
# Every write touches exactly one row (keyed by url), so concurrent
# pipeline workers never contend on anything wider than a row.
#
# Layer: Providers (implements ISourceRegistry interface)
# Depends on: aiosqlite, structlog
# ─────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from cardshow_scout.interfaces.source_registry import ISourceRegistry
from cardshow_scout.models.source import ScrapingSource, SourceSeed
from cardshow_scout.providers.storage.connection import connect
from cardshow_scout.utils.errors import StorageError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/cardshow_scout.db")

# Per-run nudges to priority_score: +1 per show stored (at most +5) after a
# successful scrape, -1 after a failed fetch.  Always kept within [0, 100].
_MAX_SCRAPE_BONUS = 5
_FETCH_FAILURE_PENALTY = 1

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS scraping_sources (
    url              TEXT PRIMARY KEY,
    enabled          INTEGER NOT NULL DEFAULT 1,
    priority_score   REAL    NOT NULL DEFAULT 50.0,
    error_streak     INTEGER NOT NULL DEFAULT 0,
    last_success_at  TEXT,
    last_error_at    TEXT,
    config           TEXT    NOT NULL DEFAULT '{}'
);
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_sources_enabled_priority "
    "ON scraping_sources(enabled, priority_score);",
]

# Configured fields only; runtime counters survive a re-import.
_UPSERT_SQL = """\
INSERT INTO scraping_sources (url, enabled, priority_score, config)
VALUES (?, ?, ?, ?)
ON CONFLICT(url)
DO UPDATE SET enabled = excluded.enabled,
              config  = excluded.config;
"""

_SELECT_COLUMNS = (
    "url, enabled, priority_score, error_streak, last_success_at, last_error_at, config"
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _row_to_source(row: aiosqlite.Row) -> ScrapingSource:
    return ScrapingSource(
        url=row["url"],
        enabled=bool(row["enabled"]),
        priority_score=row["priority_score"],
        error_streak=row["error_streak"],
        last_success_at=row["last_success_at"],
        last_error_at=row["last_error_at"],
        config=json.loads(row["config"] or "{}"),
    )


class SQLiteSourceRegistry(ISourceRegistry):
    """SQLite-backed scraping source registry."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the scraping_sources table and indices (idempotent)."""
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute("PRAGMA journal_mode=WAL;")
                await db.execute(_CREATE_TABLE_SQL)
                for idx_sql in _CREATE_INDICES_SQL:
                    await db.execute(idx_sql)
                await db.commit()
        except (OSError, aiosqlite.Error) as exc:
            raise StorageError(
                message=f"Cannot open source registry at {self._db_path}: {exc}",
            ) from exc
        logger.info("source_registry_initialized", path=str(self._db_path))

    async def upsert_seed(self, seed: SourceSeed) -> ScrapingSource:
        """Insert or update a configured source.  Returns the stored row."""
        async with connect(self._db_path, rows=True) as db:
            await db.execute(
                _UPSERT_SQL,
                (seed.url, int(seed.enabled), seed.priority_score, json.dumps(seed.config)),
            )
            await db.commit()
            cursor = await db.execute(
                f"SELECT {_SELECT_COLUMNS} FROM scraping_sources WHERE url = ?",
                (seed.url,),
            )
            row = await cursor.fetchone()

        logger.info("source_upserted", source_url=seed.url, enabled=seed.enabled)
        return _row_to_source(row)

    async def get(self, url: str) -> ScrapingSource | None:
        async with connect(self._db_path, rows=True) as db:
            cursor = await db.execute(
                f"SELECT {_SELECT_COLUMNS} FROM scraping_sources WHERE url = ?",
                (url,),
            )
            row = await cursor.fetchone()
        return _row_to_source(row) if row else None

    async def list_all(self) -> list[ScrapingSource]:
        async with connect(self._db_path, rows=True) as db:
            cursor = await db.execute(
                f"SELECT {_SELECT_COLUMNS} FROM scraping_sources "
                "ORDER BY priority_score DESC, url ASC"
            )
            rows = await cursor.fetchall()
        return [_row_to_source(r) for r in rows]

    async def list_enabled(self, limit: int | None = None) -> list[ScrapingSource]:
        """Return enabled sources, highest priority first."""
        sql = (
            f"SELECT {_SELECT_COLUMNS} FROM scraping_sources WHERE enabled = 1 "
            "ORDER BY priority_score DESC, url ASC"
        )
        params: tuple[Any, ...] = ()
        if limit is not None:
            sql += " LIMIT ?"
            params = (limit,)
        async with connect(self._db_path, rows=True) as db:
            cursor = await db.execute(sql, params)
            rows = await cursor.fetchall()
        return [_row_to_source(r) for r in rows]

    async def record_fetch_success(
        self, url: str, show_count: int = 0
    ) -> ScrapingSource | None:
        """Reset the error streak, re-enable the source and reward its yield."""
        bonus = min(max(show_count, 0), _MAX_SCRAPE_BONUS)
        async with connect(self._db_path) as db:
            cursor = await db.execute(
                "UPDATE scraping_sources SET last_success_at = ?, error_streak = 0, "
                "enabled = 1, priority_score = MIN(100.0, priority_score + ?) "
                "WHERE url = ?",
                (_now_iso(), bonus, url),
            )
            await db.commit()
            updated = cursor.rowcount > 0
        if not updated:
            logger.warning("source_not_registered", source_url=url)
            return None
        return await self.get(url)

    async def record_fetch_failure(self, url: str, threshold: int) -> ScrapingSource | None:
        """Increment the error streak; disable once it exceeds *threshold*.

        Each failure also lowers the priority score by one point.
        """
        async with connect(self._db_path) as db:
            cursor = await db.execute(
                "UPDATE scraping_sources SET last_error_at = ?, "
                "error_streak = error_streak + 1, "
                "priority_score = MAX(0.0, priority_score - ?), "
                "enabled = CASE WHEN error_streak + 1 > ? THEN 0 ELSE enabled END "
                "WHERE url = ?",
                (_now_iso(), _FETCH_FAILURE_PENALTY, threshold, url),
            )
            await db.commit()
            updated = cursor.rowcount > 0
        if not updated:
            logger.warning("source_not_registered", source_url=url)
            return None

        source = await self.get(url)
        if source is not None and not source.enabled:
            logger.warning(
                "source_auto_disabled",
                source_url=url,
                error_streak=source.error_streak,
                threshold=threshold,
            )
        return source

    async def set_priority(self, url: str, priority_score: float) -> None:
        async with connect(self._db_path) as db:
            await db.execute(
                "UPDATE scraping_sources SET priority_score = ? WHERE url = ?",
                (priority_score, url),
            )
            await db.commit()
        logger.info("source_priority_set", source_url=url, priority_score=priority_score)
