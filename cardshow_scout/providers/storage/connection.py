"""Connection helper shared by the SQLite stores."""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import aiosqlite

from cardshow_scout.utils.errors import StorageError


@asynccontextmanager
async def connect(
    db_path: Path, *, rows: bool = False
) -> AsyncIterator[aiosqlite.Connection]:
    """Open *db_path* for one unit of work.

    Any sqlite or filesystem failure escaping the block is raised as
    StorageError, so callers see one error type whatever the cause
    (missing file, locked database, disk full).  Errors the block turns
    into its own exceptions pass through unchanged.

    Parameters
    ----------
    db_path:
        The database file.
    rows:
        When true, rows come back as ``aiosqlite.Row`` for access by name.
    """
    try:
        async with aiosqlite.connect(str(db_path)) as db:
            if rows:
                db.row_factory = aiosqlite.Row
            yield db
    except (OSError, aiosqlite.Error) as exc:
        raise StorageError(message=f"Database {db_path} unavailable: {exc}") from exc
