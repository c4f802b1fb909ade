"""Storage providers backed by a local SQLite file (aiosqlite).

SQLiteSourceRegistry and SQLitePendingStore may share one database file;
each owns its own tables and creates them in ``initialize()``.
"""

from cardshow_scout.providers.storage.sqlite_pending_store import SQLitePendingStore
from cardshow_scout.providers.storage.sqlite_source_registry import SQLiteSourceRegistry

__all__ = ["SQLitePendingStore", "SQLiteSourceRegistry"]
