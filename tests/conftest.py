"""Shared pytest fixtures for the cardshow_scout test suite."""

from __future__ import annotations

import shutil
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from cardshow_scout.interfaces.llm_provider import ILLMProvider
from cardshow_scout.models.show import NormalizedShow, PendingShow
from cardshow_scout.providers.storage.sqlite_pending_store import SQLitePendingStore
from cardshow_scout.providers.storage.sqlite_source_registry import SQLiteSourceRegistry
from cardshow_scout.services.deduplicator import dedup_key
from cardshow_scout.utils.confidence import score_show

# Pinned "today" for everything date-dependent.
TODAY = date(2025, 1, 1)
NOW = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def make_show(**overrides: Any) -> NormalizedShow:
    """Build a fully populated NormalizedShow; override any field."""
    fields: dict[str, Any] = {
        "name": "Indy Card Expo",
        "start_date": date(2025, 7, 15),
        "end_date": date(2025, 7, 15),
        "venue_name": "Marriott East",
        "address": "7202 E 21st St",
        "city": "Indianapolis",
        "state": "IN",
        "entry_fee": 5.0,
        "entry_fee_text": "$5",
        "description": "Sports and trading cards, 80 tables.",
        "url": "https://example.com/shows/indy",
        "contact_info": "promoter@example.com",
    }
    fields.update(overrides)
    return NormalizedShow(**fields)


def make_pending(
    show: NormalizedShow | None = None,
    source_url: str = "https://example.com/shows",
    **overrides: Any,
) -> PendingShow:
    """Build a PendingShow around *show* with its score and dedup key."""
    show = show or make_show()
    fields: dict[str, Any] = {
        "source_url": source_url,
        "raw_payload": show,
        "confidence_score": score_show(show),
        "dedup_key": dedup_key(show),
        "created_at": NOW,
    }
    fields.update(overrides)
    return PendingShow(**fields)


def make_unreachable(db_path: Path) -> None:
    """Replace the directory holding *db_path* with a plain file.

    Every later open of *db_path* then fails inside sqlite.
    """
    shutil.rmtree(db_path.parent)
    db_path.parent.write_text("not a directory")


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    """Path to a fresh SQLite file for one test."""
    return tmp_path / "cardshow_scout.db"


@pytest_asyncio.fixture
async def pending_store(db_path: Path) -> SQLitePendingStore:
    store = SQLitePendingStore(db_path=db_path)
    await store.initialize()
    return store


@pytest_asyncio.fixture
async def source_registry(db_path: Path) -> SQLiteSourceRegistry:
    registry = SQLiteSourceRegistry(db_path=db_path)
    await registry.initialize()
    return registry


@pytest.fixture
def mock_llm() -> MagicMock:
    """An ILLMProvider double whose ``complete`` returns an empty array."""
    llm = MagicMock(spec=ILLMProvider)
    llm.get_provider_name.return_value = "mock"
    llm.is_available.return_value = True
    llm.complete = AsyncMock(return_value="[]")
    return llm
