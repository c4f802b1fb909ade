"""Scraping source models.

A source is a configured web page that is scraped repeatedly for card show
listings.  Sources are created at configuration time from the YAML seed file
and afterwards mutated only by fetch bookkeeping (timestamps, error streak)
and the feedback loop (priority score, enable flag).  They are never deleted
automatically; disabling sets ``enabled=False``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# Neutral starting priority; the feedback loop moves it within [0, 100].
DEFAULT_PRIORITY = 50.0


class SourceSeed(BaseModel):
    """One entry of the YAML seed file."""

    model_config = ConfigDict(frozen=True)

    url: str = Field(min_length=1)
    enabled: bool = True
    priority_score: float = Field(default=DEFAULT_PRIORITY, ge=0.0, le=100.0)
    config: dict[str, Any] = Field(default_factory=dict)


class ScrapingSource(BaseModel):
    """A row of the ``scraping_sources`` table."""

    model_config = ConfigDict(frozen=True)

    url: str
    enabled: bool = True
    priority_score: float = DEFAULT_PRIORITY
    # Consecutive failed fetches; reset to 0 by any successful fetch.
    error_streak: int = Field(default=0, ge=0)
    last_success_at: datetime | None = None
    last_error_at: datetime | None = None
    config: dict[str, Any] = Field(default_factory=dict)
