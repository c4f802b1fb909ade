"""Admin feedback models consumed by the feedback loop.

Feedback records are append-only.  One is written for every review
decision and captures the per-field edits the admin made, so the loop can
learn which sources produce clean listings and which fields they get wrong.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

# Tags an admin may put at the start of a rejection reason, before a dash:
#   "DATE_FORMAT, STATE_FULL - date still has the state code"
REJECTION_TAGS: frozenset[str] = frozenset(
    {
        "DATE_FORMAT",
        "VENUE_MISSING",
        "ADDRESS_POOR",
        "DUPLICATE",
        "MULTI_EVENT_COLLAPSE",
        "EXTRA_HTML",
        "SPAM",
        "STATE_FULL",
        "CITY_MISSING",
    }
)


class FeedbackAction(str, Enum):  # noqa: UP042
    """What the admin did with a pending show."""

    APPROVED = "approved"
    APPROVED_WITH_EDITS = "approved_with_edits"
    REJECTED = "rejected"


class FieldCorrection(BaseModel):
    """One edited field: the extracted value and the admin's replacement."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    from_value: Any = Field(default=None, alias="from")
    to_value: Any = Field(default=None, alias="to")


class FeedbackRecord(BaseModel):
    """A row of the ``admin_feedback`` table."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    pending_id: str
    source_url: str
    action: FeedbackAction
    field_corrections: dict[str, FieldCorrection] = Field(default_factory=dict)
    confidence_score: int = Field(default=0, ge=0, le=100)
    notes: str = ""
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc)  # noqa: UP017
    )


class SourceFeedbackStats(BaseModel):
    """Aggregated decisions for one source over a trailing window."""

    model_config = ConfigDict(frozen=True)

    source_url: str
    total: int = 0
    approved: int = 0
    rejected: int = 0
    # Percentages in [0, 100], rounded to one decimal like the dashboard shows.
    approval_rate: float = 0.0
    rejection_rate: float = 0.0
    avg_confidence: float | None = None
    field_corrections: dict[str, int] = Field(default_factory=dict)
    rejection_tags: dict[str, int] = Field(default_factory=dict)


class PriorityChange(BaseModel):
    """A priority adjustment for one source, applied unless previewed."""

    model_config = ConfigDict(frozen=True)

    source_url: str
    old_priority: float
    new_priority: float
    rejection_rate: float
    reason: str
