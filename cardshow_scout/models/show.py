"""Card show models from raw extraction to canonical event.

These models trace a listing through the ingestion pipeline:

    1. The LLM returns loose JSON objects      → RawShowFields / RawCandidate
    2. The normalizer validates and cleans them → NormalizedShow (or NormalizationDrop)
    3. The pending store persists them          → PendingShow (review queue row)
    4. An admin approves a pending row          → CanonicalShow

Everything the LLM produces is untrusted, so ``RawShowFields`` accepts any
JSON scalar and coerces it to ``str | None``.  From ``NormalizedShow``
onwards fields are typed and validated.

Serialised payloads use camelCase keys (``startDate``, ``venueName``) to match
the ``raw_payload`` JSON column consumed by the admin dashboard.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

# Field names carried by every candidate, in prompt order.
SHOW_FIELD_NAMES: tuple[str, ...] = (
    "name",
    "start_date",
    "end_date",
    "venue_name",
    "address",
    "city",
    "state",
    "entry_fee",
    "description",
    "url",
    "contact_info",
)


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017


# ---------------------------------------------------------------------------
# Raw extraction output
# ---------------------------------------------------------------------------
class RawShowFields(BaseModel):
    """The loosely typed fields of one candidate as returned by the LLM.

    Unknown keys are ignored.  Numbers become strings, anything that is not
    a JSON scalar becomes ``None``.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    name: str | None = None
    start_date: str | None = None
    end_date: str | None = None
    venue_name: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    entry_fee: str | None = None
    description: str | None = None
    url: str | None = None
    contact_info: str | None = None

    @field_validator("*", mode="before")
    @classmethod
    def _coerce_scalar(cls, value: Any) -> str | None:
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, (int, float)):
            return str(value)
        if isinstance(value, str):
            return value
        return None


class RawCandidate(BaseModel):
    """An extracted, not-yet-validated show record."""

    model_config = ConfigDict(frozen=True)

    source_url: str
    # Position of the chunk the record came from, for debugging only.
    chunk_index: int = Field(ge=0)
    fields: RawShowFields
    extracted_at: datetime = Field(default_factory=_utcnow)


# ---------------------------------------------------------------------------
# Normalizer output
# ---------------------------------------------------------------------------
class NormalizedShow(BaseModel):
    """A cleaned candidate with a canonical ``(start_date, end_date)`` pair."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    name: str = Field(min_length=1)
    start_date: date
    end_date: date
    venue_name: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    # 0.0 means free admission and counts as a present value.
    entry_fee: float | None = None
    entry_fee_text: str | None = None
    description: str | None = None
    url: str | None = None
    contact_info: str | None = None

    def to_payload(self) -> dict[str, Any]:
        """Serialise to the camelCase JSON shape stored in ``raw_payload``."""
        return self.model_dump(mode="json", by_alias=True)


class NormalizationDrop(BaseModel):
    """Why a candidate was discarded by the normalizer.  Not an error."""

    model_config = ConfigDict(frozen=True)

    reason: str
    source_url: str
    chunk_index: int = 0
    name: str | None = None
    detail: str = ""


# ---------------------------------------------------------------------------
# Review queue
# ---------------------------------------------------------------------------
class ReviewStatus(str, Enum):  # noqa: UP042
    """Review-queue states.  PENDING moves to APPROVED or REJECTED, never back."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class PendingShow(BaseModel):
    """A row of the ``scraped_shows_pending`` table."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    source_url: str
    raw_payload: NormalizedShow
    status: ReviewStatus = ReviewStatus.PENDING
    confidence_score: int = Field(default=0, ge=0, le=100)
    admin_notes: str = ""
    duplicate_of: str | None = None
    dedup_key: str = ""
    created_at: datetime = Field(default_factory=_utcnow)
    decided_at: datetime | None = None

    @property
    def is_decided(self) -> bool:
        return self.status is not ReviewStatus.PENDING


class CanonicalShow(BaseModel):
    """An approved, queryable event in the ``shows`` table."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    title: str
    location: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    start_date: date
    end_date: date
    entry_fee: float | None = None
    description: str | None = None
    url: str | None = None
    contact_info: str | None = None
    status: str = "ACTIVE"
    organizer_id: str | None = None
    features: dict[str, Any] = Field(default_factory=dict)
    categories: list[str] = Field(default_factory=list)
    # (latitude, longitude); geocoding happens outside this package.
    coordinates: tuple[float, float] | None = None
    pending_id: str | None = None
    source_url: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)
