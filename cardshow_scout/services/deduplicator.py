"""Duplicate detection for normalized card show candidates.

The matching policy is a set of pure functions so it can be tested without
a database:

- :func:`match_key` reduces a show to the fields that identify an event.
- :func:`similar` decides whether two keys describe the same event:
  identical normalized name, date ranges within ``window_days`` of each
  other, and the same place.  "Same place" means identical city and state,
  or a venue or address within ``max_distance`` edits.  Two known,
  different states never match.
- :func:`merge_missing` fills empty fields of an existing payload from a
  new one without overwriting anything already present.

:class:`Deduplicator` applies the policy against the PENDING rows and
canonical shows stored within the date window.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from itertools import combinations
from typing import NamedTuple

from cardshow_scout.interfaces.pending_store import IPendingStore
from cardshow_scout.models.pipeline import DedupAction, DedupDecision, DuplicatePair
from cardshow_scout.models.show import CanonicalShow, NormalizedShow, PendingShow
from cardshow_scout.utils.logging import get_logger
from cardshow_scout.utils.text_normalizer import (
    edit_distance,
    name_similarity,
    normalize_name_key,
)

logger = get_logger(__name__)

DEFAULT_WINDOW_DAYS = 3
DEFAULT_MAX_DISTANCE = 2

# Fields a fill-missing merge may populate.  Name and dates identify the
# event and are never touched.
_MERGEABLE_FIELDS: tuple[str, ...] = (
    "venue_name",
    "address",
    "city",
    "state",
    "entry_fee",
    "entry_fee_text",
    "description",
    "url",
    "contact_info",
)


class MatchKey(NamedTuple):
    name: str
    start_date: date
    end_date: date
    city: str
    state: str
    venue: str
    address: str


def _lower(value: str | None) -> str:
    return (value or "").strip().lower()


def match_key(show: NormalizedShow) -> MatchKey:
    """Comparable identity of a normalized show."""
    return MatchKey(
        name=normalize_name_key(show.name),
        start_date=show.start_date,
        end_date=show.end_date,
        city=_lower(show.city),
        state=_lower(show.state),
        venue=_lower(show.venue_name),
        address=_lower(show.address),
    )


def canonical_match_key(show: CanonicalShow) -> MatchKey:
    """Comparable identity of an approved show.  Canonical rows carry no
    separate venue field, so only city, state and address are compared."""
    return MatchKey(
        name=normalize_name_key(show.title),
        start_date=show.start_date,
        end_date=show.end_date,
        city=_lower(show.city),
        state=_lower(show.state),
        venue="",
        address=_lower(show.address),
    )


def dedup_key(show: NormalizedShow) -> str:
    """Exact key enforced unique among PENDING rows by the store."""
    key = match_key(show)
    return "|".join((key.name, key.start_date.isoformat(), key.city, key.state))


def dates_within(a: MatchKey, b: MatchKey, window_days: int = DEFAULT_WINDOW_DAYS) -> bool:
    """True when the two date ranges overlap once widened by *window_days*."""
    window = timedelta(days=window_days)
    return a.start_date <= b.end_date + window and b.start_date <= a.end_date + window


def same_place(a: MatchKey, b: MatchKey, max_distance: int = DEFAULT_MAX_DISTANCE) -> bool:
    if a.state and b.state and a.state != b.state:
        return False
    if a.city and a.state and a.city == b.city and a.state == b.state:
        return True
    if a.venue and b.venue and edit_distance(a.venue, b.venue) <= max_distance:
        return True
    if a.address and b.address and edit_distance(a.address, b.address) <= max_distance:
        return True
    return False


def similar(
    a: MatchKey,
    b: MatchKey,
    window_days: int = DEFAULT_WINDOW_DAYS,
    max_distance: int = DEFAULT_MAX_DISTANCE,
) -> bool:
    """Decide whether two keys describe the same real-world event."""
    if not a.name or a.name != b.name:
        return False
    return dates_within(a, b, window_days) and same_place(a, b, max_distance)


def merge_missing(
    existing: NormalizedShow, incoming: NormalizedShow
) -> tuple[NormalizedShow, list[str]]:
    """Fill empty fields of *existing* from *incoming*.

    ``0.0`` entry fees and any non-empty string count as present and are
    never overwritten.  Returns the merged payload and the filled field names.
    """
    updates: dict[str, object] = {}
    for field in _MERGEABLE_FIELDS:
        current = getattr(existing, field)
        offered = getattr(incoming, field)
        if (current is None or current == "") and offered not in (None, ""):
            updates[field] = offered
    if not updates:
        return existing, []
    return existing.model_copy(update=updates), sorted(updates)


def find_duplicate_pairs(
    rows: list[PendingShow], threshold: float = 0.85
) -> list[DuplicatePair]:
    """List pairs of pending rows whose names look alike and that share a
    start date or a city.  Used by admins to clean up the queue."""
    pairs: list[DuplicatePair] = []
    for first, second in combinations(rows, 2):
        a, b = first.raw_payload, second.raw_payload
        score = name_similarity(a.name, b.name)
        if score < threshold:
            continue
        same_city = bool(a.city and b.city and _lower(a.city) == _lower(b.city))
        if a.start_date == b.start_date or same_city:
            pairs.append(DuplicatePair(first=first, second=second, similarity=score))
    pairs.sort(key=lambda p: p.similarity, reverse=True)
    return pairs


class Deduplicator:
    """Decide insert / merge / skip for candidates against the store."""

    def __init__(
        self,
        pending_store: IPendingStore,
        window_days: int = DEFAULT_WINDOW_DAYS,
        max_distance: int = DEFAULT_MAX_DISTANCE,
    ) -> None:
        self._store = pending_store
        self._window_days = window_days
        self._max_distance = max_distance

    async def decide(self, show: NormalizedShow) -> DedupDecision:
        """Return the verdict for *show*.

        An approved match wins over pending ones: the event already exists,
        so nothing is stored.  Otherwise the earliest-created pending match
        receives a fill-missing merge.
        """
        pending_rows, canonical_rows = await self._store.find_in_window(
            show.start_date, show.end_date, self._window_days
        )
        key = match_key(show)

        canonical_matches = [
            c for c in canonical_rows
            if similar(key, canonical_match_key(c), self._window_days, self._max_distance)
        ]
        if canonical_matches:
            match = min(canonical_matches, key=lambda c: _sort_time(c.created_at))
            logger.info("duplicate_of_canonical", name=show.name, duplicate_of=match.id)
            return DedupDecision(action=DedupAction.MATCH_CANONICAL, duplicate_of=match.id)

        pending_matches = [
            p for p in pending_rows
            if similar(key, match_key(p.raw_payload), self._window_days, self._max_distance)
        ]
        if not pending_matches:
            return DedupDecision(action=DedupAction.INSERT)

        match = min(pending_matches, key=lambda p: _sort_time(p.created_at))
        merged, filled = merge_missing(match.raw_payload, show)
        logger.info(
            "duplicate_merged",
            name=show.name,
            duplicate_of=match.id,
            merged_fields=filled,
        )
        return DedupDecision(
            action=DedupAction.MERGE_PENDING,
            duplicate_of=match.id,
            merged_fields=filled,
            merged_payload=merged,
        )


def _sort_time(value: datetime) -> float:
    return value.timestamp()
