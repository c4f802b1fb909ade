"""Confidence scoring for normalized card show candidates.

Every candidate that reaches the review queue carries a 0--100 score that
measures how complete and well-formed its fields are.  This module provides
three core operations:

1. **score_show** -- Deterministic weighted sum over field presence and
   validity.  Pure function: the same fields always produce the same score.
2. **quality_band** -- Maps a score to a ``high``/``medium``/``low`` tier
   for the admin queue badges.
3. **detect_issues** -- Human-readable list of problems shown next to the
   score so reviewers know what to fix before approving.

The score only orders the review queue and flags rows for attention.  It
never approves anything on its own.
"""

from __future__ import annotations

from enum import Enum

from cardshow_scout.models.show import NormalizedShow
from cardshow_scout.utils.text_normalizer import has_markup_artifacts, is_valid_state_code

# Rows below this score are flagged for priority human attention.
NEEDS_ATTENTION_THRESHOLD = 70

# Points awarded per field.  They sum to 100; score_show clamps to 0..100.
#   name   -- required; every candidate that gets here has one (base score)
#   dates  -- high weight; a show without a usable date is useless
#   venue / address, city / state -- medium weight
#   fee / description / contact    -- low weight each
FIELD_WEIGHTS: dict[str, int] = {
    "name": 20,
    "dates": 30,
    "venue_name": 10,
    "address": 10,
    "city": 8,
    "state": 7,
    "entry_fee": 5,
    "description": 5,
    "contact_info": 5,
}

# Partial credit for a state that is present but not a two-letter code.
_UNRECOGNISED_STATE_POINTS = 3


class QualityBand(str, Enum):  # noqa: UP042
    """Review-queue quality tiers."""

    HIGH = "high"      # >= 80 -- usually approvable as-is
    MEDIUM = "medium"  # 50 - 79 -- expect to fix a field or two
    LOW = "low"        # < 50 -- sparse listing


def _present(value: str | None) -> bool:
    return bool(value and value.strip())


def score_show(show: NormalizedShow) -> int:
    """Compute the 0--100 confidence score of a normalized show.

    Adding a previously missing field never lowers the score: every field
    contributes a non-negative amount that depends only on that field.
    """
    score = 0

    if _present(show.name):
        score += FIELD_WEIGHTS["name"]
    if show.start_date is not None and show.end_date is not None and show.end_date >= show.start_date:
        score += FIELD_WEIGHTS["dates"]
    if _present(show.venue_name):
        score += FIELD_WEIGHTS["venue_name"]
    if _present(show.address):
        score += FIELD_WEIGHTS["address"]
    if _present(show.city):
        score += FIELD_WEIGHTS["city"]
    if is_valid_state_code(show.state):
        score += FIELD_WEIGHTS["state"]
    elif _present(show.state):
        score += _UNRECOGNISED_STATE_POINTS
    # 0.0 is a real value (free admission).
    if show.entry_fee is not None:
        score += FIELD_WEIGHTS["entry_fee"]
    if _present(show.description):
        score += FIELD_WEIGHTS["description"]
    if _present(show.contact_info):
        score += FIELD_WEIGHTS["contact_info"]

    return max(0, min(100, score))


def quality_band(score: int) -> QualityBand:
    """Map a numeric score to its quality tier."""
    if score >= 80:
        return QualityBand.HIGH
    if score >= 50:
        return QualityBand.MEDIUM
    return QualityBand.LOW


def needs_attention(score: int) -> bool:
    return score < NEEDS_ATTENTION_THRESHOLD


def detect_issues(show: NormalizedShow) -> list[str]:
    """List the problems a reviewer should look at before approving."""
    issues: list[str] = []

    if show.start_date is None:
        issues.append("Missing date")
    if not _present(show.city):
        issues.append("Missing city")
    if not _present(show.state):
        issues.append("Missing state")
    elif not is_valid_state_code(show.state):
        issues.append("State not abbreviated")
    if not _present(show.venue_name):
        issues.append("Missing venue")
    if not _present(show.address):
        issues.append("Missing address")
    if has_markup_artifacts(show.description):
        issues.append("HTML artifacts in description")

    return issues
