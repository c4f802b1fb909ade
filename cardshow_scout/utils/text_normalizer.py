"""Text normalization utilities for scraped card show listings.

This module handles four distinct normalization concerns:

1. **Markup cleanup** -- LLM output copied from HTML often still carries
   tags (``<br>``), entities (``&amp;``, ``&nbsp;``) and runs of whitespace.
   :func:`clean_text` strips all of them.

2. **State codes** -- Listings use "Indiana", "indiana, USA" or "IN"
   interchangeably.  :func:`normalize_state` maps full names to two-letter
   codes via a static table and leaves anything unrecognised untouched.

3. **Flexible dates** -- "July 15 AL", "2025-08-02", "January 5-6, 2025",
   "Sat, Aug 2nd 9am-3pm" all resolve to a ``(start, end)`` pair through
   :func:`parse_date_range`.

4. **Match keys** -- :func:`normalize_name_key` and :func:`edit_distance`
   are the building blocks of duplicate detection.  Fuzzy comparisons use
   rapidfuzz, which is an order of magnitude faster than pure Python.
"""

from __future__ import annotations

import re
from datetime import date

from bs4 import BeautifulSoup
from rapidfuzz import fuzz
from rapidfuzz.distance import Levenshtein

# ------------------------------------------------------------------
# Markup cleanup
# ------------------------------------------------------------------

_WHITESPACE_RE = re.compile(r"\s+")
_MARKUP_HINT_RE = re.compile(r"<[^>]*>|&[#a-zA-Z0-9]+;")


def clean_text(value: str | None) -> str | None:
    """Strip HTML tags and entities and collapse whitespace.

    Returns ``None`` for ``None`` or for strings that are empty after cleanup.
    """
    if value is None:
        return None
    text = value
    # Only hand strings that look like markup to BeautifulSoup; plain text
    # such as URLs would otherwise trigger its "looks like a filename" warning.
    if _MARKUP_HINT_RE.search(text):
        text = BeautifulSoup(text, "html.parser").get_text(" ")
    text = _WHITESPACE_RE.sub(" ", text.replace("\xa0", " ")).strip()
    return text or None


def has_markup_artifacts(value: str | None) -> bool:
    """Return ``True`` if *value* still contains tags or HTML entities."""
    if not value:
        return False
    return bool(_MARKUP_HINT_RE.search(value)) or "&nbsp" in value


# ------------------------------------------------------------------
# US state codes
# ------------------------------------------------------------------

STATE_CODES: dict[str, str] = {
    "alabama": "AL", "alaska": "AK", "arizona": "AZ", "arkansas": "AR",
    "california": "CA", "colorado": "CO", "connecticut": "CT", "delaware": "DE",
    "district of columbia": "DC", "florida": "FL", "georgia": "GA", "hawaii": "HI",
    "idaho": "ID", "illinois": "IL", "indiana": "IN", "iowa": "IA",
    "kansas": "KS", "kentucky": "KY", "louisiana": "LA", "maine": "ME",
    "maryland": "MD", "massachusetts": "MA", "michigan": "MI", "minnesota": "MN",
    "mississippi": "MS", "missouri": "MO", "montana": "MT", "nebraska": "NE",
    "nevada": "NV", "new hampshire": "NH", "new jersey": "NJ", "new mexico": "NM",
    "new york": "NY", "north carolina": "NC", "north dakota": "ND", "ohio": "OH",
    "oklahoma": "OK", "oregon": "OR", "pennsylvania": "PA", "rhode island": "RI",
    "south carolina": "SC", "south dakota": "SD", "tennessee": "TN", "texas": "TX",
    "utah": "UT", "vermont": "VT", "virginia": "VA", "washington": "WA",
    "west virginia": "WV", "wisconsin": "WI", "wyoming": "WY",
}

VALID_STATE_CODES: frozenset[str] = frozenset(STATE_CODES.values())

# Longest names first so "west virginia" wins over "virginia" and
# "arkansas" over "kansas" when searching inside a longer string.
_STATE_NAME_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(rf"\b{re.escape(name)}\b"), code)
    for name, code in sorted(STATE_CODES.items(), key=lambda kv: -len(kv[0]))
]


def normalize_state(value: str | None) -> str | None:
    """Map a state name or code to its two-letter code.

    Unrecognised values are returned unchanged (only trimmed).
    """
    if value is None:
        return None
    stripped = value.strip().rstrip(".")
    if not stripped:
        return None

    if len(stripped) == 2 and stripped.upper() in VALID_STATE_CODES:
        return stripped.upper()

    lowered = stripped.lower()
    if lowered in STATE_CODES:
        return STATE_CODES[lowered]

    for pattern, code in _STATE_NAME_PATTERNS:
        if pattern.search(lowered):
            return code

    return value.strip()


def is_valid_state_code(value: str | None) -> bool:
    return value is not None and value in VALID_STATE_CODES


# ------------------------------------------------------------------
# Dates
# ------------------------------------------------------------------

_MONTHS: dict[str, int] = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}

_MONTH_RE = (
    r"(jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?|"
    r"aug(?:ust)?|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)\.?"
)

_LABEL_RE = re.compile(r"^(?:dates?|when|on|starts?|ends?)\s*:?\s+", re.IGNORECASE)
_TIME_TAIL_RE = re.compile(
    r"[\s,]*(?:@|at|from)?\s*\d{1,2}(?::\d{2})?\s*(?:am|pm|a\.m\.|p\.m\.).*$",
    re.IGNORECASE,
)
_WEEKDAY_RE = re.compile(
    r"\b(?:monday|tuesday|wednesday|thursday|friday|saturday|sunday|"
    r"mon|tues?|wed|thu(?:rs?)?|fri|sat|sun)\b\.?,?\s*",
    re.IGNORECASE,
)
_ORDINAL_RE = re.compile(r"(\d+)(?:st|nd|rd|th)\b", re.IGNORECASE)
_TRAILING_STATE_RE = re.compile(
    r"(?<=\d),?\s+(?:" + "|".join(sorted(VALID_STATE_CODES)) + r")\.?$"
)
_RANGE_WORD_RE = re.compile(r"\s+(?:to|thru|through|until)\s+", re.IGNORECASE)

_ISO_RE = re.compile(
    r"(\d{4})-(\d{1,2})-(\d{1,2})(?:T[\d:.]+Z?)?"
    r"(?:\s*-\s*(\d{4})-(\d{1,2})-(\d{1,2}))?"
)
_NUMERIC_RE = re.compile(
    r"(?<!\d)(\d{1,2})[/.-](\d{1,2})[/.-](\d{4}|\d{2})(?!\d)"
    r"(?:\s*-\s*(\d{1,2})[/.-](\d{1,2})[/.-](\d{4}|\d{2})(?!\d))?"
)
_MONTH_DAY_RE = re.compile(
    rf"\b{_MONTH_RE}\s+(\d{{1,2}})(?!\d)(?:,?\s+(\d{{4}}))?"
    rf"(?:\s*-\s*(?:{_MONTH_RE}\s+)?(\d{{1,2}})(?!\d)(?:,?\s+(\d{{4}}))?)?",
    re.IGNORECASE,
)
_DAY_MONTH_RE = re.compile(
    rf"(?<!\d)(\d{{1,2}})\s+{_MONTH_RE}(?:,?\s+(\d{{4}}))?",
    re.IGNORECASE,
)


def _month_number(token: str) -> int:
    return _MONTHS[token[:3].lower()]


def _expand_year(year: str) -> int:
    value = int(year)
    if value < 100:
        value += 2000 if value < 50 else 1900
    return value


def _next_occurrence(month: int, day: int, today: date) -> date:
    """Resolve a yearless month/day to its next occurrence on or after *today*."""
    candidate = date(today.year, month, day)
    if candidate < today:
        candidate = date(today.year + 1, month, day)
    return candidate


def strip_date_noise(text: str) -> str:
    """Remove labels, weekdays, ordinals, times and trailing state codes."""
    cleaned = _WHITESPACE_RE.sub(" ", text).strip()
    cleaned = cleaned.replace("–", "-").replace("—", "-")
    cleaned = _LABEL_RE.sub("", cleaned)
    cleaned = _TIME_TAIL_RE.sub("", cleaned)
    cleaned = _WEEKDAY_RE.sub("", cleaned)
    cleaned = _ORDINAL_RE.sub(r"\1", cleaned)
    cleaned = _RANGE_WORD_RE.sub(" - ", cleaned)
    cleaned = _TRAILING_STATE_RE.sub("", cleaned.strip())
    return cleaned.strip(" ,")


def parse_date_range(text: str | None, today: date) -> tuple[date, date] | None:
    """Parse a flexible date string into a ``(start, end)`` pair.

    Single dates return ``(d, d)``.  An end date before the start date is
    replaced by the start date.  Yearless dates resolve to the next
    occurrence on or after *today*.  Returns ``None`` when nothing parses.
    """
    if not text:
        return None
    cleaned = strip_date_noise(text)
    if not cleaned:
        return None

    try:
        result = (
            _parse_iso(cleaned)
            or _parse_numeric(cleaned)
            or _parse_month_day(cleaned, today)
            or _parse_day_month(cleaned, today)
        )
    except ValueError:
        # Matched the shape but not the calendar (e.g. "Feb 30, 2025").
        return None

    if result is None:
        return None
    start, end = result
    if end < start:
        end = start
    return start, end


def _parse_iso(text: str) -> tuple[date, date] | None:
    match = _ISO_RE.search(text)
    if not match:
        return None
    y1, m1, d1, y2, m2, d2 = match.groups()
    start = date(int(y1), int(m1), int(d1))
    end = date(int(y2), int(m2), int(d2)) if y2 else start
    return start, end


def _parse_numeric(text: str) -> tuple[date, date] | None:
    match = _NUMERIC_RE.search(text)
    if not match:
        return None
    m1, d1, y1, m2, d2, y2 = match.groups()
    start = date(_expand_year(y1), int(m1), int(d1))
    end = date(_expand_year(y2), int(m2), int(d2)) if y2 else start
    return start, end


def _parse_month_day(text: str, today: date) -> tuple[date, date] | None:
    match = _MONTH_DAY_RE.search(text)
    if not match:
        return None
    month1, day1, year1, month2, day2, year2 = match.groups()
    m1 = _month_number(month1)
    m2 = _month_number(month2) if month2 else m1

    if year1:
        start = date(int(year1), m1, int(day1))
    elif year2:
        # "Dec 30 - Jan 2, 2026": the start belongs to the previous year.
        start_year = int(year2) - 1 if m1 > m2 else int(year2)
        start = date(start_year, m1, int(day1))
    else:
        start = _next_occurrence(m1, int(day1), today)

    if not day2:
        return start, start

    if year2:
        end = date(int(year2), m2, int(day2))
    else:
        end = date(start.year, m2, int(day2))
        if end < start:
            end = date(start.year + 1, m2, int(day2))
    return start, end


def _parse_day_month(text: str, today: date) -> tuple[date, date] | None:
    match = _DAY_MONTH_RE.search(text)
    if not match:
        return None
    day, month, year = match.groups()
    if year:
        start = date(int(year), _month_number(month), int(day))
    else:
        start = _next_occurrence(_month_number(month), int(day), today)
    return start, start


# ------------------------------------------------------------------
# Entry fees
# ------------------------------------------------------------------

_FREE_RE = re.compile(
    r"^(?:free|free admission|free entry|no charge|none|n/?a|complimentary)\.?$",
    re.IGNORECASE,
)
_AMOUNT_RE = re.compile(r"(\d+(?:\.\d{1,2})?)")


def parse_entry_fee(value: str | None) -> float | None:
    """Extract an admission price.  "Free" and friends map to ``0.0``."""
    if not value:
        return None
    text = value.strip()
    if _FREE_RE.match(text):
        return 0.0
    match = _AMOUNT_RE.search(text)
    if match:
        return float(match.group(1))
    if text.lower().startswith("free"):
        return 0.0
    return None


# ------------------------------------------------------------------
# Matching helpers
# ------------------------------------------------------------------

_PUNCT_RE = re.compile(r"[^\w\s]")


def normalize_name_key(name: str | None) -> str:
    """Lower-case *name*, strip punctuation and collapse whitespace.

    "Sports Card Expo!" and "sports card  expo" both become "sports card expo".
    """
    if not name:
        return ""
    text = _PUNCT_RE.sub(" ", name.lower()).replace("_", " ")
    return _WHITESPACE_RE.sub(" ", text).strip()


def edit_distance(a: str | None, b: str | None) -> int:
    """Levenshtein distance between two case-insensitive, trimmed strings."""
    return Levenshtein.distance((a or "").strip().lower(), (b or "").strip().lower())


def name_similarity(a: str | None, b: str | None) -> float:
    """Return a 0.0-1.0 word-order-insensitive similarity of two names."""
    if not a or not b:
        return 0.0
    return fuzz.token_sort_ratio(normalize_name_key(a), normalize_name_key(b)) / 100.0
