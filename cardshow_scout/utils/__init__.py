"""Utility modules for cardshow_scout.

Available utility modules (all re-exported here for convenience):

- **confidence** -- Deterministic 0--100 completeness score for normalized
  shows, quality bands and the reviewer-facing issue list.
- **errors** -- Domain-specific exception hierarchy rooted at
  CardShowScoutError; each stage raises its own subclass so the pipeline
  can isolate failures per chunk and per source.
- **concurrency** -- asyncio semaphore throttling that keeps the number of
  sources in flight under the extraction endpoint's rate limit.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
- **text_normalizer** -- Markup cleanup, state codes, flexible date parsing,
  entry fees and the fuzzy-match primitives used by deduplication.
"""

# -- Confidence scoring ----------------------------------------------------
from cardshow_scout.utils.confidence import (
    QualityBand,
    detect_issues,
    needs_attention,
    quality_band,
    score_show,
)

# -- Domain exception hierarchy --------------------------------------------
from cardshow_scout.utils.errors import (
    CardShowScoutError,
    ConfigurationError,
    ExtractionError,
    FetchError,
    FetchErrorKind,
    LLMError,
    RateLimitError,
    StorageError,
    StoreConflictError,
)

# -- Async concurrency helpers ---------------------------------------------
from cardshow_scout.utils.concurrency import throttled_gather

# -- Structured logging setup ----------------------------------------------
from cardshow_scout.utils.logging import configure_logging, get_logger

# -- Text normalization ----------------------------------------------------
from cardshow_scout.utils.text_normalizer import (
    clean_text,
    edit_distance,
    name_similarity,
    normalize_name_key,
    normalize_state,
    parse_date_range,
    parse_entry_fee,
)

__all__ = [
    "CardShowScoutError",
    "ConfigurationError",
    "ExtractionError",
    "FetchError",
    "FetchErrorKind",
    "LLMError",
    "QualityBand",
    "RateLimitError",
    "StorageError",
    "StoreConflictError",
    "clean_text",
    "configure_logging",
    "detect_issues",
    "edit_distance",
    "get_logger",
    "name_similarity",
    "needs_attention",
    "normalize_name_key",
    "normalize_state",
    "parse_date_range",
    "parse_entry_fee",
    "quality_band",
    "score_show",
    "throttled_gather",
]
