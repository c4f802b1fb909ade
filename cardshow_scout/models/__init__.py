"""cardshow_scout domain models, re-exports all public model classes.

The models are organized across four submodules by domain concern:
    - source.py    - scraping sources and YAML seeds
    - show.py      - raw candidates, normalized shows, pending and canonical rows
    - feedback.py  - admin feedback records and per-source aggregates
    - pipeline.py  - dedup verdicts, batch run reports, decision results
"""

from __future__ import annotations

from cardshow_scout.models.feedback import (
    REJECTION_TAGS,
    FeedbackAction,
    FeedbackRecord,
    FieldCorrection,
    PriorityChange,
    SourceFeedbackStats,
)
from cardshow_scout.models.pipeline import (
    BatchReport,
    ChunkExtraction,
    DecisionOutcome,
    DecisionResult,
    DedupAction,
    DedupDecision,
    DuplicatePair,
    SourceRunStatus,
    SourceRunSummary,
)
from cardshow_scout.models.show import (
    SHOW_FIELD_NAMES,
    CanonicalShow,
    NormalizationDrop,
    NormalizedShow,
    PendingShow,
    RawCandidate,
    RawShowFields,
    ReviewStatus,
)
from cardshow_scout.models.source import DEFAULT_PRIORITY, ScrapingSource, SourceSeed

__all__ = [
    "DEFAULT_PRIORITY",
    "REJECTION_TAGS",
    "SHOW_FIELD_NAMES",
    "BatchReport",
    "CanonicalShow",
    "ChunkExtraction",
    "DecisionOutcome",
    "DecisionResult",
    "DedupAction",
    "DedupDecision",
    "DuplicatePair",
    "FeedbackAction",
    "FeedbackRecord",
    "FieldCorrection",
    "NormalizationDrop",
    "NormalizedShow",
    "PendingShow",
    "PriorityChange",
    "RawCandidate",
    "RawShowFields",
    "ReviewStatus",
    "ScrapingSource",
    "SourceFeedbackStats",
    "SourceRunStatus",
    "SourceRunSummary",
    "SourceSeed",
]
