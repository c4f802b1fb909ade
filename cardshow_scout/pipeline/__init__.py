"""Batch orchestration for the card show ingestion pipeline."""

from cardshow_scout.pipeline.orchestrator import IngestionPipeline

__all__ = ["IngestionPipeline"]
