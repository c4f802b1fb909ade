"""Batch orchestrator for the card show ingestion pipeline.

Runs fetch → chunk → extract → normalize → dedupe → score → store for every
enabled source and returns a :class:`BatchReport` with one
:class:`SourceRunSummary` per source.

ARCHITECTURE NOTE:
    Sources run with bounded parallelism: a semaphore sized to
    ``worker_pool_size`` keeps the number of sources talking to the
    extraction endpoint at once under its rate limit.  Within one source,
    chunks are extracted sequentially under a hard wall-clock budget; once
    the budget is spent the remaining chunks are skipped and the source is
    reported as partial.

    Dedup and store happen only after a source's full candidate set exists,
    and under one asyncio lock shared by all workers, so two sources can
    never race each other into inserting the same event as separate
    PENDING rows.  Across concurrent batch runs the store's unique index on
    the dedup key rejects the second insert, and the StoreConflictError turns
    into a merge.

    Failures are isolated: a fetch error or an extraction failure on every
    chunk marks that one source as failed and the batch continues.  Only a
    StorageError (database unreachable) aborts the run.

    cancel() stops scheduling between sources.  Sources that already
    started finish normally; sources that had not started are reported as
    skipped.
"""

from __future__ import annotations

import asyncio
from datetime import date, datetime, timezone
from typing import Callable

import structlog

from cardshow_scout.interfaces.pending_store import IPendingStore
from cardshow_scout.interfaces.source_registry import ISourceRegistry
from cardshow_scout.models.pipeline import (
    BatchReport,
    DedupAction,
    SourceRunStatus,
    SourceRunSummary,
)
from cardshow_scout.models.show import NormalizationDrop, NormalizedShow, PendingShow
from cardshow_scout.models.source import ScrapingSource
from cardshow_scout.services.chunker import HtmlChunker
from cardshow_scout.services.deduplicator import Deduplicator, dedup_key, merge_missing
from cardshow_scout.services.feedback_loop import FeedbackLoop
from cardshow_scout.services.fetcher import HtmlFetcher
from cardshow_scout.services.normalizer import ShowNormalizer
from cardshow_scout.services.show_extractor import ShowExtractor
from cardshow_scout.utils.concurrency import throttled_gather
from cardshow_scout.utils.confidence import score_show
from cardshow_scout.utils.errors import FetchError, StorageError, StoreConflictError
from cardshow_scout.utils.logging import get_logger


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _StoreTally:
    """Mutable counters for one source's store step."""

    def __init__(self) -> None:
        self.inserted = 0
        self.merged = 0
        self.matched_canonical = 0


class IngestionPipeline:
    """Runs one scraping batch across all enabled sources.

    All service dependencies are injected at construction time.  ``today``
    and ``clock`` are injectable so the recency filter and timestamps can
    be pinned in tests.
    """

    def __init__(
        self,
        *,
        source_registry: ISourceRegistry,
        pending_store: IPendingStore,
        fetcher: HtmlFetcher,
        chunker: HtmlChunker,
        extractor: ShowExtractor,
        normalizer: ShowNormalizer,
        deduplicator: Deduplicator,
        feedback_loop: FeedbackLoop,
        worker_pool_size: int = 3,
        source_budget_s: float = 120.0,
        today: Callable[[], date] = date.today,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._registry = source_registry
        self._store = pending_store
        self._fetcher = fetcher
        self._chunker = chunker
        self._extractor = extractor
        self._normalizer = normalizer
        self._deduplicator = deduplicator
        self._feedback_loop = feedback_loop
        self._worker_pool_size = worker_pool_size
        self._source_budget_s = source_budget_s
        self._today = today
        self._clock = clock
        self._cancelled = False
        self._store_lock = asyncio.Lock()
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def cancel(self) -> None:
        """Stop starting new sources.  Running sources finish normally."""
        self._cancelled = True
        self._logger.info("batch_cancel_requested")

    async def run_batch(self, limit: int | None = None) -> BatchReport:
        """Process up to *limit* enabled sources, highest priority first.

        Raises
        ------
        StorageError
            If the database becomes unreachable during the run.
        """
        self._cancelled = False
        started_at = self._clock()
        sources = await self._registry.list_enabled(limit)
        self._logger.info(
            "batch_started",
            sources=len(sources),
            worker_pool_size=self._worker_pool_size,
        )

        semaphore = asyncio.Semaphore(self._worker_pool_size)
        results = await throttled_gather(
            [self._run_source(source) for source in sources],
            semaphore=semaphore,
            return_exceptions=True,
        )

        summaries: list[SourceRunSummary] = []
        for source, result in zip(sources, results):
            if isinstance(result, StorageError):
                self._logger.error("batch_aborted", source_url=source.url, error=str(result))
                raise result
            if isinstance(result, BaseException):
                self._logger.error(
                    "source_crashed",
                    source_url=source.url,
                    error=str(result),
                    error_type=type(result).__name__,
                )
                result = SourceRunSummary(
                    source_url=source.url,
                    status=SourceRunStatus.FAILED,
                    error=str(result),
                )
            summaries.append(result)

        report = BatchReport(
            started_at=started_at,
            finished_at=self._clock(),
            cancelled=self._cancelled,
            sources=summaries,
        )
        self._logger.info(
            "batch_finished",
            inserted=report.inserted,
            failed_sources=len(report.failed_sources),
            cancelled=report.cancelled,
        )
        return report

    # ------------------------------------------------------------------
    # One source
    # ------------------------------------------------------------------

    async def _run_source(self, source: ScrapingSource) -> SourceRunSummary:
        # Runs once the semaphore grants a worker slot.
        if self._cancelled:
            return SourceRunSummary(source_url=source.url, status=SourceRunStatus.SKIPPED)
        return await self.process_source(source)

    async def process_source(self, source: ScrapingSource) -> SourceRunSummary:
        """Run the full pipeline for one source."""
        url = source.url
        today = self._today()
        log = self._logger.bind(source_url=url)

        # --- Fetch ---
        try:
            html = await self._fetcher.fetch(url)
        except FetchError as exc:
            log.warning("fetch_failed", kind=exc.kind.value, status_code=exc.status_code)
            await self._feedback_loop.record_fetch_failure(url)
            return SourceRunSummary(
                source_url=url, status=SourceRunStatus.FAILED, error=str(exc)
            )

        # --- Chunk + extract (sequential, budgeted) ---
        chunks = self._chunker.chunk(html)
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._source_budget_s
        candidates = []
        chunks_failed = 0
        chunks_skipped = 0
        past_dropped = 0

        for index, chunk in enumerate(chunks):
            remaining = deadline - loop.time()
            if remaining <= 0:
                chunks_skipped = len(chunks) - index
                log.warning("source_budget_exhausted", chunks_skipped=chunks_skipped)
                break
            try:
                extraction = await asyncio.wait_for(
                    self._extractor.extract_chunk(chunk, index, url, today),
                    timeout=remaining,
                )
            except asyncio.TimeoutError:
                chunks_failed += 1
                chunks_skipped = len(chunks) - index - 1
                log.warning("source_budget_exhausted", chunk_index=index, chunks_skipped=chunks_skipped)
                break
            if extraction.failed:
                chunks_failed += 1
            past_dropped += extraction.past_dropped
            candidates.extend(extraction.candidates)

        # --- Normalize ---
        shows: list[NormalizedShow] = []
        dropped = past_dropped
        for candidate in candidates:
            result = self._normalizer.normalize(candidate, today)
            if isinstance(result, NormalizationDrop):
                dropped += 1
            else:
                shows.append(result)

        # --- Dedupe + score + store ---
        tally = _StoreTally()
        async with self._store_lock:
            for show in shows:
                await self._store_show(url, show, tally)
        await self._feedback_loop.record_fetch_success(url, tally.inserted + tally.merged)

        if chunks and chunks_failed == len(chunks):
            status = SourceRunStatus.FAILED
        elif chunks_failed or chunks_skipped:
            status = SourceRunStatus.PARTIAL
        else:
            status = SourceRunStatus.SUCCESS

        summary = SourceRunSummary(
            source_url=url,
            status=status,
            chunks_total=len(chunks),
            chunks_failed=chunks_failed,
            chunks_skipped=chunks_skipped,
            candidates_extracted=len(candidates) + past_dropped,
            dropped=dropped,
            inserted=tally.inserted,
            merged=tally.merged,
            matched_canonical=tally.matched_canonical,
            error="all chunks failed" if status is SourceRunStatus.FAILED else None,
        )
        log.info(
            "source_processed",
            status=status.value,
            inserted=tally.inserted,
            merged=tally.merged,
            dropped=dropped,
        )
        return summary

    async def _store_show(self, source_url: str, show: NormalizedShow, tally: _StoreTally) -> None:
        decision = await self._deduplicator.decide(show)

        if decision.action is DedupAction.MATCH_CANONICAL:
            tally.matched_canonical += 1
            return

        if decision.action is DedupAction.MERGE_PENDING:
            if decision.merged_fields and decision.merged_payload is not None:
                await self._store.merge_into(
                    decision.duplicate_of,
                    decision.merged_payload,
                    score_show(decision.merged_payload),
                )
            tally.merged += 1
            return

        pending = PendingShow(
            source_url=source_url,
            raw_payload=show,
            confidence_score=score_show(show),
            dedup_key=dedup_key(show),
            created_at=self._clock(),
        )
        try:
            await self._store.insert(pending)
        except StoreConflictError as exc:
            # Another run inserted the same event first.
            await self._merge_on_conflict(exc, show)
            tally.merged += 1
            return
        tally.inserted += 1

    async def _merge_on_conflict(self, exc: StoreConflictError, show: NormalizedShow) -> None:
        if exc.existing_id is None:
            return
        existing = await self._store.get(exc.existing_id)
        if existing is None:
            return
        merged, filled = merge_missing(existing.raw_payload, show)
        if filled:
            await self._store.merge_into(existing.id, merged, score_show(merged))
        self._logger.info(
            "store_conflict_merged",
            dedup_key=exc.dedup_key,
            duplicate_of=existing.id,
            merged_fields=filled,
        )
