"""cardshow_scout composition root and FastAPI entry point.

# ─── HOW THIS FILE WORKS ─────────────────────────────────────────────
#
# This is the single place where every provider, service, and route
# component is created and wired via dependency injection.  Both the
# admin API (create_app) and the CLI (cardshow_scout.cli.run) call
# build_services() so they share one wiring.
#
#   1. **Provider selection**: OpenAI (or any OpenAI-compatible endpoint)
#      first, then Anthropic.  No key at all is a ConfigurationError.
#   2. **Storage**: one SQLite file holds the source registry, the review
#      queue, canonical shows, and the feedback log.  Both stores create
#      their tables at startup.
#   3. **Lifespan**: FastAPI's lifespan hook builds the stores and review
#      services at startup and attaches them to app.state.  The API makes
#      no outbound calls, so shutdown only logs.  The CLI builds the fetcher
#      and closes its HTTP client after a run.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI

from cardshow_scout.api.middleware import ErrorHandlingMiddleware, RequestLoggingMiddleware
from cardshow_scout.api.routes import admin_router
from cardshow_scout.config.settings import Settings
from cardshow_scout.interfaces.llm_provider import ILLMProvider
from cardshow_scout.pipeline.orchestrator import IngestionPipeline
from cardshow_scout.providers.llm.anthropic_provider import AnthropicLLMProvider
from cardshow_scout.providers.llm.openai_provider import OpenAILLMProvider
from cardshow_scout.providers.storage.sqlite_pending_store import SQLitePendingStore
from cardshow_scout.providers.storage.sqlite_source_registry import SQLiteSourceRegistry
from cardshow_scout.services.chunker import HtmlChunker
from cardshow_scout.services.deduplicator import Deduplicator
from cardshow_scout.services.feedback_loop import FeedbackLoop
from cardshow_scout.services.fetcher import HtmlFetcher
from cardshow_scout.services.normalizer import ShowNormalizer
from cardshow_scout.services.review_service import ReviewService
from cardshow_scout.services.show_extractor import ShowExtractor
from cardshow_scout.utils.logging import configure_logging, get_logger

_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------


def build_llm_provider(settings: Settings) -> ILLMProvider:
    """Select the first configured extraction endpoint.

    Priority order: OpenAI (or OpenAI-compatible) -> Anthropic.

    Raises
    ------
    ConfigurationError
        If neither API key is set.
    """
    settings.require_llm_credentials()
    if settings.openai_api_key:
        return OpenAILLMProvider(settings=settings)
    return AnthropicLLMProvider(settings=settings)


# ---------------------------------------------------------------------------
# Service wiring
# ---------------------------------------------------------------------------


async def build_stores(settings: Settings) -> dict[str, Any]:
    """Create and initialise the SQLite-backed stores.

    The review API and the ``sources`` / ``stats`` CLI commands need only
    these, so they run without extraction credentials.
    """
    source_registry = SQLiteSourceRegistry(db_path=settings.database_path)
    pending_store = SQLitePendingStore(db_path=settings.database_path)
    await source_registry.initialize()
    await pending_store.initialize()

    feedback_loop = FeedbackLoop(
        pending_store=pending_store,
        source_registry=source_registry,
        window_days=settings.feedback_window_days,
        min_count=settings.feedback_min_count,
        priority_min_count=settings.priority_min_count,
        error_streak_threshold=settings.error_streak_threshold,
    )
    review_service = ReviewService(pending_store=pending_store)

    return {
        "source_registry": source_registry,
        "pending_store": pending_store,
        "feedback_loop": feedback_loop,
        "review_service": review_service,
    }


async def build_services(settings: Settings) -> dict[str, Any]:
    """Wire every component, including the ingestion pipeline.

    Returns a flat dict of named components.

    Raises
    ------
    ConfigurationError
        If no extraction endpoint is configured.
    StorageError
        If the database cannot be opened.
    """
    llm_provider = build_llm_provider(settings)
    components = await build_stores(settings)

    fetcher = HtmlFetcher(
        timeout_s=settings.fetch_timeout_s,
        user_agent=settings.user_agent,
    )
    pipeline = IngestionPipeline(
        source_registry=components["source_registry"],
        pending_store=components["pending_store"],
        fetcher=fetcher,
        chunker=HtmlChunker(
            max_chunk_bytes=settings.max_html_size,
            max_chunks=settings.max_chunks,
        ),
        extractor=ShowExtractor(
            llm_provider,
            timeout_s=settings.ai_timeout_ms / 1000.0,
            max_retries=settings.chunk_max_retries,
        ),
        normalizer=ShowNormalizer(),
        deduplicator=Deduplicator(components["pending_store"]),
        feedback_loop=components["feedback_loop"],
        worker_pool_size=settings.worker_pool_size,
        source_budget_s=settings.source_budget_s,
    )

    components.update(
        {
            "llm_provider": llm_provider,
            "fetcher": fetcher,
            "pipeline": pipeline,
        }
    )
    _logger.info(
        "services_built",
        llm_provider=llm_provider.get_provider_name(),
        database_path=settings.database_path,
        worker_pool_size=settings.worker_pool_size,
    )
    return components


# ---------------------------------------------------------------------------
# FastAPI application
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(app: FastAPI):  # noqa: ANN201
    """Startup: build the stores and review services.  Shutdown: log."""
    settings: Settings = app.state.settings
    components = await build_stores(settings)

    # Attach all singletons to app.state for route handler access.
    for key, value in components.items():
        setattr(app.state, key, value)

    _logger.info("cardshow_scout_started", port=settings.app_port)
    yield
    _logger.info("cardshow_scout_shutdown")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the admin review FastAPI application.

    Parameters
    ----------
    settings:
        Optional pre-built settings.  If None, settings are loaded from
        environment variables / .env file.
    """
    if settings is None:
        settings = Settings()

    configure_logging(log_level=settings.log_level, app_env=settings.app_env)

    app = FastAPI(
        title="cardshow_scout",
        description="Admin review API for scraped card show listings",
        version="0.1.0",
        lifespan=_lifespan,
    )

    # Store settings before lifespan runs so _lifespan can read them.
    app.state.settings = settings

    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.include_router(admin_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app


def main() -> None:
    """Launch the admin API on the configured host and port."""
    settings = Settings()
    app = create_app(settings)
    uvicorn.run(
        app,
        host=settings.app_host,
        port=settings.app_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
