"""Unit tests for the command-line entry point (cardshow_scout.cli.run)."""

from __future__ import annotations

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from cardshow_scout.cli.run import build_parser, main
from cardshow_scout.models.pipeline import BatchReport, SourceRunStatus, SourceRunSummary
from cardshow_scout.models.source import SourceSeed
from cardshow_scout.providers.storage.sqlite_pending_store import SQLitePendingStore
from cardshow_scout.providers.storage.sqlite_source_registry import SQLiteSourceRegistry
from cardshow_scout.services.review_service import ReviewService

from conftest import NOW, make_pending, make_show


@pytest.fixture
def cli_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the CLI at a fresh database and strip extraction keys."""
    db_path = tmp_path / "cli.db"
    monkeypatch.setenv("DATABASE_PATH", str(db_path))
    monkeypatch.setenv("OPENAI_API_KEY", "")
    monkeypatch.setenv("ANTHROPIC_API_KEY", "")
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    return db_path


def _write_seeds(tmp_path: Path) -> Path:
    seeds = tmp_path / "sources.yaml"
    seeds.write_text(
        "sources:\n"
        "  - url: https://a.example.com/\n"
        "    priority_score: 70\n"
        "  - https://b.example.com/\n"
        "  - url: https://c.example.com/\n"
        "    enabled: false\n"
    )
    return seeds


def _seed_rejections(db_path: Path, source_url: str, count: int) -> SQLiteSourceRegistry:
    """Register *source_url* and reject *count* of its shows."""

    async def seed() -> SQLiteSourceRegistry:
        registry = SQLiteSourceRegistry(db_path=db_path)
        store = SQLitePendingStore(db_path=db_path)
        await registry.initialize()
        await store.initialize()
        await registry.upsert_seed(SourceSeed(url=source_url))
        review = ReviewService(pending_store=store)
        for i in range(count):
            pending = make_pending(make_show(name=f"Show {i}"), source_url=source_url)
            await store.insert(pending)
            await review.reject(pending.id, "SPAM")
        return registry

    return asyncio.run(seed())


# ======================================================================
# Parser
# ======================================================================


class TestParser:
    def test_run_limit(self) -> None:
        args = build_parser().parse_args(["run", "--limit", "5"])
        assert args.command == "run"
        assert args.limit == 5

    def test_sources_import_default_file(self) -> None:
        args = build_parser().parse_args(["sources", "import"])
        assert args.sources_command == "import"
        assert args.file is None

    def test_json_logs_flag(self) -> None:
        args = build_parser().parse_args(["--json-logs", "stats", "--days", "7"])
        assert args.json_logs is True
        assert args.days == 7

    def test_priorities_flags(self) -> None:
        args = build_parser().parse_args(["priorities", "--dry-run", "--min-count", "3"])
        assert args.dry_run is True
        assert args.min_count == 3
        defaults = build_parser().parse_args(["priorities"])
        assert defaults.dry_run is False
        assert defaults.min_count is None

    def test_command_required(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


# ======================================================================
# Commands against a temporary database
# ======================================================================


class TestCommands:
    def test_sources_import_then_list(
        self, cli_env: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        seeds = _write_seeds(tmp_path)
        assert main(["sources", "import", str(seeds)]) == 0
        assert "Imported 3 source(s)." in capsys.readouterr().out

        assert main(["sources", "list"]) == 0
        out = capsys.readouterr().out
        lines = [line for line in out.splitlines() if "example.com" in line]
        assert "https://a.example.com/" in lines[0]
        assert " no " in next(line for line in lines if "c.example.com" in line)

    def test_missing_seed_file(
        self, cli_env: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        assert main(["sources", "import", str(tmp_path / "missing.yaml")]) == 2
        assert "Source seed file not found" in capsys.readouterr().err

    def test_stats_on_empty_database(
        self, cli_env: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        assert main(["stats"]) == 0
        out = capsys.readouterr().out
        assert "Review Queue" in out
        assert "No admin decisions in this window." in out

    def test_priorities_without_feedback(
        self, cli_env: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        assert main(["priorities"]) == 0
        assert "No priority changes." in capsys.readouterr().out

    def test_priorities_dry_run_then_apply(
        self, cli_env: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        url = "https://a.example.com/"
        registry = _seed_rejections(cli_env, url, 10)

        assert main(["priorities", "--dry-run"]) == 0
        out = capsys.readouterr().out
        assert " 50.0 ->  30.0" in out
        assert "nothing applied" in out
        source = asyncio.run(registry.get(url))
        assert source is not None and source.priority_score == 50.0

        assert main(["priorities"]) == 0
        assert "Updated 1 source(s)." in capsys.readouterr().out
        source = asyncio.run(registry.get(url))
        assert source is not None and source.priority_score == 30.0

    def test_priorities_min_count(
        self, cli_env: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        _seed_rejections(cli_env, "https://a.example.com/", 3)

        assert main(["priorities"]) == 0
        assert "No priority changes." in capsys.readouterr().out
        assert main(["priorities", "--min-count", "3"]) == 0
        assert "Updated 1 source(s)." in capsys.readouterr().out

    def test_run_requires_credentials(
        self, cli_env: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        assert main(["run"]) == 2
        assert "Error:" in capsys.readouterr().err


class TestRunCommand:
    def _components(self, report: BatchReport) -> dict:
        pipeline = MagicMock()
        pipeline.run_batch = AsyncMock(return_value=report)
        fetcher = MagicMock()
        fetcher.aclose = AsyncMock()
        return {"pipeline": pipeline, "fetcher": fetcher}

    def test_prints_report_and_closes_fetcher(
        self, cli_env: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        report = BatchReport(
            started_at=NOW,
            finished_at=NOW,
            sources=[
                SourceRunSummary(
                    source_url="https://a.example.com/",
                    status=SourceRunStatus.SUCCESS,
                    chunks_total=2,
                    inserted=3,
                ),
                SourceRunSummary(
                    source_url="https://b.example.com/",
                    status=SourceRunStatus.FAILED,
                    error="HTTP 503",
                ),
            ],
        )
        components = self._components(report)

        with patch("cardshow_scout.main.build_services", AsyncMock(return_value=components)):
            assert main(["run", "--limit", "2"]) == 0

        components["pipeline"].run_batch.assert_awaited_once_with(limit=2)
        components["fetcher"].aclose.assert_awaited_once()
        out = capsys.readouterr().out
        assert "Inserted:        3" in out
        assert "error: HTTP 503" in out

    def test_all_sources_failed_exit_code(self, cli_env: Path) -> None:
        report = BatchReport(
            started_at=NOW,
            finished_at=NOW,
            sources=[
                SourceRunSummary(
                    source_url="https://a.example.com/", status=SourceRunStatus.FAILED
                )
            ],
        )
        with patch(
            "cardshow_scout.main.build_services",
            AsyncMock(return_value=self._components(report)),
        ):
            assert main(["run"]) == 1
