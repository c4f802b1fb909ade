"""Command-line entry point for cardshow_scout.

Usage::

    python -m cardshow_scout.cli run --limit 20
    python -m cardshow_scout.cli sources import config/sources.yaml
    python -m cardshow_scout.cli sources list
    python -m cardshow_scout.cli stats --days 30
    python -m cardshow_scout.cli priorities
    python -m cardshow_scout.cli serve

``run`` needs an extraction API key; the other commands only touch the
database.  Ctrl-C during ``run`` cancels the batch: sources already in
progress finish and the remaining ones are reported as skipped.
"""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys

from cardshow_scout.config.loader import load_source_seeds
from cardshow_scout.config.settings import Settings
from cardshow_scout.models.pipeline import BatchReport
from cardshow_scout.utils.errors import CardShowScoutError
from cardshow_scout.utils.logging import configure_logging


# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------


def _print_report(report: BatchReport) -> None:
    print("Batch Report")
    print("=" * 72)
    print(f"  {'status':<8} {'chunks':>7} {'found':>6} {'drop':>5} {'new':>4} {'merge':>6}  source")
    for s in report.sources:
        chunks = f"{s.chunks_total - s.chunks_failed}/{s.chunks_total}"
        print(
            f"  {s.status.value:<8} {chunks:>7} {s.candidates_extracted:>6} "
            f"{s.dropped:>5} {s.inserted:>4} {s.merged:>6}  {s.source_url}"
        )
        if s.error:
            print(f"           error: {s.error}")
    print()
    print(f"  Inserted:        {report.inserted}")
    print(f"  Failed sources:  {len(report.failed_sources)}")
    if report.cancelled:
        print("  Batch was cancelled before all sources started.")


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


async def _handle_run(args: argparse.Namespace, settings: Settings) -> int:
    from cardshow_scout.main import build_services

    components = await build_services(settings)
    pipeline = components["pipeline"]

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, pipeline.cancel)
    except NotImplementedError:
        # Windows event loops have no signal handlers.
        pass

    try:
        report = await pipeline.run_batch(limit=args.limit)
    finally:
        await components["fetcher"].aclose()

    _print_report(report)
    return 1 if report.sources and len(report.failed_sources) == len(report.sources) else 0


async def _handle_sources_import(args: argparse.Namespace, settings: Settings) -> int:
    from cardshow_scout.main import build_stores

    seeds = load_source_seeds(args.file or settings.sources_file)
    registry = (await build_stores(settings))["source_registry"]
    for seed in seeds:
        source = await registry.upsert_seed(seed)
        state = "enabled" if source.enabled else "disabled"
        print(f"  {state:<9} {source.priority_score:>5.1f}  {source.url}")
    print(f"\nImported {len(seeds)} source(s).")
    return 0


async def _handle_sources_list(settings: Settings) -> int:
    from cardshow_scout.main import build_stores

    registry = (await build_stores(settings))["source_registry"]
    sources = await registry.list_all()
    if not sources:
        print("No sources configured.  Run `sources import FILE` first.")
        return 0

    print(f"  {'enabled':<8} {'prio':>5} {'errors':>6}  url")
    for source in sources:
        print(
            f"  {'yes' if source.enabled else 'no':<8} {source.priority_score:>5.1f} "
            f"{source.error_streak:>6}  {source.url}"
        )
    return 0


async def _handle_stats(args: argparse.Namespace, settings: Settings) -> int:
    from cardshow_scout.main import build_stores

    components = await build_stores(settings)
    queue = await components["review_service"].queue_stats()
    stats = await components["feedback_loop"].get_feedback_stats(days_ago=args.days)

    print("Review Queue")
    print("=" * 40)
    for key in ("pending", "approved", "rejected", "total"):
        print(f"  {key.capitalize():<10} {queue.get(key, 0)}")

    window = args.days if args.days is not None else settings.feedback_window_days
    print(f"\nSource feedback (last {window} days)")
    print("=" * 72)
    if not stats:
        print("  No admin decisions in this window.")
        return 0
    for s in stats:
        avg = f"{s.avg_confidence:.1f}" if s.avg_confidence is not None else "-"
        print(
            f"  {s.total:>4} decisions  {s.approval_rate:>5.1f}% approved  "
            f"avg conf {avg:>5}  {s.source_url}"
        )
        if s.rejection_tags:
            tags = ", ".join(f"{t}={n}" for t, n in sorted(s.rejection_tags.items()))
            print(f"        tags: {tags}")
    return 0


async def _handle_priorities(args: argparse.Namespace, settings: Settings) -> int:
    from cardshow_scout.main import build_stores

    loop = (await build_stores(settings))["feedback_loop"]
    changes = await loop.update_priorities(
        days_ago=args.days, min_count=args.min_count, dry_run=args.dry_run
    )
    if not changes:
        print("No priority changes.")
        return 0
    for c in changes:
        print(f"  {c.old_priority:>5.1f} -> {c.new_priority:>5.1f}  {c.source_url}  ({c.reason})")
    if args.dry_run:
        print(f"\nDry run: {len(changes)} source(s) would change, nothing applied.")
    else:
        print(f"\nUpdated {len(changes)} source(s).")
    return 0


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cardshow_scout",
        description="Scrape card show listings into a human review queue.",
    )
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON log lines")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run one scraping batch")
    run_parser.add_argument(
        "--limit", type=int, default=None, help="Maximum number of sources to process"
    )

    sources_parser = subparsers.add_parser("sources", help="Manage scraping sources")
    sources_sub = sources_parser.add_subparsers(dest="sources_command", required=True)
    import_parser = sources_sub.add_parser("import", help="Upsert sources from a YAML file")
    import_parser.add_argument(
        "file", nargs="?", default=None, help="Seed file (default: SOURCES_FILE setting)"
    )
    sources_sub.add_parser("list", help="List configured sources")

    stats_parser = subparsers.add_parser("stats", help="Queue and per-source feedback stats")
    stats_parser.add_argument("--days", type=int, default=None, help="Feedback window in days")

    prio_parser = subparsers.add_parser("priorities", help="Recompute source priorities")
    prio_parser.add_argument("--days", type=int, default=None, help="Feedback window in days")
    prio_parser.add_argument(
        "--min-count",
        type=int,
        default=None,
        help="Minimum decisions per source (default: PRIORITY_MIN_COUNT)",
    )
    prio_parser.add_argument(
        "--dry-run", action="store_true", help="Show the changes without applying them"
    )

    subparsers.add_parser("serve", help="Start the admin review API")
    return parser


async def _dispatch(args: argparse.Namespace, settings: Settings) -> int:
    if args.command == "run":
        return await _handle_run(args, settings)
    if args.command == "sources":
        if args.sources_command == "import":
            return await _handle_sources_import(args, settings)
        return await _handle_sources_list(settings)
    if args.command == "stats":
        return await _handle_stats(args, settings)
    if args.command == "priorities":
        return await _handle_priorities(args, settings)
    raise ValueError(f"Unknown command: {args.command}")


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = Settings()

    if args.command == "serve":
        from cardshow_scout.main import main as serve

        serve()
        return 0

    configure_logging(
        log_level=settings.log_level,
        json_output=args.json_logs,
        app_env=settings.app_env,
    )
    try:
        return asyncio.run(_dispatch(args, settings))
    except CardShowScoutError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
