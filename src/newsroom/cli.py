"""Summary: Command-line interface for Newsroom.

Importance: Provides a local-first entry point for ingestion, analysis, and summaries.
Alternatives: Build a web UI or desktop client first.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path

from newsroom.app import build_services
from newsroom.config import AppConfig
from newsroom.slack import FixtureMessageSource
from newsroom.services import day_window


def build_parser() -> argparse.ArgumentParser:
    """Summary: Build the CLI argument parser.

    Importance: Defines supported commands for local operation.
    Alternatives: Use a CLI framework like Typer or Click.
    """

    parser = argparse.ArgumentParser(description="Newsroom CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    ingest_fixture = subparsers.add_parser("ingest-fixture", help="Ingest a Slack fixture")
    ingest_fixture.add_argument("--fixture", type=str, default=None)
    ingest_fixture.add_argument("--channel", action="append", default=[])
    ingest_fixture.add_argument("--date", type=str, default=None)

    ingest_slack = subparsers.add_parser("ingest-slack", help="Scan Slack channels")
    ingest_slack.add_argument("--channel", action="append", default=[])
    ingest_slack.add_argument("--date", type=str, default=None)

    list_messages = subparsers.add_parser("list-messages", help="List stored messages")
    list_messages.add_argument("--limit", type=int, default=10)
    list_messages.add_argument("--channel", type=str, default=None)
    list_messages.add_argument("--squad", type=str, default=None)
    list_messages.add_argument("--min-importance", type=float, default=None)

    analyze = subparsers.add_parser("analyze", help="Analyze stored messages")
    analyze.add_argument("message_ids", nargs="*", type=str)
    analyze.add_argument("--limit", type=int, default=50)
    analyze.add_argument("--all", action="store_true", help="Re-analyze tagged messages too")

    correct = subparsers.add_parser("correct", help="Record a tag correction")
    correct.add_argument("message_id", type=str)
    correct.add_argument("--original", type=str, default="")
    correct.add_argument("--corrected", type=str, default="")
    correct.add_argument("--user", type=str, default=None)

    feedback = subparsers.add_parser("feedback", help="Record tag feedback")
    feedback.add_argument("message_id", type=str)
    feedback.add_argument("kind", choices=["positive", "negative"])
    feedback.add_argument("--tags", type=str, default="")
    feedback.add_argument("--user", type=str, default=None)

    subparsers.add_parser("metrics", help="Show learning metrics")

    corrections = subparsers.add_parser("corrections", help="Show recent corrections")
    corrections.add_argument("--limit", type=int, default=20)

    summarize = subparsers.add_parser("summarize", help="Generate a daily summary")
    summarize.add_argument("--date", type=str, default=None)
    summarize.add_argument("--squad", type=str, default=None)
    summarize.add_argument("--greeting", action="store_true")

    list_summaries = subparsers.add_parser("list-summaries", help="List stored summaries")
    list_summaries.add_argument("--date", type=str, default=None)
    list_summaries.add_argument("--squad", type=str, default=None)
    list_summaries.add_argument("--limit", type=int, default=10)

    subparsers.add_parser("squads", help="List configured squads")

    resolve_channel = subparsers.add_parser("resolve-channel", help="Resolve a channel's squad")
    resolve_channel.add_argument("channel", type=str)

    subparsers.add_parser("stats", help="Show collection counts")
    subparsers.add_parser("tag-stats", help="Show tag usage statistics")
    subparsers.add_parser("storage-stats", help="Show storage document stats")

    backup = subparsers.add_parser("backup", help="Back up storage documents")
    backup.add_argument("--day", type=str, default=None)

    return parser


def _split_tags(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def run_cli(argv: list[str] | None = None) -> None:
    """Summary: Execute CLI commands based on arguments.

    Importance: Drives local workflows without the HTTP API.
    Alternatives: Invoke services via the HTTP API.
    """

    parser = build_parser()
    args = parser.parse_args(argv)
    config = AppConfig.from_env()
    logging.basicConfig(level=config.log_level, format="%(levelname)s %(name)s: %(message)s")
    services = build_services(config)

    if args.command == "ingest-fixture":
        source = FixtureMessageSource(Path(args.fixture or config.slack_fixture_path))
        start, end = day_window(args.date) if args.date else (
            datetime.fromtimestamp(0, tz=timezone.utc),
            datetime.now(timezone.utc),
        )
        channel_ids = args.channel or source.channel_ids()
        results = services.ingestion.scan_channels(source, channel_ids, start, end)
        print(f"Ingested {sum(results.values())} messages from {len(results)} channels.")
        return

    if args.command == "ingest-slack":
        channel_ids = args.channel or config.monitored_channels
        if not channel_ids:
            raise ValueError("No channels given and NEWSROOM_MONITORED_CHANNELS is empty")
        start, end = day_window(args.date)
        results = services.ingestion.scan_channels(
            services.message_source(), channel_ids, start, end
        )
        for channel_id, count in results.items():
            print(f"{channel_id}: {count} new messages")
        return

    if args.command == "list-messages":
        messages = services.ingestion.list_messages(
            limit=args.limit,
            channel_id=args.channel,
            squad=args.squad,
            min_importance=args.min_importance,
        )
        for message in messages:
            importance = "-" if message.importance is None else f"{message.importance:.2f}"
            tags = ", ".join(message.tags) or "untagged"
            print(f"{message.id} [{message.squad}] {importance} ({tags}) {message.text[:80]}")
        return

    if args.command == "analyze":
        if args.message_ids:
            messages = [services.ingestion.get_message(item) for item in args.message_ids]
            results = asyncio.run(services.tagging.analyze_messages(messages))
        else:
            results = asyncio.run(
                services.tagging.analyze_stored(limit=args.limit, only_untagged=not args.all)
            )
        for result in results:
            print(
                f"{result.message_id}: {result.importance:.2f} {result.urgency} "
                f"[{', '.join(result.tag_names)}]"
            )
        print(f"Analyzed {len(results)} messages.")
        return

    if args.command == "correct":
        correction = services.learning.record_correction(
            args.message_id,
            _split_tags(args.original),
            _split_tags(args.corrected),
            actor=args.user,
        )
        print(
            f"Recorded correction for {correction.message_id}: "
            f"{list(correction.original_tags)} -> {list(correction.corrected_tags)}"
        )
        return

    if args.command == "feedback":
        record = services.learning.record_feedback(
            args.message_id, _split_tags(args.tags), args.kind, actor=args.user
        )
        print(f"Recorded {record.feedback} feedback for {record.message_id}.")
        return

    if args.command == "metrics":
        metrics = services.learning.get_metrics()
        print(f"Total corrections: {metrics.total_corrections}")
        print(f"Accuracy improvement: {metrics.accuracy_improvement:.1f}%")
        print(f"Feedback: {metrics.feedback_stats}")
        for tag, count in metrics.most_corrected_tags:
            print(f"- {tag}: {count}")
        return

    if args.command == "corrections":
        for item in services.learning.recent_corrections(args.limit):
            print(
                f"{item.timestamp.isoformat()} {item.feedback} {item.message_id}: "
                f"{list(item.original_tags)} -> {list(item.corrected_tags)}"
            )
        return

    if args.command == "summarize":
        date = args.date or (datetime.now(timezone.utc) - timedelta(days=1)).date().isoformat()
        summary = asyncio.run(
            services.summaries.generate_daily_summary(
                date, squad=args.squad, include_greeting=args.greeting
            )
        )
        print(summary.title)
        if summary.greeting:
            print(summary.greeting)
        print(summary.content)
        print(f"Topics: {', '.join(summary.key_topics)}")
        print(f"Sentiment: {summary.sentiment}")
        for highlight in summary.highlights:
            print(f"- {highlight}")
        for item in summary.action_items:
            print(f"[ ] {item}")
        return

    if args.command == "list-summaries":
        for summary in services.summaries.list_summaries(
            date=args.date, squad=args.squad, limit=args.limit
        ):
            print(f"{summary.id}: {summary.message_count} messages, {summary.sentiment}")
        return

    if args.command == "squads":
        for squad in services.resolver.directory.main_squads():
            print(f"{squad.id}: {squad.name}")
            for subsquad in services.resolver.directory.subsquads(squad.id):
                print(f"  {subsquad.id}: {subsquad.name}")
        return

    if args.command == "resolve-channel":
        resolver = services.resolver
        print(
            f"{args.channel} -> {resolver.resolve(args.channel)} "
            f"(context: {', '.join(resolver.squad_context(args.channel))}, "
            f"multiplier {resolver.multiplier(args.channel)})"
        )
        return

    if args.command == "stats":
        print(json.dumps(services.stats.snapshot(), indent=2))
        return

    if args.command == "tag-stats":
        print(json.dumps(services.stats.tag_statistics(), indent=2))
        return

    if args.command == "storage-stats":
        print(json.dumps(services.store.stats(), indent=2))
        return

    if args.command == "backup":
        print(f"Backed up documents to {services.store.backup(args.day)}")
        return

    parser.error(f"Unknown command {args.command}")


if __name__ == "__main__":
    run_cli()
