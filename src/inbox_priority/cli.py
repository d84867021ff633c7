"""Command-line entry point for inbox-priority."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from collections.abc import Sequence
from dataclasses import asdict
from pathlib import Path

from inbox_priority.core import AppSettings, configure_logging, load_app_settings
from inbox_priority.core.models import BatchReport, RawMessage
from inbox_priority.ingestion import EmailParser
from inbox_priority.intelligence import build_priority_service, explain
from inbox_priority.storage import InMemoryMailStore

LOGGER = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Create and configure the CLI argument parser."""
    parser = argparse.ArgumentParser(description="Deterministic email priority scoring")
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Path to a .env file containing configuration overrides.",
    )
    parser.add_argument(
        "command",
        choices=["score"],
        help="Operation to execute.",
    )
    parser.add_argument(
        "paths",
        nargs="+",
        type=Path,
        help=".eml files or directories containing them.",
    )
    parser.add_argument(
        "--user-address",
        dest="user_address",
        default=None,
        help="Mailbox owner's address (overrides configuration).",
    )
    parser.add_argument(
        "--vip",
        dest="vip",
        action="append",
        default=[],
        help="Sender address to treat as VIP; may be repeated.",
    )
    parser.add_argument(
        "--parallelism",
        type=int,
        default=None,
        help="Concurrent messages to score (default from configuration).",
    )
    parser.add_argument(
        "--json",
        dest="as_json",
        action="store_true",
        help="Print results as JSON instead of explanations.",
    )
    return parser


def execute(args: argparse.Namespace, settings: AppSettings) -> int:
    """Execute the requested CLI command and return an exit code."""
    settings = _apply_cli_overrides(args, settings)
    messages = load_messages(args.paths)
    if not messages:
        print("No messages found.")
        return 1

    store = InMemoryMailStore(messages, settings=settings.relationship)
    service = build_priority_service(
        settings,
        message_source=store,
        history_source=store,
        thread_source=store,
    )
    report = asyncio.run(
        service.score_many([message.message_id for message in messages], args.parallelism)
    )
    _print_report(report, as_json=args.as_json)
    return 0 if not report.errors else 2


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = load_app_settings(env_file=args.env_file)
    configure_logging(settings.logging)
    return execute(args, settings)


def load_messages(paths: Sequence[Path]) -> list[RawMessage]:
    """Parse every ``.eml`` file named by ``paths``; directories are scanned."""
    email_parser = EmailParser()
    messages: list[RawMessage] = []
    for path in paths:
        files = sorted(path.glob("*.eml")) if path.is_dir() else [path]
        for file_path in files:
            try:
                payload = file_path.read_bytes()
            except OSError as exc:
                LOGGER.error("Cannot read %s: %s", file_path, exc)
                continue
            messages.append(email_parser.parse(payload, fallback_id=file_path.stem))
    return messages


def _apply_cli_overrides(args: argparse.Namespace, settings: AppSettings) -> AppSettings:
    user_updates: dict[str, object] = {}
    if args.user_address:
        user_updates["address"] = args.user_address
    if args.vip:
        user_updates["vip_senders"] = [*settings.user.vip_senders, *args.vip]
    if not user_updates:
        return settings
    return settings.model_copy(
        update={"user": settings.user.model_copy(update=user_updates)}
    )


def _print_report(report: BatchReport, *, as_json: bool) -> None:
    if as_json:
        payload = {
            "results": [asdict(result) for result in report.results],
            "errors": [asdict(error) for error in report.errors],
            "elapsed_seconds": report.elapsed_seconds,
        }
        print(json.dumps(payload, indent=2, default=str))
        return

    for result in report.results:
        print(f"== {result.message_id}")
        print(explain(result))
    for failure in report.errors:
        print(f"!! {failure.message_id}: {failure.error} ({failure.kind})")


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
