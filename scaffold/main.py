"""Command-line entrypoints for fetching and unpacking txtar templates."""
from __future__ import annotations

import argparse
import json
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import ValidationError

from scaffold.archive.extractor import extract, list_entries
from scaffold.errors import ScaffoldError
from scaffold.fetch.freshness import ensure_fresh, file_age
from scaffold.fetch.session import create_fetch_session
from scaffold.observability.log import configure_logging
from scaffold.observability.metrics import MetricsRegistry, record_duration
from scaffold.settings import Settings, load_settings

DEFAULT_SETTINGS = Path("config/settings.toml")
DEFAULT_LOGGING = Path("config/logging.yaml")


def _non_negative_int(value: str) -> int:
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError(f"must be zero or more, got {number}")
    return number


def build_arg_parser() -> argparse.ArgumentParser:
    """Create the CLI argument parser."""
    parser = argparse.ArgumentParser(prog="scaffold", description="Fetch and unpack txtar project templates")
    parser.add_argument("--config", default=str(DEFAULT_SETTINGS), help="Path to settings TOML")
    parser.add_argument("--logging-config", default=str(DEFAULT_LOGGING), help="Path to logging YAML")
    parser.add_argument("--verbose", action="store_true", help="Emit debug log events")
    parser.add_argument("--metrics", help="Write run counters to this JSON file")
    sub = parser.add_subparsers(dest="command", required=True)

    fetch = sub.add_parser("fetch", help="Download the template unless the cached copy is fresh")
    fetch.add_argument(
        "--max-age",
        type=_non_negative_int,
        help="Override the cache max age in seconds (0 always downloads)",
    )

    extract_cmd = sub.add_parser("extract", help="Unpack an archive into a directory")
    extract_cmd.add_argument("destination", help="Directory to extract into")
    extract_cmd.add_argument("--archive", help="Archive to read (defaults to the rendered template)")
    extract_cmd.add_argument(
        "--reject-duplicates",
        action="store_true",
        help="Fail when two entries share a destination path",
    )

    list_cmd = sub.add_parser("list", help="List the entries of an archive")
    list_cmd.add_argument("--archive", help="Archive to read (defaults to the raw template)")

    sub.add_parser("status", help="Show cached template paths and age")

    return parser


def cmd_fetch(args: argparse.Namespace, settings: Settings, metrics: MetricsRegistry) -> None:
    descriptor = settings.descriptor()
    if args.max_age is not None:
        max_age = timedelta(seconds=args.max_age)
    else:
        max_age = settings.cache.max_age
    with create_fetch_session(
        user_agent=settings.fetch.user_agent,
        timeout=settings.fetch.timeout_seconds,
    ) as session:
        result = ensure_fresh(descriptor, max_age, session=session, metrics=metrics)
    print(json.dumps(result.to_dict(), indent=2))
    if not result.ok:
        raise SystemExit(1)


def cmd_extract(args: argparse.Namespace, settings: Settings, metrics: MetricsRegistry) -> None:
    archive = Path(args.archive) if args.archive else settings.descriptor().rendered_path
    with record_duration(metrics, "extract_duration_ms"):
        written = extract(
            archive,
            Path(args.destination),
            reject_duplicates=args.reject_duplicates,
            metrics=metrics,
        )
    print(json.dumps([str(path) for path in written], indent=2))


def cmd_list(args: argparse.Namespace, settings: Settings) -> None:
    archive = Path(args.archive) if args.archive else settings.descriptor().raw_path
    entries = [{"name": name, "bytes": size} for name, size in list_entries(archive)]
    print(json.dumps(entries, indent=2))


def cmd_status(args: argparse.Namespace, settings: Settings) -> None:
    descriptor = settings.descriptor()
    age = file_age(descriptor.raw_path)
    print(json.dumps({
        "remote_url": descriptor.remote_url,
        "raw_path": str(descriptor.raw_path),
        "raw_exists": descriptor.raw_path.exists(),
        "raw_age_seconds": int(age.total_seconds()) if age is not None else None,
        "rendered_path": str(descriptor.rendered_path),
        "rendered_exists": descriptor.rendered_path.exists(),
        "max_age_seconds": settings.cache.max_age_seconds,
    }, indent=2))


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the CLI."""
    load_dotenv()
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    configure_logging(
        Path(args.logging_config),
        level=logging.DEBUG if args.verbose else logging.INFO,
    )
    try:
        settings = load_settings(Path(args.config))
        settings.descriptor()
    except (ValidationError, ValueError) as exc:
        raise SystemExit(f"Invalid configuration: {exc}")

    metrics = MetricsRegistry()
    run_id = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S")
    try:
        if args.command == "fetch":
            cmd_fetch(args, settings, metrics)
        elif args.command == "extract":
            cmd_extract(args, settings, metrics)
        elif args.command == "list":
            cmd_list(args, settings)
        elif args.command == "status":
            cmd_status(args, settings)
    except ScaffoldError as exc:
        raise SystemExit(str(exc))
    finally:
        if args.metrics:
            metrics.export(path=Path(args.metrics), run_id=run_id)


if __name__ == "__main__":
    main()
