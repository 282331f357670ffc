"""
Argument parsing for the cromwell_cleaner CLI.

Handles command-line argument definition, parsing, and validation.
"""

from __future__ import annotations

import argparse
from pathlib import Path

from . import __version__, config


def _positive_int(text: str) -> int:
    try:
        value = int(text)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected an integer, got {text!r}") from exc
    if value < 1:
        raise argparse.ArgumentTypeError(f"must be >= 1, got {value}")
    return value


def _non_negative_int(text: str) -> int:
    try:
        value = int(text)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected an integer, got {text!r}") from exc
    if value < 0:
        raise argparse.ArgumentTypeError(f"must be >= 0, got {value}")
    return value


def add_target_arguments(parser: argparse.ArgumentParser) -> None:
    """Add the bucket and action arguments."""
    parser.add_argument(
        "-b",
        "--bucket",
        metavar="SCHEME://BUCKET[/PREFIX]",
        help="Bucket path to clean, e.g. gs://my-bucket/cromwell-executions or s3://my-bucket/runs.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Classify and report only; no objects are deleted.",
    )


def add_rule_arguments(parser: argparse.ArgumentParser) -> None:
    """Add rule table arguments."""
    parser.add_argument(
        "--rules",
        type=Path,
        default=Path(config.RULES_PATH) if config.RULES_PATH else None,
        help="JSON rule table replacing the built-in scaffold rules (env: CROMWELL_CLEANER_RULES).",
    )
    parser.add_argument(
        "--list-rules",
        action="store_true",
        help="Print the scaffold rules in effect and exit.",
    )


def add_performance_arguments(parser: argparse.ArgumentParser) -> None:
    """Add concurrency and retry arguments."""
    parser.add_argument(
        "--workers",
        type=_positive_int,
        default=config.DEFAULT_WORKERS,
        help=f"Concurrent delete requests (default: {config.DEFAULT_WORKERS}).",
    )
    parser.add_argument(
        "--queue-size",
        type=_non_negative_int,
        default=config.DEFAULT_QUEUE_SIZE,
        help=f"Deletions queued beyond the running workers before listing pauses (default: {config.DEFAULT_QUEUE_SIZE}).",
    )
    parser.add_argument(
        "--max-attempts",
        type=_positive_int,
        default=config.DEFAULT_MAX_ATTEMPTS,
        help=f"Attempts per request before giving up on transient errors (default: {config.DEFAULT_MAX_ATTEMPTS}).",
    )


def add_connection_arguments(parser: argparse.ArgumentParser) -> None:
    """Add endpoint and credential arguments."""
    parser.add_argument(
        "--endpoint-url",
        help="Override the storage endpoint (S3-compatible service, or a GCS API endpoint for gs://).",
    )
    parser.add_argument(
        "--env-file",
        help="Optional .env file with credentials or GOOGLE_APPLICATION_CREDENTIALS "
        "(default: $AWS_ENV_FILE or ~/.env when present).",
    )


def add_output_arguments(parser: argparse.ArgumentParser) -> None:
    """Add output and reporting arguments."""
    parser.add_argument("--report-json", type=Path, help="Optional path to write per-object outcomes as JSON.")
    parser.add_argument("--report-csv", type=Path, help="Optional path to write per-object outcomes as CSV.")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging (one line per object).")


def build_parser() -> argparse.ArgumentParser:
    """Create the cromwell-cleaner argument parser."""
    parser = argparse.ArgumentParser(
        prog="cromwell-cleaner",
        description="Delete extraneous Cromwell execution files (scripts, captured streams, rc markers, tmp dirs) "
        "from an object-storage path. Declared outputs are never touched.",
    )
    parser.add_argument("-V", "--version", action="version", version=f"%(prog)s {__version__}")
    add_target_arguments(parser)
    add_rule_arguments(parser)
    add_performance_arguments(parser)
    add_connection_arguments(parser)
    add_output_arguments(parser)
    return parser


def _validate_args(args: argparse.Namespace, parser: argparse.ArgumentParser) -> None:
    """Validate argument combinations argparse can't express."""
    if not args.list_rules and not args.bucket:
        parser.error("the following arguments are required: -b/--bucket")
    args.keep_outcomes = bool(args.report_json or args.report_csv)


def parse_args(argv: list[str]) -> argparse.Namespace:
    """Parse and process command-line arguments for cromwell-cleaner."""
    parser = build_parser()
    args = parser.parse_args(argv)
    _validate_args(args, parser)
    return args
