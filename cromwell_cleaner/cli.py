"""
Command-line interface and main entry point for cromwell_cleaner.

Handles workflow orchestration and user interaction.
"""

from __future__ import annotations

import argparse
import logging
import sys
import threading

from . import config
from .args_parser import parse_args
from .exceptions import AuthenticationError, ConfigurationError, TransientApiError
from .locator import BucketLocation, parse_location
from .pipeline import CleanupOptions, install_interrupt_handler, run_cleanup
from .reports import RunReporter, print_summary, write_reports
from .retry import RetryPolicy
from .rules import load_rules, print_rules
from .storage import create_storage_client, verify_bucket

EXIT_CONFIGURATION_ERROR = 2
EXIT_AUTHENTICATION_ERROR = 3
EXIT_API_UNAVAILABLE = 4


def _build_options(args: argparse.Namespace) -> CleanupOptions:
    return CleanupOptions(
        dry_run=args.dry_run,
        workers=args.workers,
        queue_size=args.queue_size,
        policy=RetryPolicy(max_attempts=args.max_attempts),
        keep_outcomes=args.keep_outcomes,
    )


def _connect(args: argparse.Namespace, location: BucketLocation, policy: RetryPolicy):
    """Create the storage client and verify the bucket. Raises fatal errors."""
    s3 = create_storage_client(
        location,
        endpoint_url=args.endpoint_url,
        env_path=args.env_file,
        max_pool_connections=args.workers,
    )
    verify_bucket(s3, location, policy)
    return s3


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the cromwell-cleaner CLI."""
    args = parse_args(sys.argv[1:] if argv is None else argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(message)s",
    )

    try:
        config.check_environment()
        rules = load_rules(args.rules)
        if args.list_rules:
            print_rules(rules)
            return 0
        location = parse_location(args.bucket)
        options = _build_options(args)
        s3 = _connect(args, location, options.policy)
    except ConfigurationError as exc:
        logging.error("Configuration error: %s", exc)
        return EXIT_CONFIGURATION_ERROR
    except AuthenticationError as exc:
        logging.error("Authentication error: %s", exc)
        return EXIT_AUTHENTICATION_ERROR
    except TransientApiError as exc:
        logging.error("Storage API unavailable: %s", exc)
        return EXIT_API_UNAVAILABLE

    if args.dry_run:
        print("Dry run: no objects will be deleted.\n")

    reporter = RunReporter(dry_run=options.dry_run, keep_outcomes=options.keep_outcomes)
    try:
        with install_interrupt_handler(threading.Event()) as stop_event:
            summary = run_cleanup(
                s3, location, rules=rules, options=options, stop_event=stop_event, reporter=reporter
            )
    except AuthenticationError as exc:
        logging.error("Authentication error: %s", exc)
        print_summary(reporter.summary(), location)
        if options.keep_outcomes:
            write_reports(reporter.outcomes, json_path=args.report_json, csv_path=args.report_csv)
        return EXIT_AUTHENTICATION_ERROR

    print_summary(summary, location)
    if options.keep_outcomes:
        write_reports(reporter.outcomes, json_path=args.report_json, csv_path=args.report_csv)
    return summary.exit_code
