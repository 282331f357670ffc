"""
Cleanup pipeline: enumerate -> classify -> schedule deletions -> report.

Listing and deletion overlap; the scheduler's admission window blocks the
listing when deletions fall behind.
"""

from __future__ import annotations

import logging
import signal
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator, Optional, Sequence

from . import config
from .classifier import classify
from .enumerator import iter_objects
from .exceptions import ApiError, InterruptedRunError
from .locator import BucketLocation
from .reports import RunReporter, RunSummary
from .retry import RetryPolicy
from .rules import DEFAULT_RULES, ScaffoldRule
from .scheduler import DeletionScheduler


@dataclass(frozen=True)
class CleanupOptions:
    """Run settings resolved from the command line and environment."""

    dry_run: bool = False
    workers: int = config.DEFAULT_WORKERS
    queue_size: int = config.DEFAULT_QUEUE_SIZE
    page_size: int = config.LIST_PAGE_SIZE
    policy: RetryPolicy = field(default_factory=RetryPolicy)
    keep_outcomes: bool = False


@contextmanager
def install_interrupt_handler(stop_event: threading.Event) -> Iterator[threading.Event]:
    """Route SIGINT/SIGTERM to ``stop_event`` for the duration of the block."""

    def _signal_handler(signum, _frame):
        if not stop_event.is_set():
            print(f"\n✗ Received {signal.Signals(signum).name}: finishing in-flight deletions, no new work admitted.")
        stop_event.set()

    previous = {}
    if threading.current_thread() is threading.main_thread():
        for signum in (signal.SIGINT, signal.SIGTERM):
            previous[signum] = signal.signal(signum, _signal_handler)
    try:
        yield stop_event
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler)


def run_cleanup(
    s3,
    location: BucketLocation,
    *,
    rules: Sequence[ScaffoldRule] = DEFAULT_RULES,
    options: Optional[CleanupOptions] = None,
    stop_event: Optional[threading.Event] = None,
    reporter: Optional[RunReporter] = None,
) -> RunSummary:
    """Scan ``location`` and delete every scaffold object found.

    Dry runs print the URI of each object that would be deleted instead.
    """
    options = options or CleanupOptions()
    stop_event = stop_event or threading.Event()
    reporter = reporter or RunReporter(dry_run=options.dry_run, keep_outcomes=options.keep_outcomes)

    mode = "DRY RUN" if options.dry_run else "DELETE"
    logging.info("[%s] Scanning %s with %d worker(s)", mode, location.uri(), options.workers)

    scheduler = DeletionScheduler(
        s3,
        location.bucket,
        reporter,
        workers=options.workers,
        queue_size=options.queue_size,
        policy=options.policy,
        dry_run=options.dry_run,
        stop_event=stop_event,
    )
    would_delete_listed = 0
    with scheduler:
        try:
            for descriptor in iter_objects(
                s3,
                location,
                policy=options.policy,
                page_size=options.page_size,
                stop_event=stop_event,
            ):
                if stop_event.is_set():
                    break
                classification = classify(descriptor.key, rules)
                if not classification.is_delete:
                    logging.debug("keep   %s", descriptor.key)
                    reporter.record_keep()
                    continue
                logging.debug("delete %s [%s]", descriptor.key, classification.rule)
                admitted = scheduler.submit(descriptor, classification)
                if admitted and options.dry_run:
                    if not would_delete_listed:
                        print("Would delete the following objects:")
                    would_delete_listed += 1
                    print(location.object_uri(descriptor.key))
        except ApiError as exc:
            logging.error("Listing %s stopped: %s", location.uri(), exc)
            reporter.record_listing_failure(str(exc), error_kind=exc.kind, error_code=exc.code)
        except InterruptedRunError:
            logging.warning("Listing interrupted")

    if stop_event.is_set():
        reporter.mark_interrupted()
    return reporter.summary()
