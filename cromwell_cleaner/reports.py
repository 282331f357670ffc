"""
Run reporting for the Cromwell scaffold cleaner.

Aggregates per-object outcomes into a RunSummary, prints it, and writes the
optional JSON/CSV outcome reports.
"""

from __future__ import annotations

import csv
import json
import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from . import config

if TYPE_CHECKING:
    from .locator import BucketLocation

BYTES_PER_KIB = 1024

EXIT_OK = 0
EXIT_FAILURES = 1
EXIT_INTERRUPTED = 130


class TaskState(str, Enum):
    """Lifecycle of a single deletion task."""

    PENDING = "pending"
    IN_FLIGHT = "in_flight"
    RETRYING = "retrying"
    SUCCEEDED = "succeeded"
    WOULD_DELETE = "would_delete"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class DeletionOutcome:
    """Result of one Delete-classified object."""

    key: str
    attempted: bool
    succeeded: bool
    retries: int = 0
    state: TaskState = TaskState.SUCCEEDED
    error_kind: Optional[str] = None
    error_code: str = ""
    message: str = ""
    size: int = 0
    reason: Optional[str] = None


@dataclass(frozen=True)
class FailureRecord:
    key: str
    error_kind: str
    error_code: str
    message: str


@dataclass
class RunSummary:  # pylint: disable=too-many-instance-attributes
    """Aggregate counts for one run. Identical shape for real and dry runs."""

    dry_run: bool
    kept: int = 0
    deleted: int = 0
    would_delete: int = 0
    failed: int = 0
    cancelled: int = 0
    listing_failures: int = 0
    retries: int = 0
    bytes_reclaimed: int = 0
    interrupted: bool = False
    by_reason: dict[str, int] = field(default_factory=dict)
    failures: list[FailureRecord] = field(default_factory=list)

    @property
    def scanned(self) -> int:
        """Objects classified during the run."""
        return self.kept + self.deleted + self.would_delete + self.failed + self.cancelled

    @property
    def status(self) -> str:
        if self.interrupted:
            return "interrupted"
        if self.failed or self.listing_failures:
            return "failed"
        return "ok"

    @property
    def exit_code(self) -> int:
        if self.interrupted:
            return EXIT_INTERRUPTED
        if self.failed or self.listing_failures:
            return EXIT_FAILURES
        return EXIT_OK


class RunReporter:
    """Single aggregation point fed by the pipeline and the deletion workers."""

    def __init__(self, dry_run: bool, keep_outcomes: bool = False):
        self._lock = threading.Lock()
        self._summary = RunSummary(dry_run=dry_run)
        self._keep_outcomes = keep_outcomes
        self.outcomes: list[DeletionOutcome] = []

    def record_keep(self) -> None:
        with self._lock:
            self._summary.kept += 1

    def record_outcome(self, outcome: DeletionOutcome) -> None:
        """Record the terminal outcome of one deletion task."""
        with self._lock:
            summary = self._summary
            summary.retries += outcome.retries
            if outcome.state is TaskState.CANCELLED:
                summary.cancelled += 1
            elif outcome.state is TaskState.FAILED:
                summary.failed += 1
                summary.failures.append(
                    FailureRecord(
                        key=outcome.key,
                        error_kind=outcome.error_kind or "unknown",
                        error_code=outcome.error_code,
                        message=outcome.message,
                    )
                )
            else:
                if outcome.state is TaskState.WOULD_DELETE:
                    summary.would_delete += 1
                else:
                    summary.deleted += 1
                summary.bytes_reclaimed += outcome.size
                if outcome.reason:
                    summary.by_reason[outcome.reason] = summary.by_reason.get(outcome.reason, 0) + 1
            if self._keep_outcomes:
                self.outcomes.append(outcome)

    def record_listing_failure(self, message: str, error_kind: str = "transient", error_code: str = "") -> None:
        with self._lock:
            self._summary.listing_failures += 1
            self._summary.failures.append(
                FailureRecord(key="<listing>", error_kind=error_kind, error_code=error_code, message=message)
            )

    def mark_interrupted(self) -> None:
        with self._lock:
            self._summary.interrupted = True

    def summary(self) -> RunSummary:
        """Return a snapshot of the aggregate."""
        with self._lock:
            snapshot = self._summary
            return RunSummary(
                dry_run=snapshot.dry_run,
                kept=snapshot.kept,
                deleted=snapshot.deleted,
                would_delete=snapshot.would_delete,
                failed=snapshot.failed,
                cancelled=snapshot.cancelled,
                listing_failures=snapshot.listing_failures,
                retries=snapshot.retries,
                bytes_reclaimed=snapshot.bytes_reclaimed,
                interrupted=snapshot.interrupted,
                by_reason=dict(snapshot.by_reason),
                failures=list(snapshot.failures),
            )


def format_size(num_bytes: int | None) -> str:
    """Convert byte count to human-readable format (B, KB, MB, GB, etc)."""
    if num_bytes is None:
        return "n/a"
    suffixes = ["B", "KB", "MB", "GB", "TB", "PB"]
    value = float(num_bytes)
    for suffix in suffixes:
        if value < BYTES_PER_KIB or suffix == suffixes[-1]:
            return f"{value:.1f}{suffix}"
        value /= BYTES_PER_KIB
    return f"{value:.1f}PB"


def print_summary(summary: RunSummary, location: BucketLocation) -> None:
    """Print the end-of-run summary."""
    print()
    print("=" * 70)
    title = "DRY RUN SUMMARY" if summary.dry_run else "CLEANUP SUMMARY"
    print(f"{title}: {location.uri()}")
    print("=" * 70)
    print(f"  Objects scanned:  {summary.scanned:,}")
    print(f"  Kept:             {summary.kept:,}")
    if summary.dry_run:
        print(f"  Would delete:     {summary.would_delete:,} ({format_size(summary.bytes_reclaimed)})")
    else:
        print(f"  Deleted:          {summary.deleted:,} ({format_size(summary.bytes_reclaimed)})")
    print(f"  Failed:           {summary.failed:,}")
    if summary.cancelled:
        print(f"  Not attempted:    {summary.cancelled:,}")
    if summary.listing_failures:
        print(f"  Listing failures: {summary.listing_failures:,}")
    if summary.retries:
        print(f"  Retries:          {summary.retries:,}")

    if summary.by_reason:
        print("\nPer-reason totals:")
        for reason, count in sorted(summary.by_reason.items()):
            print(f"  {reason:20} count={count:8,d}")

    if summary.failures:
        print("\nFailures:")
        for failure in summary.failures[: config.SUMMARY_FAILURE_LINES]:
            code = f" {failure.error_code}" if failure.error_code else ""
            print(f"  ✗ {failure.key} [{failure.error_kind}{code}] {failure.message}")
        hidden = len(summary.failures) - config.SUMMARY_FAILURE_LINES
        if hidden > 0:
            print(f"  ... and {hidden:,} more (see --report-json/--report-csv)")

    print()
    if summary.interrupted:
        print("✗ Interrupted: completed deletions were not rolled back.")
    elif summary.status == "failed":
        print(f"✗ Completed with {summary.failed + summary.listing_failures:,} failure(s).")
    elif summary.dry_run:
        print("✓ Dry run complete: no objects were deleted.")
    else:
        print("✓ Cleanup complete.")


REPORT_FIELDS = ["key", "state", "reason", "size_bytes", "retries", "error_kind", "error_code", "message"]


def write_reports(
    outcomes: list[DeletionOutcome],
    *,
    json_path: Path | None,
    csv_path: Path | None,
) -> None:
    """Write per-object outcomes to JSON and/or CSV report files."""
    rows = [
        {
            "key": o.key,
            "state": o.state.value,
            "reason": o.reason,
            "size_bytes": o.size,
            "retries": o.retries,
            "error_kind": o.error_kind,
            "error_code": o.error_code,
            "message": o.message,
        }
        for o in outcomes
    ]
    if json_path:
        json_path.parent.mkdir(parents=True, exist_ok=True)
        json_path.write_text(json.dumps(rows, indent=2))
    if csv_path:
        csv_path.parent.mkdir(parents=True, exist_ok=True)
        with csv_path.open("w", newline="") as handle:
            writer = csv.DictWriter(handle, fieldnames=REPORT_FIELDS)
            writer.writeheader()
            writer.writerows(rows)
