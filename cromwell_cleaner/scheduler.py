"""
Deletion scheduler.

Runs deletions on a fixed-size thread pool. Admission is bounded so the
listing blocks once ``workers + queue_size`` tasks are outstanding, and every
outcome is handed to the RunReporter.

Per-task states: PENDING -> IN_FLIGHT -> {SUCCEEDED, RETRYING, FAILED};
RETRYING backs off on its worker and goes back to IN_FLIGHT. Dry runs go
straight to WOULD_DELETE, and pending tasks dropped by an interrupt end as
CANCELLED.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional

from . import config
from .api_errors import STORAGE_ERRORS, is_not_found
from .classifier import Classification
from .enumerator import ObjectDescriptor
from .exceptions import ApiError, InterruptedRunError
from .reports import DeletionOutcome, RunReporter, TaskState
from .retry import RetryPolicy, call_with_retry

ADMISSION_POLL_SECONDS = 0.5


@dataclass
class DeletionTask:
    """A Delete-classified object moving through the scheduler."""

    descriptor: ObjectDescriptor
    classification: Classification
    state: TaskState = TaskState.PENDING
    attempts: int = 0

    @property
    def key(self) -> str:
        return self.descriptor.key

    def outcome(self, *, succeeded: bool, retries: int = 0, error: Optional[Exception] = None) -> DeletionOutcome:
        """Build the terminal outcome for this task."""
        reason = self.classification.reason.value if self.classification.reason else None
        outcome = DeletionOutcome(
            key=self.key,
            attempted=self.attempts > 0,
            succeeded=succeeded,
            retries=retries,
            state=self.state,
            size=self.descriptor.size,
            reason=reason,
        )
        if error is not None:
            outcome.error_kind = getattr(error, "kind", "unknown")
            outcome.error_code = getattr(error, "code", "")
            outcome.message = str(error)
        return outcome


class DeletionScheduler:  # pylint: disable=too-many-instance-attributes
    """Bounded worker pool that deletes Delete-classified objects."""

    def __init__(
        self,
        s3,
        bucket: str,
        reporter: RunReporter,
        *,
        workers: int = config.DEFAULT_WORKERS,
        queue_size: int = config.DEFAULT_QUEUE_SIZE,
        policy: Optional[RetryPolicy] = None,
        dry_run: bool = False,
        stop_event: Optional[threading.Event] = None,
    ):
        if workers < 1:
            raise ValueError("workers must be >= 1")
        if queue_size < 0:
            raise ValueError("queue_size must be >= 0")
        self.s3 = s3
        self.bucket = bucket
        self.reporter = reporter
        self.workers = workers
        self.policy = policy or RetryPolicy()
        self.dry_run = dry_run
        self.stop_event = stop_event or threading.Event()
        self._slots = threading.BoundedSemaphore(workers + queue_size)
        self._executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="delete")
        self._closed = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def submit(self, descriptor: ObjectDescriptor, classification: Classification) -> bool:
        """Admit one Delete-classified object; blocks while the window is full.

        Returns:
            bool: False if the task was not admitted because of an interrupt.
        """
        if not classification.is_delete:
            raise ValueError(f"Refusing to schedule {descriptor.key}: classified {classification.action.value}")
        if self._closed:
            raise RuntimeError("DeletionScheduler is closed")
        task = DeletionTask(descriptor=descriptor, classification=classification)

        if not self._acquire_slot():
            task.state = TaskState.CANCELLED
            self.reporter.record_outcome(task.outcome(succeeded=False))
            return False
        future = self._executor.submit(self._run_task, task)
        future.add_done_callback(lambda f, t=task: self._finish(f, t))
        return True

    def _acquire_slot(self) -> bool:
        """Block for an admission slot; False once the stop event is set."""
        while not self._slots.acquire(timeout=ADMISSION_POLL_SECONDS):
            if self.stop_event.is_set():
                return False
        if self.stop_event.is_set():
            self._slots.release()
            return False
        return True

    def _finish(self, future: Future, task: DeletionTask) -> None:
        """Release the admission slot and record the outcome."""
        try:
            if future.cancelled():
                task.state = TaskState.CANCELLED
                self.reporter.record_outcome(task.outcome(succeeded=False))
                return
            exc = future.exception()
            if exc is not None:
                logging.error("Unexpected error deleting %s: %s", task.key, exc)
                task.state = TaskState.FAILED
                self.reporter.record_outcome(task.outcome(succeeded=False, error=exc))
                return
            self.reporter.record_outcome(future.result())
        finally:
            self._slots.release()

    def _delete_once(self, task: DeletionTask) -> None:
        """Issue exactly one delete request; a missing object counts as deleted."""
        task.attempts += 1
        task.state = TaskState.IN_FLIGHT
        try:
            self.s3.delete_object(Bucket=self.bucket, Key=task.key)
        except STORAGE_ERRORS as exc:
            if is_not_found(exc):
                logging.debug("%s already absent", task.key)
                return
            raise

    def _mark_retrying(self, task: DeletionTask) -> None:
        task.state = TaskState.RETRYING

    def _run_task(self, task: DeletionTask) -> DeletionOutcome:
        """Worker body: delete with retries and return the terminal outcome."""
        if self.dry_run:
            task.state = TaskState.WOULD_DELETE
            logging.debug("Would delete %s (%s)", task.key, task.classification.rule)
            return task.outcome(succeeded=True)

        if self.stop_event.is_set():
            task.state = TaskState.CANCELLED
            return task.outcome(succeeded=False)

        try:
            _, retries = call_with_retry(
                lambda: self._delete_once(task),
                self.policy,
                description=f"delete {task.key}",
                stop_event=self.stop_event,
                on_retry=lambda _attempt, _error: self._mark_retrying(task),
            )
        except ApiError as exc:
            task.state = TaskState.FAILED
            logging.error("Failed to delete %s: [%s %s] %s", task.key, exc.kind, exc.code, exc)
            return task.outcome(succeeded=False, retries=exc.retries, error=exc)
        except InterruptedRunError as exc:
            task.state = TaskState.FAILED
            logging.warning("Stopped retrying %s after interrupt", task.key)
            return task.outcome(succeeded=False, retries=max(task.attempts - 1, 0), error=exc)

        task.state = TaskState.SUCCEEDED
        logging.debug("Deleted %s", task.key)
        return task.outcome(succeeded=True, retries=retries)

    def close(self) -> None:
        """Wait for in-flight tasks; pending ones are cancelled after an interrupt."""
        if self._closed:
            return
        self._closed = True
        self._executor.shutdown(wait=True, cancel_futures=self.stop_event.is_set())
