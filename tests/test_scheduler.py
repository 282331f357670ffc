"""Tests for cromwell_cleaner/scheduler.py."""

from __future__ import annotations

import threading

import pytest
from google.api_core import exceptions as google_exceptions

from cromwell_cleaner.classifier import KEEP
from cromwell_cleaner.reports import RunReporter, TaskState
from cromwell_cleaner.retry import RetryPolicy
from cromwell_cleaner.scheduler import DeletionScheduler
from tests.assertions import assert_equal, assert_summary_counts
from tests.conftest import FakeS3Client, client_error, delete_classification, descriptor


def _run(s3, keys, *, policy, dry_run=False, workers=4, queue_size=8, keep_outcomes=True):
    reporter = RunReporter(dry_run=dry_run, keep_outcomes=keep_outcomes)
    with DeletionScheduler(
        s3, "bucket", reporter, workers=workers, queue_size=queue_size, policy=policy, dry_run=dry_run
    ) as scheduler:
        for key in keys:
            scheduler.submit(descriptor(key), delete_classification())
    return reporter


def _outcomes_by_key(reporter):
    return {outcome.key: outcome for outcome in reporter.outcomes}


def test_deletes_every_submitted_object(fake_s3, no_sleep_policy):
    keys = [f"k{idx}" for idx in range(20)]
    fake_s3.add_objects(keys)

    reporter = _run(fake_s3, keys, policy=no_sleep_policy)

    assert_equal(sorted(fake_s3.delete_calls), sorted(keys))
    assert_equal(fake_s3.objects, {})
    assert_summary_counts(reporter.summary(), deleted=20, failed=0, would_delete=0)
    assert all(outcome.attempted and outcome.succeeded for outcome in reporter.outcomes)


def test_delete_of_absent_object_succeeds(fake_s3, no_sleep_policy):
    """A 404/NoSuchKey on delete means the object is already gone."""
    fake_s3.delete_failures["gone"].append(client_error("NoSuchKey", 404))

    reporter = _run(fake_s3, ["gone"], policy=no_sleep_policy)

    outcome = _outcomes_by_key(reporter)["gone"]
    assert_equal(outcome.state, TaskState.SUCCEEDED)
    assert outcome.succeeded is True
    assert_equal(outcome.retries, 0)
    assert_summary_counts(reporter.summary(), deleted=1, failed=0)


def test_transient_failure_is_retried_then_succeeds(fake_s3, no_sleep_policy):
    fake_s3.add_objects(["slow"])
    fake_s3.delete_failures["slow"].extend([client_error("SlowDown", 503), client_error("InternalError", 500)])

    reporter = _run(fake_s3, ["slow"], policy=no_sleep_policy)

    outcome = _outcomes_by_key(reporter)["slow"]
    assert_equal(outcome.state, TaskState.SUCCEEDED)
    assert_equal(outcome.retries, 2)
    assert_equal(fake_s3.delete_calls, ["slow", "slow", "slow"])


def test_google_not_found_on_delete_succeeds(fake_s3, no_sleep_policy):
    fake_s3.delete_failures["gone"].append(google_exceptions.NotFound("No such object: bucket/gone"))

    reporter = _run(fake_s3, ["gone"], policy=no_sleep_policy)

    assert_equal(_outcomes_by_key(reporter)["gone"].state, TaskState.SUCCEEDED)
    assert_summary_counts(reporter.summary(), deleted=1, failed=0)


def test_google_throttling_is_retried(fake_s3, no_sleep_policy):
    fake_s3.add_objects(["busy"])
    fake_s3.delete_failures["busy"].append(google_exceptions.TooManyRequests("rate limited"))

    reporter = _run(fake_s3, ["busy"], policy=no_sleep_policy)

    outcome = _outcomes_by_key(reporter)["busy"]
    assert_equal(outcome.state, TaskState.SUCCEEDED)
    assert_equal(outcome.retries, 1)
    assert_equal(fake_s3.delete_calls, ["busy", "busy"])


def test_transient_failures_past_max_attempts_fail(fake_s3, no_sleep_policy):
    fake_s3.add_objects(["throttled"])
    for _ in range(no_sleep_policy.max_attempts):
        fake_s3.delete_failures["throttled"].append(client_error("SlowDown", 503))

    reporter = _run(fake_s3, ["throttled"], policy=no_sleep_policy)

    outcome = _outcomes_by_key(reporter)["throttled"]
    assert_equal(outcome.state, TaskState.FAILED)
    assert_equal(outcome.error_kind, "transient")
    assert_equal(outcome.retries, no_sleep_policy.max_attempts - 1)
    assert_equal(len(fake_s3.delete_calls), no_sleep_policy.max_attempts)


def test_permanent_failure_is_not_retried(fake_s3, no_sleep_policy):
    fake_s3.add_objects(["locked"])
    fake_s3.delete_failures["locked"].append(client_error("AccessDenied", 403))

    reporter = _run(fake_s3, ["locked"], policy=no_sleep_policy)

    outcome = _outcomes_by_key(reporter)["locked"]
    assert_equal(outcome.state, TaskState.FAILED)
    assert_equal(outcome.error_kind, "permanent")
    assert_equal(outcome.error_code, "AccessDenied")
    assert_equal(fake_s3.delete_calls, ["locked"])
    assert_equal(reporter.summary().failures[0].key, "locked")


def test_dry_run_issues_no_requests(fake_s3, no_sleep_policy):
    keys = [f"k{idx}" for idx in range(5)]
    fake_s3.add_objects(keys)

    reporter = _run(fake_s3, keys, policy=no_sleep_policy, dry_run=True)

    assert_equal(fake_s3.delete_calls, [])
    assert_equal(len(fake_s3.objects), 5)
    assert_summary_counts(reporter.summary(), would_delete=5, deleted=0, failed=0)
    for outcome in reporter.outcomes:
        assert_equal(outcome.state, TaskState.WOULD_DELETE)
        assert outcome.attempted is False


def test_concurrency_never_exceeds_worker_count(no_sleep_policy):
    s3 = FakeS3Client(delete_delay=0.01)
    keys = [f"k{idx}" for idx in range(40)]
    s3.add_objects(keys)

    _run(s3, keys, policy=no_sleep_policy, workers=3, queue_size=2)

    assert 1 <= s3.max_in_flight <= 3
    assert_equal(len(s3.delete_calls), 40)


def test_admission_window_bounds_outstanding_tasks(no_sleep_policy):
    """submit() blocks once workers + queue_size tasks are outstanding."""
    release = threading.Event()
    started = threading.Event()

    class BlockingS3(FakeS3Client):
        def delete_object(self, Bucket, Key):  # pylint: disable=invalid-name
            started.set()
            release.wait(5)
            return super().delete_object(Bucket=Bucket, Key=Key)

    s3 = BlockingS3()
    reporter = RunReporter(dry_run=False)
    scheduler = DeletionScheduler(s3, "bucket", reporter, workers=1, queue_size=1, policy=no_sleep_policy)
    scheduler.submit(descriptor("a"), delete_classification())
    scheduler.submit(descriptor("b"), delete_classification())
    assert started.wait(5)

    third_admitted = threading.Event()

    def _submit_third():
        scheduler.submit(descriptor("c"), delete_classification())
        third_admitted.set()

    producer = threading.Thread(target=_submit_third)
    producer.start()
    assert third_admitted.wait(0.3) is False

    release.set()
    assert third_admitted.wait(5) is True
    producer.join(5)
    scheduler.close()
    assert_summary_counts(reporter.summary(), deleted=3)


def test_keep_classification_is_refused(fake_s3, no_sleep_policy):
    reporter = RunReporter(dry_run=False)
    with DeletionScheduler(fake_s3, "bucket", reporter, policy=no_sleep_policy) as scheduler:
        with pytest.raises(ValueError):
            scheduler.submit(descriptor("output.bam"), KEEP)
    assert_equal(fake_s3.delete_calls, [])


def test_submit_after_stop_is_cancelled(fake_s3, no_sleep_policy):
    stop_event = threading.Event()
    stop_event.set()
    reporter = RunReporter(dry_run=False, keep_outcomes=True)

    with DeletionScheduler(fake_s3, "bucket", reporter, policy=no_sleep_policy, stop_event=stop_event) as scheduler:
        admitted = scheduler.submit(descriptor("k"), delete_classification())

    assert admitted is False
    assert_equal(fake_s3.delete_calls, [])
    assert_summary_counts(reporter.summary(), cancelled=1, deleted=0, failed=0)
    assert_equal(reporter.outcomes[0].state, TaskState.CANCELLED)


def test_interrupt_stops_retrying(fake_s3):
    stop_event = threading.Event()
    fake_s3.delete_failures["k"].extend([client_error("SlowDown", 503)] * 3)
    policy = RetryPolicy(max_attempts=5, base_delay=0.01, jitter=0.0, sleep=lambda _d: stop_event.set())
    reporter = RunReporter(dry_run=False, keep_outcomes=True)

    with DeletionScheduler(fake_s3, "bucket", reporter, policy=policy, stop_event=stop_event) as scheduler:
        scheduler.submit(descriptor("k"), delete_classification())

    assert_equal(fake_s3.delete_calls, ["k"])
    outcome = reporter.outcomes[0]
    assert_equal(outcome.state, TaskState.FAILED)
    assert_equal(outcome.error_kind, "interrupted")


def test_invalid_pool_settings(fake_s3):
    reporter = RunReporter(dry_run=False)
    with pytest.raises(ValueError):
        DeletionScheduler(fake_s3, "bucket", reporter, workers=0)
    with pytest.raises(ValueError):
        DeletionScheduler(fake_s3, "bucket", reporter, queue_size=-1)
