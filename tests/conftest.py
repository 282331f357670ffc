"""Shared pytest fixtures: an in-memory stand-in for the boto3 S3 client."""

from __future__ import annotations

import threading
import time
from collections import defaultdict, deque

import pytest
from botocore.exceptions import ClientError

from cromwell_cleaner.classifier import Action, Classification
from cromwell_cleaner.enumerator import ObjectDescriptor
from cromwell_cleaner.retry import RetryPolicy
from cromwell_cleaner.rules import DeleteReason

WORKFLOW_ROOT = "cromwell-executions/wf/0f8f3a7e-1111-4c5e-9a0b-123456789abc"


def client_error(code: str, status: int = 400, operation: str = "DeleteObject") -> ClientError:
    """Build a botocore ClientError the way the S3 client raises it."""
    return ClientError(
        {
            "Error": {"Code": code, "Message": f"{code} simulated"},
            "ResponseMetadata": {"HTTPStatusCode": status},
        },
        operation,
    )


class FakeS3Client:  # pylint: disable=too-many-instance-attributes
    """Minimal thread-safe S3 stand-in for listing and deleting objects.

    Listing follows S3 semantics: keys come back in lexicographic order and the
    continuation token is the last key returned, so deleting while listing
    never skips objects. ``delete_failures`` and ``list_failures`` queue
    exceptions to raise before the call is served.
    """

    def __init__(self, objects=None, *, delete_delay: float = 0.0):
        self.objects: dict[str, int] = dict(objects or {})
        self.delete_delay = delete_delay
        self.delete_calls: list[str] = []
        self.list_calls: list[dict] = []
        self.head_calls: list[str] = []
        self.delete_failures: dict[str, deque] = defaultdict(deque)
        self.list_failures: deque = deque()
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def add_objects(self, keys, size: int = 10) -> None:
        for key in keys:
            self.objects[key] = size

    def head_bucket(self, Bucket):  # pylint: disable=invalid-name
        self.head_calls.append(Bucket)
        return {}

    def list_objects_v2(self, Bucket, MaxKeys=1000, Prefix="", ContinuationToken=None):  # pylint: disable=invalid-name
        del Bucket
        self.list_calls.append({"Prefix": Prefix, "MaxKeys": MaxKeys, "ContinuationToken": ContinuationToken})
        if self.list_failures:
            raise self.list_failures.popleft()
        with self._lock:
            keys = sorted(k for k in self.objects if k.startswith(Prefix))
        if ContinuationToken:
            keys = [k for k in keys if k > ContinuationToken]
        page_keys = keys[:MaxKeys]
        truncated = len(keys) > MaxKeys
        page = {
            "KeyCount": len(page_keys),
            "IsTruncated": truncated,
            "Contents": [{"Key": k, "Size": self.objects.get(k, 0), "ETag": f'"etag-{k}"'} for k in page_keys],
        }
        if not page_keys:
            del page["Contents"]
        if truncated:
            page["NextContinuationToken"] = page_keys[-1]
        return page

    def delete_object(self, Bucket, Key):  # pylint: disable=invalid-name
        del Bucket
        with self._lock:
            self.delete_calls.append(Key)
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
            failures = self.delete_failures.get(Key)
            failure = failures.popleft() if failures else None
        try:
            if self.delete_delay:
                time.sleep(self.delete_delay)
            if failure is not None:
                raise failure
            with self._lock:
                self.objects.pop(Key, None)
            return {"ResponseMetadata": {"HTTPStatusCode": 204}}
        finally:
            with self._lock:
                self.in_flight -= 1


@pytest.fixture(name="fake_s3")
def fixture_fake_s3():
    """Empty fake S3 client; tests add objects as needed."""
    return FakeS3Client()


@pytest.fixture(name="no_sleep_policy")
def fixture_no_sleep_policy():
    """Retry policy that never actually sleeps."""
    return RetryPolicy(max_attempts=3, base_delay=0.01, max_delay=0.05, jitter=0.0, sleep=lambda _delay: None)


def delete_classification(reason: DeleteReason = DeleteReason.CAPTURED_STREAM, rule: str = "stdout"):
    return Classification(Action.DELETE, reason=reason, rule=rule)


def descriptor(key: str, size: int = 10) -> ObjectDescriptor:
    return ObjectDescriptor(key=key, size=size, generation=f"etag-{key}")
