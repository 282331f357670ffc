"""
Object enumeration.

Lists every live object under a bucket prefix, one page at a time, so that
classification and deletion can start before the listing finishes.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Iterator, Optional

from . import config
from .locator import BucketLocation
from .progress import ProgressTracker
from .retry import RetryPolicy, call_with_retry


@dataclass(frozen=True)
class ObjectDescriptor:
    """One live object version as returned by the listing."""

    key: str
    size: int
    generation: str


def descriptor_from_listing(entry: dict) -> ObjectDescriptor:
    """Build an ObjectDescriptor from a list_objects_v2 ``Contents`` entry.

    GCS listings carry the object generation; S3 falls back to the ETag.
    """
    generation = entry.get("Generation") or str(entry.get("ETag", "")).strip('"')
    return ObjectDescriptor(key=entry["Key"], size=int(entry.get("Size", 0)), generation=str(generation))


def iter_pages(
    s3,
    location: BucketLocation,
    *,
    policy: RetryPolicy,
    page_size: int = config.LIST_PAGE_SIZE,
    stop_event: Optional[threading.Event] = None,
) -> Iterator[dict]:
    """Yield raw list_objects_v2 pages.

    The continuation token is tracked here rather than through a boto3
    paginator so a failed page is retried with the same token.
    """
    request = {"Bucket": location.bucket, "MaxKeys": page_size}
    if location.list_prefix:
        request["Prefix"] = location.list_prefix
    token: str | None = None
    page_number = 0
    while True:
        page_number += 1
        kwargs = dict(request)
        if token:
            kwargs["ContinuationToken"] = token
        page, _ = call_with_retry(
            lambda kw=kwargs: s3.list_objects_v2(**kw),
            policy,
            description=f"list page {page_number} of {location.uri()}",
            stop_event=stop_event,
        )
        yield page
        if not page.get("IsTruncated"):
            return
        token = page.get("NextContinuationToken")
        if not token:
            return


def iter_objects(
    s3,
    location: BucketLocation,
    *,
    policy: RetryPolicy,
    page_size: int = config.LIST_PAGE_SIZE,
    stop_event: Optional[threading.Event] = None,
) -> Iterator[ObjectDescriptor]:
    """Yield every object under ``location`` in the backend's listing order.

    Raises:
        ApiError: When a page still fails after the retry policy is exhausted.
    """
    progress = ProgressTracker(label=f"Listing {location.uri()}")
    listed = 0
    for page in iter_pages(s3, location, policy=policy, page_size=page_size, stop_event=stop_event):
        for entry in page.get("Contents", []):
            listed += 1
            yield descriptor_from_listing(entry)
        progress.update(listed)
    progress.finish(listed)
