"""
Google Cloud Storage backend for gs:// locations.

Credentials come from Application Default Credentials: a service account on
GCE/GKE, GOOGLE_APPLICATION_CREDENTIALS, or
``gcloud auth application-default login``.

GcsClient exposes the three S3-style calls the bucket check, the enumerator
and the deletion scheduler make (head_bucket, list_objects_v2, delete_object),
so both schemes run through the same pipeline. google-cloud-storage's own
retries are disabled; RetryPolicy owns retrying.
"""

from __future__ import annotations

import logging
from typing import Optional

import google.auth
from google.auth.exceptions import DefaultCredentialsError
from google.auth.transport.requests import AuthorizedSession
from google.cloud import storage
from requests.adapters import HTTPAdapter

from . import config
from .exceptions import AuthenticationError

GCS_SCOPES = ("https://www.googleapis.com/auth/devstorage.read_write",)


class GcsClient:
    """S3-shaped facade over a ``google.cloud.storage.Client``."""

    def __init__(self, client, timeout: Optional[tuple[float, float]] = None):
        self.client = client
        self.timeout = timeout or (config.CONNECT_TIMEOUT_SECONDS, config.READ_TIMEOUT_SECONDS)

    def head_bucket(self, Bucket):  # pylint: disable=invalid-name
        """Fetch bucket metadata; raises NotFound/Forbidden like S3's HeadBucket."""
        self.client.get_bucket(Bucket, timeout=self.timeout, retry=None)
        return {}

    def list_objects_v2(  # pylint: disable=invalid-name
        self, Bucket, MaxKeys=config.LIST_PAGE_SIZE, Prefix="", ContinuationToken=None
    ):
        """Fetch exactly one page of blobs, shaped like a ListObjectsV2 response."""
        iterator = self.client.list_blobs(
            Bucket,
            prefix=Prefix or None,
            page_size=MaxKeys,
            page_token=ContinuationToken,
            timeout=self.timeout,
            retry=None,
        )
        page = next(iterator.pages, None)
        blobs = list(page) if page is not None else []
        token = iterator.next_page_token
        response = {
            "KeyCount": len(blobs),
            "IsTruncated": bool(token),
            "Contents": [
                {
                    "Key": blob.name,
                    "Size": blob.size or 0,
                    "ETag": blob.etag or "",
                    "Generation": str(blob.generation) if blob.generation is not None else "",
                }
                for blob in blobs
            ],
        }
        if token:
            response["NextContinuationToken"] = token
        return response

    def delete_object(self, Bucket, Key):  # pylint: disable=invalid-name
        """Delete the live version of ``Key``; raises NotFound if it is already gone."""
        self.client.bucket(Bucket).blob(Key).delete(timeout=self.timeout, retry=None)
        return {}


def _authorized_session(credentials, pool_size: int) -> AuthorizedSession:
    """Requests session sized so every deletion worker gets its own connection."""
    session = AuthorizedSession(credentials)
    adapter = HTTPAdapter(pool_connections=pool_size, pool_maxsize=pool_size)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


def create_gcs_client(
    *,
    endpoint_url: Optional[str] = None,
    max_pool_connections: Optional[int] = None,
) -> GcsClient:
    """
    Create the GCS client from Application Default Credentials.

    Raises:
        AuthenticationError: If no default credential can be found.
    """
    try:
        credentials, project = google.auth.default(scopes=GCS_SCOPES)
    except DefaultCredentialsError as exc:
        raise AuthenticationError(
            "No Google Cloud credentials found. Run `gcloud auth application-default login`, "
            "set GOOGLE_APPLICATION_CREDENTIALS, or run on a VM with a service account."
        ) from exc

    pool_size = max(max_pool_connections or config.DEFAULT_WORKERS, 10)
    client_options = {"api_endpoint": endpoint_url} if endpoint_url else None
    client = storage.Client(
        project=project,
        credentials=credentials,
        _http=_authorized_session(credentials, pool_size),
        client_options=client_options,
    )
    logging.debug("Created GCS client (project=%s, endpoint=%s)", project or "none", endpoint_url or "default")
    return GcsClient(client)
