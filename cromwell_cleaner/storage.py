"""
Storage client factory.

Builds the storage client handle that is passed explicitly to the enumerator
and the deletion scheduler: boto3 for s3:// (standard AWS credential chain)
and google-cloud-storage for gs:// (Application Default Credentials). Either
can be seeded from a .env file the same way the rest of our tooling does.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

import boto3
from botocore.config import Config
from dotenv import load_dotenv

from . import config
from .api_errors import STORAGE_ERRORS, error_code, http_status
from .exceptions import AuthenticationError, ConfigurationError, PermanentApiError
from .gcs import create_gcs_client
from .locator import BucketLocation
from .retry import RetryPolicy, call_with_retry

BUCKET_MISSING_CODES = frozenset({"NoSuchBucket", "404", "NotFound"})
ACCESS_DENIED_CODES = frozenset(
    {"AccessDenied", "403", "Forbidden", "401", "Unauthorized", "InvalidAccessKeyId", "SignatureDoesNotMatch"}
)


def resolve_env_path(env_path: Optional[str] = None) -> str:
    """
    Determine which .env file may hold storage credentials.

    Priority order:
      1. Explicit parameter
      2. AWS_ENV_FILE environment variable
      3. ~/.env
    """
    if env_path:
        return env_path
    aws_env_file = os.environ.get("AWS_ENV_FILE")
    if aws_env_file:
        return aws_env_file
    return str(Path.home() / ".env")


def load_env_credentials(env_path: Optional[str] = None) -> bool:
    """Load a .env file into the environment without overriding existing variables.

    Returns:
        bool: True if a file was found and loaded
    """
    resolved_path = resolve_env_path(env_path)
    if not Path(resolved_path).is_file():
        if env_path:
            raise ConfigurationError(f"Credential file {resolved_path} does not exist")
        return False
    load_dotenv(resolved_path, override=False)
    logging.debug("Loaded environment from %s", resolved_path)
    return True


def build_client_config() -> Config:
    """Client config with explicit timeouts; retries are handled by RetryPolicy."""
    return Config(
        connect_timeout=config.CONNECT_TIMEOUT_SECONDS,
        read_timeout=config.READ_TIMEOUT_SECONDS,
        retries={"max_attempts": 1, "mode": "standard"},
        max_pool_connections=max(config.DEFAULT_WORKERS, 10),
    )


def create_storage_client(
    location: BucketLocation,
    *,
    endpoint_url: Optional[str] = None,
    env_path: Optional[str] = None,
    max_pool_connections: Optional[int] = None,
    session=None,
):
    """
    Create the storage client for ``location``.

    gs:// locations get a GcsClient built from Application Default Credentials;
    ``session`` only applies to s3://.

    Raises:
        AuthenticationError: If no credential can be resolved.
    """
    load_env_credentials(env_path)
    if location.scheme == "gs":
        return create_gcs_client(endpoint_url=endpoint_url, max_pool_connections=max_pool_connections)

    session = session or boto3.session.Session()
    if session.get_credentials() is None:
        raise AuthenticationError(
            "No AWS credentials found. Configure the standard AWS credential chain "
            f"or add AWS_ACCESS_KEY_ID/AWS_SECRET_ACCESS_KEY to {resolve_env_path(env_path)}."
        )

    client_config = build_client_config()
    if max_pool_connections is not None:
        client_config = client_config.merge(Config(max_pool_connections=max_pool_connections))

    client_kwargs = {"config": client_config}
    if endpoint_url:
        client_kwargs["endpoint_url"] = endpoint_url
    logging.debug("Creating s3 client (endpoint=%s)", endpoint_url or "default")
    return session.client("s3", **client_kwargs)


def _head_bucket_error(exc: BaseException, location: BucketLocation) -> Exception | None:
    """Translate a head_bucket failure into a fatal error, or None to retry/raise."""
    code = error_code(exc)
    status = http_status(exc)
    if code in BUCKET_MISSING_CODES or status == 404:
        return ConfigurationError(f"Bucket {location.bucket} does not exist")
    if code in ACCESS_DENIED_CODES or status in (401, 403):
        return AuthenticationError(f"Credentials are not authorized for bucket {location.bucket} ({code or status})")
    return None


def verify_bucket(s3, location: BucketLocation, policy: RetryPolicy) -> None:
    """Check that the bucket exists and is reachable before listing.

    Raises:
        ConfigurationError: Bucket does not exist.
        AuthenticationError: Credential rejected for this bucket.
        TransientApiError: Retries exhausted.
    """

    def _head():
        try:
            return s3.head_bucket(Bucket=location.bucket)
        except STORAGE_ERRORS as exc:
            fatal = _head_bucket_error(exc, location)
            if fatal is not None:
                raise fatal from exc
            raise

    try:
        call_with_retry(_head, policy, description=f"head_bucket {location.bucket}")
    except PermanentApiError as exc:
        raise ConfigurationError(f"Cannot access bucket {location.bucket}: {exc}") from exc
    logging.info("Bucket %s is reachable", location.bucket)
