"""Translate botocore and Google Cloud exceptions into the cleaner's transient/permanent taxonomy."""

from __future__ import annotations

from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    NoCredentialsError,
    PartialCredentialsError,
    ReadTimeoutError,
)
from google.api_core.exceptions import GoogleAPICallError, RetryError
from google.auth.exceptions import DefaultCredentialsError, GoogleAuthError, RefreshError, TransportError
from requests.exceptions import ConnectionError as RequestsConnectionError
from requests.exceptions import RequestException
from requests.exceptions import Timeout as RequestsTimeout

from .exceptions import ApiError, AuthenticationError, PermanentApiError, TransientApiError

# Every exception a storage call can raise that the retry loop classifies
STORAGE_ERRORS = (ClientError, BotoCoreError, GoogleAPICallError, RetryError, GoogleAuthError, RequestException)

# Throttling and server-side codes returned by S3 and GCS
TRANSIENT_ERROR_CODES = frozenset(
    {
        "SlowDown",
        "Throttling",
        "ThrottlingException",
        "RequestLimitExceeded",
        "TooManyRequests",
        "RequestTimeout",
        "InternalError",
        "InternalServerError",
        "ServiceUnavailable",
        "BadGateway",
        "GatewayTimeout",
        "BackendError",
        "500",
        "502",
        "503",
        "504",
        "429",
    }
)
NOT_FOUND_ERROR_CODES = frozenset({"NoSuchKey", "NotFound", "404"})
HTTP_TOO_MANY_REQUESTS = 429
HTTP_SERVER_ERROR = 500

_TRANSIENT_TRANSPORT_ERRORS = (
    ConnectTimeoutError,
    ReadTimeoutError,
    EndpointConnectionError,
    ConnectionClosedError,
    TransportError,
    RetryError,
    RequestsConnectionError,
    RequestsTimeout,
)
_CREDENTIAL_ERRORS = (NoCredentialsError, PartialCredentialsError, DefaultCredentialsError, RefreshError)


def error_code(exc: BaseException) -> str:
    """Return the service error code ('' when absent).

    S3 reports it in the response body; for GCS the exception class name
    (``NotFound``, ``TooManyRequests``...) plays the same role.
    """
    if isinstance(exc, ClientError):
        return str(exc.response.get("Error", {}).get("Code", ""))
    if isinstance(exc, GoogleAPICallError):
        return type(exc).__name__
    return ""


def http_status(exc: BaseException) -> int | None:
    """Return the HTTP status of a service error, if the response carried one."""
    if isinstance(exc, ClientError):
        return exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    if isinstance(exc, GoogleAPICallError) and exc.code is not None:
        return int(exc.code)
    return None


def is_not_found(exc: BaseException) -> bool:
    """True when a service error says the object does not exist."""
    if not isinstance(exc, (ClientError, GoogleAPICallError)):
        return False
    return error_code(exc) in NOT_FOUND_ERROR_CODES or http_status(exc) == 404


def is_transient_service_error(exc: BaseException) -> bool:
    """True for throttling, request timeouts and 5xx responses."""
    if error_code(exc) in TRANSIENT_ERROR_CODES:
        return True
    status = http_status(exc)
    return status is not None and (status == HTTP_TOO_MANY_REQUESTS or status >= HTTP_SERVER_ERROR)


def classify_api_error(exc: BaseException) -> ApiError:
    """Map a storage exception onto TransientApiError or PermanentApiError.

    Raises:
        AuthenticationError: If the failure means no credential is usable.
    """
    if isinstance(exc, ApiError):
        return exc
    if isinstance(exc, _CREDENTIAL_ERRORS):
        raise AuthenticationError(f"Storage credentials unavailable: {exc}") from exc
    if isinstance(exc, (ClientError, GoogleAPICallError)):
        code = error_code(exc) or str(http_status(exc) or "")
        if is_transient_service_error(exc):
            return TransientApiError(str(exc), code=code)
        return PermanentApiError(str(exc), code=code)
    if isinstance(exc, _TRANSIENT_TRANSPORT_ERRORS):
        return TransientApiError(str(exc), code=type(exc).__name__)
    return PermanentApiError(str(exc), code=type(exc).__name__)
