"""
Exceptions for the cromwell_cleaner package.
"""

from __future__ import annotations


class CleanerError(RuntimeError):
    """Base class for all cleaner errors."""


class ConfigurationError(CleanerError):
    """Raised when the bucket argument, rule table or settings are invalid."""


class AuthenticationError(CleanerError):
    """Raised when no usable storage credential can be resolved."""


class InterruptedRunError(CleanerError):
    """Raised when an operator interrupt prevents another attempt from starting."""

    kind = "interrupted"


class ApiError(CleanerError):
    """Raised when a storage API request fails.

    ``retries`` is the number of retries performed before giving up.
    """

    kind = "api"

    def __init__(self, message: str, *, code: str = "", retries: int = 0):
        super().__init__(message)
        self.code = code
        self.retries = retries


class TransientApiError(ApiError):
    """Rate limit, server error or timeout. Safe to retry."""

    kind = "transient"


class PermanentApiError(ApiError):
    """Permission denied, malformed key or missing bucket. Never retried."""

    kind = "permanent"
