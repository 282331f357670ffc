"""Exponential backoff with jitter, shared by listing and deletion."""

from __future__ import annotations

import logging
import random
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, TypeVar

from . import config
from .api_errors import STORAGE_ERRORS, classify_api_error
from .exceptions import ApiError, InterruptedRunError, TransientApiError

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """How often and how long to back off on transient API failures."""

    max_attempts: int = config.DEFAULT_MAX_ATTEMPTS
    base_delay: float = config.BACKOFF_BASE_SECONDS
    max_delay: float = config.BACKOFF_MAX_SECONDS
    jitter: float = config.BACKOFF_JITTER
    sleep: Callable[[float], None] | None = field(default=None, compare=False, repr=False)

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")

    def delay_for(self, attempt: int) -> float:
        """Backoff before retrying after failed attempt number ``attempt`` (1-based)."""
        delay = min(self.max_delay, self.base_delay * (2 ** (attempt - 1)))
        return delay + random.uniform(0, delay * self.jitter)

    def wait(self, delay: float, stop_event: threading.Event | None = None) -> bool:
        """Sleep for ``delay``; return True if the stop event fired meanwhile."""
        if self.sleep is not None:
            self.sleep(delay)
            return stop_event is not None and stop_event.is_set()
        if stop_event is None:
            time.sleep(delay)
            return False
        return stop_event.wait(delay)


def call_with_retry(
    operation: Callable[[], T],
    policy: RetryPolicy,
    *,
    description: str,
    stop_event: threading.Event | None = None,
    on_retry: Callable[[int, ApiError], None] | None = None,
) -> tuple[T, int]:
    """Run ``operation`` until it succeeds, fails permanently, or attempts run out.

    Returns:
        tuple: (result, retries performed)

    Raises:
        TransientApiError: When every attempt hit a transient failure.
        PermanentApiError: On the first permanent failure.
        InterruptedRunError: If the stop event fires before the next attempt.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            return operation(), attempt - 1
        except STORAGE_ERRORS as exc:
            error = classify_api_error(exc)
            error.retries = attempt - 1
            if not isinstance(error, TransientApiError):
                raise error from exc
            if attempt >= policy.max_attempts:
                logging.error("%s failed after %d attempt(s): %s", description, attempt, error)
                raise error from exc
            delay = policy.delay_for(attempt)
            logging.warning(
                "%s: transient error %s (attempt %d/%d), backing off %.1fs",
                description,
                error.code or "unknown",
                attempt,
                policy.max_attempts,
                delay,
            )
            if on_retry is not None:
                on_retry(attempt, error)
            if policy.wait(delay, stop_event):
                raise InterruptedRunError(f"{description}: interrupted while retrying") from exc
