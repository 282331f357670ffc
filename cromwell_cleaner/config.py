"""
Configuration for the Cromwell scaffold cleaner.

Performance settings:
- Concurrent deletes with ThreadPoolExecutor (16 workers by default)
- Bounded admission window so listing never runs far ahead of deletion
- Exponential backoff with jitter on throttling, server errors and timeouts

Every value can be overridden with a CROMWELL_CLEANER_* environment variable.
An invalid override falls back to the default and is reported by
check_environment(), which the CLI calls before doing any work.
"""

from __future__ import annotations

import os
import re
from typing import Callable, TypeVar

from .exceptions import ConfigurationError

ENV_PREFIX = "CROMWELL_CLEANER_"

T = TypeVar("T")

_ENVIRONMENT_ERRORS: list[str] = []


def _env_int(name: str, default: int, *, minimum: int = 1) -> int:
    """Read a positive integer override from the environment."""
    raw = os.environ.get(ENV_PREFIX + name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}") from exc
    if value < minimum:
        raise ConfigurationError(f"{ENV_PREFIX}{name} must be >= {minimum}, got {value}")
    return value


def _env_float(name: str, default: float) -> float:
    """Read a non-negative float override from the environment."""
    raw = os.environ.get(ENV_PREFIX + name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{ENV_PREFIX}{name} must be a number, got {raw!r}") from exc
    if value < 0:
        raise ConfigurationError(f"{ENV_PREFIX}{name} must be >= 0, got {value}")
    return value


def _env_pattern(name: str, default: str) -> re.Pattern:
    """Read and compile a regular expression override from the environment."""
    raw = os.environ.get(ENV_PREFIX + name)
    pattern = default if raw is None or raw.strip() == "" else raw
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise ConfigurationError(f"{ENV_PREFIX}{name} is not a valid regular expression: {exc}") from exc


def _setting(reader: Callable[..., T], name: str, default, **kwargs) -> T:
    """Read one override at import time, deferring any error to check_environment()."""
    try:
        return reader(name, default, **kwargs)
    except ConfigurationError as exc:
        _ENVIRONMENT_ERRORS.append(str(exc))
        return re.compile(default) if reader is _env_pattern else default


def check_environment() -> None:
    """Raise ConfigurationError if any CROMWELL_CLEANER_* override was invalid."""
    if _ENVIRONMENT_ERRORS:
        raise ConfigurationError("; ".join(_ENVIRONMENT_ERRORS))


# Deletion worker pool
DEFAULT_WORKERS: int = _setting(_env_int, "WORKERS", 16)
# Tasks admitted beyond the running workers before listing blocks
DEFAULT_QUEUE_SIZE: int = _setting(_env_int, "QUEUE_SIZE", 256, minimum=0)

# Retry settings shared by listing and deletion
DEFAULT_MAX_ATTEMPTS: int = _setting(_env_int, "MAX_ATTEMPTS", 5)
BACKOFF_BASE_SECONDS: float = _setting(_env_float, "BACKOFF_BASE", 0.5)
BACKOFF_MAX_SECONDS: float = _setting(_env_float, "BACKOFF_MAX", 32.0)
BACKOFF_JITTER: float = _setting(_env_float, "BACKOFF_JITTER", 0.5)

# Network timeouts (seconds); a timeout counts as a transient failure
CONNECT_TIMEOUT_SECONDS: float = _setting(_env_float, "CONNECT_TIMEOUT", 10.0)
READ_TIMEOUT_SECONDS: float = _setting(_env_float, "READ_TIMEOUT", 60.0)

# Objects requested per list page (S3 and GCS both cap at 1000)
LIST_PAGE_SIZE: int = _setting(_env_int, "PAGE_SIZE", 1000)

# Storage schemes: gs:// uses google-cloud-storage with Application Default
# Credentials, s3:// uses boto3 with the standard AWS credential chain
SUPPORTED_SCHEMES: tuple[str, ...] = ("gs", "s3")

# The segment directly above call-<name> must be a Cromwell workflow id
UUID_PATTERN = r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}"
WORKFLOW_ID_PATTERN: re.Pattern = _setting(_env_pattern, "WORKFLOW_ID_PATTERN", UUID_PATTERN)

# Optional external rule table (JSON); built-in table is used when unset
RULES_PATH: str | None = os.environ.get(ENV_PREFIX + "RULES") or None

# Failures shown in the console summary; the JSON/CSV reports carry all of them
SUMMARY_FAILURE_LINES: int = 20
