"""
Cromwell scaffold cleaner package.

Delete extraneous Cromwell execution files (task scripts, captured streams,
return-code markers, temporary directories) from an object-storage path while
leaving declared outputs untouched.
"""

__version__ = "0.2.0"

# pylint: disable=wrong-import-position
from .classifier import Classification, ExecutionPath, classify, parse_execution_path
from .enumerator import ObjectDescriptor, iter_objects
from .exceptions import (
    ApiError,
    AuthenticationError,
    CleanerError,
    ConfigurationError,
    PermanentApiError,
    TransientApiError,
)
from .locator import BucketLocation, parse_location
from .pipeline import CleanupOptions, run_cleanup
from .reports import DeletionOutcome, RunReporter, RunSummary
from .rules import DEFAULT_RULES, DeleteReason, ScaffoldRule, load_rules
from .scheduler import DeletionScheduler

__all__ = [
    "ApiError",
    "AuthenticationError",
    "BucketLocation",
    "Classification",
    "CleanerError",
    "CleanupOptions",
    "ConfigurationError",
    "DEFAULT_RULES",
    "DeleteReason",
    "DeletionOutcome",
    "DeletionScheduler",
    "ExecutionPath",
    "ObjectDescriptor",
    "PermanentApiError",
    "RunReporter",
    "RunSummary",
    "ScaffoldRule",
    "TransientApiError",
    "__version__",
    "classify",
    "iter_objects",
    "load_rules",
    "parse_execution_path",
    "parse_location",
    "run_cleanup",
]
