"""Parse ``scheme://bucket[/prefix]`` arguments into a bucket and key prefix."""

from __future__ import annotations

from dataclasses import dataclass

from .config import SUPPORTED_SCHEMES
from .exceptions import ConfigurationError

SCHEME_SEPARATOR = "://"


@dataclass(frozen=True)
class BucketLocation:
    """A bucket plus a normalized key prefix (no leading or trailing '/')."""

    scheme: str
    bucket: str
    prefix: str = ""

    @property
    def list_prefix(self) -> str:
        """Prefix passed to the listing API; ends with '/' so siblings don't match."""
        return f"{self.prefix}/" if self.prefix else ""

    def uri(self) -> str:
        """Return the canonical location URI."""
        if self.prefix:
            return f"{self.scheme}://{self.bucket}/{self.prefix}"
        return f"{self.scheme}://{self.bucket}"

    def object_uri(self, key: str) -> str:
        """Return the full URI of an object in this bucket, as listed by dry runs."""
        return f"{self.scheme}://{self.bucket}/{key}"


def parse_location(text: str) -> BucketLocation:
    """Parse a ``scheme://bucket[/prefix]`` string.

    Raises:
        ConfigurationError: If the scheme is missing or unsupported, or the
            bucket segment is empty.
    """
    if text is None:
        raise ConfigurationError("Bucket path is required")
    text = text.strip()
    scheme, separator, remainder = text.partition(SCHEME_SEPARATOR)
    if not separator or not scheme:
        raise ConfigurationError(f"Invalid bucket path {text!r}: no scheme:// prefix")
    scheme = scheme.lower()
    if scheme not in SUPPORTED_SCHEMES:
        supported = ", ".join(f"{name}://" for name in SUPPORTED_SCHEMES)
        raise ConfigurationError(f"Unsupported scheme {scheme!r} in {text!r} (expected one of {supported})")

    bucket, _, raw_prefix = remainder.partition("/")
    if not bucket:
        raise ConfigurationError(f"Invalid bucket path {text!r}: bucket name is empty")

    # Inner '//' is kept: object keys may legitimately contain empty segments.
    prefix = raw_prefix.strip("/")
    return BucketLocation(scheme=scheme, bucket=bucket, prefix=prefix)
