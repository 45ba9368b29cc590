"""
Core Type Definitions for the Buffered Object Filesystem

Implements Result/Either monads for zero-exception control flow and the
value types shared by every layer: parsed object URIs and byte ranges.

Design Principles:
- Never use null for absence (use Optional or Result)
- Parse, don't validate: URIs are normalised once at the boundary
- Immutable value objects (frozen dataclasses with __slots__)

Complexity: O(1) for all type operations except URI parsing (O(len(uri)))
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import (
    Any,
    Callable,
    Generic,
    Literal,
    TypeVar,
    Union,
)

# =============================================================================
# TYPE VARIABLES FOR GENERIC CONTAINERS
# =============================================================================
T = TypeVar("T")  # Success type
E = TypeVar("E")  # Error type
U = TypeVar("U")  # Transform result type


# =============================================================================
# RESULT MONAD: ZERO-EXCEPTION CONTROL FLOW
# =============================================================================
@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """
    Success variant of Result monad.

    Immutable container for successful computation results.
    """

    value: T

    def is_ok(self) -> Literal[True]:
        return True

    def is_err(self) -> Literal[False]:
        return False

    def unwrap(self) -> T:
        """
        Extract value. Safe to call after is_ok() check.

        Returns:
            T: The wrapped success value
        """
        return self.value

    def unwrap_or(self, default: T) -> T:
        """Return value, ignoring default."""
        return self.value

    def map(self, fn: Callable[[T], U]) -> Ok[U]:
        """Apply transformation to success value."""
        return Ok(fn(self.value))

    def flat_map(self, fn: Callable[[T], Result[U, E]]) -> Result[U, E]:
        """Monadic bind for chaining fallible operations."""
        return fn(self.value)

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    """
    Failure variant of Result monad.

    Carries full error context for exhaustive handling.
    """

    error: E

    def is_ok(self) -> Literal[False]:
        return False

    def is_err(self) -> Literal[True]:
        return True

    def unwrap(self) -> Any:
        """
        Attempting to unwrap an error is a programming error.

        Raises:
            RuntimeError: Always, with error context
        """
        raise RuntimeError(f"Called unwrap() on Err: {self.error}")

    def unwrap_or(self, default: T) -> T:
        """Return default value on error."""
        return default

    def map(self, fn: Callable[[Any], U]) -> Err[E]:
        """No-op on error variant - propagates error unchanged."""
        return self

    def flat_map(self, fn: Callable[[Any], Result[U, E]]) -> Err[E]:
        """Propagate error through monadic chain."""
        return self

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


# Union type for pattern matching
Result = Union[Ok[T], Err[E]]


# =============================================================================
# OBJECT URI
# =============================================================================
_DUPLICATE_SLASHES = re.compile(r"/{2,}")


@dataclass(frozen=True, slots=True, order=True)
class ObjectUri:
    """
    Normalised location of an object: ``s3://<bucket>/<key>``.

    Keys are case sensitive and never alias-resolved. Normalisation only
    lower-cases the scheme and collapses repeated slashes in the key, so
    two URIs are the same file iff their ``str()`` forms are equal.

    A key ending in ``/`` denotes a prefix (directory-like) rather than an
    object; the filesystem accepts it for listing only.
    """

    bucket: str
    key: str = ""

    SCHEME = "s3"

    @classmethod
    def parse(cls, uri: Union[str, ObjectUri]) -> Result[ObjectUri, str]:
        """
        Parse and normalise a URI string.

        Returns:
            Ok[ObjectUri]: Normalised URI
            Err[str]: Reason the string is not an s3:// URI
        """
        if isinstance(uri, ObjectUri):
            return Ok(uri)

        scheme, sep, rest = uri.partition("://")
        if not sep:
            return Err(f"URI has no scheme: {uri!r}")
        if scheme.lower() != cls.SCHEME:
            return Err(f"Unsupported URI scheme '{scheme}' in {uri!r}")

        bucket, _, key = rest.partition("/")
        if not bucket:
            return Err(f"URI has no bucket: {uri!r}")

        key = _DUPLICATE_SLASHES.sub("/", key).lstrip("/")
        return Ok(cls(bucket=bucket, key=key))

    @property
    def is_bucket(self) -> bool:
        """True when the URI names the bucket itself."""
        return self.key == ""

    @property
    def is_prefix(self) -> bool:
        """True when the URI names a key prefix (trailing slash)."""
        return self.key.endswith("/")

    def __str__(self) -> str:
        return f"{self.SCHEME}://{self.bucket}/{self.key}"


# =============================================================================
# BYTE RANGE FOR PARTIAL OBJECT READS
# =============================================================================
@dataclass(frozen=True, slots=True)
class ByteRange:
    """
    Represents a byte range for partial object reads.

    Built from the (offset, length) pairs the filesystem receives and
    rendered as an HTTP Range header for ranged GETs.

    Invariant: 0 <= start <= end
    """

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start < 0:
            raise ValueError(f"start must be >= 0, got {self.start}")
        if self.end < self.start:
            raise ValueError(f"end ({self.end}) must be >= start ({self.start})")

    @classmethod
    def from_offset(cls, offset: int, length: int) -> ByteRange:
        """Range covering ``length`` bytes from ``offset`` (length > 0)."""
        return cls(start=offset, end=offset + length - 1)

    @property
    def length(self) -> int:
        """Number of bytes in range (inclusive)."""
        return self.end - self.start + 1

    def to_http_header(self) -> str:
        """Convert to HTTP Range header value."""
        return f"bytes={self.start}-{self.end}"

    @classmethod
    def from_http_header(cls, header: str) -> Result[ByteRange, str]:
        """
        Parse HTTP Range header.

        Supports format: bytes=START-END
        """
        if not header.startswith("bytes="):
            return Err(f"Invalid range header format: {header}")
        try:
            start_str, end_str = header[6:].split("-")
            return Ok(cls(start=int(start_str), end=int(end_str)))
        except ValueError as e:
            return Err(f"Failed to parse range header: {e}")

    def __repr__(self) -> str:
        return f"ByteRange({self.start}-{self.end})"
