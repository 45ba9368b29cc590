"""
Error Hierarchy for the Buffered Object Filesystem

Design Principles:
- Forbid exceptions for control flow (errors travel inside Err)
- Carry full error context for debugging and audit trails
- Never swallow errors or use null for absence

Each error type includes:
- Unique error code for programmatic handling
- Human-readable message for logging
- Optional cause chain for root cause analysis
- Timestamp for correlation across log lines

Usage:
    result = await fs.write(uri, data)
    match result:
        case Ok(_):
            pass
        case Err(error) if error.code is ErrorCode.FS_CAPACITY_EXCEEDED:
            shrink_and_retry()
        case Err(error):
            log_and_restart(error)
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional
from uuid import uuid4


# =============================================================================
# ERROR CODE ENUMERATION
# =============================================================================
class ErrorCode(Enum):
    """
    Unique error codes for programmatic error handling.

    Codes are grouped by layer:
    - 1xxx: Transport (object store client) errors
    - 2xxx: Filesystem adapter errors
    """

    # Transport errors (1xxx)
    TRANSPORT_REQUEST_FAILED = 1001
    TRANSPORT_NO_SUCH_KEY = 1002
    TRANSPORT_NO_SUCH_BUCKET = 1003
    TRANSPORT_NOT_CONNECTED = 1004
    TRANSPORT_NO_SUCH_UPLOAD = 1005
    TRANSPORT_INVALID_PART = 1006

    # Filesystem errors (2xxx)
    FS_CAPACITY_EXCEEDED = 2001
    FS_TRANSPORT_FAILURE = 2002
    FS_NOT_FOUND = 2003
    FS_INVALID_RANGE = 2004
    FS_ABORT_FAILURE = 2005
    FS_INVALID_URI = 2006
    FS_NOT_INITIALIZED = 2007
    FS_SESSION_FAILED = 2008


# =============================================================================
# BASE ERROR CLASS
# =============================================================================
@dataclass
class ObjectFSError(Exception):
    """
    Base class for all objectfs errors.

    Provides:
    - Unique error ID for correlating log lines
    - Error code for programmatic handling
    - Wall-clock timestamp (nanoseconds)
    - Cause chain for root cause analysis
    """

    code: ErrorCode
    message: str
    error_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp_ns: int = field(default_factory=time.time_ns)
    cause: Optional[Exception] = None
    context: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def with_context(self, **kwargs: Any) -> ObjectFSError:
        """
        Add context to error (returns new instance of the same class).

        Context should not contain secrets.
        """
        return type(self)(
            code=self.code,
            message=self.message,
            error_id=self.error_id,
            timestamp_ns=self.timestamp_ns,
            cause=self.cause,
            context={**self.context, **kwargs},
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize error to dictionary for structured logging."""
        data = {
            "error_id": self.error_id,
            "code": self.code.name,
            "code_value": self.code.value,
            "message": self.message,
            "timestamp_nanos": self.timestamp_ns,
            "context": self.context,
        }
        if self.cause is not None:
            data["cause"] = str(self.cause)
        return data

    def __str__(self) -> str:
        return f"[{self.code.name}] {self.message} (id={self.error_id[:8]})"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"code={self.code.name}, "
            f"message={self.message!r}, "
            f"error_id={self.error_id!r})"
        )


# =============================================================================
# TRANSPORT ERRORS (OBJECT STORE CLIENT)
# =============================================================================
@dataclass
class TransportError(ObjectFSError):
    """
    Errors reported by an ObjectTransport implementation.

    The filesystem never retries these; retry policy belongs to the
    client configuration (botocore) below the transport.
    """

    @classmethod
    def request_failed(
        cls,
        operation: str,
        target: str,
        cause: Optional[Exception] = None,
    ) -> TransportError:
        """A request to the object store failed."""
        return cls(
            code=ErrorCode.TRANSPORT_REQUEST_FAILED,
            message=f"{operation} failed for {target}: {cause}" if cause else f"{operation} failed for {target}",
            cause=cause,
            context={"operation": operation, "target": target},
        )

    @classmethod
    def no_such_key(cls, target: str) -> TransportError:
        """Object does not exist."""
        return cls(
            code=ErrorCode.TRANSPORT_NO_SUCH_KEY,
            message=f"No such key: {target}",
            context={"target": target},
        )

    @classmethod
    def no_such_bucket(cls, bucket: str) -> TransportError:
        """Bucket does not exist."""
        return cls(
            code=ErrorCode.TRANSPORT_NO_SUCH_BUCKET,
            message=f"No such bucket: {bucket}",
            context={"bucket": bucket},
        )

    @classmethod
    def no_such_upload(cls, upload_id: str) -> TransportError:
        """Multipart upload id is unknown (completed, aborted or never created)."""
        return cls(
            code=ErrorCode.TRANSPORT_NO_SUCH_UPLOAD,
            message=f"No such multipart upload: {upload_id}",
            context={"upload_id": upload_id},
        )

    @classmethod
    def invalid_part(cls, upload_id: str, part_number: int, reason: str) -> TransportError:
        """Completion referenced a part that is missing or out of order."""
        return cls(
            code=ErrorCode.TRANSPORT_INVALID_PART,
            message=f"Invalid part {part_number} for upload {upload_id}: {reason}",
            context={"upload_id": upload_id, "part_number": part_number, "reason": reason},
        )

    @classmethod
    def not_connected(cls) -> TransportError:
        """Transport used before connect() or after close()."""
        return cls(
            code=ErrorCode.TRANSPORT_NOT_CONNECTED,
            message="Transport is not connected",
        )

    @property
    def is_not_found(self) -> bool:
        return self.code in (
            ErrorCode.TRANSPORT_NO_SUCH_KEY,
            ErrorCode.TRANSPORT_NO_SUCH_BUCKET,
        )


# =============================================================================
# FILESYSTEM ERRORS (ADAPTER SURFACE)
# =============================================================================
@dataclass
class FilesystemError(ObjectFSError):
    """
    Errors returned by S3FileSystem operations.

    Local invariant violations (capacity, range, URI) are detected before
    any network call. Transport failures wrap the TransportError as cause.
    """

    @classmethod
    def capacity_exceeded(
        cls,
        uri: str,
        buffered: int,
        requested: int,
        limit: int,
    ) -> FilesystemError:
        """Single-object buffer would exceed the configured part size."""
        return cls(
            code=ErrorCode.FS_CAPACITY_EXCEEDED,
            message=(
                f"Write of {requested}B to {uri} exceeds buffer capacity: "
                f"{buffered}B buffered, limit {limit}B"
            ),
            context={"uri": uri, "buffered": buffered, "requested": requested, "limit": limit},
        )

    @classmethod
    def transport_failure(
        cls,
        operation: str,
        uri: str,
        cause: Optional[Exception] = None,
    ) -> FilesystemError:
        """Underlying object store call failed; session (if any) is FAILED."""
        return cls(
            code=ErrorCode.FS_TRANSPORT_FAILURE,
            message=f"Transport failure during {operation} on {uri}",
            cause=cause,
            context={"operation": operation, "uri": uri},
        )

    @classmethod
    def not_found(cls, uri: str, reason: str = "no finalized object") -> FilesystemError:
        """URI has no finalized remote object."""
        return cls(
            code=ErrorCode.FS_NOT_FOUND,
            message=f"Object not found: {uri} ({reason})",
            context={"uri": uri, "reason": reason},
        )

    @classmethod
    def invalid_range(
        cls,
        uri: str,
        offset: int,
        length: int,
        size: Optional[int] = None,
    ) -> FilesystemError:
        """Read request falls outside the object (size is None when not looked up)."""
        bound = f"of size {size}" if size is not None else "(negative offset or length)"
        return cls(
            code=ErrorCode.FS_INVALID_RANGE,
            message=f"Invalid range [{offset}, {offset + length}) for {uri} {bound}",
            context={"uri": uri, "offset": offset, "length": length, "size": size},
        )

    @classmethod
    def abort_failure(
        cls,
        uri: str,
        upload_id: str,
        cause: Optional[Exception] = None,
    ) -> FilesystemError:
        """Best-effort abort of a multipart upload failed."""
        return cls(
            code=ErrorCode.FS_ABORT_FAILURE,
            message=f"Failed to abort multipart upload {upload_id} for {uri}",
            cause=cause,
            context={"uri": uri, "upload_id": upload_id},
        )

    @classmethod
    def invalid_uri(cls, uri: str, reason: str) -> FilesystemError:
        """URI could not be parsed or names no object."""
        return cls(
            code=ErrorCode.FS_INVALID_URI,
            message=f"Invalid URI {uri!r}: {reason}",
            context={"uri": uri, "reason": reason},
        )

    @classmethod
    def not_initialized(cls, operation: str) -> FilesystemError:
        """Filesystem used before init() or after disconnect()."""
        return cls(
            code=ErrorCode.FS_NOT_INITIALIZED,
            message=f"Filesystem not initialized (during {operation})",
            context={"operation": operation},
        )

    @classmethod
    def session_failed(
        cls,
        uri: str,
        original: Optional[ObjectFSError] = None,
    ) -> FilesystemError:
        """A previous write or flush left the session FAILED; data is lost."""
        return cls(
            code=ErrorCode.FS_SESSION_FAILED,
            message=f"Write session for {uri} failed earlier; buffered data was discarded",
            cause=original,
            context={"uri": uri},
        )
