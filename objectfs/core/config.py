"""
Configuration Management for the Buffered Object Filesystem

Provides validated configuration with sensible defaults.
Supports environment variable overrides.

Design:
- Immutable after validation (frozen dataclasses)
- Fail-fast on invalid configuration (ValueError in __post_init__)
- Type-safe with dataclasses
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from objectfs.core.types import Result, Ok, Err
from objectfs.core import constants as C


# =============================================================================
# ENUMERATIONS
# =============================================================================
class BackendType(Enum):
    """
    Object store backend selected by the transport factory.
    """
    IN_MEMORY = "memory"  # Development/testing only
    S3 = "s3"             # AWS S3, MinIO and other S3-compatible stores


# =============================================================================
# ENVIRONMENT HELPERS
# =============================================================================
def _env(prefix: str, key: str, default: str = "") -> str:
    return os.environ.get(f"{prefix}_{key}", default)


def _env_int(prefix: str, key: str, default: int) -> int:
    val = _env(prefix, key)
    return int(val) if val else default


def _env_bool(prefix: str, key: str, default: bool) -> bool:
    val = _env(prefix, key).lower()
    if val in ("true", "1", "yes"):
        return True
    if val in ("false", "0", "no"):
        return False
    return default


# =============================================================================
# S3 PARAMETERS
# =============================================================================
@dataclass(frozen=True, slots=True)
class S3Params:
    """
    Per-filesystem S3 parameters.

    The first three fields drive the write path; everything after them is
    handed to the transport unmodified.

    Attributes:
        max_parallel_ops: Upper bound on in-flight part uploads per
            filesystem instance. Also sizes the client connection pool.
        multipart_part_size: Bytes per multipart part. When multipart is
            disabled this is the maximum size of a single object.
        use_multipart_upload: Stream full parts out as the buffer fills
            (True) or buffer everything and PUT once on flush (False).
        endpoint_override: host[:port] of an S3-compatible endpoint.
        scheme: "https" or "http" for the endpoint override.
        verify_ssl: Verify TLS certificates.
        use_virtual_addressing: Virtual-hosted style (True) or path style.
        region: Signing region.
        connect_timeout_ms: TCP connect timeout.
        request_timeout_ms: Read timeout per request.
        max_retries: Retry attempts handed to botocore.
        access_key_id / secret_access_key / session_token: Static
            credentials; None defers to the default credential chain.
        backend: Which transport the factory builds.
    """
    max_parallel_ops: int = C.DEFAULT_MAX_PARALLEL_OPS
    multipart_part_size: int = C.DEFAULT_MULTIPART_PART_SIZE
    use_multipart_upload: bool = C.DEFAULT_USE_MULTIPART_UPLOAD

    endpoint_override: Optional[str] = None
    scheme: str = C.DEFAULT_SCHEME
    verify_ssl: bool = True
    use_virtual_addressing: bool = True
    region: str = C.DEFAULT_REGION
    connect_timeout_ms: int = C.DEFAULT_CONNECT_TIMEOUT_MS
    request_timeout_ms: int = C.DEFAULT_REQUEST_TIMEOUT_MS
    max_retries: int = C.DEFAULT_MAX_RETRIES
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    session_token: Optional[str] = None
    backend: BackendType = BackendType.S3

    def __post_init__(self) -> None:
        """
        Validate configuration invariants.

        Raises:
            ValueError: If any invariant is violated.
        """
        if self.max_parallel_ops <= 0:
            raise ValueError(f"max_parallel_ops must be > 0, got {self.max_parallel_ops}")
        if self.multipart_part_size <= 0:
            raise ValueError(
                f"multipart_part_size must be > 0, got {self.multipart_part_size}"
            )
        if self.scheme not in ("http", "https"):
            raise ValueError(f"scheme must be 'http' or 'https', got {self.scheme!r}")
        if self.connect_timeout_ms <= 0:
            raise ValueError("connect_timeout_ms must be > 0")
        if self.request_timeout_ms <= 0:
            raise ValueError("request_timeout_ms must be > 0")
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")

    @classmethod
    def from_env(cls, prefix: str = C.S3_ENV_PREFIX) -> S3Params:
        """
        Construct parameters from environment variables.

        Environment Variables:
        - {prefix}_MAX_PARALLEL_OPS
        - {prefix}_MULTIPART_PART_SIZE (bytes)
        - {prefix}_USE_MULTIPART_UPLOAD (true/false)
        - {prefix}_ENDPOINT_OVERRIDE, {prefix}_SCHEME
        - {prefix}_VERIFY_SSL, {prefix}_USE_VIRTUAL_ADDRESSING
        - {prefix}_REGION
        - {prefix}_CONNECT_TIMEOUT_MS, {prefix}_REQUEST_TIMEOUT_MS
        - {prefix}_MAX_RETRIES
        - {prefix}_BACKEND (s3|memory)
        - AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY, AWS_SESSION_TOKEN

        Raises:
            ValueError: On unparsable numbers, unknown backend, or a value
                that fails validation.
        """
        return cls(
            max_parallel_ops=_env_int(prefix, "MAX_PARALLEL_OPS", C.DEFAULT_MAX_PARALLEL_OPS),
            multipart_part_size=_env_int(
                prefix, "MULTIPART_PART_SIZE", C.DEFAULT_MULTIPART_PART_SIZE
            ),
            use_multipart_upload=_env_bool(
                prefix, "USE_MULTIPART_UPLOAD", C.DEFAULT_USE_MULTIPART_UPLOAD
            ),
            endpoint_override=_env(prefix, "ENDPOINT_OVERRIDE") or None,
            scheme=_env(prefix, "SCHEME", C.DEFAULT_SCHEME),
            verify_ssl=_env_bool(prefix, "VERIFY_SSL", True),
            use_virtual_addressing=_env_bool(prefix, "USE_VIRTUAL_ADDRESSING", True),
            region=_env(prefix, "REGION", C.DEFAULT_REGION),
            connect_timeout_ms=_env_int(prefix, "CONNECT_TIMEOUT_MS", C.DEFAULT_CONNECT_TIMEOUT_MS),
            request_timeout_ms=_env_int(prefix, "REQUEST_TIMEOUT_MS", C.DEFAULT_REQUEST_TIMEOUT_MS),
            max_retries=_env_int(prefix, "MAX_RETRIES", C.DEFAULT_MAX_RETRIES),
            access_key_id=os.environ.get("AWS_ACCESS_KEY_ID"),
            secret_access_key=os.environ.get("AWS_SECRET_ACCESS_KEY"),
            session_token=os.environ.get("AWS_SESSION_TOKEN"),
            backend=BackendType(_env(prefix, "BACKEND", BackendType.S3.value).lower()),
        )

    @property
    def endpoint_url(self) -> Optional[str]:
        """Full endpoint URL, or None to use the AWS default for the region."""
        if not self.endpoint_override:
            return None
        if "://" in self.endpoint_override:
            return self.endpoint_override
        return f"{self.scheme}://{self.endpoint_override}"

    def client_kwargs(self) -> Dict[str, Any]:
        """
        Keyword arguments for ``aioboto3.Session().client("s3", ...)``.

        Excludes the botocore ``Config`` object, which the transport builds.
        """
        kwargs: Dict[str, Any] = {
            "region_name": self.region,
            "use_ssl": self.scheme == "https",
        }

        if self.endpoint_url:
            kwargs["endpoint_url"] = self.endpoint_url

        if self.access_key_id and self.secret_access_key:
            kwargs["aws_access_key_id"] = self.access_key_id
            kwargs["aws_secret_access_key"] = self.secret_access_key

        if self.session_token:
            kwargs["aws_session_token"] = self.session_token

        if not self.verify_ssl:
            kwargs["verify"] = False

        return kwargs


# =============================================================================
# ROOT CONFIGURATION
# =============================================================================
@dataclass(frozen=True)
class ObjectFSConfig:
    """Root configuration for a filesystem process."""

    s3: S3Params = field(default_factory=S3Params)
    pool_size: int = C.DEFAULT_POOL_SIZE
    log_level: str = "INFO"
    log_json: bool = True

    @classmethod
    def from_env(cls) -> Result[ObjectFSConfig, str]:
        """
        Load configuration from environment variables.

        Environment variables are prefixed with OBJECTFS_.
        Example: OBJECTFS_POOL_SIZE, OBJECTFS_S3_MAX_PARALLEL_OPS
        """
        prefix = C.ENV_PREFIX
        try:
            return Ok(cls(
                s3=S3Params.from_env(),
                pool_size=_env_int(prefix, "POOL_SIZE", C.DEFAULT_POOL_SIZE),
                log_level=_env(prefix, "LOG_LEVEL", "INFO").upper(),
                log_json=_env_bool(prefix, "LOG_JSON", True),
            ))
        except (ValueError, TypeError) as e:
            return Err(f"Configuration error: {e}")

    def validate(self) -> Result[None, str]:
        """Validate cross-field invariants."""
        if self.pool_size < 1:
            return Err("pool_size must be >= 1")
        if self.log_level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            return Err(f"Unknown log level {self.log_level!r}")
        if (
            self.s3.backend is BackendType.S3
            and self.s3.use_multipart_upload
            and self.s3.multipart_part_size < C.S3_MIN_PART_SIZE
        ):
            return Err(
                f"multipart_part_size must be >= {C.S3_MIN_PART_SIZE} for the S3 backend, "
                f"got {self.s3.multipart_part_size}"
            )
        return Ok(None)
