"""
System-Wide Constants for the Buffered Object Filesystem

All magic numbers and configuration defaults centralized here.
"""

from typing import Final

# =============================================================================
# SIZE AND TIME UNITS
# =============================================================================
KB: Final[int] = 1024
MB: Final[int] = 1024 * KB

SECOND_MS: Final[int] = 1000
NS_PER_S: Final[int] = 1_000_000_000

# =============================================================================
# S3 PARAMETERS
# =============================================================================
DEFAULT_MAX_PARALLEL_OPS: Final[int] = 8
DEFAULT_MULTIPART_PART_SIZE: Final[int] = 5 * MB
DEFAULT_USE_MULTIPART_UPLOAD: Final[bool] = True
DEFAULT_SCHEME: Final[str] = "https"
DEFAULT_REGION: Final[str] = "us-east-1"
DEFAULT_CONNECT_TIMEOUT_MS: Final[int] = 3 * SECOND_MS
DEFAULT_REQUEST_TIMEOUT_MS: Final[int] = 3 * SECOND_MS
DEFAULT_MAX_RETRIES: Final[int] = 3

# S3 rejects non-final multipart parts smaller than this
S3_MIN_PART_SIZE: Final[int] = 5 * MB

# =============================================================================
# EXECUTION SUBSTRATE
# =============================================================================
DEFAULT_POOL_SIZE: Final[int] = 8

# =============================================================================
# ENVIRONMENT
# =============================================================================
ENV_PREFIX: Final[str] = "OBJECTFS"
S3_ENV_PREFIX: Final[str] = f"{ENV_PREFIX}_S3"
