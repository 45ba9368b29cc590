"""
S3-Compatible Object Transport
==============================

aioboto3 client for AWS S3, MinIO and other S3-compatible services,
exposing the primitive operations the buffered filesystem composes:
single PUT, multipart initiate/part/complete/abort, ranged GET, HEAD,
delete, list and bucket management.

Design Principles:
------------------
1. **Primitives only**: Part carving, ordering and abort policy live in the
   filesystem; this layer issues exactly one request per call
2. **Retries below the seam**: botocore's retry handler owns transient
   failures (``retries={"max_attempts": ...}``)
3. **Result Monad**: No exceptions for control flow; botocore errors are
   classified into TransportError codes

Algorithmic Complexity:
-----------------------
| Operation          | Time  | Space | Notes                      |
|--------------------|-------|-------|----------------------------|
| put_object         | O(n)  | O(n)  | n = object size            |
| upload_part        | O(p)  | O(p)  | p = part size              |
| complete_multipart | O(k)  | O(k)  | k = part count             |
| get_range          | O(r)  | O(r)  | r = range length           |
| head_object        | O(1)  | O(1)  | Metadata only              |
| list_objects       | O(k)  | O(k)  | Paginated, k = result count|

Thread Safety:
--------------
- aioboto3 clients are safe for concurrent async operations
- Connection pool sized by ``max_parallel_ops``

Author: objectfs maintainers
License: MIT
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

import aioboto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from objectfs.core import constants as C
from objectfs.core.config import S3Params
from objectfs.core.types import Result, Ok, Err, ObjectUri, ByteRange
from objectfs.core.errors import ErrorCode, TransportError
from objectfs.storage.metrics import TransferMetrics
from objectfs.storage.protocols import CompletedPart, ObjectMetadata

if TYPE_CHECKING:
    from types_aiobotocore_s3 import S3Client


logger = logging.getLogger(__name__)


# =============================================================================
# ERROR CLASSIFICATION
# =============================================================================
_NOT_FOUND_KEY_CODES = frozenset({"NoSuchKey", "404", "NotFound"})
_NOT_FOUND_BUCKET_CODES = frozenset({"NoSuchBucket"})
_NOT_FOUND_UPLOAD_CODES = frozenset({"NoSuchUpload"})
_INVALID_PART_CODES = frozenset({"InvalidPart", "InvalidPartOrder", "EntityTooSmall"})


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


def _classify(
    exc: Exception,
    operation: str,
    uri: ObjectUri,
    upload_id: str = "",
    part_number: int = 0,
) -> TransportError:
    """Map a botocore exception to a TransportError."""
    if isinstance(exc, ClientError):
        code = _error_code(exc)
        if code in _NOT_FOUND_BUCKET_CODES:
            return TransportError.no_such_bucket(uri.bucket)
        if code in _NOT_FOUND_KEY_CODES:
            return TransportError.no_such_key(str(uri))
        if code in _NOT_FOUND_UPLOAD_CODES:
            return TransportError.no_such_upload(upload_id)
        if code in _INVALID_PART_CODES:
            return TransportError.invalid_part(upload_id, part_number, code)
    return TransportError.request_failed(operation, str(uri), exc)


def _strip_etag(etag: Optional[str]) -> str:
    return (etag or "").strip('"')


# =============================================================================
# S3 TRANSPORT
# =============================================================================
class S3Transport:
    """
    ObjectTransport backed by aioboto3.

    One transport owns one aioboto3 client. The filesystem adapter that
    owns the transport closes it on disconnect.

    Example:
        >>> transport = S3Transport(S3Params(endpoint_override="localhost:9000", scheme="http",
        ...                                  use_virtual_addressing=False))
        >>> await transport.connect()
        >>> await transport.put_object(ObjectUri("bucket", "a.bin"), b"payload")
        >>> await transport.close()
    """

    __slots__ = (
        "_params",
        "_session",
        "_client_cm",
        "_client",
        "_metrics",
        "_connected",
    )

    def __init__(self, params: S3Params) -> None:
        """
        Args:
            params: S3 connection parameters.

        Note:
            Call `connect()` before performing operations.
        """
        self._params = params
        self._session: Any = None
        self._client_cm: Any = None
        self._client: Optional["S3Client"] = None
        self._metrics = TransferMetrics()
        self._connected = False

        if params.use_multipart_upload and params.multipart_part_size < C.S3_MIN_PART_SIZE:
            logger.warning(
                "multipart_part_size %d is below the S3 minimum of %d; "
                "completion will be rejected by S3 for objects with more than one part",
                params.multipart_part_size,
                C.S3_MIN_PART_SIZE,
            )

    # -------------------------------------------------------------------------
    # CONNECTION MANAGEMENT
    # -------------------------------------------------------------------------

    def _client_config(self) -> Config:
        s3_options: Dict[str, Any] = {
            "addressing_style": "virtual" if self._params.use_virtual_addressing else "path",
        }
        return Config(
            max_pool_connections=self._params.max_parallel_ops,
            connect_timeout=self._params.connect_timeout_ms / C.SECOND_MS,
            read_timeout=self._params.request_timeout_ms / C.SECOND_MS,
            retries={"max_attempts": self._params.max_retries},
            s3=s3_options,
        )

    async def connect(self) -> Result[None, TransportError]:
        """
        Create the aioboto3 session and S3 client.

        No request is issued; an unreachable endpoint surfaces on first use.
        """
        if self._connected:
            return Ok(None)

        try:
            self._session = aioboto3.Session()
            self._client_cm = self._session.client(
                "s3",
                config=self._client_config(),
                **self._params.client_kwargs(),
            )
            self._client = await self._client_cm.__aenter__()
            self._connected = True
            logger.info(
                "S3 transport connected (endpoint=%s, region=%s, pool=%d)",
                self._params.endpoint_url or "aws-default",
                self._params.region,
                self._params.max_parallel_ops,
            )
            return Ok(None)
        except (BotoCoreError, ClientError, ValueError) as e:
            self._metrics.request_errors += 1
            return Err(TransportError.request_failed("connect", self._params.endpoint_url or "s3", e))

    async def close(self) -> None:
        """
        Close S3 client and release resources.

        Safe to call multiple times.
        """
        if self._client_cm is not None:
            await self._client_cm.__aexit__(None, None, None)
            self._client_cm = None
            self._client = None

        self._connected = False

    def _require_client(self) -> Result["S3Client", TransportError]:
        if not self._connected or self._client is None:
            return Err(TransportError.not_connected())
        return Ok(self._client)

    def _fail(self, exc: Exception, operation: str, uri: ObjectUri, **kwargs: Any) -> Err[TransportError]:
        error = _classify(exc, operation, uri, **kwargs)
        if error.is_not_found:
            self._metrics.not_found += 1
        else:
            self._metrics.request_errors += 1
            logger.debug("S3 %s failed for %s: %s", operation, uri, exc)
        return Err(error)

    # -------------------------------------------------------------------------
    # OBJECT OPERATIONS
    # -------------------------------------------------------------------------

    async def put_object(
        self,
        uri: ObjectUri,
        data: bytes,
    ) -> Result[ObjectMetadata, TransportError]:
        client = self._require_client()
        if client.is_err():
            return client

        start_ns = self._metrics.start()
        try:
            response = await client.unwrap().put_object(
                Bucket=uri.bucket,
                Key=uri.key,
                Body=data,
            )
        except (BotoCoreError, ClientError, asyncio.TimeoutError) as e:
            return self._fail(e, "put_object", uri)

        self._metrics.record_put(len(data), start_ns)
        return Ok(ObjectMetadata(
            uri=uri,
            size_bytes=len(data),
            etag=_strip_etag(response.get("ETag")),
            last_modified=datetime.now(timezone.utc),
        ))

    async def initiate_multipart(self, uri: ObjectUri) -> Result[str, TransportError]:
        client = self._require_client()
        if client.is_err():
            return client

        try:
            response = await client.unwrap().create_multipart_upload(
                Bucket=uri.bucket,
                Key=uri.key,
            )
        except (BotoCoreError, ClientError, asyncio.TimeoutError) as e:
            return self._fail(e, "create_multipart_upload", uri)

        return Ok(response["UploadId"])

    async def upload_part(
        self,
        uri: ObjectUri,
        upload_id: str,
        part_number: int,
        data: bytes,
    ) -> Result[CompletedPart, TransportError]:
        client = self._require_client()
        if client.is_err():
            return client

        start_ns = self._metrics.start()
        try:
            response = await client.unwrap().upload_part(
                Bucket=uri.bucket,
                Key=uri.key,
                UploadId=upload_id,
                PartNumber=part_number,
                Body=data,
            )
        except (BotoCoreError, ClientError, asyncio.TimeoutError) as e:
            return self._fail(e, "upload_part", uri, upload_id=upload_id, part_number=part_number)

        self._metrics.record_part(len(data), start_ns)
        return Ok(CompletedPart(
            part_number=part_number,
            etag=response["ETag"],
            size_bytes=len(data),
        ))

    async def complete_multipart(
        self,
        uri: ObjectUri,
        upload_id: str,
        parts: Sequence[CompletedPart],
    ) -> Result[ObjectMetadata, TransportError]:
        client = self._require_client()
        if client.is_err():
            return client

        try:
            response = await client.unwrap().complete_multipart_upload(
                Bucket=uri.bucket,
                Key=uri.key,
                UploadId=upload_id,
                MultipartUpload={"Parts": [part.to_s3() for part in parts]},
            )
        except (BotoCoreError, ClientError, asyncio.TimeoutError) as e:
            return self._fail(e, "complete_multipart_upload", uri, upload_id=upload_id)

        self._metrics.complete_count += 1
        return Ok(ObjectMetadata(
            uri=uri,
            size_bytes=sum(part.size_bytes for part in parts),
            etag=_strip_etag(response.get("ETag")),
            last_modified=datetime.now(timezone.utc),
        ))

    async def abort_multipart(
        self,
        uri: ObjectUri,
        upload_id: str,
    ) -> Result[None, TransportError]:
        client = self._require_client()
        if client.is_err():
            return client

        try:
            await client.unwrap().abort_multipart_upload(
                Bucket=uri.bucket,
                Key=uri.key,
                UploadId=upload_id,
            )
        except (BotoCoreError, ClientError, asyncio.TimeoutError) as e:
            return self._fail(e, "abort_multipart_upload", uri, upload_id=upload_id)

        self._metrics.abort_count += 1
        return Ok(None)

    async def get_range(
        self,
        uri: ObjectUri,
        byte_range: ByteRange,
    ) -> Result[bytes, TransportError]:
        """
        Download byte range of object.

        The caller validates the range against the object size; a shorter
        body than requested is returned as-is for the caller to judge.
        """
        client = self._require_client()
        if client.is_err():
            return client

        start_ns = self._metrics.start()
        try:
            response = await client.unwrap().get_object(
                Bucket=uri.bucket,
                Key=uri.key,
                Range=byte_range.to_http_header(),
            )
            async with response["Body"] as stream:
                data = await stream.read()
        except (BotoCoreError, ClientError, asyncio.TimeoutError) as e:
            return self._fail(e, "get_object", uri)

        self._metrics.record_download(len(data), start_ns)
        return Ok(data)

    async def head_object(self, uri: ObjectUri) -> Result[ObjectMetadata, TransportError]:
        client = self._require_client()
        if client.is_err():
            return client

        try:
            response = await client.unwrap().head_object(Bucket=uri.bucket, Key=uri.key)
        except (BotoCoreError, ClientError, asyncio.TimeoutError) as e:
            return self._fail(e, "head_object", uri)

        self._metrics.head_count += 1
        return Ok(ObjectMetadata(
            uri=uri,
            size_bytes=response.get("ContentLength", 0),
            etag=_strip_etag(response.get("ETag")),
            last_modified=response.get("LastModified"),
            metadata=response.get("Metadata", {}),
        ))

    async def delete_object(self, uri: ObjectUri) -> Result[bool, TransportError]:
        """
        Delete object.

        S3 acknowledges deletes of absent keys, so existence is checked
        with HEAD first to report Ok(False).
        """
        existing = await self.head_object(uri)
        if existing.is_err():
            if existing.error.code is ErrorCode.TRANSPORT_NO_SUCH_KEY:
                return Ok(False)
            return existing

        try:
            await self._client.delete_object(Bucket=uri.bucket, Key=uri.key)
        except (BotoCoreError, ClientError, asyncio.TimeoutError) as e:
            return self._fail(e, "delete_object", uri)

        self._metrics.delete_count += 1
        return Ok(True)

    # -------------------------------------------------------------------------
    # LIST OPERATIONS
    # -------------------------------------------------------------------------

    async def list_objects(
        self,
        bucket: str,
        prefix: str = "",
    ) -> Result[List[ObjectMetadata], TransportError]:
        """
        List every object under ``prefix``, following continuation tokens.

        Complexity: O(k) where k = result count.
        """
        client = self._require_client()
        if client.is_err():
            return client

        objects: List[ObjectMetadata] = []
        list_kwargs: Dict[str, Any] = {"Bucket": bucket}
        if prefix:
            list_kwargs["Prefix"] = prefix

        try:
            paginator = client.unwrap().get_paginator("list_objects_v2")
            async for page in paginator.paginate(**list_kwargs):
                for obj in page.get("Contents", []):
                    objects.append(ObjectMetadata(
                        uri=ObjectUri(bucket=bucket, key=obj["Key"]),
                        size_bytes=obj.get("Size", 0),
                        etag=_strip_etag(obj.get("ETag")),
                        last_modified=obj.get("LastModified"),
                    ))
        except (BotoCoreError, ClientError, asyncio.TimeoutError) as e:
            return self._fail(e, "list_objects_v2", ObjectUri(bucket=bucket, key=prefix))

        self._metrics.list_count += 1
        return Ok(objects)

    # -------------------------------------------------------------------------
    # BUCKET PASSTHROUGHS
    # -------------------------------------------------------------------------

    async def is_bucket(self, bucket: str) -> Result[bool, TransportError]:
        client = self._require_client()
        if client.is_err():
            return client

        try:
            await client.unwrap().head_bucket(Bucket=bucket)
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_BUCKET_CODES | _NOT_FOUND_KEY_CODES:
                return Ok(False)
            return self._fail(e, "head_bucket", ObjectUri(bucket=bucket))
        except (BotoCoreError, asyncio.TimeoutError) as e:
            return self._fail(e, "head_bucket", ObjectUri(bucket=bucket))

        return Ok(True)

    async def create_bucket(self, bucket: str) -> Result[None, TransportError]:
        client = self._require_client()
        if client.is_err():
            return client

        create_kwargs: Dict[str, Any] = {"Bucket": bucket}
        if self._params.region != C.DEFAULT_REGION and self._params.endpoint_override is None:
            create_kwargs["CreateBucketConfiguration"] = {
                "LocationConstraint": self._params.region,
            }

        try:
            await client.unwrap().create_bucket(**create_kwargs)
        except (BotoCoreError, ClientError, asyncio.TimeoutError) as e:
            return self._fail(e, "create_bucket", ObjectUri(bucket=bucket))

        return Ok(None)

    async def remove_bucket(self, bucket: str) -> Result[None, TransportError]:
        client = self._require_client()
        if client.is_err():
            return client

        try:
            await client.unwrap().delete_bucket(Bucket=bucket)
        except (BotoCoreError, ClientError, asyncio.TimeoutError) as e:
            return self._fail(e, "delete_bucket", ObjectUri(bucket=bucket))

        return Ok(None)

    # -------------------------------------------------------------------------
    # INTROSPECTION
    # -------------------------------------------------------------------------

    @property
    def params(self) -> S3Params:
        return self._params

    @property
    def metrics(self) -> TransferMetrics:
        return self._metrics
