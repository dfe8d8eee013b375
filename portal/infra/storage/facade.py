"""Storage facade over an S3-compatible bucket.

Each operation validates its arguments, issues a single SDK call (batch delete
issues one call per chunk) and returns a plain result record. SDK exceptions
are logged and re-raised as members of the :mod:`portal.infra.storage.errors`
taxonomy.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any, Iterable

from portal.infra.observability.metrics import track_operation
from portal.infra.storage.client import (
    DEFAULT_CONTENT_TYPE,
    BatchDeleteResult,
    DeleteFailure,
    DeleteResult,
    DownloadOptions,
    DownloadResult,
    HealthStatus,
    ListOptions,
    ListResult,
    ObjectEntry,
    ObjectMetadata,
    ObjectStore,
    SignedOperation,
    SignedUrl,
    UploadOptions,
    UploadResult,
)
from portal.infra.storage.errors import (
    AccessError,
    BatchDeleteError,
    DeleteError,
    DownloadError,
    ListError,
    MetadataError,
    NotFoundError,
    RemoteOperationError,
    SignError,
    StorageError,
    UploadError,
    ValidationError,
)

if TYPE_CHECKING:
    from portal.common.config import Settings

logger = logging.getLogger("portal.storage")

# S3 DeleteObjects accepts at most 1000 keys per request
MAX_DELETE_BATCH = 1000
# SigV4 presigned URLs are valid for at most seven days
MAX_SIGNED_URL_EXPIRY = 7 * 24 * 60 * 60
DEFAULT_SIGNED_URL_EXPIRY = 3600
LARGE_DOWNLOAD_BYTES = 10 * 1024 * 1024

_NOT_FOUND_CODES = frozenset({"NoSuchKey", "NotFound", "404"})
_ACCESS_DENIED_CODES = frozenset({"AccessDenied", "Forbidden", "403"})
_SIGNED_METHODS: dict[str, str] = {"read": "get_object", "write": "put_object"}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _error_code(exc: BaseException) -> str | None:
    """Extract the S3 error code from a botocore ``ClientError``."""
    response = getattr(exc, "response", None)
    if not isinstance(response, dict):
        return None
    code = (response.get("Error") or {}).get("Code")
    if code:
        return str(code)
    status = (response.get("ResponseMetadata") or {}).get("HTTPStatusCode")
    return str(status) if status else None


def _require_key(key: Any) -> str:
    if not isinstance(key, str) or not key:
        raise ValidationError("Key is required")
    return key


def _classify(
    exc: BaseException, key: str, fallback: type[RemoteOperationError]
) -> StorageError:
    code = _error_code(exc)
    if code in _NOT_FOUND_CODES:
        return NotFoundError(key)
    if code in _ACCESS_DENIED_CODES:
        return AccessError(key)
    return fallback(exc, key=key)


class StorageFacade:
    """File operations against one bucket.

    The bucket is fixed for the lifetime of the instance. The underlying
    client is shared and thread-safe; the facade itself holds no mutable
    state, so one instance can serve every request handler.
    """

    def __init__(
        self,
        client: ObjectStore,
        bucket: str,
        *,
        region: str = "auto",
        upload_source: str = "web-portal",
    ) -> None:
        if not bucket:
            raise ValidationError("Bucket name is required")
        self._client = client
        self._bucket = bucket
        self._region = region
        self._upload_source = upload_source

    @classmethod
    def from_settings(
        cls, settings: "Settings", *, client: ObjectStore | None = None
    ) -> "StorageFacade":
        """Build a facade (and, unless given, its boto3 client) from settings."""
        if client is None:
            from portal.infra.storage.s3_client import build_s3_client

            client = build_s3_client(settings)
        return cls(
            client,
            settings.S3_BUCKET or "",
            region=settings.S3_REGION,
            upload_source=settings.UPLOAD_SOURCE,
        )

    @property
    def bucket(self) -> str:
        return self._bucket

    @property
    def region(self) -> str:
        return self._region

    def upload_file(
        self,
        key: str,
        body: bytes | bytearray | memoryview | None,
        content_type: str | None = None,
        options: UploadOptions | None = None,
    ) -> UploadResult:
        """Store ``body`` under ``key``.

        Caller metadata is merged over the default ``uploaded-at``,
        ``file-size`` and ``upload-source`` entries.

        Raises:
            ValidationError: If the key or the payload is missing.
            UploadError: If the remote call fails.
        """
        if not key or body is None:
            raise ValidationError("Key and file buffer are required")
        key = _require_key(key)
        if not isinstance(body, (bytes, bytearray, memoryview)):
            raise ValidationError("File buffer must be bytes-like")

        opts = options or UploadOptions()
        size = memoryview(body).nbytes
        resolved_type = content_type or DEFAULT_CONTENT_TYPE
        metadata = {
            "uploaded-at": _utcnow().isoformat(),
            "file-size": str(size),
            "upload-source": self._upload_source,
        }
        metadata.update({str(k): str(v) for k, v in opts.metadata.items()})

        params: dict[str, Any] = {
            "Bucket": self._bucket,
            "Key": key,
            "Body": bytes(body),
            "ContentType": resolved_type,
            "CacheControl": opts.cache_control,
            "Metadata": metadata,
            "StorageClass": opts.storage_class,
        }
        if opts.server_side_encryption:
            params["ServerSideEncryption"] = opts.server_side_encryption

        with track_operation("upload"):
            try:
                response = self._client.put_object(**params)
            except Exception as exc:
                logger.error("storage_upload_failed key=%s error=%s", key, exc)
                raise UploadError(exc, key=key) from exc

        return UploadResult(
            key=key,
            size_bytes=size,
            content_type=resolved_type,
            etag=response.get("ETag"),
            version_id=response.get("VersionId"),
            uploaded_at=_utcnow(),
        )

    def download_file(
        self, key: str, options: DownloadOptions | None = None
    ) -> DownloadResult:
        """Fetch an object, optionally a byte range or conditionally.

        Raises:
            ValidationError: If the key is missing.
            NotFoundError: If the object does not exist.
            AccessError: If access to the object is denied.
            DownloadError: For any other remote failure.
        """
        key = _require_key(key)
        opts = options or DownloadOptions()

        params: dict[str, Any] = {"Bucket": self._bucket, "Key": key}
        if opts.range:
            logger.debug("storage_range_request key=%s range=%s", key, opts.range)
            params["Range"] = opts.range
        if opts.if_none_match:
            params["IfNoneMatch"] = opts.if_none_match
        if opts.if_modified_since:
            params["IfModifiedSince"] = opts.if_modified_since
        if opts.response_cache_control:
            params["ResponseCacheControl"] = opts.response_cache_control
        if opts.response_content_type:
            params["ResponseContentType"] = opts.response_content_type

        started = time.perf_counter()
        with track_operation("download"):
            try:
                response = self._client.get_object(**params)
                body = response["Body"].read()
            except Exception as exc:
                logger.error("storage_download_failed key=%s error=%s", key, exc)
                raise _classify(exc, key, DownloadError) from exc
        download_time_ms = (time.perf_counter() - started) * 1000

        content_length = int(response.get("ContentLength", len(body)))
        if content_length > LARGE_DOWNLOAD_BYTES:
            logger.info(
                "storage_large_download key=%s size=%s time_ms=%.1f",
                key,
                content_length,
                download_time_ms,
            )

        return DownloadResult(
            key=key,
            body=body,
            content_type=response.get("ContentType"),
            content_length=content_length,
            content_range=response.get("ContentRange"),
            etag=response.get("ETag"),
            last_modified=response.get("LastModified"),
            metadata=dict(response.get("Metadata") or {}),
            downloaded_at=_utcnow(),
            download_time_ms=download_time_ms,
        )

    def delete_file(self, key: str) -> DeleteResult:
        """Delete one object. S3 reports success for keys that never existed."""
        key = _require_key(key)
        with track_operation("delete"):
            try:
                response = self._client.delete_object(Bucket=self._bucket, Key=key)
            except Exception as exc:
                logger.error("storage_delete_failed key=%s error=%s", key, exc)
                raise DeleteError(exc, key=key) from exc
        return DeleteResult(
            key=key, deleted_at=_utcnow(), version_id=response.get("VersionId")
        )

    def delete_files(self, keys: Iterable[str]) -> BatchDeleteResult:
        """Delete many objects in sequential chunks of at most 1000 keys.

        Per-object failures reported by the service are collected in
        ``errors``; only a failed request raises.

        Raises:
            ValidationError: If ``keys`` is empty or contains an empty key.
            BatchDeleteError: If a chunk request fails.
        """
        if keys is None or isinstance(keys, (str, bytes)):
            raise ValidationError("Keys array is required and must not be empty")
        key_list = list(keys)
        if not key_list:
            raise ValidationError("Keys array is required and must not be empty")
        for key in key_list:
            _require_key(key)

        deleted: list[str] = []
        errors: list[DeleteFailure] = []
        chunk_count = 0
        with track_operation("batch_delete"):
            for start in range(0, len(key_list), MAX_DELETE_BATCH):
                batch = key_list[start : start + MAX_DELETE_BATCH]
                try:
                    response = self._client.delete_objects(
                        Bucket=self._bucket,
                        Delete={
                            "Objects": [{"Key": key} for key in batch],
                            "Quiet": False,
                        },
                    )
                except Exception as exc:
                    logger.error(
                        "storage_batch_delete_failed chunk=%s chunk_size=%s error=%s",
                        chunk_count + 1,
                        len(batch),
                        exc,
                    )
                    raise BatchDeleteError(exc) from exc
                chunk_count += 1
                deleted.extend(
                    str(item.get("Key", "")) for item in response.get("Deleted") or []
                )
                errors.extend(
                    DeleteFailure(
                        key=str(item.get("Key", "")),
                        code=item.get("Code"),
                        message=item.get("Message"),
                    )
                    for item in response.get("Errors") or []
                )

        if errors:
            logger.warning(
                "storage_batch_delete_partial deleted=%s failed=%s",
                len(deleted),
                len(errors),
            )
        return BatchDeleteResult(
            deleted_count=len(deleted),
            deleted_keys=tuple(deleted),
            errors=tuple(errors),
            chunk_count=chunk_count,
            deleted_at=_utcnow(),
        )

    def list_files(
        self, prefix: str = "", options: ListOptions | None = None
    ) -> ListResult:
        """List one page of objects under ``prefix``."""
        opts = options or ListOptions()
        if opts.max_keys < 1:
            raise ValidationError("max_keys must be positive")

        params: dict[str, Any] = {
            "Bucket": self._bucket,
            "Prefix": prefix or "",
            "MaxKeys": int(opts.max_keys),
        }
        if opts.continuation_token:
            params["ContinuationToken"] = opts.continuation_token
        if opts.delimiter:
            params["Delimiter"] = opts.delimiter
        if opts.fetch_owner:
            params["FetchOwner"] = True
        if opts.start_after:
            params["StartAfter"] = opts.start_after

        with track_operation("list"):
            try:
                response = self._client.list_objects_v2(**params)
            except Exception as exc:
                logger.error("storage_list_failed prefix=%s error=%s", prefix, exc)
                raise ListError(exc) from exc

        entries = tuple(
            ObjectEntry(
                key=item["Key"],
                size_bytes=int(item.get("Size") or 0),
                etag=item.get("ETag"),
                last_modified=item.get("LastModified"),
                storage_class=item.get("StorageClass"),
                owner=(item.get("Owner") or {}).get("DisplayName")
                or (item.get("Owner") or {}).get("ID"),
            )
            for item in response.get("Contents") or []
        )
        return ListResult(
            prefix=prefix or "",
            entries=entries,
            common_prefixes=tuple(
                item["Prefix"] for item in response.get("CommonPrefixes") or []
            ),
            key_count=int(response.get("KeyCount", len(entries))),
            has_more=bool(response.get("IsTruncated", False)),
            next_token=response.get("NextContinuationToken") or None,
            requested_at=_utcnow(),
        )

    def get_metadata(self, key: str) -> ObjectMetadata:
        """HEAD an object. A missing object yields ``exists=False``, not an error.

        Raises:
            ValidationError: If the key is missing.
            MetadataError: For remote failures other than "not found".
        """
        key = _require_key(key)
        with track_operation("metadata"):
            try:
                response = self._client.head_object(Bucket=self._bucket, Key=key)
            except Exception as exc:
                if _error_code(exc) in _NOT_FOUND_CODES:
                    return ObjectMetadata(key=key, exists=False, queried_at=_utcnow())
                logger.error("storage_metadata_failed key=%s error=%s", key, exc)
                raise MetadataError(exc, key=key) from exc

        size = response.get("ContentLength")
        return ObjectMetadata(
            key=key,
            exists=True,
            queried_at=_utcnow(),
            size_bytes=int(size) if size is not None else None,
            content_type=response.get("ContentType"),
            etag=response.get("ETag"),
            last_modified=response.get("LastModified"),
            cache_control=response.get("CacheControl"),
            storage_class=response.get("StorageClass"),
            metadata=dict(response.get("Metadata") or {}),
        )

    def exists(self, key: str, *, strict: bool = False) -> bool:
        """Whether ``key`` exists.

        By default any facade error (including an invalid key or a transient
        network failure) reads as ``False``. With ``strict=True`` errors other
        than "not found" propagate.
        """
        try:
            return self.get_metadata(key).exists
        except StorageError as exc:
            if strict:
                raise
            logger.warning("storage_exists_check_failed key=%s error=%s", key, exc)
            return False

    def get_size(self, key: str, *, strict: bool = False) -> int | None:
        """Object size in bytes, or ``None`` if absent. Errors follow :meth:`exists`."""
        try:
            metadata = self.get_metadata(key)
        except StorageError as exc:
            if strict:
                raise
            logger.warning("storage_size_check_failed key=%s error=%s", key, exc)
            return None
        return metadata.size_bytes if metadata.exists else None

    def generate_signed_url(
        self,
        key: str,
        operation: SignedOperation = "read",
        expires_in: int = DEFAULT_SIGNED_URL_EXPIRY,
    ) -> SignedUrl:
        """Generate a time-limited URL to read or write one object.

        Raises:
            ValidationError: For a missing key, an operation other than
                ``read``/``write`` or an out-of-range expiry.
            SignError: If URL generation fails.
        """
        key = _require_key(key)
        client_method = _SIGNED_METHODS.get(operation)
        if client_method is None:
            raise ValidationError(f"Unsupported operation: {operation}")
        if (
            isinstance(expires_in, bool)
            or not isinstance(expires_in, int)
            or not 1 <= expires_in <= MAX_SIGNED_URL_EXPIRY
        ):
            raise ValidationError(
                f"expires_in must be between 1 and {MAX_SIGNED_URL_EXPIRY} seconds"
            )

        generated_at = _utcnow()
        with track_operation("sign"):
            try:
                url = self._client.generate_presigned_url(
                    ClientMethod=client_method,
                    Params={"Bucket": self._bucket, "Key": key},
                    ExpiresIn=expires_in,
                )
            except Exception as exc:
                logger.error("storage_sign_failed key=%s error=%s", key, exc)
                raise SignError(exc, key=key) from exc
            if not url:
                raise SignError("Generated presigned URL is empty", key=key)

        return SignedUrl(
            url=str(url),
            key=key,
            operation=operation,
            expires_in=expires_in,
            expires_at=generated_at + timedelta(seconds=expires_in),
            generated_at=generated_at,
        )

    def health_check(self) -> HealthStatus:
        """Probe the bucket with a one-key listing. Never raises."""
        started = time.perf_counter()
        try:
            with track_operation("health_check"):
                self._client.list_objects_v2(Bucket=self._bucket, MaxKeys=1)
        except Exception as exc:
            logger.warning(
                "storage_health_check_failed bucket=%s error=%s", self._bucket, exc
            )
            return HealthStatus(
                status="unhealthy",
                bucket=self._bucket,
                region=self._region,
                checked_at=_utcnow(),
                error=str(exc),
            )
        return HealthStatus(
            status="healthy",
            bucket=self._bucket,
            region=self._region,
            checked_at=_utcnow(),
            response_time_ms=(time.perf_counter() - started) * 1000,
        )
