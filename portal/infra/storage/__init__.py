"""Object storage access layer.

A single :class:`StorageFacade` in front of an S3-compatible bucket
(Cloudflare R2, AWS S3, MinIO), with a small, stable error taxonomy.
"""

from .client import (
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
    SignedUrl,
    UploadOptions,
    UploadResult,
)
from .errors import (
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
from .facade import MAX_DELETE_BATCH, StorageFacade

__all__ = [
    "AccessError",
    "BatchDeleteError",
    "BatchDeleteResult",
    "DeleteError",
    "DeleteFailure",
    "DeleteResult",
    "DownloadError",
    "DownloadOptions",
    "DownloadResult",
    "HealthStatus",
    "ListError",
    "ListOptions",
    "ListResult",
    "MAX_DELETE_BATCH",
    "MetadataError",
    "NotFoundError",
    "ObjectEntry",
    "ObjectMetadata",
    "ObjectStore",
    "RemoteOperationError",
    "SignError",
    "SignedUrl",
    "StorageError",
    "StorageFacade",
    "UploadError",
    "UploadOptions",
    "UploadResult",
    "ValidationError",
]
