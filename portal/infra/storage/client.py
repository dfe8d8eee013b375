"""Storage client protocol and data types.

This module defines the subset of the S3 API the facade relies on, the option
records callers pass in, and the result records every facade call returns.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal, Mapping, Protocol

DEFAULT_CACHE_CONTROL = "public, max-age=31536000"
DEFAULT_STORAGE_CLASS = "STANDARD"
DEFAULT_ENCRYPTION = "AES256"
DEFAULT_CONTENT_TYPE = "application/octet-stream"
DEFAULT_MAX_KEYS = 1000

HealthState = Literal["healthy", "unhealthy"]
SignedOperation = Literal["read", "write"]


class ObjectStore(Protocol):
    """The boto3 S3 client methods used by :class:`StorageFacade`.

    Any object with these methods (a real boto3 client, a stub, a mock) can
    back the facade.
    """

    def put_object(self, **kwargs: Any) -> dict[str, Any]: ...

    def get_object(self, **kwargs: Any) -> dict[str, Any]: ...

    def delete_object(self, **kwargs: Any) -> dict[str, Any]: ...

    def delete_objects(self, **kwargs: Any) -> dict[str, Any]: ...

    def list_objects_v2(self, **kwargs: Any) -> dict[str, Any]: ...

    def head_object(self, **kwargs: Any) -> dict[str, Any]: ...

    def generate_presigned_url(
        self, ClientMethod: str, Params: Mapping[str, Any], ExpiresIn: int
    ) -> str: ...


@dataclass(frozen=True, slots=True)
class UploadOptions:
    """Optional settings applied to an uploaded object."""

    metadata: Mapping[str, str] = field(default_factory=dict)
    cache_control: str = DEFAULT_CACHE_CONTROL
    storage_class: str = DEFAULT_STORAGE_CLASS
    server_side_encryption: str | None = DEFAULT_ENCRYPTION


@dataclass(frozen=True, slots=True)
class DownloadOptions:
    """Byte range, conditional headers and response overrides for a download."""

    range: str | None = None
    if_none_match: str | None = None
    if_modified_since: datetime | None = None
    response_cache_control: str | None = None
    response_content_type: str | None = None


@dataclass(frozen=True, slots=True)
class ListOptions:
    max_keys: int = DEFAULT_MAX_KEYS
    continuation_token: str | None = None
    delimiter: str | None = None
    fetch_owner: bool = False
    start_after: str | None = None


@dataclass(frozen=True, slots=True)
class UploadResult:
    key: str
    size_bytes: int
    content_type: str
    etag: str | None
    version_id: str | None
    uploaded_at: datetime


@dataclass(frozen=True, slots=True)
class DownloadResult:
    """Downloaded payload with the object's metadata."""

    key: str
    body: bytes
    content_type: str | None
    content_length: int
    content_range: str | None
    etag: str | None
    last_modified: datetime | None
    metadata: Mapping[str, str]
    downloaded_at: datetime
    download_time_ms: float


@dataclass(frozen=True, slots=True)
class DeleteResult:
    key: str
    deleted_at: datetime
    version_id: str | None = None


@dataclass(frozen=True, slots=True)
class DeleteFailure:
    """A per-object failure reported by a batch delete."""

    key: str
    code: str | None
    message: str | None


@dataclass(frozen=True, slots=True)
class BatchDeleteResult:
    deleted_count: int
    deleted_keys: tuple[str, ...]
    errors: tuple[DeleteFailure, ...]
    chunk_count: int
    deleted_at: datetime


@dataclass(frozen=True, slots=True)
class ObjectEntry:
    key: str
    size_bytes: int
    etag: str | None
    last_modified: datetime | None
    storage_class: str | None
    owner: str | None = None


@dataclass(frozen=True, slots=True)
class ListResult:
    """One page of a prefix listing."""

    prefix: str
    entries: tuple[ObjectEntry, ...]
    common_prefixes: tuple[str, ...]
    key_count: int
    has_more: bool
    next_token: str | None
    requested_at: datetime


@dataclass(frozen=True, slots=True)
class ObjectMetadata:
    """Result of a HEAD request. ``exists`` is False when the key is absent."""

    key: str
    exists: bool
    queried_at: datetime
    size_bytes: int | None = None
    content_type: str | None = None
    etag: str | None = None
    last_modified: datetime | None = None
    cache_control: str | None = None
    storage_class: str | None = None
    metadata: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class SignedUrl:
    url: str
    key: str
    operation: SignedOperation
    expires_in: int
    expires_at: datetime
    generated_at: datetime


@dataclass(frozen=True, slots=True)
class HealthStatus:
    """Outcome of a storage health probe. Recomputed on every check."""

    status: HealthState
    bucket: str
    region: str
    checked_at: datetime
    response_time_ms: float | None = None
    error: str | None = None

    @property
    def healthy(self) -> bool:
        return self.status == "healthy"
