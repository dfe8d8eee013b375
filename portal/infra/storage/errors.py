"""Error taxonomy for object storage operations.

Callers only ever see these types; the SDK's own exceptions are kept as
``__cause__``.
"""

from __future__ import annotations


class StorageError(RuntimeError):
    """Raised when object storage operations fail."""


class ValidationError(StorageError, ValueError):
    """Missing or malformed input, detected before any remote call."""


class NotFoundError(StorageError):
    """The remote service confirmed the object does not exist."""

    def __init__(self, key: str) -> None:
        super().__init__(f"File not found: {key}")
        self.key = key


class AccessError(StorageError):
    """The remote service denied access to the object."""

    def __init__(self, key: str) -> None:
        super().__init__(f"Access denied for file: {key}")
        self.key = key


class RemoteOperationError(StorageError):
    """Unclassified remote failure, prefixed with the operation name."""

    operation = "Storage operation"

    def __init__(self, cause: object, *, key: str | None = None) -> None:
        super().__init__(f"{self.operation} failed: {cause}")
        self.key = key


class UploadError(RemoteOperationError):
    operation = "Upload"


class DownloadError(RemoteOperationError):
    operation = "Download"


class DeleteError(RemoteOperationError):
    operation = "Delete"


class BatchDeleteError(DeleteError):
    operation = "Batch delete"


class ListError(RemoteOperationError):
    operation = "List files"


class MetadataError(RemoteOperationError):
    operation = "Get metadata"


class SignError(RemoteOperationError):
    operation = "Generate signed URL"
