"""S3-compatible storage client construction.

Builds the long-lived boto3 client shared by every facade call. Works with
Cloudflare R2, AWS S3, MinIO and other S3-compatible services.

Dependencies:
    - boto3
    - botocore
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from portal.infra.storage.errors import StorageError

if TYPE_CHECKING:
    from portal.common.config import Settings


def build_client_config(settings: "Settings") -> Any:
    """Translate settings into a botocore ``Config``.

    Retries, connect/read timeouts and the connection pool size are all
    delegated to botocore; the facade adds none of its own.
    """
    try:
        from botocore.config import Config
    except ImportError as exc:
        raise StorageError(
            "boto3 and botocore are required for S3 storage backend. "
            "Install with: pip install boto3"
        ) from exc

    addressing_style = (settings.S3_ADDRESSING_STYLE or "path").strip().lower()
    return Config(
        region_name=settings.S3_REGION,
        retries={
            "max_attempts": int(settings.S3_MAX_ATTEMPTS),
            "mode": settings.S3_RETRY_MODE,
        },
        connect_timeout=int(settings.S3_CONNECT_TIMEOUT),
        read_timeout=int(settings.S3_READ_TIMEOUT),
        max_pool_connections=int(settings.S3_MAX_POOL_CONNECTIONS),
        tcp_keepalive=bool(settings.S3_TCP_KEEPALIVE),
        s3={"addressing_style": addressing_style},
    )


def build_s3_client(settings: "Settings") -> Any:
    """Create a boto3 S3 client from settings.

    Raises:
        StorageError: If boto3 is not installed or the bucket credentials
            are missing.
    """
    if not settings.storage_configured:
        raise StorageError(
            "R2_BUCKET must provide BUCKET_NAME, ACCESS_KEY_ID and SECRET_ACCESS_KEY"
        )
    config = build_client_config(settings)
    try:
        import boto3
    except ImportError as exc:
        raise StorageError(
            "boto3 and botocore are required for S3 storage backend. "
            "Install with: pip install boto3"
        ) from exc

    return boto3.client(
        "s3",
        endpoint_url=settings.S3_ENDPOINT_URL,
        region_name=settings.S3_REGION,
        aws_access_key_id=settings.S3_ACCESS_KEY_ID,
        aws_secret_access_key=settings.S3_SECRET_ACCESS_KEY,
        config=config,
    )
