from __future__ import annotations

import logging
from typing import BinaryIO, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from config.settings import get_settings

logger = logging.getLogger(__name__)


class StorageConfigurationError(RuntimeError):
    """Raised when object storage is not configured for this environment."""


class StorageError(RuntimeError):
    """Raised when an operation against object storage fails."""


def _make_boto_client(service: str):
    settings = get_settings()
    kwargs: dict[str, str] = {}
    if settings.AWS_ACCESS_KEY_ID and settings.AWS_SECRET_ACCESS_KEY:
        kwargs["aws_access_key_id"] = settings.AWS_ACCESS_KEY_ID
        kwargs["aws_secret_access_key"] = settings.AWS_SECRET_ACCESS_KEY
    if settings.AWS_REGION:
        kwargs["region_name"] = settings.AWS_REGION
    return boto3.client(service, **kwargs)


def require_bucket() -> str:
    bucket = get_settings().AWS_S3_BUCKET_NAME
    if not bucket or not bucket.strip():
        raise StorageConfigurationError(
            "AWS_S3_BUCKET_NAME is not configured for this environment."
        )
    return bucket


def stream_size(stream: BinaryIO) -> int:
    """Return the byte size of a seekable stream, rewinding it afterwards."""
    stream.seek(0, 2)
    size = stream.tell()
    stream.seek(0)
    return size


def upload_fileobj(
    fileobj: BinaryIO,
    key: str,
    *,
    content_type: Optional[str] = None,
    s3_client=None,
) -> str:
    """Upload a stream to the configured bucket and return the object key."""
    bucket = require_bucket()
    client = s3_client or _make_boto_client("s3")
    extra_args = {"ContentType": content_type} if content_type else None
    try:
        if extra_args:
            client.upload_fileobj(fileobj, bucket, key, ExtraArgs=extra_args)
        else:
            client.upload_fileobj(fileobj, bucket, key)
    except (ClientError, BotoCoreError) as exc:
        logger.error("Failed to upload %s to bucket %s: %s", key, bucket, exc, exc_info=True)
        raise StorageError(f"Failed to upload {key}") from exc
    logger.info("Uploaded object %s to bucket %s", key, bucket)
    return key


def presigned_url(key: Optional[str], *, s3_client=None) -> Optional[str]:
    """Return a time-limited download URL for ``key``, or None without a key."""
    if not key:
        return None
    bucket = require_bucket()
    client = s3_client or _make_boto_client("s3")
    try:
        return client.generate_presigned_url(
            "get_object",
            Params={"Bucket": bucket, "Key": key},
            ExpiresIn=get_settings().PRESIGNED_URL_TTL_SECONDS,
        )
    except (ClientError, BotoCoreError) as exc:
        logger.error("Failed to presign %s: %s", key, exc, exc_info=True)
        raise StorageError(f"Failed to presign {key}") from exc


def delete_object(key: Optional[str], *, s3_client=None) -> None:
    if not key:
        return
    bucket = require_bucket()
    client = s3_client or _make_boto_client("s3")
    try:
        client.delete_object(Bucket=bucket, Key=key)
    except (ClientError, BotoCoreError) as exc:
        logger.warning("Failed to delete object %s: %s", key, exc)
        raise StorageError(f"Failed to delete {key}") from exc
