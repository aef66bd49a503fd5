"""
S3-compatible object storage for promoted uploads.

Used when STORAGE_BACKEND=s3. Works against AWS S3 and compatible endpoints
(GCS XML API, MinIO) configured through S3_ENDPOINT_URL and S3_URL_STYLE.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urlparse

import boto3
from botocore.client import BaseClient
from botocore.config import Config
from botocore.exceptions import ClientError

from formbuilder.core.config import settings

logger = logging.getLogger(__name__)

MISSING_OBJECT_CODES = {"NoSuchKey", "404", "NotFound"}


def _endpoint_url() -> str | None:
    return settings.S3_ENDPOINT_URL.rstrip("/") or None


def _region_for(endpoint_url: str | None) -> str | None:
    region = settings.S3_REGION or None
    hostname = (urlparse(endpoint_url).hostname or "").lower() if endpoint_url else ""
    on_gcs = hostname == "storage.googleapis.com" or hostname.endswith(".storage.googleapis.com")
    # GCS signs SigV4 requests with region "auto"
    if on_gcs and region in (None, "us-east-1"):
        return "auto"
    return region


def _client_config() -> Config | None:
    addressing = settings.S3_URL_STYLE.strip().lower()
    if addressing not in ("path", "virtual"):
        return None
    return Config(s3={"addressing_style": addressing})


def get_client() -> BaseClient:
    endpoint_url = _endpoint_url()
    return boto3.client(
        "s3",
        region_name=_region_for(endpoint_url),
        endpoint_url=endpoint_url,
        aws_access_key_id=settings.AWS_ACCESS_KEY_ID or None,
        aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY or None,
        config=_client_config(),
    )


def put_file(local_path: str, key: str, *, content_type: str) -> None:
    get_client().upload_file(
        local_path,
        settings.S3_BUCKET,
        key,
        ExtraArgs={"ContentType": content_type},
    )


def open_object(key: str) -> Any | None:
    """Streaming body for a stored object, or None when it does not exist."""
    try:
        obj = get_client().get_object(Bucket=settings.S3_BUCKET, Key=key)
    except ClientError as exc:
        if exc.response.get("Error", {}).get("Code") in MISSING_OBJECT_CODES:
            return None
        raise
    return obj["Body"]


def delete_object(key: str) -> None:
    get_client().delete_object(Bucket=settings.S3_BUCKET, Key=key)
    logger.debug("Deleted object %s", key)
