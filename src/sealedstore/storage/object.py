"""Amazon S3 object storage backend."""

from __future__ import annotations

import logging
from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from sealedstore.storage.base import Storage
from sealedstore.storage.errors import (
    StorageBackendError,
    StorageConfigError,
    StorageNotFoundError,
    StoragePermissionError,
)

logger = logging.getLogger(__name__)

# Error codes S3 uses for a missing object (GET reports NoSuchKey, HEAD a bare 404)
_NOT_FOUND_CODES = frozenset({"NoSuchKey", "NotFound", "404"})
_ACCESS_DENIED_CODES = frozenset({"AccessDenied", "403"})


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


def _is_not_found(error: ClientError) -> bool:
    # NoSuchBucket is excluded; HEAD on a missing bucket still returns a bare 404
    code = _error_code(error)
    status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    return code in _NOT_FOUND_CODES or (not code and status == 404)


class S3Storage(Storage):
    """Object-store backend, one object per key in a fixed bucket.

    S3 reports success when deleting an absent object, so ``delete`` is
    idempotent for this backend.

    ``exists`` issues a HEAD request and only treats the canonical
    not-found response as absence. HEAD carries no error body, so a missing
    bucket also answers 404; the first miss is therefore confirmed with
    ``head_bucket`` and a missing or unreadable bucket raises.
    Throttling, credential and network failures raise as well.

    Configuration:
        bucket: S3 bucket name (required)
        region: AWS region (optional, uses boto3 defaults)
    """

    backend_type = "s3"
    missing_delete_raises = False

    def __init__(
        self,
        bucket: str,
        region: str | None = None,
        *,
        client: Any | None = None,
        max_retries: int = 3,
    ) -> None:
        """Initialize S3 storage.

        Args:
            bucket: Bucket holding the objects
            region: AWS region name
            client: Pre-built boto3 S3 client (tests, custom endpoints)
            max_retries: Retry attempts performed by botocore itself

        Raises:
            StorageConfigError: If bucket is empty
        """
        if not bucket:
            raise StorageConfigError("bucket is required for S3 storage")
        self.bucket = bucket
        self.region = region

        if client is None:
            config = Config(retries={"max_attempts": max_retries, "mode": "standard"})
            client_kwargs: dict[str, Any] = {"config": config}
            if region:
                client_kwargs["region_name"] = region
            try:
                client = boto3.client("s3", **client_kwargs)
            except BotoCoreError as e:
                raise StorageBackendError(f"Failed to create S3 client: {e}") from e
        self._client = client
        self._bucket_checked = False
        logger.debug(f"S3 storage ready: bucket={bucket} region={region or 'default'}")

    def _wrap(self, action: str, key: str, error: Exception) -> StorageBackendError:
        if isinstance(error, ClientError) and _error_code(error) in _ACCESS_DENIED_CODES:
            return StoragePermissionError(f"Access denied to s3://{self.bucket}/{key} ({action})")
        return StorageBackendError(f"S3 {action} failed for s3://{self.bucket}/{key}: {error}")

    def load(self, key: str) -> bytes:
        """GET the whole object body."""
        try:
            response = self._client.get_object(Bucket=self.bucket, Key=key)
            body = response["Body"]
            try:
                return body.read()
            finally:
                body.close()
        except ClientError as e:
            if _is_not_found(e):
                raise StorageNotFoundError(f"Object not found: s3://{self.bucket}/{key}") from e
            raise self._wrap("load", key, e) from e
        except BotoCoreError as e:
            raise self._wrap("load", key, e) from e

    def save(self, key: str, data: bytes) -> None:
        """PUT the whole blob."""
        try:
            self._client.put_object(Bucket=self.bucket, Key=key, Body=data)
        except (ClientError, BotoCoreError) as e:
            raise self._wrap("save", key, e) from e
        logger.debug(f"Saved {len(data)} bytes to s3://{self.bucket}/{key}")

    def delete(self, key: str) -> None:
        """DELETE the object (no error if already absent)."""
        try:
            self._client.delete_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise self._wrap("delete", key, e) from e

    def exists(self, key: str) -> bool:
        """HEAD the object; only a not-found response means False."""
        try:
            self._client.head_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            if _is_not_found(e):
                self._check_bucket()
                return False
            raise self._wrap("exists", key, e) from e
        except BotoCoreError as e:
            raise self._wrap("exists", key, e) from e
        return True

    def _check_bucket(self) -> None:
        """Confirm the bucket is reachable, once per instance.

        Raises:
            StoragePermissionError: If access to the bucket is denied
            StorageBackendError: If the bucket is missing or the request fails
        """
        if self._bucket_checked:
            return
        try:
            self._client.head_bucket(Bucket=self.bucket)
        except ClientError as e:
            if _error_code(e) in _ACCESS_DENIED_CODES:
                raise self._wrap("head_bucket", "", e) from e
            raise StorageBackendError(f"Bucket not found or inaccessible: s3://{self.bucket} ({e})") from e
        except BotoCoreError as e:
            raise self._wrap("head_bucket", "", e) from e
        self._bucket_checked = True
