"""Bucket lifecycle service.

Wraps bucket creation and teardown with the polling needed against an
eventually consistent store: a freshly created bucket or object may not be
visible to the next request, and a deleted one may linger.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Callable

from cloudkit.common.config import Settings
from cloudkit.infra.storage.client import (
    BucketSummary,
    CreateBucketResult,
    StorageClient,
    StorageError,
    StorageErrorCode,
)
from cloudkit.infra.storage.memory_client import is_valid_bucket_name
from cloudkit.services.base import BaseService, ServiceError

logger = logging.getLogger("storage.buckets")

BUCKET_TIMESTAMP_FORMAT = "%Y%m%dt%H%M%Sz"


class BucketNotReadyError(ServiceError):
    """Raised when a created bucket never becomes visible."""


class InvalidBucketNameError(ServiceError):
    """Raised when a generated bucket name breaks the S3 naming rules."""


def timestamped_bucket_name(prefix: str, now: datetime | None = None) -> str:
    """Append a lowercase UTC timestamp so repeated runs get fresh buckets."""
    now = now or datetime.now(timezone.utc)
    name = f"{prefix.lower()}{now.strftime(BUCKET_TIMESTAMP_FORMAT)}"
    if not is_valid_bucket_name(name):
        raise InvalidBucketNameError(f"Invalid bucket name: {name}")
    return name


class BucketService(BaseService):
    def __init__(
        self,
        storage: StorageClient | None = None,
        *,
        settings: Settings | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        super().__init__(storage, settings=settings)
        self._sleep = sleep

    def bucket_exists(self, bucket: str) -> bool:
        try:
            self._storage.head_bucket(bucket=bucket)
        except StorageError as exc:
            if exc.code is StorageErrorCode.NO_SUCH_BUCKET:
                return False
            raise
        return True

    def object_exists(self, bucket: str, object_key: str) -> bool:
        try:
            self._storage.head_object(bucket=bucket, object_key=object_key)
        except StorageError as exc:
            if exc.code in (StorageErrorCode.NO_SUCH_KEY, StorageErrorCode.NO_SUCH_BUCKET):
                return False
            raise
        return True

    def _poll(self, check: Callable[[], bool]) -> bool:
        attempts = self._settings.STORAGE_WAIT_ATTEMPTS
        for attempt in range(attempts):
            if check():
                return True
            if attempt < attempts - 1:
                self._sleep(self._settings.STORAGE_WAIT_INTERVAL)
        return False

    def wait_for_bucket(self, bucket: str) -> bool:
        return self._poll(lambda: self.bucket_exists(bucket))

    def wait_for_bucket_deleted(self, bucket: str) -> bool:
        return self._poll(lambda: not self.bucket_exists(bucket))

    def wait_for_object(self, bucket: str, object_key: str) -> bool:
        return self._poll(lambda: self.object_exists(bucket, object_key))

    def wait_for_bucket_empty(self, bucket: str) -> bool:
        return self._poll(lambda: not self._storage.list_objects(bucket=bucket))

    def create_bucket(self, bucket: str, *, acl: str | None = None) -> CreateBucketResult:
        """Create a bucket and wait until it is visible."""
        result = self._storage.create_bucket(bucket=bucket, acl=acl)
        if not self.wait_for_bucket(bucket):
            raise BucketNotReadyError(f"Bucket {bucket} did not become available")
        logger.info(
            "bucket_created bucket=%s location=%s",
            bucket,
            result.location,
            extra={"extra": {"bucket": bucket, "location": result.location}},
        )
        return result

    def find_bucket(self, bucket: str) -> BucketSummary | None:
        for summary in self._storage.list_buckets():
            if summary.name == bucket:
                return summary
        return None

    def empty_bucket(self, bucket: str) -> int:
        """Delete every object in ``bucket``; a missing bucket counts as empty."""
        try:
            objects = self._storage.list_objects(bucket=bucket)
        except StorageError as exc:
            if exc.code is StorageErrorCode.NO_SUCH_BUCKET:
                return 0
            raise
        for obj in objects:
            self._storage.delete_object(bucket=bucket, object_key=obj.key)
        if objects:
            logger.info(
                "bucket_emptied bucket=%s deleted=%s",
                bucket,
                len(objects),
                extra={"extra": {"bucket": bucket, "deleted": len(objects)}},
            )
        return len(objects)

    def delete_bucket(self, bucket: str) -> bool:
        """Empty and delete ``bucket`` if it exists.

        Returns:
            True if a bucket was deleted, False if there was nothing to delete.
        """
        if not self.bucket_exists(bucket):
            return False
        self.empty_bucket(bucket)
        self.wait_for_bucket_empty(bucket)
        self._storage.delete_bucket(bucket=bucket)
        logger.info(
            "bucket_deleted bucket=%s",
            bucket,
            extra={"extra": {"bucket": bucket}},
        )
        return True
