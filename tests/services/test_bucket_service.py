"""Tests for BucketService."""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from cloudkit.infra.storage.client import StorageError, StorageErrorCode
from cloudkit.infra.storage.memory_client import is_valid_bucket_name
from cloudkit.services.bucket_service import (
    BucketNotReadyError,
    BucketService,
    InvalidBucketNameError,
    timestamped_bucket_name,
)


@pytest.fixture()
def sleeps():
    return []


@pytest.fixture()
def bucket_service(memory_storage, settings, sleeps):
    return BucketService(memory_storage, settings=settings, sleep=sleeps.append)


class TestTimestampedBucketName:
    def test_appends_lowercase_utc_stamp(self):
        now = datetime(2016, 3, 4, 5, 6, 7, tzinfo=timezone.utc)

        name = timestamped_bucket_name("CloudKit-CreateBucketTest", now)

        assert name == "cloudkit-createbuckettest20160304t050607z"
        assert is_valid_bucket_name(name)

    @pytest.mark.parametrize("prefix", ["my_bucket-", "x" * 48, "-leading"])
    def test_rejects_prefix_that_makes_invalid_name(self, prefix):
        now = datetime(2016, 3, 4, 5, 6, 7, tzinfo=timezone.utc)

        with pytest.raises(InvalidBucketNameError, match="Invalid bucket name"):
            timestamped_bucket_name(prefix, now)


class TestExistence:
    def test_bucket_exists(self, bucket_service, memory_storage):
        assert not bucket_service.bucket_exists("some-bucket")

        memory_storage.create_bucket(bucket="some-bucket")

        assert bucket_service.bucket_exists("some-bucket")

    def test_bucket_exists_propagates_other_errors(self, settings):
        storage = MagicMock()
        storage.head_bucket.side_effect = StorageError(
            "denied", StorageErrorCode.ACCESS_DENIED
        )
        service = BucketService(storage, settings=settings)

        with pytest.raises(StorageError):
            service.bucket_exists("some-bucket")

    def test_object_exists(self, bucket_service, memory_storage):
        assert not bucket_service.object_exists("missing-bucket", "k")

        memory_storage.create_bucket(bucket="some-bucket")
        memory_storage.put_object(bucket="some-bucket", object_key="k", body=b"v")

        assert bucket_service.object_exists("some-bucket", "k")
        assert not bucket_service.object_exists("some-bucket", "other")


class TestWaiters:
    def test_wait_for_bucket_polls_until_visible(self, settings, sleeps):
        storage = MagicMock()
        storage.head_bucket.side_effect = [
            StorageError("missing", StorageErrorCode.NO_SUCH_BUCKET),
            None,
        ]
        service = BucketService(storage, settings=settings, sleep=sleeps.append)

        assert service.wait_for_bucket("eventual-bucket")
        assert storage.head_bucket.call_count == 2
        assert sleeps == [settings.STORAGE_WAIT_INTERVAL]

    def test_wait_gives_up_after_configured_attempts(self, bucket_service, settings, sleeps):
        assert not bucket_service.wait_for_bucket("never-bucket")

        assert len(sleeps) == settings.STORAGE_WAIT_ATTEMPTS - 1

    def test_wait_for_bucket_deleted(self, bucket_service):
        assert bucket_service.wait_for_bucket_deleted("never-bucket")

    def test_wait_for_object_and_empty(self, bucket_service, memory_storage):
        memory_storage.create_bucket(bucket="some-bucket")
        memory_storage.put_object(bucket="some-bucket", object_key="k", body=b"v")

        assert bucket_service.wait_for_object("some-bucket", "k")
        assert not bucket_service.wait_for_bucket_empty("some-bucket")

        memory_storage.delete_object(bucket="some-bucket", object_key="k")

        assert bucket_service.wait_for_bucket_empty("some-bucket")


class TestCreateBucket:
    def test_creates_and_waits(self, bucket_service):
        result = bucket_service.create_bucket("new-bucket", acl="public-read-write")

        assert result.location == "/new-bucket"
        assert bucket_service.find_bucket("new-bucket") is not None
        assert bucket_service.find_bucket("other-bucket") is None

    def test_raises_when_bucket_never_appears(self, settings, sleeps):
        storage = MagicMock()
        storage.create_bucket.return_value.location = "/lagging-bucket"
        storage.head_bucket.side_effect = StorageError(
            "missing", StorageErrorCode.NO_SUCH_BUCKET
        )
        service = BucketService(storage, settings=settings, sleep=sleeps.append)

        with pytest.raises(BucketNotReadyError, match="lagging-bucket"):
            service.create_bucket("lagging-bucket")


class TestDeleteBucket:
    def test_empties_then_deletes(self, bucket_service, memory_storage):
        memory_storage.create_bucket(bucket="full-bucket")
        for key in ("a", "b", "c"):
            memory_storage.put_object(bucket="full-bucket", object_key=key, body=b"x")

        assert bucket_service.delete_bucket("full-bucket")
        assert not bucket_service.bucket_exists("full-bucket")

    def test_missing_bucket_is_noop(self, bucket_service):
        assert not bucket_service.delete_bucket("missing-bucket")

    def test_empty_bucket_counts_deleted_objects(self, bucket_service, memory_storage):
        memory_storage.create_bucket(bucket="full-bucket")
        memory_storage.put_object(bucket="full-bucket", object_key="a", body=b"x")
        memory_storage.put_object(bucket="full-bucket", object_key="b", body=b"y")

        assert bucket_service.empty_bucket("full-bucket") == 2
        assert memory_storage.list_objects(bucket="full-bucket") == []
        assert bucket_service.empty_bucket("missing-bucket") == 0
