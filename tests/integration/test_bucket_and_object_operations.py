"""End-to-end bucket and object workflow.

Runs against the in-memory backend by default. Set CLOUDKIT_LIVE_S3=1 (plus
the usual S3_* settings) to run the same workflow against a real
S3-compatible endpoint.
"""

from __future__ import annotations

import os

import pytest

from cloudkit.common.config import MIB, Settings
from cloudkit.infra.storage.checksums import quoted_etag
from cloudkit.infra.storage.client import StorageError, StorageErrorCode
from cloudkit.infra.storage.factory import build_storage_client
from cloudkit.infra.storage.memory_client import MemoryStorageClient
from cloudkit.services import (
    BucketService,
    MultipartUploadService,
    ObjectService,
    timestamped_bucket_name,
)
from scripts.storage_smoke import make_part

LIVE_S3 = os.environ.get("CLOUDKIT_LIVE_S3") == "1"

TEST_OBJ_KEY = "TestObjectKey"
MULTIPART_KEY = "MultiPartKey"


@pytest.fixture(
    params=[
        "memory",
        pytest.param(
            "s3",
            marks=[
                pytest.mark.live_s3,
                pytest.mark.skipif(not LIVE_S3, reason="CLOUDKIT_LIVE_S3 not set"),
            ],
        ),
    ]
)
def buckets(request):
    if request.param == "memory":
        settings = Settings(STORAGE_BACKEND="memory", STORAGE_WAIT_INTERVAL=0.0)
        storage = MemoryStorageClient()
    else:
        settings = Settings.from_environment()
        storage = build_storage_client(settings)
    return BucketService(storage, settings=settings)


@pytest.fixture()
def bucket_name(buckets, request):
    test_name = request.node.originalname[5:20].replace("_", "-")
    name = timestamped_bucket_name(f"cloudkit-{test_name}")
    buckets.delete_bucket(name)
    yield name
    buckets.delete_bucket(name)


def test_bucket_creation_and_listing(buckets, bucket_name):
    storage = buckets.storage
    assert not buckets.bucket_exists(bucket_name)

    result = buckets.create_bucket(bucket_name, acl="public-read-write")

    assert result.location
    listed = storage.list_buckets()
    assert len(listed) >= 1
    assert bucket_name in [bucket.name for bucket in listed]

    storage.delete_bucket(bucket=bucket_name)

    assert buckets.wait_for_bucket_deleted(bucket_name)


def test_object_operations(buckets, bucket_name):
    storage = buckets.storage
    objects = ObjectService(storage, settings=buckets.settings)
    buckets.create_bucket(bucket_name, acl="public-read-write")

    put = objects.put_text(bucket_name, TEST_OBJ_KEY, "Test Object")

    assert put.etag == quoted_etag(b"Test Object")
    assert buckets.wait_for_object(bucket_name, TEST_OBJ_KEY)
    assert TEST_OBJ_KEY in [obj.key for obj in storage.list_objects(bucket=bucket_name)]

    fetched = storage.get_object(bucket=bucket_name, object_key=TEST_OBJ_KEY)
    assert fetched.body == b"Test Object"
    assert fetched.etag == quoted_etag(b"Test Object")
    storage.head_object(bucket=bucket_name, object_key=TEST_OBJ_KEY)

    storage.delete_object(bucket=bucket_name, object_key=TEST_OBJ_KEY)
    buckets.wait_for_bucket_empty(bucket_name)

    with pytest.raises(StorageError) as excinfo:
        storage.head_object(bucket=bucket_name, object_key=TEST_OBJ_KEY)
    assert excinfo.value.code is StorageErrorCode.NO_SUCH_KEY


def test_multipart_object_operations(buckets, bucket_name, tmp_path):
    storage = buckets.storage
    buckets.create_bucket(bucket_name, acl="public-read-write")
    parts = [make_part(tag, 5 * MIB) for tag in ("1", "2", "3")]

    with MultipartUploadService(storage, settings=buckets.settings) as uploader:
        upload = storage.init_multipart_upload(
            bucket=bucket_name, object_key=MULTIPART_KEY, content_type="text/plain"
        )
        futures = [
            uploader.upload_part_async(upload, number, body)
            for number, body in enumerate(parts, start=1)
        ]
        results = [future.result() for future in futures]

    for result, body in zip(results, parts):
        assert result.etag == quoted_etag(body)

    storage.complete_multipart_upload(
        bucket=bucket_name,
        object_key=MULTIPART_KEY,
        upload_id=upload.upload_id,
        parts=[result.as_completed() for result in results],
    )
    buckets.wait_for_object(bucket_name, MULTIPART_KEY)

    expected = b"".join(parts)
    fetched = storage.get_object(bucket=bucket_name, object_key=MULTIPART_KEY)
    assert fetched.body == expected

    target = tmp_path / "DownloadTestFile"
    written = storage.download_object(
        bucket=bucket_name, object_key=MULTIPART_KEY, destination=target
    )
    assert written == len(expected)
    assert target.read_bytes() == expected

    storage.delete_object(bucket=bucket_name, object_key=MULTIPART_KEY)


def test_that_errors_parse(buckets, bucket_name):
    storage = buckets.storage

    with pytest.raises(StorageError) as excinfo:
        storage.list_objects(bucket="Non-Existent")
    assert excinfo.value.code is StorageErrorCode.NO_SUCH_BUCKET

    buckets.create_bucket(bucket_name)

    with pytest.raises(StorageError) as excinfo:
        storage.get_object(bucket=bucket_name, object_key="non-Existent")
    assert excinfo.value.code is StorageErrorCode.NO_SUCH_KEY
