#!/usr/bin/env python3
"""Run the bucket/object/multipart smoke scenarios against a storage backend.

Usage:
  .venv/bin/python scripts/storage_smoke.py --backend memory
  .venv/bin/python scripts/storage_smoke.py --prefix ci-smoke-

The s3 backend reads S3_* settings from the environment or .env. Every
scenario creates its own timestamped bucket and removes it afterwards.
"""

from __future__ import annotations

import argparse
import logging
import tempfile
from dataclasses import replace
from pathlib import Path
from typing import Callable

from cloudkit.common.config import MIB, Settings, get_settings
from cloudkit.common.logging import setup_logging
from cloudkit.infra.storage.checksums import quoted_etag
from cloudkit.infra.storage.client import StorageClient, StorageError, StorageErrorCode
from cloudkit.infra.storage.factory import (
    StorageBackendNotConfiguredError,
    build_storage_client,
)
from cloudkit.services import (
    BucketService,
    MultipartUploadService,
    ObjectService,
    ServiceError,
    timestamped_bucket_name,
)

logger = logging.getLogger("cloudkit.startup")

TEST_OBJECT_KEY = "TestObjectKey"
MULTIPART_OBJECT_KEY = "MultiPartKey"
MISSING_BUCKET = "Non-Existent"
MISSING_KEY = "non-Existent"


class ScenarioFailure(AssertionError):
    """Raised when a scenario observes unexpected storage behaviour."""


def _check(condition: bool, message: str) -> None:
    if not condition:
        raise ScenarioFailure(message)


def make_part(tag: str, size: int) -> bytes:
    """Repeat a tagged line until the part holds ``size`` bytes."""
    line = f"Multi-Part upload Test Part {tag}:\n".encode("ascii")
    repeats = size // len(line) + 1
    return (line * repeats)[:size]


def bucket_lifecycle(buckets: BucketService, bucket: str) -> None:
    _check(not buckets.bucket_exists(bucket), f"{bucket} exists before creation")
    result = buckets.create_bucket(bucket, acl="public-read-write")
    _check(bool(result.location), "create_bucket returned an empty location")
    _check(buckets.find_bucket(bucket) is not None, f"{bucket} missing from listing")
    buckets.storage.delete_bucket(bucket=bucket)
    _check(buckets.wait_for_bucket_deleted(bucket), f"{bucket} still visible")


def object_operations(buckets: BucketService, bucket: str) -> None:
    storage = buckets.storage
    objects = ObjectService(storage, settings=buckets.settings)
    buckets.create_bucket(bucket, acl="public-read-write")

    put = objects.put_text(bucket, TEST_OBJECT_KEY, "Test Object")
    _check(buckets.wait_for_object(bucket, TEST_OBJECT_KEY), "object never appeared")
    listed = [obj.key for obj in storage.list_objects(bucket=bucket)]
    _check(TEST_OBJECT_KEY in listed, "object missing from listing")

    fetched = storage.get_object(bucket=bucket, object_key=TEST_OBJECT_KEY)
    _check(fetched.body == b"Test Object", "downloaded body differs")
    _check(fetched.etag == put.etag, "GET ETag differs from PUT ETag")
    head = storage.head_object(bucket=bucket, object_key=TEST_OBJECT_KEY)
    _check(head.size_bytes == len(b"Test Object"), "HEAD size differs")

    storage.delete_object(bucket=bucket, object_key=TEST_OBJECT_KEY)
    buckets.wait_for_bucket_empty(bucket)
    _check(
        not buckets.object_exists(bucket, TEST_OBJECT_KEY),
        "object still present after delete",
    )


def multipart_upload(
    buckets: BucketService, bucket: str, part_size: int = 5 * MIB
) -> None:
    storage = buckets.storage
    buckets.create_bucket(bucket, acl="public-read-write")
    parts = [make_part(tag, part_size) for tag in ("1", "2", "3")]

    with MultipartUploadService(storage, settings=buckets.settings) as uploader:
        result = uploader.upload_parts(
            bucket, MULTIPART_OBJECT_KEY, parts, content_type="text/plain"
        )
    _check(
        [part.etag for part in result.parts] == [quoted_etag(p) for p in parts],
        "part ETags differ from local MD5",
    )
    buckets.wait_for_object(bucket, MULTIPART_OBJECT_KEY)

    expected = b"".join(parts)
    fetched = storage.get_object(bucket=bucket, object_key=MULTIPART_OBJECT_KEY)
    _check(fetched.body == expected, "assembled object differs from parts")

    with tempfile.TemporaryDirectory() as tmp:
        target = Path(tmp) / "DownloadTestFile"
        written = storage.download_object(
            bucket=bucket, object_key=MULTIPART_OBJECT_KEY, destination=target
        )
        _check(written == len(expected), "download size differs")
        _check(target.read_bytes() == expected, "downloaded file differs")

    storage.delete_object(bucket=bucket, object_key=MULTIPART_OBJECT_KEY)


def errors_parse(buckets: BucketService, bucket: str) -> None:
    storage = buckets.storage
    try:
        storage.list_objects(bucket=MISSING_BUCKET)
    except StorageError as exc:
        _check(exc.code is StorageErrorCode.NO_SUCH_BUCKET, f"got {exc.code.value}")
    else:
        raise ScenarioFailure("listing a missing bucket succeeded")

    buckets.create_bucket(bucket)
    try:
        storage.get_object(bucket=bucket, object_key=MISSING_KEY)
    except StorageError as exc:
        _check(exc.code is StorageErrorCode.NO_SUCH_KEY, f"got {exc.code.value}")
    else:
        raise ScenarioFailure("fetching a missing key succeeded")


Scenario = Callable[[BucketService, str], None]

SCENARIOS: dict[str, tuple[str, Scenario]] = {
    "bucket_lifecycle": ("createbuckettest", bucket_lifecycle),
    "object_operations": ("putobjectstest", object_operations),
    "multipart_upload": ("putobjectmultipart", multipart_upload),
    "errors_parse": ("errorsbucket", errors_parse),
}


def run_scenarios(
    storage: StorageClient,
    settings: Settings,
    *,
    prefix: str = "cloudkit-",
) -> dict[str, str | None]:
    """Run every scenario; map scenario name to None on success or the error."""
    buckets = BucketService(storage, settings=settings)
    outcomes: dict[str, str | None] = {}
    for name, (suffix, scenario) in SCENARIOS.items():
        try:
            bucket = timestamped_bucket_name(f"{prefix}{suffix}")
        except ServiceError as exc:
            logger.error("scenario=%s failed: %s", name, exc)
            outcomes[name] = str(exc)
            continue
        try:
            buckets.delete_bucket(bucket)
            scenario(buckets, bucket)
        except (ScenarioFailure, StorageError, ServiceError) as exc:
            logger.error("scenario=%s failed: %s", name, exc)
            outcomes[name] = str(exc)
        else:
            outcomes[name] = None
        finally:
            try:
                buckets.delete_bucket(bucket)
            except (StorageError, ServiceError) as exc:
                logger.error("scenario=%s cleanup of %s failed: %s", name, bucket, exc)
                if outcomes.get(name) is None:
                    outcomes[name] = f"cleanup failed: {exc}"
    return outcomes


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Storage smoke scenarios")
    parser.add_argument(
        "--backend",
        choices=("s3", "memory"),
        default=None,
        help="Storage backend (default: STORAGE_BACKEND setting)",
    )
    parser.add_argument(
        "--prefix",
        default="cloudkit-",
        help="Bucket name prefix; a UTC timestamp is appended",
    )
    args = parser.parse_args(argv)

    try:
        settings = get_settings()
        if args.backend:
            settings = replace(settings, STORAGE_BACKEND=args.backend)
    except ValueError as exc:
        parser.error(f"invalid settings: {exc}")
    setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)

    try:
        storage = build_storage_client(settings)
    except StorageBackendNotConfiguredError as exc:
        parser.error(str(exc))
    outcomes = run_scenarios(storage, settings, prefix=args.prefix)
    for name, error in outcomes.items():
        print(f"{name}: {'ok' if error is None else 'FAILED ' + error}")
    return 0 if all(error is None for error in outcomes.values()) else 1


if __name__ == "__main__":
    raise SystemExit(main())
