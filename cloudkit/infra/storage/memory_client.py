"""In-process storage backend.

``MemoryStorageClient`` keeps buckets, objects and pending multipart uploads
in dictionaries and mirrors the S3 behaviour the rest of the package relies
on: bucket naming rules, MD5 ETags, composite multipart ETags and the error
codes S3 reports. It backs the test suite and the ``memory`` backend.
"""

from __future__ import annotations

import re
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Sequence
from urllib.parse import quote, urlencode

from cloudkit.common.config import MIN_S3_PART_SIZE
from cloudkit.infra.storage.checksums import (
    md5_digest,
    multipart_etag,
    quoted_etag,
    strip_etag,
)
from cloudkit.infra.storage.client import (
    BucketSummary,
    CompletedPart,
    CreateBucketResult,
    DownloadTarget,
    GetObjectResult,
    MultipartUpload,
    ObjectHead,
    ObjectSummary,
    PutObjectResult,
    StorageError,
    StorageErrorCode,
    UploadPartResult,
    validate_part_number,
)

_BUCKET_NAME_RE = re.compile(r"^[a-z0-9][a-z0-9.-]{1,61}[a-z0-9]$")
_IP_ADDRESS_RE = re.compile(r"^\d{1,3}(\.\d{1,3}){3}$")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_valid_bucket_name(name: str) -> bool:
    if not _BUCKET_NAME_RE.match(name):
        return False
    if ".." in name or ".-" in name or "-." in name:
        return False
    return not _IP_ADDRESS_RE.match(name)


@dataclass
class _StoredObject:
    body: bytes
    etag: str
    content_type: str | None
    metadata: dict[str, str]
    last_modified: datetime = field(default_factory=_utcnow)


@dataclass
class _Bucket:
    created_at: datetime = field(default_factory=_utcnow)
    acl: str | None = None
    objects: dict[str, _StoredObject] = field(default_factory=dict)


@dataclass
class _PendingUpload:
    bucket: str
    object_key: str
    content_type: str | None
    metadata: dict[str, str]
    parts: dict[int, bytes] = field(default_factory=dict)


class MemoryStorageClient:
    """Thread-safe in-memory implementation of ``StorageClient``."""

    def __init__(self, *, min_part_size: int = MIN_S3_PART_SIZE) -> None:
        self._min_part_size = min_part_size
        self._buckets: dict[str, _Bucket] = {}
        self._uploads: dict[str, _PendingUpload] = {}
        self._lock = threading.RLock()

    @property
    def pending_uploads(self) -> list[str]:
        with self._lock:
            return list(self._uploads)

    def _bucket(self, bucket: str) -> _Bucket:
        try:
            return self._buckets[bucket]
        except KeyError:
            raise StorageError(
                f"The specified bucket does not exist: {bucket}",
                StorageErrorCode.NO_SUCH_BUCKET,
            ) from None

    def _object(self, bucket: str, object_key: str) -> _StoredObject:
        objects = self._bucket(bucket).objects
        try:
            return objects[object_key]
        except KeyError:
            raise StorageError(
                f"The specified key does not exist: {object_key}",
                StorageErrorCode.NO_SUCH_KEY,
            ) from None

    def _upload(self, bucket: str, object_key: str, upload_id: str) -> _PendingUpload:
        upload = self._uploads.get(upload_id)
        if upload is None or upload.bucket != bucket or upload.object_key != object_key:
            raise StorageError(
                f"The specified upload does not exist: {upload_id}",
                StorageErrorCode.NO_SUCH_UPLOAD,
            )
        return upload

    def create_bucket(self, *, bucket: str, acl: str | None = None) -> CreateBucketResult:
        if not is_valid_bucket_name(bucket):
            raise StorageError(
                f"The specified bucket is not valid: {bucket}",
                StorageErrorCode.INVALID_BUCKET_NAME,
            )
        with self._lock:
            if bucket in self._buckets:
                raise StorageError(
                    f"Bucket already owned by you: {bucket}",
                    StorageErrorCode.BUCKET_ALREADY_OWNED_BY_YOU,
                )
            self._buckets[bucket] = _Bucket(acl=acl)
        return CreateBucketResult(location=f"/{bucket}")

    def head_bucket(self, *, bucket: str) -> None:
        with self._lock:
            self._bucket(bucket)

    def delete_bucket(self, *, bucket: str) -> None:
        with self._lock:
            if self._bucket(bucket).objects:
                raise StorageError(
                    f"The bucket you tried to delete is not empty: {bucket}",
                    StorageErrorCode.BUCKET_NOT_EMPTY,
                )
            del self._buckets[bucket]
            for upload_id in [
                upload_id
                for upload_id, upload in self._uploads.items()
                if upload.bucket == bucket
            ]:
                del self._uploads[upload_id]

    def list_buckets(self) -> list[BucketSummary]:
        with self._lock:
            return [
                BucketSummary(name=name, creation_date=entry.created_at)
                for name, entry in sorted(self._buckets.items())
            ]

    def list_objects(
        self, *, bucket: str, prefix: str | None = None
    ) -> list[ObjectSummary]:
        with self._lock:
            objects = self._bucket(bucket).objects
            return [
                ObjectSummary(
                    key=key,
                    size_bytes=len(obj.body),
                    etag=obj.etag,
                    last_modified=obj.last_modified,
                )
                for key, obj in sorted(objects.items())
                if not prefix or key.startswith(prefix)
            ]

    def put_object(
        self,
        *,
        bucket: str,
        object_key: str,
        body: bytes,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> PutObjectResult:
        stored = _StoredObject(
            body=bytes(body),
            etag=quoted_etag(body),
            content_type=content_type,
            metadata=dict(metadata or {}),
        )
        with self._lock:
            self._bucket(bucket).objects[object_key] = stored
        return PutObjectResult(etag=stored.etag)

    def get_object(self, *, bucket: str, object_key: str) -> GetObjectResult:
        with self._lock:
            obj = self._object(bucket, object_key)
        return GetObjectResult(
            body=obj.body,
            etag=obj.etag,
            content_type=obj.content_type,
            content_length=len(obj.body),
        )

    def download_object(
        self, *, bucket: str, object_key: str, destination: DownloadTarget
    ) -> int:
        body = self.get_object(bucket=bucket, object_key=object_key).body
        try:
            if isinstance(destination, (str, Path)):
                Path(destination).write_bytes(body)
            else:
                destination.write(body)
        except OSError as exc:
            raise StorageError(f"Failed to write downloaded object: {exc}") from exc
        return len(body)

    def head_object(self, *, bucket: str, object_key: str) -> ObjectHead:
        with self._lock:
            obj = self._object(bucket, object_key)
        return ObjectHead(
            size_bytes=len(obj.body),
            etag=obj.etag,
            content_type=obj.content_type,
            metadata=dict(obj.metadata),
        )

    def delete_object(self, *, bucket: str, object_key: str) -> None:
        with self._lock:
            self._bucket(bucket).objects.pop(object_key, None)

    def init_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> MultipartUpload:
        upload_id = uuid.uuid4().hex
        with self._lock:
            self._bucket(bucket)
            self._uploads[upload_id] = _PendingUpload(
                bucket=bucket,
                object_key=object_key,
                content_type=content_type,
                metadata=dict(metadata or {}),
            )
        return MultipartUpload(upload_id=upload_id, bucket=bucket, object_key=object_key)

    def upload_part(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        part_number: int,
        body: bytes,
    ) -> UploadPartResult:
        part_number = validate_part_number(part_number)
        with self._lock:
            self._upload(bucket, object_key, upload_id).parts[part_number] = bytes(body)
        return UploadPartResult(part_number=part_number, etag=quoted_etag(body))

    def complete_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        parts: Sequence[CompletedPart],
    ) -> str | None:
        if not parts:
            raise StorageError(
                "At least one part is required to complete a multipart upload",
                StorageErrorCode.INVALID_PART,
            )
        ordered = sorted(parts, key=lambda p: p.part_number)
        numbers = [part.part_number for part in ordered]
        if len(set(numbers)) != len(numbers):
            raise StorageError(
                "Part numbers must be unique and ascending",
                StorageErrorCode.INVALID_PART_ORDER,
            )

        with self._lock:
            target = self._bucket(bucket)
            upload = self._upload(bucket, object_key, upload_id)
            bodies: list[bytes] = []
            for index, part in enumerate(ordered):
                body = upload.parts.get(part.part_number)
                if body is None or strip_etag(part.etag) != strip_etag(
                    quoted_etag(body)
                ):
                    raise StorageError(
                        f"Part {part.part_number} could not be found or its ETag "
                        "does not match",
                        StorageErrorCode.INVALID_PART,
                    )
                is_last = index == len(ordered) - 1
                if not is_last and len(body) < self._min_part_size:
                    raise StorageError(
                        f"Part {part.part_number} is smaller than the minimum "
                        f"allowed size of {self._min_part_size} bytes",
                        StorageErrorCode.ENTITY_TOO_SMALL,
                    )
                bodies.append(body)

            etag = multipart_etag(md5_digest(body) for body in bodies)
            target.objects[object_key] = _StoredObject(
                body=b"".join(bodies),
                etag=etag,
                content_type=upload.content_type,
                metadata=upload.metadata,
            )
            del self._uploads[upload_id]
        return etag

    def abort_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
    ) -> None:
        with self._lock:
            self._upload(bucket, object_key, upload_id)
            del self._uploads[upload_id]

    def presign_upload_part(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        part_number: int,
        expires_in: int,
    ) -> str:
        query = urlencode(
            {
                "uploadId": upload_id,
                "partNumber": int(part_number),
                "expiresIn": int(expires_in),
            }
        )
        return f"memory://{bucket}/{quote(object_key)}?{query}"

    def presign_download(
        self,
        *,
        bucket: str,
        object_key: str,
        expires_in: int,
        filename: str | None = None,
    ) -> str:
        params: dict[str, str | int] = {"expiresIn": int(expires_in)}
        if filename:
            params["filename"] = filename
        return f"memory://{bucket}/{quote(object_key)}?{urlencode(params)}"
