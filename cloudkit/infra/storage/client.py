"""Storage client protocol and data types.

This module defines the abstract interface for object storage operations:
bucket lifecycle, single-request object transfer, multipart uploads and
presigned URLs. Every failure surfaces as a ``StorageError`` carrying a
``StorageErrorCode`` so callers can branch on the failure kind instead of
parsing messages.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import BinaryIO, Protocol, Sequence, Union

# Part numbers accepted by S3 for multipart uploads
MIN_PART_NUMBER = 1
MAX_PART_NUMBER = 10000

DownloadTarget = Union[str, Path, BinaryIO]


class StorageErrorCode(str, Enum):
    NO_SUCH_BUCKET = "NO_SUCH_BUCKET"
    NO_SUCH_KEY = "NO_SUCH_KEY"
    NO_SUCH_UPLOAD = "NO_SUCH_UPLOAD"
    BUCKET_ALREADY_EXISTS = "BUCKET_ALREADY_EXISTS"
    BUCKET_ALREADY_OWNED_BY_YOU = "BUCKET_ALREADY_OWNED_BY_YOU"
    BUCKET_NOT_EMPTY = "BUCKET_NOT_EMPTY"
    INVALID_BUCKET_NAME = "INVALID_BUCKET_NAME"
    INVALID_PART = "INVALID_PART"
    INVALID_PART_ORDER = "INVALID_PART_ORDER"
    ENTITY_TOO_SMALL = "ENTITY_TOO_SMALL"
    BAD_DIGEST = "BAD_DIGEST"
    ACCESS_DENIED = "ACCESS_DENIED"
    UNKNOWN = "UNKNOWN"


_SERVICE_ERROR_CODES: dict[str, StorageErrorCode] = {
    "NoSuchBucket": StorageErrorCode.NO_SUCH_BUCKET,
    "NoSuchKey": StorageErrorCode.NO_SUCH_KEY,
    "NoSuchUpload": StorageErrorCode.NO_SUCH_UPLOAD,
    "BucketAlreadyExists": StorageErrorCode.BUCKET_ALREADY_EXISTS,
    "BucketAlreadyOwnedByYou": StorageErrorCode.BUCKET_ALREADY_OWNED_BY_YOU,
    "BucketNotEmpty": StorageErrorCode.BUCKET_NOT_EMPTY,
    "InvalidBucketName": StorageErrorCode.INVALID_BUCKET_NAME,
    "InvalidPart": StorageErrorCode.INVALID_PART,
    "InvalidPartOrder": StorageErrorCode.INVALID_PART_ORDER,
    "EntityTooSmall": StorageErrorCode.ENTITY_TOO_SMALL,
    "BadDigest": StorageErrorCode.BAD_DIGEST,
    "InvalidDigest": StorageErrorCode.BAD_DIGEST,
    "AccessDenied": StorageErrorCode.ACCESS_DENIED,
    "403": StorageErrorCode.ACCESS_DENIED,
}


def error_code_from_service(
    code: str | None,
    not_found: StorageErrorCode = StorageErrorCode.UNKNOWN,
) -> StorageErrorCode:
    """Translate a service error code into a ``StorageErrorCode``.

    HEAD requests carry no error body, so S3 reports a bare ``"404"``; the
    caller supplies ``not_found`` to say what a missing resource means there.
    """
    if code in ("404", "NotFound"):
        return not_found
    if not code:
        return StorageErrorCode.UNKNOWN
    return _SERVICE_ERROR_CODES.get(code, StorageErrorCode.UNKNOWN)


class StorageError(RuntimeError):
    """Raised when object storage operations fail."""

    def __init__(
        self, message: str, code: StorageErrorCode = StorageErrorCode.UNKNOWN
    ) -> None:
        super().__init__(message)
        self.code = code


@dataclass(frozen=True, slots=True)
class CompletedPart:
    """Represents a completed part in a multipart upload."""

    part_number: int
    etag: str


@dataclass(frozen=True, slots=True)
class MultipartUpload:
    """Result of initiating a multipart upload."""

    upload_id: str
    bucket: str
    object_key: str


@dataclass(frozen=True, slots=True)
class ObjectHead:
    """Metadata from a HEAD object request."""

    size_bytes: int
    etag: str | None
    content_type: str | None
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class CreateBucketResult:
    location: str


@dataclass(frozen=True, slots=True)
class BucketSummary:
    name: str
    creation_date: datetime | None = None


@dataclass(frozen=True, slots=True)
class ObjectSummary:
    key: str
    size_bytes: int
    etag: str | None = None
    last_modified: datetime | None = None


@dataclass(frozen=True, slots=True)
class PutObjectResult:
    etag: str | None


@dataclass(frozen=True, slots=True)
class GetObjectResult:
    """Body and metadata of a downloaded object."""

    body: bytes
    etag: str | None
    content_type: str | None
    content_length: int


@dataclass(frozen=True, slots=True)
class UploadPartResult:
    part_number: int
    etag: str

    def as_completed(self) -> CompletedPart:
        return CompletedPart(part_number=self.part_number, etag=self.etag)


class StorageClient(Protocol):
    """Protocol defining the interface for object storage backends.

    Implementations must provide all methods defined here and raise
    ``StorageError`` with the most specific code available on failure.
    """

    def create_bucket(self, *, bucket: str, acl: str | None = None) -> CreateBucketResult:
        """Create a bucket.

        Args:
            bucket: Bucket name.
            acl: Optional canned ACL such as ``public-read-write``.

        Returns:
            CreateBucketResult with a non-empty location.

        Raises:
            StorageError: INVALID_BUCKET_NAME, BUCKET_ALREADY_EXISTS or
                BUCKET_ALREADY_OWNED_BY_YOU among others.
        """
        ...

    def head_bucket(self, *, bucket: str) -> None:
        """Check that a bucket exists and is accessible.

        Raises:
            StorageError: NO_SUCH_BUCKET if the bucket is missing.
        """
        ...

    def delete_bucket(self, *, bucket: str) -> None:
        """Delete an empty bucket.

        Raises:
            StorageError: NO_SUCH_BUCKET or BUCKET_NOT_EMPTY.
        """
        ...

    def list_buckets(self) -> list[BucketSummary]:
        """List all buckets owned by the caller."""
        ...

    def list_objects(
        self, *, bucket: str, prefix: str | None = None
    ) -> list[ObjectSummary]:
        """List objects in a bucket, sorted by key.

        Raises:
            StorageError: NO_SUCH_BUCKET if the bucket is missing.
        """
        ...

    def put_object(
        self,
        *,
        bucket: str,
        object_key: str,
        body: bytes,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> PutObjectResult:
        """Upload an object in a single request.

        The request carries a Content-MD5 header, so the store rejects
        corrupted bodies with BAD_DIGEST.
        """
        ...

    def get_object(self, *, bucket: str, object_key: str) -> GetObjectResult:
        """Download an object into memory.

        Raises:
            StorageError: NO_SUCH_BUCKET or NO_SUCH_KEY.
        """
        ...

    def download_object(
        self, *, bucket: str, object_key: str, destination: DownloadTarget
    ) -> int:
        """Stream an object into a file path or binary file object.

        Returns:
            Number of bytes written.
        """
        ...

    def head_object(self, *, bucket: str, object_key: str) -> ObjectHead:
        """Get object metadata without downloading the content.

        Raises:
            StorageError: NO_SUCH_KEY if the object doesn't exist.
        """
        ...

    def delete_object(self, *, bucket: str, object_key: str) -> None:
        """Delete an object. Deleting a missing key is not an error."""
        ...

    def init_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> MultipartUpload:
        """Initialize a multipart upload session.

        Args:
            bucket: Target bucket name.
            object_key: Object key (path) in the bucket.
            content_type: MIME type of the object.
            metadata: Custom metadata to attach to the object.

        Returns:
            MultipartUpload containing the upload_id for subsequent operations.
        """
        ...

    def upload_part(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        part_number: int,
        body: bytes,
    ) -> UploadPartResult:
        """Upload one part of a multipart upload.

        Args:
            part_number: Part number (1-based, max 10000).
            body: Part content.

        Returns:
            UploadPartResult whose ETag is the quoted hex MD5 of ``body``.
        """
        ...

    def complete_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        parts: Sequence[CompletedPart],
    ) -> str | None:
        """Complete a multipart upload by combining all parts.

        Parts are sent in part-number order.

        Returns:
            ETag of the assembled object, when the store reports one.
        """
        ...

    def abort_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
    ) -> None:
        """Abort a multipart upload and clean up uploaded parts."""
        ...

    def presign_upload_part(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        part_number: int,
        expires_in: int,
    ) -> str:
        """Generate a presigned URL for uploading a part."""
        ...

    def presign_download(
        self,
        *,
        bucket: str,
        object_key: str,
        expires_in: int,
        filename: str | None = None,
    ) -> str:
        """Generate a presigned URL for downloading an object.

        Args:
            filename: Optional filename for Content-Disposition header.
        """
        ...


def validate_part_number(part_number: int) -> int:
    if not MIN_PART_NUMBER <= int(part_number) <= MAX_PART_NUMBER:
        raise StorageError(
            f"Part number must be between {MIN_PART_NUMBER} and {MAX_PART_NUMBER}",
            StorageErrorCode.INVALID_PART,
        )
    return int(part_number)
