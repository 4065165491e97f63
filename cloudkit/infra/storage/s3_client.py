"""S3-compatible storage client implementation.

This module provides an S3-compatible storage client that works with
AWS S3, MinIO, and other S3-compatible object storage services.

Dependencies:
    - boto3
    - botocore
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Sequence

from cloudkit.infra.storage.checksums import content_md5
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
    error_code_from_service,
    validate_part_number,
)

if TYPE_CHECKING:
    from cloudkit.common.config import Settings

logger = logging.getLogger("storage")

DEFAULT_REGION = "us-east-1"
DOWNLOAD_CHUNK_SIZE = 1024 * 1024


def _storage_error(
    message: str,
    exc: Exception,
    not_found: StorageErrorCode = StorageErrorCode.UNKNOWN,
) -> StorageError:
    """Wrap a boto3 failure, keeping the service error code when present."""
    response = getattr(exc, "response", None)
    service_code = None
    if isinstance(response, dict):
        service_code = response.get("Error", {}).get("Code")
    code = error_code_from_service(service_code, not_found)
    logger.debug(
        "storage_error code=%s service_code=%s",
        code.value,
        service_code,
        extra={"extra": {"code": code.value, "service_code": service_code}},
    )
    return StorageError(f"{message}: {exc}", code)


class S3StorageClient:
    """S3-compatible object storage client.

    Supports AWS S3, MinIO, and other S3-compatible services.
    Uses boto3 for all storage operations.
    """

    def __init__(self, *, settings: "Settings") -> None:
        """Initialize the S3 client with configuration from settings.

        Args:
            settings: Application settings containing S3 configuration.

        Raises:
            StorageError: If boto3 is not installed.
        """
        self._settings = settings
        self._client = self._build_client(settings)

    @staticmethod
    def _build_client(settings: "Settings") -> Any:
        """Create a boto3 S3 client from settings."""
        try:
            import boto3
            from botocore.config import Config
        except ImportError as exc:
            raise StorageError(
                "boto3 and botocore are required for S3 storage backend. "
                "Install with: pip install boto3"
            ) from exc

        config_kwargs: dict[str, Any] = {
            "s3": {"addressing_style": settings.S3_ADDRESSING_STYLE or "path"},
            "connect_timeout": settings.S3_CONNECT_TIMEOUT,
            "read_timeout": settings.S3_READ_TIMEOUT,
            "retries": {"max_attempts": settings.S3_MAX_ATTEMPTS, "mode": "standard"},
        }
        if settings.S3_PROXY_URL:
            config_kwargs["proxies"] = {
                "http": settings.S3_PROXY_URL,
                "https": settings.S3_PROXY_URL,
            }

        return boto3.client(
            "s3",
            endpoint_url=settings.S3_ENDPOINT_URL,
            region_name=settings.S3_REGION,
            aws_access_key_id=settings.S3_ACCESS_KEY_ID,
            aws_secret_access_key=settings.S3_SECRET_ACCESS_KEY,
            use_ssl=bool(settings.S3_USE_SSL),
            config=Config(**config_kwargs),
        )

    def create_bucket(self, *, bucket: str, acl: str | None = None) -> CreateBucketResult:
        """Create a bucket in the configured region."""
        params: dict[str, Any] = {"Bucket": bucket}
        if acl:
            params["ACL"] = acl
        region = self._settings.S3_REGION or DEFAULT_REGION
        if region != DEFAULT_REGION:
            params["CreateBucketConfiguration"] = {"LocationConstraint": region}

        try:
            response = self._client.create_bucket(**params)
        except Exception as exc:
            raise _storage_error("Failed to create bucket", exc) from exc

        location = response.get("Location") or f"/{bucket}"
        return CreateBucketResult(location=str(location))

    def head_bucket(self, *, bucket: str) -> None:
        """Check that a bucket exists and is accessible."""
        try:
            self._client.head_bucket(Bucket=bucket)
        except Exception as exc:
            raise _storage_error(
                "Failed to head bucket", exc, StorageErrorCode.NO_SUCH_BUCKET
            ) from exc

    def delete_bucket(self, *, bucket: str) -> None:
        """Delete an empty bucket."""
        try:
            self._client.delete_bucket(Bucket=bucket)
        except Exception as exc:
            raise _storage_error("Failed to delete bucket", exc) from exc

    def list_buckets(self) -> list[BucketSummary]:
        """List all buckets owned by the caller."""
        try:
            response = self._client.list_buckets()
        except Exception as exc:
            raise _storage_error("Failed to list buckets", exc) from exc

        return [
            BucketSummary(name=item["Name"], creation_date=item.get("CreationDate"))
            for item in response.get("Buckets", [])
        ]

    def list_objects(
        self, *, bucket: str, prefix: str | None = None
    ) -> list[ObjectSummary]:
        """List objects in a bucket, following continuation tokens."""
        params: dict[str, Any] = {"Bucket": bucket}
        if prefix:
            params["Prefix"] = prefix

        objects: list[ObjectSummary] = []
        try:
            paginator = self._client.get_paginator("list_objects_v2")
            for page in paginator.paginate(**params):
                for item in page.get("Contents", []):
                    objects.append(
                        ObjectSummary(
                            key=item["Key"],
                            size_bytes=int(item.get("Size") or 0),
                            etag=item.get("ETag"),
                            last_modified=item.get("LastModified"),
                        )
                    )
        except Exception as exc:
            raise _storage_error("Failed to list objects", exc) from exc

        return sorted(objects, key=lambda obj: obj.key)

    def put_object(
        self,
        *,
        bucket: str,
        object_key: str,
        body: bytes,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> PutObjectResult:
        """Upload an object in a single request with a Content-MD5 check."""
        params: dict[str, Any] = {
            "Bucket": bucket,
            "Key": object_key,
            "Body": body,
            "ContentLength": len(body),
            "ContentMD5": content_md5(body),
        }
        if content_type:
            params["ContentType"] = content_type
        if metadata:
            params["Metadata"] = metadata

        try:
            response = self._client.put_object(**params)
        except Exception as exc:
            raise _storage_error("Failed to put object", exc) from exc

        return PutObjectResult(etag=response.get("ETag"))

    def get_object(self, *, bucket: str, object_key: str) -> GetObjectResult:
        """Download an object into memory."""
        try:
            response = self._client.get_object(Bucket=bucket, Key=object_key)
            body = response["Body"].read()
        except Exception as exc:
            raise _storage_error(
                "Failed to get object", exc, StorageErrorCode.NO_SUCH_KEY
            ) from exc

        length = response.get("ContentLength")
        return GetObjectResult(
            body=body,
            etag=response.get("ETag"),
            content_type=response.get("ContentType"),
            content_length=int(length) if length is not None else len(body),
        )

    def download_object(
        self, *, bucket: str, object_key: str, destination: DownloadTarget
    ) -> int:
        """Stream an object into a file path or binary file object."""
        try:
            response = self._client.get_object(Bucket=bucket, Key=object_key)
        except Exception as exc:
            raise _storage_error(
                "Failed to download object", exc, StorageErrorCode.NO_SUCH_KEY
            ) from exc

        stream = response["Body"]
        written = 0
        try:
            if isinstance(destination, (str, Path)):
                with open(destination, "wb") as handle:
                    for chunk in stream.iter_chunks(DOWNLOAD_CHUNK_SIZE):
                        handle.write(chunk)
                        written += len(chunk)
            else:
                for chunk in stream.iter_chunks(DOWNLOAD_CHUNK_SIZE):
                    destination.write(chunk)
                    written += len(chunk)
        except OSError as exc:
            raise StorageError(f"Failed to write downloaded object: {exc}") from exc
        except Exception as exc:
            raise _storage_error("Failed to download object", exc) from exc
        finally:
            stream.close()

        return written

    def head_object(self, *, bucket: str, object_key: str) -> ObjectHead:
        """Get object metadata without downloading the content."""
        try:
            response = self._client.head_object(Bucket=bucket, Key=object_key)
        except Exception as exc:
            raise _storage_error(
                "Failed to get object metadata", exc, StorageErrorCode.NO_SUCH_KEY
            ) from exc

        size = response.get("ContentLength")
        return ObjectHead(
            size_bytes=int(size) if size is not None else 0,
            etag=response.get("ETag"),
            content_type=response.get("ContentType"),
            metadata=dict(response.get("Metadata") or {}),
        )

    def delete_object(self, *, bucket: str, object_key: str) -> None:
        """Delete an object from storage."""
        try:
            self._client.delete_object(Bucket=bucket, Key=object_key)
        except Exception as exc:
            raise _storage_error("Failed to delete object", exc) from exc

    def init_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> MultipartUpload:
        """Initialize a multipart upload session."""
        params: dict[str, Any] = {"Bucket": bucket, "Key": object_key}
        if content_type:
            params["ContentType"] = content_type
        if metadata:
            params["Metadata"] = metadata

        try:
            response = self._client.create_multipart_upload(**params)
        except Exception as exc:
            raise _storage_error("Failed to create multipart upload", exc) from exc

        upload_id = response.get("UploadId")
        if not upload_id:
            raise StorageError("S3 response missing UploadId")

        return MultipartUpload(
            upload_id=str(upload_id),
            bucket=bucket,
            object_key=object_key,
        )

    def upload_part(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        part_number: int,
        body: bytes,
    ) -> UploadPartResult:
        """Upload one part with a Content-MD5 check."""
        part_number = validate_part_number(part_number)
        try:
            response = self._client.upload_part(
                Bucket=bucket,
                Key=object_key,
                UploadId=upload_id,
                PartNumber=part_number,
                Body=body,
                ContentLength=len(body),
                ContentMD5=content_md5(body),
            )
        except Exception as exc:
            raise _storage_error("Failed to upload part", exc) from exc

        etag = response.get("ETag")
        if not etag:
            raise StorageError("S3 response missing ETag for uploaded part")

        return UploadPartResult(part_number=part_number, etag=str(etag))

    def complete_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        parts: Sequence[CompletedPart],
    ) -> str | None:
        """Complete a multipart upload by combining all parts."""
        if not parts:
            raise StorageError(
                "At least one part is required to complete a multipart upload",
                StorageErrorCode.INVALID_PART,
            )
        multipart_payload = {
            "Parts": [
                {"ETag": part.etag, "PartNumber": int(part.part_number)}
                for part in sorted(parts, key=lambda p: p.part_number)
            ]
        }

        try:
            response = self._client.complete_multipart_upload(
                Bucket=bucket,
                Key=object_key,
                UploadId=upload_id,
                MultipartUpload=multipart_payload,
            )
        except Exception as exc:
            raise _storage_error("Failed to complete multipart upload", exc) from exc

        return (response or {}).get("ETag")

    def abort_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
    ) -> None:
        """Abort a multipart upload and clean up uploaded parts."""
        try:
            self._client.abort_multipart_upload(
                Bucket=bucket,
                Key=object_key,
                UploadId=upload_id,
            )
        except Exception as exc:
            raise _storage_error("Failed to abort multipart upload", exc) from exc

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
        try:
            url = self._client.generate_presigned_url(
                "upload_part",
                Params={
                    "Bucket": bucket,
                    "Key": object_key,
                    "UploadId": upload_id,
                    "PartNumber": int(part_number),
                },
                ExpiresIn=int(expires_in),
            )
        except Exception as exc:
            raise _storage_error("Failed to generate presigned URL", exc) from exc

        if not url:
            raise StorageError("Generated presigned URL is empty")

        return str(url)

    def presign_download(
        self,
        *,
        bucket: str,
        object_key: str,
        expires_in: int,
        filename: str | None = None,
    ) -> str:
        """Generate a presigned URL for downloading an object."""
        params: dict[str, Any] = {"Bucket": bucket, "Key": object_key}
        if filename:
            # Escape quotes in filename for Content-Disposition header
            safe_filename = filename.replace('"', '\\"')
            params["ResponseContentDisposition"] = (
                f'attachment; filename="{safe_filename}"'
            )

        try:
            url = self._client.generate_presigned_url(
                "get_object",
                Params=params,
                ExpiresIn=int(expires_in),
            )
        except Exception as exc:
            raise _storage_error("Failed to generate download URL", exc) from exc

        if not url:
            raise StorageError("Generated presigned URL is empty")

        return str(url)
