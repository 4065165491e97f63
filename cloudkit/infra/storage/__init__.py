"""Object storage abstraction layer.

This module provides a protocol-based abstraction for object storage backends,
enabling support for S3, MinIO, and other S3-compatible services, plus an
in-process backend for tests and local runs.
"""

from .client import (
    BucketSummary,
    CompletedPart,
    CreateBucketResult,
    GetObjectResult,
    MultipartUpload,
    ObjectHead,
    ObjectSummary,
    PutObjectResult,
    StorageClient,
    StorageError,
    StorageErrorCode,
    UploadPartResult,
)
from .factory import StorageBackendNotConfiguredError, build_storage_client
from .memory_client import MemoryStorageClient
from .s3_client import S3StorageClient

__all__ = [
    "BucketSummary",
    "CompletedPart",
    "CreateBucketResult",
    "GetObjectResult",
    "MemoryStorageClient",
    "MultipartUpload",
    "ObjectHead",
    "ObjectSummary",
    "PutObjectResult",
    "S3StorageClient",
    "StorageBackendNotConfiguredError",
    "StorageClient",
    "StorageError",
    "StorageErrorCode",
    "UploadPartResult",
    "build_storage_client",
]
