from .base import BaseService, ServiceError
from .bucket_service import (
    BucketNotReadyError,
    BucketService,
    InvalidBucketNameError,
    timestamped_bucket_name,
)
from .multipart_service import (
    ChecksumMismatchError,
    InvalidUploadError,
    MultipartResult,
    MultipartUploadService,
)
from .object_service import ObjectService

__all__ = [
    "BaseService",
    "BucketNotReadyError",
    "BucketService",
    "ChecksumMismatchError",
    "InvalidBucketNameError",
    "InvalidUploadError",
    "MultipartResult",
    "MultipartUploadService",
    "ObjectService",
    "ServiceError",
    "timestamped_bucket_name",
]
