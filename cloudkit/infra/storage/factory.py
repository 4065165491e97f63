"""Storage backend selection."""

from __future__ import annotations

from cloudkit.common.config import Settings, get_settings
from cloudkit.infra.storage.client import StorageClient
from cloudkit.infra.storage.memory_client import MemoryStorageClient
from cloudkit.infra.storage.s3_client import S3StorageClient


class StorageBackendNotConfiguredError(Exception):
    """Raised when the storage backend is not properly configured."""


def build_storage_client(settings: Settings | None = None) -> StorageClient:
    """Build the appropriate storage client based on configuration."""
    settings = settings or get_settings()
    backend = (settings.STORAGE_BACKEND or "").strip().lower()
    if backend == "memory":
        return MemoryStorageClient(min_part_size=settings.MULTIPART_PART_SIZE)
    if backend != "s3":
        raise StorageBackendNotConfiguredError(
            f"Unsupported storage backend: {backend}. Use 's3' or 'memory'."
        )
    if not settings.s3_credentials_configured:
        raise StorageBackendNotConfiguredError(
            "S3_ACCESS_KEY_ID and S3_SECRET_ACCESS_KEY are required"
        )
    return S3StorageClient(settings=settings)
