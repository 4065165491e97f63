from __future__ import annotations

from cloudkit.common.config import Settings, get_settings
from cloudkit.infra.storage.client import StorageClient
from cloudkit.infra.storage.factory import build_storage_client


class ServiceError(Exception):
    """Base class for application service level exceptions."""


class BaseService:
    """Holds the storage client and settings shared by storage services."""

    def __init__(
        self,
        storage: StorageClient | None = None,
        *,
        settings: Settings | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._storage = storage or build_storage_client(self._settings)

    @property
    def storage(self) -> StorageClient:
        return self._storage

    @property
    def settings(self) -> Settings:
        return self._settings
