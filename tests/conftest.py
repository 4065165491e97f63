from __future__ import annotations

import pytest

from cloudkit.common import config as config_module
from cloudkit.common.config import Settings, get_settings
from cloudkit.infra.storage.memory_client import MemoryStorageClient

# Small enough to keep multipart tests fast, large enough to catch ordering bugs
TEST_PART_SIZE = 16


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    monkeypatch.setattr(config_module, "ENV_FILE", tmp_path / ".env")
    get_settings.cache_clear()  # type: ignore[attr-defined]
    yield
    get_settings.cache_clear()  # type: ignore[attr-defined]


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        STORAGE_BACKEND="memory",
        MULTIPART_PART_SIZE=TEST_PART_SIZE,
        MULTIPART_MAX_WORKERS=3,
        STORAGE_WAIT_ATTEMPTS=3,
        STORAGE_WAIT_INTERVAL=0.0,
    )


@pytest.fixture()
def memory_storage() -> MemoryStorageClient:
    return MemoryStorageClient(min_part_size=TEST_PART_SIZE)
