from __future__ import annotations

import pytest

from cloudkit.common import config as config_module
from cloudkit.common.config import MIB, Settings, get_settings


class TestSettingsValidation:
    def test_defaults(self):
        settings = Settings()

        assert settings.STORAGE_BACKEND == "s3"
        assert settings.S3_REGION == "us-east-1"
        assert settings.MULTIPART_PART_SIZE == 5 * MIB
        assert not settings.s3_credentials_configured

    def test_normalizes_case(self):
        settings = Settings(
            STORAGE_BACKEND=" Memory ",
            S3_ADDRESSING_STYLE="Virtual",
            LOG_LEVEL="debug",
            LOG_FORMAT="PLAIN",
        )

        assert settings.STORAGE_BACKEND == "memory"
        assert settings.S3_ADDRESSING_STYLE == "virtual"
        assert settings.LOG_LEVEL == "DEBUG"
        assert settings.LOG_FORMAT == "plain"

    @pytest.mark.parametrize(
        "overrides",
        [
            {"STORAGE_BACKEND": "gcs"},
            {"S3_ADDRESSING_STYLE": "dns"},
            {"S3_CONNECT_TIMEOUT": 0},
            {"S3_MAX_ATTEMPTS": 0},
            {"STORAGE_WAIT_ATTEMPTS": 0},
            {"STORAGE_WAIT_INTERVAL": -1},
            {"MULTIPART_MAX_WORKERS": 0},
            {"MULTIPART_PART_SIZE": MIB},
            {"PRESIGN_EXPIRES_IN": 0},
            {"LOG_FORMAT": "xml"},
        ],
    )
    def test_rejects_invalid_values(self, overrides):
        with pytest.raises(ValueError):
            Settings(**overrides)

    def test_small_parts_allowed_for_memory_backend(self):
        settings = Settings(STORAGE_BACKEND="memory", MULTIPART_PART_SIZE=1)

        assert settings.MULTIPART_PART_SIZE == 1


class TestFromEnvironment:
    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("STORAGE_BACKEND", "memory")
        monkeypatch.setenv("S3_ENDPOINT_URL", "http://localhost:9000")
        monkeypatch.setenv("S3_USE_SSL", "false")
        monkeypatch.setenv("S3_READ_TIMEOUT", "12.5")
        monkeypatch.setenv("MULTIPART_MAX_WORKERS", "8")
        monkeypatch.setenv("S3_PROXY_URL", "  ")

        settings = Settings.from_environment()

        assert settings.STORAGE_BACKEND == "memory"
        assert settings.S3_ENDPOINT_URL == "http://localhost:9000"
        assert settings.S3_USE_SSL is False
        assert settings.S3_READ_TIMEOUT == 12.5
        assert settings.MULTIPART_MAX_WORKERS == 8
        assert settings.S3_PROXY_URL is None

    def test_env_file_does_not_override_environment(self, monkeypatch, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text(
            "# local overrides\n"
            "S3_ACCESS_KEY_ID='from-file'\n"
            "S3_REGION=eu-west-1\n"
            "not a pair\n",
            encoding="utf-8",
        )
        monkeypatch.setattr(config_module, "ENV_FILE", env_file)
        # the loader writes os.environ directly; register the key so it is restored
        monkeypatch.setenv("S3_ACCESS_KEY_ID", "placeholder")
        monkeypatch.delenv("S3_ACCESS_KEY_ID")
        monkeypatch.setenv("S3_REGION", "ap-south-1")

        settings = Settings.from_environment()

        assert settings.S3_ACCESS_KEY_ID == "from-file"
        assert settings.S3_REGION == "ap-south-1"

    def test_get_settings_is_cached(self, monkeypatch):
        monkeypatch.setenv("STORAGE_BACKEND", "memory")

        assert get_settings() is get_settings()
