from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

ENV_FILE = Path(".env")

MIB = 1024 * 1024
# S3 rejects non-final multipart parts smaller than this
MIN_S3_PART_SIZE = 5 * MIB

STORAGE_BACKENDS: tuple[str, ...] = ("s3", "memory")
ADDRESSING_STYLES: tuple[str, ...] = ("path", "virtual", "auto")
LOG_FORMATS: tuple[str, ...] = ("json", "plain")


def _load_env_file() -> None:
    if not ENV_FILE.exists():
        return
    for raw_line in ENV_FILE.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


def _as_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.lower() in {"1", "true", "t", "yes", "y", "on"}


def _as_optional(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


@dataclass
class Settings:
    STORAGE_BACKEND: str = "s3"
    S3_ENDPOINT_URL: str | None = None
    S3_REGION: str = "us-east-1"
    S3_ACCESS_KEY_ID: str | None = None
    S3_SECRET_ACCESS_KEY: str | None = None
    S3_USE_SSL: bool = True
    S3_ADDRESSING_STYLE: str = "path"
    S3_CONNECT_TIMEOUT: float = 30.0
    S3_READ_TIMEOUT: float = 30.0
    S3_MAX_ATTEMPTS: int = 3
    S3_PROXY_URL: str | None = None
    STORAGE_WAIT_ATTEMPTS: int = 10
    STORAGE_WAIT_INTERVAL: float = 1.0
    MULTIPART_PART_SIZE: int = MIN_S3_PART_SIZE
    MULTIPART_MAX_WORKERS: int = 4
    PRESIGN_EXPIRES_IN: int = 900
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"

    def __post_init__(self) -> None:
        self.STORAGE_BACKEND = self.STORAGE_BACKEND.strip().lower()
        if self.STORAGE_BACKEND not in STORAGE_BACKENDS:
            raise ValueError(
                f"STORAGE_BACKEND must be one of {', '.join(STORAGE_BACKENDS)}."
            )
        self.S3_ADDRESSING_STYLE = self.S3_ADDRESSING_STYLE.strip().lower()
        if self.S3_ADDRESSING_STYLE not in ADDRESSING_STYLES:
            raise ValueError(
                f"S3_ADDRESSING_STYLE must be one of {', '.join(ADDRESSING_STYLES)}."
            )
        if self.S3_CONNECT_TIMEOUT <= 0 or self.S3_READ_TIMEOUT <= 0:
            raise ValueError("S3 timeouts must be positive.")
        if self.S3_MAX_ATTEMPTS < 1:
            raise ValueError("S3_MAX_ATTEMPTS must be at least 1.")
        if self.STORAGE_WAIT_ATTEMPTS < 1:
            raise ValueError("STORAGE_WAIT_ATTEMPTS must be at least 1.")
        if self.STORAGE_WAIT_INTERVAL < 0:
            raise ValueError("STORAGE_WAIT_INTERVAL must not be negative.")
        if self.MULTIPART_MAX_WORKERS < 1:
            raise ValueError("MULTIPART_MAX_WORKERS must be at least 1.")
        min_part_size = MIN_S3_PART_SIZE if self.STORAGE_BACKEND == "s3" else 1
        if self.MULTIPART_PART_SIZE < min_part_size:
            raise ValueError(
                f"MULTIPART_PART_SIZE must be at least {min_part_size} bytes "
                f"for the {self.STORAGE_BACKEND} backend."
            )
        if self.PRESIGN_EXPIRES_IN < 1:
            raise ValueError("PRESIGN_EXPIRES_IN must be positive.")
        self.LOG_FORMAT = self.LOG_FORMAT.strip().lower()
        if self.LOG_FORMAT not in LOG_FORMATS:
            raise ValueError(f"LOG_FORMAT must be one of {', '.join(LOG_FORMATS)}.")
        self.LOG_LEVEL = self.LOG_LEVEL.strip().upper()

    @property
    def s3_credentials_configured(self) -> bool:
        return bool(self.S3_ACCESS_KEY_ID and self.S3_SECRET_ACCESS_KEY)

    @classmethod
    def from_environment(cls) -> "Settings":
        _load_env_file()
        return cls(
            STORAGE_BACKEND=os.environ.get("STORAGE_BACKEND", cls.STORAGE_BACKEND),
            S3_ENDPOINT_URL=_as_optional(os.environ.get("S3_ENDPOINT_URL")),
            S3_REGION=os.environ.get("S3_REGION", cls.S3_REGION),
            S3_ACCESS_KEY_ID=_as_optional(os.environ.get("S3_ACCESS_KEY_ID")),
            S3_SECRET_ACCESS_KEY=_as_optional(os.environ.get("S3_SECRET_ACCESS_KEY")),
            S3_USE_SSL=_as_bool(os.environ.get("S3_USE_SSL"), cls.S3_USE_SSL),
            S3_ADDRESSING_STYLE=os.environ.get(
                "S3_ADDRESSING_STYLE", cls.S3_ADDRESSING_STYLE
            ),
            S3_CONNECT_TIMEOUT=float(
                os.environ.get("S3_CONNECT_TIMEOUT", cls.S3_CONNECT_TIMEOUT)
            ),
            S3_READ_TIMEOUT=float(
                os.environ.get("S3_READ_TIMEOUT", cls.S3_READ_TIMEOUT)
            ),
            S3_MAX_ATTEMPTS=int(os.environ.get("S3_MAX_ATTEMPTS", cls.S3_MAX_ATTEMPTS)),
            S3_PROXY_URL=_as_optional(os.environ.get("S3_PROXY_URL")),
            STORAGE_WAIT_ATTEMPTS=int(
                os.environ.get("STORAGE_WAIT_ATTEMPTS", cls.STORAGE_WAIT_ATTEMPTS)
            ),
            STORAGE_WAIT_INTERVAL=float(
                os.environ.get("STORAGE_WAIT_INTERVAL", cls.STORAGE_WAIT_INTERVAL)
            ),
            MULTIPART_PART_SIZE=int(
                os.environ.get("MULTIPART_PART_SIZE", cls.MULTIPART_PART_SIZE)
            ),
            MULTIPART_MAX_WORKERS=int(
                os.environ.get("MULTIPART_MAX_WORKERS", cls.MULTIPART_MAX_WORKERS)
            ),
            PRESIGN_EXPIRES_IN=int(
                os.environ.get("PRESIGN_EXPIRES_IN", cls.PRESIGN_EXPIRES_IN)
            ),
            LOG_LEVEL=os.environ.get("LOG_LEVEL", cls.LOG_LEVEL),
            LOG_FORMAT=os.environ.get("LOG_FORMAT", cls.LOG_FORMAT),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_environment()
