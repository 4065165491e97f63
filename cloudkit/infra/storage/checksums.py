"""MD5 and ETag helpers shared by storage backends and services."""

from __future__ import annotations

import base64
import hashlib
from typing import Iterable


def md5_digest(data: bytes) -> bytes:
    return hashlib.md5(data).digest()


def md5_hex(data: bytes) -> str:
    return hashlib.md5(data).hexdigest()


def content_md5(data: bytes) -> str:
    """Base64 MD5 for the Content-MD5 request header."""
    return base64.b64encode(md5_digest(data)).decode("ascii")


def quoted_etag(data: bytes) -> str:
    return f'"{md5_hex(data)}"'


def strip_etag(etag: str | None) -> str:
    return (etag or "").strip().strip('"')


def etag_matches(etag: str | None, data: bytes) -> bool:
    """Whether a single-part ETag was computed from ``data``."""
    return strip_etag(etag) == md5_hex(data)


def multipart_etag(part_digests: Iterable[bytes]) -> str:
    """Composite ETag S3 reports for an object assembled from parts."""
    digests = list(part_digests)
    combined = hashlib.md5(b"".join(digests)).hexdigest()
    return f'"{combined}-{len(digests)}"'
