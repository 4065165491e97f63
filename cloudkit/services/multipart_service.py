"""Multipart upload orchestration.

This module drives the multipart lifecycle on top of a ``StorageClient``:
initiate, upload parts concurrently, verify each part's ETag against the
local MD5, complete in part-number order, and abort on any failure so no
orphaned parts are left behind.
"""

from __future__ import annotations

import logging
from collections import deque
from concurrent.futures import Executor, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import BinaryIO, Iterable, Iterator, Sequence

import requests

from cloudkit.common.config import Settings
from cloudkit.infra.storage.checksums import etag_matches
from cloudkit.infra.storage.client import (
    CompletedPart,
    MultipartUpload,
    StorageClient,
    StorageError,
    StorageErrorCode,
    UploadPartResult,
)
from cloudkit.services.base import BaseService, ServiceError

logger = logging.getLogger("storage.multipart")


class ChecksumMismatchError(StorageError):
    """Raised when the store reports an ETag that differs from the local MD5."""

    def __init__(self, message: str) -> None:
        super().__init__(message, StorageErrorCode.BAD_DIGEST)


class InvalidUploadError(ServiceError):
    """Raised when an upload request cannot be started."""


@dataclass(frozen=True, slots=True)
class MultipartResult:
    """Outcome of a completed multipart upload."""

    upload_id: str
    bucket: str
    object_key: str
    etag: str | None
    parts: tuple[CompletedPart, ...]


def iter_chunks(stream: BinaryIO, part_size: int) -> Iterator[bytes]:
    """Split ``stream`` into ``part_size`` chunks; an empty stream yields b""."""
    if part_size < 1:
        raise InvalidUploadError("part_size must be positive")
    emitted = False
    while True:
        chunk = stream.read(part_size)
        if not chunk:
            break
        emitted = True
        yield chunk
    if not emitted:
        yield b""


class MultipartUploadService(BaseService):
    """Uploads objects in parts through a thread pool.

    Use as a context manager, or call ``close()``, to shut down a pool the
    service created itself. A caller-supplied executor is left running.
    """

    def __init__(
        self,
        storage: StorageClient | None = None,
        *,
        settings: Settings | None = None,
        executor: Executor | None = None,
    ) -> None:
        super().__init__(storage, settings=settings)
        self._executor = executor
        self._owns_executor = executor is None

    def __enter__(self) -> "MultipartUploadService":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_executor and self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def _get_executor(self) -> Executor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self._settings.MULTIPART_MAX_WORKERS,
                thread_name_prefix="multipart",
            )
        return self._executor

    def _upload_verified_part(
        self, upload: MultipartUpload, part_number: int, body: bytes
    ) -> UploadPartResult:
        result = self._storage.upload_part(
            bucket=upload.bucket,
            object_key=upload.object_key,
            upload_id=upload.upload_id,
            part_number=part_number,
            body=body,
        )
        if not etag_matches(result.etag, body):
            raise ChecksumMismatchError(
                f"ETag {result.etag} for part {part_number} does not match local MD5"
            )
        return result

    def upload_part_async(
        self, upload: MultipartUpload, part_number: int, body: bytes
    ) -> "Future[UploadPartResult]":
        """Schedule one part upload and return its future."""
        return self._get_executor().submit(
            self._upload_verified_part, upload, part_number, body
        )

    def _abort(self, upload: MultipartUpload, cause: BaseException) -> None:
        try:
            self._storage.abort_multipart_upload(
                bucket=upload.bucket,
                object_key=upload.object_key,
                upload_id=upload.upload_id,
            )
        except StorageError as abort_exc:
            logger.warning(
                "multipart_abort_failed upload_id=%s error=%s",
                upload.upload_id,
                abort_exc,
                extra={
                    "extra": {
                        "upload_id": upload.upload_id,
                        "code": abort_exc.code.value,
                    }
                },
            )
            return
        logger.warning(
            "multipart_aborted bucket=%s key=%s upload_id=%s cause=%s",
            upload.bucket,
            upload.object_key,
            upload.upload_id,
            cause,
            extra={
                "extra": {
                    "bucket": upload.bucket,
                    "object_key": upload.object_key,
                    "upload_id": upload.upload_id,
                }
            },
        )

    def _complete(
        self, upload: MultipartUpload, results: Sequence[UploadPartResult]
    ) -> MultipartResult:
        parts = tuple(
            sorted(
                (result.as_completed() for result in results),
                key=lambda part: part.part_number,
            )
        )
        etag = self._storage.complete_multipart_upload(
            bucket=upload.bucket,
            object_key=upload.object_key,
            upload_id=upload.upload_id,
            parts=parts,
        )
        logger.info(
            "multipart_completed bucket=%s key=%s parts=%s etag=%s",
            upload.bucket,
            upload.object_key,
            len(parts),
            etag,
            extra={
                "extra": {
                    "bucket": upload.bucket,
                    "object_key": upload.object_key,
                    "upload_id": upload.upload_id,
                    "parts": len(parts),
                }
            },
        )
        return MultipartResult(
            upload_id=upload.upload_id,
            bucket=upload.bucket,
            object_key=upload.object_key,
            etag=etag,
            parts=parts,
        )

    def _run_upload(
        self,
        bucket: str,
        object_key: str,
        bodies: Iterable[bytes],
        *,
        content_type: str | None,
        metadata: dict[str, str] | None,
    ) -> MultipartResult:
        upload = self._storage.init_multipart_upload(
            bucket=bucket,
            object_key=object_key,
            content_type=content_type,
            metadata=metadata,
        )
        # bodies are pulled lazily; at most MULTIPART_MAX_WORKERS parts in flight
        window = self._settings.MULTIPART_MAX_WORKERS
        pending: deque[Future[UploadPartResult]] = deque()
        results: list[UploadPartResult] = []
        try:
            for part_number, body in enumerate(bodies, start=1):
                if len(pending) >= window:
                    results.append(pending.popleft().result())
                pending.append(self.upload_part_async(upload, part_number, body))
            while pending:
                results.append(pending.popleft().result())
            return self._complete(upload, results)
        except BaseException as exc:
            for future in pending:
                future.cancel()
            wait(pending)
            self._abort(upload, exc)
            raise

    def upload_parts(
        self,
        bucket: str,
        object_key: str,
        parts: Sequence[bytes],
        *,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> MultipartResult:
        """Upload ``parts`` as parts 1..n of a new object."""
        if not parts:
            raise InvalidUploadError("At least one part is required")
        return self._run_upload(
            bucket,
            object_key,
            parts,
            content_type=content_type,
            metadata=metadata,
        )

    def upload_stream(
        self,
        bucket: str,
        object_key: str,
        stream: BinaryIO,
        *,
        part_size: int | None = None,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> MultipartResult:
        """Upload a binary stream in ``part_size`` chunks."""
        size = part_size or self._settings.MULTIPART_PART_SIZE
        return self._run_upload(
            bucket,
            object_key,
            iter_chunks(stream, size),
            content_type=content_type,
            metadata=metadata,
        )

    def upload_via_presigned_urls(
        self,
        bucket: str,
        object_key: str,
        parts: Sequence[bytes],
        *,
        content_type: str | None = None,
        session: requests.Session | None = None,
    ) -> MultipartResult:
        """Upload each part with a plain HTTP PUT to a presigned URL.

        This is the path a browser or other credential-less uploader takes.
        """
        if not parts:
            raise InvalidUploadError("At least one part is required")
        http = session or requests.Session()
        timeout = (self._settings.S3_CONNECT_TIMEOUT, self._settings.S3_READ_TIMEOUT)
        upload = self._storage.init_multipart_upload(
            bucket=bucket, object_key=object_key, content_type=content_type
        )
        try:
            results: list[UploadPartResult] = []
            for part_number, body in enumerate(parts, start=1):
                url = self._storage.presign_upload_part(
                    bucket=bucket,
                    object_key=object_key,
                    upload_id=upload.upload_id,
                    part_number=part_number,
                    expires_in=self._settings.PRESIGN_EXPIRES_IN,
                )
                try:
                    resp = http.put(url, data=body, timeout=timeout)
                    resp.raise_for_status()
                except requests.RequestException as exc:
                    raise StorageError(
                        f"Failed to upload part {part_number} to presigned URL: {exc}"
                    ) from exc
                etag = resp.headers.get("ETag")
                if not etag:
                    raise StorageError(
                        f"Presigned upload of part {part_number} returned no ETag"
                    )
                if not etag_matches(etag, body):
                    raise ChecksumMismatchError(
                        f"ETag {etag} for part {part_number} does not match local MD5"
                    )
                results.append(UploadPartResult(part_number=part_number, etag=etag))
            return self._complete(upload, results)
        except BaseException as exc:
            self._abort(upload, exc)
            raise
        finally:
            if session is None:
                http.close()
