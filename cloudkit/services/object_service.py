from __future__ import annotations

from cloudkit.infra.storage.checksums import etag_matches
from cloudkit.infra.storage.client import PutObjectResult
from cloudkit.services.base import BaseService
from cloudkit.services.multipart_service import ChecksumMismatchError


class ObjectService(BaseService):
    """Single-request text object helpers with MD5 verification."""

    def put_text(
        self,
        bucket: str,
        object_key: str,
        text: str,
        *,
        content_type: str = "text/plain",
    ) -> PutObjectResult:
        body = text.encode("utf-8")
        result = self._storage.put_object(
            bucket=bucket,
            object_key=object_key,
            body=body,
            content_type=content_type,
        )
        if not etag_matches(result.etag, body):
            raise ChecksumMismatchError(
                f"ETag {result.etag} for {object_key} does not match local MD5"
            )
        return result

    def read_text(self, bucket: str, object_key: str) -> str:
        return self._storage.get_object(bucket=bucket, object_key=object_key).body.decode(
            "utf-8"
        )
