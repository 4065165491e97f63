from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from cloudkit.infra.storage.client import PutObjectResult
from cloudkit.services.multipart_service import ChecksumMismatchError
from cloudkit.services.object_service import ObjectService


@pytest.fixture()
def objects(memory_storage, settings):
    memory_storage.create_bucket(bucket="text-bucket")
    return ObjectService(memory_storage, settings=settings)


def test_put_and_read_text(objects, memory_storage):
    result = objects.put_text("text-bucket", "greeting", "héllo")

    assert objects.read_text("text-bucket", "greeting") == "héllo"
    head = memory_storage.head_object(bucket="text-bucket", object_key="greeting")
    assert head.content_type == "text/plain"
    assert head.etag == result.etag


def test_put_text_rejects_mismatched_etag(settings):
    storage = MagicMock()
    storage.put_object.return_value = PutObjectResult(etag='"not-the-md5"')

    with pytest.raises(ChecksumMismatchError):
        ObjectService(storage, settings=settings).put_text("b", "k", "body")
