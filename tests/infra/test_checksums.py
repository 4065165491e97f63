from __future__ import annotations

import base64
import hashlib

from cloudkit.infra.storage.checksums import (
    content_md5,
    etag_matches,
    md5_digest,
    multipart_etag,
    quoted_etag,
    strip_etag,
)


def test_content_md5_is_base64_of_raw_digest():
    expected = base64.b64encode(hashlib.md5(b"Test Object").digest()).decode()

    assert content_md5(b"Test Object") == expected


def test_quoted_etag_wraps_hex_digest():
    assert quoted_etag(b"") == '"d41d8cd98f00b204e9800998ecf8427e"'


def test_etag_matches_ignores_quotes():
    digest = hashlib.md5(b"abc").hexdigest()

    assert etag_matches(f'"{digest}"', b"abc")
    assert etag_matches(digest, b"abc")
    assert not etag_matches(f'"{digest}"', b"abd")
    assert not etag_matches(None, b"abc")


def test_strip_etag_handles_none():
    assert strip_etag(None) == ""
    assert strip_etag(' "abc" ') == "abc"


def test_multipart_etag_hashes_concatenated_digests():
    digests = [md5_digest(b"one"), md5_digest(b"two")]
    combined = hashlib.md5(b"".join(digests)).hexdigest()

    assert multipart_etag(digests) == f'"{combined}-2"'
