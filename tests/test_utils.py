"""Tests for utility functions and models."""

import pytest

from pygcsync.models import ObjectEntry
from pygcsync.utils import (
    crc32c_checksum,
    crc32c_checksum_stream,
    decode_crc32c,
    encode_crc32c,
    format_size,
)


class TestCrc32c:
    """Test CRC32C helpers."""

    def test_known_value(self):
        """Test the standard CRC32C check value."""
        assert crc32c_checksum([b"123456789"]) == 0xE3069283

    def test_empty(self):
        assert crc32c_checksum([]) == 0
        assert crc32c_checksum([b""]) == 0

    @pytest.mark.parametrize("chunk_size", [1, 2, 3, 5, 8, 64])
    def test_independent_of_chunking(self, chunk_size):
        """Test the result does not depend on how data is split."""
        data = bytes(range(256)) * 3
        chunks = [data[i : i + chunk_size] for i in range(0, len(data), chunk_size)]
        assert crc32c_checksum(chunks) == crc32c_checksum([data])

    async def test_stream_matches_sync(self):
        async def chunks():
            yield b"xyz"
            yield b"xyzxyz"
            yield b"xyz"

        assert await crc32c_checksum_stream(chunks()) == crc32c_checksum(
            [b"xyzxyzxyzxyz"]
        )

    async def test_stream_error_propagates(self):
        async def chunks():
            yield b"abc"
            raise OSError("read failed")

        with pytest.raises(OSError, match="read failed"):
            await crc32c_checksum_stream(chunks())

    def test_decode(self):
        """Test decoding the base64 big-endian API representation."""
        assert decode_crc32c("AAAAAA==") == 0
        assert decode_crc32c("4waSgw==") == 0xE3069283

    def test_encode_decode(self):
        assert encode_crc32c(0xE3069283) == "4waSgw=="
        assert decode_crc32c(encode_crc32c(12345)) == 12345

    @pytest.mark.parametrize("value", ["", "not base64!", "AAAA", "AAAAAAAA"])
    def test_decode_invalid(self, value):
        with pytest.raises(ValueError, match="Invalid crc32c"):
            decode_crc32c(value)


class TestFormatSize:
    """Test format_size."""

    @pytest.mark.parametrize(
        "size, expected",
        [
            (0, "0 B"),
            (1023, "1023 B"),
            (1536, "1.5 KB"),
            (5 * 1024 * 1024, "5.0 MB"),
            (3 * 1024**3, "3.0 GB"),
        ],
    )
    def test_format_size(self, size, expected):
        assert format_size(size) == expected


class TestObjectEntry:
    """Test ObjectEntry."""

    def test_from_dict(self):
        """Test parsing an API object resource."""
        entry = ObjectEntry.from_dict(
            {
                "kind": "storage#object",
                "name": "photos/a.jpg",
                "bucket": "my-bucket",
                "size": "1024",
                "crc32c": "4waSgw==",
                "contentType": "image/jpeg",
            }
        )

        assert entry.name == "photos/a.jpg"
        assert entry.bucket == "my-bucket"
        assert entry.size == 1024
        assert entry.checksum == 0xE3069283
        assert entry.content_type == "image/jpeg"

    def test_from_dict_minimal(self):
        entry = ObjectEntry.from_dict({"name": "dir/"})
        assert entry.size == 0
        assert entry.crc32c == ""
