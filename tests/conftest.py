"""Shared fixtures: an in-memory Cloud Storage fake and temp directories."""

import tempfile
from collections import defaultdict
from pathlib import Path

import pytest

from pygcsync.exceptions import ObjectNotFoundError, StorageOp
from pygcsync.models import ObjectEntry
from pygcsync.sync import SyncConfig, SyncEngine
from pygcsync.utils import crc32c_checksum, encode_crc32c

FAKE_SCHEME = "fake://"


class FakeStorageClient:
    """Stands in for GcsClient, keeping objects in a dict per bucket."""

    def __init__(self, page_size=2, chunk_size=4):
        self.buckets = defaultdict(dict)
        self.page_size = page_size
        self.chunk_size = chunk_size
        self.read_errors = {}
        self.download_errors = {}
        self.copy_errors = {}
        self.uploads = []
        self.copies = []
        self.markers = []
        self.list_calls = []

    def put(self, bucket, key, data=b""):
        self.buckets[bucket][key] = data

    def get(self, bucket, key):
        return self.buckets[bucket][key]

    def keys(self, bucket):
        return sorted(self.buckets[bucket])

    def _entry(self, bucket, key):
        data = self.buckets[bucket][key]
        return ObjectEntry(
            name=key,
            bucket=bucket,
            size=len(data),
            crc32c=encode_crc32c(crc32c_checksum([data])),
        )

    async def list_objects(self, bucket, prefix, page_size=None):
        self.list_calls.append((bucket, prefix))
        keys = [key for key in self.keys(bucket) if key.startswith(prefix)]
        size = page_size or self.page_size
        for start in range(0, len(keys), size):
            yield [self._entry(bucket, key) for key in keys[start : start + size]]

    async def read_object(self, bucket, key):
        if key in self.read_errors:
            raise self.read_errors[key]
        if key not in self.buckets[bucket]:
            raise ObjectNotFoundError("Not found", op=StorageOp.READ_OBJECT, key=key)
        return self._entry(bucket, key)

    async def create_object_streamed(self, bucket, key, body, length, content_type=""):
        data = b"".join([chunk async for chunk in body])
        assert len(data) == length
        self.put(bucket, key, data)
        self.uploads.append(key)
        return self._entry(bucket, key)

    async def create_object_empty(self, bucket, key):
        self.put(bucket, key)
        self.markers.append(key)
        return self._entry(bucket, key)

    async def copy_object(self, bucket, key, dest_bucket, dest_key):
        if key in self.copy_errors:
            raise self.copy_errors[key]
        if key not in self.buckets[bucket]:
            raise ObjectNotFoundError("Not found", op=StorageOp.COPY_OBJECT, key=key)
        self.put(dest_bucket, dest_key, self.get(bucket, key))
        self.copies.append((key, dest_key))
        return self._entry(dest_bucket, dest_key)

    async def delete_object(self, bucket, key):
        del self.buckets[bucket][key]

    def signed_download_url(self, bucket, key, ttl):
        return f"{FAKE_SCHEME}{bucket}/{key}"

    async def http_get(self, url, chunk_size=None):
        bucket, _, key = url[len(FAKE_SCHEME) :].partition("/")
        data = self.get(bucket, key)
        size = chunk_size or self.chunk_size
        for start in range(0, len(data), size):
            yield data[start : start + size]
            if key in self.download_errors:
                raise self.download_errors[key]


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def storage():
    """Create an empty in-memory storage fake."""
    return FakeStorageClient()


@pytest.fixture
def make_engine(storage):
    """Factory for sync engines bound to the storage fake."""

    def _make(**kwargs):
        kwargs.setdefault("concurrency", 2)
        return SyncEngine(storage, SyncConfig(**kwargs), signed_url_ttl=60)

    return _make


@pytest.fixture
def source_tree(temp_dir):
    """Local tree with two files in nested directories and one empty directory."""
    root = temp_dir / "src"
    (root / "dir").mkdir(parents=True)
    (root / "emptydir").mkdir()
    (root / "file1").write_bytes(b"abc")
    (root / "dir" / "file2").write_bytes(b"xyzxyzxyzxyz")
    return root
