"""Tests for filesystem primitives and transfer operations."""

from unittest.mock import AsyncMock, Mock

import pytest

from pygcsync.exceptions import (
    DestinationConflictError,
    LocalIOError,
    ObjectNotFoundError,
    StorageNetworkError,
    StorageOp,
)
from pygcsync.models import ObjectEntry
from pygcsync.sync import LocalFileSystem, SyncOperations
from pygcsync.sync.operations import MISSING_CHECKSUM, detect_content_type, remote_state
from pygcsync.utils import crc32c_checksum, encode_crc32c


async def _chunks(*parts):
    for part in parts:
        yield part


class TestLocalFileSystem:
    """Test LocalFileSystem."""

    @pytest.fixture
    def fs(self):
        return LocalFileSystem(chunk_size=4)

    async def test_metadata_missing(self, fs, temp_dir):
        """Test a missing path has no metadata."""
        assert await fs.metadata(temp_dir / "missing") is None

    async def test_metadata_below_file(self, fs, temp_dir):
        """Test a path below a plain file has no metadata."""
        (temp_dir / "file").write_bytes(b"x")
        assert await fs.metadata(temp_dir / "file" / "child") is None

    async def test_metadata_file_and_dir(self, fs, temp_dir):
        (temp_dir / "file").write_bytes(b"hello")

        file_meta = await fs.metadata(temp_dir / "file")
        dir_meta = await fs.metadata(temp_dir)

        assert (file_meta.is_dir, file_meta.size) == (False, 5)
        assert dir_meta.is_dir

    async def test_read_dir_sorted(self, fs, temp_dir):
        """Test directory entries come back sorted by name."""
        (temp_dir / "b").write_bytes(b"")
        (temp_dir / "a").mkdir()
        (temp_dir / "c").write_bytes(b"")

        entries = await fs.read_dir(temp_dir)

        assert [(e.name, e.is_dir) for e in entries] == [
            ("a", True),
            ("b", False),
            ("c", False),
        ]

    async def test_read_dir_missing(self, fs, temp_dir):
        """Test listing a missing directory raises LocalIOError."""
        with pytest.raises(LocalIOError, match="missing"):
            await fs.read_dir(temp_dir / "missing")

    async def test_read_chunks(self, fs, temp_dir):
        (temp_dir / "file").write_bytes(b"0123456789")

        chunks = [chunk async for chunk in fs.read_chunks(temp_dir / "file")]

        assert chunks == [b"0123", b"4567", b"89"]

    async def test_read_chunks_missing(self, fs, temp_dir):
        with pytest.raises(LocalIOError):
            async for _ in fs.read_chunks(temp_dir / "missing"):
                pass

    async def test_write_chunks(self, fs, temp_dir):
        """Test writing truncates the file and returns the byte count."""
        path = temp_dir / "file"
        path.write_bytes(b"old content that is longer")

        written = await fs.write_chunks(path, _chunks(b"new ", b"data"))

        assert written == 8
        assert path.read_bytes() == b"new data"

    async def test_write_chunks_source_error(self, fs, temp_dir):
        """Test errors from the byte source propagate unchanged."""

        async def broken():
            yield b"partial"
            raise StorageNetworkError("connection reset")

        with pytest.raises(StorageNetworkError):
            await fs.write_chunks(temp_dir / "file", broken())

    async def test_checksum(self, fs, temp_dir):
        """Test the streamed checksum matches the in-memory one."""
        data = b"xyzxyzxyzxyz"
        (temp_dir / "file").write_bytes(data)

        assert await fs.checksum(temp_dir / "file") == crc32c_checksum([data])

    async def test_create_and_remove(self, fs, temp_dir):
        await fs.create_dir_all(temp_dir / "a" / "b")
        await fs.create_dir_all(temp_dir / "a" / "b")
        (temp_dir / "c").mkdir()
        (temp_dir / "c" / "f").write_bytes(b"")
        await fs.remove_file(temp_dir / "c" / "f")

        assert (temp_dir / "a" / "b").is_dir()
        assert list((temp_dir / "c").iterdir()) == []

    async def test_create_dir_all_over_file(self, fs, temp_dir):
        (temp_dir / "f").write_bytes(b"")
        with pytest.raises(LocalIOError):
            await fs.create_dir_all(temp_dir / "f" / "sub")


class TestRemoteState:
    """Test remote_state and content type detection."""

    def test_remote_state(self):
        entry = ObjectEntry("a", "b", 3, encode_crc32c(42))
        state = remote_state(entry)
        assert (state.size, state.checksum) == (3, 42)

    def test_remote_state_without_checksum(self):
        """Test an object without crc32c never matches a local checksum."""
        state = remote_state(ObjectEntry("a", "b", 3, ""))
        assert state.checksum == MISSING_CHECKSUM

    def test_detect_content_type(self, temp_dir):
        assert detect_content_type(temp_dir / "a.txt") == "text/plain"
        assert detect_content_type(temp_dir / "noext") == "application/octet-stream"


class TestSyncOperations:
    """Test SyncOperations."""

    @pytest.fixture
    def ops(self, storage):
        return SyncOperations(storage, LocalFileSystem(), signed_url_ttl=60)

    async def test_read_remote_metadata_missing(self, ops):
        assert await ops.read_remote_metadata("bucket", "nope") is None

    async def test_read_remote_metadata_found(self, ops, storage):
        storage.put("bucket", "key", b"abc")
        entry = await ops.read_remote_metadata("bucket", "key")
        assert entry.size == 3

    async def test_read_remote_metadata_fail_open(self, ops, storage):
        storage.read_errors["key"] = StorageNetworkError(
            "down", op=StorageOp.READ_OBJECT, key="key"
        )
        assert await ops.read_remote_metadata("bucket", "key") is None

    async def test_read_remote_metadata_strict(self, ops, storage):
        storage.read_errors["key"] = StorageNetworkError(
            "down", op=StorageOp.READ_OBJECT, key="key"
        )
        with pytest.raises(StorageNetworkError, match="read_object 'key': down"):
            await ops.read_remote_metadata("bucket", "key", strict=True)

    async def test_ensure_remote_marker(self, ops, storage):
        assert await ops.ensure_remote_marker("bucket", "dir/") == 1
        assert await ops.ensure_remote_marker("bucket", "dir/") == 0
        assert storage.markers == ["dir/"]

    async def test_upload_file(self, ops, storage, temp_dir):
        path = temp_dir / "notes.txt"
        path.write_bytes(b"hello world")

        await ops.upload_file(path, "bucket", "notes.txt", 11)

        assert storage.get("bucket", "notes.txt") == b"hello world"

    async def test_upload_passes_content_type(self, temp_dir):
        client = Mock()
        client.create_object_streamed = AsyncMock()
        path = temp_dir / "page.html"
        path.write_bytes(b"<p>")

        await SyncOperations(client, LocalFileSystem()).upload_file(path, "b", "k", 3)

        args = client.create_object_streamed.await_args.args
        assert args[0:2] == ("b", "k")
        assert args[3:] == (3, "text/html")

    async def test_download_object(self, ops, storage, temp_dir):
        storage.put("bucket", "dir/file", b"0123456789")
        entry = await storage.read_object("bucket", "dir/file")

        copied = await ops.download_object("bucket", entry, temp_dir / "file")

        assert copied == 10
        assert (temp_dir / "file").read_bytes() == b"0123456789"

    async def test_download_uses_configured_ttl(self, temp_dir):
        client = Mock()
        client.signed_download_url = Mock(return_value="fake://b/k")
        client.http_get = Mock(return_value=_chunks(b"x"))
        ops = SyncOperations(client, LocalFileSystem(), signed_url_ttl=45)

        await ops.download_object("b", ObjectEntry("k", "b", 1, ""), temp_dir / "k")

        client.signed_download_url.assert_called_once_with("b", "k", 45)

    async def test_copy_object(self, ops, storage):
        storage.put("src", "a", b"abc")
        await ops.copy_object("src", "a", "dst", "b")
        assert storage.get("dst", "b") == b"abc"

    async def test_copy_missing_object(self, ops):
        with pytest.raises(ObjectNotFoundError):
            await ops.copy_object("src", "missing", "dst", "b")

    async def test_create_parent_dirs(self, ops, temp_dir):
        await ops.create_parent_dirs(temp_dir / "a" / "b" / "file", False)
        assert (temp_dir / "a" / "b").is_dir()

    async def test_create_parent_dirs_conflict(self, ops, temp_dir):
        (temp_dir / "a").write_bytes(b"")
        with pytest.raises(DestinationConflictError, match="not a directory"):
            await ops.create_parent_dirs(temp_dir / "a" / "file", False)

    async def test_create_parent_dirs_forced(self, ops, temp_dir):
        (temp_dir / "a").write_bytes(b"")
        await ops.create_parent_dirs(temp_dir / "a" / "file", True)
        assert (temp_dir / "a").is_dir()

    async def test_maybe_create_dir(self, ops, temp_dir):
        assert await ops.maybe_create_dir(temp_dir / "d", False) == 1
        assert await ops.maybe_create_dir(temp_dir / "d", False) == 0

    async def test_maybe_create_dir_conflict(self, ops, temp_dir):
        (temp_dir / "d").write_bytes(b"")
        with pytest.raises(DestinationConflictError):
            await ops.maybe_create_dir(temp_dir / "d", False)
        assert await ops.maybe_create_dir(temp_dir / "d", True) == 1
        assert (temp_dir / "d").is_dir()
