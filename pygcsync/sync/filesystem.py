"""Async access to the local filesystem.

Blocking calls run in the default executor so that file I/O suspends the
calling coroutine instead of the event loop.
"""

from __future__ import annotations

import asyncio
import logging
import os
import stat
from collections.abc import AsyncIterable, AsyncIterator
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar

from ..exceptions import LocalIOError
from ..utils import DEFAULT_CHUNK_SIZE, crc32c_checksum_stream

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class LocalMetadata:
    """What the sync needs to know about a local path."""

    is_dir: bool
    size: int


@dataclass(frozen=True)
class DirEntry:
    """One entry of a directory listing."""

    name: str
    path: Path
    is_dir: bool


class LocalFileSystem:
    """Filesystem primitives used by the sync engine."""

    def __init__(self, chunk_size: int = DEFAULT_CHUNK_SIZE):
        self.chunk_size = chunk_size

    @staticmethod
    async def _run(path: Path, func: Callable[..., T], *args: Any) -> T:
        try:
            return await asyncio.to_thread(func, *args)
        except OSError as e:
            raise LocalIOError(path, e.strerror or str(e)) from e

    async def metadata(self, path: Path) -> Optional[LocalMetadata]:
        """Stat a path, following symlinks.

        Returns:
            LocalMetadata, or None if nothing exists at ``path``
        """
        try:
            st = await asyncio.to_thread(os.stat, path)
        except (FileNotFoundError, NotADirectoryError):
            return None
        except OSError as e:
            raise LocalIOError(path, e.strerror or str(e)) from e
        return LocalMetadata(is_dir=stat.S_ISDIR(st.st_mode), size=st.st_size)

    async def read_dir(self, path: Path) -> list[DirEntry]:
        """List a directory, sorted by name."""

        def _scan() -> list[DirEntry]:
            with os.scandir(path) as entries:
                return sorted(
                    (
                        DirEntry(name=e.name, path=Path(e.path), is_dir=e.is_dir())
                        for e in entries
                    ),
                    key=lambda entry: entry.name,
                )

        return await self._run(path, _scan)

    async def create_dir_all(self, path: Path) -> None:
        await self._run(path, os.makedirs, path, 0o777, True)

    async def remove_file(self, path: Path) -> None:
        await self._run(path, os.remove, path)

    async def read_chunks(self, path: Path) -> AsyncIterator[bytes]:
        """Stream a file in ``chunk_size`` pieces."""
        f = await self._run(path, open, path, "rb")
        try:
            while True:
                chunk = await self._run(path, f.read, self.chunk_size)
                if not chunk:
                    break
                yield chunk
        finally:
            f.close()

    async def write_chunks(self, path: Path, chunks: AsyncIterable[bytes]) -> int:
        """Create or truncate ``path``, write all chunks and sync to disk.

        Errors raised by ``chunks`` propagate unchanged.

        Returns:
            Number of bytes written
        """
        f = await self._run(path, open, path, "wb")
        written = 0
        try:
            async for chunk in chunks:
                await self._run(path, f.write, chunk)
                written += len(chunk)
            await self._run(path, f.flush)
            await self._run(path, os.fsync, f.fileno())
        finally:
            f.close()
        return written

    async def checksum(self, path: Path) -> int:
        """CRC32C of a file, streamed."""
        return await crc32c_checksum_stream(self.read_chunks(path))
