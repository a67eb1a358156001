"""Tree walking for sync operations."""

from __future__ import annotations

import functools
import logging
from collections.abc import AsyncIterator, Awaitable, Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Optional

from ..models import ObjectEntry
from .filesystem import DirEntry, LocalFileSystem
from .paths import is_directory_marker, join_key, normalize_prefix, relativize
from .scheduler import BoundedJobScheduler, Job

if TYPE_CHECKING:
    from ..api import GcsClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkItem:
    """One leaf of a source tree: a file, an object, or an empty directory."""

    relative_path: str
    """Path relative to the source root (forward slashes)"""

    is_directory_marker: bool = False
    """True for empty directories and for directory marker objects"""

    source_path: Optional[Path] = None
    """Absolute local path, for local sources"""

    entry: Optional[ObjectEntry] = None
    """Listed object, for remote sources"""


ItemHandler = Callable[[WorkItem, str], Awaitable[int]]
"""Transfers one item to the given destination key, returns 0 or 1"""


class LocalDirectoryWalker:
    """Walks a local directory tree depth-first.

    Every directory fans its children out through its own scheduler, so
    the concurrency limit applies per directory level. Sibling subtrees
    run independently and total concurrency can exceed the limit in deep
    trees.

    A directory without entries is reported as a directory marker item
    because object storage has no empty directories.
    """

    def __init__(self, filesystem: LocalFileSystem, concurrency: int):
        self.filesystem = filesystem
        self.concurrency = concurrency

    async def walk(
        self,
        directory: Path,
        dest_prefix: str,
        handler: ItemHandler,
        relative_path: str = "",
    ) -> int:
        """Walk ``directory`` and hand every leaf to ``handler``.

        Args:
            directory: Directory to walk
            dest_prefix: Destination key prefix matching ``directory``
            handler: Coroutine function transferring one item
            relative_path: Path of ``directory`` relative to the walk root

        Returns:
            Number of items transferred in this subtree
        """
        entries = await self.filesystem.read_dir(directory)

        if not entries:
            marker = WorkItem(
                relative_path=relative_path,
                is_directory_marker=True,
                source_path=directory,
            )
            return await handler(marker, normalize_prefix(dest_prefix))

        scheduler = BoundedJobScheduler(self.concurrency)
        return await scheduler.run(
            self._jobs(entries, dest_prefix, handler, relative_path)
        )

    def _jobs(
        self,
        entries: list[DirEntry],
        dest_prefix: str,
        handler: ItemHandler,
        relative_path: str,
    ) -> Iterator[Job]:
        for entry in entries:
            dest_key = join_key(dest_prefix, entry.name)
            child_relative = (
                f"{relative_path}/{entry.name}" if relative_path else entry.name
            )
            if entry.is_dir:
                yield functools.partial(
                    self.walk, entry.path, dest_key, handler, child_relative
                )
            else:
                item = WorkItem(relative_path=child_relative, source_path=entry.path)
                yield functools.partial(handler, item, dest_key)


class RemoteObjectWalker:
    """Turns a paged object listing into work items."""

    def __init__(self, client: GcsClient):
        self.client = client

    async def walk(self, bucket: str, prefix: str) -> AsyncIterator[WorkItem]:
        """Yield one item per object under ``prefix``.

        The listing uses the normalized prefix, so ``photos`` never picks up
        ``photos-old/...``.
        """
        list_prefix = normalize_prefix(prefix)
        async for page in self.client.list_objects(bucket, list_prefix):
            for entry in page:
                yield WorkItem(
                    relative_path=relativize(entry.name, list_prefix),
                    is_directory_marker=is_directory_marker(entry.name),
                    entry=entry,
                )
