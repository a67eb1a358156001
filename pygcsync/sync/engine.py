"""Core sync engine for executing sync operations."""

from __future__ import annotations

import functools
import logging
import time
from collections.abc import AsyncIterator
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Union

from ..config import config
from ..exceptions import DestinationConflictError, LocalIOError, UnsupportedSyncError
from .comparator import DestinationState, FileComparator
from .endpoints import LocalEndpoint, RemoteEndpoint, SyncConfig, SyncEndpoint
from .filesystem import LocalFileSystem
from .operations import SyncOperations, remote_state
from .paths import join_key, to_local_path
from .scanner import LocalDirectoryWalker, RemoteObjectWalker, WorkItem
from .scheduler import BoundedJobScheduler, Job

if TYPE_CHECKING:
    from ..api import GcsClient

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


async def _completed(count: int) -> int:
    return count


class SyncEngine:
    """One-way sync between local trees and Cloud Storage prefixes.

    Every public sync method returns the number of items actually
    transferred: uploaded, downloaded or copied files plus newly created
    directory markers. The first error aborts the sync; nothing is rolled
    back, and running the same sync again picks up where it stopped.

    Examples:
        >>> engine = SyncEngine(client, SyncConfig(concurrency=4))
        >>> count = await engine.local_to_remote("/data", "bucket", "backup")
    """

    def __init__(
        self,
        client: GcsClient,
        sync_config: Optional[SyncConfig] = None,
        filesystem: Optional[LocalFileSystem] = None,
        signed_url_ttl: Optional[int] = None,
    ):
        """Initialize sync engine.

        Args:
            client: Cloud Storage client
            sync_config: Engine settings (defaults from the global config)
            filesystem: Local filesystem access
            signed_url_ttl: Validity of download URLs in seconds
        """
        self.client = client
        self.config = sync_config or SyncConfig(concurrency=config.concurrency)
        self.filesystem = filesystem or LocalFileSystem()
        self.operations = SyncOperations(
            client,
            self.filesystem,
            signed_url_ttl if signed_url_ttl is not None else config.signed_url_ttl,
        )
        self.comparator = FileComparator(self.config.force_overwrite)

    def _scheduler(self) -> BoundedJobScheduler:
        return BoundedJobScheduler(self.config.concurrency)

    async def sync(self, source: SyncEndpoint, destination: SyncEndpoint) -> int:
        """Sync ``source`` into ``destination``, whatever their kinds.

        Raises:
            UnsupportedSyncError: For local to local syncs
        """
        if isinstance(source, LocalEndpoint):
            if isinstance(destination, RemoteEndpoint):
                return await self.local_to_remote(
                    source.root, destination.bucket, destination.prefix
                )
            return await self.local_to_local(source.root, destination.root)

        if isinstance(destination, RemoteEndpoint):
            return await self.remote_to_remote(
                source.bucket, source.prefix, destination.bucket, destination.prefix
            )
        return await self.remote_to_local(
            source.bucket, source.prefix, destination.root
        )

    async def local_to_local(self, source: PathLike, destination: PathLike) -> int:
        """Not supported."""
        raise UnsupportedSyncError(
            f"Local to local sync is not supported ({source} -> {destination})"
        )

    # =========================
    # Local to remote
    # =========================

    async def local_to_remote(self, root: PathLike, bucket: str, dest_prefix: str) -> int:
        """Sync a local file or directory to a bucket prefix.

        A single file ends up at ``dest_prefix/<file name>``; the contents of
        a directory end up at ``dest_prefix/<path relative to root>``.

        Returns:
            Number of uploaded files and created directory markers
        """
        root = Path(root)
        logger.info("Syncing %s to gs://%s/%s", root, bucket, dest_prefix)
        start_time = time.time()

        metadata = await self.filesystem.metadata(root)
        if metadata is None:
            raise LocalIOError(root, "No such file or directory")

        if metadata.is_dir:
            walker = LocalDirectoryWalker(self.filesystem, self.config.concurrency)
            count = await walker.walk(
                root, dest_prefix, functools.partial(self._sync_local_item, bucket)
            )
        else:
            item = WorkItem(relative_path=root.name, source_path=root)
            count = await self._sync_local_item(
                bucket, item, join_key(dest_prefix, root.name)
            )

        logger.info(
            "Uploaded %d item(s) in %.2fs", count, time.time() - start_time
        )
        return count

    async def _sync_local_item(self, bucket: str, item: WorkItem, key: str) -> int:
        if item.is_directory_marker:
            if not key:
                logger.debug("Source root is empty, no marker at bucket root")
                return 0
            return await self.operations.ensure_remote_marker(bucket, key)
        return await self._sync_local_file(bucket, item, key)

    async def _sync_local_file(self, bucket: str, item: WorkItem, key: str) -> int:
        path = item.source_path
        metadata = await self.filesystem.metadata(path)
        if metadata is None:
            raise LocalIOError(path, "File disappeared during sync")

        dst: Optional[DestinationState] = None
        if not self.config.force_overwrite:
            entry = await self.operations.read_remote_metadata(
                bucket, key, strict=self.config.strict_metadata
            )
            if entry is not None:
                dst = remote_state(entry)

        decision = await self.comparator.decide(
            item.relative_path,
            metadata.size,
            functools.partial(self.filesystem.checksum, path),
            dst,
        )
        if not decision.needs_transfer:
            logger.debug("Skip %s", path)
            return 0

        logger.debug("Copy %s to gs://%s/%s (%s)", path, bucket, key, decision.reason)
        await self.operations.upload_file(path, bucket, key, metadata.size)
        return 1

    # =========================
    # Remote to local
    # =========================

    async def remote_to_local(
        self, bucket: str, src_prefix: str, dest_root: PathLike
    ) -> int:
        """Sync all objects under a bucket prefix into a local directory.

        Returns:
            Number of downloaded files and created directories
        """
        dest_root = Path(dest_root)
        logger.info("Syncing gs://%s/%s to %s", bucket, src_prefix, dest_root)
        start_time = time.time()

        walker = RemoteObjectWalker(self.client)
        count = await self._scheduler().run(
            self._download_jobs(walker.walk(bucket, src_prefix), bucket, dest_root)
        )

        logger.info(
            "Downloaded %d item(s) in %.2fs", count, time.time() - start_time
        )
        return count

    async def _download_jobs(
        self, items: AsyncIterator[WorkItem], bucket: str, dest_root: Path
    ) -> AsyncIterator[Job]:
        # Directories are created here, one item at a time, so concurrent
        # downloads never race on them.
        force = self.config.force_overwrite
        async for item in items:
            path = to_local_path(dest_root, item.relative_path)
            if path != dest_root:
                await self.operations.create_parent_dirs(path, force)

            if item.is_directory_marker:
                created = await self.operations.maybe_create_dir(path, force)
                yield functools.partial(_completed, created)
            else:
                yield functools.partial(self._download_item, bucket, item, path)

    async def _download_item(self, bucket: str, item: WorkItem, path: Path) -> int:
        entry = item.entry
        metadata = await self.filesystem.metadata(path)
        if metadata is not None and metadata.is_dir:
            raise DestinationConflictError(
                path, f"Destination is a directory, expected a file: {path}"
            )

        dst: Optional[DestinationState] = None
        if metadata is not None:
            dst = DestinationState(
                size=metadata.size,
                checksum=functools.partial(self.filesystem.checksum, path),
            )

        source = remote_state(entry)
        decision = await self.comparator.decide(
            item.relative_path, source.size, source.checksum, dst
        )
        if not decision.needs_transfer:
            logger.debug("Skip %s", entry.name)
            return 0

        logger.debug(
            "Copy gs://%s/%s to %s (%s)", bucket, entry.name, path, decision.reason
        )
        copied = await self.operations.download_object(bucket, entry, path)
        logger.debug("Copied %d bytes", copied)
        return 1

    # =========================
    # Remote to remote
    # =========================

    async def remote_to_remote(
        self, src_bucket: str, src_prefix: str, dest_bucket: str, dest_prefix: str
    ) -> int:
        """Copy every object under a prefix to another bucket prefix.

        Copies are server-side and unconditional: no change detection.

        Returns:
            Number of copied objects
        """
        logger.info(
            "Copying gs://%s/%s to gs://%s/%s",
            src_bucket,
            src_prefix,
            dest_bucket,
            dest_prefix,
        )
        start_time = time.time()

        walker = RemoteObjectWalker(self.client)
        count = await self._scheduler().run(
            self._copy_jobs(
                walker.walk(src_bucket, src_prefix), src_bucket, dest_bucket, dest_prefix
            )
        )

        logger.info("Copied %d object(s) in %.2fs", count, time.time() - start_time)
        return count

    async def _copy_jobs(
        self,
        items: AsyncIterator[WorkItem],
        src_bucket: str,
        dest_bucket: str,
        dest_prefix: str,
    ) -> AsyncIterator[Job]:
        async for item in items:
            dest_key = join_key(dest_prefix, item.relative_path)
            if not dest_key:
                logger.debug("Skip marker %s, it maps to the bucket root", item.entry.name)
                continue
            yield functools.partial(
                self._copy_item, src_bucket, item.entry.name, dest_bucket, dest_key
            )

    async def _copy_item(
        self, src_bucket: str, key: str, dest_bucket: str, dest_key: str
    ) -> int:
        await self.operations.copy_object(src_bucket, key, dest_bucket, dest_key)
        return 1
