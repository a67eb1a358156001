"""Transfer primitives used by the sync engine."""

from __future__ import annotations

import logging
import mimetypes
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from ..config import DEFAULT_SIGNED_URL_TTL
from ..exceptions import (
    DestinationConflictError,
    ObjectNotFoundError,
    StorageOperationError,
)
from ..models import ObjectEntry
from ..utils import DEFAULT_CONTENT_TYPE
from .comparator import DestinationState
from .filesystem import LocalFileSystem

if TYPE_CHECKING:
    from ..api import GcsClient

logger = logging.getLogger(__name__)

# Never equal to a CRC32C, so objects without a checksum always transfer
MISSING_CHECKSUM = -1


def remote_state(entry: ObjectEntry) -> DestinationState:
    """Size and checksum of a listed object."""
    return DestinationState(
        size=entry.size,
        checksum=entry.checksum if entry.crc32c else MISSING_CHECKSUM,
    )


def detect_content_type(path: Path) -> str:
    """Guess a MIME type from the file name."""
    mime_type, _ = mimetypes.guess_type(str(path))
    return mime_type or DEFAULT_CONTENT_TYPE


class SyncOperations:
    """Uploads, downloads and directory handling for the sync engine."""

    def __init__(
        self,
        client: GcsClient,
        filesystem: LocalFileSystem,
        signed_url_ttl: int = DEFAULT_SIGNED_URL_TTL,
    ):
        """Initialize sync operations.

        Args:
            client: Cloud Storage client
            filesystem: Local filesystem access
            signed_url_ttl: Validity of download URLs in seconds. A download
                that outlives the URL may fail mid-transfer.
        """
        self.client = client
        self.filesystem = filesystem
        self.signed_url_ttl = signed_url_ttl

    async def read_remote_metadata(
        self, bucket: str, key: str, strict: bool = False
    ) -> Optional[ObjectEntry]:
        """Read object metadata, None if the object does not exist.

        Args:
            bucket: Bucket name
            key: Object key
            strict: Propagate errors other than not-found. When False any
                failure is taken to mean the object is absent.
        """
        try:
            return await self.client.read_object(bucket, key)
        except ObjectNotFoundError:
            return None
        except StorageOperationError as e:
            if strict:
                raise
            logger.warning(
                "Cannot read gs://%s/%s, assuming it does not exist: %s",
                bucket,
                key,
                e,
            )
            return None

    async def upload_file(self, path: Path, bucket: str, key: str, size: int) -> None:
        """Stream a local file into an object."""
        await self.client.create_object_streamed(
            bucket,
            key,
            self.filesystem.read_chunks(path),
            size,
            detect_content_type(path),
        )

    async def ensure_remote_marker(self, bucket: str, key: str) -> int:
        """Create a directory marker object unless it exists.

        Returns:
            1 if the marker was created, 0 if it was already there
        """
        try:
            await self.client.read_object(bucket, key)
            return 0
        except ObjectNotFoundError:
            pass
        logger.debug("Creating gs://%s/%s", bucket, key)
        await self.client.create_object_empty(bucket, key)
        return 1

    async def download_object(
        self, bucket: str, entry: ObjectEntry, path: Path
    ) -> int:
        """Download an object through a signed URL and sync it to disk.

        Returns:
            Number of bytes written
        """
        url = self.client.signed_download_url(bucket, entry.name, self.signed_url_ttl)
        return await self.filesystem.write_chunks(path, self.client.http_get(url))

    async def copy_object(
        self, bucket: str, key: str, dest_bucket: str, dest_key: str
    ) -> None:
        logger.debug("Copy gs://%s/%s to gs://%s/%s", bucket, key, dest_bucket, dest_key)
        await self.client.copy_object(bucket, key, dest_bucket, dest_key)

    async def create_parent_dirs(self, path: Path, force_overwrite: bool) -> None:
        """Make sure the parent of ``path`` is a directory.

        A plain file in the way is replaced only when overwrite is forced.

        Raises:
            DestinationConflictError: If a file is in the way and overwrite
                is not forced
        """
        parent = path.parent
        metadata = await self.filesystem.metadata(parent)
        if metadata is None:
            logger.debug("Creating directory %s", parent)
            await self.filesystem.create_dir_all(parent)
        elif not metadata.is_dir:
            if not force_overwrite:
                raise DestinationConflictError(parent)
            logger.debug("Replacing file %s with a directory", parent)
            await self.filesystem.remove_file(parent)
            await self.filesystem.create_dir_all(parent)

    async def maybe_create_dir(self, path: Path, force_overwrite: bool) -> int:
        """Create a directory for a directory marker, idempotently.

        Returns:
            1 if a directory was created, 0 if it already existed

        Raises:
            DestinationConflictError: If a file is in the way and overwrite
                is not forced
        """
        metadata = await self.filesystem.metadata(path)
        if metadata is not None and metadata.is_dir:
            return 0
        if metadata is not None:
            if not force_overwrite:
                raise DestinationConflictError(path)
            await self.filesystem.remove_file(path)
        await self.filesystem.create_dir_all(path)
        logger.debug("Created dir %s", path)
        return 1
