"""Exceptions raised by pygcsync."""

from __future__ import annotations

from enum import Enum
from pathlib import Path


class StorageOp(str, Enum):
    """Storage operations, used to tag storage errors."""

    LIST_PREFIX = "list_prefix"
    READ_OBJECT = "read_object"
    CREATE_OBJECT = "create_object"
    COPY_OBJECT = "copy_object"
    DELETE_OBJECT = "delete_object"
    DOWNLOAD_URL = "download_url"


class GcsSyncError(Exception):
    """Base exception for all pygcsync errors."""


class ConfigError(GcsSyncError):
    """Invalid configuration or missing credentials."""


class StorageOperationError(GcsSyncError):
    """A storage API call failed."""

    def __init__(
        self,
        message: str,
        op: StorageOp | None = None,
        key: str | None = None,
    ):
        self.op = op
        self.key = key
        if op is not None and key is not None:
            message = f"{op.value} {key!r}: {message}"
        super().__init__(message)


class ObjectNotFoundError(StorageOperationError):
    """The object (or bucket) does not exist."""


class StorageAuthenticationError(StorageOperationError):
    """Credentials were rejected."""


class StoragePermissionError(StorageOperationError):
    """The credentials lack permission for the operation."""


class StorageRateLimitError(StorageOperationError):
    """The API asked us to slow down."""


class StorageNetworkError(StorageOperationError):
    """Could not talk to the storage API at all."""


class LocalIOError(GcsSyncError):
    """A filesystem operation failed."""

    def __init__(self, path: str | Path, message: str):
        self.path = Path(path)
        super().__init__(f"{message} (path: {path})")


class TransportError(GcsSyncError):
    """Fetching a signed download URL failed."""

    def __init__(self, url: str, message: str):
        self.url = url
        # Signed URLs carry credentials in the query string
        super().__init__(f"{message} (url: {url.split('?', 1)[0]})")


class PathMappingError(GcsSyncError):
    """A path could not be mapped between source and destination.

    This signals a bug: listings are requested by prefix, so every key
    returned must start with it.
    """

    def __init__(self, path: str, prefix: str, message: str | None = None):
        self.path = path
        self.prefix = prefix
        super().__init__(
            message
            or f"Failed to strip prefix {prefix!r} from {path!r}, "
            "should never happen, please report an issue"
        )


class DestinationConflictError(GcsSyncError):
    """Destination exists with the wrong type and overwrite is not forced."""

    def __init__(self, path: str | Path, message: str | None = None):
        self.path = Path(path)
        super().__init__(
            message or f"Destination already exists and is not a directory: {path}"
        )


class UnsupportedSyncError(GcsSyncError):
    """The requested sync direction is not supported."""
