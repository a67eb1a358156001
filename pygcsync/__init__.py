"""pygcsync - rsync-like one-way sync between local files and Google Cloud Storage."""

from .api import GcsClient
from .exceptions import (
    ConfigError,
    DestinationConflictError,
    GcsSyncError,
    LocalIOError,
    ObjectNotFoundError,
    PathMappingError,
    StorageAuthenticationError,
    StorageNetworkError,
    StorageOp,
    StorageOperationError,
    StoragePermissionError,
    StorageRateLimitError,
    TransportError,
    UnsupportedSyncError,
)
from .models import ObjectEntry
from .sync import SyncConfig, SyncEngine
from .utils import crc32c_checksum, decode_crc32c

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "GcsClient",
    "ObjectEntry",
    "SyncEngine",
    "SyncConfig",
    "GcsSyncError",
    "ConfigError",
    "StorageOp",
    "StorageOperationError",
    "ObjectNotFoundError",
    "StorageAuthenticationError",
    "StoragePermissionError",
    "StorageRateLimitError",
    "StorageNetworkError",
    "LocalIOError",
    "TransportError",
    "PathMappingError",
    "DestinationConflictError",
    "UnsupportedSyncError",
    "crc32c_checksum",
    "decode_crc32c",
]
