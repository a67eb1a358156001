"""Sync engine for pygcsync - one-way local/bucket synchronization."""

from .comparator import DestinationState, FileComparator, SyncAction, SyncDecision
from .endpoints import (
    LocalEndpoint,
    RemoteEndpoint,
    SyncConfig,
    SyncEndpoint,
    parse_endpoint,
)
from .engine import SyncEngine
from .filesystem import DirEntry, LocalFileSystem, LocalMetadata
from .operations import SyncOperations
from .paths import is_directory_marker, join_key, normalize_prefix, relativize
from .scanner import LocalDirectoryWalker, RemoteObjectWalker, WorkItem
from .scheduler import BoundedJobScheduler

__all__ = [
    "SyncEngine",
    "SyncConfig",
    "SyncEndpoint",
    "LocalEndpoint",
    "RemoteEndpoint",
    "parse_endpoint",
    "SyncOperations",
    "FileComparator",
    "SyncAction",
    "SyncDecision",
    "DestinationState",
    "BoundedJobScheduler",
    "LocalDirectoryWalker",
    "RemoteObjectWalker",
    "WorkItem",
    "LocalFileSystem",
    "LocalMetadata",
    "DirEntry",
    "normalize_prefix",
    "relativize",
    "is_directory_marker",
    "join_key",
]
