"""Sync endpoints and engine settings."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Union

from ..config import DEFAULT_CONCURRENCY
from ..exceptions import ConfigError

GS_SCHEME = "gs://"


@dataclass(frozen=True)
class RemoteEndpoint:
    """A prefix inside a Cloud Storage bucket."""

    bucket: str
    prefix: str = ""

    def __post_init__(self) -> None:
        if not self.bucket:
            raise ConfigError("Bucket name must not be empty")

    def __str__(self) -> str:
        return f"{GS_SCHEME}{self.bucket}/{self.prefix}"


@dataclass(frozen=True)
class LocalEndpoint:
    """A local file or directory."""

    root: Path

    def __post_init__(self) -> None:
        # Accept plain strings
        object.__setattr__(self, "root", Path(self.root))

    def __str__(self) -> str:
        return str(self.root)


SyncEndpoint = Union[RemoteEndpoint, LocalEndpoint]


def parse_endpoint(value: str) -> SyncEndpoint:
    """Parse ``gs://bucket/prefix`` or a local path.

    Examples:
        >>> parse_endpoint("gs://my-bucket/backups/2024")
        RemoteEndpoint(bucket='my-bucket', prefix='backups/2024')
    """
    if value.startswith(GS_SCHEME):
        bucket, _, prefix = value[len(GS_SCHEME) :].partition("/")
        return RemoteEndpoint(bucket=bucket, prefix=prefix)
    return LocalEndpoint(root=Path(value))


@dataclass(frozen=True)
class SyncConfig:
    """Settings of one sync engine instance."""

    force_overwrite: bool = False
    """Skip size and checksum comparison, transfer everything"""

    concurrency: int = DEFAULT_CONCURRENCY
    """Maximum in-flight transfers per directory fan-out"""

    strict_metadata: bool = False
    """Propagate destination metadata errors other than not-found.

    By default any failure reading a destination object's metadata is
    treated as "object absent" and the file is uploaded.
    """

    def __post_init__(self) -> None:
        if self.concurrency < 1:
            raise ConfigError(f"concurrency must be >= 1, got {self.concurrency}")
