"""Utility functions for pygcsync."""

from __future__ import annotations

import base64
import binascii
from collections.abc import AsyncIterable, Iterable

import google_crc32c

# =============================================================================
# Constants for file operations
# =============================================================================

# Chunk size for streaming reads and checksums (8 KB)
DEFAULT_CHUNK_SIZE: int = 8 * 1024

# Retry configuration for transient storage errors
DEFAULT_MAX_RETRIES: int = 3
DEFAULT_RETRY_DELAY: float = 1.0  # seconds

# Page size for object listings
DEFAULT_PAGE_SIZE: int = 1000

DEFAULT_CONTENT_TYPE: str = "application/octet-stream"


# =============================================================================
# Checksum utilities
# =============================================================================


def crc32c_checksum(chunks: Iterable[bytes]) -> int:
    """Compute the CRC32C of a stream of byte chunks.

    The result does not depend on how the data is split into chunks.

    Args:
        chunks: Iterable of byte chunks, consumed to the end

    Returns:
        CRC32C as an unsigned 32-bit integer

    Examples:
        >>> crc32c_checksum([b"abc"]) == crc32c_checksum([b"a", b"bc"])
        True
    """
    crc = 0
    for chunk in chunks:
        crc = google_crc32c.extend(crc, chunk)
    return crc


async def crc32c_checksum_stream(chunks: AsyncIterable[bytes]) -> int:
    """Async counterpart of :func:`crc32c_checksum`.

    Errors raised by the source propagate unchanged.
    """
    crc = 0
    async for chunk in chunks:
        crc = google_crc32c.extend(crc, chunk)
    return crc


def decode_crc32c(value: str) -> int:
    """Decode the ``crc32c`` field of a GCS object resource.

    GCS reports the checksum as base64 of its 4 big-endian bytes.

    Args:
        value: Base64-encoded checksum

    Returns:
        Checksum as an unsigned 32-bit integer

    Raises:
        ValueError: If the value is not base64 of exactly 4 bytes

    Examples:
        >>> decode_crc32c("AAAAAA==")
        0
    """
    try:
        raw = base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Invalid crc32c value: {value!r}") from e
    if len(raw) != 4:
        raise ValueError(f"Invalid crc32c value: {value!r}")
    return int.from_bytes(raw, "big")


def encode_crc32c(checksum: int) -> str:
    """Encode a checksum the way GCS reports it."""
    return base64.b64encode(checksum.to_bytes(4, "big")).decode("ascii")


# =============================================================================
# Size formatting utilities
# =============================================================================


def format_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB", "256 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / 1024 / 1024:.1f} MB"
    else:
        return f"{size_bytes / 1024 / 1024 / 1024:.1f} GB"
