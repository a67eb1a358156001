"""Change detection for sync operations."""

from __future__ import annotations

import logging
from collections.abc import Awaitable
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Union

logger = logging.getLogger(__name__)

Checksum = Union[int, Callable[[], Awaitable[int]]]
"""A known CRC32C, or a coroutine function computing it on demand"""


class SyncAction(str, Enum):
    """Actions that can be taken during sync."""

    TRANSFER = "transfer"
    """Copy source over destination"""

    SKIP = "skip"
    """Destination is up to date"""


@dataclass
class SyncDecision:
    """Represents a decision about how to sync a file."""

    action: SyncAction
    """Action to take"""

    reason: str
    """Human-readable reason for this decision"""

    relative_path: str
    """Relative path of the file"""

    @property
    def needs_transfer(self) -> bool:
        return self.action == SyncAction.TRANSFER


@dataclass
class DestinationState:
    """Size and checksum of an existing destination copy."""

    size: int
    checksum: Checksum


async def _resolve(checksum: Checksum) -> int:
    if callable(checksum):
        return await checksum()
    return checksum


class FileComparator:
    """Decides whether a source file has to be transferred.

    Sizes are compared first so content is only read when they match.
    Equal size and equal CRC32C count as equal content.
    """

    def __init__(self, force_overwrite: bool = False):
        """Initialize file comparator.

        Args:
            force_overwrite: Always transfer, without looking at the destination
        """
        self.force_overwrite = force_overwrite

    async def decide(
        self,
        relative_path: str,
        src_size: int,
        src_checksum: Checksum,
        dst: Optional[DestinationState],
    ) -> SyncDecision:
        """Compare a source file with its destination copy.

        Args:
            relative_path: Relative path of the file, for reporting
            src_size: Source size in bytes
            src_checksum: Source CRC32C, or a coroutine function computing it
            dst: Destination state, None if the destination does not exist

        Returns:
            SyncDecision for this file
        """
        if self.force_overwrite:
            return SyncDecision(SyncAction.TRANSFER, "Forced overwrite", relative_path)

        if dst is None:
            return SyncDecision(
                SyncAction.TRANSFER, "Missing at destination", relative_path
            )

        if src_size != dst.size:
            return SyncDecision(
                SyncAction.TRANSFER,
                f"Size mismatch, src: {src_size}, dst: {dst.size}",
                relative_path,
            )

        if await _resolve(src_checksum) != await _resolve(dst.checksum):
            return SyncDecision(SyncAction.TRANSFER, "Crc32c mismatch", relative_path)

        return SyncDecision(SyncAction.SKIP, "Up to date", relative_path)

    async def needs_transfer(
        self,
        src_size: int,
        src_checksum: Checksum,
        dst: Optional[DestinationState],
    ) -> bool:
        """Shortcut for :meth:`decide` returning only the verdict."""
        decision = await self.decide("", src_size, src_checksum, dst)
        return decision.needs_transfer
