"""Data models for Cloud Storage objects."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .utils import decode_crc32c


@dataclass(frozen=True)
class ObjectEntry:
    """A Cloud Storage object as returned by a listing or metadata read."""

    name: str
    """Full object key"""

    bucket: str
    """Bucket holding the object"""

    size: int
    """Object size in bytes"""

    crc32c: str
    """Raw base64 CRC32C as reported by the API"""

    content_type: str = ""
    """Content type stored with the object"""

    @property
    def checksum(self) -> int:
        """Decoded CRC32C."""
        return decode_crc32c(self.crc32c)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ObjectEntry:
        """Create an ObjectEntry from a JSON API object resource.

        The API reports ``size`` as a string.
        """
        return cls(
            name=data["name"],
            bucket=data.get("bucket", ""),
            size=int(data.get("size", 0)),
            crc32c=data.get("crc32c", ""),
            content_type=data.get("contentType", ""),
        )
