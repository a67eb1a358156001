"""Mapping between source and destination namespaces.

Object keys always use ``/`` as separator, whatever the local platform.
"""

from __future__ import annotations

from pathlib import Path

from ..exceptions import PathMappingError

SEPARATOR = "/"


def normalize_prefix(prefix: str) -> str:
    """Make a prefix end with exactly one separator.

    The empty prefix (bucket root) stays empty.

    Examples:
        >>> normalize_prefix("backups")
        'backups/'
        >>> normalize_prefix("backups//")
        'backups/'
        >>> normalize_prefix("")
        ''
    """
    stripped = prefix.rstrip(SEPARATOR)
    if not stripped:
        return ""
    return stripped + SEPARATOR


def relativize(full_path: str, source_prefix: str) -> str:
    """Strip ``source_prefix`` from ``full_path``.

    ``prefix`` and ``prefix/`` give identical results.

    Args:
        full_path: Full object key
        source_prefix: Prefix the key was listed under

    Returns:
        The key relative to the prefix

    Raises:
        PathMappingError: If the key is not below the prefix

    Examples:
        >>> relativize("photos/2024/a.jpg", "photos")
        '2024/a.jpg'
        >>> relativize("photos/2024/a.jpg", "photos/")
        '2024/a.jpg'
    """
    prefix = normalize_prefix(source_prefix)
    if not full_path.startswith(prefix):
        raise PathMappingError(full_path, prefix)
    return full_path[len(prefix) :]


def is_directory_marker(name: str) -> bool:
    """Whether a key is a placeholder for an empty directory."""
    return name.endswith(SEPARATOR)


def join_key(prefix: str, relative: str) -> str:
    """Append a relative key to a normalized prefix.

    The relative key is kept as is, so distinct keys stay distinct.

    Examples:
        >>> join_key("backups", "a/b.txt")
        'backups/a/b.txt'
        >>> join_key("", "a/b.txt")
        'a/b.txt'
    """
    return normalize_prefix(prefix) + relative


def to_local_path(root: Path, relative: str) -> Path:
    """Map a relative key onto a path below ``root``.

    A trailing separator (directory marker) is ignored and the empty key is
    ``root`` itself.

    Raises:
        PathMappingError: If the key has an empty segment (``/a`` or
            ``a//b``), or would escape ``root``
    """
    stripped = relative[:-1] if relative.endswith(SEPARATOR) else relative
    if not stripped:
        return root
    parts = stripped.split(SEPARATOR)
    for part in parts:
        if not part or part in (".", "..") or "\\" in part or "\x00" in part:
            raise PathMappingError(
                relative,
                str(root),
                f"Object key {relative!r} cannot be mapped below {root}",
            )
    return root.joinpath(*parts)
