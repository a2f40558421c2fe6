"""Metadata extraction for raw filesystem and object-store entries."""

from __future__ import annotations

import asyncio
import mimetypes
import os
import stat as stat_module
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Tuple

from .errors import ExtractionError
from .models import DIRECTORY_MIME_TYPE, MAX_SIZE, FileRecord


def guess_mime_type(filename: str) -> Optional[str]:
    """Return the MIME type implied by ``filename``'s extension, if any."""
    mime, _ = mimetypes.guess_type(filename, strict=False)
    return mime


def clamp_size(value: Optional[int]) -> Optional[int]:
    """Return ``value`` unless it cannot be stored as a signed 64-bit integer."""
    if value is None or value < 0 or value > MAX_SIZE:
        return None
    return value


def to_utc(value: datetime) -> datetime:
    """Return ``value`` as a UTC-aware datetime; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def split_key(key: str) -> Tuple[str, str, bool]:
    """Split an object key into ``(parent, leaf, is_directory_marker)``.

    A trailing ``/`` marks a directory placeholder object; it is stripped
    before splitting.
    """
    is_marker = key.endswith("/")
    if is_marker:
        key = key.rstrip("/")
    parent, _, leaf = key.rpartition("/")
    return parent, leaf, is_marker


async def extract_filesystem_entry(path: str, *, is_dir: bool) -> FileRecord:
    """Stat a filesystem entry and return its record.

    Raises:
        ExtractionError: If the entry cannot be stat'ed (vanished, permissions).
    """
    try:
        info = await asyncio.to_thread(os.lstat, path)
    except OSError as exc:
        raise ExtractionError(path, f"stat failed: {exc.strerror or exc}") from exc

    parent, leaf = os.path.split(path)

    if is_dir or stat_module.S_ISDIR(info.st_mode):
        mime_type: Optional[str] = DIRECTORY_MIME_TYPE
    elif stat_module.S_ISREG(info.st_mode):
        mime_type = guess_mime_type(leaf)
    else:
        mime_type = None

    birthtime = getattr(info, "st_birthtime", None)
    created = (
        datetime.fromtimestamp(birthtime, tz=timezone.utc) if birthtime is not None else None
    )

    return FileRecord(
        path=parent,
        filename=leaf,
        mime_type=mime_type,
        created=created,
        modified=datetime.fromtimestamp(info.st_mtime, tz=timezone.utc),
        size=clamp_size(info.st_size),
    )


def extract_object_entry(item: Mapping[str, Any]) -> FileRecord:
    """Build a record from one ``ListObjectsV2`` content item.

    Raises:
        ExtractionError: If ``Key``, ``Size`` or ``LastModified`` is missing.
    """
    key = item.get("Key")
    if not key:
        raise ExtractionError("<unknown>", "listing item has no Key")
    missing = [name for name in ("Size", "LastModified") if item.get(name) is None]
    if missing:
        raise ExtractionError(key, f"listing item lacks {', '.join(missing)}")

    modified = item["LastModified"]
    if not isinstance(modified, datetime):
        raise ExtractionError(key, f"unreadable LastModified {modified!r}")

    try:
        size = int(item["Size"])
    except (TypeError, ValueError) as exc:
        raise ExtractionError(key, f"unreadable Size {item['Size']!r}") from exc

    parent, leaf, is_marker = split_key(key)
    if not leaf:
        raise ExtractionError(key, "key has no name component")

    return FileRecord(
        path=parent,
        filename=leaf,
        mime_type=DIRECTORY_MIME_TYPE if is_marker else guess_mime_type(leaf),
        created=None,
        modified=to_utc(modified),
        size=clamp_size(size),
    )


__all__ = [
    "guess_mime_type",
    "clamp_size",
    "to_utc",
    "split_key",
    "extract_filesystem_entry",
    "extract_object_entry",
]
