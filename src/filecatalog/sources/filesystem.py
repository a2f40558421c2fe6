"""Recursive enumeration of local directory trees."""

from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass
from typing import AsyncIterator, List, Tuple

from filecatalog.ingestion.extractors import extract_filesystem_entry
from filecatalog.ingestion.models import FileRecord

from .base import CrawlSource
from .errors import SourceError


@dataclass(frozen=True, slots=True)
class FilesystemEntry:
    """A path discovered during the walk."""

    path: str
    is_dir: bool


def _list_directory(directory: str) -> Tuple[List[FilesystemEntry], List[Tuple[str, str]]]:
    """Partition one directory's children into entries and per-entry failures."""
    entries: List[FilesystemEntry] = []
    failures: List[Tuple[str, str]] = []
    with os.scandir(directory) as iterator:
        for child in iterator:
            try:
                is_dir = child.is_dir(follow_symlinks=False)
            except OSError as exc:
                failures.append((child.path, exc.strerror or str(exc)))
                continue
            entries.append(FilesystemEntry(path=child.path, is_dir=is_dir))
    return entries, failures


class FilesystemSource(CrawlSource):
    """Walk a directory tree depth first without following directory symlinks.

    Directories are catalogued too (as ``inode/directory``); the root itself
    is not.
    """

    kind = "filesystem"

    def __init__(self, location: str, identifier: str) -> None:
        super().__init__(location, identifier)
        self.root = os.path.abspath(os.path.expanduser(location))

    async def entries(self) -> AsyncIterator[FilesystemEntry]:
        if not await asyncio.to_thread(os.path.isdir, self.root):
            raise SourceError(f"{self.location} is neither an object-store URL nor a directory")

        pending = [self.root]
        while pending:
            directory = pending.pop()
            try:
                children, failures = await asyncio.to_thread(_list_directory, directory)
            except OSError as exc:
                if directory == self.root:
                    raise SourceError(f"Cannot list {directory}: {exc}") from exc
                self.observer.entry_skipped(self.location, directory, f"cannot list: {exc}")
                continue

            for path, reason in failures:
                self.observer.entry_skipped(self.location, path, reason)
            subdirectories = []
            for entry in children:
                yield entry
                if entry.is_dir:
                    subdirectories.append(entry.path)
            # Reverse so the first listed subdirectory is visited first.
            pending.extend(reversed(subdirectories))

    async def extract(self, entry: FilesystemEntry) -> FileRecord:
        return await extract_filesystem_entry(entry.path, is_dir=entry.is_dir)


__all__ = ["FilesystemEntry", "FilesystemSource"]
