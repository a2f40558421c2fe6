"""Data models shared by the crawl pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel

DIRECTORY_MIME_TYPE = "inode/directory"
MAX_SIZE = 2**63 - 1


class FileRecord(BaseModel):
    """Normalized metadata for one catalogued file or directory."""

    path: str
    filename: str
    mime_type: Optional[str] = None
    created: Optional[datetime] = None
    modified: datetime
    size: Optional[int] = None

    @property
    def key(self) -> Tuple[str, str]:
        """Return the ``(path, filename)`` pair identifying the row within a source."""
        return self.path, self.filename


class RecordBatch:
    """Accumulate records and expose them as aligned per-column lists.

    A record whose key is already present replaces the earlier one, so a
    batch never holds two rows for the same ``(path, filename)``.
    """

    COLUMNS = ("path", "filename", "mime_type", "created", "modified", "size")

    def __init__(self) -> None:
        self._records: Dict[Tuple[str, str], FileRecord] = {}

    def append(self, record: FileRecord) -> None:
        self._records[record.key] = record

    def extend(self, records: List[FileRecord]) -> None:
        for record in records:
            self.append(record)

    def __len__(self) -> int:
        return len(self._records)

    def __bool__(self) -> bool:
        return bool(self._records)

    @property
    def records(self) -> List[FileRecord]:
        return list(self._records.values())

    def columns(self) -> Dict[str, List[Any]]:
        """Return one list per column; index ``i`` refers to the same record everywhere."""
        columns: Dict[str, List[Any]] = {name: [] for name in self.COLUMNS}
        for record in self._records.values():
            for name in self.COLUMNS:
                columns[name].append(getattr(record, name))
        return columns


@dataclass(slots=True)
class SessionResult:
    """Counters describing one finished crawl session.

    Attributes:
        identifier: Source identifier the rows were written under.
        entries_seen: Raw entries produced by the enumerator.
        records_written: Records submitted to the store.
        entries_skipped: Entries dropped because their metadata could not be read.
        batches: Number of batches flushed.
    """

    identifier: str
    entries_seen: int = 0
    records_written: int = 0
    entries_skipped: int = 0
    batches: int = 0


__all__ = [
    "DIRECTORY_MIME_TYPE",
    "MAX_SIZE",
    "FileRecord",
    "RecordBatch",
    "SessionResult",
]
