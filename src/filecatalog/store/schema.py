"""Table definition for the file catalog."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    Integer,
    MetaData,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.types import TypeDecorator

metadata = MetaData()


class UTCDateTime(TypeDecorator):
    """Timezone-aware timestamp that always round-trips as UTC.

    SQLite drops the offset on storage, so values are normalized to UTC on the
    way in and tagged as UTC on the way out.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect: Any) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value: Optional[datetime], dialect: Any) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


external_file = Table(
    "external_file",
    metadata,
    # SQLite only auto-increments a plain INTEGER primary key.
    Column(
        "id",
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
    ),
    Column("external_source", Text, nullable=False),
    Column("path", Text, nullable=False),
    Column("filename", Text, nullable=False),
    Column("mime_type", Text, nullable=True),
    Column("created", UTCDateTime(), nullable=True),
    Column("modified", UTCDateTime(), nullable=False),
    Column("size", BigInteger, nullable=True),
    UniqueConstraint(
        "external_source",
        "path",
        "filename",
        name="uq_external_file_source_path_filename",
    ),
)

CONFLICT_KEY = ("external_source", "path", "filename")
MUTABLE_COLUMNS = ("mime_type", "created", "modified", "size")
CHANGE_COLUMNS = ("created", "modified", "size")

__all__ = [
    "metadata",
    "external_file",
    "UTCDateTime",
    "CONFLICT_KEY",
    "MUTABLE_COLUMNS",
    "CHANGE_COLUMNS",
]
