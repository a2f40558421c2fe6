"""Persistence of file records into the catalog database."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List

from sqlalchemy import BigInteger, DateTime, Text, bindparam, func, literal, or_, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from filecatalog.config.models import DatabaseSettings
from filecatalog.ingestion.models import FileRecord, RecordBatch

from .errors import StoreError
from .schema import CHANGE_COLUMNS, CONFLICT_KEY, MUTABLE_COLUMNS, external_file, metadata

LOGGER = logging.getLogger(__name__)

_ARRAY_TYPES = {
    "path": Text,
    "filename": Text,
    "mime_type": Text,
    "created": DateTime(timezone=True),
    "modified": DateTime(timezone=True),
    "size": BigInteger,
}


class CatalogStore:
    """Write crawl batches into ``external_file`` with conflict-aware upserts."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    @classmethod
    def from_settings(cls, settings: DatabaseSettings) -> "CatalogStore":
        """Create a store with a small fixed connection pool.

        Every crawl session holds one connection until it commits; sessions
        beyond the pool size queue for a free connection for as long as
        ``pool_timeout`` allows (indefinitely by default). A file-backed
        SQLite catalog admits one writer at a time, so it always gets a
        single pooled connection.

        Raises:
            StoreError: If no URL is configured or the engine cannot be created.
        """
        if not settings.url:
            raise StoreError("No database URL configured; set DATABASE_URL.")
        try:
            url = make_url(settings.url)
            options: Dict[str, Any] = {"echo": settings.echo}
            if url.get_backend_name() == "sqlite":
                # In-memory databases run on a single static connection.
                if url.database not in (None, "", ":memory:"):
                    options.update(
                        pool_size=1, max_overflow=0, pool_timeout=settings.pool_timeout
                    )
            else:
                options.update(
                    pool_size=settings.pool_size,
                    max_overflow=0,
                    pool_timeout=settings.pool_timeout,
                )
            engine = create_async_engine(url, **options)
        except SQLAlchemyError as exc:
            raise StoreError(f"Cannot create database engine: {exc}") from exc
        return cls(engine)

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    @property
    def dialect_name(self) -> str:
        return self._engine.dialect.name

    async def create_schema(self) -> None:
        """Create the catalog table and its unique constraint if missing."""
        try:
            async with self._engine.begin() as conn:
                await conn.run_sync(metadata.create_all)
        except SQLAlchemyError as exc:
            raise StoreError(f"Cannot create catalog schema: {exc}") from exc

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncConnection]:
        """Yield a connection whose work commits on exit and rolls back on error.

        Raises:
            StoreError: If the transaction cannot be opened or committed.
        """
        try:
            async with self._engine.begin() as conn:
                yield conn
        except (SQLAlchemyError, OSError) as exc:
            raise StoreError(f"Catalog transaction failed: {exc}") from exc

    async def record_files(
        self,
        conn: AsyncConnection,
        external_source: str,
        batch: RecordBatch,
    ) -> int:
        """Upsert one batch with a single statement.

        Existing rows only take the incoming ``mime_type``, ``created``,
        ``modified`` and ``size`` when ``(created, modified, size)`` changed.

        Returns:
            int: Number of records submitted.

        Raises:
            StoreError: If the statement fails.
        """
        if not batch:
            return 0
        columns = batch.columns()
        if self.dialect_name == "postgresql":
            statement = _postgres_upsert(external_source, columns)
        elif self.dialect_name == "sqlite":
            statement = _values_upsert(external_source, columns)
        else:
            raise StoreError(f"Unsupported catalog database dialect: {self.dialect_name}")
        try:
            await conn.execute(statement)
        except SQLAlchemyError as exc:
            raise StoreError(
                f"Failed to write {len(batch)} records for {external_source}: {exc}"
            ) from exc
        LOGGER.debug("Upserted %d records for %s", len(batch), external_source)
        return len(batch)

    async def fetch_files(
        self, external_source: str, *, limit: int | None = None
    ) -> List[FileRecord]:
        """Return the stored records for ``external_source`` ordered by path."""
        table = external_file
        query = (
            select(*(table.c[name] for name in RecordBatch.COLUMNS))
            .where(table.c.external_source == external_source)
            .order_by(table.c.path, table.c.filename)
        )
        if limit is not None:
            query = query.limit(limit)
        try:
            async with self._engine.connect() as conn:
                rows = (await conn.execute(query)).mappings().all()
        except SQLAlchemyError as exc:
            raise StoreError(f"Cannot read catalog rows: {exc}") from exc
        return [FileRecord.model_validate(dict(row)) for row in rows]

    async def dispose(self) -> None:
        await self._engine.dispose()


def _on_conflict(statement: Any) -> Any:
    excluded = statement.excluded
    return statement.on_conflict_do_update(
        index_elements=list(CONFLICT_KEY),
        set_={name: excluded[name] for name in MUTABLE_COLUMNS},
        where=or_(
            *(external_file.c[name].is_distinct_from(excluded[name]) for name in CHANGE_COLUMNS)
        ),
    )


def _postgres_upsert(external_source: str, columns: Dict[str, List[Any]]) -> Any:
    """Build ``INSERT ... SELECT $1, unnest($2), ... ON CONFLICT`` from column arrays."""
    arrays = select(
        literal(external_source, Text).label("external_source"),
        *(
            func.unnest(
                bindparam(
                    f"{name}_values", value=values, type_=postgresql.ARRAY(_ARRAY_TYPES[name])
                )
            ).label(name)
            for name, values in columns.items()
        ),
    )
    statement = postgresql.insert(external_file).from_select(
        ["external_source", *columns.keys()], arrays
    )
    return _on_conflict(statement)


def _values_upsert(external_source: str, columns: Dict[str, List[Any]]) -> Any:
    """Build a multi-row ``INSERT ... VALUES ... ON CONFLICT`` for SQLite."""
    names = list(columns.keys())
    rows = [
        {"external_source": external_source, **dict(zip(names, values))}
        for values in zip(*columns.values())
    ]
    return _on_conflict(sqlite.insert(external_file).values(rows))


__all__ = ["CatalogStore", "StoreError"]
