"""Crawl session: enumerate, batch, extract and upsert one root."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, Optional

from filecatalog.events import CrawlObserver

from .batching import DEFAULT_BATCH_INTERVAL, DEFAULT_BATCH_SIZE, batched
from .errors import ExtractionError
from .models import FileRecord, RecordBatch, SessionResult

if TYPE_CHECKING:
    from filecatalog.sources.base import CrawlSource
    from filecatalog.store import CatalogStore


class CrawlSession:
    """Run one root end to end inside a single store transaction.

    Entries are windowed by :func:`batched`; each window is extracted
    concurrently and written with one upsert statement. Every batch is written
    before the next one is taken, so batches reach the store in traversal
    order. The transaction commits only after the last batch; any fatal error
    rolls back everything written for the root.
    """

    def __init__(
        self,
        source: "CrawlSource",
        store: "CatalogStore",
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_interval: float = DEFAULT_BATCH_INTERVAL,
        observer: Optional[CrawlObserver] = None,
    ) -> None:
        self.source = source
        self.store = store
        self.batch_size = batch_size
        self.batch_interval = batch_interval
        self.observer = observer or CrawlObserver()

    async def run(self) -> SessionResult:
        """Crawl the root and commit.

        Returns:
            SessionResult: Counters for the committed session.

        Raises:
            SourceError: If enumeration of the root fails.
            StoreError: If the transaction or a write fails.
        """
        source = self.source
        result = SessionResult(identifier=source.identifier)
        self.observer.session_started(source.location, source.identifier)

        async with self.store.transaction() as conn:
            windows = batched(
                source.entries(),
                max_items=self.batch_size,
                max_interval=self.batch_interval,
            )
            try:
                async for window in windows:
                    result.entries_seen += len(window)
                    records = await asyncio.gather(
                        *(self._extract(entry) for entry in window.items)
                    )
                    batch = RecordBatch()
                    for record in records:
                        if record is None:
                            result.entries_skipped += 1
                        else:
                            batch.append(record)
                    if not batch:
                        continue
                    result.records_written += await self.store.record_files(
                        conn, source.identifier, batch
                    )
                    result.batches += 1
                    self.observer.batch_flushed(
                        source.location, result.batches, len(batch), window.trigger
                    )
            finally:
                await windows.aclose()

        self.observer.session_finished(source.location, result)
        return result

    async def _extract(self, entry: Any) -> Optional[FileRecord]:
        try:
            return await self.source.extract(entry)
        except ExtractionError as exc:
            self.observer.entry_skipped(self.source.location, exc.location, exc.reason)
            return None


__all__ = ["CrawlSession"]
