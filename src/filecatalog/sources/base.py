"""Common interface for crawlable storage roots."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, AsyncIterator, Optional

from filecatalog.config.models import CrawlSettings
from filecatalog.events import CrawlObserver
from filecatalog.ingestion.models import FileRecord, SessionResult
from filecatalog.ingestion.pipeline import CrawlSession

if TYPE_CHECKING:
    from filecatalog.store import CatalogStore


class CrawlSource(ABC):
    """A storage root that can be enumerated and catalogued.

    Attributes:
        location: Root location as requested by the caller.
        identifier: Source identifier stored with every row of this root.
    """

    kind: str = "abstract"

    def __init__(self, location: str, identifier: str) -> None:
        self.location = location
        self.identifier = identifier
        self.observer: CrawlObserver = CrawlObserver()

    @abstractmethod
    def entries(self) -> AsyncIterator[Any]:
        """Yield raw entry descriptors below the root."""

    @abstractmethod
    async def extract(self, entry: Any) -> FileRecord:
        """Turn one raw entry into a record, raising ``ExtractionError`` on failure."""

    async def crawl(
        self,
        store: "CatalogStore",
        *,
        settings: Optional[CrawlSettings] = None,
        observer: Optional[CrawlObserver] = None,
    ) -> SessionResult:
        """Run a full crawl session for this root and commit it."""
        settings = settings or CrawlSettings()
        if observer is not None:
            self.observer = observer
        session = CrawlSession(
            self,
            store,
            batch_size=settings.batch_size,
            batch_interval=settings.batch_interval_seconds,
            observer=self.observer,
        )
        return await session.run()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(location={self.location!r}, identifier={self.identifier!r})"


__all__ = ["CrawlSource"]
