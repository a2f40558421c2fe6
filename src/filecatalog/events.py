"""Observer hooks emitted by crawl sessions."""

from __future__ import annotations

import logging
from typing import Optional

from filecatalog.ingestion.models import SessionResult

LOGGER = logging.getLogger("filecatalog.crawl")


class CrawlObserver:
    """Receive structured notifications from crawl sessions.

    The base implementation ignores every event; subclasses override the
    hooks they care about.
    """

    def session_started(self, root: str, identifier: str) -> None:
        """Called before a root's transaction is opened."""

    def session_finished(self, root: str, result: SessionResult) -> None:
        """Called after a root's transaction committed."""

    def session_failed(self, root: str, error: BaseException) -> None:
        """Called when a root aborted with a fatal error."""

    def batch_flushed(self, root: str, number: int, size: int, trigger: str) -> None:
        """Called after a batch was written to the store."""

    def entry_skipped(self, root: str, location: str, reason: str) -> None:
        """Called when an entry was dropped without failing the session."""


class LoggingObserver(CrawlObserver):
    """Forward crawl events to a standard-library logger."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self._logger = logger or LOGGER

    def session_started(self, root: str, identifier: str) -> None:
        self._logger.info(
            "Crawl of %s started (source %s)",
            root,
            identifier,
            extra={"event": "session_started", "root": root, "identifier": identifier},
        )

    def session_finished(self, root: str, result: SessionResult) -> None:
        self._logger.info(
            "Crawl of %s committed: entries=%d written=%d skipped=%d batches=%d",
            root,
            result.entries_seen,
            result.records_written,
            result.entries_skipped,
            result.batches,
            extra={"event": "session_finished", "root": root, "identifier": result.identifier},
        )

    def session_failed(self, root: str, error: BaseException) -> None:
        self._logger.error(
            "Crawl of %s failed: %s",
            root,
            error,
            extra={"event": "session_failed", "root": root},
        )

    def batch_flushed(self, root: str, number: int, size: int, trigger: str) -> None:
        self._logger.debug(
            "Flushed batch %d of %s: size=%d trigger=%s",
            number,
            root,
            size,
            trigger,
            extra={
                "event": "batch_flushed",
                "root": root,
                "batch": number,
                "size": size,
                "trigger": trigger,
            },
        )

    def entry_skipped(self, root: str, location: str, reason: str) -> None:
        self._logger.warning(
            "Skipping %s: %s",
            location,
            reason,
            extra={"event": "entry_skipped", "root": root, "location": location},
        )


__all__ = ["CrawlObserver", "LoggingObserver"]
